"""
Rent module.

Scope:
- Rent payments CRUD with status/tenant filters
- Monthly payment generation for active tenants, overdue marking
- Collection analytics and printable receipts for paid payments
"""
