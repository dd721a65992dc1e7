"""
Tenants module.

Scope:
- Tenants CRUD (list + create + detail/update + delete)
- Tenant references (add/delete from the tenant detail page)
- Lookup of the active tenant linked to a property (property_id + property_type)
"""
