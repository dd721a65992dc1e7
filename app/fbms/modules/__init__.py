"""
Feature modules live under this package.

Each module owns its models/service/routes for one business area and reuses
the platform primitives (store, auth guard, forms, view helpers).
"""
