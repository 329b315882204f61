"""
Feature modules live under this package.

Each module owns its models, store queries, service logic and blueprint,
while reusing platform primitives (auth, RBAC, error responses, DB session).
"""
