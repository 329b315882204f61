"""
Customers module.

- Customers CRUD over a JSON API (list + detail + create + update + delete)
- Delete is a soft delete: rows stay in the table with deleted = true
- Email is unique among non-deleted customers only
"""
