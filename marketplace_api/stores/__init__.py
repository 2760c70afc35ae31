"""Data stores for persistence.

Stores handle:
- PostgreSQL: DB session, engine lifecycle, shared column types

No business/reconciliation logic in stores - that belongs in services.
"""
