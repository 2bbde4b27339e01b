"""
PlateMyDay - Database access.

Supabase (Postgres) is the system of record. Every query is scoped to the
owning actor (`user_id` xor `anonymous_id`).
"""

from platemyday.db.client import get_client

__all__ = ["get_client"]
