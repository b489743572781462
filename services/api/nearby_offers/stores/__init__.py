"""Data stores for persistence and caching.

Stores handle:
- PostgreSQL: DB session, discovery repository, ORM operations
- Redis: response caching with TTL policies

No ranking/feed logic in stores beyond building the queries - composition belongs in services.
"""
