"""
Persistence layer: async engine, sessions and schema management.
"""
from db.engine import engine
from db.session import async_session_maker, create_tables, drop_tables, get_db_session

__all__ = ["engine", "async_session_maker", "get_db_session", "create_tables", "drop_tables"]
