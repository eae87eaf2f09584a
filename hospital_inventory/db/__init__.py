# hospital_inventory/db/__init__.py
from .connection import Database, db, session_scope
from .interface import InventoryStore
from .sql_store import SQLAlchemyInventoryStore

def create_all_tables():
    """Create all tables on the default database."""
    db.create_all_tables()

def drop_all_tables():
    """Drop all tables on the default database."""
    db.drop_all_tables()

__all__ = [
    'db',
    'session_scope',
    'create_all_tables',
    'drop_all_tables',
    'Database',
    'InventoryStore',
    'SQLAlchemyInventoryStore'
]
