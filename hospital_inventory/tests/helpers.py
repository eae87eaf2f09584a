"""
Shared fixtures for the inventory tests.
"""
from hospital_inventory.db.connection import Database
from hospital_inventory.db.sql_store import SQLAlchemyInventoryStore
from hospital_inventory.services.inventory_service import InventoryService


def make_database():
    """Fresh in-memory database with every table created."""
    database = Database('sqlite://')
    database.create_all_tables()
    return database


def make_service(default_threshold=10, max_update_attempts=3):
    """InventoryService over a fresh in-memory database.

    Returns:
        Tuple of (service, database)
    """
    database = make_database()
    service = InventoryService(
        SQLAlchemyInventoryStore(database),
        default_threshold=default_threshold,
        max_update_attempts=max_update_attempts
    )
    return service, database
