# hospital_inventory/services/inventory_service.py
from datetime import date, timedelta
from typing import Optional, Union

from hospital_inventory.db.connection import Database
from hospital_inventory.db.interface import InventoryStore
from hospital_inventory.db.sql_store import SQLAlchemyInventoryStore
from hospital_inventory.services.alert_registry import AlertRegistry
from hospital_inventory.services.item_service import ItemService
from hospital_inventory.services.purchase_order_service import PurchaseOrderReceiver
from hospital_inventory.services.reconciliation import ReconciliationSweep
from hospital_inventory.services.stock_ledger import StockLedger


class InventoryService:
    """Entry point for procurement workflows and admin tooling.

    Wires the inventory components around one store. Nothing here is
    global: build one per store and hand it to whoever needs it.
    """

    def __init__(
        self,
        store: InventoryStore,
        default_threshold: Optional[int] = None,
        max_update_attempts: Optional[int] = None
    ):
        """Initialize the inventory service.

        Args:
            store: Inventory store
            default_threshold: Threshold for items without their own; defaults to configuration
            max_update_attempts: Compare-and-swap attempts per quantity change; defaults to configuration
        """
        self.store = store
        self.alerts = AlertRegistry(store)
        self.ledger = StockLedger(store, self.alerts, default_threshold, max_update_attempts)
        self.items = ItemService(store, self.alerts)
        self.purchase_orders = PurchaseOrderReceiver(store, self.ledger)
        self.sweep = ReconciliationSweep(store, self.alerts)

    @classmethod
    def from_database(cls, database: Database, **kwargs) -> 'InventoryService':
        """Build a service over a SQLAlchemy database."""
        return cls(SQLAlchemyInventoryStore(database), **kwargs)

    @property
    def default_threshold(self) -> int:
        return self.ledger.default_threshold

    def set_default_threshold(self, threshold: int):
        """Change the default threshold for consume/restock and for sweeps run without one."""
        self.ledger.set_default_threshold(threshold)

    def add_medicine(self, name: str, **fields):
        return self.items.add_medicine(name, **fields)

    def add_equipment(self, name: str, **fields):
        return self.items.add_equipment(name, **fields)

    def update_medicine(self, medicine_id: int, **fields):
        return self.items.update_medicine(medicine_id, **fields)

    def update_equipment(self, equipment_id: int, **fields):
        return self.items.update_equipment(equipment_id, **fields)

    def remove_medicine(self, medicine_id: int):
        self.items.remove_medicine(medicine_id)

    def remove_equipment(self, equipment_id: int):
        self.items.remove_equipment(equipment_id)

    def restock(self, item_id: int, item_type, quantity: int) -> int:
        return self.ledger.restock(item_id, item_type, quantity)

    def consume(self, item_id: int, item_type, quantity: int) -> int:
        return self.ledger.consume(item_id, item_type, quantity)

    def receive_purchase_order(self, po_id: int, actual_delivery_date: Optional[date] = None):
        return self.purchase_orders.receive(po_id, actual_delivery_date)

    def acknowledge_alert(self, alert_id: int):
        return self.alerts.acknowledge(alert_id)

    def resolve_alert(self, alert_id: int):
        return self.alerts.resolve(alert_id)

    def delete_alert(self, alert_id: int):
        self.alerts.delete_alert(alert_id)

    def delete_purchase_order(self, po_id: int):
        self.purchase_orders.delete_purchase_order(po_id)

    def ensure_low_stock_alerts_for_all(self, default_threshold: Optional[int] = None) -> int:
        if default_threshold is None:
            default_threshold = self.default_threshold
        return self.sweep.ensure_low_stock_alerts_for_all(default_threshold)

    def resolve_recovered_stock_alerts(self, default_threshold: Optional[int] = None) -> int:
        if default_threshold is None:
            default_threshold = self.default_threshold
        return self.sweep.resolve_recovered_stock_alerts(default_threshold)

    def create_stock_monitor(
        self,
        scan_interval: Optional[Union[timedelta, int, float]] = None,
        cycle_reporter=None,
        low_stock_threshold: Optional[int] = None
    ):
        """Create a StockMonitor driving this service's sweeps.

        The monitor starts with the service's default threshold unless
        another one is given. The monitor and the ledger share one default:
        a threshold given here or later through the monitor's
        set_low_stock_threshold also becomes the service default.
        """
        from hospital_inventory.batch.stock_monitor import StockMonitor

        if low_stock_threshold is None:
            low_stock_threshold = self.default_threshold

        return StockMonitor(
            self.sweep,
            low_stock_threshold=low_stock_threshold,
            scan_interval=scan_interval,
            cycle_reporter=cycle_reporter,
            threshold_listener=self.set_default_threshold
        )
