# hospital_inventory/db/interface.py
from abc import ABC, abstractmethod
from typing import List, Optional, Sequence

from hospital_inventory.models import (
    ItemType, StockAlert, AlertStatus, PurchaseOrder, PurchaseOrderStatus,
    Supplier, SupplierStatus
)

class InventoryStore(ABC):
    """Persistence collaborator of the inventory core.

    Every method is synchronous and atomic on its own; nothing spans two
    calls. Failures of the underlying store surface as PersistenceError.
    """

    # Items

    @abstractmethod
    def find_item(self, item_id: int, item_type: ItemType):
        """Return the Medicine or Equipment with this id, or None."""
        pass

    @abstractmethod
    def find_all_items(self, item_type: ItemType) -> List:
        """Return every item of the given type."""
        pass

    @abstractmethod
    def find_items_by_name(self, item_type: ItemType, name: str) -> List:
        """Return items of the given type whose name contains ``name``."""
        pass

    @abstractmethod
    def insert_item(self, item) -> int:
        """Insert a Medicine or Equipment and return its id."""
        pass

    @abstractmethod
    def update_item(self, item) -> bool:
        """Update the descriptive fields of an item."""
        pass

    @abstractmethod
    def delete_item(self, item_id: int, item_type: ItemType) -> bool:
        """Delete an item. Returns False when it did not exist."""
        pass

    @abstractmethod
    def update_quantity(self, item_id: int, item_type: ItemType, new_quantity: int,
                        expected_quantity: Optional[int] = None) -> bool:
        """Set an item's quantity.

        When ``expected_quantity`` is given the write is a compare-and-swap:
        it only happens if the stored quantity still equals it. Returns
        False when no row was updated.
        """
        pass

    # Alerts

    @abstractmethod
    def find_alert(self, alert_id: int) -> Optional[StockAlert]:
        pass

    @abstractmethod
    def find_alerts(self, status: Optional[AlertStatus] = None) -> List[StockAlert]:
        pass

    @abstractmethod
    def find_alerts_for_item(self, item_id: int, item_type: ItemType) -> List[StockAlert]:
        """Return the item's alerts, oldest first."""
        pass

    @abstractmethod
    def insert_alert(self, alert: StockAlert) -> int:
        pass

    @abstractmethod
    def update_alert(self, alert: StockAlert, expected_status: Optional[AlertStatus] = None) -> bool:
        """Write an alert's fields.

        When ``expected_status`` is given the write only happens if the
        stored status still equals it. Returns False when no row was updated.
        """
        pass

    @abstractmethod
    def close_alert(self, alert_id: int) -> bool:
        """Mark an OPEN or ACKNOWLEDGED alert RESOLVED with resolved_at set to now.

        Returns False when the alert does not exist or is already RESOLVED.
        """
        pass

    @abstractmethod
    def delete_alert(self, alert_id: int) -> bool:
        pass

    # Purchase orders

    @abstractmethod
    def find_purchase_order(self, po_id: int) -> Optional[PurchaseOrder]:
        pass

    @abstractmethod
    def find_purchase_orders(self, status: Optional[PurchaseOrderStatus] = None,
                             supplier_id: Optional[int] = None) -> List[PurchaseOrder]:
        pass

    @abstractmethod
    def insert_purchase_order(self, po: PurchaseOrder) -> int:
        pass

    @abstractmethod
    def update_purchase_order(self, po: PurchaseOrder,
                              expected_statuses: Optional[Sequence[PurchaseOrderStatus]] = None) -> bool:
        """Write a purchase order's fields.

        When ``expected_statuses`` is given the write only happens if the
        stored status is one of them. Returns False when no row was updated.
        """
        pass

    @abstractmethod
    def delete_purchase_order(self, po_id: int) -> bool:
        pass

    # Suppliers

    @abstractmethod
    def find_supplier(self, supplier_id: int) -> Optional[Supplier]:
        pass

    @abstractmethod
    def find_suppliers(self, status: Optional[SupplierStatus] = None) -> List[Supplier]:
        pass

    @abstractmethod
    def insert_supplier(self, supplier: Supplier) -> int:
        pass

    @abstractmethod
    def find_suppliers_by_name(self, name: str) -> List[Supplier]:
        """Return suppliers whose name contains ``name``, case-insensitively."""
        pass

    @abstractmethod
    def update_supplier(self, supplier: Supplier) -> bool:
        pass

    @abstractmethod
    def delete_supplier(self, supplier_id: int) -> bool:
        pass

    @abstractmethod
    def supplier_in_use(self, supplier_id: int) -> bool:
        """Whether any item or purchase order references the supplier."""
        pass
