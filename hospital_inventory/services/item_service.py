# hospital_inventory/services/item_service.py
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import List, Optional
import logging

from hospital_inventory.core.stock_rules import (
    coerce_enum, require_id, require_non_blank, require_quantity
)
from hospital_inventory.db.interface import InventoryStore
from hospital_inventory.exceptions import NotFoundError, PersistenceError, ValidationError
from hospital_inventory.models import (
    ItemType, Medicine, MedicineStatus, Equipment, EquipmentStatus,
    Supplier, SupplierStatus, MAX_STOCK_QUANTITY
)
from hospital_inventory.services.purchase_order_service import OPEN_ORDER_STATUSES

logger = logging.getLogger(__name__)

# Fields the update_* operations accept; stock only changes through StockLedger
MEDICINE_FIELDS = (
    'name', 'low_stock_threshold', 'batch_number', 'expiry_date',
    'supplier_id', 'unit_price', 'status'
)
EQUIPMENT_FIELDS = (
    'name', 'category', 'low_stock_threshold', 'model_number', 'serial_number',
    'purchase_date', 'warranty_expiry', 'unit_cost', 'supplier_id', 'status'
)
SUPPLIER_FIELDS = (
    'name', 'contact_person', 'phone', 'email', 'address', 'gst_number', 'status'
)


def _optional_threshold(low_stock_threshold) -> Optional[int]:
    if low_stock_threshold is None:
        return None
    return require_quantity(low_stock_threshold, 'low_stock_threshold', allow_zero=True)


def _optional_money(value, name: str) -> Optional[Decimal]:
    if value is None:
        return None
    amount = Decimal(str(value))
    if amount < 0:
        raise ValidationError(f"{name} must be >= 0, got {value}")
    return amount


class ItemService:
    """Service for registering and looking up medicines, equipment and suppliers.

    Quantities set here are opening balances only; afterwards stock changes
    through StockLedger.
    """

    def __init__(self, store: InventoryStore, alerts=None):
        """Initialize the item service.

        Args:
            store: Inventory store
            alerts: Optional AlertRegistry; removing an item resolves its alerts
        """
        self.store = store
        self.alerts = alerts

    def add_medicine(
        self,
        name: str,
        quantity_in_stock: int = 0,
        low_stock_threshold: Optional[int] = None,
        batch_number: Optional[str] = None,
        expiry_date: Optional[date] = None,
        supplier_id: Optional[int] = None,
        unit_price=None,
        status=None
    ) -> Medicine:
        """Register a medicine.

        Args:
            name: Medicine name
            quantity_in_stock: Opening quantity (>= 0)
            low_stock_threshold: Optional per-item threshold (>= 0)
            batch_number: Optional batch number
            expiry_date: Optional expiry date
            supplier_id: Optional supplier ID
            unit_price: Optional unit price
            status: MedicineStatus or its name, ACTIVE if omitted

        Returns:
            The created medicine
        """
        medicine = Medicine(
            name=require_non_blank(name, 'medicine.name'),
            quantity_in_stock=self._opening_quantity(quantity_in_stock),
            low_stock_threshold=_optional_threshold(low_stock_threshold),
            batch_number=batch_number,
            expiry_date=expiry_date,
            supplier_id=self._optional_supplier(supplier_id),
            unit_price=_optional_money(unit_price, 'unit_price'),
            status=coerce_enum(MedicineStatus, status, 'medicine status') if status else MedicineStatus.ACTIVE
        )
        return self._add_item(medicine)

    def add_equipment(
        self,
        name: str,
        category: Optional[str] = None,
        quantity_in_stock: int = 0,
        low_stock_threshold: Optional[int] = None,
        model_number: Optional[str] = None,
        serial_number: Optional[str] = None,
        purchase_date: Optional[date] = None,
        warranty_expiry: Optional[date] = None,
        unit_cost=None,
        supplier_id: Optional[int] = None,
        status=None
    ) -> Equipment:
        """Register a piece of equipment (consumable or durable).

        Returns:
            The created equipment
        """
        equipment = Equipment(
            name=require_non_blank(name, 'equipment.name'),
            category=category.strip().upper() if category else None,
            quantity_in_stock=self._opening_quantity(quantity_in_stock),
            low_stock_threshold=_optional_threshold(low_stock_threshold),
            model_number=model_number,
            serial_number=serial_number,
            purchase_date=purchase_date,
            warranty_expiry=warranty_expiry,
            unit_cost=_optional_money(unit_cost, 'unit_cost'),
            supplier_id=self._optional_supplier(supplier_id),
            status=coerce_enum(EquipmentStatus, status, 'equipment status') if status else EquipmentStatus.ACTIVE
        )
        return self._add_item(equipment)

    def get_item(self, item_id: int, item_type):
        """Get a medicine or piece of equipment.

        Raises:
            NotFoundError if the item does not exist
        """
        require_id(item_id, 'item_id')
        item_type = ItemType.from_string(item_type)

        item = self.store.find_item(item_id, item_type)
        if item is None:
            raise NotFoundError(f"{item_type.value.title()} with ID {item_id} not found")
        return item

    def list_items(self, item_type) -> List:
        """List every item of a type."""
        return self.store.find_all_items(ItemType.from_string(item_type))

    def search_items(self, item_type, name: str) -> List:
        """Case-insensitive name search within one item type."""
        return self.store.find_items_by_name(ItemType.from_string(item_type), name or '')

    def set_low_stock_threshold(self, item_id: int, item_type, low_stock_threshold: Optional[int]):
        """Set or clear (None) an item's own low-stock threshold."""
        item = self.get_item(item_id, item_type)
        item.low_stock_threshold = _optional_threshold(low_stock_threshold)
        return self._update_item(item)

    def medicines_expiring_within(self, days: int, today: Optional[date] = None) -> List[Medicine]:
        """Medicines whose expiry date is on or before ``today + days``, soonest first.

        Already expired medicines are included.
        """
        require_quantity(days, 'days', allow_zero=True)
        cutoff = (today or date.today()) + timedelta(days=days)

        medicines = [
            medicine for medicine in self.store.find_all_items(ItemType.MEDICINE)
            if medicine.expiry_date is not None and medicine.expiry_date <= cutoff
        ]
        return sorted(medicines, key=lambda medicine: medicine.expiry_date)

    def equipment_warranty_expiring_by(self, cutoff_date: date) -> List[Equipment]:
        """Equipment whose warranty ends on or before the cutoff, soonest first."""
        if cutoff_date is None:
            raise ValidationError("cutoff_date must not be None")

        equipment = [
            item for item in self.store.find_all_items(ItemType.EQUIPMENT)
            if item.warranty_expiry is not None and item.warranty_expiry <= cutoff_date
        ]
        return sorted(equipment, key=lambda item: item.warranty_expiry)

    def equipment_under_maintenance(self) -> List[Equipment]:
        return [
            item for item in self.store.find_all_items(ItemType.EQUIPMENT)
            if item.status == EquipmentStatus.UNDER_MAINTENANCE
        ]

    def set_equipment_status(self, equipment_id: int, status) -> Equipment:
        """Change the lifecycle status of a piece of equipment."""
        equipment = self.get_item(equipment_id, ItemType.EQUIPMENT)
        equipment.status = coerce_enum(EquipmentStatus, status, 'equipment status')
        return self._update_item(equipment)

    def update_medicine(self, medicine_id: int, **fields) -> Medicine:
        """Change a medicine's descriptive fields.

        Accepts the keyword names in MEDICINE_FIELDS. ``quantity_in_stock``
        is refused; stock changes through StockLedger.

        Raises:
            NotFoundError if the medicine does not exist
            ValidationError for a read-only, unknown or invalid field
        """
        medicine = self.get_item(medicine_id, ItemType.MEDICINE)
        for field, value in self._clean_fields(fields, MEDICINE_FIELDS, MedicineStatus).items():
            setattr(medicine, field, value)
        return self._update_item(medicine)

    def update_equipment(self, equipment_id: int, **fields) -> Equipment:
        """Change a piece of equipment's descriptive fields (see EQUIPMENT_FIELDS)."""
        equipment = self.get_item(equipment_id, ItemType.EQUIPMENT)
        for field, value in self._clean_fields(fields, EQUIPMENT_FIELDS, EquipmentStatus).items():
            setattr(equipment, field, value)
        return self._update_item(equipment)

    def remove_medicine(self, medicine_id: int):
        self._remove_item(medicine_id, ItemType.MEDICINE)

    def remove_equipment(self, equipment_id: int):
        self._remove_item(equipment_id, ItemType.EQUIPMENT)

    def list_equipment_by_category(self, category: str) -> List[Equipment]:
        """Equipment in a category, matched case-insensitively."""
        category = require_non_blank(category, 'category').upper()
        return [
            item for item in self.store.find_all_items(ItemType.EQUIPMENT)
            if (item.category or '').upper() == category
        ]

    # Suppliers

    def add_supplier(
        self,
        name: str,
        contact_person: Optional[str] = None,
        phone: Optional[str] = None,
        email: Optional[str] = None,
        address: Optional[str] = None,
        gst_number: Optional[str] = None,
        status=None
    ) -> Supplier:
        """Register a supplier, ACTIVE unless another status is given."""
        now = datetime.now()
        supplier = Supplier(
            name=require_non_blank(name, 'supplier.name'),
            contact_person=contact_person,
            phone=phone,
            email=email,
            address=address,
            gst_number=gst_number,
            status=coerce_enum(SupplierStatus, status, 'supplier status') if status else SupplierStatus.ACTIVE,
            created_at=now,
            updated_at=now
        )
        supplier_id = self.store.insert_supplier(supplier)
        logger.info(f"Added supplier {supplier_id} ({supplier.name})")
        return supplier

    def get_supplier(self, supplier_id: int) -> Supplier:
        """Get a supplier by ID.

        Raises:
            NotFoundError if the supplier does not exist
        """
        require_id(supplier_id, 'supplier_id')
        supplier = self.store.find_supplier(supplier_id)
        if supplier is None:
            raise NotFoundError(f"Supplier with ID {supplier_id} not found")
        return supplier

    def list_suppliers(self, status=None) -> List[Supplier]:
        if status is not None:
            status = coerce_enum(SupplierStatus, status, 'supplier status')
        return self.store.find_suppliers(status)

    def search_suppliers_by_name(self, name: str) -> List[Supplier]:
        """Case-insensitive supplier name search."""
        return self.store.find_suppliers_by_name(name or '')

    def update_supplier(self, supplier_id: int, **fields) -> Supplier:
        """Change a supplier's contact details or status (see SUPPLIER_FIELDS).

        Raises:
            NotFoundError if the supplier does not exist
            ValidationError for an unknown or invalid field
        """
        supplier = self.get_supplier(supplier_id)
        for field, value in self._clean_fields(fields, SUPPLIER_FIELDS, SupplierStatus).items():
            setattr(supplier, field, value)

        if not self.store.update_supplier(supplier):
            raise NotFoundError(f"Supplier with ID {supplier_id} not found")

        logger.info(f"Updated supplier {supplier_id} ({', '.join(sorted(fields))})")
        return supplier

    def remove_supplier(self, supplier_id: int):
        """Delete a supplier that no item or purchase order refers to.

        Raises:
            NotFoundError if the supplier does not exist
            ValidationError if the supplier is still referenced
        """
        supplier = self.get_supplier(supplier_id)
        if self.store.supplier_in_use(supplier.id):
            raise ValidationError(
                f"Supplier {supplier_id} is referenced by items or purchase orders",
                details={'supplier_id': supplier_id}
            )

        if not self.store.delete_supplier(supplier.id):
            raise NotFoundError(f"Supplier with ID {supplier_id} not found")
        logger.info(f"Removed supplier {supplier_id} ({supplier.name})")

    # Helpers

    @staticmethod
    def _opening_quantity(quantity: int) -> int:
        require_quantity(quantity, 'quantity_in_stock', allow_zero=True)
        if quantity > MAX_STOCK_QUANTITY:
            raise ValidationError(f"quantity_in_stock must be <= {MAX_STOCK_QUANTITY}")
        return quantity

    def _optional_supplier(self, supplier_id: Optional[int]) -> Optional[int]:
        if supplier_id is None:
            return None
        return self.get_supplier(supplier_id).id

    def _add_item(self, item):
        now = datetime.now()
        item.created_at = now
        item.updated_at = now

        item_id = self.store.insert_item(item)
        logger.info(f"Added {item.item_type}:{item_id} ({item.name}, qty={item.quantity_in_stock})")
        return item

    def _update_item(self, item):
        if not self.store.update_item(item):
            raise PersistenceError(f"{item.item_type}:{item.id} vanished while being updated")
        return item

    def _clean_fields(self, fields: dict, editable, status_enum) -> dict:
        if 'quantity_in_stock' in fields:
            raise ValidationError("quantity_in_stock changes only through restock and consume")

        unknown = sorted(set(fields) - set(editable))
        if unknown:
            raise ValidationError(f"Unknown or read-only field(s): {', '.join(unknown)}")

        cleaned = {}
        for field, value in fields.items():
            if field == 'name':
                value = require_non_blank(value, 'name')
            elif field == 'status':
                value = coerce_enum(status_enum, value, 'status')
            elif field == 'low_stock_threshold':
                value = _optional_threshold(value)
            elif field in ('unit_price', 'unit_cost'):
                value = _optional_money(value, field)
            elif field == 'supplier_id':
                value = self._optional_supplier(value)
            elif field == 'category':
                value = value.strip().upper() if value else None
            cleaned[field] = value
        return cleaned

    def _remove_item(self, item_id: int, item_type):
        item = self.get_item(item_id, item_type)

        open_orders = [
            po.id for po in self.store.find_purchase_orders()
            if po.item_type == item.item_type and po.item_id == item.id
            and po.status in OPEN_ORDER_STATUSES
        ]
        if open_orders:
            raise ValidationError(
                f"{item.item_type}:{item.id} has open purchase orders {open_orders}",
                details={'purchase_orders': open_orders}
            )

        if self.alerts is not None:
            self.alerts.resolve_alerts_for_item(item)

        if not self.store.delete_item(item.id, item.item_type):
            raise NotFoundError(f"{item.item_type.value.title()} with ID {item.id} not found")
        logger.info(f"Removed {item.item_type}:{item.id} ({item.name})")
