# hospital_inventory/models.py
from sqlalchemy import Column, Integer, String, Date, DateTime, ForeignKey, Text, Enum, Numeric, Index
from sqlalchemy.orm import declarative_base
from datetime import datetime
import enum

from hospital_inventory.exceptions import ValidationError

Base = declarative_base()

# Upper bound of the quantity columns (32-bit signed INTEGER)
MAX_STOCK_QUANTITY = 2 ** 31 - 1

class ItemType(enum.Enum):
    """Kind of stocked item an alert or purchase order refers to.

    Values:
        MEDICINE: Drugs and other consumables tracked by batch and expiry
        EQUIPMENT: Medical equipment, consumable (gloves) or durable (ventilators)
    """
    MEDICINE = 'MEDICINE'
    EQUIPMENT = 'EQUIPMENT'

    def __str__(self):
        """Return the string value of the enum."""
        return self.value

    @classmethod
    def from_string(cls, value) -> 'ItemType':
        """Create an ItemType from an enum member or a case-insensitive string.

        Raises:
            ValidationError if the value is not a known item type
        """
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            raise ValidationError(f"Invalid item type: {value}. Valid values are: MEDICINE, EQUIPMENT")

class MedicineStatus(enum.Enum):
    ACTIVE = 'ACTIVE'
    EXPIRED = 'EXPIRED'
    OUT_OF_STOCK = 'OUT_OF_STOCK'

class EquipmentStatus(enum.Enum):
    ACTIVE = 'ACTIVE'
    IN_USE = 'IN_USE'
    UNDER_MAINTENANCE = 'UNDER_MAINTENANCE'
    DISCARDED = 'DISCARDED'

class SupplierStatus(enum.Enum):
    ACTIVE = 'ACTIVE'
    INACTIVE = 'INACTIVE'
    BLACKLISTED = 'BLACKLISTED'

class AlertLevel(enum.Enum):
    INFO = 'INFO'
    WARNING = 'WARNING'
    CRITICAL = 'CRITICAL'

class AlertStatus(enum.Enum):
    OPEN = 'OPEN'
    ACKNOWLEDGED = 'ACKNOWLEDGED'
    RESOLVED = 'RESOLVED'

# Statuses that count towards the one-active-alert-per-item rule
ACTIVE_ALERT_STATUSES = (AlertStatus.OPEN, AlertStatus.ACKNOWLEDGED)

class PurchaseOrderStatus(enum.Enum):
    PENDING = 'PENDING'
    APPROVED = 'APPROVED'
    REJECTED = 'REJECTED'
    DISPATCHED = 'DISPATCHED'
    RECEIVED = 'RECEIVED'
    CANCELLED = 'CANCELLED'

class PaymentStatus(enum.Enum):
    UNPAID = 'UNPAID'
    PARTIAL = 'PARTIAL'
    PAID = 'PAID'


class Supplier(Base):
    __tablename__ = 'suppliers'

    id = Column(Integer, primary_key=True)
    name = Column(String(150), nullable=False)
    contact_person = Column(String(100))
    phone = Column(String(30))
    email = Column(String(150))
    address = Column(Text)
    gst_number = Column(String(30))  # Billing/tax compliance
    status = Column(Enum(SupplierStatus), default=SupplierStatus.ACTIVE, nullable=False)
    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)

    def __repr__(self):
        return f"<Supplier(id={self.id}, name='{self.name}', status={self.status})>"


class InventoryItemMixin:
    """Columns and behaviour shared by every stocked item.

    ``low_stock_threshold`` is optional; when it is NULL the caller's
    configured default applies (see ``effective_threshold``).
    """
    item_type = None

    id = Column(Integer, primary_key=True)
    name = Column(String(150), nullable=False)
    quantity_in_stock = Column(Integer, nullable=False, default=0)
    low_stock_threshold = Column(Integer)
    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)

    def effective_threshold(self, default_threshold: int) -> int:
        """Return the low-stock trigger quantity for this item."""
        if self.low_stock_threshold is not None:
            return max(0, self.low_stock_threshold)
        return max(0, default_threshold)


class Medicine(InventoryItemMixin, Base):
    __tablename__ = 'medicines'

    item_type = ItemType.MEDICINE

    batch_number = Column(String(50))
    expiry_date = Column(Date)
    supplier_id = Column(Integer, ForeignKey('suppliers.id'))
    unit_price = Column(Numeric(12, 2))
    status = Column(Enum(MedicineStatus), default=MedicineStatus.ACTIVE, nullable=False)

    def __repr__(self):
        return f"<Medicine(id={self.id}, name='{self.name}', qty={self.quantity_in_stock})>"


class Equipment(InventoryItemMixin, Base):
    __tablename__ = 'equipment'

    item_type = ItemType.EQUIPMENT

    category = Column(String(50))  # IMAGING, SURGICAL, ICU, GENERAL
    model_number = Column(String(50))
    serial_number = Column(String(100))
    purchase_date = Column(Date)
    warranty_expiry = Column(Date)
    unit_cost = Column(Numeric(12, 2))
    supplier_id = Column(Integer, ForeignKey('suppliers.id'))
    status = Column(Enum(EquipmentStatus), default=EquipmentStatus.ACTIVE, nullable=False)

    def __repr__(self):
        return f"<Equipment(id={self.id}, name='{self.name}', qty={self.quantity_in_stock})>"


# Model class per item type
ITEM_MODELS = {
    ItemType.MEDICINE: Medicine,
    ItemType.EQUIPMENT: Equipment,
}


class StockAlert(Base):
    __tablename__ = 'stock_alerts'

    id = Column(Integer, primary_key=True)
    item_type = Column(Enum(ItemType), nullable=False)
    item_id = Column(Integer, nullable=False)
    item_name = Column(String(150))

    # Snapshot at the last transition
    threshold = Column(Integer, nullable=False)
    current_quantity = Column(Integer, nullable=False)

    alert_level = Column(Enum(AlertLevel), default=AlertLevel.INFO, nullable=False)
    status = Column(Enum(AlertStatus), default=AlertStatus.OPEN, nullable=False)
    message = Column(Text)

    created_at = Column(DateTime, default=datetime.now)
    acknowledged_at = Column(DateTime)
    resolved_at = Column(DateTime)
    last_notified_at = Column(DateTime)

    __table_args__ = (
        Index('ix_stock_alerts_item', 'item_type', 'item_id'),
    )

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_ALERT_STATUSES

    def __repr__(self):
        return (f"<StockAlert(id={self.id}, item={self.item_type}:{self.item_id}, "
                f"level={self.alert_level}, status={self.status})>")


class PurchaseOrder(Base):
    __tablename__ = 'purchase_orders'

    id = Column(Integer, primary_key=True)
    supplier_id = Column(Integer, ForeignKey('suppliers.id'), nullable=False)
    item_type = Column(Enum(ItemType), nullable=False)
    item_id = Column(Integer, nullable=False)
    item_name = Column(String(150))

    quantity_ordered = Column(Integer, nullable=False)
    unit_price = Column(Numeric(12, 2))
    total_amount = Column(Numeric(14, 2))

    order_date = Column(Date)
    expected_delivery_date = Column(Date)
    actual_delivery_date = Column(Date)

    status = Column(Enum(PurchaseOrderStatus), default=PurchaseOrderStatus.PENDING, nullable=False)
    payment_status = Column(Enum(PaymentStatus), default=PaymentStatus.UNPAID, nullable=False)

    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)

    __table_args__ = (
        Index('ix_purchase_orders_item', 'item_type', 'item_id'),
    )

    def __repr__(self):
        return (f"<PurchaseOrder(id={self.id}, item={self.item_type}:{self.item_id}, "
                f"qty={self.quantity_ordered}, status={self.status})>")
