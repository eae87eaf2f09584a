# hospital_inventory/services/purchase_order_service.py
from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional
import logging

from hospital_inventory.core.stock_rules import coerce_enum, require_id, require_quantity
from hospital_inventory.db.interface import InventoryStore
from hospital_inventory.exceptions import (
    InventoryError, NotFoundError, ValidationError
)
from hospital_inventory.models import (
    ItemType, PurchaseOrder, PurchaseOrderStatus, PaymentStatus
)
from hospital_inventory.services.stock_ledger import StockLedger

logger = logging.getLogger(__name__)

# Orders in these states can no longer be received
CLOSED_ORDER_STATUSES = (
    PurchaseOrderStatus.RECEIVED,
    PurchaseOrderStatus.CANCELLED,
    PurchaseOrderStatus.REJECTED,
)

# Orders still waiting for delivery
OPEN_ORDER_STATUSES = tuple(
    status for status in PurchaseOrderStatus if status not in CLOSED_ORDER_STATUSES
)

# Orders whose workflow status may still change
MUTABLE_ORDER_STATUSES = tuple(
    status for status in PurchaseOrderStatus if status != PurchaseOrderStatus.RECEIVED
)


class PurchaseOrderReceiver:
    """Service for purchase orders and their receipt into stock.

    Receiving an order is the only path from procurement into stock. The
    order update and the restock are two separate store calls; when the
    restock fails the order stays RECEIVED and the error is re-raised.
    """

    def __init__(self, store: InventoryStore, stock_ledger: StockLedger):
        """Initialize the purchase order service.

        Args:
            store: Inventory store
            stock_ledger: Ledger used to restock received items
        """
        self.store = store
        self.stock_ledger = stock_ledger

    def get_purchase_order(self, po_id: int) -> PurchaseOrder:
        """Get a purchase order by ID.

        Raises:
            NotFoundError if the purchase order does not exist
        """
        require_id(po_id, 'po_id')
        po = self.store.find_purchase_order(po_id)
        if po is None:
            raise NotFoundError(f"Purchase order with ID {po_id} not found")
        return po

    def list_purchase_orders(self, status=None, supplier_id: Optional[int] = None) -> List[PurchaseOrder]:
        """List purchase orders, optionally filtered by status and supplier."""
        if status is not None:
            status = coerce_enum(PurchaseOrderStatus, status, 'purchase order status')
        if supplier_id is not None:
            require_id(supplier_id, 'supplier_id')
        return self.store.find_purchase_orders(status=status, supplier_id=supplier_id)

    def create_purchase_order(
        self,
        supplier_id: int,
        item_id: int,
        item_type,
        quantity_ordered: int,
        unit_price=None,
        order_date: Optional[date] = None,
        expected_delivery_date: Optional[date] = None
    ) -> PurchaseOrder:
        """Create a PENDING, UNPAID purchase order for a stocked item.

        Args:
            supplier_id: Supplier ID
            item_id: Ordered item ID
            item_type: ItemType or its name
            quantity_ordered: Quantity ordered (> 0)
            unit_price: Optional unit price
            order_date: Order date, today if omitted
            expected_delivery_date: Optional expected delivery date

        Returns:
            The created purchase order
        """
        require_id(supplier_id, 'supplier_id')
        require_quantity(quantity_ordered, 'quantity_ordered')

        if self.store.find_supplier(supplier_id) is None:
            raise NotFoundError(f"Supplier with ID {supplier_id} not found")

        item = self.stock_ledger.get_item(item_id, item_type)

        total_amount = None
        if unit_price is not None:
            unit_price = Decimal(str(unit_price))
            if unit_price < 0:
                raise ValidationError(f"unit_price must be >= 0, got {unit_price}")
            total_amount = unit_price * quantity_ordered

        order_date = order_date or date.today()
        if expected_delivery_date is not None and expected_delivery_date < order_date:
            raise ValidationError("expected_delivery_date must not be before order_date")

        now = datetime.now()
        po = PurchaseOrder(
            supplier_id=supplier_id,
            item_type=item.item_type,
            item_id=item.id,
            item_name=item.name,
            quantity_ordered=quantity_ordered,
            unit_price=unit_price,
            total_amount=total_amount,
            order_date=order_date,
            expected_delivery_date=expected_delivery_date,
            status=PurchaseOrderStatus.PENDING,
            payment_status=PaymentStatus.UNPAID,
            created_at=now,
            updated_at=now
        )
        po_id = self.store.insert_purchase_order(po)

        logger.info(f"Created purchase order {po_id} for {quantity_ordered} x {item.item_type}:{item.id}")
        return po

    def set_purchase_order_status(self, po_id: int, status) -> PurchaseOrder:
        """Move a purchase order to another workflow status.

        RECEIVED is reached only through ``receive`` so stock follows the order.
        """
        status = coerce_enum(PurchaseOrderStatus, status, 'purchase order status')
        if status == PurchaseOrderStatus.RECEIVED:
            raise ValidationError("Use receive() to mark a purchase order RECEIVED")

        po = self.get_purchase_order(po_id)
        if po.status == PurchaseOrderStatus.RECEIVED:
            raise ValidationError(f"Purchase order {po_id} has already been received")

        po.status = status
        if not self.store.update_purchase_order(po, expected_statuses=MUTABLE_ORDER_STATUSES):
            self.get_purchase_order(po_id)
            raise ValidationError(f"Purchase order {po_id} has already been received")

        logger.info(f"Purchase order {po_id} set to {status.value}")
        return po

    def receive(self, po_id: int, actual_delivery_date: Optional[date] = None) -> PurchaseOrder:
        """Receive a purchase order and restock the ordered item.

        The order only moves to RECEIVED if it is still open when written,
        so of two concurrent receipts exactly one restocks.

        Args:
            po_id: Purchase order ID
            actual_delivery_date: Delivery date, today if omitted

        Returns:
            The received purchase order

        Raises:
            NotFoundError if the purchase order does not exist
            ValidationError if the order was already received, cancelled or rejected
        """
        po = self.get_purchase_order(po_id)

        if po.status in CLOSED_ORDER_STATUSES:
            raise self._not_receivable(po)

        po.status = PurchaseOrderStatus.RECEIVED
        po.actual_delivery_date = actual_delivery_date or date.today()
        if not self.store.update_purchase_order(po, expected_statuses=OPEN_ORDER_STATUSES):
            raise self._not_receivable(self.get_purchase_order(po_id))

        try:
            new_quantity = self.stock_ledger.restock(po.item_id, po.item_type, po.quantity_ordered)
        except InventoryError as e:
            logger.error(
                f"Purchase order {po_id} marked RECEIVED but restocking "
                f"{po.item_type}:{po.item_id} failed: {str(e)}"
            )
            raise

        logger.info(
            f"Received purchase order {po_id}: {po.quantity_ordered} x "
            f"{po.item_type}:{po.item_id}, stock now {new_quantity}"
        )
        return po

    def delete_purchase_order(self, po_id: int):
        """Delete a purchase order that has not been received.

        Raises:
            NotFoundError if the purchase order does not exist
            ValidationError if the order was already received
        """
        po = self.get_purchase_order(po_id)
        if po.status == PurchaseOrderStatus.RECEIVED:
            raise ValidationError(
                f"Purchase order {po_id} has been received and cannot be deleted",
                details={'po_id': po_id}
            )

        if not self.store.delete_purchase_order(po_id):
            raise NotFoundError(f"Purchase order with ID {po_id} not found")
        logger.info(f"Deleted purchase order {po_id}")

    @staticmethod
    def _not_receivable(po: PurchaseOrder) -> ValidationError:
        return ValidationError(
            f"Purchase order {po.id} is {po.status.value} and cannot be received",
            details={'po_id': po.id, 'status': po.status.value}
        )
