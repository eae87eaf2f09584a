"""
Tests for purchase order creation and receipt.
"""
import unittest
from datetime import date
from decimal import Decimal
from unittest.mock import MagicMock
import pytest

from hospital_inventory.db.interface import InventoryStore
from hospital_inventory.db.sql_store import SQLAlchemyInventoryStore
from hospital_inventory.exceptions import (
    NotFoundError, PersistenceError, ValidationError
)
from hospital_inventory.models import (
    AlertStatus, ItemType, PaymentStatus, PurchaseOrder, PurchaseOrderStatus
)
from hospital_inventory.services.inventory_service import InventoryService
from hospital_inventory.services.purchase_order_service import PurchaseOrderReceiver
from hospital_inventory.services.stock_ledger import StockLedger
from hospital_inventory.tests.helpers import make_database, make_service


class TestPurchaseOrderReceiver(unittest.TestCase):
    def setUp(self):
        """Set up test fixtures."""
        self.service, self.database = make_service(default_threshold=10)
        self.supplier = self.service.items.add_supplier("MediSupply Ltd", gst_number="27AAACM1234F1Z5")
        self.medicine = self.service.add_medicine(
            "Ceftriaxone 1g", quantity_in_stock=12, supplier_id=self.supplier.id
        )
        self.orders = self.service.purchase_orders

    def tearDown(self):
        """Tear down test fixtures."""
        self.database.drop_all_tables()
        self.database.dispose()

    def _create_order(self, quantity=50, **kwargs):
        return self.orders.create_purchase_order(
            self.supplier.id, self.medicine.id, ItemType.MEDICINE, quantity, **kwargs
        )

    def test_create_purchase_order(self):
        """Test that a new order is PENDING and UNPAID with a computed total."""
        po = self._create_order(
            quantity=40,
            unit_price='12.50',
            order_date=date(2024, 3, 1),
            expected_delivery_date=date(2024, 3, 8)
        )

        stored = self.orders.get_purchase_order(po.id)
        self.assertEqual(stored.status, PurchaseOrderStatus.PENDING)
        self.assertEqual(stored.payment_status, PaymentStatus.UNPAID)
        self.assertEqual(stored.item_name, "Ceftriaxone 1g")
        self.assertEqual(stored.item_type, ItemType.MEDICINE)
        self.assertEqual(Decimal(stored.total_amount), Decimal('500.00'))
        self.assertIsNone(stored.actual_delivery_date)

    def test_create_purchase_order_validation(self):
        """Test the checks made before an order is created."""
        with pytest.raises(NotFoundError):
            self.orders.create_purchase_order(99, self.medicine.id, ItemType.MEDICINE, 10)
        with pytest.raises(NotFoundError):
            self.orders.create_purchase_order(self.supplier.id, 99, ItemType.MEDICINE, 10)
        with pytest.raises(ValidationError):
            self._create_order(quantity=0)
        with pytest.raises(ValidationError):
            self._create_order(unit_price=-1)
        with pytest.raises(ValidationError):
            self._create_order(order_date=date(2024, 3, 8), expected_delivery_date=date(2024, 3, 1))

        self.assertEqual(self.orders.list_purchase_orders(), [])

    def test_receive_restocks_and_resolves_alert(self):
        """Test that receiving an order restocks the item and clears its alert."""
        self.service.consume(self.medicine.id, ItemType.MEDICINE, 10)
        self.assertEqual(
            len(self.service.alerts.active_alerts_for_item(self.medicine.id, ItemType.MEDICINE)), 1
        )

        po = self._create_order(quantity=50)
        delivered = date(2024, 5, 17)
        received = self.service.receive_purchase_order(po.id, delivered)

        self.assertEqual(received.status, PurchaseOrderStatus.RECEIVED)
        self.assertEqual(received.actual_delivery_date, delivered)

        stored = self.orders.get_purchase_order(po.id)
        self.assertEqual(stored.status, PurchaseOrderStatus.RECEIVED)
        self.assertEqual(stored.actual_delivery_date, delivered)

        item = self.service.items.get_item(self.medicine.id, ItemType.MEDICINE)
        self.assertEqual(item.quantity_in_stock, 52)

        alerts = self.service.alerts.list_alerts_for_item(self.medicine.id, ItemType.MEDICINE)
        self.assertEqual([alert.status for alert in alerts], [AlertStatus.RESOLVED])

    def test_receive_defaults_delivery_date_to_today(self):
        """Test that the delivery date defaults to today."""
        po = self._create_order()
        received = self.orders.receive(po.id)

        self.assertEqual(received.actual_delivery_date, date.today())

    def test_receive_twice_is_rejected(self):
        """Test that a received order cannot restock again."""
        po = self._create_order(quantity=5)
        self.orders.receive(po.id)

        with pytest.raises(ValidationError):
            self.orders.receive(po.id)

        item = self.service.items.get_item(self.medicine.id, ItemType.MEDICINE)
        self.assertEqual(item.quantity_in_stock, 17)

    def test_cancelled_order_cannot_be_received(self):
        """Test that cancelled orders are closed to receipt."""
        po = self._create_order()
        self.orders.set_purchase_order_status(po.id, 'cancelled')

        with pytest.raises(ValidationError):
            self.orders.receive(po.id)

    def test_receive_unknown_order(self):
        """Test that unknown orders raise NotFoundError."""
        with pytest.raises(NotFoundError):
            self.orders.receive(1234)

    def test_status_changes(self):
        """Test the workflow status rules."""
        po = self._create_order()

        self.assertEqual(
            self.orders.set_purchase_order_status(po.id, PurchaseOrderStatus.APPROVED).status,
            PurchaseOrderStatus.APPROVED
        )
        self.assertEqual(
            self.orders.set_purchase_order_status(po.id, 'dispatched').status,
            PurchaseOrderStatus.DISPATCHED
        )
        with pytest.raises(ValidationError):
            self.orders.set_purchase_order_status(po.id, PurchaseOrderStatus.RECEIVED)

        self.orders.receive(po.id)
        with pytest.raises(ValidationError):
            self.orders.set_purchase_order_status(po.id, PurchaseOrderStatus.CANCELLED)

    def test_delete_purchase_order(self):
        """Test that open orders can be deleted and received ones cannot."""
        pending = self._create_order()
        received = self._create_order(quantity=5)
        self.orders.receive(received.id)

        self.service.delete_purchase_order(pending.id)

        with pytest.raises(NotFoundError):
            self.orders.get_purchase_order(pending.id)
        with pytest.raises(NotFoundError):
            self.orders.delete_purchase_order(pending.id)
        with pytest.raises(ValidationError):
            self.orders.delete_purchase_order(received.id)
        self.assertEqual([po.id for po in self.orders.list_purchase_orders()], [received.id])

    def test_list_purchase_orders_filters(self):
        """Test listing by status and supplier."""
        other_supplier = self.service.items.add_supplier("Surgicals India")
        first = self._create_order()
        self._create_order()
        self.orders.create_purchase_order(other_supplier.id, self.medicine.id, ItemType.MEDICINE, 5)
        self.orders.receive(first.id)

        self.assertEqual(len(self.orders.list_purchase_orders()), 3)
        self.assertEqual(len(self.orders.list_purchase_orders(status='pending')), 2)
        self.assertEqual(len(self.orders.list_purchase_orders(supplier_id=self.supplier.id)), 2)
        self.assertEqual(
            len(self.orders.list_purchase_orders(PurchaseOrderStatus.RECEIVED, self.supplier.id)), 1
        )


class TestPurchaseOrderRestockFailure(unittest.TestCase):
    def test_restock_failure_is_raised_after_marking_received(self):
        """Test that a failed restock leaves the order RECEIVED and re-raises."""
        store = MagicMock(spec=InventoryStore)
        ledger = MagicMock(spec=StockLedger)
        store.find_purchase_order.return_value = PurchaseOrder(
            id=3,
            supplier_id=1,
            item_type=ItemType.EQUIPMENT,
            item_id=8,
            quantity_ordered=20,
            status=PurchaseOrderStatus.DISPATCHED
        )
        store.update_purchase_order.return_value = True
        ledger.restock.side_effect = PersistenceError("database unavailable")

        receiver = PurchaseOrderReceiver(store, ledger)

        with pytest.raises(PersistenceError):
            receiver.receive(3, date(2024, 1, 2))

        updated = store.update_purchase_order.call_args[0][0]
        self.assertEqual(updated.status, PurchaseOrderStatus.RECEIVED)
        self.assertNotIn(
            PurchaseOrderStatus.RECEIVED,
            store.update_purchase_order.call_args[1]['expected_statuses']
        )
        ledger.restock.assert_called_once_with(8, ItemType.EQUIPMENT, 20)


class ReceiveDuringReadStore(SQLAlchemyInventoryStore):
    """Completes a second receipt of the order right after the first one reads it."""

    def __init__(self, database):
        super().__init__(database)
        self.receiver = None

    def find_purchase_order(self, po_id):
        po = super().find_purchase_order(po_id)
        receiver, self.receiver = self.receiver, None
        if receiver is not None:
            receiver.receive(po_id)
        return po


class TestConcurrentReceipt(unittest.TestCase):
    def setUp(self):
        """Set up test fixtures."""
        self.database = make_database()
        self.store = ReceiveDuringReadStore(self.database)
        self.service = InventoryService(self.store, default_threshold=10)
        supplier = self.service.items.add_supplier("Apollo Pharma Supplies")
        self.medicine = self.service.add_medicine("Insulin glargine", quantity_in_stock=2)
        self.po = self.service.purchase_orders.create_purchase_order(
            supplier.id, self.medicine.id, ItemType.MEDICINE, 50
        )

    def tearDown(self):
        """Tear down test fixtures."""
        self.database.drop_all_tables()
        self.database.dispose()

    def test_interleaved_receipts_restock_once(self):
        """Test that of two overlapping receipts only one restocks."""
        self.store.receiver = self.service.purchase_orders

        with pytest.raises(ValidationError):
            self.service.receive_purchase_order(self.po.id)

        item = self.service.items.get_item(self.medicine.id, ItemType.MEDICINE)
        self.assertEqual(item.quantity_in_stock, 52)
        self.assertEqual(
            self.service.purchase_orders.get_purchase_order(self.po.id).status,
            PurchaseOrderStatus.RECEIVED
        )


if __name__ == '__main__':
    unittest.main()
