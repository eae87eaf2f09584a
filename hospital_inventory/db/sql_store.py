# hospital_inventory/db/sql_store.py
from contextlib import contextmanager
from datetime import datetime
from typing import List, Optional, Sequence
import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from hospital_inventory.db.connection import Database
from hospital_inventory.db.interface import InventoryStore
from hospital_inventory.exceptions import PersistenceError
from hospital_inventory.models import (
    ACTIVE_ALERT_STATUSES, ITEM_MODELS, ItemType, StockAlert, AlertStatus,
    PurchaseOrder, PurchaseOrderStatus, Supplier, SupplierStatus
)

logger = logging.getLogger(__name__)

# Columns update_item never copies; quantity only changes through update_quantity
_PROTECTED_ITEM_COLUMNS = {'id', 'quantity_in_stock', 'created_at'}

# Columns conditional updates never rewrite
_IMMUTABLE_COLUMNS = {'id', 'created_at'}

def _column_values(record, model):
    """Mapping of column attribute to the record's value, for a bulk UPDATE."""
    return {
        getattr(model, column.key): getattr(record, column.key)
        for column in model.__table__.columns
        if column.key not in _IMMUTABLE_COLUMNS
    }

class SQLAlchemyInventoryStore(InventoryStore):
    """InventoryStore backed by a relational database through SQLAlchemy.

    Each call runs in its own short-lived session, so one store instance can
    be shared by request threads and the stock monitor thread.
    """

    def __init__(self, database: Database):
        """Initialize the store.

        Args:
            database: Database connection manager
        """
        self.database = database

    @contextmanager
    def _session_scope(self, operation: str) -> Session:
        """Transactional scope translating driver errors into PersistenceError."""
        try:
            with self.database.session_scope() as session:
                yield session
        except SQLAlchemyError as e:
            logger.error(f"Store operation '{operation}' failed: {str(e)}")
            raise PersistenceError(
                f"Store operation '{operation}' failed: {str(e)}",
                details={'operation': operation}
            )

    @staticmethod
    def _model_for(item_type: ItemType):
        return ITEM_MODELS[ItemType.from_string(item_type)]

    # Items

    def find_item(self, item_id: int, item_type: ItemType):
        model = self._model_for(item_type)
        with self._session_scope('find_item') as session:
            return session.get(model, item_id)

    def find_all_items(self, item_type: ItemType) -> List:
        model = self._model_for(item_type)
        with self._session_scope('find_all_items') as session:
            return session.query(model).order_by(model.id).all()

    def find_items_by_name(self, item_type: ItemType, name: str) -> List:
        model = self._model_for(item_type)
        with self._session_scope('find_items_by_name') as session:
            return session.query(model).filter(
                model.name.ilike(f"%{name}%")
            ).order_by(model.name).all()

    def insert_item(self, item) -> int:
        with self._session_scope('insert_item') as session:
            session.add(item)
            session.flush()
            return item.id

    def update_item(self, item) -> bool:
        model = type(item)
        with self._session_scope('update_item') as session:
            existing = session.get(model, item.id)
            if existing is None:
                return False

            for column in model.__table__.columns:
                if column.key in _PROTECTED_ITEM_COLUMNS:
                    continue
                setattr(existing, column.key, getattr(item, column.key))
            existing.updated_at = datetime.now()
            return True

    def delete_item(self, item_id: int, item_type: ItemType) -> bool:
        model = self._model_for(item_type)
        with self._session_scope('delete_item') as session:
            deleted = session.query(model).filter(model.id == item_id).delete(
                synchronize_session=False
            )
            return deleted > 0

    def update_quantity(self, item_id: int, item_type: ItemType, new_quantity: int,
                        expected_quantity: Optional[int] = None) -> bool:
        model = self._model_for(item_type)
        with self._session_scope('update_quantity') as session:
            query = session.query(model).filter(model.id == item_id)
            if expected_quantity is not None:
                query = query.filter(model.quantity_in_stock == expected_quantity)

            updated = query.update(
                {model.quantity_in_stock: new_quantity, model.updated_at: datetime.now()},
                synchronize_session=False
            )
            return updated > 0

    # Alerts

    def find_alert(self, alert_id: int) -> Optional[StockAlert]:
        with self._session_scope('find_alert') as session:
            return session.get(StockAlert, alert_id)

    def find_alerts(self, status: Optional[AlertStatus] = None) -> List[StockAlert]:
        with self._session_scope('find_alerts') as session:
            query = session.query(StockAlert)
            if status is not None:
                query = query.filter(StockAlert.status == status)
            return query.order_by(StockAlert.created_at.desc(), StockAlert.id.desc()).all()

    def find_alerts_for_item(self, item_id: int, item_type: ItemType) -> List[StockAlert]:
        with self._session_scope('find_alerts_for_item') as session:
            return session.query(StockAlert).filter(
                StockAlert.item_type == ItemType.from_string(item_type),
                StockAlert.item_id == item_id
            ).order_by(StockAlert.created_at, StockAlert.id).all()

    def insert_alert(self, alert: StockAlert) -> int:
        with self._session_scope('insert_alert') as session:
            session.add(alert)
            session.flush()
            return alert.id

    def update_alert(self, alert: StockAlert, expected_status: Optional[AlertStatus] = None) -> bool:
        with self._session_scope('update_alert') as session:
            query = session.query(StockAlert).filter(StockAlert.id == alert.id)
            if expected_status is not None:
                query = query.filter(StockAlert.status == expected_status)

            updated = query.update(_column_values(alert, StockAlert), synchronize_session=False)
            return updated > 0

    def close_alert(self, alert_id: int) -> bool:
        with self._session_scope('close_alert') as session:
            updated = session.query(StockAlert).filter(
                StockAlert.id == alert_id,
                StockAlert.status.in_(ACTIVE_ALERT_STATUSES)
            ).update(
                {StockAlert.status: AlertStatus.RESOLVED, StockAlert.resolved_at: datetime.now()},
                synchronize_session=False
            )
            return updated > 0

    def delete_alert(self, alert_id: int) -> bool:
        with self._session_scope('delete_alert') as session:
            deleted = session.query(StockAlert).filter(StockAlert.id == alert_id).delete(
                synchronize_session=False
            )
            return deleted > 0

    # Purchase orders

    def find_purchase_order(self, po_id: int) -> Optional[PurchaseOrder]:
        with self._session_scope('find_purchase_order') as session:
            return session.get(PurchaseOrder, po_id)

    def find_purchase_orders(self, status: Optional[PurchaseOrderStatus] = None,
                             supplier_id: Optional[int] = None) -> List[PurchaseOrder]:
        with self._session_scope('find_purchase_orders') as session:
            query = session.query(PurchaseOrder)
            if status is not None:
                query = query.filter(PurchaseOrder.status == status)
            if supplier_id is not None:
                query = query.filter(PurchaseOrder.supplier_id == supplier_id)
            return query.order_by(PurchaseOrder.order_date.desc(), PurchaseOrder.id.desc()).all()

    def insert_purchase_order(self, po: PurchaseOrder) -> int:
        with self._session_scope('insert_purchase_order') as session:
            session.add(po)
            session.flush()
            return po.id

    def update_purchase_order(self, po: PurchaseOrder,
                              expected_statuses: Optional[Sequence[PurchaseOrderStatus]] = None) -> bool:
        with self._session_scope('update_purchase_order') as session:
            query = session.query(PurchaseOrder).filter(PurchaseOrder.id == po.id)
            if expected_statuses is not None:
                query = query.filter(PurchaseOrder.status.in_(list(expected_statuses)))

            po.updated_at = datetime.now()
            updated = query.update(_column_values(po, PurchaseOrder), synchronize_session=False)
            return updated > 0

    def delete_purchase_order(self, po_id: int) -> bool:
        with self._session_scope('delete_purchase_order') as session:
            deleted = session.query(PurchaseOrder).filter(PurchaseOrder.id == po_id).delete(
                synchronize_session=False
            )
            return deleted > 0

    # Suppliers

    def find_supplier(self, supplier_id: int) -> Optional[Supplier]:
        with self._session_scope('find_supplier') as session:
            return session.get(Supplier, supplier_id)

    def find_suppliers(self, status: Optional[SupplierStatus] = None) -> List[Supplier]:
        with self._session_scope('find_suppliers') as session:
            query = session.query(Supplier)
            if status is not None:
                query = query.filter(Supplier.status == status)
            return query.order_by(Supplier.name).all()

    def insert_supplier(self, supplier: Supplier) -> int:
        with self._session_scope('insert_supplier') as session:
            session.add(supplier)
            session.flush()
            return supplier.id

    def find_suppliers_by_name(self, name: str) -> List[Supplier]:
        with self._session_scope('find_suppliers_by_name') as session:
            return session.query(Supplier).filter(
                Supplier.name.ilike(f"%{name}%")
            ).order_by(Supplier.name).all()

    def update_supplier(self, supplier: Supplier) -> bool:
        with self._session_scope('update_supplier') as session:
            supplier.updated_at = datetime.now()
            updated = session.query(Supplier).filter(Supplier.id == supplier.id).update(
                _column_values(supplier, Supplier), synchronize_session=False
            )
            return updated > 0

    def delete_supplier(self, supplier_id: int) -> bool:
        with self._session_scope('delete_supplier') as session:
            deleted = session.query(Supplier).filter(Supplier.id == supplier_id).delete(
                synchronize_session=False
            )
            return deleted > 0

    def supplier_in_use(self, supplier_id: int) -> bool:
        with self._session_scope('supplier_in_use') as session:
            for model in (*ITEM_MODELS.values(), PurchaseOrder):
                if session.query(model.id).filter(model.supplier_id == supplier_id).first() is not None:
                    return True
            return False
