from .alert_registry import AlertRegistry, AlertOutcome
from .stock_ledger import StockLedger
from .purchase_order_service import PurchaseOrderReceiver
from .reconciliation import ReconciliationSweep
from .item_service import ItemService
from .inventory_service import InventoryService

__all__ = [
    'AlertRegistry',
    'AlertOutcome',
    'StockLedger',
    'PurchaseOrderReceiver',
    'ReconciliationSweep',
    'ItemService',
    'InventoryService'
]
