# hospital_inventory/services/stock_ledger.py
from typing import Callable, Optional, Tuple
import logging

from hospital_inventory.config import config
from hospital_inventory.core.stock_rules import (
    add_stock, is_low_stock, require_id, require_quantity
)
from hospital_inventory.db.interface import InventoryStore
from hospital_inventory.exceptions import (
    ConcurrentUpdateError, InsufficientStockError, NotFoundError, ValidationError
)
from hospital_inventory.models import ItemType
from hospital_inventory.services.alert_registry import AlertRegistry

logger = logging.getLogger(__name__)


class StockLedger:
    """Service for changing the quantity of stocked items.

    Quantities never go negative. Every write is a compare-and-swap against
    the quantity that was read, so concurrent restock/consume calls on the
    same item cannot lose an update.
    """

    def __init__(
        self,
        store: InventoryStore,
        alert_registry: AlertRegistry,
        default_threshold: Optional[int] = None,
        max_update_attempts: Optional[int] = None
    ):
        """Initialize the stock ledger.

        Args:
            store: Inventory store
            alert_registry: Registry notified when stock crosses a threshold
            default_threshold: Threshold for items without their own; defaults to configuration
            max_update_attempts: Compare-and-swap attempts before giving up; defaults to configuration
        """
        monitor_config = config.monitor_config

        if default_threshold is None:
            default_threshold = monitor_config['low_stock_threshold']
        if max_update_attempts is None:
            max_update_attempts = monitor_config['max_update_attempts']

        if max_update_attempts < 1:
            raise ValidationError(f"max_update_attempts must be >= 1, got {max_update_attempts}")

        self.store = store
        self.alert_registry = alert_registry
        self.max_update_attempts = max_update_attempts
        self.set_default_threshold(default_threshold)

    def set_default_threshold(self, threshold: int):
        """Change the threshold used for items without their own.

        Raises:
            ValidationError if the threshold is negative
        """
        if isinstance(threshold, bool) or not isinstance(threshold, int):
            raise ValidationError(f"default_threshold must be an integer, got {threshold!r}")
        if threshold < 0:
            raise ValidationError(f"default_threshold must be >= 0, got {threshold}")
        self.default_threshold = threshold

    def threshold_for(self, item) -> int:
        """Effective low-stock threshold of an item."""
        return item.effective_threshold(self.default_threshold)

    def get_item(self, item_id: int, item_type):
        """Get an item by ID and type.

        Raises:
            NotFoundError if the item does not exist
        """
        require_id(item_id, 'item_id')
        item_type = ItemType.from_string(item_type)

        item = self.store.find_item(item_id, item_type)
        if item is None:
            raise NotFoundError(f"{item_type.value.title()} with ID {item_id} not found")
        return item

    def restock(self, item_id: int, item_type, quantity: int) -> int:
        """Add stock to an item.

        Resolves the item's alerts when the new quantity is above its threshold.

        Args:
            item_id: Item ID
            item_type: ItemType or its name
            quantity: Quantity to add (>= 0)

        Returns:
            New quantity in stock
        """
        require_quantity(quantity, 'quantity', allow_zero=True)

        item, new_quantity = self._apply(item_id, item_type, lambda current: add_stock(current, quantity))
        threshold = self.threshold_for(item)

        logger.info(f"Restocked {item.item_type}:{item.id} by {quantity}, now {new_quantity}")

        if not is_low_stock(new_quantity, threshold):
            self.alert_registry.resolve_alerts_for_item(item)

        return new_quantity

    def consume(self, item_id: int, item_type, quantity: int) -> int:
        """Take stock out of an item.

        Opens (or refreshes) the item's low-stock alert when the new quantity
        is at or below its threshold.

        Args:
            item_id: Item ID
            item_type: ItemType or its name
            quantity: Quantity to remove (> 0)

        Returns:
            New quantity in stock

        Raises:
            InsufficientStockError if quantity exceeds the stock; nothing changes
        """
        require_quantity(quantity, 'quantity')

        def subtract(current: int) -> int:
            if quantity > current:
                raise InsufficientStockError(
                    f"Insufficient stock for {ItemType.from_string(item_type)}:{item_id}: "
                    f"have {current}, need {quantity}",
                    details={'available': current, 'requested': quantity}
                )
            return current - quantity

        item, new_quantity = self._apply(item_id, item_type, subtract)
        threshold = self.threshold_for(item)

        logger.info(f"Consumed {quantity} of {item.item_type}:{item.id}, now {new_quantity}")

        if is_low_stock(new_quantity, threshold):
            self.alert_registry.ensure_open_alert_for_item(item, new_quantity, threshold)

        return new_quantity

    def _apply(self, item_id: int, item_type, compute: Callable[[int], int]) -> Tuple[object, int]:
        """Read, compute and conditionally write an item's quantity.

        A failed compare-and-swap means another writer changed the quantity
        in between; the item is read again and the change recomputed.
        """
        for attempt in range(1, self.max_update_attempts + 1):
            item = self.get_item(item_id, item_type)
            current = item.quantity_in_stock
            new_quantity = compute(current)

            if self.store.update_quantity(item.id, item.item_type, new_quantity, expected_quantity=current):
                item.quantity_in_stock = new_quantity
                return item, new_quantity

            logger.debug(
                f"Quantity of {item.item_type}:{item.id} changed concurrently "
                f"(attempt {attempt}/{self.max_update_attempts})"
            )

        raise ConcurrentUpdateError(
            f"Could not update quantity of {ItemType.from_string(item_type)}:{item_id} "
            f"after {self.max_update_attempts} attempts"
        )
