# hospital_inventory/services/reconciliation.py
from typing import Dict, Iterator
import logging

from hospital_inventory.core.stock_rules import is_low_stock, require_quantity
from hospital_inventory.db.interface import InventoryStore
from hospital_inventory.exceptions import InventoryError
from hospital_inventory.models import ItemType
from hospital_inventory.services.alert_registry import AlertOutcome, AlertRegistry

logger = logging.getLogger(__name__)


class ReconciliationSweep:
    """Brings alert state back in line with current stock levels.

    Both sweeps are idempotent and can run in either order: for a fixed
    stock snapshot they converge on one OPEN alert per low item and none
    for the others. A failing item is logged and counted; the sweep moves
    on to the next one.
    """

    def __init__(self, store: InventoryStore, alert_registry: AlertRegistry):
        """Initialize the sweep.

        Args:
            store: Inventory store
            alert_registry: Registry owning alert state
        """
        self.store = store
        self.alert_registry = alert_registry

    def ensure_low_stock_alerts_for_all(self, default_threshold: int) -> int:
        """Open or refresh alerts for every item at or below its threshold.

        Returns:
            Number of alerts created, refreshed or reopened
        """
        return self.scan_low_stock(default_threshold)['processed']

    def resolve_recovered_stock_alerts(self, default_threshold: int) -> int:
        """Resolve alerts of every item back above its threshold.

        Returns:
            Number of alerts resolved
        """
        return self.scan_recovered_stock(default_threshold)['processed']

    def scan_low_stock(self, default_threshold: int) -> Dict:
        """Low-stock pass with detailed results.

        Args:
            default_threshold: Threshold for items without their own

        Returns:
            Dictionary with checked, processed, per-outcome and failure counts
        """
        require_quantity(default_threshold, 'default_threshold', allow_zero=True)

        results = self._new_results()
        results.update({'created': 0, 'refreshed': 0, 'reopened': 0})

        for item in self._iter_items(results):
            results['checked'] += 1
            try:
                threshold = item.effective_threshold(default_threshold)
                if not is_low_stock(item.quantity_in_stock, threshold):
                    continue

                outcome = self.alert_registry.ensure_open_alert_for_item(
                    item, item.quantity_in_stock, threshold
                )
                if outcome != AlertOutcome.UNCHANGED:
                    results[outcome.value] += 1
                    results['processed'] += 1
            except InventoryError as e:
                self._record_failure(results, item, e)

        logger.info(
            f"Low-stock sweep: checked={results['checked']}, created={results['created']}, "
            f"refreshed={results['refreshed']}, reopened={results['reopened']}, failed={results['failed']}"
        )
        return results

    def scan_recovered_stock(self, default_threshold: int) -> Dict:
        """Recovery pass with detailed results.

        Args:
            default_threshold: Threshold for items without their own

        Returns:
            Dictionary with checked, processed (alerts resolved) and failure counts
        """
        require_quantity(default_threshold, 'default_threshold', allow_zero=True)

        results = self._new_results()
        results['items_recovered'] = 0

        for item in self._iter_items(results):
            results['checked'] += 1
            try:
                threshold = item.effective_threshold(default_threshold)
                if is_low_stock(item.quantity_in_stock, threshold):
                    continue

                resolved = self.alert_registry.resolve_alerts_for_item(item)
                if resolved:
                    results['items_recovered'] += 1
                    results['processed'] += resolved
            except InventoryError as e:
                self._record_failure(results, item, e)

        logger.info(
            f"Recovery sweep: checked={results['checked']}, resolved={results['processed']}, "
            f"failed={results['failed']}"
        )
        return results

    def run(self, default_threshold: int) -> Dict:
        """Run the low-stock pass followed by the recovery pass.

        Returns:
            Dictionary with both passes' results and the total failure count
        """
        low_stock = self.scan_low_stock(default_threshold)
        recovered = self.scan_recovered_stock(default_threshold)

        return {
            'low_stock': low_stock,
            'recovered': recovered,
            'failed': low_stock['failed'] + recovered['failed']
        }

    @staticmethod
    def _new_results() -> Dict:
        return {'checked': 0, 'processed': 0, 'failed': 0, 'errors': []}

    def _iter_items(self, results: Dict) -> Iterator:
        """Yield every item of every type; a type that cannot be listed is a failure."""
        for item_type in ItemType:
            try:
                items = self.store.find_all_items(item_type)
            except InventoryError as e:
                results['failed'] += 1
                results['errors'].append({'item_type': item_type.value, 'item_id': None, 'error': str(e)})
                logger.error(f"Could not list {item_type.value} items: {str(e)}")
                continue

            yield from items

    @staticmethod
    def _record_failure(results: Dict, item, error: Exception):
        results['failed'] += 1
        results['errors'].append({
            'item_type': item.item_type.value,
            'item_id': item.id,
            'error': str(error)
        })
        logger.error(f"Sweep failed for {item.item_type}:{item.id}: {str(error)}")
