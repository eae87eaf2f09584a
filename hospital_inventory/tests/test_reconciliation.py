"""
Tests for the reconciliation sweeps.
"""
import unittest
from unittest.mock import MagicMock
import pytest

from hospital_inventory.db.interface import InventoryStore
from hospital_inventory.exceptions import PersistenceError, ValidationError
from hospital_inventory.models import AlertStatus, Equipment, ItemType, Medicine
from hospital_inventory.services.alert_registry import AlertOutcome, AlertRegistry
from hospital_inventory.services.reconciliation import ReconciliationSweep
from hospital_inventory.tests.helpers import make_service


class TestReconciliationSweep(unittest.TestCase):
    def setUp(self):
        """Set up test fixtures."""
        self.service, self.database = make_service(default_threshold=10)
        self.sweep = self.service.sweep

        self.low = self.service.add_medicine("Heparin 5000IU", quantity_in_stock=3)
        self.healthy = self.service.add_medicine("Saline 0.9%", quantity_in_stock=200)
        self.masks = self.service.add_equipment(
            "N95 masks", category="ICU", quantity_in_stock=40, low_stock_threshold=50
        )

    def tearDown(self):
        """Tear down test fixtures."""
        self.database.drop_all_tables()
        self.database.dispose()

    def _active(self, item):
        return self.service.alerts.active_alerts_for_item(item.id, item.item_type)

    def test_low_stock_sweep_opens_alerts(self):
        """Test that every low item gets exactly one alert."""
        processed = self.service.ensure_low_stock_alerts_for_all()

        self.assertEqual(processed, 2)
        self.assertEqual(len(self._active(self.low)), 1)
        self.assertEqual(len(self._active(self.masks)), 1)
        self.assertEqual(self._active(self.healthy), [])

    def test_low_stock_sweep_is_idempotent(self):
        """Test that a second sweep over the same stock changes nothing."""
        self.service.ensure_low_stock_alerts_for_all()
        alerts_before = self.service.alerts.list_alerts()

        self.assertEqual(self.service.ensure_low_stock_alerts_for_all(), 0)
        self.assertEqual(len(self.service.alerts.list_alerts()), len(alerts_before))

    def test_recovery_sweep(self):
        """Test that items back above threshold have their alerts resolved."""
        self.service.ensure_low_stock_alerts_for_all()

        self.service.store.update_quantity(self.low.id, ItemType.MEDICINE, 30)
        resolved = self.service.resolve_recovered_stock_alerts()

        self.assertEqual(resolved, 1)
        self.assertEqual(self._active(self.low), [])
        self.assertEqual(len(self._active(self.masks)), 1)
        self.assertEqual(self.service.resolve_recovered_stock_alerts(), 0)

    def test_sweeps_commute(self):
        """Test that running the sweeps in either order reaches the same state."""
        self.service.ensure_low_stock_alerts_for_all()
        self.service.store.update_quantity(self.low.id, ItemType.MEDICINE, 30)
        self.service.store.update_quantity(self.healthy.id, ItemType.MEDICINE, 1)

        self.service.resolve_recovered_stock_alerts()
        self.service.ensure_low_stock_alerts_for_all()
        state_a = {
            (alert.item_type, alert.item_id): alert.status
            for alert in self.service.alerts.list_alerts(AlertStatus.OPEN)
        }

        self.service.ensure_low_stock_alerts_for_all()
        self.service.resolve_recovered_stock_alerts()
        state_b = {
            (alert.item_type, alert.item_id): alert.status
            for alert in self.service.alerts.list_alerts(AlertStatus.OPEN)
        }

        self.assertEqual(state_a, state_b)
        self.assertEqual(
            set(state_a),
            {(ItemType.MEDICINE, self.healthy.id), (ItemType.EQUIPMENT, self.masks.id)}
        )

    def test_sweep_threshold_argument(self):
        """Test that the default threshold applies only to items without their own."""
        self.assertEqual(self.service.ensure_low_stock_alerts_for_all(0), 1)
        self.assertEqual(len(self._active(self.masks)), 1)
        self.assertEqual(self._active(self.low), [])

    def test_scan_results(self):
        """Test the detailed counts of a full run."""
        results = self.sweep.run(10)

        self.assertEqual(results['failed'], 0)
        self.assertEqual(results['low_stock']['checked'], 3)
        self.assertEqual(results['low_stock']['created'], 2)
        self.assertEqual(results['recovered']['processed'], 0)

    def test_negative_threshold_rejected(self):
        """Test that a negative default threshold is rejected."""
        with pytest.raises(ValidationError):
            self.sweep.ensure_low_stock_alerts_for_all(-1)
        with pytest.raises(ValidationError):
            self.sweep.resolve_recovered_stock_alerts(-1)


class TestReconciliationFailures(unittest.TestCase):
    def setUp(self):
        """Set up test fixtures."""
        self.store = MagicMock(spec=InventoryStore)
        self.registry = MagicMock(spec=AlertRegistry)
        self.sweep = ReconciliationSweep(self.store, self.registry)

        self.first = Medicine(id=1, name="Atropine", quantity_in_stock=1)
        self.second = Medicine(id=2, name="Adrenaline", quantity_in_stock=2)

    def test_failing_item_does_not_stop_sweep(self):
        """Test that one failing item is counted and the rest still processed."""
        self.store.find_all_items.side_effect = lambda item_type: (
            [self.first, self.second] if item_type == ItemType.MEDICINE else []
        )
        self.registry.ensure_open_alert_for_item.side_effect = [
            PersistenceError("lock timeout"),
            AlertOutcome.CREATED
        ]

        results = self.sweep.scan_low_stock(10)

        self.assertEqual(results['checked'], 2)
        self.assertEqual(results['processed'], 1)
        self.assertEqual(results['failed'], 1)
        self.assertEqual(results['errors'][0]['item_id'], 1)
        self.assertEqual(self.registry.ensure_open_alert_for_item.call_count, 2)

    def test_unlistable_item_type_is_a_failure(self):
        """Test that a failing listing is recorded and other types still swept."""
        gauze = Equipment(id=5, name="Gauze", quantity_in_stock=500)

        def find_all_items(item_type):
            if item_type == ItemType.MEDICINE:
                raise PersistenceError("connection reset")
            return [gauze]

        self.store.find_all_items.side_effect = find_all_items
        self.registry.resolve_alerts_for_item.return_value = 2

        results = self.sweep.scan_recovered_stock(10)

        self.assertEqual(results['failed'], 1)
        self.assertEqual(results['errors'][0]['item_type'], 'MEDICINE')
        self.assertIsNone(results['errors'][0]['item_id'])
        self.assertEqual(results['processed'], 2)
        self.assertEqual(results['items_recovered'], 1)
        self.registry.resolve_alerts_for_item.assert_called_once_with(gauze)


if __name__ == '__main__':
    unittest.main()
