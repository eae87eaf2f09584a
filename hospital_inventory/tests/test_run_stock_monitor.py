"""
Tests for the stock monitor command line runner.
"""
import unittest
from unittest.mock import patch, MagicMock

from hospital_inventory import run_stock_monitor
from hospital_inventory.exceptions import PersistenceError
from hospital_inventory.tests.helpers import make_database
from hospital_inventory.db.sql_store import SQLAlchemyInventoryStore
from hospital_inventory.services.inventory_service import InventoryService


class TestRunStockMonitor(unittest.TestCase):
    def test_parser_defaults(self):
        """Test argument defaults."""
        args = run_stock_monitor.build_parser().parse_args([])
        self.assertFalse(args.once)
        self.assertIsNone(args.threshold)
        self.assertIsNone(args.interval_minutes)

    def test_single_scan(self):
        """Test a single scan against a fresh database."""
        exit_code = run_stock_monitor.main([
            '--once', '--database-url', 'sqlite://', '--create-tables', '--threshold', '5'
        ])
        self.assertEqual(exit_code, 0)

    @patch('builtins.print')
    @patch('hospital_inventory.run_stock_monitor.Database')
    def test_single_scan_shows_alerts(self, mock_database_cls, mock_print):
        """Test that --show-alerts prints the alerts opened by the scan."""
        database = make_database()
        service = InventoryService(SQLAlchemyInventoryStore(database), default_threshold=10)
        service.add_medicine("Oxytocin 10IU", quantity_in_stock=0)
        mock_database_cls.return_value = database

        exit_code = run_stock_monitor.main(['--once', '--threshold', '10', '--show-alerts'])

        self.assertEqual(exit_code, 0)
        printed = "\n".join(str(call.args[0]) for call in mock_print.call_args_list)
        self.assertIn("Oxytocin 10IU", printed)
        self.assertIn("CRITICAL", printed)
        self.assertIn("Total Active Alerts: 1", printed)

    @patch('hospital_inventory.run_stock_monitor.InventoryService')
    def test_failing_scan_returns_error_code(self, mock_service_cls):
        """Test that a failing scan exits non-zero and still shuts the monitor down."""
        monitor = MagicMock()
        monitor.run_scan_once.side_effect = PersistenceError("database down")
        mock_service_cls.from_database.return_value.create_stock_monitor.return_value = monitor

        exit_code = run_stock_monitor.main(['--once', '--database-url', 'sqlite://'])

        self.assertEqual(exit_code, 1)
        monitor.shutdown.assert_called_once()


if __name__ == '__main__':
    unittest.main()
