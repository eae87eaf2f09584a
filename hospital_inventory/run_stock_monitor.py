#!/usr/bin/env python
# run_stock_monitor.py - Script to run the stock monitor

import sys
import logging
import argparse
import signal
import threading
from datetime import timedelta
from tabulate import tabulate

from hospital_inventory.config import config
from hospital_inventory.db.connection import Database
from hospital_inventory.logging_setup import get_logger
from hospital_inventory.services.inventory_service import InventoryService

def build_parser():
    """Build the command line parser."""
    parser = argparse.ArgumentParser(description='Run the hospital inventory stock monitor')
    parser.add_argument('--once', action='store_true', help='Run a single scan and exit')
    parser.add_argument('--threshold', '-t', type=int, help='Default low-stock threshold')
    parser.add_argument('--interval-minutes', '-i', type=float, help='Minutes between scans')
    parser.add_argument('--database-url', help='SQLAlchemy database URL (overrides configuration)')
    parser.add_argument('--create-tables', action='store_true', help='Create missing tables before scanning')
    parser.add_argument('--show-alerts', action='store_true', help='Print open and acknowledged alerts after a single scan')
    parser.add_argument('--verbose', '-v', action='store_true', help='Enable verbose logging')
    return parser

def print_active_alerts(service):
    """Print every OPEN or ACKNOWLEDGED alert as a table."""
    table_data = []
    for alert in service.alerts.list_alerts():
        if not alert.is_active:
            continue
        table_data.append([
            alert.id,
            str(alert.item_type),
            alert.item_id,
            alert.item_name,
            alert.current_quantity,
            alert.threshold,
            alert.alert_level.value,
            alert.status.value
        ])

    print("\nActive Stock Alerts:")
    print(tabulate(table_data, headers=['Alert ID', 'Type', 'Item ID', 'Item', 'Qty', 'Threshold', 'Level', 'Status']))
    print(f"\nTotal Active Alerts: {len(table_data)}")

def main(argv=None):
    """Run the stock monitor."""
    args = build_parser().parse_args(argv)

    logger = get_logger('stock_monitor_runner')
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)
        logger.setLevel(logging.DEBUG)

    database = Database(args.database_url)
    if args.create_tables:
        database.create_all_tables()

    service = InventoryService.from_database(database)

    interval = None
    if args.interval_minutes is not None:
        interval = timedelta(minutes=args.interval_minutes)

    monitor = service.create_stock_monitor(
        scan_interval=interval,
        low_stock_threshold=args.threshold
    )

    logger.info(f"Stock monitor runner using threshold={monitor.low_stock_threshold}, interval={monitor.scan_interval}")

    try:
        if args.once:
            results = monitor.run_scan_once()
            logger.info(f"Alerts opened/refreshed: {results['alerts_opened']}")
            logger.info(f"Alerts resolved: {results['alerts_resolved']}")
            logger.info(f"Failures: {results['failed']}")
            if args.show_alerts:
                print_active_alerts(service)
            return 0 if results['success'] else 1

        stop_requested = threading.Event()

        def request_stop(signum, frame):
            logger.info(f"Received signal {signum}, shutting down")
            stop_requested.set()

        signal.signal(signal.SIGINT, request_stop)
        signal.signal(signal.SIGTERM, request_stop)

        monitor.start()
        stop_requested.wait()
        return 0

    except Exception as e:
        logger.exception(f"Error running stock monitor: {str(e)}")
        return 1

    finally:
        monitor.shutdown(timeout=config.monitor_config['shutdown_timeout_seconds'])
        database.dispose()

if __name__ == "__main__":
    sys.exit(main())
