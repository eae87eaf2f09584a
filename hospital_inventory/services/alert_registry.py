# hospital_inventory/services/alert_registry.py
from datetime import datetime
from typing import List
import enum
import logging

from hospital_inventory.core.stock_rules import (
    classify_alert_level, build_alert_message, require_id, coerce_enum
)
from hospital_inventory.db.interface import InventoryStore
from hospital_inventory.exceptions import ConcurrentUpdateError, NotFoundError
from hospital_inventory.models import ItemType, StockAlert, AlertStatus

logger = logging.getLogger(__name__)

# Refresh attempts before giving up on an alert that keeps changing
MAX_ALERT_UPDATE_ATTEMPTS = 3


class AlertOutcome(enum.Enum):
    """What ensure_open_alert_for_item did to the item's alert."""
    CREATED = 'created'
    REFRESHED = 'refreshed'
    REOPENED = 'reopened'
    UNCHANGED = 'unchanged'


class AlertRegistry:
    """Single authority for stock alert state.

    Keeps at most one non-RESOLVED alert per (item_type, item_id). An alert
    moves OPEN -> ACKNOWLEDGED -> OPEN (re-trigger) and ends RESOLVED; a
    resolved alert is never reused, a recurring shortage gets a new one.
    """

    def __init__(self, store: InventoryStore):
        """Initialize the alert registry.

        Args:
            store: Inventory store
        """
        self.store = store

    def get_alert(self, alert_id: int) -> StockAlert:
        """Get an alert by ID.

        Raises:
            NotFoundError if the alert does not exist
        """
        require_id(alert_id, 'alert_id')
        alert = self.store.find_alert(alert_id)
        if alert is None:
            raise NotFoundError(f"Alert with ID {alert_id} not found")
        return alert

    def list_alerts(self, status=None) -> List[StockAlert]:
        """List alerts, newest first, optionally filtered by status."""
        if status is not None:
            status = coerce_enum(AlertStatus, status, 'alert status')
        return self.store.find_alerts(status)

    def list_alerts_for_item(self, item_id: int, item_type) -> List[StockAlert]:
        """List every alert raised for an item, oldest first."""
        require_id(item_id, 'item_id')
        return self.store.find_alerts_for_item(item_id, ItemType.from_string(item_type))

    def active_alerts_for_item(self, item_id: int, item_type) -> List[StockAlert]:
        """Alerts of an item that are OPEN or ACKNOWLEDGED, oldest first."""
        return [alert for alert in self.list_alerts_for_item(item_id, item_type) if alert.is_active]

    def ensure_open_alert_for_item(self, item, current_quantity: int, threshold: int) -> AlertOutcome:
        """Make sure the item has exactly one OPEN alert describing its stock.

        Creates the alert when none is active, otherwise refreshes the
        existing one's snapshot and reopens it if it was acknowledged. The
        refresh only lands if the alert's status is still the one that was
        read; when a concurrent resolve or acknowledge got there first the
        item's alerts are read again.

        Args:
            item: Medicine or Equipment at or below its threshold
            current_quantity: Quantity in stock
            threshold: Effective low-stock threshold

        Returns:
            AlertOutcome describing the change

        Raises:
            ConcurrentUpdateError if the alert keeps changing under the refresh
        """
        level = classify_alert_level(current_quantity, threshold)
        message = build_alert_message(item.name, current_quantity, threshold)

        for attempt in range(1, MAX_ALERT_UPDATE_ATTEMPTS + 1):
            active = self.active_alerts_for_item(item.id, item.item_type)

            if not active:
                alert = StockAlert(
                    item_type=item.item_type,
                    item_id=item.id,
                    item_name=item.name,
                    threshold=threshold,
                    current_quantity=current_quantity,
                    alert_level=level,
                    status=AlertStatus.OPEN,
                    message=message,
                    created_at=datetime.now()
                )
                alert_id = self.store.insert_alert(alert)
                logger.info(f"Opened {level.value} alert {alert_id} for {item.item_type}:{item.id} ({message})")
                return AlertOutcome.CREATED

            alert, duplicates = active[0], active[1:]

            # A concurrent insert can leave extra active alerts; keep the oldest
            for duplicate in duplicates:
                logger.warning(f"Resolving duplicate alert {duplicate.id} for {item.item_type}:{item.id}")
                self.store.close_alert(duplicate.id)

            read_status = alert.status
            reopen = read_status != AlertStatus.OPEN
            if (not reopen
                    and alert.current_quantity == current_quantity
                    and alert.threshold == threshold
                    and alert.alert_level == level
                    and alert.message == message):
                return AlertOutcome.UNCHANGED

            alert.item_name = item.name
            alert.current_quantity = current_quantity
            alert.threshold = threshold
            alert.alert_level = level
            alert.message = message
            alert.status = AlertStatus.OPEN

            if self.store.update_alert(alert, expected_status=read_status):
                if reopen:
                    logger.info(f"Reopened alert {alert.id} for {item.item_type}:{item.id} ({message})")
                    return AlertOutcome.REOPENED

                logger.debug(f"Refreshed alert {alert.id} for {item.item_type}:{item.id} ({message})")
                return AlertOutcome.REFRESHED

            logger.debug(
                f"Alert {alert.id} changed while being refreshed "
                f"(attempt {attempt}/{MAX_ALERT_UPDATE_ATTEMPTS})"
            )

        raise ConcurrentUpdateError(
            f"Could not refresh the alert of {item.item_type}:{item.id} "
            f"after {MAX_ALERT_UPDATE_ATTEMPTS} attempts"
        )

    def acknowledge(self, alert_id: int) -> StockAlert:
        """Acknowledge an OPEN alert.

        Acknowledging an alert that is already ACKNOWLEDGED or RESOLVED
        leaves it untouched, including when it was resolved concurrently.

        Args:
            alert_id: Alert ID

        Returns:
            The alert after the call

        Raises:
            NotFoundError if the alert does not exist
        """
        alert = self.get_alert(alert_id)
        if alert.status != AlertStatus.OPEN:
            logger.debug(f"Alert {alert_id} is {alert.status.value}, acknowledge ignored")
            return alert

        alert.status = AlertStatus.ACKNOWLEDGED
        alert.acknowledged_at = datetime.now()
        if not self.store.update_alert(alert, expected_status=AlertStatus.OPEN):
            current = self.get_alert(alert_id)
            logger.debug(f"Alert {alert_id} became {current.status.value} before it was acknowledged")
            return current

        logger.info(f"Acknowledged alert {alert_id}")
        return alert

    def resolve(self, alert_id: int) -> StockAlert:
        """Resolve an alert directly.

        OPEN and ACKNOWLEDGED alerts become RESOLVED; an alert that is
        already RESOLVED keeps its original resolution time.

        Raises:
            NotFoundError if the alert does not exist
        """
        alert = self.get_alert(alert_id)
        if alert.status == AlertStatus.RESOLVED:
            logger.debug(f"Alert {alert_id} already resolved")
            return alert

        if self.store.close_alert(alert_id):
            logger.info(f"Resolved alert {alert_id}")
        else:
            logger.debug(f"Alert {alert_id} was resolved concurrently")

        return self.get_alert(alert_id)

    def delete_alert(self, alert_id: int):
        """Delete an alert record.

        Raises:
            NotFoundError if the alert does not exist
        """
        require_id(alert_id, 'alert_id')
        if not self.store.delete_alert(alert_id):
            raise NotFoundError(f"Alert with ID {alert_id} not found")
        logger.info(f"Deleted alert {alert_id}")

    def resolve_alerts_for_item(self, item) -> int:
        """Resolve every non-resolved alert of an item.

        Args:
            item: Medicine or Equipment whose stock recovered

        Returns:
            Number of alerts resolved
        """
        resolved = 0
        for alert in self.active_alerts_for_item(item.id, item.item_type):
            if self.store.close_alert(alert.id):
                resolved += 1

        if resolved:
            logger.info(f"Resolved {resolved} alert(s) for {item.item_type}:{item.id}")

        return resolved
