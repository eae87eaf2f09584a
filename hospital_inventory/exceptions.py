class InventoryError(Exception):
    """Base exception for Hospital Inventory errors.

    Subclasses only override ``default_message``; every error carries an
    optional machine readable ``code`` and a ``details`` dictionary.
    """

    default_message = "An error occurred in the Hospital Inventory system"

    def __init__(self, message=None, code=None, details=None):
        self.message = message or self.default_message
        self.code = code
        self.details = details
        super().__init__(self.message)

    def __str__(self):
        if self.code:
            return f"[{self.code}] {self.message}"
        return self.message

    def to_dict(self):
        """Convert the exception to a dictionary."""
        error_dict = {
            'error': type(self).__name__,
            'message': self.message,
        }

        if self.code:
            error_dict['code'] = self.code

        if self.details:
            error_dict['details'] = self.details

        return error_dict


class ConfigError(InventoryError):
    """Unreadable or invalid settings file."""
    default_message = "Configuration error"


class ValidationError(InventoryError):
    """Invalid argument: negative quantity, blank name, unknown enum value, bad interval."""
    default_message = "Validation error"


class NotFoundError(InventoryError):
    """Item, alert, supplier or purchase order does not exist."""
    default_message = "Resource not found"


class InsufficientStockError(InventoryError):
    """Consumption larger than the quantity in stock.

    ``details`` holds ``available`` and ``requested``.
    """
    default_message = "Insufficient stock"


class PersistenceError(InventoryError):
    """Underlying store operation failed."""
    default_message = "Persistence error"


class ConcurrentUpdateError(PersistenceError):
    """Quantity update kept losing to concurrent writers."""
    default_message = "Concurrent update conflict"


class MonitorError(InventoryError):
    """Invalid stock monitor lifecycle transition."""
    default_message = "Stock monitor error"
