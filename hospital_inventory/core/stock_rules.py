# hospital_inventory/core/stock_rules.py
from hospital_inventory.exceptions import ValidationError
from hospital_inventory.models import AlertLevel, MAX_STOCK_QUANTITY

def is_low_stock(quantity: int, threshold: int) -> bool:
    """Quantity at or below the threshold is low (equality triggers)."""
    return quantity <= threshold

def classify_alert_level(current_quantity: int, threshold: int) -> AlertLevel:
    """Classify the severity of a low-stock condition.

    Args:
        current_quantity: Quantity currently in stock
        threshold: Effective low-stock threshold

    Returns:
        CRITICAL when the item is exhausted, WARNING at or below half the
        threshold (never below 1), INFO otherwise
    """
    if current_quantity <= 0:
        return AlertLevel.CRITICAL
    if current_quantity <= max(1, threshold // 2):
        return AlertLevel.WARNING
    return AlertLevel.INFO

def build_alert_message(item_name: str, current_quantity: int, threshold: int) -> str:
    """Human readable alert message."""
    return f"{item_name} low stock: qty={current_quantity}, threshold={threshold}"

def add_stock(current_quantity: int, quantity: int) -> int:
    """Add quantity to stock, refusing to overflow the quantity column.

    Raises:
        ValidationError if the result exceeds MAX_STOCK_QUANTITY
    """
    new_quantity = current_quantity + quantity
    if new_quantity > MAX_STOCK_QUANTITY:
        raise ValidationError(
            f"Stock overflow: {current_quantity} + {quantity} exceeds {MAX_STOCK_QUANTITY}"
        )
    return new_quantity

def require_quantity(quantity, name: str, allow_zero: bool = False) -> int:
    """Validate a quantity argument.

    Args:
        quantity: Value to validate
        name: Argument name used in the error message
        allow_zero: Whether zero is acceptable

    Returns:
        The quantity

    Raises:
        ValidationError if quantity is not an integer or is out of range
    """
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise ValidationError(f"{name} must be an integer, got {quantity!r}")

    if allow_zero and quantity < 0:
        raise ValidationError(f"{name} must be >= 0, got {quantity}")
    if not allow_zero and quantity <= 0:
        raise ValidationError(f"{name} must be > 0, got {quantity}")

    return quantity

def require_id(value, name: str) -> int:
    """Validate a positive integer identifier."""
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ValidationError(f"{name} must be a positive integer, got {value!r}")
    return value

def require_non_blank(value, name: str) -> str:
    """Validate a non-blank string and return it stripped."""
    if value is None or not str(value).strip():
        raise ValidationError(f"{name} must not be blank")
    return str(value).strip()

def coerce_enum(enum_cls, value, name: str):
    """Convert an enum member or case-insensitive string to ``enum_cls``.

    Raises:
        ValidationError if the value is blank or not a member of ``enum_cls``
    """
    if isinstance(value, enum_cls):
        return value
    text = require_non_blank(value, name).upper()
    try:
        return enum_cls(text)
    except ValueError:
        valid = ', '.join(member.value for member in enum_cls)
        raise ValidationError(f"Invalid {name}: {value}. Valid values are: {valid}")
