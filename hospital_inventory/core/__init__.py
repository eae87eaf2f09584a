from .stock_rules import (
    is_low_stock, classify_alert_level,
    build_alert_message, add_stock, require_quantity, require_id,
    require_non_blank, coerce_enum
)

__all__ = [
    'is_low_stock',
    'classify_alert_level',
    'build_alert_message',
    'add_stock',
    'require_quantity',
    'require_id',
    'require_non_blank',
    'coerce_enum'
]
