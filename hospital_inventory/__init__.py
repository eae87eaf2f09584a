from .config import config
from .logging_setup import logger, get_logger
from .exceptions import (
    InventoryError, ValidationError, NotFoundError, InsufficientStockError,
    PersistenceError, ConcurrentUpdateError, MonitorError
)

__all__ = [
    'config',
    'logger',
    'get_logger',
    'InventoryError',
    'ValidationError',
    'NotFoundError',
    'InsufficientStockError',
    'PersistenceError',
    'ConcurrentUpdateError',
    'MonitorError'
]
