# hospital_inventory/batch/__init__.py

from .stock_monitor import StockMonitor, MonitorState

__all__ = [
    'StockMonitor',
    'MonitorState'
]
