import logging
import logging.handlers
from datetime import datetime
from pathlib import Path

from hospital_inventory.config import config

# Logger receiving one start and one end record per monitor cycle
CYCLE_LOGGER_NAME = 'stock_cycles'

class LogManager:
    """Logging manager for the Hospital Inventory system.

    Console output goes through the root logger; each named logger gets its
    own rotating file under the configured directory when file output is on.
    """

    _instance = None
    _loggers = {}

    def __new__(cls):
        """Singleton pattern implementation."""
        if cls._instance is None:
            cls._instance = super(LogManager, cls).__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    def __init__(self):
        if self._initialized:
            return

        self._settings = config.log_config
        self._directory = Path(self._settings['directory'])
        self._formatter = logging.Formatter(self._settings['format'])
        self._level = getattr(logging, self._settings['level'].upper(), logging.INFO)

        root = logging.getLogger()
        root.setLevel(self._level)

        # Leave handlers installed by an embedding application (or pytest) alone
        if self._settings['console_output'] and not root.handlers:
            console = logging.StreamHandler()
            console.setFormatter(self._formatter)
            root.addHandler(console)

        self._initialized = True

    def _file_handler(self, name):
        self._directory.mkdir(parents=True, exist_ok=True)
        handler = logging.handlers.RotatingFileHandler(
            self._directory / f"{name}.log",
            maxBytes=self._settings['max_size_mb'] * 1024 * 1024,
            backupCount=self._settings['backup_count']
        )
        handler.setFormatter(self._formatter)
        return handler

    def get_logger(self, name):
        """Get a configured logger by name.

        Records still propagate to the root logger for console output.

        Args:
            name: Logger name, also the log file name

        Returns:
            logging.Logger
        """
        if name in self._loggers:
            return self._loggers[name]

        named_logger = logging.getLogger(name)
        named_logger.setLevel(self._level)

        if self._settings['file_output']:
            named_logger.addHandler(self._file_handler(name))

        self._loggers[name] = named_logger
        return named_logger

    def start_cycle_log(self, cycle_name, context=None):
        """Record the start of a monitor cycle.

        Args:
            cycle_name: Name of the cycle
            context: Optional dictionary logged with the start record

        Returns:
            Dictionary to hand back to ``end_cycle_log``
        """
        cycle_log = {
            'cycle_name': cycle_name,
            'start_time': datetime.now(),
            'context': context
        }

        message = f"Starting {cycle_name}"
        if context:
            message += f" {context}"
        self.get_logger(CYCLE_LOGGER_NAME).info(message)

        return cycle_log

    def end_cycle_log(self, cycle_log, success=True, outcome=None):
        """Record the end of a monitor cycle with its duration and outcome."""
        cycle_logger = self.get_logger(CYCLE_LOGGER_NAME)
        duration = datetime.now() - cycle_log['start_time']

        level = logging.INFO if success else logging.ERROR
        verdict = 'Completed' if success else 'Failed'
        cycle_logger.log(level, f"{verdict} {cycle_log['cycle_name']} in {duration}")

        if outcome:
            cycle_logger.log(level, f"{cycle_log['cycle_name']} outcome: {outcome}")

# Global log manager instance
logger = LogManager()

def get_logger(name):
    """Get a configured logger by name."""
    return logger.get_logger(name)
