import os
import configparser
from pathlib import Path

from hospital_inventory.exceptions import ConfigError

CONFIG_PATH_ENV = 'HOSPITAL_INVENTORY_CONFIG'
DATABASE_URL_ENV = 'HOSPITAL_INVENTORY_DATABASE_URL'
DEFAULT_CONFIG_PATH = Path('config') / 'settings.ini'

# Built-in settings; a settings file only needs the values it changes
DEFAULTS = {
    'DATABASE': {
        'url': '',
        'engine': 'postgresql',
        'host': 'localhost',
        'port': '5432',
        'database': 'hospital',
        'username': 'postgres',
        'password': 'postgres',
        'pool_size': '10',
        'max_overflow': '20',
        'pool_timeout': '30',
        'pool_recycle': '1800',
        'echo': 'False',
    },
    'LOGGING': {
        'level': 'INFO',
        'format': '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        'directory': 'logs',
        'max_size_mb': '10',
        'backup_count': '5',
        'console_output': 'True',
        'file_output': 'True',
    },
    'STOCK_MONITOR': {
        'low_stock_threshold': '10',
        'scan_interval_minutes': '5',
        'max_update_attempts': '3',
        'shutdown_timeout_seconds': '30',
    },
}

class Config:
    """Configuration manager for the Hospital Inventory system.

    Settings are read from ``$HOSPITAL_INVENTORY_CONFIG`` (or
    ``config/settings.ini``) over the built-in DEFAULTS. A missing file is
    not an error and is not created.
    """

    _instance = None

    def __new__(cls):
        """Singleton pattern implementation."""
        if cls._instance is None:
            cls._instance = super(Config, cls).__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    def __init__(self):
        if self._initialized:
            return

        self._config_path = Path(os.environ.get(CONFIG_PATH_ENV, DEFAULT_CONFIG_PATH))
        self._parser = configparser.ConfigParser(interpolation=None)
        self._parser.read_dict(DEFAULTS)

        try:
            self._parser.read(self._config_path)
        except configparser.Error as e:
            raise ConfigError(
                f"Unable to parse {self._config_path}: {str(e)}",
                details={'path': str(self._config_path)}
            )

        self._initialized = True

    @property
    def path(self):
        return self._config_path

    def _lookup(self, read, section, key, default):
        try:
            return read(section, key)
        except (configparser.NoSectionError, configparser.NoOptionError, ValueError):
            return default

    def get(self, section, key, default=None):
        """Get configuration value as string."""
        return self._lookup(self._parser.get, section, key, default)

    def get_int(self, section, key, default=None):
        """Get configuration value as integer."""
        return self._lookup(self._parser.getint, section, key, default)

    def get_float(self, section, key, default=None):
        """Get configuration value as float."""
        return self._lookup(self._parser.getfloat, section, key, default)

    def get_boolean(self, section, key, default=None):
        """Get configuration value as boolean."""
        return self._lookup(self._parser.getboolean, section, key, default)

    def set(self, section, key, value):
        """Set a configuration value and write the settings file."""
        if not self._parser.has_section(section):
            self._parser.add_section(section)
        self._parser.set(section, key, str(value))

        self._config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(self._config_path, 'w') as settings_file:
            self._parser.write(settings_file)

    def get_db_url(self):
        """SQLAlchemy database URL.

        ``$HOSPITAL_INVENTORY_DATABASE_URL`` wins, then ``DATABASE.url``,
        otherwise the URL is assembled from the individual DATABASE settings.
        """
        url = os.environ.get(DATABASE_URL_ENV) or self.get('DATABASE', 'url')
        if url:
            return url

        section = self._parser['DATABASE']
        return (f"{section['engine']}://{section['username']}:{section['password']}"
                f"@{section['host']}:{section['port']}/{section['database']}")

    @property
    def log_config(self):
        """Logging settings, typed."""
        return {
            'level': self.get('LOGGING', 'level', 'INFO'),
            'format': self.get('LOGGING', 'format'),
            'directory': self.get('LOGGING', 'directory', 'logs'),
            'max_size_mb': self.get_int('LOGGING', 'max_size_mb', 10),
            'backup_count': self.get_int('LOGGING', 'backup_count', 5),
            'console_output': self.get_boolean('LOGGING', 'console_output', True),
            'file_output': self.get_boolean('LOGGING', 'file_output', True)
        }

    @property
    def monitor_config(self):
        """Stock monitor settings, typed."""
        return {
            'low_stock_threshold': self.get_int('STOCK_MONITOR', 'low_stock_threshold', 10),
            'scan_interval_minutes': self.get_float('STOCK_MONITOR', 'scan_interval_minutes', 5.0),
            'max_update_attempts': self.get_int('STOCK_MONITOR', 'max_update_attempts', 3),
            'shutdown_timeout_seconds': self.get_float('STOCK_MONITOR', 'shutdown_timeout_seconds', 30.0)
        }

# Global config instance
config = Config()
