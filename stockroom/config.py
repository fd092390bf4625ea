"""
Stockroom configuration.

The configuration is loaded once at process start and passed explicitly to
the connection pool, the initializer and the server. It is read from the
first INI file found in CONFIG_LOCATIONS, falling back to the copy bundled
in ``stockroom/resources/database.ini`` and finally to hard defaults.
Environment variables override file values.
"""

import os
import configparser
from dataclasses import dataclass, replace
from importlib import resources
from pathlib import Path
from typing import Mapping, Optional

from stockroom.core.utils.logging_config import get_logger
from stockroom.exceptions import StartupFault

logger = get_logger('stockroom.config')

CONFIG_LOCATIONS = (
    'config/database.ini',
    'database.ini',
    'conf/database.ini',
    '/etc/inventory-app/database.ini',
)

BUNDLED_CONFIG = 'database.ini'

# (section, option, attribute, type)
_OPTIONS = (
    ('db', 'url', 'url', str),
    ('db', 'username', 'username', str),
    ('db', 'password', 'password', str),
    ('db', 'driver', 'driver', str),
    ('db.pool', 'maximum_pool_size', 'max_pool_size', int),
    ('db.pool', 'minimum_idle', 'min_idle', int),
    ('db.pool', 'idle_timeout', 'idle_timeout_ms', int),
    ('db.pool', 'connection_timeout', 'acquire_timeout_ms', int),
    ('db.pool', 'probe_query', 'probe_query', str),
    ('db.init', 'create_database', 'create_schema', bool),
    ('db.init', 'load_test_data', 'load_seed_data', bool),
    ('db.init', 'schema_path', 'schema_path', str),
    ('db.init', 'data_path', 'data_path', str),
    ('db.init', 'seed_password', 'seed_password', str),
    ('server', 'host', 'host', str),
    ('server', 'port', 'port', int),
    ('audit', 'log_file', 'audit_log_file', str),
)

# Environment overrides, same names the deployment scripts already export
_ENV_OVERRIDES = (
    ('DATABASE_URL', 'url', str),
    ('DB_USERNAME', 'username', str),
    ('DB_PASSWORD', 'password', str),
    ('DB_POOL_MIN_CONN', 'min_idle', int),
    ('DB_POOL_MAX_CONN', 'max_pool_size', int),
    ('STOCKROOM_HOST', 'host', str),
    ('STOCKROOM_PORT', 'port', int),
    ('STOCKROOM_AUDIT_LOG', 'audit_log_file', str),
)


@dataclass(frozen=True)
class DatabaseConfig:
    """Immutable server configuration."""

    # Data store
    url: str = 'postgresql://localhost:5432/inventory_db'
    username: str = 'postgres'
    password: str = ''
    driver: str = 'psycopg2'

    # Connection pool (timeouts in milliseconds, as in the INI file)
    max_pool_size: int = 10
    min_idle: int = 5
    idle_timeout_ms: int = 300000
    acquire_timeout_ms: int = 20000
    probe_query: str = 'SELECT 1'

    # Database initialization
    create_schema: bool = False
    load_seed_data: bool = False
    schema_path: str = 'schema.sql'
    data_path: str = 'data.sql'
    seed_password: str = 'changeme123'

    # Listener
    host: str = '0.0.0.0'
    port: int = 1099

    # Audit trail
    audit_log_file: str = 'system.log'

    source: str = 'default configuration'

    def __post_init__(self):
        if self.max_pool_size < 1:
            raise ValueError('maximum_pool_size must be at least 1')
        if not 0 <= self.min_idle <= self.max_pool_size:
            raise ValueError('minimum_idle must be between 0 and maximum_pool_size')
        if not 0 <= self.port < 65536:
            raise ValueError(f'Invalid port: {self.port}')

    @property
    def idle_timeout(self) -> float:
        """Idle timeout in seconds."""
        return self.idle_timeout_ms / 1000.0

    @property
    def acquire_timeout(self) -> float:
        """Connection-acquire timeout in seconds."""
        return self.acquire_timeout_ms / 1000.0

    def connection_kwargs(self) -> dict:
        """Keyword arguments for psycopg2.connect()."""
        kwargs = {'dsn': self.url}
        if self.username:
            kwargs['user'] = self.username
        if self.password:
            kwargs['password'] = self.password
        return kwargs

    def with_overrides(self, **changes) -> 'DatabaseConfig':
        """Return a copy with the given fields replaced."""
        return replace(self, **changes)

    @classmethod
    def load(cls, path: Optional[str] = None,
             environ: Optional[Mapping[str, str]] = None) -> 'DatabaseConfig':
        """Load configuration, first match wins.

        Args:
            path: Explicit INI file. When given it must exist.
            environ: Environment mapping (defaults to os.environ).

        Returns:
            DatabaseConfig with ``source`` describing where it came from.
        """
        environ = os.environ if environ is None else environ
        parser = configparser.ConfigParser()
        source = None

        if path is not None:
            if not Path(path).is_file():
                raise StartupFault(f'Configuration file not found: {path}')
            source = _read_file(parser, Path(path))
            if source is None:
                raise StartupFault(f'Configuration file could not be read: {path}')
        else:
            for location in CONFIG_LOCATIONS:
                candidate = Path(location)
                if candidate.is_file():
                    source = _read_file(parser, candidate)
                    if source is not None:
                        break

        if source is None:
            source = _read_bundled(parser)

        if source is None:
            source = 'default configuration'
            logger.info('Using default configuration')
        else:
            logger.info(f'Loaded configuration from: {source}')

        values = _values_from_parser(parser)
        values.update(_values_from_environ(environ))
        try:
            return cls(source=source, **values)
        except ValueError as e:
            raise StartupFault(f'Invalid configuration in {source}: {e}') from e


def _read_file(parser: configparser.ConfigParser, path: Path) -> Optional[str]:
    try:
        with path.open(encoding='utf-8') as fh:
            parser.read_file(fh)
    except (OSError, configparser.Error) as e:
        logger.error(f'Failed to load config from {path}: {e}')
        return None
    return str(path.resolve())


def _read_bundled(parser: configparser.ConfigParser) -> Optional[str]:
    try:
        text = resources.files('stockroom').joinpath('resources').joinpath(BUNDLED_CONFIG).read_text(encoding='utf-8')
        parser.read_string(text)
    except FileNotFoundError:
        return None
    except (OSError, configparser.Error) as e:
        logger.error(f'Failed to load bundled config: {e}')
        return None
    return f'package:stockroom/resources/{BUNDLED_CONFIG}'


def _values_from_parser(parser: configparser.ConfigParser) -> dict:
    values = {}
    for section, option, attr, kind in _OPTIONS:
        if not parser.has_option(section, option):
            continue
        try:
            if kind is bool:
                values[attr] = parser.getboolean(section, option)
            elif kind is int:
                values[attr] = parser.getint(section, option)
            else:
                values[attr] = parser.get(section, option)
        except ValueError as e:
            raise StartupFault(f'Invalid value for [{section}] {option}: {e}') from e
    return values


def _values_from_environ(environ: Mapping[str, str]) -> dict:
    values = {}
    for var, attr, kind in _ENV_OVERRIDES:
        raw = environ.get(var)
        if raw is None or raw == '':
            continue
        try:
            values[attr] = kind(raw)
        except ValueError as e:
            raise StartupFault(f'Invalid value for {var}: {raw!r}') from e
    return values

