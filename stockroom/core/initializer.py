"""Database initialization - schema and seed data scripts.

Runs before the services are bound. Each step is skipped unless enabled in
the configuration. A requested script that cannot be located or applied is
a StartupFault.
"""
from importlib import resources
from pathlib import Path
from typing import List, Optional

import psycopg2.errors

from stockroom.auth.repositories.employee_dao import EmployeeDAO
from stockroom.core.audit import SYSTEM_USER
from stockroom.core.queries import get_cursor, run_with_connection
from stockroom.core.utils.logging_config import get_logger
from stockroom.exceptions import StartupFault, StockroomError

logger = get_logger('stockroom.initializer')

SCRIPT_DIRECTORIES = ('config', 'conf', '.', '/etc/inventory-app')


def split_statements(script: str) -> List[str]:
    """Split a SQL script on ';', dropping blank and comment-only chunks."""
    statements = []
    for chunk in script.split(';'):
        lines = [line for line in chunk.splitlines() if not line.strip().startswith('--')]
        statement = '\n'.join(lines).strip()
        if statement:
            statements.append(statement)
    return statements


def locate_script(configured: str) -> Optional[str]:
    """Find and read a SQL script.

    Looks at the configured path, then the same file name under each of
    SCRIPT_DIRECTORIES, then the copy bundled in stockroom/resources.
    Returns the script text, or None when it cannot be found anywhere.
    """
    name = Path(configured).name
    candidates = [Path(configured)] + [Path(d) / name for d in SCRIPT_DIRECTORIES]
    for candidate in candidates:
        if candidate.is_file():
            try:
                text = candidate.read_text(encoding='utf-8')
            except OSError as e:
                logger.error(f'Failed to read SQL script from {candidate}: {e}')
                continue
            logger.debug(f'Using SQL script {candidate.resolve()}')
            return text

    try:
        return resources.files('stockroom').joinpath('resources').joinpath(name).read_text(encoding='utf-8')
    except (FileNotFoundError, OSError):
        return None


class DatabaseInitializer:
    """Applies the schema and seed scripts selected by the configuration."""

    def __init__(self, config, db_pool, audit):
        self.config = config
        self.db_pool = db_pool
        self.audit = audit

    def initialize(self):
        self.audit.log('DEBUG', 'Initializing database...', SYSTEM_USER)
        if self.config.create_schema:
            self.create_schema()
        else:
            self.audit.log('DEBUG', 'Skipping database creation', SYSTEM_USER)

        if self.config.load_seed_data:
            self.load_seed_data()
        else:
            self.audit.log('DEBUG', 'Skipping test data loading', SYSTEM_USER)
        self.audit.log('DEBUG', 'Database initialization completed.', SYSTEM_USER)

    def create_schema(self):
        script = self._require_script(self.config.schema_path, 'Schema')

        def _work(conn):
            with get_cursor(conn) as cursor:
                for statement in split_statements(script):
                    cursor.execute(statement)

        try:
            run_with_connection(self.db_pool, _work)
        except StockroomError as e:
            self.audit.log('ERROR', f'Failed to create database: {e}', SYSTEM_USER)
            raise StartupFault(f'Failed to create database schema: {e}') from e
        self.audit.log('DATABASE', 'Schema created successfully', SYSTEM_USER)

    def load_seed_data(self) -> int:
        """Load the seed script. Rows that already exist are skipped.

        Returns the number of statements applied.
        """
        script = self._require_script(self.config.data_path, 'Data')

        def _work(conn):
            applied = 0
            with get_cursor(conn) as cursor:
                for statement in split_statements(script):
                    try:
                        cursor.execute(statement)
                        applied += 1
                    except psycopg2.errors.UniqueViolation:
                        logger.warning('Duplicate entry in seed data, skipping statement')
            return applied

        try:
            applied = run_with_connection(self.db_pool, _work)
            updated = EmployeeDAO(self.db_pool).set_default_passwords(self.config.seed_password)
        except StockroomError as e:
            self.audit.log('ERROR', f'Failed to load test data: {e}', SYSTEM_USER)
            raise StartupFault(f'Failed to load seed data: {e}') from e

        if updated:
            logger.info(f'Set default password for {updated} seeded employee(s)')
        self.audit.log('DATABASE', f'Test data loaded successfully ({applied} statements)', SYSTEM_USER)
        return applied

    def _require_script(self, configured: str, label: str) -> str:
        script = locate_script(configured)
        if script is None:
            self.audit.log('ERROR', f'{label} script not found', SYSTEM_USER)
            raise StartupFault(f'{label} script not found: {configured}')
        return script
