"""Configuration loader for the GEE PostgreSQL reset tool."""

import os
from pathlib import Path
from typing import List, Optional, Tuple

from dotenv import load_dotenv

from gee_pgdb.reset.databases import DATABASES

DEFAULT_PGSQL_BIN = '/opt/google/bin'
DEFAULT_PGSQL_DATA = '/var/opt/google/pgsql/data'
DEFAULT_PGSQL_LOGS = '/var/opt/google/pgsql/logs'
DEFAULT_SCHEMA_DIR = '/opt/google/share/opt/google/share/postgresql'
DEFAULT_BACKUP_DIR = '/var/opt/google/pgsql-backup'
DEFAULT_LOG_DIR = '/var/opt/google/log'
DEFAULT_TIMEOUT = 3600


class ResetConfig:
    """Load configuration from a .env file and the process environment."""

    def __init__(self, env_file: Optional[str] = None):
        if env_file:
            if not os.path.exists(env_file):
                raise FileNotFoundError(f"Environment file not found: {env_file}")
            load_dotenv(env_file)
        else:
            load_dotenv()

        self._load()

    def _load(self):
        # Kept until the run logger exists
        self.warnings = []

        # Cluster layout
        self.pgsql_bin = Path(os.getenv('GE_PGSQL_BIN', DEFAULT_PGSQL_BIN))
        self.pgsql_data = Path(os.getenv('GE_PGSQL_DATA', DEFAULT_PGSQL_DATA))
        self.pgsql_logs = Path(os.getenv('GE_PGSQL_LOGS', DEFAULT_PGSQL_LOGS))
        self.pgport = os.getenv('GE_PGSQL_PORT', '5432')

        # Roles
        self.superuser = os.getenv('GE_PG_SUPERUSER', 'gepguser')
        self.db_owner = os.getenv('GE_DB_OWNER', 'geuser')

        # Inputs and outputs
        self.schema_dir = Path(os.getenv('GE_SCHEMA_DIR', DEFAULT_SCHEMA_DIR))
        self.backup_dir = Path(os.getenv('GE_BACKUP_DIR', DEFAULT_BACKUP_DIR))
        self.log_dir = Path(os.getenv('GE_LOG_DIR', DEFAULT_LOG_DIR))

        try:
            self.command_timeout = int(os.getenv('GE_COMMAND_TIMEOUT', str(DEFAULT_TIMEOUT)))
            if self.command_timeout < 1:
                self.warnings.append(f"GE_COMMAND_TIMEOUT must be >= 1, using {DEFAULT_TIMEOUT}")
                self.command_timeout = DEFAULT_TIMEOUT
        except ValueError:
            self.warnings.append(f"Invalid GE_COMMAND_TIMEOUT, using {DEFAULT_TIMEOUT}")
            self.command_timeout = DEFAULT_TIMEOUT

    @property
    def server_log(self) -> Path:
        return self.pgsql_logs / 'pg.log'

    def validate(self) -> Tuple[bool, List[str]]:
        """Validate configuration and return (success, errors)."""
        errors = []

        if not self.pgsql_bin.is_dir():
            errors.append(f"PostgreSQL binaries directory does not exist: {self.pgsql_bin}")

        if not self.schema_dir.is_dir():
            errors.append(f"Schema directory does not exist: {self.schema_dir}")
        else:
            for db in DATABASES:
                schema = self.schema_dir / db.schema_file
                if not schema.is_file():
                    errors.append(f"Schema file not found for {db.name}: {schema}")

        return len(errors) == 0, errors
