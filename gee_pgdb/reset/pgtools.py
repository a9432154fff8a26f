"""Wrappers around the PostgreSQL administration binaries."""

import getpass
import logging
import os
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional

from gee_pgdb.reset.databases import DatabaseSpec
from gee_pgdb.utils.subprocess_utils import SubprocessRunner

logger = logging.getLogger(__name__)


class ResetError(RuntimeError):
    """A reset run cannot continue."""


class CommandError(ResetError):
    """An external command failed; carries the runner result."""

    def __init__(self, description: str, result: Dict):
        self.description = description
        self.result = result
        super().__init__(f"{description} failed: {result.get('error') or 'unknown error'}")


class PgTools:
    """Run initdb, pg_ctl, createdb and friends against the GEE cluster."""

    def __init__(self, config, runner: Optional[SubprocessRunner] = None,
                 current_user: Optional[str] = None):
        self.config = config
        self.runner = runner or SubprocessRunner(timeout=config.command_timeout)
        self.current_user = current_user or getpass.getuser()
        self.started_here = False

    # -- command construction -------------------------------------------

    def binary(self, name: str) -> str:
        """Prefer the binary shipped with GEE, fall back to PATH."""
        bundled = self.config.pgsql_bin / name
        if bundled.exists():
            return str(bundled)
        return name

    def as_superuser(self, cmd: List[str]) -> List[str]:
        """Run as the cluster owner; initdb and pg_ctl refuse to run as root."""
        if self.current_user == self.config.superuser:
            return cmd
        return ['sudo', '-u', self.config.superuser] + cmd

    def client(self, name: str, *args: str, user: Optional[str] = None) -> List[str]:
        """Client binary command line with port and role filled in."""
        return self.as_superuser([
            self.binary(name),
            '-p', str(self.config.pgport),
            '-U', user or self.config.superuser,
        ] + list(args))

    def _env(self) -> Dict[str, str]:
        env = os.environ.copy()
        env['PGPORT'] = str(self.config.pgport)
        return env

    def run(self, cmd: List[str], description: str, tolerate: Optional[str] = None) -> Dict:
        """
        Run cmd, raising CommandError on failure.

        If tolerate is given and appears in stderr, the failure is logged
        as a warning and the result returned instead.
        """
        logger.info(f"{description}: {' '.join(cmd)}")
        result = self.runner.run_command(cmd, env=self._env())
        if result['success']:
            return result
        if tolerate and tolerate in (result.get('stderr') or ''):
            logger.warning(f"{description}: {tolerate}, continuing")
            return result
        logger.error(f"{description} failed")
        logger.error(f"  Error: {result['error']}")
        raise CommandError(description, result)

    # -- server ---------------------------------------------------------

    def is_running(self) -> bool:
        cmd = self.as_superuser([self.binary('pg_ctl'), 'status', '-D', str(self.config.pgsql_data)])
        result = self.runner.run_command(cmd, env=self._env())
        return bool(result['success'])

    def start(self):
        if self.is_running():
            logger.info("PostgreSQL server is already running")
            return
        self.make_dir(self.config.pgsql_logs)
        self.run(self.as_superuser([
            self.binary('pg_ctl'), 'start', '-w',
            '-D', str(self.config.pgsql_data),
            '-l', str(self.config.server_log),
            '-o', f'-p {self.config.pgport}',
        ]), "Start PostgreSQL server")
        self.started_here = True

    def stop(self):
        if not self.is_running():
            logger.info("PostgreSQL server is not running")
            self.started_here = False
            return
        self.run(self.as_superuser([
            self.binary('pg_ctl'), 'stop', '-w', '-m', 'fast',
            '-D', str(self.config.pgsql_data),
        ]), "Stop PostgreSQL server")
        self.started_here = False

    # -- cluster --------------------------------------------------------

    def make_dir(self, path: Path):
        """Create a directory the cluster owner can write to."""
        self.run(self.as_superuser(['mkdir', '-p', str(path)]), f"Create directory {path}")

    def initdb(self):
        self.run(self.as_superuser([
            self.binary('initdb'),
            '-D', str(self.config.pgsql_data),
            '-U', self.config.superuser,
            '-E', 'UTF8',
            '--locale=C',
        ]), "Initialize database cluster")

    def move_data_aside(self, now: Optional[datetime] = None) -> Optional[Path]:
        """Rename the data directory to data.old-<timestamp>, returning the new path."""
        data = self.config.pgsql_data
        if not data.exists():
            logger.info(f"No data directory to move aside: {data}")
            return None
        now = now or datetime.now()
        target = data.with_name(f"{data.name}.old-{now.strftime('%Y%m%d-%H%M%S')}")
        self.run(self.as_superuser(['mv', str(data), str(target)]), "Move data directory aside")
        logger.info(f"Previous data directory kept at: {target}")
        return target

    def remove_data_dir(self):
        data = self.config.pgsql_data
        if not data.exists():
            logger.info(f"No data directory to remove: {data}")
            return
        self.run(self.as_superuser(['rm', '-rf', str(data)]), "Remove data directory")

    # -- roles and databases --------------------------------------------

    def create_owner(self):
        self.run(self.client('createuser', '--no-superuser', '--createdb', '--no-createrole',
                             self.config.db_owner),
                 f"Create role {self.config.db_owner}", tolerate='already exists')

    def create_database(self, db: DatabaseSpec):
        self.run(self.client('createdb', '-O', self.config.db_owner, '-E', 'UTF8',
                             '-T', 'template0', db.name),
                 f"Create database {db.name}")

    def drop_database(self, db: DatabaseSpec):
        self.run(self.client('dropdb', '--if-exists', db.name), f"Drop database {db.name}")

    def create_extensions(self, db: DatabaseSpec):
        for extension in db.extensions:
            self.run(self.client('psql', '-d', db.name, '-v', 'ON_ERROR_STOP=1',
                                 '-c', f'CREATE EXTENSION IF NOT EXISTS {extension}'),
                     f"Create extension {extension} in {db.name}")

    def load_sql(self, db: DatabaseSpec, sql_file: Path, as_owner: bool = True):
        """Load a SQL file into db, stopping at the first error."""
        user = self.config.db_owner if as_owner else None
        self.run(self.client('psql', '-d', db.name, '-v', 'ON_ERROR_STOP=1', '-q',
                             '-f', str(sql_file), user=user),
                 f"Load {Path(sql_file).name} into {db.name}")

    def dump_database(self, db: DatabaseSpec, dump_path: Path):
        self.run(self.client('pg_dump', '-f', str(dump_path), db.name),
                 f"Dump database {db.name}")
