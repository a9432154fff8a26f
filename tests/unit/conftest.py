"""
Unit test fixtures.

No PostgreSQL binary is ever executed. FakeRunner stands in for
SubprocessRunner: it records every command line and imitates the side
effects the reset sequences depend on (server state, directories, dump files).

Key fixtures:
- config: ResetConfig pointing at a temporary GEE layout
- runner: FakeRunner recording commands
- tools: PgTools running as the cluster superuser through the fake runner
- reset: DatabaseReset that never prompts
"""

import os
import shutil
from pathlib import Path
from unittest.mock import Mock

import pytest

from gee_pgdb.reset.databases import DATABASES
from gee_pgdb.reset.modes import DatabaseReset
from gee_pgdb.reset.pgtools import PgTools
from gee_pgdb.utils.config import ResetConfig

ENV_VARS = [
    'GE_PGSQL_BIN', 'GE_PGSQL_DATA', 'GE_PGSQL_LOGS', 'GE_PGSQL_PORT',
    'GE_PG_SUPERUSER', 'GE_DB_OWNER', 'GE_SCHEMA_DIR', 'GE_BACKUP_DIR',
    'GE_LOG_DIR', 'GE_COMMAND_TIMEOUT',
]


class FakeRunner:
    """Records command lines and simulates their effects."""

    def __init__(self, running=False):
        self.running = running
        self.commands = []
        self.failures = {}

    def fail_on(self, fragment, stderr='boom'):
        """Make the first command containing fragment fail."""
        self.failures[fragment] = stderr

    def _result(self, success, stderr=''):
        return {
            'success': success,
            'error': None if success else f"Command failed with exit code 1\nSTDERR: {stderr}",
            'duration': 0.0,
            'returncode': 0 if success else 1,
            'stdout': '',
            'stderr': stderr,
        }

    def run_command(self, cmd, env=None, cwd=None):
        self.commands.append(list(cmd))
        if cmd[:2] == ['sudo', '-u']:
            cmd = cmd[3:]
        line = ' '.join(cmd)
        for fragment, stderr in list(self.failures.items()):
            if fragment in line:
                del self.failures[fragment]
                return self._result(False, stderr)

        name = os.path.basename(cmd[0])
        if name == 'pg_ctl':
            action = cmd[1]
            if action == 'status':
                return self._result(self.running, '' if self.running else 'no server running')
            self.running = action == 'start'
        elif name == 'mkdir':
            Path(cmd[-1]).mkdir(parents=True, exist_ok=True)
        elif name == 'initdb':
            Path(cmd[cmd.index('-D') + 1]).mkdir(parents=True)
        elif name == 'mv':
            os.rename(cmd[1], cmd[2])
        elif name == 'rm':
            shutil.rmtree(cmd[-1])
        elif name == 'pg_dump':
            Path(cmd[cmd.index('-f') + 1]).write_text(f"-- dump of {cmd[-1]}\n")
        return self._result(True)

    def names(self):
        """Binary names plus first argument, e.g. 'pg_ctl start', 'createdb'."""
        out = []
        for cmd in self.commands:
            if cmd[:2] == ['sudo', '-u']:
                cmd = cmd[3:]
            name = os.path.basename(cmd[0])
            out.append(f"{name} {cmd[1]}" if name == 'pg_ctl' else name)
        return out


@pytest.fixture
def gee_root(tmp_path):
    """Temporary GEE layout with binaries, schema and an existing cluster."""
    (tmp_path / 'bin').mkdir()
    schema_dir = tmp_path / 'schema'
    schema_dir.mkdir()
    for db in DATABASES:
        (schema_dir / db.schema_file).write_text(f"CREATE TABLE {db.name}_t (id int);\n")
    data = tmp_path / 'pgsql' / 'data'
    data.mkdir(parents=True)
    (data / 'PG_VERSION').write_text('13\n')
    return tmp_path


@pytest.fixture
def gee_env(gee_root, monkeypatch):
    """Environment variables pointing at gee_root."""
    # setenv first so teardown also removes values a .env file loaded
    for var in ENV_VARS:
        monkeypatch.setenv(var, '')
        monkeypatch.delenv(var)
    monkeypatch.chdir(gee_root)
    monkeypatch.setenv('GE_PGSQL_BIN', str(gee_root / 'bin'))
    monkeypatch.setenv('GE_PGSQL_DATA', str(gee_root / 'pgsql' / 'data'))
    monkeypatch.setenv('GE_PGSQL_LOGS', str(gee_root / 'pgsql' / 'logs'))
    monkeypatch.setenv('GE_SCHEMA_DIR', str(gee_root / 'schema'))
    monkeypatch.setenv('GE_BACKUP_DIR', str(gee_root / 'backup'))
    monkeypatch.setenv('GE_LOG_DIR', str(gee_root / 'log'))
    return gee_root


@pytest.fixture
def config(gee_env):
    return ResetConfig()


@pytest.fixture
def runner():
    return FakeRunner()


@pytest.fixture
def tools(config, runner):
    return PgTools(config, runner=runner, current_user='gepguser')


@pytest.fixture
def mock_logger():
    """Fixture providing a mock ResetLogger."""
    return Mock()


@pytest.fixture
def reset(config, tools, mock_logger):
    return DatabaseReset(config, tools, mock_logger, assume_yes=True)


@pytest.fixture
def dump_set(tmp_path):
    """A complete dump set written by an earlier installation."""
    dump_dir = tmp_path / 'old-dump'
    dump_dir.mkdir()
    for db in DATABASES:
        (dump_dir / f'{db.name}.sql').write_text(f"-- dump of {db.name}\n")
    return dump_dir
