"""Reset, backup and restore sequences for the GEE databases."""

from pathlib import Path
from typing import Callable, Optional

from tqdm import tqdm

from gee_pgdb.reset.databases import (DATABASES, database_names, dump_file,
                                      missing_dumps, new_dump_dir)
from gee_pgdb.reset.pgtools import PgTools, ResetError

MODES = ('soft', 'hard', 'backup', 'restore', 'upgrade')
DESTRUCTIVE_MODES = ('soft', 'hard', 'restore', 'upgrade')
DUMP_PATH_MODES = ('backup', 'restore', 'upgrade')


class Cancelled(Exception):
    """Operator declined the confirmation prompt."""


def confirm(mode: str, ask: Optional[Callable[[str], str]] = None) -> bool:
    """Ask before a destructive mode; only y/yes proceeds."""
    ask = ask or input
    prompt = f"Proceed with {mode} reset of {', '.join(database_names())}? [y/N]: "
    try:
        answer = ask(prompt)
    except EOFError:
        return False
    return answer.strip().lower() in ('y', 'yes')


class DatabaseReset:
    """Runs one mode against the cluster described by config."""

    def __init__(self, config, tools: PgTools, logger,
                 assume_yes: bool = False,
                 ask: Optional[Callable[[str], str]] = None):
        self.config = config
        self.tools = tools
        self.logger = logger
        self.assume_yes = assume_yes
        self.ask = ask or input

    def run(self, mode: str, dump_path: Optional[Path] = None) -> Optional[Path]:
        """Run mode; returns the dump set written or read, if any."""
        if mode not in MODES:
            raise ValueError(f"Unknown mode: {mode}")
        if mode in ('restore', 'upgrade') and dump_path is None:
            raise ValueError(f"Mode {mode} requires a dump path")

        if mode in ('restore', 'upgrade'):
            self.check_dump_set(dump_path)

        if mode in DESTRUCTIVE_MODES and not self.assume_yes:
            if not confirm(mode, self.ask):
                raise Cancelled(mode)

        return getattr(self, mode)(dump_path)

    # -- modes ----------------------------------------------------------

    def soft(self, _dump_path=None) -> Path:
        self.logger.section("Soft reset: dump, re-initialize, restore")
        dump_dir = self.dump_all()
        self.tools.stop()
        self.tools.move_data_aside()
        self.create_cluster()
        self.create_databases(fresh=False)
        self.restore_all(dump_dir)
        self.reapply_schema()
        return dump_dir

    def hard(self, _dump_path=None) -> None:
        self.logger.section("Hard reset: all database contents will be lost")
        self.tools.stop()
        self.tools.remove_data_dir()
        self.create_cluster()
        self.create_databases(fresh=True)
        return None

    def backup(self, dump_path: Optional[Path] = None) -> Path:
        self.logger.section("Backup")
        was_running = self.tools.is_running()
        dump_dir = self.dump_all(dump_path)
        if not was_running:
            self.tools.stop()
        return dump_dir

    def restore(self, dump_path: Path) -> Path:
        self.logger.section(f"Restore from {dump_path}")
        self.tools.start()
        for db in DATABASES:
            self.tools.drop_database(db)
        self.tools.create_owner()
        self.create_databases(fresh=False)
        self.restore_all(dump_path)
        self.reapply_schema()
        return Path(dump_path)

    def upgrade(self, dump_path: Path) -> Path:
        self.logger.section(f"Upgrade from {dump_path}")
        self.tools.stop()
        self.tools.move_data_aside()
        self.create_cluster()
        self.create_databases(fresh=False)
        self.restore_all(dump_path)
        self.reapply_schema()
        return Path(dump_path)

    # -- shared steps ---------------------------------------------------

    def check_dump_set(self, dump_dir: Path):
        dump_dir = Path(dump_dir)
        if not dump_dir.is_dir():
            raise ResetError(f"Dump directory does not exist: {dump_dir}")
        missing = missing_dumps(dump_dir)
        if missing:
            raise ResetError(f"Dump set {dump_dir} is incomplete, missing or empty: {', '.join(missing)}")

    def create_cluster(self):
        self.logger.section("Creating database cluster")
        self.tools.initdb()
        self.tools.start()
        self.tools.create_owner()

    def create_databases(self, fresh: bool):
        self.logger.section("Creating databases")
        for db in DATABASES:
            self.tools.create_database(db)
            self.tools.create_extensions(db)
            if fresh:
                self.tools.load_sql(db, self.config.schema_dir / db.schema_file)

    def reapply_schema(self):
        self.logger.section("Applying schema updates")
        applied = 0
        for db in DATABASES:
            upgrade = self.config.schema_dir / db.upgrade_file
            if upgrade.is_file():
                self.tools.load_sql(db, upgrade)
                applied += 1
        if not applied:
            self.logger.info("No schema update files found")

    def dump_all(self, dump_dir: Optional[Path] = None) -> Path:
        dump_dir = Path(dump_dir) if dump_dir else new_dump_dir(self.config.backup_dir)
        self.logger.section(f"Dumping databases to {dump_dir}")
        self.tools.start()
        self.tools.make_dir(dump_dir)
        for db in tqdm(DATABASES, desc="Dumping", unit="db"):
            self.tools.dump_database(db, dump_file(dump_dir, db))

        self.check_dump_set(dump_dir)
        self.logger.info(f"Dump set written: {dump_dir}")
        return dump_dir

    def restore_all(self, dump_dir: Path):
        self.logger.section(f"Restoring databases from {dump_dir}")
        for db in tqdm(DATABASES, desc="Restoring", unit="db"):
            self.tools.load_sql(db, dump_file(dump_dir, db), as_owner=False)
