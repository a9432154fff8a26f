"""Catalog of the GEE application databases and their dump sets."""

from datetime import datetime
from pathlib import Path
from typing import List, NamedTuple, Optional, Tuple

DUMP_SUFFIX = '.sql'
DUMP_DIR_PREFIX = 'pgdump-'


class DatabaseSpec(NamedTuple):
    name: str
    extensions: Tuple[str, ...] = ()

    @property
    def schema_file(self) -> str:
        return f'{self.name}.sql'

    @property
    def upgrade_file(self) -> str:
        return f'{self.name}_upgrade.sql'


# Order matters: databases are created, dumped and restored in this order.
DATABASES = (
    DatabaseSpec('gestream'),
    DatabaseSpec('geendsnippet'),
    DatabaseSpec('gesearch', extensions=('postgis',)),
    DatabaseSpec('gepoi', extensions=('postgis',)),
)


def database_names() -> List[str]:
    return [db.name for db in DATABASES]


def dump_file(dump_dir: Path, db: DatabaseSpec) -> Path:
    """Path of a database's plain SQL dump inside a dump set."""
    return Path(dump_dir) / f'{db.name}{DUMP_SUFFIX}'


def missing_dumps(dump_dir: Path) -> List[str]:
    """
    List databases whose dump is absent or empty in a dump set.

    An empty list means the dump set is complete.
    """
    missing = []
    for db in DATABASES:
        path = dump_file(dump_dir, db)
        if not path.is_file() or path.stat().st_size == 0:
            missing.append(db.name)
    return missing


def new_dump_dir(backup_dir: Path, now: Optional[datetime] = None) -> Path:
    """Timestamped dump set directory under backup_dir (not created)."""
    now = now or datetime.now()
    return Path(backup_dir) / f"{DUMP_DIR_PREFIX}{now.strftime('%Y-%m-%d_%H-%M-%S')}"
