#!/usr/bin/env python3
"""
GEE PostgreSQL reset tool

Resets, backs up and restores the gestream, geendsnippet, gesearch and gepoi
databases of a Google Earth Enterprise server.

Modes:
  soft     dump the databases, re-initialize the cluster and restore (default)
  hard     wipe the cluster and create empty databases from the schema files
  backup   dump the databases to DUMP_PATH or a new timestamped directory
  restore  drop the databases and load them from DUMP_PATH
  upgrade  re-initialize the cluster and load the databases from DUMP_PATH
"""

import sys
from argparse import ArgumentParser, RawDescriptionHelpFormatter
from datetime import datetime
from pathlib import Path

from gee_pgdb.reset.modes import MODES, DUMP_PATH_MODES, Cancelled, DatabaseReset
from gee_pgdb.reset.pgtools import PgTools, ResetError
from gee_pgdb.utils.config import ResetConfig
from gee_pgdb.utils.logging_utils import ResetLogger
from gee_pgdb.utils.subprocess_utils import validate_path


def build_parser() -> ArgumentParser:
    parser = ArgumentParser(
        prog='gee-resetpgdb',
        description=__doc__,
        formatter_class=RawDescriptionHelpFormatter,
    )
    parser.add_argument('mode', nargs='?', default='soft', choices=MODES,
                        help='Operation to perform (default: soft)')
    parser.add_argument('dump_path', nargs='?',
                        help='Dump set directory for backup, restore and upgrade')
    parser.add_argument('--env-file', help='Path to .env file (default: .env in current directory)')
    parser.add_argument('-y', '--yes', action='store_true',
                        help='Do not ask for confirmation before destructive modes')
    parser.add_argument('--leave-stopped', action='store_true',
                        help='Stop the PostgreSQL server when the run finishes')
    parser.add_argument('--keep-running-on-error', action='store_true',
                        help='Do not stop a server this run started when a step fails')
    return parser


def parse_args(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.mode in ('restore', 'upgrade') and not args.dump_path:
        parser.error(f"mode '{args.mode}' requires a dump_path")
    if args.dump_path and args.mode not in DUMP_PATH_MODES:
        parser.error(f"mode '{args.mode}' does not take a dump_path")
    return args


def abort(tools: PgTools, logger: ResetLogger, keep_running: bool):
    """Stop a server this run started, then give up."""
    if tools.started_here and not keep_running:
        logger.info("Stopping the PostgreSQL server started by this run...")
        try:
            tools.stop()
        except Exception as e:
            logger.error(f"Could not stop PostgreSQL server: {e}")
    return 1


def main(argv=None) -> int:
    """Main reset program."""
    args = parse_args(argv)

    try:
        config = ResetConfig(args.env_file)
    except FileNotFoundError as e:
        print(f"ERROR: {e}")
        return 1

    success, errors = config.validate()
    if not success:
        print("\nConfiguration validation failed:")
        for error in errors:
            print(f"  - {error}")
        return 1

    dump_path = None
    if args.dump_path:
        try:
            dump_path = validate_path(args.dump_path, must_exist=args.mode != 'backup')
        except ValueError as e:
            print(f"ERROR: {e}")
            return 1

    log_file = config.log_dir / f"resetpgdb-{datetime.now().strftime('%Y%m%d-%H%M%S')}.log"
    logger = ResetLogger(log_file)

    logger.section(f"GEE PostgreSQL {args.mode} started")
    logger.info("Configuration:")
    logger.info(f"  Data directory: {config.pgsql_data}")
    logger.info(f"  Binaries: {config.pgsql_bin}")
    logger.info(f"  Schema directory: {config.schema_dir}")
    logger.info(f"  Superuser: {config.superuser}, database owner: {config.db_owner}")
    if dump_path:
        logger.info(f"  Dump path: {dump_path}")
    if logger.log_file:
        logger.info(f"  Log file: {logger.log_file}")
    for warning in config.warnings:
        logger.warning(warning)

    tools = PgTools(config)
    reset = DatabaseReset(config, tools, logger, assume_yes=args.yes)

    try:
        result_path = reset.run(args.mode, dump_path)
        if args.leave_stopped:
            tools.stop()
        elif args.mode != 'backup':
            tools.start()
    except Cancelled:
        logger.info("Cancelled by operator, nothing was changed")
        return 0
    except ResetError as e:
        logger.error(f"{args.mode} FAILED: {e}")
        return abort(tools, logger, args.keep_running_on_error)
    except KeyboardInterrupt:
        logger.warning("Interrupted by user")
        return abort(tools, logger, args.keep_running_on_error)
    except Exception as e:
        logger.error(f"Unexpected error: {e}", exc_info=True)
        return abort(tools, logger, args.keep_running_on_error)

    logger.section(f"GEE PostgreSQL {args.mode} completed successfully")
    if result_path:
        logger.info(f"Dump set: {result_path}")
    return 0


if __name__ == '__main__':
    sys.exit(main())
