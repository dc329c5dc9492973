"""Run a single SQL statement from the command line.

Usage:
    python -m sqlexec "SELECT id, name FROM users WHERE id > ?" 10
    python -m sqlexec --update "DELETE FROM sessions WHERE expired = ?" 1
    python -m sqlexec --sqlite ./local.db "SELECT * FROM t"

Connection settings come from the SQLEXEC_* environment variables unless
--sqlite is given. Query rows are printed as JSON lines.
"""

import argparse
import asyncio
import json
import logging
import sys

from sqlexec.config import get_log_level
from sqlexec.db.connection import create_source
from sqlexec.errors import DataAccessError
from sqlexec.executor import StatementExecutor
from sqlexec.mapping import as_dict
from sqlexec.transaction import TransactionScope


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="sqlexec", description="Run one SQL statement")
    parser.add_argument("sql", help="SQL text with ? placeholders")
    parser.add_argument("params", nargs="*", help="Positional parameters (bound as text)")
    parser.add_argument("--sqlite", default=None, help="SQLite database path")
    parser.add_argument(
        "--update", action="store_true", help="Run as a write and print the affected row count"
    )
    return parser.parse_args(argv)


async def run(args: argparse.Namespace) -> int:
    """Execute the statement described by ``args``."""
    # ValueError covers malformed SQLEXEC_* settings, including pydantic's ValidationError
    try:
        source = await create_source(sqlite_path=args.sqlite)
    except (DataAccessError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    executor = StatementExecutor(source, TransactionScope(source))
    try:
        if args.update:
            count = await executor.execute_update(args.sql, *args.params)
            print(count)
        else:
            rows = await executor.query_for_list(args.sql, as_dict, *args.params)
            for row in rows:
                print(json.dumps(row, default=str))
    except DataAccessError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    finally:
        await source.shutdown()
    return 0


def main(argv: list[str] | None = None) -> int:
    """Entry point for ``python -m sqlexec``."""
    args = _parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, get_log_level()),
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
        stream=sys.stderr,
    )
    return asyncio.run(run(args))


if __name__ == "__main__":
    sys.exit(main())
