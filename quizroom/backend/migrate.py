"""Create the rooms table and its change-notification trigger in PostgreSQL.

Run ``python -m quizroom.backend.migrate`` before starting the API against a
database. The schema is idempotent, so re-running it is harmless.
"""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Any, Callable

from quizroom.backend.config import configure_logging, load_settings


logger = logging.getLogger(__name__)

SCHEMA_PATH = Path(__file__).with_name("db_schema.sql")


def parse_args(default_database_url: str | None, argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Apply the quiz room schema to PostgreSQL")
    parser.add_argument(
        "--database-url",
        default=default_database_url,
        help="PostgreSQL URL (default: QUIZROOM_DATABASE_URL)",
    )
    parser.add_argument("--schema", type=Path, default=SCHEMA_PATH)
    return parser.parse_args(argv)


def apply_schema(
    database_url: str,
    schema_path: Path = SCHEMA_PATH,
    connect: Callable[[str], Any] | None = None,
) -> None:
    schema_sql = schema_path.read_text(encoding="utf-8")
    if connect is None:
        import psycopg

        connect = psycopg.connect

    with connect(database_url) as conn:
        with conn.cursor() as cur:
            cur.execute(schema_sql)
        conn.commit()
    logger.info(f"Applied schema {schema_path}")


def main(argv: list[str] | None = None) -> int:
    settings = load_settings()
    args = parse_args(default_database_url=settings.database_url, argv=argv)
    configure_logging(settings.log_level)
    if not args.database_url:
        raise RuntimeError("QUIZROOM_DATABASE_URL or --database-url is required for migration")

    apply_schema(args.database_url, schema_path=args.schema)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
