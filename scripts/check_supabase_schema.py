# =============================================================================
# scripts/check_supabase_schema.py
# Check that every WinShirt table is reachable on Supabase
# =============================================================================
"""
Reports tables the backend cannot serve and compares local/remote row
counts.

Usage:
    python scripts/check_supabase_schema.py
    python scripts/check_supabase_schema.py --print-sql

Prerequisites:
    - Configure .streamlit/secrets.toml (or SUPABASE_URL / SUPABASE_KEY)
"""

from __future__ import annotations
import argparse
import asyncio
import sys
from pathlib import Path

project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from winshirt_core.config import Settings
from winshirt_core.logging import setup_logging
from winshirt_core.offline import WinShirtDataService


def print_sql_schema():
    """Print the SQL for the atomic counter function used by lottery participation."""
    sql = """
-- Run this SQL in your Supabase SQL Editor
-- Without it, participant counters fall back to compare-and-set updates

CREATE OR REPLACE FUNCTION increment(
    table_name TEXT,
    row_id BIGINT,
    field_name TEXT,
    num_increment INTEGER DEFAULT 1
)
RETURNS INTEGER
LANGUAGE plpgsql
AS $$
DECLARE
    new_value INTEGER;
BEGIN
    EXECUTE format(
        'UPDATE %I SET %I = COALESCE(%I, 0) + $1 WHERE id = $2 RETURNING %I',
        table_name, field_name, field_name, field_name
    )
    INTO new_value
    USING num_increment, row_id;
    RETURN new_value;
END;
$$;
"""
    print(sql)
    return sql


async def check(service: WinShirtDataService) -> int:
    if not await service.check_connection():
        print(f"Supabase is not reachable: {service.probe.get_status_display()['error']}")
        return 1

    missing = (await service.sync.check_required_tables()).data
    counts = await service.sync.get_data_counts()

    print(f"\n{'='*60}")
    print(f"{'Table':<24}{'Local':>8}{'Remote':>8}  Status")
    print(f"{'='*60}")
    for table, count in counts.items():
        status = "MISSING" if table in missing else ("synced" if count["synced"] else "differs")
        remote = "-" if count["remote"] is None else count["remote"]
        print(f"{table:<24}{count['local']:>8}{remote:>8}  {status}")

    return 1 if missing else 0


async def main() -> int:
    parser = argparse.ArgumentParser(description="Check WinShirt tables on Supabase")
    parser.add_argument(
        "--print-sql",
        action="store_true",
        help="Only print the SQL of the increment function",
    )
    args = parser.parse_args()

    if args.print_sql:
        print_sql_schema()
        return 0

    settings = Settings.load()
    setup_logging(level=settings.logging_level, log_to_file=False)
    service = WinShirtDataService(settings)
    try:
        return await check(service)
    finally:
        await service.close()


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
