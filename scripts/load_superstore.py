"""Load a Global Superstore CSV export into the configured database."""

import argparse
import asyncio
from pathlib import Path

from config.settings import settings
from superstore_brain.db.connection import async_session, engine
from superstore_brain.db.staging import create_category_sales_view
from superstore_brain.ingestion.superstore_loader import load_csv


async def load(path: Path, table_name: str, dayfirst: bool, date_format: str | None = None) -> None:
    async with async_session() as session:
        count = await load_csv(
            path, session, table_name=table_name, dayfirst=dayfirst, date_format=date_format,
        )
        await create_category_sales_view(session, table_name)
    print(f"[load_superstore] Loaded {count} rows into {table_name}.")
    await engine.dispose()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("csv", nargs="?", default=settings.superstore_csv, type=Path)
    parser.add_argument("--table", default=settings.superstore_table)
    parser.add_argument("--dayfirst", action="store_true", help="order dates are dd/mm/yyyy")
    parser.add_argument("--date-format", help="strftime layout of the date columns, e.g. %%d-%%m-%%Y")
    args = parser.parse_args()
    asyncio.run(load(args.csv, args.table, args.dayfirst, args.date_format))
