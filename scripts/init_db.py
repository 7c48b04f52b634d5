"""Create the clinic queue schema directly from the table metadata.

Intended for local development; deployed databases are migrated with alembic.
"""

import argparse
import asyncio

from clinicq.database import engine
from clinicq.models import metadata


async def init_db(drop: bool = False) -> None:
    """Create all tables, optionally dropping existing ones first."""
    async with engine.begin() as conn:
        if drop:
            await conn.run_sync(metadata.drop_all)
            print("✓ Existing tables dropped")
        await conn.run_sync(metadata.create_all)

    await engine.dispose()
    print(f"✓ Database initialized with tables: {', '.join(sorted(metadata.tables))}")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Initialize the clinic queue database")
    parser.add_argument("--drop", action="store_true", help="Drop existing tables first")
    args = parser.parse_args()
    asyncio.run(init_db(drop=args.drop))
