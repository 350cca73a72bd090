"""
Create the scanner's database tables.

Usage:
    python -m scripts.init_db

Requires DATABASE_URL in .env (PostgreSQL, or sqlite+aiosqlite for local runs).
"""
import asyncio
from shared.database import engine, init_models


async def init_database():
    if engine is None:
        print("ERROR: DATABASE_URL not configured. Set it in .env")
        return

    print("Connecting to database...")
    await init_models()
    print("scan_results table ready.")


if __name__ == "__main__":
    asyncio.run(init_database())
