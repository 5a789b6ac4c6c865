"""Prepare the database and media directories for a fresh deployment.

For PostgreSQL URLs the database itself is created first if missing.
Tables are then created from the ORM models.
"""

import asyncio
import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

import asyncpg
from sqlalchemy.engine import make_url

from vodstream.core.config import settings
from vodstream.core.database import close_db, init_db


async def ensure_postgres_database(url) -> None:
    """Create the PostgreSQL database named in ``url`` if it doesn't exist."""
    conn = await asyncpg.connect(
        host=url.host or "localhost",
        port=url.port or 5432,
        user=url.username,
        password=url.password,
        database="postgres",
    )
    try:
        exists = await conn.fetchval(
            "SELECT 1 FROM pg_database WHERE datname = $1", url.database
        )
        if exists:
            print(f"✓ Database '{url.database}' already exists.")
        else:
            print(f"Creating database '{url.database}'...")
            await conn.execute(f'CREATE DATABASE "{url.database}"')
            print(f"✓ Database '{url.database}' created successfully!")
    finally:
        await conn.close()


async def create_database() -> int:
    """Create database, tables and media directories."""
    url = make_url(settings.DATABASE_URL)

    print("=" * 50)
    print("Preparing vodstream storage")
    print("=" * 50)
    print()
    print(f"  Database: {url.render_as_string(hide_password=True)}")
    print(f"  Videos:   {settings.VIDEO_DIR}")
    print(f"  HLS:      {settings.HLS_DIR}")
    print(f"  Thumbs:   {settings.THUMBNAIL_DIR}")
    print()

    try:
        if url.get_backend_name() == "postgresql":
            await ensure_postgres_database(url)

        print("Creating tables...")
        await init_db()
        await close_db()
        print("✓ Tables ready")

        for directory in (settings.VIDEO_DIR, settings.HLS_DIR, settings.THUMBNAIL_DIR):
            Path(directory).mkdir(parents=True, exist_ok=True)
        print("✓ Media directories ready")
    except asyncpg.exceptions.InvalidPasswordError:
        print("✗ Error: Invalid database password")
        print("  Please check DATABASE_URL in your .env file")
        return 1
    except OSError as e:
        print(f"✗ Error: {e}")
        return 1

    print()
    print("Next steps:")
    print("  1. Start the API:    uvicorn vodstream.main:app")
    print("  2. Start a worker:   celery -A vodstream.core.celery_app worker")
    print("     (only needed with TRANSCODE_IN_BACKGROUND=true)")
    print()
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(create_database()))
