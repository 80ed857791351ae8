#!/usr/bin/env python3
"""
Session location purge script

Deletes per-session location snapshots idle for longer than
SESSION_LOCATION_TTL_HOURS (default 24). Meant to run from cron.

    python scripts/purge_session_locations.py [max_age_hours]
"""

import asyncio
import sys
from datetime import timedelta
from typing import Optional

from dotenv import load_dotenv

load_dotenv()

from app.database import AsyncSessionLocal, engine
from app.security import configure_logging
from app.services.location_store import LocationStore
from app.services.session_location_service import purge_stale_session_locations


async def purge(max_age_hours: Optional[float] = None) -> int:
    if AsyncSessionLocal is None:
        print("❌ POSTGRES_URI not found in environment variables")
        return 0
    max_age = timedelta(hours=max_age_hours) if max_age_hours is not None else None
    try:
        async with AsyncSessionLocal() as session:
            return await purge_stale_session_locations(LocationStore(session), max_age)
    finally:
        await engine.dispose()


def main():
    """Main function"""
    configure_logging()
    hours = float(sys.argv[1]) if len(sys.argv) > 1 else None
    removed = asyncio.run(purge(hours))
    print(f"✅ Removed {removed} stale session location(s)")


if __name__ == "__main__":
    main()
