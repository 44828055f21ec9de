"""
Create the Notekeeper collections and indexes without starting the server.

Run from the repository root: python -m scripts.ensure_indexes
"""

import asyncio
import os
from pathlib import Path

from dotenv import load_dotenv

from api.database import COLLECTIONS, Database


async def ensure_indexes():
    """Create missing collections, ensure every index and list the result."""
    # Load environment variables from .env file
    env_path = Path(__file__).parent.parent / ".env"
    load_dotenv(env_path)

    # Indexes are created explicitly below
    os.environ["INIT_DB"] = "false"

    print(f"Connecting to MongoDB: {os.getenv('MONGODB_DB_NAME', 'notekeeper')}")
    await Database.connect()

    try:
        await Database.initialize_collections()

        db = Database.get_database()
        for name in COLLECTIONS:
            print(f"\nIndexes on '{name}':")
            indexes = await db[name].list_indexes().to_list(length=None)
            for idx in indexes:
                unique = " (unique)" if idx.get("unique") else ""
                print(f"  - {idx['name']}: {dict(idx.get('key', {}))}{unique}")
    finally:
        await Database.disconnect()

    print("\nDone! You can now start the server.")


if __name__ == "__main__":
    asyncio.run(ensure_indexes())
