# scripts/setup/init_cache.py
"""
Initialize the local cache database — creates all tables.
Run once before first launch, or after adding new models.
Usage: python scripts/setup/init_cache.py
       python scripts/setup/init_cache.py --clear-session
"""

import sys
import os
import argparse
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", ".."))

from fleetlog.database import create_tables, engine
from fleetlog.config import settings
from fleetlog.services.kv_store import KeyValueStore
from fleetlog.services.session_store import SESSION_KEYS
from sqlalchemy import inspect, text
from sqlalchemy.exc import SQLAlchemyError


def main():
    parser = argparse.ArgumentParser()
    parser.add_argument("--clear-session", action="store_true", help="Forget the stored login")
    args = parser.parse_args()

    print("🗄️  FleetLog Cache Initialization")
    print("=" * 40)
    print(f"📡 Database: {settings.CACHE_DATABASE_URL}")

    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        print("✅ Database connection OK")
    except SQLAlchemyError as e:
        print(f"❌ Cannot open cache database: {e}")
        print("\nCheck CACHE_DATABASE_URL in .env and that the directory is writable.")
        sys.exit(1)

    print("\n📋 Creating tables...")
    create_tables()
    print("✅ All tables created")

    tables = sorted(inspect(engine).get_table_names())
    print(f"\n📊 Tables in database ({len(tables)} total):")
    for t in tables:
        print(f"   ✓ {t}")

    if args.clear_session:
        KeyValueStore().multi_remove(SESSION_KEYS)
        print("\n🔒 Stored session cleared")

    print("\n🎉 Cache ready! You can now start the gateway:")
    print("   uvicorn fleetlog.main:app --host 0.0.0.0 --port 8080 --reload")


if __name__ == "__main__":
    main()
