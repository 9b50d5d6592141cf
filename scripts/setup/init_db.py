# scripts/setup/init_db.py
"""
Initialize the VisionHub database: create the devices, recordings and events
tables and report what is already stored in them.
Recordings that were left without an end time by an unclean shutdown are listed;
the backend closes them out on its next startup.
Usage: python scripts/setup/init_db.py
"""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", ".."))

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from visionhub.config import settings
from visionhub.database import SessionLocal, create_tables
from visionhub.models import Device, Event, Recording
from visionhub.services.record_store import RecordStore


def count_rows() -> dict:
    db = SessionLocal()
    try:
        return {
            model.__tablename__: db.query(func.count()).select_from(model).scalar()
            for model in (Device, Recording, Event)
        }
    finally:
        db.close()


def main():
    print(f"🗄️  VisionHub database at {settings.DATABASE_URL}")

    try:
        create_tables()
        store = RecordStore()
        store.ping()
        counts = count_rows()
        unfinished = store.list_unfinished_recordings()
    except SQLAlchemyError as e:
        print(f"❌ Database initialization failed: {e}")
        sys.exit(1)

    print("✅ Tables ready:")
    for table, rows in counts.items():
        print(f"   {table:<12} {rows} rows")

    if unfinished:
        print(f"\n⚠️  {len(unfinished)} recordings were never finalized (closed on next startup):")
        for rec in unfinished:
            print(f"   {rec.start_time:%Y-%m-%d %H:%M:%S}  {rec.device_name}  {rec.file_path}")

    print(f"\nStart the backend with:\n"
          f"   uvicorn visionhub.main:app --host {settings.BACKEND_IP} --port {settings.BACKEND_PORT}")


if __name__ == "__main__":
    main()
