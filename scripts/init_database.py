#!/usr/bin/env python3
"""
Create enrollment tables in Postgres: users, companies, applications, audit_logs.

Uses DATABASE_URL environment variable. Does NOT drop existing tables.
"""

from __future__ import annotations
import os
import sys
from pathlib import Path

from dotenv import load_dotenv
load_dotenv()

# Make sure the package is importable when run from a checkout
sys.path.insert(0, str(Path(__file__).parent.parent))

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.exc import OperationalError

# Import all models so SQLAlchemy knows about them
from benefits_enrollment.database.models import Base, User, Company, Application, AuditLog  # noqa: F401
from benefits_enrollment.database.postgres_real import _normalize_connection_string


def main() -> int:
    url = os.environ.get("DATABASE_URL")
    if not url:
        print("DATABASE_URL is not set", file=sys.stderr)
        return 1

    url = _normalize_connection_string(url)

    try:
        engine = create_engine(url, pool_pre_ping=True, pool_size=5, max_overflow=10)

        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        print("Database connection OK")

        # Create all tables (only missing ones will be added)
        Base.metadata.create_all(bind=engine)
        inspector = inspect(engine)
        tables = inspector.get_table_names()
        print("Enrollment tables now exist:", sorted(tables))
        return 0

    except OperationalError as e:
        print(f"Failed to connect to database: {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
