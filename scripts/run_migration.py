#!/usr/bin/env python3
"""Check a PlateMyDay SQL migration against Supabase and print it for the SQL editor."""

import sys
from pathlib import Path
from supabase import create_client
from dotenv import load_dotenv
import os

load_dotenv()

MIGRATIONS_DIR = Path(__file__).resolve().parent.parent / "migrations"
TABLES = [
    "recipes",
    "meal_plans",
    "meal_plan_days",
    "meal_plan_meals",
    "suggested_recipes",
    "user_settings",
    "user_credits",
    "user_billing",
    "user_billing_overrides",
]


def get_supabase():
    url = os.getenv("SUPABASE_URL")
    key = os.getenv("SUPABASE_SERVICE_ROLE_KEY")
    if not url or not key:
        raise ValueError("Missing SUPABASE_URL or SUPABASE_SERVICE_ROLE_KEY")
    return create_client(url, key)


def missing_tables(sb) -> list[str]:
    """Tables from the schema that the database doesn't have yet."""
    missing = []
    for table in TABLES:
        try:
            sb.table(table).select("*", count="exact").limit(0).execute()
        except Exception:
            missing.append(table)
    return missing


def run_migration(migration_file: str) -> bool:
    path = Path(migration_file)
    if not path.exists():
        path = MIGRATIONS_DIR / migration_file
    if not path.exists():
        print(f"[ERROR] Migration file not found: {migration_file}")
        return False

    sql = path.read_text()
    print(f"Migration: {path.name}")
    print("-" * 50)
    print(sql[:500] + "..." if len(sql) > 500 else sql)
    print("-" * 50)

    missing = missing_tables(get_supabase())
    if not missing:
        print("[OK] All PlateMyDay tables already exist")
        return True

    # The Supabase client has no raw SQL endpoint
    print(f"[INFO] Missing tables: {', '.join(missing)}")
    print("[INFO] Run this SQL in Supabase Dashboard > SQL Editor, or use: supabase db push")
    return True


if __name__ == "__main__":
    if len(sys.argv) < 2:
        print("Usage: python scripts/run_migration.py <migration_file>")
        sys.exit(1)

    run_migration(sys.argv[1])
