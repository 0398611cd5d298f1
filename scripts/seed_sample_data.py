#!/usr/bin/env python3
"""
Sample Data Seeder for EduConnect

Creates the database schema and inserts the demo accounts used by the chat
widget when the users table is empty:
  - student@educonnect.com / student123 (student code S123)
  - parent@educonnect.com / parent123 (parent of S123)

Usage:
    python scripts/seed_sample_data.py
    DATABASE_URL=sqlite:///./other.db python scripts/seed_sample_data.py
"""

import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from educonnect.core.auth import TokenService
from educonnect.core.config import get_settings
from educonnect.infrastructure.database import Database
from educonnect.services.accounts import SAMPLE_PARENT, SAMPLE_STUDENT, CredentialStore


def main():
    settings = get_settings()

    print("=" * 60)
    print("EduConnect - Sample Data Seeder")
    print("=" * 60)
    print(f"\nDatabase: {settings.database_url}")
    print()

    database = Database(settings.database_url)
    database.create_all()
    print("[OK] Schema ready")

    with database.session() as db:
        created = CredentialStore(db, TokenService.from_settings(settings)).seed_sample_data()

    database.dispose()

    if not created:
        print("[SKIP] Users already exist; nothing inserted")
        return

    print("\n" + "=" * 60)
    print("[SUCCESS] Sample accounts created!")
    print("=" * 60)
    print(f"   Student: {SAMPLE_STUDENT['email']} / {SAMPLE_STUDENT['password']}")
    print(f"   Parent:  {SAMPLE_PARENT['email']} / {SAMPLE_PARENT['password']}")


if __name__ == "__main__":
    main()
