#!/usr/bin/env python3
"""
Load the contact allowlist and homeowner records from a JSON file.

In production both are owned by other systems (contact sync and the CRM).
This is for local development and demos.

Usage:
    python scripts/seed_directory.py data/directory.example.json

File format:
    {
        "contacts": [{"phone_number": "(555) 123-4567", "owner_id": "...", "display_name": "..."}],
        "homeowners": [{"id": "...", "name": "...", "address": "...", "last_active_at": "..."}]
    }
"""

import argparse
import json
import sys
from pathlib import Path

from pydantic import ValidationError

from warranty_intake.intake.schema import Contact, Homeowner
from warranty_intake.storage import CallStore, get_call_store
from warranty_intake.utils.phone import is_e164, normalize_phone_number


def load_contacts(entries: list[dict]) -> tuple[list[Contact], list[str]]:
    """Validate contact entries, normalizing phone numbers to E.164."""
    contacts = []
    rejected = []
    for entry in entries:
        phone = normalize_phone_number(entry.get("phone_number"))
        if not is_e164(phone):
            rejected.append(str(entry.get("phone_number")))
            continue
        contacts.append(Contact(**{**entry, "phone_number": phone}))
    return contacts, rejected


def seed(store: CallStore, directory: dict) -> None:
    """Write contacts and homeowners to the store."""
    contacts, rejected = load_contacts(directory.get("contacts", []))
    count = store.upsert_contacts(contacts)
    print(f"✓ {count} contact(s) in allowlist")
    for phone in rejected:
        print(f"  ✗ Skipped invalid phone number: {phone}")

    homeowners = [Homeowner(**entry) for entry in directory.get("homeowners", [])]
    for homeowner in homeowners:
        store.upsert_homeowner(homeowner)
    print(f"✓ {len(homeowners)} homeowner(s) loaded")


def main():
    parser = argparse.ArgumentParser(description="Seed contacts and homeowners")
    parser.add_argument("path", type=Path, help="JSON file with contacts and homeowners")
    parser.add_argument("--db", type=Path, help="Database path (defaults to DATABASE_PATH)")
    args = parser.parse_args()

    with open(args.path, "r", encoding="utf-8") as f:
        directory = json.load(f)

    store = CallStore(args.db) if args.db else get_call_store()
    print(f"Seeding {store.db_path}")

    try:
        seed(store, directory)
    except ValidationError as e:
        print(f"✗ Invalid directory file: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
