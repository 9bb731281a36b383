#!/usr/bin/env python3
"""
Script to create the Loanly tables and load a small demo catalog.
"""
import argparse
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from loanly.core.db import init as db_init, run_in_transaction
from loanly.core.items import Catalog
from loanly.core.models import Role
from loanly.core.patrons import Patrons

DEMO_ITEMS = [
    ("Dune", 2),
    ("Harry Potter and the Sorcerer's Stone", 1),
    ("Clean Code", 3),
]


def seed(db, admin_email, borrower_email, password=None):
    admin = Patrons.ensure_admin(db, "Ava Admin", admin_email, password)
    borrower = Patrons.find_by_email(db, borrower_email) or Patrons.add(
        db, "Alice Reader", borrower_email, Role.USER, password=password
    )
    items = [Catalog.add(db, title, copies) for title, copies in DEMO_ITEMS]
    return admin, borrower, items


def main():
    parser = argparse.ArgumentParser(description="Seed Loanly with demo data")
    parser.add_argument("--admin-email", default="admin@example.com")
    parser.add_argument("--borrower-email", default="alice@example.com")
    parser.add_argument("--password", help="Login password for both seeded patrons")
    args = parser.parse_args()

    db_init()
    try:
        admin, borrower, items = run_in_transaction(
            lambda db: seed(db, args.admin_email, args.borrower_email, args.password)
        )
    except Exception as e:
        print(f"Database error: {e}", file=sys.stderr)
        sys.exit(1)

    print(f"Admin patron: {admin.id} ({admin.email})")
    print(f"Borrower patron: {borrower.id} ({borrower.email})")
    for item in items:
        print(f"Item {item.id}: {item.title} x{item.total_copies}")


if __name__ == "__main__":
    main()
