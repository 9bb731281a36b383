#!/usr/bin/env python3
import argparse
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from loanly.core import auth
from loanly.core.db import run_in_transaction
from loanly.core.patrons import Patrons
from loanly.core.exceptions import PatronNotFoundError


def main():
    parser = argparse.ArgumentParser(description="Print a bearer token for a Loanly patron")
    parser.add_argument("--patron-id", type=int, required=True)
    args = parser.parse_args()

    try:
        patron = run_in_transaction(lambda db: Patrons.find(db, args.patron_id))
    except PatronNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    print(auth.create_token(patron.id, patron.role))


if __name__ == "__main__":
    main()
