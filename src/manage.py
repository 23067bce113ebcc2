"""Payments database management CLI.

Usage:
    python src/manage.py setup-db        # Create all tables
    python src/manage.py drop-db         # Drop all tables
    python src/manage.py seed-products   # Load the demo product catalogue
"""

import argparse
import sys


def _get_domain():
    from payments.domain import payments

    print("Initializing payments domain...")
    payments.init()
    return payments


def setup_database():
    """Create the payments database schema."""
    from payments.utils.db import setup_db

    domain = _get_domain()
    print("Creating payments database schema...")
    setup_db(domain)
    print("Done.")


def drop_database():
    """Drop the payments database schema."""
    from payments.utils.db import drop_db

    domain = _get_domain()
    print("Dropping payments database schema...")
    drop_db(domain)
    print("Done.")


def seed_products():
    """Load the demo catalogue, skipping products that already exist."""
    from payments.product.catalog import seed_products as seed

    domain = _get_domain()
    with domain.domain_context():
        created = seed()
    print(f"Seeded {len(created)} products.")
    print("Done.")


def main():
    parser = argparse.ArgumentParser(description="Payments database management")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("setup-db", help="Create all database tables")
    subparsers.add_parser("drop-db", help="Drop all database tables")
    subparsers.add_parser("seed-products", help="Load the demo product catalogue")

    args = parser.parse_args()

    if args.command == "setup-db":
        setup_database()
    elif args.command == "drop-db":
        drop_database()
    elif args.command == "seed-products":
        seed_products()
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
