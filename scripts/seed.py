#!/usr/bin/env python3
"""
Seed the Scriber database with the default plans and an admin account.

Usage:
    python scripts/seed.py --admin-email admin@example.com --admin-password secret123

Without arguments the ADMIN_EMAIL and ADMIN_PASSWORD settings are used; when
neither is set only the plans are created.
"""

import argparse
import logging
import sys

from scriber.core.database import get_database_manager, init_database
from scriber.services.admin_service import AdminService

logger = logging.getLogger("scriber.seed")


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Seed default plans and an admin user")
    parser.add_argument("--admin-email", help="Admin account email")
    parser.add_argument("--admin-password", help="Admin account password")
    return parser.parse_args()


def main() -> int:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    args = parse_args()

    init_database()
    try:
        with get_database_manager().session_scope() as db:
            result = AdminService().seed_defaults(
                db, admin_email=args.admin_email, admin_password=args.admin_password
            )
    except Exception as e:
        logger.error(f"Seeding failed: {e}")
        return 1

    created = ", ".join(result["plans_created"]) or "none"
    print(f"Plans created: {created}")
    print(f"Admin created: {'yes' if result['admin_created'] else 'no'}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
