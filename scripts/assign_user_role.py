#!/usr/bin/env python3
"""
Assign a role to a specific user.

The role endpoint itself requires an ADMIN, so this is how the first admin
gets created. Also useful for fixing roles by hand.

Usage:
    python -m scripts.assign_user_role --external-id user_2abc --role ADMIN
    python -m scripts.assign_user_role --external-id user_2abc --role EMPLOYER --dry-run
"""

import argparse
import asyncio
import sys
from pathlib import Path

# Path setup
THIS_FILE = Path(__file__).resolve()
PROJECT_ROOT = THIS_FILE.parents[1]

if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from app.core.errors import BloomPointError
from app.core.logging import configure_logging, get_logger
from app.core.request_id import with_run_id
from app.models.users import UserRole
from services.db_service import close_db_pool, init_db_pool
from services.user_directory_service import find_user, parse_role, set_role

configure_logging(service_name="script")
logger = get_logger()


def parse_args(argv=None) -> argparse.Namespace:
    ap = argparse.ArgumentParser(
        description="Assign a role to a specific user"
    )
    ap.add_argument(
        "--external-id",
        required=True,
        help="Identity provider user id (the token's 'sub')"
    )
    ap.add_argument(
        "--role",
        required=True,
        help=f"Role to assign: {', '.join(r.value for r in UserRole)}"
    )
    ap.add_argument(
        "--dry-run",
        action="store_true",
        help="Don't actually assign the role, just show what would be done"
    )
    return ap.parse_args(argv)


async def main_async(argv=None) -> int:
    args = parse_args(argv)

    try:
        role = parse_role(args.role)
    except BloomPointError as e:
        print(f"ERROR: {e.message}")
        return 1

    await init_db_pool()
    try:
        user = await find_user(args.external_id)
        if user is None:
            print(f"ERROR: User not found: {args.external_id}")
            print("The user must call GET /api/me once before a role can be assigned.")
            return 1

        print(f"\n[AssignRole] User: {user.external_id}")
        print(f"  - Internal id: {user.id}")
        print(f"  - Name: {user.name or 'Unknown'}")
        print(f"  - Current role: {user.role.value}")
        print(f"  - Role to assign: {role.value}")

        if args.dry_run:
            print(f"\n  -> DRY RUN: would assign {role.value}")
            return 0

        updated = await set_role(user.external_id, role)
        print(f"\n  Role assigned: {updated.role.value}")
        logger.info("assign_role_success", user_id=str(updated.id), role=updated.role.value)
        return 0
    finally:
        await close_db_pool()


def main() -> None:
    with with_run_id():
        sys.exit(asyncio.run(main_async()))


if __name__ == "__main__":
    main()
