#!/usr/bin/env python3
"""
Check Category Trees
Reports sibling groups with display order gaps and broken parent links,
optionally renumbering the groups in place.
"""

import argparse
import asyncio
import sys

from category_tree.config import configure_logging
from category_tree.database import async_session, engine, init_db
from category_tree.services.integrity import check_tree, repair_order


def print_info(msg):
    print(f"\033[0;32m[INFO]\033[0m {msg}")


def print_warn(msg):
    print(f"\033[1;33m[WARN]\033[0m {msg}")


def print_error(msg):
    print(f"\033[0;31m[ERROR]\033[0m {msg}")


async def run(owner_id, domain_type, repair):
    async with async_session() as db:
        issues = await check_tree(db, owner_id=owner_id, domain_type=domain_type)
        if not issues:
            print_info("All category trees are consistent")
            return 0

        for issue in issues:
            print_warn(f"{issue.kind} (category {issue.category_id}): {issue.detail}")

        if repair:
            repaired = await repair_order(db, owner_id=owner_id, domain_type=domain_type)
            print_info(f"Renumbered {repaired} sibling groups")
            remaining = await check_tree(db, owner_id=owner_id, domain_type=domain_type)
            if remaining:
                print_error(f"{len(remaining)} issues need manual attention")
                return 1
            return 0

        print_warn("Run again with --repair to renumber sibling groups")
        return 1


async def main_async(args):
    try:
        if args.init_db:
            await init_db()
            print_info("Created missing tables")
        return await run(args.owner_id, args.domain_type, args.repair)
    finally:
        await engine.dispose()


def main():
    parser = argparse.ArgumentParser(
        description="Check category trees for ordering and parent link problems"
    )
    parser.add_argument(
        "--owner-id",
        type=int,
        default=None,
        help="Only check categories of this owner"
    )
    parser.add_argument(
        "--domain-type",
        default=None,
        help="Only check categories of this domain type (post, photo, item, location, ...)"
    )
    parser.add_argument(
        "--repair",
        action="store_true",
        help="Renumber sibling groups with gaps"
    )
    parser.add_argument(
        "--init-db",
        action="store_true",
        help="Create missing tables before checking"
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Logging level (default: from settings)"
    )

    args = parser.parse_args()
    configure_logging(args.log_level)
    sys.exit(asyncio.run(main_async(args)))


if __name__ == "__main__":
    main()
