"""Operator commands: plan seeding, master promotion and data repairs.

Usage::

    python -m listshub.manage seed-plans
    python -m listshub.manage promote-master someone@example.com
    python -m listshub.manage recalculate-seats
    python -m listshub.manage migrate-legacy-roles
    python -m listshub.manage change-plan someone@example.com premium
"""
import argparse
import logging
import sys
from typing import List, Optional

import psycopg2
from dotenv import load_dotenv

from listshub import app_context
from listshub.app.errors import DOMAIN_ERRORS
from listshub.app.services.maintenance import get_maintenance_service
from listshub.config import load_config

logger = logging.getLogger("maintenance")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="listshub.manage", description=__doc__.splitlines()[0])
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("seed-plans", help="Write the built-in plan catalog to the plans table")

    promote = commands.add_parser("promote-master", help="Give an account the master role and plan")
    promote.add_argument("email")

    commands.add_parser("recalculate-seats", help="Recount used seats for every titular account")
    commands.add_parser("migrate-legacy-roles", help="Rewrite families still using the legacy owner role")

    change = commands.add_parser("change-plan", help="Move a titular account to another plan")
    change.add_argument("email")
    change.add_argument("plan_id")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    load_dotenv()
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s %(message)s")
    args = _build_parser().parse_args(argv)

    config = load_config()
    app_context.configure(get_conn=lambda: psycopg2.connect(**config.db_params))
    service = get_maintenance_service()

    try:
        if args.command == "seed-plans":
            seeded = service.seed_plan_catalog()
            print(f"Seeded plans: {', '.join(seeded)}")
        elif args.command == "promote-master":
            user = service.promote_to_master(args.email)
            print(f"{user.email} is now a master account")
        elif args.command == "recalculate-seats":
            results = service.recalculate_seats()
            changed = [result for result in results if result.changed]
            print(f"Checked {len(results)} titular accounts, updated {len(changed)}")
        elif args.command == "migrate-legacy-roles":
            migrated = service.migrate_legacy_roles()
            print(f"Migrated {len(migrated)} families")
        elif args.command == "change-plan":
            user = service.change_plan(args.email, args.plan_id)
            print(f"{user.email} is now on plan {user.billing.plan_id}")
    except DOMAIN_ERRORS as exc:
        logger.error("%s failed: %s", args.command, exc)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
