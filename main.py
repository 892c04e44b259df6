#!/usr/bin/env python3
"""
Account service admin CLI.

Operator tasks that must not be reachable over HTTP. Settings come from the
environment (and .env) exactly as they do for the API server.

Usage:
  python main.py init-db
  python main.py create-role moderator
  python main.py reset-password user@example.com 'N3w!Passw0rd'
"""

import argparse
import asyncio
import logging
import sys
from typing import Optional

from sqlalchemy.exc import IntegrityError

from auth.notifier import Notifier, build_mailer
from auth.service import AuthService
from auth.store import UserStore
from core.config import get_settings
from core.errors import AccountError


def _init_db(store: UserStore, args: argparse.Namespace) -> int:
    # UserStore creates the tables and default roles on construction.
    roles = ", ".join(r.role_name for r in store.list_roles())
    print(f"  Database ready. Roles: {roles}")
    return 0


def _create_role(store: UserStore, args: argparse.Namespace) -> int:
    try:
        role_id = store.create_role(args.role_name)
    except IntegrityError:
        print(f"  [!] Role {args.role_name} already exists")
        return 1
    print(f"  Created role {args.role_name} (id={role_id})")
    return 0


def _reset_password(store: UserStore, args: argparse.Namespace) -> int:
    settings = get_settings()
    service = AuthService(store, settings, Notifier(build_mailer(settings), settings.app_name))
    try:
        asyncio.run(service.reset_password(args.email, args.password))
    except AccountError as exc:
        print(f"  [!] {exc.message}")
        return 1
    print(f"  Password reset for {args.email}")
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="accounts-admin",
        description="Administrative tasks for the account service.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py init-db
  python main.py create-role moderator
  DATABASE_URL=postgresql://... python main.py reset-password user@example.com 'N3w!Passw0rd'
        """,
    )
    parser.add_argument(
        "--database-url",
        metavar="URL",
        default=None,
        help="Override DATABASE_URL from the environment",
    )
    sub = parser.add_subparsers(dest="command", metavar="COMMAND")

    init_db = sub.add_parser("init-db", help="Create tables and seed the default roles")
    init_db.set_defaults(handler=_init_db)

    create_role = sub.add_parser("create-role", help="Add a role to the lookup table")
    create_role.add_argument("role_name", help="Role name (unique)")
    create_role.set_defaults(handler=_create_role)

    reset = sub.add_parser("reset-password", help="Set a user's password without OTP or token checks")
    reset.add_argument("email", help="Email of the account")
    reset.add_argument("password", help="New password (must satisfy the password policy)")
    reset.set_defaults(handler=_reset_password)

    args = parser.parse_args(argv)
    if not getattr(args, "handler", None):
        parser.print_help()
        return 2

    logging.basicConfig(level=logging.WARNING, format="%(levelname)-5s %(name)s %(message)s")
    store = UserStore(args.database_url or get_settings().database_url)
    try:
        return args.handler(store, args)
    finally:
        store.close()


if __name__ == "__main__":
    sys.exit(main())
