#!/usr/bin/env python3
"""
HomeCinema admin -- command-line maintenance for the membership database.

Usage:
  python main.py seed-roles
  python main.py seed-roles Admin Member
  python main.py create-user alice alice@example.com --password s3cret --role-id 1
  python main.py lock alice
  python main.py unlock alice
  python main.py roles alice
  python main.py --db-url sqlite:////var/lib/homecinema/auth.db roles alice

Environment variables:
  AUTH_DB_URL   SQLAlchemy URL of the membership database (same as the API).
  SEED_ROLES    JSON list of role names created by seed-roles when none are given.
"""

import argparse
import logging
import sys
from typing import Optional

from auth.errors import MembershipError
from auth.membership import MembershipService
from auth.store import UserStore
from core.config import get_settings

logger = logging.getLogger("homecinema.cli")


def _open_store(db_url: Optional[str]) -> UserStore:
    url = db_url or get_settings().auth_db_url
    return UserStore(url) if url else UserStore()


def _cmd_seed_roles(store: UserStore, args: argparse.Namespace) -> int:
    names = args.names or get_settings().seed_roles
    for role in store.ensure_roles(names):
        print(f"  {role.id:>3}  {role.name}")
    return 0


def _cmd_create_user(store: UserStore, args: argparse.Namespace) -> int:
    membership = MembershipService(store)
    user = membership.create_user(args.username, args.email, args.password, args.role_ids)
    print(f"  Created user '{user.username}' (id={user.id}).")
    return 0


def _cmd_set_locked(store: UserStore, args: argparse.Namespace) -> int:
    user = store.get_by_username(args.username)
    if user is None:
        print(f"  [!] No user named '{args.username}'.")
        return 1
    locked = args.command == "lock"
    MembershipService(store).set_locked(user.id, locked)
    print(f"  User '{user.username}' {'locked' if locked else 'unlocked'}.")
    return 0


def _cmd_roles(store: UserStore, args: argparse.Namespace) -> int:
    roles = sorted(MembershipService(store).get_user_roles(args.username), key=lambda r: r.id)
    if not roles:
        print(f"  '{args.username}' holds no roles.")
        return 0
    for role in roles:
        print(f"  {role.id:>3}  {role.name}")
    return 0


_COMMANDS = {
    "seed-roles": _cmd_seed_roles,
    "create-user": _cmd_create_user,
    "lock": _cmd_set_locked,
    "unlock": _cmd_set_locked,
    "roles": _cmd_roles,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="homecinema-admin",
        description="Maintain HomeCinema users and roles.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py seed-roles Admin Member
  python main.py create-user alice alice@example.com --password s3cret --role-id 1
  python main.py lock alice
  python main.py roles alice
        """,
    )
    parser.add_argument(
        "--db-url",
        metavar="URL",
        default=None,
        help="SQLAlchemy URL of the membership database (default: AUTH_DB_URL or the bundled SQLite file)",
    )
    sub = parser.add_subparsers(dest="command", required=True, metavar="COMMAND")

    seed = sub.add_parser("seed-roles", help="Create missing roles (idempotent)")
    seed.add_argument("names", nargs="*", metavar="NAME", help="Role names (default: SEED_ROLES)")

    create = sub.add_parser("create-user", help="Create a user and assign roles")
    create.add_argument("username")
    create.add_argument("email")
    create.add_argument("--password", required=True, help="Initial password")
    create.add_argument(
        "--role-id",
        dest="role_ids",
        type=int,
        action="append",
        default=[],
        metavar="N",
        help="Role id to assign; repeat for several roles",
    )

    for name, verb in (("lock", "Lock"), ("unlock", "Unlock")):
        p = sub.add_parser(name, help=f"{verb} a user account")
        p.add_argument("username")

    roles = sub.add_parser("roles", help="List the roles a user holds")
    roles.add_argument("username")

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=get_settings().log_level.upper(), format="%(levelname)-5s %(name)s %(message)s")

    store = _open_store(args.db_url)
    try:
        return _COMMANDS[args.command](store, args)
    except MembershipError as exc:
        logger.debug("%s failed: %s", args.command, exc.code)
        print(f"  [!] {exc}")
        return 1
    finally:
        store.close()


if __name__ == "__main__":
    sys.exit(main())
