"""
synapse.manage — Operator commands for ``python -m synapse.manage``
====================================================================

Admin accounts are created through ``/api/auth/signup-admin`` with no
permissions.  An operator grants them from the shell::

    python -m synapse.manage init-db
    python -m synapse.manage list-admins
    python -m synapse.manage grant SYN-ADMIN-ABC-0001 manage_events manage_sponsors
    python -m synapse.manage revoke SYN-ADMIN-ABC-0001 manage_sponsors
"""

from __future__ import annotations

import argparse
import logging
import sys

from dotenv import load_dotenv

from synapse.constants import ALL_PERMISSIONS
from synapse.database.engine import create_db_engine, init_db
from synapse.database.store import DocumentStore
from synapse.services.user_service import (
    get_admin_document,
    list_admins,
    lookup_by_synapse_id,
    set_admin_permissions,
)

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s │ %(levelname)-8s │ %(name)s │ %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("synapse")

OPERATOR = "cli"


def _find_admin(store: DocumentStore, synapse_id: str):
    profile = lookup_by_synapse_id(store, synapse_id.upper())
    admin = get_admin_document(store, profile.uid) if profile is not None else None
    if admin is None:
        logger.error("No admin with Synapse ID %s", synapse_id)
    return admin


def cmd_init_db(store: DocumentStore, args: argparse.Namespace) -> int:
    init_db(store.engine)
    return 0


def cmd_list_admins(store: DocumentStore, args: argparse.Namespace) -> int:
    for admin in list_admins(store):
        perms = ", ".join(admin.permissions) or "(none)"
        print(f"{admin.synapse_id:<22} {admin.email:<32} {perms}")
    return 0


def _change(store: DocumentStore, args: argparse.Namespace, *, grant: bool) -> int:
    admin = _find_admin(store, args.synapse_id)
    if admin is None:
        return 1
    current = set(admin.permissions)
    wanted = current | set(args.permissions) if grant else current - set(args.permissions)
    result = set_admin_permissions(store, admin.uid, sorted(wanted), actor_id=OPERATOR)
    if not result.success:
        logger.error(result.error)
        return 1
    logger.info("%s now holds: %s", admin.synapse_id, ", ".join(sorted(wanted)) or "(none)")
    return 0


def cmd_grant(store: DocumentStore, args: argparse.Namespace) -> int:
    return _change(store, args, grant=True)


def cmd_revoke(store: DocumentStore, args: argparse.Namespace) -> int:
    return _change(store, args, grant=False)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="python -m synapse.manage")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init-db", help="create tables and default documents").set_defaults(
        func=cmd_init_db)
    sub.add_parser("list-admins", help="show admins and their permissions").set_defaults(
        func=cmd_list_admins)

    for name, func in (("grant", cmd_grant), ("revoke", cmd_revoke)):
        p = sub.add_parser(name, help=f"{name} admin permissions")
        p.add_argument("synapse_id")
        p.add_argument("permissions", nargs="+", choices=ALL_PERMISSIONS)
        p.set_defaults(func=func)
    return parser


def main(argv: list[str] | None = None) -> int:
    load_dotenv()
    args = build_parser().parse_args(argv)
    store = DocumentStore(create_db_engine())
    return args.func(store, args)


if __name__ == "__main__":
    sys.exit(main())
