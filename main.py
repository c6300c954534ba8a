#!/usr/bin/env python3
"""
ProjectHub -- administration CLI.

Usage:
  python main.py create-admin --username admin --email admin@example.com
  python main.py create-admin --username admin --email admin@example.com --password 's3cret'
  python main.py serve
  python main.py serve --host 0.0.0.0 --port 8000 --reload

create-admin is the only way to bootstrap the first admin account: the
register endpoint always creates non-admin users. When --password is omitted
the password is read with getpass so it never lands in shell history.

Environment variables:
  DATABASE_URL           Store location (default: sqlite file next to this script)
  ACCESS_TOKEN_SECRET    Required unless DEBUG=true
  REFRESH_TOKEN_SECRET   Required unless DEBUG=true
"""

import argparse
import getpass
import logging
import sys
from typing import Optional

from auth import accounts
from auth.store import UserStore
from core.errors import AppError

logger = logging.getLogger("projecthub.cli")


def create_admin(store: UserStore, username: str, email: str, password: str) -> int:
    """Create an active admin account and return its id.

    Goes through accounts.register() so the duplicate checks and password
    hashing are the same as for self-registration. The admin flag is part of
    the single insert. Raises Conflict if the username or email is taken.
    """
    user_id = accounts.register(store, username, email, password, is_admin=True)
    logger.info("Created admin user_id=%d", user_id)
    return user_id


def _read_password(given: Optional[str]) -> str:
    if given:
        return given
    password = getpass.getpass("Password: ")
    if password != getpass.getpass("Repeat password: "):
        print("  [!] Passwords do not match.")
        sys.exit(1)
    if not password:
        print("  [!] Password must not be empty.")
        sys.exit(1)
    return password


def _cmd_create_admin(args: argparse.Namespace) -> None:
    password = _read_password(args.password)
    store = UserStore(args.database_url)
    try:
        user_id = create_admin(store, args.username, args.email, password)
    except AppError as exc:
        print(f"  [!] {exc.client_msg}")
        sys.exit(1)
    finally:
        store.close()
    print(f"  Admin '{args.username}' created (id {user_id}).")


def _cmd_serve(args: argparse.Namespace) -> None:
    import uvicorn

    uvicorn.run("asgi:app", host=args.host, port=args.port, reload=args.reload)


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)-5s %(name)s %(message)s")

    parser = argparse.ArgumentParser(
        prog="projecthub",
        description="ProjectHub administration: bootstrap admins and run the API server.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    admin_parser = subparsers.add_parser("create-admin", help="Create an active admin account")
    admin_parser.add_argument("--username", required=True)
    admin_parser.add_argument("--email", required=True)
    admin_parser.add_argument("--password", help="Prompted for when omitted")
    admin_parser.add_argument("--database-url", help="Override DATABASE_URL")
    admin_parser.set_defaults(func=_cmd_create_admin)

    serve_parser = subparsers.add_parser("serve", help="Run the API with uvicorn")
    serve_parser.add_argument("--host", default="127.0.0.1")
    serve_parser.add_argument("--port", type=int, default=8000)
    serve_parser.add_argument("--reload", action="store_true", help="Restart on code changes (development)")
    serve_parser.set_defaults(func=_cmd_serve)

    args = parser.parse_args()
    args.func(args)


if __name__ == "__main__":
    main()
