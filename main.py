#!/usr/bin/env python3
"""
Acquisitions API -- administrative command line.

Admin accounts are created here rather than through public signup, so role
assignment never depends on a client-supplied field.

Usage:
  python main.py serve
  python main.py serve --host 0.0.0.0 --port 3000 --reload
  python main.py create-admin --name "Ann Admin" --email ann@example.com
  python main.py promote --email bob@example.com

Environment variables:
  DATABASE_URL  SQLAlchemy URL of the user database (default: sqlite:///acquisitions.db)
  SECRET_KEY    JWT signing key, required when ENVIRONMENT=production
"""

import argparse
import getpass
import logging
import sys

from auth.errors import DuplicateEmailError, HashingError
from auth.models import User, normalize_email
from auth.passwords import hash_password
from auth.store import UserStore
from core.config import get_settings

logger = logging.getLogger("acquisitions.cli")

_MIN_PASSWORD = 8
_MAX_PASSWORD = 128


def _read_password() -> str | None:
    """Prompt twice for a password. Returns None if invalid or mismatched."""
    password = getpass.getpass("Password: ")
    if not _MIN_PASSWORD <= len(password) <= _MAX_PASSWORD:
        print(f"  [!] Password must be {_MIN_PASSWORD}-{_MAX_PASSWORD} characters.")
        return None
    if getpass.getpass("Confirm password: ") != password:
        print("  [!] Passwords do not match.")
        return None
    return password


def create_admin(store: UserStore, name: str, email: str) -> int:
    password = _read_password()
    if password is None:
        return 1
    try:
        user = store.create_user(
            User(name=name.strip(), email=email, role="admin", hashed_password=hash_password(password))
        )
    except DuplicateEmailError:
        print(f"  [!] A user with email {normalize_email(email)} already exists. Use 'promote' instead.")
        return 1
    except HashingError:
        print("  [!] Could not hash the password.")
        return 1
    logger.info("Admin created with email: %s", user.email)
    print(f"  Admin {user.email} created (id={user.id}).")
    return 0


def promote(store: UserStore, email: str) -> int:
    user = store.get_by_email(email)
    if user is None:
        print(f"  [!] No user with email {normalize_email(email)}.")
        return 1
    if user.role == "admin":
        print(f"  {user.email} is already an admin.")
        return 0
    store.update_user(user.id, role="admin")
    logger.info("User promoted to admin: %s", user.email)
    print(f"  {user.email} is now an admin.")
    return 0


def serve(host: str, port: int, reload: bool) -> int:
    import uvicorn

    uvicorn.run("asgi:app", host=host, port=port, reload=reload)
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="acquisitions",
        description="Administrative commands for the Acquisitions API.",
    )
    sub = parser.add_subparsers(dest="command", metavar="COMMAND")

    serve_parser = sub.add_parser("serve", help="Run the API with uvicorn")
    serve_parser.add_argument("--host", default="127.0.0.1")
    serve_parser.add_argument("--port", type=int, default=3000)
    serve_parser.add_argument("--reload", action="store_true", help="Reload on code changes (development)")

    admin_parser = sub.add_parser("create-admin", help="Create an admin account")
    admin_parser.add_argument("--name", required=True)
    admin_parser.add_argument("--email", required=True)

    promote_parser = sub.add_parser("promote", help="Give an existing user the admin role")
    promote_parser.add_argument("--email", required=True)

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 1

    logging.basicConfig(level=get_settings().log_level.upper(), format="%(levelname)-5s %(name)s %(message)s")

    if args.command == "serve":
        return serve(args.host, args.port, args.reload)

    store = UserStore()
    try:
        if args.command == "create-admin":
            return create_admin(store, args.name, args.email)
        return promote(store, args.email)
    finally:
        store.close()


if __name__ == "__main__":
    sys.exit(main())
