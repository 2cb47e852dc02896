#!/usr/bin/env python3
"""
BloodLink -- command-line administration.

Usage:
  python main.py create-admin --email admin@blooddonation.com --name "System Administrator"
  python main.py create-admin --email admin@blooddonation.com --name Admin --password 'S3cure!pass'
  python main.py serve
  python main.py serve --host 0.0.0.0 --port 8080 --reload

Environment variables:
  SECRET_KEY    Required. At least 32 characters. Generate one with:
                python -c "import secrets; print(secrets.token_hex(32))"
  DATABASE_URL  Optional SQLAlchemy URL. Defaults to bloodlink.db beside the package.
"""

import argparse
import getpass
import sys
from typing import Optional

from core.config import ConfigurationError


def _read_password(given: Optional[str]) -> Optional[str]:
    """Return the password from the flag, or prompt twice for it."""
    if given:
        return given
    first = getpass.getpass("Password: ")
    second = getpass.getpass("Confirm password: ")
    if first != second:
        print("  [!] Passwords do not match.")
        return None
    return first


def create_admin(email: str, name: str, password: Optional[str]) -> int:
    """Seed an admin account. Idempotent: an existing email is reported, not overwritten."""
    # Imported here so `--help` works without a configured SECRET_KEY.
    from audit.models import AuditCategory
    from audit.store import AuditLog
    from auth.errors import ConflictError
    from auth.flows import create_account, record_audit
    from auth.models import Role
    from auth.store import UserStore

    pw = _read_password(password)
    if not pw:
        return 1
    if len(pw) < 6:
        print("  [!] Password must be at least 6 characters.")
        return 1

    store = UserStore()
    audit = AuditLog()
    try:
        user = create_account(store, audit, email=email, password=pw, name=name, role=Role.ADMIN)
        record_audit(audit, AuditCategory.SYSTEM, "Admin user created from CLI", user.id, {"action": "create_admin"})
    except ConflictError:
        print(f"  [=] A user with email {email} already exists.")
        return 0
    except ValueError as e:
        print(f"  [!] {e}")
        return 1
    finally:
        store.close()
        audit.close()
    print(f"  [+] Admin user created: {user.email} (id={user.id})")
    return 0


def serve(host: str, port: int, reload: bool) -> int:
    import uvicorn

    uvicorn.run("api.main:app", host=host, port=port, reload=reload)
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(
        description="BloodLink administration commands.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    sub = parser.add_subparsers(dest="command", required=True)

    p_admin = sub.add_parser("create-admin", help="Create an admin account.")
    p_admin.add_argument("--email", required=True)
    p_admin.add_argument("--name", required=True)
    p_admin.add_argument("--password", help="Prompted for when omitted (recommended).")

    p_serve = sub.add_parser("serve", help="Run the API with uvicorn.")
    p_serve.add_argument("--host", default="127.0.0.1")
    p_serve.add_argument("--port", type=int, default=8000)
    p_serve.add_argument("--reload", action="store_true")

    args = parser.parse_args()
    try:
        if args.command == "create-admin":
            return create_admin(args.email, args.name, args.password)
        return serve(args.host, args.port, args.reload)
    except ConfigurationError as e:
        print(f"  [!] {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
