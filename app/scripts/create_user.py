"""
Create a user (e.g. the first administrator). Run from project root:
  python -m app.scripts.create_user EMAIL PASSWORD NAME [--role ROLE ...] [--verified]
Example:
  python -m app.scripts.create_user admin@example.com your-secure-password "Site Admin" --role "Super Admin" --verified
Roles must exist; run app.scripts.seed_roles first.
"""
import argparse
import sys

from app.core.database import SessionLocal
from app.core.exceptions import AuthAPIError
from app.core.security import NAME_MAX_LEN, PASSWORD_MAX_LEN, PASSWORD_MIN_LEN
from app.services.credential_store import CredentialStore
from app.services.roles import USER, RoleResolver, normalize_role_name


def main() -> int:
    parser = argparse.ArgumentParser(description="Create an Authgate user without the registration flow.")
    parser.add_argument("email", help="Email address (stored lowercase)")
    parser.add_argument("password", help=f"Password ({PASSWORD_MIN_LEN}-{PASSWORD_MAX_LEN} chars)")
    parser.add_argument("name", help="Display name")
    parser.add_argument(
        "--role",
        action="append",
        dest="roles",
        help=f"Role to assign; repeat for several (default: {USER})",
    )
    parser.add_argument("--verified", action="store_true", help="Mark the email as already verified")
    args = parser.parse_args()

    name = args.name.strip()
    if not name or len(name) > NAME_MAX_LEN:
        print("Invalid name length.", file=sys.stderr)
        return 1
    if not (PASSWORD_MIN_LEN <= len(args.password) <= PASSWORD_MAX_LEN):
        print(f"Password must be {PASSWORD_MIN_LEN}-{PASSWORD_MAX_LEN} characters.", file=sys.stderr)
        return 1
    role_names = [normalize_role_name(r) for r in (args.roles or [USER])]

    db = SessionLocal()
    try:
        store = CredentialStore(db)
        role_ids = RoleResolver(db).ids_for_names(role_names)
        with store.transaction():
            user = store.create(name, args.email, args.password)
            store.sync_roles(user, role_ids)
            if args.verified:
                store.mark_email_verified(user)
        email = user.email
    except AuthAPIError as e:
        detail = e.errors or e.message
        print(f"Could not create user: {detail}", file=sys.stderr)
        return 1
    finally:
        db.close()

    print(f"Created user '{email}' with roles {', '.join(sorted(role_names))}.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
