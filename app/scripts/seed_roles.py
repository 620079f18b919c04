"""
Insert the default roles (Super Admin, Admin, Subscriber, User). Run from project root:
  python -m app.scripts.seed_roles
Safe to run repeatedly; existing roles are left alone.
"""
import sys

from app.core.database import SessionLocal
from app.services.roles import RoleResolver


def main() -> int:
    db = SessionLocal()
    try:
        created = RoleResolver(db).seed_defaults()
        if created:
            print(f"Created roles: {', '.join(created)}.")
        else:
            print("All default roles already exist.")
        return 0
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
