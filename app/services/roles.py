"""
Role resolution and the role-assignment policy applied at registration.

Rules are checked in order and the first failing one wins:
  1. every requested role exists
  2. restricted roles (Admin, Super Admin) need an authenticated caller who
     holds a restricted role, and may not be mixed with other roles
  3. Subscriber requires User
"""

from collections.abc import Iterable

from sqlalchemy.orm import Session

from app.core.exceptions import ValidationError
from app.models import Role, User

SUPER_ADMIN = "Super Admin"
ADMIN = "Admin"
SUBSCRIBER = "Subscriber"
USER = "User"

DEFAULT_ROLES = (SUPER_ADMIN, ADMIN, SUBSCRIBER, USER)
RESTRICTED_ROLES = frozenset({ADMIN, SUPER_ADMIN})

MSG_AUTH_REQUIRED = "Authentication is required to assign admin roles."
MSG_NOT_ADMINISTRATOR = "Only existing administrators can assign Admin or Super Admin roles."
MSG_MIXED_RESTRICTED = "If Admin or Super Admin is selected, no other roles are allowed."
MSG_SUBSCRIBER_NEEDS_USER = "The Subscriber role requires the User role."


class RolePolicyError(ValidationError):
    """
    A requested role set was rejected. Reported on the `roles` field.

    reason is one of: unknown_role, auth_required, forbidden, mixed_restricted,
    subscriber_requires_user.
    """

    def __init__(self, reason: str, message: str) -> None:
        self.reason = reason
        super().__init__(errors={"roles": [message]})


def normalize_role_name(name: str) -> str:
    """Title-case each word ("super admin" -> "Super Admin"), collapsing whitespace."""
    return " ".join(word[:1].upper() + word[1:] for word in name.split())


def is_restricted(name: str) -> bool:
    return name in RESTRICTED_ROLES


def is_administrator(role_names: Iterable[str]) -> bool:
    lowered = {r.strip().lower() for r in role_names}
    return any(r.lower() in lowered for r in RESTRICTED_ROLES)


class RoleResolver:
    def __init__(self, session: Session) -> None:
        self.session = session

    def ids_for_names(self, names: Iterable[str]) -> set[int]:
        """Map role names to ids. Raises RolePolicyError naming the first unknown role."""
        wanted = sorted(set(names))
        found = {
            role.name: role.id
            for role in self.session.query(Role).filter(Role.name.in_(wanted)).all()
        } if wanted else {}
        for name in wanted:
            if name not in found:
                raise RolePolicyError("unknown_role", f"The selected role '{name}' is invalid.")
        return set(found.values())

    def check_registration_policy(
        self,
        requested: Iterable[str],
        caller: User | None,
        caller_roles: Iterable[str] = (),
    ) -> set[int]:
        """
        Validate a registration's requested roles against the policy.

        caller is the user resolved from the request's bearer token (None if
        absent or unresolvable). Returns the role ids to assign.
        """
        names = set(requested)
        role_ids = self.ids_for_names(names)

        restricted = {name for name in names if is_restricted(name)}
        if restricted:
            if caller is None:
                raise RolePolicyError("auth_required", MSG_AUTH_REQUIRED)
            if not is_administrator(caller_roles):
                raise RolePolicyError("forbidden", MSG_NOT_ADMINISTRATOR)
            if names - restricted:
                raise RolePolicyError("mixed_restricted", MSG_MIXED_RESTRICTED)

        if SUBSCRIBER in names and USER not in names:
            raise RolePolicyError("subscriber_requires_user", MSG_SUBSCRIBER_NEEDS_USER)

        return role_ids

    def seed_defaults(self) -> list[str]:
        """Insert any missing default roles. Returns the names created."""
        existing = {name for (name,) in self.session.query(Role.name).all()}
        created = [name for name in DEFAULT_ROLES if name not in existing]
        for name in created:
            self.session.add(Role(name=name))
        if created:
            self.session.commit()
        return created
