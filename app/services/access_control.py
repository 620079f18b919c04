"""Role-based access decisions for protected routes (OR semantics, case-insensitive)."""

from collections.abc import Iterable
from enum import Enum

from app.core.exceptions import AuthRequiredError
from app.models import User


class Decision(str, Enum):
    ALLOWED = "allowed"
    DENIED = "denied"


def parse_role_specifier(specifier: str) -> frozenset[str]:
    """Parse "Admin | Super Admin" into {"Admin", "Super Admin"}."""
    return frozenset(part.strip() for part in specifier.split("|") if part.strip())


def _fold(name: str) -> str:
    return " ".join(name.split()).lower()


def has_role(user_roles: Iterable[str], roles: str | Iterable[str]) -> bool:
    """True if any of roles is among user_roles, ignoring case and surrounding whitespace."""
    wanted = {_fold(roles)} if isinstance(roles, str) else {_fold(r) for r in roles}
    return any(_fold(r) in wanted for r in user_roles)


def authorize(user: User | None, required_roles: Iterable[str]) -> Decision:
    """ALLOWED iff the user holds at least one required role. No user raises AuthRequiredError."""
    if user is None:
        raise AuthRequiredError()
    if has_role(user.role_names, required_roles):
        return Decision.ALLOWED
    return Decision.DENIED
