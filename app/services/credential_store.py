"""
Credential store: the only owner of user rows, password hashes and role memberships.

Outside a transaction() block every mutation commits immediately. Inside one,
mutations are flushed and committed once when the block exits, or rolled back
together if it raises.
"""

from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from datetime import datetime, timezone

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.exceptions import ConflictError, NotFoundError
from app.core.security import hash_password
from app.models import Role, User


def normalize_email(email: str) -> str:
    return email.strip().lower()


class CredentialStore:
    def __init__(self, session: Session) -> None:
        self.session = session
        self._depth = 0

    @contextmanager
    def transaction(self) -> Iterator["CredentialStore"]:
        """All-or-nothing scope; nested scopes join the outermost one."""
        self._depth += 1
        try:
            yield self
        except BaseException:
            self._depth -= 1
            if self._depth == 0:
                self.session.rollback()
            raise
        self._depth -= 1
        if self._depth == 0:
            self.session.commit()

    def _persist(self) -> None:
        if self._depth:
            self.session.flush()
        else:
            self.session.commit()

    def find_by_email(self, email: str) -> User | None:
        return (
            self.session.query(User)
            .filter(User.email == normalize_email(email))
            .first()
        )

    def find_by_id(self, user_id: int) -> User:
        user = self.session.get(User, user_id)
        if user is None:
            raise NotFoundError("User not found.")
        return user

    def create(self, name: str, email: str, password: str) -> User:
        """Create a user with a freshly hashed password. Raises ConflictError on duplicate email."""
        email = normalize_email(email)
        if self.find_by_email(email) is not None:
            raise ConflictError("The email has already been taken.")
        user = User(name=name.strip(), email=email, password_hash=hash_password(password))
        self.session.add(user)
        try:
            self._persist()
        except IntegrityError as e:
            # Concurrent registration with the same email won the unique index.
            self.session.rollback()
            raise ConflictError("The email has already been taken.") from e
        return user

    def update_password_hash(self, user: User, new_password: str) -> None:
        """Only write path for password_hash; always re-hashes the plaintext."""
        user.password_hash = hash_password(new_password)
        self._persist()

    def mark_email_verified(self, user: User) -> bool:
        """Set email_verified_at once. Returns False (no-op) if it was already set."""
        if user.email_verified_at is not None:
            return False
        user.email_verified_at = datetime.now(timezone.utc)
        self._persist()
        return True

    def roles_of(self, user: User) -> set[str]:
        return {role.name for role in user.roles}

    def sync_roles(self, user: User, role_ids: Iterable[int]) -> None:
        """Replace the user's whole membership set with role_ids."""
        ids = set(role_ids)
        roles = self.session.query(Role).filter(Role.id.in_(ids)).all() if ids else []
        if len(roles) != len(ids):
            missing = sorted(ids - {r.id for r in roles})
            raise NotFoundError(f"Role ids not found: {missing}")
        user.roles = roles
        self._persist()

