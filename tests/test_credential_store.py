"""Tests for CredentialStore against an in-memory database."""

import unittest

from app.core.exceptions import ConflictError, NotFoundError
from app.core.security import verify_password
from app.models import User
from app.services.credential_store import CredentialStore
from app.services.roles import RoleResolver
from tests.support import make_session


class TestCredentialStore(unittest.TestCase):
    def setUp(self) -> None:
        self.session = make_session()
        self.store = CredentialStore(self.session)
        self.roles = RoleResolver(self.session)

    def tearDown(self) -> None:
        self.session.close()

    def test_create_lowercases_email_and_hashes_password(self) -> None:
        user = self.store.create("John", "John.Doe@Example.com", "secret123")
        self.assertEqual(user.email, "john.doe@example.com")
        self.assertNotEqual(user.password_hash, "secret123")
        self.assertTrue(verify_password("secret123", user.password_hash))
        self.assertIsNone(user.email_verified_at)

    def test_find_by_email_is_case_insensitive(self) -> None:
        user = self.store.create("John", "john@example.com", "secret123")
        self.assertEqual(self.store.find_by_email(" JOHN@example.com ").id, user.id)
        self.assertIsNone(self.store.find_by_email("nobody@example.com"))

    def test_duplicate_email_conflicts(self) -> None:
        self.store.create("John", "john@example.com", "secret123")
        with self.assertRaises(ConflictError):
            self.store.create("Other", "JOHN@example.com", "secret456")

    def test_find_by_id_missing(self) -> None:
        with self.assertRaises(NotFoundError) as ctx:
            self.store.find_by_id(999)
        self.assertEqual(ctx.exception.message, "User not found.")

    def test_mark_email_verified_only_once(self) -> None:
        user = self.store.create("John", "john@example.com", "secret123")
        self.assertTrue(self.store.mark_email_verified(user))
        first = user.email_verified_at
        self.assertFalse(self.store.mark_email_verified(user))
        self.assertEqual(user.email_verified_at, first)

    def test_update_password_hash_rehashes(self) -> None:
        user = self.store.create("John", "john@example.com", "secret123")
        old_hash = user.password_hash
        self.store.update_password_hash(user, "newsecret")
        self.assertNotEqual(user.password_hash, old_hash)
        self.assertTrue(verify_password("newsecret", user.password_hash))

    def test_sync_roles_replaces_membership(self) -> None:
        user = self.store.create("John", "john@example.com", "secret123")
        self.store.sync_roles(user, self.roles.ids_for_names(["User", "Subscriber"]))
        self.assertEqual(self.store.roles_of(user), {"User", "Subscriber"})
        self.store.sync_roles(user, self.roles.ids_for_names(["User"]))
        self.assertEqual(self.store.roles_of(user), {"User"})

    def test_sync_roles_rejects_unknown_ids(self) -> None:
        user = self.store.create("John", "john@example.com", "secret123")
        with self.assertRaises(NotFoundError):
            self.store.sync_roles(user, [12345])

    def test_transaction_rolls_back_everything_on_error(self) -> None:
        with self.assertRaises(RuntimeError):
            with self.store.transaction():
                user = self.store.create("John", "john@example.com", "secret123")
                self.store.sync_roles(user, self.roles.ids_for_names(["User"]))
                raise RuntimeError("mail down")
        self.assertEqual(self.session.query(User).count(), 0)

    def test_nested_transaction_commits_once_at_the_outermost_level(self) -> None:
        with self.store.transaction():
            with self.store.transaction():
                self.store.create("John", "john@example.com", "secret123")
            self.assertEqual(self.store._depth, 1)
        self.assertEqual(self.store._depth, 0)
        self.assertIsNotNone(self.store.find_by_email("john@example.com"))
