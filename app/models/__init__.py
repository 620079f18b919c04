"""SQLAlchemy ORM models."""

from app.models.base import Base
from app.models.user import User, role_user
from app.models.role import Role
from app.models.access_token import AccessToken
from app.models.password_reset_token import PasswordResetToken

__all__ = ["AccessToken", "Base", "PasswordResetToken", "Role", "User", "role_user"]
