"""ORM model for roles (static reference data)."""

from sqlalchemy import Column, Integer, String
from sqlalchemy.orm import relationship

from app.models.base import Base
from app.models.user import role_user


class Role(Base):
    """Named role; matched case-insensitively at check time."""

    __tablename__ = "roles"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(64), nullable=False, unique=True)

    users = relationship("User", secondary=role_user, back_populates="roles")
