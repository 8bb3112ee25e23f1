"""Database models for the Contact Manager API.

This module defines SQLAlchemy ORM models used by the application.
"""

from enum import Enum as PyEnum

from sqlalchemy import (
    Column,
    Integer,
    String,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    func,
)
from sqlalchemy.orm import relationship

from .database import Base
from .security import get_password_hash


class Role(str, PyEnum):
    """Closed set of authorization roles."""

    USER = "user"
    ADMIN = "admin"


class User(Base):
    """
    SQLAlchemy model representing an application user.

    A user owns contacts and has exactly one role. Emails are stored
    trimmed and lower-cased, so the unique index is case-insensitive.
    """

    __tablename__ = "Users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(100), unique=True, nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    hashed_password = Column("password", String(255), nullable=False)
    role = Column(
        Enum(
            Role,
            name="user_role",
            native_enum=False,
            values_callable=lambda roles: [role.value for role in roles],
        ),
        default=Role.USER,
        nullable=False,
    )
    created_at = Column("createdAt", DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(
        "updatedAt",
        DateTime,
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    #: List of contacts owned by the user
    contacts = relationship(
        "Contact",
        back_populates="owner",
        cascade="all, delete",
        passive_deletes=True,
    )

    def set_password(self, plaintext: str) -> None:
        """Hash ``plaintext`` with a fresh salt and store the hash."""
        self.hashed_password = get_password_hash(plaintext)

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email='{self.email}', role={self.role!r})>"


class Contact(Base):
    """
    SQLAlchemy model representing a contact entry.

    Each contact belongs to exactly one user and is removed together
    with its owner.
    """

    __tablename__ = "Contacts"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False, index=True)
    email = Column(String(255), nullable=False, index=True)
    place = Column(String(255), nullable=False)
    dob = Column(Date, nullable=False)
    created_at = Column("createdAt", DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(
        "updatedAt",
        DateTime,
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    #: Identifier of the owning user
    user_id = Column(
        "userId",
        Integer,
        ForeignKey("Users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    #: Reference to the owning User object
    owner = relationship("User", back_populates="contacts")

    def __repr__(self) -> str:
        return f"<Contact(id={self.id}, user_id={self.user_id})>"
