"""CRUD operations for users and contacts.

This module contains database interaction logic for user and contact
entities, isolated from FastAPI route handlers. Storage faults are
logged and re-raised as ``InternalError``.
"""

import logging

from sqlalchemy import func, select, or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from . import models
from .errors import (
    DuplicateEmail,
    DuplicateUsername,
    InternalError,
    ValidationError,
    WeakPassword,
)
from .security import MIN_PASSWORD_LENGTH

logger = logging.getLogger(__name__)

USERNAME_MIN_LENGTH = 3
USERNAME_MAX_LENGTH = 100


def normalize_email(email: str) -> str:
    """Trim and lower-case an email so lookups are case-insensitive."""
    return email.strip().lower()


def _commit(db: Session) -> None:
    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Database commit failed")
        raise InternalError("Database operation failed") from exc


def _check_password(password: str) -> None:
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        raise WeakPassword(MIN_PASSWORD_LENGTH)


def create_user(
    db: Session,
    username: str,
    email: str,
    password: str,
    role: models.Role = models.Role.USER,
) -> models.User:
    """
    Create and persist a new user.

    Args:
        db (Session): SQLAlchemy database session.
        username (str): Unique display name, 3-100 characters.
        email (str): Unique email address.
        password (str): Plaintext password; hashed before storage.
        role (Role): Authorization role.

    Raises:
        ValidationError: If a field is missing or the username length is wrong.
        WeakPassword: If the password is shorter than six characters.
        DuplicateEmail: If a user with the same email already exists.
        DuplicateUsername: If a user with the same username already exists.

    Returns:
        User: Newly created user instance.
    """
    username = (username or "").strip()
    email = normalize_email(email or "")
    if not username:
        raise ValidationError("username", "Username is required")
    if not email:
        raise ValidationError("email", "Email is required")
    if not USERNAME_MIN_LENGTH <= len(username) <= USERNAME_MAX_LENGTH:
        raise ValidationError(
            "username",
            f"Username must be between {USERNAME_MIN_LENGTH} and "
            f"{USERNAME_MAX_LENGTH} characters",
        )
    _check_password(password)

    if get_user_by_email(db, email):
        raise DuplicateEmail()
    if get_user_by_username(db, username):
        raise DuplicateUsername()

    user = models.User(username=username, email=email, role=models.Role(role))
    user.set_password(password)
    db.add(user)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        if get_user_by_email(db, email):
            raise DuplicateEmail() from exc
        if get_user_by_username(db, username):
            raise DuplicateUsername() from exc
        logger.exception("Unclassified constraint violation creating user")
        raise InternalError("Database operation failed") from exc
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Database commit failed")
        raise InternalError("Database operation failed") from exc
    db.refresh(user)
    return user


def get_user_by_email(db: Session, email: str) -> models.User | None:
    """
    Retrieve a user by email address, ignoring case.

    Args:
        db (Session): Database session.
        email (str): User email.

    Returns:
        User | None: User if found, otherwise ``None``.
    """
    return db.execute(
        select(models.User).where(models.User.email == normalize_email(email))
    ).scalar_one_or_none()


def get_user_by_username(db: Session, username: str) -> models.User | None:
    return db.execute(
        select(models.User).where(models.User.username == username)
    ).scalar_one_or_none()


def get_user_by_id(db: Session, user_id: int) -> models.User | None:
    """
    Retrieve a user by primary key.

    Args:
        db (Session): Database session.
        user_id (int): User identifier.

    Returns:
        User | None: User if found, otherwise ``None``.
    """
    return db.get(models.User, user_id)


def update_user_password(
    db: Session, user: models.User, new_password: str
) -> models.User:
    """
    Re-hash and store a user's password.

    Args:
        db (Session): Database session.
        user (User): Target user.
        new_password (str): New plaintext password.

    Raises:
        WeakPassword: If the password is shorter than six characters.

    Returns:
        User: Updated user instance.
    """
    _check_password(new_password)
    user.set_password(new_password)
    db.add(user)
    _commit(db)
    db.refresh(user)
    return user


def ensure_admin(
    db: Session,
    email: str,
    password: str,
    username: str = "Admin",
    reset_password: bool = False,
) -> tuple[models.User, bool]:
    """
    Make sure an administrator account exists for ``email``.

    An existing account is promoted to admin. A promoted account always
    gets the configured password; an account that is already admin keeps
    its password unless ``reset_password`` is set.

    Returns:
        tuple[User, bool]: The admin user and whether it was created.
    """
    existing = get_user_by_email(db, email)
    if existing is None:
        return create_user(db, username, email, password, models.Role.ADMIN), True

    promoted = existing.role != models.Role.ADMIN
    existing.role = models.Role.ADMIN
    if promoted or reset_password:
        _check_password(password)
        existing.set_password(password)
    if promoted:
        logger.warning("Promoted existing user %s to admin", existing.id)
    db.add(existing)
    _commit(db)
    db.refresh(existing)
    return existing, False


def create_contact(
    db: Session, owner_id: int, name: str, email: str, place: str, dob
) -> models.Contact:
    """
    Persist a new contact owned by ``owner_id``.

    Args:
        db (Session): Database session.
        owner_id (int): Owning user's identifier.
        name (str): Contact name.
        email (str): Contact email.
        place (str): Contact place.
        dob (date): Date of birth.

    Returns:
        Contact: Newly created contact.
    """
    contact = models.Contact(
        name=name, email=email, place=place, dob=dob, user_id=owner_id
    )
    db.add(contact)
    _commit(db)
    db.refresh(contact)
    return contact


def get_contact(db: Session, contact_id: int) -> models.Contact | None:
    """
    Retrieve a single contact by id, regardless of owner.

    Args:
        db (Session): Database session.
        contact_id (int): Contact identifier.

    Returns:
        Contact | None: Contact if found, otherwise ``None``.
    """
    return db.get(models.Contact, contact_id)


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def list_contacts(
    db: Session,
    offset: int,
    limit: int,
    search: str | None = None,
    owner_id: int | None = None,
) -> tuple[list[models.Contact], int]:
    """
    Retrieve one window of contacts, newest first, and the total match count.

    Supports optional case-insensitive search by name, email or place.

    Args:
        db (Session): Database session.
        offset (int): Number of records to skip.
        limit (int): Maximum number of records to return.
        search (str | None): Optional search term.
        owner_id (int | None): Restrict to this owner's contacts.

    Returns:
        tuple[list[Contact], int]: The window and the total number of matches.
    """
    conditions = []
    if owner_id is not None:
        conditions.append(models.Contact.user_id == owner_id)
    if search:
        like_q = f"%{_escape_like(search)}%"
        conditions.append(
            or_(
                models.Contact.name.ilike(like_q, escape="\\"),
                models.Contact.email.ilike(like_q, escape="\\"),
                models.Contact.place.ilike(like_q, escape="\\"),
            )
        )

    count_stmt = select(func.count(models.Contact.id))
    stmt = select(models.Contact)
    if conditions:
        count_stmt = count_stmt.where(*conditions)
        stmt = stmt.where(*conditions)

    total = db.scalar(count_stmt) or 0
    stmt = stmt.order_by(models.Contact.id.desc()).offset(offset).limit(limit)
    return list(db.scalars(stmt).all()), total


def update_contact(db: Session, contact: models.Contact, changes: dict):
    """
    Update mutable fields of a contact.

    Args:
        db (Session): Database session.
        contact (Contact): Contact instance.
        changes (dict): Fields to update.

    Returns:
        Contact: Updated contact.
    """
    for key, value in changes.items():
        setattr(contact, key, value)

    db.add(contact)
    _commit(db)
    db.refresh(contact)
    return contact


def delete_contact(db: Session, contact: models.Contact):
    """
    Delete a contact from the database.

    Args:
        db (Session): Database session.
        contact (Contact): Contact to delete.
    """
    db.delete(contact)
    _commit(db)
    return None
