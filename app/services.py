"""Contact rules on top of the contact store.

Field validation, not-found handling and pagination math live here;
who may call which operation is decided by the routes.
"""

import logging
import math
from dataclasses import dataclass
from datetime import date

from email_validator import EmailNotValidError, validate_email
from sqlalchemy.orm import Session

from . import crud, models
from .core import get_settings
from .errors import NotFound, ValidationError

logger = logging.getLogger(__name__)

CONTACT_FIELDS = ("name", "email", "place", "dob")


@dataclass
class ContactPage:
    """One page of a contact listing."""

    items: list[models.Contact]
    total: int
    total_pages: int
    page: int
    page_size: int

    @property
    def has_next_page(self) -> bool:
        return self.page < self.total_pages

    @property
    def has_prev_page(self) -> bool:
        return self.page > 1


def _require_text(field: str, value) -> str:
    if value is None or not isinstance(value, str) or not value.strip():
        raise ValidationError(field, f"{field} is required")
    return value.strip()


def _validate_email(value) -> str:
    email = _require_text("email", value)
    try:
        validate_email(email, check_deliverability=False)
    except EmailNotValidError as exc:
        raise ValidationError("email", "Invalid email format") from exc
    return email


def _validate_dob(value, today: date | None = None) -> date:
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValidationError("dob", "dob is required")
    if isinstance(value, str):
        try:
            value = date.fromisoformat(value.strip())
        except ValueError as exc:
            raise ValidationError("dob", "Invalid date format") from exc
    if not isinstance(value, date):
        raise ValidationError("dob", "Invalid date format")
    if value > (today or date.today()):
        raise ValidationError("dob", "Date of birth cannot be in the future")
    return value


def validate_contact_fields(fields: dict) -> dict:
    """
    Validate and normalise the contact fields present in ``fields``.

    Args:
        fields (dict): Any subset of ``name``, ``email``, ``place``, ``dob``.

    Raises:
        ValidationError: Naming the first offending field.

    Returns:
        dict: Cleaned values for the same keys.
    """
    cleaned = {}
    for field, value in fields.items():
        if field == "email":
            cleaned[field] = _validate_email(value)
        elif field == "dob":
            cleaned[field] = _validate_dob(value)
        elif field in ("name", "place"):
            cleaned[field] = _require_text(field, value)
        else:
            raise ValidationError(field, f"Unknown field {field}")
    return cleaned


def create_contact(
    db: Session, owner_id: int, name, email, place, dob
) -> models.Contact:
    """Validate and persist a contact owned by ``owner_id``."""
    fields = validate_contact_fields(
        {"name": name, "email": email, "place": place, "dob": dob}
    )
    contact = crud.create_contact(db, owner_id=owner_id, **fields)
    logger.info("User %s created contact %s", owner_id, contact.id)
    return contact


def get_contact(db: Session, contact_id: int) -> models.Contact:
    contact = crud.get_contact(db, contact_id)
    if contact is None:
        raise NotFound("Contact not found")
    return contact


def update_contact(db: Session, contact_id: int, changes: dict) -> models.Contact:
    """
    Apply a partial update, re-validating every changed field.

    Raises:
        NotFound: If the contact does not exist.
        ValidationError: If a changed field is invalid.
    """
    contact = get_contact(db, contact_id)
    fields = validate_contact_fields(changes)
    contact = crud.update_contact(db, contact, fields)
    logger.info("Updated contact %s fields %s", contact_id, sorted(fields))
    return contact


def delete_contact(db: Session, contact_id: int) -> None:
    contact = get_contact(db, contact_id)
    crud.delete_contact(db, contact)
    logger.info("Deleted contact %s", contact_id)


def list_contacts(
    db: Session,
    page: int = 1,
    page_size: int | None = None,
    search: str | None = None,
    owner_id: int | None = None,
) -> ContactPage:
    """
    List contacts newest first, optionally scoped to one owner and filtered.

    Pages past the last one come back empty with the real totals.

    Args:
        db (Session): Database session.
        page (int): 1-based page number.
        page_size (int | None): Contacts per page; defaults to settings.
        search (str | None): Case-insensitive substring of name, email or place.
        owner_id (int | None): Owner to restrict to; ``None`` lists everyone's.

    Returns:
        ContactPage: Items plus pagination metadata.
    """
    if page_size is None:
        page_size = get_settings().DEFAULT_PAGE_SIZE
    if page < 1:
        raise ValidationError("page", "page must be at least 1")
    if page_size < 1:
        raise ValidationError("limit", "limit must be at least 1")

    term = search.strip() if search else None
    items, total = crud.list_contacts(
        db,
        offset=(page - 1) * page_size,
        limit=page_size,
        search=term or None,
        owner_id=owner_id,
    )
    return ContactPage(
        items=items,
        total=total,
        total_pages=math.ceil(total / page_size),
        page=page,
        page_size=page_size,
    )
