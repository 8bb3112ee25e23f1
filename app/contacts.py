"""Contact management routes for the Contact Manager API.

Plain users create and list their own contacts; administrators list,
read, update and delete any contact.
"""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from . import schemas, services
from .auth import require_admin, require_user
from .core import get_settings
from .database import get_db
from .sessions import Identity

router = APIRouter(prefix="/contacts", tags=["contacts"])
settings = get_settings()


def contact_page_response(
    page: services.ContactPage, message: str
) -> schemas.ContactListResponse:
    """Serialise a ``ContactPage`` for the wire."""
    return schemas.ContactListResponse(
        message=message,
        contacts=[schemas.public_contact(c) for c in page.items],
        total=page.total,
        total_pages=page.total_pages,
        current_page=page.page,
        has_next_page=page.has_next_page,
        has_prev_page=page.has_prev_page,
    )


@router.post(
    "", response_model=schemas.ContactResponse, status_code=status.HTTP_201_CREATED
)
def create_contact(
    contact_in: schemas.ContactCreate,
    db: Session = Depends(get_db),
    identity: Identity = Depends(require_user),
):
    """
    Create a new contact owned by the current user.

    Args:
        contact_in (ContactCreate): Contact input data.
        db (Session): Database session.
        identity (Identity): Authenticated ``user``-role caller.

    Returns:
        ContactResponse: Created contact.
    """
    contact = services.create_contact(
        db,
        owner_id=identity.user_id,
        name=contact_in.name,
        email=contact_in.email,
        place=contact_in.place,
        dob=contact_in.dob,
    )
    return schemas.ContactResponse(
        message="Contact created successfully",
        contact=schemas.public_contact(contact),
    )


@router.get("/mine", response_model=schemas.ContactListResponse)
def list_my_contacts(
    page: int = Query(1, ge=1),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    search: str | None = Query(None),
    db: Session = Depends(get_db),
    identity: Identity = Depends(require_user),
):
    """
    Retrieve one page of the current user's contacts.

    Supports optional text search by name, email or place.

    Args:
        page (int): 1-based page number.
        limit (int): Contacts per page.
        search (str | None): Optional search query.
        db (Session): Database session.
        identity (Identity): Authenticated ``user``-role caller.

    Returns:
        ContactListResponse: Contacts and pagination metadata.
    """
    result = services.list_contacts(
        db, page=page, page_size=limit, search=search, owner_id=identity.user_id
    )
    return contact_page_response(result, "Contacts fetched successfully")


@router.get("", response_model=schemas.ContactListResponse)
def list_all_contacts(
    page: int = Query(1, ge=1),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    search: str | None = Query(None),
    db: Session = Depends(get_db),
    identity: Identity = Depends(require_admin),
):
    """Retrieve one page of every user's contacts (admin only)."""
    result = services.list_contacts(db, page=page, page_size=limit, search=search)
    return contact_page_response(result, "Contacts fetched successfully")


@router.get("/{contact_id}", response_model=schemas.ContactResponse)
def get_contact(
    contact_id: int,
    db: Session = Depends(get_db),
    identity: Identity = Depends(require_admin),
):
    """
    Retrieve a single contact by ID.

    Raises:
        NotFound: If contact is not found.
    """
    contact = services.get_contact(db, contact_id)
    return schemas.ContactResponse(
        message="Contact fetched successfully",
        contact=schemas.public_contact(contact),
    )


@router.put("/{contact_id}", response_model=schemas.ContactResponse)
def update_contact(
    contact_id: int,
    changes: schemas.ContactUpdate,
    db: Session = Depends(get_db),
    identity: Identity = Depends(require_admin),
):
    """
    Partially update an existing contact.

    Only fields provided in the request will be updated.

    Args:
        contact_id (int): Contact identifier.
        changes (ContactUpdate): Fields to update.
        db (Session): Database session.
        identity (Identity): Authenticated admin.

    Raises:
        NotFound: If contact is not found.
        ValidationError: If a changed field is invalid.

    Returns:
        ContactResponse: Updated contact.
    """
    contact = services.update_contact(
        db, contact_id, changes.model_dump(exclude_unset=True)
    )
    return schemas.ContactResponse(
        message="Contact updated successfully",
        contact=schemas.public_contact(contact),
    )


@router.delete("/{contact_id}", response_model=schemas.MessageResponse)
def remove_contact(
    contact_id: int,
    db: Session = Depends(get_db),
    identity: Identity = Depends(require_admin),
):
    """Delete any contact (admin only)."""
    services.delete_contact(db, contact_id)
    return schemas.MessageResponse(message="Contact deleted successfully")
