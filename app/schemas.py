from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr
from pydantic.alias_generators import to_camel

from .models import Contact, Role, User


class APIModel(BaseModel):
    """Base schema: camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, from_attributes=True
    )


class ContactCreate(APIModel):
    """Schema for creating new contact."""

    name: str
    email: str
    place: str
    dob: date


class ContactUpdate(APIModel):
    """Schema for updating contact (all fields optional)."""

    name: Optional[str] = None
    email: Optional[str] = None
    place: Optional[str] = None
    dob: Optional[date] = None


class ContactOut(APIModel):
    """Public representation of a contact."""

    id: int
    name: str
    email: str
    place: str
    dob: date
    user_id: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class UserOut(APIModel):
    """Public representation of a user. Never carries the password hash."""

    id: int
    username: str
    email: str
    role: Role
    created_at: Optional[datetime] = None


class RegisterRequest(APIModel):
    """Payload for creating a new user."""

    username: str
    email: EmailStr
    password: str
    role: Role = Role.USER


class LoginRequest(APIModel):
    email: str
    password: str


class CreateAdminRequest(APIModel):
    secret_key: str


class PasswordChange(APIModel):
    """Payload for changing the current user's password."""

    current_password: str
    new_password: str


class MessageResponse(APIModel):
    success: bool = True
    message: str


class AuthResponse(MessageResponse):
    """Token plus the authenticated user's public profile."""

    token: str
    user: UserOut


class UserResponse(MessageResponse):
    user: UserOut


class ContactResponse(MessageResponse):
    contact: ContactOut


class ContactListResponse(MessageResponse):
    """One page of contacts with pagination metadata."""

    contacts: list[ContactOut]
    total: int
    total_pages: int
    current_page: int
    has_next_page: bool
    has_prev_page: bool


def public_user(user: User) -> UserOut:
    """Map a persisted user to its public DTO."""
    return UserOut(
        id=user.id,
        username=user.username,
        email=user.email,
        role=Role(user.role),
        created_at=user.created_at,
    )


def public_contact(contact: Contact) -> ContactOut:
    """Map a persisted contact to its public DTO."""
    return ContactOut(
        id=contact.id,
        name=contact.name,
        email=contact.email,
        place=contact.place,
        dob=contact.dob,
        user_id=contact.user_id,
        created_at=contact.created_at,
        updated_at=contact.updated_at,
    )
