"""User profile routes for the Contact Manager API."""

from fastapi import APIRouter, Depends
from fastapi_limiter.depends import RateLimiter
from sqlalchemy.orm import Session

from . import schemas
from .auth import get_current_user, get_identity, update_password
from .database import get_db
from .sessions import Identity
from .state import AppServices, get_services

router = APIRouter(prefix="/users", tags=["users"])


@router.get(
    "/me",
    response_model=schemas.UserResponse,
    dependencies=[Depends(RateLimiter(times=30, seconds=60))],
)
def read_me(current_user: schemas.UserOut = Depends(get_current_user)):
    """
    Retrieve details of the currently authenticated user.

    Args:
        current_user (UserOut): Profile resolved from the bearer token.

    Returns:
        UserResponse: User profile information.
    """
    return schemas.UserResponse(
        message="Profile fetched successfully", user=current_user
    )


@router.put("/me/password", response_model=schemas.MessageResponse)
async def change_password(
    payload: schemas.PasswordChange,
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db),
    services: AppServices = Depends(get_services),
):
    """
    Change the authenticated user's password.

    Raises:
        InvalidCredentials: If the current password does not match.
        WeakPassword: If the new password is shorter than six characters.

    Returns:
        MessageResponse: Confirmation message.
    """
    await update_password(
        db,
        services.user_cache,
        identity.user_id,
        payload.current_password,
        payload.new_password,
    )
    return schemas.MessageResponse(message="Password updated")
