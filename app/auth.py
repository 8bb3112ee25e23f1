"""Authentication and authorization related routes and helpers."""

import asyncio
import hmac
import logging

from fastapi import APIRouter, Depends, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from fastapi_limiter.depends import RateLimiter
from sqlalchemy.orm import Session

from . import crud, schemas
from .cache import UserCache
from .core import Settings, get_settings
from .database import get_db
from .errors import (
    Forbidden,
    InternalError,
    InvalidCredentials,
    TokenInvalid,
    TooManyAttempts,
    Unauthenticated,
)
from .models import Role, User
from .security import dummy_verify, verify_password
from .sessions import Identity, SessionIssuer
from .state import AppServices, get_services
from .throttle import LoginThrottle

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)
router = APIRouter(prefix="/auth", tags=["auth"])
settings = get_settings()

auth_rate_limit = RateLimiter(
    times=settings.AUTH_RATE_LIMIT_TIMES, seconds=settings.AUTH_RATE_LIMIT_SECONDS
)

FORBIDDEN_MESSAGES = {
    Role.USER: "User access only",
    Role.ADMIN: "Admin access only",
}


def get_bearer_token(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> str:
    """Extract the raw token from ``Authorization: Bearer <token>``."""
    if credentials is None or not credentials.credentials:
        raise Unauthenticated("Authentication token missing")
    return credentials.credentials


def get_identity(
    request: Request,
    token: str = Depends(get_bearer_token),
    services: AppServices = Depends(get_services),
) -> Identity:
    """Dependency that verifies the bearer token and records the caller."""
    identity = services.issuer.verify(token)
    request.state.identity = identity
    return identity


def require_role(role: Role):
    """
    Build a dependency admitting only callers whose token carries ``role``.

    Args:
        role (Role): Required role.

    Returns:
        Callable: FastAPI dependency returning the caller's ``Identity``.
    """
    message = FORBIDDEN_MESSAGES[role]

    def dependency(identity: Identity = Depends(get_identity)) -> Identity:
        if identity.role is not role:
            raise Forbidden(message)
        return identity

    return dependency


require_user = require_role(Role.USER)
require_admin = require_role(Role.ADMIN)


async def get_current_user(
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db),
    services: AppServices = Depends(get_services),
) -> schemas.UserOut:
    """Dependency that returns the caller's public profile, with caching."""
    cached = await services.user_cache.get(identity.user_id)
    if cached:
        return cached
    user = await asyncio.to_thread(crud.get_user_by_id, db, identity.user_id)
    if user is None:
        raise TokenInvalid("User no longer exists")
    profile = schemas.public_user(user)
    await services.user_cache.set(profile)
    return profile


def register_user(
    db: Session, issuer: SessionIssuer, payload: schemas.RegisterRequest
) -> tuple[str, User]:
    """
    Create an account with the requested role and issue its first token.

    Returns:
        tuple[str, User]: Session token and the new user.
    """
    user = crud.create_user(
        db, payload.username, payload.email, payload.password, payload.role
    )
    logger.info("Registered user %s with role %s", user.id, payload.role.value)
    return issuer.issue(user.id, Role(user.role)), user


def login_user(
    db: Session, throttle: LoginThrottle, email: str, password: str
) -> User:
    """
    Check credentials under the login throttle.

    A locked identity is rejected before the credential store is touched.

    Raises:
        TooManyAttempts: If the identity is locked out.
        InvalidCredentials: If the email is unknown or the password is wrong.

    Returns:
        User: The authenticated user.
    """
    identity = crud.normalize_email(email)
    retry_after = throttle.retry_after(identity)
    if retry_after:
        logger.warning("Rejected login for locked identity %s", identity)
        raise TooManyAttempts(retry_after)

    user = crud.get_user_by_email(db, identity)
    if user is None:
        dummy_verify()
        verified = False
    else:
        verified = verify_password(password, user.hashed_password)
    if not verified:
        throttle.record_failure(identity)
        logger.info("Failed login for %s", identity)
        raise InvalidCredentials()

    throttle.clear(identity)
    logger.info("User %s logged in", user.id)
    return user


def change_user_password(
    db: Session, user_id: int, current_password: str, new_password: str
) -> User:
    """
    Replace a user's password after re-checking the current one.

    Raises:
        TokenInvalid: If the user no longer exists.
        InvalidCredentials: If ``current_password`` does not match.
        WeakPassword: If ``new_password`` is too short.

    Returns:
        User: The updated user.
    """
    user = crud.get_user_by_id(db, user_id)
    if user is None:
        raise TokenInvalid("User no longer exists")
    if not verify_password(current_password, user.hashed_password):
        raise InvalidCredentials("Current password is incorrect")
    return crud.update_user_password(db, user, new_password)


async def update_password(
    db: Session,
    cache: UserCache,
    user_id: int,
    current_password: str,
    new_password: str,
) -> User:
    """Re-hash a user's password and drop every cached copy of the user."""
    user = await asyncio.to_thread(
        change_user_password, db, user_id, current_password, new_password
    )
    await cache.invalidate(user.id)
    logger.info("Password changed for user %s", user.id)
    return user


def seed_admin(db: Session, settings: Settings) -> User | None:
    """
    Create the configured administrator if it does not exist yet.

    Returns:
        User | None: The admin, or ``None`` when no admin is configured.
    """
    if not settings.ADMIN_EMAIL or not settings.ADMIN_PASSWORD:
        logger.warning("Admin credentials not configured; skipping admin seed")
        return None
    admin, created = crud.ensure_admin(
        db, settings.ADMIN_EMAIL, settings.ADMIN_PASSWORD, settings.ADMIN_NAME
    )
    logger.info(
        "Admin user %s %s", admin.id, "created" if created else "already exists"
    )
    return admin


@router.post(
    "/register",
    response_model=schemas.AuthResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(auth_rate_limit)],
)
def register(
    payload: schemas.RegisterRequest,
    db: Session = Depends(get_db),
    services: AppServices = Depends(get_services),
):
    """Register a new user and return a session token."""

    token, user = register_user(db, services.issuer, payload)
    return schemas.AuthResponse(
        message="User registered successfully",
        token=token,
        user=schemas.public_user(user),
    )


@router.post(
    "/login",
    response_model=schemas.AuthResponse,
    dependencies=[Depends(auth_rate_limit)],
)
def login(
    payload: schemas.LoginRequest,
    db: Session = Depends(get_db),
    services: AppServices = Depends(get_services),
):
    """Authenticate user and return a session token."""

    user = login_user(db, services.throttle, payload.email, payload.password)
    token = services.issuer.issue(user.id, Role(user.role))
    return schemas.AuthResponse(
        message="Login successful", token=token, user=schemas.public_user(user)
    )


@router.post("/logout", response_model=schemas.MessageResponse)
def logout(
    token: str = Depends(get_bearer_token),
    services: AppServices = Depends(get_services),
):
    """
    Revoke the presented token.

    Any correctly signed token is accepted, including one that has already
    expired or been revoked.
    """

    services.issuer.revoke(token)
    return schemas.MessageResponse(message="Logged out successfully")


@router.post("/create-admin", response_model=schemas.UserResponse)
async def create_admin(
    payload: schemas.CreateAdminRequest,
    db: Session = Depends(get_db),
    services: AppServices = Depends(get_services),
    settings: Settings = Depends(get_settings),
):
    """Create or refresh the configured administrator, given the admin secret."""

    expected = settings.ADMIN_SECRET_KEY
    if not expected or not hmac.compare_digest(
        payload.secret_key.encode(), expected.encode()
    ):
        raise Forbidden("Unauthorized: Invalid secret key")
    if not settings.ADMIN_EMAIL or not settings.ADMIN_PASSWORD:
        raise InternalError("Admin credentials are not configured")

    admin, created = await asyncio.to_thread(
        crud.ensure_admin,
        db,
        settings.ADMIN_EMAIL,
        settings.ADMIN_PASSWORD,
        settings.ADMIN_NAME,
        reset_password=True,
    )
    await services.user_cache.invalidate(admin.id)
    outcome = "created" if created else "updated"
    logger.info("Admin user %s %s via secret key", admin.id, outcome)
    return schemas.UserResponse(
        message=f"Admin {outcome} successfully",
        user=schemas.public_user(admin),
    )
