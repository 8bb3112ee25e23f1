"""Password hashing helpers built on passlib's bcrypt context."""

from passlib.context import CryptContext

from .core import get_settings

pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=get_settings().BCRYPT_ROUNDS,
)

MIN_PASSWORD_LENGTH = 6


def get_password_hash(password: str) -> str:
    """Generate a salted password hash using the configured context."""
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Compare a plain password with its hashed value in constant time."""
    return pwd_context.verify(plain_password, hashed_password)


def dummy_verify() -> None:
    """Spend the time of a real verification when there is no user to check."""
    pwd_context.dummy_verify()
