"""Authentication service for user management and JWT generation."""

import re
from datetime import datetime, timedelta

import bcrypt
from jose import JWTError, jwt
from sqlmodel import Session, select

from app.config import get_settings
from app.models.user import AuthResponse, User, UserCreate, UserResponse

settings = get_settings()

USERNAME_PATTERN = re.compile(r"^[a-zA-Z0-9._-]{3,}$")


def hash_password(password: str) -> str:
    """Hash a password using bcrypt."""
    password_bytes = password.encode('utf-8')
    salt = bcrypt.gensalt()
    return bcrypt.hashpw(password_bytes, salt).decode('utf-8')


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash."""
    password_bytes = plain_password.encode('utf-8')
    hashed_bytes = hashed_password.encode('utf-8')
    return bcrypt.checkpw(password_bytes, hashed_bytes)


def validate_username(username: str) -> bool:
    """Letters, digits, dot, dash and underscore; at least 3 characters."""
    return bool(USERNAME_PATTERN.match(username))


def generate_jwt(user: User) -> tuple[str, datetime]:
    """
    Generate a JWT token for the user.
    Returns (token, expires_at).
    """
    expires_at = datetime.utcnow() + timedelta(hours=settings.JWT_EXPIRATION_HOURS)
    payload = {
        "sub": str(user.id),
        "role": user.role.value,
        "exp": expires_at,
        "iat": datetime.utcnow(),
    }
    token = jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)
    return token, expires_at


def decode_user_id(token: str) -> int | None:
    """
    Return the user id carried by a valid token.
    None when the token is invalid, expired or malformed.
    """
    try:
        payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except JWTError:
        return None

    subject = payload.get("sub")
    if subject is None:
        return None
    try:
        return int(subject)
    except (TypeError, ValueError):
        return None


def get_user_by_username(session: Session, username: str) -> User | None:
    """Get a user by username."""
    return session.exec(select(User).where(User.username == username)).first()


def create_user(session: Session, user_data: UserCreate) -> User:
    """
    Create a new user.
    Assumes username uniqueness is already validated.
    """
    user = User(
        username=user_data.username,
        hashed_password=hash_password(user_data.password),
        role=user_data.role,
    )
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


def authenticate_user(session: Session, username: str, password: str) -> User | None:
    """
    Authenticate a user by username and password.
    Returns the user if valid, None otherwise.
    """
    user = get_user_by_username(session, username)
    if user is None:
        return None
    if not verify_password(password, user.hashed_password):
        return None
    return user


def create_auth_response(user: User) -> AuthResponse:
    """Create an authentication response with JWT token."""
    token, expires_at = generate_jwt(user)
    return AuthResponse(
        user=UserResponse.model_validate(user),
        token=token,
        expires_at=expires_at,
    )
