"""Authentication API endpoints."""

from fastapi import APIRouter, HTTPException, status

from app.api.deps import CurrentUser, DBSession
from app.models.user import AuthResponse, UserCreate, UserLogin, UserResponse, UserRole
from app.services.auth import (
    authenticate_user,
    create_auth_response,
    create_user,
    get_user_by_username,
    validate_username,
)

router = APIRouter(prefix="/api/auth", tags=["Auth"])


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
def register_user(session: DBSession, user_data: UserCreate) -> AuthResponse:
    """Register a new tutor or student account."""
    if not validate_username(user_data.username):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid username",
        )

    # Admin accounts are provisioned out of band
    if user_data.role == UserRole.ADMIN:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Role must be Tutor or Alumno",
        )

    existing_user = get_user_by_username(session, user_data.username)
    if existing_user:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Username already registered",
        )

    user = create_user(session, user_data)
    return create_auth_response(user)


@router.post("/login", response_model=AuthResponse)
def login_user(session: DBSession, credentials: UserLogin) -> AuthResponse:
    """Sign in with username and password."""
    user = authenticate_user(session, credentials.username, credentials.password)
    if user is None:
        # Generic error message to prevent enumeration
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
        )

    return create_auth_response(user)


@router.get("/me", response_model=UserResponse)
def read_current_user(current_user: CurrentUser) -> UserResponse:
    """Return the authenticated user."""
    return UserResponse.model_validate(current_user)


@router.post("/logout")
def logout_user(current_user: CurrentUser) -> dict[str, str]:
    """Sign out."""
    # JWT is stateless, so logout is handled client-side by discarding the token.
    return {"message": "Logged out successfully"}
