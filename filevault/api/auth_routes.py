"""Authentication API endpoints.

Public endpoints:
    POST /api/auth/register  create account (seeds default folders)
    POST /api/auth/login     authenticate and receive a bearer token
    GET  /api/auth/me        current identity
"""

import logging

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from ..core.auth import Identity, require_identity
from ..core.config import settings
from ..core.token_factory import create_token
from ..database import get_db
from ..models.user import User
from ..services import auth_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["Authentication"])


# --- Request/Response schemas ---


class RegisterRequest(BaseModel):
    email: str = Field(..., description="Email address")
    password: str = Field(..., min_length=8, description="Password (min 8 characters)")
    display_name: str = Field(..., description="Display name")

    model_config = {
        "json_schema_extra": {
            "examples": [{"email": "alice@example.com", "password": "securepass", "display_name": "Alice"}]
        }
    }


class LoginRequest(BaseModel):
    email: str
    password: str


class UserResponse(BaseModel):
    id: str
    email: str
    display_name: str

    model_config = {"from_attributes": True}


class LoginResponse(BaseModel):
    token: str
    token_type: str = "bearer"
    expires_in: int
    user: UserResponse


# --- Endpoints ---


def _issue_token(user: User) -> LoginResponse:
    token = create_token(
        subject=user.id,
        email=user.email,
        secret=settings.jwt_secret_key,
        algorithm=settings.jwt_algorithm,
        expires_hours=settings.access_token_hours,
    )
    return LoginResponse(
        token=token,
        expires_in=settings.access_token_hours * 3600,
        user=UserResponse.model_validate(user),
    )


@router.post(
    "/register",
    response_model=LoginResponse,
    status_code=201,
    summary="Register a new user",
    description="Creates the account and returns a token so the client is signed in immediately.",
)
def register_user(body: RegisterRequest, db: Session = Depends(get_db)):
    user = auth_service.register_user(db, body.email, body.password, body.display_name)
    return _issue_token(user)


@router.post(
    "/login",
    response_model=LoginResponse,
    summary="Authenticate and receive a bearer token",
)
def login(body: LoginRequest, db: Session = Depends(get_db)):
    user = auth_service.authenticate(db, body.email, body.password)
    logger.info("User logged in", extra={"user_id": user.id})
    return _issue_token(user)


@router.get("/me", response_model=UserResponse, summary="Current user")
def me(identity: Identity = Depends(require_identity)):
    return UserResponse(id=identity.id, email=identity.email, display_name=identity.display_name)
