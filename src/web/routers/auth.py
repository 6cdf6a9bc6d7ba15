"""
Authentication Routes

Provides:
- POST /auth/register: create an admin account
- POST /auth/login: exchange email, password and role for a session token
- GET /auth/me: the caller's profile
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request, status
from pydantic import BaseModel, EmailStr, Field

from rbac.dependencies import CurrentPrincipal, get_current_principal, get_session_issuer
from rbac.roles import Role
from security.api_errors import ValidationError
from services.principal_service import PrincipalService
from web.dependencies import get_principal_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])


# =============================================================================
# REQUEST/RESPONSE MODELS
# =============================================================================

class RegisterRequest(BaseModel):
    """Admin registration request."""
    name: str = Field(..., min_length=1, max_length=200)
    email: EmailStr
    password: str = Field(..., min_length=1)


class LoginRequest(BaseModel):
    """Login request. The role selects which account namespace is searched."""
    email: EmailStr
    password: str = Field(..., min_length=1)
    role: Optional[str] = None


class UserInfo(BaseModel):
    id: str
    email: str
    name: str
    role: str


class LoginResponse(BaseModel):
    """Login response."""
    token: str
    token_type: str = "bearer"
    expires_in: int
    user: UserInfo


# =============================================================================
# ROUTES
# =============================================================================

@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(
    body: RegisterRequest,
    principals: PrincipalService = Depends(get_principal_service),
):
    """Create an admin account."""
    admin = await principals.create(
        Role.ADMIN,
        name=body.name,
        email=body.email,
        password=body.password,
    )
    return admin.to_dict()


@router.post("/login", response_model=LoginResponse)
async def login(
    body: LoginRequest,
    request: Request,
    principals: PrincipalService = Depends(get_principal_service),
):
    """
    Authenticate and issue a 24-hour session token.

    Unknown email and wrong password both answer 401 "Invalid credentials".
    """
    if not body.role:
        raise ValidationError("Role is required")
    role = Role.parse(body.role)
    if role is None:
        raise ValidationError("Invalid role specified")

    principal = await principals.authenticate(role, body.email, body.password)

    issuer = get_session_issuer(request)
    token = issuer.issue(principal.id, principal.email, role)

    return LoginResponse(
        token=token,
        expires_in=issuer.expires_in,
        user=UserInfo(
            id=principal.id,
            email=principal.email,
            name=principal.name,
            role=role.value,
        ),
    )


@router.get("/me")
async def me(
    principal: CurrentPrincipal = Depends(get_current_principal),
    principals: PrincipalService = Depends(get_principal_service),
):
    """Profile of the authenticated caller."""
    return (await principals.get(principal.role, principal.id)).to_dict()
