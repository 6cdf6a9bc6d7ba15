"""
Access Guard - FastAPI dependencies for route protection.

Every protected route runs the same stateless check:

1. Extract the bearer token; absent -> 401 "No token, access denied"
2. Validate it with the SessionIssuer; failure -> 401 "Token is not valid"
3. If the route names allowed roles and the token's role is not one of
   them -> 403 naming the required and actual roles
4. Otherwise attach the principal to the request and continue

An empty allowed-role set means any authenticated principal. There is no
revocation list and no database lookup.
"""

import logging
from dataclasses import dataclass
from typing import FrozenSet, Iterable, Optional

from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jwt.exceptions import InvalidTokenError

from security.api_errors import AuthenticationError, AuthorizationError, ErrorCode
from services.logging_config import user_id_var
from .jwt import SessionIssuer, TokenPayload
from .permissions import Permission, roles_with
from .roles import Role, format_roles

logger = logging.getLogger(__name__)

# HTTP Bearer token security scheme
security = HTTPBearer(auto_error=False)

NO_TOKEN_MESSAGE = "No token, access denied"
INVALID_TOKEN_MESSAGE = "Token is not valid"


@dataclass(frozen=True)
class CurrentPrincipal:
    """Authenticated caller resolved from a session token."""
    id: str
    email: str
    role: Role
    token_payload: TokenPayload

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


def _ordered(roles: Iterable[Role]) -> list:
    allowed = set(roles)
    return [role for role in Role if role in allowed]


def authorize(
    token: Optional[str],
    allowed_roles: FrozenSet[Role],
    issuer: SessionIssuer,
) -> CurrentPrincipal:
    """
    Validate a token and check its role against an allowed set.

    Raises:
        AuthenticationError: missing or invalid token
        AuthorizationError: role not in a non-empty allowed set
    """
    if not token:
        raise AuthenticationError(NO_TOKEN_MESSAGE)

    try:
        payload = issuer.validate(token)
    except InvalidTokenError as e:
        logger.warning(f"Authentication failed: {e}")
        raise AuthenticationError(INVALID_TOKEN_MESSAGE, code=ErrorCode.AUTH_INVALID_TOKEN)

    if allowed_roles and payload.role not in allowed_roles:
        required = format_roles(_ordered(allowed_roles))
        logger.warning(
            f"Role denied: principal {payload.sub} has {payload.role.value}, needs {required}"
        )
        raise AuthorizationError(
            f"Access denied. Required role: {required}. Your role: {payload.role.value}"
        )

    return CurrentPrincipal(
        id=payload.sub,
        email=payload.email,
        role=payload.role,
        token_payload=payload,
    )


def get_session_issuer(request: Request) -> SessionIssuer:
    """The SessionIssuer built by the application factory."""
    return request.app.state.session_issuer


def _bind(request: Request, principal: CurrentPrincipal) -> CurrentPrincipal:
    request.state.principal = principal
    user_id_var.set(principal.id)
    return principal


async def get_current_principal(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> CurrentPrincipal:
    """
    FastAPI dependency for any authenticated principal.

    Usage:
        @router.get("/me")
        async def me(principal: CurrentPrincipal = Depends(get_current_principal)):
            return {"id": principal.id}
    """
    token = credentials.credentials if credentials else None
    principal = authorize(token, frozenset(), get_session_issuer(request))
    return _bind(request, principal)


class RoleChecker:
    """
    Dependency class for role checking.

    Usage:
        @router.get("/agents")
        async def list_agents(
            principal: CurrentPrincipal = Depends(RoleChecker([Role.ADMIN]))
        ):
            ...
    """

    def __init__(self, roles: Iterable[Role]):
        self.roles = frozenset(Role(r) for r in roles)

    async def __call__(
        self,
        request: Request,
        credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    ) -> CurrentPrincipal:
        token = credentials.credentials if credentials else None
        principal = authorize(token, self.roles, get_session_issuer(request))
        return _bind(request, principal)


def require_roles(*roles: Role) -> RoleChecker:
    """Shorthand for RoleChecker(roles)."""
    return RoleChecker(roles)


def require_permission(permission: Permission) -> RoleChecker:
    """Guard a route with every role the capability table grants `permission`."""
    return RoleChecker(roles_with(permission))
