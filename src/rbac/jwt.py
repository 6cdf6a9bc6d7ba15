"""
Session Token Handling

Issues and validates signed, time-bounded session tokens carrying the
principal id, email and role. Tokens are valid for a fixed window (24 hours
by default); there is no refresh mechanism and no key rotation.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from jwt.exceptions import ExpiredSignatureError, InvalidTokenError

from config.settings import Settings
from .roles import Role

logger = logging.getLogger(__name__)

JWT_ALGORITHM = "HS256"
TOKEN_TTL = timedelta(hours=24)

_REQUIRED_CLAIMS = ["sub", "role", "exp", "iat"]


@dataclass(frozen=True)
class TokenPayload:
    """Decoded session token claims."""
    sub: str  # Principal ID
    email: str
    role: Role
    exp: Optional[datetime] = None
    iat: Optional[datetime] = None
    jti: Optional[str] = None


class SessionIssuer:
    """
    Signs and verifies session tokens with a shared secret.

    Built once at application start from Settings and kept on app.state.
    """

    def __init__(
        self,
        secret: str,
        algorithm: str = JWT_ALGORITHM,
        ttl: timedelta = TOKEN_TTL,
    ):
        if not secret:
            raise ValueError("Session signing secret is required")
        self._secret = secret
        self.algorithm = algorithm
        self.ttl = ttl

    @classmethod
    def from_settings(cls, settings: Settings) -> "SessionIssuer":
        return cls(
            secret=settings.jwt_secret,
            algorithm=settings.jwt_algorithm,
            ttl=timedelta(hours=settings.token_ttl_hours),
        )

    @property
    def expires_in(self) -> int:
        """Validity window in seconds."""
        return int(self.ttl.total_seconds())

    def issue(
        self,
        principal_id: str,
        email: str,
        role: Role,
        now: Optional[datetime] = None,
    ) -> str:
        """
        Create a session token.

        Args:
            principal_id: Principal's unique identifier
            email: Principal's email
            role: Principal's role
            now: Issue time (defaults to the current UTC time)

        Returns:
            JWT token string
        """
        issued_at = now or datetime.now(timezone.utc)
        payload = {
            "sub": str(principal_id),
            "email": email,
            "role": Role(role).value,
            "iat": issued_at,
            "exp": issued_at + self.ttl,
            "jti": str(uuid.uuid4()),
        }
        return jwt.encode(payload, self._secret, algorithm=self.algorithm)

    def validate(self, token: Optional[str]) -> TokenPayload:
        """
        Decode and validate a session token.

        Raises:
            InvalidTokenError: If the token is missing, malformed, expired,
                has a bad signature, or carries an unknown role.
        """
        if not token:
            raise InvalidTokenError("Token is missing")

        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self.algorithm],
                options={"require": _REQUIRED_CLAIMS},
            )
        except ExpiredSignatureError:
            logger.warning("Token expired")
            raise InvalidTokenError("Token has expired")
        except InvalidTokenError as e:
            logger.warning(f"Invalid token: {e}")
            raise InvalidTokenError(f"Invalid token: {e}")

        role = Role.parse(payload.get("role"))
        if role is None:
            raise InvalidTokenError(f"Unknown role in token: {payload.get('role')!r}")

        return TokenPayload(
            sub=str(payload["sub"]),
            email=payload.get("email", ""),
            role=role,
            exp=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
            iat=datetime.fromtimestamp(payload["iat"], tz=timezone.utc),
            jti=payload.get("jti"),
        )
