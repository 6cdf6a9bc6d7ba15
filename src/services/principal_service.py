"""
Principal Service - registration, management and login for every role.

Admins, agents and sub-agents share one table and one code path; the role
tag selects the email namespace and the RoleInfo capability flags decide
which fields are required (mobile for agents and sub-agents, an owning agent
for sub-agents).

Handles:
- Principal CRUD, optionally scoped to an owning agent
- Credential verification for login
"""

import logging
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.concurrency import run_in_threadpool

from database.models import Principal
from rbac.password import BCRYPT_ROUNDS, DUMMY_HASH, hash_password, verify_password
from rbac.roles import Role, get_role_info
from security.api_errors import (
    AuthenticationError,
    ErrorCode,
    NotFoundError,
    ValidationError,
)

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS_MESSAGE = "Invalid credentials"


def _normalize_email(email: str) -> str:
    return email.strip().lower()


class PrincipalService:
    """Service for principal management and authentication."""

    def __init__(self, db: AsyncSession, bcrypt_rounds: int = BCRYPT_ROUNDS):
        self.db = db
        self.bcrypt_rounds = bcrypt_rounds

    async def _hash(self, password: str) -> str:
        try:
            return await run_in_threadpool(hash_password, password, self.bcrypt_rounds)
        except ValueError as e:
            raise ValidationError(str(e))

    async def _find_by_email(self, role: Role, email: str) -> Optional[Principal]:
        result = await self.db.execute(
            select(Principal).where(
                Principal.role == role.value,
                Principal.email == _normalize_email(email),
            )
        )
        return result.scalar_one_or_none()

    async def _commit_unique(self, role: Role) -> None:
        try:
            await self.db.commit()
        except IntegrityError:
            # Lost a race with a concurrent registration for the same email
            raise ValidationError(f"{get_role_info(role).name} already exists")

    # =========================================================================
    # CRUD
    # =========================================================================

    async def create(
        self,
        role: Role,
        name: str,
        email: str,
        password: str,
        mobile: Optional[str] = None,
        parent_agent_id: Optional[str] = None,
    ) -> Principal:
        """
        Register a new principal.

        Raises:
            ValidationError: duplicate email within the role, or a required
                field for the role is missing
        """
        role = Role(role)
        info = get_role_info(role)

        if info.requires_mobile and not (mobile and mobile.strip()):
            raise ValidationError("Mobile number is required")
        if info.has_parent and not parent_agent_id:
            raise ValidationError("Parent agent is required")

        if await self._find_by_email(role, email) is not None:
            raise ValidationError(f"{info.name} already exists")

        principal = Principal(
            role=role.value,
            name=name.strip(),
            email=email,
            mobile=mobile.strip() if info.requires_mobile else None,
            password_hash=await self._hash(password),
            parent_agent_id=parent_agent_id if info.has_parent else None,
        )
        self.db.add(principal)
        await self._commit_unique(role)

        logger.info(f"Created {role.value} {principal.id}")
        return principal

    async def get(
        self,
        role: Role,
        principal_id: str,
        parent_agent_id: Optional[str] = None,
    ) -> Principal:
        """
        Fetch one principal of a role.

        With parent_agent_id, a sub-agent owned by another agent is reported
        as absent.

        Raises:
            NotFoundError: no such principal in scope
        """
        role = Role(role)
        query = select(Principal).where(
            Principal.id == principal_id,
            Principal.role == role.value,
        )
        if parent_agent_id is not None:
            query = query.where(Principal.parent_agent_id == parent_agent_id)

        principal = (await self.db.execute(query)).scalar_one_or_none()
        if principal is None:
            raise NotFoundError(f"{get_role_info(role).name} not found")
        return principal

    async def list(
        self,
        role: Role,
        parent_agent_id: Optional[str] = None,
    ) -> List[Principal]:
        """All principals of a role, oldest first."""
        query = select(Principal).where(Principal.role == Role(role).value)
        if parent_agent_id is not None:
            query = query.where(Principal.parent_agent_id == parent_agent_id)
        query = query.order_by(Principal.created_at, Principal.id)

        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def update(
        self,
        role: Role,
        principal_id: str,
        parent_agent_id: Optional[str] = None,
        name: Optional[str] = None,
        email: Optional[str] = None,
        mobile: Optional[str] = None,
        password: Optional[str] = None,
    ) -> Principal:
        """
        Apply a partial update. The password is re-hashed only when given.

        Raises:
            NotFoundError: no such principal in scope
            ValidationError: the new email is taken within the role
        """
        role = Role(role)
        principal = await self.get(role, principal_id, parent_agent_id)

        if email is not None and _normalize_email(email) != principal.email:
            if await self._find_by_email(role, email) is not None:
                raise ValidationError(f"{get_role_info(role).name} already exists")
            principal.email = email

        if name is not None:
            principal.name = name.strip()
        if mobile is not None and get_role_info(role).requires_mobile:
            principal.mobile = mobile.strip()
        if password:
            principal.password_hash = await self._hash(password)

        await self._commit_unique(role)
        logger.info(f"Updated {role.value} {principal.id}")
        return principal

    async def delete(
        self,
        role: Role,
        principal_id: str,
        parent_agent_id: Optional[str] = None,
    ) -> None:
        """
        Remove a principal.

        Tasks assigned to it keep existing with the assignee cleared; an
        agent's sub-agents are left in place.
        """
        principal = await self.get(role, principal_id, parent_agent_id)
        await self.db.delete(principal)
        await self.db.commit()
        logger.info(f"Deleted {principal.role} {principal.id}")

    # =========================================================================
    # AUTHENTICATION
    # =========================================================================

    async def authenticate(self, role: Role, email: str, password: str) -> Principal:
        """
        Verify login credentials within a role's namespace.

        Unknown email and wrong password fail identically.

        Raises:
            AuthenticationError: credentials do not match
        """
        role = Role(role)
        principal = await self._find_by_email(role, email)

        stored_hash = principal.password_hash if principal is not None else DUMMY_HASH
        matches = await run_in_threadpool(verify_password, password, stored_hash)

        if principal is None or not matches:
            logger.warning(f"Failed {role.value} login attempt")
            raise AuthenticationError(
                INVALID_CREDENTIALS_MESSAGE,
                code=ErrorCode.AUTH_INVALID_CREDENTIALS,
            )

        logger.info(f"{get_role_info(role).name} {principal.id} logged in")
        return principal
