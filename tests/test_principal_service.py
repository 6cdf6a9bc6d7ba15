"""Tests for PrincipalService: registration, scoping and authentication."""

import pytest

from rbac.password import verify_password
from rbac.roles import Role
from security.api_errors import (
    AuthenticationError,
    ErrorCode,
    NotFoundError,
    ValidationError,
)
from services.principal_service import PrincipalService

PASSWORD = "correct-horse-battery"


@pytest.fixture
def principals(session):
    return PrincipalService(session)


class TestRegistration:
    """Tests for creating principals."""

    @pytest.mark.asyncio
    async def test_create_agent(self, principals):
        agent = await principals.create(
            Role.AGENT, name="Ann", email="Ann@Example.com", password=PASSWORD, mobile="555",
        )

        assert agent.id
        assert agent.email == "ann@example.com"
        assert agent.password_hash != PASSWORD
        assert verify_password(PASSWORD, agent.password_hash)
        assert "password_hash" not in agent.to_dict()

    @pytest.mark.asyncio
    async def test_duplicate_email_within_role(self, principals):
        await principals.create(Role.AGENT, name="Ann", email="ann@example.com",
                                password=PASSWORD, mobile="555")

        with pytest.raises(ValidationError) as exc_info:
            await principals.create(Role.AGENT, name="Other", email="ANN@example.com",
                                    password=PASSWORD, mobile="556")
        assert exc_info.value.message == "Agent already exists"

    @pytest.mark.asyncio
    async def test_same_email_across_roles(self, principals):
        admin = await principals.create(Role.ADMIN, name="Ann", email="ann@example.com",
                                        password=PASSWORD)
        agent = await principals.create(Role.AGENT, name="Ann", email="ann@example.com",
                                        password=PASSWORD, mobile="555")

        assert admin.id != agent.id

    @pytest.mark.asyncio
    async def test_agent_requires_mobile(self, principals):
        with pytest.raises(ValidationError):
            await principals.create(Role.AGENT, name="Ann", email="ann@example.com",
                                    password=PASSWORD)

    @pytest.mark.asyncio
    async def test_sub_agent_requires_parent(self, principals):
        with pytest.raises(ValidationError):
            await principals.create(Role.SUB_AGENT, name="Sub", email="sub@example.com",
                                    password=PASSWORD, mobile="555")

    @pytest.mark.asyncio
    async def test_admin_has_no_mobile(self, principals):
        admin = await principals.create(Role.ADMIN, name="Boss", email="boss@example.com",
                                        password=PASSWORD, mobile="555")
        assert admin.mobile is None


class TestScoping:
    """Tests for listing and lookups scoped to an owning agent."""

    @pytest.mark.asyncio
    async def test_sub_agents_scoped_to_parent(self, principals):
        mine = await principals.create(Role.SUB_AGENT, name="Mine", email="mine@example.com",
                                       password=PASSWORD, mobile="1", parent_agent_id="agent-1")
        await principals.create(Role.SUB_AGENT, name="Theirs", email="theirs@example.com",
                                password=PASSWORD, mobile="2", parent_agent_id="agent-2")

        listed = await principals.list(Role.SUB_AGENT, parent_agent_id="agent-1")
        assert [p.id for p in listed] == [mine.id]

        with pytest.raises(NotFoundError) as exc_info:
            await principals.get(Role.SUB_AGENT, mine.id, parent_agent_id="agent-2")
        assert exc_info.value.message == "Sub-agent not found"

    @pytest.mark.asyncio
    async def test_list_in_creation_order(self, principals):
        created = []
        for name in ("First", "Second", "Third"):
            created.append(await principals.create(
                Role.AGENT, name=name, email=f"{name.lower()}@example.com",
                password=PASSWORD, mobile="1",
            ))

        listed = await principals.list(Role.AGENT)
        assert [p.id for p in listed] == [p.id for p in created]

    @pytest.mark.asyncio
    async def test_get_checks_role(self, principals):
        admin = await principals.create(Role.ADMIN, name="Boss", email="boss@example.com",
                                        password=PASSWORD)
        with pytest.raises(NotFoundError):
            await principals.get(Role.AGENT, admin.id)


class TestUpdateAndDelete:
    """Tests for partial updates and deletes."""

    @pytest.mark.asyncio
    async def test_password_rehashed_only_when_given(self, principals):
        agent = await principals.create(Role.AGENT, name="Ann", email="ann@example.com",
                                        password=PASSWORD, mobile="1")
        original_hash = agent.password_hash

        agent = await principals.update(Role.AGENT, agent.id, name="Annie")
        assert agent.name == "Annie"
        assert agent.password_hash == original_hash

        agent = await principals.update(Role.AGENT, agent.id, password="new-password-123")
        assert agent.password_hash != original_hash
        assert verify_password("new-password-123", agent.password_hash)

    @pytest.mark.asyncio
    async def test_update_to_taken_email(self, principals):
        await principals.create(Role.AGENT, name="Ann", email="ann@example.com",
                                password=PASSWORD, mobile="1")
        bob = await principals.create(Role.AGENT, name="Bob", email="bob@example.com",
                                      password=PASSWORD, mobile="2")

        with pytest.raises(ValidationError):
            await principals.update(Role.AGENT, bob.id, email="ann@example.com")

    @pytest.mark.asyncio
    async def test_delete(self, principals):
        agent = await principals.create(Role.AGENT, name="Ann", email="ann@example.com",
                                        password=PASSWORD, mobile="1")
        await principals.delete(Role.AGENT, agent.id)

        with pytest.raises(NotFoundError):
            await principals.get(Role.AGENT, agent.id)

    @pytest.mark.asyncio
    async def test_delete_missing(self, principals):
        with pytest.raises(NotFoundError):
            await principals.delete(Role.AGENT, "no-such-id")


class TestAuthenticate:
    """Tests for credential verification."""

    @pytest.mark.asyncio
    async def test_success(self, principals):
        agent = await principals.create(Role.AGENT, name="Ann", email="ann@example.com",
                                        password=PASSWORD, mobile="1")

        found = await principals.authenticate(Role.AGENT, "ANN@example.com", PASSWORD)
        assert found.id == agent.id

    @pytest.mark.asyncio
    async def test_wrong_password_and_unknown_email_fail_alike(self, principals):
        await principals.create(Role.AGENT, name="Ann", email="ann@example.com",
                                password=PASSWORD, mobile="1")

        with pytest.raises(AuthenticationError) as wrong_password:
            await principals.authenticate(Role.AGENT, "ann@example.com", "nope")
        with pytest.raises(AuthenticationError) as unknown_email:
            await principals.authenticate(Role.AGENT, "ghost@example.com", PASSWORD)

        assert wrong_password.value.message == unknown_email.value.message == "Invalid credentials"
        assert wrong_password.value.code == ErrorCode.AUTH_INVALID_CREDENTIALS
        assert wrong_password.value.status_code == 401

    @pytest.mark.asyncio
    async def test_role_namespace(self, principals):
        await principals.create(Role.AGENT, name="Ann", email="ann@example.com",
                                password=PASSWORD, mobile="1")

        with pytest.raises(AuthenticationError):
            await principals.authenticate(Role.ADMIN, "ann@example.com", PASSWORD)
