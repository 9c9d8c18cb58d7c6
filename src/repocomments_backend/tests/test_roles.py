"""Tests for the repository role check shared by WebSocket and HTTP layers."""

import pytest

from repocomments_backend.exceptions import (
    InsufficientPermissionException,
    RepoNotSpecifiedException,
    RepositoryAccessDeniedException,
    StoreUnavailableException,
    UnauthorizedException,
)
from repocomments_backend.permissions.roles import check_role
from repocomments_backend.tests.conftest import FakeOracle
from repocomments_types.roles import ROLE_HIERARCHY, Role, highest_role


class TestRoleOrdering:
    """Role hierarchy: admin > write > read."""

    @pytest.mark.unit
    def test_levels(self):
        assert [Role.READ.level, Role.WRITE.level, Role.ADMIN.level] == [1, 2, 3]
        assert ROLE_HIERARCHY == {"read": 1, "write": 2, "admin": 3}

    @pytest.mark.unit
    @pytest.mark.parametrize("actual,required,expected", [
        (Role.READ, Role.READ, True),
        (Role.READ, Role.WRITE, False),
        (Role.WRITE, Role.READ, True),
        (Role.WRITE, Role.ADMIN, False),
        (Role.ADMIN, Role.WRITE, True),
        (Role.ADMIN, Role.ADMIN, True),
    ])
    def test_satisfies(self, actual, required, expected):
        assert actual.satisfies(required) is expected

    @pytest.mark.unit
    def test_parse_unknown_role(self):
        assert Role.parse("write") is Role.WRITE
        assert Role.parse("owner") is None
        assert Role.parse(None) is None

    @pytest.mark.unit
    def test_highest_role(self):
        assert highest_role([Role.READ, Role.ADMIN, Role.WRITE]) is Role.ADMIN
        assert highest_role([None, Role.READ]) is Role.READ
        assert highest_role([]) is None


class TestCheckRole:
    """check_role outcomes for every branch of the decision."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_returns_actual_role_when_sufficient(self):
        oracle = FakeOracle({("u1", "acme/app"): Role.ADMIN})

        role = await check_role(oracle, "u1", "acme/app", Role.WRITE)

        assert role is Role.ADMIN

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_insufficient_permission(self):
        oracle = FakeOracle({("u1", "acme/app"): Role.READ})

        with pytest.raises(InsufficientPermissionException) as exc_info:
            await check_role(oracle, "u1", "acme/app", Role.WRITE)

        assert exc_info.value.status_code == 403
        assert exc_info.value.required is Role.WRITE
        assert exc_info.value.actual is Role.READ
        assert exc_info.value.message == "Insufficient permissions. Required: write, has: read"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_no_grant_is_access_denied(self):
        oracle = FakeOracle()

        with pytest.raises(RepositoryAccessDeniedException) as exc_info:
            await check_role(oracle, "u1", "acme/app", Role.READ)

        assert exc_info.value.status_code == 403
        assert exc_info.value.message == "Access denied to repository"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_missing_user_is_unauthenticated(self):
        oracle = FakeOracle()

        with pytest.raises(UnauthorizedException):
            await check_role(oracle, None, "acme/app", Role.READ)

        assert oracle.calls == []

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_missing_repo(self):
        oracle = FakeOracle()

        with pytest.raises(RepoNotSpecifiedException) as exc_info:
            await check_role(oracle, "u1", "", Role.READ)

        assert exc_info.value.status_code == 400
        assert exc_info.value.message == "Repository not specified"
        assert oracle.calls == []

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_store_failure_propagates(self):
        oracle = FakeOracle()
        oracle.error = StoreUnavailableException()

        with pytest.raises(StoreUnavailableException):
            await check_role(oracle, "u1", "acme/app", Role.READ)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_downgrade_is_observed_on_next_check(self):
        oracle = FakeOracle({("u1", "acme/app"): Role.ADMIN})
        assert await check_role(oracle, "u1", "acme/app", Role.WRITE) is Role.ADMIN

        oracle.roles[("u1", "acme/app")] = Role.READ

        with pytest.raises(InsufficientPermissionException):
            await check_role(oracle, "u1", "acme/app", Role.WRITE)
