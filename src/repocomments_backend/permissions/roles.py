"""
Repository role checks shared by the WebSocket layer and HTTP endpoints.

Role hierarchy: admin > write > read. A stronger grant satisfies any
weaker requirement.
"""

import logging
from typing import Optional, Protocol

from fastapi import Depends, Request
from pydantic import BaseModel

from repocomments_backend.exceptions import (
    InsufficientPermissionException,
    RepoNotSpecifiedException,
    RepositoryAccessDeniedException,
    UnauthorizedException,
)
from repocomments_backend.permissions.auth import get_current_principal
from repocomments_backend.permissions.principal import Principal
from repocomments_types.roles import Role

logger = logging.getLogger(__name__)


class RepoAccess(BaseModel):
    """Outcome of a passed repository role check."""
    principal: Principal
    repo: str
    role: Role


class RoleLookup(Protocol):
    async def role_for(self, user_id: str, repo: str) -> Optional[Role]: ...


async def check_role(
    oracle: RoleLookup,
    user_id: Optional[str],
    repo: Optional[str],
    required: Role,
) -> Role:
    """
    Ensure ``user_id`` holds at least ``required`` on ``repo``.

    Returns:
        The user's actual role

    Raises:
        UnauthorizedException: No identity
        RepoNotSpecifiedException: No repository given
        RepositoryAccessDeniedException: No grant for the repository
        InsufficientPermissionException: Grant below the required role
        StoreUnavailableException: The permission store did not respond
    """
    if not user_id:
        raise UnauthorizedException()

    if not repo:
        raise RepoNotSpecifiedException()

    actual = await oracle.role_for(user_id, repo)

    if actual is None:
        raise RepositoryAccessDeniedException(repo=repo, user_id=user_id)

    if not actual.satisfies(required):
        logger.info(f"Role check failed: user={user_id} repo={repo} required={required.value} has={actual.value}")
        raise InsufficientPermissionException(required=required, actual=actual, user_id=user_id)

    return actual


def require_repo_access(required: Role):
    """
    Dependency factory guarding HTTP endpoints on a repository role.

    The repository is taken from the ``repo`` path parameter, falling back
    to the ``repo`` query parameter. Resolves to a ``RepoAccess`` carrying
    the role found by the check.
    """

    async def dependency(
        request: Request,
        principal: Principal = Depends(get_current_principal),
    ) -> RepoAccess:
        repo = request.path_params.get("repo") or request.query_params.get("repo")
        role = await check_role(request.app.state.realtime.oracle, principal.user_id, repo, required)
        return RepoAccess(principal=principal, repo=repo, role=role)

    return dependency


def require_repo_role(required: Role):
    """
    Like ``require_repo_access`` but resolves to the caller's principal.

    Usage:
        @router.post("/repos/{repo:path}/threads")
        async def create_thread(
            principal: Principal = Depends(require_repo_role(Role.WRITE)),
        ):
            ...
    """
    guard = require_repo_access(required)

    async def dependency(access: RepoAccess = Depends(guard)) -> Principal:
        return access.principal

    return dependency
