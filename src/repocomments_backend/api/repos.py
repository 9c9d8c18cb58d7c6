from fastapi import APIRouter, Depends

from repocomments_backend.permissions.auth import get_current_principal
from repocomments_backend.permissions.principal import Principal
from repocomments_backend.permissions.roles import RepoAccess, require_repo_access
from repocomments_types.roles import Role

repos_router = APIRouter()


@repos_router.get("/user", response_model=Principal)
async def get_user(principal: Principal = Depends(get_current_principal)):
    return principal


@repos_router.get("/repos/{repo:path}/role")
async def get_repo_role(
    repo: str,
    access: RepoAccess = Depends(require_repo_access(Role.READ)),
):
    """Effective role of the caller on ``repo`` (direct or via a team)."""
    return {"repo": repo, "role": access.role.value}
