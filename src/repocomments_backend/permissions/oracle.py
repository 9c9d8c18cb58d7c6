"""
Permission oracle: answers the highest role a user holds on a repository.

Grants come from the ``permissions`` table, either directly (user_id) or
through membership of a team (team_id). Results are never cached so a
revoked or downgraded grant is observed by the very next check.
"""

import logging
from typing import Callable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from repocomments_backend.database import SessionLocal
from repocomments_backend.exceptions import StoreUnavailableException
from repocomments_backend.model.auth import Permission, TeamMember
from repocomments_types.roles import Role, highest_role

logger = logging.getLogger(__name__)


class PermissionOracle:

    def __init__(self, session_factory: Callable[[], Session] = SessionLocal):
        self._session_factory = session_factory

    async def role_for(self, user_id: str, repo: str) -> Optional[Role]:
        """
        Look up the effective role of ``user_id`` on ``repo``.

        The query runs in the thread pool, so callers suspend here and must
        not assume shared state is unchanged when it returns.

        Returns:
            Highest granted Role, or None when no grant row exists

        Raises:
            StoreUnavailableException: The database did not respond
        """
        try:
            return await run_in_threadpool(self._query_role, user_id, repo)
        except SQLAlchemyError as e:
            logger.error(f"Permission lookup failed for user={user_id} repo={repo}: {e}")
            raise StoreUnavailableException() from e

    def _query_role(self, user_id: str, repo: str) -> Optional[Role]:
        with self._session_factory() as db:
            direct = (
                db.query(Permission.role)
                .filter(Permission.repo == repo, Permission.user_id == user_id)
            )
            via_team = (
                db.query(Permission.role)
                .join(TeamMember, TeamMember.team_id == Permission.team_id)
                .filter(Permission.repo == repo, TeamMember.user_id == user_id)
            )
            rows = direct.union_all(via_team).all()

        return highest_role(Role.parse(row[0]) for row in rows)
