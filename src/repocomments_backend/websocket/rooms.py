"""
Room router: scope membership keyed by repository and branch.

A scope is either a repository (``acme/app``) or a branch of it
(``acme/app:main``). Joining requires at least ``read`` on the repository.
"""

import logging
from typing import Dict, Optional, Set, Tuple

from repocomments_backend.exceptions import RepoNotSpecifiedException
from repocomments_backend.permissions.roles import RoleLookup, check_role
from repocomments_backend.websocket.registry import Session, SessionClosedError, SessionRegistry
from repocomments_types.roles import Role

logger = logging.getLogger(__name__)


def scopes_for(repo: str, branch: Optional[str] = None) -> Tuple[str, Optional[str]]:
    """
    Return the repository scope and, when a branch is given, the branch scope.

    >>> scopes_for("acme/app", "main")
    ('acme/app', 'acme/app:main')
    >>> scopes_for("acme/app")
    ('acme/app', None)
    """
    return repo, (f"{repo}:{branch}" if branch else None)


class RoomRouter:

    def __init__(self, oracle: RoleLookup, registry: SessionRegistry):
        self._oracle = oracle
        self._registry = registry
        self._rooms: Dict[str, Set[str]] = {}  # scope -> session_ids
        registry.on_release(self.remove_session)

    async def join(self, session: Session, repo: str, branch: Optional[str] = None) -> None:
        """
        Join ``session`` to the scopes of ``repo`` (and ``branch``).

        The permission lookup suspends; membership is only applied when the
        session is still live once it returns. A previous branch scope of the
        same repository is left, so a session holds at most one per repository.

        Raises:
            RepoNotSpecifiedException: Empty repository
            RepositoryAccessDeniedException: No grant on the repository
            StoreUnavailableException: The permission store did not respond
            SessionClosedError: The session ended during the lookup
        """
        if not repo:
            raise RepoNotSpecifiedException()
        branch = branch or None

        await check_role(self._oracle, session.user_id, repo, Role.READ)

        if not self._registry.is_live(session):
            logger.debug(f"Discarding join of {repo} for closed session {session.session_id}")
            raise SessionClosedError(session.session_id)

        repo_scope, branch_scope = scopes_for(repo, branch)

        if repo in session.subscriptions:
            _, previous_scope = scopes_for(repo, session.subscriptions[repo])
            if previous_scope and previous_scope != branch_scope:
                self._leave_scope(session, previous_scope)

        self._join_scope(session, repo_scope)
        if branch_scope:
            self._join_scope(session, branch_scope)

        self._registry.record_subscription(session, repo, branch)
        logger.debug(f"User {session.user_id} joined {repo_scope}{f' and {branch_scope}' if branch_scope else ''}")

    def leave(self, session: Session, repo: str) -> None:
        """Leave the repository scope and any branch scope held for it."""
        repo_scope, branch_scope = scopes_for(repo, session.subscriptions.get(repo))

        self._leave_scope(session, repo_scope)
        if branch_scope:
            self._leave_scope(session, branch_scope)

        self._registry.record_unsubscription(session, repo)

    def remove_session(self, session: Session) -> None:
        """Drop ``session`` from every scope it belongs to."""
        for scope in list(session.scopes):
            self._leave_scope(session, scope)

    def members(self, scope: str) -> Set[str]:
        """Session ids currently in ``scope`` (a copy)."""
        return set(self._rooms.get(scope, ()))

    def scope_count(self) -> int:
        return len(self._rooms)

    def _join_scope(self, session: Session, scope: str) -> None:
        self._rooms.setdefault(scope, set()).add(session.session_id)
        session.scopes.add(scope)

    def _leave_scope(self, session: Session, scope: str) -> None:
        session.scopes.discard(scope)
        members = self._rooms.get(scope)
        if members is None:
            return
        members.discard(session.session_id)
        if not members:
            del self._rooms[scope]
