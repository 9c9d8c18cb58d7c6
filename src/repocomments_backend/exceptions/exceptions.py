"""
Exception classes with error codes and rich metadata.

Every exception carries an error code from the error registry. HTTP handlers
render them as structured JSON; the WebSocket handlers report their
``message`` back to the client as an ``error`` frame.
"""

from typing import Any, Dict, Optional
from fastapi import HTTPException, status
import inspect
from datetime import datetime, timezone

from repocomments_types.errors import ErrorResponse, ErrorDebugInfo
from repocomments_types.roles import Role


class RepoCommentsException(HTTPException):
    """
    Base exception class for all service exceptions.

    Provides:
    - Unique error codes from registry
    - Structured error responses
    - Debug information in development mode
    """

    def __init__(
        self,
        error_code: str,
        detail: Any = None,
        headers: Optional[Dict[str, str]] = None,
        context: Optional[Dict[str, Any]] = None,
        user_id: Optional[str] = None,
    ):
        self.error_code = error_code
        # HTTPException replaces a missing detail with the status phrase
        self.error_detail = detail
        self.context = context or {}
        self.user_id = user_id

        # Get caller information for debugging
        frame = inspect.currentframe()
        caller_frame = frame.f_back.f_back if frame and frame.f_back else None
        if caller_frame:
            self.function_name = caller_frame.f_code.co_name
            self.file_name = caller_frame.f_code.co_filename
            self.line_number = caller_frame.f_lineno
        else:
            self.function_name = None
            self.file_name = None
            self.line_number = None

        # The actual status_code will be set by subclasses
        super().__init__(status_code=500, detail=detail, headers=headers)

    @property
    def message(self) -> str:
        """Human readable message: the detail if given, else the registry text."""
        if isinstance(self.error_detail, str) and self.error_detail:
            return self.error_detail
        if isinstance(self.error_detail, dict) and isinstance(self.error_detail.get("message"), str):
            return self.error_detail["message"]

        from repocomments_backend.exceptions.error_registry import get_error_definition
        return get_error_definition(self.error_code).message.plain

    def __str__(self) -> str:
        return f"{self.error_code}: {self.message}"

    def to_error_response(self, include_debug: bool = False) -> ErrorResponse:
        """
        Convert exception to structured ErrorResponse.

        Args:
            include_debug: Whether to include debug information (dev mode only)
        """
        from repocomments_backend.exceptions.error_registry import get_error_definition

        error_def = get_error_definition(self.error_code)

        debug_info = None
        if include_debug:
            debug_info = ErrorDebugInfo(
                timestamp=datetime.now(timezone.utc).isoformat(),
                function=self.function_name,
                file=self.file_name,
                line=self.line_number,
                user_id=self.user_id,
                additional_context=self.context,
            )

        details = self.context if self.context else None
        if isinstance(self.error_detail, dict):
            details = self.error_detail

        return ErrorResponse(
            error_code=self.error_code,
            message=self.message,
            details=details,
            severity=error_def.severity,
            category=error_def.category,
            retry_after=error_def.retry_after,
            debug=debug_info,
        )


# ============================================================================
# AUTHENTICATION EXCEPTIONS (401)
# ============================================================================


class UnauthorizedException(RepoCommentsException):
    """Authentication required - 401"""

    def __init__(
        self,
        error_code: str = "AUTH_001",
        detail: Any = None,
        headers: Optional[Dict[str, str]] = None,
        **kwargs,
    ):
        super().__init__(error_code=error_code, detail=detail, headers=headers, **kwargs)
        self.status_code = status.HTTP_401_UNAUTHORIZED


class InvalidTokenException(UnauthorizedException):
    """Credential invalid or expired - 401"""

    def __init__(self, error_code: str = "AUTH_002", detail: Any = None, **kwargs):
        super().__init__(error_code=error_code, detail=detail, **kwargs)


class UserNotFoundException(UnauthorizedException):
    """Credential resolves to no known user - 401"""

    def __init__(self, error_code: str = "AUTH_003", detail: Any = None, **kwargs):
        super().__init__(error_code=error_code, detail=detail, **kwargs)


# ============================================================================
# AUTHORIZATION EXCEPTIONS (403)
# ============================================================================


class ForbiddenException(RepoCommentsException):
    """Insufficient permissions - 403"""

    def __init__(
        self,
        error_code: str = "AUTHZ_001",
        detail: Any = None,
        headers: Optional[Dict[str, str]] = None,
        **kwargs,
    ):
        super().__init__(error_code=error_code, detail=detail, headers=headers, **kwargs)
        self.status_code = status.HTTP_403_FORBIDDEN


class RepositoryAccessDeniedException(ForbiddenException):
    """No grant at all for the repository - 403"""

    def __init__(self, repo: Optional[str] = None, error_code: str = "AUTHZ_001", detail: Any = None, **kwargs):
        if repo:
            kwargs.setdefault("context", {})["repo"] = repo
        super().__init__(error_code=error_code, detail=detail, **kwargs)
        self.repo = repo


class InsufficientPermissionException(ForbiddenException):
    """A grant exists but is below the required role - 403"""

    def __init__(
        self,
        required: Role,
        actual: Role,
        error_code: str = "AUTHZ_002",
        detail: Any = None,
        **kwargs,
    ):
        kwargs.setdefault("context", {}).update(
            required_role=required.value,
            actual_role=actual.value,
        )
        if detail is None:
            detail = f"Insufficient permissions. Required: {required.value}, has: {actual.value}"
        super().__init__(error_code=error_code, detail=detail, **kwargs)
        self.required = required
        self.actual = actual


# ============================================================================
# VALIDATION EXCEPTIONS (400)
# ============================================================================


class BadRequestException(RepoCommentsException):
    """Invalid request data - 400"""

    def __init__(
        self,
        error_code: str = "VAL_001",
        detail: Any = None,
        headers: Optional[Dict[str, str]] = None,
        **kwargs,
    ):
        super().__init__(error_code=error_code, detail=detail, headers=headers, **kwargs)
        self.status_code = status.HTTP_400_BAD_REQUEST


class RepoNotSpecifiedException(BadRequestException):
    """Repository context missing from the request - 400"""

    def __init__(self, error_code: str = "VAL_002", detail: Any = None, **kwargs):
        super().__init__(error_code=error_code, detail=detail, **kwargs)


# ============================================================================
# EXTERNAL SERVICE EXCEPTIONS (503)
# ============================================================================


class StoreUnavailableException(RepoCommentsException):
    """Permission or identity store did not respond - 503"""

    def __init__(
        self,
        error_code: str = "SVC_001",
        detail: Any = None,
        headers: Optional[Dict[str, str]] = None,
        **kwargs,
    ):
        super().__init__(error_code=error_code, detail=detail, headers=headers, **kwargs)
        self.status_code = status.HTTP_503_SERVICE_UNAVAILABLE


# ============================================================================
# INTERNAL SERVER EXCEPTIONS (500)
# ============================================================================


class InternalServerException(RepoCommentsException):
    """Unexpected internal error - 500"""

    def __init__(
        self,
        error_code: str = "INT_001",
        detail: Any = None,
        headers: Optional[Dict[str, str]] = None,
        **kwargs,
    ):
        super().__init__(error_code=error_code, detail=detail, headers=headers, **kwargs)
        self.status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
