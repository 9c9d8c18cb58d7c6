"""
Error handling package.

This package provides:
- Custom exception classes with error codes
- Error registry management
- FastAPI exception handlers

Usage:
    from repocomments_backend.exceptions import (
        RepositoryAccessDeniedException,
        register_exception_handlers,
    )
"""

from repocomments_backend.exceptions.exceptions import (
    # Base exception
    RepoCommentsException,

    # Authentication exceptions (401)
    UnauthorizedException,
    InvalidTokenException,
    UserNotFoundException,

    # Authorization exceptions (403)
    ForbiddenException,
    RepositoryAccessDeniedException,
    InsufficientPermissionException,

    # Validation exceptions (400)
    BadRequestException,
    RepoNotSpecifiedException,

    # External service exceptions (503)
    StoreUnavailableException,

    # Internal server exceptions (500)
    InternalServerException,
)

from repocomments_backend.exceptions.error_registry import (
    load_error_registry,
    get_error_definition,
    get_all_error_codes,
    validate_error_registry,
)

from repocomments_backend.exceptions.error_handlers import (
    register_exception_handlers,
    repocomments_exception_handler,
    validation_exception_handler,
    generic_exception_handler,
)


__all__ = [
    "RepoCommentsException",
    "UnauthorizedException",
    "InvalidTokenException",
    "UserNotFoundException",
    "ForbiddenException",
    "RepositoryAccessDeniedException",
    "InsufficientPermissionException",
    "BadRequestException",
    "RepoNotSpecifiedException",
    "StoreUnavailableException",
    "InternalServerException",
    "load_error_registry",
    "get_error_definition",
    "get_all_error_codes",
    "validate_error_registry",
    "register_exception_handlers",
    "repocomments_exception_handler",
    "validation_exception_handler",
    "generic_exception_handler",
]
