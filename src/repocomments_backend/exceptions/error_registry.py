"""
Error registry management for loading and accessing error definitions.

The registry lives next to this module in ``error_registry.yaml``.
"""

import yaml
from pathlib import Path
from typing import Dict, Optional

from repocomments_types.errors import ErrorDefinition, ErrorMessageFormat


REGISTRY_PATH = Path(__file__).with_name("error_registry.yaml")

# Cache for error registry
_error_registry: Optional[Dict[str, ErrorDefinition]] = None


def load_error_registry(path: Path = REGISTRY_PATH) -> Dict[str, ErrorDefinition]:
    """
    Load error registry from YAML file.

    Returns:
        Dictionary mapping error codes to ErrorDefinition objects

    Raises:
        FileNotFoundError: If the registry file is missing
        ValueError: If YAML is malformed or validation fails
    """
    global _error_registry

    if _error_registry is not None:
        return _error_registry

    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f)

    if not data or "errors" not in data:
        raise ValueError("Invalid error registry format: missing 'errors' key")

    registry = {}
    for error_dict in data["errors"]:
        try:
            message_data = error_dict.get("message", {})
            error_def = ErrorDefinition(
                code=error_dict["code"],
                http_status=error_dict["http_status"],
                category=error_dict["category"],
                severity=error_dict["severity"],
                title=error_dict["title"],
                message=ErrorMessageFormat(
                    plain=message_data.get("plain", ""),
                    markdown=message_data.get("markdown"),
                ),
                retry_after=error_dict.get("retry_after"),
                internal_description=error_dict.get("internal_description", ""),
            )
        except (KeyError, ValueError) as e:
            raise ValueError(
                f"Failed to parse error definition for {error_dict.get('code', 'unknown')}: {e}"
            )

        registry[error_def.code] = error_def

    _error_registry = registry
    return _error_registry


def get_error_definition(error_code: str) -> ErrorDefinition:
    """
    Get error definition by code.

    Unknown codes map to a generic internal error definition.
    """
    registry = load_error_registry()

    if error_code not in registry:
        return ErrorDefinition(
            code="UNKNOWN",
            http_status=500,
            category="internal",
            severity="error",
            title="Unknown Error",
            message=ErrorMessageFormat(
                plain=f"An error occurred (code: {error_code})",
                markdown=f"**Unknown Error**\n\nAn error occurred with code: `{error_code}`",
            ),
            internal_description=f"Unknown error code: {error_code}",
        )

    return registry[error_code]


def get_all_error_codes() -> list[str]:
    """Get list of all registered error codes."""
    return list(load_error_registry().keys())


def validate_error_registry() -> tuple[bool, list[str]]:
    """
    Validate error registry for completeness and consistency.

    Returns:
        Tuple of (is_valid, list of validation errors)
    """
    errors = []

    try:
        registry = load_error_registry()
    except (OSError, ValueError) as e:
        return False, [f"Failed to load registry: {e}"]

    for code, error_def in registry.items():
        if not error_def.message.plain:
            errors.append(f"{code}: Missing plain text message")

        if error_def.http_status < 100 or error_def.http_status > 599:
            errors.append(f"{code}: Invalid HTTP status code {error_def.http_status}")

        if not error_def.internal_description:
            errors.append(f"{code}: Missing internal description")

    return len(errors) == 0, errors
