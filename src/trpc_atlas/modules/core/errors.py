"""
Structured error codes for machine-readable CLI failures.

Error codes:
- TRPCA_ERR_NOT_FOUND: File or router variable not found
- TRPCA_ERR_INTERNAL: Unexpected failure
"""

import logging
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)


ERR_NOT_FOUND = "TRPCA_ERR_NOT_FOUND"
ERR_INTERNAL = "TRPCA_ERR_INTERNAL"


class ConfigError(ValueError):
    """Raised when a project configuration file cannot be read or parsed."""


@dataclass
class AtlasError:
    """Structured error response for machine parsing."""

    code: str
    message: str
    details: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "error": True,
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


def make_error(code: str, message: str, **details) -> dict:
    """Create a structured error response dict."""
    return AtlasError(code=code, message=message, details=details).to_dict()


def log_and_return_empty(
    logger_: logging.Logger,
    level: int,
    message: str,
    exc: Exception | None = None,
    return_value: Any = None,
) -> Any:
    """Log a degraded lookup and return a default value."""
    if exc:
        logger_.log(level, f"{message}: {exc}")
    else:
        logger_.log(level, message)
    return return_value


def make_not_found_error(item_type: str, name: str) -> dict:
    return make_error(
        ERR_NOT_FOUND,
        f"{item_type} '{name}' not found",
        type=item_type,
        name=name,
    )

