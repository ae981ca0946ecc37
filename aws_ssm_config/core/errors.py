"""Error types raised while loading configuration from AWS."""

from enum import Enum
from typing import Optional


class ErrorCategory(Enum):
    """Classified store failure categories."""

    ACCESS_DENIED = "access_denied"
    NOT_FOUND = "not_found"
    INVALID_PARAMETER = "invalid_parameter"
    INVALID_REQUEST = "invalid_request"
    THROTTLED = "throttled"
    DECRYPTION_FAILURE = "decryption_failure"
    NETWORK = "network"
    MISSING_CREDENTIALS = "missing_credentials"
    UNKNOWN = "unknown"


class ConfigLoaderError(Exception):
    """Base exception for all configuration loading errors."""

    pass


class ValidationError(ConfigLoaderError):
    """Exception for malformed caller input, detected before any AWS call."""

    pass


class StoreFetchError(ConfigLoaderError):
    """Exception raised when Parameter Store or Secrets Manager fails."""

    def __init__(
        self,
        message: str,
        category: ErrorCategory = ErrorCategory.UNKNOWN,
        region: Optional[str] = None,
        target: Optional[str] = None,
    ):
        """Initialize store fetch error.

        Args:
            message: Classified, human-readable message
            category: Failure category
            region: AWS region being accessed
            target: Parameter path or secret name being accessed
        """
        super().__init__(message)
        self.category = category
        self.region = region
        self.target = target


class UsageError(ConfigLoaderError):
    """Exception raised when an operation is used without being configured."""

    pass


class ParseError(ConfigLoaderError, ValueError):
    """Exception raised when a stored value cannot be parsed as JSON."""

    pass
