"""Pure helpers for validating, masking, classifying and decoding store data.

Nothing in this module performs I/O or keeps state. The fetchers and the
configuration service call these helpers for:
- boolean coercion of externally supplied settings
- request validation before any AWS call
- masking of sensitive values before they reach a log
- turning botocore failures into actionable messages
- decoding Secrets Manager payloads
"""

import json
import math
import socket
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, Union

from botocore.exceptions import (
    ClientError,
    ConnectionClosedError,
    ConnectTimeoutError,
    EndpointConnectionError,
    NoCredentialsError,
    PartialCredentialsError,
    ReadTimeoutError,
)

from .errors import ErrorCategory, ValidationError

MASK_TOKEN = "***MASKED***"

SENSITIVE_KEYWORDS = (
    "password",
    "passwd",
    "pwd",
    "secret",
    "key",
    "token",
    "auth",
    "credential",
    "api_key",
    "apikey",
    "access_key",
    "private",
    "salt",
)

UNKNOWN_ERROR_TEXT = "Unknown error occurred"

_CODE_CATEGORIES = {
    "AccessDeniedException": ErrorCategory.ACCESS_DENIED,
    "AccessDenied": ErrorCategory.ACCESS_DENIED,
    "ParameterNotFound": ErrorCategory.NOT_FOUND,
    "ResourceNotFoundException": ErrorCategory.NOT_FOUND,
    "InvalidParameterException": ErrorCategory.INVALID_PARAMETER,
    "ValidationException": ErrorCategory.INVALID_PARAMETER,
    "InvalidRequestException": ErrorCategory.INVALID_REQUEST,
    "ThrottlingException": ErrorCategory.THROTTLED,
    "Throttling": ErrorCategory.THROTTLED,
    "DecryptionFailure": ErrorCategory.DECRYPTION_FAILURE,
    "DecryptionFailureException": ErrorCategory.DECRYPTION_FAILURE,
}

_NETWORK_ERRORS = (
    EndpointConnectionError,
    ConnectTimeoutError,
    ReadTimeoutError,
    ConnectionClosedError,
    ConnectionError,
    TimeoutError,
    socket.timeout,
    socket.gaierror,
)

_CREDENTIAL_ERRORS = (NoCredentialsError, PartialCredentialsError)

_CREDENTIAL_MESSAGES = ("missing credentials", "unable to locate credentials")


def parse_boolean(value: Any) -> bool:
    """Parse a configuration value as boolean.

    Only ``True`` and strings equal to ``"true"`` (any case) are truthy.
    Numbers, ``None``, containers and every other string give ``False``.
    """
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.lower() == "true"
    return False


def validate_path_query(region: str, path: str) -> None:
    """Validate the region and base path of a Parameter Store query.

    Args:
        region: AWS region to query
        path: Parameter Store path, must start with '/'

    Raises:
        ValidationError: If either input is empty or the path is malformed
    """
    if not region or not region.strip():
        raise ValidationError(
            "AWS region is required. Please provide a valid AWS region (e.g., us-east-1)"
        )

    if not path or not path.strip():
        raise ValidationError(
            "Parameter Store path is required. Please provide a valid path (e.g., /app/config)"
        )

    if not path.startswith("/"):
        raise ValidationError(
            f"Parameter Store path must start with '/'. Received: '{path}'"
        )


def should_mask(key: str) -> bool:
    """Check whether values stored under ``key`` must be hidden in logs."""
    lower_key = key.lower()
    return any(keyword in lower_key for keyword in SENSITIVE_KEYWORDS)


def mask_value(value: Any, key: str) -> Any:
    """Return the mask token for sensitive keys, the value otherwise."""
    return MASK_TOKEN if should_mask(key) else value


def error_code(error: BaseException) -> str:
    """Extract the AWS error code, falling back to the exception class name."""
    if isinstance(error, ClientError):
        code = error.response.get("Error", {}).get("Code")
        if code:
            return code
    return type(error).__name__


def error_text(error: BaseException) -> str:
    """Underlying error text, or a placeholder when the error has none."""
    return str(error) or UNKNOWN_ERROR_TEXT


def categorize_error(error: BaseException) -> ErrorCategory:
    """Classify a failure raised by a boto3 call.

    Checks the AWS error code first, then botocore's network and credential
    exception types, then the message text.
    """
    category = _CODE_CATEGORIES.get(error_code(error))
    if category is not None:
        return category

    if isinstance(error, _CREDENTIAL_ERRORS):
        return ErrorCategory.MISSING_CREDENTIALS
    if isinstance(error, _NETWORK_ERRORS):
        return ErrorCategory.NETWORK

    message = str(error).lower()
    if any(text in message for text in _CREDENTIAL_MESSAGES):
        return ErrorCategory.MISSING_CREDENTIALS
    if "throttl" in message or "rate exceeded" in message:
        return ErrorCategory.THROTTLED
    if "access denied" in message:
        return ErrorCategory.ACCESS_DENIED

    return ErrorCategory.UNKNOWN


def classify_store_error(error: BaseException, region: str, path: str) -> str:
    """Build an actionable message for a Parameter Store failure.

    Args:
        error: The caught exception
        region: AWS region being accessed
        path: Parameter Store path being accessed

    Returns:
        Message with region, path and remediation guidance
    """
    base_message = (
        "Failed to fetch parameters from AWS SSM Parameter Store. "
        f"Region: '{region}', Path: '{path}'"
    )
    category = categorize_error(error)
    text = error_text(error)

    if category == ErrorCategory.ACCESS_DENIED:
        return (
            f"{base_message} - Access Denied. "
            "Ensure the IAM role/user has 'ssm:GetParametersByPath' permission for the specified path. "
            f"Error: {text}"
        )

    if category == ErrorCategory.NOT_FOUND:
        return (
            f"{base_message} - Parameter not found. "
            "Verify the path exists in AWS Systems Manager Parameter Store. "
            f"Error: {text}"
        )

    if category == ErrorCategory.INVALID_PARAMETER:
        return (
            f"{base_message} - Invalid parameter. "
            "Check that the path format is correct (must start with '/'). "
            f"Error: {text}"
        )

    if category == ErrorCategory.THROTTLED:
        return (
            f"{base_message} - Request throttled. "
            "AWS SSM API rate limit exceeded. Consider raising max_retries or reducing request frequency. "
            f"Error: {text}"
        )

    if category == ErrorCategory.NETWORK:
        return (
            f"{base_message} - Network error. "
            "Unable to reach AWS SSM service. Check network connectivity and AWS service status. "
            f"Error: {text}"
        )

    if category == ErrorCategory.MISSING_CREDENTIALS:
        return (
            f"{base_message} - Missing AWS credentials. "
            "Configure credentials via environment variables, AWS credentials file, or IAM role. "
            f"Error: {text}"
        )

    return f"{base_message} - {text}"


def classify_secret_error(error: BaseException, region: str, secret_name: str) -> str:
    """Build an actionable message for a Secrets Manager failure.

    Args:
        error: The caught exception
        region: AWS region being accessed
        secret_name: Secret being fetched

    Returns:
        Message with region, secret name and remediation guidance
    """
    base_message = (
        f"Failed to fetch secret '{secret_name}' from AWS Secrets Manager "
        f"in region '{region}'"
    )
    category = categorize_error(error)

    if category == ErrorCategory.NOT_FOUND:
        return (
            f"{base_message}: Secret not found. "
            f"Verify that the secret '{secret_name}' exists in region '{region}'. "
            "You can create it in the AWS Secrets Manager console."
        )

    if category == ErrorCategory.ACCESS_DENIED:
        return (
            f"{base_message}: Access Denied. "
            "Ensure your AWS credentials have the required IAM permissions:\n"
            "  - secretsmanager:GetSecretValue\n"
            f"Resource ARN: arn:aws:secretsmanager:{region}:*:secret:{secret_name}*"
        )

    if category == ErrorCategory.INVALID_PARAMETER:
        return (
            f"{base_message}: Invalid parameter. "
            "Verify the secret name format is correct. Secret names can contain "
            "alphanumeric characters and the characters /_+=.@-"
        )

    if category == ErrorCategory.INVALID_REQUEST:
        return (
            f"{base_message}: Invalid request. "
            "The secret may be scheduled for deletion or the request parameters are invalid."
        )

    if category == ErrorCategory.DECRYPTION_FAILURE:
        return (
            f"{base_message}: Decryption failed. "
            "Ensure your KMS key permissions are correct and the key is enabled."
        )

    if category == ErrorCategory.NETWORK:
        return (
            f"{base_message}: Network error ({error_code(error)}). "
            "Check your network connectivity and AWS service status."
        )

    if category == ErrorCategory.MISSING_CREDENTIALS:
        return (
            f"{base_message}: Missing AWS credentials. "
            "Configure credentials via environment variables, AWS credentials file, or IAM role."
        )

    return f"{base_message}: {error_text(error)}"


@dataclass(frozen=True)
class ObjectPayload:
    """Secret stored as a JSON object."""

    values: Dict[str, Any] = field(default_factory=dict)

    def as_dict(self) -> Dict[str, Any]:
        return dict(self.values)


@dataclass(frozen=True)
class ScalarPayload:
    """Secret stored as a single value, keyed by the secret name."""

    key: str
    value: str

    def as_dict(self) -> Dict[str, Any]:
        return {self.key: self.value}


SecretPayload = Union[ObjectPayload, ScalarPayload]


def _number_text(number: Union[int, float]) -> str:
    """Render a JSON number the way JavaScript's ``String(number)`` does."""
    if isinstance(number, int) and abs(number) < 10**21:
        return str(number)

    number = float(number)
    if math.isnan(number):
        return "NaN"
    if math.isinf(number):
        return "Infinity" if number > 0 else "-Infinity"

    magnitude = abs(number)
    if magnitude >= 1e21 or 0 < magnitude < 1e-6:
        mantissa, exponent = repr(number).split("e")
        exponent_value = int(exponent)
        sign = "+" if exponent_value >= 0 else "-"
        return f"{mantissa}e{sign}{abs(exponent_value)}"

    if number.is_integer():
        return str(int(number))
    return format(Decimal(repr(number)), "f")


def _scalar_text(value: Any) -> str:
    """Render a decoded non-object JSON value as text.

    Matches JavaScript string conversion: lowercase literals, integral numbers
    without a fraction, arrays joined with ',' (null elements render empty).
    """
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return _number_text(value)
    if isinstance(value, str):
        return value
    if isinstance(value, list):
        return ",".join("" if item is None else _scalar_text(item) for item in value)
    return "[object Object]"


def parse_secret_payload(raw: str, secret_name: str) -> SecretPayload:
    """Decode a Secrets Manager string.

    JSON objects become an ``ObjectPayload``. Any other JSON value is
    converted to text (see ``_scalar_text``) and stored under the secret
    name. Text that is not JSON is kept verbatim under the secret name.

    Args:
        raw: SecretString as returned by Secrets Manager
        secret_name: Name of the secret, used as key for scalar payloads

    Returns:
        Tagged payload
    """
    try:
        parsed = json.loads(raw)
    except (TypeError, ValueError):
        return ScalarPayload(key=secret_name, value=raw)

    if isinstance(parsed, dict):
        return ObjectPayload(values=parsed)

    return ScalarPayload(key=secret_name, value=_scalar_text(parsed))
