"""AWS SSM Config - Parameter Store and Secrets Manager configuration loader

Fetches configuration values from AWS Systems Manager Parameter Store and secrets
from AWS Secrets Manager at startup, and serves them to the application through
SystemsManagerService.
"""

__version__ = "1.0.0"
__author__ = "AWS SSM Config"

from .core.config import ParamStoreConfig
from .core.errors import (
    ConfigLoaderError,
    ErrorCategory,
    ParseError,
    StoreFetchError,
    UsageError,
    ValidationError,
)
from .data_sources import ParameterStoreFetcher, RawParameter, SecretsManagerFetcher
from .service import SystemsManagerService

__all__ = [
    "ParamStoreConfig",
    "SystemsManagerService",
    "ParameterStoreFetcher",
    "SecretsManagerFetcher",
    "RawParameter",
    "ConfigLoaderError",
    "ValidationError",
    "StoreFetchError",
    "UsageError",
    "ParseError",
    "ErrorCategory",
]
