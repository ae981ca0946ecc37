"""Data sources for fetching configuration from AWS."""

from .parameter_store import ParameterStoreFetcher, RawParameter
from .secrets_manager import RawSecretResult, SecretsManagerFetcher

__all__ = [
    "ParameterStoreFetcher",
    "RawParameter",
    "SecretsManagerFetcher",
    "RawSecretResult",
]
