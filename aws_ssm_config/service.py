"""Read and refresh access to configuration loaded from Parameter Store and Secrets Manager."""

import asyncio
import json
import math
import re
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Optional

import boto3

from .core.config import ParamStoreConfig
from .core.errors import ParseError, UsageError
from .core.logging import get_logger
from .core.normalization import (
    ObjectPayload,
    ScalarPayload,
    SecretPayload,
    mask_value,
    parse_secret_payload,
)
from .data_sources.parameter_store import ParameterStoreFetcher, RawParameter
from .data_sources.secrets_manager import SecretsManagerFetcher

TRUTHY_VALUES = ("true", "1", "yes")


@dataclass(frozen=True)
class _ConfigSnapshot:
    """Parameters and secrets from one load, never modified after creation."""

    parameters: Mapping[str, str] = field(
        default_factory=lambda: MappingProxyType({})
    )
    secrets: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))


def _profile_session(config: ParamStoreConfig) -> Optional[boto3.Session]:
    """Session for the configured named profile; None uses the default chain."""
    if not config.aws_profile:
        return None
    return boto3.Session(profile_name=config.aws_profile)


_DECIMAL_NUMBER = re.compile(r"[+-]?(?:[0-9]+\.?[0-9]*|\.[0-9]+)(?:[eE][+-]?[0-9]+)?")
_RADIX_NUMBERS = {
    "0x": (16, re.compile(r"[0-9a-fA-F]+")),
    "0o": (8, re.compile(r"[0-7]+")),
    "0b": (2, re.compile(r"[01]+")),
}
_INFINITIES = {"Infinity": math.inf, "+Infinity": math.inf, "-Infinity": -math.inf}


def _parse_number(text: str) -> float:
    """Convert text to a number with JavaScript ``Number()`` rules."""
    stripped = text.strip()
    if not stripped:
        return 0.0
    if stripped in _INFINITIES:
        return _INFINITIES[stripped]

    radix = _RADIX_NUMBERS.get(stripped[:2].lower())
    if radix is not None:
        base, digits = radix
        if digits.fullmatch(stripped[2:]):
            return float(int(stripped[2:], base))
        return math.nan

    if _DECIMAL_NUMBER.fullmatch(stripped):
        return float(stripped)
    return math.nan


class SystemsManagerService:
    """Configuration values from AWS Parameter Store and Secrets Manager.

    Holds two maps, parameters and secrets, inside a single snapshot. Loads and
    refreshes build a complete new snapshot and swap the reference, so a reader
    sees either the previous maps or the new ones, never a mix.

    Lookup precedence differs between single-key reads and the merged view:
    ``get`` prefers parameters, ``get_all`` lets secrets override parameters.
    """

    def __init__(
        self,
        parameters: Iterable[RawParameter],
        secrets: Mapping[str, str],
        config: ParamStoreConfig,
        parameter_fetcher: Optional[ParameterStoreFetcher] = None,
        secrets_fetcher: Optional[SecretsManagerFetcher] = None,
    ):
        """Initialize the service from already fetched values.

        Args:
            parameters: Parameters listed under ``config.param_store_path``
            secrets: Secret values keyed by secret name
            config: Static loading configuration
            parameter_fetcher: Fetcher used by refreshes
            secrets_fetcher: Fetcher used by refreshes
        """
        self.config = config
        self.logger = get_logger("systems_manager_service")
        if parameter_fetcher is None or secrets_fetcher is None:
            aws_session = _profile_session(config)
            if parameter_fetcher is None:
                parameter_fetcher = ParameterStoreFetcher(
                    aws_session=aws_session, max_retries=config.max_retries
                )
            if secrets_fetcher is None:
                secrets_fetcher = SecretsManagerFetcher(
                    aws_session=aws_session, max_retries=config.max_retries
                )
        self.parameter_fetcher = parameter_fetcher
        self.secrets_fetcher = secrets_fetcher
        self._snapshot = _ConfigSnapshot(
            parameters=self._build_parameters(parameters),
            secrets=self._build_secrets(secrets),
        )

    @classmethod
    async def create(
        cls,
        config: ParamStoreConfig,
        parameter_fetcher: Optional[ParameterStoreFetcher] = None,
        secrets_fetcher: Optional[SecretsManagerFetcher] = None,
        aws_session=None,
    ) -> "SystemsManagerService":
        """Fetch parameters and secrets, then build the service.

        Secrets are only fetched when Secrets Manager is enabled and at least one
        secret name is configured. A propagated fetch error means no service is
        created. Without an explicit ``aws_session``, a configured
        ``aws_profile`` selects the boto3 session's credentials.
        """
        config.validate()
        if aws_session is None:
            aws_session = _profile_session(config)
        if parameter_fetcher is None:
            parameter_fetcher = ParameterStoreFetcher(
                aws_session=aws_session, max_retries=config.max_retries
            )
        if secrets_fetcher is None:
            secrets_fetcher = SecretsManagerFetcher(
                aws_session=aws_session, max_retries=config.max_retries
            )

        parameters = await parameter_fetcher.fetch_parameters(
            config.aws_region, config.param_store_path, config.continue_on_error
        )
        secrets: Dict[str, str] = {}
        if config.secrets_enabled:
            secrets = await secrets_fetcher.fetch_secrets(
                config.aws_region, config.secret_names, config.continue_on_error
            )

        return cls(parameters, secrets, config, parameter_fetcher, secrets_fetcher)

    @classmethod
    def load(cls, config: ParamStoreConfig, **kwargs) -> "SystemsManagerService":
        """Synchronous ``create`` for scripts and Lambda handlers."""
        return asyncio.run(cls.create(config, **kwargs))

    # ==========================================
    # KEY DERIVATION AND LOADING
    # ==========================================

    def derive_key(self, full_path: str) -> str:
        """Derive the lookup key for a parameter path.

        Flat mode keeps the last path segment. Hierarchical mode strips the
        configured base path, drops empty segments and joins the rest with the
        configured separator.

        Examples:
            flat: '/app/config/database/host' -> 'host'
            hierarchical, base '/app/config': '/app/config/database/host'
            -> 'database.host'
        """
        if not self.config.preserve_hierarchy:
            return full_path.split("/")[-1]

        base_path = self.config.param_store_path or ""
        relative_path = full_path
        if base_path and full_path.startswith(base_path):
            relative_path = full_path[len(base_path):]

        segments = [segment for segment in relative_path.strip("/").split("/") if segment]
        return self.config.path_separator.join(segments)

    def _build_parameters(self, parameters: Iterable[RawParameter]) -> Mapping[str, str]:
        loaded: Dict[str, str] = {}
        count = 0
        for parameter in parameters:
            if not parameter.name or parameter.value is None:
                continue
            key = self.derive_key(parameter.name)
            loaded[key] = parameter.value
            count += 1

            if self.config.enable_parameter_logging:
                self.logger.debug(
                    f"Loaded parameter: {key} = {mask_value(parameter.value, key)}"
                )

        if self.config.enable_parameter_logging:
            self.logger.info(f"Loaded {count} parameter(s) into service")

        return MappingProxyType(loaded)

    def _build_secrets(self, secrets: Mapping[str, str]) -> Mapping[str, str]:
        loaded = dict(secrets)

        # Secret values are never logged, only their names.
        if loaded:
            self.logger.info(f"Loaded {len(loaded)} secret(s) from AWS Secrets Manager")
            if self.config.enable_parameter_logging:
                self.logger.debug(f"Secret names: {', '.join(loaded)}")

        return MappingProxyType(loaded)

    # ==========================================
    # READS
    # ==========================================

    def get(self, key: str) -> Optional[str]:
        """Parameter value for ``key``, falling back to the secret of that name."""
        snapshot = self._snapshot
        if key in snapshot.parameters:
            return snapshot.parameters[key]
        return snapshot.secrets.get(key)

    def get_parameter(self, key: str) -> Optional[str]:
        return self._snapshot.parameters.get(key)

    def get_secret(self, key: str) -> Optional[str]:
        return self._snapshot.secrets.get(key)

    def get_as_number(self, key: str) -> float:
        """Numeric value for ``key``; ``nan`` when missing, empty or not a number.

        Accepts decimal and exponent literals, ``0x``/``0o``/``0b`` integers and
        ``Infinity``, with surrounding whitespace ignored. A whitespace-only
        value is ``0``. Python-only spellings such as ``1_000`` or ``inf`` are
        not numbers.
        """
        value = self.get(key)
        if not value:
            return math.nan
        return _parse_number(value)

    def get_as_boolean(self, key: str) -> bool:
        value = self.get(key)
        return value is not None and value.lower() in TRUTHY_VALUES

    def get_as_json(self, key: str) -> Any:
        """Parse the value for ``key`` as JSON.

        Raises:
            ParseError: If the key is missing or the value is not valid JSON
        """
        value = self.get(key)
        if value is None:
            raise ParseError(f"Cannot parse '{key}' as JSON: key not found")
        try:
            return json.loads(value)
        except ValueError as e:
            raise ParseError(f"Cannot parse '{key}' as JSON: {e}") from e

    def get_or_default(self, key: str, default: str) -> str:
        value = self.get(key)
        return default if value is None else value

    def has_parameter(self, key: str) -> bool:
        return key in self._snapshot.parameters

    def has_secret(self, key: str) -> bool:
        return key in self._snapshot.secrets

    def has(self, key: str) -> bool:
        snapshot = self._snapshot
        return key in snapshot.parameters or key in snapshot.secrets

    def get_secret_payload(self, name: str) -> Optional[SecretPayload]:
        """Decode the secret ``name`` into an object or scalar payload."""
        value = self.get_secret(name)
        if value is None:
            return None
        return parse_secret_payload(value, name)

    def get_secret_values(self, name: str) -> Dict[str, Any]:
        """Key/value view of a secret.

        JSON-object secrets return their fields; any other secret returns
        ``{name: value}``. Missing secrets return an empty dict.
        """
        payload = self.get_secret_payload(name)
        return {} if payload is None else payload.as_dict()

    def get_secret_field(self, name: str, field_name: str) -> Optional[Any]:
        """Single field of a JSON-object secret.

        A plain secret only answers for ``field_name == name``.
        """
        payload = self.get_secret_payload(name)
        if isinstance(payload, ObjectPayload):
            return payload.values.get(field_name)
        if isinstance(payload, ScalarPayload) and payload.key == field_name:
            return payload.value
        return None

    # ==========================================
    # BULK VIEWS (copies)
    # ==========================================

    def get_all_parameter_keys(self) -> List[str]:
        return list(self._snapshot.parameters)

    def get_all_secret_keys(self) -> List[str]:
        return list(self._snapshot.secrets)

    def get_all_keys(self) -> List[str]:
        """Parameter keys followed by secret keys; a key in both maps appears twice."""
        snapshot = self._snapshot
        return list(snapshot.parameters) + list(snapshot.secrets)

    def get_all_parameters(self) -> Dict[str, str]:
        return dict(self._snapshot.parameters)

    def get_all_secrets(self) -> Dict[str, str]:
        return dict(self._snapshot.secrets)

    def get_all(self) -> Dict[str, str]:
        """Merged copy of both maps; secrets override parameters on collision."""
        snapshot = self._snapshot
        merged = dict(snapshot.parameters)
        merged.update(snapshot.secrets)
        return merged

    # ==========================================
    # REFRESH
    # ==========================================

    async def refresh(self) -> None:
        """Re-fetch parameters, and secrets when enabled, then swap both maps at once."""
        with self.logger.timer("configuration refresh"):
            parameters = await self._fetch_parameters()
            secrets = None
            if self.config.secrets_enabled:
                secrets = await self._fetch_secrets()

            current = self._snapshot
            self._snapshot = _ConfigSnapshot(
                parameters=self._build_parameters(parameters),
                secrets=current.secrets if secrets is None else self._build_secrets(secrets),
            )

    async def refresh_parameters(self) -> None:
        """Re-fetch parameters and replace the parameter map."""
        parameters = await self._fetch_parameters()
        self._snapshot = _ConfigSnapshot(
            parameters=self._build_parameters(parameters),
            secrets=self._snapshot.secrets,
        )

    async def refresh_secrets(self) -> None:
        """Re-fetch secrets and replace the secret map.

        Raises:
            UsageError: If Secrets Manager is disabled or no names are configured
        """
        if not self.config.secrets_enabled:
            raise UsageError("Secrets Manager is not enabled or no secret names configured")

        secrets = await self._fetch_secrets()
        self._snapshot = _ConfigSnapshot(
            parameters=self._snapshot.parameters,
            secrets=self._build_secrets(secrets),
        )

    async def _fetch_parameters(self) -> List[RawParameter]:
        return await self.parameter_fetcher.fetch_parameters(
            self.config.aws_region,
            self.config.param_store_path,
            self.config.continue_on_error,
        )

    async def _fetch_secrets(self) -> Dict[str, str]:
        return await self.secrets_fetcher.fetch_secrets(
            self.config.aws_region,
            self.config.secret_names,
            self.config.continue_on_error,
        )
