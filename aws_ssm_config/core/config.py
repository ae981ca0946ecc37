"""Configuration management for AWS SSM config loading."""

import os
from dataclasses import dataclass, replace
from typing import Any, Iterable, Mapping, Optional, Tuple, Union

from .errors import ValidationError
from .normalization import parse_boolean

# Keys read from an external settings mapping (framework config, parsed YAML, ...)
AWS_REGION = "param-store.awsRegion"
AWS_PARAM_STORE_PATH = "param-store.awsParamStorePath"
AWS_PARAM_STORE_CONTINUE_ON_ERROR = "param-store.awsParamStoreContinueOnError"
AWS_PARAM_STORE_PRESERVE_HIERARCHY = "param-store.preserveHierarchy"
AWS_PARAM_STORE_PATH_SEPARATOR = "param-store.pathSeparator"
AWS_PARAM_STORE_ENABLE_LOGGING = "param-store.enableParameterLogging"
AWS_SECRETS_MANAGER_ENABLED = "param-store.useSecretsManager"
AWS_SECRETS_MANAGER_SECRET_NAMES = "param-store.secretsManagerSecretNames"

DEFAULT_PATH_SEPARATOR = "."


def _as_names(value: Union[None, str, Iterable[str]]) -> Tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return tuple(name.strip() for name in value.split(",") if name.strip())
    return tuple(value)


@dataclass(frozen=True)
class ParamStoreConfig:
    """Settings for loading Parameter Store parameters and Secrets Manager secrets."""

    # AWS Settings
    aws_region: str = "us-east-1"
    param_store_path: str = "/"
    aws_profile: Optional[str] = None

    # Loading behavior
    continue_on_error: bool = False
    preserve_hierarchy: bool = False
    path_separator: str = DEFAULT_PATH_SEPARATOR
    enable_parameter_logging: bool = False

    # Secrets Manager
    use_secrets_manager: bool = False
    secret_names: Tuple[str, ...] = ()

    # Performance Settings
    max_retries: int = 3

    def __post_init__(self):
        # Accept lists from callers; keep the stored value immutable.
        object.__setattr__(self, "secret_names", _as_names(self.secret_names))
        if not self.path_separator:
            object.__setattr__(self, "path_separator", DEFAULT_PATH_SEPARATOR)

    @property
    def secrets_enabled(self) -> bool:
        """True when secrets should be fetched: enabled and at least one name."""
        return self.use_secrets_manager and len(self.secret_names) > 0

    def validate(self) -> None:
        """Check settings that are not covered by the continue-on-error policy.

        Raises:
            ValidationError: If the combination of settings is unusable
        """
        if self.max_retries < 0:
            raise ValidationError(
                f"max_retries must be zero or positive. Received: {self.max_retries}"
            )
        if not isinstance(self.path_separator, str):
            raise ValidationError(
                f"path_separator must be a string. Received: {self.path_separator!r}"
            )

    def with_overrides(self, **changes: Any) -> "ParamStoreConfig":
        """Return a copy with the given fields replaced."""
        return replace(self, **changes)

    @classmethod
    def from_env(cls) -> "ParamStoreConfig":
        """Create config from environment variables."""
        return cls(
            aws_region=os.getenv("AWS_REGION")
            or os.getenv("AWS_DEFAULT_REGION", "us-east-1"),
            param_store_path=os.getenv("PARAM_STORE_PATH", "/"),
            aws_profile=os.getenv("AWS_PROFILE"),
            continue_on_error=parse_boolean(
                os.getenv("PARAM_STORE_CONTINUE_ON_ERROR", "false")
            ),
            preserve_hierarchy=parse_boolean(
                os.getenv("PARAM_STORE_PRESERVE_HIERARCHY", "false")
            ),
            path_separator=os.getenv(
                "PARAM_STORE_PATH_SEPARATOR", DEFAULT_PATH_SEPARATOR
            ),
            enable_parameter_logging=parse_boolean(
                os.getenv("PARAM_STORE_ENABLE_LOGGING", "false")
            ),
            use_secrets_manager=parse_boolean(
                os.getenv("SECRETS_MANAGER_ENABLED", "false")
            ),
            secret_names=_as_names(os.getenv("SECRETS_MANAGER_SECRET_NAMES")),
            max_retries=int(os.getenv("MAX_RETRIES", "3")),
        )

    @classmethod
    def from_mapping(cls, settings: Mapping[str, Any]) -> "ParamStoreConfig":
        """Create config from a settings mapping keyed by ``param-store.*`` names.

        Boolean settings may be real booleans or strings such as ``"true"``.
        """
        return cls(
            aws_region=settings.get(AWS_REGION) or "",
            param_store_path=settings.get(AWS_PARAM_STORE_PATH) or "",
            continue_on_error=parse_boolean(
                settings.get(AWS_PARAM_STORE_CONTINUE_ON_ERROR)
            ),
            preserve_hierarchy=parse_boolean(
                settings.get(AWS_PARAM_STORE_PRESERVE_HIERARCHY)
            ),
            path_separator=settings.get(AWS_PARAM_STORE_PATH_SEPARATOR)
            or DEFAULT_PATH_SEPARATOR,
            enable_parameter_logging=parse_boolean(
                settings.get(AWS_PARAM_STORE_ENABLE_LOGGING)
            ),
            use_secrets_manager=parse_boolean(settings.get(AWS_SECRETS_MANAGER_ENABLED)),
            secret_names=_as_names(settings.get(AWS_SECRETS_MANAGER_SECRET_NAMES)),
        )
