"""AWS Secrets Manager fetcher."""

import asyncio
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Sequence, Union

from ..core.errors import StoreFetchError, ValidationError
from ..core.normalization import categorize_error, classify_secret_error
from ..core.result import FetchResult
from .base import AWSDataSource


@dataclass(frozen=True)
class RawSecretResult:
    """Outcome of fetching a single secret."""

    secret_name: str
    value: Optional[str] = None
    error: Optional[StoreFetchError] = None


class SecretValueMissing(Exception):
    """Raised when a GetSecretValue response carries neither string nor binary."""

    pass


def decode_secret_value(response: Mapping[str, Any], secret_name: str) -> str:
    """Extract the secret text from a GetSecretValue response.

    SecretString wins when present and non-empty. Otherwise SecretBinary is
    decoded as UTF-8, with invalid bytes replaced by U+FFFD.

    Raises:
        SecretValueMissing: If the response has neither value
    """
    secret_string = response.get("SecretString")
    if secret_string:
        return secret_string

    secret_binary = response.get("SecretBinary")
    if secret_binary:
        return bytes(secret_binary).decode("utf-8", errors="replace")

    raise SecretValueMissing(f"Secret '{secret_name}' has no value")


class SecretsManagerFetcher(AWSDataSource):
    """Fetches named secrets from AWS Secrets Manager concurrently.

    Every secret is requested at once; the blocking boto3 calls run in worker
    threads while the event loop waits for all of them to settle. Results are
    aggregated in the order the names were given.
    """

    service_name = "secretsmanager"

    async def fetch_secrets(
        self,
        region: str,
        secret_names: Optional[Sequence[str]],
        continue_on_error: bool,
    ) -> Dict[str, str]:
        """Fetch secrets and map each name to its value.

        Args:
            region: AWS region where secrets are stored
            secret_names: Names (or ARNs) of the secrets to fetch
            continue_on_error: Skip failed secrets (and return an empty map on
                validation failure) instead of raising

        Returns:
            Dictionary mapping secret names to their string values

        Raises:
            ValidationError: If inputs are invalid and continue_on_error is False
            StoreFetchError: If any secret fails and continue_on_error is False
        """
        result = await self.try_fetch_secrets(region, secret_names, continue_on_error)
        if result.is_success:
            return result.value

        if continue_on_error:
            self.logger.error(str(result.error))
            self.logger.warning("Application will continue with empty secrets")
            return {}

        self.logger.error(str(result.error))
        raise result.error

    async def try_fetch_secrets(
        self,
        region: str,
        secret_names: Optional[Sequence[str]],
        skip_failed: bool = False,
    ) -> FetchResult[Dict[str, str]]:
        """Fetch secrets without raising.

        Args:
            region: AWS region where secrets are stored
            secret_names: Names of the secrets to fetch; a single string is
                treated as one name
            skip_failed: Leave failed secrets out of the result instead of
                failing on the first one (in input order)

        Returns:
            Success with the name-to-value map, or failure with the first error
        """
        if not region or not region.strip():
            return FetchResult.failure(ValidationError("AWS region cannot be empty"))

        if not secret_names:
            self.logger.warning("No secret names provided, skipping Secrets Manager fetch")
            return FetchResult.success({})

        # A bare string is one secret name, not a sequence of characters.
        names = [secret_names] if isinstance(secret_names, str) else list(secret_names)
        self.logger.info(
            f"Initializing AWS Secrets Manager fetch - Region: {region}, Secrets: {len(names)}"
        )

        if any(not name or not name.strip() for name in names):
            return FetchResult.failure(ValidationError("Secret names cannot be empty"))

        try:
            client = self.get_client(region)
        except Exception as e:
            return FetchResult.failure(
                self._aggregate_error(self._secret_error(e, region, names[0]))
            )

        outcomes = await asyncio.gather(
            *(self._fetch_secret(client, region, name) for name in names),
            return_exceptions=True,
        )

        secrets: Dict[str, str] = {}
        success_count = 0
        failure_count = 0

        for name, outcome in zip(names, outcomes):
            error = self._outcome_error(outcome, region, name)
            if error is None:
                secrets[name] = outcome.value
                success_count += 1
                continue

            failure_count += 1
            if not skip_failed:
                return FetchResult.failure(self._aggregate_error(error))

        self.logger.info(
            f"Secrets Manager fetch completed - Success: {success_count}, Failed: {failure_count}"
        )

        if success_count == 0:
            self.logger.warning(
                "No secrets were successfully fetched from AWS Secrets Manager. "
                f"Verify secret names exist in region '{region}' and IAM permissions are correct."
            )

        return FetchResult.success(secrets)

    async def _fetch_secret(self, client, region: str, secret_name: str) -> RawSecretResult:
        """Fetch one secret, capturing any failure in the result."""
        self.logger.debug(f"Fetching secret: {secret_name}")
        try:
            response = await asyncio.to_thread(
                client.get_secret_value, SecretId=secret_name
            )
            value = decode_secret_value(response, secret_name)
        except Exception as e:
            error = self._secret_error(e, region, secret_name)
            self.logger.error(str(error))
            return RawSecretResult(secret_name=secret_name, error=error)

        self.logger.debug(f"Successfully fetched secret: {secret_name}")
        return RawSecretResult(secret_name=secret_name, value=value)

    def _outcome_error(
        self, outcome: Union[RawSecretResult, BaseException], region: str, name: str
    ) -> Optional[StoreFetchError]:
        if isinstance(outcome, BaseException):
            self.logger.error(f"Unexpected error fetching secret: {outcome}")
            return self._secret_error(outcome, region, name)
        if outcome.error is not None:
            return outcome.error
        if outcome.value is None:
            return StoreFetchError(
                f"Failed to fetch secret: {name}", region=region, target=name
            )
        return None

    @staticmethod
    def _secret_error(error: BaseException, region: str, name: str) -> StoreFetchError:
        store_error = StoreFetchError(
            classify_secret_error(error, region, name),
            category=categorize_error(error),
            region=region,
            target=name,
        )
        store_error.__cause__ = error
        return store_error

    @staticmethod
    def _aggregate_error(error: StoreFetchError) -> StoreFetchError:
        aggregate = StoreFetchError(
            f"Failed to fetch secrets from AWS Secrets Manager: {error}",
            category=error.category,
            region=error.region,
            target=error.target,
        )
        aggregate.__cause__ = error
        return aggregate
