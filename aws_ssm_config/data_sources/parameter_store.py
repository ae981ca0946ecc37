"""AWS SSM Parameter Store fetcher."""

import asyncio
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from ..core.errors import StoreFetchError, ValidationError
from ..core.normalization import (
    categorize_error,
    classify_store_error,
    validate_path_query,
)
from ..core.result import FetchResult
from .base import AWSDataSource


@dataclass(frozen=True)
class RawParameter:
    """A parameter as listed by Parameter Store."""

    name: str
    value: Optional[str] = None

    @classmethod
    def from_aws(cls, parameter: Dict[str, Any]) -> "RawParameter":
        return cls(name=parameter.get("Name", ""), value=parameter.get("Value"))


class PaginationLimitExceeded(Exception):
    """Raised when a listing keeps returning continuation tokens past ``max_pages``."""

    pass


class ParameterStoreFetcher(AWSDataSource):
    """Fetches every parameter under a path from AWS Systems Manager Parameter Store.

    Handles:
    - Input validation before any AWS call
    - Recursive listing with decryption of SecureString values
    - NextToken pagination, strictly in server order
    - Classification of failures into actionable messages
    """

    service_name = "ssm"

    def __init__(
        self, aws_session=None, max_retries: int = 3, max_pages: Optional[int] = None
    ):
        """Initialize Parameter Store fetcher.

        Args:
            aws_session: Boto3 session for AWS API calls
            max_retries: Attempts botocore makes before surfacing a failure
            max_pages: Optional ceiling on pages per fetch; None follows
                continuation tokens until the store stops returning them
        """
        super().__init__(aws_session=aws_session, max_retries=max_retries)
        self.max_pages = max_pages

    async def fetch_parameters(
        self, region: str, path: str, continue_on_error: bool
    ) -> List[RawParameter]:
        """Fetch all parameters recursively under ``path``.

        Args:
            region: AWS region where parameters are stored
            path: Parameter Store path to fetch from (must start with '/')
            continue_on_error: Return an empty list on failure instead of raising

        Returns:
            Parameters in the order the store returned them

        Raises:
            ValidationError: If inputs are invalid and continue_on_error is False
            StoreFetchError: If the store call fails and continue_on_error is False
        """
        self.logger.info(
            f"Initializing AWS SSM Parameter Store fetch - Region: {region}, Path: {path}"
        )

        result = await self.try_fetch_parameters(region, path)
        if result.is_success:
            return result.value

        if continue_on_error:
            self.logger.warning(
                f"{result.error} - Application will continue with empty parameters"
            )
            return []

        self.logger.error(str(result.error))
        raise result.error

    async def try_fetch_parameters(
        self, region: str, path: str
    ) -> FetchResult[List[RawParameter]]:
        """Fetch all parameters under ``path`` without raising.

        Returns:
            Success with every parameter, or failure with the classified error.
            A failure never carries a partial page set.
        """
        try:
            validate_path_query(region, path)
        except ValidationError as e:
            return FetchResult.failure(e)

        self.logger.debug("Parameter validation successful")

        parameters: List[RawParameter] = []
        page_count = 0
        next_token: Optional[str] = None

        try:
            ssm = self.get_client(region)

            while True:
                if self.max_pages is not None and page_count >= self.max_pages:
                    raise PaginationLimitExceeded(
                        f"Pagination did not complete after {page_count} page(s)"
                    )

                page_count += 1
                request = {"Path": path, "Recursive": True, "WithDecryption": True}
                if next_token:
                    request["NextToken"] = next_token
                    self.logger.debug(f"Fetching page {page_count} with NextToken")

                response = await asyncio.to_thread(
                    ssm.get_parameters_by_path, **request
                )

                page = response.get("Parameters") or []
                parameters.extend(RawParameter.from_aws(param) for param in page)
                self.logger.debug(f"Page {page_count}: Retrieved {len(page)} parameters")

                next_token = response.get("NextToken")
                if not next_token:
                    break

        except Exception as e:
            return FetchResult.failure(self._store_error(e, region, path))

        self.logger.info(
            f"Successfully fetched {len(parameters)} parameter(s) from AWS SSM "
            f"in {page_count} page(s)"
        )

        if not parameters:
            self.logger.warning(
                f"No parameters found at path '{path}' in region '{region}'. "
                "Verify the path exists and has parameters configured."
            )

        return FetchResult.success(parameters)

    @staticmethod
    def _store_error(error: Exception, region: str, path: str) -> StoreFetchError:
        store_error = StoreFetchError(
            classify_store_error(error, region, path),
            category=categorize_error(error),
            region=region,
            target=path,
        )
        store_error.__cause__ = error
        return store_error
