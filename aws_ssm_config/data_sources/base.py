"""Base class for AWS-backed configuration sources."""

from typing import Any, Dict

import boto3
from botocore.config import Config as BotoConfig

from ..core.logging import get_logger


class AWSDataSource:
    """Base class for sources that read from an AWS service.

    Clients are created lazily, one per region, from the injected boto3 session
    (or the default session) and reused for later calls.
    """

    service_name: str = ""

    def __init__(self, aws_session=None, max_retries: int = 3):
        """Initialize AWS data source.

        Args:
            aws_session: Boto3 session for AWS API calls
            max_retries: Attempts botocore makes before surfacing a failure
        """
        self.aws_session = aws_session
        self.max_retries = max_retries
        self.logger = get_logger(self.__class__.__name__.lower())
        self._clients: Dict[str, Any] = {}

    def get_client(self, region: str):
        """Get the service client for ``region`` with connection reuse."""
        client = self._clients.get(region)
        if client is None:
            boto_config = BotoConfig(
                retries={"total_max_attempts": self.max_retries + 1, "mode": "standard"}
            )
            if self.aws_session:
                client = self.aws_session.client(
                    self.service_name, region_name=region, config=boto_config
                )
            else:
                client = boto3.client(
                    self.service_name, region_name=region, config=boto_config
                )
            self._clients[region] = client
            self.logger.debug(
                f"Initialized {self.service_name} client for region: {region}"
            )
        return client
