#!/usr/bin/env python3
"""Test Secrets Manager fetcher: concurrency, decoding and partial-failure policy."""

import asyncio
import os
import sys
import threading
from unittest.mock import Mock

import pytest
from botocore.exceptions import ClientError

# Add project root to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", ".."))

from aws_ssm_config.core.errors import ErrorCategory, StoreFetchError, ValidationError
from aws_ssm_config.data_sources.secrets_manager import (
    SecretsManagerFetcher,
    SecretValueMissing,
    decode_secret_value,
)


def not_found(secret_name):
    return ClientError(
        {
            "Error": {
                "Code": "ResourceNotFoundException",
                "Message": f"Secrets Manager can't find the specified secret: {secret_name}",
            }
        },
        "GetSecretValue",
    )


def create_mock_secrets_client(responses):
    """Create a Secrets Manager client stub.

    Args:
        responses: Mapping of secret name to a response dict or an exception
    """
    client = Mock()

    def get_secret_value(SecretId):
        response = responses[SecretId]
        if isinstance(response, Exception):
            raise response
        return response

    client.get_secret_value.side_effect = get_secret_value
    return client


def create_fetcher(client):
    session = Mock()
    session.client.return_value = client
    return SecretsManagerFetcher(aws_session=session)


def test_fetch_string_and_binary_secrets():
    client = create_mock_secrets_client(
        {
            "db": {"SecretString": '{"username": "admin"}'},
            "cert": {"SecretBinary": "pem-data".encode("utf-8")},
        }
    )
    fetcher = create_fetcher(client)

    secrets = asyncio.run(fetcher.fetch_secrets("us-east-1", ["db", "cert"], False))

    assert secrets == {"db": '{"username": "admin"}', "cert": "pem-data"}
    assert client.get_secret_value.call_count == 2


def test_decode_secret_value():
    assert decode_secret_value({"SecretString": "text"}, "s") == "text"
    assert decode_secret_value({"SecretString": "", "SecretBinary": b"bin"}, "s") == "bin"
    assert decode_secret_value({"SecretBinary": b"\xff\xfe"}, "s") == "\ufffd\ufffd"
    with pytest.raises(SecretValueMissing, match="Secret 's' has no value"):
        decode_secret_value({"Name": "s"}, "s")


def test_binary_secret_with_invalid_utf8_is_decoded_with_replacement():
    client = create_mock_secrets_client({"bin": {"SecretBinary": b"ok\xffbytes"}})
    fetcher = create_fetcher(client)

    assert asyncio.run(fetcher.fetch_secrets("us-east-1", ["bin"], False)) == {
        "bin": "ok\ufffdbytes"
    }
    assert asyncio.run(fetcher.fetch_secrets("us-east-1", ["bin"], True)) == {
        "bin": "ok\ufffdbytes"
    }


def test_single_string_is_one_secret_name():
    client = create_mock_secrets_client({"prod/db": {"SecretString": "value"}})
    fetcher = create_fetcher(client)

    secrets = asyncio.run(fetcher.fetch_secrets("us-east-1", "prod/db", False))

    assert secrets == {"prod/db": "value"}
    client.get_secret_value.assert_called_once_with(SecretId="prod/db")


def test_secrets_are_fetched_concurrently():
    """All requests are in flight together: a three-party barrier only opens if so."""
    barrier = threading.Barrier(3, timeout=5)
    client = Mock()

    def get_secret_value(SecretId):
        barrier.wait()
        return {"SecretString": f"value-{SecretId}"}

    client.get_secret_value.side_effect = get_secret_value
    fetcher = create_fetcher(client)

    secrets = asyncio.run(fetcher.fetch_secrets("us-east-1", ["a", "b", "c"], False))

    assert secrets == {"a": "value-a", "b": "value-b", "c": "value-c"}


def test_failed_secret_skipped_when_continuing():
    client = create_mock_secrets_client(
        {
            "first": {"SecretString": "one"},
            "second": not_found("second"),
            "third": {"SecretString": "three"},
        }
    )
    fetcher = create_fetcher(client)

    secrets = asyncio.run(
        fetcher.fetch_secrets("us-east-1", ["first", "second", "third"], True)
    )

    assert secrets == {"first": "one", "third": "three"}
    assert client.get_secret_value.call_count == 3


def test_first_failure_in_input_order_raised():
    client = create_mock_secrets_client(
        {
            "first": {"SecretString": "one"},
            "second": not_found("second"),
            "third": {},
        }
    )
    fetcher = create_fetcher(client)

    with pytest.raises(StoreFetchError) as exc_info:
        asyncio.run(fetcher.fetch_secrets("us-east-1", ["first", "second", "third"], False))

    error = exc_info.value
    assert str(error).startswith("Failed to fetch secrets from AWS Secrets Manager: ")
    assert "Failed to fetch secret 'second'" in str(error)
    assert "Secret not found" in str(error)
    assert error.category == ErrorCategory.NOT_FOUND
    assert error.target == "second"
    # Every request settles before aggregation starts.
    assert client.get_secret_value.call_count == 3


def test_secret_without_value_is_a_failure():
    client = create_mock_secrets_client({"empty": {"Name": "empty"}})
    fetcher = create_fetcher(client)

    with pytest.raises(StoreFetchError, match="Secret 'empty' has no value"):
        asyncio.run(fetcher.fetch_secrets("us-east-1", ["empty"], False))

    assert asyncio.run(fetcher.fetch_secrets("us-east-1", ["empty"], True)) == {}


def test_no_secret_names_returns_empty_without_error():
    client = Mock()
    fetcher = create_fetcher(client)

    assert asyncio.run(fetcher.fetch_secrets("us-east-1", [], False)) == {}
    assert asyncio.run(fetcher.fetch_secrets("us-east-1", None, False)) == {}
    client.get_secret_value.assert_not_called()


def test_empty_region_follows_error_policy():
    client = Mock()
    fetcher = create_fetcher(client)

    with pytest.raises(ValidationError, match="AWS region cannot be empty"):
        asyncio.run(fetcher.fetch_secrets("  ", ["db"], False))

    assert asyncio.run(fetcher.fetch_secrets("", ["db"], True)) == {}
    client.get_secret_value.assert_not_called()


def test_blank_secret_name_follows_error_policy():
    client = Mock()
    fetcher = create_fetcher(client)

    with pytest.raises(ValidationError, match="Secret names cannot be empty"):
        asyncio.run(fetcher.fetch_secrets("us-east-1", ["db", " "], False))

    assert asyncio.run(fetcher.fetch_secrets("us-east-1", ["db", ""], True)) == {}
    client.get_secret_value.assert_not_called()


def test_all_failed_is_degraded_but_not_fatal_when_continuing():
    client = create_mock_secrets_client({"a": not_found("a"), "b": not_found("b")})
    fetcher = create_fetcher(client)

    result = asyncio.run(fetcher.try_fetch_secrets("us-east-1", ["a", "b"], skip_failed=True))

    assert result.is_success
    assert result.value == {}


if __name__ == "__main__":
    sys.exit(pytest.main([__file__, "-v"]))
