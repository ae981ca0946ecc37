#!/usr/bin/env python3
"""
Integration tests for loading configuration end to end.

A stub boto3 session hands out SSM and Secrets Manager clients; the service is
built through the same create/load path applications use.
"""

import asyncio
import os
import sys
from unittest.mock import Mock, patch

import pytest
from botocore.exceptions import ClientError

# Add project root to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", ".."))

from aws_ssm_config import ParamStoreConfig, StoreFetchError, SystemsManagerService


def create_mock_session(parameter_pages, secrets):
    """Create a boto3 session stub.

    Args:
        parameter_pages: GetParametersByPath responses, returned in order
        secrets: Mapping of secret name to SecretString or an exception
    """
    ssm = Mock()
    ssm.get_parameters_by_path.side_effect = list(parameter_pages)

    secretsmanager = Mock()

    def get_secret_value(SecretId):
        secret = secrets[SecretId]
        if isinstance(secret, Exception):
            raise secret
        return {"Name": SecretId, "SecretString": secret}

    secretsmanager.get_secret_value.side_effect = get_secret_value

    clients = {"ssm": ssm, "secretsmanager": secretsmanager}
    session = Mock()
    session.client.side_effect = lambda service_name, **kwargs: clients[service_name]
    return session, ssm, secretsmanager


def parameter_page(values, next_token=None):
    page = {"Parameters": [{"Name": name, "Value": value} for name, value in values.items()]}
    if next_token:
        page["NextToken"] = next_token
    return page


def access_denied():
    return ClientError(
        {"Error": {"Code": "AccessDeniedException", "Message": "not authorized"}},
        "GetSecretValue",
    )


def test_load_parameters_and_secrets():
    session, ssm, secretsmanager = create_mock_session(
        [
            parameter_page({"/app/config/database/host": "db.local"}, next_token="t1"),
            parameter_page({"/app/config/database/port": "5432", "/app/config/debug": "true"}),
        ],
        {"prod/db": '{"username": "admin", "password": "s3cr3t"}', "api-key": "plain"},
    )
    config = ParamStoreConfig(
        aws_region="us-east-1",
        param_store_path="/app/config",
        preserve_hierarchy=True,
        use_secrets_manager=True,
        secret_names=["prod/db", "api-key"],
    )

    service = SystemsManagerService.load(config, aws_session=session)

    assert service.get_all_parameters() == {
        "database.host": "db.local",
        "database.port": "5432",
        "debug": "true",
    }
    assert service.get_as_number("database.port") == 5432
    assert service.get_as_boolean("debug")
    assert service.get_secret_field("prod/db", "username") == "admin"
    assert service.get_secret_values("api-key") == {"api-key": "plain"}
    assert ssm.get_parameters_by_path.call_count == 2
    assert secretsmanager.get_secret_value.call_count == 2


def test_load_uses_configured_profile_session():
    session, ssm, _ = create_mock_session([parameter_page({"/app/host": "db.local"})], {})
    config = ParamStoreConfig(param_store_path="/app", aws_profile="staging")

    with patch("aws_ssm_config.service.boto3.Session", return_value=session) as session_class:
        service = SystemsManagerService.load(config)

    session_class.assert_called_once_with(profile_name="staging")
    assert service.get("host") == "db.local"
    assert ssm.get_parameters_by_path.call_count == 1


def test_explicit_session_wins_over_profile():
    session, _, _ = create_mock_session([parameter_page({"/app/host": "db.local"})], {})
    config = ParamStoreConfig(param_store_path="/app", aws_profile="staging")

    with patch("aws_ssm_config.service.boto3.Session") as session_class:
        service = SystemsManagerService.load(config, aws_session=session)

    session_class.assert_not_called()
    assert service.get("host") == "db.local"


def test_secrets_not_fetched_when_disabled():
    session, ssm, secretsmanager = create_mock_session(
        [parameter_page({"/app/host": "db.local"})], {}
    )
    config = ParamStoreConfig(param_store_path="/app", secret_names=["prod/db"])

    service = SystemsManagerService.load(config, aws_session=session)

    assert service.get_all() == {"host": "db.local"}
    secretsmanager.get_secret_value.assert_not_called()


def test_secret_failure_prevents_construction():
    session, _, _ = create_mock_session(
        [parameter_page({"/app/host": "db.local"})], {"prod/db": access_denied()}
    )
    config = ParamStoreConfig(
        param_store_path="/app", use_secrets_manager=True, secret_names=["prod/db"]
    )

    with pytest.raises(StoreFetchError, match="Access Denied"):
        SystemsManagerService.load(config, aws_session=session)


def test_continue_on_error_yields_partial_configuration():
    session, _, _ = create_mock_session(
        [
            ClientError(
                {"Error": {"Code": "ThrottlingException", "Message": "Rate exceeded"}},
                "GetParametersByPath",
            )
        ],
        {"prod/db": access_denied(), "api-key": "plain"},
    )
    config = ParamStoreConfig(
        param_store_path="/app",
        continue_on_error=True,
        use_secrets_manager=True,
        secret_names=["prod/db", "api-key"],
    )

    service = SystemsManagerService.load(config, aws_session=session)

    assert service.get_all_parameters() == {}
    assert service.get_all_secrets() == {"api-key": "plain"}


def test_refresh_picks_up_new_values():
    session, ssm, _ = create_mock_session(
        [
            parameter_page({"/app/feature": "off"}),
            parameter_page({"/app/feature": "on"}),
        ],
        {},
    )
    config = ParamStoreConfig(param_store_path="/app")

    service = SystemsManagerService.load(config, aws_session=session)
    assert service.get("feature") == "off"

    asyncio.run(service.refresh())

    assert service.get("feature") == "on"
    assert ssm.get_parameters_by_path.call_count == 2


if __name__ == "__main__":
    sys.exit(pytest.main([__file__, "-v"]))
