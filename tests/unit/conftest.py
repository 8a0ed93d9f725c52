from collections import defaultdict
from typing import Optional
from unittest.mock import MagicMock

import pytest
from botocore.config import Config

from cfn_hotswap.aws.connect import ClientFactory, ServiceLevelClientFactory
from cfn_hotswap.engine.evaluate import EvaluateCloudFormationTemplate

TEST_AWS_ACCESS_KEY_ID = "test"
TEST_AWS_SECRET_ACCESS_KEY = "test"
TEST_AWS_REGION_NAME = "us-east-1"
TEST_AWS_ACCOUNT_ID = "123456789012"


@pytest.fixture(autouse=True)
def set_boto_test_credentials_and_region(monkeypatch):
    """
    Automatically sets the default credentials and region for all unit tests.
    """
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", TEST_AWS_ACCESS_KEY_ID)
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", TEST_AWS_SECRET_ACCESS_KEY)
    monkeypatch.setenv("AWS_DEFAULT_REGION", TEST_AWS_REGION_NAME)


@pytest.fixture(autouse=True)
def fast_waiters(monkeypatch):
    """Waiters of hotswap operations poll without sleeping."""
    monkeypatch.setattr("cfn_hotswap.config.HOTSWAP_WAITER_DELAY", 0)
    monkeypatch.setattr("cfn_hotswap.config.HOTSWAP_WAITER_MAX_ATTEMPTS", 3)
    monkeypatch.setattr("cfn_hotswap.utils.waiter.time.sleep", lambda _: None)


class MockClientFactory(ClientFactory):
    """
    Client factory handing out one MagicMock per service, independent of the client configuration. The calls of all
    clients are recorded together with the user agent extra of the service level factory they were created by.
    """

    def __init__(self):
        super().__init__()
        self.clients: dict[str, MagicMock] = defaultdict(MagicMock)
        self.requested: list[tuple[str, Optional[str]]] = []

    def get_client(
        self,
        service_name: str,
        region_name: Optional[str] = None,
        aws_access_key_id: Optional[str] = None,
        aws_secret_access_key: Optional[str] = None,
        aws_session_token: Optional[str] = None,
        endpoint_url: Optional[str] = None,
        config: Optional[Config] = None,
    ):
        self.requested.append((service_name, config.user_agent_extra if config else None))
        return self.clients[service_name]


@pytest.fixture
def client_factory() -> MockClientFactory:
    return MockClientFactory()


@pytest.fixture
def clients(client_factory) -> ServiceLevelClientFactory:
    return client_factory(region_name=TEST_AWS_REGION_NAME)


@pytest.fixture
def stack_resources(client_factory):
    """Sets the deployed resources (logical id -> physical id) returned by ``list_stack_resources``."""

    def _set(resources: dict[str, str]):
        paginator = MagicMock()
        paginator.paginate.return_value = [
            {
                "StackResourceSummaries": [
                    {"LogicalResourceId": logical_id, "PhysicalResourceId": physical_id}
                    for logical_id, physical_id in resources.items()
                ]
            }
        ]
        client_factory.clients["cloudformation"].get_paginator.return_value = paginator

    _set({})
    return _set


@pytest.fixture
def create_evaluator(clients):
    def _create(template: dict, parameters: dict = None, stack_name: str = "test-stack"):
        return EvaluateCloudFormationTemplate(
            stack_name=stack_name,
            template=template,
            parameters=parameters,
            account=TEST_AWS_ACCOUNT_ID,
            region=TEST_AWS_REGION_NAME,
            partition="aws",
            clients=clients,
        )

    return _create
