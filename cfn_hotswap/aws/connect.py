"""
Hotswap client stack.

This module provides the transport used by the hotswap engine: a caching factory of boto3 clients, and the
service level view on it which is handed to detectors and hotswap operations.
"""
import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from boto3.session import Session
from botocore.client import BaseClient
from botocore.config import Config

from cfn_hotswap.constants import AWS_REGION_US_EAST_1, DEFAULT_PARTITION

LOG = logging.getLogger(__name__)


# patch the botocore.Config object to be comparable and hashable, so it can be part of the client cache key.
# this only holds as long as nobody modifies the internals of the Config object directly (instead of config.merge)
def make_hash(o):
    if isinstance(o, (set, tuple, list)):
        return tuple([make_hash(e) for e in o])

    elif not isinstance(o, dict):
        return hash(o)

    new_o = {}
    for k, v in o.items():
        new_o[k] = make_hash(v)

    return hash(frozenset(sorted(new_o.items())))


def config_equality_patch(self, other: object):
    return type(self) == type(other) and self._user_provided_options == other._user_provided_options


def config_hash_patch(self):
    return make_hash(self._user_provided_options)


Config.__eq__ = config_equality_patch
Config.__hash__ = config_hash_patch


def attribute_name_to_service_name(attribute_name):
    """
    Converts a python-compatible attribute name to the boto service name
    :param attribute_name: Python compatible attribute name using the following replacements:
                            a) Add an underscore suffix `_` to any reserved Python keyword (PEP-8).
                            b) Replace any dash `-` with an underscore `_`
    :return: the boto service name
    """
    if attribute_name.endswith("_"):
        # lambda_ -> lambda
        attribute_name = attribute_name[:-1]
    # replace all _ with -: cognito_idp -> cognito-idp
    return attribute_name.replace("_", "-")


class ServiceLevelClientFactory:
    """
    A service level client factory, preseeded with parameters for the boto3 client creation.
    Will create any service client with parameters already provided by the ClientFactory.

    Hotswap operations receive their own instance (see ``with_user_agent_extra``), which is how the service being
    hotswapped is attributed in the user agent of every call the operation makes.
    """

    def __init__(self, *, factory: "ClientFactory", client_creation_params: dict):
        self._factory = factory
        self._client_creation_params = client_creation_params

    @property
    def user_agent_extra(self) -> Optional[str]:
        config: Optional[Config] = self._client_creation_params.get("config")
        return config.user_agent_extra if config else None

    def with_user_agent_extra(self, user_agent_extra: str) -> "ServiceLevelClientFactory":
        """
        Returns a copy of this factory whose clients append the given component to their user agent.
        The current factory is left untouched.

        :param user_agent_extra: the user agent component, e.g. ``cdk-hotswap/success-lambda``
        :return: a new ServiceLevelClientFactory
        """
        extra_config = Config(user_agent_extra=user_agent_extra)
        config: Optional[Config] = self._client_creation_params.get("config")
        params = {
            **self._client_creation_params,
            "config": config.merge(extra_config) if config else extra_config,
        }
        return ServiceLevelClientFactory(factory=self._factory, client_creation_params=params)

    def get_client(self, service: str):
        return self._factory.get_client(service_name=service, **self._client_creation_params)

    def __getattr__(self, service: str):
        if service.startswith("__"):
            raise AttributeError(service)
        return self.get_client(attribute_name_to_service_name(service))


class ClientFactory(ABC):
    """
    Factory to build the AWS clients.

    Boto client creation is resource intensive. This class caches all Boto
    clients it creates and must be used instead of directly using boto lib.
    """

    def __init__(self, session: Session = None, config: Config = None):
        """
        :param session: Session to be used for client creation. Will create a new session if not provided.
            Sessions are not generally thread safe, the factory guards client creation with a lock,
            so the session must not be shared with another factory.
        :param config: Config used as default for client creation.
        """
        self._config: Config = config or Config()
        self._session: Session = session or Session()
        self._create_client_lock = threading.RLock()

    def __call__(
        self,
        *,
        region_name: Optional[str] = None,
        aws_access_key_id: Optional[str] = None,
        aws_secret_access_key: Optional[str] = None,
        aws_session_token: Optional[str] = None,
        endpoint_url: str = None,
        config: Config = None,
    ) -> ServiceLevelClientFactory:
        """
        Get back an object which lets you select the typed service you want to access with the given attributes

        :param region_name: Name of the AWS region to be associated with the client
            If set to None, loads from botocore session.
        :param aws_access_key_id: Access key to use for the client.
            If set to None, loads from botocore session.
        :param aws_secret_access_key: Secret key to use for the client.
            If set to None, loads from botocore session.
        :param aws_session_token: Session token to use for the client.
            Not being used if not set.
        :param endpoint_url: Full endpoint URL to be used by the client, e.g. to target an emulator.
        :param config: Boto config for advanced use.
        :return: Service Region Client Creator
        """
        params = {
            "region_name": region_name,
            "aws_access_key_id": aws_access_key_id,
            "aws_secret_access_key": aws_secret_access_key,
            "aws_session_token": aws_session_token,
            "endpoint_url": endpoint_url,
            "config": config,
        }
        return ServiceLevelClientFactory(factory=self, client_creation_params=params)

    @abstractmethod
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
        raise NotImplementedError()

    # TODO @lru_cache keeps a reference to `self`, a weakref based cache would let factories be garbage collected
    @lru_cache(maxsize=256)
    def _get_client(
        self,
        service_name: str,
        region_name: Optional[str],
        endpoint_url: Optional[str],
        aws_access_key_id: Optional[str],
        aws_secret_access_key: Optional[str],
        aws_session_token: Optional[str],
        config: Config,
    ) -> BaseClient:
        """
        Returns a boto3 client with the given configuration.
        This is a cached call, so modifications to the used client will affect others.
        Client creation is behind a lock as it is not generally thread safe.
        """
        with self._create_client_lock:
            return self._session.client(
                service_name=service_name,
                region_name=region_name,
                endpoint_url=endpoint_url,
                aws_access_key_id=aws_access_key_id,
                aws_secret_access_key=aws_secret_access_key,
                aws_session_token=aws_session_token,
                config=config,
            )

    def _get_session_region(self) -> str:
        """
        Return AWS region as set in the Boto session.
        """
        return self._session.region_name


class AwsClientFactory(ClientFactory):
    def get_client(
        self,
        service_name: str,
        region_name: Optional[str] = None,
        aws_access_key_id: Optional[str] = None,
        aws_secret_access_key: Optional[str] = None,
        aws_session_token: Optional[str] = None,
        endpoint_url: Optional[str] = None,
        config: Optional[Config] = None,
    ) -> BaseClient:
        """
        Build and return a client targeting AWS (or the given endpoint).

        If either of the access keys or region are set to None, they are loaded from following
        locations:
        - AWS environment variables
        - Credentials file `~/.aws/credentials`
        - Config file `~/.aws/config`
        """
        if config is None:
            config = self._config
        else:
            config = self._config.merge(config)

        return self._get_client(
            service_name=service_name,
            region_name=region_name or config.region_name or self._get_session_region(),
            endpoint_url=endpoint_url,
            aws_access_key_id=aws_access_key_id,
            aws_secret_access_key=aws_secret_access_key,
            aws_session_token=aws_session_token,
            config=config,
        )


connect_to = AwsClientFactory()


@dataclass(frozen=True)
class ResolvedEnvironment:
    account: str
    region: str
    partition: str = DEFAULT_PARTITION


def resolve_environment(clients: ServiceLevelClientFactory) -> ResolvedEnvironment:
    """
    Resolves the account, region and partition the given clients operate in.

    :param clients: the service level client factory of the deployment
    :return: the resolved environment
    """
    sts_client = clients.sts
    identity = sts_client.get_caller_identity()
    # arn:<partition>:sts::<account>:assumed-role/...
    arn_parts = identity["Arn"].split(":")
    partition = arn_parts[1] if len(arn_parts) > 1 and arn_parts[1] else DEFAULT_PARTITION
    region = sts_client.meta.region_name or AWS_REGION_US_EAST_1
    LOG.debug("Resolved environment: account %s, region %s", identity["Account"], region)
    return ResolvedEnvironment(account=identity["Account"], region=region, partition=partition)
