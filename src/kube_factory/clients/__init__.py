"""Builders for Kubernetes API clients bound to a resolved master."""

from __future__ import annotations

from collections.abc import Iterable
from typing import TypeVar

import structlog
from kubernetes import client as k8s_client

from kube_factory.clients.api_client import KubernetesApiClient
from kube_factory.clients.providers import Provider
from kube_factory.config import ClientConfig
from kube_factory.errors import ClientConstructionError
from kube_factory.utils import is_blank

log = structlog.get_logger()

T = TypeVar("T")


def configure_auth_details(configuration: k8s_client.Configuration, config: ClientConfig) -> None:
    """Attach HTTP basic auth when both a username and a password are present.

    The header is stored the way ``kubernetes.config`` stores kubeconfig basic auth,
    under ``api_key["authorization"]``, so every generated API sends it.
    """
    if is_blank(config.username) or is_blank(config.password):
        return
    configuration.username = config.username
    configuration.password = config.password
    # Generated APIs authenticate through the BearerToken entry of auth_settings(), built from api_key.
    configuration.api_key["authorization"] = configuration.get_basic_auth_token()


def disable_ssl_checks(configuration: k8s_client.Configuration, config: ClientConfig) -> None:
    """Accept any certificate chain and, if configured, skip hostname verification."""
    if config.trust_all_certs:
        configuration.verify_ssl = False
    if config.disable_hostname_check:
        configuration.assert_hostname = False


def create_configuration(config: ClientConfig) -> k8s_client.Configuration:
    """Build an isolated SDK Configuration for the given master.

    A fresh Configuration is used rather than the SDK's process-wide default, so
    clients for different masters never share credentials or TLS settings.
    """
    configuration = k8s_client.Configuration(host=config.address)
    configure_auth_details(configuration, config)
    if config.trust_all_certs or config.disable_hostname_check:
        log.warning(
            "ssl_checks_disabled",
            address=config.address,
            trust_all_certs=config.trust_all_certs,
            disable_hostname_check=config.disable_hostname_check,
        )
        disable_ssl_checks(configuration, config)
    return configuration


def create_api_client(config: ClientConfig, providers: Iterable[Provider] | None = None) -> KubernetesApiClient:
    """Create a KubernetesApiClient for the configured master.

    Raises:
        ClientConstructionError: If the SDK configuration or client cannot be built.
    """
    try:
        return KubernetesApiClient(create_configuration(config), providers=providers)
    except Exception as exc:
        log.error("failed_to_create_api_client", address=config.address, error=str(exc))
        msg = f"Failed to create API client for {config.address}"
        raise ClientConstructionError(msg) from exc


def create_web_client(api_type: type[T], config: ClientConfig, providers: Iterable[Provider] | None = None) -> T:
    """Create a typed API handle (``CoreV1Api``, ``AppsV1Api``, ...) for the configured master.

    Raises:
        ClientConstructionError: If the client or the typed handle cannot be built.
    """
    api_client = create_api_client(config, providers)
    try:
        return api_type(api_client)
    except Exception as exc:
        # The ApiClient owns a urllib3 pool; release it since no caller will.
        api_client.close()
        log.error("failed_to_create_web_client", api_type=api_type.__name__, address=config.address)
        msg = f"Failed to create {api_type.__name__} for {config.address}"
        raise ClientConstructionError(msg) from exc
