"""KubernetesFactory: resolve a master, verify it, and hand out API clients for it."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import replace
from typing import TypeVar

import structlog
from kubernetes import client as k8s_client

from kube_factory.clients import create_api_client, create_web_client
from kube_factory.clients.api_client import KubernetesApiClient
from kube_factory.clients.providers import JsonProvider, Provider, create_object_mapper, create_providers
from kube_factory.config import ClientConfig, load_client_config, resolve_http_kubernetes_master
from kube_factory.utils import is_blank, strip_master_host
from kube_factory.validation import validate_kubernetes_master

log = structlog.get_logger()

T = TypeVar("T")


class KubernetesFactory:
    """Creates Kubernetes API clients bound to one master address.

    Args:
        address: Master URL. When blank, it is resolved from the environment,
            the ``kubernetes.master`` property, or the ``http://localhost:8080`` default.
        writeable: Resolve the read-write service endpoint instead of the read-only one.
        verify_address: Probe the master whenever the address is set.
        environ: Environment mapping to read; defaults to ``os.environ``.
        properties: Configuration properties; defaults to the YAML properties file.

    Raises:
        ConnectivityError: If ``verify_address`` is set and the master cannot be verified.
    """

    def __init__(
        self,
        address: str | None = None,
        writeable: bool = False,
        verify_address: bool = True,
        *,
        environ: Mapping[str, str] | None = None,
        properties: Mapping[str, str] | None = None,
    ) -> None:
        self._writeable = writeable
        self._environ = os.environ if environ is None else environ
        self._properties = properties
        config = load_client_config(
            address,
            writeable,
            verify_address,
            environ=self._environ,
            properties=self._properties,
        )
        self._config = self._verified(config)

    def __repr__(self) -> str:
        return f"KubernetesFactory{{{self.address}}}"

    @property
    def config(self) -> ClientConfig:
        return self._config

    @property
    def address(self) -> str:
        return self._config.address

    @address.setter
    def address(self, address: str | None) -> None:
        self.set_address(address)

    def set_address(self, address: str | None) -> None:
        """Point the factory at a new master, verifying it when enabled.

        A blank address is resolved again. If verification downgrades an ``https``
        master to ``http``, the downgraded address is the one kept.
        """
        if is_blank(address):
            address = self.find_kubernetes_master(self._writeable)
        self._config = self._verified(replace(self._config, address=address))

    def find_kubernetes_master(self, writeable: bool = False) -> str:
        return resolve_http_kubernetes_master(writeable, environ=self._environ, properties=self._properties)

    def _verified(self, config: ClientConfig) -> ClientConfig:
        if not config.verify_address:
            return config
        verified = validate_kubernetes_master(config)
        if verified.address != config.address:
            log.info("kubernetes_master_address_changed", requested=config.address, address=verified.address)
        return verified

    def get_kubernetes_master(self) -> str:
        """Return the bare host of the configured master, e.g. ``10.0.0.5``."""
        return strip_master_host(self.address)

    def create_providers(self) -> tuple[Provider, ...]:
        return create_providers()

    def create_object_mapper(self) -> JsonProvider:
        return create_object_mapper()

    def create_api_client(self) -> KubernetesApiClient:
        """Return the configured low-level ApiClient."""
        return create_api_client(self._config, self.create_providers())

    def create_web_client(self, api_type: type[T]) -> T:
        """Return a typed API handle of ``api_type`` bound to the configured master."""
        return create_web_client(api_type, self._config, self.create_providers())

    def create_kubernetes(self) -> k8s_client.CoreV1Api:
        """Return a client for the core (pods, services, nodes, ...) API."""
        return self.create_web_client(k8s_client.CoreV1Api)

    def create_kubernetes_extensions(self) -> k8s_client.CustomObjectsApi:
        """Return a client for extension resources served through custom resource definitions."""
        return self.create_web_client(k8s_client.CustomObjectsApi)
