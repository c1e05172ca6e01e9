"""Resolve a Kubernetes master, verify it, and build API clients bound to it."""

from kube_factory.config import (
    DEFAULT_KUBERNETES_MASTER,
    ClientConfig,
    load_client_config,
    resolve_http_kubernetes_master,
    resolve_kubernetes_master,
)
from kube_factory.errors import (
    ClientConstructionError,
    ConnectivityError,
    ConnectivityFailure,
    KubeFactoryError,
    KubernetesApiError,
)
from kube_factory.factory import KubernetesFactory

__all__ = [
    "DEFAULT_KUBERNETES_MASTER",
    "ClientConfig",
    "ClientConstructionError",
    "ConnectivityError",
    "ConnectivityFailure",
    "KubeFactoryError",
    "KubernetesApiError",
    "KubernetesFactory",
    "load_client_config",
    "resolve_http_kubernetes_master",
    "resolve_kubernetes_master",
]
