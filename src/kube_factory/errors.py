"""Exception hierarchy for master resolution, probing, and client construction."""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Any

from kubernetes.client.exceptions import ApiException

if TYPE_CHECKING:
    from kube_factory.models import ApiStatus


class KubeFactoryError(Exception):
    """Base class for all kube-factory errors."""


class ConnectivityFailure(Enum):
    """Why a master address failed verification."""

    HANDSHAKE = "handshake"
    PROTOCOL = "protocol"
    BAD_KEY = "bad_key"
    PEER_UNVERIFIED = "peer_unverified"
    SSL = "ssl"
    IO = "io"


_FAILURE_DETAILS = {
    ConnectivityFailure.HANDSHAKE: (
        "SSL handshake failed; trust the certificate or set the trust-all-certs option (KUBERNETES_TRUST_CERT)"
    ),
    ConnectivityFailure.PROTOCOL: "SSL protocol error",
    ConnectivityFailure.BAD_KEY: "bad SSL key",
    ConnectivityFailure.PEER_UNVERIFIED: "could not verify server",
    ConnectivityFailure.SSL: "SSL error",
    ConnectivityFailure.IO: "failed to connect",
}


class ConnectivityError(KubeFactoryError, ValueError):
    """Raised when a master address cannot be reached or its TLS setup is unusable.

    Subclasses ValueError because the failure is reported against the address the
    caller supplied (or that was resolved for them).
    """

    def __init__(self, address: str, kind: ConnectivityFailure, detail: str | None = None) -> None:
        self.address = address
        self.kind = kind
        self.detail = detail or _FAILURE_DETAILS[kind]
        super().__init__(f"Invalid kubernetes master address: {address} ({self.detail})")


class ClientConstructionError(KubeFactoryError):
    """Raised when an API client cannot be assembled for a configured master."""


class KubernetesApiError(KubeFactoryError, ApiException):
    """An error response from the API server, with its Status body decoded.

    Still an ``ApiException`` so callers written against the plain SDK keep working.
    """

    def __init__(
        self,
        status: int | None = None,
        reason: str | None = None,
        *,
        body: str | None = None,
        data: Any = None,
        headers: Any = None,
        api_status: ApiStatus | None = None,
    ) -> None:
        super().__init__(status=status, reason=reason, body=body, data=data)
        self.headers = headers
        self.api_status = api_status
        self.message = api_status.message if api_status is not None and api_status.message else reason

    def __str__(self) -> str:
        return f"({self.status}) {self.message}"
