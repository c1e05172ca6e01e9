"""Master address resolution, client configuration, and environment variable overrides."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import structlog
import yaml

from kube_factory.utils import is_blank, parse_bool

log = structlog.get_logger()

DEFAULT_KUBERNETES_MASTER = "http://localhost:8080"

KUBERNETES_TRUST_ALL_CERTIFICATES = "KUBERNETES_TRUST_CERT"
KUBERNETES_USERNAME = "KUBERNETES_USERNAME"
KUBERNETES_PASSWORD = "KUBERNETES_PASSWORD"
KUBERNETES_SERVICE_HOST_ENV_VAR = "KUBERNETES_SERVICE_HOST"
KUBERNETES_SERVICE_PORT_ENV_VAR = "KUBERNETES_SERVICE_PORT"
KUBERNETES_RO_SERVICE_HOST_ENV_VAR = "KUBERNETES_RO_SERVICE_HOST"
KUBERNETES_RO_SERVICE_PORT_ENV_VAR = "KUBERNETES_RO_SERVICE_PORT"
KUBERNETES_MASTER_ENV_VAR = "KUBERNETES_MASTER"
KUBERNETES_MASTER_PROPERTY = "kubernetes.master"

PROPERTIES_FILE_ENV_VAR = "KUBE_FACTORY_CONFIG"
DEFAULT_PROPERTIES_FILE = "kube-factory.yaml"
PROBE_TIMEOUT_ENV_VAR = "KUBE_FACTORY_PROBE_TIMEOUT"


@dataclass(frozen=True)
class ClientConfig:
    """Everything needed to verify a master and build clients against it.

    Trust-all and hostname checking are separate switches so each downgrade is
    visible on its own; both are driven by ``KUBERNETES_TRUST_CERT`` when loaded
    from the environment.
    """

    address: str
    verify_address: bool = True
    trust_all_certs: bool = False
    disable_hostname_check: bool = False
    username: str | None = None
    password: str | None = None
    probe_timeout: float | None = None

    def __repr__(self) -> str:
        masked = None if self.password is None else "****"
        return (
            f"ClientConfig(address={self.address!r}, verify_address={self.verify_address}, "
            f"trust_all_certs={self.trust_all_certs}, disable_hostname_check={self.disable_hostname_check}, "
            f"username={self.username!r}, password={masked!r}, probe_timeout={self.probe_timeout})"
        )


def _flatten(raw: Mapping[str, Any], prefix: str = "") -> dict[str, str]:
    flat: dict[str, str] = {}
    for key, value in raw.items():
        dotted = f"{prefix}{key}"
        if isinstance(value, Mapping):
            flat.update(_flatten(value, f"{dotted}."))
        elif value is not None:
            flat[dotted] = str(value)
    return flat


def _load_properties(path: Path) -> dict[str, str]:
    """Parse a YAML properties file into a flat mapping of dotted keys.

    Args:
        path: Path to the YAML file.

    Returns:
        A dict of dotted keys to string values; empty if the file does not exist.

    Raises:
        ValueError: If the file is not valid YAML or its content is not a mapping.
    """
    if not path.exists():
        return {}

    try:
        raw = yaml.safe_load(path.read_text())
    except yaml.YAMLError as exc:
        msg = f"Properties file {path} is not valid YAML."
        raise ValueError(msg) from exc
    if raw is None:
        return {}
    if not isinstance(raw, Mapping):
        msg = f"Properties file {path} must contain a mapping, got {type(raw).__name__}."
        raise ValueError(msg)
    return _flatten(raw)


def load_properties(path: str | Path | None = None) -> dict[str, str]:
    """Load configuration properties such as ``kubernetes.master``.

    Reads the file path from the ``KUBE_FACTORY_CONFIG`` environment variable when no
    path is given, defaulting to ``kube-factory.yaml`` in the current working directory.
    """
    if path is None:
        path = os.environ.get(PROPERTIES_FILE_ENV_VAR, DEFAULT_PROPERTIES_FILE)
    return _load_properties(Path(path))


def resolve_kubernetes_master(
    writeable: bool = False,
    environ: Mapping[str, str] | None = None,
    properties: Mapping[str, str] | None = None,
) -> str:
    """Work out the master URL without touching the network.

    Checks, in order: the read-only (or, when ``writeable``, read-write) service
    host/port pair, ``KUBERNETES_MASTER``, the ``kubernetes.master`` property, and
    finally the ``http://localhost:8080`` default. The first non-blank value wins.
    """
    env = os.environ if environ is None else environ
    if writeable:
        host_var, port_var, proto = KUBERNETES_SERVICE_HOST_ENV_VAR, KUBERNETES_SERVICE_PORT_ENV_VAR, "https"
    else:
        host_var, port_var, proto = KUBERNETES_RO_SERVICE_HOST_ENV_VAR, KUBERNETES_RO_SERVICE_PORT_ENV_VAR, "http"

    host = env.get(host_var)
    if not is_blank(host):
        port = env.get(port_var)
        if is_blank(port):
            return f"{proto}://{host}"
        return f"{proto}://{host}:{port}"

    master = env.get(KUBERNETES_MASTER_ENV_VAR)
    if not is_blank(master):
        return master

    # Properties are only read once the environment has nothing to offer.
    if properties is None:
        try:
            props: Mapping[str, str] = load_properties()
        except (OSError, ValueError) as exc:
            # Resolution always ends in a value; an unreadable file counts as empty.
            log.warning("kubernetes_properties_unreadable", error=str(exc))
            props = {}
    else:
        props = properties
    master = props.get(KUBERNETES_MASTER_PROPERTY)
    if not is_blank(master):
        return master
    return DEFAULT_KUBERNETES_MASTER


def to_http_master(master: str) -> str:
    """Rewrite a leading ``tcp:`` scheme to ``http:``; anything else passes through."""
    if master.startswith("tcp:"):
        return "http:" + master[4:]
    return master


def resolve_http_kubernetes_master(
    writeable: bool = False,
    environ: Mapping[str, str] | None = None,
    properties: Mapping[str, str] | None = None,
) -> str:
    """Resolve the master URL and normalise a ``tcp://`` scheme to ``http://``."""
    return to_http_master(resolve_kubernetes_master(writeable, environ=environ, properties=properties))


def load_client_config(
    address: str | None = None,
    writeable: bool = False,
    verify_address: bool = True,
    *,
    environ: Mapping[str, str] | None = None,
    properties: Mapping[str, str] | None = None,
) -> ClientConfig:
    """Build the ClientConfig for a factory from arguments plus environment overrides.

    A blank ``address`` is resolved with :func:`resolve_http_kubernetes_master`.
    ``KUBERNETES_TRUST_CERT``, ``KUBERNETES_USERNAME`` and ``KUBERNETES_PASSWORD``
    are honoured whenever they are set.
    """
    env = os.environ if environ is None else environ
    if is_blank(address):
        address = resolve_http_kubernetes_master(writeable, environ=env, properties=properties)

    trust_all_certs = False
    trust_value = env.get(KUBERNETES_TRUST_ALL_CERTIFICATES)
    if trust_value is not None:
        trust_all_certs = parse_bool(trust_value)

    probe_timeout = None
    timeout_value = env.get(PROBE_TIMEOUT_ENV_VAR)
    if not is_blank(timeout_value):
        probe_timeout = float(timeout_value)

    return ClientConfig(
        address=address,
        verify_address=verify_address,
        trust_all_certs=trust_all_certs,
        disable_hostname_check=trust_all_certs,
        username=env.get(KUBERNETES_USERNAME),
        password=env.get(KUBERNETES_PASSWORD),
        probe_timeout=probe_timeout,
    )
