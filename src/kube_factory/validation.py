"""Reachability and TLS checks for a Kubernetes master address."""

from __future__ import annotations

import re
import socket
import ssl
from dataclasses import replace
from urllib.parse import urlsplit

import structlog

from kube_factory.config import KUBERNETES_TRUST_ALL_CERTIFICATES, ClientConfig
from kube_factory.errors import ConnectivityError, ConnectivityFailure

log = structlog.get_logger()

PROBE_BYTE = b"\x01"

_SSL_REASON_RE = re.compile(r"\[SSL: ([A-Z0-9_]+)\]")

# X509_V_ERR_HOSTNAME_MISMATCH, X509_V_ERR_EMAIL_MISMATCH, X509_V_ERR_IP_ADDRESS_MISMATCH
_PEER_MISMATCH_CODES = frozenset({62, 63, 64})

_HANDSHAKE_REASONS = frozenset(
    {
        "CERTIFICATE_VERIFY_FAILED",
        "SSLV3_ALERT_HANDSHAKE_FAILURE",
        "SSLV3_ALERT_BAD_CERTIFICATE",
        "SSLV3_ALERT_CERTIFICATE_UNKNOWN",
        "TLSV1_ALERT_UNKNOWN_CA",
        "TLSV13_ALERT_CERTIFICATE_REQUIRED",
        "NO_SHARED_CIPHER",
        "UNEXPECTED_EOF_WHILE_READING",
    }
)
_PROTOCOL_REASONS = frozenset(
    {
        "UNSUPPORTED_PROTOCOL",
        "TLSV1_ALERT_PROTOCOL_VERSION",
        "NO_PROTOCOLS_AVAILABLE",
        "VERSION_TOO_LOW",
        "VERSION_TOO_HIGH",
        "UNEXPECTED_MESSAGE",
    }
)
_BAD_KEY_REASONS = frozenset(
    {
        "BAD_KEY_SHARE",
        "KEY_VALUES_MISMATCH",
        "EE_KEY_TOO_SMALL",
        "CA_KEY_TOO_SMALL",
        "DH_KEY_TOO_SMALL",
        "BAD_ECPOINT",
        "BAD_SIGNATURE",
    }
)


def _ssl_reason(exc: ssl.SSLError) -> str | None:
    reason = getattr(exc, "reason", None)
    if reason:
        return str(reason)
    match = _SSL_REASON_RE.search(str(exc))
    return match.group(1) if match else None


def classify_ssl_error(exc: ssl.SSLError) -> ConnectivityFailure:
    """Map a TLS failure onto the kind of problem it represents.

    A connection closed during the handshake counts as a handshake failure.
    Anything else that is not a protocol, key or peer verification problem is
    reported as ``ConnectivityFailure.SSL``; that usually means the server
    answered in plain text.
    """
    if isinstance(exc, ssl.SSLCertVerificationError):
        if getattr(exc, "verify_code", None) in _PEER_MISMATCH_CODES:
            return ConnectivityFailure.PEER_UNVERIFIED
        return ConnectivityFailure.HANDSHAKE
    # The peer hung up mid-handshake. A plain-text server would have answered with
    # bytes that fail record parsing (WRONG_VERSION_NUMBER and friends) instead.
    if isinstance(exc, ssl.SSLEOFError):
        return ConnectivityFailure.HANDSHAKE

    reason = _ssl_reason(exc)
    if reason in _HANDSHAKE_REASONS:
        return ConnectivityFailure.HANDSHAKE
    if reason in _PROTOCOL_REASONS:
        return ConnectivityFailure.PROTOCOL
    if reason in _BAD_KEY_REASONS:
        return ConnectivityFailure.BAD_KEY
    return ConnectivityFailure.SSL


def create_probe_context(config: ClientConfig) -> ssl.SSLContext:
    """Build the TLS context used to probe an https master."""
    context = ssl.create_default_context()
    if config.trust_all_certs or config.disable_hostname_check:
        context.check_hostname = False
    if config.trust_all_certs:
        context.verify_mode = ssl.CERT_NONE
    return context


def _drain(tls: ssl.SSLSocket) -> int:
    """Read whatever the server has already sent without waiting for more."""
    received = 0
    # Only take what has already arrived; a live API server keeps the connection open.
    tls.setblocking(False)
    while True:
        try:
            chunk = tls.recv(4096)
        except (BlockingIOError, ssl.SSLWantReadError):
            break
        if not chunk:
            break
        received += len(chunk)
    return received


def _probe_http(host: str, port: int, timeout: float | None) -> None:
    with socket.create_connection((host, port), timeout=timeout):
        pass


def _probe_https(host: str, port: int, config: ClientConfig) -> None:
    context = create_probe_context(config)
    with socket.create_connection((host, port), timeout=config.probe_timeout) as raw:
        with context.wrap_socket(raw, server_hostname=host) as tls:
            # One byte of application data proves the server accepts TLS traffic, not only the handshake.
            tls.sendall(PROBE_BYTE)
            received = _drain(tls)
    log.debug("https_probe_complete", host=host, port=port, received_bytes=received)


def probe_address(config: ClientConfig) -> None:
    """Open a connection to the configured master.

    Plain ``http`` addresses get a TCP connect. ``https`` addresses get a TLS
    handshake plus a single probe byte, and the socket is always closed afterwards.
    Other schemes are not probed.

    Raises:
        ssl.SSLError: If the TLS handshake or probe fails.
        OSError: If the host cannot be reached.
        ValueError: If the address cannot be parsed.
    """
    url = urlsplit(config.address)
    scheme = url.scheme.lower()
    if scheme not in ("http", "https"):
        log.debug("skipping_probe_for_scheme", address=config.address, scheme=scheme)
        return
    if not url.hostname:
        msg = f"No host in master address {config.address!r}"
        raise ValueError(msg)

    if scheme == "http":
        _probe_http(url.hostname, url.port or 80, config.probe_timeout)
    else:
        _probe_https(url.hostname, url.port or 443, config)


def validate_kubernetes_master(config: ClientConfig, *, allow_downgrade: bool = True) -> ClientConfig:
    """Check that the configured master is reachable and return the config to use.

    On a generic TLS failure the address is rewritten from ``https`` to ``http``
    and checked once more; the returned config then carries the rewritten address.
    The rewrite happens at most once.

    Raises:
        ConnectivityError: If the master cannot be verified.
    """
    address = config.address
    try:
        probe_address(config)
    except ssl.SSLError as exc:
        failure = classify_ssl_error(exc)
        scheme = urlsplit(address).scheme
        if failure is ConnectivityFailure.SSL and allow_downgrade and scheme.lower() == "https":
            downgraded = "http" + address[len(scheme) :]
            log.warning(
                "address_not_ssl_enabled_falling_back_to_http",
                address=address,
                fallback=downgraded,
                error=str(exc),
            )
            return validate_kubernetes_master(replace(config, address=downgraded), allow_downgrade=False)
        if failure is ConnectivityFailure.HANDSHAKE:
            log.error(
                "ssl_handshake_failed",
                address=address,
                hint=f"trust the kubernetes SSL certificate or set {KUBERNETES_TRUST_ALL_CERTIFICATES}",
            )
        else:
            log.error("ssl_validation_failed", address=address, failure=failure.value, error=str(exc))
        raise ConnectivityError(address, failure) from exc
    except (OSError, ValueError) as exc:
        log.warning("failed_to_validate_master_address", address=address, error=str(exc))
        raise ConnectivityError(address, ConnectivityFailure.IO, f"failed to connect: {exc}") from exc
    return config
