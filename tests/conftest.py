"""Shared test fixtures: a clean environment and sample master configurations."""

from __future__ import annotations

import socket
import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from pathlib import Path

import pytest
import structlog

from kube_factory.config import ClientConfig

_MASTER_ENV_VARS = (
    "KUBERNETES_TRUST_CERT",
    "KUBERNETES_USERNAME",
    "KUBERNETES_PASSWORD",
    "KUBERNETES_SERVICE_HOST",
    "KUBERNETES_SERVICE_PORT",
    "KUBERNETES_RO_SERVICE_HOST",
    "KUBERNETES_RO_SERVICE_PORT",
    "KUBERNETES_MASTER",
    "KUBE_FACTORY_PROBE_TIMEOUT",
)


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Strip master-related variables so tests never see the host's cluster settings."""
    for name in _MASTER_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("KUBE_FACTORY_CONFIG", str(tmp_path / "absent.yaml"))


@pytest.fixture(autouse=True)
def reset_structlog() -> Iterator[None]:
    yield
    structlog.reset_defaults()


@pytest.fixture
def http_config() -> ClientConfig:
    return ClientConfig(address="http://localhost:8080")


@pytest.fixture
def https_config() -> ClientConfig:
    return ClientConfig(address="https://10.0.0.5:6443")


@pytest.fixture
def authenticated_config() -> ClientConfig:
    return ClientConfig(address="https://10.0.0.5:6443", username="admin", password="s3cret")


@pytest.fixture
def trust_all_config() -> ClientConfig:
    return ClientConfig(address="https://10.0.0.5:6443", trust_all_certs=True, disable_hostname_check=True)


def _recv_exactly(conn: socket.socket, size: int) -> bytes:
    data = b""
    while len(data) < size:
        chunk = conn.recv(size - len(data))
        if not chunk:
            break
        data += chunk
    return data


def _read_client_hello(conn: socket.socket) -> bytes:
    # TLS record header: type (1), version (2), length (2).
    header = _recv_exactly(conn, 5)
    return header + _recv_exactly(conn, int.from_bytes(header[3:5], "big"))


@contextmanager
def _loopback_listener(handler: Callable[[socket.socket], None]) -> Iterator[int]:
    """Serve one connection on 127.0.0.1 with ``handler`` and yield the port.

    The listening socket stays open afterwards, so follow-up TCP connects still succeed.
    """
    server = socket.create_server(("127.0.0.1", 0))
    server.settimeout(5)

    def serve() -> None:
        try:
            conn, _ = server.accept()
            with conn:
                handler(conn)
        except OSError:
            pass

    thread = threading.Thread(target=serve, daemon=True)
    thread.start()
    try:
        yield server.getsockname()[1]
    finally:
        thread.join(timeout=5)
        server.close()


def _answer_in_plain_http(conn: socket.socket) -> None:
    _read_client_hello(conn)
    conn.sendall(b"HTTP/1.1 400 Bad Request\r\nContent-Length: 0\r\nConnection: close\r\n\r\n")


def _hang_up_after_client_hello(conn: socket.socket) -> None:
    _read_client_hello(conn)
    conn.shutdown(socket.SHUT_RDWR)


@pytest.fixture
def plain_http_listener() -> Iterator[int]:
    """A plain HTTP server on the port a client expects TLS on."""
    with _loopback_listener(_answer_in_plain_http) as port:
        yield port


@pytest.fixture
def handshake_abort_listener() -> Iterator[int]:
    """A server that reads the ClientHello and closes without answering."""
    with _loopback_listener(_hang_up_after_client_hello) as port:
        yield port
