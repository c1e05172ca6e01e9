"""Client-specific test fixtures: raw REST responses the SDK hands to the ApiClient."""

from __future__ import annotations

import json
from collections.abc import Callable
from unittest.mock import MagicMock

import pytest


def make_rest_response(status: int, body: bytes, content_type: str | None = "application/json") -> MagicMock:
    response = MagicMock()
    response.status = status
    response.reason = {200: "OK", 403: "Forbidden", 404: "Not Found", 503: "Service Unavailable"}.get(status, "")
    response.data = body
    response.headers = {} if content_type is None else {"content-type": content_type}
    return response


@pytest.fixture
def namespace_body() -> bytes:
    return json.dumps({"apiVersion": "v1", "kind": "Namespace", "metadata": {"name": "team-a"}}).encode()


@pytest.fixture
def not_found_response() -> MagicMock:
    body = json.dumps(
        {
            "kind": "Status",
            "apiVersion": "v1",
            "status": "Failure",
            "message": 'namespaces "missing" not found',
            "reason": "NotFound",
            "code": 404,
        }
    ).encode()
    return make_rest_response(404, body)


@pytest.fixture
def unavailable_response() -> MagicMock:
    return make_rest_response(503, b"upstream connect error", content_type="text/plain")


@pytest.fixture
def rest_response() -> Callable[..., MagicMock]:
    return make_rest_response
