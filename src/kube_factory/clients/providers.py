"""Content providers attached to every API client: JSON codecs and the error mapper."""

from __future__ import annotations

import json
import re
from typing import Any

from kubernetes.client.exceptions import ApiException

from kube_factory.errors import KubernetesApiError
from kube_factory.models import parse_api_status

_JSON_CONTENT_RE = re.compile(r"^application/(json|[\w!#$&.+\-^_]+\+json)\s*(;|$)", re.IGNORECASE)
_TEXT_PLAIN_RE = re.compile(r"^text/plain\s*(;|$)", re.IGNORECASE)


class JsonProvider:
    """Reads and writes ``application/json`` (and ``+json``) payloads.

    Output is pretty-printed with ``indent`` spaces.
    """

    def __init__(self, indent: int | None = 2) -> None:
        self.indent = indent

    def is_readable(self, content_type: str | None, response_type: str | None = None) -> bool:
        return content_type is not None and bool(_JSON_CONTENT_RE.match(content_type))

    def read(self, text: str) -> Any:
        if text == "":
            return ""
        return json.loads(text)

    def write(self, data: Any) -> str:
        return json.dumps(data, indent=self.indent)


class PlainTextJsonProvider(JsonProvider):
    """A JsonProvider that also accepts ``text/plain`` bodies as if they were JSON.

    Some API servers and proxies label JSON as text/plain. Bodies that do not parse
    as JSON are handed back as text, and responses the caller asked for as ``str``
    (container logs, for instance) are never reinterpreted.
    """

    def is_readable(self, content_type: str | None, response_type: str | None = None) -> bool:
        if super().is_readable(content_type, response_type):
            return True
        return content_type is not None and bool(_TEXT_PLAIN_RE.match(content_type)) and response_type != "str"

    def read(self, text: str) -> Any:
        try:
            return super().read(text)
        except ValueError:
            return text


class ExceptionResponseMapper:
    """Turns an ``ApiException`` into a KubernetesApiError carrying the server's Status."""

    def to_exception(self, exc: ApiException) -> KubernetesApiError:
        if isinstance(exc, KubernetesApiError):
            return exc
        return KubernetesApiError(
            status=exc.status,
            reason=exc.reason,
            body=exc.body,
            data=exc.data,
            headers=exc.headers,
            api_status=parse_api_status(exc.body),
        )


Provider = JsonProvider | ExceptionResponseMapper


def create_object_mapper() -> JsonProvider:
    """Create the pretty-printing JSON codec shared by the default providers."""
    return JsonProvider(indent=2)


def create_providers() -> tuple[Provider, ...]:
    """Return the default provider set, in lookup order."""
    mapper = create_object_mapper()
    return (
        mapper,
        PlainTextJsonProvider(indent=mapper.indent),
        ExceptionResponseMapper(),
    )
