"""ApiClient subclass that routes payloads and errors through the configured providers."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

import structlog
from kubernetes import client as k8s_client
from kubernetes.client.exceptions import ApiException

from kube_factory.clients.providers import ExceptionResponseMapper, JsonProvider, Provider, create_providers

log = structlog.get_logger()


class KubernetesApiClient(k8s_client.ApiClient):
    """A ``kubernetes.client.ApiClient`` that consults its provider set.

    Response bodies are decoded by the first JSON provider that accepts the
    response content type; error responses are rewritten by the exception mapper.
    """

    def __init__(
        self,
        configuration: k8s_client.Configuration | None = None,
        providers: Iterable[Provider] | None = None,
    ) -> None:
        super().__init__(configuration)
        self.providers: tuple[Provider, ...] = create_providers() if providers is None else tuple(providers)

    def _json_providers(self) -> list[JsonProvider]:
        return [p for p in self.providers if isinstance(p, JsonProvider)]

    def _exception_mapper(self) -> ExceptionResponseMapper | None:
        for provider in self.providers:
            if isinstance(provider, ExceptionResponseMapper):
                return provider
        return None

    def deserialize(self, response_text: str, response_type: str, content_type: str | None) -> Any:
        for provider in self._json_providers():
            if provider.is_readable(content_type, response_type):
                data = provider.read(response_text)
                # Model conversion lives in the private ApiClient.__deserialize; reaching it
                # through the mangled name skips the SDK content-type switch, which would
                # hand text/plain bodies back as raw strings.
                return self._ApiClient__deserialize(data, response_type)
        return super().deserialize(response_text, response_type, content_type)

    def call_api(self, *args: Any, **kwargs: Any) -> Any:
        try:
            return super().call_api(*args, **kwargs)
        except ApiException as exc:
            mapped = self._map_exception(exc)
            if mapped is exc:
                raise
            raise mapped from exc

    def response_deserialize(self, *args: Any, **kwargs: Any) -> Any:
        try:
            return super().response_deserialize(*args, **kwargs)
        except ApiException as exc:
            mapped = self._map_exception(exc)
            if mapped is exc:
                raise
            raise mapped from exc

    def _map_exception(self, exc: ApiException) -> ApiException:
        mapper = self._exception_mapper()
        if mapper is None:
            return exc
        mapped = mapper.to_exception(exc)
        log.debug("api_error_response", status=mapped.status, message=mapped.message)
        return mapped

    def to_json(self, obj: Any) -> str:
        """Serialise a model (or plain data) with the first JSON provider."""
        providers = self._json_providers()
        data = self.sanitize_for_serialization(obj)
        if not providers:
            return JsonProvider().write(data)
        return providers[0].write(data)
