"""Pydantic v2 models for payloads the API server sends back to us."""

from __future__ import annotations

import json

from pydantic import BaseModel, ConfigDict, Field, ValidationError


class ApiStatus(BaseModel):
    """The ``Status`` object returned in the body of a failed API request."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    kind: str | None = None
    api_version: str | None = Field(default=None, alias="apiVersion")
    status: str | None = None
    message: str | None = None
    reason: str | None = None
    code: int | None = None


def parse_api_status(body: str | bytes | None) -> ApiStatus | None:
    """Decode an error response body into an ApiStatus.

    Returns None when the body is empty, not JSON, or not a Status-shaped mapping,
    so callers can fall back to the HTTP reason phrase.
    """
    if not body:
        return None
    try:
        raw = json.loads(body)
    except ValueError:
        return None
    if not isinstance(raw, dict):
        return None
    try:
        return ApiStatus.model_validate(raw)
    except ValidationError:
        return None
