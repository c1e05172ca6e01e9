"""Shared string helpers used across the factory modules."""

from __future__ import annotations


def is_blank(value: str | None) -> bool:
    """Return True for None, the empty string, or whitespace-only strings."""
    return value is None or not value.strip()


def parse_bool(value: str | None) -> bool:
    """Parse a flag: only a case-insensitive ``"true"`` is True, anything else is False."""
    return value is not None and value.lower() == "true"


def strip_master_host(address: str) -> str:
    """Reduce a master URL to its bare host.

    Applies three cuts in a fixed order: drop from the last ``:`` onward, keep what
    follows the new last ``:``, then keep what follows the last ``/``. A cut only
    happens when the separator sits past index 0. For ``https://10.0.0.5:6443`` this
    yields ``10.0.0.5``; inputs without ``:`` or ``/`` come back unchanged.
    """
    answer = address
    idx = answer.rfind(":")
    if idx > 0:
        answer = answer[:idx]
    idx = answer.rfind(":")
    if idx > 0:
        answer = answer[idx + 1 :]
    idx = answer.rfind("/")
    if idx > 0:
        answer = answer[idx + 1 :]
    return answer
