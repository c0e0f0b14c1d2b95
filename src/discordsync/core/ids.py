"""
Snowflake and composite identifier helpers.

Member-scoped resources persist a single handle "<server_id>:<user_id>".
Handles written by older releases predate that scheme; `resolve_member_ids`
falls back to the separately stored ids for those.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional, Tuple

__all__ = [
    "SEPARATOR",
    "MalformedCompositeId",
    "format_composite_id",
    "parse_composite_id",
    "normalize_snowflake",
    "resolve_member_ids",
]

SEPARATOR = ":"

_MAX_SNOWFLAKE = 2 ** 64 - 1


class MalformedCompositeId(ValueError):
    """Raised when a handle is not exactly two non-empty parts joined by SEPARATOR."""


def normalize_snowflake(value: Any) -> str:
    """Return the canonical decimal string of a snowflake; raise ValueError when invalid."""
    if isinstance(value, bool):
        raise ValueError(f"Not a snowflake: {value!r}")
    s = str(value if value is not None else "").strip()
    if not s.isdigit():
        raise ValueError(f"Not a snowflake: {value!r}")
    n = int(s)
    if n > _MAX_SNOWFLAKE:
        raise ValueError(f"Snowflake out of range: {value!r}")
    return str(n)


def format_composite_id(server_id: str, user_id: str) -> str:
    return f"{server_id}{SEPARATOR}{user_id}"


def parse_composite_id(value: str) -> Tuple[str, str]:
    parts = (value or "").split(SEPARATOR)
    if len(parts) != 2 or not parts[0] or not parts[1]:
        raise MalformedCompositeId(f"Expected '<server_id>{SEPARATOR}<user_id>', got {value!r}")
    return parts[0], parts[1]


def resolve_member_ids(
    handle: str,
    attributes: Mapping[str, Any],
    logger: Optional[logging.LoggerAdapter] = None,
) -> Tuple[str, str]:
    """
    Return (server_id, user_id) for a persisted member handle.

    When the handle cannot be parsed, the ids stored next to it are used instead.
    """
    try:
        return parse_composite_id(handle)
    except MalformedCompositeId:
        (logger or logging.getLogger(__name__)).info(
            "Unable to parse ids out of handle %r, falling back on stored server_id/user_id", handle
        )
        return str(attributes.get("server_id", "")), str(attributes.get("user_id", ""))
