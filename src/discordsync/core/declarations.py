"""
Declarations loader: the desired state of Discord objects, read from YAML.

Layout:

    resources:
      member_roles:
        <name>: { server_id, user_id, roles: [ {role_id, has_role}, ... ] }
      member_nick:
        <name>: { server_id, user_id, nick }
      channel:
        <name>: { server_id, name, type, topic, position, parent_id }

Every entry is validated structurally here, so resources only ever see
normalized attributes (canonical snowflake strings, explicit defaults).
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional

import yaml

from .ids import normalize_snowflake

__all__ = [
    "DeclarationError",
    "Declaration",
    "CHANNEL_TYPES",
    "load_declarations",
    "parse_declarations",
]

CHANNEL_TYPES: Dict[str, int] = {
    "text": 0,
    "voice": 2,
    "category": 4,
    "news": 5,
}


class DeclarationError(Exception):
    """Raised when the declarations file is structurally invalid."""


@dataclass(frozen=True)
class Declaration:
    kind: str
    name: str
    attributes: Dict[str, Any]

    @property
    def address(self) -> str:
        return f"{self.kind}.{self.name}"


# =========================
# Field helpers
# =========================

def _require_map(value: Any, where: str) -> Mapping[str, Any]:
    if not isinstance(value, Mapping):
        raise DeclarationError(f"{where} must be a mapping")
    return value


def _snowflake(attrs: Mapping[str, Any], key: str, where: str, *, required: bool = True) -> Optional[str]:
    value = attrs.get(key)
    if value is None or value == "":
        if required:
            raise DeclarationError(f"{where}: '{key}' is required")
        return None
    try:
        return normalize_snowflake(value)
    except ValueError as e:
        raise DeclarationError(f"{where}: '{key}' {e}") from e


def _bool(value: Any, where: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in {"true", "false", "yes", "no", "1", "0"}:
        return value.strip().lower() in {"true", "yes", "1"}
    raise DeclarationError(f"{where} must be a boolean, got {value!r}")


def _reject_unknown(attrs: Mapping[str, Any], allowed: set, where: str) -> None:
    unknown = sorted(set(attrs) - allowed)
    if unknown:
        raise DeclarationError(f"{where}: unknown attribute(s) {', '.join(unknown)}")


# =========================
# Per-kind parsers
# =========================

def _parse_member_roles(attrs: Mapping[str, Any], where: str) -> Dict[str, Any]:
    _reject_unknown(attrs, {"server_id", "user_id", "roles"}, where)
    raw_roles = attrs.get("roles")
    if not isinstance(raw_roles, list) or not raw_roles:
        raise DeclarationError(f"{where}: 'roles' must be a non-empty list")

    roles: List[Dict[str, Any]] = []
    seen: Dict[str, int] = {}
    for i, entry in enumerate(raw_roles):
        r_where = f"{where}.roles[{i}]"
        entry = _require_map(entry, r_where)
        _reject_unknown(entry, {"role_id", "has_role"}, r_where)
        role_id = _snowflake(entry, "role_id", r_where)
        has_role = _bool(entry.get("has_role", True), f"{r_where}.has_role")
        if role_id in seen:
            raise DeclarationError(
                f"{r_where}: role {role_id} is already declared at roles[{seen[role_id]}]"
            )
        seen[role_id] = i
        roles.append({"role_id": role_id, "has_role": has_role})

    return {
        "server_id": _snowflake(attrs, "server_id", where),
        "user_id": _snowflake(attrs, "user_id", where),
        "roles": roles,
    }


def _parse_member_nick(attrs: Mapping[str, Any], where: str) -> Dict[str, Any]:
    _reject_unknown(attrs, {"server_id", "user_id", "nick"}, where)
    nick = attrs.get("nick")
    if not isinstance(nick, str):
        raise DeclarationError(f"{where}: 'nick' must be a string")
    return {
        "server_id": _snowflake(attrs, "server_id", where),
        "user_id": _snowflake(attrs, "user_id", where),
        "nick": nick,
    }


def _parse_channel(attrs: Mapping[str, Any], where: str) -> Dict[str, Any]:
    _reject_unknown(attrs, {"server_id", "name", "type", "topic", "position", "parent_id"}, where)
    name = attrs.get("name")
    if not isinstance(name, str) or not name.strip():
        raise DeclarationError(f"{where}: 'name' must be a non-empty string")

    ctype = str(attrs.get("type", "text")).strip().lower()
    if ctype not in CHANNEL_TYPES:
        raise DeclarationError(
            f"{where}: 'type' must be one of {', '.join(CHANNEL_TYPES)}, got {ctype!r}"
        )

    position = attrs.get("position", 1)
    if isinstance(position, bool) or not isinstance(position, int):
        raise DeclarationError(f"{where}: 'position' must be an integer")
    if position < 0:
        raise DeclarationError(f"{where}: position must be 0 or greater, got: {position}")

    topic = attrs.get("topic")
    if topic is not None and ctype not in ("text", "news"):
        raise DeclarationError(f"{where}: 'topic' is only supported on text and news channels")

    return {
        "server_id": _snowflake(attrs, "server_id", where),
        "name": name,
        "type": ctype,
        "topic": "" if topic is None else str(topic),
        "position": position,
        "parent_id": _snowflake(attrs, "parent_id", where, required=False),
    }


PARSERS: Dict[str, Callable[[Mapping[str, Any], str], Dict[str, Any]]] = {
    "member_roles": _parse_member_roles,
    "member_nick": _parse_member_nick,
    "channel": _parse_channel,
}


# =========================
# Public API
# =========================

def parse_declarations(data: Any) -> List[Declaration]:
    """Validate an already-parsed document and return its declarations in file order."""
    doc = _require_map(data or {}, "declarations")
    resources = doc.get("resources") or {}
    resources = _require_map(resources, "resources")

    out: List[Declaration] = []
    for kind, entries in resources.items():
        parser = PARSERS.get(kind)
        if parser is None:
            raise DeclarationError(f"Unknown resource kind '{kind}' (expected one of {', '.join(PARSERS)})")
        entries = _require_map(entries or {}, f"resources.{kind}")
        for name, attrs in entries.items():
            where = f"{kind}.{name}"
            out.append(Declaration(kind=kind, name=str(name), attributes=parser(_require_map(attrs, where), where)))
    return out


def load_declarations(path: str) -> List[Declaration]:
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Declarations file not found: {path}")
    with p.open("r", encoding="utf-8") as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise DeclarationError(f"Invalid YAML in {path}: {e}") from e
    return parse_declarations(data)
