"""
JSON state file holding the persisted handle and last applied attributes per address.

    {"version": 1, "resources": {"member_roles.alice": {"kind": ..., "id": ..., "attributes": {...}}}}
"""

from __future__ import annotations

import json
import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterator, Optional

__all__ = ["StateError", "StateEntry", "StateStore", "STATE_VERSION"]

STATE_VERSION = 1


class StateError(Exception):
    """Raised when the state file cannot be read or has an unsupported layout."""


@dataclass
class StateEntry:
    kind: str
    id: str
    attributes: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, "id": self.id, "attributes": self.attributes}


class StateStore:
    """In-memory view of the state file; `save()` writes it back atomically."""

    def __init__(self, path: Optional[str] = None, entries: Optional[Dict[str, StateEntry]] = None) -> None:
        self.path = path
        self._entries: Dict[str, StateEntry] = dict(entries or {})

    @classmethod
    def load(cls, path: str) -> "StateStore":
        p = Path(path)
        if not p.exists():
            return cls(path)
        try:
            data = json.loads(p.read_text(encoding="utf-8") or "{}")
        except json.JSONDecodeError as e:
            raise StateError(f"State file {path} is not valid JSON: {e}") from e
        if not isinstance(data, dict):
            raise StateError(f"State file {path} must contain a JSON object")
        version = data.get("version", STATE_VERSION)
        if version != STATE_VERSION:
            raise StateError(f"Unsupported state version {version!r} in {path}")

        entries: Dict[str, StateEntry] = {}
        for address, raw in (data.get("resources") or {}).items():
            if not isinstance(raw, dict) or "id" not in raw:
                raise StateError(f"State entry '{address}' is malformed")
            entries[address] = StateEntry(
                kind=str(raw.get("kind") or address.split(".", 1)[0]),
                id=str(raw["id"]),
                attributes=dict(raw.get("attributes") or {}),
            )
        return cls(path, entries)

    def get(self, address: str) -> Optional[StateEntry]:
        return self._entries.get(address)

    def put(self, address: str, entry: StateEntry) -> None:
        self._entries[address] = entry

    def drop(self, address: str) -> None:
        self._entries.pop(address, None)

    def addresses(self) -> Iterator[str]:
        return iter(list(self._entries))

    def __len__(self) -> int:
        return len(self._entries)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": STATE_VERSION,
            "resources": {a: e.to_dict() for a, e in sorted(self._entries.items())},
        }

    def save(self, path: Optional[str] = None) -> None:
        target = path or self.path
        if not target:
            raise StateError("No state file path configured")
        folder = os.path.dirname(os.path.abspath(target))
        os.makedirs(folder, exist_ok=True)
        fd, tmp = tempfile.mkstemp(prefix=".state-", suffix=".json", dir=folder)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(self.to_dict(), f, indent=2, sort_keys=True)
                f.write("\n")
            os.replace(tmp, target)
        except OSError:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise
