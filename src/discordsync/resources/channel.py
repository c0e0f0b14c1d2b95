"""
channel: a guild channel (text, news, voice or category).

Name, topic, position and parent are updated in place; a different server or
channel type forces a new channel.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from ..core.declarations import CHANNEL_TYPES
from ..core.discord_client import NotFoundError, TransportError
from ..core.state_store import StateEntry
from .base import BaseResource, Outcome, ResourceError

TOPIC_TYPES = ("text", "news")


def build_payload(attrs: Dict[str, Any]) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "name": attrs["name"],
        "type": CHANNEL_TYPES[attrs["type"]],
        "position": attrs["position"],
    }
    if attrs["type"] in TOPIC_TYPES:
        payload["topic"] = attrs.get("topic") or ""
    if attrs.get("parent_id"):
        payload["parent_id"] = attrs["parent_id"]
    return payload


def changed_fields(attrs: Dict[str, Any], observed: Dict[str, Any]) -> Dict[str, Any]:
    """Subset of the update payload whose value differs from the remote channel."""
    desired = build_payload(attrs)
    desired.pop("type", None)
    current = {
        "name": observed.get("name"),
        "position": observed.get("position"),
        "topic": observed.get("topic") or "",
        "parent_id": observed.get("parent_id"),
    }
    patch = {k: v for k, v in desired.items() if current.get(k) != v}
    if not attrs.get("parent_id") and current["parent_id"]:
        patch["parent_id"] = None
    return patch


class ChannelResource(BaseResource):
    kind = "channel"
    force_new = ("server_id", "type")

    def create(self, attrs: Dict[str, Any], *, dry_run: bool = False) -> Outcome:
        server_id = attrs["server_id"]
        detail = f"{attrs['type']} channel #{attrs['name']}"
        if dry_run:
            return Outcome("CREATED", StateEntry(self.kind, "", dict(attrs)), detail)
        try:
            created = self.directory.create_channel(server_id, build_payload(attrs))
        except TransportError as e:
            raise ResourceError(f"Failed to create channel {attrs['name']} in {server_id}: {e}") from e
        channel_id = str(created.get("id", ""))
        if not channel_id:
            raise ResourceError(f"Channel {attrs['name']} in {server_id} was created without an id")
        self.log.info("Created channel %s (%s) in %s", attrs["name"], channel_id, server_id)
        return Outcome("CREATED", StateEntry(self.kind, channel_id, dict(attrs)), detail)

    def read(self, prior: StateEntry) -> Optional[Dict[str, Any]]:
        try:
            return self.directory.get_channel(prior.id)
        except NotFoundError:
            self.log.info("Channel %s not found", prior.id)
            return None
        except TransportError as e:
            raise ResourceError(f"Could not get channel {prior.id}: {e}") from e

    def update(
        self,
        prior: StateEntry,
        attrs: Dict[str, Any],
        observed: Dict[str, Any],
        *,
        dry_run: bool = False,
    ) -> Outcome:
        entry = StateEntry(self.kind, prior.id, dict(attrs))
        patch = changed_fields(attrs, observed)
        if not patch:
            return Outcome("UNCHANGED", entry)
        if not dry_run:
            try:
                self.directory.modify_channel(prior.id, patch)
            except TransportError as e:
                raise ResourceError(f"Failed to update channel {prior.id}: {e}") from e
        return Outcome("UPDATED", entry, "fields: " + ", ".join(sorted(patch)))

    def delete(self, prior: StateEntry, *, dry_run: bool = False) -> Outcome:
        if dry_run:
            return Outcome("DELETED", None, f"channel {prior.id}")
        try:
            self.directory.delete_channel(prior.id)
        except NotFoundError:
            return Outcome("GONE", None, f"channel {prior.id} already deleted")
        except TransportError as e:
            raise ResourceError(f"Failed to delete channel {prior.id}: {e}") from e
        return Outcome("DELETED", None, f"channel {prior.id}")
