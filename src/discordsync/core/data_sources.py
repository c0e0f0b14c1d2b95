"""
Read-only lookups over a RemoteDirectory.

Usage:
    directory = DiscordDirectory(DiscordClient(token))
    members = list_members(directory, "123")
    channel = find_channel(directory, "123", name="general")
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from .directory import RemoteDirectory
from .discord_client import NotFoundError, TransportError

__all__ = ["DataSourceError", "NO_DISCRIMINATOR", "list_members", "find_channel"]

# Users migrated to unique usernames report discriminator "0".
LEGACY_NO_DISCRIMINATOR = "0"
NO_DISCRIMINATOR = ""

log = logging.getLogger(__name__)


class DataSourceError(RuntimeError):
    """Raised when a lookup cannot be answered."""


def _member_row(member: Dict[str, Any]) -> Dict[str, Any]:
    user = member.get("user") or {}
    discriminator = str(user.get("discriminator") or NO_DISCRIMINATOR)
    if discriminator == LEGACY_NO_DISCRIMINATOR:
        discriminator = NO_DISCRIMINATOR
    return {
        "user_id": str(user.get("id", "")),
        "username": user.get("username") or "",
        "discriminator": discriminator,
        "joined_at": member.get("joined_at") or "",
        "premium_since": member.get("premium_since") or "",
        "avatar": user.get("avatar") or "",
        "nick": member.get("nick") or "",
        "roles": sorted(str(r) for r in (member.get("roles") or [])),
    }


def list_members(directory: RemoteDirectory, server_id: str) -> List[Dict[str, Any]]:
    """All members of a server, flattened to plain rows."""
    try:
        members = directory.list_members(server_id)
    except TransportError as e:
        raise DataSourceError(f"Failed to fetch members for {server_id}: {e}") from e
    rows = [_member_row(m) for m in members]
    log.debug("Members loaded: server=%s count=%d", server_id, len(rows))
    return rows


def _channel_row(channel: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "channel_id": str(channel.get("id", "")),
        "server_id": str(channel.get("guild_id") or ""),
        "name": channel.get("name") or "",
        "position": channel.get("position", 0),
        "type": channel.get("type"),
    }


def find_channel(
    directory: RemoteDirectory,
    server_id: str,
    *,
    channel_id: Optional[str] = None,
    name: Optional[str] = None,
) -> Dict[str, Any]:
    """Look a channel up by id, or else by name among the server's channels."""
    channel: Optional[Dict[str, Any]] = None
    try:
        if channel_id:
            try:
                channel = directory.get_channel(channel_id)
            except NotFoundError:
                channel = None
        elif name:
            for c in directory.list_channels(server_id):
                if c.get("name") == name:
                    channel = c
                    break
        else:
            raise DataSourceError("Either channel_id or channel name must be provided")
    except TransportError as e:
        raise DataSourceError(f"Failed to look up channel in {server_id}: {e}") from e

    if not channel:
        raise DataSourceError(f"Channel with ID {channel_id or ''} or name {name or ''} not found")
    return _channel_row(channel)
