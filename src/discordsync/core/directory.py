"""
Remote directory: the capability object resources use to reach Discord.

`RemoteDirectory` is the interface; `DiscordDirectory` implements it on top of
DiscordClient. Resources receive a directory explicitly, so tests can hand in
an in-memory fake instead.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol

from .discord_client import DiscordClient

__all__ = ["Member", "RemoteDirectory", "DiscordDirectory", "MEMBERS_PAGE_LIMIT"]

MEMBERS_PAGE_LIMIT = 1000


@dataclass
class Member:
    """Subset of a guild member the resources care about."""
    user_id: str
    roles: List[str] = field(default_factory=list)
    nick: str = ""
    raw: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "Member":
        user = data.get("user") or {}
        return cls(
            user_id=str(user.get("id", "")),
            roles=[str(r) for r in (data.get("roles") or [])],
            nick=data.get("nick") or "",
            raw=data,
        )


class RemoteDirectory(Protocol):
    def fetch_member(self, server_id: str, user_id: str) -> Member: ...

    def replace_member_roles(self, server_id: str, user_id: str, roles: List[str]) -> None: ...

    def set_member_nick(self, server_id: str, user_id: str, nick: str) -> None: ...

    def list_members(self, server_id: str) -> List[Dict[str, Any]]: ...

    def get_channel(self, channel_id: str) -> Dict[str, Any]: ...

    def list_channels(self, server_id: str) -> List[Dict[str, Any]]: ...

    def create_channel(self, server_id: str, payload: Dict[str, Any]) -> Dict[str, Any]: ...

    def modify_channel(self, channel_id: str, payload: Dict[str, Any]) -> Dict[str, Any]: ...

    def delete_channel(self, channel_id: str) -> None: ...


class DiscordDirectory:
    """RemoteDirectory backed by the Discord REST API."""

    def __init__(self, client: DiscordClient, *, logger: Optional[logging.LoggerAdapter] = None) -> None:
        self.client = client
        self.log = logger or logging.getLogger(__name__)

    # ----- members -----

    def fetch_member(self, server_id: str, user_id: str) -> Member:
        data = self.client.get_json(f"/guilds/{server_id}/members/{user_id}")
        return Member.from_api(data if isinstance(data, dict) else {})

    def replace_member_roles(self, server_id: str, user_id: str, roles: List[str]) -> None:
        self.client.patch_json(f"/guilds/{server_id}/members/{user_id}", {"roles": list(roles)})

    def set_member_nick(self, server_id: str, user_id: str, nick: str) -> None:
        self.client.patch_json(f"/guilds/{server_id}/members/{user_id}", {"nick": nick})

    def list_members(self, server_id: str) -> List[Dict[str, Any]]:
        members: List[Dict[str, Any]] = []
        after = "0"
        while True:
            page = self.client.get_json(
                f"/guilds/{server_id}/members",
                params={"limit": MEMBERS_PAGE_LIMIT, "after": after},
            )
            page = page if isinstance(page, list) else []
            members.extend(page)
            if len(page) < MEMBERS_PAGE_LIMIT:
                break
            after = str((page[-1].get("user") or {}).get("id", ""))
        self.log.debug("Fetched %d members for server %s", len(members), server_id)
        return members

    # ----- channels -----

    def get_channel(self, channel_id: str) -> Dict[str, Any]:
        data = self.client.get_json(f"/channels/{channel_id}")
        return data if isinstance(data, dict) else {}

    def list_channels(self, server_id: str) -> List[Dict[str, Any]]:
        data = self.client.get_json(f"/guilds/{server_id}/channels")
        return [c for c in data if isinstance(c, dict)] if isinstance(data, list) else []

    def create_channel(self, server_id: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        data = self.client.post_json(f"/guilds/{server_id}/channels", payload)
        return data if isinstance(data, dict) else {}

    def modify_channel(self, channel_id: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        data = self.client.patch_json(f"/channels/{channel_id}", payload)
        return data if isinstance(data, dict) else {}

    def delete_channel(self, channel_id: str) -> None:
        self.client.delete_json(f"/channels/{channel_id}")
