"""In-memory stand-in for the Discord API, shared by resource and applier tests."""

import itertools
from typing import Dict, List, Tuple

import pytest

from discordsync.core.directory import Member
from discordsync.core.discord_client import NotFoundError, TransportError


class FakeDirectory:
    def __init__(self):
        self.members: Dict[Tuple[str, str], Dict] = {}
        self.channels: Dict[str, Dict] = {}
        self.calls: List[Tuple] = []
        self.fail: Dict[str, TransportError] = {}
        self._ids = itertools.count(5000)

    # ----- setup helpers -----
    def add_member(self, server_id, user_id, roles=(), nick=""):
        self.members[(server_id, user_id)] = {"user": {"id": user_id}, "roles": list(roles), "nick": nick}

    def roles_of(self, server_id, user_id):
        return self.members[(server_id, user_id)]["roles"]

    def mutations(self):
        return [c for c in self.calls if c[0] not in ("fetch_member", "get_channel", "list_channels", "list_members")]

    def _check(self, op):
        if op in self.fail:
            raise self.fail[op]

    def _member(self, server_id, user_id):
        try:
            return self.members[(server_id, user_id)]
        except KeyError:
            raise NotFoundError(status=404, url=f"/guilds/{server_id}/members/{user_id}", message="Unknown Member")

    # ----- RemoteDirectory -----
    def fetch_member(self, server_id, user_id):
        self.calls.append(("fetch_member", server_id, user_id))
        self._check("fetch_member")
        return Member.from_api(dict(self._member(server_id, user_id)))

    def replace_member_roles(self, server_id, user_id, roles):
        self.calls.append(("replace_member_roles", server_id, user_id, list(roles)))
        self._check("replace_member_roles")
        self._member(server_id, user_id)["roles"] = list(roles)

    def set_member_nick(self, server_id, user_id, nick):
        self.calls.append(("set_member_nick", server_id, user_id, nick))
        self._check("set_member_nick")
        self._member(server_id, user_id)["nick"] = nick

    def list_members(self, server_id):
        self.calls.append(("list_members", server_id))
        return [dict(m) for (s, _), m in self.members.items() if s == server_id]

    def get_channel(self, channel_id):
        self.calls.append(("get_channel", channel_id))
        self._check("get_channel")
        if channel_id not in self.channels:
            raise NotFoundError(status=404, url=f"/channels/{channel_id}", message="Unknown Channel")
        return dict(self.channels[channel_id])

    def list_channels(self, server_id):
        self.calls.append(("list_channels", server_id))
        return [dict(c) for c in self.channels.values() if c["guild_id"] == server_id]

    def create_channel(self, server_id, payload):
        self.calls.append(("create_channel", server_id, dict(payload)))
        self._check("create_channel")
        channel_id = str(next(self._ids))
        self.channels[channel_id] = {"id": channel_id, "guild_id": server_id, "parent_id": None, **payload}
        return dict(self.channels[channel_id])

    def modify_channel(self, channel_id, payload):
        self.calls.append(("modify_channel", channel_id, dict(payload)))
        self._check("modify_channel")
        self.channels[channel_id].update(payload)
        return dict(self.channels[channel_id])

    def delete_channel(self, channel_id):
        self.calls.append(("delete_channel", channel_id))
        self._check("delete_channel")
        if self.channels.pop(channel_id, None) is None:
            raise NotFoundError(status=404, url=f"/channels/{channel_id}", message="Unknown Channel")


@pytest.fixture()
def directory():
    return FakeDirectory()
