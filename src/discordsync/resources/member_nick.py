"""member_nick: pin one member's server nickname; deleting resets it."""

from __future__ import annotations

from typing import Any, Dict, Optional

from ..core.directory import Member
from ..core.discord_client import NotFoundError, TransportError
from ..core.ids import format_composite_id, resolve_member_ids
from ..core.state_store import StateEntry
from .base import BaseResource, Outcome, ResourceError


class MemberNickResource(BaseResource):
    kind = "member_nick"
    force_new = ("server_id", "user_id")

    def _set_nick(self, server_id: str, user_id: str, old: str, new: str, dry_run: bool) -> None:
        if dry_run:
            return
        try:
            self.directory.set_member_nick(server_id, user_id, new)
        except TransportError as e:
            raise ResourceError(
                f"Failed to update member nickname from {old!r} to {new!r}! Member {user_id}. Error: {e}"
            ) from e

    def create(self, attrs: Dict[str, Any], *, dry_run: bool = False) -> Outcome:
        server_id, user_id, nick = attrs["server_id"], attrs["user_id"], attrs["nick"]
        try:
            member = self.directory.fetch_member(server_id, user_id)
        except TransportError as e:
            raise ResourceError(f"Could not get member {user_id} in {server_id}: {e}") from e

        detail = ""
        if member.nick != nick:
            self._set_nick(server_id, user_id, member.nick, nick, dry_run)
            detail = f"nick {member.nick!r} -> {nick!r}"
        entry = StateEntry(self.kind, format_composite_id(server_id, user_id), dict(attrs))
        return Outcome("CREATED", entry, detail)

    def read(self, prior: StateEntry) -> Optional[Member]:
        server_id, user_id = resolve_member_ids(prior.id, prior.attributes, self.log)
        try:
            return self.directory.fetch_member(server_id, user_id)
        except NotFoundError:
            self.log.info("Member %s not found in server %s", user_id, server_id)
            return None
        except TransportError as e:
            raise ResourceError(f"Could not get member {user_id} in {server_id}: {e}") from e

    def update(self, prior: StateEntry, attrs: Dict[str, Any], observed: Member, *, dry_run: bool = False) -> Outcome:
        server_id, user_id, nick = attrs["server_id"], attrs["user_id"], attrs["nick"]
        entry = StateEntry(self.kind, format_composite_id(server_id, user_id), dict(attrs))
        if observed.nick == nick:
            return Outcome("UNCHANGED", entry)
        self._set_nick(server_id, user_id, observed.nick, nick, dry_run)
        return Outcome("UPDATED", entry, f"nick {observed.nick!r} -> {nick!r}")

    def delete(self, prior: StateEntry, *, dry_run: bool = False) -> Outcome:
        server_id, user_id = resolve_member_ids(prior.id, prior.attributes, self.log)
        try:
            member = self.directory.fetch_member(server_id, user_id)
        except NotFoundError:
            return Outcome("GONE", None, f"member {user_id} no longer in {server_id}")
        except TransportError as e:
            raise ResourceError(f"Could not get member {user_id} in {server_id}: {e}") from e

        if not member.nick:
            return Outcome("DELETED", None)
        self._set_nick(server_id, user_id, member.nick, "", dry_run)
        return Outcome("DELETED", None, f"nick {member.nick!r} reset")
