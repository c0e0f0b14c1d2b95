"""
member_roles: manage a subset of one member's roles.

Each declared role carries `has_role`; roles the declarations never mention
are left alone. Removing a role from the declarations entirely takes it away
from the member if it had been declared as held.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional

from ..core.directory import Member
from ..core.discord_client import NotFoundError, TransportError
from ..core.ids import format_composite_id, resolve_member_ids
from ..core.roles import MutationPlan, RoleAssignment, apply_plan, describe_plan, diff_roles
from ..core.state_store import StateEntry
from .base import BaseResource, Outcome, ResourceError


def to_assignments(roles: Optional[Iterable[Dict[str, Any]]]) -> List[RoleAssignment]:
    return [
        RoleAssignment(role_id=str(r["role_id"]), has_role=bool(r.get("has_role", True)))
        for r in (roles or [])
    ]


class MemberRolesResource(BaseResource):
    kind = "member_roles"
    force_new = ("server_id", "user_id")

    def _get_member(self, server_id: str, user_id: str) -> Member:
        try:
            return self.directory.fetch_member(server_id, user_id)
        except TransportError as e:
            raise ResourceError(f"Could not get member {user_id} in {server_id}: {e}") from e

    def _apply(self, server_id: str, user_id: str, observed: List[str], plan: MutationPlan, dry_run: bool) -> None:
        if dry_run or not plan:
            return
        try:
            apply_plan(self.directory, server_id, user_id, observed, plan)
        except TransportError as e:
            raise ResourceError(f"Failed to edit member {user_id} in {server_id}: {e}") from e
        self.log.info("Member %s in %s roles updated: %s", user_id, server_id, describe_plan(plan))

    def create(self, attrs: Dict[str, Any], *, dry_run: bool = False) -> Outcome:
        server_id, user_id = attrs["server_id"], attrs["user_id"]
        member = self._get_member(server_id, user_id)
        plan = diff_roles(to_assignments(attrs["roles"]), member.roles)
        self._apply(server_id, user_id, member.roles, plan, dry_run)
        entry = StateEntry(self.kind, format_composite_id(server_id, user_id), dict(attrs))
        return Outcome("CREATED", entry, describe_plan(plan))

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
        server_id, user_id = attrs["server_id"], attrs["user_id"]
        plan = diff_roles(
            to_assignments(attrs["roles"]),
            observed.roles,
            to_assignments(prior.attributes.get("roles")),
        )
        self._apply(server_id, user_id, observed.roles, plan, dry_run)
        entry = StateEntry(self.kind, format_composite_id(server_id, user_id), dict(attrs))
        return Outcome("UPDATED" if plan else "UNCHANGED", entry, describe_plan(plan))

    def delete(self, prior: StateEntry, *, dry_run: bool = False) -> Outcome:
        server_id, user_id = resolve_member_ids(prior.id, prior.attributes, self.log)
        try:
            member = self.directory.fetch_member(server_id, user_id)
        except NotFoundError:
            return Outcome("GONE", None, f"member {user_id} no longer in {server_id}")
        except TransportError as e:
            raise ResourceError(f"Could not get member {user_id} in {server_id}: {e}") from e

        # Nothing declared any more: every previously held role is dropped.
        plan = diff_roles([], member.roles, to_assignments(prior.attributes.get("roles")))
        self._apply(server_id, user_id, member.roles, plan, dry_run)
        return Outcome("DELETED", None, describe_plan(plan))
