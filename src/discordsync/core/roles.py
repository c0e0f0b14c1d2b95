"""
Role membership reconciliation.

diff_roles -> MutationPlan -> merge_plan -> one replacement call.

- Only role ids mentioned in the desired or previously declared sets are touched.
- A role dropped from the declarations (not merely flipped to has_role=false)
  is removed when it was previously declared as held.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Dict, Iterable, List, Literal, Sequence

if TYPE_CHECKING:  # pragma: no cover
    from .directory import RemoteDirectory

Op = Literal["ADD", "REMOVE"]

ADD: Op = "ADD"
REMOVE: Op = "REMOVE"


@dataclass(frozen=True)
class RoleAssignment:
    """One declared (role_id, has_role) pair."""
    role_id: str
    has_role: bool = True


@dataclass(frozen=True)
class Mutation:
    op: Op
    role_id: str


MutationPlan = List[Mutation]


def _by_role(assignments: Iterable[RoleAssignment]) -> Dict[str, bool]:
    # Later entries win; declarations reject duplicates before they get here.
    out: Dict[str, bool] = {}
    for a in assignments:
        out[a.role_id] = a.has_role
    return out


def diff_roles(
    desired: Iterable[RoleAssignment],
    observed: Iterable[str],
    previously_declared: Iterable[RoleAssignment] = (),
) -> MutationPlan:
    """
    Compute the ordered add/remove operations converging `observed` to `desired`.

    Operations for desired entries come first (declaration order), followed by
    removals for previously declared roles that are no longer declared at all.
    """
    wanted = _by_role(desired)
    held = set(observed)

    plan: MutationPlan = []
    for role_id, want in wanted.items():
        if want and role_id not in held:
            plan.append(Mutation(ADD, role_id))
        elif not want and role_id in held:
            plan.append(Mutation(REMOVE, role_id))

    for role_id, want in _by_role(previously_declared).items():
        if role_id in wanted:
            continue
        if want and role_id in held:
            plan.append(Mutation(REMOVE, role_id))

    return plan


def merge_plan(observed: Sequence[str], plan: Iterable[Mutation]) -> List[str]:
    """Full role list after the plan: observed order kept, additions appended."""
    removes = {m.role_id for m in plan if m.op == REMOVE}
    roles = [r for r in observed if r not in removes]
    for m in plan:
        if m.op == ADD and m.role_id not in roles:
            roles.append(m.role_id)
    return roles


def apply_plan(
    directory: "RemoteDirectory",
    server_id: str,
    user_id: str,
    observed: Sequence[str],
    plan: MutationPlan,
) -> List[str]:
    """
    Issue the plan as a single replacement of the member's role list.

    Returns the role list sent; an empty plan sends nothing and returns `observed`.
    """
    if not plan:
        return list(observed)
    roles = merge_plan(observed, plan)
    directory.replace_member_roles(server_id, user_id, roles)
    return roles


def describe_plan(plan: Iterable[Mutation]) -> str:
    parts = [f"{'+' if m.op == ADD else '-'}{m.role_id}" for m in plan]
    return ", ".join(parts) if parts else "no changes"
