"""
BaseResource: orchestrates read -> replace? -> create/update/delete for one address.

Concrete resources implement the lifecycle hooks (create, read, update, delete)
and declare which attributes force a replacement. Everything else (dropping
handles of vanished objects, replacement ordering, dry runs) is handled here.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

from ..core.directory import RemoteDirectory
from ..core.state_store import StateEntry

__all__ = ["ResourceError", "Outcome", "BaseResource"]


class ResourceError(Exception):
    """A remote call for a resource failed; the message names the entity involved."""


@dataclass
class Outcome:
    """Result of one lifecycle step.

    Attributes:
        status: CREATED, UPDATED, UNCHANGED, REPLACED, DELETED or GONE.
        entry: State entry to persist, or None to drop the address from state.
        detail: Human-friendly summary of what changed (or would change).
    """
    status: str
    entry: Optional[StateEntry]
    detail: str = ""


class BaseResource:
    """Abstract base class for all resource kinds.

    Class Attributes:
        kind: Resource kind as used in declarations and state addresses.
        force_new: Attributes whose change requires delete + create.
    """

    kind: str = "resource"
    force_new: Tuple[str, ...] = ()

    def __init__(self, directory: RemoteDirectory, *, logger: Optional[logging.LoggerAdapter] = None) -> None:
        self.directory = directory
        self.log = logger or logging.getLogger(__name__)

    # ----- hooks to implement --------------------------------------------
    def create(self, attrs: Dict[str, Any], *, dry_run: bool = False) -> Outcome:
        raise NotImplementedError

    def read(self, prior: StateEntry) -> Any:
        """Return the observed remote object, or None when it no longer exists."""
        raise NotImplementedError

    def update(self, prior: StateEntry, attrs: Dict[str, Any], observed: Any, *, dry_run: bool = False) -> Outcome:
        raise NotImplementedError

    def delete(self, prior: StateEntry, *, dry_run: bool = False) -> Outcome:
        raise NotImplementedError

    # ----- lifecycle -----------------------------------------------------
    def requires_replace(self, attrs: Dict[str, Any], prior: StateEntry) -> bool:
        for key in self.force_new:
            if key in prior.attributes and prior.attributes[key] != attrs.get(key):
                return True
        return False

    def reconcile(
        self,
        address: str,
        attrs: Optional[Dict[str, Any]],
        prior: Optional[StateEntry],
        *,
        dry_run: bool = False,
    ) -> Outcome:
        """Converge one address: `attrs` is the declared state (None when undeclared)."""
        if attrs is None:
            if prior is None:
                return Outcome("UNCHANGED", None)
            return self.delete(prior, dry_run=dry_run)

        if prior is None:
            return self.create(attrs, dry_run=dry_run)

        observed = self.read(prior)
        if observed is None:
            self.log.warning("%s not found remotely (id=%s), removing from state and recreating", address, prior.id)
            try:
                out = self.create(attrs, dry_run=dry_run)
            except ResourceError as e:
                # the stale handle goes regardless; the next run tries a plain create
                self.log.error("%s could not be recreated: %s", address, e)
                return Outcome("GONE", None, f"previous object gone; recreate failed: {e}")
            out.detail = "previous object gone; " + out.detail if out.detail else "previous object gone"
            return out

        if self.requires_replace(attrs, prior):
            self.log.info("%s requires replacement", address)
            self.delete(prior, dry_run=dry_run)
            out = self.create(attrs, dry_run=dry_run)
            return Outcome("REPLACED", out.entry, out.detail)

        return self.update(prior, attrs, observed, dry_run=dry_run)
