"""
Applier: converge every declared address (and every address left in state).

Per address:
  declared, not in state   -> create
  declared, in state       -> read -> (gone: create | replace | update)
  in state, not declared   -> delete

- Address-level isolation (one failure never aborts the run).
- On failure the previous state entry is kept as it was.
- Dry run: reads only, no mutations, state untouched.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple

from ..resources.base import BaseResource, ResourceError
from ..resources.registry import build_resources
from .declarations import Declaration
from .directory import RemoteDirectory
from .discord_client import TransportError
from .state_store import StateStore

STATUS_ORDER = ("CREATED", "UPDATED", "REPLACED", "DELETED", "GONE", "UNCHANGED", "ERROR", "EXCEPTION")


@dataclass(frozen=True)
class ApplyResult:
    address: str
    status: str
    detail: str = ""
    error: str = ""


class Applier:
    def __init__(
        self,
        directory: RemoteDirectory,
        state: StateStore,
        *,
        dry_run: bool = False,
        logger: Optional[logging.LoggerAdapter] = None,
        resources: Optional[Dict[str, BaseResource]] = None,
    ) -> None:
        self.directory = directory
        self.state = state
        self.dry_run = dry_run
        self.log = logger or logging.getLogger(__name__)
        self.resources = resources or build_resources(directory, logger=logger)

    def _resource_for(self, kind: str) -> BaseResource:
        res = self.resources.get(kind)
        if res is None:
            raise ResourceError(f"No resource handler for kind '{kind}'")
        return res

    def apply(self, declarations: Iterable[Declaration]) -> Tuple[List[ApplyResult], Dict[str, int]]:
        declared = {d.address: d for d in declarations}
        orphaned = [a for a in self.state.addresses() if a not in declared]

        results: List[ApplyResult] = []
        counts: Dict[str, int] = {}

        for address in list(declared) + orphaned:
            decl = declared.get(address)
            prior = self.state.get(address)
            kind = decl.kind if decl else prior.kind
            try:
                resource = self._resource_for(kind)
                out = resource.reconcile(
                    address,
                    decl.attributes if decl else None,
                    prior,
                    dry_run=self.dry_run,
                )
                if not self.dry_run:
                    if out.entry is None:
                        self.state.drop(address)
                    else:
                        self.state.put(address, out.entry)
                self._append(results, counts, ApplyResult(address, out.status, detail=out.detail))
                level = logging.DEBUG if out.status == "UNCHANGED" else logging.INFO
                self.log.log(level, "%s %s %s", address, out.status, out.detail)

            except (ResourceError, TransportError) as e:
                self._append(results, counts, ApplyResult(address, "ERROR", error=str(e)))
                self.log.error("%s failed: %s", address, e)
            except Exception as e:
                self._append(results, counts, ApplyResult(address, "EXCEPTION", error=str(e)))
                self.log.exception("%s raised: %s", address, e)

        if not self.dry_run and self.state.path:
            self.state.save()
        return results, counts

    @staticmethod
    def _append(results: List[ApplyResult], counts: Dict[str, int], res: ApplyResult) -> None:
        results.append(res)
        counts[res.status] = counts.get(res.status, 0) + 1
