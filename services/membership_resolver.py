"""
Membership Graph Resolver

Computes the transitive closure of group membership for one principal by
expanding the directory's "direct parent groups" relation one vertex at a
time.

Key features:
- Explicit frontier plus a visited set: terminates on cyclic nesting and
  queries each distinct vertex exactly once
- Vertices of the same frontier generation are expanded in parallel
- Best-effort: a failed lookup on an intermediate group prunes that branch
  and is recorded, a failed lookup on the start principal is raised
- Cancellation via threading.Event; a cancelled run never returns a result
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional, Set

from directory.adapters.base_directory_adapter import BaseDirectoryAdapter
from directory.exceptions import (
    DirectoryLookupError,
    IdentityNotFoundError,
    InvalidInputError,
    ResolutionCancelledError,
)
from directory.models.membership import (
    ClosureResult,
    STATUS_LOOKUP_FAILED,
    STATUS_NOT_FOUND,
)

logger = logging.getLogger(__name__)


class _ClosureRun:
    """
    State of a single closure computation.

    The visited set holds every vertex that has been claimed for expansion.
    A vertex is claimed at most once, under the lock, and only the thread
    that claimed it queries the directory for it.
    """

    def __init__(self, start: str):
        self.start = start
        self.visited: Set[str] = {start}
        self.self_referential = False
        self.unresolved = {}
        self.lookups = 0
        self.lock = threading.Lock()

    def claim(self, parents: List[str]) -> List[str]:
        """Mark unseen parents visited and return them for expansion."""
        claimed = []
        with self.lock:
            for parent in parents:
                if parent == self.start:
                    self.self_referential = True
                if parent in self.visited:
                    continue
                self.visited.add(parent)
                claimed.append(parent)
        return claimed

    def record_lookup(self) -> None:
        with self.lock:
            self.lookups += 1

    def record_failure(self, vertex: str, status: str) -> None:
        with self.lock:
            self.unresolved[vertex] = status


class MembershipResolver:
    """
    Resolve nested group membership over a directory provider.

    Args:
        directory: Provider answering direct-parent-group queries
        max_workers: Upper bound on concurrent directory calls, shared by every
            closure and by callers that go through direct_parents()
    """

    def __init__(self, directory: BaseDirectoryAdapter, max_workers: int = 8):
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        self.directory = directory
        self.max_workers = max_workers
        self._call_slots = threading.BoundedSemaphore(max_workers)

    def direct_parents(self, principal: str) -> List[str]:
        """
        Query the direct parent groups of one vertex.

        Every directory call made through the resolver passes through here,
        so concurrent closures never exceed max_workers calls in flight.
        """
        with self._call_slots:
            return self.directory.get_direct_parent_groups(principal)

    def closure(
        self, principal: str, cancel_event: Optional[threading.Event] = None
    ) -> ClosureResult:
        """
        Compute every group reachable from a principal through direct
        membership edges.

        The start principal is not reported as one of its own groups. When a
        cycle leads back to it, ``self_referential`` is set on the result.

        Args:
            principal: Account name of the user or group to resolve
            cancel_event: Optional event; once set no new lookups are issued

        Returns:
            ClosureResult: Sorted, de-duplicated group names

        Raises:
            InvalidInputError: If the principal is empty
            IdentityNotFoundError: If the start principal does not exist
            DirectoryLookupError: If the start principal cannot be queried
            ResolutionCancelledError: If cancel_event was set before completion
        """
        if not principal or not principal.strip():
            raise InvalidInputError("A principal name is required to resolve group membership")

        run = _ClosureRun(principal)

        self._check_cancelled(cancel_event, principal)

        # Start vertex failures propagate to the caller
        run.record_lookup()
        parents = self.direct_parents(principal)
        frontier = run.claim(parents)
        generation = 1

        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            while frontier:
                self._check_cancelled(cancel_event, principal)
                logger.debug(
                    f"{principal}: expanding generation {generation} ({len(frontier)} groups)"
                )

                expansions = executor.map(
                    lambda vertex: self._expand(run, vertex, cancel_event), frontier
                )
                next_frontier: List[str] = []
                for claimed in expansions:
                    next_frontier.extend(claimed)

                frontier = next_frontier
                generation += 1

        self._check_cancelled(cancel_event, principal)

        groups = sorted(run.visited - {principal})

        if run.self_referential:
            logger.warning(f"{principal} is nested inside its own group chain")
        if run.unresolved:
            logger.info(
                f"{principal}: {len(run.unresolved)} groups could not be expanded"
            )
        logger.info(
            f"Resolved {len(groups)} groups for {principal} with {run.lookups} directory lookups"
        )

        return ClosureResult(
            principal=principal,
            groups=groups,
            self_referential=run.self_referential,
            unresolved=dict(run.unresolved),
            lookups=run.lookups,
        )

    def _expand(
        self, run: _ClosureRun, vertex: str, cancel_event: Optional[threading.Event]
    ) -> List[str]:
        """Query one claimed vertex and claim its unseen parents."""
        if cancel_event is not None and cancel_event.is_set():
            return []

        run.record_lookup()
        try:
            parents = self.direct_parents(vertex)
        except IdentityNotFoundError:
            logger.debug(f"Group {vertex} not found, treating as a dead end")
            run.record_failure(vertex, STATUS_NOT_FOUND)
            return []
        except DirectoryLookupError as e:
            logger.warning(f"Lookup failed for group {vertex}, skipping its parents: {e}")
            run.record_failure(vertex, STATUS_LOOKUP_FAILED)
            return []

        return run.claim(parents)

    @staticmethod
    def _check_cancelled(cancel_event: Optional[threading.Event], principal: str) -> None:
        if cancel_event is not None and cancel_event.is_set():
            logger.info(f"Resolution of {principal} cancelled")
            raise ResolutionCancelledError(f"Resolution of {principal} was cancelled")
