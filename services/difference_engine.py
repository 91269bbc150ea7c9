"""
Multi-Principal Difference Engine

Compares the group memberships of two or more principals and keeps only the
groups that at least one of them lacks.

By default each principal's direct (one-hop) groups are compared. With
``transitive=True`` the engine feeds it each principal's full closure from
the MembershipResolver instead; the aggregation is the same either way.
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from directory.adapters.base_directory_adapter import BaseDirectoryAdapter
from directory.exceptions import (
    DirectoryLookupError,
    IdentityNotFoundError,
    InvalidInputError,
    ResolutionCancelledError,
)
from directory.models.membership import (
    STATUS_LOOKUP_FAILED,
    STATUS_NOT_FOUND,
    DifferenceRow,
    DifferenceTable,
    IncidenceTable,
)

from services.membership_resolver import MembershipResolver

logger = logging.getLogger(__name__)

MISSING_ABORT = "abort"
MISSING_EMPTY = "empty"


def build_difference_table(
    principals: Sequence[str], incidence: IncidenceTable
) -> DifferenceTable:
    """
    Shape an incidence table into difference rows.

    A group is emitted only when fewer than all principals belong to it.
    Rows are sorted by group name.
    """
    total = len(principals)
    rows: List[DifferenceRow] = []
    shared: List[str] = []

    for group in incidence.groups():
        members = incidence.members(group)
        if len(members) < total:
            rows.append(DifferenceRow(group=group, members=members))
        else:
            shared.append(group)

    return DifferenceTable(principals=tuple(principals), rows=rows, shared_groups=shared)


class DifferenceEngine:
    """
    Build principal-by-group comparison tables.

    Args:
        directory: Provider answering direct-parent-group queries
        resolver: Resolver for closures and for the shared bound on directory
            calls (one is built if omitted)
        max_workers: Upper bound on principals looked up concurrently; directory
            calls are further bounded by the resolver's max_workers
        on_missing: 'abort' to fail the run when a principal cannot be
            resolved, 'empty' to compare it as a member of no groups
    """

    def __init__(
        self,
        directory: BaseDirectoryAdapter,
        resolver: Optional[MembershipResolver] = None,
        max_workers: int = 8,
        on_missing: str = MISSING_ABORT,
    ):
        if on_missing not in (MISSING_ABORT, MISSING_EMPTY):
            raise ValueError(f"on_missing must be '{MISSING_ABORT}' or '{MISSING_EMPTY}'")
        self.directory = directory
        self.resolver = resolver or MembershipResolver(directory, max_workers=max_workers)
        self.max_workers = max_workers
        self.on_missing = on_missing

    def compare(
        self,
        principals: Iterable[str],
        transitive: bool = False,
        cancel_event: Optional[threading.Event] = None,
    ) -> DifferenceTable:
        """
        Compare the group memberships of several principals.

        Args:
            principals: Account names, in the column order wanted
            transitive: Compare nested memberships instead of direct ones
            cancel_event: Optional event; once set no new lookups are issued

        Returns:
            DifferenceTable: Non-shared groups, one row each, sorted by name

        Raises:
            InvalidInputError: If fewer than two distinct principals are given
            IdentityNotFoundError / DirectoryLookupError: If a principal cannot
                be resolved and on_missing is 'abort'
            ResolutionCancelledError: If cancel_event was set before completion
        """
        ordered = self._validate(principals)
        mode = "transitive" if transitive else "direct"
        logger.info(f"Comparing {mode} group membership of {len(ordered)} principals")

        group_sets, failures = self._collect_group_sets(ordered, transitive, cancel_event)

        incidence = IncidenceTable(ordered, group_sets)
        table = build_difference_table(ordered, incidence)
        table.unresolved_status = failures

        logger.info(
            f"{len(incidence)} groups seen, {len(table.rows)} differ, "
            f"{len(table.shared_groups)} shared by all"
        )
        return table

    def _validate(self, principals: Iterable[str]) -> List[str]:
        if principals is None:
            raise InvalidInputError("At least two principals are required for comparison")

        ordered: List[str] = []
        for principal in principals:
            name = (principal or "").strip()
            if not name:
                raise InvalidInputError("Principal names must not be empty")
            if name in ordered:
                logger.warning(f"Ignoring duplicate principal: {name}")
                continue
            ordered.append(name)

        if len(ordered) < 2:
            raise InvalidInputError(
                f"At least two distinct principals are required for comparison, got {len(ordered)}"
            )
        return ordered

    def _lookup_groups(
        self, principal: str, transitive: bool, cancel_event: Optional[threading.Event]
    ) -> List[str]:
        if cancel_event is not None and cancel_event.is_set():
            raise ResolutionCancelledError(f"Lookup of {principal} was cancelled")
        if transitive:
            return self.resolver.closure(principal, cancel_event=cancel_event).groups
        return self.resolver.direct_parents(principal)

    def _collect_group_sets(
        self,
        principals: List[str],
        transitive: bool,
        cancel_event: Optional[threading.Event],
    ) -> Tuple[Dict[str, List[str]], Dict[str, str]]:
        """
        Look up every principal's groups concurrently.

        Results are merged here, in the coordinating thread, only after each
        lookup has finished. Principals that could not be resolved get an empty
        group set and an entry in the returned failure statuses.
        """
        group_sets: Dict[str, List[str]] = {}
        failures: Dict[str, str] = {}

        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            futures = {
                executor.submit(self._lookup_groups, p, transitive, cancel_event): p
                for p in principals
            }
            try:
                for future in as_completed(futures):
                    principal = futures[future]
                    try:
                        group_sets[principal] = future.result()
                    except (IdentityNotFoundError, DirectoryLookupError) as e:
                        if self.on_missing == MISSING_ABORT:
                            logger.error(f"Cannot compare, {principal} could not be resolved: {e}")
                            raise
                        logger.warning(f"{principal} could not be resolved, comparing as empty: {e}")
                        group_sets[principal] = []
                        failures[principal] = (
                            STATUS_NOT_FOUND if isinstance(e, IdentityNotFoundError) else STATUS_LOOKUP_FAILED
                        )
                    logger.debug(f"{principal}: {len(group_sets[principal])} groups")
            except (IdentityNotFoundError, DirectoryLookupError, ResolutionCancelledError):
                for pending in futures:
                    pending.cancel()
                raise

        if cancel_event is not None and cancel_event.is_set():
            raise ResolutionCancelledError("Comparison was cancelled")

        return group_sets, failures
