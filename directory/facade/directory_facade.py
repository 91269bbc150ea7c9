"""
Directory Facade

Caller-facing entry point for membership queries. It owns the directory
adapter and the services built on it, validates requests before any
directory traffic, and returns results ready for a result sink.
"""

import logging
import threading
from typing import Any, Dict, Iterable, Optional, Sequence

import pandas as pd

from services.difference_engine import MISSING_ABORT, DifferenceEngine
from services.info_lookup_service import (
    GROUP_NAME_COLUMN,
    USER_COLUMNS,
    USER_NAME_COLUMN,
    InfoLookupService,
)
from services.membership_resolver import MembershipResolver

from ..adapters.base_directory_adapter import BaseDirectoryAdapter
from ..adapters.ldap_adapter import LDAPAdapter
from ..config import DirectoryConfig
from ..exceptions import DirectoryError, InvalidInputError
from ..models.membership import ClosureResult, DifferenceTable, records_to_dataframe

logger = logging.getLogger(__name__)


class DirectoryFacade:
    """
    Orchestrated access to nested group membership, membership comparison
    and group/user attribute lookups.

    The facade verifies the directory connection on construction so that
    credential prompts and bind failures happen once, up front, rather than
    inside worker threads.
    """

    def __init__(
        self,
        config: Optional[Dict[str, Any]] = None,
        directory: Optional[BaseDirectoryAdapter] = None,
        verify_connection: bool = True,
    ) -> None:
        """
        Initialize the facade.

        Args:
            config: Directory configuration. Loaded from the environment when
                omitted and no directory is supplied.
            directory: Pre-built directory provider (an LDAPAdapter is built
                from config otherwise)
            verify_connection: Test the connection before returning

        Raises:
            DirectoryError: If the connection test fails
        """
        if config is None:
            config = DirectoryConfig.get_config() if directory is None else {}
        self.config = config

        self.directory = directory or LDAPAdapter(config)
        self.max_workers = int(config.get("max_workers", 8))

        self.resolver = MembershipResolver(self.directory, max_workers=self.max_workers)
        self.info_service = InfoLookupService(self.directory, max_workers=self.max_workers)

        if verify_connection:
            self._activate_connection()

        logger.info(f"Directory facade initialized ({self.max_workers} workers)")

    def _activate_connection(self) -> None:
        logger.debug("Testing directory connection...")
        if not self.directory.test_connection():
            raise DirectoryError("Failed to establish directory connection")
        logger.debug("Directory connection successful")

    def get_group_closure(
        self, principal: str, cancel_event: Optional[threading.Event] = None
    ) -> ClosureResult:
        """
        Get every group a principal belongs to, directly or through nesting.

        Raises:
            InvalidInputError: If the principal name is empty
            IdentityNotFoundError: If the principal does not exist
            DirectoryLookupError: If the principal cannot be queried
        """
        principal = (principal or "").strip()
        if not principal:
            raise InvalidInputError("A principal name is required")
        return self.resolver.closure(principal, cancel_event=cancel_event)

    def compare_principals(
        self,
        principals: Iterable[str],
        transitive: bool = False,
        on_missing: str = MISSING_ABORT,
        cancel_event: Optional[threading.Event] = None,
    ) -> DifferenceTable:
        """
        Compare group memberships, keeping only groups not shared by everyone.

        Args:
            principals: Two or more account names
            transitive: Compare nested memberships instead of direct ones
            on_missing: 'abort' or 'empty' handling of unresolvable principals

        Raises:
            InvalidInputError: If a name is blank or fewer than two distinct
                principals are given
        """
        engine = DifferenceEngine(
            self.directory,
            resolver=self.resolver,
            max_workers=self.max_workers,
            on_missing=on_missing,
        )
        return engine.compare(principals, transitive=transitive, cancel_event=cancel_event)

    def get_group_info(
        self, group_names: Sequence[str], include_member_count: bool = False
    ) -> pd.DataFrame:
        """
        Get one attribute row per requested group, in input order.

        Unknown groups appear as "Not Found" rows rather than being dropped.
        """
        records = self.info_service.get_group_info(group_names, include_member_count)
        columns = self.info_service.group_columns(include_member_count)
        return records_to_dataframe(records, GROUP_NAME_COLUMN, columns)

    def get_user_info(self, user_names: Sequence[str]) -> pd.DataFrame:
        """Get one attribute row per requested user, in input order."""
        records = self.info_service.get_user_info(user_names)
        return records_to_dataframe(records, USER_NAME_COLUMN, USER_COLUMNS)

    def get_connection_info(self) -> Dict[str, Any]:
        """Get connection details of the underlying directory adapter."""
        if hasattr(self.directory, "get_connection_info"):
            return self.directory.get_connection_info()
        return {"directory": type(self.directory).__name__}
