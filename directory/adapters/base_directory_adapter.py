from abc import ABC, abstractmethod
from typing import Any, Dict, List


class BaseDirectoryAdapter(ABC):
    """
    Abstract base class for directory providers.

    A provider answers two read-only questions about a principal: which
    groups list it as a direct member, and what its descriptive attributes
    are. Implementations raise IdentityNotFoundError for unknown principals
    and DirectoryLookupError for backend failures, and never retry.
    """

    @abstractmethod
    def get_direct_parent_groups(self, principal: str) -> List[str]:
        """Get the names of the groups that directly contain the principal."""
        pass

    @abstractmethod
    def get_principal_attributes(self, principal: str) -> Dict[str, Any]:
        """Get the raw attributes of a user or group."""
        pass

    @abstractmethod
    def count_group_members(self, group: str) -> int:
        """Get the number of direct members of a group."""
        pass

    @abstractmethod
    def test_connection(self) -> bool:
        """Check if the directory is reachable."""
        pass
