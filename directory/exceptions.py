from typing import Optional


class DirectoryError(Exception):
    """Base exception for directory membership errors."""
    pass


class IdentityNotFoundError(DirectoryError):
    """Raised when the directory has no record of the requested principal."""

    def __init__(self, principal: str, message: Optional[str] = None):
        self.principal = principal
        super().__init__(message or f"Identity not found: {principal}")


class DirectoryLookupError(DirectoryError):
    """Raised when the directory backend fails while answering a query."""

    def __init__(self, principal: str, message: Optional[str] = None):
        self.principal = principal
        super().__init__(message or f"Directory lookup failed for: {principal}")


class InvalidInputError(DirectoryError, ValueError):
    """Raised when a request is rejected before any directory call is made."""
    pass


class ResolutionCancelledError(DirectoryError):
    """Raised when a resolution run is cancelled before it completes."""
    pass
