from .adapters.ldap_adapter import LDAPAdapter
from .config import DirectoryConfig
from .exceptions import (
    DirectoryError,
    DirectoryLookupError,
    IdentityNotFoundError,
    InvalidInputError,
    ResolutionCancelledError,
)

__all__ = [
    'LDAPAdapter',
    'DirectoryConfig',
    'DirectoryError',
    'DirectoryLookupError',
    'IdentityNotFoundError',
    'InvalidInputError',
    'ResolutionCancelledError',
]
