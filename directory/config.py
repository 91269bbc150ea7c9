import os
from typing import Any, Dict, List

from dotenv import load_dotenv

load_dotenv()

REQUIRED_KEYS = ["server", "search_base", "user", "keyring_service"]

_TRUE_VALUES = ("1", "true", "yes", "on")


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in _TRUE_VALUES


class DirectoryConfig:
    """Centralized directory configuration management."""

    @staticmethod
    def get_config() -> Dict[str, Any]:
        """Get LDAP and resolver configuration from environment variables."""
        use_ssl = _env_flag("LDAP_USE_SSL", "true")

        config = {
            "server": os.getenv("LDAP_SERVER"),
            "search_base": os.getenv("LDAP_SEARCH_BASE"),
            "user": os.getenv("LDAP_USER"),
            "keyring_service": os.getenv("LDAP_KEYRING_SERVICE", "ldap_directory"),
            "use_ssl": use_ssl,
            "port": int(os.getenv("LDAP_PORT", "636" if use_ssl else "389")),
            "timeout": int(os.getenv("LDAP_TIMEOUT", "600")),
            "include_primary_group": _env_flag("LDAP_INCLUDE_PRIMARY_GROUP", "true"),
            "max_workers": int(os.getenv("MEMBERSHIP_MAX_WORKERS", "8")),
        }

        # Drop unset required values so LDAPAdapter reports them as missing
        return {k: v for k, v in config.items() if v is not None}

    @staticmethod
    def validate(config: Dict[str, Any]) -> List[str]:
        """Return the required configuration keys that are missing or empty."""
        return [key for key in REQUIRED_KEYS if not config.get(key)]

    @staticmethod
    def get_example_env() -> Dict[str, str]:
        """Get an example .env layout for an Active Directory connection."""
        return {
            "LDAP_SERVER": "dc01.example.edu",
            "LDAP_SEARCH_BASE": "DC=example,DC=edu",
            "LDAP_USER": "EXAMPLE\\svc-groupreport",
            "LDAP_KEYRING_SERVICE": "ldap_directory",
            "LDAP_PORT": "636",
            "LDAP_USE_SSL": "true",
            "LDAP_TIMEOUT": "600",
            "LDAP_INCLUDE_PRIMARY_GROUP": "true",
            "MEMBERSHIP_MAX_WORKERS": "8",
        }
