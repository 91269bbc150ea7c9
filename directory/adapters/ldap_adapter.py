import getpass
import logging
import threading
from typing import Any, Dict, List, Optional

import keyring
from ldap3 import ALL, BASE, SUBTREE, Connection, Server
from ldap3.core.exceptions import LDAPException
from ldap3.protocol.formatters.formatters import format_sid
from ldap3.utils.conv import escape_filter_chars

from ..exceptions import DirectoryLookupError, IdentityNotFoundError
from .base_directory_adapter import BaseDirectoryAdapter

logger = logging.getLogger(__name__)

# LDAP result codes that mean "nothing matched" rather than "the search failed"
_EMPTY_RESULT_CODES = (0, 32)
_SIZE_LIMIT_EXCEEDED = 4

# Result counts that usually mean the server truncated the answer
_POTENTIAL_SIZE_LIMITS = (350, 500, 1000, 2000, 5000)

PRINCIPAL_ATTRIBUTES = [
    "sAMAccountName",
    "objectSid",
    "primaryGroupID",
]

INFO_ATTRIBUTES = [
    "sAMAccountName",
    "cn",
    "objectClass",
    "whenCreated",
    "description",
    "groupType",
    "displayName",
    "givenName",
    "sn",
    "mail",
    "title",
    "department",
    "telephoneNumber",
    "userAccountControl",
    "lastLogonTimestamp",
]


def _flatten_attributes(dn: str, attributes: Dict[str, Any]) -> Dict[str, Any]:
    """Build {'dn': ..., attr: value-or-list}, unwrapping single-valued lists."""
    entry_dict = {"dn": dn}
    for attr_name, values in attributes.items():
        if isinstance(values, (list, tuple)):
            if not values:
                continue
            entry_dict[attr_name] = values[0] if len(values) == 1 else list(values)
        elif values is not None:
            entry_dict[attr_name] = values
    return entry_dict


def _entry_to_dict(entry) -> Dict[str, Any]:
    """Convert an ldap3 Entry into a flat dictionary."""
    return _flatten_attributes(entry.entry_dn, entry.entry_attributes_as_dict)


def _as_list(value: Any) -> List[Any]:
    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value]


class LDAPAdapter(BaseDirectoryAdapter):
    """
    Active Directory membership provider built on ldap3.

    Principals are addressed by sAMAccountName. Each public lookup opens its
    own bound connection and releases it before returning, so the adapter can
    be shared by worker threads without sharing a connection.
    """

    def __init__(self, config: Dict[str, Any]):
        """
        Initialize LDAP adapter with configuration settings.

        Args:
            config: Dictionary containing LDAP connection settings.
                   Required keys:
                   - 'server': LDAP server hostname
                   - 'search_base': Base DN for searches
                   - 'user': Username for authentication
                   - 'keyring_service': Keyring service name for password

                   Optional keys with defaults:
                   - 'port': LDAP port (default: 636 for SSL, 389 for non-SSL)
                   - 'use_ssl': Enable SSL/TLS (default: True)
                   - 'timeout': Connection timeout in seconds (default: 600)
                   - 'auto_bind': Auto-bind on connection (default: True)
                   - 'get_info': Server info level (default: ALL)
                   - 'default_page_size': Page size for paged searches (default: 1000)
                   - 'include_primary_group': Report the primary group as a
                     direct parent (default: True)

        Raises:
            ValueError: If required configuration keys are missing
            TypeError: If configuration is not a dictionary
        """
        if not isinstance(config, dict):
            raise TypeError("Configuration must be a dictionary")

        required_keys = ["server", "search_base", "user", "keyring_service"]
        missing_keys = [key for key in required_keys if key not in config]
        if missing_keys:
            raise ValueError(f"Missing required configuration keys: {missing_keys}")

        self.server_hostname = config["server"]
        self.search_base = config["search_base"]
        self.user = config["user"]
        self.keyring_service = config["keyring_service"]

        self.use_ssl = config.get("use_ssl", True)
        self.port = config.get("port", 636 if self.use_ssl else 389)
        self.timeout = config.get("timeout", 600)  # AD is very slow, needs long timeout
        self.auto_bind = config.get("auto_bind", True)
        self.get_info = config.get("get_info", ALL)
        self.default_page_size = config.get("default_page_size", 1000)
        self.include_primary_group = config.get("include_primary_group", True)

        self._server = None
        self._password = None
        # Worker threads must not race each other into the password prompt
        self._lock = threading.Lock()

        logger.debug(f"LDAP adapter initialized for server: {self.server_hostname}")

    def _get_password(self) -> str:
        """
        Retrieve password from keyring or prompt user.

        Returns:
            str: The password for LDAP authentication

        Raises:
            KeyboardInterrupt: If user cancels password prompt
        """
        with self._lock:
            if self._password:
                return self._password

            try:
                password = keyring.get_password(self.keyring_service, self.user)
                if password:
                    logger.debug("Using password from keyring")
                    self._password = password
                    return password
            except Exception as e:
                logger.warning(f"Could not retrieve password from keyring: {e}")

            try:
                password = getpass.getpass(f"Enter LDAP password for {self.user}: ")
                self._password = password

                try:
                    save_password = (
                        input("Save password to keyring? (y/n): ").lower().strip()
                    )
                    if save_password == "y":
                        keyring.set_password(self.keyring_service, self.user, password)
                        logger.info("Password saved to keyring")
                except Exception as e:
                    logger.warning(f"Could not save password to keyring: {e}")

                return password

            except KeyboardInterrupt:
                logger.info("Password prompt cancelled by user")
                raise

    def _create_server(self) -> Server:
        """
        Create LDAP server object with current configuration.

        Raises:
            LDAPException: If server creation fails
        """
        if not self._server:
            try:
                self._server = Server(
                    self.server_hostname,
                    use_ssl=self.use_ssl,
                    port=self.port,
                    get_info=self.get_info,
                    connect_timeout=self.timeout,
                )
                logger.debug(
                    f"LDAP server object created: {self.server_hostname}:{self.port}"
                )
            except Exception as e:
                logger.error(f"Failed to create LDAP server object: {e}")
                raise LDAPException(f"Server creation failed: {e}")

        return self._server

    def _create_connection(self) -> Connection:
        """
        Create and bind a read-only LDAP connection.

        Raises:
            LDAPException: If connection or authentication fails
        """
        try:
            server = self._create_server()
            password = self._get_password()

            connection = Connection(
                server,
                user=self.user,
                password=password,
                auto_bind=self.auto_bind,
                read_only=True,
                receive_timeout=self.timeout,
            )

            if connection.bound:
                logger.debug(f"Bound to {self.server_hostname}")
                return connection
            else:
                raise LDAPException("Failed to bind to LDAP server")

        except LDAPException as e:
            logger.error(f"LDAP connection failed: {e}")
            raise
        except Exception as e:
            logger.error(f"LDAP connection failed: {e}")
            raise LDAPException(f"Connection failed: {e}")

    @staticmethod
    def _release(conn: Optional[Connection]) -> None:
        if conn is None:
            return
        try:
            conn.unbind()
            logger.debug("LDAP connection closed")
        except LDAPException as e:
            logger.debug(f"Ignoring error while closing LDAP connection: {e}")

    def test_connection(self) -> bool:
        """
        Test LDAP connection by binding and reading the search base entry.

        Returns:
            bool: True if connection test succeeds, False otherwise
        """
        conn = None
        try:
            conn = self._create_connection()

            success = conn.search(
                search_base=self.search_base,
                search_filter="(objectClass=*)",
                search_scope=BASE,
                attributes=["1.1"],  # RFC 4511: no attributes
                size_limit=1,
            )

            if success:
                logger.info(f"Connection test successful: {self.server_hostname}")
                return True
            else:
                logger.warning(f"Connection test search failed: {conn.result}")
                return False

        except LDAPException as e:
            logger.error(f"LDAP connection test failed: {e}")
            return False
        finally:
            self._release(conn)

    def get_connection_info(self) -> Dict[str, Any]:
        """
        Get information about the current LDAP configuration.

        Returns:
            Dict[str, Any]: Configuration information (passwords excluded)
        """
        return {
            "server": self.server_hostname,
            "port": self.port,
            "use_ssl": self.use_ssl,
            "search_base": self.search_base,
            "user": self.user,
            "keyring_service": self.keyring_service,
            "timeout": self.timeout,
            "default_page_size": self.default_page_size,
            "include_primary_group": self.include_primary_group,
        }

    def __str__(self) -> str:
        ssl_status = "SSL" if self.use_ssl else "non-SSL"
        return f"LDAPAdapter({self.server_hostname}:{self.port}, {ssl_status}, user={self.user})"

    def __repr__(self) -> str:
        return (
            f"LDAPAdapter(server='{self.server_hostname}', port={self.port}, "
            f"use_ssl={self.use_ssl}, search_base='{self.search_base}', "
            f"user='{self.user}', keyring_service='{self.keyring_service}')"
        )

    # Search Infrastructure

    def _execute_simple_search(self, conn: Connection, **search_kwargs) -> List[Dict[str, Any]]:
        """
        Execute a single search request and return the entries as dictionaries.

        An empty result is returned as an empty list; any other non-success
        result code raises LDAPException.
        """
        success = conn.search(**search_kwargs)
        result_code = (conn.result or {}).get("result", 0)

        if not success:
            if result_code in _EMPTY_RESULT_CODES:
                return []
            if result_code != _SIZE_LIMIT_EXCEEDED:
                raise LDAPException(
                    f"Search failed ({result_code}): {conn.result.get('description')}"
                )

        results = [_entry_to_dict(entry) for entry in conn.entries]

        if result_code == _SIZE_LIMIT_EXCEEDED:
            logger.warning(
                f"Search results truncated due to server size limit. "
                f"Returned {len(results)} results, but more may be available."
            )

        return results

    def _execute_intelligent_search(self, conn: Connection, **search_kwargs) -> List[Dict[str, Any]]:
        """
        Run a simple search and switch to a paged search when the result
        count matches a common server size limit.
        """
        initial_results = self._execute_simple_search(conn, **search_kwargs)

        result_count = len(initial_results)
        if result_count in _POTENTIAL_SIZE_LIMITS:
            logger.info(
                f"Detected potential size limit ({result_count} results). Switching to paged search."
            )
            return self._execute_paged_search(conn, self.default_page_size, **search_kwargs)

        return initial_results

    def _execute_paged_search(
        self, conn: Connection, page_size: int, **search_kwargs
    ) -> List[Dict[str, Any]]:
        """
        Execute a paged search using the Simple Paged Results control.

        paged_search returns raw response dictionaries; only those of type
        'searchResEntry' are entries (the rest are referrals and done messages).
        """
        logger.debug(f"Starting paged search with page size: {page_size}")
        search_kwargs.pop("size_limit", None)

        response_list = conn.extend.standard.paged_search(
            paged_size=page_size, generator=False, **search_kwargs
        )

        results = [
            _flatten_attributes(response["dn"], response.get("attributes", {}))
            for response in response_list
            if isinstance(response, dict) and response.get("type") == "searchResEntry"
        ]

        logger.info(f"Paged search completed: {len(results)} entries retrieved")
        return results

    def _find_entry(self, conn: Connection, principal: str, attributes: List[str]) -> Dict[str, Any]:
        """
        Look up a single user or group by sAMAccountName.

        Raises:
            IdentityNotFoundError: If no entry has that account name
        """
        results = self._execute_simple_search(
            conn,
            search_base=self.search_base,
            search_filter=f"(sAMAccountName={escape_filter_chars(principal)})",
            search_scope=SUBTREE,
            attributes=attributes,
            size_limit=1,
        )
        if not results:
            raise IdentityNotFoundError(principal)
        return results[0]

    def _resolve_primary_group(self, conn: Connection, attributes: Dict[str, Any]) -> Optional[str]:
        """
        Resolve the principal's primary group from objectSid and primaryGroupID.

        Active Directory does not record the primary group in the group's
        member attribute, so the member search never returns it.
        """
        primary_group_id = attributes.get("primaryGroupID")
        object_sid = attributes.get("objectSid")
        if not primary_group_id or not object_sid:
            return None

        if isinstance(object_sid, bytes):
            object_sid = format_sid(object_sid)

        domain_sid = str(object_sid).rsplit("-", 1)[0]
        group_sid = f"{domain_sid}-{primary_group_id}"

        results = self._execute_simple_search(
            conn,
            search_base=self.search_base,
            search_filter=f"(objectSid={escape_filter_chars(group_sid)})",
            search_scope=SUBTREE,
            attributes=["sAMAccountName"],
            size_limit=1,
        )
        if not results:
            logger.debug(f"Primary group {group_sid} not found under {self.search_base}")
            return None

        return results[0].get("sAMAccountName")

    # Directory Provider Operations

    def get_direct_parent_groups(self, principal: str) -> List[str]:
        """
        Get the sAMAccountNames of the groups that directly contain a principal.

        Both the principal lookup and the member search run on one connection,
        so this is a single round of directory traffic per principal.

        Args:
            principal: sAMAccountName of a user or group

        Returns:
            List[str]: Parent group names in directory order, without duplicates

        Raises:
            IdentityNotFoundError: If the principal does not exist
            DirectoryLookupError: If the directory query fails
        """
        conn = None
        try:
            conn = self._create_connection()
            entry = self._find_entry(conn, principal, PRINCIPAL_ATTRIBUTES)

            member_filter = (
                f"(&(objectClass=group)(member={escape_filter_chars(entry['dn'])}))"
            )
            group_entries = self._execute_intelligent_search(
                conn,
                search_base=self.search_base,
                search_filter=member_filter,
                search_scope=SUBTREE,
                attributes=["sAMAccountName"],
            )

            parents: List[str] = []
            for group_entry in group_entries:
                name = group_entry.get("sAMAccountName")
                if name and name not in parents:
                    parents.append(name)

            if self.include_primary_group:
                primary_group = self._resolve_primary_group(conn, entry)
                if primary_group and primary_group not in parents:
                    parents.append(primary_group)

            logger.debug(f"{principal}: {len(parents)} direct parent groups")
            return parents

        except LDAPException as e:
            logger.error(f"Parent group lookup failed for {principal}: {e}")
            raise DirectoryLookupError(principal, f"Parent group lookup failed for {principal}: {e}") from e
        finally:
            self._release(conn)

    def get_principal_attributes(self, principal: str) -> Dict[str, Any]:
        """
        Get the descriptive attributes of a user or group.

        Returns:
            Dict[str, Any]: 'dn' plus every populated attribute in INFO_ATTRIBUTES

        Raises:
            IdentityNotFoundError: If the principal does not exist
            DirectoryLookupError: If the directory query fails
        """
        conn = None
        try:
            conn = self._create_connection()
            return self._find_entry(conn, principal, INFO_ATTRIBUTES)
        except LDAPException as e:
            logger.error(f"Attribute lookup failed for {principal}: {e}")
            raise DirectoryLookupError(principal, f"Attribute lookup failed for {principal}: {e}") from e
        finally:
            self._release(conn)

    def count_group_members(self, group: str) -> int:
        """
        Count the direct members of a group.

        ldap3 follows ranged retrieval of the member attribute automatically,
        so groups beyond the server's MaxValRange are counted in full.

        Raises:
            IdentityNotFoundError: If the group does not exist
            DirectoryLookupError: If the directory query fails
        """
        conn = None
        try:
            conn = self._create_connection()
            entry = self._find_entry(conn, group, ["member"])
            return len(_as_list(entry.get("member")))
        except LDAPException as e:
            logger.error(f"Member count failed for {group}: {e}")
            raise DirectoryLookupError(group, f"Member count failed for {group}: {e}") from e
        finally:
            self._release(conn)
