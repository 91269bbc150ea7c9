"""
Info Lookup Service

Batch attribute lookups for groups and users. Every requested name yields
exactly one row, in input order. Names the directory does not know become
"Not Found" rows and backend failures become "Lookup Failed" rows, so a
failed item never shortens or aborts the batch.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional, Sequence

from directory.adapters.base_directory_adapter import BaseDirectoryAdapter
from directory.exceptions import DirectoryLookupError, IdentityNotFoundError, InvalidInputError
from directory.models.membership import (
    InfoRecord,
    LOOKUP_FAILED,
    STATUS_LOOKUP_FAILED,
    STATUS_NOT_FOUND,
)

logger = logging.getLogger(__name__)

GROUP_NAME_COLUMN = "Group"
USER_NAME_COLUMN = "User"

GROUP_COLUMNS = ["Creation Date", "Description", "Category", "Scope"]
MEMBER_COUNT_COLUMN = "Member Count"
USER_COLUMNS = [
    "Display Name",
    "Email",
    "Title",
    "Department",
    "Enabled",
    "Creation Date",
    "Last Logon",
]

DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Active Directory groupType bits
GROUP_TYPE_BUILTIN = 0x00000001
GROUP_TYPE_GLOBAL = 0x00000002
GROUP_TYPE_DOMAIN_LOCAL = 0x00000004
GROUP_TYPE_UNIVERSAL = 0x00000008
GROUP_TYPE_SECURITY = 0x80000000

# userAccountControl ACCOUNTDISABLE bit
UAC_ACCOUNT_DISABLE = 0x0002

_FILETIME_EPOCH = datetime(1601, 1, 1)


def format_timestamp(value: Any) -> str:
    """
    Format an LDAP time value for display.

    Accepts a datetime (ldap3 with schema info), a GeneralizedTime string
    such as '20190412153000.0Z', or a Windows FILETIME integer.
    """
    if value is None or value == "":
        return ""
    if isinstance(value, datetime):
        return value.strftime(DATE_FORMAT)
    if isinstance(value, int):
        if value <= 0:
            return "Never"
        return (_FILETIME_EPOCH + timedelta(microseconds=value // 10)).strftime(DATE_FORMAT)

    text = str(value).strip()
    try:
        return datetime.strptime(text[:14], "%Y%m%d%H%M%S").strftime(DATE_FORMAT)
    except ValueError:
        return text


def decode_group_type(group_type: Any) -> Dict[str, str]:
    """Split an AD groupType bitmask into its category and scope."""
    try:
        value = int(group_type)
    except (TypeError, ValueError):
        return {"Category": "", "Scope": ""}

    category = "Security" if value & GROUP_TYPE_SECURITY else "Distribution"

    if value & GROUP_TYPE_BUILTIN:
        scope = "Builtin"
    elif value & GROUP_TYPE_GLOBAL:
        scope = "Global"
    elif value & GROUP_TYPE_DOMAIN_LOCAL:
        scope = "Domain Local"
    elif value & GROUP_TYPE_UNIVERSAL:
        scope = "Universal"
    else:
        scope = ""

    return {"Category": category, "Scope": scope}


def _text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, list):
        return "; ".join(str(item).strip() for item in value)
    return str(value).strip()


def _object_classes(attributes: Dict[str, Any]) -> Optional[List[str]]:
    classes = attributes.get("objectClass")
    if classes is None:
        return None
    if not isinstance(classes, list):
        classes = [classes]
    return [str(c).lower() for c in classes]


def _has_object_class(attributes: Dict[str, Any], object_class: str) -> bool:
    classes = _object_classes(attributes)
    return classes is None or object_class in classes


def _is_user_account(attributes: Dict[str, Any]) -> bool:
    # Computer accounts also carry objectClass=user
    classes = _object_classes(attributes)
    return classes is None or ("user" in classes and "computer" not in classes)


class InfoLookupService:
    """
    Look up descriptive attributes for batches of groups or users.

    Args:
        directory: Provider answering attribute and member count queries
        max_workers: Upper bound on concurrent lookups
    """

    def __init__(self, directory: BaseDirectoryAdapter, max_workers: int = 8):
        self.directory = directory
        self.max_workers = max_workers

    def group_columns(self, include_member_count: bool = False) -> List[str]:
        if include_member_count:
            return GROUP_COLUMNS + [MEMBER_COUNT_COLUMN]
        return list(GROUP_COLUMNS)

    def get_group_info(
        self, group_names: Sequence[str], include_member_count: bool = False
    ) -> List[InfoRecord]:
        """
        Get creation date, description, category and scope for each group.

        Args:
            group_names: Group account names, in output order
            include_member_count: Also count members (one extra lookup per group)

        Returns:
            List[InfoRecord]: One record per input name, same order

        Raises:
            InvalidInputError: If no group names are given
        """
        columns = self.group_columns(include_member_count)

        def lookup(name: str) -> InfoRecord:
            return self._group_record(name, include_member_count)

        return self._lookup_batch(group_names, lookup, columns, kind="group")

    def get_user_info(self, user_names: Sequence[str]) -> List[InfoRecord]:
        """
        Get name, contact and account status fields for each user.

        Raises:
            InvalidInputError: If no user names are given
        """
        return self._lookup_batch(user_names, self._user_record, USER_COLUMNS, kind="user")

    def _lookup_batch(
        self,
        names: Sequence[str],
        lookup: Callable[[str], InfoRecord],
        columns: List[str],
        kind: str,
    ) -> List[InfoRecord]:
        if not names:
            raise InvalidInputError(f"At least one {kind} name is required")

        def guarded(name: Optional[str]) -> InfoRecord:
            name = (name or "").strip()
            if not name:
                return InfoRecord.placeholder("", columns, STATUS_NOT_FOUND)
            try:
                return lookup(name)
            except IdentityNotFoundError:
                logger.info(f"{kind.capitalize()} not found: {name}")
                return InfoRecord.placeholder(name, columns, STATUS_NOT_FOUND)
            except DirectoryLookupError as e:
                logger.warning(f"Lookup failed for {kind} {name}: {e}")
                return InfoRecord.placeholder(name, columns, STATUS_LOOKUP_FAILED)

        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            records = list(executor.map(guarded, names))

        missing = sum(1 for r in records if r.status == STATUS_NOT_FOUND)
        failed = sum(1 for r in records if r.status == STATUS_LOOKUP_FAILED)
        logger.info(
            f"Looked up {len(records)} {kind}s: {len(records) - missing - failed} found, "
            f"{missing} not found, {failed} failed"
        )
        return records

    def _group_record(self, name: str, include_member_count: bool) -> InfoRecord:
        attributes = self.directory.get_principal_attributes(name)
        if not _has_object_class(attributes, "group"):
            logger.info(f"{name} exists but is not a group")
            raise IdentityNotFoundError(name, f"{name} is not a group")

        fields = {
            "Creation Date": format_timestamp(attributes.get("whenCreated")),
            "Description": _text(attributes.get("description")),
        }
        fields.update(decode_group_type(attributes.get("groupType")))

        if include_member_count:
            try:
                fields[MEMBER_COUNT_COLUMN] = str(self.directory.count_group_members(name))
            except (IdentityNotFoundError, DirectoryLookupError) as e:
                logger.warning(f"Member count failed for {name}: {e}")
                fields[MEMBER_COUNT_COLUMN] = LOOKUP_FAILED

        return InfoRecord(name=name, fields=fields)

    def _user_record(self, name: str) -> InfoRecord:
        attributes = self.directory.get_principal_attributes(name)
        if not _is_user_account(attributes):
            logger.info(f"{name} exists but is not a user")
            raise IdentityNotFoundError(name, f"{name} is not a user")

        display_name = _text(attributes.get("displayName"))
        if not display_name:
            display_name = " ".join(
                part for part in (_text(attributes.get("givenName")), _text(attributes.get("sn"))) if part
            )

        uac = attributes.get("userAccountControl")
        try:
            enabled = "No" if int(uac) & UAC_ACCOUNT_DISABLE else "Yes"
        except (TypeError, ValueError):
            enabled = ""

        fields = {
            "Display Name": display_name,
            "Email": _text(attributes.get("mail")),
            "Title": _text(attributes.get("title")),
            "Department": _text(attributes.get("department")),
            "Enabled": enabled,
            "Creation Date": format_timestamp(attributes.get("whenCreated")),
            "Last Logon": format_timestamp(attributes.get("lastLogonTimestamp")),
        }
        return InfoRecord(name=name, fields=fields)
