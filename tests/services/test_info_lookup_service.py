"""
Unit tests for InfoLookupService.

Focus on the one-row-per-input guarantee and on the sentinels that keep
"not found" distinguishable from "lookup failed".
"""

from datetime import datetime

import pytest

from directory.exceptions import InvalidInputError
from directory.models.membership import (
    LOOKUP_FAILED,
    NOT_FOUND,
    STATUS_FOUND,
    STATUS_LOOKUP_FAILED,
    STATUS_NOT_FOUND,
    records_to_dataframe,
)
from services.info_lookup_service import (
    GROUP_COLUMNS,
    USER_COLUMNS,
    InfoLookupService,
    decode_group_type,
    format_timestamp,
)

GROUP_ATTRIBUTES = {
    "lsa-staff": {
        "objectClass": ["top", "group"],
        "whenCreated": datetime(2019, 4, 12, 15, 30, 0),
        "description": "All LSA staff",
        "groupType": -2147483646,
    },
    "lsa-news": {
        "objectClass": ["top", "group"],
        "whenCreated": "20210101080000.0Z",
        "description": ["Newsletter", "Distribution list"],
        "groupType": 8,
    },
    "jdoe": {
        "objectClass": ["top", "person", "organizationalPerson", "user"],
        "displayName": "Jane Doe",
        "mail": "jdoe@example.edu",
        "title": "Analyst",
        "department": "LSA Technology Services",
        "userAccountControl": 512,
        "whenCreated": datetime(2020, 1, 2, 3, 4, 5),
        "lastLogonTimestamp": 116444736000000000,
    },
    "WKS-0042$": {
        "objectClass": ["top", "person", "organizationalPerson", "user", "computer"],
        "userAccountControl": 4096,
    },
    "olduser": {
        "objectClass": ["top", "person", "organizationalPerson", "user"],
        "givenName": "Old",
        "sn": "User",
        "userAccountControl": 514,
        "lastLogonTimestamp": 0,
    },
}


@pytest.fixture
def directory(fake_directory_class):
    return fake_directory_class(
        attributes=GROUP_ATTRIBUTES,
        member_counts={"lsa-staff": 42},
    )


class TestGroupInfo:
    """Tests for InfoLookupService.get_group_info."""

    def test_missing_group_keeps_its_row(self, directory):
        records = InfoLookupService(directory).get_group_info(["lsa-staff", "no-such-group", "lsa-news"])

        assert [r.name for r in records] == ["lsa-staff", "no-such-group", "lsa-news"]
        assert records[1].status == STATUS_NOT_FOUND
        assert all(records[1].fields[c] == NOT_FOUND for c in GROUP_COLUMNS)
        assert records[0].fields == {
            "Creation Date": "2019-04-12 15:30:00",
            "Description": "All LSA staff",
            "Category": "Security",
            "Scope": "Global",
        }
        assert records[2].fields["Category"] == "Distribution"
        assert records[2].fields["Scope"] == "Universal"
        assert records[2].fields["Description"] == "Newsletter; Distribution list"
        assert records[2].fields["Creation Date"] == "2021-01-01 08:00:00"

    def test_lookup_failure_uses_distinct_sentinel(self, directory):
        directory.failing.add("lsa-news")
        records = InfoLookupService(directory).get_group_info(["lsa-news", "lsa-staff"])

        assert records[0].status == STATUS_LOOKUP_FAILED
        assert all(value == LOOKUP_FAILED for value in records[0].fields.values())
        assert records[1].status == STATUS_FOUND

    def test_member_count(self, directory):
        service = InfoLookupService(directory)
        records = service.get_group_info(["lsa-staff", "lsa-news"], include_member_count=True)

        assert records[0].fields["Member Count"] == "42"
        assert records[1].fields["Member Count"] == LOOKUP_FAILED
        assert records[1].status == STATUS_FOUND
        assert directory.count_calls["lsa-staff"] == 1

    def test_member_count_not_fetched_unless_requested(self, directory):
        records = InfoLookupService(directory).get_group_info(["lsa-staff"])

        assert "Member Count" not in records[0].fields
        assert sum(directory.count_calls.values()) == 0

    def test_missing_group_has_not_found_member_count(self, directory):
        records = InfoLookupService(directory).get_group_info(["ghost"], include_member_count=True)

        assert records[0].fields["Member Count"] == NOT_FOUND
        assert sum(directory.count_calls.values()) == 0

    def test_user_name_is_not_a_group(self, directory):
        records = InfoLookupService(directory).get_group_info(["jdoe"])
        assert records[0].status == STATUS_NOT_FOUND

    def test_blank_name_keeps_row_count(self, directory):
        records = InfoLookupService(directory).get_group_info(["lsa-staff", "", "lsa-news"])

        assert len(records) == 3
        assert records[1].status == STATUS_NOT_FOUND
        assert sum(directory.attribute_calls.values()) == 2

    def test_order_preserved_with_many_workers(self, directory):
        names = ["lsa-news", "ghost-1", "lsa-staff", "ghost-2"] * 5
        records = InfoLookupService(directory, max_workers=8).get_group_info(names)

        assert [r.name for r in records] == names

    def test_empty_batch_rejected(self, directory):
        with pytest.raises(InvalidInputError):
            InfoLookupService(directory).get_group_info([])

    def test_dataframe_row_count_matches_input(self, directory):
        service = InfoLookupService(directory)
        records = service.get_group_info(["lsa-staff", "ghost", "lsa-news"], include_member_count=True)
        frame = records_to_dataframe(records, "Group", service.group_columns(True))

        assert len(frame) == 3
        assert list(frame.columns) == ["Group"] + GROUP_COLUMNS + ["Member Count"]
        assert frame.iloc[1].tolist() == ["ghost"] + [NOT_FOUND] * 5


class TestUserInfo:
    """Tests for InfoLookupService.get_user_info."""

    def test_user_fields(self, directory):
        records = InfoLookupService(directory).get_user_info(["jdoe", "olduser", "nobody"])

        assert records[0].fields == {
            "Display Name": "Jane Doe",
            "Email": "jdoe@example.edu",
            "Title": "Analyst",
            "Department": "LSA Technology Services",
            "Enabled": "Yes",
            "Creation Date": "2020-01-02 03:04:05",
            "Last Logon": "1970-01-01 00:00:00",
        }
        assert records[1].fields["Display Name"] == "Old User"
        assert records[1].fields["Enabled"] == "No"
        assert records[1].fields["Last Logon"] == "Never"
        assert all(records[2].fields[c] == NOT_FOUND for c in USER_COLUMNS)

    def test_group_name_is_not_a_user(self, directory):
        records = InfoLookupService(directory).get_user_info(["lsa-staff"])
        assert records[0].status == STATUS_NOT_FOUND

    def test_computer_account_is_not_a_user(self, directory):
        records = InfoLookupService(directory).get_user_info(["WKS-0042$", "jdoe"])

        assert records[0].status == STATUS_NOT_FOUND
        assert records[0].fields["Display Name"] == NOT_FOUND
        assert records[1].status == STATUS_FOUND


class TestDecoders:
    """Tests for the attribute decoding helpers."""

    @pytest.mark.parametrize("group_type, category, scope", [
        (-2147483646, "Security", "Global"),
        (-2147483644, "Security", "Domain Local"),
        (-2147483640, "Security", "Universal"),
        (-2147483643, "Security", "Builtin"),
        (2, "Distribution", "Global"),
        (4, "Distribution", "Domain Local"),
        (8, "Distribution", "Universal"),
        ("-2147483646", "Security", "Global"),
    ])
    def test_decode_group_type(self, group_type, category, scope):
        assert decode_group_type(group_type) == {"Category": category, "Scope": scope}

    def test_decode_group_type_missing(self):
        assert decode_group_type(None) == {"Category": "", "Scope": ""}

    @pytest.mark.parametrize("value, expected", [
        (datetime(2019, 4, 12, 15, 30, 0), "2019-04-12 15:30:00"),
        ("20190412153000.0Z", "2019-04-12 15:30:00"),
        (116444736000000000, "1970-01-01 00:00:00"),
        (0, "Never"),
        (None, ""),
        ("not a date", "not a date"),
    ])
    def test_format_timestamp(self, value, expected):
        assert format_timestamp(value) == expected
