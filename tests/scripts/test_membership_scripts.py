"""
Tests for the membership console scripts.

build_facade is patched to hand back a facade over the in-memory directory,
so these run the real argument parsing, services and CSV sink.
"""

from unittest.mock import patch

import pandas as pd
import pytest

from directory.facade.directory_facade import DirectoryFacade
from scripts.membership import compare_user_groups, group_info, user_group_closure, user_info
from scripts.membership.cli_common import EXIT_CONFIG, EXIT_FAILURE

LDAP_ENV = ["LDAP_SERVER", "LDAP_SEARCH_BASE", "LDAP_USER"]


@pytest.fixture
def directory(fake_directory_class):
    return fake_directory_class(
        parents={
            "alice": ["G1", "G2"],
            "bob": ["G2", "G3"],
            "G1": ["G4"],
            "G2": [],
            "G3": [],
            "G4": [],
        },
        attributes={
            "G1": {"objectClass": ["group"], "description": "Group one", "groupType": -2147483646},
            "alice": {"objectClass": ["user"], "displayName": "Alice Smith", "userAccountControl": 512},
        },
    )


@pytest.fixture
def facade(directory):
    return DirectoryFacade(directory=directory, verify_connection=False)


def read_output(path):
    return pd.read_csv(path, dtype=str, keep_default_na=False)


class TestUserGroupClosure:

    def test_writes_nested_groups(self, facade, tmp_path):
        output = tmp_path / "closure.csv"
        with patch("scripts.membership.user_group_closure.build_facade", return_value=facade):
            user_group_closure.main(["alice", "--output", str(output)])

        assert read_output(output)["Group"].tolist() == ["G1", "G2", "G4"]

    def test_unknown_principal_exits_with_failure(self, facade):
        with patch("scripts.membership.user_group_closure.build_facade", return_value=facade):
            with pytest.raises(SystemExit) as exc_info:
                user_group_closure.main(["ghost"])
        assert exc_info.value.code == EXIT_FAILURE

    def test_existing_output_not_overwritten(self, facade, tmp_path):
        output = tmp_path / "closure.csv"
        output.write_text("keep")
        with patch("scripts.membership.user_group_closure.build_facade", return_value=facade):
            with pytest.raises(SystemExit) as exc_info:
                user_group_closure.main(["alice", "--output", str(output)])

        assert exc_info.value.code == EXIT_FAILURE
        assert output.read_text() == "keep"


class TestCompareUserGroups:

    def test_writes_difference_table(self, facade, tmp_path):
        output = tmp_path / "diff.csv"
        with patch("scripts.membership.compare_user_groups.build_facade", return_value=facade):
            compare_user_groups.main(["alice", "bob", "--output", str(output)])

        frame = read_output(output)
        assert list(frame.columns) == ["Group", "alice", "bob"]
        assert frame.values.tolist() == [["G1", "alice", ""], ["G3", "", "bob"]]

    def test_transitive_comparison(self, facade, tmp_path):
        output = tmp_path / "diff.csv"
        with patch("scripts.membership.compare_user_groups.build_facade", return_value=facade):
            compare_user_groups.main(["alice", "bob", "--transitive", "-o", str(output)])

        assert read_output(output)["Group"].tolist() == ["G1", "G3", "G4"]

    def test_names_from_csv(self, facade, tmp_path):
        names = tmp_path / "names.csv"
        names.write_text("uniqname\nalice\nbob\n")
        output = tmp_path / "diff.csv"
        with patch("scripts.membership.compare_user_groups.build_facade", return_value=facade):
            compare_user_groups.main(["--input-csv", str(names), "--output", str(output)])

        assert read_output(output)["Group"].tolist() == ["G1", "G3"]

    def test_single_principal_exits_with_failure(self, facade, directory):
        with patch("scripts.membership.compare_user_groups.build_facade", return_value=facade):
            with pytest.raises(SystemExit) as exc_info:
                compare_user_groups.main(["alice"])

        assert exc_info.value.code == EXIT_FAILURE
        assert directory.total_parent_calls == 0

    def test_missing_principal_compared_as_empty(self, facade, tmp_path):
        output = tmp_path / "diff.csv"
        with patch("scripts.membership.compare_user_groups.build_facade", return_value=facade):
            compare_user_groups.main(["alice", "ghost", "--missing", "empty", "-o", str(output)])

        frame = read_output(output)
        assert frame["Group"].tolist() == ["G1", "G2"]
        assert frame["ghost"].tolist() == ["Not Found", "Not Found"]

    def test_missing_configuration_exits_with_config_code(self, monkeypatch):
        for name in LDAP_ENV:
            monkeypatch.delenv(name, raising=False)

        with patch("scripts.membership.cli_common.load_dotenv"):
            with pytest.raises(SystemExit) as exc_info:
                compare_user_groups.main(["alice", "bob"])
        assert exc_info.value.code == EXIT_CONFIG


class TestInfoScripts:

    def test_group_info_keeps_unknown_rows(self, facade, tmp_path):
        output = tmp_path / "groups.csv"
        with patch("scripts.membership.group_info.build_facade", return_value=facade):
            group_info.main(["G1", "nope", "--output", str(output)])

        frame = read_output(output)
        assert frame["Group"].tolist() == ["G1", "nope"]
        assert frame.loc[0, "Description"] == "Group one"
        assert frame.loc[0, "Category"] == "Security"
        assert frame.loc[1, "Description"] == "Not Found"

    def test_user_info(self, facade, tmp_path):
        output = tmp_path / "users.csv"
        with patch("scripts.membership.user_info.build_facade", return_value=facade):
            user_info.main(["alice", "--output", str(output)])

        frame = read_output(output)
        assert frame.loc[0, "Display Name"] == "Alice Smith"
        assert frame.loc[0, "Enabled"] == "Yes"

    def test_console_output(self, facade, capsys):
        with patch("scripts.membership.group_info.build_facade", return_value=facade):
            group_info.main(["G1"])

        assert "Group one" in capsys.readouterr().out
