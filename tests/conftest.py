"""Shared fixtures: an in-memory directory provider that counts its calls."""

import threading
from collections import Counter

import pytest

from directory.adapters.base_directory_adapter import BaseDirectoryAdapter
from directory.exceptions import DirectoryLookupError, IdentityNotFoundError


class FakeDirectory(BaseDirectoryAdapter):
    """
    Directory provider backed by dictionaries.

    A principal exists for parent lookups only if it is a key of ``parents``;
    names in ``failing`` raise DirectoryLookupError instead. ``on_call`` is
    invoked with the principal before every parent lookup.
    """

    def __init__(self, parents=None, attributes=None, member_counts=None,
                 failing=(), connected=True, on_call=None):
        self.parents = parents or {}
        self.attributes = attributes or {}
        self.member_counts = member_counts or {}
        self.failing = set(failing)
        self.connected = connected
        self.on_call = on_call
        self.parent_calls = Counter()
        self.attribute_calls = Counter()
        self.count_calls = Counter()
        self._lock = threading.Lock()

    def get_direct_parent_groups(self, principal):
        with self._lock:
            self.parent_calls[principal] += 1
        if self.on_call:
            self.on_call(principal)
        if principal in self.failing:
            raise DirectoryLookupError(principal)
        if principal not in self.parents:
            raise IdentityNotFoundError(principal)
        return list(self.parents[principal])

    def get_principal_attributes(self, principal):
        with self._lock:
            self.attribute_calls[principal] += 1
        if principal in self.failing:
            raise DirectoryLookupError(principal)
        if principal not in self.attributes:
            raise IdentityNotFoundError(principal)
        return dict(self.attributes[principal])

    def count_group_members(self, group):
        with self._lock:
            self.count_calls[group] += 1
        if group not in self.member_counts:
            raise DirectoryLookupError(group)
        return self.member_counts[group]

    def test_connection(self):
        return self.connected

    @property
    def total_parent_calls(self):
        return sum(self.parent_calls.values())


@pytest.fixture
def fake_directory_class():
    return FakeDirectory


@pytest.fixture
def alice_bob_directory():
    """alice is in G1 and G2, bob is in G2 and G3."""
    return FakeDirectory(parents={
        "alice": ["G1", "G2"],
        "bob": ["G2", "G3"],
        "G1": [],
        "G2": [],
        "G3": [],
    })
