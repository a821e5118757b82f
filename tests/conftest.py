"""Root pytest configuration for all tests."""

import logging

import pytest

from src.content_converter.storage_converter import StorageConverter
from src.publisher.identity_map import IdentityMap
from src.publisher.snapshot_store import SnapshotStore
from tests.helpers.fakes import FakeRemote

# atlassian-python-api logs expected lookup failures at ERROR level.
logging.getLogger("atlassian").setLevel(logging.CRITICAL)


@pytest.fixture
def remote():
    return FakeRemote()


@pytest.fixture
def identity_map():
    return IdentityMap()


@pytest.fixture
def snapshots(tmp_path):
    return SnapshotStore(str(tmp_path / "state"))


@pytest.fixture
def converter():
    return StorageConverter()
