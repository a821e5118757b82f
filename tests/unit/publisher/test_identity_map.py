"""Unit tests for publisher.identity_map module."""

import pytest
import yaml

from src.publisher.errors import IdentityMapError
from src.publisher.identity_map import IdentityMap, YamlMappingFile
from src.publisher.models import IdentityEntry


@pytest.fixture
def mapping_file(tmp_path):
    return YamlMappingFile(str(tmp_path / "state" / "mapping.yaml"))


class TestIdentityMap:
    """Test cases for in-memory IdentityMap behavior."""

    def test_set_and_get(self):
        """An entry is retrievable by path and marks the map dirty."""
        identity = IdentityMap()
        identity.set(IdentityEntry("notes/a.md", "123", "a"))

        assert identity.get("notes/a.md").remote_page_id == "123"
        assert identity.get("notes/b.md") is None
        assert identity.dirty

    def test_one_entry_per_path(self):
        """Setting a path twice keeps only the last entry."""
        identity = IdentityMap()
        identity.set(IdentityEntry("a.md", "1", "a"))
        identity.set(IdentityEntry("a.md", "2", "a"))

        assert [entry.remote_page_id for entry in identity.list()] == ["2"]

    def test_remove(self):
        """remove returns the entry and forgets it."""
        identity = IdentityMap()
        identity.set(IdentityEntry("a.md", "1", "a"))

        assert identity.remove("a.md").remote_page_id == "1"
        assert identity.remove("a.md") is None
        assert identity.get("a.md") is None

    def test_find_by_page_id(self):
        """Entries can be looked up by page id."""
        identity = IdentityMap()
        identity.set(IdentityEntry("a.md", "1", "a"))
        identity.set(IdentityEntry("b.md", "2", "b"))

        assert identity.find_by_page_id("2").document_path == "b.md"
        assert identity.find_by_page_id("3") is None

    def test_rename_keeps_page_id(self):
        """A renamed note keeps its page id and takes the new title."""
        identity = IdentityMap()
        identity.set(IdentityEntry("old/Draft.md", "77", "Draft", web_link="https://x/77"))

        migrated = identity.rename("old/Draft.md", "new/Final.md")

        assert migrated.remote_page_id == "77"
        assert migrated.title == "Final"
        assert migrated.web_link == "https://x/77"
        assert migrated.updated_at is not None
        assert identity.get("old/Draft.md") is None
        assert identity.get("new/Final.md") is migrated

    def test_rename_missing_entry(self):
        """Renaming an unmapped note does nothing."""
        identity = IdentityMap()

        assert identity.rename("a.md", "b.md") is None
        assert identity.list() == []
        assert not identity.dirty

    def test_reset(self):
        """reset drops every entry."""
        identity = IdentityMap()
        identity.set(IdentityEntry("a.md", "1", "a"))
        identity.reset()

        assert identity.list() == []


class TestYamlPersistence:
    """Test cases for IdentityMap persisted through YamlMappingFile."""

    def test_save_and_load(self, mapping_file):
        """Entries survive a save/load cycle."""
        identity = IdentityMap(mapping_file)
        identity.set(IdentityEntry("notes/a.md", "123", "a", "https://x/123", "2024-01-15T10:30:00Z"))
        identity.save()

        reloaded = IdentityMap(mapping_file)
        reloaded.load()

        entry = reloaded.get("notes/a.md")
        assert entry.remote_page_id == "123"
        assert entry.web_link == "https://x/123"
        assert entry.updated_at == "2024-01-15T10:30:00Z"
        assert not reloaded.dirty

    def test_file_layout(self, mapping_file):
        """The YAML file carries a version and an entries table."""
        identity = IdentityMap(mapping_file)
        identity.set(IdentityEntry("a.md", "9", "a"))
        identity.save()

        with open(mapping_file.file_path, encoding="utf-8") as f:
            data = yaml.safe_load(f)

        assert data["version"] == 1
        assert data["entries"]["a.md"]["page_id"] == "9"

    def test_missing_file_loads_empty(self, mapping_file):
        """A missing file is an empty map."""
        identity = IdentityMap(mapping_file)
        identity.load()

        assert identity.list() == []

    def test_corrupted_file_loads_empty(self, mapping_file, tmp_path):
        """Unparseable YAML is treated as an empty map."""
        (tmp_path / "state").mkdir()
        (tmp_path / "state" / "mapping.yaml").write_text("entries: [unclosed\n", encoding="utf-8")

        identity = IdentityMap(mapping_file)
        identity.load()

        assert identity.list() == []

    def test_malformed_entries_skipped(self, mapping_file, tmp_path):
        """Entries without a page id are skipped; page ids become strings."""
        (tmp_path / "state").mkdir()
        (tmp_path / "state" / "mapping.yaml").write_text(
            "entries:\n  good.md:\n    page_id: 42\n  bad.md:\n    title: bad\n",
            encoding="utf-8",
        )

        identity = IdentityMap(mapping_file)
        identity.load()

        assert [entry.document_path for entry in identity.list()] == ["good.md"]
        assert identity.get("good.md").remote_page_id == "42"
        assert identity.get("good.md").title == "good"

    def test_save_failure_raises(self, tmp_path):
        """Write failures surface as IdentityMapError."""
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory", encoding="utf-8")
        identity = IdentityMap(YamlMappingFile(str(blocker / "mapping.yaml")))
        identity.set(IdentityEntry("a.md", "1", "a"))

        with pytest.raises(IdentityMapError):
            identity.save()

    def test_save_leaves_no_temp_files(self, mapping_file, tmp_path):
        """Atomic writes clean up after themselves."""
        identity = IdentityMap(mapping_file)
        identity.set(IdentityEntry("a.md", "1", "a"))
        identity.save()

        assert sorted(p.name for p in (tmp_path / "state").iterdir()) == ["mapping.yaml"]
