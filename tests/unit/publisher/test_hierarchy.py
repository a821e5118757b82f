"""Unit tests for publisher.hierarchy module."""

import pytest

from src.publisher.hierarchy import (
    folder_candidates,
    intended_parent_id,
    is_folder_note,
    resolve_hierarchy,
)
from src.publisher.models import ExportSettings, HierarchyMode, HierarchyResult, TieBreakPolicy
from tests.helpers.fakes import FakeDocumentStore


def _assert_acyclic(result: HierarchyResult, members):
    for member in members:
        node = member
        for _ in range(len(members) + 1):
            node = result.parent_of[node]
            if node is None:
                break
        assert node is None, f"{member} does not reach the root"


class TestFolderCandidates:
    """Test cases for folder note lookup."""

    def test_index_before_eponymous_nearest_first(self):
        """Candidates list index then eponymous note, walking upwards."""
        assert folder_candidates("docs/guide/install.md") == [
            "docs/guide/index.md",
            "docs/guide/guide.md",
            "docs/index.md",
            "docs/docs.md",
        ]

    def test_folder_note_starts_at_parent_folder(self):
        """A folder note never becomes the child of its own folder."""
        assert folder_candidates("docs/guide/guide.md") == ["docs/index.md", "docs/docs.md"]

    def test_top_level_note_has_no_candidates(self):
        """Notes at the vault root have no folder parent."""
        assert folder_candidates("readme.md") == []

    def test_keeps_document_extension(self):
        """Candidates use the same extension as the note."""
        assert folder_candidates("docs/a") == ["docs/index", "docs/docs"]

    def test_is_folder_note(self):
        """index and eponymous notes are folder notes."""
        assert is_folder_note("docs/index.md")
        assert is_folder_note("docs/guide/guide.md")
        assert not is_folder_note("docs/guide/install.md")


class TestRootInvariant:
    """The root never has a parent, in any mode."""

    @pytest.mark.parametrize("mode", list(HierarchyMode))
    def test_root_parent_is_none(self, mode):
        """parent_of[root] is None and depth 0 for every mode."""
        store = FakeDocumentStore({
            "index.md": "[[a]]\n",
            "a.md": "---\nparent: b\n---\n[[index]]\n",
            "b.md": "[[a]]\n",
        })
        result = resolve_hierarchy("index.md", ["index.md", "a.md", "b.md"], mode, store=store)

        assert result.parent_of["index.md"] is None
        assert result.depth_of["index.md"] == 0
        assert result.order[0] == "index.md"
        _assert_acyclic(result, ["index.md", "a.md", "b.md"])


class TestFlatMode:
    """Test cases for HierarchyMode.FLAT."""

    def test_every_note_under_root(self):
        """All non-root notes get the root as parent, ordered by path."""
        result = resolve_hierarchy("root.md", ["root.md", "b.md", "a.md"], HierarchyMode.FLAT)

        assert result.parent_of == {"root.md": None, "b.md": "root.md", "a.md": "root.md"}
        assert result.order == ["root.md", "a.md", "b.md"]
        assert result.depth_of["a.md"] == 1

    def test_root_added_when_missing_from_export_set(self):
        """The root is part of the result even if the export set omits it."""
        result = resolve_hierarchy("root.md", ["a.md"], HierarchyMode.FLAT)

        assert result.order == ["root.md", "a.md"]


class TestFolderMode:
    """Test cases for HierarchyMode.FOLDER."""

    def test_eponymous_folder_note(self):
        """install sits under guide, guide under index (folder note layout)."""
        members = ["docs/index.md", "docs/guide/guide.md", "docs/guide/install.md"]
        result = resolve_hierarchy("docs/index.md", members, HierarchyMode.FOLDER)

        assert result.parent_of["docs/guide/install.md"] == "docs/guide/guide.md"
        assert result.parent_of["docs/guide/guide.md"] == "docs/index.md"
        assert result.parent_of["docs/index.md"] is None
        assert result.depth_of["docs/guide/install.md"] == 2
        assert result.order == members

    def test_paths_without_extension(self):
        """Folder lookup works for paths without .md."""
        members = ["docs/index", "docs/guide/guide", "docs/guide/install"]
        result = resolve_hierarchy("docs/index", members, HierarchyMode.FOLDER)

        assert result.parent_of["docs/guide/install"] == "docs/guide/guide"
        assert result.parent_of["docs/guide/guide"] == "docs/index"

    def test_index_preferred_over_eponymous(self):
        """index.md wins over the eponymous note in the same folder."""
        members = ["home.md", "guide/index.md", "guide/guide.md", "guide/setup.md"]
        result = resolve_hierarchy("home.md", members, HierarchyMode.FOLDER)

        assert result.parent_of["guide/setup.md"] == "guide/index.md"
        _assert_acyclic(result, members)

    def test_no_folder_note_falls_back_to_root(self):
        """Notes without a folder note in the export set go under root."""
        result = resolve_hierarchy("home.md", ["home.md", "misc/a.md"], HierarchyMode.FOLDER)

        assert result.parent_of["misc/a.md"] == "home.md"


class TestLinksMode:
    """Test cases for HierarchyMode.LINKS and tie-break policies."""

    def test_first_seen_linker_becomes_parent(self):
        """A and B both link to C; A is visited first so C goes under A."""
        store = FakeDocumentStore({
            "root.md": "[[A]] [[B]]\n",
            "A.md": "[[C]]\n",
            "B.md": "[[C]]\n",
            "C.md": "leaf\n",
        })
        members = ["root.md", "A.md", "B.md", "C.md"]
        result = resolve_hierarchy("root.md", members, HierarchyMode.LINKS, TieBreakPolicy.FIRST_SEEN, store)

        assert result.parent_of["C.md"] == "A.md"

    def test_first_seen_follows_traversal_order(self):
        """With B visited before A, C goes under B."""
        store = FakeDocumentStore({
            "root.md": "[[A]] [[B]]\n",
            "A.md": "[[C]]\n",
            "B.md": "[[C]]\n",
            "C.md": "leaf\n",
        })
        members = ["root.md", "B.md", "A.md", "C.md"]
        result = resolve_hierarchy("root.md", members, HierarchyMode.LINKS, TieBreakPolicy.FIRST_SEEN, store)

        assert result.parent_of["C.md"] == "B.md"

    def test_mutual_links_do_not_form_cycle(self):
        """A and B link to each other; the note nearer the root is the parent."""
        store = FakeDocumentStore({
            "root.md": "[[A]]\n",
            "A.md": "[[B]]\n",
            "B.md": "[[A]]\n",
        })
        for members in (["root.md", "A.md", "B.md"], ["root.md", "B.md", "A.md"]):
            result = resolve_hierarchy("root.md", members, HierarchyMode.LINKS, store=store)

            assert result.parent_of["A.md"] == "root.md"
            assert result.parent_of["B.md"] == "A.md"
            _assert_acyclic(result, members)

    @pytest.mark.parametrize("policy", list(TieBreakPolicy))
    def test_note_positions_do_not_change_parents(self, policy):
        """Moving notes around keeps the parents as long as A stays before B."""
        store = FakeDocumentStore({
            "root.md": "[[A]] [[B]]\n",
            "A.md": "[[C]] [[D]]\n",
            "B.md": "[[C]]\n",
            "C.md": "[[A]]\n",
            "D.md": "[[root]]\n",
        })
        orders = [
            ["root.md", "A.md", "B.md", "C.md", "D.md"],
            ["root.md", "C.md", "A.md", "B.md", "D.md"],
            ["root.md", "D.md", "C.md", "A.md", "B.md"],
        ]
        results = [
            resolve_hierarchy("root.md", members, HierarchyMode.LINKS, policy, store).parent_of
            for members in orders
        ]

        assert results[0] == {
            "root.md": None,
            "A.md": "root.md",
            "B.md": "root.md",
            "C.md": "A.md",
            "D.md": "A.md",
        }
        assert results[1] == results[0]
        assert results[2] == results[0]

    def test_unreachable_note_uses_outbound_link(self):
        """A note the root cannot reach goes under the note it links to."""
        store = FakeDocumentStore({
            "root.md": "text\n",
            "a.md": "[[root]]\n",
            "b.md": "[[a]]\n",
        })
        members = ["root.md", "b.md", "a.md"]
        result = resolve_hierarchy("root.md", members, HierarchyMode.LINKS, store=store)

        assert result.parent_of["a.md"] == "root.md"
        assert result.parent_of["b.md"] == "a.md"

    def test_closest_to_root(self):
        """closestToRoot picks the candidate with the smallest link distance."""
        store = FakeDocumentStore({
            "root.md": "[[near]] [[mid]]\n",
            "mid.md": "[[far]]\n",
            "far.md": "text\n",
            "near.md": "text\n",
            "leaf.md": "[[far]] [[near]]\n",
        })
        members = ["root.md", "near.md", "mid.md", "far.md", "leaf.md"]
        result = resolve_hierarchy("root.md", members, HierarchyMode.LINKS, TieBreakPolicy.CLOSEST_TO_ROOT, store)

        assert result.parent_of["leaf.md"] == "near.md"
        assert result.parent_of["far.md"] == "mid.md"

    def test_prefer_folder_index(self):
        """preferFolderIndex picks an index note among the linking notes."""
        store = FakeDocumentStore({
            "root.md": "[[other]] [[notes/index]]\n",
            "notes/other.md": "[[leaf]]\n",
            "notes/index.md": "[[leaf]]\n",
            "leaf.md": "text\n",
        })
        members = ["root.md", "leaf.md", "notes/other.md", "notes/index.md"]
        preferred = resolve_hierarchy(
            "root.md", members, HierarchyMode.LINKS, TieBreakPolicy.PREFER_FOLDER_INDEX, store
        )
        first_seen = resolve_hierarchy(
            "root.md", members, HierarchyMode.LINKS, TieBreakPolicy.FIRST_SEEN, store
        )

        assert preferred.parent_of["leaf.md"] == "notes/index.md"
        assert first_seen.parent_of["leaf.md"] == "notes/other.md"
        assert preferred.parent_of["notes/index.md"] == "root.md"

    def test_links_outside_export_set_ignored(self):
        """Links to notes outside the export set never become parents."""
        store = FakeDocumentStore({
            "root.md": "[[a]]\n",
            "a.md": "[[outside]]\n",
            "outside.md": "text\n",
        })
        result = resolve_hierarchy("root.md", ["root.md", "a.md"], HierarchyMode.LINKS, store=store)

        assert result.parent_of["a.md"] == "root.md"


class TestFrontmatterMode:
    """Test cases for HierarchyMode.FRONTMATTER."""

    def test_declared_parent_resolved_by_name(self):
        """A parent wikilink in frontmatter is resolved to the export-set path."""
        store = FakeDocumentStore({
            "root.md": "text\n",
            "guides/setup.md": "---\nparent: \"[[overview|Overview]]\"\n---\nbody\n",
            "guides/overview.md": "text\n",
        })
        members = ["root.md", "guides/setup.md", "guides/overview.md"]
        result = resolve_hierarchy("root.md", members, HierarchyMode.FRONTMATTER, store=store)

        assert result.parent_of["guides/setup.md"] == "guides/overview.md"
        assert result.parent_of["guides/overview.md"] == "root.md"

    def test_self_and_unknown_declarations_go_to_root(self):
        """A note declaring itself or a missing note is placed under root."""
        store = FakeDocumentStore({
            "root.md": "text\n",
            "a.md": "---\nparent: a\n---\n",
            "b.md": "---\nparent: nowhere\n---\n",
        })
        result = resolve_hierarchy("root.md", ["root.md", "a.md", "b.md"], HierarchyMode.FRONTMATTER, store=store)

        assert result.parent_of["a.md"] == "root.md"
        assert result.parent_of["b.md"] == "root.md"

    def test_declared_cycle_is_broken(self):
        """a and b declaring each other still yield an acyclic result."""
        store = FakeDocumentStore({
            "root.md": "text\n",
            "a.md": "---\nparent: b\n---\n",
            "b.md": "---\nparent: a\n---\n",
        })
        members = ["root.md", "a.md", "b.md"]
        result = resolve_hierarchy("root.md", members, HierarchyMode.FRONTMATTER, store=store)

        assert result.parent_of["a.md"] == "root.md"
        assert result.parent_of["b.md"] == "a.md"
        assert result.order == ["root.md", "a.md", "b.md"]


class TestHybridMode:
    """Test cases for HierarchyMode.HYBRID."""

    def test_folder_then_links(self):
        """The folder candidate wins; notes without one use links."""
        store = FakeDocumentStore({
            "home.md": "[[topic]]\n",
            "guide/index.md": "text\n",
            "guide/setup.md": "[[topic]]\n",
            "topic.md": "text\n",
            "loose.md": "[[topic]]\n",
        })
        members = ["home.md", "topic.md", "guide/index.md", "guide/setup.md", "loose.md"]
        result = resolve_hierarchy("home.md", members, HierarchyMode.HYBRID, store=store)

        assert result.parent_of["guide/setup.md"] == "guide/index.md"
        assert result.parent_of["loose.md"] == "topic.md"
        _assert_acyclic(result, members)


class TestIntendedParentId:
    """Test cases for intended_parent_id."""

    def _hierarchy(self):
        return HierarchyResult(
            parent_of={"root.md": None, "a.md": "root.md"},
            depth_of={"root.md": 0, "a.md": 1},
            order=["root.md", "a.md"],
        )

    def test_root_uses_configured_parent(self):
        """The root page goes under the configured parent page."""
        settings = ExportSettings(space_key="DOCS", parent_page_id="42")
        assert intended_parent_id("root.md", self._hierarchy(), settings, lambda p: None) == "42"

    def test_child_uses_parent_page(self):
        """A child goes under its parent's mapped page."""
        settings = ExportSettings(space_key="DOCS", parent_page_id="42", hierarchy_mode=HierarchyMode.FOLDER)
        page_ids = {"root.md": "100"}
        assert intended_parent_id("a.md", self._hierarchy(), settings, page_ids.get) == "100"

    def test_child_falls_back_to_configured_parent(self):
        """Without a parent page yet, the configured parent is used."""
        settings = ExportSettings(space_key="DOCS", parent_page_id="42", hierarchy_mode=HierarchyMode.LINKS)
        assert intended_parent_id("a.md", self._hierarchy(), settings, lambda p: None) == "42"

    def test_flat_without_nesting(self):
        """Flat mode with child_pages_under_root off puts children beside the root."""
        settings = ExportSettings(space_key="DOCS", parent_page_id="42", child_pages_under_root=False)
        page_ids = {"root.md": "100"}
        assert intended_parent_id("a.md", self._hierarchy(), settings, page_ids.get) == "42"
