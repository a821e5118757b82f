"""Unit tests for publisher.export_set module."""

from src.publisher.export_set import build_export_set
from src.publisher.models import ExportMode
from tests.helpers.fakes import FakeDocumentStore


def _store():
    return FakeDocumentStore({
        "root.md": "See [[b]] and [[a]].\n",
        "a.md": "Back to [[root]], on to [[deep]].\n",
        "b.md": "Leaf.\n",
        "deep.md": "Deeper still [[deeper]].\n",
        "deeper.md": "End.\n",
        "fan.md": "I like [[root]].\n",
        "z-fan.md": "Me too [[root]].\n",
    })


class TestBuildExportSet:
    """Test cases for build_export_set."""

    def test_outlinks_in_link_order(self):
        """OUTLINKS keeps the root's link order after the root."""
        assert build_export_set("root.md", ExportMode.OUTLINKS, _store()) == ["root.md", "b.md", "a.md"]

    def test_backlinks_sorted(self):
        """BACKLINKS lists linking notes sorted by path."""
        assert build_export_set("root.md", ExportMode.BACKLINKS, _store()) == [
            "root.md", "a.md", "fan.md", "z-fan.md",
        ]

    def test_graph_depth_one(self):
        """GRAPH with depth 1 takes both directions once, without duplicates."""
        result = build_export_set("root.md", ExportMode.GRAPH, _store(), graph_depth=1)

        assert result == ["root.md", "b.md", "a.md", "fan.md", "z-fan.md"]

    def test_graph_depth_two_reaches_further(self):
        """GRAPH with depth 2 follows links of the first ring."""
        result = build_export_set("root.md", ExportMode.GRAPH, _store(), graph_depth=2)

        assert "deep.md" in result
        assert "deeper.md" not in result
        assert len(result) == len(set(result))

    def test_accepts_mode_value(self):
        """The mode can be given as its string value."""
        assert build_export_set("b.md", "outlinks", _store()) == ["b.md"]

    def test_backlinks_without_index(self):
        """Stores without get_backlinks are scanned for linking notes."""

        class LinksOnlyStore:
            def __init__(self, store):
                self.store = store

            def list_documents(self):
                return self.store.list_documents()

            def get_links(self, path):
                return self.store.get_links(path)

        result = build_export_set("root.md", ExportMode.BACKLINKS, LinksOnlyStore(_store()))

        assert result == ["root.md", "a.md", "fan.md", "z-fan.md"]

    def test_self_link_ignored(self):
        """A root linking to itself is listed once."""
        store = FakeDocumentStore({"root.md": "[[root]] [[x]]\n", "x.md": "x\n"})

        assert build_export_set("root.md", ExportMode.OUTLINKS, store) == ["root.md", "x.md"]
