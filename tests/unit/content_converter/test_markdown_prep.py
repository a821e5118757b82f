"""Unit tests for content_converter.markdown_prep module."""

from src.content_converter.markdown_prep import (
    extract_embeds,
    extract_inline_tags,
    extract_link_targets,
    prepare_markdown,
    strip_frontmatter,
)

NOTE = """---
tags: [docs]
parent: "[[Home]]"
---
# Title

Intro with #project/alpha and #123 and a [[Linked Note|alias]].

```python
# not a heading, and #not-a-tag
x = 1
```

Inline `#code` stays.
"""


class TestStripFrontmatter:
    """Test cases for strip_frontmatter."""

    def test_removes_leading_block(self):
        assert strip_frontmatter("---\na: 1\n---\nbody") == "body"

    def test_keeps_text_without_frontmatter(self):
        assert strip_frontmatter("body\n---\nmore") == "body\n---\nmore"

    def test_none(self):
        assert strip_frontmatter(None) == ""


class TestPrepareMarkdown:
    """Test cases for prepare_markdown."""

    def test_removes_frontmatter_and_tags(self):
        """Frontmatter and inline tags go; numbers and code stay."""
        result = prepare_markdown(NOTE)

        assert not result.startswith("---")
        assert result.startswith("# Title")
        assert "#project/alpha" not in result
        assert "#123" in result
        assert "#not-a-tag" in result
        assert "`#code`" in result

    def test_line_endings_and_whitespace(self):
        assert prepare_markdown("\r\n\r\nline one   \r\nline two\r\n\r\n") == "line one\nline two"


class TestExtractInlineTags:
    """Test cases for extract_inline_tags."""

    def test_tags_outside_code(self):
        assert extract_inline_tags(NOTE) == ["project/alpha"]

    def test_deduplicated(self):
        assert extract_inline_tags("#a #b #a") == ["a", "b"]


class TestExtractEmbeds:
    """Test cases for extract_embeds."""

    def test_wiki_and_markdown_embeds(self):
        text = "![[img.png|200]] ![alt](files/chart.png) ![remote](https://x/y.png) ![[img.png]]"

        assert extract_embeds(text) == ["img.png", "files/chart.png"]

    def test_url_encoded_paths(self):
        assert extract_embeds("![a](my%20image.png)") == ["my image.png"]


class TestExtractLinkTargets:
    """Test cases for extract_link_targets."""

    def test_targets_in_order(self):
        """Wikilinks and local links, in text order, without anchors or aliases."""
        text = "[md](Other.md) then [[Linked Note#Part|alias]] and [web](https://example.com) [top](#top)"

        assert extract_link_targets(text) == ["Other.md", "Linked Note"]

    def test_embeds_are_not_links(self):
        assert extract_link_targets("![[pic.png]] ![x](y.png)") == []

    def test_code_ignored(self):
        assert extract_link_targets("`[[Nope]]` [[Yes]]") == ["Yes"]

    def test_frontmatter_ignored(self):
        assert extract_link_targets(NOTE) == ["Linked Note"]
