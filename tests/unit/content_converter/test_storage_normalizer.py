"""Unit tests for content_converter.storage_normalizer module."""

import pytest

from src.content_converter.storage_normalizer import normalize_storage, normalize_text_for_diff

SAMPLES = [
    "",
    "<p>Hello</p>",
    "<p>Hello   world</p>\n\n\n<p>again</p>",
    '<ac:structured-macro ac:name="code" ac:macro-id="1"><ac:parameter ac:name="title">T</ac:parameter>'
    '<ac:parameter ac:name="language">py</ac:parameter><ac:plain-text-body><![CDATA[x = 1]]></ac:plain-text-body>'
    '</ac:structured-macro>',
    '<ac:link><ri:page ri:space-key="DOCS" ri:content-title="A &amp; B" />'
    '<ac:plain-text-link-body><![CDATA[A & B]]></ac:plain-text-link-body></ac:link>',
    "<ul><li><p>one</p></li><li>\n<p>two</p>\n</li></ul>",
    "<p>it&rsquo;s&nbsp;fine &mdash; really</p><p> </p><p><br></p>",
]


class TestIdempotence:
    """normalize(normalize(x)) == normalize(x)."""

    @pytest.mark.parametrize("storage", SAMPLES)
    def test_idempotent(self, storage):
        once = normalize_storage(storage)

        assert normalize_storage(once) == once

    def test_none_is_empty(self):
        assert normalize_storage(None) == ""

    def test_deeply_nested_empty_paragraphs(self):
        """Nesting depth does not limit how far normalization goes."""
        storage = "<p>a</p>" + "<p>" * 25 + "</p>" * 25

        once = normalize_storage(storage)

        assert once == "<p>a</p>"
        assert normalize_storage(once) == once


class TestEquivalence:
    """Bodies differing only in editor noise normalize to the same text."""

    @pytest.mark.parametrize("left, right", [
        # whitespace between and inside tags
        ("<p>Hello   world</p>\n\n<p>x</p>", "<p>Hello world</p><p>x</p>"),
        ("  <h1>Title</h1>\r\n", "<h1>Title</h1>"),
        # attribute order on composite elements
        (
            '<ri:page ri:space-key="DOCS" ri:content-title="A" />',
            '<ri:page ri:content-title="A" ri:space-key="DOCS"/>',
        ),
        # volatile attributes
        (
            '<ac:structured-macro ac:name="info" ac:schema-version="1" ac:macro-id="abc-123"></ac:structured-macro>',
            '<ac:structured-macro ac:name="info"></ac:structured-macro>',
        ),
        ('<p data-mce-style="x">a</p>', "<p>a</p>"),
        # macro parameter order
        (
            '<ac:structured-macro ac:name="code"><ac:parameter ac:name="title">T</ac:parameter>'
            '<ac:parameter ac:name="language">py</ac:parameter></ac:structured-macro>',
            '<ac:structured-macro ac:name="code"><ac:parameter ac:name="language">py</ac:parameter>'
            '<ac:parameter ac:name="title">T</ac:parameter></ac:structured-macro>',
        ),
        # link body as CDATA or escaped text
        (
            "<ac:plain-text-link-body><![CDATA[A & B]]></ac:plain-text-link-body>",
            "<ac:plain-text-link-body>A &amp; B</ac:plain-text-link-body>",
        ),
        # self-closing tag spelling
        ("<p>a<br>b</p><hr>", "<p>a<br />b</p><hr />"),
        # punctuation entities
        ("<p>it&rsquo;s&nbsp;ok &ndash; yes</p>", "<p>it’s ok – yes</p>"),
        ("<p>a\u00a0b</p>", "<p>a b</p>"),
        # empty paragraphs and list item wrappers
        ("<p>a</p><p> </p><p><br/></p>", "<p>a</p>"),
        ("<ul><li><p>a</p></li></ul>", "<ul><li>a</li></ul>"),
    ])
    def test_equivalent(self, left, right):
        assert normalize_storage(left) == normalize_storage(right)

    def test_real_changes_are_kept(self):
        """Text and structure differences survive normalization."""
        assert normalize_storage("<p>a</p>") != normalize_storage("<p>b</p>")
        assert normalize_storage("<p>a</p>") != normalize_storage("<h1>a</h1>")
        assert normalize_storage('<ri:page ri:content-title="A"/>') != normalize_storage(
            '<ri:page ri:content-title="B"/>'
        )


class TestNormalizeTextForDiff:
    """Test cases for normalize_text_for_diff."""

    def test_line_endings_and_trailing_space(self):
        assert normalize_text_for_diff("a  \r\nb\rc\t\n") == "a\nb\nc\n"

    def test_none(self):
        assert normalize_text_for_diff(None) == ""
