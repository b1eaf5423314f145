"""
Tests for text cleaning.

Tests cover:
- Each cleaning step on its own
- Step order (URLs before markdown)
- Switching steps off through CleaningOptions
- Partial overrides from request payloads
"""
import pytest

from tts_gateway.utils.text import CleaningOptions, clean_text, remove_keywords, strip_markdown


class TestCleanText:

    def test_docstring_example(self):
        assert clean_text("**Hello** [docs](guide.md) 🙂 world 3.") == "Hello docs world."

    def test_urls_removed(self):
        assert clean_text("see https://example.com/a?b=1 now") == "see now"

    def test_markdown_stripped(self):
        text = "# Title\n**bold** and *italic* with `code` ![logo](logo.png) [label](docs/page)"
        assert clean_text(text) == "Title bold and italic with code label"

    def test_emoji_removed(self):
        assert clean_text("hi 🙂 there 👍🏽 ✅ done") == "hi there done"

    def test_citation_numbers_removed(self):
        assert clean_text("as shown earlier 12. Next point 3，继续") == "as shown earlier. Next point，继续"

    def test_years_are_not_citations(self):
        assert clean_text("Released in 2024.") == "Released in 2024."

    def test_custom_keywords(self):
        opts = CleaningOptions(custom_keywords="foo, bar ,")
        assert clean_text("foo says bar twice foo", opts) == "says twice"

    def test_line_breaks_collapsed(self):
        assert clean_text("one\n\ntwo\r\nthree\tfour") == "one two three four"

    def test_line_break_keeps_latin_words_apart(self):
        assert clean_text("end\nNext") == "end Next"
        assert clean_text("第一句。\n第二句。") == "第一句。 第二句。"

    def test_trim_always_applies(self):
        opts = CleaningOptions(
            remove_markdown=False,
            remove_emoji=False,
            remove_urls=False,
            remove_line_breaks=False,
            remove_citation_numbers=False,
        )
        assert clean_text("  keep\nthis  ", opts) == "keep\nthis"

    def test_everything_removed_gives_empty(self):
        assert clean_text("🙂 https://example.com 👍") == ""

    def test_empty_input(self):
        assert clean_text("") == ""


class TestSwitches:

    def test_markdown_kept_when_disabled(self):
        opts = CleaningOptions(remove_markdown=False)
        assert clean_text("**bold**", opts) == "**bold**"

    def test_emoji_kept_when_disabled(self):
        opts = CleaningOptions(remove_emoji=False)
        assert clean_text("hi 🙂", opts) == "hi 🙂"

    def test_urls_kept_when_disabled(self):
        opts = CleaningOptions(remove_urls=False, remove_markdown=False)
        assert clean_text("go to https://example.com", opts) == "go to https://example.com"

    def test_citations_kept_when_disabled(self):
        opts = CleaningOptions(remove_citation_numbers=False)
        assert clean_text("point 3.", opts) == "point 3."


class TestCleaningOptions:

    def test_defaults_all_on(self):
        opts = CleaningOptions()
        assert opts.remove_markdown and opts.remove_emoji and opts.remove_urls
        assert opts.remove_line_breaks and opts.remove_citation_numbers
        assert opts.custom_keywords == ""
        assert opts.keywords() == []

    def test_from_overrides_partial(self):
        opts = CleaningOptions.from_overrides({"remove_emoji": False, "custom_keywords": "a,b"})
        assert opts.remove_emoji is False
        assert opts.remove_markdown is True
        assert opts.keywords() == ["a", "b"]

    def test_from_overrides_ignores_unknown_and_none(self):
        opts = CleaningOptions.from_overrides({"remove_urls": None, "shout": True})
        assert opts == CleaningOptions()

    @pytest.mark.parametrize("value", [None, {}])
    def test_from_overrides_empty(self, value):
        assert CleaningOptions.from_overrides(value) == CleaningOptions()


class TestHelpers:

    def test_strip_markdown_heading_levels(self):
        assert strip_markdown("### Deep heading") == "Deep heading"

    def test_remove_keywords_literal(self):
        """Keywords are literals, not patterns."""
        assert remove_keywords("a.b a+b", ["a.b"]) == " a+b"
        assert remove_keywords("text", []) == "text"
