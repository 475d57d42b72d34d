"""Unit tests for the tag grammar and the placeholder extractor."""

import pytest

from docfiller.interfaces.template import TemplateValidationError
from docfiller.strategies.template_engine.extractor import PlaceholderExtractor
from docfiller.strategies.template_engine.grammar import (
    TagSyntaxError,
    iter_tags,
    split_dotted,
    strip_description,
)


# =============================================================================
# Grammar Tests
# =============================================================================


class TestGrammar:
    """Test suite for tag scanning."""

    def test_scans_all_tag_forms(self):
        """Test that plain, described, open, close and dotted tags are found."""
        text = "{{name}} {{date:Issue date}} {{#tasks}}{{tasks.no}}{{/tasks}}"

        tags = list(iter_tags(text))

        assert [(t.prefix, t.name) for t in tags] == [
            ("", "name"),
            ("", "date"),
            ("#", "tasks"),
            ("", "tasks.no"),
            ("/", "tasks"),
        ]
        assert tags[1].description == "Issue date"
        assert tags[2].is_open and tags[4].is_close
        assert tags[3].is_dotted

    def test_offsets_cover_the_tag(self):
        text = "Hi {{name}}!"
        tag = next(iter_tags(text))
        assert text[tag.start:tag.end] == "{{name}}"
        assert tag.raw == "{{name}}"

    def test_blank_description_is_none(self):
        tag = next(iter_tags("{{name: }}"))
        assert tag.description is None

    def test_spaced_tags_are_not_placeholders(self):
        """Test that Jinja-style tags with inner spaces are ignored."""
        assert list(iter_tags("{{ name }} and {{ #tasks }}")) == []

    def test_split_dotted(self):
        assert split_dotted("tasks.no") == ("tasks", "no")
        assert split_dotted("a.b.c") == ("a", "b.c")

    @pytest.mark.parametrize("name", ["a.", ".a", "a..b", "."])
    def test_split_dotted_rejects_empty_segments(self, name):
        with pytest.raises(TagSyntaxError):
            split_dotted(name)

    def test_strip_description(self):
        assert strip_description("name:Full name") == "name"
        assert strip_description(" name ") == "name"


# =============================================================================
# Extractor Tests
# =============================================================================


class TestPlaceholderExtractor:
    """Test suite for PlaceholderExtractor."""

    @pytest.fixture
    def extractor(self):
        return PlaceholderExtractor(strict=True)

    @pytest.fixture
    def lenient(self):
        return PlaceholderExtractor(strict=False)

    def test_supported_extensions(self, extractor):
        assert extractor.supported_extensions == {".docx"}

    def test_empty_text(self, extractor):
        result = extractor.extract("")
        assert result.fields == [] and result.errors == [] and result.ok

    def test_distinct_scalars(self, extractor):
        """Test that N distinct scalar tags give N scalar fields."""
        result = extractor.extract("Dear {{name}}, on {{date}} at {{place}} ({{name}})")

        assert [f.key for f in result.fields] == ["name", "date", "place"]
        assert all(f.is_loop is None for f in result.fields)
        assert all(f.fields is None for f in result.fields)

    def test_explicit_loop(self, extractor):
        result = extractor.extract("Intro {{#x}}{{a}}{{b}}{{/x}} outro")

        assert len(result.fields) == 1
        loop = result.fields[0]
        assert loop.key == "x"
        assert loop.is_loop is True
        assert loop.fields == ["a", "b"]

    def test_dotted_fields_declare_loop(self, extractor):
        """Test dotted shorthand without any explicit loop marker."""
        result = extractor.extract("{{x.a}} then later {{x.b}} and {{x.a}}")

        assert len(result.fields) == 1
        assert result.fields[0].key == "x"
        assert result.fields[0].is_loop is True
        assert result.fields[0].fields == ["a", "b"]

    def test_dotted_fields_merge_with_explicit_loop(self, extractor):
        result = extractor.extract("{{#x}}{{a}}{{/x}} {{x.b}}")
        assert result.fields[0].fields == ["a", "b"]

    def test_dotted_tag_promotes_scalar(self, extractor):
        result = extractor.extract("{{x}} {{x.a}}")
        assert result.fields[0].is_loop is True
        assert result.fields[0].fields == ["a"]

    def test_missing_close_tag(self, extractor):
        """Test that an unclosed loop is an error naming the key."""
        result = extractor.extract("{{#x}}{{a}}")

        assert result.errors
        assert any("x" in error for error in result.errors)
        assert result.fields == []
        assert not result.ok

    def test_close_without_open(self, extractor):
        result = extractor.extract("{{a}}{{/x}}")
        assert result.errors == ["Loop tag error: {{/x}} has no matching {{#x}}"]
        assert result.fields == []

    def test_unbalanced_in_lenient_mode_is_still_an_error(self, lenient):
        assert lenient.extract("{{#x}}{{a}}").errors

    def test_first_description_wins(self, extractor):
        result = extractor.extract("{{name:First}} ... {{name:Second}}")

        assert len(result.fields) == 1
        assert result.fields[0].description == "First"

    def test_description_added_on_later_occurrence(self, extractor):
        result = extractor.extract("{{name}} ... {{name:Full name}}")
        assert result.fields[0].description == "Full name"

    def test_loop_and_field_descriptions(self, extractor):
        result = extractor.extract(
            "{{#tasks:Open tasks}}{{no:Row number}}{{title}}{{no:Ignored}}{{/tasks}}"
        )

        loop = result.fields[0]
        assert loop.description == "Open tasks"
        assert loop.fields == ["no", "title"]
        assert loop.field_descriptions == {"no": "Row number"}

    def test_empty_loop_is_error_in_strict_mode(self, extractor):
        result = extractor.extract("{{#x}}{{/x}}")
        assert result.errors == ["Loop 'x' has no fields: add tags between {{#x}} and {{/x}}"]

    def test_empty_loop_is_warning_in_lenient_mode(self, lenient):
        result = lenient.extract("{{#x}}{{/x}}")

        assert result.errors == []
        assert result.warnings
        assert result.fields[0].key == "x"
        assert result.fields[0].fields == []

    def test_malformed_dotted_tag_is_skipped_with_warning(self, extractor):
        result = extractor.extract("{{a..b}} {{name}}")

        assert result.ok
        assert [f.key for f in result.fields] == ["name"]
        assert any("dot-syntax error" in warning for warning in result.warnings)

    def test_extract_or_raise(self, extractor):
        with pytest.raises(TemplateValidationError) as exc_info:
            extractor.extract_or_raise("{{#x}}{{a}}")
        assert exc_info.value.errors

    def test_extract_from_docx_joins_split_runs(self, extractor, make_docx):
        """Test that tags split across Word runs are still found."""
        content = make_docx(["Hello {{na", "me}}"], "{{#tasks}}", ["{{ti", "tle}}"], "{{/tasks}}")

        result = extractor.extract_from_docx(content, "letter.docx")

        assert [f.key for f in result.fields] == ["name", "tasks"]
        assert result.fields[1].fields == ["title"]

    def test_extract_from_docx_reads_table_cells(self, extractor, make_docx):
        content = make_docx("Intro", table=[["No", "Title"], ["{{items.no}}", "{{items.title}}"]])

        result = extractor.extract_from_docx(content)

        assert result.fields[0].key == "items"
        assert result.fields[0].fields == ["no", "title"]
