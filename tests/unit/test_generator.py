"""Unit tests for the AI template generator."""

import asyncio
import io
import json

import pytest
from docx import Document

from docfiller.interfaces.completion import CompletionError
from docfiller.strategies.completion.prompts import TEMPLATE_SCHEMA
from docfiller.strategies.template_engine.extractor import PlaceholderExtractor
from docfiller.strategies.template_engine.generator import (
    TemplateBlock,
    TemplateGenerator,
    TemplateLayout,
    build_docx,
    normalize_conflicting_placeholder_keys,
    normalize_file_name,
    parse_layout,
)


def block(type: str, **fields) -> dict:
    data = {"type": type, "level": None, "text": "", "items": [], "header": [], "rows": [], "lines": 1}
    data.update(fields)
    return data


DESIGN = {
    "fileName": "weekly-report",
    "title": "{{company}} Weekly Report",
    "subtitle": None,
    "blocks": [
        block("heading", level=1, text="Summary"),
        block("paragraph", text="Prepared by {{author:Report author}}"),
        block("bullet_list", items=["Risk: {{risk}}"]),
        block(
            "table",
            header=["No", "Task"],
            rows=[["{{#tasks}}{{no}}", "{{title}}{{/tasks}}"]],
        ),
        block("spacer", lines=2),
    ],
}


# =============================================================================
# Helper Tests
# =============================================================================


class TestFileNames:
    """Test suite for normalize_file_name."""

    @pytest.mark.parametrize(
        "name,expected",
        [
            ("report", "report.docx"),
            ("Report.DOCX", "Report.DOCX"),
            (" a/b:c ", "a-b-c.docx"),
            ('x*y?"z"', "x-y--z-.docx"),
        ],
    )
    def test_normalize(self, name, expected):
        assert normalize_file_name(name) == expected

    def test_blank_name_gets_timestamp(self):
        name = normalize_file_name("   ")
        assert name.startswith("ai-template-")
        assert name.endswith(".docx")


class TestParseLayout:
    """Test suite for parse_layout."""

    def test_parses_design(self):
        layout = parse_layout(json.dumps(DESIGN))

        assert layout.file_name == "weekly-report"
        assert layout.title == "{{company}} Weekly Report"
        assert layout.subtitle is None
        assert [b.type for b in layout.blocks] == ["heading", "paragraph", "bullet_list", "table", "spacer"]
        assert layout.blocks[0].level == 1

    def test_null_fields_take_defaults(self):
        layout = parse_layout(json.dumps({"blocks": [{"type": "paragraph", "text": None, "items": None}]}))
        assert layout.blocks[0].text == ""
        assert layout.blocks[0].items == []

    def test_invalid_blocks_are_skipped(self):
        layout = parse_layout(json.dumps({"blocks": [{"type": "chart"}, "oops", block("paragraph", text="ok")]}))
        assert [b.text for b in layout.blocks] == ["ok"]

    def test_fenced_reply(self):
        layout = parse_layout("```json\n" + json.dumps(DESIGN) + "\n```")
        assert len(layout.blocks) == 5

    def test_no_json(self):
        with pytest.raises(CompletionError, match="Failed to parse"):
            parse_layout("I cannot do that")

    def test_no_blocks(self):
        with pytest.raises(CompletionError, match="blocks"):
            parse_layout('{"title": "x"}')


class TestConflictingKeys:
    """Test suite for normalize_conflicting_placeholder_keys."""

    def test_renames_later_descriptions(self):
        layout = TemplateLayout(
            title="{{date:Issue date}}",
            blocks=[
                TemplateBlock(type="paragraph", text="Due {{date:Due date}}"),
                TemplateBlock(type="bullet_list", items=["{{date:Issue date}}", "{{date:Paid on}}"]),
                TemplateBlock(type="table", header=["{{date}}"], rows=[["{{date:Due date}}"]]),
            ],
        )

        normalize_conflicting_placeholder_keys(layout)

        assert layout.title == "{{date:Issue date}}"
        assert layout.blocks[0].text == "Due {{date_2:Due date}}"
        assert layout.blocks[1].items == ["{{date:Issue date}}", "{{date_3:Paid on}}"]
        assert layout.blocks[2].header == ["{{date}}"]
        assert layout.blocks[2].rows == [["{{date_2:Due date}}"]]

    def test_consistent_keys_untouched(self):
        layout = TemplateLayout(
            blocks=[TemplateBlock(type="paragraph", text="{{#a}}{{x:One}}{{/a}} {{x:One}} {{ y : Two }}")]
        )
        normalize_conflicting_placeholder_keys(layout)
        assert layout.blocks[0].text == "{{#a}}{{x:One}}{{/a}} {{x:One}} {{ y : Two }}"


# =============================================================================
# Document Builder Tests
# =============================================================================


class TestBuildDocx:
    """Test suite for build_docx."""

    def test_generated_template_is_extractable(self, docx_text):
        content = build_docx(parse_layout(json.dumps(DESIGN)))

        result = PlaceholderExtractor().extract(docx_text(content))

        assert result.ok
        assert [f.key for f in result.fields] == ["company", "author", "risk", "tasks"]
        tasks = result.fields[-1]
        assert tasks.is_loop is True
        assert tasks.fields == ["no", "title"]

    def test_layout(self, table_rows):
        content = build_docx(parse_layout(json.dumps(DESIGN)))
        doc = Document(io.BytesIO(content))

        assert doc.paragraphs[0].text == "{{company}} Weekly Report"
        assert doc.paragraphs[1].style.name == "Heading 1"
        assert any(p.style.name == "List Bullet" for p in doc.paragraphs)
        assert table_rows(content) == [["No", "Task"], ["{{#tasks}}{{no}}", "{{title}}{{/tasks}}"]]

    def test_ragged_table_rows_are_padded(self, table_rows):
        layout = TemplateLayout(blocks=[TemplateBlock(type="table", header=["A"], rows=[["1", "2"]])])
        assert table_rows(build_docx(layout)) == [["A", ""], ["1", "2"]]

    def test_empty_layout(self):
        with pytest.raises(CompletionError, match="no content"):
            build_docx(TemplateLayout(blocks=[TemplateBlock(type="table", rows=[["x"]])]))


# =============================================================================
# Generator Tests
# =============================================================================


class TestTemplateGenerator:
    """Test suite for TemplateGenerator."""

    def test_generate(self, fake_provider):
        provider = fake_provider(json.dumps(DESIGN))

        generated = asyncio.run(TemplateGenerator(provider).generate("A weekly status report"))

        assert generated.file_name == "weekly-report.docx"
        assert generated.content.startswith(b"PK")
        assert len(generated.layout.blocks) == 5

        request = provider.requests[0]
        assert request.json_schema is TEMPLATE_SCHEMA
        assert request.schema_name == "template_design"
        assert "A weekly status report" in request.prompt
        assert request.sources == []

    def test_requested_file_name_wins(self, fake_provider):
        generator = TemplateGenerator(fake_provider(json.dumps(DESIGN)))
        generated = asyncio.run(generator.generate("report", "Status: Q3"))
        assert generated.file_name == "Status- Q3.docx"

    def test_unusable_design(self, fake_provider):
        with pytest.raises(CompletionError):
            asyncio.run(TemplateGenerator(fake_provider("{}")).generate("report"))
