"""Unit tests for scope lookup and end-to-end rendering."""

import io

import pytest
from docx import Document

from docfiller.interfaces.template import TemplateRenderError, UnsupportedTemplateError
from docfiller.strategies.template_engine.loop_normalizer import LoopNormalizer
from docfiller.strategies.template_engine.package import DocxPackage
from docfiller.strategies.template_engine.renderer import TemplateRenderer
from docfiller.strategies.template_engine.scope import (
    format_value,
    iter_section,
    lookup,
    render_value,
)


# =============================================================================
# Scope Tests
# =============================================================================


class TestScope:
    """Test suite for value lookup over scope chains."""

    def test_innermost_scope_first(self):
        scope = ({"x": "inner"}, {"x": "outer", "y": "top"})
        assert lookup(scope, "x") == "inner"
        assert lookup(scope, "y") == "top"

    def test_none_falls_through_to_outer_scope(self):
        assert lookup(({"x": None}, {"x": "outer"}), "x") == "outer"

    def test_dotted_path(self):
        scope = ({"client": {"name": "Ann", "tags": ["a", "b"]}},)

        assert lookup(scope, "client.name") == "Ann"
        assert lookup(scope, "client.tags.1") == "b"
        assert lookup(scope, "client.age") is None
        assert lookup(scope, "client.tags.5") is None
        assert lookup(scope, "client.name.first") is None

    def test_literal_key_with_dot_wins(self):
        assert lookup(({"a.b": 1, "a": {"b": 2}},), "a.b") == 1

    def test_description_is_ignored(self):
        assert lookup(({"name": "Bob"},), "name:Full name") == "Bob"

    def test_missing_is_none(self):
        assert lookup(({},), "name") is None
        assert lookup(({"name": "x"},), ":") is None

    @pytest.mark.parametrize(
        "value,expected",
        [
            (None, ""),
            ("text", "text"),
            (True, "true"),
            (False, "false"),
            (3, "3"),
            (1.5, "1.5"),
            ({"a": 1}, '{"a": 1}'),
            (["é"], '["é"]'),
            ("a\x01b\x0bc", "abc"),
            ("a\tb\nc", "a\tb\nc"),
        ],
    )
    def test_format_value(self, value, expected):
        assert format_value(value) == expected

    def test_render_value(self):
        assert render_value(({"n": 0},), "n") == "0"
        assert render_value(({},), "n") == ""

    def test_section_over_rows(self):
        top = {"tasks": [{"no": "1"}, {"no": "2"}]}
        scopes = list(iter_section((top,), "tasks"))

        assert [s[0] for s in scopes] == [{"no": "1"}, {"no": "2"}]
        assert all(s[1] is top for s in scopes)

    def test_section_over_scalars(self):
        scopes = list(iter_section(({"items": ["a", "b"]},), "items"))
        assert [lookup(s, ".") for s in scopes] == ["a", "b"]

    def test_section_over_mapping_runs_once(self):
        scopes = list(iter_section(({"client": {"name": "Ann"}},), "client"))
        assert len(scopes) == 1
        assert lookup(scopes[0], "name") == "Ann"

    def test_section_over_falsy_values(self):
        for value in (None, [], "", 0, False, {}):
            assert list(iter_section(({"x": value},), "x")) == []
        assert list(iter_section(({},), "x")) == []

    def test_section_over_truthy_scalar(self):
        scope = ({"flag": True},)
        assert list(iter_section(scope, "flag")) == [scope]


# =============================================================================
# Renderer Tests
# =============================================================================


class TestTemplateRenderer:
    """Test suite for TemplateRenderer (docxtpl backed)."""

    @pytest.fixture
    def renderer(self):
        return TemplateRenderer()

    def test_inline_loop_end_to_end(self, renderer, make_docx, docx_text):
        """Test the scalar plus inline loop example."""
        template = make_docx("Hello {{name}}, tasks: {{#tasks}}{{no}}.{{title}}{{/tasks}}")

        output = renderer.render(template, {"name": "Bob", "tasks": [{"no": "1", "title": "Ship"}]})

        assert docx_text(output).strip() == "Hello Bob, tasks: 1.Ship"

    def test_paragraph_loop(self, renderer, make_docx, docx_text):
        template = make_docx("Tasks:", "{{#tasks}}", "- {{title}}", "{{/tasks}}", "End")

        output = renderer.render(template, {"tasks": [{"title": "A"}, {"title": "B"}]})

        assert docx_text(output).strip() == "Tasks:\n- A\n- B\nEnd"

    def test_table_row_loop(self, renderer, make_docx, table_rows):
        template = make_docx(table=[["No", "Title"], ["{{#tasks}}{{no}}", "{{title}}{{/tasks}}"]])

        output = renderer.render(
            template,
            {"tasks": [{"no": "1", "title": "Ship"}, {"no": "2", "title": "Test"}]},
        )

        assert table_rows(output) == [["No", "Title"], ["1", "Ship"], ["2", "Test"]]

    def test_dotted_shorthand_row(self, renderer, make_docx, table_rows):
        template = make_docx(table=[["No", "Title"], ["{{tasks.no}}", "{{tasks.title:Task}}"]])

        output = renderer.render(template, {"tasks": [{"no": "1", "title": "Ship"}]})

        assert table_rows(output) == [["No", "Title"], ["1", "Ship"]]

    def test_single_cell_row_loop_with_description(self, renderer, make_docx, table_rows):
        template = make_docx(table=[["{{#tasks: Rows}}{{name}}{{/tasks}}"]])

        output = renderer.render(template, {"tasks": [{"name": "A"}, {"name": "B"}]})

        assert table_rows(output) == [["A"], ["B"]]

    def test_missing_loop_renders_no_rows(self, renderer, make_docx, table_rows):
        template = make_docx(table=[["No"], ["{{tasks.no}}"]])
        assert table_rows(renderer.render(template, {})) == [["No"]]

    def test_missing_key_renders_empty(self, renderer, make_docx, docx_text):
        template = make_docx("Name: [{{name}}]")
        assert docx_text(renderer.render(template, {})).strip() == "Name: []"

    def test_outer_values_visible_in_loop(self, renderer, make_docx, docx_text):
        template = make_docx("{{#tasks}}{{title}} by {{owner}}; {{/tasks}}")

        output = renderer.render(template, {"owner": "Ann", "tasks": [{"title": "A"}, {"title": "B"}]})

        assert docx_text(output).strip() == "A by Ann; B by Ann;"

    def test_dotted_path_outside_loop(self, renderer, make_docx, docx_text):
        template = make_docx("Client: {{client.name}}")
        output = renderer.render(template, {"client": {"name": "Ann"}})
        assert docx_text(output).strip() == "Client: Ann"

    def test_list_of_scalars(self, renderer, make_docx, docx_text):
        template = make_docx("{{#items}}[{{.}}]{{/items}}")
        output = renderer.render(template, {"items": ["a", "b"]})
        assert docx_text(output).strip() == "[a][b]"

    def test_values_are_escaped(self, renderer, make_docx, docx_text):
        template = make_docx("{{company}}")
        output = renderer.render(template, {"company": "Smith & <Sons>"})
        assert docx_text(output).strip() == "Smith & <Sons>"

    def test_literal_braces_survive(self, renderer, make_docx, docx_text):
        template = make_docx("Keep {{ this }} and {{name}}")
        output = renderer.render(template, {"name": "Bob"})
        assert docx_text(output).strip() == "Keep {{ this }} and Bob"

    def test_header_is_rendered(self, renderer, make_docx):
        template = make_docx("Body", header="Ref {{ref}}")

        output = renderer.render(template, {"ref": "R-1"})

        doc = Document(io.BytesIO(output))
        assert doc.sections[0].header.paragraphs[0].text == "Ref R-1"

    def test_unbalanced_loop(self, renderer, make_docx):
        template = make_docx("{{#tasks}}{{no}}")
        with pytest.raises(TemplateRenderError):
            renderer.render(template, {"tasks": []})

    def test_mixed_parent_row(self, renderer, make_docx):
        template = make_docx(table=[["{{a.x}}", "{{b.y}}"]])
        with pytest.raises(UnsupportedTemplateError):
            renderer.render(template, {})

    def test_mixed_parent_row_lenient(self, make_docx, table_rows):
        renderer = TemplateRenderer(normalizer=LoopNormalizer(strict=False))
        template = make_docx(table=[["{{a.x}}", "{{b.y}}"]])

        output = renderer.render(template, {"a": [{"x": "1"}]})

        assert table_rows(output) == [["1", ""]]

    def test_not_a_docx(self, renderer):
        with pytest.raises(TemplateRenderError, match="not a valid .docx"):
            renderer.render(b"plain bytes", {})

    def test_prepare_compiles_parts(self, renderer, make_docx):
        prepared = renderer.prepare(make_docx("Hi {{name}}"))
        xml = DocxPackage.from_bytes(prepared).read_xml("word/document.xml").decode("utf-8")
        assert 'value(_scope_0, "name")' in xml
