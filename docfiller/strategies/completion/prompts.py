"""Prompt and output-schema builders for AI calls."""

from typing import Any

from docfiller.interfaces.completion import SourceDocument
from docfiller.strategies.template_engine.models import PlaceholderField


# =============================================================================
# Placeholder filling
# =============================================================================

FILL_PROMPT = """You are a document filling assistant. I have a document with the following placeholders that need to be filled:

{placeholders}

Please analyze the data content and provide appropriate values for each placeholder. If a placeholder has a description (after the colon), follow those instructions carefully when generating the value.

IMPORTANT: Return ONLY a JSON object with placeholder names (WITHOUT curly braces or # symbols) as keys and their values.

- For simple placeholders, provide STRING values
- For table/array placeholders ([TABLE/ARRAY]), provide an ARRAY of row objects using exactly the listed columns as keys
- Do not include {{{{}}}} or {{#}} or {{/}} in the keys
- If the data content has no value for a placeholder, use an empty string (or an empty array for tables)
- Do not include any other text or explanation

Example format:
{{
  "name": "John Doe",
  "date": "2024-01-15",
  "tasks": [{{"no": "1", "title": "Ship the release"}}]
}}"""

INLINE_DATA_SECTION = "Here is the data content:\n{content}"

GROUNDED_DATA_SECTION = (
    "The data content is in the attached files. Search them with the file_search "
    "tool and base every value on what you find there."
)

FILL_SYSTEM_PROMPT = "You fill document templates from source data. You output only valid JSON."


def describe_placeholders(fields: list[PlaceholderField]) -> str:
    """Render the placeholder list shown to the model."""
    lines = []
    for field in fields:
        if field.is_loop:
            line = f"- {{{{#{field.key}}}}} [TABLE/ARRAY]"
            if field.description:
                line += f" : {field.description}"
            lines.append(line)
            for name in field.fields or []:
                column = f"    - {name}"
                if name in field.field_descriptions:
                    column += f" : {field.field_descriptions[name]}"
                lines.append(column)
        elif field.description:
            lines.append(f"- {{{{{field.key}}}}} : {field.description}")
        else:
            lines.append(f"- {{{{{field.key}}}}}")
    return "\n".join(lines)


def combine_sources(sources: list[SourceDocument]) -> str:
    """Join grounding documents into one text, each under a name banner."""
    return "\n\n".join(f"=== {source.name} ===\n{source.content}" for source in sources)


def build_fill_prompt(fields: list[PlaceholderField]) -> str:
    """Build the fill prompt.

    The data itself is attached by the provider: inlined, or uploaded for
    file search.
    """
    return FILL_PROMPT.format(placeholders=describe_placeholders(fields))


def build_values_schema(fields: list[PlaceholderField]) -> dict[str, Any] | None:
    """Build a strict JSON schema for the fill reply.

    Returns:
        The schema, or None when some loop has no columns to describe.
    """
    properties: dict[str, Any] = {}
    for field in fields:
        if field.is_loop:
            if not field.fields:
                return None
            properties[field.key] = {
                "type": "array",
                "items": {
                    "type": "object",
                    "properties": {name: {"type": "string"} for name in field.fields},
                    "required": list(field.fields),
                    "additionalProperties": False,
                },
            }
        else:
            properties[field.key] = {"type": "string"}
        if field.description:
            properties[field.key]["description"] = field.description

    return {
        "type": "object",
        "properties": properties,
        "required": list(properties),
        "additionalProperties": False,
    }


# =============================================================================
# Template generation
# =============================================================================

TEMPLATE_PROMPT = """You are an expert designer of Word (.docx) templates.

Goal:
- Produce the structure of a well laid out document template, as JSON, that meets the user's request.
- Use the placeholder syntax below throughout the document body.

Placeholder syntax:
- Plain: {{{{company}}}}
- With a description: {{{{project_name:Official project name}}}}
- Loop start/end: {{{{#tasks}}}} ... {{{{/tasks}}}}
- Fields inside a loop: {{{{no}}}}, {{{{name}}}}, {{{{owner}}}}

Rules:
1) Never reuse a key for fields with different meanings.
2) Keys are snake_case English.
3) Reuse a key only when the meaning is exactly the same.
4) Blocks should form a readable layout: title, section headings, body text, lists and tables.
5) Use type="table" for tables; rows may contain placeholders.
6) Output JSON only. No explanations, markdown or code blocks.
7) Every block always has all of these keys: type, level, text, items, header, rows, lines.
   Unused keys take their defaults: level=null, text="", items=[], header=[], rows=[], lines=1

Preferred file name (optional): {file_name}
User request:
{request}"""

TEMPLATE_SYSTEM_PROMPT = "You output only valid JSON and no extra text."

TEMPLATE_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "fileName": {"anyOf": [{"type": "string"}, {"type": "null"}]},
        "title": {"anyOf": [{"type": "string"}, {"type": "null"}]},
        "subtitle": {"anyOf": [{"type": "string"}, {"type": "null"}]},
        "blocks": {
            "type": "array",
            "minItems": 1,
            "items": {
                "type": "object",
                "properties": {
                    "type": {
                        "type": "string",
                        "enum": ["heading", "paragraph", "bullet_list", "table", "spacer"],
                    },
                    "level": {"anyOf": [{"type": "number", "enum": [1, 2, 3]}, {"type": "null"}]},
                    "text": {"type": "string"},
                    "items": {"type": "array", "items": {"type": "string"}},
                    "header": {"type": "array", "items": {"type": "string"}},
                    "rows": {
                        "type": "array",
                        "items": {"type": "array", "items": {"type": "string"}},
                    },
                    "lines": {"type": "number"},
                },
                "required": ["type", "level", "text", "items", "header", "rows", "lines"],
                "additionalProperties": False,
            },
        },
    },
    "required": ["fileName", "title", "subtitle", "blocks"],
    "additionalProperties": False,
}


def build_template_prompt(request: str, file_name: str | None = None) -> str:
    """Build the template design prompt."""
    preferred = file_name.strip() if file_name and file_name.strip() else "(none)"
    return TEMPLATE_PROMPT.format(file_name=preferred, request=request)
