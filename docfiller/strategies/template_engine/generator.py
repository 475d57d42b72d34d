"""AI template generator.

Asks a completion provider to design a document layout (title, headings,
paragraphs, lists, tables) that uses placeholder tags, then builds a styled
.docx template from it with python-docx.
"""

import io
import logging
import re
import time
from dataclasses import dataclass
from typing import Any, Literal

from docx import Document
from docx.enum.text import WD_ALIGN_PARAGRAPH
from docx.oxml import OxmlElement
from docx.oxml.ns import qn
from docx.shared import Pt, RGBColor, Twips
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from docfiller.interfaces.completion import BaseCompletionProvider, CompletionError, CompletionRequest
from docfiller.strategies.completion.prompts import (
    TEMPLATE_SCHEMA,
    TEMPLATE_SYSTEM_PROMPT,
    build_template_prompt,
)
from docfiller.strategies.template_engine.fill_values import parse_completion_json

logger = logging.getLogger(__name__)

# Looser than the extractor grammar: models tend to pad tags with spaces
_PLACEHOLDER = re.compile(r"\{\{\s*([#/]?)([a-zA-Z0-9_]+)(?:\s*:\s*([^}]+))?\s*\}\}")
_UNSAFE_FILENAME = re.compile(r'[\\/:*?"<>|]')

HEADER_FILL = "F3F4F6"
SUBTITLE_COLOR = "6B7280"
MAX_SPACER_LINES = 8


class TemplateBlock(BaseModel):
    """One layout block of a generated template."""

    model_config = ConfigDict(extra="ignore")

    type: Literal["heading", "paragraph", "bullet_list", "table", "spacer"]
    level: int | None = None
    text: str = ""
    items: list[str] = Field(default_factory=list)
    header: list[str] = Field(default_factory=list)
    rows: list[list[str]] = Field(default_factory=list)
    lines: float = 1


class TemplateLayout(BaseModel):
    """Document layout returned by the model."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    file_name: str | None = Field(default=None, alias="fileName")
    title: str | None = None
    subtitle: str | None = None
    blocks: list[TemplateBlock] = Field(default_factory=list)


@dataclass
class GeneratedTemplate:
    """A generated .docx template."""

    file_name: str
    content: bytes
    layout: TemplateLayout


def normalize_file_name(name: str) -> str:
    """Make a safe ``.docx`` file name."""
    base = _UNSAFE_FILENAME.sub("-", name.strip())
    if not base:
        return f"ai-template-{int(time.time() * 1000)}.docx"
    return base if base.lower().endswith(".docx") else f"{base}.docx"


def parse_layout(text: str) -> TemplateLayout:
    """Parse a model reply into a layout, skipping blocks that do not validate.

    Raises:
        CompletionError: If the reply has no JSON object or no blocks list.
    """
    try:
        data = parse_completion_json(text)
    except ValueError as e:
        raise CompletionError(f"Failed to parse the template design: {e}") from e

    raw_blocks = data.get("blocks")
    if not isinstance(raw_blocks, list):
        raise CompletionError("Template design has no 'blocks' list")

    blocks = []
    for position, raw in enumerate(raw_blocks):
        try:
            if isinstance(raw, dict):
                raw = {key: value for key, value in raw.items() if value is not None}
            blocks.append(TemplateBlock.model_validate(raw))
        except ValidationError as e:
            logger.warning(f"Skipping invalid template block #{position}: {e.errors()[0]['msg']}")

    def text_or_none(key: str) -> str | None:
        value = data.get(key)
        return value if isinstance(value, str) else None

    return TemplateLayout(
        file_name=text_or_none("fileName"),
        title=text_or_none("title"),
        subtitle=text_or_none("subtitle"),
        blocks=blocks,
    )


def _text_refs(layout: TemplateLayout) -> list[tuple[Any, Any]]:
    """Return (container, key) pairs for every text slot of a layout."""
    refs: list[tuple[Any, Any]] = []
    if layout.title is not None:
        refs.append((layout, "title"))
    if layout.subtitle is not None:
        refs.append((layout, "subtitle"))
    for block in layout.blocks:
        if block.type in ("heading", "paragraph"):
            refs.append((block, "text"))
        elif block.type == "bullet_list":
            refs.extend((block.items, i) for i in range(len(block.items)))
        elif block.type == "table":
            refs.extend((block.header, i) for i in range(len(block.header)))
            for row in block.rows:
                refs.extend((row, i) for i in range(len(row)))
    return refs


def _get(ref: tuple[Any, Any]) -> str:
    container, key = ref
    return container[key] if isinstance(container, list) else getattr(container, key)


def _set(ref: tuple[Any, Any], value: str) -> None:
    container, key = ref
    if isinstance(container, list):
        container[key] = value
    else:
        setattr(container, key, value)


def normalize_conflicting_placeholder_keys(layout: TemplateLayout) -> TemplateLayout:
    """Rename keys reused with different descriptions.

    The first description of a key keeps the key; each other description
    gets ``key_2``, ``key_3``... Loop markers and tags without a
    description are left alone. The layout is modified in place.
    """
    refs = _text_refs(layout)
    usages: list[tuple[str, str]] = []
    descriptions: dict[str, set[str]] = {}

    for ref in refs:
        for prefix, key, description in _PLACEHOLDER.findall(_get(ref)):
            description = description.strip()
            if prefix or not description:
                continue
            usages.append((key, description))
            descriptions.setdefault(key, set()).add(description)

    conflicted = {key for key, seen in descriptions.items() if len(seen) > 1}
    if not conflicted:
        return layout

    renamed: dict[tuple[str, str], str] = {}
    counters: dict[str, int] = {}
    first: dict[str, str] = {}
    for key, description in usages:
        if key not in conflicted:
            continue
        if key not in first:
            first[key] = description
            continue
        if description == first[key] or (key, description) in renamed:
            continue
        counters[key] = counters.get(key, 1) + 1
        renamed[(key, description)] = f"{key}_{counters[key]}"

    def rename(match: re.Match[str]) -> str:
        prefix, key, description = match.group(1), match.group(2), (match.group(3) or "").strip()
        if prefix or not description:
            return match.group(0)
        new_key = renamed.get((key, description))
        return f"{{{{{new_key}:{description}}}}}" if new_key else match.group(0)

    for ref in refs:
        _set(ref, _PLACEHOLDER.sub(rename, _get(ref)))

    logger.info(f"Renamed {len(renamed)} conflicting placeholder key(s): {sorted(renamed.values())}")
    return layout


def _shade(cell: Any, fill: str) -> None:
    shading = OxmlElement("w:shd")
    shading.set(qn("w:val"), "clear")
    shading.set(qn("w:color"), "auto")
    shading.set(qn("w:fill"), fill)
    cell._tc.get_or_add_tcPr().append(shading)


def _write_cell(cell: Any, text: str, header: bool) -> None:
    paragraph = cell.paragraphs[0]
    paragraph.paragraph_format.space_before = Pt(0)
    paragraph.paragraph_format.space_after = Pt(0)
    run = paragraph.add_run(text)
    run.bold = header
    run.font.size = Pt(11 if header else 10)
    if header:
        _shade(cell, HEADER_FILL)


def build_docx(layout: TemplateLayout) -> bytes:
    """Render a layout as a styled .docx document.

    Raises:
        CompletionError: If the layout produces no content.
    """
    doc = Document()
    normal = doc.styles["Normal"]
    normal.font.name = "Calibri"
    normal.font.size = Pt(11)
    normal.paragraph_format.line_spacing = Pt(16)
    for section in doc.sections:
        section.top_margin = section.bottom_margin = Twips(1100)
        section.left_margin = section.right_margin = Twips(1100)

    written = 0
    if layout.title and layout.title.strip():
        paragraph = doc.add_paragraph()
        paragraph.alignment = WD_ALIGN_PARAGRAPH.CENTER
        paragraph.paragraph_format.space_after = Twips(220)
        run = paragraph.add_run(layout.title.strip())
        run.bold = True
        run.font.size = Pt(22)
        written += 1

    if layout.subtitle and layout.subtitle.strip():
        paragraph = doc.add_paragraph()
        paragraph.alignment = WD_ALIGN_PARAGRAPH.CENTER
        paragraph.paragraph_format.space_after = Twips(300)
        run = paragraph.add_run(layout.subtitle.strip())
        run.italic = True
        run.font.size = Pt(11)
        run.font.color.rgb = RGBColor.from_string(SUBTITLE_COLOR)
        written += 1

    for block in layout.blocks:
        match block.type:
            case "heading":
                level = block.level if block.level in (1, 2, 3) else 2
                doc.add_heading(block.text, level=level)
                written += 1
            case "paragraph":
                paragraph = doc.add_paragraph(block.text)
                paragraph.paragraph_format.space_after = Twips(140)
                written += 1
            case "bullet_list":
                for item in block.items:
                    doc.add_paragraph(item, style="List Bullet")
                    written += 1
            case "table":
                if not block.header:
                    continue
                columns = max([len(block.header)] + [len(row) for row in block.rows])
                table = doc.add_table(rows=1 + len(block.rows), cols=columns)
                table.style = "Table Grid"
                for i in range(columns):
                    text = block.header[i] if i < len(block.header) else ""
                    _write_cell(table.rows[0].cells[i], text, header=True)
                for r, row in enumerate(block.rows, start=1):
                    for i in range(columns):
                        _write_cell(table.rows[r].cells[i], row[i] if i < len(row) else "", header=False)
                doc.add_paragraph().paragraph_format.space_after = Twips(160)
                written += 1
            case "spacer":
                for _ in range(max(1, min(MAX_SPACER_LINES, int(block.lines or 1)))):
                    doc.add_paragraph()
                written += 1

    if not written:
        raise CompletionError("The generated template design has no content blocks")

    buffer = io.BytesIO()
    doc.save(buffer)
    return buffer.getvalue()


class TemplateGenerator:
    """Generates placeholder templates from a natural-language request."""

    def __init__(self, provider: BaseCompletionProvider) -> None:
        self._provider = provider

    async def generate(self, request: str, file_name: str | None = None) -> GeneratedTemplate:
        """Design and build a template.

        Args:
            request: What the document should contain.
            file_name: Preferred output file name.

        Raises:
            CredentialError: If the provider rejects its API key.
            CompletionError: If the call fails or the design is unusable.
        """
        logger.info(f"Generating template via {self._provider.name}: {request[:80]!r}")
        result = await self._provider.complete(
            CompletionRequest(
                prompt=build_template_prompt(request, file_name),
                json_schema=TEMPLATE_SCHEMA,
                schema_name="template_design",
                system=TEMPLATE_SYSTEM_PROMPT,
            )
        )

        layout = normalize_conflicting_placeholder_keys(parse_layout(result.text))
        name = normalize_file_name(
            file_name or layout.file_name or f"ai-template-{int(time.time() * 1000)}.docx"
        )
        content = build_docx(layout)
        logger.info(f"Generated template {name} ({len(layout.blocks)} blocks, {len(content)} bytes)")
        return GeneratedTemplate(file_name=name, content=content, layout=layout)
