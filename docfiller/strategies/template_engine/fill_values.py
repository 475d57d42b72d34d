"""Fill-value normalization.

Model replies are loosely shaped: keys may keep their tag decoration
(``{{name}}``, ``#tasks/``) and loop values arrive as row lists, columnar
objects, JSON strings or markdown tables. `FillValueNormalizer` maps a raw
reply onto the declared placeholder list so every field gets a value of
the right shape.
"""

import json
import logging
import re
from collections.abc import Mapping
from typing import Any

from docfiller.interfaces.template import FillShapeError
from docfiller.strategies.template_engine.grammar import strip_description
from docfiller.strategies.template_engine.models import FilledPlaceholder, LoopRow, PlaceholderField

logger = logging.getLogger(__name__)

_CELL_SPLIT = re.compile(r"(?<!\\)\|")
_SEPARATOR_CELL = re.compile(r"^:?-+:?$")


def clean_key(key: str) -> str:
    """Strip tag decoration from a key returned by a model.

    ``" {{#tasks:Rows}} "`` and ``"#tasks/"`` both become ``"tasks"``.
    """
    cleaned = key.strip()
    if cleaned.startswith("{{"):
        cleaned = cleaned[2:]
    if cleaned.endswith("}}"):
        cleaned = cleaned[:-2]
    cleaned = cleaned.strip().lstrip("#/").rstrip("/")
    return strip_description(cleaned)


def parse_completion_json(text: str) -> dict[str, Any]:
    """Load the JSON object contained in a model reply.

    The whole reply is tried first, then the span from the first ``{`` to
    the last ``}`` (replies wrapped in prose or code fences).

    Raises:
        ValueError: If no JSON object can be found.
    """
    candidates = [text.strip()]
    start, end = text.find("{"), text.rfind("}")
    if start != -1 and end > start:
        candidates.append(text[start:end + 1])

    for candidate in candidates:
        try:
            data = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(data, dict):
            return data
    raise ValueError("Model reply does not contain a JSON object")


def parse_markdown_table(text: str) -> tuple[list[str], list[list[str]]] | None:
    """Split a markdown table into its header and body rows.

    Returns:
        (header, rows), or None when text holds no table.
    """
    lines = [line.strip() for line in text.splitlines() if line.strip().startswith("|")]
    if len(lines) < 2:
        return None

    def cells(line: str) -> list[str]:
        inner = line.strip()
        inner = inner[1:] if inner.startswith("|") else inner
        inner = inner[:-1] if inner.endswith("|") and not inner.endswith("\\|") else inner
        return [cell.strip().replace("\\|", "|") for cell in _CELL_SPLIT.split(inner)]

    header = cells(lines[0])
    rows = [
        row for row in (cells(line) for line in lines[1:])
        if not all(_SEPARATOR_CELL.match(cell) for cell in row if cell)
    ]
    return header, rows


def _stringify(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    return json.dumps(value, ensure_ascii=False)


class FillValueNormalizer:
    """Coerces raw model output into values for each declared placeholder.

    In strict mode a composite value (object or array) for a scalar field
    raises FillShapeError. In lenient mode it is stringified: a list of
    strings is joined with newlines, anything else is JSON-encoded.
    """

    def __init__(self, strict: bool = True) -> None:
        self._strict = strict

    def normalize(
        self, fields: list[PlaceholderField], raw: Mapping[str, Any] | str
    ) -> list[FilledPlaceholder]:
        """Bind a value to every declared field.

        Args:
            fields: The extracted placeholder list.
            raw: The model's reply, as a mapping or as text containing JSON.

        Returns:
            One FilledPlaceholder per field, in declaration order.

        Raises:
            FillShapeError: If a value cannot take its field's shape.
            ValueError: If `raw` is text without a JSON object.
        """
        if isinstance(raw, str):
            raw = parse_completion_json(raw)

        values: dict[str, Any] = {}
        for key, value in raw.items():
            cleaned = clean_key(str(key))
            if cleaned and cleaned not in values:
                values[cleaned] = value

        declared = {field.key for field in fields}
        ignored = sorted(set(values) - declared)
        if ignored:
            logger.debug(f"Ignoring undeclared keys in fill values: {ignored}")

        filled = []
        for field in fields:
            value = values.get(field.key)
            if field.is_loop:
                coerced: str | list[LoopRow] = self._coerce_rows(field, value)
            else:
                coerced = self._coerce_scalar(field, value)
            filled.append(FilledPlaceholder(**field.model_dump(exclude={"value"}), value=coerced))

        missing = [field.key for field in fields if field.key not in values]
        logger.info(
            f"Normalized {len(filled)} fill values"
            + (f" ({len(missing)} missing: {missing})" if missing else "")
        )
        return filled

    def _coerce_scalar(self, field: PlaceholderField, value: Any) -> str:
        if not isinstance(value, (list, tuple, dict)):
            return _stringify(value)
        if self._strict:
            raise FillShapeError(
                field.key, f"expected text, got {type(value).__name__}"
            )
        if isinstance(value, (list, tuple)) and all(isinstance(item, str) for item in value):
            return "\n".join(value)
        return json.dumps(value, ensure_ascii=False)

    def _coerce_rows(self, field: PlaceholderField, value: Any) -> list[LoopRow]:
        if value is None:
            return []
        if isinstance(value, str):
            return self._rows_from_text(field, value)
        if isinstance(value, Mapping):
            if not value:
                return []
            if all(isinstance(column, (list, tuple)) for column in value.values()):
                return self._rows_from_columns(field, value)
            return [self._row(field, value)]
        if isinstance(value, (list, tuple)):
            rows = []
            for item in value:
                if isinstance(item, Mapping):
                    rows.append(self._row(field, item))
                elif field.fields and len(field.fields) == 1:
                    rows.append({field.fields[0]: _stringify(item)})
                else:
                    raise FillShapeError(
                        field.key, f"rows must be objects, got {type(item).__name__}"
                    )
            return rows
        raise FillShapeError(field.key, f"expected rows, got {type(value).__name__}")

    def _rows_from_text(self, field: PlaceholderField, text: str) -> list[LoopRow]:
        if not text.strip():
            return []
        try:
            decoded = json.loads(text)
        except json.JSONDecodeError:
            decoded = None
        if isinstance(decoded, (list, dict)):
            return self._coerce_rows(field, decoded)

        table = parse_markdown_table(text)
        if table is None:
            raise FillShapeError(field.key, "expected rows, got text that is neither JSON nor a table")
        header, body = table
        names = field.fields or header
        by_name = {name.lower(): name for name in names}
        # map table columns onto loop fields by header, else by position
        columns = [by_name.get(cell.lower()) for cell in header]
        if not any(columns):
            columns = list(names[: len(header)])
        rows = []
        for cells in body:
            row = {column: cell for column, cell in zip(columns, cells) if column}
            rows.append(self._row(field, row))
        return rows

    def _rows_from_columns(self, field: PlaceholderField, columns: Mapping[str, Any]) -> list[LoopRow]:
        length = max(len(column) for column in columns.values())
        rows = []
        for i in range(length):
            row = {name: column[i] if i < len(column) else None for name, column in columns.items()}
            rows.append(self._row(field, row))
        return rows

    @staticmethod
    def _row(field: PlaceholderField, item: Mapping[str, Any]) -> LoopRow:
        names = field.fields or [str(key) for key in item]
        cleaned = {clean_key(str(key)): value for key, value in item.items()}
        return {name: _stringify(cleaned.get(name)) for name in names}


def to_render_data(filled: list[FilledPlaceholder]) -> dict[str, str | list[LoopRow]]:
    """Return the ``{key: value}`` mapping consumed by the renderer."""
    return {placeholder.key: placeholder.value for placeholder in filled}
