"""XML loop normalizer.

Rewrites table rows that use dotted shorthand (``{{tasks.name}}``) into
explicit loop form (``{{#tasks}}{{name}}...{{/tasks}}``), which is the only
loop syntax the renderer understands. Each ``<w:tr>`` is one loop iteration.
"""

import logging

from lxml import etree

from docfiller.interfaces.template import TemplateRenderError, UnsupportedTemplateError
from docfiller.strategies.template_engine.grammar import DOTTED_PATTERN, iter_tags
from docfiller.strategies.template_engine.textnodes import TextNodeIndex, w

logger = logging.getLogger(__name__)

_PARSER = etree.XMLParser(resolve_entities=False, huge_tree=True)


def parse_xml(xml: str | bytes) -> etree._Element:
    """Parse a document part, raising TemplateRenderError on bad markup."""
    data = xml.encode("utf-8") if isinstance(xml, str) else xml
    try:
        return etree.fromstring(data, _PARSER)
    except etree.XMLSyntaxError as e:
        raise TemplateRenderError(f"Template XML is not well-formed: {e}") from e


def serialize_xml(root: etree._Element, like: str | bytes) -> str | bytes:
    """Serialize root back to the type of the original input."""
    data = etree.tostring(
        root.getroottree(), xml_declaration=True, encoding="UTF-8", standalone=True
    )
    return data.decode("utf-8") if isinstance(like, str) else data


class LoopNormalizer:
    """Converts dotted-shorthand table rows into explicit loop rows.

    Rows are assumed to belong to a single loop family. In strict mode a
    row that mixes two dotted parents raises UnsupportedTemplateError; in
    lenient mode only the first parent is converted and the others are
    left as they are.
    """

    def __init__(self, strict: bool = True) -> None:
        self._strict = strict

    def normalize(self, xml: str | bytes) -> str | bytes:
        """Normalize every table row of a document part.

        Args:
            xml: The part XML (e.g. word/document.xml).

        Returns:
            The rewritten XML, of the same type as the input. Parts without
            any dotted placeholder are returned unchanged.
        """
        root = parse_xml(xml)
        converted = self.normalize_tree(root)
        if not converted:
            return xml
        return serialize_xml(root, xml)

    def normalize_tree(self, root: etree._Element) -> int:
        """Normalize rows of an already parsed part in place.

        Returns:
            The number of rows rewritten.
        """
        converted = 0
        for row in root.iter(w("tr")):
            if self._normalize_row(row):
                converted += 1
        if converted:
            logger.info(f"Converted {converted} dotted-shorthand row(s) into loops")
        return converted

    def _normalize_row(self, row: etree._Element) -> bool:
        index = TextNodeIndex.within(row, boundary=w("tr"))
        if not index:
            return False

        # dotted tags already inside another loop are paths, not loop rows
        spans = _loop_spans(index.text)
        matches = []
        for match in DOTTED_PATTERN.finditer(index.text):
            enclosing = _innermost(spans, match.start())
            if enclosing is None or enclosing == match.group("parent"):
                matches.append(match)
        if not matches:
            return False

        parent = matches[0].group("parent")
        others = sorted({m.group("parent") for m in matches} - {parent})
        if others:
            if self._strict:
                raise UnsupportedTemplateError(
                    f"Table row mixes loop '{parent}' with {', '.join(repr(o) for o in others)}; "
                    "a row can only belong to one loop"
                )
            logger.warning(
                f"Row mixes loop '{parent}' with {others}; only '{parent}' is converted"
            )

        has_explicit_loop = any(name == parent for _, _, name in spans)

        for match in reversed(matches):
            if match.group("parent") != parent:
                continue
            description = match.group("description") or ""
            index.replace(match.start(), match.end(), f"{{{{{match.group('child')}{description}}}}}")

        if not has_explicit_loop:
            index.prepend(f"{{{{#{parent}}}}}")
            index.append(f"{{{{/{parent}}}}}")
        return True


def _loop_spans(text: str) -> list[tuple[int, int, str]]:
    """Return (start, end, name) for each explicit loop body in text.

    A loop opened but not closed in text runs to its end; a loop closed
    without an opening tag in text starts at its beginning.
    """
    spans = []
    stack: list[tuple[int, str]] = []
    for tag in iter_tags(text):
        if tag.is_open:
            stack.append((tag.end, tag.name))
        elif tag.is_close:
            if stack and stack[-1][1] == tag.name:
                start, name = stack.pop()
                spans.append((start, tag.start, name))
            else:
                spans.append((0, tag.start, tag.name))
    spans.extend((start, len(text), name) for start, name in stack)
    return spans


def _innermost(spans: list[tuple[int, int, str]], offset: int) -> str | None:
    """Return the name of the narrowest loop body containing offset."""
    inside = [span for span in spans if span[0] <= offset < span[1]]
    if not inside:
        return None
    return min(inside, key=lambda span: span[1] - span[0])[2]
