"""Placeholder-to-Jinja2 compiler.

Rewrites the placeholder notation of a WordprocessingML part into the
Jinja2 dialect understood by docxtpl:

- ``{{key}}`` becomes ``{{ value(_scope_N, "key") }}``
- ``{{#key}}...{{/key}}`` becomes a ``for`` loop over ``section(...)``

Each loop binds a new scope variable, so nested loops see their own row
first and fall back to enclosing rows and the top-level data. Loop tags
are placed at the narrowest level that keeps the document well-formed:
whole table rows (``{%tr %}``) when the tags sit in different cells of
one table or wrap a whole row, whole paragraphs (``{%p %}``) when each
tag is alone in its paragraph, and inline otherwise.
"""

import json
import logging
import re
from dataclasses import dataclass, field

from lxml import etree

from docfiller.interfaces.template import TemplateRenderError
from docfiller.strategies.template_engine.grammar import PlaceholderTag, iter_tags
from docfiller.strategies.template_engine.loop_normalizer import parse_xml, serialize_xml
from docfiller.strategies.template_engine.textnodes import W_NS, TextNodeIndex, nearest, w

logger = logging.getLogger(__name__)

# Jinja2 delimiters that must survive as literal text (docxtpl restores them)
_LITERALS = re.compile(r"\{\{|\}\}|\{%|%\}")
_ESCAPES = {"{{": "{_{", "}}": "}_}", "{%": "{_%", "%}": "%_}"}


def scope_var(depth: int) -> str:
    return f"_scope_{depth}"


@dataclass
class _Site:
    """A tag located inside one paragraph."""

    tag: PlaceholderTag
    paragraph: etree._Element
    index: TextNodeIndex
    depth: int = 0

    @property
    def source(self) -> str:
        """The tag as written in the paragraph."""
        return self.index.text[self.tag.start:self.tag.end]

    @property
    def alone(self) -> bool:
        """True if the paragraph holds nothing but this tag."""
        return self.index.text.strip() == self.source


@dataclass
class _Loop:
    open: _Site
    close: _Site


@dataclass
class _Edits:
    index: TextNodeIndex
    spans: list[tuple[int, int, str]] = field(default_factory=list)


class TemplateCompiler:
    """Compiles placeholder notation into docxtpl-compatible Jinja2."""

    def compile(self, xml: str | bytes) -> str | bytes:
        """Compile one document part.

        Returns:
            The rewritten XML, of the same type as the input.

        Raises:
            TemplateRenderError: On unbalanced or mis-nested loop tags.
        """
        root = parse_xml(xml)
        self.compile_tree(root)
        return serialize_xml(root, xml)

    def compile_tree(self, root: etree._Element) -> int:
        """Compile an already parsed part in place.

        Returns:
            The number of placeholder tags rewritten.
        """
        edits: list[_Edits] = []
        sites: list[_Site] = []

        for paragraph in root.iter(w("p")):
            index = TextNodeIndex.within(paragraph, boundary=w("p"))
            if not index:
                continue
            entry = _Edits(index)
            cursor = 0
            for tag in iter_tags(index.text):
                sites.append(_Site(tag, paragraph, index))
                entry.spans.extend(self._escape_literals(index.text, cursor, tag.start))
                cursor = tag.end
            entry.spans.extend(self._escape_literals(index.text, cursor, len(index.text)))
            edits.append(entry)

        if not sites:
            return 0

        loops = self._pair_loops(sites)
        spans = {id(entry.index): entry for entry in edits}
        rows_before: dict[etree._Element, list[str]] = {}
        rows_after: dict[etree._Element, list[str]] = {}

        # loops arrive innermost first, so outer statements wrap inner ones
        for loop in loops:
            head = (
                f"for {scope_var(loop.open.depth)} in section("
                f"{scope_var(loop.open.depth - 1)}, {self._literal(loop.open.tag.name)})"
            )
            placement = self._row_span(loop)
            if placement is not None:
                first_row, last_row = placement
                rows_before.setdefault(first_row, []).insert(0, f"{{%tr {head} %}}")
                rows_after.setdefault(last_row, []).append("{%tr endfor %}")
                opening, closing = "", ""
            elif loop.open.paragraph is not loop.close.paragraph and loop.open.alone and loop.close.alone:
                opening, closing = f"{{%p {head} %}}", "{%p endfor %}"
            else:
                opening, closing = f"{{% {head} %}}", "{% endfor %}"
            spans[id(loop.open.index)].spans.append((loop.open.tag.start, loop.open.tag.end, opening))
            spans[id(loop.close.index)].spans.append((loop.close.tag.start, loop.close.tag.end, closing))

        for site in sites:
            if site.tag.is_open or site.tag.is_close:
                continue
            expression = (
                f"{{{{ value({scope_var(site.depth)}, {self._literal(site.tag.name)}) }}}}"
            )
            spans[id(site.index)].spans.append((site.tag.start, site.tag.end, expression))

        for entry in edits:
            for start, end, text in sorted(entry.spans, key=lambda span: span[0], reverse=True):
                entry.index.replace(start, end, text)

        for row, statements in rows_before.items():
            for statement in statements:
                row.addprevious(self._statement_row(statement))
        for row, statements in rows_after.items():
            anchor = row
            for statement in statements:
                new_row = self._statement_row(statement)
                anchor.addnext(new_row)
                anchor = new_row

        logger.debug(f"Compiled {len(sites)} tags ({len(loops)} loops)")
        return len(sites)

    @staticmethod
    def _literal(name: str) -> str:
        return json.dumps(name, ensure_ascii=False)

    @staticmethod
    def _escape_literals(text: str, start: int, end: int) -> list[tuple[int, int, str]]:
        spans = []
        segment = text[start:end]
        for match in _LITERALS.finditer(segment):
            spans.append((start + match.start(), start + match.end(), _ESCAPES[match.group(0)]))
        # a lone "{" right before a tag would merge with the tag's delimiter
        if end < len(text) and segment.endswith("{") and not segment.endswith("{{"):
            spans.append((end - 1, end, '{{ "{" }}'))
        return spans

    @staticmethod
    def _pair_loops(sites: list[_Site]) -> list[_Loop]:
        """Match open and close tags, assigning scope depths to every site."""
        stack: list[_Site] = []
        loops: list[_Loop] = []
        for site in sites:
            tag = site.tag
            if tag.is_open:
                stack.append(site)
                site.depth = len(stack)
            elif tag.is_close:
                if not stack:
                    raise TemplateRenderError(
                        f"Unexpected {tag.raw}: no loop is open",
                        {"tag": tag.raw},
                    )
                opened = stack.pop()
                if opened.tag.name != tag.name:
                    raise TemplateRenderError(
                        f"{tag.raw} closes {opened.tag.raw}; loops must be closed in reverse order",
                        {"tag": tag.raw, "open": opened.tag.raw},
                    )
                site.depth = opened.depth
                loops.append(_Loop(opened, site))
            else:
                site.depth = len(stack)
        if stack:
            raise TemplateRenderError(
                f"{stack[-1].tag.raw} is never closed",
                {"tag": stack[-1].tag.raw},
            )
        return loops

    @staticmethod
    def _row_span(loop: _Loop) -> tuple[etree._Element, etree._Element] | None:
        """Return the (first, last) rows when the loop spans cells of one table.

        A loop kept inside one cell also repeats its row when its tags wrap
        the whole text of that row.
        """
        open_cell = nearest(loop.open.paragraph, w("tc"))
        close_cell = nearest(loop.close.paragraph, w("tc"))
        if open_cell is None or close_cell is None:
            return None
        if open_cell is close_cell:
            row = nearest(open_cell, w("tr"))
            if row is None:
                return None
            text = TextNodeIndex.within(row, boundary=w("tr")).text.strip()
            if text.startswith(loop.open.source) and text.endswith(loop.close.source):
                return row, row
            return None
        first_row = nearest(open_cell, w("tr"))
        last_row = nearest(close_cell, w("tr"))
        if first_row is None or last_row is None or first_row.getparent() is not last_row.getparent():
            return None
        return first_row, last_row

    @staticmethod
    def _statement_row(statement: str) -> etree._Element:
        row = etree.Element(w("tr"), nsmap={"w": W_NS})
        cell = etree.SubElement(row, w("tc"))
        paragraph = etree.SubElement(cell, w("p"))
        run = etree.SubElement(paragraph, w("r"))
        text = etree.SubElement(run, w("t"))
        text.text = statement
        return row
