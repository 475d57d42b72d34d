"""Text-node span mapping for WordprocessingML.

Word splits visible text into many ``<w:t>`` runs, so a single placeholder
may be spread over several nodes. `TextNodeIndex` exposes the concatenated
text of a container (paragraph, table row) and maps offsets in that text
back onto the nodes, so matches found on the joined string can be
rewritten in place without touching the surrounding markup.
"""

from lxml import etree

W_NS = "http://schemas.openxmlformats.org/wordprocessingml/2006/main"
XML_SPACE = "{http://www.w3.org/XML/1998/namespace}space"


def w(tag: str) -> str:
    """Return the Clark-notation name of a WordprocessingML element."""
    return f"{{{W_NS}}}{tag}"


def nearest(element: etree._Element, tag: str) -> etree._Element | None:
    """Return the closest ancestor of element with the given tag."""
    parent = element.getparent()
    while parent is not None:
        if parent.tag == tag:
            return parent
        parent = parent.getparent()
    return None


class TextNodeIndex:
    """Concatenated view over a list of ``<w:t>`` elements."""

    def __init__(self, nodes: list[etree._Element]) -> None:
        self.nodes = nodes
        self._starts: list[int] = []
        self._text = ""
        self._reindex()

    @classmethod
    def within(cls, container: etree._Element, boundary: str | None = None) -> "TextNodeIndex":
        """Index the text nodes of container.

        Args:
            container: Element whose descendant ``<w:t>`` nodes are indexed.
            boundary: Optional tag; nodes whose nearest ancestor with that tag
                is not `container` (e.g. rows of a nested table) are skipped.
        """
        nodes = [
            node
            for node in container.iter(w("t"))
            if boundary is None or nearest(node, boundary) is container
        ]
        return cls(nodes)

    @property
    def text(self) -> str:
        return self._text

    def __bool__(self) -> bool:
        return bool(self.nodes)

    def _reindex(self) -> None:
        offset = 0
        self._starts = []
        for node in self.nodes:
            self._starts.append(offset)
            offset += len(node.text or "")
        self._text = "".join(node.text or "" for node in self.nodes)

    def _node_at(self, offset: int) -> int:
        """Return the index of the node holding the character at offset."""
        for i in range(len(self.nodes) - 1, -1, -1):
            length = len(self.nodes[i].text or "")
            if length and self._starts[i] <= offset < self._starts[i] + length:
                return i
        raise IndexError(f"Offset {offset} is outside the indexed text")

    @staticmethod
    def _set_text(node: etree._Element, text: str) -> None:
        node.text = text
        if text != text.strip():
            node.set(XML_SPACE, "preserve")

    def replace(self, start: int, end: int, new_text: str) -> None:
        """Replace the characters [start, end) with new_text.

        The replacement is written into the node holding `start`; the rest
        of the span is removed from the following nodes, whose markup and
        formatting are left untouched.
        """
        if start >= end:
            self.insert(start, new_text)
            return
        first = self._node_at(start)
        last = self._node_at(end - 1)
        first_text = self.nodes[first].text or ""
        head = first_text[: start - self._starts[first]]

        if first == last:
            tail = first_text[end - self._starts[first]:]
            self._set_text(self.nodes[first], head + new_text + tail)
        else:
            self._set_text(self.nodes[first], head + new_text)
            for i in range(first + 1, last):
                self.nodes[i].text = ""
            last_text = self.nodes[last].text or ""
            self._set_text(self.nodes[last], last_text[end - self._starts[last]:])
        self._reindex()

    def insert(self, offset: int, text: str) -> None:
        """Insert text at offset (0 prepends, len(text) appends)."""
        if not self.nodes:
            raise IndexError("No text nodes to insert into")
        if offset >= len(self._text):
            node = self.nodes[-1]
            self._set_text(node, (node.text or "") + text)
        else:
            i = self._node_at(offset)
            node_text = self.nodes[i].text or ""
            local = offset - self._starts[i]
            self._set_text(self.nodes[i], node_text[:local] + text + node_text[local:])
        self._reindex()

    def prepend(self, text: str) -> None:
        """Insert text at the start of the first node."""
        node = self.nodes[0]
        self._set_text(node, text + (node.text or ""))
        self._reindex()

    def append(self, text: str) -> None:
        """Insert text at the end of the last node."""
        node = self.nodes[-1]
        self._set_text(node, (node.text or "") + text)
        self._reindex()
