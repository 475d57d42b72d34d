"""DOCX package access.

A .docx file is a zip archive of XML parts. `DocxPackage` reads the parts
into memory, lets callers read and replace them as text, and writes the
archive back out with the original member order.
"""

import io
import logging
import re
import zipfile

from docfiller.interfaces.template import TemplateRenderError

logger = logging.getLogger(__name__)

MAIN_DOCUMENT = "word/document.xml"
_HEADER_FOOTER = re.compile(r"^word/(header|footer)\d*\.xml$")


class DocxPackage:
    """In-memory view of a .docx zip package."""

    def __init__(self, parts: dict[str, bytes]) -> None:
        self._parts = parts

    @classmethod
    def from_bytes(cls, content: bytes) -> "DocxPackage":
        """Load a package from bytes.

        Raises:
            TemplateRenderError: If the bytes are not a Word package.
        """
        try:
            with zipfile.ZipFile(io.BytesIO(content)) as zf:
                parts = {info.filename: zf.read(info) for info in zf.infolist()}
        except zipfile.BadZipFile as e:
            raise TemplateRenderError(f"Template is not a valid .docx package: {e}") from e

        if MAIN_DOCUMENT not in parts:
            raise TemplateRenderError(f"Template package has no {MAIN_DOCUMENT} part")
        return cls(parts)

    @property
    def part_names(self) -> list[str]:
        return list(self._parts)

    def template_parts(self) -> list[str]:
        """Return the parts that may hold placeholders: body, headers, footers."""
        return [MAIN_DOCUMENT] + sorted(
            name for name in self._parts if _HEADER_FOOTER.match(name)
        )

    def read_xml(self, name: str) -> bytes:
        """Return the raw XML of a part."""
        try:
            return self._parts[name]
        except KeyError:
            raise KeyError(f"Package has no part named {name}") from None

    def write_xml(self, name: str, xml: str | bytes) -> None:
        """Replace (or add) a part."""
        self._parts[name] = xml.encode("utf-8") if isinstance(xml, str) else xml

    def to_bytes(self) -> bytes:
        """Serialize the package as a deflated zip archive."""
        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as zf:
            for name, data in self._parts.items():
                zf.writestr(name, data)
        logger.debug(f"Serialized package with {len(self._parts)} parts")
        return buffer.getvalue()
