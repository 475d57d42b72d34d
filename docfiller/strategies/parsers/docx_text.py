"""DOCX text flattening parser.

Produces the visible text of a Word document with one line per paragraph,
table cell paragraphs included in document order.
"""

import io
import logging
import zipfile

from docfiller.interfaces.parser import BaseParser, Document, ParsingError

logger = logging.getLogger(__name__)


class DocxTextParser(BaseParser):
    """Flattens a .docx package to plain text using python-docx.

    Runs are concatenated inside each paragraph so that placeholder tags
    split across runs by Word come back in one piece.
    """

    def parse(self, content: bytes, source: str = "") -> Document:
        """Extract the text of every body paragraph.

        Args:
            content: The .docx package bytes.
            source: Original filename for metadata.

        Returns:
            A Document whose content has paragraphs separated by newlines.

        Raises:
            ParsingError: If the bytes are not a readable Word document.
        """
        from docx import Document as load_docx
        from docx.opc.exceptions import PackageNotFoundError
        from docx.oxml.ns import qn
        from docx.text.paragraph import Paragraph

        try:
            doc = load_docx(io.BytesIO(content))
        except (zipfile.BadZipFile, PackageNotFoundError, KeyError, ValueError) as e:
            logger.error(f"Failed to open Word document {source or '<upload>'}: {e}")
            raise ParsingError(f"Not a valid .docx file: {e}") from e

        # iter() walks nested tables and text boxes in document order
        lines = [
            Paragraph(p, doc).text
            for p in doc.element.body.iter(qn("w:p"))
        ]
        text = "\n".join(lines)

        logger.info(f"Extracted {len(text)} characters from {len(lines)} paragraphs ({source or '<upload>'})")
        return Document(
            content=text,
            metadata={"parser": "docx", "paragraphs": len(lines)},
            source=source,
        )

    @property
    def supported_extensions(self) -> set[str]:
        """Return supported file extensions."""
        return {".docx"}
