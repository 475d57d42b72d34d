"""Simple text-based document parser.

A fallback parser for plain text source files that need no
document-format handling.
"""

import logging

from docfiller.interfaces.parser import BaseParser, Document, ParsingError

logger = logging.getLogger(__name__)


class SimpleTextParser(BaseParser):
    """Simple parser for plain text, markdown and CSV files.

    This is a lightweight fallback parser that decodes files as-is
    without any complex extraction logic.
    """

    def __init__(
        self,
        encoding: str = "utf-8",
    ) -> None:
        """Initialize the simple text parser.

        Args:
            encoding: The character encoding to use when decoding files.
        """
        self._encoding = encoding

    def parse(self, content: bytes, source: str = "") -> Document:
        """Decode a plain text document.

        Args:
            content: The raw file bytes.
            source: Original filename for metadata.

        Returns:
            A Document with the decoded content.

        Raises:
            ParsingError: If the file encoding is incorrect.
        """
        try:
            text = content.decode(self._encoding)
        except UnicodeDecodeError as e:
            logger.error(f"Encoding error reading {source or '<upload>'}: {e}")
            raise ParsingError(f"File is not valid {self._encoding} text: {e}") from e

        # strip a UTF-8 byte order mark written by some editors
        text = text.lstrip("\ufeff")

        logger.info(f"Successfully read {len(text)} characters from {source or '<upload>'}")
        return Document(
            content=text,
            metadata={
                "parser": "simple_text",
                "file_size": len(content),
            },
            source=source,
        )

    @property
    def supported_extensions(self) -> set[str]:
        """Return supported file extensions."""
        return {".txt", ".md", ".csv", ".json", ".xml"}
