"""Abstract base class for document text parsers.

The Strategy Pattern allows different parsing implementations
to be interchangeable at runtime.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class Document:
    """Represents a parsed document with metadata.

    Attributes:
        content: The extracted text content from the document.
        metadata: Additional parser-specific information (paragraph count, etc.).
        source: The original filename or identifier.
    """

    content: str
    metadata: dict[str, Any] = field(default_factory=dict)
    source: str = ""


class ParsingError(Exception):
    """Raised when a document cannot be parsed."""


class BaseParser(ABC):
    """Abstract base class for document parsing strategies.

    All concrete parser implementations must inherit from this class
    and implement the `parse` method.

    Example:
        ```python
        class DocxTextParser(BaseParser):
            def parse(self, content: bytes, source: str = "") -> Document:
                # Implementation here
                pass
        ```
    """

    @abstractmethod
    def parse(self, content: bytes, source: str = "") -> Document:
        """Parse raw file bytes into text.

        Args:
            content: The uploaded file bytes.
            source: The original filename, kept in the result.

        Returns:
            A Document containing the flattened text and metadata.

        Raises:
            ParsingError: If the file cannot be parsed.
        """
        ...

    @property
    @abstractmethod
    def supported_extensions(self) -> set[str]:
        """Return the set of file extensions supported by this parser.

        Returns:
            A set of file extensions (e.g., {'.txt', '.docx'}).
        """
        ...

    def supports_file(self, filename: str) -> bool:
        """Check if this parser supports the given file.

        Args:
            filename: The name of the file to check.

        Returns:
            True if the file extension is supported, False otherwise.
        """
        import os

        _, ext = os.path.splitext(filename)
        return ext.lower() in self.supported_extensions
