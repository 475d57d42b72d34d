"""Template extraction and rendering interfaces.

Defines abstract base classes and error types for the placeholder
template pipeline: extraction, loop normalization and rendering.
"""

from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import Any


class TemplateError(Exception):
    """Base class for placeholder template errors."""


class TemplateValidationError(TemplateError):
    """Raised when a template fails structural validation.

    Attributes:
        errors: Every validation message collected during extraction.
    """

    def __init__(self, errors: list[str]) -> None:
        self.errors = list(errors)
        super().__init__("; ".join(self.errors) or "Template validation failed")


class UnsupportedTemplateError(TemplateError):
    """Raised for template layouts the loop normalizer cannot convert."""


class TemplateRenderError(TemplateError):
    """Raised when the rendering engine rejects a template or its data.

    Attributes:
        explanation: Human-readable reason, suitable for showing to the user.
        details: Optional engine-specific context (line, offending tag...).
    """

    def __init__(self, explanation: str, details: dict[str, Any] | None = None) -> None:
        self.explanation = explanation
        self.details = details or {}
        super().__init__(explanation)


class FillShapeError(TemplateError):
    """Raised when a fill value cannot be coerced to its placeholder's shape."""

    def __init__(self, key: str, detail: str) -> None:
        self.key = key
        self.detail = detail
        super().__init__(f"Invalid value for '{key}': {detail}")


class BasePlaceholderExtractor(ABC):
    """Abstract base class for placeholder extraction strategies.

    Scans flattened template text and produces the normalized field list.
    """

    @abstractmethod
    def extract(self, text: str) -> Any:
        """Extract placeholder fields from flattened template text.

        Args:
            text: Plain text of the template, paragraphs separated by newlines.

        Returns:
            An ExtractionResult with fields, errors and warnings.
        """

    @property
    def supported_extensions(self) -> set[str]:
        """Return supported template file extensions."""
        return {".docx"}


class BaseTemplateRenderer(ABC):
    """Abstract base class for template rendering strategies."""

    @abstractmethod
    def render(self, template: bytes, data: Mapping[str, Any]) -> bytes:
        """Render a template package with the given data.

        Args:
            template: The DOCX package bytes.
            data: Values keyed by top-level placeholder key. Loop keys map to
                lists of row mappings.

        Returns:
            The rendered DOCX package bytes.

        Raises:
            TemplateRenderError: If the template or data cannot be rendered.
        """
