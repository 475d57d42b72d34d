"""Abstract base classes and error types for the document pipeline."""

from docfiller.interfaces.completion import (
    BaseCompletionProvider,
    CleanupStatus,
    CompletionError,
    CompletionRequest,
    CompletionResult,
    CredentialError,
    Evidence,
    ProviderConfig,
    SourceDocument,
)
from docfiller.interfaces.parser import BaseParser, Document, ParsingError
from docfiller.interfaces.template import (
    BasePlaceholderExtractor,
    BaseTemplateRenderer,
    FillShapeError,
    TemplateError,
    TemplateRenderError,
    TemplateValidationError,
    UnsupportedTemplateError,
)

__all__ = [
    "BaseCompletionProvider",
    "BaseParser",
    "BasePlaceholderExtractor",
    "BaseTemplateRenderer",
    "CleanupStatus",
    "CompletionError",
    "CompletionRequest",
    "CompletionResult",
    "CredentialError",
    "Document",
    "Evidence",
    "FillShapeError",
    "ParsingError",
    "ProviderConfig",
    "SourceDocument",
    "TemplateError",
    "TemplateRenderError",
    "TemplateValidationError",
    "UnsupportedTemplateError",
]
