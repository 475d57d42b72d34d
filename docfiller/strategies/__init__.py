"""Concrete strategy implementations."""

from docfiller.strategies.parsers import (
    DocxTextParser,
    SimpleTextParser,
)
from docfiller.strategies.template_engine import (
    FillValueNormalizer,
    LoopNormalizer,
    PlaceholderExtractor,
    TemplateGenerator,
    TemplateRenderer,
)
from docfiller.strategies.completion import (
    GrokProvider,
    OpenAIProvider,
    PlaceholderFiller,
)

__all__ = [
    "DocxTextParser",
    "SimpleTextParser",
    "FillValueNormalizer",
    "LoopNormalizer",
    "PlaceholderExtractor",
    "TemplateGenerator",
    "TemplateRenderer",
    "GrokProvider",
    "OpenAIProvider",
    "PlaceholderFiller",
]
