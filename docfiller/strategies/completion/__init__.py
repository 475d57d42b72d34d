"""AI completion providers and the placeholder filler."""

from docfiller.strategies.completion.filler import (
    FillEvidence,
    FillProcessingMeta,
    FillResult,
    PlaceholderFiller,
)
from docfiller.strategies.completion.grok import GrokProvider
from docfiller.strategies.completion.openai import OpenAIProvider

__all__ = [
    "FillEvidence",
    "FillProcessingMeta",
    "FillResult",
    "GrokProvider",
    "OpenAIProvider",
    "PlaceholderFiller",
]
