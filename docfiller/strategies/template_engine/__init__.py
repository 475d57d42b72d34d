"""Template engine strategies.

Placeholder extraction, loop normalization, rendering and fill-value
normalization for Word templates.
"""

from docfiller.strategies.template_engine.compiler import TemplateCompiler
from docfiller.strategies.template_engine.extractor import PlaceholderExtractor
from docfiller.strategies.template_engine.fill_values import (
    FillValueNormalizer,
    clean_key,
    parse_completion_json,
    to_render_data,
)
from docfiller.strategies.template_engine.generator import GeneratedTemplate, TemplateGenerator
from docfiller.strategies.template_engine.loop_normalizer import LoopNormalizer
from docfiller.strategies.template_engine.models import (
    ExtractionResult,
    FilledPlaceholder,
    PlaceholderField,
)
from docfiller.strategies.template_engine.package import DocxPackage
from docfiller.strategies.template_engine.renderer import TemplateRenderer

__all__ = [
    "DocxPackage",
    "ExtractionResult",
    "FilledPlaceholder",
    "FillValueNormalizer",
    "GeneratedTemplate",
    "LoopNormalizer",
    "PlaceholderExtractor",
    "PlaceholderField",
    "TemplateCompiler",
    "TemplateGenerator",
    "TemplateRenderer",
    "clean_key",
    "parse_completion_json",
    "to_render_data",
]
