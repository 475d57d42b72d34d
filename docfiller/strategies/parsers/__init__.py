"""Concrete parser implementations."""

from docfiller.strategies.parsers.docx_text import DocxTextParser
from docfiller.strategies.parsers.simple import SimpleTextParser

__all__ = [
    "DocxTextParser",
    "SimpleTextParser",
]
