"""Placeholder extractor strategy.

Scans the flattened text of a template for placeholder tags and builds
the normalized field list (scalars and loops with their child fields).
"""

import logging
from collections import defaultdict

from docfiller.interfaces.template import BasePlaceholderExtractor, TemplateValidationError
from docfiller.strategies.parsers.docx_text import DocxTextParser
from docfiller.strategies.template_engine.grammar import PlaceholderTag, TagSyntaxError, iter_tags
from docfiller.strategies.template_engine.models import ExtractionResult, PlaceholderField

logger = logging.getLogger(__name__)


class PlaceholderExtractor(BasePlaceholderExtractor):
    """Extracts placeholder fields from template text.

    In strict mode a loop without any child field is a validation error.
    In lenient mode it is only reported as a warning. Unbalanced loop tags
    are errors in both modes.
    """

    def __init__(self, strict: bool = True, parser: DocxTextParser | None = None) -> None:
        """Initialize the extractor.

        Args:
            strict: Treat loops without fields as fatal validation errors.
            parser: Text parser used by `extract_from_docx`.
        """
        self._strict = strict
        self._parser = parser or DocxTextParser()

    @property
    def strict(self) -> bool:
        return self._strict

    def extract(self, text: str) -> ExtractionResult:
        """Extract placeholder fields from flattened template text.

        Args:
            text: Template text, paragraphs separated by newlines.

        Returns:
            ExtractionResult. When `errors` is non-empty, `fields` is empty.
        """
        if not text:
            return ExtractionResult()

        tags = list(iter_tags(text))
        fields: dict[str, PlaceholderField] = {}
        warnings: list[str] = []
        open_scopes: list[str] = []

        for tag in tags:
            if tag.is_open:
                open_scopes.append(tag.name)
                if tag.name not in fields:
                    fields[tag.name] = PlaceholderField(
                        key=tag.name,
                        description=tag.description,
                        is_loop=True,
                        fields=[],
                    )
                else:
                    fields[tag.name].set_description(tag.description)
                continue

            if tag.is_close:
                if tag.name in open_scopes:
                    # remove the innermost scope with this key
                    idx = len(open_scopes) - 1 - open_scopes[::-1].index(tag.name)
                    del open_scopes[idx]
                continue

            if tag.is_dotted:
                try:
                    parent, child = tag.split_dotted()
                except TagSyntaxError as e:
                    logger.warning(f"Skipping malformed tag at offset {tag.start}: {e}")
                    warnings.append(str(e))
                    continue
                entry = fields.get(parent)
                if entry is None:
                    entry = fields[parent] = PlaceholderField(key=parent, is_loop=True, fields=[])
                elif not entry.is_loop:
                    logger.debug(f"Promoting scalar '{parent}' to loop via dotted tag")
                    entry.is_loop = True
                entry.add_field(child, tag.description)
                continue

            scope = self._innermost_loop(open_scopes, fields)
            if scope is not None:
                scope.add_field(tag.name, tag.description)
            elif tag.name in fields:
                fields[tag.name].set_description(tag.description)
            else:
                fields[tag.name] = PlaceholderField(key=tag.name, description=tag.description)

        errors = self._check_loop_balance(tags)

        for entry in fields.values():
            if entry.is_loop and not entry.fields:
                message = (
                    f"Loop '{entry.key}' has no fields: add tags between "
                    f"{{{{#{entry.key}}}}} and {{{{/{entry.key}}}}}"
                )
                if self._strict:
                    errors.append(message)
                else:
                    warnings.append(message)

        if errors:
            logger.info(f"Extraction failed with {len(errors)} validation error(s)")
            return ExtractionResult(errors=errors, warnings=warnings)

        logger.info(
            f"Extraction complete: {len(fields)} placeholders "
            f"({sum(1 for f in fields.values() if f.is_loop)} loops) from {len(tags)} tags"
        )
        return ExtractionResult(fields=list(fields.values()), warnings=warnings)

    def extract_or_raise(self, text: str) -> ExtractionResult:
        """Extract placeholders, raising when validation fails.

        Raises:
            TemplateValidationError: With every collected error message.
        """
        result = self.extract(text)
        if result.errors:
            raise TemplateValidationError(result.errors)
        return result

    def extract_from_docx(self, content: bytes, source: str = "") -> ExtractionResult:
        """Flatten a DOCX package and extract its placeholders."""
        document = self._parser.parse(content, source)
        return self.extract(document.content)

    @staticmethod
    def _innermost_loop(
        open_scopes: list[str], fields: dict[str, PlaceholderField]
    ) -> PlaceholderField | None:
        if not open_scopes:
            return None
        entry = fields.get(open_scopes[-1])
        if entry is None or not entry.is_loop:
            return None
        return entry

    @staticmethod
    def _check_loop_balance(tags: list[PlaceholderTag]) -> list[str]:
        """Pair non-dotted loop tags by key, in document order."""
        errors: list[str] = []
        pending: dict[str, int] = defaultdict(int)

        for tag in tags:
            if tag.is_dotted or not (tag.is_open or tag.is_close):
                continue
            if tag.is_open:
                pending[tag.name] += 1
            elif pending[tag.name] > 0:
                pending[tag.name] -= 1
            else:
                errors.append(
                    f"Loop tag error: {{{{/{tag.name}}}}} has no matching {{{{#{tag.name}}}}}"
                )

        for key, count in pending.items():
            for _ in range(count):
                errors.append(
                    f"Loop tag error: {{{{#{key}}}}} has no matching {{{{/{key}}}}}"
                )
        return errors
