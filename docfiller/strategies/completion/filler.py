"""Placeholder filler.

Asks a completion provider to fill a template's placeholders from the
user's source documents and normalizes the reply onto the field list.
"""

import logging
from typing import Literal

from pydantic import BaseModel, Field

from docfiller.interfaces.completion import (
    BaseCompletionProvider,
    CompletionError,
    CompletionRequest,
    ProviderName,
    SourceDocument,
)
from docfiller.strategies.completion.prompts import (
    FILL_SYSTEM_PROMPT,
    build_fill_prompt,
    build_values_schema,
)
from docfiller.strategies.template_engine.fill_values import FillValueNormalizer
from docfiller.strategies.template_engine.models import FilledPlaceholder, PlaceholderField

logger = logging.getLogger(__name__)

ParsingMode = Literal["structured_json_schema", "json_extractor"]


class FillEvidence(BaseModel):
    """A source passage retrieved while filling."""

    tool_call_id: str
    queries: list[str] = Field(default_factory=list)
    file_id: str | None = None
    filename: str | None = None
    score: float | None = None
    text: str = ""


class CleanupReport(BaseModel):
    """Outcome of deleting the temporary remote resources."""

    vector_store_deleted: bool
    vector_store_delete_attempts: int
    uploaded_file_deleted: bool
    uploaded_file_delete_attempts: int


class FillProcessingMeta(BaseModel):
    """How a fill request was processed."""

    provider: ProviderName
    used_file_search: bool = False
    used_fallback: bool = False
    fallback_reason: str | None = None
    parsing_mode: ParsingMode = "json_extractor"
    cleanup: CleanupReport | None = None


class FillResult(BaseModel):
    """Filled placeholders plus grounding evidence and processing metadata."""

    placeholders: list[FilledPlaceholder]
    evidence: list[FillEvidence] = Field(default_factory=list)
    processing: FillProcessingMeta


class PlaceholderFiller:
    """Fills placeholders with values drawn from source documents."""

    def __init__(
        self,
        provider: BaseCompletionProvider,
        normalizer: FillValueNormalizer | None = None,
    ) -> None:
        self._provider = provider
        self._normalizer = normalizer or FillValueNormalizer()

    async def fill(
        self, fields: list[PlaceholderField], sources: list[SourceDocument]
    ) -> FillResult:
        """Fill every field from the given sources.

        Args:
            fields: Placeholders extracted from the template.
            sources: Named source documents holding the data.

        Returns:
            FillResult with one value per field.

        Raises:
            CredentialError: If the provider rejects its API key.
            CompletionError: If the call fails or the reply holds no JSON.
            FillShapeError: If a value cannot take its field's shape.
        """
        if not fields:
            logger.info("No placeholders to fill")
            return FillResult(
                placeholders=[],
                processing=FillProcessingMeta(provider=self._provider.name),
            )

        schema = build_values_schema(fields)
        if schema is None:
            logger.debug("A loop has no columns; using the JSON extractor instead of a schema")

        request = CompletionRequest(
            prompt=build_fill_prompt(fields),
            sources=sources,
            json_schema=schema,
            schema_name="placeholder_values",
            system=FILL_SYSTEM_PROMPT,
        )
        logger.info(
            f"Filling {len(fields)} placeholders from {len(sources)} source(s) "
            f"via {self._provider.name}"
        )
        result = await self._provider.complete(request)

        try:
            placeholders = self._normalizer.normalize(fields, result.text)
        except ValueError as e:
            logger.error(f"Could not parse the model reply: {result.text[:500]!r}")
            raise CompletionError(
                f"Failed to parse the AI response: {e}", result.provider
            ) from e

        cleanup = None
        if result.cleanup is not None:
            cleanup = CleanupReport.model_validate(result.cleanup, from_attributes=True)

        return FillResult(
            placeholders=placeholders,
            evidence=[
                FillEvidence.model_validate(hit, from_attributes=True) for hit in result.evidence
            ],
            processing=FillProcessingMeta(
                provider=result.provider,
                used_file_search=result.used_file_search,
                used_fallback=result.used_fallback,
                fallback_reason=result.fallback_reason,
                parsing_mode="structured_json_schema" if result.structured else "json_extractor",
                cleanup=cleanup,
            ),
        )
