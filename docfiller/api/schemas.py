"""API request and response schemas.

Pydantic v2 models for API serialization/deserialization.
"""

from typing import Any, Literal

from pydantic import BaseModel, Field

from docfiller.strategies.completion import FillEvidence, FillProcessingMeta
from docfiller.strategies.template_engine import FilledPlaceholder, PlaceholderField


# =============================================================================
# Common Schemas
# =============================================================================


class ErrorResponse(BaseModel):
    """Standard error response."""

    detail: str = Field(description="Error message")
    error_code: str | None = Field(default=None, description="Application-specific error code")
    extra: dict[str, Any] | None = Field(default=None, description="Additional error context")


# =============================================================================
# Template Schemas
# =============================================================================


class ExtractPlaceholdersResponse(BaseModel):
    """Placeholders found in an uploaded template."""

    filename: str = Field(description="Uploaded template name")
    placeholders: list[PlaceholderField] = Field(description="Extracted fields in first-seen order")
    warnings: list[str] = Field(default_factory=list, description="Recoverable template problems")


class TemplateInfo(BaseModel):
    """A template available in the library."""

    filename: str
    size: int = Field(description="File size in bytes")


class TemplateListResponse(BaseModel):
    """Response for listing library templates."""

    templates: list[TemplateInfo]
    total: int


class GenerateTemplateRequest(BaseModel):
    """Request to design a template with AI."""

    request: str = Field(min_length=1, description="What the document should contain")
    file_name: str | None = Field(default=None, description="Preferred file name")
    provider: Literal["openai", "grok"] | None = Field(
        default=None, description="Provider to use; defaults to the configured one"
    )
    api_key: str | None = Field(default=None, description="Overrides the configured provider key")


# =============================================================================
# Document Schemas
# =============================================================================


class TextResponse(BaseModel):
    """Flattened text of an uploaded document."""

    filename: str
    text: str
    metadata: dict[str, Any] = Field(default_factory=dict)


class SourceInput(BaseModel):
    """A named source document."""

    name: str = Field(min_length=1)
    content: str


class FillRequest(BaseModel):
    """Request to fill placeholders from source data."""

    placeholders: list[PlaceholderField] = Field(description="Fields returned by extraction")
    data_content: str | None = Field(
        default=None, description="Source text; used when `sources` is empty"
    )
    sources: list[SourceInput] = Field(default_factory=list, description="Named source documents")
    provider: Literal["openai", "grok"] | None = Field(
        default=None, description="Provider to use; defaults to the configured one"
    )
    api_key: str | None = Field(default=None, description="Overrides the configured provider key")


class FillResponse(BaseModel):
    """Filled placeholders with grounding evidence."""

    filled_placeholders: list[FilledPlaceholder]
    evidence: list[FillEvidence] = Field(default_factory=list)
    processing: FillProcessingMeta
