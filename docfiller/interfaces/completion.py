"""AI completion provider interface.

The fill step and the template generator talk to language models only
through this interface, so providers can be swapped at runtime.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Literal

ProviderName = Literal["openai", "grok"]


class CompletionError(Exception):
    """Raised when a completion provider call fails."""

    def __init__(self, message: str, provider: str = "", status_code: int | None = None) -> None:
        self.provider = provider
        self.status_code = status_code
        super().__init__(message)


class CredentialError(CompletionError):
    """Raised when the provider rejects the configured API key."""


@dataclass(frozen=True)
class ProviderConfig:
    """Connection settings for one completion provider.

    Attributes:
        provider: Provider name ("openai" or "grok").
        api_key: Secret key for the provider.
        model: Model identifier.
        base_url: Optional API base URL override.
        timeout: Request timeout in seconds.
    """

    provider: ProviderName
    api_key: str
    model: str
    base_url: str | None = None
    timeout: float = 300.0


@dataclass(frozen=True)
class SourceDocument:
    """A named grounding document supplied by the user."""

    name: str
    content: str


@dataclass
class CompletionRequest:
    """A single completion call.

    Attributes:
        prompt: The instruction prompt.
        sources: Grounding documents. Providers that support retrieval may
            upload these instead of inlining them.
        json_schema: Optional strict JSON schema for structured output.
        schema_name: Name reported to the API for `json_schema`.
        system: Optional system message.
        temperature: Sampling temperature, when the model accepts one.
    """

    prompt: str
    sources: list[SourceDocument] = field(default_factory=list)
    json_schema: dict[str, Any] | None = None
    schema_name: str = "response"
    system: str | None = None
    temperature: float | None = None


@dataclass
class CleanupStatus:
    """Outcome of deleting remotely created resources."""

    vector_store_deleted: bool = False
    vector_store_delete_attempts: int = 0
    uploaded_file_deleted: bool = False
    uploaded_file_delete_attempts: int = 0


@dataclass
class Evidence:
    """A retrieval hit used to ground an answer."""

    tool_call_id: str
    queries: list[str]
    file_id: str | None
    filename: str | None
    score: float | None
    text: str


@dataclass
class CompletionResult:
    """Text returned by a provider plus processing metadata."""

    text: str
    provider: ProviderName
    used_file_search: bool = False
    used_fallback: bool = False
    fallback_reason: str | None = None
    structured: bool = False
    evidence: list[Evidence] = field(default_factory=list)
    cleanup: CleanupStatus | None = None


class BaseCompletionProvider(ABC):
    """Abstract base class for AI completion providers."""

    @abstractmethod
    async def complete(self, request: CompletionRequest) -> CompletionResult:
        """Run one completion.

        Args:
            request: Prompt, grounding sources and output constraints.

        Returns:
            CompletionResult with the raw model text.

        Raises:
            CredentialError: If the API key is rejected.
            CompletionError: For any other provider failure.
        """

    @property
    @abstractmethod
    def name(self) -> ProviderName:
        """Return the provider name."""
