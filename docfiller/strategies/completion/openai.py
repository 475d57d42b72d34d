"""OpenAI completion provider.

Grounded path: the sources are uploaded as one file into a temporary vector
store and the Responses API answers with the ``file_search`` tool, using a
strict JSON schema when one is given. If that path fails for any reason
other than a rejected key, the request is retried once as a plain chat
completion with the sources inlined. Remote resources are always deleted
afterwards, with bounded retries.
"""

import asyncio
import dataclasses
import logging
import uuid
from collections.abc import Awaitable, Callable
from typing import Any

from openai import AsyncOpenAI, AuthenticationError, NotFoundError, OpenAIError

from docfiller.interfaces.completion import (
    BaseCompletionProvider,
    CleanupStatus,
    CompletionError,
    CompletionRequest,
    CompletionResult,
    CredentialError,
    Evidence,
    ProviderConfig,
    ProviderName,
)
from docfiller.strategies.completion.prompts import (
    GROUNDED_DATA_SECTION,
    INLINE_DATA_SECTION,
    combine_sources,
)

logger = logging.getLogger(__name__)


@dataclasses.dataclass
class _RemoteResources:
    """Ids of resources created for one grounded call."""

    file_id: str | None = None
    vector_store_id: str | None = None


class OpenAIProvider(BaseCompletionProvider):
    """Completion provider for the OpenAI API.

    Attributes:
        config: Connection settings (key, model, base URL, timeout).
    """

    label = "OpenAI"

    def __init__(
        self,
        config: ProviderConfig,
        use_file_search: bool = True,
        cleanup_max_attempts: int = 3,
        cleanup_backoff_seconds: float = 0.5,
        client: AsyncOpenAI | None = None,
    ) -> None:
        """Initialize the provider.

        Args:
            config: Connection settings.
            use_file_search: Try the grounded path when sources are given.
            cleanup_max_attempts: Attempts per remote resource deletion.
            cleanup_backoff_seconds: Delay before the first retry; doubles
                on each further attempt.
            client: Pre-built client, mainly for tests.
        """
        self.config = config
        self._use_file_search = use_file_search
        self._cleanup_max_attempts = max(1, cleanup_max_attempts)
        self._cleanup_backoff = cleanup_backoff_seconds
        self._client = client or AsyncOpenAI(
            api_key=config.api_key,
            base_url=config.base_url,
            timeout=config.timeout,
        )

    @property
    def name(self) -> ProviderName:
        return self.config.provider

    @property
    def model(self) -> str:
        return self.config.model

    async def complete(self, request: CompletionRequest) -> CompletionResult:
        """Run one completion, grounded when possible.

        Raises:
            CredentialError: If the API key is rejected.
            CompletionError: If the inline path fails as well.
        """
        if not (self._use_file_search and request.sources):
            return await self._complete_inline(request)

        cleanup = CleanupStatus()
        try:
            result = await self._complete_grounded(request, cleanup)
        except CredentialError:
            raise
        except CompletionError as e:
            logger.warning(f"{self.label} grounded completion failed, retrying inline: {e}")
            result = await self._complete_inline(dataclasses.replace(request, json_schema=None))
            result.used_fallback = True
            result.fallback_reason = str(e)
        result.cleanup = cleanup
        return result

    async def _complete_inline(self, request: CompletionRequest) -> CompletionResult:
        prompt = request.prompt
        if request.sources:
            data = INLINE_DATA_SECTION.format(content=combine_sources(request.sources))
            prompt = f"{prompt}\n\n{data}"

        messages: list[dict[str, str]] = []
        if request.system:
            messages.append({"role": "system", "content": request.system})
        messages.append({"role": "user", "content": prompt})

        kwargs: dict[str, Any] = {
            "model": self.config.model,
            "messages": messages,
            "response_format": self._response_format(request),
        }
        if request.temperature is not None:
            kwargs["temperature"] = request.temperature

        logger.debug(f"{self.label} chat completion: model={self.config.model}, prompt={len(prompt)} chars")
        try:
            response = await self._client.chat.completions.create(**kwargs)
        except OpenAIError as e:
            raise self._translate(e) from e

        text = response.choices[0].message.content if response.choices else None
        if not text or not text.strip():
            raise CompletionError(f"{self.label} returned an empty reply", self.name)

        logger.info(f"{self.label} inline completion finished ({len(text)} chars)")
        return CompletionResult(
            text=text, provider=self.name, structured=request.json_schema is not None
        )

    @staticmethod
    def _response_format(request: CompletionRequest) -> dict[str, Any]:
        if request.json_schema is None:
            return {"type": "json_object"}
        return {
            "type": "json_schema",
            "json_schema": {
                "name": request.schema_name,
                "strict": True,
                "schema": request.json_schema,
            },
        }

    async def _complete_grounded(
        self, request: CompletionRequest, cleanup: CleanupStatus
    ) -> CompletionResult:
        resources = _RemoteResources()
        try:
            try:
                return await asyncio.wait_for(
                    self._grounded_call(request, resources),
                    timeout=self.config.timeout,
                )
            except asyncio.TimeoutError as e:
                raise CompletionError(
                    f"{self.label} grounded completion timed out after {self.config.timeout:.0f}s",
                    self.name,
                ) from e
            except OpenAIError as e:
                raise self._translate(e) from e
        finally:
            await self._cleanup(cleanup, resources)

    async def _grounded_call(
        self, request: CompletionRequest, resources: _RemoteResources
    ) -> CompletionResult:
        corpus = combine_sources(request.sources).encode("utf-8")
        uploaded = await self._client.files.create(
            file=("sources.txt", corpus, "text/plain"),
            purpose="assistants",
        )
        resources.file_id = uploaded.id

        store = await self._client.vector_stores.create(name=f"docfiller-{uuid.uuid4().hex[:12]}")
        resources.vector_store_id = store.id

        indexed = await self._client.vector_stores.files.create_and_poll(
            vector_store_id=store.id,
            file_id=uploaded.id,
        )
        if indexed.status != "completed":
            reason = getattr(indexed.last_error, "message", None) or indexed.status
            raise CompletionError(f"Indexing the sources failed: {reason}", self.name)
        logger.debug(f"Indexed {len(corpus)} bytes into vector store {store.id}")

        kwargs: dict[str, Any] = {
            "model": self.config.model,
            "input": f"{request.prompt}\n\n{GROUNDED_DATA_SECTION}",
            "tools": [{"type": "file_search", "vector_store_ids": [store.id]}],
            "include": ["file_search_call.results"],
        }
        if request.system:
            kwargs["instructions"] = request.system
        if request.json_schema is not None:
            kwargs["text"] = {
                "format": {
                    "type": "json_schema",
                    "name": request.schema_name,
                    "strict": True,
                    "schema": request.json_schema,
                }
            }

        response = await self._client.responses.create(**kwargs)
        text = response.output_text
        if not text or not text.strip():
            status = getattr(response, "status", None)
            raise CompletionError(f"{self.label} returned an empty reply (status={status})", self.name)

        evidence = self._collect_evidence(response)
        logger.info(
            f"{self.label} grounded completion finished ({len(text)} chars, "
            f"{len(evidence)} evidence hits)"
        )
        return CompletionResult(
            text=text,
            provider=self.name,
            used_file_search=True,
            structured=request.json_schema is not None,
            evidence=evidence,
        )

    @staticmethod
    def _collect_evidence(response: Any) -> list[Evidence]:
        evidence = []
        for item in getattr(response, "output", None) or []:
            if getattr(item, "type", None) != "file_search_call":
                continue
            queries = list(getattr(item, "queries", None) or [])
            for hit in getattr(item, "results", None) or []:
                evidence.append(
                    Evidence(
                        tool_call_id=item.id,
                        queries=queries,
                        file_id=getattr(hit, "file_id", None),
                        filename=getattr(hit, "filename", None),
                        score=getattr(hit, "score", None),
                        text=getattr(hit, "text", None) or "",
                    )
                )
        return evidence

    async def _cleanup(self, status: CleanupStatus, resources: _RemoteResources) -> None:
        """Delete the temporary vector store and file. Never raises."""
        vector_store_id, file_id = resources.vector_store_id, resources.file_id
        if vector_store_id:
            deleted, attempts = await self._delete_with_retry(
                lambda: self._client.vector_stores.delete(vector_store_id),
                f"vector store {vector_store_id}",
            )
            status.vector_store_deleted = deleted
            status.vector_store_delete_attempts = attempts
        if file_id:
            deleted, attempts = await self._delete_with_retry(
                lambda: self._client.files.delete(file_id),
                f"file {file_id}",
            )
            status.uploaded_file_deleted = deleted
            status.uploaded_file_delete_attempts = attempts

    async def _delete_with_retry(
        self, delete: Callable[[], Awaitable[Any]], label: str
    ) -> tuple[bool, int]:
        for attempt in range(1, self._cleanup_max_attempts + 1):
            try:
                await delete()
                logger.debug(f"Deleted {label}")
                return True, attempt
            except NotFoundError:
                return True, attempt
            except OpenAIError as e:
                logger.warning(
                    f"Deleting {label} failed (attempt {attempt}/{self._cleanup_max_attempts}): {e}"
                )
                if attempt < self._cleanup_max_attempts:
                    await asyncio.sleep(self._cleanup_backoff * 2 ** (attempt - 1))
        logger.error(f"Giving up on deleting {label} after {self._cleanup_max_attempts} attempts")
        return False, self._cleanup_max_attempts

    def _translate(self, error: OpenAIError) -> CompletionError:
        if isinstance(error, AuthenticationError):
            logger.error(f"{self.label} rejected the API key: {error}")
            return CredentialError(
                f"The {self.label} API key was rejected. Check the key in your settings.",
                self.name,
                401,
            )
        logger.error(f"{self.label} API error: {error}")
        return CompletionError(
            f"{self.label} request failed: {error}",
            self.name,
            getattr(error, "status_code", None),
        )
