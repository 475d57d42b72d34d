"""Component Factory for strategy instantiation.

The Factory Pattern allows the application to instantiate
different strategy implementations at runtime based on
configuration or per-request overrides.
"""

import logging
from pathlib import PurePath

from docfiller.core.config import Settings, get_settings
from docfiller.interfaces.completion import BaseCompletionProvider, ProviderConfig
from docfiller.interfaces.parser import BaseParser
from docfiller.strategies.completion import GrokProvider, OpenAIProvider, PlaceholderFiller
from docfiller.strategies.parsers import DocxTextParser, SimpleTextParser
from docfiller.strategies.template_engine import (
    FillValueNormalizer,
    LoopNormalizer,
    PlaceholderExtractor,
    TemplateGenerator,
    TemplateRenderer,
)

logger = logging.getLogger(__name__)


class ComponentFactory:
    """Factory for creating component instances based on configuration.

    Stateless components (parsers, extractor, renderer, normalizers) are
    cached. Completion providers are built per call because the API key
    may come from the request.

    Example:
        ```python
        factory = ComponentFactory(get_settings())

        extractor = factory.get_extractor()
        result = extractor.extract_from_docx(content)
        filler = factory.get_filler("openai")
        ```
    """

    def __init__(self, settings: Settings | None = None) -> None:
        """Initialize the factory with optional settings.

        Args:
            settings: Application settings. If None, uses global settings.
        """
        self._settings = settings or get_settings()
        self._parser_cache: dict[str, BaseParser] = {}
        self._extractor_cache: PlaceholderExtractor | None = None
        self._loop_normalizer_cache: LoopNormalizer | None = None
        self._renderer_cache: TemplateRenderer | None = None
        self._fill_normalizer_cache: FillValueNormalizer | None = None

    @property
    def settings(self) -> Settings:
        return self._settings

    def get_parser(self, filename: str) -> BaseParser:
        """Get a parser for the given file name.

        Args:
            filename: Uploaded file name; its extension selects the parser.

        Returns:
            A BaseParser implementation instance.

        Raises:
            ValueError: If no parser supports the file type.
        """
        extension = PurePath(filename).suffix.lower()

        if extension not in self._parser_cache:
            logger.info(f"Instantiating parser for: {extension or '(no extension)'}")

            match extension:
                case ".docx":
                    self._parser_cache[extension] = DocxTextParser()
                case ".txt" | ".md" | ".csv" | ".json" | ".xml":
                    self._parser_cache[extension] = SimpleTextParser()
                case _:
                    raise ValueError(
                        f"Unsupported file type: {extension or filename}. "
                        f"Valid options: .docx, .txt, .md, .csv, .json, .xml"
                    )

        return self._parser_cache[extension]

    def get_extractor(self) -> PlaceholderExtractor:
        """Get the placeholder extractor."""
        if self._extractor_cache is None:
            logger.info(f"Instantiating extractor: strict={self._settings.strict_validation}")
            self._extractor_cache = PlaceholderExtractor(
                strict=self._settings.strict_validation,
                parser=DocxTextParser(),
            )
        return self._extractor_cache

    def get_loop_normalizer(self) -> LoopNormalizer:
        """Get the XML loop normalizer."""
        if self._loop_normalizer_cache is None:
            logger.info("Instantiating loop normalizer")
            self._loop_normalizer_cache = LoopNormalizer(strict=self._settings.strict_validation)
        return self._loop_normalizer_cache

    def get_renderer(self) -> TemplateRenderer:
        """Get the template renderer."""
        if self._renderer_cache is None:
            logger.info("Instantiating template renderer")
            self._renderer_cache = TemplateRenderer(normalizer=self.get_loop_normalizer())
        return self._renderer_cache

    def get_fill_normalizer(self) -> FillValueNormalizer:
        """Get the fill-value normalizer."""
        if self._fill_normalizer_cache is None:
            logger.info(f"Instantiating fill normalizer: strict={self._settings.strict_fill_values}")
            self._fill_normalizer_cache = FillValueNormalizer(strict=self._settings.strict_fill_values)
        return self._fill_normalizer_cache

    def get_provider_config(
        self, provider: str | None = None, api_key: str | None = None
    ) -> ProviderConfig:
        """Build the connection settings for a provider.

        Args:
            provider: "openai" or "grok". If None, uses settings.
            api_key: Key supplied with the request; overrides settings.

        Raises:
            ValueError: If the provider is unknown or no key is configured.
        """
        provider = provider or self._settings.default_provider

        match provider:
            case "openai":
                key = api_key or self._settings.openai_api_key
                config = ProviderConfig(
                    provider="openai",
                    api_key=key,
                    model=self._settings.openai_model,
                    base_url=self._settings.openai_base_url,
                    timeout=self._settings.fill_timeout_seconds,
                )
                label = "OpenAI"
            case "grok":
                key = api_key or self._settings.xai_api_key
                config = ProviderConfig(
                    provider="grok",
                    api_key=key,
                    model=self._settings.grok_model,
                    base_url=self._settings.grok_base_url,
                    timeout=self._settings.fill_timeout_seconds,
                )
                label = "Grok"
            case _:
                raise ValueError(
                    f"Unknown provider: {provider}. "
                    f"Valid options: 'openai', 'grok'"
                )

        if not key:
            raise ValueError(f"Please configure your {label} API key")
        return config

    def get_completion_provider(
        self, provider: str | None = None, api_key: str | None = None
    ) -> BaseCompletionProvider:
        """Get a completion provider.

        Args:
            provider: "openai" or "grok". If None, uses settings.
            api_key: Optional per-request API key.

        Raises:
            ValueError: If the provider is unknown or has no key.
        """
        config = self.get_provider_config(provider, api_key)
        logger.info(f"Instantiating completion provider: {config.provider} ({config.model})")

        match config.provider:
            case "openai":
                return OpenAIProvider(
                    config,
                    use_file_search=self._settings.use_file_search,
                    cleanup_max_attempts=self._settings.cleanup_max_attempts,
                    cleanup_backoff_seconds=self._settings.cleanup_backoff_seconds,
                )
            case "grok":
                return GrokProvider(config)

    def get_filler(
        self, provider: str | None = None, api_key: str | None = None
    ) -> PlaceholderFiller:
        """Get a placeholder filler bound to a provider."""
        return PlaceholderFiller(
            self.get_completion_provider(provider, api_key),
            normalizer=self.get_fill_normalizer(),
        )

    def get_template_generator(
        self, provider: str | None = None, api_key: str | None = None
    ) -> TemplateGenerator:
        """Get an AI template generator bound to a provider."""
        return TemplateGenerator(self.get_completion_provider(provider, api_key))

    def clear_cache(self) -> None:
        """Clear all cached component instances.

        This forces new instances to be created on next access.
        Useful for testing or when settings change.
        """
        self._parser_cache = {}
        self._extractor_cache = None
        self._loop_normalizer_cache = None
        self._renderer_cache = None
        self._fill_normalizer_cache = None
        logger.debug("Component factory cache cleared")
