"""xAI Grok completion provider.

Grok exposes an OpenAI-compatible chat completions endpoint, so this
provider reuses the OpenAI client with a different base URL. Grok has no
file search, so sources are always inlined.
"""

import logging

from openai import AsyncOpenAI

from docfiller.interfaces.completion import ProviderConfig
from docfiller.strategies.completion.openai import OpenAIProvider

logger = logging.getLogger(__name__)

GROK_BASE_URL = "https://api.x.ai/v1"
GROK_MODEL = "grok-4-fast-non-reasoning"


class GrokProvider(OpenAIProvider):
    """Completion provider for xAI Grok models."""

    label = "Grok"

    def __init__(self, config: ProviderConfig, client: AsyncOpenAI | None = None) -> None:
        """Initialize the provider.

        Args:
            config: Connection settings. `base_url` defaults to xAI's API.
            client: Pre-built client, mainly for tests.
        """
        if config.base_url is None:
            config = ProviderConfig(
                provider=config.provider,
                api_key=config.api_key,
                model=config.model or GROK_MODEL,
                base_url=GROK_BASE_URL,
                timeout=config.timeout,
            )
        super().__init__(config, use_file_search=False, client=client)
        logger.debug(f"GrokProvider initialized: model={self.config.model}")
