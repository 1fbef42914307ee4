"""Factory for the LLM service that backs embeddings and completions."""

import logging
import os
from collections.abc import Callable

from dotenv import load_dotenv

from vectorrag.constants import DEFAULT_OLLAMA_HOST
from vectorrag.errors import InvalidConfig
from vectorrag.llm.gemini import GeminiService
from vectorrag.llm.ollama import OllamaService

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)

LLMService = OllamaService | GeminiService


def _ollama(config: dict) -> OllamaService:
    return OllamaService(
        host=config.get("host", os.getenv("OLLAMA_HOST", DEFAULT_OLLAMA_HOST)),
        model=config.get("model", os.getenv("LLM_MODEL", "llama3")),
        embedding_model=config.get("embedding_model"),
    )


def _gemini(config: dict) -> GeminiService:
    return GeminiService(
        model=config.get("model", os.getenv("LLM_MODEL", "gemini-2.5-flash")),
        embedding_model=config.get("embedding_model"),
    )


SERVICE_BUILDERS: dict[str, Callable[[dict], LLMService]] = {
    "ollama": _ollama,
    "gemini": _gemini,
}


def get_llm_service(config: dict | None = None) -> LLMService:
    """Create the configured LLM service.

    Args:
        config: Optional overrides. Missing keys fall back to the environment:
                - 'service': LLM_SERVICE, "ollama" or "gemini" (default "ollama")
                - 'host': OLLAMA_HOST (Ollama only)
                - 'model': LLM_MODEL
                - 'embedding_model': EMBEDDING_MODEL

    Returns:
        A service implementing both EmbeddingProvider and CompletionProvider.

    Raises:
        InvalidConfig: If the service type is not supported
    """
    config = config or {}
    service_type = config.get("service", os.getenv("LLM_SERVICE", "ollama"))

    builder = SERVICE_BUILDERS.get(service_type)
    if builder is None:
        raise InvalidConfig(
            f"Unsupported service type: {service_type}. Supported: {', '.join(SERVICE_BUILDERS)}"
        )

    logger.debug(f"🔌 Creating {service_type} LLM service")
    return builder(config)
