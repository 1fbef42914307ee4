"""Ollama LLM service implementation."""

import logging

import ollama

from vectorrag.constants import get_embedding_model
from vectorrag.errors import EmbeddingFailure
from vectorrag.llm.base import CompletionOptions

logger = logging.getLogger(__name__)


class OllamaService:
    """Ollama LLM service implementation.

    This service uses the Ollama API for both embeddings and completions,
    so a single instance satisfies EmbeddingProvider and CompletionProvider.
    """

    def __init__(self, host: str, model: str, embedding_model: str | None = None) -> None:
        """Initialize the Ollama service.

        Args:
            host: The Ollama server host URL (e.g., "http://localhost:11434")
            model: The chat model name to use (e.g., "llama3")
            embedding_model: Embedding model name. If None, uses EMBEDDING_MODEL env var
                   or the Ollama default.
        """
        self.host = host
        self.model = model
        self.embedding_model = embedding_model or get_embedding_model("ollama")
        logger.info(
            f"🤖 Initializing OllamaService: host={host}, model={model}, "
            f"embedding_model={self.embedding_model}"
        )
        self.client = ollama.AsyncClient(host=host)

    async def complete(self, messages: list[dict], options: CompletionOptions) -> str:
        """Generate a completion using Ollama.

        Args:
            messages: List of message dictionaries with 'role' and 'content' keys.
            options: Temperature and token limit for the request

        Returns:
            str: The generated response content from the model.
        """
        logger.debug(f"🗣️  Completing {len(messages)} messages with {self.model}")
        try:
            response = await self.client.chat(
                model=self.model,
                messages=messages,
                options={"temperature": options.temperature, "num_predict": options.max_tokens},
            )
        except Exception as e:
            logger.error(f"❌ Ollama API error: {e}", exc_info=True)
            raise

        content = response.message.content or ""
        logger.debug(f"✅ Response generated: {len(content)} characters")
        return content

    async def generate_embedding(self, text: str) -> list[float]:
        """Generate an embedding for a single text using Ollama.

        Args:
            text: The text to embed

        Returns:
            list[float]: The embedding vector

        Raises:
            EmbeddingFailure: If the request fails or returns no vector
        """
        try:
            response = await self.client.embed(model=self.embedding_model, input=text)
        except Exception as e:
            raise EmbeddingFailure(f"Ollama embedding request failed: {e}") from e

        embeddings = response["embeddings"]
        if not embeddings or not embeddings[0]:
            raise EmbeddingFailure(f"Ollama returned no embedding for model {self.embedding_model}")
        return list(embeddings[0])
