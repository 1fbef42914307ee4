"""Google Gemini LLM service implementation."""

import logging

from google import genai

from vectorrag.constants import get_embedding_model
from vectorrag.errors import EmbeddingFailure
from vectorrag.llm.base import CompletionOptions

logger = logging.getLogger(__name__)


class GeminiService:
    """Google Gemini LLM service implementation.

    The API key is automatically retrieved from the GEMINI_API_KEY environment variable.
    Requests go through the client's async surface (``client.aio``).
    """

    def __init__(self, model: str, embedding_model: str | None = None) -> None:
        """Initialize the Gemini service.

        Args:
            model: The model name to use (e.g., "gemini-2.5-flash")
            embedding_model: Embedding model name. If None, uses EMBEDDING_MODEL env var
                   or the Gemini default.
        """
        self.model = model
        self.embedding_model = embedding_model or get_embedding_model("gemini")
        logger.info(
            f"🤖 Initializing GeminiService: model={model}, embedding_model={self.embedding_model}"
        )
        # The client gets the API key from the GEMINI_API_KEY environment variable
        self.client = genai.Client()

    async def complete(self, messages: list[dict], options: CompletionOptions) -> str:
        """Generate a completion using Gemini.

        System messages become the system instruction; the remaining messages
        are joined into a single prompt.

        Args:
            messages: List of message dictionaries with 'role' and 'content' keys.
            options: Temperature and token limit for the request

        Returns:
            str: The generated response content from the model.
        """
        system_parts = [m.get("content", "") for m in messages if m.get("role") == "system"]
        contents = "\n".join(m.get("content", "") for m in messages if m.get("role") != "system")

        config = genai.types.GenerateContentConfig(
            temperature=options.temperature,
            max_output_tokens=options.max_tokens,
            system_instruction="\n".join(system_parts) if system_parts else None,
        )

        logger.debug(f"🗣️  Completing {len(messages)} messages with {self.model}")
        try:
            response = await self.client.aio.models.generate_content(
                model=self.model, contents=contents, config=config
            )
        except Exception as e:
            logger.error(f"❌ Gemini API error: {e}", exc_info=True)
            raise

        content = response.text or ""
        logger.debug(f"✅ Response generated: {len(content)} characters")
        return content

    async def generate_embedding(self, text: str) -> list[float]:
        """Generate an embedding for a single text using Gemini.

        Args:
            text: The text to embed

        Returns:
            list[float]: The embedding vector

        Raises:
            EmbeddingFailure: If the request fails or returns no vector
        """
        try:
            response = await self.client.aio.models.embed_content(
                model=self.embedding_model, contents=[text]
            )
        except Exception as e:
            raise EmbeddingFailure(f"Gemini embedding request failed: {e}") from e

        if not response.embeddings or not response.embeddings[0].values:
            raise EmbeddingFailure(f"Gemini returned no embedding for model {self.embedding_model}")
        return list(response.embeddings[0].values)
