"""Capability protocols for the LLM services used by the RAG core."""

from dataclasses import dataclass
from typing import Protocol, runtime_checkable


@dataclass(frozen=True)
class CompletionOptions:
    """Sampling options for a single completion request."""

    temperature: float = 0.7
    max_tokens: int = 256


@runtime_checkable
class EmbeddingProvider(Protocol):
    """Anything that can turn a text into an embedding vector."""

    async def generate_embedding(self, text: str) -> list[float]:
        """Generate the embedding for a single text.

        Args:
            text: The text to embed

        Returns:
            list[float]: The embedding vector

        Raises:
            EmbeddingFailure: If the provider could not produce a vector
        """
        ...


@runtime_checkable
class CompletionProvider(Protocol):
    """Anything that can answer a chat-style prompt with plain text."""

    async def complete(self, messages: list[dict], options: CompletionOptions) -> str:
        """Generate a completion for the provided messages.

        Args:
            messages: List of message dictionaries with 'role' and 'content' keys.
                     Example: [{"role": "system", "content": "..."}, {"role": "user", ...}]
            options: Sampling options

        Returns:
            str: The generated text
        """
        ...
