"""LLM service abstraction layer for vectorrag.

This package provides the two capabilities the RAG core consumes:
- EmbeddingProvider: text -> vector
- CompletionProvider: messages -> text

Both bundled services implement both capabilities:
- OllamaService: Local LLM via Ollama
- GeminiService: Google Gemini API

Usage:
    from vectorrag.llm import get_llm_service

    # Create service from environment config
    service = get_llm_service()

    # Or with explicit config
    service = get_llm_service({"service": "gemini", "model": "gemini-2.5-flash"})
"""

from vectorrag.llm.base import CompletionOptions, CompletionProvider, EmbeddingProvider
from vectorrag.llm.factory import get_llm_service
from vectorrag.llm.gemini import GeminiService
from vectorrag.llm.ollama import OllamaService

__all__ = [
    "CompletionOptions",
    "CompletionProvider",
    "EmbeddingProvider",
    "OllamaService",
    "GeminiService",
    "get_llm_service",
]
