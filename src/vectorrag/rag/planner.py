"""Query planning: language reconciliation and query variations.

The planner turns a user query into one or more phrasings to search with.
Every LLM step is best effort; on any failure the planner falls back to the
query it already has, so planning never fails a search.
"""

import logging
import re
from collections.abc import Awaitable, Callable
from typing import Any

from vectorrag.constants import (
    EXPANSION_MAX_TOKENS,
    EXPANSION_TEMPERATURE,
    TRANSLATION_MAX_TOKENS,
    TRANSLATION_TEMPERATURE,
)
from vectorrag.llm.base import CompletionOptions, CompletionProvider

logger = logging.getLogger(__name__)

LANGUAGE_CODES = {
    "turkish": "tr",
    "türkçe": "tr",
    "türkce": "tr",
    "tr": "tr",
    "english": "en",
    "en": "en",
    "eng": "en",
    "german": "de",
    "deutsch": "de",
    "de": "de",
    "french": "fr",
    "français": "fr",
    "francais": "fr",
    "fr": "fr",
    "spanish": "es",
    "español": "es",
    "espanol": "es",
    "es": "es",
}

VARIATION_PATTERN = re.compile(r"^\s*(SHORT|MEDIUM|LONG)\s*:\s*(.+?)\s*$", re.IGNORECASE)

VARIATION_PROMPT = """Rewrite the search query below in three ways to improve document retrieval.
Answer with exactly three lines and nothing else:
SHORT: 2-4 key terms
MEDIUM: 5-8 terms
LONG: 10-15 terms including synonyms and related concepts

Query: {query}"""

MetadataSource = Callable[[], Awaitable[dict[str, Any] | None]]


def normalize_language(code: str) -> str:
    """Map a language name or code to its ISO 639-1 code when known.

    Example:
        >>> normalize_language("English")
        'en'
        >>> normalize_language("pt")
        'pt'
    """
    code = code.lower().strip()
    return LANGUAGE_CODES.get(code, code)


def strip_quotes(text: str) -> str:
    """Remove one leading and one trailing quote character."""
    return re.sub(r"^[\"']|[\"']$", "", text.strip()).strip()


def parse_variations(text: str) -> list[str]:
    """Extract the SHORT/MEDIUM/LONG lines from a model answer.

    Args:
        text: Raw completion text

    Returns:
        list[str]: Parsed variations in answer order, duplicates removed
    """
    variations: list[str] = []
    for line in text.splitlines():
        match = VARIATION_PATTERN.match(line)
        if not match:
            continue
        variation = strip_quotes(match.group(2))
        if variation and variation not in variations:
            variations.append(variation)
    return variations


class QueryPlanner:
    """Expands a user query into the phrasings used for vector search."""

    def __init__(
        self,
        completion: CompletionProvider | None = None,
        metadata_source: MetadataSource | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        """Initialize the planner.

        Args:
            completion: Completion capability; without it the query is used as is
            metadata_source: Coroutine returning one representative chunk metadata dict
            logger: Logger to use instead of the module logger
        """
        self.completion = completion
        self.metadata_source = metadata_source
        self.logger = logger or logging.getLogger(__name__)

    async def expand(self, query: str, user_language: str | None = None) -> list[str]:
        """Return the query variants to search with.

        Args:
            query: The user query
            user_language: Language the query is written in, if known

        Returns:
            list[str]: At least one query; ``[query]`` whenever expansion is not possible
        """
        if self.completion is None:
            return [query]

        try:
            search_query = await self.reconcile_language(query, user_language)
            variations = await self.generate_variations(search_query)
        except Exception as e:
            self.logger.warning(f"⚠️ Query planning failed, using original query: {e}")
            return [query]

        if not variations:
            return [search_query]
        self.logger.debug(f"Query variants: {variations}")
        return variations

    async def detect_corpus_language(self) -> str | None:
        """Read the language recorded in a representative chunk, if any."""
        if self.metadata_source is None:
            return None
        try:
            metadata = await self.metadata_source()
        except Exception as e:
            self.logger.warning(f"⚠️ Could not read chunk metadata for language detection: {e}")
            return None
        if not metadata or not metadata.get("language"):
            return None
        return normalize_language(str(metadata["language"]))

    async def reconcile_language(self, query: str, user_language: str | None) -> str:
        """Translate the query into the corpus language when the two differ."""
        if not user_language:
            return query

        corpus_language = await self.detect_corpus_language()
        if corpus_language is None:
            return query

        source = normalize_language(user_language)
        if source == corpus_language:
            return query

        return await self.translate(query, source, corpus_language)

    async def translate(self, query: str, source: str, target: str) -> str:
        """Translate a query; any failure returns the original query."""
        messages = [
            {
                "role": "system",
                "content": (
                    f"You are a professional translator. Translate the search query from {source} "
                    f"to {target}. Return ONLY the translated text without any additional "
                    "explanation, formatting, or quotes."
                ),
            },
            {"role": "user", "content": query},
        ]
        options = CompletionOptions(temperature=TRANSLATION_TEMPERATURE, max_tokens=TRANSLATION_MAX_TOKENS)

        try:
            response = await self.completion.complete(messages, options)
        except Exception as e:
            self.logger.warning(f"⚠️ Translation failed, using original query: {e}")
            return query

        translation = strip_quotes(response or "")
        if not translation:
            return query
        self.logger.info(f"🌐 Translated query from {source} to {target}: {translation!r}")
        return translation

    async def generate_variations(self, query: str) -> list[str]:
        """Ask the completion capability for SHORT/MEDIUM/LONG rewrites."""
        messages = [{"role": "user", "content": VARIATION_PROMPT.format(query=query)}]
        options = CompletionOptions(temperature=EXPANSION_TEMPERATURE, max_tokens=EXPANSION_MAX_TOKENS)
        response = await self.completion.complete(messages, options)
        return parse_variations(response or "")
