"""Grouping and annotation of search hits for presentation."""

import logging
from typing import Any

from vectorrag.constants import SUMMARY_MAX_TOKENS, SUMMARY_TEMPERATURE
from vectorrag.errors import FormattingFailure
from vectorrag.llm.base import CompletionOptions, CompletionProvider
from vectorrag.rag.models import SearchHit

logger = logging.getLogger(__name__)

SUMMARY_PROMPT = """Describe the document with the metadata below in one short sentence \
(title, author, subject or whatever is available). Answer with the sentence only.

{metadata}"""


def resolve_group_key(hit: SearchHit) -> str:
    """Document a hit belongs to: document_id, metadata documentId, metadata source, source_id."""
    for candidate in (hit.document_id, hit.metadata.get("documentId"), hit.metadata.get("source")):
        if candidate:
            return str(candidate)
    return hit.source_id


def describe_metadata(metadata: dict[str, Any]) -> str:
    """Deterministic ``key: value`` summary of a document's scalar metadata.

    Nested ``document`` metadata is preferred when present. Keys are sorted and
    empty, nested and list values are left out.

    Example:
        >>> describe_metadata({"title": "Manual", "author": "Ada", "tags": ["x"]})
        'author: Ada; title: Manual'
    """
    source = metadata.get("document") if isinstance(metadata.get("document"), dict) else metadata
    parts = [
        f"{key}: {value}"
        for key, value in sorted(source.items())
        if value not in (None, "") and not isinstance(value, (dict, list, tuple))
    ]
    return "; ".join(parts)


class ResultFormatter:
    """Groups hits by document and annotates the first hit of every group."""

    def __init__(
        self, completion: CompletionProvider | None = None, logger: logging.Logger | None = None
    ) -> None:
        self.completion = completion
        self.logger = logger or logging.getLogger(__name__)

    async def group_and_annotate(self, hits: list[SearchHit]) -> list[SearchHit]:
        """Reorder hits by document group and annotate them.

        Groups are ordered by their best hit. Inside a group, direct hits come
        before neighbours, then similarity descending. The first hit of a group
        carries ``document_summary``; the rest are marked supplementary.

        Args:
            hits: Ranked search hits

        Returns:
            list[SearchHit]: The same hits, regrouped and annotated
        """
        groups: dict[str, list[SearchHit]] = {}
        for hit in hits:
            groups.setdefault(resolve_group_key(hit), []).append(hit)

        ordered_groups = sorted(
            groups.values(), key=lambda group: -max(hit.similarity for hit in group)
        )

        result: list[SearchHit] = []
        for group in ordered_groups:
            group.sort(key=lambda hit: (hit.is_adjacent, -hit.similarity))
            first, *rest = group
            first.document_summary = await self.summarize(first)
            first.is_supplementary = False
            for hit in rest:
                hit.is_supplementary = True
            result.extend(group)

        return result

    async def summarize(self, hit: SearchHit) -> str:
        """LLM synopsis of a hit's document, or the ``key: value`` fallback."""
        try:
            return await self._llm_summary(hit)
        except FormattingFailure as e:
            self.logger.debug(f"Using metadata summary for {hit.source_id}: {e}")
            return describe_metadata(hit.metadata)

    async def _llm_summary(self, hit: SearchHit) -> str:
        if self.completion is None:
            raise FormattingFailure("No completion provider configured")

        metadata_text = describe_metadata(hit.metadata)
        if not metadata_text:
            raise FormattingFailure("No metadata to summarize")

        messages = [{"role": "user", "content": SUMMARY_PROMPT.format(metadata=metadata_text)}]
        options = CompletionOptions(temperature=SUMMARY_TEMPERATURE, max_tokens=SUMMARY_MAX_TOKENS)
        try:
            summary = (await self.completion.complete(messages, options) or "").strip()
        except Exception as e:
            raise FormattingFailure(f"Summary generation failed: {e}") from e

        if not summary:
            raise FormattingFailure("Empty summary")
        return summary
