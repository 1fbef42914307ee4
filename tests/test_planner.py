"""Tests for the query planner."""

from unittest.mock import AsyncMock

import pytest

from conftest import FakeCompletion
from vectorrag.rag.planner import QueryPlanner, normalize_language, parse_variations, strip_quotes

VARIATIONS_ANSWER = """SHORT: neutron scattering
MEDIUM: neutron scattering experiments on crystals
LONG: neutron scattering experiments measuring crystal lattice structure and dynamics"""


def metadata_source(language: str | None):
    return AsyncMock(return_value={"language": language} if language else {})


class TestHelpers:
    """Tests for the planner's parsing helpers."""

    @pytest.mark.parametrize(
        "name,code",
        [("English", "en"), ("türkçe", "tr"), (" DE ", "de"), ("français", "fr"), ("pt", "pt")],
    )
    def test_normalize_language(self, name, code):
        assert normalize_language(name) == code

    def test_strip_quotes(self):
        assert strip_quotes('"hello world"') == "hello world"
        assert strip_quotes("'it'") == "it"
        assert strip_quotes("plain") == "plain"

    def test_parse_variations(self):
        assert parse_variations(VARIATIONS_ANSWER) == [
            "neutron scattering",
            "neutron scattering experiments on crystals",
            "neutron scattering experiments measuring crystal lattice structure and dynamics",
        ]

    def test_parse_variations_ignores_noise_and_duplicates(self):
        answer = 'Here you go:\n short: "cats"\nMEDIUM: cats\nsomething else\nLONG:   '

        assert parse_variations(answer) == ["cats"]

    def test_parse_variations_nothing_usable(self):
        assert parse_variations("I cannot help with that.") == []


class TestQueryPlanner:
    """Tests for QueryPlanner class."""

    @pytest.mark.asyncio
    async def test_without_completion_returns_query(self):
        planner = QueryPlanner()

        assert await planner.expand("what is a neutron?", "en") == ["what is a neutron?"]

    @pytest.mark.asyncio
    async def test_generates_variations(self):
        completion = FakeCompletion([VARIATIONS_ANSWER])
        planner = QueryPlanner(completion)

        variants = await planner.expand("neutron scattering")

        assert len(variants) == 3
        _, options = completion.calls[0]
        assert options.temperature == 0.3
        assert options.max_tokens == 200

    @pytest.mark.asyncio
    async def test_unparseable_answer_falls_back_to_query(self):
        planner = QueryPlanner(FakeCompletion(["no idea"]))

        assert await planner.expand("neutron scattering") == ["neutron scattering"]

    @pytest.mark.asyncio
    async def test_completion_failure_falls_back_to_query(self):
        planner = QueryPlanner(FakeCompletion([RuntimeError("model offline")]))

        assert await planner.expand("neutron scattering") == ["neutron scattering"]

    @pytest.mark.asyncio
    async def test_translates_when_languages_differ(self):
        completion = FakeCompletion(['"nötron saçılması"', "SHORT: nötron"])
        planner = QueryPlanner(completion, metadata_source=metadata_source("Turkish"))

        variants = await planner.expand("neutron scattering", user_language="en")

        assert variants == ["nötron"]
        translate_messages, translate_options = completion.calls[0]
        assert "from en to tr" in translate_messages[0]["content"]
        assert translate_messages[1]["content"] == "neutron scattering"
        assert translate_options.temperature == 0.1
        assert translate_options.max_tokens == 150
        assert "nötron saçılması" in completion.calls[1][0][0]["content"]

    @pytest.mark.asyncio
    async def test_translation_result_used_when_no_variations(self):
        completion = FakeCompletion(["nötron saçılması", "unusable"])
        planner = QueryPlanner(completion, metadata_source=metadata_source("tr"))

        assert await planner.expand("neutron scattering", "en") == ["nötron saçılması"]

    @pytest.mark.asyncio
    async def test_no_translation_for_same_language(self):
        completion = FakeCompletion([VARIATIONS_ANSWER])
        planner = QueryPlanner(completion, metadata_source=metadata_source("English"))

        await planner.expand("neutron scattering", user_language="en")

        assert len(completion.calls) == 1

    @pytest.mark.asyncio
    async def test_no_translation_without_corpus_language(self):
        completion = FakeCompletion([VARIATIONS_ANSWER])
        planner = QueryPlanner(completion, metadata_source=metadata_source(None))

        await planner.expand("neutron scattering", user_language="de")

        assert len(completion.calls) == 1

    @pytest.mark.asyncio
    async def test_no_translation_without_user_language(self):
        source = metadata_source("tr")
        completion = FakeCompletion([VARIATIONS_ANSWER])
        planner = QueryPlanner(completion, metadata_source=source)

        await planner.expand("neutron scattering")

        source.assert_not_awaited()
        assert len(completion.calls) == 1

    @pytest.mark.asyncio
    async def test_translation_failure_keeps_query(self):
        completion = FakeCompletion([RuntimeError("timeout"), "SHORT: neutron"])
        planner = QueryPlanner(completion, metadata_source=metadata_source("tr"))

        assert await planner.expand("neutron scattering", "en") == ["neutron"]
        assert "neutron scattering" in completion.calls[1][0][0]["content"]

    @pytest.mark.asyncio
    async def test_metadata_failure_skips_translation(self):
        source = AsyncMock(side_effect=RuntimeError("store down"))
        completion = FakeCompletion([VARIATIONS_ANSWER])
        planner = QueryPlanner(completion, metadata_source=source)

        assert await planner.detect_corpus_language() is None
        assert len(await planner.expand("neutron scattering", "en")) == 3
