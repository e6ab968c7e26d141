"""Tests for narrative generation."""

import asyncio
import json
from datetime import date

from daysummary.config import Settings
from daysummary.services.day_data import DayData, Meal, Profile
from daysummary.services.kpi import calculate_kpis
from daysummary.services.narrative import (
    MEDIUM_WORDS,
    SHORT_WORDS,
    NarrativeGenerator,
    fallback_summary,
    truncate_words,
    user_language,
)
from daysummary.services.structured_summary import build_structured_summary

from tests.factories import NARRATIVE_TEXT, FakeLLM

DAY = date(2024, 3, 10)


def _day(profile=None) -> DayData:
    return DayData(
        date=DAY,
        timezone="Europe/Berlin",
        profile=profile,
        meals=[Meal(text="Eggs", calories=400, protein=30)],
    )


def _generate(llm: FakeLLM, day_data: DayData, with_text: bool = True):
    kpis = calculate_kpis(day_data)
    structured = build_structured_summary(DAY, kpis, day_data)
    generator = NarrativeGenerator(llm, Settings(openai_api_key="test"))
    return asyncio.run(generator.generate(structured, kpis, day_data, with_text=with_text))


class TestTruncateWords:
    def test_short_text_is_unchanged(self):
        assert truncate_words("eins zwei", 5) == "eins zwei"

    def test_collapses_whitespace(self):
        assert truncate_words("a  b\n\nc d", 3) == "a b c"


class TestNarrativeGenerator:
    """LLM path, skip and fallback."""

    def test_generated(self):
        llm = FakeLLM()
        result = _generate(llm, _day(Profile(preferred_name="Mara")))

        assert result.generated
        assert result.long == NARRATIVE_TEXT
        assert len(result.medium.split()) == MEDIUM_WORDS
        assert len(result.short.split()) == SHORT_WORDS
        assert result.short == truncate_words(result.long, SHORT_WORDS)
        assert result.tokens_used == 1500
        assert result.model == "gpt-4.1-2025-04-14"
        assert result.usage.prompt_tokens == 900

    def test_prompt_carries_name_date_and_compact_data(self):
        llm = FakeLLM()
        _generate(llm, _day(Profile(preferred_name="Mara")))

        system, user = llm.calls[0]
        assert system["role"] == "system"
        assert "Mara" in system["content"]
        assert "2024-03-10" in system["content"]
        payload = json.loads(user["content"])
        assert payload["nutrition"]["totals"]["kcal"] == 400
        assert "meals" not in payload["nutrition"]

    def test_english_prompt(self):
        llm = FakeLLM()
        _generate(llm, _day(Profile(preferred_language="en")))
        assert "Address athlete directly" in llm.calls[0][0]["content"]

    def test_skipped_without_text(self):
        llm = FakeLLM()
        result = _generate(llm, _day(), with_text=False)

        assert result.status == "skipped"
        assert result.long == result.medium == result.short == ""
        assert result.tokens_used == 0
        assert llm.calls == []

    def test_error_falls_back(self):
        llm = FakeLLM(error=RuntimeError("OpenAI API error: 503"))
        result = _generate(llm, _day(Profile(first_name="Jonas")))

        assert result.status == "fallback"
        assert not result.generated
        assert result.tokens_used == 0
        assert result.usage is None
        assert result.error == "OpenAI API error: 503"
        assert "Jonas" in result.long
        assert "2024-03-10" in result.long

    def test_empty_content_falls_back(self):
        result = _generate(FakeLLM(content="   "), _day())
        assert result.status == "fallback"
        assert result.error == "External service error (OpenAI): empty completion"
        assert "Athlet" in result.long


class TestFallbackSummary:
    """Deterministic template."""

    def test_german_default(self):
        day_data = _day()
        text = fallback_summary(calculate_kpis(day_data), day_data)
        assert text.startswith("Hallo Athlet!")
        assert "400 kcal" in text
        assert "Keine Schlafdaten" in text

    def test_english(self):
        day_data = _day(Profile(preferred_name="Sam", preferred_language="en-US"))
        text = fallback_summary(calculate_kpis(day_data), day_data)
        assert text.startswith("Hello Sam!")
        assert "Day summary for 2024-03-10" in text

    def test_unknown_language_is_german(self):
        assert user_language(_day(Profile(preferred_language="fr"))) == "de"
