"""Tests for the day summary orchestrator."""

import asyncio

import pytest
from sqlalchemy.orm import Session, sessionmaker

from daysummary import models
from daysummary.config import Settings
from daysummary.core.exceptions import ValidationError
from daysummary.services.collector import SOURCES, DataCollector
from daysummary.services.day_summary import DaySummaryRequest, DaySummaryService, parse_request

from tests.factories import DAY, USER_ID, FakeLLM


def _service(session_factory: sessionmaker, llm: FakeLLM, sources=None) -> DaySummaryService:
    settings = Settings(openai_api_key="test")
    collector = DataCollector(session_factory, settings, sources=sources)
    return DaySummaryService(session_factory, llm, settings, collector=collector)


def _request(**overrides) -> DaySummaryRequest:
    values = {"user_id": USER_ID, "date": DAY.isoformat()}
    values.update(overrides)
    return DaySummaryRequest(**values)


class TestParseRequest:
    """Input validation."""

    def test_valid(self):
        assert parse_request(_request(user_id="  abc  ")) == ("abc", DAY)

    @pytest.mark.parametrize(
        "overrides,field",
        [
            ({"user_id": None}, "userId"),
            ({"user_id": "   "}, "userId"),
            ({"date": None}, "date"),
            ({"date": "2024-3-10"}, "date"),
            ({"date": "2024-13-01"}, "date"),
        ],
    )
    def test_invalid(self, overrides: dict, field: str):
        with pytest.raises(ValidationError) as exc_info:
            parse_request(_request(**overrides))
        assert exc_info.value.details["field"] == field


class TestRun:
    """End to end through the service."""

    def test_concurrent_requests_compute_once(
        self, session_factory: sessionmaker, seeded_day: Session
    ):
        llm = FakeLLM()
        service = _service(session_factory, llm)

        async def both():
            return await asyncio.gather(service.run(_request()), service.run(_request()))

        first, second = asyncio.run(both())
        statuses = sorted([first.status, second.status])

        assert statuses == ["skipped", "success"]
        skipped = first if first.status == "skipped" else second
        assert skipped.body["reason"] == "already_exists"
        assert len(llm.calls) == 1

        seeded_day.expire_all()
        assert seeded_day.query(models.DailySummary).count() == 1
        assert seeded_day.get(models.UserCredits, USER_ID).credits_remaining == 8

    def test_force_update_recomputes(self, session_factory: sessionmaker, seeded_day: Session):
        llm = FakeLLM()
        service = _service(session_factory, llm)

        asyncio.run(service.run(_request()))
        outcome = asyncio.run(service.run(_request(force_update=True)))

        assert outcome.status == "success"
        assert len(llm.calls) == 2
        seeded_day.expire_all()
        assert seeded_day.get(models.UserCredits, USER_ID).credits_remaining == 6

    def test_text_is_generated_after_a_no_text_run(
        self, session_factory: sessionmaker, seeded_day: Session
    ):
        llm = FakeLLM()
        service = _service(session_factory, llm)

        first = asyncio.run(service.run(_request(with_text=False)))
        second = asyncio.run(service.run(_request()))
        third = asyncio.run(service.run(_request()))

        assert first.status == "success"
        assert second.status == "success"
        assert third.body["reason"] == "already_exists"
        assert len(llm.calls) == 1

        seeded_day.expire_all()
        row = seeded_day.query(models.DailySummary).one()
        assert row.summary_xxl_md == llm.content
        assert row.text_generated is True
        assert seeded_day.get(models.UserCredits, USER_ID).credits_remaining == 8

    def test_failed_source_still_succeeds(
        self, session_factory: sessionmaker, seeded_day: Session
    ):
        def broken(db, w):
            raise RuntimeError("boom")

        sources = {**SOURCES, "body_measurements": broken}
        outcome = asyncio.run(_service(session_factory, FakeLLM(), sources).run(_request()))

        assert outcome.status == "success"
        assert outcome.body["debug"]["dataCollected"]["failed_sources"] == ["body_measurements"]
        assert outcome.body["structured_summary"]["meta"]["failed_sources"] == ["body_measurements"]

    def test_fallback_is_persisted_without_billing(
        self, session_factory: sessionmaker, seeded_day: Session
    ):
        llm = FakeLLM(error=TimeoutError("read timeout"))
        outcome = asyncio.run(_service(session_factory, llm).run(_request()))

        assert outcome.status == "partial_error"
        assert outcome.body["credits_used"] == 0
        assert outcome.body["debug"]["textStatus"] == "fallback"

        seeded_day.expire_all()
        row = seeded_day.query(models.DailySummary).one()
        assert row.text_generated is False
        assert row.summary_xxl_md.startswith("Hallo Mara!")
        assert seeded_day.get(models.UserCredits, USER_ID).credits_remaining == 10

    def test_no_data(self, session_factory: sessionmaker):
        llm = FakeLLM()
        outcome = asyncio.run(_service(session_factory, llm).run(_request()))

        assert outcome.body == {"date": "2024-03-10", "status": "skipped", "reason": "no_data"}
        assert llm.calls == []

    def test_response_shape(self, session_factory: sessionmaker, seeded_day: Session):
        outcome = asyncio.run(_service(session_factory, FakeLLM()).run(_request()))
        body = outcome.body

        assert set(body) == {
            "date",
            "status",
            "tokens_used",
            "credits_used",
            "flags",
            "debug",
            "summary_preview",
            "summary_xxl_full",
            "structured_summary",
        }
        assert body["debug"]["calculatedKPIs"]["totalCalories"] == 1800
        assert body["debug"]["calculatedKPIs"]["hydrationScore"] == 82
        assert body["summary_preview"]["standard"].endswith("...")

    def test_short_text_preview_is_not_marked_as_cut(
        self, session_factory: sessionmaker, seeded_day: Session
    ):
        llm = FakeLLM(content="Kurzer, guter Tag.")
        body = asyncio.run(_service(session_factory, llm).run(_request())).body

        assert body["summary_preview"] == {
            "standard": "Kurzer, guter Tag.",
            "xl": "Kurzer, guter Tag.",
            "xxl": "Kurzer, guter Tag.",
        }

    def test_skipped_text_preview_is_empty(self, session_factory: sessionmaker, seeded_day: Session):
        body = asyncio.run(
            _service(session_factory, FakeLLM()).run(_request(with_text=False))
        ).body
        assert body["summary_preview"] == {"standard": "", "xl": "", "xxl": ""}
