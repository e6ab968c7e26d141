"""
Day summary orchestration.

Runs one request through validation, the idempotency check, collection,
KPI calculation, the structured summary, the narrative, persistence and
billing, and shapes the response payload.
"""

import asyncio
import re
import time
import weakref
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Optional

from sqlalchemy.orm import sessionmaker

from daysummary.config import Settings, get_settings
from daysummary.core.exceptions import ValidationError
from daysummary.core.logging import get_logger
from daysummary.database import upsert
from daysummary.models import DailySummary
from daysummary.services.billing import BillingService, credits_for_tokens
from daysummary.services.collector import DataCollector
from daysummary.services.day_data import DayData
from daysummary.services.kpi import KPIs, calculate_kpis
from daysummary.services.narrative import NarrativeGenerator, NarrativeResult
from daysummary.services.openai_service import OpenAIService
from daysummary.services.sentiment import SentimentAnalyzer
from daysummary.services.structured_summary import SCHEMA_VERSION, build_structured_summary

logger = get_logger(__name__)

STATUS_SUCCESS = "success"
STATUS_PARTIAL_ERROR = "partial_error"
STATUS_SKIPPED = "skipped"

REASON_ALREADY_EXISTS = "already_exists"
REASON_NO_DATA = "no_data"

ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

# (user_id, date) -> lock; entries vanish once no request holds them
_locks: "weakref.WeakValueDictionary[tuple[str, date], asyncio.Lock]" = (
    weakref.WeakValueDictionary()
)


def _lock_for(user_id: str, day: date) -> asyncio.Lock:
    key = (user_id, day)
    lock = _locks.get(key)
    if lock is None:
        lock = asyncio.Lock()
        _locks[key] = lock
    return lock


@dataclass
class DaySummaryRequest:
    user_id: Optional[str] = None
    date: Optional[str] = None
    force_update: bool = False
    timezone: Optional[str] = None
    with_text: bool = True


@dataclass
class DaySummaryOutcome:
    body: dict[str, Any] = field(default_factory=dict)
    status_code: int = 200

    @property
    def status(self) -> str:
        return self.body.get("status", "")


def parse_request(request: DaySummaryRequest) -> tuple[str, date]:
    """Return (user_id, day) or raise ValidationError."""
    user_id = (request.user_id or "").strip()
    if not user_id:
        raise ValidationError("userId", "userId is required")

    raw_date = (request.date or "").strip()
    if not raw_date:
        raise ValidationError("date", "date is required")
    if not ISO_DATE.match(raw_date):
        raise ValidationError("date", "date must be formatted as YYYY-MM-DD")
    try:
        day = date.fromisoformat(raw_date)
    except ValueError:
        raise ValidationError("date", f"invalid calendar date: {raw_date}")

    return user_id, day


def _preview(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return f"{text[:limit]}..."


def _word_count(text: str) -> int:
    return len(text.split())


class DaySummaryService:
    """Builds, stores and bills one user's day summary."""

    def __init__(
        self,
        session_factory: sessionmaker,
        llm: OpenAIService,
        settings: Optional[Settings] = None,
        collector: Optional[DataCollector] = None,
        sentiment_analyzer: Optional[SentimentAnalyzer] = None,
    ):
        self.session_factory = session_factory
        self.settings = settings or get_settings()
        self.collector = collector or DataCollector(session_factory, self.settings)
        self.narrator = NarrativeGenerator(llm, self.settings)
        self.sentiment_analyzer = sentiment_analyzer

    async def run(self, request: DaySummaryRequest) -> DaySummaryOutcome:
        user_id, day = parse_request(request)

        async with _lock_for(user_id, day):
            return await self._run(user_id, day, request)

    async def _run(self, user_id: str, day: date, request: DaySummaryRequest) -> DaySummaryOutcome:
        start = time.perf_counter()
        loop = asyncio.get_running_loop()
        logger.info(
            "day_summary_started",
            user_id=user_id,
            date=day.isoformat(),
            force_update=request.force_update,
            with_text=request.with_text,
        )

        if not request.force_update:
            exists = await loop.run_in_executor(None, self.summary_exists, user_id, day)
            if exists:
                return self._skipped(user_id, day, REASON_ALREADY_EXISTS)

        timezone = await self.collector.resolve_timezone(user_id, request.timezone)
        day_data = await self.collector.collect(user_id, day, timezone)
        if not day_data.has_relevant_data():
            return self._skipped(user_id, day, REASON_NO_DATA)

        kpis = calculate_kpis(day_data, self.sentiment_analyzer)
        structured = build_structured_summary(day, kpis, day_data)

        narrative = await self.narrator.generate(
            structured, kpis, day_data, with_text=request.with_text
        )
        status = STATUS_PARTIAL_ERROR if narrative.status == "fallback" else STATUS_SUCCESS
        credits = credits_for_tokens(narrative.tokens_used, self.settings.tokens_per_credit)

        await loop.run_in_executor(
            None, self.persist, user_id, day, kpis, structured, narrative, credits
        )

        if status == STATUS_SUCCESS and credits > 0:
            await loop.run_in_executor(None, self.deduct_credits, user_id, credits)

        logger.info(
            "day_summary_completed",
            user_id=user_id,
            date=day.isoformat(),
            status=status,
            tokens_used=narrative.tokens_used,
            credits_used=credits,
            flags=kpis.daily_flags,
            failed_sources=sorted(day_data.failed_sources),
            duration_ms=round((time.perf_counter() - start) * 1000, 2),
        )
        return DaySummaryOutcome(
            body=self.response_body(day, status, kpis, day_data, structured, narrative, credits)
        )

    def _skipped(self, user_id: str, day: date, reason: str) -> DaySummaryOutcome:
        logger.info("day_summary_skipped", user_id=user_id, date=day.isoformat(), reason=reason)
        return DaySummaryOutcome(
            body={"date": day.isoformat(), "status": STATUS_SKIPPED, "reason": reason}
        )

    def summary_exists(self, user_id: str, day: date) -> bool:
        with self.session_factory() as db:
            row = (
                db.query(DailySummary.summary_xxl_md)
                .filter(DailySummary.user_id == user_id, DailySummary.date == day)
                .first()
            )
        return row is not None and bool(row.summary_xxl_md)

    def persist(
        self,
        user_id: str,
        day: date,
        kpis: KPIs,
        structured: dict[str, Any],
        narrative: NarrativeResult,
        credits: int,
    ) -> None:
        """Write summary, token spend and usage log in one transaction."""
        values = {
            "user_id": user_id,
            "date": day,
            "total_calories": kpis.total_calories,
            "total_protein": kpis.total_protein,
            "total_carbs": kpis.total_carbs,
            "total_fats": kpis.total_fats,
            "macro_distribution": kpis.macro_distribution,
            "top_foods": kpis.top_foods,
            "workout_volume": kpis.workout_volume,
            "workout_muscle_groups": kpis.workout_muscle_groups,
            "sleep_score": kpis.sleep_score,
            "hydration_score": kpis.hydration_score,
            "recovery_metrics": kpis.recovery_metrics,
            "summary_md": narrative.short,
            "summary_xl_md": narrative.medium,
            "summary_xxl_md": narrative.long,
            "kpi_xxl_json": kpis.to_dict(),
            "summary_struct_json": structured,
            "schema_version": SCHEMA_VERSION,
            "tokens_spent": narrative.tokens_used,
            "text_generated": narrative.generated,
            "updated_at": datetime.utcnow(),
        }

        with self.session_factory() as db:
            try:
                upsert(db, DailySummary, values, index_elements=("user_id", "date"))
                billing = BillingService(db)
                billing.record_token_spend(user_id, day, narrative.tokens_used, credits)
                if narrative.usage is not None:
                    billing.log_usage(user_id, narrative.usage, function_name="narrative_xxl")
                db.commit()
            except Exception:
                db.rollback()
                raise

        logger.info("day_summary_persisted", user_id=user_id, date=day.isoformat())

    def deduct_credits(self, user_id: str, credits: int) -> None:
        """Best-effort; a failed deduction never fails the request."""
        try:
            with self.session_factory() as db:
                BillingService(db).deduct_credits(user_id, credits)
        except Exception as e:
            logger.warning(
                "credit_deduction_failed",
                user_id=user_id,
                credits=credits,
                error=str(e),
            )

    def response_body(
        self,
        day: date,
        status: str,
        kpis: KPIs,
        day_data: DayData,
        structured: dict[str, Any],
        narrative: NarrativeResult,
        credits: int,
    ) -> dict[str, Any]:
        return {
            "date": day.isoformat(),
            "status": status,
            "tokens_used": narrative.tokens_used,
            "credits_used": credits,
            "flags": kpis.daily_flags,
            "debug": {
                "dataCollected": day_data.counts(),
                "calculatedKPIs": kpis.debug_view(),
                "summaryLengths": {
                    "standard": _word_count(narrative.short),
                    "xl": _word_count(narrative.medium),
                    "xxl": _word_count(narrative.long),
                },
                "flags": kpis.daily_flags,
                "timezone": day_data.timezone,
                "textStatus": narrative.status,
            },
            "summary_preview": {
                "standard": _preview(narrative.short, 200),
                "xl": _preview(narrative.medium, 300),
                "xxl": _preview(narrative.long, 400),
            },
            "summary_xxl_full": narrative.long,
            "structured_summary": structured,
        }
