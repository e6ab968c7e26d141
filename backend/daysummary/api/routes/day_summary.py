"""Day summary endpoints."""

import datetime as dt
from typing import Any, Optional

from fastapi import APIRouter, Depends, Header, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session, sessionmaker

from daysummary.api.deps import get_current_user, get_llm_service, get_session_factory
from daysummary.config import get_settings
from daysummary.core.exceptions import DaySummaryException, NotFoundError
from daysummary.core.logging import get_logger
from daysummary.core.rate_limit import limiter
from daysummary.core.security import TokenData, ensure_can_access_user
from daysummary.database import get_db
from daysummary.models import DailySummary
from daysummary.services.day_summary import DaySummaryRequest, DaySummaryService, parse_request
from daysummary.services.openai_service import OpenAIService

router = APIRouter()
settings = get_settings()
logger = get_logger(__name__)


class DaySummaryBody(BaseModel):
    user_id: Optional[str] = Field(None, alias="userId")
    date: Optional[str] = None
    force_update: bool = Field(False, alias="forceUpdate")

    class Config:
        populate_by_name = True


class StoredDaySummary(BaseModel):
    user_id: str
    date: dt.date
    total_calories: Optional[float] = None
    total_protein: Optional[float] = None
    total_carbs: Optional[float] = None
    total_fats: Optional[float] = None
    macro_distribution: Optional[dict[str, Any]] = None
    top_foods: Optional[list[dict[str, Any]]] = None
    workout_volume: Optional[float] = None
    workout_muscle_groups: Optional[list[str]] = None
    sleep_score: Optional[float] = None
    hydration_score: Optional[int] = None
    recovery_metrics: Optional[dict[str, Any]] = None
    summary_md: Optional[str] = None
    summary_xl_md: Optional[str] = None
    summary_xxl_md: Optional[str] = None
    summary_struct_json: Optional[dict[str, Any]] = None
    schema_version: Optional[str] = None
    tokens_spent: int = 0
    text_generated: bool = False

    class Config:
        from_attributes = True


def _is_true(value: Optional[str]) -> bool:
    return (value or "").strip().lower() == "true"


@router.post("")
@limiter.limit(settings.day_summary_rate_limit)
async def create_day_summary(
    request: Request,
    body: DaySummaryBody,
    x_user_tz: Optional[str] = Header(None),
    x_no_text: Optional[str] = Header(None),
    current_user: TokenData = Depends(get_current_user),
    session_factory: sessionmaker = Depends(get_session_factory),
    llm: OpenAIService = Depends(get_llm_service),
):
    """
    Build, store and bill the summary for one user and day.

    Returns 200 with status ``success``, ``partial_error`` or ``skipped``.
    Only unexpected failures map to a 500.
    """
    summary_request = DaySummaryRequest(
        user_id=body.user_id,
        date=body.date,
        force_update=body.force_update,
        timezone=x_user_tz,
        with_text=not _is_true(x_no_text),
    )
    user_id, _ = parse_request(summary_request)
    ensure_can_access_user(current_user, user_id)

    service = DaySummaryService(session_factory, llm, settings)
    try:
        outcome = await service.run(summary_request)
    except DaySummaryException:
        raise
    except Exception as e:
        logger.exception(
            "day_summary_failed",
            user_id=user_id,
            date=body.date,
            error=str(e),
        )
        return JSONResponse(status_code=500, content={"status": "error", "message": str(e)})

    return JSONResponse(status_code=outcome.status_code, content=outcome.body)


@router.get("/{user_id}/{day}", response_model=StoredDaySummary)
async def get_day_summary(
    user_id: str,
    day: dt.date,
    current_user: TokenData = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Return the stored summary row for one user and day."""
    ensure_can_access_user(current_user, user_id)

    row = (
        db.query(DailySummary)
        .filter(DailySummary.user_id == user_id, DailySummary.date == day)
        .first()
    )
    if row is None:
        raise NotFoundError("Day summary", f"{user_id}/{day.isoformat()}")
    return row
