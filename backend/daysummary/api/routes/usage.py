"""
Token and credit usage routes.

Provides the per-user spend history behind the credits dashboard.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from daysummary.api.deps import get_current_user
from daysummary.core.security import TokenData, ensure_can_access_user
from daysummary.database import get_db
from daysummary.services.billing import BillingService

router = APIRouter()


# =============================================================================
# Response Models
# =============================================================================


class DailySpend(BaseModel):
    date: str
    operation_type: str
    tokens_spent: int
    credits_used: int


class UsageResponse(BaseModel):
    user_id: str
    period_days: int
    total_tokens: int
    total_credits: int
    llm_requests: int
    cost_cents: float
    credits_remaining: Optional[int]
    history: list[DailySpend]


# =============================================================================
# Routes
# =============================================================================


@router.get("/{user_id}", response_model=UsageResponse)
async def get_usage(
    user_id: str,
    days: int = Query(30, ge=1, le=365, description="Days to look back"),
    current_user: TokenData = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Token spend per day, totals and the remaining credit balance."""
    ensure_can_access_user(current_user, user_id)
    return BillingService(db).get_usage(user_id, days=days)
