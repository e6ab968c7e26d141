"""
Credits and usage accounting.

Tracks token spend per user and day, logs every LLM request with its cost,
and deducts credits from the user's balance.
"""

import math
from datetime import date, datetime, timedelta
from typing import Any, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from daysummary.core.exceptions import BillingError
from daysummary.core.logging import get_logger
from daysummary.database import upsert
from daysummary.models import LlmUsageLog, TokenSpend, UserCredits
from daysummary.services.openai_service import UsageData

logger = get_logger(__name__)

OPERATION_SUMMARY = "summary_generation"
FEATURE_DAY_SUMMARY = "day_summary"

# OpenAI pricing per 1M tokens, USD
OPENAI_PRICING = {
    "gpt-4.1": {"input": 2.00, "output": 8.00},
    "gpt-4.1-2025-04-14": {"input": 2.00, "output": 8.00},
    "gpt-4.1-mini": {"input": 0.40, "output": 1.60},
    "gpt-4.1-mini-2025-04-14": {"input": 0.40, "output": 1.60},
    "gpt-4o": {"input": 2.50, "output": 10.00},
    "gpt-4o-2024-11-20": {"input": 2.50, "output": 10.00},
    "gpt-4o-mini": {"input": 0.15, "output": 0.60},
    "gpt-4o-mini-2024-07-18": {"input": 0.15, "output": 0.60},
}

# Default pricing for unknown models
DEFAULT_PRICING = {"input": 1.00, "output": 2.00}


def credits_for_tokens(tokens: int, tokens_per_credit: int = 750) -> int:
    """One credit per started block of ``tokens_per_credit`` tokens."""
    if tokens <= 0:
        return 0
    return math.ceil(tokens / tokens_per_credit)


def calculate_cost_cents(model: str, prompt_tokens: int, completion_tokens: int) -> float:
    """Cost in cents (float for precision with cheap models)."""
    pricing = OPENAI_PRICING.get(model, DEFAULT_PRICING)

    # Price per 1M tokens, so divide by 1,000,000
    input_cost = (prompt_tokens / 1_000_000) * pricing["input"]
    output_cost = (completion_tokens / 1_000_000) * pricing["output"]

    return (input_cost + output_cost) * 100


class BillingService:
    """Token spend, LLM usage log and credit balance for one session."""

    def __init__(self, db: Session):
        self.db = db

    def record_token_spend(
        self,
        user_id: str,
        day: date,
        tokens: int,
        credits: int,
        operation_type: str = OPERATION_SUMMARY,
    ) -> None:
        """Upsert the spend row for (user, day, operation). Caller commits."""
        upsert(
            self.db,
            TokenSpend,
            {
                "user_id": user_id,
                "date": day,
                "operation_type": operation_type,
                "tokens_spent": tokens,
                "credits_used": credits,
                "created_at": datetime.utcnow(),
            },
            index_elements=("user_id", "date", "operation_type"),
        )

    def log_usage(
        self,
        user_id: str,
        usage: UsageData,
        function_name: Optional[str] = None,
        feature: str = FEATURE_DAY_SUMMARY,
    ) -> LlmUsageLog:
        """Add one LLM request to the usage log. Caller commits."""
        cost_cents = calculate_cost_cents(usage.model, usage.prompt_tokens, usage.completion_tokens)
        entry = LlmUsageLog(
            timestamp=datetime.utcnow(),
            user_id=user_id,
            feature=feature,
            function_name=function_name,
            model=usage.model,
            prompt_tokens=usage.prompt_tokens,
            completion_tokens=usage.completion_tokens,
            total_tokens=usage.total_tokens,
            cost_cents=cost_cents,
        )
        self.db.add(entry)

        logger.info(
            "llm_usage_logged",
            user_id=user_id,
            feature=feature,
            model=usage.model,
            total_tokens=usage.total_tokens,
            cost_cents=cost_cents,
        )
        return entry

    def deduct_credits(self, user_id: str, credits: int) -> int:
        """Subtract credits and commit. Returns the remaining balance."""
        if credits <= 0:
            raise BillingError(user_id, f"Invalid credit amount: {credits}")

        account = (
            self.db.query(UserCredits)
            .filter(UserCredits.user_id == user_id)
            .with_for_update()
            .first()
        )
        if account is None:
            raise BillingError(user_id, "No credit account")
        if account.credits_remaining < credits:
            raise BillingError(
                user_id,
                f"Insufficient credits: {account.credits_remaining} < {credits}",
            )

        account.credits_remaining -= credits
        account.updated_at = datetime.utcnow()
        self.db.commit()

        logger.info(
            "credits_deducted",
            user_id=user_id,
            credits=credits,
            remaining=account.credits_remaining,
        )
        return account.credits_remaining

    def credits_remaining(self, user_id: str) -> Optional[int]:
        account = self.db.get(UserCredits, user_id)
        return account.credits_remaining if account else None

    def get_usage(self, user_id: str, days: int = 30, today: Optional[date] = None) -> dict[str, Any]:
        """Daily token spend for the last ``days`` days plus totals and balance."""
        today = today or datetime.utcnow().date()
        since = today - timedelta(days=days - 1)

        rows = (
            self.db.query(TokenSpend)
            .filter(
                TokenSpend.user_id == user_id,
                TokenSpend.date >= since,
                TokenSpend.date <= today,
            )
            .order_by(TokenSpend.date.asc(), TokenSpend.operation_type.asc())
            .all()
        )

        cost = (
            self.db.query(
                func.count(LlmUsageLog.id).label("request_count"),
                func.sum(LlmUsageLog.cost_cents).label("cost_cents"),
            )
            .filter(
                LlmUsageLog.user_id == user_id,
                LlmUsageLog.timestamp >= datetime.combine(since, datetime.min.time()),
            )
            .first()
        )

        return {
            "user_id": user_id,
            "period_days": days,
            "total_tokens": sum(r.tokens_spent or 0 for r in rows),
            "total_credits": sum(r.credits_used or 0 for r in rows),
            "llm_requests": cost.request_count or 0,
            "cost_cents": cost.cost_cents or 0,
            "credits_remaining": self.credits_remaining(user_id),
            "history": [
                {
                    "date": r.date.isoformat(),
                    "operation_type": r.operation_type,
                    "tokens_spent": r.tokens_spent or 0,
                    "credits_used": r.credits_used or 0,
                }
                for r in rows
            ],
        }
