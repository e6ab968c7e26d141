from dataclasses import dataclass
from typing import Optional

from openai import APIConnectionError, APITimeoutError, AsyncOpenAI, RateLimitError
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from daysummary.config import Settings, get_settings
from daysummary.core.logging import get_logger

logger = get_logger(__name__)


@dataclass
class UsageData:
    """Token usage data from OpenAI API response."""

    prompt_tokens: int
    completion_tokens: int
    total_tokens: int
    model: str


class OpenAIService:
    """Service for interacting with OpenAI API."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self.client = AsyncOpenAI(
            api_key=self.settings.openai_api_key,
            timeout=self.settings.openai_timeout_seconds,
        )
        self.model = self.settings.openai_model

    def _extract_usage(self, response, model: str) -> UsageData:
        """Extract usage data from API response."""
        usage = response.usage
        return UsageData(
            prompt_tokens=usage.prompt_tokens if usage else 0,
            completion_tokens=usage.completion_tokens if usage else 0,
            total_tokens=usage.total_tokens if usage else 0,
            model=response.model or model,
        )

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_exception_type((APIConnectionError, APITimeoutError, RateLimitError)),
        reraise=True,
        before_sleep=lambda retry_state: logger.warning(
            "openai_retry",
            attempt=retry_state.attempt_number,
            wait=retry_state.next_action.sleep,
        ),
    )
    async def chat_with_usage(
        self,
        messages: list[dict[str, str]],
        model: Optional[str] = None,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
    ) -> tuple[str, UsageData]:
        """Send a chat request and return response with usage data."""
        kwargs = {
            "model": model or self.model,
            "messages": messages,
            "max_tokens": max_tokens or self.settings.openai_max_tokens,
            "temperature": (
                temperature if temperature is not None else self.settings.openai_temperature
            ),
        }

        response = await self.client.chat.completions.create(**kwargs)
        if not response.choices:
            return "", self._extract_usage(response, kwargs["model"])
        content = response.choices[0].message.content or ""
        usage = self._extract_usage(response, kwargs["model"])

        return content, usage

    async def health_check(self) -> bool:
        """Check if OpenAI API is reachable."""
        if not self.settings.openai_api_key:
            return False
        try:
            # Simple model list call to verify API key works
            await self.client.models.list()
            return True
        except Exception as e:
            logger.warning("openai_health_check_failed", error=str(e))
            return False
