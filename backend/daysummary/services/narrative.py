"""
Narrative day summary generation.

One LLM call produces the long form; the medium and short variants are word
truncations of it. Any failure falls back to a deterministic template built
from the KPIs, so a narrative always exists unless text was skipped.
"""

import json
from dataclasses import dataclass
from typing import Any, Optional

from daysummary.config import Settings, get_settings
from daysummary.core.exceptions import LLMServiceError
from daysummary.core.logging import get_logger
from daysummary.services.day_data import DayData
from daysummary.services.kpi import KPIs
from daysummary.services.openai_service import OpenAIService, UsageData
from daysummary.services.structured_summary import without_raw_rows

logger = get_logger(__name__)

SHORT_WORDS = 120
MEDIUM_WORDS = 240

STATUS_GENERATED = "generated"
STATUS_SKIPPED = "skipped"
STATUS_FALLBACK = "fallback"

DEFAULT_NAMES = {"de": "Athlet", "en": "athlete"}

SYSTEM_PROMPTS = {
    "de": """Erstelle eine FACHLICHE Tageszusammenfassung in etwa 700 deutschen Wörtern.

Struktur:
1. Ernährung (Makros, Top-Foods, Timing, Kalorienbilanz)
2. Training (Volumen, Highlights, RPE, Muskel-Fokus)
3. Körper & Maße (Gewicht, KFA, Messungen, Trend)
4. Regeneration (Schlaf, Libido, Stimmung)
5. Hydration & Supplemente (Flüssigkeit, Koffein/Alkohol, Compliance)
6. Korrelationen & Insights (Schlaf und Leistung, Wochenbalance)
7. Handlungsempfehlungen (max. 4 konkrete Punkte)

Sprich {name} direkt an. Maximal 2 Emojis pro Abschnitt. Wissenschaftlich fundiert, aber verständlich.
Die Daten für den {date} folgen als JSON.""",
    "en": """Write a PROFESSIONAL day summary of about 700 English words.

Structure:
1. Nutrition (macros, top foods, timing, calorie balance)
2. Training (volume, highlights, RPE, muscle focus)
3. Body & measurements (weight, body fat, measurements, trend)
4. Recovery (sleep, libido, mood)
5. Hydration & supplements (fluids, caffeine/alcohol, compliance)
6. Correlations & insights (sleep and performance, weekly balance)
7. Recommendations (at most 4 concrete points)

Address {name} directly. At most 2 emojis per section. Evidence-based but easy to follow.
The data for {date} follows as JSON.""",
}


@dataclass
class NarrativeResult:
    long: str = ""
    medium: str = ""
    short: str = ""
    tokens_used: int = 0
    model: Optional[str] = None
    status: str = STATUS_SKIPPED
    error: Optional[str] = None
    usage: Optional[UsageData] = None

    @property
    def generated(self) -> bool:
        return self.status == STATUS_GENERATED


def truncate_words(text: str, limit: int) -> str:
    return " ".join(text.split()[:limit])


def user_language(day_data: DayData) -> str:
    lang = (day_data.profile.preferred_language if day_data.profile else None) or "de"
    lang = lang.lower()[:2]
    return lang if lang in SYSTEM_PROMPTS else "de"


def user_name(day_data: DayData, lang: str) -> str:
    default = DEFAULT_NAMES[lang]
    return day_data.profile.name_or(default) if day_data.profile else default


def _fmt(value: Any, suffix: str = "") -> str:
    if isinstance(value, float):
        value = f"{value:g}"
    return f"{value}{suffix}"


def fallback_summary(kpis: KPIs, day_data: DayData) -> str:
    """Template narrative from KPI values alone."""
    lang = user_language(day_data)
    name = user_name(day_data, lang)
    day = day_data.date.isoformat()

    if lang == "en":
        weight = f"Weight: {_fmt(kpis.weight, ' kg')}" if kpis.weight else "No weight measurement"
        sleep = f"{_fmt(kpis.sleep_hours, ' h')} of sleep" if kpis.sleep_hours else "No sleep data"
        lines = [
            f"Hello {name}!",
            f"Day summary for {day}",
            f"Nutrition: {_fmt(kpis.total_calories)} kcal with {_fmt(kpis.total_protein)} g protein, "
            f"{_fmt(kpis.total_carbs)} g carbs and {_fmt(kpis.total_fats)} g fat.",
            f"Training: {_fmt(kpis.workout_volume)} kg total volume over {kpis.total_sets} sets. "
            f"Average effort: {_fmt(kpis.avg_rpe)}/10.",
            f"Body: {weight}.",
            f"Recovery: {sleep}.",
            f"Hydration: {_fmt(kpis.total_fluid_ml)} ml of fluids.",
            f"Supplements: {kpis.supplement_compliance}% compliance.",
            "This summary was generated automatically because the AI service was temporarily unavailable.",
        ]
    else:
        weight = f"Gewicht: {_fmt(kpis.weight, ' kg')}" if kpis.weight else "Keine Gewichtsmessung"
        sleep = f"{_fmt(kpis.sleep_hours, ' h')} Schlaf" if kpis.sleep_hours else "Keine Schlafdaten"
        lines = [
            f"Hallo {name}!",
            f"Tageszusammenfassung für {day}",
            f"Ernährung: {_fmt(kpis.total_calories)} kcal mit {_fmt(kpis.total_protein)} g Protein, "
            f"{_fmt(kpis.total_carbs)} g Kohlenhydraten und {_fmt(kpis.total_fats)} g Fett.",
            f"Training: {_fmt(kpis.workout_volume)} kg Gesamtvolumen über {kpis.total_sets} Sätze. "
            f"Durchschnittliche Anstrengung: {_fmt(kpis.avg_rpe)}/10.",
            f"Körperdaten: {weight}.",
            f"Regeneration: {sleep}.",
            f"Hydration: {_fmt(kpis.total_fluid_ml)} ml Flüssigkeit.",
            f"Supplemente: {kpis.supplement_compliance}% Compliance.",
            "Diese Zusammenfassung wurde automatisch erstellt, da der AI-Service vorübergehend "
            "nicht verfügbar war.",
        ]
    return "\n\n".join(lines)


class NarrativeGenerator:
    """Turns the structured summary into long, medium and short text."""

    def __init__(self, llm: OpenAIService, settings: Optional[Settings] = None):
        self.llm = llm
        self.settings = settings or get_settings()

    def build_messages(self, structured: dict[str, Any], day_data: DayData) -> list[dict[str, str]]:
        lang = user_language(day_data)
        system = SYSTEM_PROMPTS[lang].format(
            name=user_name(day_data, lang),
            date=day_data.date.isoformat(),
        )
        payload = json.dumps(without_raw_rows(structured), ensure_ascii=False, default=str)
        return [
            {"role": "system", "content": system},
            {"role": "user", "content": payload},
        ]

    def _result(self, long_text: str, **kwargs) -> NarrativeResult:
        return NarrativeResult(
            long=long_text,
            medium=truncate_words(long_text, MEDIUM_WORDS),
            short=truncate_words(long_text, SHORT_WORDS),
            **kwargs,
        )

    async def generate(
        self,
        structured: dict[str, Any],
        kpis: KPIs,
        day_data: DayData,
        with_text: bool = True,
    ) -> NarrativeResult:
        if not with_text:
            return NarrativeResult(status=STATUS_SKIPPED)

        try:
            content, usage = await self.llm.chat_with_usage(
                self.build_messages(structured, day_data),
                max_tokens=self.settings.openai_max_tokens,
                temperature=self.settings.openai_temperature,
            )
            if not content or not content.strip():
                raise LLMServiceError("empty completion")
        except Exception as e:
            logger.warning(
                "narrative_generation_failed",
                date=day_data.date.isoformat(),
                error=str(e),
                error_type=type(e).__name__,
            )
            return self._result(
                fallback_summary(kpis, day_data),
                status=STATUS_FALLBACK,
                error=str(e),
            )

        logger.info(
            "narrative_generated",
            date=day_data.date.isoformat(),
            model=usage.model,
            total_tokens=usage.total_tokens,
        )
        return self._result(
            content.strip(),
            tokens_used=usage.total_tokens,
            model=usage.model,
            status=STATUS_GENERATED,
            usage=usage,
        )
