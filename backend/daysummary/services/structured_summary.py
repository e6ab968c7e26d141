"""
Structured day summary.

The nested JSON built here is persisted verbatim in
``daily_summaries.summary_struct_json`` and read by other parts of the
application, so its shape is versioned and must not depend on which sources
had data. ``safe`` is applied only at this boundary.
"""

from datetime import date
from typing import Any, Optional, TypeVar

from daysummary.services.day_data import DayData, Profile
from daysummary.services.kpi import KPIs

SCHEMA_VERSION = "2025-08-v1"

T = TypeVar("T")


def safe(value: Optional[T], default: T) -> T:
    """``value`` unless it is None."""
    return default if value is None else value


def _rows(records) -> list[dict[str, Any]]:
    return [r.to_dict() for r in safe(records, [])]


def _row(record) -> Optional[dict[str, Any]]:
    return record.to_dict() if record is not None else None


def build_structured_summary(day: date, kpis: KPIs, day_data: DayData) -> dict[str, Any]:
    profile = day_data.profile or Profile()
    macros = safe(kpis.macro_distribution, {})
    recovery = safe(kpis.recovery_metrics, {})

    return {
        "day": day.isoformat(),
        "meta": {
            "collected_at": day_data.collected_at.isoformat(),
            "timezone": safe(day_data.timezone, ""),
            "schema_version": SCHEMA_VERSION,
            "data_completeness_score": safe(kpis.data_completeness_score, 0.0),
            "failed_sources": sorted(safe(day_data.failed_sources, {})),
        },
        "kpis": {
            "kcal": safe(kpis.total_calories, 0),
            "protein_g": safe(kpis.total_protein, 0),
            "volume_kg": safe(kpis.workout_volume, 0),
            "sleep_hours": kpis.sleep_hours,
            "hydration_score": kpis.hydration_score,
            "supplement_compliance_pct": safe(kpis.supplement_compliance, 0),
        },
        "nutrition": {
            "totals": {
                "kcal": safe(kpis.total_calories, 0),
                "protein_g": safe(kpis.total_protein, 0),
                "carbs_g": safe(kpis.total_carbs, 0),
                "fat_g": safe(kpis.total_fats, 0),
                "fiber_g": safe(kpis.total_fiber, 0),
                "sugar_g": safe(kpis.total_sugar, 0),
                "drink_kcal": safe(kpis.drink_calories, 0),
            },
            "macro_pct": {
                "protein": safe(macros.get("protein_percent"), 0),
                "carbs": safe(macros.get("carbs_percent"), 0),
                "fat": safe(macros.get("fats_percent"), 0),
            },
            "meals_count": safe(kpis.meals_count, 0),
            "top_foods": safe(kpis.top_foods, []),
            "meal_timing": safe(kpis.meal_timing, []),
            "meals": _rows(day_data.meals),
        },
        "training": {
            "volume_kg": safe(kpis.workout_volume, 0),
            "sets": safe(kpis.total_sets, 0),
            "avg_rpe": safe(kpis.avg_rpe, 0),
            "duration_min": safe(kpis.workout_duration, 0),
            "sessions_count": safe(kpis.sessions_count, 0),
            "quick_workouts_count": safe(kpis.quick_workouts_count, 0),
            "muscle_groups": safe(kpis.workout_muscle_groups, []),
            "exercise_types": safe(kpis.exercise_types, []),
            "sessions": _rows(day_data.workouts),
            "exercise_sets": _rows(day_data.exercise_sets),
            "quick_workouts": _rows(day_data.quick_workouts),
        },
        "body": {
            "weight_kg": kpis.weight,
            "body_fat_pct": kpis.body_fat_percentage,
            "muscle_mass_pct": kpis.muscle_mass_percentage,
            "body_water_pct": kpis.body_water_percentage,
            "visceral_fat": kpis.visceral_fat,
            "measurements": safe(kpis.body_measurements, {}),
            "weight_entry": _row(day_data.weight),
        },
        "recovery": {
            "sleep_hours": kpis.sleep_hours,
            "sleep_score": kpis.sleep_score,
            "sleep_quality": kpis.sleep_quality,
            "libido_level": kpis.libido_level,
            "bedtime": kpis.bedtime,
            "wake_time": kpis.wake_time,
            "recovery_metrics": {
                "sleep_interruptions": recovery.get("sleep_interruptions"),
                "sleep_motivation": recovery.get("sleep_motivation"),
                "sleep_efficiency": recovery.get("sleep_efficiency"),
            },
            "sleep_entry": _row(day_data.sleep),
        },
        "hydration": {
            "total_ml": safe(kpis.total_fluid_ml, 0),
            "caffeine_mg": safe(kpis.caffeine_mg, 0),
            "alcohol_g": safe(kpis.alcohol_g, 0),
            "hydration_score": kpis.hydration_score,
            "fluids": _rows(day_data.fluids),
        },
        "supplements": {
            "compliance_pct": safe(kpis.supplement_compliance, 0),
            "taken_count": safe(kpis.supplements_taken, 0),
            "missed_count": safe(kpis.supplements_missed, 0),
            "total_count": safe(kpis.supplements_total, 0),
            "supplement_log": _rows(day_data.supplement_log),
        },
        "activity": {
            "steps": kpis.steps,
            "distance_km": kpis.distance_km,
        },
        "weekly_training": {
            "training_days": safe(kpis.weekly_training_days, 0),
            "rest_days": safe(kpis.weekly_rest_days, 0),
            "avg_intensity": kpis.weekly_avg_intensity,
            "exercise_volume_kg": safe(kpis.weekly_exercise_volume, 0),
            "sessions_count": safe(kpis.weekly_sessions_count, 0),
        },
        "user_profile": {
            "name": profile.name_or(None),
            "age": profile.age,
            "gender": profile.gender,
            "height_cm": profile.height_cm,
            "weight_kg": profile.weight,
            "activity_level": profile.activity_level,
            "goal_type": profile.goal_type,
            "target_weight_kg": profile.target_weight,
            "language": safe(profile.preferred_language, "de"),
        },
        "coaching": {
            "sentiment": safe(kpis.coach_sentiment, "neutral"),
            "motivation_level": safe(kpis.motivation_level, "unknown"),
            "topics": safe(kpis.coach_topics, []),
            "messages_count": safe(kpis.coach_messages_count, 0),
            "conversations": _rows(day_data.coach_conversations),
        },
        "flags": list(safe(kpis.daily_flags, [])),
    }


RAW_KEYS = {
    "nutrition": ("meals",),
    "training": ("sessions", "exercise_sets", "quick_workouts"),
    "body": ("weight_entry",),
    "recovery": ("sleep_entry",),
    "hydration": ("fluids",),
    "supplements": ("supplement_log",),
    "coaching": ("conversations",),
}


def without_raw_rows(structured: dict[str, Any]) -> dict[str, Any]:
    """Copy of the summary with the raw row payloads dropped."""
    compact = dict(structured)
    for domain, keys in RAW_KEYS.items():
        if domain in compact:
            compact[domain] = {k: v for k, v in compact[domain].items() if k not in keys}
    return compact
