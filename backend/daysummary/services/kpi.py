"""
KPI calculation.

``calculate_kpis`` is a pure function from ``DayData`` to a fully populated
``KPIs`` record. Nothing here reads the database or the clock.
"""

from collections import Counter
from dataclasses import asdict, dataclass, field
from datetime import timezone as dt_timezone
from typing import Any, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from daysummary.services.day_data import DayData
from daysummary.services.sentiment import KeywordSentimentAnalyzer, SentimentAnalyzer

# Flag thresholds
VERY_LOW_CALORIES = 1200
LOW_PROTEIN_G_PER_KG = 1.2
HIGH_VOLUME_KG = 5000
INSUFFICIENT_SLEEP_HOURS = 6
DEHYDRATED_SCORE = 60
HIGH_INTENSITY_RPE = 8

# ml per kg body weight that counts as fully hydrated
HYDRATION_ML_PER_KG = 35

# Weights of the data completeness score, summing to 100
COMPLETENESS_WEIGHTS = {
    "nutrition": 30,
    "training": 25,
    "sleep": 20,
    "hydration": 15,
    "supplements": 10,
}

TOP_FOODS_LIMIT = 5
UNKNOWN_FOOD = "Unbekannt"


@dataclass
class KPIs:
    # nutrition
    total_calories: float = 0.0
    total_protein: float = 0.0
    total_carbs: float = 0.0
    total_fats: float = 0.0
    total_fiber: float = 0.0
    total_sugar: float = 0.0
    drink_calories: float = 0.0
    meals_count: int = 0
    macro_distribution: dict[str, int] = field(
        default_factory=lambda: {"protein_percent": 0, "carbs_percent": 0, "fats_percent": 0}
    )
    top_foods: list[dict[str, Any]] = field(default_factory=list)
    meal_timing: list[dict[str, int]] = field(default_factory=list)

    # training
    workout_volume: float = 0.0
    total_sets: int = 0
    avg_rpe: float = 0.0
    workout_duration: int = 0
    workout_muscle_groups: list[str] = field(default_factory=list)
    exercise_types: list[str] = field(default_factory=list)
    sessions_count: int = 0
    quick_workouts_count: int = 0

    # body
    weight: Optional[float] = None
    body_fat_percentage: Optional[float] = None
    muscle_mass_percentage: Optional[float] = None
    body_water_percentage: Optional[float] = None
    visceral_fat: Optional[float] = None
    body_measurements: dict[str, Any] = field(default_factory=dict)

    # recovery
    sleep_hours: Optional[float] = None
    sleep_quality: Optional[int] = None
    sleep_score: Optional[int] = None
    libido_level: Optional[int] = None
    bedtime: Optional[str] = None
    wake_time: Optional[str] = None
    recovery_metrics: dict[str, Any] = field(
        default_factory=lambda: {
            "sleep_interruptions": None,
            "sleep_motivation": None,
            "sleep_efficiency": None,
        }
    )

    # hydration
    total_fluid_ml: float = 0.0
    caffeine_mg: float = 0.0
    alcohol_g: float = 0.0
    hydration_score: Optional[int] = None

    # supplements
    supplement_compliance: int = 0
    supplements_taken: int = 0
    supplements_missed: int = 0
    supplements_total: int = 0

    # coaching
    coach_sentiment: str = "neutral"
    motivation_level: str = "unknown"
    coach_topics: list[str] = field(default_factory=list)
    coach_messages_count: int = 0

    # trailing week
    weekly_training_days: int = 0
    weekly_rest_days: int = 0
    weekly_avg_intensity: Optional[float] = None
    weekly_exercise_volume: int = 0
    weekly_sessions_count: int = 0

    # activity
    steps: Optional[int] = None
    distance_km: Optional[float] = None

    data_completeness_score: float = 0.0
    daily_flags: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    def debug_view(self) -> dict[str, Any]:
        """The handful of values echoed back in the response's debug block."""
        return {
            "totalCalories": self.total_calories,
            "totalProtein": self.total_protein,
            "workoutVolume": self.workout_volume,
            "sleepScore": self.sleep_score,
            "hydrationScore": self.hydration_score,
            "supplementCompliance": self.supplement_compliance,
            "muscleGroups": self.workout_muscle_groups,
            "weeklyTrainingDays": self.weekly_training_days,
        }


def _unique(values) -> list:
    seen = []
    for value in values:
        if value and value not in seen:
            seen.append(value)
    return seen


def _zone(name: str) -> ZoneInfo:
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        return ZoneInfo("UTC")


def macro_distribution(protein: float, carbs: float, fats: float, calories: float) -> dict[str, int]:
    """Share of total calories per macro; all zero when no calories were logged."""
    if calories <= 0:
        return {"protein_percent": 0, "carbs_percent": 0, "fats_percent": 0}
    return {
        "protein_percent": round(protein * 4 / calories * 100),
        "carbs_percent": round(carbs * 4 / calories * 100),
        "fats_percent": round(fats * 9 / calories * 100),
    }


def sleep_efficiency(hours: Optional[float]) -> Optional[str]:
    if hours is None:
        return None
    if hours >= 7:
        return "good"
    if hours >= 6:
        return "fair"
    return "needs_improvement"


def resolve_body_weight(kpi_weight: Optional[float], day_data: DayData) -> Optional[float]:
    """Today's measured weight, then the profile weight, then the raw weight row."""
    candidates = (
        kpi_weight,
        day_data.profile.weight if day_data.profile else None,
        day_data.weight.weight if day_data.weight else None,
    )
    for weight in candidates:
        if weight is not None and weight > 0:
            return weight
    return None


def hydration_score(total_ml: float, weight_kg: Optional[float]) -> Optional[int]:
    if not weight_kg or weight_kg <= 0:
        return None
    return min(100, round(total_ml / weight_kg / HYDRATION_ML_PER_KG * 100))


def _nutrition(kpis: KPIs, day_data: DayData) -> None:
    meals = day_data.meals
    totals = day_data.fast_meal_totals

    if totals is not None:
        calories, protein, carbs, fats = totals.calories, totals.protein, totals.carbs, totals.fats
    else:
        calories = sum(m.calories or 0 for m in meals)
        protein = sum(m.protein or 0 for m in meals)
        carbs = sum(m.carbs or 0 for m in meals)
        fats = sum(m.fats or 0 for m in meals)

    kpis.total_calories = round(calories, 1)
    kpis.total_protein = round(protein, 1)
    kpis.total_carbs = round(carbs, 1)
    kpis.total_fats = round(fats, 1)
    kpis.total_fiber = round(sum(m.fiber or 0 for m in meals), 1)
    kpis.total_sugar = round(sum(m.sugar or 0 for m in meals), 1)
    kpis.meals_count = len(meals)
    kpis.macro_distribution = macro_distribution(protein, carbs, fats, calories)

    foods = Counter((m.text or UNKNOWN_FOOD, m.quality_score or 0) for m in meals)
    kpis.top_foods = [
        {"food": food, "score": score, "count": count}
        for (food, score), count in foods.most_common(TOP_FOODS_LIMIT)
    ]

    zone = _zone(day_data.timezone)
    hours = Counter(
        m.created_at.replace(tzinfo=dt_timezone.utc).astimezone(zone).hour
        for m in meals
        if m.created_at is not None
    )
    kpis.meal_timing = [{"hour": hour, "meals": hours[hour]} for hour in sorted(hours)]

    kpis.drink_calories = round(
        sum((f.calories_per_100ml or 0) * f.amount_ml / 100 for f in day_data.fluids)
    )


def _training(kpis: KPIs, day_data: DayData) -> None:
    sets = day_data.exercise_sets
    sessions = day_data.workouts
    quick = [w for w in day_data.quick_workouts if w.did_workout]

    if day_data.fast_sets_volume is not None:
        volume = day_data.fast_sets_volume
    else:
        volume = sum(s.volume_kg for s in sets)
    kpis.workout_volume = round(volume, 1)
    kpis.total_sets = len(sets)

    kpis.workout_muscle_groups = _unique(mg for s in sets for mg in s.muscle_groups)
    kpis.exercise_types = _unique(s.category for s in sets)

    kpis.workout_duration = sum(s.duration_minutes or 0 for s in sessions) + sum(
        w.duration_minutes or 0 for w in quick
    )

    rpes = [s.overall_rpe for s in sessions if s.overall_rpe is not None]
    if not rpes:
        rpes = [s.rpe for s in sets if s.rpe is not None]
    kpis.avg_rpe = round(sum(rpes) / len(rpes), 1) if rpes else 0.0

    kpis.sessions_count = len(sessions)
    kpis.quick_workouts_count = len(quick)


def _body(kpis: KPIs, day_data: DayData) -> None:
    if day_data.weight is not None:
        kpis.weight = day_data.weight.weight
        kpis.body_fat_percentage = day_data.weight.body_fat_percentage
        kpis.muscle_mass_percentage = day_data.weight.muscle_percentage
        kpis.body_water_percentage = day_data.weight.body_water_percentage
        kpis.visceral_fat = day_data.weight.visceral_fat
    if day_data.body_measurements is not None:
        kpis.body_measurements = day_data.body_measurements.to_dict()


def _recovery(kpis: KPIs, day_data: DayData) -> None:
    sleep = day_data.sleep
    if sleep is None:
        return
    kpis.sleep_hours = sleep.sleep_hours
    kpis.sleep_quality = sleep.sleep_quality
    kpis.sleep_score = sleep.sleep_score
    kpis.libido_level = sleep.morning_libido
    kpis.bedtime = sleep.bedtime
    kpis.wake_time = sleep.wake_time
    kpis.recovery_metrics = {
        "sleep_interruptions": sleep.sleep_interruptions,
        "sleep_motivation": sleep.motivation_level,
        "sleep_efficiency": sleep_efficiency(sleep.sleep_hours),
    }


def _hydration(kpis: KPIs, day_data: DayData) -> None:
    fluids = day_data.fluids
    if day_data.fast_fluid_ml is not None:
        total = day_data.fast_fluid_ml
    else:
        total = sum(f.amount_ml or 0 for f in fluids)

    kpis.total_fluid_ml = round(total, 1)
    kpis.caffeine_mg = round(
        sum((f.caffeine_mg_per_100ml or 0) * f.amount_ml / 100 for f in fluids), 1
    )
    kpis.alcohol_g = round(
        sum((f.alcohol_percentage or 0) * f.amount_ml / 100 * 0.8 for f in fluids), 1
    )

    # No fluid data at all means unknown, not zero
    if fluids or day_data.fast_fluid_ml is not None:
        kpis.hydration_score = hydration_score(total, resolve_body_weight(kpis.weight, day_data))


def _supplements(kpis: KPIs, day_data: DayData) -> None:
    log = day_data.supplement_log
    taken = sum(1 for s in log if s.is_taken)
    kpis.supplements_total = len(log)
    kpis.supplements_taken = taken
    kpis.supplements_missed = len(log) - taken
    kpis.supplement_compliance = round(taken / len(log) * 100) if log else 0


def _coaching(kpis: KPIs, day_data: DayData, analyzer: SentimentAnalyzer) -> None:
    messages = day_data.user_messages()
    result = analyzer.analyze(messages)
    kpis.coach_sentiment = result.sentiment
    kpis.motivation_level = result.motivation_level
    kpis.coach_topics = list(result.topics)
    kpis.coach_messages_count = len(messages)


def _weekly(kpis: KPIs, day_data: DayData) -> None:
    by_date: dict = {}
    for w in day_data.weekly_workouts:
        if w.date is None:
            continue
        by_date[w.date] = by_date.get(w.date, False) or w.did_workout

    kpis.weekly_training_days = sum(1 for trained in by_date.values() if trained)
    kpis.weekly_rest_days = sum(1 for trained in by_date.values() if not trained)

    intensities = [w.intensity for w in day_data.weekly_workouts if w.intensity is not None]
    kpis.weekly_avg_intensity = (
        round(sum(intensities) / len(intensities), 1) if intensities else None
    )

    sessions = day_data.weekly_exercise_sessions
    kpis.weekly_exercise_volume = round(sum(s.volume_kg for s in sessions))
    kpis.weekly_sessions_count = len(sessions)


def _activity(kpis: KPIs, day_data: DayData) -> None:
    steps = [w.steps for w in day_data.quick_workouts if w.steps is not None]
    distances = [w.distance_km for w in day_data.quick_workouts if w.distance_km is not None]
    kpis.steps = sum(steps) if steps else None
    kpis.distance_km = round(sum(distances), 2) if distances else None


def data_completeness(day_data: DayData) -> float:
    present = {
        "nutrition": bool(day_data.meals) or day_data.fast_meal_totals is not None,
        "training": bool(
            day_data.workouts
            or day_data.exercise_sets
            or any(w.did_workout for w in day_data.quick_workouts)
        ),
        "sleep": day_data.sleep is not None,
        "hydration": bool(day_data.fluids) or day_data.fast_fluid_ml is not None,
        "supplements": bool(day_data.supplement_log),
    }
    score = sum(COMPLETENESS_WEIGHTS[key] for key, ok in present.items() if ok)
    return round(score / 100, 2)


def daily_flags(kpis: KPIs, body_weight: Optional[float]) -> list[str]:
    flags = []
    if 0 < kpis.total_calories < VERY_LOW_CALORIES:
        flags.append("very_low_calories")
    nutrition_logged = kpis.total_calories > 0 or kpis.total_protein > 0
    if nutrition_logged and body_weight and kpis.total_protein / body_weight < LOW_PROTEIN_G_PER_KG:
        flags.append("low_protein")
    if kpis.workout_volume > HIGH_VOLUME_KG:
        flags.append("high_volume_training")
    if kpis.sleep_hours is not None and kpis.sleep_hours < INSUFFICIENT_SLEEP_HOURS:
        flags.append("insufficient_sleep")
    if kpis.hydration_score is not None and kpis.hydration_score < DEHYDRATED_SCORE:
        flags.append("dehydrated")
    if kpis.avg_rpe > HIGH_INTENSITY_RPE:
        flags.append("high_intensity_training")
    return flags


def calculate_kpis(
    day_data: DayData,
    sentiment_analyzer: Optional[SentimentAnalyzer] = None,
) -> KPIs:
    """Derive every KPI for the day. Always returns a fully populated record."""
    kpis = KPIs()
    _nutrition(kpis, day_data)
    _training(kpis, day_data)
    _body(kpis, day_data)
    _recovery(kpis, day_data)
    _hydration(kpis, day_data)
    _supplements(kpis, day_data)
    _coaching(kpis, day_data, sentiment_analyzer or KeywordSentimentAnalyzer())
    _weekly(kpis, day_data)
    _activity(kpis, day_data)
    kpis.data_completeness_score = data_completeness(day_data)
    kpis.daily_flags = daily_flags(kpis, resolve_body_weight(kpis.weight, day_data))
    return kpis
