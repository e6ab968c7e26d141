"""
Day data collection.

Fans out one query per data source for a single user and calendar day,
runs them concurrently on a thread pool (each with its own session and a
timeout), and folds the outcomes into a ``DayData`` aggregate. A failing or
slow source only costs its own data.
"""

import asyncio
import time
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from datetime import time as dtime
from datetime import timezone as dt_timezone
from typing import Any, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from sqlalchemy import and_, func, or_
from sqlalchemy.orm import Session, joinedload, selectinload, sessionmaker

from daysummary import models
from daysummary.config import Settings, get_settings
from daysummary.core.logging import get_logger
from daysummary.services.day_data import (
    BodyMeasurements,
    CoachMessage,
    DayData,
    ExerciseSet,
    FluidIntake,
    Meal,
    MealTotals,
    Profile,
    QuickWorkout,
    SleepEntry,
    SourceResult,
    SupplementIntake,
    WeightEntry,
    WorkoutSession,
)

logger = get_logger(__name__)


@dataclass(frozen=True)
class DayWindow:
    """Query scope: one user, one local calendar day and the trailing week."""

    user_id: str
    day: date
    timezone: str
    start_utc: datetime  # naive UTC, inclusive
    end_utc: datetime  # naive UTC, exclusive
    week_start: date  # inclusive


def load_zone(name: Optional[str]) -> Optional[ZoneInfo]:
    """Return the zone for an IANA name, or None if it is empty or unknown."""
    if not name:
        return None
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        return None


def day_window(user_id: str, day: date, tz_name: str, lookback_days: int = 7) -> DayWindow:
    """Local midnight to next local midnight, expressed as naive UTC."""
    zone = load_zone(tz_name) or ZoneInfo("UTC")
    local_start = datetime.combine(day, dtime.min, tzinfo=zone)
    local_end = datetime.combine(day + timedelta(days=1), dtime.min, tzinfo=zone)
    return DayWindow(
        user_id=user_id,
        day=day,
        timezone=tz_name,
        start_utc=local_start.astimezone(dt_timezone.utc).replace(tzinfo=None),
        end_utc=local_end.astimezone(dt_timezone.utc).replace(tzinfo=None),
        week_start=day - timedelta(days=lookback_days - 1),
    )


# =============================================================================
# Row -> record conversion
# =============================================================================


def _set_record(row: models.ExerciseSet) -> ExerciseSet:
    exercise = row.exercise
    return ExerciseSet(
        id=row.id,
        session_id=row.session_id,
        exercise_id=row.exercise_id,
        set_number=row.set_number,
        reps=row.reps,
        weight_kg=row.weight_kg,
        rpe=row.rpe,
        duration_seconds=row.duration_seconds,
        rest_seconds=row.rest_seconds,
        created_at=row.created_at,
        exercise_name=exercise.name if exercise else None,
        muscle_groups=list(exercise.muscle_groups or []) if exercise else [],
        category=exercise.category if exercise else None,
        equipment=exercise.equipment if exercise else None,
        is_compound=exercise.is_compound if exercise else None,
    )


def _session_record(row: models.ExerciseSession, with_sets: bool = False) -> WorkoutSession:
    return WorkoutSession(
        id=row.id,
        session_name=row.session_name,
        workout_type=row.workout_type,
        duration_minutes=row.duration_minutes,
        overall_rpe=row.overall_rpe,
        notes=row.notes,
        start_time=row.start_time,
        end_time=row.end_time,
        date=row.date,
        sets=[_set_record(s) for s in row.sets] if with_sets else [],
    )


def _quick_workout_record(row: models.QuickWorkout) -> QuickWorkout:
    return QuickWorkout(
        id=row.id,
        date=row.date,
        did_workout=bool(row.did_workout),
        workout_type=row.workout_type,
        duration_minutes=row.duration_minutes,
        intensity=row.intensity,
        distance_km=row.distance_km,
        steps=row.steps,
        notes=row.notes,
    )


# =============================================================================
# Day filters
# =============================================================================


def _meal_in_day(w: DayWindow):
    # Rows written with only a date and no precise timestamp still count
    return and_(
        models.Meal.user_id == w.user_id,
        or_(
            and_(models.Meal.created_at >= w.start_utc, models.Meal.created_at < w.end_utc),
            models.Meal.date == w.day,
        ),
    )


def _set_in_day(w: DayWindow):
    return and_(
        models.ExerciseSet.user_id == w.user_id,
        or_(
            and_(
                models.ExerciseSet.created_at >= w.start_utc,
                models.ExerciseSet.created_at < w.end_utc,
            ),
            models.ExerciseSet.date == w.day,
        ),
    )


def _fluid_in_day(w: DayWindow):
    return and_(
        models.FluidIntake.user_id == w.user_id,
        or_(
            and_(
                models.FluidIntake.consumed_at >= w.start_utc,
                models.FluidIntake.consumed_at < w.end_utc,
            ),
            models.FluidIntake.date == w.day,
        ),
    )


# =============================================================================
# Fast aggregates
# =============================================================================


def query_fast_meal_totals(db: Session, w: DayWindow) -> Optional[MealTotals]:
    row = (
        db.query(
            func.count(models.Meal.id),
            func.sum(models.Meal.calories),
            func.sum(models.Meal.protein),
            func.sum(models.Meal.carbs),
            func.sum(models.Meal.fats),
        )
        .filter(_meal_in_day(w))
        .one()
    )
    count, calories, protein, carbs, fats = row
    if not count:
        return None
    return MealTotals(
        calories=float(calories or 0),
        protein=float(protein or 0),
        carbs=float(carbs or 0),
        fats=float(fats or 0),
    )


def query_fast_sets_volume(db: Session, w: DayWindow) -> Optional[float]:
    count, volume = (
        db.query(
            func.count(models.ExerciseSet.id),
            func.sum(
                func.coalesce(models.ExerciseSet.reps, 0)
                * func.coalesce(models.ExerciseSet.weight_kg, 0)
            ),
        )
        .filter(_set_in_day(w))
        .one()
    )
    if not count:
        return None
    return float(volume or 0)


def query_fast_fluid_totals(db: Session, w: DayWindow) -> Optional[float]:
    count, total = (
        db.query(func.count(models.FluidIntake.id), func.sum(models.FluidIntake.amount_ml))
        .filter(_fluid_in_day(w))
        .one()
    )
    if not count:
        return None
    return float(total or 0)


# =============================================================================
# Detail queries
# =============================================================================


def query_meals(db: Session, w: DayWindow) -> list[Meal]:
    rows = (
        db.query(models.Meal)
        .filter(_meal_in_day(w))
        .order_by(models.Meal.created_at.asc(), models.Meal.id.asc())
        .all()
    )
    return [
        Meal(
            id=r.id,
            text=r.text or "",
            title=r.title,
            calories=r.calories,
            protein=r.protein,
            carbs=r.carbs,
            fats=r.fats,
            fiber=r.fiber,
            sugar=r.sugar,
            meal_type=r.meal_type,
            quality_score=r.quality_score,
            consumption_percentage=r.consumption_percentage,
            date=r.date,
            created_at=r.created_at,
        )
        for r in rows
    ]


def query_workouts(db: Session, w: DayWindow) -> list[WorkoutSession]:
    rows = (
        db.query(models.ExerciseSession)
        .filter(
            models.ExerciseSession.user_id == w.user_id,
            models.ExerciseSession.date == w.day,
        )
        .order_by(models.ExerciseSession.id.asc())
        .all()
    )
    return [_session_record(r) for r in rows]


def query_exercise_sets(db: Session, w: DayWindow) -> list[ExerciseSet]:
    rows = (
        db.query(models.ExerciseSet)
        .options(joinedload(models.ExerciseSet.exercise))
        .filter(_set_in_day(w))
        .order_by(models.ExerciseSet.created_at.asc(), models.ExerciseSet.id.asc())
        .all()
    )
    return [_set_record(r) for r in rows]


def query_weight(db: Session, w: DayWindow) -> Optional[WeightEntry]:
    row = (
        db.query(models.WeightEntry)
        .filter(models.WeightEntry.user_id == w.user_id, models.WeightEntry.date == w.day)
        .order_by(models.WeightEntry.created_at.desc())
        .first()
    )
    if row is None:
        return None
    return WeightEntry(
        weight=row.weight,
        body_fat_percentage=row.body_fat_percentage,
        muscle_percentage=row.muscle_percentage,
        body_water_percentage=row.body_water_percentage,
        visceral_fat=row.visceral_fat,
        date=row.date,
        created_at=row.created_at,
    )


def query_body_measurements(db: Session, w: DayWindow) -> Optional[BodyMeasurements]:
    row = (
        db.query(models.BodyMeasurement)
        .filter(
            models.BodyMeasurement.user_id == w.user_id,
            models.BodyMeasurement.date == w.day,
        )
        .order_by(models.BodyMeasurement.created_at.desc())
        .first()
    )
    if row is None:
        return None
    return BodyMeasurements(
        chest=row.chest,
        waist=row.waist,
        belly=row.belly,
        hips=row.hips,
        thigh=row.thigh,
        arms=row.arms,
        neck=row.neck,
        notes=row.notes,
        created_at=row.created_at,
    )


def query_supplement_log(db: Session, w: DayWindow) -> list[SupplementIntake]:
    rows = (
        db.query(models.SupplementIntake)
        .options(joinedload(models.SupplementIntake.supplement))
        .filter(
            models.SupplementIntake.user_id == w.user_id,
            models.SupplementIntake.date == w.day,
        )
        .order_by(models.SupplementIntake.id.asc())
        .all()
    )
    return [
        SupplementIntake(
            id=r.id,
            name=r.supplement.name if r.supplement else None,
            dosage=r.supplement.dosage if r.supplement else None,
            unit=r.supplement.unit if r.supplement else None,
            timing=r.timing,
            taken=r.taken,
            taken_at=r.taken_at,
            notes=r.notes,
        )
        for r in rows
    ]


def query_sleep(db: Session, w: DayWindow) -> Optional[SleepEntry]:
    row = (
        db.query(models.SleepEntry)
        .filter(models.SleepEntry.user_id == w.user_id, models.SleepEntry.date == w.day)
        .order_by(models.SleepEntry.created_at.desc())
        .first()
    )
    if row is None:
        return None
    return SleepEntry(
        sleep_hours=row.sleep_hours,
        sleep_quality=row.sleep_quality,
        sleep_score=row.sleep_score,
        sleep_interruptions=row.sleep_interruptions,
        bedtime=row.bedtime,
        wake_time=row.wake_time,
        morning_libido=row.morning_libido,
        motivation_level=row.motivation_level,
        created_at=row.created_at,
    )


def query_fluids(db: Session, w: DayWindow) -> list[FluidIntake]:
    rows = (
        db.query(models.FluidIntake)
        .options(joinedload(models.FluidIntake.fluid))
        .filter(_fluid_in_day(w))
        .order_by(models.FluidIntake.consumed_at.asc(), models.FluidIntake.id.asc())
        .all()
    )
    return [
        FluidIntake(
            id=r.id,
            custom_name=r.custom_name,
            amount_ml=r.amount_ml or 0.0,
            consumed_at=r.consumed_at,
            notes=r.notes,
            fluid_name=r.fluid.name if r.fluid else None,
            category=r.fluid.category if r.fluid else None,
            calories_per_100ml=r.fluid.calories_per_100ml if r.fluid else None,
            caffeine_mg_per_100ml=r.fluid.caffeine_mg_per_100ml if r.fluid else None,
            alcohol_percentage=r.fluid.alcohol_percentage if r.fluid else None,
        )
        for r in rows
    ]


def query_coach_conversations(db: Session, w: DayWindow) -> list[CoachMessage]:
    rows = (
        db.query(models.CoachConversation)
        .filter(
            models.CoachConversation.user_id == w.user_id,
            models.CoachConversation.conversation_date == w.day,
        )
        .order_by(models.CoachConversation.created_at.asc(), models.CoachConversation.id.asc())
        .all()
    )
    return [
        CoachMessage(
            role=r.message_role,
            content=r.message_content or "",
            coach_personality=r.coach_personality,
            created_at=r.created_at,
        )
        for r in rows
    ]


def query_profile(db: Session, w: DayWindow) -> Optional[Profile]:
    row = db.get(models.Profile, w.user_id)
    if row is None:
        return None
    return Profile(
        user_id=row.id,
        preferred_name=row.preferred_name,
        first_name=row.first_name,
        display_name=row.display_name,
        age=row.age,
        gender=row.gender,
        height_cm=row.height_cm,
        weight=row.weight,
        activity_level=row.activity_level,
        goal_type=row.goal_type,
        target_weight=row.target_weight,
        preferred_language=row.preferred_language,
        timezone=row.timezone,
    )


def query_quick_workouts(db: Session, w: DayWindow) -> list[QuickWorkout]:
    rows = (
        db.query(models.QuickWorkout)
        .filter(models.QuickWorkout.user_id == w.user_id, models.QuickWorkout.date == w.day)
        .order_by(models.QuickWorkout.id.asc())
        .all()
    )
    return [_quick_workout_record(r) for r in rows]


def query_weekly_workouts(db: Session, w: DayWindow) -> list[QuickWorkout]:
    rows = (
        db.query(models.QuickWorkout)
        .filter(
            models.QuickWorkout.user_id == w.user_id,
            models.QuickWorkout.date >= w.week_start,
            models.QuickWorkout.date <= w.day,
        )
        .order_by(models.QuickWorkout.date.asc(), models.QuickWorkout.id.asc())
        .all()
    )
    return [_quick_workout_record(r) for r in rows]


def query_weekly_exercise_sessions(db: Session, w: DayWindow) -> list[WorkoutSession]:
    rows = (
        db.query(models.ExerciseSession)
        .options(selectinload(models.ExerciseSession.sets).joinedload(models.ExerciseSet.exercise))
        .filter(
            models.ExerciseSession.user_id == w.user_id,
            models.ExerciseSession.date >= w.week_start,
            models.ExerciseSession.date <= w.day,
        )
        .order_by(models.ExerciseSession.date.asc(), models.ExerciseSession.id.asc())
        .all()
    )
    return [_session_record(r, with_sets=True) for r in rows]


QueryFn = Callable[[Session, DayWindow], Any]

# Source name -> query; names match the DayData fields they fill
SOURCES: dict[str, QueryFn] = {
    "fast_meal_totals": query_fast_meal_totals,
    "fast_sets_volume": query_fast_sets_volume,
    "fast_fluid_ml": query_fast_fluid_totals,
    "meals": query_meals,
    "workouts": query_workouts,
    "exercise_sets": query_exercise_sets,
    "weight": query_weight,
    "body_measurements": query_body_measurements,
    "supplement_log": query_supplement_log,
    "sleep": query_sleep,
    "fluids": query_fluids,
    "coach_conversations": query_coach_conversations,
    "profile": query_profile,
    "quick_workouts": query_quick_workouts,
    "weekly_workouts": query_weekly_workouts,
    "weekly_exercise_sessions": query_weekly_exercise_sessions,
}


class DataCollector:
    """Collects a user's day from every source concurrently."""

    def __init__(
        self,
        session_factory: sessionmaker,
        settings: Optional[Settings] = None,
        sources: Optional[dict[str, QueryFn]] = None,
    ):
        self.session_factory = session_factory
        self.settings = settings or get_settings()
        self.sources = sources if sources is not None else SOURCES
        self.timeout = self.settings.collector_query_timeout_seconds

    def _run_query(self, query: QueryFn, window: DayWindow) -> Any:
        with self.session_factory() as db:
            return query(db, window)

    async def resolve_timezone(self, user_id: str, requested: Optional[str] = None) -> str:
        """Header zone, then the profile's stored zone, then the configured default."""
        if load_zone(requested):
            return requested
        if requested:
            logger.warning("invalid_timezone_header", user_id=user_id, timezone=requested)

        loop = asyncio.get_running_loop()
        try:
            stored = await asyncio.wait_for(
                loop.run_in_executor(None, self._load_profile_timezone, user_id),
                timeout=self.timeout,
            )
        except Exception as e:
            logger.warning("profile_timezone_lookup_failed", user_id=user_id, error=str(e))
            stored = None

        if load_zone(stored):
            return stored
        if stored:
            logger.warning("invalid_profile_timezone", user_id=user_id, timezone=stored)
        return self.settings.default_timezone

    def _load_profile_timezone(self, user_id: str) -> Optional[str]:
        with self.session_factory() as db:
            return (
                db.query(models.Profile.timezone)
                .filter(models.Profile.id == user_id)
                .scalar()
            )

    async def _run_source(
        self,
        name: str,
        query: QueryFn,
        window: DayWindow,
        executor: ThreadPoolExecutor,
    ) -> SourceResult:
        loop = asyncio.get_running_loop()
        start = time.perf_counter()
        try:
            value = await asyncio.wait_for(
                loop.run_in_executor(executor, self._run_query, query, window),
                timeout=self.timeout,
            )
            return SourceResult(
                name=name,
                value=value,
                elapsed_ms=round((time.perf_counter() - start) * 1000, 2),
            )
        except asyncio.TimeoutError:
            error = f"timed out after {self.timeout}s"
        except Exception as e:
            error = f"{type(e).__name__}: {e}"

        logger.warning(
            "collector_source_failed",
            source=name,
            user_id=window.user_id,
            date=window.day.isoformat(),
            error=error,
        )
        return SourceResult(
            name=name,
            error=error,
            elapsed_ms=round((time.perf_counter() - start) * 1000, 2),
        )

    async def collect(self, user_id: str, day: date, timezone: str) -> DayData:
        """Run every source concurrently and fold the results into DayData."""
        window = day_window(user_id, day, timezone, self.settings.weekly_lookback_days)
        logger.info(
            "collecting_day_data",
            user_id=user_id,
            date=day.isoformat(),
            timezone=timezone,
            start_utc=window.start_utc.isoformat(),
            end_utc=window.end_utc.isoformat(),
            sources=len(self.sources),
        )

        start = time.perf_counter()
        executor = ThreadPoolExecutor(
            max_workers=max(1, min(self.settings.collector_max_workers, len(self.sources) or 1)),
            thread_name_prefix="collector",
        )
        try:
            results = await asyncio.gather(
                *(
                    self._run_source(name, query, window, executor)
                    for name, query in self.sources.items()
                )
            )
        finally:
            # Timed-out queries keep their thread; don't block the response on them
            executor.shutdown(wait=False, cancel_futures=True)

        day_data = DayData.from_results(day, timezone, {r.name: r for r in results})
        logger.info(
            "day_data_collected",
            user_id=user_id,
            date=day.isoformat(),
            duration_ms=round((time.perf_counter() - start) * 1000, 2),
            failed_sources=sorted(day_data.failed_sources),
        )
        return day_data
