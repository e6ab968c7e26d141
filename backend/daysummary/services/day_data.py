"""
Typed records for one user's day.

Each source table gets its own record with every nullable column modelled as
``Optional``. The collector converts ORM rows into these records inside the
query's session, so the KPI calculator and the structured summary work on
plain detached values and can be tested without a database.
"""

import datetime as dt
from dataclasses import asdict, dataclass, field, fields
from typing import Any, Generic, Optional, TypeVar

T = TypeVar("T")


def _jsonable(value: Any) -> Any:
    if isinstance(value, (dt.datetime, dt.date)):
        return value.isoformat()
    if isinstance(value, list):
        return [_jsonable(item) for item in value]
    if isinstance(value, dict):
        return {key: _jsonable(item) for key, item in value.items()}
    return value


class Record:
    """Mixin giving dataclass records a JSON-safe ``to_dict``."""

    def to_dict(self) -> dict[str, Any]:
        return _jsonable(asdict(self))


@dataclass
class MealTotals(Record):
    """Database-side rollup of a day's meals."""

    calories: float = 0.0
    protein: float = 0.0
    carbs: float = 0.0
    fats: float = 0.0


@dataclass
class Meal(Record):
    text: str = ""
    id: Optional[int] = None
    title: Optional[str] = None
    calories: Optional[float] = None
    protein: Optional[float] = None
    carbs: Optional[float] = None
    fats: Optional[float] = None
    fiber: Optional[float] = None
    sugar: Optional[float] = None
    meal_type: Optional[str] = None
    quality_score: Optional[int] = None
    consumption_percentage: Optional[float] = None
    date: Optional[dt.date] = None
    created_at: Optional[dt.datetime] = None


@dataclass
class ExerciseSet(Record):
    reps: Optional[int] = None
    weight_kg: Optional[float] = None
    id: Optional[int] = None
    session_id: Optional[int] = None
    exercise_id: Optional[int] = None
    set_number: Optional[int] = None
    rpe: Optional[float] = None
    duration_seconds: Optional[int] = None
    rest_seconds: Optional[int] = None
    created_at: Optional[dt.datetime] = None
    # joined from exercises
    exercise_name: Optional[str] = None
    muscle_groups: list[str] = field(default_factory=list)
    category: Optional[str] = None
    equipment: Optional[str] = None
    is_compound: Optional[bool] = None

    @property
    def volume_kg(self) -> float:
        return (self.reps or 0) * (self.weight_kg or 0)


@dataclass
class WorkoutSession(Record):
    id: Optional[int] = None
    session_name: Optional[str] = None
    workout_type: Optional[str] = None
    duration_minutes: Optional[int] = None
    overall_rpe: Optional[float] = None
    notes: Optional[str] = None
    start_time: Optional[dt.datetime] = None
    end_time: Optional[dt.datetime] = None
    date: Optional[dt.date] = None
    # only populated for the weekly look-back
    sets: list[ExerciseSet] = field(default_factory=list)

    @property
    def volume_kg(self) -> float:
        return sum(s.volume_kg for s in self.sets)


@dataclass
class WeightEntry(Record):
    weight: Optional[float] = None
    body_fat_percentage: Optional[float] = None
    muscle_percentage: Optional[float] = None
    body_water_percentage: Optional[float] = None
    visceral_fat: Optional[float] = None
    date: Optional[dt.date] = None
    created_at: Optional[dt.datetime] = None


@dataclass
class BodyMeasurements(Record):
    chest: Optional[float] = None
    waist: Optional[float] = None
    belly: Optional[float] = None
    hips: Optional[float] = None
    thigh: Optional[float] = None
    arms: Optional[float] = None
    neck: Optional[float] = None
    notes: Optional[str] = None
    created_at: Optional[dt.datetime] = None


@dataclass
class SupplementIntake(Record):
    id: Optional[int] = None
    name: Optional[str] = None
    dosage: Optional[str] = None
    unit: Optional[str] = None
    timing: Optional[str] = None
    taken: Optional[bool] = None
    taken_at: Optional[dt.datetime] = None
    notes: Optional[str] = None

    @property
    def is_taken(self) -> bool:
        """Either signal suffices: the flag or a recorded intake time."""
        return self.taken is True or self.taken_at is not None


@dataclass
class SleepEntry(Record):
    sleep_hours: Optional[float] = None
    sleep_quality: Optional[int] = None
    sleep_score: Optional[int] = None
    sleep_interruptions: Optional[int] = None
    bedtime: Optional[str] = None
    wake_time: Optional[str] = None
    morning_libido: Optional[int] = None
    motivation_level: Optional[int] = None
    created_at: Optional[dt.datetime] = None


@dataclass
class FluidIntake(Record):
    amount_ml: float = 0.0
    id: Optional[int] = None
    custom_name: Optional[str] = None
    consumed_at: Optional[dt.datetime] = None
    notes: Optional[str] = None
    # joined from fluid_database
    fluid_name: Optional[str] = None
    category: Optional[str] = None
    calories_per_100ml: Optional[float] = None
    caffeine_mg_per_100ml: Optional[float] = None
    alcohol_percentage: Optional[float] = None

    @property
    def name(self) -> str:
        return self.custom_name or self.fluid_name or "unknown"


@dataclass
class CoachMessage(Record):
    role: str = "user"
    content: str = ""
    coach_personality: Optional[str] = None
    created_at: Optional[dt.datetime] = None


@dataclass
class Profile(Record):
    user_id: Optional[str] = None
    preferred_name: Optional[str] = None
    first_name: Optional[str] = None
    display_name: Optional[str] = None
    age: Optional[int] = None
    gender: Optional[str] = None
    height_cm: Optional[float] = None
    weight: Optional[float] = None
    activity_level: Optional[str] = None
    goal_type: Optional[str] = None
    target_weight: Optional[float] = None
    preferred_language: Optional[str] = None
    timezone: Optional[str] = None

    def name_or(self, default: str) -> str:
        return self.preferred_name or self.first_name or self.display_name or default


@dataclass
class QuickWorkout(Record):
    did_workout: bool = False
    id: Optional[int] = None
    date: Optional[dt.date] = None
    workout_type: Optional[str] = None
    duration_minutes: Optional[int] = None
    intensity: Optional[float] = None
    distance_km: Optional[float] = None
    steps: Optional[int] = None
    notes: Optional[str] = None


@dataclass
class SourceResult(Generic[T]):
    """Outcome of one collector query: a value or the error that replaced it."""

    name: str
    value: Optional[T] = None
    error: Optional[str] = None
    elapsed_ms: float = 0.0

    @property
    def ok(self) -> bool:
        return self.error is None


# Sources that hold lists; everything else defaults to None
LIST_SOURCES = (
    "meals",
    "workouts",
    "exercise_sets",
    "supplement_log",
    "fluids",
    "coach_conversations",
    "quick_workouts",
    "weekly_workouts",
    "weekly_exercise_sessions",
)


@dataclass
class DayData:
    """Everything collected for one user and one calendar day."""

    date: dt.date
    timezone: str
    collected_at: dt.datetime = field(default_factory=dt.datetime.utcnow)

    # fast aggregates
    fast_meal_totals: Optional[MealTotals] = None
    fast_sets_volume: Optional[float] = None
    fast_fluid_ml: Optional[float] = None

    meals: list[Meal] = field(default_factory=list)
    workouts: list[WorkoutSession] = field(default_factory=list)
    exercise_sets: list[ExerciseSet] = field(default_factory=list)
    weight: Optional[WeightEntry] = None
    body_measurements: Optional[BodyMeasurements] = None
    supplement_log: list[SupplementIntake] = field(default_factory=list)
    sleep: Optional[SleepEntry] = None
    fluids: list[FluidIntake] = field(default_factory=list)
    coach_conversations: list[CoachMessage] = field(default_factory=list)
    profile: Optional[Profile] = None
    quick_workouts: list[QuickWorkout] = field(default_factory=list)
    weekly_workouts: list[QuickWorkout] = field(default_factory=list)
    weekly_exercise_sessions: list[WorkoutSession] = field(default_factory=list)

    failed_sources: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_results(
        cls,
        day: dt.date,
        timezone: str,
        results: dict[str, SourceResult],
    ) -> "DayData":
        """Build the aggregate, defaulting every failed or empty source."""
        known = {f.name for f in fields(cls)}
        values: dict[str, Any] = {}
        failed: dict[str, str] = {}

        for name, result in results.items():
            if name not in known:
                continue
            if not result.ok:
                failed[name] = result.error or "unknown error"
                continue
            if result.value is None and name in LIST_SOURCES:
                continue
            values[name] = result.value

        return cls(date=day, timezone=timezone, failed_sources=failed, **values)

    def has_relevant_data(self) -> bool:
        return bool(
            self.meals
            or self.workouts
            or self.exercise_sets
            or self.weight
            or self.body_measurements
            or self.supplement_log
            or self.sleep
            or self.fluids
            or self.coach_conversations
        )

    def user_messages(self) -> list[str]:
        return [m.content for m in self.coach_conversations if m.role == "user" and m.content]

    def counts(self) -> dict[str, Any]:
        return {
            "meals": len(self.meals),
            "workouts": len(self.workouts),
            "exerciseSets": len(self.exercise_sets),
            "weightEntries": 1 if self.weight else 0,
            "bodyMeasurements": 1 if self.body_measurements else 0,
            "supplementEntries": len(self.supplement_log),
            "sleepEntries": 1 if self.sleep else 0,
            "fluidEntries": len(self.fluids),
            "coachConversations": len(self.coach_conversations),
            "quickWorkouts": len(self.quick_workouts),
            "weeklyWorkouts": len(self.weekly_workouts),
            "weeklyExerciseSessions": len(self.weekly_exercise_sessions),
            "failed_sources": sorted(self.failed_sources),
        }
