from datetime import datetime

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


# =============================================================================
# Source tables (owned by the application, read by the collector)
# =============================================================================


class Profile(Base):
    """User profile; ``id`` is the user id."""

    __tablename__ = "profiles"

    id = Column(String(36), primary_key=True)
    preferred_name = Column(String(255))
    first_name = Column(String(255))
    display_name = Column(String(255))
    age = Column(Integer)
    gender = Column(String(20))
    height_cm = Column(Float)
    weight = Column(Float)
    activity_level = Column(String(50))
    goal_type = Column(String(50))
    target_weight = Column(Float)
    preferred_language = Column(String(10), default="de")
    timezone = Column(String(64))  # IANA name, e.g. Europe/Berlin
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class Meal(Base):
    __tablename__ = "meals"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(36), nullable=False, index=True)
    text = Column(Text, nullable=False, default="")
    title = Column(String(255))
    calories = Column(Float)
    protein = Column(Float)
    carbs = Column(Float)
    fats = Column(Float)
    fiber = Column(Float)
    sugar = Column(Float)
    meal_type = Column(String(50))  # breakfast, lunch, dinner, snack
    quality_score = Column(Integer)
    consumption_percentage = Column(Float)
    date = Column(Date, index=True)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)


class ExerciseSession(Base):
    __tablename__ = "exercise_sessions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(36), nullable=False, index=True)
    session_name = Column(String(255))
    workout_type = Column(String(50))
    duration_minutes = Column(Integer)
    overall_rpe = Column(Float)
    notes = Column(Text)
    start_time = Column(DateTime)
    end_time = Column(DateTime)
    date = Column(Date, nullable=False, index=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    sets = relationship("ExerciseSet", back_populates="session")


class Exercise(Base):
    __tablename__ = "exercises"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    muscle_groups = Column(JSON, default=list)  # ["chest", "triceps"]
    category = Column(String(50))  # strength, cardio, mobility
    equipment = Column(String(100))
    is_compound = Column(Boolean)


class ExerciseSet(Base):
    __tablename__ = "exercise_sets"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(36), nullable=False, index=True)
    session_id = Column(Integer, ForeignKey("exercise_sessions.id"))
    exercise_id = Column(Integer, ForeignKey("exercises.id"))
    set_number = Column(Integer, default=1)
    reps = Column(Integer)
    weight_kg = Column(Float)
    rpe = Column(Float)
    duration_seconds = Column(Integer)
    rest_seconds = Column(Integer)
    date = Column(Date, index=True)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)

    session = relationship("ExerciseSession", back_populates="sets")
    exercise = relationship("Exercise")


class WeightEntry(Base):
    __tablename__ = "weight_history"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(36), nullable=False, index=True)
    date = Column(Date, nullable=False, index=True)
    weight = Column(Float, nullable=False)
    body_fat_percentage = Column(Float)
    muscle_percentage = Column(Float)
    body_water_percentage = Column(Float)
    visceral_fat = Column(Float)
    created_at = Column(DateTime, default=datetime.utcnow)


class BodyMeasurement(Base):
    __tablename__ = "body_measurements"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(36), nullable=False, index=True)
    date = Column(Date, nullable=False, index=True)
    chest = Column(Float)
    waist = Column(Float)
    belly = Column(Float)
    hips = Column(Float)
    thigh = Column(Float)
    arms = Column(Float)
    neck = Column(Float)
    notes = Column(Text)
    created_at = Column(DateTime, default=datetime.utcnow)


class UserSupplement(Base):
    __tablename__ = "user_supplements"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(36), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    dosage = Column(String(50))
    unit = Column(String(20))


class SupplementIntake(Base):
    __tablename__ = "supplement_intake_log"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(36), nullable=False, index=True)
    user_supplement_id = Column(Integer, ForeignKey("user_supplements.id"))
    date = Column(Date, nullable=False, index=True)
    timing = Column(String(50))  # morning, noon, evening, pre_workout
    taken = Column(Boolean, default=False)
    taken_at = Column(DateTime)
    notes = Column(Text)
    created_at = Column(DateTime, default=datetime.utcnow)

    supplement = relationship("UserSupplement")


class SleepEntry(Base):
    __tablename__ = "sleep_tracking"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(36), nullable=False, index=True)
    date = Column(Date, nullable=False, index=True)
    sleep_hours = Column(Float)
    sleep_quality = Column(Integer)  # 1-10
    sleep_score = Column(Integer)
    sleep_interruptions = Column(Integer)
    bedtime = Column(String(5))  # HH:MM
    wake_time = Column(String(5))
    morning_libido = Column(Integer)
    motivation_level = Column(Integer)
    created_at = Column(DateTime, default=datetime.utcnow)


class FluidType(Base):
    __tablename__ = "fluid_database"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    category = Column(String(50))  # water, coffee, tea, alcohol, juice
    calories_per_100ml = Column(Float)
    caffeine_mg_per_100ml = Column(Float)
    alcohol_percentage = Column(Float)


class FluidIntake(Base):
    __tablename__ = "user_fluids"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(36), nullable=False, index=True)
    fluid_id = Column(Integer, ForeignKey("fluid_database.id"))
    custom_name = Column(String(255))
    amount_ml = Column(Float, nullable=False)
    consumed_at = Column(DateTime, default=datetime.utcnow, index=True)
    date = Column(Date, index=True)
    notes = Column(Text)

    fluid = relationship("FluidType")


class CoachConversation(Base):
    __tablename__ = "coach_conversations"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(36), nullable=False, index=True)
    conversation_date = Column(Date, nullable=False, index=True)
    message_role = Column(String(20), nullable=False)  # user, assistant
    message_content = Column(Text, nullable=False)
    coach_personality = Column(String(50))
    created_at = Column(DateTime, default=datetime.utcnow)


class QuickWorkout(Base):
    """Quick daily workout check-in (did I train today?)."""

    __tablename__ = "workouts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(36), nullable=False, index=True)
    date = Column(Date, nullable=False, index=True)
    did_workout = Column(Boolean, nullable=False, default=True)
    workout_type = Column(String(50))
    duration_minutes = Column(Integer)
    intensity = Column(Float)  # 1-10
    distance_km = Column(Float)
    steps = Column(Integer)
    notes = Column(Text)
    created_at = Column(DateTime, default=datetime.utcnow)


class UserCredits(Base):
    __tablename__ = "user_credits"

    user_id = Column(String(36), primary_key=True)
    credits_remaining = Column(Integer, nullable=False, default=0)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


# =============================================================================
# Output tables (written by the day summary pipeline)
# =============================================================================


class DailySummary(Base):
    """One summary per user and day."""

    __tablename__ = "daily_summaries"
    __table_args__ = (UniqueConstraint("user_id", "date", name="uq_daily_summaries_user_date"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(36), nullable=False, index=True)
    date = Column(Date, nullable=False, index=True)

    total_calories = Column(Float, default=0)
    total_protein = Column(Float, default=0)
    total_carbs = Column(Float, default=0)
    total_fats = Column(Float, default=0)
    macro_distribution = Column(JSON)
    top_foods = Column(JSON)
    workout_volume = Column(Float, default=0)
    workout_muscle_groups = Column(JSON)
    sleep_score = Column(Float)
    hydration_score = Column(Integer)
    recovery_metrics = Column(JSON)

    summary_md = Column(Text)
    summary_xl_md = Column(Text)
    summary_xxl_md = Column(Text)
    kpi_xxl_json = Column(JSON)
    summary_struct_json = Column(JSON)
    schema_version = Column(String(20))

    tokens_spent = Column(Integer, default=0)
    text_generated = Column(Boolean, default=False)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class TokenSpend(Base):
    """Token and credit spend per user, day and operation."""

    __tablename__ = "daily_token_spend"
    __table_args__ = (
        UniqueConstraint(
            "user_id", "date", "operation_type", name="uq_daily_token_spend_user_date_op"
        ),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(36), nullable=False, index=True)
    date = Column(Date, nullable=False, index=True)
    operation_type = Column(String(50), nullable=False)  # summary_generation
    tokens_spent = Column(Integer, default=0)
    credits_used = Column(Integer, default=0)
    created_at = Column(DateTime, default=datetime.utcnow)


class LlmUsageLog(Base):
    """Per-request LLM usage tracking."""

    __tablename__ = "llm_usage_log"

    id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True)
    timestamp = Column(DateTime, nullable=False, index=True)

    # Request context
    user_id = Column(String(36), index=True)
    feature = Column(String(50), nullable=False, index=True)  # day_summary
    function_name = Column(String(100), index=True)  # narrative_xxl

    model = Column(String(100), nullable=False)

    prompt_tokens = Column(Integer, nullable=False)
    completion_tokens = Column(Integer, nullable=False)
    total_tokens = Column(Integer, nullable=False)

    # Cost in cents (Float for precision with cheap models)
    cost_cents = Column(Float, nullable=False, default=0.0)
