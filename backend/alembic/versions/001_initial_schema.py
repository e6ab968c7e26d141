"""Initial schema

Revision ID: 001_initial
Revises:
Create Date: 2025-08-04

"""
from collections.abc import Sequence
from typing import Union

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _user_date_indexes(table: str, date_column: str = "date") -> None:
    op.create_index(f"ix_{table}_user_id", table, ["user_id"])
    op.create_index(f"ix_{table}_{date_column}", table, [date_column])


def upgrade() -> None:
    # ==========================================================================
    # Source tables
    # ==========================================================================
    op.create_table(
        "profiles",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("preferred_name", sa.String(length=255), nullable=True),
        sa.Column("first_name", sa.String(length=255), nullable=True),
        sa.Column("display_name", sa.String(length=255), nullable=True),
        sa.Column("age", sa.Integer(), nullable=True),
        sa.Column("gender", sa.String(length=20), nullable=True),
        sa.Column("height_cm", sa.Float(), nullable=True),
        sa.Column("weight", sa.Float(), nullable=True),
        sa.Column("activity_level", sa.String(length=50), nullable=True),
        sa.Column("goal_type", sa.String(length=50), nullable=True),
        sa.Column("target_weight", sa.Float(), nullable=True),
        sa.Column("preferred_language", sa.String(length=10), nullable=True, default="de"),
        sa.Column("timezone", sa.String(length=64), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "meals",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.String(length=36), nullable=False),
        sa.Column("text", sa.Text(), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=True),
        sa.Column("calories", sa.Float(), nullable=True),
        sa.Column("protein", sa.Float(), nullable=True),
        sa.Column("carbs", sa.Float(), nullable=True),
        sa.Column("fats", sa.Float(), nullable=True),
        sa.Column("fiber", sa.Float(), nullable=True),
        sa.Column("sugar", sa.Float(), nullable=True),
        sa.Column("meal_type", sa.String(length=50), nullable=True),
        sa.Column("quality_score", sa.Integer(), nullable=True),
        sa.Column("consumption_percentage", sa.Float(), nullable=True),
        sa.Column("date", sa.Date(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    _user_date_indexes("meals")
    op.create_index("ix_meals_created_at", "meals", ["created_at"])

    op.create_table(
        "exercise_sessions",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.String(length=36), nullable=False),
        sa.Column("session_name", sa.String(length=255), nullable=True),
        sa.Column("workout_type", sa.String(length=50), nullable=True),
        sa.Column("duration_minutes", sa.Integer(), nullable=True),
        sa.Column("overall_rpe", sa.Float(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("start_time", sa.DateTime(), nullable=True),
        sa.Column("end_time", sa.DateTime(), nullable=True),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    _user_date_indexes("exercise_sessions")

    op.create_table(
        "exercises",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("muscle_groups", sa.JSON(), nullable=True),
        sa.Column("category", sa.String(length=50), nullable=True),
        sa.Column("equipment", sa.String(length=100), nullable=True),
        sa.Column("is_compound", sa.Boolean(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "exercise_sets",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.String(length=36), nullable=False),
        sa.Column("session_id", sa.Integer(), nullable=True),
        sa.Column("exercise_id", sa.Integer(), nullable=True),
        sa.Column("set_number", sa.Integer(), nullable=True, default=1),
        sa.Column("reps", sa.Integer(), nullable=True),
        sa.Column("weight_kg", sa.Float(), nullable=True),
        sa.Column("rpe", sa.Float(), nullable=True),
        sa.Column("duration_seconds", sa.Integer(), nullable=True),
        sa.Column("rest_seconds", sa.Integer(), nullable=True),
        sa.Column("date", sa.Date(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(["session_id"], ["exercise_sessions.id"]),
        sa.ForeignKeyConstraint(["exercise_id"], ["exercises.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    _user_date_indexes("exercise_sets")
    op.create_index("ix_exercise_sets_created_at", "exercise_sets", ["created_at"])

    op.create_table(
        "weight_history",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.String(length=36), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("weight", sa.Float(), nullable=False),
        sa.Column("body_fat_percentage", sa.Float(), nullable=True),
        sa.Column("muscle_percentage", sa.Float(), nullable=True),
        sa.Column("body_water_percentage", sa.Float(), nullable=True),
        sa.Column("visceral_fat", sa.Float(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    _user_date_indexes("weight_history")

    op.create_table(
        "body_measurements",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.String(length=36), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("chest", sa.Float(), nullable=True),
        sa.Column("waist", sa.Float(), nullable=True),
        sa.Column("belly", sa.Float(), nullable=True),
        sa.Column("hips", sa.Float(), nullable=True),
        sa.Column("thigh", sa.Float(), nullable=True),
        sa.Column("arms", sa.Float(), nullable=True),
        sa.Column("neck", sa.Float(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    _user_date_indexes("body_measurements")

    op.create_table(
        "user_supplements",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.String(length=36), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("dosage", sa.String(length=50), nullable=True),
        sa.Column("unit", sa.String(length=20), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_user_supplements_user_id", "user_supplements", ["user_id"])

    op.create_table(
        "supplement_intake_log",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.String(length=36), nullable=False),
        sa.Column("user_supplement_id", sa.Integer(), nullable=True),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("timing", sa.String(length=50), nullable=True),
        sa.Column("taken", sa.Boolean(), nullable=True, default=False),
        sa.Column("taken_at", sa.DateTime(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(["user_supplement_id"], ["user_supplements.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    _user_date_indexes("supplement_intake_log")

    op.create_table(
        "sleep_tracking",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.String(length=36), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("sleep_hours", sa.Float(), nullable=True),
        sa.Column("sleep_quality", sa.Integer(), nullable=True),
        sa.Column("sleep_score", sa.Integer(), nullable=True),
        sa.Column("sleep_interruptions", sa.Integer(), nullable=True),
        sa.Column("bedtime", sa.String(length=5), nullable=True),
        sa.Column("wake_time", sa.String(length=5), nullable=True),
        sa.Column("morning_libido", sa.Integer(), nullable=True),
        sa.Column("motivation_level", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    _user_date_indexes("sleep_tracking")

    op.create_table(
        "fluid_database",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("category", sa.String(length=50), nullable=True),
        sa.Column("calories_per_100ml", sa.Float(), nullable=True),
        sa.Column("caffeine_mg_per_100ml", sa.Float(), nullable=True),
        sa.Column("alcohol_percentage", sa.Float(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "user_fluids",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.String(length=36), nullable=False),
        sa.Column("fluid_id", sa.Integer(), nullable=True),
        sa.Column("custom_name", sa.String(length=255), nullable=True),
        sa.Column("amount_ml", sa.Float(), nullable=False),
        sa.Column("consumed_at", sa.DateTime(), nullable=True),
        sa.Column("date", sa.Date(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(["fluid_id"], ["fluid_database.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    _user_date_indexes("user_fluids")
    op.create_index("ix_user_fluids_consumed_at", "user_fluids", ["consumed_at"])

    op.create_table(
        "coach_conversations",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.String(length=36), nullable=False),
        sa.Column("conversation_date", sa.Date(), nullable=False),
        sa.Column("message_role", sa.String(length=20), nullable=False),
        sa.Column("message_content", sa.Text(), nullable=False),
        sa.Column("coach_personality", sa.String(length=50), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    _user_date_indexes("coach_conversations", "conversation_date")

    op.create_table(
        "workouts",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.String(length=36), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("did_workout", sa.Boolean(), nullable=False, default=True),
        sa.Column("workout_type", sa.String(length=50), nullable=True),
        sa.Column("duration_minutes", sa.Integer(), nullable=True),
        sa.Column("intensity", sa.Float(), nullable=True),
        sa.Column("distance_km", sa.Float(), nullable=True),
        sa.Column("steps", sa.Integer(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    _user_date_indexes("workouts")

    op.create_table(
        "user_credits",
        sa.Column("user_id", sa.String(length=36), nullable=False),
        sa.Column("credits_remaining", sa.Integer(), nullable=False, default=0),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint("user_id"),
    )

    # ==========================================================================
    # Output tables
    # ==========================================================================
    op.create_table(
        "daily_summaries",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.String(length=36), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("total_calories", sa.Float(), nullable=True, default=0),
        sa.Column("total_protein", sa.Float(), nullable=True, default=0),
        sa.Column("total_carbs", sa.Float(), nullable=True, default=0),
        sa.Column("total_fats", sa.Float(), nullable=True, default=0),
        sa.Column("macro_distribution", sa.JSON(), nullable=True),
        sa.Column("top_foods", sa.JSON(), nullable=True),
        sa.Column("workout_volume", sa.Float(), nullable=True, default=0),
        sa.Column("workout_muscle_groups", sa.JSON(), nullable=True),
        sa.Column("sleep_score", sa.Float(), nullable=True),
        sa.Column("hydration_score", sa.Integer(), nullable=True),
        sa.Column("recovery_metrics", sa.JSON(), nullable=True),
        sa.Column("summary_md", sa.Text(), nullable=True),
        sa.Column("summary_xl_md", sa.Text(), nullable=True),
        sa.Column("summary_xxl_md", sa.Text(), nullable=True),
        sa.Column("kpi_xxl_json", sa.JSON(), nullable=True),
        sa.Column("summary_struct_json", sa.JSON(), nullable=True),
        sa.Column("schema_version", sa.String(length=20), nullable=True),
        sa.Column("tokens_spent", sa.Integer(), nullable=True, default=0),
        sa.Column("text_generated", sa.Boolean(), nullable=True, default=False),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id", "date", name="uq_daily_summaries_user_date"),
    )
    _user_date_indexes("daily_summaries")

    op.create_table(
        "daily_token_spend",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.String(length=36), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("operation_type", sa.String(length=50), nullable=False),
        sa.Column("tokens_spent", sa.Integer(), nullable=True, default=0),
        sa.Column("credits_used", sa.Integer(), nullable=True, default=0),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "user_id", "date", "operation_type", name="uq_daily_token_spend_user_date_op"
        ),
    )
    _user_date_indexes("daily_token_spend")

    op.create_table(
        "llm_usage_log",
        sa.Column("id", sa.BigInteger(), nullable=False, autoincrement=True),
        sa.Column("timestamp", sa.DateTime(), nullable=False),
        sa.Column("user_id", sa.String(length=36), nullable=True),
        sa.Column("feature", sa.String(length=50), nullable=False),
        sa.Column("function_name", sa.String(length=100), nullable=True),
        sa.Column("model", sa.String(length=100), nullable=False),
        sa.Column("prompt_tokens", sa.Integer(), nullable=False),
        sa.Column("completion_tokens", sa.Integer(), nullable=False),
        sa.Column("total_tokens", sa.Integer(), nullable=False),
        # Cost in cents (Float for precision with cheap models)
        sa.Column("cost_cents", sa.Float(), nullable=False, default=0.0),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_llm_usage_log_timestamp", "llm_usage_log", ["timestamp"])
    op.create_index("ix_llm_usage_log_user_id", "llm_usage_log", ["user_id"])
    op.create_index("ix_llm_usage_log_feature", "llm_usage_log", ["feature"])
    op.create_index("ix_llm_usage_log_function_name", "llm_usage_log", ["function_name"])


def downgrade() -> None:
    for table in (
        "llm_usage_log",
        "daily_token_spend",
        "daily_summaries",
        "user_credits",
        "workouts",
        "coach_conversations",
        "user_fluids",
        "fluid_database",
        "sleep_tracking",
        "supplement_intake_log",
        "user_supplements",
        "body_measurements",
        "weight_history",
        "exercise_sets",
        "exercises",
        "exercise_sessions",
        "meals",
        "profiles",
    ):
        op.drop_table(table)
