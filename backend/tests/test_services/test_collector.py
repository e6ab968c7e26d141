"""Tests for the concurrent day data collector."""

import asyncio
import time
from datetime import date, datetime

from sqlalchemy.orm import Session, sessionmaker

from daysummary import models
from daysummary.config import Settings
from daysummary.services.collector import SOURCES, DataCollector, day_window, load_zone
from daysummary.services.day_data import SleepEntry

from tests.factories import DAY, USER_ID


def _settings(**overrides) -> Settings:
    return Settings(openai_api_key="test", **overrides)


class TestDayWindow:
    """Local day boundaries."""

    def test_berlin_winter_day(self):
        w = day_window(USER_ID, DAY, "Europe/Berlin")
        assert w.start_utc == datetime(2024, 3, 9, 23, 0)
        assert w.end_utc == datetime(2024, 3, 10, 23, 0)
        assert w.week_start == date(2024, 3, 4)

    def test_dst_change_gives_a_short_day(self):
        w = day_window(USER_ID, DAY, "America/New_York")
        assert w.start_utc == datetime(2024, 3, 10, 5, 0)
        assert w.end_utc == datetime(2024, 3, 11, 4, 0)

    def test_unknown_zone_is_utc(self):
        w = day_window(USER_ID, DAY, "Mars/Olympus")
        assert w.start_utc == datetime(2024, 3, 10, 0, 0)
        assert w.end_utc == datetime(2024, 3, 11, 0, 0)

    def test_lookback(self):
        assert day_window(USER_ID, DAY, "UTC", lookback_days=3).week_start == date(2024, 3, 8)

    def test_load_zone(self):
        assert load_zone("Europe/Berlin") is not None
        assert load_zone("") is None
        assert load_zone(None) is None
        assert load_zone("Not/AZone") is None


class TestResolveTimezone:
    """Header, then profile, then default."""

    def test_valid_header_wins(self, session_factory: sessionmaker, seeded_day: Session):
        collector = DataCollector(session_factory, _settings())
        assert asyncio.run(collector.resolve_timezone(USER_ID, "Asia/Tokyo")) == "Asia/Tokyo"

    def test_invalid_header_uses_profile(self, session_factory: sessionmaker, seeded_day: Session):
        collector = DataCollector(session_factory, _settings())
        assert asyncio.run(collector.resolve_timezone(USER_ID, "Nope/Nope")) == "Europe/Berlin"

    def test_no_profile_uses_default(self, session_factory: sessionmaker):
        collector = DataCollector(session_factory, _settings(default_timezone="UTC"))
        assert asyncio.run(collector.resolve_timezone(USER_ID)) == "UTC"

    def test_invalid_profile_zone_uses_default(self, session_factory: sessionmaker, test_db: Session):
        test_db.add(models.Profile(id=USER_ID, timezone="Atlantis/Capital"))
        test_db.commit()
        collector = DataCollector(session_factory, _settings(default_timezone="UTC"))
        assert asyncio.run(collector.resolve_timezone(USER_ID)) == "UTC"


class TestCollect:
    """Running the sources."""

    def test_all_sources_are_registered(self):
        assert len(SOURCES) == 16

    def test_seeded_day(self, session_factory: sessionmaker, seeded_day: Session):
        collector = DataCollector(session_factory, _settings())
        day_data = asyncio.run(collector.collect(USER_ID, DAY, "Europe/Berlin"))

        assert day_data.failed_sources == {}
        assert day_data.timezone == "Europe/Berlin"
        assert len(day_data.meals) == 3
        assert day_data.fast_meal_totals.calories == 1800
        assert day_data.fast_sets_volume == 1920
        assert day_data.fast_fluid_ml == 2000
        assert len(day_data.exercise_sets) == 3
        assert day_data.exercise_sets[0].exercise_name == "Bench Press"
        assert day_data.exercise_sets[0].muscle_groups == ["chest", "triceps"]
        assert day_data.workouts[0].overall_rpe == 7.5
        assert day_data.weight.weight == 70.0
        assert day_data.sleep.sleep_hours == 7.5
        assert day_data.fluids[0].name == "Wasser"
        assert day_data.coach_conversations[0].role == "user"
        assert day_data.profile.preferred_name == "Mara"
        assert len(day_data.quick_workouts) == 1
        assert len(day_data.weekly_workouts) == 1
        assert day_data.weekly_exercise_sessions[0].volume_kg == 1920
        assert day_data.has_relevant_data()

    def test_rows_are_scoped_to_local_day(self, session_factory: sessionmaker, test_db: Session):
        test_db.add_all(
            [
                # 00:30 Berlin on the day, stored without a date
                models.Meal(user_id=USER_ID, text="Late snack", created_at=datetime(2024, 3, 9, 23, 30)),
                # 23:30 Berlin on the previous day
                models.Meal(user_id=USER_ID, text="Dinner", created_at=datetime(2024, 3, 9, 22, 30)),
                models.Meal(
                    user_id=USER_ID, text="Tomorrow", date=date(2024, 3, 11),
                    created_at=datetime(2024, 3, 11, 8, 0),
                ),
                models.Meal(
                    user_id="someone-else", text="Other", date=DAY, created_at=datetime(2024, 3, 10, 8, 0)
                ),
            ]
        )
        test_db.commit()

        collector = DataCollector(session_factory, _settings())
        day_data = asyncio.run(collector.collect(USER_ID, DAY, "Europe/Berlin"))
        assert [m.text for m in day_data.meals] == ["Late snack"]

    def test_empty_day(self, session_factory: sessionmaker):
        collector = DataCollector(session_factory, _settings())
        day_data = asyncio.run(collector.collect(USER_ID, DAY, "UTC"))

        assert day_data.failed_sources == {}
        assert day_data.meals == []
        assert day_data.fast_meal_totals is None
        assert day_data.profile is None
        assert not day_data.has_relevant_data()


class TestSourceIsolation:
    """One failing source never sinks the others."""

    def test_failed_source_is_defaulted(self, session_factory: sessionmaker):
        def broken(db, w):
            raise RuntimeError("relation does not exist")

        sources = {
            "meals": broken,
            "sleep": lambda db, w: SleepEntry(sleep_hours=8),
        }
        collector = DataCollector(session_factory, _settings(), sources=sources)
        day_data = asyncio.run(collector.collect(USER_ID, DAY, "UTC"))

        assert day_data.meals == []
        assert day_data.sleep.sleep_hours == 8
        assert day_data.failed_sources == {"meals": "RuntimeError: relation does not exist"}

    def test_timeout_is_a_failure(self, session_factory: sessionmaker):
        def slow(db, w):
            time.sleep(1)
            return []

        sources = {"fluids": slow, "sleep": lambda db, w: SleepEntry(sleep_hours=6)}
        collector = DataCollector(
            session_factory, _settings(collector_query_timeout_seconds=0.1), sources=sources
        )

        start = time.perf_counter()
        day_data = asyncio.run(collector.collect(USER_ID, DAY, "UTC"))
        assert time.perf_counter() - start < 0.9

        assert "timed out" in day_data.failed_sources["fluids"]
        assert day_data.fluids == []
        assert day_data.sleep.sleep_hours == 6

    def test_sources_run_concurrently(self, session_factory: sessionmaker):
        def sleepy(db, w):
            time.sleep(0.2)
            return None

        sources = {f"source_{i}": sleepy for i in range(16)}
        collector = DataCollector(
            session_factory, _settings(collector_max_workers=16), sources=sources
        )

        start = time.perf_counter()
        asyncio.run(collector.collect(USER_ID, DAY, "UTC"))
        elapsed = time.perf_counter() - start

        # sequential would be 3.2s
        assert elapsed < 1.5
