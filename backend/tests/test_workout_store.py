"""
Tests du store SQLModel : persistance, lecture paresseuse des résumés,
promotion des meilleurs efforts.
"""
from datetime import datetime, timedelta, timezone

import pytest

from tracklab.core.database import create_db_and_tables, make_engine
from tracklab.domain.entities.pipeline_config import MetricsConfig
from tracklab.domain.entities.workout_entry import BestEffortEntry, WorkoutEntry, utc_now
from tracklab.domain.services.import_service import build_workout_record
from tracklab.domain.services.normalizers.common import to_utc
from tracklab.domain.services.workout_store import WorkoutStore

from track_factory import START, uniform_activity

CONFIG = MetricsConfig(best_effort_distances={"400m": 400.0, "1K": 1000.0})


@pytest.fixture
def store(tmp_path):
    engine = make_engine(f"sqlite:///{tmp_path / 'tracklab.db'}")
    create_db_and_tables(engine)
    return WorkoutStore(engine)


def _record(step_s=3.0, day=0, count=101):
    # 101 points x 10 m = 1000 m
    activity = uniform_activity(count, step_m=10.0, step_s=step_s, start=START + timedelta(days=day))
    return build_workout_record(activity, CONFIG, source_path=f"activities/{day}.gpx")


# ============================================================
# Tests persistance
# ============================================================

class TestSave:

    def test_save_and_get(self, store):
        record = _record()

        workout_id = store.save(record)

        entry = store.get(workout_id)
        assert entry is not None
        assert entry.distance_m == pytest.approx(1000.0)
        assert entry.duration_s == 300.0
        assert entry.source_format == "gps-xml"
        assert entry.splits_data[0]["index"] == 0

    def test_summaries_are_utc_and_ordered(self, store):
        later = _record(day=2)
        earlier = _record(day=1)
        store.save(later)
        store.save(earlier)

        summaries = list(store.iter_summaries(batch_size=1))

        assert [s.workout_id for s in summaries] == [earlier.id, later.id]
        assert summaries[0].start_time == START + timedelta(days=1)
        assert summaries[0].start_time.tzinfo is not None
        assert summaries[0].start_time.utcoffset() == timedelta(0)

    def test_empty_store(self, store):
        assert list(store.iter_summaries()) == []
        assert store.best_efforts() == {}


# ============================================================
# Tests meilleurs efforts
# ============================================================

class TestBestEffortPromotion:

    def test_first_record_is_inserted(self, store):
        record = _record(step_s=3.0)

        promoted = store.promote_best_efforts(record)

        assert sorted(promoted) == ["1K", "400m"]
        best = store.best_efforts()
        assert best["400m"].time_s == pytest.approx(120.0)
        assert best["400m"].workout_id == record.id

    def test_slower_effort_is_not_promoted(self, store):
        fast = _record(step_s=3.0, day=1)
        slow = _record(step_s=4.0, day=2)
        store.save(fast)

        promoted = store.promote_best_efforts(slow)

        assert promoted == []
        assert store.best_efforts()["400m"].workout_id == fast.id

    def test_faster_effort_replaces_record(self, store):
        slow = _record(step_s=4.0, day=1)
        fast = _record(step_s=2.0, day=2)
        store.save(slow)

        promoted = store.promote_best_efforts(fast)

        assert sorted(promoted) == ["1K", "400m"]
        best = store.best_efforts()
        assert best["400m"].time_s == pytest.approx(80.0)
        assert best["1K"].workout_id == fast.id

    def test_equal_time_keeps_existing_record(self, store):
        first = _record(day=1)
        second = _record(day=2)
        store.save(first)

        assert store.promote_best_efforts(second) == []
        assert store.best_efforts()["1K"].workout_id == first.id

    def test_short_workout_only_promotes_covered_distances(self, store):
        # 50 points x 10 m = 490 m
        record = _record(count=50)

        assert store.promote_best_efforts(record) == ["400m"]


# ============================================================
# Tests horodatages
# ============================================================

class TestTimestamps:

    def test_table_defaults_are_timezone_aware(self):
        entry = WorkoutEntry(source_format="gps-xml", started_at=START, distance_m=1.0, duration_s=1.0)
        best = BestEffortEntry(
            distance_label="1K", distance_m=1000.0, time_s=300.0,
            workout_id=entry.id, workout_date=START,
        )

        assert entry.created_at.utcoffset() == timedelta(0)
        assert best.updated_at.utcoffset() == timedelta(0)
        assert utc_now().tzinfo is not None

    def test_save_and_promotion_write_utc_timestamps(self, store):
        before = datetime.now(timezone.utc) - timedelta(seconds=1)
        slow = _record(step_s=4.0, day=1)
        fast = _record(step_s=2.0, day=2)

        store.save(slow)
        store.save(fast)

        entry = store.get(fast.id)
        assert to_utc(entry.created_at) >= before
        best = store.best_efforts()["400m"]
        assert best.workout_id == fast.id
        assert to_utc(best.updated_at) >= before
        assert to_utc(best.workout_date) == START + timedelta(days=2)
