"""
Tests for the reflection trigger lifecycle.

Covered scenarios:
  B) one memory in week 10/2024 → exactly one pending weekly trigger; repeat is a no-op
  E) back-to-back eligibility checks → one trigger row, including the
     insert-collision path where the second check misses the first row

Additional:
  - monthly eligibility only in the first 7 days, targeting the previous month
  - January targets December of the previous year
  - yearly eligibility only in week 1 of January, which can run past the 7th
  - pending triggers ordered by eligibility date
  - completion is a one-way, idempotent transition
"""
from __future__ import annotations

from datetime import date

from sqlalchemy.orm import Session

from daybook.models.trigger import ReflectionTrigger
from daybook.services.reflection_engine import ReflectionEngine
from daybook.services.week_math import week_number_of


def _triggers(db, user_id, tier=None):
    q = db.query(ReflectionTrigger).filter(ReflectionTrigger.user_id == user_id)
    if tier:
        q = q.filter(ReflectionTrigger.tier == tier)
    return q.all()


def _weekly_reflection(engine, add_memory, user_id, day, text="A quiet day at home."):
    memory = add_memory(day, text)
    return engine.create_weekly_reflection(
        user_id, week_number_of(day), day.year, memory.id, "therapeutic"
    )


class TestWeeklyEligibility:
    def test_memory_in_current_week_creates_one_trigger(self, db, user_id, add_memory, reflection_engine):
        add_memory(date(2024, 3, 5))

        created = reflection_engine.refresh_triggers(user_id, date(2024, 3, 6))

        assert len(created) == 1
        t = created[0]
        assert (t.tier, t.week_number, t.year, t.period_key) == ("weekly", 10, 2024, "2024-W10")
        assert t.completed is False
        assert t.trigger_date == date(2024, 3, 6)
        assert t.month is None

    def test_repeat_refresh_changes_nothing(self, db, user_id, add_memory, reflection_engine):
        add_memory(date(2024, 3, 5))
        reflection_engine.refresh_triggers(user_id, date(2024, 3, 6))

        assert reflection_engine.refresh_triggers(user_id, date(2024, 3, 6)) == []
        assert reflection_engine.refresh_triggers(user_id, date(2024, 3, 7)) == []
        assert len(_triggers(db, user_id)) == 1

    def test_previous_week_is_checked(self, db, user_id, add_memory, reflection_engine):
        add_memory(date(2024, 3, 8))  # week 10

        created = reflection_engine.refresh_triggers(user_id, date(2024, 3, 12))  # week 11

        assert [t.period_key for t in created] == ["2024-W10"]

    def test_older_weeks_are_not_checked(self, db, user_id, add_memory, reflection_engine):
        add_memory(date(2024, 2, 27))  # week 9

        assert reflection_engine.refresh_triggers(user_id, date(2024, 3, 12)) == []

    def test_previous_week_across_new_year(self, db, user_id, add_memory, reflection_engine):
        add_memory(date(2024, 12, 31))  # week 53 of 2024

        created = reflection_engine.refresh_triggers(user_id, date(2025, 1, 7))  # week 1 of 2025

        assert [(t.year, t.week_number) for t in created] == [(2024, 53)]

    def test_no_memories_no_triggers(self, db, user_id, reflection_engine):
        assert reflection_engine.refresh_triggers(user_id, date(2024, 3, 6)) == []

    def test_other_users_memories_ignored(self, db, user_id, add_memory, reflection_engine):
        add_memory(date(2024, 3, 5), owner=f"{user_id}-other")
        assert reflection_engine.refresh_triggers(user_id, date(2024, 3, 6)) == []


class TestIdempotentCreation:
    def test_create_twice_returns_same_row(self, db, user_id, reflection_engine):
        first, created_first = reflection_engine.create_trigger_if_not_exists(
            user_id, "weekly", 2024, week_number=10, today=date(2024, 3, 6)
        )
        second, created_second = reflection_engine.create_trigger_if_not_exists(
            user_id, "weekly", 2024, week_number=10, today=date(2024, 3, 7)
        )
        assert created_first is True
        assert created_second is False
        assert second.id == first.id
        assert second.trigger_date == date(2024, 3, 6)
        assert len(_triggers(db, user_id)) == 1

    def test_insert_collision_returns_existing(self, db, user_id, narrator, monkeypatch):
        first_engine = ReflectionEngine(db=db, narrator=narrator)
        existing, _ = first_engine.create_trigger_if_not_exists(
            user_id, "weekly", 2024, week_number=10, today=date(2024, 3, 6)
        )

        other = Session(bind=db.get_bind())
        try:
            second_engine = ReflectionEngine(db=other, narrator=narrator)
            real_find = second_engine._find_trigger
            calls = {"n": 0}

            def find_once_stale(*args):
                # First lookup misses the row the other session already inserted.
                calls["n"] += 1
                if calls["n"] == 1:
                    return None
                return real_find(*args)

            monkeypatch.setattr(second_engine, "_find_trigger", find_once_stale)
            trigger, created = second_engine.create_trigger_if_not_exists(
                user_id, "weekly", 2024, week_number=10, today=date(2024, 3, 6)
            )
            trigger_id = trigger.id
        finally:
            other.close()

        assert created is False
        assert trigger_id == existing.id
        assert len(_triggers(db, user_id)) == 1

    def test_tiers_do_not_collide(self, db, user_id, reflection_engine):
        reflection_engine.create_trigger_if_not_exists(user_id, "weekly", 2024, week_number=3)
        reflection_engine.create_trigger_if_not_exists(user_id, "monthly", 2024, month=3)
        reflection_engine.create_trigger_if_not_exists(user_id, "yearly", 2024)
        keys = sorted(t.period_key for t in _triggers(db, user_id))
        assert keys == ["2024", "2024-03", "2024-W03"]


class TestMonthlyEligibility:
    def test_first_week_of_month_targets_previous_month(self, db, user_id, add_memory, reflection_engine):
        _weekly_reflection(reflection_engine, add_memory, user_id, date(2024, 2, 20))

        created = reflection_engine.refresh_triggers(user_id, date(2024, 3, 3))

        monthly = [t for t in created if t.tier == "monthly"]
        assert [(t.month, t.year, t.period_key) for t in monthly] == [(2, 2024, "2024-02")]
        assert monthly[0].week_number is None

    def test_outside_window_nothing_monthly(self, db, user_id, add_memory, reflection_engine):
        _weekly_reflection(reflection_engine, add_memory, user_id, date(2024, 2, 20))

        created = reflection_engine.refresh_triggers(user_id, date(2024, 3, 8))

        assert [t for t in created if t.tier == "monthly"] == []
        assert _triggers(db, user_id, "monthly") == []

    def test_memories_without_weekly_selection_not_enough(self, db, user_id, add_memory, reflection_engine):
        add_memory(date(2024, 2, 20))

        reflection_engine.refresh_triggers(user_id, date(2024, 3, 1))

        assert _triggers(db, user_id, "monthly") == []

    def test_january_targets_december_of_previous_year(self, db, user_id, add_memory, reflection_engine):
        _weekly_reflection(reflection_engine, add_memory, user_id, date(2023, 12, 20))

        created = reflection_engine.refresh_triggers(user_id, date(2024, 1, 2))

        monthly = [t for t in created if t.tier == "monthly"]
        assert [(t.month, t.year) for t in monthly] == [(12, 2023)]

    def test_repeat_in_window_is_noop(self, db, user_id, add_memory, reflection_engine):
        _weekly_reflection(reflection_engine, add_memory, user_id, date(2024, 2, 20))
        reflection_engine.refresh_triggers(user_id, date(2024, 3, 1))
        reflection_engine.refresh_triggers(user_id, date(2024, 3, 7))
        assert len(_triggers(db, user_id, "monthly")) == 1


class TestYearlyEligibility:
    def _monthly_for_december(self, engine, add_memory, user_id):
        weekly = _weekly_reflection(engine, add_memory, user_id, date(2023, 12, 20))
        return engine.create_monthly_reflection(user_id, 12, 2023, weekly.id, "inspirational")

    def test_first_week_of_january(self, db, user_id, add_memory, reflection_engine):
        self._monthly_for_december(reflection_engine, add_memory, user_id)

        created = reflection_engine.refresh_triggers(user_id, date(2024, 1, 5))

        yearly = [t for t in created if t.tier == "yearly"]
        assert [(t.year, t.period_key) for t in yearly] == [(2023, "2023")]
        assert yearly[0].month is None and yearly[0].week_number is None

    def test_week_one_of_january_runs_past_the_seventh(self, db, user_id, add_memory, reflection_engine):
        # 1 January 2025 is a Wednesday: week 1 runs through Sunday 12 January.
        weekly = _weekly_reflection(reflection_engine, add_memory, user_id, date(2024, 12, 20))
        reflection_engine.create_monthly_reflection(user_id, 12, 2024, weekly.id, "therapeutic")
        assert week_number_of(date(2025, 1, 10)) == 1

        created = reflection_engine.refresh_triggers(user_id, date(2025, 1, 10))

        assert [t.period_key for t in created if t.tier == "yearly"] == ["2024"]

    def test_after_week_one_of_january_nothing_yearly(self, db, user_id, add_memory, reflection_engine):
        weekly = _weekly_reflection(reflection_engine, add_memory, user_id, date(2024, 12, 20))
        reflection_engine.create_monthly_reflection(user_id, 12, 2024, weekly.id, "therapeutic")
        assert week_number_of(date(2025, 1, 13)) == 2

        reflection_engine.refresh_triggers(user_id, date(2025, 1, 13))
        reflection_engine.refresh_triggers(user_id, date(2025, 2, 3))

        assert _triggers(db, user_id, "yearly") == []

    def test_no_monthly_selection_nothing_yearly(self, db, user_id, add_memory, reflection_engine):
        _weekly_reflection(reflection_engine, add_memory, user_id, date(2023, 12, 20))

        reflection_engine.refresh_triggers(user_id, date(2024, 1, 3))

        assert _triggers(db, user_id, "yearly") == []


class TestPendingAndCompletion:
    def test_pending_ordered_by_trigger_date(self, db, user_id, reflection_engine):
        reflection_engine.create_trigger_if_not_exists(user_id, "yearly", 2023, today=date(2024, 1, 3))
        reflection_engine.create_trigger_if_not_exists(
            user_id, "weekly", 2023, week_number=52, today=date(2024, 1, 1)
        )
        reflection_engine.create_trigger_if_not_exists(
            user_id, "monthly", 2023, month=12, today=date(2024, 1, 2)
        )

        pending = reflection_engine.pending_triggers(user_id)

        assert [t.tier for t in pending] == ["weekly", "monthly", "yearly"]

    def test_mark_completed_once(self, db, user_id, reflection_engine):
        reflection_engine.create_trigger_if_not_exists(user_id, "weekly", 2024, week_number=10)

        assert reflection_engine.mark_trigger_completed(user_id, "weekly", 2024, week_number=10) is True
        assert reflection_engine.mark_trigger_completed(user_id, "weekly", 2024, week_number=10) is False
        assert reflection_engine.pending_triggers(user_id) == []

        t = _triggers(db, user_id)[0]
        assert t.completed is True
        assert t.completed_at is not None

    def test_mark_missing_is_noop(self, db, user_id, reflection_engine):
        assert reflection_engine.mark_trigger_completed(user_id, "monthly", 2024, month=5) is False
        assert _triggers(db, user_id) == []

    def test_completed_never_reverts(self, db, user_id, add_memory, reflection_engine):
        add_memory(date(2024, 3, 5))
        reflection_engine.refresh_triggers(user_id, date(2024, 3, 6))
        reflection_engine.mark_trigger_completed(user_id, "weekly", 2024, week_number=10)

        assert reflection_engine.refresh_triggers(user_id, date(2024, 3, 7)) == []
        triggers = _triggers(db, user_id)
        assert len(triggers) == 1
        assert triggers[0].completed is True

    def test_pending_scoped_by_user(self, db, user_id, reflection_engine):
        reflection_engine.create_trigger_if_not_exists(f"{user_id}-other", "yearly", 2024)
        assert reflection_engine.pending_triggers(user_id) == []
