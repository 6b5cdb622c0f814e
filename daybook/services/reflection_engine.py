"""
Reflection Engine: trigger lifecycle, generation pipeline and aggregation.

Triggers
--------
One ReflectionTrigger per (user, tier, period). Lifecycle:
    absent → pending → completed      (completed is terminal)

Eligibility is pull-based: `refresh_triggers(user_id, today)` is called
whenever the client wants fresh "ready to reflect" prompts. `today` is
always passed in; eligibility never reads the clock.

  weekly   previous and current week contain at least one memory
  monthly  today is in the first 7 days of a month and the previous month
           has at least one weekly selection (by memory date)
  yearly   today is in week 1 of January and the previous year has at least one
           monthly selection

Trigger creation is check-then-insert backed by the DB unique constraint,
so calling it twice (or re-entrantly) leaves one row.

Generation
----------
The narrator is called BEFORE any write. On success the reflection, its
period selection and the trigger completion are flushed and committed in
one transaction. A narrator error leaves the store untouched.

Monthly and yearly reflections are regenerated from the ORIGINAL seed
memory; the lower-tier narrative only rides along as context.

Public API (ReflectionEngine methods)
-------------------------------------
get_week_memories(user_id, week_number, year)          -> list[Memory]
refresh_triggers(user_id, today)                       -> list[ReflectionTrigger]  (newly created)
create_trigger_if_not_exists(user_id, tier, year, ...) -> tuple[ReflectionTrigger, bool]
mark_trigger_completed(user_id, tier, year, ...)       -> bool
pending_triggers(user_id)                              -> list[ReflectionTrigger]
create_weekly_reflection(user_id, week, year, memory_id, tone)              -> Reflection
create_monthly_reflection(user_id, month, year, weekly_reflection_id, tone) -> Reflection
create_yearly_reflection(user_id, year, monthly_reflection_id, tone)        -> Reflection
monthly_options(user_id, month, year)                  -> list[ReflectionOption]
yearly_options(user_id, year)                          -> list[ReflectionOption]
weekly_selection(user_id, week_number, year)           -> ReflectionOption | None
user_reflections(user_id, tier)                        -> list[Reflection]   (newest first)
get_reflection(user_id, reflection_id)                 -> Reflection
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Callable, Optional, Union

from sqlalchemy import and_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from daybook.core.errors import InconsistentStateError, NarratorError, NotFoundError
from daybook.models.memory import Memory
from daybook.models.reflection import Reflection, ReflectionTier, Tone
from daybook.models.selection import MonthlySelection, WeeklySelection
from daybook.models.trigger import ReflectionTrigger
from daybook.services import memory as memory_service
from daybook.services.narrator import NarrationRequest, NarrationResult, Narrator
from daybook.services.week_math import (
    month_bounds,
    period_key,
    previous_month,
    previous_week,
    week_number_of,
    week_range,
)

logger = logging.getLogger(__name__)

# Monthly eligibility is only evaluated during the first days of a month.
_TRANSITION_WINDOW_DAYS = 7


def _ev(v) -> str:
    return v.value if hasattr(v, "value") else str(v)


def _tier(v) -> str:
    return ReflectionTier(_ev(v)).value


def _tone(v) -> str:
    return Tone(_ev(v)).value


# ---------------------------------------------------------------------------
# Result type
# ---------------------------------------------------------------------------

@dataclass
class ReflectionOption:
    """A period selection joined with the reflection it produced and the seed memory."""
    selection: Union[WeeklySelection, MonthlySelection]
    reflection: Optional[Reflection]
    memory: Optional[Memory]


class ReflectionEngine:
    def __init__(self, db: Session, narrator: Narrator):
        self.db = db
        self.narrator = narrator

    # -----------------------------------------------------------------------
    # Week memories
    # -----------------------------------------------------------------------

    def get_week_memories(self, user_id: str, week_number: int, year: int) -> list[Memory]:
        start, end = week_range(year, week_number)
        return memory_service.get_range(self.db, user_id, start, end)

    def _has_memories_in_week(self, user_id: str, week_number: int, year: int) -> bool:
        start, end = week_range(year, week_number)
        return (
            self.db.query(Memory.id)
            .filter(Memory.user_id == user_id, Memory.day >= start, Memory.day <= end)
            .first()
            is not None
        )

    def _has_monthly_selections(self, user_id: str, year: int) -> bool:
        return (
            self.db.query(MonthlySelection.id)
            .filter(MonthlySelection.user_id == user_id, MonthlySelection.year == year)
            .first()
            is not None
        )

    # -----------------------------------------------------------------------
    # Trigger lifecycle
    # -----------------------------------------------------------------------

    def _find_trigger(self, user_id: str, tier: str, key: str) -> Optional[ReflectionTrigger]:
        return (
            self.db.query(ReflectionTrigger)
            .filter(
                ReflectionTrigger.user_id == user_id,
                ReflectionTrigger.tier == tier,
                ReflectionTrigger.period_key == key,
            )
            .first()
        )

    def create_trigger_if_not_exists(
        self,
        user_id: str,
        tier: Union[str, ReflectionTier],
        year: int,
        week_number: Optional[int] = None,
        month: Optional[int] = None,
        today: Optional[date] = None,
    ) -> tuple[ReflectionTrigger, bool]:
        """
        Insert a pending trigger unless one already exists for the period.
        Returns (trigger, created). Safe to call any number of times.
        """
        tier = _tier(tier)
        key = period_key(tier, year, week_number=week_number, month=month)

        existing = self._find_trigger(user_id, tier, key)
        if existing is not None:
            return existing, False

        trigger = ReflectionTrigger(
            user_id=user_id,
            tier=tier,
            period_key=key,
            week_number=week_number if tier == ReflectionTier.weekly.value else None,
            month=month if tier == ReflectionTier.monthly.value else None,
            year=year,
            completed=False,
            trigger_date=today or datetime.now(tz=timezone.utc).date(),
        )
        self.db.add(trigger)
        try:
            self.db.commit()
        except IntegrityError:
            # Re-entrant call inserted first; the unique key already holds the row.
            self.db.rollback()
            existing = self._find_trigger(user_id, tier, key)
            if existing is None:
                raise
            return existing, False

        self.db.refresh(trigger)
        logger.info("trigger created user=%s tier=%s period=%s", user_id, tier, key)
        return trigger, True

    def _complete_trigger(
        self,
        user_id: str,
        tier: str,
        year: int,
        week_number: Optional[int] = None,
        month: Optional[int] = None,
    ) -> bool:
        """Flip a pending trigger to completed without committing. False if nothing to do."""
        key = period_key(tier, year, week_number=week_number, month=month)
        trigger = self._find_trigger(user_id, tier, key)
        if trigger is None or trigger.completed:
            return False
        trigger.completed = True
        trigger.completed_at = datetime.now(tz=timezone.utc)
        return True

    def mark_trigger_completed(
        self,
        user_id: str,
        tier: Union[str, ReflectionTier],
        year: int,
        week_number: Optional[int] = None,
        month: Optional[int] = None,
    ) -> bool:
        """
        Mark the period's trigger completed. Missing or already-completed
        triggers are a no-op (returns False), never an error.
        """
        tier = _tier(tier)
        changed = self._complete_trigger(user_id, tier, year, week_number, month)
        if changed:
            self.db.commit()
            logger.info(
                "trigger completed user=%s tier=%s period=%s",
                user_id, tier, period_key(tier, year, week_number=week_number, month=month),
            )
        return changed

    def pending_triggers(self, user_id: str) -> list[ReflectionTrigger]:
        """Pending triggers, oldest eligibility first."""
        return (
            self.db.query(ReflectionTrigger)
            .filter(
                ReflectionTrigger.user_id == user_id,
                ReflectionTrigger.completed.is_(False),
            )
            .order_by(ReflectionTrigger.trigger_date.asc(), ReflectionTrigger.id.asc())
            .all()
        )

    def refresh_triggers(self, user_id: str, today: date) -> list[ReflectionTrigger]:
        """Evaluate eligibility relative to `today`; returns the triggers created by this call."""
        created: list[ReflectionTrigger] = []

        def _create(tier: ReflectionTier, year: int, **period) -> None:
            trigger, is_new = self.create_trigger_if_not_exists(
                user_id, tier, year, today=today, **period
            )
            if is_new:
                created.append(trigger)

        # Weekly: previous week first so the older trigger gets the earlier id.
        current_week = week_number_of(today)
        prev_year, prev_week = previous_week(today.year, current_week)
        for year, week in ((prev_year, prev_week), (today.year, current_week)):
            if self._has_memories_in_week(user_id, week, year):
                _create(ReflectionTier.weekly, year, week_number=week)

        # Monthly: only during the first week of a new month.
        if today.day <= _TRANSITION_WINDOW_DAYS:
            target_year, target_month = previous_month(today.year, today.month)
            if self.monthly_options(user_id, target_month, target_year):
                _create(ReflectionTier.monthly, target_year, month=target_month)

        # Yearly: only during week 1 of January (days before the first Monday included).
        if today.month == 1 and current_week <= 1:
            if self._has_monthly_selections(user_id, today.year - 1):
                _create(ReflectionTier.yearly, today.year - 1)

        return created

    # -----------------------------------------------------------------------
    # Generation pipeline
    # -----------------------------------------------------------------------

    def _narrate(self, user_id: str, request: NarrationRequest) -> NarrationResult:
        try:
            return self.narrator.generate(request)
        except NarratorError as exc:
            logger.warning(
                "narration failed user=%s scale=%s code=%s retryable=%s",
                user_id, request.period_scale, exc.code, exc.retryable,
            )
            raise

    def _owned_reflection(
        self, user_id: str, reflection_id: int, tier: Optional[str] = None
    ) -> Optional[Reflection]:
        q = self.db.query(Reflection).filter(
            Reflection.id == reflection_id,
            Reflection.user_id == user_id,
        )
        if tier is not None:
            q = q.filter(Reflection.tier == tier)
        return q.first()

    def _new_reflection(
        self,
        user_id: str,
        tier: str,
        seed_memory_id: int,
        tone: str,
        result: NarrationResult,
        year: int,
        week_number: Optional[int] = None,
        month: Optional[int] = None,
    ) -> Reflection:
        reflection = Reflection(
            user_id=user_id,
            tier=tier,
            seed_memory_id=seed_memory_id,
            narrative=result.narrative,
            tone=tone,
            week_number=week_number,
            month=month,
            year=year,
            prompt_used=result.prompt_used,
            model=result.model,
            word_count=result.word_count,
        )
        self.db.add(reflection)
        self.db.flush()  # reflection.id is needed by the selection row
        return reflection

    def _find_weekly_selection(
        self, user_id: str, week_number: int, year: int
    ) -> Optional[WeeklySelection]:
        return (
            self.db.query(WeeklySelection)
            .filter(
                WeeklySelection.user_id == user_id,
                WeeklySelection.week_number == week_number,
                WeeklySelection.year == year,
            )
            .first()
        )

    def _find_monthly_selection(
        self, user_id: str, month: int, year: int
    ) -> Optional[MonthlySelection]:
        return (
            self.db.query(MonthlySelection)
            .filter(
                MonthlySelection.user_id == user_id,
                MonthlySelection.month == month,
                MonthlySelection.year == year,
            )
            .first()
        )

    def _commit_write(self, write: Callable[[], Reflection]) -> Reflection:
        try:
            reflection = write()
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise
        return reflection

    def _persist_generation(
        self, write: Callable[[], Reflection], user_id: str, tier: str, key: str
    ) -> Reflection:
        """
        Run `write` and commit it as one transaction; any failure rolls it all back.

        A unique-key collision means an overlapping request inserted the
        period's selection first. The write is replayed once, which then
        re-points that selection instead of inserting a second one.
        """
        try:
            try:
                return self._commit_write(write)
            except IntegrityError:
                logger.warning(
                    "selection collision user=%s tier=%s period=%s; re-pointing",
                    user_id, tier, key,
                )
                return self._commit_write(write)
        except SQLAlchemyError:
            logger.error(
                "reflection write rolled back user=%s tier=%s period=%s",
                user_id, tier, key, exc_info=True,
            )
            raise

    def _write_weekly(
        self,
        user_id: str,
        week_number: int,
        year: int,
        memory_id: int,
        tone: str,
        result: NarrationResult,
    ) -> Reflection:
        tier = ReflectionTier.weekly.value
        reflection = self._new_reflection(
            user_id, tier, memory_id, tone, result, year, week_number=week_number
        )
        selection = self._find_weekly_selection(user_id, week_number, year)
        if selection is None:
            self.db.add(WeeklySelection(
                user_id=user_id,
                week_number=week_number,
                year=year,
                selected_memory_id=memory_id,
                reflection_id=reflection.id,
            ))
        else:
            # Regeneration: the period keeps one selection, pointing at the newest reflection.
            selection.selected_memory_id = memory_id
            selection.reflection_id = reflection.id
        self._complete_trigger(user_id, tier, year, week_number=week_number)
        self.db.flush()
        return reflection

    def _write_monthly(
        self,
        user_id: str,
        month: int,
        year: int,
        memory_id: int,
        weekly_id: int,
        tone: str,
        result: NarrationResult,
    ) -> Reflection:
        tier = ReflectionTier.monthly.value
        reflection = self._new_reflection(
            user_id, tier, memory_id, tone, result, year, month=month
        )
        selection = self._find_monthly_selection(user_id, month, year)
        if selection is None:
            self.db.add(MonthlySelection(
                user_id=user_id,
                month=month,
                year=year,
                selected_weekly_reflection_id=weekly_id,
                reflection_id=reflection.id,
            ))
        else:
            selection.selected_weekly_reflection_id = weekly_id
            selection.reflection_id = reflection.id
        self._complete_trigger(user_id, tier, year, month=month)
        self.db.flush()
        return reflection

    def _write_yearly(
        self, user_id: str, year: int, memory_id: int, tone: str, result: NarrationResult
    ) -> Reflection:
        tier = ReflectionTier.yearly.value
        reflection = self._new_reflection(user_id, tier, memory_id, tone, result, year)
        self._complete_trigger(user_id, tier, year)
        self.db.flush()
        return reflection

    def create_weekly_reflection(
        self,
        user_id: str,
        week_number: int,
        year: int,
        memory_id: int,
        tone: Union[str, Tone],
    ) -> Reflection:
        tone = _tone(tone)
        tier = ReflectionTier.weekly.value
        key = period_key(tier, year, week_number=week_number)

        memory = memory_service.get_by_id(self.db, user_id, memory_id)
        if memory is None:
            raise NotFoundError("memory", memory_id)
        seed_id = memory.id

        result = self._narrate(user_id, NarrationRequest(
            text=memory.text,
            period_scale=tier,
            tone=tone,
            memory_date=memory.day,
        ))

        reflection = self._persist_generation(
            lambda: self._write_weekly(user_id, week_number, year, seed_id, tone, result),
            user_id, tier, key,
        )

        self.db.refresh(reflection)
        logger.info(
            "reflection created user=%s tier=%s period=%s id=%s seed=%s",
            user_id, tier, key, reflection.id, seed_id,
        )
        return reflection

    def create_monthly_reflection(
        self,
        user_id: str,
        month: int,
        year: int,
        weekly_reflection_id: int,
        tone: Union[str, Tone],
    ) -> Reflection:
        tone = _tone(tone)
        tier = ReflectionTier.monthly.value
        key = period_key(tier, year, month=month)

        weekly = self._owned_reflection(user_id, weekly_reflection_id, ReflectionTier.weekly.value)
        if weekly is None:
            raise NotFoundError("weekly reflection", weekly_reflection_id)
        memory = memory_service.get_by_id(self.db, user_id, weekly.seed_memory_id)
        if memory is None:
            raise NotFoundError("memory", weekly.seed_memory_id)
        seed_id, weekly_id = memory.id, weekly.id

        result = self._narrate(user_id, NarrationRequest(
            text=memory.text,
            period_scale=tier,
            tone=tone,
            memory_date=memory.day,
            context_text=f"Previous weekly reflection: {weekly.narrative}",
        ))

        reflection = self._persist_generation(
            lambda: self._write_monthly(user_id, month, year, seed_id, weekly_id, tone, result),
            user_id, tier, key,
        )

        self.db.refresh(reflection)
        logger.info(
            "reflection created user=%s tier=%s period=%s id=%s seed=%s from=%s",
            user_id, tier, key, reflection.id, seed_id, weekly_id,
        )
        return reflection

    def create_yearly_reflection(
        self,
        user_id: str,
        year: int,
        monthly_reflection_id: int,
        tone: Union[str, Tone],
    ) -> Reflection:
        tone = _tone(tone)
        tier = ReflectionTier.yearly.value
        key = period_key(tier, year)

        monthly = self._owned_reflection(user_id, monthly_reflection_id, ReflectionTier.monthly.value)
        if monthly is None:
            raise NotFoundError("monthly reflection", monthly_reflection_id)
        memory = memory_service.get_by_id(self.db, user_id, monthly.seed_memory_id)
        if memory is None:
            raise NotFoundError("memory", monthly.seed_memory_id)
        seed_id, monthly_id = memory.id, monthly.id

        result = self._narrate(user_id, NarrationRequest(
            text=memory.text,
            period_scale=tier,
            tone=tone,
            memory_date=memory.day,
            context_text=f"Previous monthly reflection: {monthly.narrative}",
        ))

        reflection = self._persist_generation(
            lambda: self._write_yearly(user_id, year, seed_id, tone, result),
            user_id, tier, key,
        )

        self.db.refresh(reflection)
        logger.info(
            "reflection created user=%s tier=%s period=%s id=%s seed=%s from=%s",
            user_id, tier, key, reflection.id, seed_id, monthly_id,
        )
        return reflection

    # -----------------------------------------------------------------------
    # Aggregation queries (read-only)
    # -----------------------------------------------------------------------

    def monthly_options(self, user_id: str, month: int, year: int) -> list[ReflectionOption]:
        """
        Weekly selections whose chosen memory is dated inside the month.
        Filtering is by memory date, so a week spanning two months only
        counts for the month its memory belongs to.
        """
        first, last = month_bounds(year, month)
        rows = (
            self.db.query(WeeklySelection, Reflection, Memory)
            .join(
                Memory,
                and_(
                    Memory.id == WeeklySelection.selected_memory_id,
                    Memory.user_id == user_id,
                ),
            )
            .outerjoin(
                Reflection,
                and_(
                    Reflection.id == WeeklySelection.reflection_id,
                    Reflection.user_id == user_id,
                ),
            )
            .filter(
                WeeklySelection.user_id == user_id,
                Memory.day >= first,
                Memory.day <= last,
            )
            .order_by(Memory.day.asc(), WeeklySelection.id.asc())
            .all()
        )
        return self._resolved_options(rows)

    def yearly_options(self, user_id: str, year: int) -> list[ReflectionOption]:
        """Monthly selections for the year, month ascending."""
        rows = (
            self.db.query(MonthlySelection, Reflection, Memory)
            .outerjoin(
                Reflection,
                and_(
                    Reflection.id == MonthlySelection.reflection_id,
                    Reflection.user_id == user_id,
                ),
            )
            .outerjoin(
                Memory,
                and_(
                    Memory.id == Reflection.seed_memory_id,
                    Memory.user_id == user_id,
                ),
            )
            .filter(MonthlySelection.user_id == user_id, MonthlySelection.year == year)
            .order_by(MonthlySelection.month.asc(), MonthlySelection.id.asc())
            .all()
        )
        return self._resolved_options(rows)

    @staticmethod
    def _resolved_options(rows) -> list[ReflectionOption]:
        options: list[ReflectionOption] = []
        for selection, reflection, memory in rows:
            if reflection is None:
                logger.error(
                    "selection %s (%s) references unresolved reflection %s; skipped",
                    selection.id, selection.__tablename__, selection.reflection_id,
                )
                continue
            options.append(ReflectionOption(selection=selection, reflection=reflection, memory=memory))
        return options

    def weekly_selection(
        self, user_id: str, week_number: int, year: int
    ) -> Optional[ReflectionOption]:
        """The week's existing selection, if any. A dangling reflection id is fatal."""
        selection = self._find_weekly_selection(user_id, week_number, year)
        if selection is None:
            return None

        reflection = self._owned_reflection(user_id, selection.reflection_id)
        if reflection is None:
            logger.error(
                "weekly selection %s references missing reflection %s",
                selection.id, selection.reflection_id,
            )
            raise InconsistentStateError(
                message=f"Weekly selection {selection.id} references a missing reflection.",
                details={"selection_id": selection.id, "reflection_id": selection.reflection_id},
            )
        memory = memory_service.get_by_id(self.db, user_id, selection.selected_memory_id)
        return ReflectionOption(selection=selection, reflection=reflection, memory=memory)

    # -----------------------------------------------------------------------
    # Listing
    # -----------------------------------------------------------------------

    def user_reflections(
        self, user_id: str, tier: Optional[Union[str, ReflectionTier]] = None
    ) -> list[Reflection]:
        """All of the user's reflections, newest first."""
        q = self.db.query(Reflection).filter(Reflection.user_id == user_id)
        if tier is not None:
            q = q.filter(Reflection.tier == _tier(tier))
        return q.order_by(Reflection.created_at.desc(), Reflection.id.desc()).all()

    def get_reflection(self, user_id: str, reflection_id: int) -> Reflection:
        reflection = self._owned_reflection(user_id, reflection_id)
        if reflection is None:
            raise NotFoundError("reflection", reflection_id)
        return reflection

