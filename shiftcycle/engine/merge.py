"""Overlay of per-user exceptions onto a generated base schedule."""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field, replace
from datetime import date, time
from typing import Callable, ClassVar, Dict, FrozenSet, Iterable, List, Optional, Sequence, Tuple

from shiftcycle.domain.values import (
    AdditionalShift,
    ComputedDay,
    ComputedShift,
    ExceptionNote,
    ExceptionRecord,
    ExceptionType,
    OtherNote,
    ShiftOrigin,
    ShiftSwap,
    ShiftTimeChange,
    ShiftType,
)

logger = logging.getLogger(__name__)

ADDITIONAL_SHIFT_TYPE_ID = "additional"

# Order in which winning exceptions are applied within one day
PRECEDENCE: Tuple[ExceptionType, ...] = (
    ExceptionType.SHIFT_CANCELLED,
    ExceptionType.SHIFT_TIME_CHANGE,
    ExceptionType.SHIFT_SWAP,
    ExceptionType.ADDITIONAL_SHIFT,
    ExceptionType.OTHER,
)


@dataclass(frozen=True)
class MergeWarning:
    """An exception that could not be applied as written."""

    exception_id: str
    date: date
    message: str


@dataclass(frozen=True)
class MergeReport:
    days: Tuple[ComputedDay, ...]
    warnings: Tuple[MergeWarning, ...] = ()


@dataclass
class _DayDraft:
    """Mutable working copy of one day, local to a single merge call."""

    date: date
    shifts: List[ComputedShift]
    notes: List[ExceptionNote]
    team_id: Optional[str]
    warnings: List[MergeWarning] = field(default_factory=list)

    def find(self, shift_type_id: Optional[str]) -> Optional[int]:
        if shift_type_id is None:
            return None
        for index, shift in enumerate(self.shifts):
            if shift.shift_type_id == shift_type_id:
                return index
        return None

    def warn(self, record: ExceptionRecord, message: str) -> None:
        self.warnings.append(MergeWarning(record.id, self.date, message))

    def build(self) -> ComputedDay:
        return ComputedDay(date=self.date, shifts=tuple(self.shifts), notes=tuple(self.notes))


def _sort_key(record: ExceptionRecord):
    return (record.created_at, record.id)


class ExceptionMergeEngine:
    """
    Applies ACTIVE exception records to base days.

    For every shift targeted by more than one exception, the latest by
    ``created_at`` wins, ties going to the higher ``id``. Winners are then
    applied in PRECEDENCE order, each by the handler registered for its
    type. The merge only reads its inputs, so merging an already merged
    result with the same exceptions returns it unchanged.

    Args:
        shift_types: Known shift types, used to fill in the nominal data of
            shifts added by exceptions
    """

    _HANDLERS: ClassVar[Dict[ExceptionType, str]] = {
        ExceptionType.SHIFT_CANCELLED: "_apply_cancellation",
        ExceptionType.SHIFT_TIME_CHANGE: "_apply_time_change",
        ExceptionType.SHIFT_SWAP: "_apply_swap",
        ExceptionType.ADDITIONAL_SHIFT: "_apply_additional",
        ExceptionType.OTHER: "_apply_note",
    }

    def __init__(self, shift_types: Optional[Iterable[ShiftType]] = None):
        self.shift_types: Dict[str, ShiftType] = {st.id: st for st in shift_types or ()}

    def merge(
        self,
        base_days: Sequence[ComputedDay],
        exceptions: Iterable[ExceptionRecord],
        team_id: Optional[str] = None,
    ) -> List[ComputedDay]:
        """Return the merged days (see ``merge_with_report``)."""
        return list(self.merge_with_report(base_days, exceptions, team_id).days)

    def merge_with_report(
        self,
        base_days: Sequence[ComputedDay],
        exceptions: Iterable[ExceptionRecord],
        team_id: Optional[str] = None,
    ) -> MergeReport:
        """
        Merge exceptions into base days and report what could not be applied.

        Args:
            base_days: Ordered days from the generator (or a previous merge)
            exceptions: Exception records of one user; non-ACTIVE records and
                records dated outside the base range are ignored
            team_id: Team assigned to shifts that exceptions add

        Returns:
            MergeReport with one day per base day, in the same order
        """
        base_days = list(base_days)
        by_date: Dict[date, List[ExceptionRecord]] = defaultdict(list)
        dates = {day.date for day in base_days}
        for record in exceptions:
            if record.is_active and record.date in dates:
                by_date[record.date].append(record)

        merged: List[ComputedDay] = []
        warnings: List[MergeWarning] = []
        for day in base_days:
            records = by_date.get(day.date)
            if not records:
                merged.append(day)
                continue
            draft = _DayDraft(day.date, list(day.shifts), list(day.notes), team_id)
            self._merge_day(draft, day, records)
            merged.append(draft.build())
            warnings.extend(draft.warnings)

        for warning in warnings:
            logger.warning("Exception %s on %s: %s", warning.exception_id, warning.date, warning.message)
        return MergeReport(tuple(merged), tuple(warnings))

    # ------------------------------------------------------------------

    def _merge_day(self, draft: _DayDraft, base: ComputedDay, records: List[ExceptionRecord]) -> None:
        contests: Dict[Optional[str], List[ExceptionRecord]] = defaultdict(list)
        notes: List[ExceptionRecord] = []
        for record in records:
            if record.type is ExceptionType.OTHER:
                notes.append(record)
                continue
            for target in self._targets(record, base):
                contests[target].append(record)

        winners = [(target, max(candidates, key=_sort_key)) for target, candidates in contests.items()]
        winners.extend((None, record) for record in notes)
        winners.sort(key=lambda item: (PRECEDENCE.index(item[1].type), _sort_key(item[1]), item[0] or ""))

        for target, record in winners:
            handler: Callable = getattr(self, self._HANDLERS[record.type])
            handler(draft, target, record)

    @staticmethod
    def _targets(record: ExceptionRecord, day: ComputedDay) -> List[Optional[str]]:
        """Shift ids an exception competes for; [None] if the day has none to offer."""
        if record.type is ExceptionType.ADDITIONAL_SHIFT:
            return [record.shift_type_id or ADDITIONAL_SHIFT_TYPE_ID]
        if record.shift_type_id is not None:
            return [record.shift_type_id]
        targets: List[Optional[str]] = []
        for shift in day.shifts:
            # shifts added by exceptions are not part of "the whole day"
            if shift.is_rest or shift.origin is not ShiftOrigin.BASE:
                continue
            if shift.shift_type_id not in targets:
                targets.append(shift.shift_type_id)
        return targets or [None]

    # -- handlers, one per ExceptionType --------------------------------

    def _apply_cancellation(self, draft: _DayDraft, target: Optional[str], record: ExceptionRecord) -> None:
        if draft.find(target) is None:
            draft.warn(record, "cancels a shift that is not scheduled; dropped")
            return
        draft.shifts = [s for s in draft.shifts if s.shift_type_id != target]

    def _apply_time_change(self, draft: _DayDraft, target: Optional[str], record: ExceptionRecord) -> None:
        payload: ShiftTimeChange = record.payload
        index = draft.find(target)
        if index is None:
            key = target or ADDITIONAL_SHIFT_TYPE_ID
            draft.warn(record, f"changes times of a shift that is not scheduled; added as '{key}'")
            self._add_shift(draft, key, payload.new_start, payload.new_end, None, record)
            return
        shift = draft.shifts[index]
        draft.shifts[index] = replace(
            shift,
            start_time=payload.new_start,
            end_time=payload.new_end,
            exception_ids=shift.exception_ids + (record.id,),
        )

    def _apply_swap(self, draft: _DayDraft, target: Optional[str], record: ExceptionRecord) -> None:
        payload: ShiftSwap = record.payload
        index = draft.find(target)
        if index is None:
            draft.warn(record, "swaps a shift that is not scheduled; dropped")
            return
        shift = draft.shifts[index]
        if payload.from_team_id is None:
            teams = frozenset([payload.to_team_id])
        else:
            teams = (shift.teams_on_duty - {payload.from_team_id}) | {payload.to_team_id}
        draft.shifts[index] = replace(
            shift,
            teams_on_duty=teams,
            exception_ids=shift.exception_ids + (record.id,),
        )

    def _apply_additional(self, draft: _DayDraft, target: Optional[str], record: ExceptionRecord) -> None:
        payload: AdditionalShift = record.payload
        self._add_shift(draft, target, payload.start_time, payload.end_time, payload.team_id, record, payload.name)

    def _apply_note(self, draft: _DayDraft, target: Optional[str], record: ExceptionRecord) -> None:
        payload: OtherNote = record.payload
        if any(note.exception_id == record.id for note in draft.notes):
            return
        draft.notes.append(ExceptionNote(record.id, payload.text))

    # ------------------------------------------------------------------

    def _add_shift(
        self,
        draft: _DayDraft,
        key: Optional[str],
        start: time,
        end: time,
        team_id: Optional[str],
        record: ExceptionRecord,
        name: Optional[str] = None,
    ) -> None:
        key = key or ADDITIONAL_SHIFT_TYPE_ID
        index = draft.find(key)
        if index is not None:
            if record.id not in draft.shifts[index].exception_ids:
                draft.warn(record, f"adds shift '{key}' which is already scheduled; dropped")
            return

        shift_type = self.shift_types.get(key) or ShiftType(
            id=key, name=name or key.title(), start_time=start, end_time=end
        )
        team = team_id or draft.team_id
        teams: FrozenSet[str] = frozenset([team]) if team else frozenset()
        draft.shifts.append(
            ComputedShift(
                shift_type=shift_type,
                teams_on_duty=teams,
                start_time=start,
                end_time=end,
                origin=ShiftOrigin.EXCEPTION,
                exception_ids=(record.id,),
            )
        )


def _check_handlers() -> None:
    missing = [t.name for t in ExceptionType if t not in ExceptionMergeEngine._HANDLERS]
    unordered = [t.name for t in ExceptionType if t not in PRECEDENCE]
    if missing or unordered:
        raise TypeError(f"ExceptionMergeEngine has no handler or precedence for: {missing + unordered}")


_check_handlers()
