"""
Weekly timetable builder.

Events are laid down first at their fixed times; the free time left inside the
working hours is then handed out to tasks in due-date order. A task that does
not fit in one block may be split into several blocks when the policy allows
it. All boundaries sit on the policy's granularity.
"""
import logging
from dataclasses import dataclass, replace
from datetime import date, time, timedelta
from typing import Dict, List, Optional

from .config import Policy, TaskOrder
from .errors import SchedulingConflict, Unschedulable
from .models import EntityKind, EntityStore, from_minutes, to_minutes

DAYS_TO_PLAN = 7


@dataclass
class Window:
    """A stretch of free time on one day, in minutes from midnight."""
    day: date
    start: int
    end: int

    @property
    def length(self) -> int:
        return self.end - self.start


@dataclass(frozen=True)
class Placement:
    day: date
    start: time
    end: time
    kind: EntityKind
    entity_id: int
    name: str = ""
    subtask_index: Optional[int] = None

    @property
    def start_minutes(self) -> int:
        return to_minutes(self.start)

    @property
    def end_minutes(self) -> int:
        return to_minutes(self.end)

    @property
    def minutes(self) -> int:
        return self.end_minutes - self.start_minutes

    def record(self) -> dict:
        return {
            "day": self.day.isoformat(),
            "start": self.start.strftime("%H:%M"),
            "end": self.end.strftime("%H:%M"),
            "kind": self.kind.value,
            "entity_id": self.entity_id,
            "subtask_index": self.subtask_index,
            "name": self.name,
        }


@dataclass
class Timetable:
    start: date
    days: List[date]
    placements: List[Placement]
    unschedulable: List[Unschedulable]

    def for_day(self, day: date) -> List[Placement]:
        return [p for p in self.placements if p.day == day]

    def records(self) -> List[dict]:
        return [p.record() for p in self.placements]


def _placement_key(p: Placement):
    return (p.day, p.start, p.kind is not EntityKind.EVENT, p.entity_id, p.subtask_index or 0)


class Scheduler:
    def __init__(self, policy: Policy):
        self.policy = policy
        self.granularity = policy.granularity
        g = policy.granularity
        self.threshold = max(g, -(-policy.min_subtask_minutes // g) * g)

    def build(self, store: EntityStore, start: date) -> Timetable:
        logging.info(f"Starting scheduling from {start.isoformat()}")
        days = [start + timedelta(days=i) for i in range(DAYS_TO_PLAN)]
        events = self._place_events(store, days)
        free = self._availability(days, events)

        unschedulable = []
        placements = list(events)
        for task in self._ordered_tasks(store, start, unschedulable):
            pieces, reason = self._allocate(task, days, free)
            if reason:
                logging.info(f"Task {task.id} not scheduled: {reason}")
                unschedulable.append(Unschedulable(task.id, task.name, reason))
                continue
            for piece in pieces:
                logging.debug(f"Task {task.id} placed on {piece.day} {piece.start}-{piece.end}")
            placements.extend(pieces)

        placements = self._cleanup(placements, store, free, unschedulable)
        placements.sort(key=_placement_key)
        logging.info(f"Finished scheduling: {len(placements)} placements, "
                     f"{len(unschedulable)} unschedulable tasks")
        return Timetable(start, days, placements, unschedulable)

    # --- fixed placement pass ------------------------------------------

    def _place_events(self, store, days) -> List[Placement]:
        placed = []
        for day in days:
            todays = sorted(
                (e for e in store.events.values() if e.occurs_on(day)),
                key=lambda e: (e.time_range.start, e.id),
            )
            latest = None
            for event in todays:
                if latest is not None and latest.time_range.overlaps(event.time_range):
                    logging.error(f"Events {latest.id} and {event.id} overlap on {day}")
                    raise SchedulingConflict(day, latest, event)
                if latest is None or event.time_range.end > latest.time_range.end:
                    latest = event
                placed.append(Placement(day, event.time_range.start, event.time_range.end,
                                        EntityKind.EVENT, event.id, event.name))
        return placed

    # --- availability ----------------------------------------------------

    def _ceil(self, minutes: int) -> int:
        return -(-minutes // self.granularity) * self.granularity

    def _floor(self, minutes: int) -> int:
        return minutes // self.granularity * self.granularity

    def _availability(self, days, events) -> Dict[date, List[Window]]:
        bounds = self.policy.working_hours
        free = {}
        for day in days:
            pieces = [(self._ceil(bounds.start_minutes), self._floor(bounds.end_minutes))]
            busy = sorted((p.start_minutes, p.end_minutes) for p in events if p.day == day)
            for b_start, b_end in busy:
                nxt = []
                for start, end in pieces:
                    if b_end <= start or b_start >= end:
                        nxt.append((start, end))
                        continue
                    if b_start > start:
                        nxt.append((start, b_start))
                    if b_end < end:
                        nxt.append((b_end, end))
                pieces = nxt
            free[day] = [Window(day, self._ceil(s), self._floor(e))
                         for s, e in pieces if self._floor(e) > self._ceil(s)]
        return free

    # --- ordering --------------------------------------------------------

    def _ordered_tasks(self, store, start, unschedulable):
        order = self.policy.task_order
        pending = []
        for task in sorted(store.tasks.values(), key=lambda t: t.id):
            if task.due < start:
                unschedulable.append(Unschedulable(
                    task.id, task.name, f"due date {task.due.isoformat()} is before {start.isoformat()}"))
                continue
            pending.append(task)

        def key(task):
            if order is TaskOrder.SHORTEST_FIRST:
                secondary = task.hours
            elif order is TaskOrder.LONGEST_FIRST:
                secondary = -task.hours
            else:
                secondary = 0
            return (task.due, secondary, task.id)

        return sorted(pending, key=key)

    # --- allocation ------------------------------------------------------

    def _allocate(self, task, days, free):
        """Return (placements, None) or ([], reason). Commits only on success."""
        g = self.granularity
        need = round(task.minutes)
        if need <= 0:
            return [], "task has no hours to schedule"
        if abs(task.minutes - need) > 1e-6 or need % g:
            return [], f"{task.hours:g} hours is not a multiple of the {g}-minute granularity"

        windows = [w for day in days if day <= task.due for w in free[day]]
        for window in windows:
            if window.length >= need:
                piece = self._take(free, window, need, task, None)
                return [piece], None

        hours = f"{task.hours:g}"
        if not self.policy.allow_splitting:
            return [], f"no free window of {hours} hours by {task.due.isoformat()} and splitting is disabled"

        plan = self._split_plan(need, [w.length for w in windows])
        if plan is None:
            return [], f"not enough free time to fit {hours} hours by {task.due.isoformat()}"
        chosen = [(windows[i], minutes) for i, minutes in plan]
        pieces = [self._take(free, window, minutes, task, index)
                  for index, (window, minutes) in enumerate(chosen, start=1)]
        return pieces, None

    def _split_plan(self, need, lengths):
        """
        Pick the fewest chunks (each >= threshold, one per window) that sum to
        `need`, favouring the earliest windows. Returns [(window index, minutes)]
        or None.
        """
        t = self.threshold
        caps = [self._floor(length) if length >= t else 0 for length in lengths]
        usable = sorted((c for c in caps if c), reverse=True)

        count, covered = 0, 0
        for cap in usable:
            if covered >= need:
                break
            covered += cap
            count += 1
        if covered < need or count * t > need:
            return None

        def top(i, k):
            later = sorted((c for c in caps[i + 1:] if c), reverse=True)
            if len(later) < k:
                return None
            return sum(later[:k])

        plan = []
        remaining, left = need, count
        for i, cap in enumerate(caps):
            if left == 0:
                break
            if not cap:
                continue
            rest_cover = top(i, left - 1)
            if rest_cover is None:
                continue
            chunk = min(cap, remaining - (left - 1) * t)
            if chunk < t or remaining - chunk > rest_cover:
                continue
            plan.append((i, chunk))
            remaining -= chunk
            left -= 1
        if remaining:
            return None
        return plan

    def _take(self, free, window, minutes, task, index) -> Placement:
        start = window.start
        window.start += minutes
        if window.length <= 0:
            free[window.day].remove(window)
        return Placement(window.day, from_minutes(start), from_minutes(start + minutes),
                         EntityKind.TASK, task.id, task.name, index)

    # --- boundary cleanup ------------------------------------------------

    def _snap(self, minutes: int) -> int:
        g = self.granularity
        return int(round(minutes / g)) * g

    def _release(self, free, day, start, end):
        windows = free.setdefault(day, [])
        windows.append(Window(day, start, end))
        windows.sort(key=lambda w: w.start)
        merged = []
        for w in windows:
            if merged and merged[-1].end >= w.start:
                merged[-1].end = max(merged[-1].end, w.end)
            else:
                merged.append(w)
        free[day] = merged

    def _cleanup(self, placements, store, free, unschedulable):
        """
        Re-align task blocks to the grid, merge touching blocks of one task and
        deal with split blocks shorter than the threshold: merge them into a
        same-day block of the task, otherwise move them to the next free window.
        """
        fixed = [p for p in placements if p.kind is EntityKind.EVENT]
        by_task = {}
        for p in placements:
            if p.kind is EntityKind.TASK:
                start = self._snap(p.start_minutes)
                end = max(start + self.granularity, self._snap(p.end_minutes))
                by_task.setdefault(p.entity_id, []).append(
                    replace(p, start=from_minutes(start), end=from_minutes(end)))

        result = list(fixed)
        for task_id in sorted(by_task):
            pieces = self._merge_touching(by_task[task_id])
            if len(pieces) > 1:
                pieces = self._fix_short(pieces, store.tasks.get(task_id), free, unschedulable)
            result.extend(self._renumber(pieces))
        return result

    def _merge_touching(self, pieces):
        pieces = sorted(pieces, key=_placement_key)
        merged = []
        for p in pieces:
            last = merged[-1] if merged else None
            if last is not None and last.day == p.day and last.end >= p.start:
                merged[-1] = replace(last, end=max(last.end, p.end))
            else:
                merged.append(p)
        return merged

    def _fix_short(self, pieces, task, free, unschedulable):
        t = self.threshold
        kept = list(pieces)
        for short in [p for p in pieces if p.minutes < t]:
            if short not in kept:
                continue
            kept.remove(short)
            self._release(free, short.day, short.start_minutes, short.end_minutes)
            if self.policy.merge_short_subtasks:
                grown = self._grow_neighbour(kept, short, free)
                if grown is not None:
                    continue
            moved = self._requeue(short, task, free)
            if moved is None:
                for p in kept:
                    self._release(free, p.day, p.start_minutes, p.end_minutes)
                name = task.name if task else short.name
                unschedulable.append(Unschedulable(short.entity_id, name, "a short block could not be re-placed"))
                return []
            kept.append(moved)
        return self._merge_touching(kept)

    def _grow_neighbour(self, kept, short, free):
        """Extend another block of the same task on the same day by the short block's length."""
        need = short.minutes
        for i, other in enumerate(kept):
            if other.day != short.day:
                continue
            for window in free.get(other.day, []):
                if window.start == other.end_minutes and window.length >= need:
                    window.start += need
                    kept[i] = replace(other, end=from_minutes(other.end_minutes + need))
                    break
                if window.end == other.start_minutes and window.length >= need:
                    window.end -= need
                    kept[i] = replace(other, start=from_minutes(other.start_minutes - need))
                    break
            else:
                continue
            free[other.day] = [w for w in free[other.day] if w.length > 0]
            return kept[i]
        return None

    def _requeue(self, short, task, free):
        due = task.due if task else short.day
        need = short.minutes
        for day in sorted(d for d in free if short.day <= d <= due):
            for window in free[day]:
                if day == short.day and window.start < short.end_minutes:
                    continue
                if window.length >= need:
                    placement = Placement(day, from_minutes(window.start), from_minutes(window.start + need),
                                          EntityKind.TASK, short.entity_id, short.name, short.subtask_index)
                    window.start += need
                    free[day] = [w for w in free[day] if w.length > 0]
                    return placement
        return None

    def _renumber(self, pieces):
        pieces = sorted(pieces, key=_placement_key)
        if len(pieces) == 1:
            return [replace(pieces[0], subtask_index=None)]
        return [replace(p, subtask_index=i) for i, p in enumerate(pieces, start=1)]


def build_timetable(store: EntityStore, policy: Policy, today: date) -> Timetable:
    """Build the timetable for the week starting at the configured start date, or today."""
    start = policy.schedule_start_date or today
    return Scheduler(policy).build(store, start)
