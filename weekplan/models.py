"""
Entity model: cards, tasks and events, plus the store that owns them.

Tasks and events reference cards by id only; the store is the single place
that resolves those references.
"""
from dataclasses import dataclass, field, replace
from datetime import date, time
from enum import Enum
from typing import Dict, FrozenSet, List, Optional, Tuple

from .errors import NotFound


class EntityKind(Enum):
    CARD = "card"
    TASK = "task"
    EVENT = "event"

    @classmethod
    def from_str(cls, value: str) -> "EntityKind":
        return cls(value.strip().lower())


class Verb(Enum):
    ADD = "add"
    MOD = "mod"
    DEL = "del"


class CardColor(Enum):
    """Fixed palette a card can be painted with."""
    RED = "red"
    ORANGE = "orange"
    YELLOW = "yellow"
    GREEN = "green"
    LIGHT_BLUE = "light_blue"
    BLUE = "blue"
    INDIGO = "indigo"
    VIOLET = "violet"
    BLACK = "black"
    LIGHT_GREEN = "light_green"
    LIGHT_CORAL = "light_coral"


# Python's date.weekday() numbering: Monday == 0.
WEEKDAYS = ("MON", "TUE", "WED", "THU", "FRI", "SAT", "SUN")
ALL_WEEKDAYS = frozenset(range(7))


def to_minutes(t: time) -> int:
    return t.hour * 60 + t.minute


def from_minutes(minutes: int) -> time:
    return time(minutes // 60, minutes % 60)


@dataclass(frozen=True)
class TimeRange:
    start: time
    end: time

    @property
    def start_minutes(self) -> int:
        return to_minutes(self.start)

    @property
    def end_minutes(self) -> int:
        return to_minutes(self.end)

    def overlaps(self, other: "TimeRange") -> bool:
        return self.start < other.end and other.start < self.end

    def __str__(self):
        return f"{self.start.strftime('%H:%M')}-{self.end.strftime('%H:%M')}"


@dataclass(frozen=True)
class DaySet:
    """A set of weekdays and/or concrete dates."""
    weekdays: FrozenSet[int] = frozenset()
    dates: FrozenSet[date] = frozenset()

    def __len__(self):
        return len(self.weekdays) + len(self.dates)

    def as_weekdays(self) -> FrozenSet[int]:
        return self.weekdays | frozenset(d.weekday() for d in self.dates)


@dataclass
class Card:
    name: str
    color: CardColor
    id: int = 0

    kind = EntityKind.CARD

    def __str__(self):
        return f"Card(id={self.id}, name='{self.name}', color={self.color.value})"


@dataclass
class Task:
    name: str
    hours: float
    due: date
    card_id: Optional[int] = None
    id: int = 0

    kind = EntityKind.TASK

    @property
    def minutes(self) -> float:
        return self.hours * 60

    def __str__(self):
        card = f", card={self.card_id}" if self.card_id is not None else ""
        return f"Task(id={self.id}, name='{self.name}', hours={self.hours:g}, due={self.due.isoformat()}{card})"


@dataclass
class Event:
    """
    A fixed block of time. Recurring events repeat on a set of weekdays,
    one-off events happen once on `on_date`.
    """
    name: str
    recurring: bool
    time_range: TimeRange
    days: FrozenSet[int] = ALL_WEEKDAYS
    on_date: Optional[date] = None
    card_id: Optional[int] = None
    id: int = 0

    kind = EntityKind.EVENT

    def occurs_on(self, day: date) -> bool:
        if self.recurring:
            return day.weekday() in self.days
        return self.on_date == day

    def __str__(self):
        if self.recurring:
            when = ",".join(WEEKDAYS[d] for d in sorted(self.days))
        else:
            when = self.on_date.isoformat() if self.on_date else "-"
        card = f", card={self.card_id}" if self.card_id is not None else ""
        return (f"Event(id={self.id}, name='{self.name}', recurring={self.recurring}, "
                f"days={when}, time={self.time_range}{card})")


@dataclass
class EntityStore:
    """In-memory arena of entities, indexed by kind and id."""
    cards: Dict[int, Card] = field(default_factory=dict)
    tasks: Dict[int, Task] = field(default_factory=dict)
    events: Dict[int, Event] = field(default_factory=dict)
    next_ids: Dict[EntityKind, int] = field(
        default_factory=lambda: {kind: 1 for kind in EntityKind}
    )

    def table(self, kind: EntityKind) -> dict:
        return {
            EntityKind.CARD: self.cards,
            EntityKind.TASK: self.tasks,
            EntityKind.EVENT: self.events,
        }[kind]

    def get(self, kind: EntityKind, entity_id: int):
        try:
            return self.table(kind)[entity_id]
        except KeyError:
            raise NotFound(kind.value, entity_id) from None

    def exists(self, kind: EntityKind, entity_id: int) -> bool:
        return entity_id in self.table(kind)

    def insert(self, entity):
        """Assign the next free id of the entity's kind and store it."""
        kind = entity.kind
        entity_id = self.next_ids[kind]
        self.next_ids[kind] = entity_id + 1
        entity.id = entity_id
        self.table(kind)[entity_id] = entity
        return entity

    def put(self, entity):
        """Store an entity under its existing id (used by loaders and mod)."""
        kind = entity.kind
        self.table(kind)[entity.id] = entity
        if entity.id >= self.next_ids[kind]:
            self.next_ids[kind] = entity.id + 1
        return entity

    def remove(self, kind: EntityKind, entity_id: int):
        entity = self.get(kind, entity_id)
        del self.table(kind)[entity_id]
        return entity

    def card_dependents(self, card_id: int) -> List[Tuple[str, int]]:
        deps = [("task", t.id) for t in self.tasks.values() if t.card_id == card_id]
        deps += [("event", e.id) for e in self.events.values() if e.card_id == card_id]
        return sorted(deps)

    def snapshot(self) -> "EntityStore":
        """Copy of the store whose tables can be mutated independently."""
        return EntityStore(
            cards={k: replace(v) for k, v in self.cards.items()},
            tasks={k: replace(v) for k, v in self.tasks.items()},
            events={k: replace(v) for k, v in self.events.items()},
            next_ids=dict(self.next_ids),
        )
