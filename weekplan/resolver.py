"""
Applies add / mod / del commands to the entity store.

Every command is validated completely before the store is touched, so a
failing command leaves the store exactly as it was.
"""
import logging
from dataclasses import dataclass
from datetime import date, timedelta

from . import specs
from .errors import NotFound, ReferenceConflict
from .expressions import ExpressionParser
from .models import ALL_WEEKDAYS, Card, EntityKind, EntityStore, Event, Task, Verb

PAST_TENSE = {Verb.ADD: "Added", Verb.MOD: "Modified", Verb.DEL: "Deleted"}


@dataclass
class MutationResult:
    verb: Verb
    kind: EntityKind
    entity: object

    def __str__(self):
        return f"{PAST_TENSE[self.verb]} {self.entity}"


class CommandResolver:
    def __init__(self, store: EntityStore, today: date):
        self.store = store
        self.today = today
        self._builders = {
            EntityKind.CARD: self._build_card,
            EntityKind.TASK: self._build_task,
            EntityKind.EVENT: self._build_event,
        }
        self._handlers = {
            Verb.ADD: self._add,
            Verb.MOD: self._modify,
            Verb.DEL: self._delete,
        }

    def apply(self, verb: Verb, kind: EntityKind, fields: dict) -> MutationResult:
        result = self._handlers[verb](kind, fields)
        logging.info(f"{result}")
        return result

    def _check_card(self, fields):
        ref = fields.get("card")
        if ref is None:
            return None
        if not self.store.exists(EntityKind.CARD, ref.card_id):
            raise NotFound(EntityKind.CARD.value, ref.card_id)
        return ref.card_id

    def _build_card(self, fields):
        return Card(name=fields["name"], color=fields["color"])

    def _build_task(self, fields):
        return Task(
            name=fields["name"],
            hours=fields["hours"],
            due=fields["due"],
            card_id=self._check_card(fields),
        )

    def _build_event(self, fields):
        recurring = fields["recurring"]
        day_set = fields.get("days")
        event = Event(
            name=fields["name"],
            recurring=recurring,
            time_range=fields["time"],
            card_id=self._check_card(fields),
        )
        if recurring:
            event.days = day_set.as_weekdays() if day_set else ALL_WEEKDAYS
        else:
            event.days = frozenset()
            event.on_date = self._one_off_date(day_set)
        return event

    def _one_off_date(self, day_set):
        if not day_set:
            return self.today
        if day_set.dates:
            return next(iter(day_set.dates))
        weekday = next(iter(day_set.weekdays))
        return self.today + timedelta(days=(weekday - self.today.weekday()) % 7)

    def _add(self, kind, fields):
        entity = self._builders[kind](fields)
        self.store.insert(entity)
        return MutationResult(Verb.ADD, kind, entity)

    def _modify(self, kind, fields):
        existing = self.store.get(kind, fields["id"])
        entity = self._builders[kind](fields)
        entity.id = existing.id
        self.store.put(entity)
        return MutationResult(Verb.MOD, kind, entity)

    def _delete(self, kind, fields):
        entity = self.store.get(kind, fields["id"])
        if kind is EntityKind.CARD:
            dependents = self.store.card_dependents(entity.id)
            if dependents:
                raise ReferenceConflict(entity.id, dependents)
        self.store.remove(kind, entity.id)
        return MutationResult(Verb.DEL, kind, entity)


def execute(verb: Verb, kind: EntityKind, args, store: EntityStore, policy, today: date) -> MutationResult:
    """Parse `args` with the grammar for (kind, verb) and apply the mutation."""
    parser = ExpressionParser(today, policy.granularity, policy.working_hours, policy.schedule_start_date)
    fields = specs.resolve(kind, verb, args, parser)
    return CommandResolver(store, today).apply(verb, kind, fields)
