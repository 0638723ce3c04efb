"""
Argument grammars for every entity command.

Each (entity kind, verb) pair has one EntitySpec: an ordered list of slots
before the '@' separator (names and numbers) and, for tasks and events, an
ordered list of slots after it (dates, days and times). Resolving a raw
argument list against a spec yields a dict of typed fields or the first
failure met in slot order.
"""
from dataclasses import dataclass
from types import MappingProxyType
from typing import Callable, Optional, Tuple

from .errors import ParseError, PlannerError, ValidationError
from .expressions import AT, ExprKind, ExpressionParser
from .models import EntityKind, Verb


@dataclass(frozen=True)
class Slot:
    name: str
    kind: ExprKind
    required: bool = True
    # A rest slot may absorb several tokens (unquoted names, "mon, wed").
    rest: bool = False
    default: object = None
    check: Optional[Callable] = None


@dataclass(frozen=True)
class EntitySpec:
    kind: EntityKind
    verb: Verb
    head: Tuple[Slot, ...]
    tail: Optional[Tuple[Slot, ...]] = None
    rules: Tuple[Callable, ...] = ()
    usage: str = ""

    def resolve(self, args, parser: ExpressionParser) -> dict:
        head_tokens, tail_tokens = self._split(list(args))
        fields = _match(self.head, head_tokens, parser, self.usage)
        if self.tail is not None:
            fields.update(_match(self.tail, tail_tokens, parser, self.usage))
        for rule in self.rules:
            problem = rule(fields)
            if problem:
                raise ValidationError(problem, self.usage)
        return fields

    def _split(self, tokens):
        ats = [i for i, tok in enumerate(tokens) if tok == AT]
        if self.tail is None:
            if ats:
                raise ValidationError(f"Unexpected '{AT}' for {self.verb.value} {self.kind.value}.", self.usage)
            return tokens, []
        if not ats:
            raise ValidationError(f"Missing '{AT}' before the date/time arguments.", self.usage)
        if len(ats) > 1:
            raise ValidationError(f"Only one '{AT}' separator is allowed.", self.usage)
        return tokens[:ats[0]], tokens[ats[0] + 1:]


class _Failure(Exception):
    """A match attempt that stopped after `depth` slots."""

    def __init__(self, depth, error):
        super().__init__(str(error))
        self.depth = depth
        self.error = error


def _match(slots, tokens, parser, usage) -> dict:
    try:
        return _match_from(slots, 0, tokens, 0, parser, usage, {})
    except _Failure as failure:
        raise failure.error from None


def _typed(slot, text, parser, usage):
    value = parser.parse(slot.kind, text)
    if slot.check is not None:
        problem = slot.check(value, parser)
        if problem:
            raise ValidationError(problem, usage)
    return value


def _match_from(slots, si, tokens, ti, parser, usage, fields):
    if si == len(slots):
        if ti < len(tokens):
            raise _Failure(si, ValidationError(f"Too many arguments, starting at '{tokens[ti]}'.", usage))
        return fields
    slot = slots[si]

    if ti == len(tokens):
        if slot.required:
            raise _Failure(si, ValidationError(f"Missing argument <{slot.name}>.", usage))
        return _match_from(slots, si + 1, tokens, ti, parser, usage, dict(fields, **{slot.name: slot.default}))

    if slot.rest:
        deepest = None
        for n in range(1, len(tokens) - ti + 1):
            try:
                value = _typed(slot, " ".join(tokens[ti:ti + n]), parser, usage)
            except PlannerError as e:
                failure = _Failure(si, e)
            else:
                try:
                    return _match_from(slots, si + 1, tokens, ti + n, parser, usage,
                                       dict(fields, **{slot.name: value}))
                except _Failure as f:
                    failure = f
            if deepest is None or failure.depth > deepest.depth:
                deepest = failure
        if not slot.required:
            try:
                return _match_from(slots, si + 1, tokens, ti, parser, usage,
                                   dict(fields, **{slot.name: slot.default}))
            except _Failure as f:
                if f.depth > deepest.depth:
                    deepest = f
        raise deepest

    if not slot.required and not parser.matches(slot.kind, tokens[ti]):
        return _match_from(slots, si + 1, tokens, ti, parser, usage, dict(fields, **{slot.name: slot.default}))
    try:
        value = parser.parse(slot.kind, tokens[ti])
    except ParseError as e:
        raise _Failure(si, e) from None
    if slot.check is not None:
        problem = slot.check(value, parser)
        if problem:
            raise _Failure(si, ValidationError(problem, usage))
    return _match_from(slots, si + 1, tokens, ti + 1, parser, usage, dict(fields, **{slot.name: value}))


# --- slot checks ---------------------------------------------------------

def _check_hours(value, parser):
    minutes = value * 60
    if abs(minutes - round(minutes)) > 1e-6 or round(minutes) % parser.granularity:
        return f"Hours must be a multiple of {parser.granularity} minutes, got {value:g}."
    return None


def _within_working_hours(value, parser):
    hours = parser.working_hours
    if hours is not None and (value.start < hours.start or value.end > hours.end):
        return f"Event time {value} falls outside the working hours {hours}."
    return None


def _not_before_start(value, parser):
    start = parser.start_date
    if start is not None and value < start:
        return f"Due date {value.isoformat()} cannot be before the schedule start date {start.isoformat()}."
    return None


def _one_day_for_one_off(fields):
    days = fields.get("days")
    if not fields.get("recurring") and days is not None and len(days) != 1:
        return "A one-off event must name exactly one day."
    return None


# --- grammars ------------------------------------------------------------

ID = Slot("id", ExprKind.ID)
NAME = Slot("name", ExprKind.TEXT, rest=True)
COLOR = Slot("color", ExprKind.COLOR)
HOURS = Slot("hours", ExprKind.NUMBER, check=_check_hours)
CARD = Slot("card", ExprKind.CARD_REF, required=False)
DUE = Slot("due", ExprKind.DATE, check=_not_before_start)
RECURRING = Slot("recurring", ExprKind.BOOL)
DAYS = Slot("days", ExprKind.DAY_SET, required=False, rest=True)
TIME = Slot("time", ExprKind.TIME_RANGE, check=_within_working_hours)

CARD_USAGE = '"<name>" <color>'
TASK_USAGE = '"<name>" <hours> [+C<card id>] @ <due date>'
EVENT_USAGE = '<recurring> "<name>" [+C<card id>] @ [days] <time range>'


def _specs_for(kind, head, tail, usage, rules=()):
    name = kind.value
    return (
        EntitySpec(kind, Verb.ADD, head, tail, rules, f"{name} {usage}"),
        EntitySpec(kind, Verb.MOD, (ID,) + head, tail, rules, f"mod {name} <id> {usage}"),
        EntitySpec(kind, Verb.DEL, (ID,), None, (), f"del {name} <id>"),
    )


REGISTRY = MappingProxyType({
    (spec.kind, spec.verb): spec
    for spec in (
        _specs_for(EntityKind.CARD, (NAME, COLOR), None, CARD_USAGE)
        + _specs_for(EntityKind.TASK, (NAME, HOURS, CARD), (DUE,), TASK_USAGE)
        + _specs_for(EntityKind.EVENT, (RECURRING, NAME, CARD), (DAYS, TIME), EVENT_USAGE,
                     (_one_day_for_one_off,))
    )
})


def spec_for(kind: EntityKind, verb: Verb) -> EntitySpec:
    try:
        return REGISTRY[(kind, verb)]
    except KeyError:
        raise ValidationError(f"No grammar for '{verb}' on '{kind}'.") from None


def resolve(kind: EntityKind, verb: Verb, args, parser: ExpressionParser) -> dict:
    """Resolve raw arguments into typed fields using the matching grammar."""
    return spec_for(kind, verb).resolve(args, parser)
