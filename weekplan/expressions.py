"""
Expression parsing for command arguments.

Turns raw tokens into typed values: dates, day sets, time ranges, booleans,
numbers, ids, colors and card references. Parsing is a pure function of the
token and of the parser's anchor date and granularity.
"""
import re
import shlex
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from enum import Enum
from typing import Optional

from .errors import ParseError
from .models import WEEKDAYS, CardColor, DaySet, TimeRange, to_minutes

AT = "@"
CARD_SIGIL = "+C"

DATE_FORMATS = ("%Y-%m-%d", "%m-%d-%Y")
SHORT_DATE_FORMAT = "%m-%d"

WEEKDAY_ALIASES = {
    "mon": 0, "monday": 0, "mon.": 0, "m": 0,
    "tue": 1, "tuesday": 1, "tue.": 1, "tues": 1, "t": 1,
    "wed": 2, "wednesday": 2, "wed.": 2, "w": 2,
    "thu": 3, "thursday": 3, "thu.": 3, "thur": 3, "thurs": 3, "th": 3,
    "fri": 4, "friday": 4, "fri.": 4, "f": 4,
    "sat": 5, "saturday": 5, "sat.": 5, "sa": 5,
    "sun": 6, "sunday": 6, "sun.": 6, "su": 6,
}

TRUE_WORDS = ("true", "yes", "y", "1")
FALSE_WORDS = ("false", "no", "n", "0")

_CLOCK_RE = re.compile(r"^(\d{1,2})(?::(\d{2}))?\s*([ap]m)?$", re.IGNORECASE)
_CLOCK_24H_RE = re.compile(r"^\d{2}:\d{2}$")
_RELATIVE_RE = re.compile(r"^\+(\d+)d$", re.IGNORECASE)
_NUMBER_RE = re.compile(r"^\d+(\.\d+)?$")
_ID_RE = re.compile(r"^\d+$")


class ExprKind(Enum):
    TEXT = "text"
    NUMBER = "number"
    ID = "id"
    BOOL = "bool"
    COLOR = "color"
    DATE = "date"
    DAY_SET = "day set"
    TIME_RANGE = "time range"
    CARD_REF = "card reference"
    AT = "separator"


EXPECTED = {
    ExprKind.TEXT: "name (non-blank text, quote it if it has spaces)",
    ExprKind.NUMBER: "number (positive, e.g. 3 or 1.5)",
    ExprKind.ID: "id (positive integer)",
    ExprKind.BOOL: f"boolean ({'/'.join(TRUE_WORDS[:2])} or {'/'.join(FALSE_WORDS[:2])})",
    ExprKind.COLOR: "color (" + ", ".join(c.value for c in CardColor) + ")",
    ExprKind.DATE: "date (YYYY-MM-DD, MM-DD-YYYY, MM/DD, today, tomorrow, +Nd or a weekday)",
    ExprKind.DAY_SET: "day set (comma separated weekdays or dates, e.g. mon,wed,fri)",
    ExprKind.TIME_RANGE: "time range (<start>-<end>, e.g. 9-5, 9:30AM-11AM or 13:00-14:30)",
    ExprKind.CARD_REF: f"card reference ('{CARD_SIGIL}' followed by a card id, e.g. {CARD_SIGIL}3)",
    ExprKind.AT: f"'{AT}' separator",
}


@dataclass(frozen=True)
class CardRef:
    card_id: int

    def __str__(self):
        return f"{CARD_SIGIL}{self.card_id}"


def tokenize(line: str):
    """Split a raw command line into tokens, keeping quoted names together."""
    try:
        return shlex.split(line)
    except ValueError as e:
        raise ParseError(line, "command line", str(e)) from None


def render_date(value: date) -> str:
    return value.isoformat()


def render_time_range(value: TimeRange) -> str:
    return str(value)


def render_day_set(value: DaySet) -> str:
    parts = [WEEKDAYS[d].lower() for d in sorted(value.weekdays)]
    parts += [d.isoformat() for d in sorted(value.dates)]
    return ",".join(parts)


class ExpressionParser:
    """
    Parses raw tokens against an expected expression kind.

    `today` anchors relative dates ("today", "fri", "+2d") and `granularity`
    (minutes) is the grid that time ranges must sit on. `working_hours` and
    `start_date` are consulted by slot checks only; parsing ignores them.
    """

    def __init__(self, today: date, granularity: int = 1,
                 working_hours: Optional[TimeRange] = None, start_date: Optional[date] = None):
        self.today = today
        self.granularity = granularity
        self.working_hours = working_hours
        self.start_date = start_date
        self._parsers = {
            ExprKind.TEXT: self.parse_text,
            ExprKind.NUMBER: self.parse_number,
            ExprKind.ID: self.parse_id,
            ExprKind.BOOL: self.parse_bool,
            ExprKind.COLOR: self.parse_color,
            ExprKind.DATE: self.parse_date,
            ExprKind.DAY_SET: self.parse_day_set,
            ExprKind.TIME_RANGE: self.parse_time_range,
            ExprKind.CARD_REF: self.parse_card_ref,
            ExprKind.AT: self.parse_at,
        }

    def parse(self, kind: ExprKind, token: str):
        return self._parsers[kind](token)

    def matches(self, kind: ExprKind, token: str) -> bool:
        try:
            self.parse(kind, token)
        except ParseError:
            return False
        return True

    def _fail(self, kind, token, detail=""):
        return ParseError(token, EXPECTED[kind], detail)

    def parse_text(self, token: str) -> str:
        value = token.strip()
        if len(value) >= 2 and value[0] in "'\"" and value[-1] == value[0]:
            value = value[1:-1].strip()
        if not value or value == AT:
            raise self._fail(ExprKind.TEXT, token)
        return value

    def parse_number(self, token: str) -> float:
        value = token.strip()
        if not _NUMBER_RE.match(value) or float(value) <= 0:
            raise self._fail(ExprKind.NUMBER, token)
        return float(value)

    def parse_id(self, token: str) -> int:
        value = token.strip()
        if not _ID_RE.match(value) or int(value) <= 0:
            raise self._fail(ExprKind.ID, token)
        return int(value)

    def parse_bool(self, token: str) -> bool:
        value = token.strip().lower()
        if value in TRUE_WORDS:
            return True
        if value in FALSE_WORDS:
            return False
        raise self._fail(ExprKind.BOOL, token)

    def parse_color(self, token: str) -> CardColor:
        value = token.strip().lower().replace("-", "_")
        try:
            return CardColor(value)
        except ValueError:
            raise self._fail(ExprKind.COLOR, token) from None

    def parse_card_ref(self, token: str) -> CardRef:
        value = token.strip()
        if value[:len(CARD_SIGIL)].upper() != CARD_SIGIL:
            raise self._fail(ExprKind.CARD_REF, token)
        digits = value[len(CARD_SIGIL):]
        if not _ID_RE.match(digits) or int(digits) <= 0:
            raise self._fail(ExprKind.CARD_REF, token)
        return CardRef(int(digits))

    def parse_at(self, token: str) -> str:
        if token.strip() != AT:
            raise self._fail(ExprKind.AT, token)
        return AT

    # --- dates ---------------------------------------------------------

    def _next_weekday(self, weekday: int) -> date:
        return self.today + timedelta(days=(weekday - self.today.weekday()) % 7)

    def _absolute_date(self, value: str):
        value = value.replace("/", "-")
        for fmt in DATE_FORMATS:
            try:
                return datetime.strptime(value, fmt).date()
            except ValueError:
                continue
        try:
            return datetime.strptime(f"{self.today.year}-{value}", f"%Y-{SHORT_DATE_FORMAT}").date()
        except ValueError:
            return None

    def parse_date(self, token: str) -> date:
        value = token.strip().lower()
        if value == "today":
            return self.today
        if value == "tomorrow":
            return self.today + timedelta(days=1)
        m = _RELATIVE_RE.match(value)
        if m:
            return self.today + timedelta(days=int(m.group(1)))
        if value in WEEKDAY_ALIASES:
            return self._next_weekday(WEEKDAY_ALIASES[value])
        parsed = self._absolute_date(value)
        if parsed is None:
            raise self._fail(ExprKind.DATE, token)
        return parsed

    def parse_day_set(self, token: str) -> DaySet:
        pieces = [p for p in re.split(r"[,\s]+", token.strip()) if p]
        if not pieces:
            raise self._fail(ExprKind.DAY_SET, token)
        weekdays = set()
        dates = set()
        for piece in pieces:
            key = piece.lower()
            if key in WEEKDAY_ALIASES:
                weekdays.add(WEEKDAY_ALIASES[key])
                continue
            try:
                dates.add(self.parse_date(piece))
            except ParseError:
                raise self._fail(ExprKind.DAY_SET, token, f"'{piece}' is not a weekday or date.") from None
        return DaySet(frozenset(weekdays), frozenset(dates))

    # --- times ---------------------------------------------------------

    def _clock(self, token: str, full: str):
        m = _CLOCK_RE.match(token.strip())
        if not m:
            raise self._fail(ExprKind.TIME_RANGE, full, f"'{token}' is not a clock time.")
        hour = int(m.group(1))
        minute = int(m.group(2) or 0)
        meridian = (m.group(3) or "").lower()
        if minute > 59:
            raise self._fail(ExprKind.TIME_RANGE, full, f"'{token}' has invalid minutes.")
        if meridian:
            if not 1 <= hour <= 12:
                raise self._fail(ExprKind.TIME_RANGE, full, f"'{token}' has invalid hours.")
            hour = hour % 12 + (12 if meridian == "pm" else 0)
        elif hour > 23:
            raise self._fail(ExprKind.TIME_RANGE, full, f"'{token}' has invalid hours.")
        return time(hour, minute), bool(meridian)

    def parse_time_range(self, token: str) -> TimeRange:
        value = token.strip()
        if value.count("-") != 1:
            raise self._fail(ExprKind.TIME_RANGE, token)
        raw_start, raw_end = value.split("-")
        start, _ = self._clock(raw_start, token)
        end, end_meridian = self._clock(raw_end, token)
        # A bare end hour of 1-11 is PM ("8AM-9" is 08:00-21:00) unless
        # written as 24-hour HH:MM.
        if not end_meridian and 1 <= end.hour <= 11 and not _CLOCK_24H_RE.match(raw_end.strip()):
            end = time(end.hour + 12, end.minute)
        if end <= start:
            raise self._fail(ExprKind.TIME_RANGE, token, "End must be after start.")
        for t in (start, end):
            if to_minutes(t) % self.granularity:
                raise self._fail(
                    ExprKind.TIME_RANGE, token,
                    f"{t.strftime('%H:%M')} is not on the {self.granularity}-minute grid.")
        return TimeRange(start, end)
