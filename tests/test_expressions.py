"""
Tests for expression parsing.
"""
from datetime import date, time

import pytest

from weekplan.errors import ParseError
from weekplan.expressions import (
    CardRef, ExprKind, ExpressionParser, render_date, render_day_set, render_time_range, tokenize,
)
from weekplan.models import CardColor, DaySet, TimeRange


@pytest.mark.parametrize("token, expected", [
    ("today", date(2026, 10, 19)),
    ("Tomorrow", date(2026, 10, 20)),
    ("+2d", date(2026, 10, 21)),
    ("mon", date(2026, 10, 19)),
    ("fri", date(2026, 10, 23)),
    ("sunday", date(2026, 10, 25)),
    ("2026-11-03", date(2026, 11, 3)),
    ("11-03-2026", date(2026, 11, 3)),
    ("11/03/2026", date(2026, 11, 3)),
    ("2026/11/03", date(2026, 11, 3)),
    ("11-03", date(2026, 11, 3)),
    ("12/31", date(2026, 12, 31)),
])
def test_parse_date(parser, token, expected):
    assert parser.parse_date(token) == expected


@pytest.mark.parametrize("token", ["13-45", "2026-02-30", "someday", "+d", ""])
def test_parse_date_rejects(parser, token):
    with pytest.raises(ParseError) as excinfo:
        parser.parse_date(token)
    assert excinfo.value.token == token


@pytest.mark.parametrize("value", [date(2026, 1, 1), date(2026, 10, 19), date(2028, 2, 29)])
def test_date_round_trip(parser, value):
    assert parser.parse_date(render_date(value)) == value


@pytest.mark.parametrize("token, start, end", [
    ("9-5", time(9), time(17)),
    ("9-17", time(9), time(17)),
    ("13:00-14:30", time(13), time(14, 30)),
    ("9:30am-11am", time(9, 30), time(11)),
    ("9:30AM-11AM", time(9, 30), time(11)),
    ("11am-1pm", time(11), time(13)),
    ("12pm-1pm", time(12), time(13)),
    ("10-12", time(10), time(12)),
    ("8AM-9", time(8), time(21)),
    ("9-11", time(9), time(23)),
    ("9:30-11", time(9, 30), time(23)),
    ("10:00-11:00", time(10), time(11)),
    ("09:00-09:30", time(9), time(9, 30)),
])
def test_parse_time_range(parser, token, start, end):
    assert parser.parse_time_range(token) == TimeRange(start, end)


@pytest.mark.parametrize("token", [
    "9", "9-10-11", "14:00-13:00", "25-26", "9:75-10", "13pm-2pm", "12:00-12:00", "abc-def",
])
def test_parse_time_range_rejects(parser, token):
    with pytest.raises(ParseError):
        parser.parse_time_range(token)


def test_time_range_must_sit_on_the_grid(today):
    with pytest.raises(ParseError) as excinfo:
        ExpressionParser(today, 30).parse_time_range("9:15-10:00")
    assert "30-minute grid" in str(excinfo.value)
    assert ExpressionParser(today, 15).parse_time_range("9:15-10:00") == TimeRange(time(9, 15), time(10))


@pytest.mark.parametrize("text", ["09:00-17:00", "00:00-00:30", "13:30-23:30"])
def test_time_range_round_trip(parser, text):
    assert render_time_range(parser.parse_time_range(text)) == text


def test_parse_day_set(parser):
    assert parser.parse_day_set("mon,wed") == DaySet(frozenset({0, 2}))
    assert parser.parse_day_set("Tue, thu fri") == DaySet(frozenset({1, 3, 4}))
    assert parser.parse_day_set("sat,2026-10-22") == DaySet(frozenset({5}), frozenset({date(2026, 10, 22)}))
    assert len(parser.parse_day_set("mon,2026-10-22")) == 2


def test_parse_day_set_rejects(parser):
    with pytest.raises(ParseError) as excinfo:
        parser.parse_day_set("mon,funday")
    assert "funday" in str(excinfo.value)
    with pytest.raises(ParseError):
        parser.parse_day_set(" , ")


def test_day_set_round_trip(parser):
    value = DaySet(frozenset({0, 4}), frozenset({date(2026, 11, 2)}))
    assert render_day_set(value) == "mon,fri,2026-11-02"
    assert parser.parse_day_set(render_day_set(value)) == value


def test_parse_text(parser):
    assert parser.parse_text('"Write report"') == "Write report"
    assert parser.parse_text("Report") == "Report"
    for bad in ("", "   ", '""', "@"):
        with pytest.raises(ParseError):
            parser.parse_text(bad)


def test_parse_numbers_and_ids(parser):
    assert parser.parse_number("1.5") == 1.5
    assert parser.parse_number("3") == 3.0
    assert parser.parse_id("12") == 12
    for bad in ("0", "-1", "abc", "1e3"):
        with pytest.raises(ParseError):
            parser.parse_number(bad)
    for bad in ("0", "1.5", "x"):
        with pytest.raises(ParseError):
            parser.parse_id(bad)


def test_parse_bool(parser):
    assert parser.parse_bool("true") is True
    assert parser.parse_bool("YES") is True
    assert parser.parse_bool("n") is False
    with pytest.raises(ParseError):
        parser.parse_bool("maybe")


def test_parse_color(parser):
    assert parser.parse_color("Blue") is CardColor.BLUE
    assert parser.parse_color("light-blue") is CardColor.LIGHT_BLUE
    assert parser.parse_color("light_coral") is CardColor.LIGHT_CORAL
    with pytest.raises(ParseError) as excinfo:
        parser.parse_color("pink")
    assert "red, orange" in str(excinfo.value)


def test_parse_card_ref(parser):
    assert parser.parse_card_ref("+C3") == CardRef(3)
    assert parser.parse_card_ref("+c12") == CardRef(12)
    assert str(CardRef(3)) == "+C3"
    for bad in ("C3", "+C", "+C0", "+Cx", "3"):
        with pytest.raises(ParseError):
            parser.parse_card_ref(bad)


def test_matches(parser):
    assert parser.matches(ExprKind.DATE, "fri")
    assert not parser.matches(ExprKind.DATE, "9-10x")
    assert parser.matches(ExprKind.AT, "@")
    assert not parser.matches(ExprKind.AT, "at")


def test_tokenize():
    assert tokenize('task "Write report" 5 @ fri') == ["task", "Write report", "5", "@", "fri"]
    with pytest.raises(ParseError):
        tokenize('task "Write report 5 @ fri')
