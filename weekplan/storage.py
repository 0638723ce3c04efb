"""
YAML persistence for the entity store.
"""
import logging
from datetime import date
from pathlib import Path

import yaml

from .errors import ParseError, PlannerError
from .expressions import ExpressionParser, render_time_range
from .models import ALL_WEEKDAYS, WEEKDAYS, Card, CardColor, EntityKind, EntityStore, Event, Task

DATA_DIR = Path.home() / ".local" / "share" / "weekplan"
DATA_FILE = DATA_DIR / "entities.yaml"


def _as_date(value):
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value))


def _event_days(item):
    days = frozenset(WEEKDAYS.index(d.upper()) for d in item.get("days") or [])
    if item["recurring"] and not days:
        return ALL_WEEKDAYS
    return days


def store_to_dict(store: EntityStore) -> dict:
    return {
        "next_ids": {kind.value: n for kind, n in store.next_ids.items()},
        "cards": [
            {"id": c.id, "name": c.name, "color": c.color.value}
            for c in sorted(store.cards.values(), key=lambda c: c.id)
        ],
        "tasks": [
            {"id": t.id, "name": t.name, "hours": t.hours, "due": t.due.isoformat(), "card_id": t.card_id}
            for t in sorted(store.tasks.values(), key=lambda t: t.id)
        ],
        "events": [
            {
                "id": e.id,
                "name": e.name,
                "recurring": e.recurring,
                "days": [WEEKDAYS[d] for d in sorted(e.days)],
                "date": e.on_date.isoformat() if e.on_date else None,
                "time": render_time_range(e.time_range),
                "card_id": e.card_id,
            }
            for e in sorted(store.events.values(), key=lambda e: e.id)
        ],
    }


def store_from_dict(data: dict) -> EntityStore:
    parser = ExpressionParser(date.today())
    store = EntityStore()
    for item in data.get("cards") or []:
        store.put(Card(name=item["name"], color=CardColor(item["color"]), id=int(item["id"])))
    for item in data.get("tasks") or []:
        store.put(Task(
            name=item["name"],
            hours=float(item["hours"]),
            due=_as_date(item["due"]),
            card_id=item.get("card_id"),
            id=int(item["id"]),
        ))
    for item in data.get("events") or []:
        store.put(Event(
            name=item["name"],
            recurring=bool(item["recurring"]),
            time_range=parser.parse_time_range(str(item["time"])),
            days=_event_days(item),
            on_date=_as_date(item["date"]) if item.get("date") else None,
            card_id=item.get("card_id"),
            id=int(item["id"]),
        ))
    for kind, n in (data.get("next_ids") or {}).items():
        kind = EntityKind(kind)
        store.next_ids[kind] = max(store.next_ids[kind], int(n))
    return store


def load_store(path=DATA_FILE) -> EntityStore:
    path = Path(path)
    if not path.exists():
        return EntityStore()
    try:
        with path.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        return store_from_dict(data)
    except (OSError, yaml.YAMLError, KeyError, ValueError, TypeError, ParseError) as e:
        logging.error(f"Error loading entities from {path}: {e}")
        raise PlannerError(f"Could not load entities from {path}: {e}") from None


def save_store(store: EntityStore, path=DATA_FILE):
    path = Path(path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("w", encoding="utf-8") as f:
            yaml.dump(store_to_dict(store), f, sort_keys=False)
    except OSError as e:
        logging.error(f"Error saving entities to {path}: {e}")
        raise PlannerError(f"Could not save entities to {path}: {e}") from None
    logging.debug(f"Saved entities to {path}")
