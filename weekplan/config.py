"""
Scheduling configuration.

The policy lives in a YAML file. It is validated as a whole on startup and on
every edit; an edit that fails validation is rejected and the previously
loaded policy stays active.
"""
import logging
from dataclasses import dataclass
from datetime import date
from enum import Enum
from pathlib import Path
from typing import Optional

import yaml

from .errors import ConfigInvalid, ParseError
from .expressions import ExpressionParser, render_time_range
from .models import TimeRange

CONFIG_DIR = Path.home() / ".config" / "weekplan"
CONFIG_FILE = CONFIG_DIR / "config.yaml"


class TaskOrder(Enum):
    """Secondary ordering of tasks that share a due date."""
    DUE_ONLY = "due-only"
    SHORTEST_FIRST = "shortest-first"
    LONGEST_FIRST = "longest-first"


DEFAULT_CONFIG = {
    "working_hours": "09:00-17:00",
    "granularity": 30,
    "allow_splitting": True,
    "min_subtask_hours": 1,
    "task_order": TaskOrder.DUE_ONLY.value,
    "merge_short_subtasks": True,
    "schedule_start_date": "",
    "file_logging": True,
    "log_file": "/tmp/weekplan.log",
}

DESCRIPTIONS = {
    "working_hours": "Daily window tasks may be scheduled in.",
    "granularity": "Minutes every start and end time is aligned to (divides 60).",
    "allow_splitting": "Allow a task to be split into several blocks.",
    "min_subtask_hours": "Shortest block a split task may be cut into.",
    "task_order": "Order of tasks sharing a due date: "
                  + ", ".join(o.value for o in TaskOrder) + ".",
    "merge_short_subtasks": "Merge too-short blocks into a neighbour before re-queueing them.",
    "schedule_start_date": "First day of the schedule (empty for today).",
    "file_logging": "Write log messages to log_file.",
    "log_file": "Path of the log file.",
}


@dataclass(frozen=True)
class Policy:
    working_hours: TimeRange
    granularity: int
    allow_splitting: bool
    min_subtask_hours: float
    task_order: TaskOrder
    merge_short_subtasks: bool
    schedule_start_date: Optional[date]
    file_logging: bool
    log_file: str

    @property
    def min_subtask_minutes(self) -> int:
        return int(round(self.min_subtask_hours * 60))

    def to_raw(self) -> dict:
        return {
            "working_hours": render_time_range(self.working_hours),
            "granularity": self.granularity,
            "allow_splitting": self.allow_splitting,
            "min_subtask_hours": self.min_subtask_hours,
            "task_order": self.task_order.value,
            "merge_short_subtasks": self.merge_short_subtasks,
            "schedule_start_date": self.schedule_start_date.isoformat() if self.schedule_start_date else "",
            "file_logging": self.file_logging,
            "log_file": self.log_file,
        }


def _as_bool(key, value):
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        try:
            return ExpressionParser(date.today()).parse_bool(value)
        except ParseError:
            pass
    raise ConfigInvalid(key, f"expected true or false, got {value!r}")


def _as_int(key, value):
    if isinstance(value, bool):
        raise ConfigInvalid(key, f"expected an integer, got {value!r}")
    try:
        return int(str(value).strip())
    except ValueError:
        raise ConfigInvalid(key, f"expected an integer, got {value!r}") from None


def _as_number(key, value):
    if isinstance(value, bool):
        raise ConfigInvalid(key, f"expected a number, got {value!r}")
    try:
        return float(str(value).strip())
    except ValueError:
        raise ConfigInvalid(key, f"expected a number, got {value!r}") from None


def validate_config(raw) -> Policy:
    """Check every recognized key and build a Policy, or raise ConfigInvalid."""
    if not isinstance(raw, dict):
        raise ConfigInvalid("<root>", "configuration must be a mapping of keys to values")
    missing = [k for k in DEFAULT_CONFIG if k not in raw]
    if missing:
        raise ConfigInvalid(missing[0], "missing")
    unknown = sorted(k for k in raw if k not in DEFAULT_CONFIG)
    if unknown:
        raise ConfigInvalid(unknown[0], "unknown key")

    granularity = _as_int("granularity", raw["granularity"])
    if granularity <= 0 or 60 % granularity:
        raise ConfigInvalid("granularity", f"must be a positive divisor of 60, got {granularity}")

    try:
        parser = ExpressionParser(date.today(), granularity)
        working_hours = parser.parse_time_range(str(raw["working_hours"]))
    except ParseError as e:
        raise ConfigInvalid("working_hours", str(e)) from None

    min_subtask_hours = _as_number("min_subtask_hours", raw["min_subtask_hours"])
    if min_subtask_hours <= 0:
        raise ConfigInvalid("min_subtask_hours", f"must be positive, got {min_subtask_hours:g}")

    try:
        task_order = TaskOrder(str(raw["task_order"]).strip().lower())
    except ValueError:
        raise ConfigInvalid("task_order", f"must be one of {', '.join(o.value for o in TaskOrder)}") from None

    start = raw["schedule_start_date"]
    if start in (None, ""):
        start = None
    elif not isinstance(start, date):
        try:
            start = date.fromisoformat(str(start).strip())
        except ValueError:
            raise ConfigInvalid("schedule_start_date", f"expected YYYY-MM-DD, got {start!r}") from None

    log_file = raw["log_file"]
    if not isinstance(log_file, str) or not log_file.strip():
        raise ConfigInvalid("log_file", "must be a non-empty path")

    return Policy(
        working_hours=working_hours,
        granularity=granularity,
        allow_splitting=_as_bool("allow_splitting", raw["allow_splitting"]),
        min_subtask_hours=min_subtask_hours,
        task_order=task_order,
        merge_short_subtasks=_as_bool("merge_short_subtasks", raw["merge_short_subtasks"]),
        schedule_start_date=start,
        file_logging=_as_bool("file_logging", raw["file_logging"]),
        log_file=log_file.strip(),
    )


class ConfigStore:
    """Loads, validates and edits the YAML configuration file."""

    def __init__(self, path=CONFIG_FILE):
        self.path = Path(path)
        self.policy = None

    def load(self) -> Policy:
        if not self.path.exists():
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with self.path.open("w", encoding="utf-8") as f:
                yaml.dump(DEFAULT_CONFIG, f, indent=2, sort_keys=False)
            logging.info(f"Default config file created at {self.path}")
        try:
            with self.path.open("r", encoding="utf-8") as f:
                raw = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            logging.error(f"Error loading config file {self.path}: {e}")
            raise ConfigInvalid(str(self.path), f"not valid YAML: {e}") from None
        self.policy = validate_config(raw)
        return self.policy

    def edit(self, key: str, value) -> Policy:
        """Apply one change. On failure the active policy is left untouched."""
        if self.policy is None:
            self.load()
        if key not in DEFAULT_CONFIG:
            raise ConfigInvalid(key, "unknown key")
        candidate = self.policy.to_raw()
        candidate[key] = value
        policy = validate_config(candidate)
        with self.path.open("w", encoding="utf-8") as f:
            yaml.dump(policy.to_raw(), f, indent=2, sort_keys=False)
        logging.info(f"Config '{key}' set to {policy.to_raw()[key]!r}")
        self.policy = policy
        return policy

    def rows(self):
        raw = self.policy.to_raw()
        return [(key, str(raw[key]), DESCRIPTIONS[key]) for key in DEFAULT_CONFIG]
