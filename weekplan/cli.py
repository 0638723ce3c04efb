#!/usr/bin/env python3
"""
Command line front end for weekplan.

One command per invocation (`weekplan task "Report" 5 @ fri`), or an
interactive prompt when no command is given.
"""
import argparse
import logging
import sys
from datetime import date
from pathlib import Path

from .config import CONFIG_FILE, ConfigStore
from .errors import ConfigInvalid, PlannerError, ValidationError
from .expressions import tokenize
from .models import WEEKDAYS, EntityKind, Verb
from .resolver import execute
from .scheduler import build_timetable
from .specs import CARD_USAGE, EVENT_USAGE, TASK_USAGE
from .storage import DATA_FILE, load_store, save_store

PROMPT = "weekplan> "
QUIT_WORDS = ("quit", "exit", "q")

USAGE = f"""Commands:
  card {CARD_USAGE}
  task {TASK_USAGE}
  event {EVENT_USAGE}
  mod <card|task|event> <id> ...
  del <card|task|event> <id>
  list [card|task|event]
  schedule
  config [set <key> <value>]
  help
  quit"""

# ---------------------------------------------------------------------
# LOGGING
# ---------------------------------------------------------------------
LOG_FORMAT = '%(asctime)s [%(levelname)s] %(message)s'


def setup_logging(policy):
    if policy.file_logging:
        logging.basicConfig(filename=policy.log_file, level=logging.DEBUG, format=LOG_FORMAT)
    else:
        logging.basicConfig(level=logging.WARNING, format=LOG_FORMAT)


# ---------------------------------------------------------------------
# OUTPUT
# ---------------------------------------------------------------------
def format_entities(store, kind=None) -> str:
    kinds = [kind] if kind else list(EntityKind)
    lines = []
    for k in kinds:
        table = store.table(k)
        lines.append(f"{k.value.capitalize()}s:")
        if not table:
            lines.append("  (none)")
        for entity_id in sorted(table):
            lines.append(f"  {table[entity_id]}")
    return "\n".join(lines)


def format_timetable(timetable) -> str:
    lines = []
    for day in timetable.days:
        lines.append(f"{WEEKDAYS[day.weekday()]} {day.isoformat()}")
        placements = timetable.for_day(day)
        if not placements:
            lines.append("  (free)")
        for p in placements:
            label = f"{p.kind.value} {p.entity_id}"
            if p.subtask_index is not None:
                label += f".{p.subtask_index}"
            lines.append(f"  {p.start.strftime('%H:%M')}-{p.end.strftime('%H:%M')}  {label:<10} {p.name}")
    if timetable.unschedulable:
        lines.append("Unschedulable:")
        for item in timetable.unschedulable:
            lines.append(f"  task {item.task_id} ('{item.name}'): {item.reason}")
    return "\n".join(lines)


def format_config(config_store) -> str:
    rows = config_store.rows()
    width = max(len(key) for key, _, _ in rows)
    return "\n".join(f"{key:<{width}}  {value:<14} {desc}" for key, value, desc in rows)


# ---------------------------------------------------------------------
# COMMANDS
# ---------------------------------------------------------------------
class Session:
    """Entities, configuration and the date anchor shared by consecutive commands."""

    def __init__(self, config_store, data_path=DATA_FILE, today=None):
        self.config = config_store
        self.data_path = Path(data_path)
        self.today = today or date.today()
        self.store = load_store(self.data_path)

    @property
    def policy(self):
        return self.config.policy

    def run(self, tokens) -> str:
        if not tokens:
            return ""
        head = tokens[0].lower()
        if head in {k.value for k in EntityKind}:
            return self._mutate(Verb.ADD, EntityKind(head), tokens[1:])
        if head in (Verb.MOD.value, Verb.DEL.value):
            if len(tokens) < 2:
                raise ValidationError(f"Missing entity kind after '{head}'.", f"{head} <card|task|event> <id> ...")
            return self._mutate(Verb(head), _kind(tokens[1]), tokens[2:])
        if head == "list":
            if len(tokens) > 2:
                raise ValidationError("Too many arguments for list.", "list [card|task|event]")
            return format_entities(self.store, _kind(tokens[1]) if len(tokens) == 2 else None)
        if head == "schedule":
            if len(tokens) > 1:
                raise ValidationError(f"Too many arguments for schedule, starting at '{tokens[1]}'.", "schedule")
            return format_timetable(build_timetable(self.store, self.policy, self.today))
        if head == "config":
            return self._config(tokens[1:])
        if head in ("help", "-h", "--help"):
            return USAGE
        raise ValidationError(f"Unknown command '{tokens[0]}'.\n{USAGE}")

    def _mutate(self, verb, kind, args) -> str:
        working = self.store.snapshot()
        result = execute(verb, kind, args, working, self.policy, self.today)
        save_store(working, self.data_path)
        self.store = working
        return str(result)

    def _config(self, args) -> str:
        if not args:
            return format_config(self.config)
        if args[0].lower() != "set" or len(args) < 3:
            raise ValidationError("Expected 'config' or 'config set <key> <value>'.", "config [set <key> <value>]")
        key, value = args[1], " ".join(args[2:])
        self.config.edit(key, value)
        return f"Set {key} = {self.policy.to_raw()[key]}"


def _kind(token) -> EntityKind:
    try:
        return EntityKind.from_str(token)
    except ValueError:
        raise ValidationError(f"Unknown entity kind '{token}'. Expected card, task or event.") from None


def run_command(tokens, session) -> str:
    """Run one tokenized command against the session and return its output."""
    return session.run(list(tokens))


def prompt_loop(session, read=input, write=print):
    write("weekplan: type 'help' for commands, 'quit' to leave.")
    while True:
        try:
            line = read(PROMPT)
        except (EOFError, KeyboardInterrupt):
            write("")
            break
        line = line.strip()
        if not line:
            continue
        if line.lower() in QUIT_WORDS:
            break
        try:
            output = run_command(tokenize(line), session)
        except PlannerError as e:
            logging.error(f"Command '{line}' failed: {e}")
            write(f"Error: {e}")
            continue
        if output:
            write(output)


# ---------------------------------------------------------------------
# MAIN FUNCTION
# ---------------------------------------------------------------------
def build_parser():
    parser = argparse.ArgumentParser(
        prog="weekplan",
        description="Plan a week of events and tasks from short typed commands.",
    )
    parser.add_argument("--config", default=str(CONFIG_FILE), help="Path of the YAML config file")
    parser.add_argument("--data", default=str(DATA_FILE), help="Path of the YAML entity file")
    parser.add_argument("--today", help="Date to treat as today (YYYY-MM-DD)")
    parser.add_argument("command", nargs=argparse.REMAINDER, help="Command to run; omit for a prompt")
    return parser


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    today = None
    if args.today:
        try:
            today = date.fromisoformat(args.today)
        except ValueError:
            parser.error(f"--today expects YYYY-MM-DD, got '{args.today}'")

    config_store = ConfigStore(args.config)
    try:
        policy = config_store.load()
    except ConfigInvalid as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    setup_logging(policy)

    try:
        session = Session(config_store, args.data, today)
    except PlannerError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if not args.command:
        prompt_loop(session)
        return 0

    try:
        output = run_command(args.command, session)
    except PlannerError as e:
        logging.error(f"Command '{' '.join(args.command)}' failed: {e}")
        print(f"Error: {e}", file=sys.stderr)
        return 1
    if output:
        print(output)
    return 0


if __name__ == "__main__":
    sys.exit(main())
