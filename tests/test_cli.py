"""
Tests for the command line front end.
"""
from datetime import date

import pytest
import yaml

from weekplan.cli import Session, main, prompt_loop, run_command
from weekplan.config import DEFAULT_CONFIG, ConfigStore
from weekplan.errors import ValidationError
from weekplan.models import EntityKind


@pytest.fixture
def paths(tmp_path):
    config = tmp_path / "config.yaml"
    config.write_text(yaml.dump(dict(DEFAULT_CONFIG, file_logging=False)), encoding="utf-8")
    return config, tmp_path / "entities.yaml"


@pytest.fixture
def cli(paths):
    config, data = paths

    def _cli(*command):
        return main(["--config", str(config), "--data", str(data), "--today", "2026-10-19", *command])
    return _cli


@pytest.fixture
def session(paths):
    config, data = paths
    config_store = ConfigStore(config)
    config_store.load()
    return Session(config_store, data, date(2026, 10, 19))


def test_add_and_schedule(cli, paths, capsys):
    assert cli("card", "Work", "blue") == 0
    assert "Added Card(id=1, name='Work', color=blue)" in capsys.readouterr().out
    assert paths[1].exists()

    assert cli("task", "Write report", "5", "+C1", "@", "+2d") == 0
    assert cli("schedule") == 0
    out = capsys.readouterr().out
    assert "MON 2026-10-19" in out
    assert "09:00-14:00  task 1" in out
    assert "SUN 2026-10-25" in out
    assert "Unschedulable" not in out


def test_failed_command_saves_nothing(cli, paths, capsys):
    assert cli("task", "Report", "2") == 1
    err = capsys.readouterr().err
    assert "Missing '@'" in err
    assert "Usage: task" in err
    assert not paths[1].exists()


def test_referenced_card_is_kept(cli, capsys):
    cli("card", "Work", "blue")
    cli("event", "true", "Standup", "+C1", "@", "mon,fri", "09:00-09:30")
    assert cli("del", "card", "1") == 1
    assert "card 1 is still referenced by: event 1." in capsys.readouterr().err
    assert cli("list", "card") == 0
    assert "Card(id=1, name='Work'" in capsys.readouterr().out


def test_unschedulable_tasks_are_listed(cli, capsys):
    cli("task", "Late", "2", "@", "2026-10-01")
    cli("schedule")
    out = capsys.readouterr().out
    assert "Unschedulable:" in out
    assert "task 1 ('Late')" in out


def test_event_conflict_aborts_schedule(cli, capsys):
    cli("event", "true", "Standup", "@", "09:00-10:00")
    cli("event", "false", "Review", "@", "mon", "09:30-11:00")
    assert cli("schedule") == 1
    assert "overlap on 2026-10-19" in capsys.readouterr().err


def test_list(cli, capsys):
    assert cli("list") == 0
    out = capsys.readouterr().out
    assert "Cards:" in out and "Tasks:" in out and "Events:" in out
    assert cli("list", "widget") == 1


def test_config_commands(cli, paths, capsys):
    assert cli("config", "set", "granularity", "15") == 0
    assert "Set granularity = 15" in capsys.readouterr().out
    assert yaml.safe_load(paths[0].read_text(encoding="utf-8"))["granularity"] == 15

    assert cli("config", "set", "granularity", "7") == 1
    assert "granularity" in capsys.readouterr().err
    assert cli("config") == 0
    assert "granularity" in capsys.readouterr().out


def test_invalid_config_stops_startup(paths, capsys):
    config, data = paths
    config.write_text(yaml.dump(dict(DEFAULT_CONFIG, granularity=45)), encoding="utf-8")
    assert main(["--config", str(config), "--data", str(data), "list"]) == 1
    assert "granularity" in capsys.readouterr().err


def test_unknown_command(cli, capsys):
    assert cli("frobnicate") == 1
    assert "Unknown command 'frobnicate'" in capsys.readouterr().err


def test_bad_today(paths):
    config, data = paths
    with pytest.raises(SystemExit):
        main(["--config", str(config), "--data", str(data), "--today", "someday", "list"])


def test_run_command(session):
    assert run_command(["help"], session).startswith("Commands:")
    run_command(["card", "Home", "green"], session)
    assert session.store.exists(EntityKind.CARD, 1)
    with pytest.raises(ValidationError):
        run_command(["mod"], session)


def test_prompt_loop(session):
    lines = iter([
        'card "Deep work" green',
        'task "Report" 2 +C1 @ today',
        'del card 1',
        '',
        'task "Unbalanced 2 @ today',
        'schedule',
        'quit',
        'list',
    ])
    output = []
    prompt_loop(session, read=lambda prompt: next(lines), write=output.append)
    text = "\n".join(output)

    assert "Added Card(id=1, name='Deep work', color=green)" in text
    assert "Error: card 1 is still referenced by: task 1." in text
    assert "Error: Invalid command line" in text
    assert "09:00-11:00  task 1" in text
    assert "Cards:" not in text
    assert session.store.exists(EntityKind.CARD, 1)


def test_prompt_loop_ends_on_eof(session):
    def read(prompt):
        raise EOFError

    output = []
    prompt_loop(session, read=read, write=output.append)
    assert output[-1] == ""


def test_schedule_takes_no_arguments(cli, capsys):
    assert cli("schedule", "extra") == 1
    assert "Too many arguments for schedule" in capsys.readouterr().err


def test_save_failure_keeps_the_prompt_running(session, tmp_path):
    blocked = tmp_path / "blocked"
    blocked.mkdir()
    session.data_path = blocked
    lines = iter(["card Work blue", "list card", "quit"])
    output = []
    prompt_loop(session, read=lambda prompt: next(lines), write=output.append)
    text = "\n".join(output)

    assert "Error: Could not save entities" in text
    assert "(none)" in text
    assert not session.store.cards
