"""
Tests for configuration loading and editing.
"""
from datetime import date, time

import pytest
import yaml

from weekplan.config import DEFAULT_CONFIG, ConfigStore, TaskOrder, validate_config
from weekplan.errors import ConfigInvalid
from weekplan.models import TimeRange


def write_config(path, **overrides):
    raw = dict(DEFAULT_CONFIG)
    raw.update(overrides)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(yaml.dump(raw), encoding="utf-8")
    return path


def test_config_creation(tmp_path):
    """Test that default config is created when missing."""
    path = tmp_path / "weekplan" / "config.yaml"
    policy = ConfigStore(path).load()

    assert path.exists()
    with path.open("r", encoding="utf-8") as f:
        assert yaml.safe_load(f) == DEFAULT_CONFIG
    assert policy.working_hours == TimeRange(time(9), time(17))
    assert policy.granularity == 30
    assert policy.allow_splitting is True
    assert policy.min_subtask_minutes == 60
    assert policy.task_order is TaskOrder.DUE_ONLY
    assert policy.schedule_start_date is None


def test_config_loading(tmp_path):
    """Test that config is loaded correctly."""
    path = write_config(tmp_path / "config.yaml", working_hours="8am-4pm", granularity=15,
                        allow_splitting=False, task_order="longest-first",
                        schedule_start_date="2026-11-02")
    policy = ConfigStore(path).load()

    assert policy.working_hours == TimeRange(time(8), time(16))
    assert policy.granularity == 15
    assert policy.allow_splitting is False
    assert policy.task_order is TaskOrder.LONGEST_FIRST
    assert policy.schedule_start_date == date(2026, 11, 2)


@pytest.mark.parametrize("key, value", [
    ("granularity", 7),
    ("granularity", 0),
    ("granularity", "half hour"),
    ("granularity", True),
    ("working_hours", "09:15-17:00"),
    ("working_hours", "17:00-09:00 tomorrow"),
    ("allow_splitting", "sometimes"),
    ("min_subtask_hours", 0),
    ("min_subtask_hours", -1),
    ("task_order", "random"),
    ("schedule_start_date", "next week"),
    ("log_file", ""),
])
def test_invalid_values_are_rejected(key, value):
    raw = dict(DEFAULT_CONFIG)
    raw[key] = value
    with pytest.raises(ConfigInvalid) as excinfo:
        validate_config(raw)
    assert excinfo.value.key == key


def test_missing_and_unknown_keys():
    raw = dict(DEFAULT_CONFIG)
    del raw["granularity"]
    with pytest.raises(ConfigInvalid) as excinfo:
        validate_config(raw)
    assert (excinfo.value.key, excinfo.value.reason) == ("granularity", "missing")

    raw = dict(DEFAULT_CONFIG, editor="vi")
    with pytest.raises(ConfigInvalid) as excinfo:
        validate_config(raw)
    assert excinfo.value.key == "editor"


def test_invalid_file_fails_on_load(tmp_path):
    path = write_config(tmp_path / "config.yaml", granularity=45)
    with pytest.raises(ConfigInvalid):
        ConfigStore(path).load()

    path.write_text("granularity: [30\n", encoding="utf-8")
    with pytest.raises(ConfigInvalid):
        ConfigStore(path).load()


def test_edit_persists(tmp_path):
    path = tmp_path / "config.yaml"
    store = ConfigStore(path)
    store.load()
    policy = store.edit("granularity", "15")

    assert policy.granularity == 15
    assert store.policy is policy
    assert ConfigStore(path).load() == policy


def test_rejected_edit_keeps_previous_policy(tmp_path):
    path = tmp_path / "config.yaml"
    store = ConfigStore(path)
    before = store.load()
    saved = path.read_text(encoding="utf-8")

    with pytest.raises(ConfigInvalid):
        store.edit("granularity", "7")
    with pytest.raises(ConfigInvalid):
        store.edit("colour", "blue")
    # 09:15 is off the 30 minute grid
    with pytest.raises(ConfigInvalid):
        store.edit("working_hours", "9:15-17")

    assert store.policy is before
    assert path.read_text(encoding="utf-8") == saved


def test_edit_checks_other_keys_against_new_value(tmp_path):
    path = write_config(tmp_path / "config.yaml", granularity=15, working_hours="09:15-17:00")
    store = ConfigStore(path)
    store.load()
    with pytest.raises(ConfigInvalid) as excinfo:
        store.edit("granularity", 30)
    assert excinfo.value.key == "working_hours"
    assert store.policy.granularity == 15


def test_rows(tmp_path):
    store = ConfigStore(tmp_path / "config.yaml")
    store.load()
    rows = store.rows()
    assert [key for key, _, _ in rows] == list(DEFAULT_CONFIG)
    assert ("granularity", "30") == rows[1][:2]
    assert all(desc for _, _, desc in rows)
