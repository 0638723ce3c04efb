from datetime import date

import pytest

from weekplan.config import DEFAULT_CONFIG, validate_config
from weekplan.expressions import ExpressionParser
from weekplan.models import EntityStore

# A Monday.
TODAY = date(2026, 10, 19)


def make_policy(**overrides):
    raw = dict(DEFAULT_CONFIG)
    raw.update(overrides)
    return validate_config(raw)


@pytest.fixture
def today():
    return TODAY


@pytest.fixture
def parser():
    return ExpressionParser(TODAY, 30)


@pytest.fixture
def policy():
    return make_policy()


@pytest.fixture
def store():
    return EntityStore()


@pytest.fixture
def policy_with():
    return make_policy
