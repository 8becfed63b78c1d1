"""
Pytest configuration and shared fixtures.

This file contains pytest configuration and reusable test fixtures.
"""

import logging
from typing import Callable

import pytest

from querybuilder.core.models import Field, Rule, RuleGroup
from querybuilder.infrastructure.catalog_loader import parse_field_catalog
from querybuilder.infrastructure.paths import DATA_DIR_ENV


CATALOG = [
    {"name": "cos_provider", "label": "Provider", "group": "billing",
     "valueOptions": ["AWS", "GCP", "Azure"], "defaultOperator": "in"},
    {"name": "cos_service", "label": "Service", "group": "billing"},
    {"name": "region", "label": "Region", "group": "aws",
     "valueOptions": [{"name": "eu-west-1", "label": "Ireland"}, "us-east-1"]},
    {"name": "namespace", "label": "Namespace", "group": "kubernetes"},
    {"name": "team", "label": "Team", "group": "labels", "allowEmpty": True},
    {"name": "cost", "label": "Cost", "group": "billing", "operators": ["=", "<", ">"]},
    {"name": "note", "label": "Note", "group": "custom"},
]


class ManualScheduler:
    """
    TimerScheduler driven by a fake clock.

    Callbacks only run from advance(), in due order.
    """

    def __init__(self):
        self.now = 0
        self._timers: dict[int, tuple[int, Callable[[], None]]] = {}
        self._next_handle = 0

    def start(self, interval_ms: int, callback: Callable[[], None]) -> int:
        self._next_handle += 1
        self._timers[self._next_handle] = (self.now + interval_ms, callback)
        return self._next_handle

    def cancel(self, handle) -> None:
        self._timers.pop(handle, None)

    @property
    def pending(self) -> int:
        return len(self._timers)

    def advance(self, ms: int) -> None:
        target = self.now + ms
        while True:
            due = sorted((when, handle) for handle, (when, _) in self._timers.items() if when <= target)
            if not due:
                break
            when, handle = due[0]
            self.now = when
            _, callback = self._timers.pop(handle)
            callback()
        self.now = target


@pytest.fixture(autouse=True)
def data_dir(tmp_path, monkeypatch):
    """Keep settings, logs and presets out of the real data directory."""
    path = tmp_path / "data"
    monkeypatch.setenv(DATA_DIR_ENV, str(path))
    return path


@pytest.fixture
def restore_logging():
    """Put the root logger back the way pytest configured it after setup_logging()."""
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers = handlers
    root.setLevel(level)


@pytest.fixture
def catalog() -> list[Field]:
    """A field catalog spanning several groups, with cos_provider first."""
    return parse_field_catalog(CATALOG)


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def sample_query() -> RuleGroup:
    """
    A query as the structured editor builds it.

    cos_provider in [AWS, GCP] AND (region = eu-west-1 OR NOT (namespace is null))
    """
    return RuleGroup(
        combinator="and",
        rules=[
            Rule(field="cos_provider", operator="in", value=["AWS", "GCP"]),
            RuleGroup(
                combinator="or",
                rules=[
                    Rule(field="region", operator="=", value="eu-west-1"),
                    RuleGroup(negated=True, rules=[Rule(field="namespace", operator="null", value="")]),
                ],
            ),
        ],
    )
