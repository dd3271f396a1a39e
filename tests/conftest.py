"""
Shared test fixtures

Graph builders, calendars, CLI runner and log capture used across the suite.
"""

import logging
import shutil
import tempfile
from datetime import date, timedelta
from pathlib import Path
from typing import List

import pytest
from click.testing import CliRunner

from projectgraph.calendar import WorkingCalendar
from projectgraph.core import ProjectEditor
from projectgraph.graph import NodeKind, TaskGraph, TaskNode
from projectgraph.logging import get_logger
from projectgraph.models import CalendarConfig, ProjectGraphConfig

# A Monday, so offsets 0-4 are weekdays under the standard calendar
DAY0 = date(2024, 1, 1)


def day(offset: int) -> date:
    return DAY0 + timedelta(days=offset)


# =============================================================================
# CLI Fixtures
# =============================================================================

@pytest.fixture
def runner():
    """Click CLI test runner"""
    return CliRunner()


@pytest.fixture
def temp_dir():
    """Temporary directory"""
    tmp = Path(tempfile.mkdtemp())
    yield tmp
    shutil.rmtree(tmp, ignore_errors=True)


# =============================================================================
# Graph Fixtures
# =============================================================================

@pytest.fixture
def continuous():
    """Calendar where every day is a working day"""
    return WorkingCalendar.continuous()


@pytest.fixture
def graph():
    return TaskGraph()


@pytest.fixture
def task_factory(graph):
    """Add a task to the ``graph`` fixture by start offset from DAY0."""
    def _factory(
        name: str = "",
        start: int = 0,
        duration: int = 1,
        kind: NodeKind = NodeKind.TASK,
        **attrs,
    ) -> TaskNode:
        return graph.add_node(
            kind=kind,
            name=name,
            start=day(start) if start is not None else None,
            duration_days=duration,
            **attrs,
        )
    return _factory


@pytest.fixture
def chain(graph, task_factory):
    """Three one-day tasks on rows 0-2 with no dependencies."""
    return [
        task_factory(f"T{i}", start=0, duration=1, row_index=i, x=i * 200.0)
        for i in range(3)
    ]


@pytest.fixture
def continuous_config():
    return ProjectGraphConfig(calendar=CalendarConfig(working_weekdays=list(range(7))))


@pytest.fixture
def editor(continuous_config):
    """Editor on an empty graph with an all-days calendar"""
    ed = ProjectEditor(config=continuous_config)
    yield ed
    ed.close()


# =============================================================================
# Logging Fixtures
# =============================================================================

class _ListHandler(logging.Handler):
    def __init__(self):
        super().__init__(level=logging.DEBUG)
        self.records: List[logging.LogRecord] = []

    def emit(self, record: logging.LogRecord) -> None:
        self.records.append(record)


@pytest.fixture
def log_records():
    """Records emitted on the projectgraph logger during the test"""
    logger = get_logger().logger
    handler = _ListHandler()
    previous = logger.level
    logger.setLevel(logging.DEBUG)
    logger.addHandler(handler)
    yield handler.records
    logger.removeHandler(handler)
    logger.setLevel(previous)
