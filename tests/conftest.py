"""Shared test fixtures for AgencyBoard tests."""

import sys
from pathlib import Path

import pytest

# Ensure the repo root (agencyboard/, kanban_server.py) is importable
sys.path.insert(0, str(Path(__file__).parent.parent))

from agencyboard.kanban.events import TaskChangeFeed
from agencyboard.kanban.schema import ColumnConfig, ColumnTable, Task, TaskStatus
from agencyboard.kanban.store import TaskStore


def make_task(task_id, status=TaskStatus.TODO, position=1.0, **fields):
    """Build a Task with just the fields a test cares about."""
    fields.setdefault("title", task_id.upper())
    fields.setdefault("project_id", "p1")
    return Task(task_id=task_id, status=status, position=position, **fields)


@pytest.fixture
def three_columns():
    """TODO / IN_PROGRESS / DONE only."""
    return ColumnTable([
        ColumnConfig("todo", "To Do", TaskStatus.TODO),
        ColumnConfig("in-progress", "In Progress", TaskStatus.IN_PROGRESS),
        ColumnConfig("done", "Done", TaskStatus.DONE),
    ])


@pytest.fixture
def feed():
    return TaskChangeFeed()


@pytest.fixture
def store(tmp_path, feed):
    return TaskStore(str(tmp_path / "tasks.db"), feed=feed)
