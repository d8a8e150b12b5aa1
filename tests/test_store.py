"""
Tests for the SQLite task store and the change feed.
"""
from datetime import date

import pytest

from agencyboard.kanban.events import TaskChangeFeed
from agencyboard.kanban.schema import TaskPriority, TaskStatus
from agencyboard.kanban.store import TaskNotFound, TaskStore

from conftest import make_task


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Store
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def test_create_appends_within_status(store):
    a = store.create_task("p1", "First")
    b = store.create_task("p1", "Second")
    c = store.create_task("p1", "Elsewhere", status=TaskStatus.DONE)
    other = store.create_task("p2", "Other project")

    assert (a.position, b.position, c.position, other.position) == (1.0, 2.0, 1.0, 1.0)
    assert a.status == TaskStatus.TODO


def test_create_rejects_bad_status(store):
    with pytest.raises(ValueError):
        store.create_task("p1", "Bad", status="ARCHIVED")


def test_save_and_get_roundtrip(store):
    task = make_task(
        "t1", TaskStatus.REVIEW, 3.5,
        priority=TaskPriority.URGENT,
        due_date=date(2026, 10, 19),
        tags=["x", "y"],
        assignees=[{"id": "u1", "name": "Ana"}],
        checklist_total=2,
    )
    assert store.save(task)
    loaded = store.get("t1")
    assert loaded == task


def test_get_missing_returns_none(store):
    assert store.get("nope") is None


def test_list_by_project_is_in_board_order(store):
    store.save(make_task("a", position=2))
    store.save(make_task("b", position=1))
    store.save(make_task("c", TaskStatus.DONE, position=1))
    store.save(make_task("z", project_id="p2"))

    assert [t.task_id for t in store.list_by_project("p1")] == ["b", "c", "a"]
    only_done = store.list_by_project("p1", statuses=[TaskStatus.DONE])
    assert [t.task_id for t in only_done] == ["c"]
    assert len(store.list_all()) == 4


def test_move_task_persists_and_logs(store):
    task = store.create_task("p1", "Move me")
    moved = store.move_task(task.task_id, "IN_PROGRESS", 0.5)

    assert moved.status == TaskStatus.IN_PROGRESS
    assert moved.position == 0.5
    reloaded = store.get(task.task_id)
    assert (reloaded.status, reloaded.position) == (TaskStatus.IN_PROGRESS, 0.5)

    activity = store.recent_activity(task.task_id)
    assert len(activity) == 1
    assert activity[0]["action"] == "TASK_MOVED"
    assert activity[0]["metadata"] == {
        "old_status": "TODO",
        "new_status": "IN_PROGRESS",
        "old_position": 1.0,
        "new_position": 0.5,
    }


def test_move_task_errors(store):
    task = store.create_task("p1", "Move me")
    with pytest.raises(TaskNotFound):
        store.move_task("ghost", TaskStatus.DONE, 1.0)
    with pytest.raises(ValueError):
        store.move_task(task.task_id, "ARCHIVED", 1.0)
    assert store.recent_activity() == []


def test_update_task(store):
    task = store.create_task("p1", "Old title")
    updated = store.update_task(task.task_id, title="New title", priority="high", status="done")
    assert updated.title == "New title"
    assert updated.priority == TaskPriority.HIGH
    assert updated.status == TaskStatus.DONE
    assert store.get(task.task_id).title == "New title"

    with pytest.raises(TaskNotFound):
        store.update_task("ghost", title="x")
    with pytest.raises(ValueError):
        store.update_task(task.task_id, project_id="p9")


def test_status_change_appends_to_new_group(store):
    a = store.create_task("p1", "A")
    store.create_task("p1", "B")
    c = store.create_task("p1", "C", status=TaskStatus.DONE)

    moved = store.update_task(a.task_id, status=TaskStatus.DONE)

    assert moved.position == 2.0
    assert moved.position != store.get(c.task_id).position
    assert [t.task_id for t in store.list_by_project("p1", [TaskStatus.DONE])] == [c.task_id, a.task_id]


def test_status_update_keeps_explicit_or_unchanged_position(store):
    a = store.create_task("p1", "A")
    store.create_task("p1", "C", status=TaskStatus.DONE)

    assert store.update_task(a.task_id, status="TODO").position == 1.0
    assert store.update_task(a.task_id, status="DONE", position=0.5).position == 0.5


def test_delete(store):
    task = store.create_task("p1", "Bye")
    assert store.delete(task.task_id)
    assert store.get(task.task_id) is None
    assert not store.delete(task.task_id)


def test_stats(store):
    store.create_task("p1", "a")
    store.create_task("p1", "b", status=TaskStatus.DONE)
    store.create_task("p1", "c", status=TaskStatus.DONE)
    stats = store.get_stats("p1")
    assert stats["total"] == 3
    assert stats["by_status"] == {"TODO": 1, "DONE": 2}


def test_db_path_from_env(tmp_path, monkeypatch):
    monkeypatch.setenv("AGENCYBOARD_DB", str(tmp_path / "env.db"))
    assert TaskStore().db_path == str(tmp_path / "env.db")
    assert (tmp_path / "env.db").exists()


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Change feed
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def test_store_publishes_mutations(store, feed):
    seen = []
    feed.subscribe(lambda event, task, old: seen.append((event, task.task_id, old and old.status)))

    task = store.create_task("p1", "Watch me")
    store.move_task(task.task_id, TaskStatus.DONE, 2.0)
    store.update_task(task.task_id, title="Renamed")
    store.delete(task.task_id)

    assert [e for e, _, _ in seen] == ["INSERT", "UPDATE", "UPDATE", "DELETE"]
    assert seen[1][2] == TaskStatus.TODO


def test_feed_filters_by_event_and_project():
    feed = TaskChangeFeed()
    deletes, p2 = [], []
    feed.subscribe(lambda **kw: deletes.append(kw["task"].task_id), event="DELETE")
    feed.subscribe(lambda **kw: p2.append(kw["task"].task_id), project_id="p2")

    feed.publish("INSERT", make_task("a"))
    feed.publish("DELETE", make_task("b"))
    feed.publish("UPDATE", make_task("c", project_id="p2"))

    assert deletes == ["b"]
    assert p2 == ["c"]


def test_feed_isolates_failing_subscribers():
    feed = TaskChangeFeed()
    received = []

    def broken(**kw):
        raise RuntimeError("subscriber bug")

    feed.subscribe(broken)
    feed.subscribe(lambda **kw: received.append(kw["event"]))

    assert feed.publish("INSERT", make_task("a")) == 1
    assert received == ["INSERT"]


def test_feed_unsubscribe():
    feed = TaskChangeFeed()
    received = []
    unsubscribe = feed.subscribe(lambda **kw: received.append(kw["event"]))
    unsubscribe()
    unsubscribe()
    assert feed.publish("INSERT", make_task("a")) == 0
    assert received == []


def test_feed_rejects_unknown_event():
    feed = TaskChangeFeed()
    with pytest.raises(ValueError):
        feed.subscribe(lambda **kw: None, event="UPSERT")
    with pytest.raises(ValueError):
        feed.publish("UPSERT", make_task("a"))
