#!/usr/bin/env python3
"""
Quick verification that the board works end-to-end against a local store.
"""
import asyncio
import logging
import os
import tempfile

from agencyboard.kanban.events import TaskChangeFeed
from agencyboard.kanban.session import BoardSession
from agencyboard.kanban.store import TaskStore
from agencyboard.kanban.schema import TaskPriority, TaskStatus


def main():
    logging.basicConfig(level=logging.WARNING, format="%(levelname)s %(name)s: %(message)s")

    print("=" * 60)
    print("AgencyBoard Verification")
    print("=" * 60)

    db_path = os.path.join(tempfile.gettempdir(), "agencyboard_verify.db")
    if os.path.exists(db_path):
        os.remove(db_path)

    print("\n[1/5] Creating SQLite store and change feed...")
    feed = TaskChangeFeed()
    store = TaskStore(db_path, feed=feed)
    print("✅ Store created")

    print("\n[2/5] Seeding tasks...")
    a = store.create_task("demo", "Write launch brief", priority=TaskPriority.HIGH, tags=["copy"])
    b = store.create_task("demo", "Review ad creatives", due_date="2020-01-01")
    store.create_task("demo", "Publish landing page", status=TaskStatus.DONE)
    print(f"✅ {len(store.list_by_project('demo'))} tasks created")

    print("\n[3/5] Loading board...")
    errors = []
    session = BoardSession(store, "demo", notify=errors.append)
    board = session.load()
    session.listen(feed)
    print(board.render_text())

    print("\n[4/5] Dragging tasks...")
    ok = asyncio.run(board.handle_drag_end(a.task_id, b.task_id))
    print(f"   → {a.task_id} dropped on {b.task_id}: ok={ok}, position={board.task(a.task_id).position}")
    ok = asyncio.run(board.handle_drag_end(b.task_id, "in-progress"))
    print(f"   → {b.task_id} dropped on in-progress: ok={ok}")
    if errors:
        print(f"❌ Move errors: {errors}")
        return

    moved = store.get(b.task_id)
    assert moved.status == TaskStatus.IN_PROGRESS, moved.status
    print(f"✅ Persisted: {moved.status.value} @ {moved.position}")

    print("\n[5/5] Activity log...")
    for entry in store.recent_activity(limit=5):
        print(f"   {entry['created_at']}  {entry['description']}")

    session.close()
    print("\n" + "=" * 60)
    print("✅ ALL CHECKS PASSED")
    print("=" * 60)
    print(f"Test database: {db_path}")


if __name__ == "__main__":
    main()
