"""
Task storage backend (SQLite).

The system of record for tasks: CRUD, the (status, position) move used by
the board, and an activity log of moves.
"""
import sqlite3
import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

from .events import TaskChangeFeed
from .schema import Task, TaskPriority, TaskStatus, make_task_id, utc_now
from .transforms import POSITION_GAP

logger = logging.getLogger(__name__)

DEFAULT_DB = Path.home() / ".local" / "share" / "agencyboard" / "tasks.db"

# Fields update_task() accepts. Board moves use move_task(), which is logged.
UPDATABLE_FIELDS = (
    "title", "description", "priority", "due_date", "tags", "assignees",
    "comments_count", "attachments_count", "checklist_total",
    "checklist_completed", "status", "position",
)


class TaskNotFound(Exception):
    """Raised when a task id does not exist in the store."""
    pass


def _connect(db_path: str) -> sqlite3.Connection:
    """Open a connection with FK enforcement and WAL mode."""
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    conn.execute("PRAGMA journal_mode = WAL")
    return conn


class TaskStore:
    """SQLite-backed store for project tasks."""

    def __init__(self, db_path: Optional[str] = None, feed: Optional[TaskChangeFeed] = None):
        """Initialize store and create tables if needed."""
        if db_path is None:
            db_path = os.environ.get("AGENCYBOARD_DB") or str(DEFAULT_DB)
        self.db_path = str(db_path)
        self.feed = feed
        Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    def _init_schema(self):
        """Create tables if they don't exist."""
        with _connect(self.db_path) as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS tasks (
                    seq INTEGER PRIMARY KEY AUTOINCREMENT,
                    task_id TEXT NOT NULL UNIQUE,
                    project_id TEXT NOT NULL DEFAULT '',
                    status TEXT NOT NULL DEFAULT 'TODO',
                    position REAL NOT NULL DEFAULT 0,
                    title TEXT NOT NULL,
                    description TEXT DEFAULT '',
                    priority TEXT DEFAULT 'MEDIUM',
                    due_date TEXT,
                    tags TEXT,       -- JSON list
                    assignees TEXT,  -- JSON list of {id, name}
                    comments_count INTEGER DEFAULT 0,
                    attachments_count INTEGER DEFAULT 0,
                    checklist_total INTEGER DEFAULT 0,
                    checklist_completed INTEGER DEFAULT 0,
                    created_by TEXT DEFAULT '',
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS activity_logs (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    task_id TEXT NOT NULL,
                    project_id TEXT,
                    action TEXT NOT NULL,
                    description TEXT NOT NULL,
                    metadata TEXT,  -- JSON object
                    created_at TEXT NOT NULL
                )
            """)
            conn.execute("CREATE INDEX IF NOT EXISTS idx_tasks_board ON tasks(project_id, status, position)")
            conn.execute("CREATE INDEX IF NOT EXISTS idx_activity_task ON activity_logs(task_id, created_at)")
            conn.commit()

    # ── Writes ───────────────────────────────────────────────────────────────

    def save(self, task: Task) -> bool:
        """Insert or update a task by id."""
        data = task.to_dict()
        try:
            with _connect(self.db_path) as conn:
                conn.execute("""
                    INSERT INTO tasks
                    (task_id, project_id, status, position, title, description,
                     priority, due_date, tags, assignees, comments_count,
                     attachments_count, checklist_total, checklist_completed,
                     created_by, created_at, updated_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    ON CONFLICT(task_id) DO UPDATE SET
                        project_id=excluded.project_id, status=excluded.status,
                        position=excluded.position, title=excluded.title,
                        description=excluded.description, priority=excluded.priority,
                        due_date=excluded.due_date, tags=excluded.tags,
                        assignees=excluded.assignees,
                        comments_count=excluded.comments_count,
                        attachments_count=excluded.attachments_count,
                        checklist_total=excluded.checklist_total,
                        checklist_completed=excluded.checklist_completed,
                        created_by=excluded.created_by,
                        updated_at=excluded.updated_at
                """, (
                    data["id"],
                    data["project_id"],
                    data["status"],
                    data["position"],
                    data["title"],
                    data["description"],
                    data["priority"],
                    data["due_date"],
                    json.dumps(data["tags"]),
                    json.dumps(data["assignees"]),
                    data["comments_count"],
                    data["attachments_count"],
                    data["checklist_total"],
                    data["checklist_completed"],
                    data["created_by"],
                    data["created_at"],
                    data["updated_at"],
                ))
                conn.commit()
                return True
        except sqlite3.Error as e:
            logger.error(f"Error saving task {task.task_id}: {e}")
            return False

    def create_task(
        self,
        project_id: str,
        title: str,
        status: Union[TaskStatus, str] = TaskStatus.TODO,
        **fields: Any,
    ) -> Task:
        """Create a task at the end of its status group."""
        parsed = TaskStatus.from_str(status)
        if parsed is None:
            raise ValueError(f"Invalid status: {status}")
        position = fields.pop("position", None)
        if position is None:
            position = self.next_position(project_id, parsed)

        data = {"id": make_task_id(), "project_id": project_id, "title": title,
                "status": parsed.value, "position": position}
        data.update(fields)
        task = Task.from_dict(data)
        if not self.save(task):
            raise sqlite3.DatabaseError(f"Could not save task {task.task_id}")
        self._publish("INSERT", task)
        return task

    def update_task(self, task_id: str, **fields: Any) -> Task:
        """Change descriptive fields. Raises TaskNotFound."""
        old = self.get(task_id)
        if old is None:
            raise TaskNotFound(task_id)
        unknown = set(fields) - set(UPDATABLE_FIELDS)
        if unknown:
            raise ValueError(f"Fields cannot be updated: {sorted(unknown)}")

        data = old.to_dict()
        data.update(fields)
        if "status" in fields:
            parsed = TaskStatus.from_str(fields["status"])
            if parsed is None:
                raise ValueError(f"Invalid status: {fields['status']}")
            data["status"] = parsed.value
            if parsed != old.status and fields.get("position") is None:
                data["position"] = self.next_position(old.project_id, parsed)
        if "priority" in fields:
            data["priority"] = TaskPriority.from_str(fields["priority"]).value
        data["updated_at"] = utc_now()

        task = Task.from_dict(data)
        if not self.save(task):
            raise sqlite3.DatabaseError(f"Could not save task {task_id}")
        self._publish("UPDATE", task, old)
        return task

    def move_task(self, task_id: str, status: Union[TaskStatus, str], position: float) -> Task:
        """
        Place a task at (status, position) and log the move.

        Raises:
            TaskNotFound: unknown task id
            ValueError: unknown status
        """
        parsed = TaskStatus.from_str(status)
        if parsed is None:
            raise ValueError(f"Invalid status: {status}")

        old = self.get(task_id)
        if old is None:
            raise TaskNotFound(task_id)

        now = utc_now()
        with _connect(self.db_path) as conn:
            conn.execute(
                "UPDATE tasks SET status = ?, position = ?, updated_at = ? WHERE task_id = ?",
                (parsed.value, float(position), now, task_id),
            )
            conn.execute(
                """
                INSERT INTO activity_logs (task_id, project_id, action, description, metadata, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    task_id,
                    old.project_id,
                    "TASK_MOVED",
                    f"Moved task: {old.title} from {old.status_value} to {parsed.value}",
                    json.dumps({
                        "old_status": old.status_value,
                        "new_status": parsed.value,
                        "old_position": old.position,
                        "new_position": float(position),
                    }),
                    now,
                ),
            )
            conn.commit()

        task = old.moved(parsed, position)
        task.updated_at = now
        self._publish("UPDATE", task, old)
        return task

    def delete(self, task_id: str) -> bool:
        """Delete a task; its activity rows are kept for audit."""
        old = self.get(task_id)
        if old is None:
            return False
        try:
            with _connect(self.db_path) as conn:
                conn.execute("DELETE FROM tasks WHERE task_id = ?", (task_id,))
                conn.commit()
        except sqlite3.Error as e:
            logger.error(f"Error deleting task {task_id}: {e}")
            return False
        self._publish("DELETE", old)
        return True

    # ── Reads ────────────────────────────────────────────────────────────────

    def get(self, task_id: str) -> Optional[Task]:
        """Retrieve a task by ID."""
        try:
            with _connect(self.db_path) as conn:
                row = conn.execute(
                    "SELECT * FROM tasks WHERE task_id = ?", (task_id,)
                ).fetchone()
            return self._row_to_task(row) if row else None
        except sqlite3.Error as e:
            logger.error(f"Error retrieving task {task_id}: {e}")
            return None

    def list_by_project(
        self,
        project_id: str,
        statuses: Optional[Iterable[Union[TaskStatus, str]]] = None,
    ) -> List[Task]:
        """Tasks of a project in board order (position, then creation)."""
        query = "SELECT * FROM tasks WHERE project_id = ?"
        params: List[Any] = [project_id]
        if statuses:
            values = [s.value if isinstance(s, TaskStatus) else str(s) for s in statuses]
            query += f" AND status IN ({', '.join('?' for _ in values)})"
            params.extend(values)
        query += " ORDER BY position ASC, seq ASC"
        try:
            with _connect(self.db_path) as conn:
                rows = conn.execute(query, params).fetchall()
            return [self._row_to_task(row) for row in rows]
        except sqlite3.Error as e:
            logger.error(f"Error listing tasks for project {project_id}: {e}")
            return []

    # Same call shape as TaskServiceClient.list_tasks, for BoardSession.
    list_tasks = list_by_project

    def list_all(self, limit: int = 500) -> List[Task]:
        """List all tasks (most recently updated first)."""
        try:
            with _connect(self.db_path) as conn:
                rows = conn.execute(
                    "SELECT * FROM tasks ORDER BY updated_at DESC LIMIT ?", (limit,)
                ).fetchall()
            return [self._row_to_task(row) for row in rows]
        except sqlite3.Error as e:
            logger.error(f"Error listing all tasks: {e}")
            return []

    def next_position(self, project_id: str, status: TaskStatus) -> float:
        """Position just past the last task of a status group."""
        with _connect(self.db_path) as conn:
            row = conn.execute(
                "SELECT MAX(position) FROM tasks WHERE project_id = ? AND status = ?",
                (project_id, status.value),
            ).fetchone()
        if row[0] is None:
            return POSITION_GAP
        return float(row[0]) + POSITION_GAP

    def recent_activity(self, task_id: Optional[str] = None, limit: int = 50) -> List[Dict[str, Any]]:
        """Recent activity rows, newest first, optionally for one task."""
        try:
            with _connect(self.db_path) as conn:
                if task_id:
                    rows = conn.execute(
                        "SELECT * FROM activity_logs WHERE task_id = ? ORDER BY id DESC LIMIT ?",
                        (task_id, limit),
                    ).fetchall()
                else:
                    rows = conn.execute(
                        "SELECT * FROM activity_logs ORDER BY id DESC LIMIT ?", (limit,)
                    ).fetchall()
        except sqlite3.Error as e:
            logger.error(f"Error reading activity: {e}")
            return []

        activity = []
        for row in rows:
            entry = dict(row)
            try:
                entry["metadata"] = json.loads(entry.get("metadata") or "{}")
            except json.JSONDecodeError:
                entry["metadata"] = {}
            activity.append(entry)
        return activity

    def get_stats(self, project_id: str) -> Dict[str, Any]:
        """Task counts per status for a project."""
        stats: Dict[str, Any] = {"by_status": {}, "total": 0}
        try:
            with _connect(self.db_path) as conn:
                for row in conn.execute(
                    "SELECT status, COUNT(*) FROM tasks WHERE project_id = ? GROUP BY status",
                    (project_id,),
                ):
                    stats["by_status"][row[0]] = row[1]
                    stats["total"] += row[1]
        except sqlite3.Error as e:
            logger.error(f"Error getting stats: {e}")
        return stats

    # ── Helpers ──────────────────────────────────────────────────────────────

    def _publish(self, event: str, task: Task, old: Optional[Task] = None) -> None:
        if self.feed is not None:
            self.feed.publish(event, task, old)

    def _row_to_task(self, row: sqlite3.Row) -> Task:
        """Convert a database row to a Task object."""
        data = dict(row)
        data["id"] = data.pop("task_id")
        for key in ("tags", "assignees"):
            try:
                data[key] = json.loads(data[key]) if data.get(key) else []
            except (json.JSONDecodeError, TypeError):
                data[key] = []
        return Task.from_dict(data)
