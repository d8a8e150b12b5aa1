"""
Task and column schema for the project Kanban board.

Column layout (default):
  To Do → In Progress → Review → Done, plus Blocked

A task's status is the persisted source of truth for its column. The
status <-> column mapping lives in exactly one place: ColumnTable.
"""
from enum import Enum
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timezone
from typing import Optional, List, Dict, Any, Iterable, Iterator, Union
import time
import uuid


class TaskStatus(Enum):
    """Lifecycle states a task can be persisted with."""
    TODO = "TODO"
    IN_PROGRESS = "IN_PROGRESS"
    REVIEW = "REVIEW"
    DONE = "DONE"
    BLOCKED = "BLOCKED"

    @classmethod
    def from_str(cls, value: Any) -> Optional["TaskStatus"]:
        """Parse a status; None for anything unrecognized."""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        try:
            return cls[value.strip().upper().replace("-", "_")]
        except KeyError:
            return None


class TaskPriority(Enum):
    """Task priority, lowest to highest."""
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    URGENT = "URGENT"

    @property
    def rank(self) -> int:
        return {"LOW": 1, "MEDIUM": 2, "HIGH": 3, "URGENT": 4}[self.value]

    @classmethod
    def from_str(cls, value: Any) -> "TaskPriority":
        if isinstance(value, cls):
            return value
        try:
            return cls[str(value).strip().upper()]
        except KeyError:
            return cls.MEDIUM


def utc_now() -> str:
    """ISO-8601 UTC timestamp."""
    return datetime.now(timezone.utc).isoformat()


def make_task_id() -> str:
    """Generate a sortable unique task ID (ms-precision timestamp + random hex)."""
    ts = int(time.time() * 1000)
    rand = uuid.uuid4().hex[:8]
    return f"task-{ts}-{rand}"


def _parse_date(value: Any) -> Optional[date]:
    if not value:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        return None


@dataclass
class Task:
    """One task on a project board."""

    # Identity
    task_id: str
    project_id: str = ""

    # Board placement (the only fields the drag engine changes)
    status: Union[TaskStatus, str] = TaskStatus.TODO
    position: float = 0.0

    # Content
    title: str = ""
    description: str = ""
    priority: TaskPriority = TaskPriority.MEDIUM
    due_date: Optional[date] = None
    tags: List[str] = field(default_factory=list)
    assignees: List[Dict[str, str]] = field(default_factory=list)  # [{"id", "name"}]

    # Counters shown on the card
    comments_count: int = 0
    attachments_count: int = 0
    checklist_total: int = 0
    checklist_completed: int = 0

    # Metadata
    created_by: str = ""
    created_at: str = field(default_factory=utc_now)
    updated_at: str = field(default_factory=utc_now)

    @property
    def status_value(self) -> str:
        return self.status.value if isinstance(self.status, TaskStatus) else str(self.status)

    def moved(self, status: TaskStatus, position: float) -> "Task":
        """Copy of this task placed at (status, position)."""
        return replace(self, status=status, position=float(position), updated_at=utc_now())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.task_id,
            "project_id": self.project_id,
            "status": self.status_value,
            "position": self.position,
            "title": self.title,
            "description": self.description,
            "priority": self.priority.value,
            "due_date": self.due_date.isoformat() if self.due_date else None,
            "tags": list(self.tags),
            "assignees": [dict(a) for a in self.assignees],
            "comments_count": self.comments_count,
            "attachments_count": self.attachments_count,
            "checklist_total": self.checklist_total,
            "checklist_completed": self.checklist_completed,
            "created_by": self.created_by,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Task":
        """Deserialize from dict.

        An unrecognized status is kept as the raw string so the board can
        report the task instead of filing it under a wrong column.
        """
        raw_status = data.get("status", TaskStatus.TODO.value)
        status = TaskStatus.from_str(raw_status) or str(raw_status)

        return cls(
            task_id=str(data.get("id") or data.get("task_id") or ""),
            project_id=data.get("project_id") or "",
            status=status,
            position=float(data.get("position") or 0.0),
            title=data.get("title") or "",
            description=data.get("description") or "",
            priority=TaskPriority.from_str(data.get("priority") or "MEDIUM"),
            due_date=_parse_date(data.get("due_date")),
            tags=list(data.get("tags") or []),
            assignees=[dict(a) for a in data.get("assignees") or []],
            comments_count=int(data.get("comments_count") or 0),
            attachments_count=int(data.get("attachments_count") or 0),
            checklist_total=int(data.get("checklist_total") or 0),
            checklist_completed=int(data.get("checklist_completed") or 0),
            created_by=data.get("created_by") or "",
            created_at=data.get("created_at") or utc_now(),
            updated_at=data.get("updated_at") or utc_now(),
        )


@dataclass(frozen=True)
class ColumnConfig:
    """A named, colored bucket bound to exactly one status."""
    column_id: str
    name: str
    status: TaskStatus
    color: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.column_id,
            "name": self.name,
            "color": self.color,
            "status": self.status.value,
        }


class ColumnTable:
    """The single status <-> column mapping, in display order."""

    def __init__(self, columns: Iterable[ColumnConfig]):
        self._columns: List[ColumnConfig] = list(columns)
        self._by_id: Dict[str, ColumnConfig] = {}
        self._by_status: Dict[TaskStatus, ColumnConfig] = {}
        for col in self._columns:
            if col.column_id in self._by_id:
                raise ValueError(f"Duplicate column id: {col.column_id}")
            if col.status in self._by_status:
                raise ValueError(
                    f"Status {col.status.value} mapped by both "
                    f"'{self._by_status[col.status].column_id}' and '{col.column_id}'"
                )
            self._by_id[col.column_id] = col
            self._by_status[col.status] = col

    def __iter__(self) -> Iterator[ColumnConfig]:
        return iter(self._columns)

    def __len__(self) -> int:
        return len(self._columns)

    def __contains__(self, column_id: object) -> bool:
        return column_id in self._by_id

    @property
    def column_ids(self) -> List[str]:
        return [c.column_id for c in self._columns]

    def get(self, column_id: str) -> Optional[ColumnConfig]:
        return self._by_id.get(column_id)

    def status_to_column_id(self, status: Any) -> Optional[str]:
        parsed = TaskStatus.from_str(status)
        col = self._by_status.get(parsed) if parsed else None
        return col.column_id if col else None

    def column_id_to_status(self, column_id: str) -> Optional[TaskStatus]:
        col = self._by_id.get(column_id)
        return col.status if col else None


DEFAULT_COLUMNS: List[ColumnConfig] = [
    ColumnConfig("todo", "To Do", TaskStatus.TODO, "#94a3b8"),
    ColumnConfig("in-progress", "In Progress", TaskStatus.IN_PROGRESS, "#3b82f6"),
    ColumnConfig("review", "Review", TaskStatus.REVIEW, "#f59e0b"),
    ColumnConfig("done", "Done", TaskStatus.DONE, "#22c55e"),
    ColumnConfig("blocked", "Blocked", TaskStatus.BLOCKED, "#ef4444"),
]

DEFAULT_TABLE = ColumnTable(DEFAULT_COLUMNS)
