"""
List view: a sortable, groupable table over the same tasks as the board.

Read-only with respect to placement. A status change made here goes through
the regular update-task call and is followed by a refresh; the drag engine
is not involved.
"""
import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

from .schema import ColumnConfig, ColumnTable, DEFAULT_TABLE, Task, TaskPriority, TaskStatus
from .transforms import filter_tasks, is_task_overdue

logger = logging.getLogger(__name__)

SORT_FIELDS = ("title", "priority", "due_date", "created_at", "status", "assignees")
GROUP_BY = ("none", "status", "priority", "assignee")


@dataclass
class TaskFilters:
    """Filter panel state. Empty collections mean "no constraint"."""
    search: str = ""
    priorities: List[str] = field(default_factory=list)
    column_ids: List[str] = field(default_factory=list)
    tags: List[str] = field(default_factory=list)
    assignees: List[str] = field(default_factory=list)  # user ids
    creators: List[str] = field(default_factory=list)
    overdue_only: bool = False

    @property
    def active_count(self) -> int:
        count = sum(1 for v in (self.priorities, self.column_ids, self.tags,
                                self.assignees, self.creators) if v)
        if self.search.strip():
            count += 1
        if self.overdue_only:
            count += 1
        return count

    def apply(self, tasks: Iterable[Task], table: Optional[ColumnTable] = None,
              today: Optional[date] = None) -> List[Task]:
        table = table or DEFAULT_TABLE
        result = filter_tasks(tasks, self.search)
        if self.priorities:
            wanted = {TaskPriority.from_str(p) for p in self.priorities}
            result = [t for t in result if t.priority in wanted]
        if self.column_ids:
            result = [t for t in result if table.status_to_column_id(t.status) in self.column_ids]
        if self.tags:
            result = [t for t in result if any(tag in t.tags for tag in self.tags)]
        if self.assignees:
            result = [t for t in result
                      if any(a.get("id") in self.assignees for a in t.assignees)]
        if self.creators:
            result = [t for t in result if t.created_by in self.creators]
        if self.overdue_only:
            result = [t for t in result if is_task_overdue(t, today)]
        return result


class ListView:
    """Table presentation of a task collection."""

    def __init__(
        self,
        tasks: Iterable[Task],
        columns: Union[ColumnTable, Iterable[ColumnConfig]] = DEFAULT_TABLE,
        on_task_click: Optional[Callable[[str], None]] = None,
        on_update_task: Optional[Callable[..., Any]] = None,
        on_refresh: Optional[Callable[[], Any]] = None,
    ):
        self.tasks: List[Task] = list(tasks)
        self.table = columns if isinstance(columns, ColumnTable) else ColumnTable(columns)
        self.on_task_click = on_task_click
        self.on_update_task = on_update_task
        self.on_refresh = on_refresh

        self.sort_field = "created_at"
        self.descending = True
        self.group_by = "none"
        self.selected: List[str] = []

    # ── Sorting ──────────────────────────────────────────────────────────────

    def toggle_sort(self, sort_field: str) -> None:
        if sort_field not in SORT_FIELDS:
            raise ValueError(f"Unknown sort field: {sort_field}")
        if sort_field == self.sort_field:
            self.descending = not self.descending
        else:
            self.sort_field = sort_field
            self.descending = False

    def _column_name(self, task: Task) -> str:
        col = self.table.get(self.table.status_to_column_id(task.status) or "")
        return col.name if col else ""

    def rows(self) -> List[Task]:
        """Tasks in display order: chosen key, then position, then input order."""
        # Stable passes, least significant first.
        ordered = sorted(self.tasks, key=lambda t: t.position)

        if self.sort_field == "due_date":
            # Undated tasks stay last in both directions.
            dated = [t for t in ordered if t.due_date]
            undated = [t for t in ordered if not t.due_date]
            dated.sort(key=lambda t: t.due_date, reverse=self.descending)
            return dated + undated

        keys = {
            "title": lambda t: t.title.lower(),
            "priority": lambda t: t.priority.rank,
            "created_at": lambda t: t.created_at or "",
            "status": lambda t: self._column_name(t).lower(),
            "assignees": lambda t: len(t.assignees),
        }
        return sorted(ordered, key=keys[self.sort_field], reverse=self.descending)

    # ── Grouping ─────────────────────────────────────────────────────────────

    def set_group_by(self, group_by: str) -> None:
        if group_by not in GROUP_BY:
            raise ValueError(f"Unknown grouping: {group_by}")
        self.group_by = group_by

    def _group_key(self, task: Task) -> str:
        if self.group_by == "status":
            return self._column_name(task) or "Unknown"
        if self.group_by == "priority":
            return task.priority.value.capitalize()
        if self.group_by == "assignee":
            if task.assignees:
                return task.assignees[0].get("name") or "Unassigned"
            return "Unassigned"
        return "All Tasks"

    def groups(self) -> Dict[str, List[Task]]:
        """Sorted rows bucketed by the current grouping, first-seen order."""
        grouped: Dict[str, List[Task]] = {}
        for task in self.rows():
            grouped.setdefault(self._group_key(task), []).append(task)
        if not grouped and self.group_by == "none":
            grouped["All Tasks"] = []
        return grouped

    # ── Selection ────────────────────────────────────────────────────────────

    def toggle_selection(self, task_id: str) -> List[str]:
        if task_id in self.selected:
            self.selected = [s for s in self.selected if s != task_id]
        else:
            self.selected = self.selected + [task_id]
        return self.selected

    def toggle_all(self) -> List[str]:
        if len(self.selected) == len(self.tasks):
            self.selected = []
        else:
            self.selected = [t.task_id for t in self.tasks]
        return self.selected

    # ── Actions ──────────────────────────────────────────────────────────────

    def open(self, task_id: str) -> bool:
        if self.on_task_click is None:
            return False
        self.on_task_click(task_id)
        return True

    def change_status(self, task_id: str, status: Union[TaskStatus, str]) -> None:
        """Update a task's status through the update-task call, then refresh."""
        parsed = TaskStatus.from_str(status)
        if parsed is None:
            raise ValueError(f"Invalid status: {status}")
        if self.on_update_task is None:
            raise RuntimeError("ListView has no update handler")
        try:
            self.on_update_task(task_id, status=parsed)
        except Exception as exc:
            logger.error(f"Status change for task {task_id} failed: {exc}")
            raise
        if self.on_refresh is not None:
            fresh = self.on_refresh()
            if fresh is not None:
                self.tasks = list(fresh)
