"""
Position and status helpers shared by the board, its columns and list views.

Ordering keys:
  - append to a column     → max(position) + POSITION_GAP  (1.0 when empty)
  - insert before task X   → midpoint of X and its predecessor
  - insert before the first → X - POSITION_GAP if still above 0.0, else midpoint with 0.0
  - gap under MIN_POSITION_GAP → PositionSpaceExhausted, caller reseeds the column
"""
import logging
import math
from datetime import date
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .schema import DEFAULT_TABLE, ColumnTable, Task, TaskStatus

logger = logging.getLogger(__name__)

POSITION_GAP = 1.0
MIN_POSITION_GAP = 1e-6


class PositionSpaceExhausted(Exception):
    """Raised when no distinct position fits at the requested spot."""
    pass


def status_to_column_id(status, table: Optional[ColumnTable] = None) -> Optional[str]:
    """Column id for a status, or None when no column is configured for it."""
    return (table or DEFAULT_TABLE).status_to_column_id(status)


def column_id_to_status(column_id: str, table: Optional[ColumnTable] = None) -> Optional[TaskStatus]:
    return (table or DEFAULT_TABLE).column_id_to_status(column_id)


def group_tasks_by_column(
    tasks: Iterable[Task],
    table: Optional[ColumnTable] = None,
    unplaced: Optional[List[Task]] = None,
) -> Dict[str, List[Task]]:
    """
    Partition tasks by column.

    Every configured column gets an entry, even when empty. Tasks whose
    status has no column are left out of every group; they are appended to
    ``unplaced`` when a list is given so the caller can report them.
    """
    table = table or DEFAULT_TABLE
    grouped: Dict[str, List[Task]] = {cid: [] for cid in table.column_ids}
    for task in tasks:
        column_id = table.status_to_column_id(task.status)
        if column_id is None:
            logger.warning(f"Task {task.task_id} has unknown status {task.status_value!r}; left off the board")
            if unplaced is not None:
                unplaced.append(task)
            continue
        grouped[column_id].append(task)
    return grouped


def sort_tasks_by_position(tasks: Iterable[Task]) -> List[Task]:
    """Ascending by position; equal positions keep their input order."""
    return sorted(tasks, key=lambda t: t.position)


def calculate_new_position(
    tasks: Sequence[Task],
    target_task_id: Optional[str] = None,
    gap: float = POSITION_GAP,
    min_gap: float = MIN_POSITION_GAP,
) -> float:
    """
    Ordering key for a task dropped into a column.

    Args:
        tasks: Tasks already in the target column, excluding the moved one
        target_task_id: Insert before this task; None appends to the end

    Positions stay above 0.0. Before the first task the result is one gap
    lower when that remains positive, otherwise the midpoint with 0.0.

    Raises:
        PositionSpaceExhausted: the neighbours are too close (or the append
            overflows) to yield a distinct finite value
    """
    ordered = sort_tasks_by_position(tasks)
    index = None
    if target_task_id is not None:
        for i, t in enumerate(ordered):
            if t.task_id == target_task_id:
                index = i
                break

    if index is None:
        if not ordered:
            return gap
        new_position = ordered[-1].position + gap
        if not math.isfinite(new_position) or new_position <= ordered[-1].position:
            raise PositionSpaceExhausted(f"Cannot append after position {ordered[-1].position}")
        return new_position

    upper = ordered[index].position
    if index == 0 and 0 < upper - gap < upper:
        return upper - gap
    lower = ordered[index - 1].position if index > 0 else 0.0
    if upper - lower <= min_gap:
        raise PositionSpaceExhausted(f"No room between {lower} and {upper}")

    midpoint = (lower + upper) / 2
    if not (lower < midpoint < upper):
        raise PositionSpaceExhausted(f"Midpoint of {lower} and {upper} is not representable")
    return midpoint


def reseed_positions(
    tasks: Sequence[Task],
    moved_task_id: str,
    before_task_id: Optional[str] = None,
    gap: float = POSITION_GAP,
) -> List[Tuple[str, float]]:
    """
    Renumber a whole column to evenly spaced positions.

    The moved task is placed before ``before_task_id`` (or last). Returns
    (task_id, position) pairs in column order.
    """
    ids = [t.task_id for t in sort_tasks_by_position(tasks) if t.task_id != moved_task_id]
    if before_task_id in ids:
        ids.insert(ids.index(before_task_id), moved_task_id)
    else:
        ids.append(moved_task_id)
    return [(task_id, gap * (i + 1)) for i, task_id in enumerate(ids)]


# ── Query helpers ────────────────────────────────────────────────────────────


def is_task_overdue(task: Task, today: Optional[date] = None) -> bool:
    if not task.due_date:
        return False
    if task.status == TaskStatus.DONE:
        return False
    return task.due_date < (today or date.today())


def get_overdue_tasks(tasks: Iterable[Task], today: Optional[date] = None) -> List[Task]:
    return [t for t in tasks if is_task_overdue(t, today)]


def filter_tasks(tasks: Iterable[Task], query: str) -> List[Task]:
    """Case-insensitive search over title, description and tags."""
    tasks = list(tasks)
    if not query or not query.strip():
        return tasks
    q = query.strip().lower()
    return [
        t for t in tasks
        if q in t.title.lower()
        or q in (t.description or "").lower()
        or any(q in tag.lower() for tag in t.tags)
    ]


def get_tasks_by_assignee(tasks: Iterable[Task], user_id: str) -> List[Task]:
    return [t for t in tasks if any(a.get("id") == user_id for a in t.assignees)]


def get_tasks_by_tags(tasks: Iterable[Task], tags: Sequence[str]) -> List[Task]:
    tasks = list(tasks)
    if not tags:
        return tasks
    return [t for t in tasks if any(tag in t.tags for tag in tags)]


_SORT_KEYS = {
    "position": lambda t: t.position,
    "due_date": lambda t: t.due_date or date.min,
    "title": lambda t: t.title.lower(),
    "created_at": lambda t: t.created_at or "",
}


def sort_tasks(tasks: Iterable[Task], by: str = "position", descending: bool = False) -> List[Task]:
    """Stable sort by one of: position, due_date, title, created_at."""
    if by not in _SORT_KEYS:
        raise ValueError(f"Unknown sort key: {by}")
    return sorted(tasks, key=_SORT_KEYS[by], reverse=descending)


def get_task_stats(tasks: Iterable[Task]) -> Dict[str, int]:
    """Counts per status plus completion rate (percent of DONE)."""
    stats = {"total": 0, "completion_rate": 0}
    for status in TaskStatus:
        stats[status.value.lower()] = 0
    for task in tasks:
        stats["total"] += 1
        key = task.status_value.lower()
        if key in stats and key not in ("total", "completion_rate"):
            stats[key] += 1
    if stats["total"]:
        stats["completion_rate"] = round(stats["done"] / stats["total"] * 100)
    return stats
