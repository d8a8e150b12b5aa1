"""
Task card: one draggable task on the board.

The card only knows how to present its task and whether it is being
dragged. Clicks are forwarded upward; nothing here talks to the service.
"""
from dataclasses import dataclass, field
from datetime import date
from typing import Callable, List, Optional

from .schema import Task, TaskPriority
from .transforms import is_task_overdue

MAX_VISIBLE_TAGS = 3
MAX_VISIBLE_ASSIGNEES = 3
DESCRIPTION_PREVIEW_CHARS = 120


@dataclass
class CardSummary:
    """What a card shows for its task."""
    task_id: str
    title: str
    description: str = ""
    priority_badge: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    hidden_tags: int = 0
    checklist: Optional[str] = None
    comments_count: int = 0
    attachments_count: int = 0
    due_label: Optional[str] = None
    overdue: bool = False
    assignee_initials: List[str] = field(default_factory=list)
    hidden_assignees: int = 0


def _preview(text: str, limit: int = DESCRIPTION_PREVIEW_CHARS) -> str:
    text = " ".join((text or "").split())
    if len(text) <= limit:
        return text
    return text[: limit - 1].rstrip() + "…"


class TaskCardView:
    """Draggable unit; its drag identity is the task id."""

    def __init__(self, task: Task, on_click: Optional[Callable[[str], None]] = None):
        self.task = task
        self.on_click = on_click
        self.is_dragging = False

    @property
    def drag_id(self) -> str:
        return self.task.task_id

    def drag_started(self) -> None:
        self.is_dragging = True

    def drag_ended(self) -> None:
        self.is_dragging = False

    def click(self) -> bool:
        """Open the task, unless it is being dragged."""
        if self.is_dragging:
            return False
        if self.on_click is None:
            return False
        self.on_click(self.task.task_id)
        return True

    def summary(self, today: Optional[date] = None) -> CardSummary:
        task = self.task
        badge = None
        if task.priority != TaskPriority.MEDIUM:
            badge = task.priority.value

        checklist = None
        if task.checklist_total > 0:
            checklist = f"{task.checklist_completed}/{task.checklist_total}"

        initials = []
        for assignee in task.assignees[:MAX_VISIBLE_ASSIGNEES]:
            name = (assignee.get("name") or "").strip()
            initials.append(name[:1].upper() if name else "?")

        return CardSummary(
            task_id=task.task_id,
            title=task.title,
            description=_preview(task.description),
            priority_badge=badge,
            tags=task.tags[:MAX_VISIBLE_TAGS],
            hidden_tags=max(0, len(task.tags) - MAX_VISIBLE_TAGS),
            checklist=checklist,
            comments_count=task.comments_count,
            attachments_count=task.attachments_count,
            due_label=f"{task.due_date:%b} {task.due_date.day}" if task.due_date else None,
            overdue=is_task_overdue(task, today),
            assignee_initials=initials,
            hidden_assignees=max(0, len(task.assignees) - MAX_VISIBLE_ASSIGNEES),
        )

    def render_text(self, today: Optional[date] = None) -> str:
        """Plain-text rendering, one fact per line."""
        s = self.summary(today)
        lines = []
        if s.priority_badge:
            lines.append(f"[{s.priority_badge}]")
        lines.append(s.title)
        if s.description:
            lines.append(f"  {s.description}")
        if s.tags:
            tags = " ".join(f"#{t}" for t in s.tags)
            if s.hidden_tags:
                tags += f" +{s.hidden_tags}"
            lines.append(f"  {tags}")

        meta = []
        if s.checklist:
            meta.append(f"☑ {s.checklist}")
        if s.comments_count:
            meta.append(f"💬 {s.comments_count}")
        if s.attachments_count:
            meta.append(f"📎 {s.attachments_count}")
        if s.due_label:
            meta.append(f"{'⚠ overdue' if s.overdue else '📅'} {s.due_label}")
        if meta:
            lines.append("  " + "  ".join(meta))

        if s.assignee_initials:
            people = " ".join(s.assignee_initials)
            if s.hidden_assignees:
                people += f" +{s.hidden_assignees}"
            lines.append(f"  👤 {people}")
        return "\n".join(lines)
