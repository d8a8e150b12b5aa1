"""
Tests for task card and column view models.
"""
from datetime import date

from agencyboard.kanban.card import TaskCardView
from agencyboard.kanban.column import KanbanColumnView
from agencyboard.kanban.schema import DEFAULT_COLUMNS, TaskPriority, TaskStatus

from conftest import make_task

TODAY = date(2026, 10, 19)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Card
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def test_card_summary_full():
    task = make_task(
        "t1",
        title="Launch plan",
        priority=TaskPriority.URGENT,
        tags=["a", "b", "c", "d", "e"],
        checklist_total=4,
        checklist_completed=1,
        comments_count=2,
        due_date=date(2026, 10, 1),
        assignees=[
            {"id": "1", "name": "ana"},
            {"id": "2", "name": "Bo"},
            {"id": "3", "name": ""},
            {"id": "4", "name": "Dee"},
        ],
    )
    s = TaskCardView(task).summary(TODAY)

    assert s.priority_badge == "URGENT"
    assert s.tags == ["a", "b", "c"]
    assert s.hidden_tags == 2
    assert s.checklist == "1/4"
    assert s.due_label == "Oct 1"
    assert s.overdue
    assert s.assignee_initials == ["A", "B", "?"]
    assert s.hidden_assignees == 1


def test_card_summary_minimal():
    s = TaskCardView(make_task("t1")).summary(TODAY)
    assert s.priority_badge is None
    assert s.checklist is None
    assert s.due_label is None
    assert not s.overdue
    assert s.assignee_initials == []


def test_done_task_is_never_overdue():
    task = make_task("t1", TaskStatus.DONE, due_date=date(2020, 1, 1))
    assert not TaskCardView(task).summary(TODAY).overdue


def test_card_render_text():
    task = make_task("t1", title="Ship it", priority=TaskPriority.HIGH, tags=["ops"])
    text = TaskCardView(task).render_text(TODAY)
    assert text.splitlines()[0] == "[HIGH]"
    assert "Ship it" in text
    assert "#ops" in text


def test_card_click_forwards_task_id():
    opened = []
    card = TaskCardView(make_task("t1"), on_click=opened.append)
    assert card.drag_id == "t1"
    assert card.click() is True
    assert opened == ["t1"]


def test_card_click_without_handler():
    assert TaskCardView(make_task("t1")).click() is False


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Column
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def test_column_sorts_by_position():
    col = KanbanColumnView(
        DEFAULT_COLUMNS[0],
        [make_task("b", position=2), make_task("a", position=1)],
    )
    assert col.drop_target_id == "todo"
    assert col.task_ids == ["a", "b"]
    assert col.count == 2
    assert col.empty_message is None
    assert [c.drag_id for c in col.cards] == ["a", "b"]


def test_empty_column():
    col = KanbanColumnView(DEFAULT_COLUMNS[3], [])
    assert col.is_empty
    assert col.empty_message == KanbanColumnView.EMPTY_MESSAGE
    assert col.request_create() is False
    assert "Done (0)" in col.render_text()


def test_column_reuses_given_cards():
    task = make_task("a")
    card = TaskCardView(task)
    col = KanbanColumnView(DEFAULT_COLUMNS[0], [task], cards={"a": card})
    assert col.cards[0] is card
