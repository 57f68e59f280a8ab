"""Pure task (todo) logic - views, sorting, recurrence. No I/O dependencies."""

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, tzinfo
from enum import Enum

from dateutil.relativedelta import relativedelta

from .dates import end_of_day, parse_datetime, to_local

logger = logging.getLogger(__name__)


class Priority(Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def rank(self) -> int:
        """Sort rank: high first."""
        return {Priority.HIGH: 0, Priority.MEDIUM: 1, Priority.LOW: 2}[self]


class Recurrence(Enum):
    NONE = "none"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class SortOption(Enum):
    DUE_DATE = "due_date"
    PRIORITY = "priority"
    CREATED_AT = "created_at"
    TITLE = "title"


@dataclass(frozen=True)
class Label:
    id: str
    name: str


TODO_LABELS = [
    Label("urgent", "Urgent"),
    Label("important", "Important"),
    Label("review", "Review"),
    Label("meeting", "Meeting"),
    Label("design", "Design"),
    Label("development", "Development"),
    Label("bug", "Bug"),
    Label("feature", "Feature"),
]
LABELS_BY_ID = {label.id: label for label in TODO_LABELS}


def label_names(label_ids: list[str]) -> list[str]:
    """Display names for label ids; ids outside the catalogue are shown as-is."""
    return [LABELS_BY_ID[i].name if i in LABELS_BY_ID else i for i in label_ids]


def _enum_from_row(enum_cls, value, default):
    """Enum member for a stored value, falling back to default for unknown values."""
    if not value:
        return default
    try:
        return enum_cls(value)
    except ValueError:
        logger.warning(f"Unknown {enum_cls.__name__.lower()} {value!r}, using {default.value!r}")
        return default


@dataclass
class Subtask:
    """A checklist entry owned by a single task."""

    id: str
    todo_id: str
    title: str
    completed: bool = False
    sort_order: int = 0
    created_at: datetime | None = None

    @classmethod
    def from_row(cls, data: dict) -> "Subtask":
        return cls(
            id=data["id"],
            todo_id=data["todo_id"],
            title=data.get("title") or "",
            completed=bool(data.get("completed")),
            sort_order=data.get("sort_order") or 0,
            created_at=parse_datetime(data.get("created_at")),
        )


@dataclass
class Task:
    """
    A todo item.

    due_date and created_at are naive local datetimes. client_name and
    project_name are denormalized copies used for search and display.
    """

    id: str | None
    title: str
    description: str | None = None
    priority: Priority = Priority.MEDIUM
    due_date: datetime | None = None
    completed: bool = False
    recurring: Recurrence = Recurrence.NONE
    labels: list[str] = field(default_factory=list)
    client_id: str | None = None
    client_name: str | None = None
    project_id: str | None = None
    project_name: str | None = None
    subtasks: list[Subtask] = field(default_factory=list)
    created_at: datetime | None = None

    @property
    def is_recurring(self) -> bool:
        return self.recurring is not Recurrence.NONE

    def is_overdue(self, now: datetime | None = None) -> bool:
        """Incomplete and due before now."""
        now = now or datetime.now()
        return not self.completed and self.due_date is not None and self.due_date < now

    def is_due_on(self, now: datetime | None = None) -> bool:
        """Due on the same calendar day as now."""
        now = now or datetime.now()
        return self.due_date is not None and self.due_date.date() == now.date()

    def subtask_progress(self) -> tuple[int, int]:
        """(completed, total) subtasks."""
        done = sum(1 for s in self.subtasks if s.completed)
        return done, len(self.subtasks)

    @classmethod
    def from_row(
        cls, data: dict, subtasks: list[Subtask] | None = None, tz: tzinfo | None = None
    ) -> "Task":
        """Create Task from a stored row."""
        return cls(
            id=data["id"],
            title=data.get("title") or "",
            description=data.get("description"),
            priority=_enum_from_row(Priority, data.get("priority"), Priority.MEDIUM),
            due_date=to_local(parse_datetime(data.get("due_date")), tz),
            completed=bool(data.get("completed")),
            recurring=_enum_from_row(Recurrence, data.get("recurring"), Recurrence.NONE),
            labels=list(data.get("labels") or []),
            client_id=data.get("client_id"),
            client_name=data.get("client_name"),
            project_id=data.get("project_id"),
            project_name=data.get("project_name"),
            subtasks=subtasks or [],
            created_at=to_local(parse_datetime(data.get("created_at")), tz),
        )

    def to_row(self, tz: tzinfo | None = None) -> dict:
        """
        Writable fields as a row payload (no id, timestamps or subtasks).

        A timed due date is written with the offset of tz so the store reads
        back the same local time; without tz it is written naive.
        """
        due = None
        if self.due_date is not None:
            # Midnight means a date-only due date
            if self.due_date.time() == datetime.min.time():
                due = self.due_date.date().isoformat()
            elif tz is not None:
                due = self.due_date.replace(tzinfo=tz).isoformat()
            else:
                due = self.due_date.isoformat()
        return {
            "title": self.title,
            "description": self.description,
            "client_id": self.client_id,
            "client_name": self.client_name,
            "project_id": self.project_id,
            "project_name": self.project_name,
            "priority": self.priority.value,
            "due_date": due,
            "completed": self.completed,
            "recurring": self.recurring.value,
            "labels": list(self.labels),
        }


# ============== Views ==============


@dataclass(frozen=True)
class AllView:
    pass


@dataclass(frozen=True)
class TodayView:
    pass


@dataclass(frozen=True)
class UpcomingView:
    pass


@dataclass(frozen=True)
class PriorityView:
    level: Priority


@dataclass(frozen=True)
class ProjectView:
    id: str


@dataclass(frozen=True)
class ClientView:
    id: str


@dataclass(frozen=True)
class LabelView:
    id: str


TodoView = AllView | TodayView | UpcomingView | PriorityView | ProjectView | ClientView | LabelView


def parse_view(text: str) -> TodoView:
    """
    Parse a view selector such as 'today', 'high', 'priority:low',
    'project:<id>', 'client:<id>' or 'label:<id>'.
    """
    kind, _, arg = text.strip().partition(":")
    kind = kind.lower()
    match kind:
        case "all" | "":
            return AllView()
        case "today":
            return TodayView()
        case "upcoming":
            return UpcomingView()
        case "high" | "medium" | "low":
            return PriorityView(Priority(kind))
        case "priority":
            return PriorityView(Priority(arg.lower() or "high"))
        case "project" if arg:
            return ProjectView(arg)
        case "client" if arg:
            return ClientView(arg)
        case "label" if arg.lower() in LABELS_BY_ID:
            return LabelView(arg.lower())
    raise ValueError(f"Unknown view: {text!r}")


def matches_search(task: Task, query: str) -> bool:
    """Case-insensitive substring match on title, description, client and project names."""
    if not query:
        return True
    query = query.lower()
    fields = (task.title, task.description, task.client_name, task.project_name)
    return any(f and query in f.lower() for f in fields)


def matches_view(task: Task, view: TodoView, now: datetime | None = None) -> bool:
    """Whether a task belongs in the given view. Completed tasks are not excluded."""
    now = now or datetime.now()
    match view:
        case AllView():
            return True
        case TodayView():
            return task.is_due_on(now)
        case UpcomingView():
            return task.due_date is not None and task.due_date > end_of_day(now.date())
        case PriorityView(level=level):
            return task.priority is level
        case ProjectView(id=project_id):
            return task.project_id == project_id
        case ClientView(id=client_id):
            return task.client_id == client_id
        case LabelView(id=label_id):
            return label_id in (task.labels or [])
    raise TypeError(f"Unsupported view: {view!r}")


def filter_tasks(
    tasks: list[Task], view: TodoView, query: str = "", now: datetime | None = None
) -> list[Task]:
    """Search first, then the view predicate. Input order is preserved."""
    now = now or datetime.now()
    return [t for t in tasks if matches_search(t, query) and matches_view(t, view, now)]


def _sort_key(option: SortOption):
    match option:
        case SortOption.DUE_DATE:
            # Tasks without a due date go after all dated ones
            return lambda t: (t.due_date is None, t.due_date or datetime.min)
        case SortOption.PRIORITY:
            return lambda t: t.priority.rank
        case SortOption.CREATED_AT:
            # Newest first; missing timestamps last
            return lambda t: -t.created_at.timestamp() if t.created_at else float("inf")
        case SortOption.TITLE:
            return lambda t: (t.title.casefold(), t.title)
    raise TypeError(f"Unsupported sort option: {option!r}")


def sort_tasks(tasks: list[Task], option: SortOption = SortOption.DUE_DATE) -> list[Task]:
    """
    Stable sort: incomplete before completed, then by the chosen field.

    Pure function - returns a new list.
    """
    secondary = _sort_key(option)
    return sorted(tasks, key=lambda t: (t.completed, secondary(t)))


def visible_tasks(
    tasks: list[Task],
    view: TodoView = AllView(),
    query: str = "",
    sort: SortOption = SortOption.DUE_DATE,
    now: datetime | None = None,
) -> list[Task]:
    """The ordered list to display for a view/search/sort selection."""
    return sort_tasks(filter_tasks(tasks, view, query, now), sort)


# ============== Recurrence ==============


def next_due_date(due: datetime, recurring: Recurrence) -> datetime | None:
    """Advance a due date by one recurrence period. None for non-recurring tasks."""
    match recurring:
        case Recurrence.DAILY:
            return due + timedelta(days=1)
        case Recurrence.WEEKLY:
            return due + timedelta(days=7)
        case Recurrence.MONTHLY:
            # Clamps to the last day of shorter months
            return due + relativedelta(months=1)
        case Recurrence.NONE:
            return None
    raise TypeError(f"Unsupported recurrence: {recurring!r}")


def needs_successor(task: Task, was_completed: bool) -> bool:
    """A successor is due when a dated recurring task goes from open to done."""
    return (
        not was_completed
        and task.completed
        and task.is_recurring
        and task.due_date is not None
    )


def build_successor(task: Task) -> Task:
    """
    The next occurrence of a recurring task.

    Copies the task's content and associations; the copy is open, has no
    id, subtasks or creation time, and is due one period later.
    """
    if not task.is_recurring or task.due_date is None:
        raise ValueError("Only dated recurring tasks have a successor")
    return replace(
        task,
        id=None,
        completed=False,
        due_date=next_due_date(task.due_date, task.recurring),
        labels=list(task.labels),
        subtasks=[],
        created_at=None,
    )


# ============== Stats, quick add, subtasks ==============


@dataclass
class TaskStats:
    pending: int
    completed: int
    overdue: int
    due_today: int


def task_stats(tasks: list[Task], now: datetime | None = None) -> TaskStats:
    now = now or datetime.now()
    return TaskStats(
        pending=sum(1 for t in tasks if not t.completed),
        completed=sum(1 for t in tasks if t.completed),
        overdue=sum(1 for t in tasks if t.is_overdue(now)),
        due_today=sum(1 for t in tasks if not t.completed and t.is_due_on(now)),
    )


def quick_add_task(title: str, view: TodoView = AllView(), now: datetime | None = None) -> Task:
    """A new open task from a bare title, pre-filled from the current view."""
    title = title.strip()
    if not title:
        raise ValueError("Task title is required")
    task = Task(id=None, title=title)
    match view:
        case ProjectView(id=project_id):
            task.project_id = project_id
        case ClientView(id=client_id):
            task.client_id = client_id
        case TodayView():
            task.due_date = now or datetime.now()
    return task


def with_association_names(
    task: Task, client_names: dict[str, str], project_names: dict[str, str]
) -> Task:
    """Fill client_name/project_name from their ids."""
    return replace(
        task,
        client_name=client_names.get(task.client_id) if task.client_id else None,
        project_name=project_names.get(task.project_id) if task.project_id else None,
    )


def next_sort_order(subtasks: list[Subtask]) -> int:
    """Position for a new subtask: after the current last one, 0 when empty."""
    if not subtasks:
        return 0
    return max(s.sort_order for s in subtasks) + 1


def group_subtasks(subtasks: list[Subtask]) -> dict[str, list[Subtask]]:
    """Group subtasks by owning task, each group in sort_order."""
    grouped: dict[str, list[Subtask]] = {}
    for subtask in sorted(subtasks, key=lambda s: s.sort_order):
        grouped.setdefault(subtask.todo_id, []).append(subtask)
    return grouped
