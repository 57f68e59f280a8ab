"""Shared workflow layer between the CLI and the store.

Each function coordinates core logic with a repository: the core decides,
the repository persists.
"""

import logging
import random
from dataclasses import dataclass, replace
from datetime import date, datetime, timedelta

from .adapters.postgrest import PostgrestAdapter
from .config import Config
from .core.dashboard import DashboardStats, assemble_dashboard
from .core.money import DocumentKind, FinancialDocument, generate_document_number, new_document
from .core.todos import (
    AllView,
    Subtask,
    Task,
    TodoView,
    build_successor,
    needs_successor,
    next_sort_order,
    quick_add_task,
    with_association_names,
)
from .ports import DocumentRepository, SettingsRepository, TaskRepository

logger = logging.getLogger(__name__)


def get_repository(config: Config) -> PostgrestAdapter:
    """Build the store adapter from config."""
    return PostgrestAdapter(config)


# ============== Tasks ==============


@dataclass
class ToggleResult:
    """
    Outcome of a completion change.

    task is the stored task after the change. successor is the next
    occurrence of a recurring task, if one was created; successor_error
    holds the failure if creating it did not succeed. The completion
    itself stands either way.
    """

    task: Task
    successor: Task | None = None
    successor_error: Exception | None = None


def set_task_completed(repo: TaskRepository, task: Task, completed: bool) -> ToggleResult:
    """Mark a task done/undone, then spawn the next occurrence of a recurring task."""
    stored = repo.set_completed(task.id, completed)
    result = ToggleResult(task=stored)

    if not needs_successor(stored, was_completed=task.completed):
        return result

    try:
        result.successor = repo.create_task(build_successor(stored))
        logger.info(f"Created next occurrence of {stored.title!r} due {result.successor.due_date}")
    except Exception as e:
        logger.warning(f"Task {stored.id} completed but next occurrence was not created: {e}")
        result.successor_error = e
    return result


def toggle_task(repo: TaskRepository, task: Task) -> ToggleResult:
    return set_task_completed(repo, task, not task.completed)


def complete_tasks(repo: TaskRepository, tasks: list[Task]) -> list[ToggleResult]:
    """Bulk complete, one task at a time."""
    return [set_task_completed(repo, t, True) for t in tasks]


def quick_add(
    repo: TaskRepository,
    title: str,
    view: TodoView = AllView(),
    now: datetime | None = None,
) -> Task:
    return repo.create_task(quick_add_task(title, view, now))


def save_task(
    repo: TaskRepository,
    task: Task,
    client_names: dict[str, str],
    project_names: dict[str, str],
) -> Task:
    """Create (no id) or update a task, resolving client/project names from ids."""
    task = with_association_names(task, client_names, project_names)
    if task.id:
        return repo.update_task(task.id, task)
    return repo.create_task(task)


def add_subtask(repo: TaskRepository, task_id: str, title: str) -> Subtask:
    """Append a subtask after the task's existing ones."""
    existing = repo.fetch_subtasks(task_id)
    return repo.create_subtask(task_id, title.strip(), next_sort_order(existing))


def check_subtask(repo: TaskRepository, subtask_id: str, completed: bool = True) -> Subtask:
    subtask = repo.set_subtask_completed(subtask_id, completed)
    logger.debug(f"Subtask {subtask.id} completed={subtask.completed}")
    return subtask


# ============== Invoices & quotations ==============


def start_document(
    settings_repo: SettingsRepository,
    kind: DocumentKind,
    use_default_tax: bool = True,
    today: date | None = None,
    rng: random.Random | None = None,
) -> FinancialDocument:
    """Blank invoice/quotation, seeded with the business default tax rate."""
    settings = settings_repo.fetch_settings()
    rate = settings.default_tax_rate if use_default_tax else None
    return new_document(kind, default_tax_rate=rate, today=today, rng=rng)


def convert_quotation(
    repo: DocumentRepository,
    quotation: FinancialDocument,
    due_days: int = 7,
    today: date | None = None,
    rng: random.Random | None = None,
) -> FinancialDocument:
    """
    Turn a quotation into a draft invoice, then mark the quotation accepted.

    Items and tax setting carry over, so the invoice totals equal the
    quotation's.
    """
    if quotation.kind is not DocumentKind.QUOTATION:
        raise ValueError("Only quotations can be converted")
    today = today or date.today()
    invoice = replace(
        quotation,
        kind=DocumentKind.INVOICE,
        number=generate_document_number(DocumentKind.INVOICE, today, rng),
        items=list(quotation.items),
        status="draft",
        id=None,
        due_date=today + timedelta(days=due_days),
        created_at=None,
        paid_at=None,
    )
    saved = repo.save_document(invoice)
    repo.update_document_fields(DocumentKind.QUOTATION, quotation.id, {"status": "accepted"})
    logger.info(f"Converted {quotation.number} to {saved.number}")
    return saved


def mark_invoice_paid(
    repo: DocumentRepository, invoice_id: str, now: datetime | None = None
) -> FinancialDocument:
    now = now or datetime.now().astimezone()
    return repo.update_document_fields(
        DocumentKind.INVOICE, invoice_id, {"status": "paid", "paid_at": now.isoformat()}
    )


# ============== Dashboard ==============


def load_dashboard(repo: PostgrestAdapter, as_of: date | None = None) -> DashboardStats:
    """Fetch everything the overview needs and aggregate it."""
    return assemble_dashboard(
        projects=repo.fetch_projects(),
        clients=repo.fetch_clients(),
        invoices=repo.fetch_documents(DocumentKind.INVOICE),
        expenses=repo.fetch_expenses(),
        time_entries=repo.fetch_time_entries(),
        as_of=as_of,
    )
