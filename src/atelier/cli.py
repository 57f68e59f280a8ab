"""Atelier CLI - freelance business desk."""

import json
import logging
import sys
from dataclasses import asdict

import click

from .adapters.postgrest import StoreError
from .config import load_config
from .core.money import (
    DocumentKind,
    FinancialDocument,
    LineItem,
    format_currency,
    json_number,
)
from .core.todos import (
    SortOption,
    Task,
    TodoView,
    label_names,
    parse_view,
    task_stats,
    visible_tasks,
)
from .workflows import (
    add_subtask,
    check_subtask,
    convert_quotation,
    get_repository,
    load_dashboard,
    mark_invoice_paid,
    quick_add,
    set_task_completed,
)

PRIORITY_MARKERS = {"high": "!!!", "medium": "!!", "low": "!"}


def _fail(message: str) -> None:
    click.echo(f"Error: {message}", err=True)
    sys.exit(1)


def _view_option(value: str) -> TodoView:
    try:
        return parse_view(value)
    except ValueError as e:
        raise click.BadParameter(str(e))


def _task_json(t: Task) -> dict:
    done, total = t.subtask_progress()
    return {
        "id": t.id,
        "title": t.title,
        "priority": t.priority.value,
        "due_date": t.due_date.isoformat() if t.due_date else None,
        "completed": t.completed,
        "recurring": t.recurring.value,
        "labels": t.labels,
        "client": t.client_name,
        "project": t.project_name,
        "subtasks": {"completed": done, "total": total},
    }


def _format_task(t: Task) -> str:
    check = "x" if t.completed else " "
    marker = PRIORITY_MARKERS[t.priority.value]
    due = f" (due {t.due_date:%Y-%m-%d})" if t.due_date else ""
    repeat = f" [{t.recurring.value}]" if t.is_recurring else ""
    done, total = t.subtask_progress()
    progress = f" {done}/{total}" if total else ""
    tags = "".join(f" #{name}" for name in label_names(t.labels))
    return f"[{check}] {marker:3} {t.title}{due}{repeat}{progress}{tags}  ({t.id})"


@click.group()
@click.version_option()
@click.option("--debug", is_flag=True, help="Enable debug logging")
def main(debug: bool):
    """Atelier - freelance business desk."""
    if debug:
        logging.basicConfig(
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            level=logging.DEBUG,
        )


@main.command()
@click.option("--view", "view_text", default="all", help="all, today, upcoming, high, project:ID, client:ID, label:ID")
@click.option("--search", "-s", default="", help="Filter by text")
@click.option(
    "--sort",
    "sort_by",
    type=click.Choice([o.value for o in SortOption]),
    default=None,
    help="Sort field (defaults to DEFAULT_SORT from config)",
)
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def todos(view_text: str, search: str, sort_by: str | None, as_json: bool):
    """List tasks for a view."""
    config = load_config()
    view = _view_option(view_text)
    try:
        sort = SortOption(sort_by or config.default_sort)
    except ValueError:
        _fail(f"Invalid DEFAULT_SORT: {config.default_sort}")
    try:
        all_tasks = get_repository(config).fetch_all()
    except StoreError as e:
        _fail(str(e))

    shown = visible_tasks(all_tasks, view, search, sort)

    if as_json:
        click.echo(json.dumps([_task_json(t) for t in shown], indent=2))
        return

    if not shown:
        click.echo("No tasks.")
        return

    for task in shown:
        click.echo(_format_task(task))


@main.command()
@click.argument("task_id")
@click.option("--undo", is_flag=True, help="Mark as not done")
def done(task_id: str, undo: bool):
    """Complete a task (creates the next occurrence of recurring tasks)."""
    config = load_config()
    try:
        repo = get_repository(config)
        task = next((t for t in repo.fetch_all() if t.id == task_id), None)
        if task is None:
            _fail(f"No task with id {task_id}")
        result = set_task_completed(repo, task, not undo)
    except StoreError as e:
        _fail(str(e))

    state = "open" if undo else "done"
    click.echo(f"{result.task.title}: {state}")
    if result.successor:
        click.echo(f"Next occurrence due {result.successor.due_date:%Y-%m-%d}")
    if result.successor_error:
        click.echo(f"Warning: next occurrence not created: {result.successor_error}", err=True)


@main.command()
@click.argument("title")
@click.option("--view", "view_text", default="all", help="Pre-fill from a view, e.g. today or project:ID")
def add(title: str, view_text: str):
    """Quick-add a task."""
    config = load_config()
    view = _view_option(view_text)
    try:
        task = quick_add(get_repository(config), title, view)
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="TITLE")
    except StoreError as e:
        _fail(str(e))
    click.echo(f"Task added: {task.title} ({task.id})")


@main.command()
@click.argument("task_id")
@click.argument("title")
def subtask(task_id: str, title: str):
    """Add a subtask to a task."""
    config = load_config()
    try:
        created = add_subtask(get_repository(config), task_id, title)
    except StoreError as e:
        _fail(str(e))
    click.echo(f"Subtask added: {created.title} (#{created.sort_order})")


@main.command()
@click.argument("subtask_id")
@click.option("--undo", is_flag=True, help="Mark as not done")
def check(subtask_id: str, undo: bool):
    """Tick off a subtask."""
    config = load_config()
    try:
        item = check_subtask(get_repository(config), subtask_id, not undo)
    except StoreError as e:
        _fail(str(e))
    click.echo(f"{item.title}: {'done' if item.completed else 'open'}")


@main.command()
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def stats(as_json: bool):
    """Pending, due today, overdue and completed counts."""
    config = load_config()
    try:
        counts = task_stats(get_repository(config).fetch_all())
    except StoreError as e:
        _fail(str(e))

    if as_json:
        click.echo(json.dumps(asdict(counts), indent=2))
        return
    click.echo(f"Pending:   {counts.pending}")
    click.echo(f"Due today: {counts.due_today}")
    click.echo(f"Overdue:   {counts.overdue}")
    click.echo(f"Completed: {counts.completed}")


@main.command()
@click.argument("items_file", type=click.File("r"))
@click.option("--tax-rate", type=str, default=None, help="Tax as a percentage of the subtotal")
@click.option("--tax", "manual_tax", type=str, default=None, help="Tax as a fixed amount")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def totals(items_file, tax_rate: str | None, manual_tax: str | None, as_json: bool):
    """Compute subtotal, tax and total for a JSON list of line items."""
    if tax_rate is not None and manual_tax is not None:
        raise click.UsageError("Use either --tax-rate or --tax, not both")
    try:
        rows = json.load(items_file)
    except json.JSONDecodeError as e:
        _fail(f"Invalid JSON: {e}")
    if not isinstance(rows, list):
        _fail("Expected a JSON list of line items")

    config = load_config()
    doc = FinancialDocument(kind=DocumentKind.INVOICE, items=[LineItem.from_row(r) for r in rows])
    if tax_rate is not None:
        doc.set_tax_rate(tax_rate)
    elif manual_tax is not None:
        doc.set_manual_tax(manual_tax)
    result = doc.totals()

    if as_json:
        click.echo(
            json.dumps(
                {
                    "subtotal": json_number(result.subtotal),
                    "tax": json_number(result.tax),
                    "total": json_number(result.total),
                },
                indent=2,
            )
        )
        return
    for item in doc.items:
        click.echo(
            f"{item.description or '-':30} {item.quantity} x "
            f"{format_currency(item.rate, config.currency)} = {format_currency(item.amount, config.currency)}"
        )
    click.echo(f"Subtotal: {format_currency(result.subtotal, config.currency)}")
    click.echo(f"Tax:      {format_currency(result.tax, config.currency)}")
    click.echo(f"Total:    {format_currency(result.total, config.currency)}")


@main.command()
@click.argument("quotation_id")
def convert(quotation_id: str):
    """Convert a quotation into a draft invoice."""
    config = load_config()
    try:
        repo = get_repository(config)
        quotation = repo.fetch_document(DocumentKind.QUOTATION, quotation_id)
        invoice = convert_quotation(repo, quotation, due_days=config.invoice_due_days)
    except StoreError as e:
        _fail(str(e))
    click.echo(
        f"Created {invoice.number} from {quotation.number}: "
        f"{format_currency(invoice.total, config.currency)}, due {invoice.due_date}"
    )


@main.command()
@click.argument("invoice_id")
def paid(invoice_id: str):
    """Mark an invoice as paid."""
    config = load_config()
    try:
        invoice = mark_invoice_paid(get_repository(config), invoice_id)
    except StoreError as e:
        _fail(str(e))
    click.echo(f"{invoice.number} marked as paid")


@main.command()
def dashboard():
    """Business overview: revenue, expenses, hours."""
    config = load_config()
    try:
        overview = load_dashboard(get_repository(config))
    except StoreError as e:
        _fail(str(e))

    currency = config.currency
    rate = overview.effective_hourly_rate
    click.echo(f"Projects:          {overview.total_projects} ({overview.active_projects} active)")
    click.echo(f"Clients:           {overview.total_clients}")
    click.echo(f"Revenue (paid):    {format_currency(overview.total_revenue, currency)}")
    click.echo(f"Expenses:          {format_currency(overview.total_expenses, currency)}")
    click.echo(f"Net profit:        {format_currency(overview.net_profit, currency)}")
    click.echo(f"Pending invoices:  {overview.pending_invoices}")
    click.echo(f"Hours this month:  {overview.hours_this_month:.1f}")
    click.echo(f"Hourly rate:       {format_currency(rate, currency) if rate is not None else 'N/A'}")


if __name__ == "__main__":
    main()
