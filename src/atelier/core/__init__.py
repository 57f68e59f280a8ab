"""Functional core - pure business logic with no I/O."""

from .money import (
    DocumentKind,
    FinancialDocument,
    LineItem,
    Manual,
    RateDriven,
    apply_manual_tax,
    apply_tax_rate,
    recompute_item,
    subtotal,
    total,
)
from .todos import (
    SortOption,
    Task,
    TodoView,
    build_successor,
    filter_tasks,
    sort_tasks,
    visible_tasks,
)
from .dashboard import DashboardStats, assemble_dashboard

__all__ = [
    # Money
    "DocumentKind",
    "FinancialDocument",
    "LineItem",
    "Manual",
    "RateDriven",
    "apply_manual_tax",
    "apply_tax_rate",
    "recompute_item",
    "subtotal",
    "total",
    # Todos
    "SortOption",
    "Task",
    "TodoView",
    "build_successor",
    "filter_tasks",
    "sort_tasks",
    "visible_tasks",
    # Dashboard
    "DashboardStats",
    "assemble_dashboard",
]
