"""Business overview aggregates - no I/O dependencies."""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from .dates import parse_date
from .money import ZERO, FinancialDocument, round_half_up, to_number


@dataclass
class Project:
    id: str
    name: str
    status: str = "pending"
    client_id: str | None = None
    client_name: str | None = None
    budget: Decimal = ZERO
    deadline: date | None = None

    @property
    def is_active(self) -> bool:
        return self.status == "in-progress"

    @classmethod
    def from_row(cls, data: dict) -> "Project":
        return cls(
            id=data["id"],
            name=data.get("name") or "",
            status=data.get("status") or "pending",
            client_id=data.get("client_id"),
            client_name=data.get("client_name"),
            budget=to_number(data.get("budget")),
            deadline=parse_date(data.get("deadline")),
        )


@dataclass
class Client:
    id: str
    name: str
    email: str = ""
    company: str = ""

    @classmethod
    def from_row(cls, data: dict) -> "Client":
        return cls(
            id=data["id"],
            name=data.get("name") or "",
            email=data.get("email") or "",
            company=data.get("company") or "",
        )


@dataclass
class Expense:
    id: str
    description: str
    amount: Decimal
    category: str
    date: date | None

    @classmethod
    def from_row(cls, data: dict) -> "Expense":
        return cls(
            id=data["id"],
            description=data.get("description") or "",
            amount=to_number(data.get("amount")),
            category=data.get("category") or "",
            date=parse_date(data.get("date")),
        )


@dataclass
class TimeEntry:
    id: str
    project_id: str | None
    description: str
    hours: Decimal
    date: date | None

    @classmethod
    def from_row(cls, data: dict) -> "TimeEntry":
        return cls(
            id=data["id"],
            project_id=data.get("project_id"),
            description=data.get("description") or "",
            hours=to_number(data.get("hours")),
            date=parse_date(data.get("date")),
        )


@dataclass
class DashboardStats:
    total_projects: int
    active_projects: int
    total_clients: int
    total_revenue: Decimal
    total_expenses: Decimal
    net_profit: Decimal
    pending_invoices: int
    hours_this_month: Decimal
    effective_hourly_rate: Decimal | None


def hours_in_month(entries: list[TimeEntry], as_of: date) -> Decimal:
    """Hours logged in the calendar month containing as_of."""
    return sum(
        (
            e.hours
            for e in entries
            if e.date and e.date.year == as_of.year and e.date.month == as_of.month
        ),
        ZERO,
    )


def assemble_dashboard(
    projects: list[Project],
    clients: list[Client],
    invoices: list[FinancialDocument],
    expenses: list[Expense],
    time_entries: list[TimeEntry],
    as_of: date | None = None,
) -> DashboardStats:
    """
    Derive the overview figures from fetched rows.

    Revenue counts paid invoices only. Effective hourly rate is revenue over
    this month's hours, None when no hours were logged.
    """
    as_of = as_of or date.today()
    revenue = sum((i.total for i in invoices if i.status == "paid"), ZERO)
    spent = sum((e.amount for e in expenses), ZERO)
    hours = hours_in_month(time_entries, as_of)
    return DashboardStats(
        total_projects=len(projects),
        active_projects=sum(1 for p in projects if p.is_active),
        total_clients=len(clients),
        total_revenue=revenue,
        total_expenses=spent,
        net_profit=revenue - spent,
        pending_invoices=sum(1 for i in invoices if i.status in ("draft", "sent")),
        hours_this_month=hours,
        effective_hourly_rate=round_half_up(revenue / hours) if hours > 0 else None,
    )
