"""PostgREST adapter - HTTP client for the hosted relational store (e.g. Supabase)."""

import logging
from datetime import datetime, timezone, tzinfo

import requests

from atelier.config import BusinessSettings, Config, load_config
from atelier.core.dashboard import Client, Expense, Project, TimeEntry
from atelier.core.money import DocumentKind, FinancialDocument
from atelier.core.todos import Subtask, Task, group_subtasks

logger = logging.getLogger(__name__)

REST_PATH = "/rest/v1"
TABLES = {
    DocumentKind.INVOICE: "invoices",
    DocumentKind.QUOTATION: "quotations",
}


class StoreError(Exception):
    """Raised when the store request fails."""

    pass


class ConfigurationError(StoreError):
    """Raised when the store URL or key is missing."""

    pass


class PostgrestAdapter:
    """
    PostgREST adapter.

    Implements TaskRepository, DocumentRepository and SettingsRepository.
    Maps rows to core types. No business logic - just I/O.
    """

    def __init__(
        self,
        config: Config | None = None,
        session: requests.Session | None = None,
        tz: tzinfo | None = None,
    ):
        self.config = config or load_config()
        if not self.config.api_url or not self.config.api_key:
            raise ConfigurationError(
                "Missing store credentials. Set API_URL and API_KEY in config/atelier.conf"
            )
        self.base_url = self.config.api_url.rstrip("/") + REST_PATH
        self.tz = tz if tz is not None else self.config.tzinfo
        self._session = session or requests.Session()
        self._session.headers.update(
            {
                "apikey": self.config.api_key,
                "Authorization": f"Bearer {self.config.api_key}",
                "Content-Type": "application/json",
            }
        )

    def _request(
        self,
        method: str,
        table: str,
        params: dict | None = None,
        payload: dict | None = None,
        prefer: str | None = None,
    ) -> list[dict]:
        """Make a request against a table and return the decoded rows."""
        headers = {"Prefer": prefer} if prefer else None
        logger.debug(f"{method} {table} params={params}")
        try:
            resp = self._session.request(
                method,
                f"{self.base_url}/{table}",
                params=params,
                json=payload,
                headers=headers,
            )
            resp.raise_for_status()
        except requests.RequestException as e:
            raise StoreError(f"{method} {table} failed: {e}") from e
        if not resp.content:
            return []
        return resp.json()

    def _select(self, table: str, **params) -> list[dict]:
        return self._request("GET", table, params={"select": "*", **params})

    def _insert(self, table: str, payload: dict) -> dict:
        rows = self._request("POST", table, payload=payload, prefer="return=representation")
        return _single(rows, table)

    def _update(self, table: str, row_id: str, payload: dict) -> dict:
        rows = self._request(
            "PATCH",
            table,
            params={"id": f"eq.{row_id}"},
            payload=payload,
            prefer="return=representation",
        )
        return _single(rows, table)

    def _delete(self, table: str, row_id: str) -> None:
        self._request("DELETE", table, params={"id": f"eq.{row_id}"})

    def _write_tz(self) -> tzinfo:
        """Zone attached to local due dates on write; the system zone when none is configured."""
        return self.tz if self.tz is not None else datetime.now().astimezone().tzinfo

    # ============== Tasks ==============

    def fetch_all(self) -> list[Task]:
        """Fetch all tasks with subtasks, in the store's default order."""
        rows = self._select(
            "todos", order="completed.asc,due_date.asc.nullslast,created_at.desc"
        )
        try:
            subtask_rows = self._select("subtasks", order="sort_order.asc")
        except StoreError as e:
            # Tasks are still usable without their checklists
            logger.warning(f"Could not load subtasks: {e}")
            subtask_rows = []
        by_task = group_subtasks([Subtask.from_row(r) for r in subtask_rows])
        return [Task.from_row(r, by_task.get(r["id"], []), self.tz) for r in rows]

    def set_completed(self, task_id: str, completed: bool) -> Task:
        row = self._update(
            "todos", task_id, {"completed": completed, "updated_at": _now_iso()}
        )
        return Task.from_row(row, tz=self.tz)

    def create_task(self, task: Task) -> Task:
        row = self._insert("todos", task.to_row(self._write_tz()))
        return Task.from_row(row, tz=self.tz)

    def update_task(self, task_id: str, task: Task) -> Task:
        payload = {**task.to_row(self._write_tz()), "updated_at": _now_iso()}
        row = self._update("todos", task_id, payload)
        return Task.from_row(row, tz=self.tz)

    def delete_task(self, task_id: str) -> None:
        self._delete("todos", task_id)

    def fetch_subtasks(self, task_id: str) -> list[Subtask]:
        rows = self._select("subtasks", todo_id=f"eq.{task_id}", order="sort_order.asc")
        return [Subtask.from_row(r) for r in rows]

    def create_subtask(self, task_id: str, title: str, sort_order: int) -> Subtask:
        row = self._insert(
            "subtasks",
            {"todo_id": task_id, "title": title, "completed": False, "sort_order": sort_order},
        )
        return Subtask.from_row(row)

    def set_subtask_completed(self, subtask_id: str, completed: bool) -> Subtask:
        return Subtask.from_row(self._update("subtasks", subtask_id, {"completed": completed}))

    # ============== Invoices & quotations ==============

    def fetch_documents(self, kind: DocumentKind) -> list[FinancialDocument]:
        rows = self._select(TABLES[kind], order="created_at.desc")
        return [FinancialDocument.from_row(kind, r) for r in rows]

    def fetch_document(self, kind: DocumentKind, document_id: str) -> FinancialDocument:
        rows = self._select(TABLES[kind], id=f"eq.{document_id}")
        return FinancialDocument.from_row(kind, _single(rows, TABLES[kind]))

    def save_document(self, document: FinancialDocument) -> FinancialDocument:
        table = TABLES[document.kind]
        payload = document.to_row()
        if document.id:
            row = self._update(table, document.id, {**payload, "updated_at": _now_iso()})
        else:
            row = self._insert(table, payload)
        return FinancialDocument.from_row(document.kind, row)

    def update_document_fields(
        self, kind: DocumentKind, document_id: str, fields: dict
    ) -> FinancialDocument:
        row = self._update(TABLES[kind], document_id, fields)
        return FinancialDocument.from_row(kind, row)

    # ============== Other entities ==============

    def fetch_settings(self) -> BusinessSettings:
        """Fetch the settings row. Falls back to the local config if it cannot be read."""
        try:
            rows = self._select("settings", id="eq.1")
        except StoreError as e:
            logger.error(f"Settings fetch error: {e}")
            return self.config.settings
        if not rows:
            return self.config.settings
        return BusinessSettings.from_row(rows[0])

    def fetch_projects(self) -> list[Project]:
        return [Project.from_row(r) for r in self._select("projects", order="created_at.asc")]

    def fetch_clients(self) -> list[Client]:
        return [Client.from_row(r) for r in self._select("clients", order="name.asc")]

    def fetch_expenses(self) -> list[Expense]:
        return [Expense.from_row(r) for r in self._select("expenses", order="date.desc")]

    def fetch_time_entries(self) -> list[TimeEntry]:
        return [TimeEntry.from_row(r) for r in self._select("time_entries", order="date.desc")]


def _single(rows: list[dict], table: str) -> dict:
    if not rows:
        raise StoreError(f"No row returned from {table}")
    return rows[0]


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()
