"""Ports - interfaces/protocols for external dependencies."""

from .task_repo import TaskRepository
from .document_repo import DocumentRepository
from .settings_repo import SettingsRepository

__all__ = [
    "TaskRepository",
    "DocumentRepository",
    "SettingsRepository",
]
