"""Task repository interface."""

from typing import Protocol

from atelier.core.todos import Subtask, Task


class TaskRepository(Protocol):
    """Interface for reading and writing tasks in any backend."""

    def fetch_all(self) -> list[Task]:
        """Fetch all tasks with their subtasks attached."""
        ...

    def set_completed(self, task_id: str, completed: bool) -> Task:
        """Set a task's completed flag. Returns the stored task."""
        ...

    def create_task(self, task: Task) -> Task:
        """Insert a new task. Returns it with id and created_at filled in."""
        ...

    def update_task(self, task_id: str, task: Task) -> Task:
        """Overwrite a task's writable fields."""
        ...

    def delete_task(self, task_id: str) -> None:
        """Delete a task."""
        ...

    def fetch_subtasks(self, task_id: str) -> list[Subtask]:
        """Subtasks of one task, in sort order."""
        ...

    def create_subtask(self, task_id: str, title: str, sort_order: int) -> Subtask:
        """Insert a subtask at the given position."""
        ...

    def set_subtask_completed(self, subtask_id: str, completed: bool) -> Subtask:
        """Set a subtask's completed flag."""
        ...
