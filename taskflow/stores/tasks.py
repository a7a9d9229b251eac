"""Task store — tasks on the remote service, or in the local store as fallback."""

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from ..errors import TaskflowError
from ..gateway.remote import RequestOptions
from ..types import Backend, Result, Task, TaskPriority, TaskStatus, utc_now_iso
from ._base import DualBackendStore, Routed, payload_field

logger = logging.getLogger(__name__)

# The service paginates; ask for everything in one page.
REMOTE_PAGE_LIMIT = 1000

_EDITABLE_FIELDS = {
    "title": "title",
    "description": "description",
    "category": "category",
    "priority": "priority",
    "status": "status",
    "tags": "tags",
    "dueDate": "dueDate",
    "due_date": "dueDate",
}

_PRIORITY_ORDER = {"urgent": 0, "high": 1, "medium": 2, "low": 3}


def _normalize_changes(changes: Dict[str, Any]) -> Dict[str, Any]:
    """Map caller fields to wire names and check enum values.

    Raises:
        ValueError: On unknown fields, an empty title or bad enum values.
    """
    wire: Dict[str, Any] = {}
    for key, value in changes.items():
        if key not in _EDITABLE_FIELDS:
            raise ValueError(f"Unknown task field '{key}'")
        if isinstance(value, (TaskPriority, TaskStatus)):
            value = value.value
        wire[_EDITABLE_FIELDS[key]] = value

    if "title" in wire:
        if not isinstance(wire["title"], str) or not wire["title"].strip():
            raise ValueError("Task title is required")
        wire["title"] = wire["title"].strip()
    if "priority" in wire:
        TaskPriority(wire["priority"])
    if "status" in wire:
        TaskStatus(wire["status"])
    return wire


def _apply_changes(task: Task, wire: Dict[str, Any]) -> Task:
    merged = task.to_dict()
    previous_status = merged["status"]
    merged.update(wire)
    now = utc_now_iso()
    merged["updatedAt"] = now
    if merged["status"] != previous_status:
        merged["completedAt"] = now if merged["status"] == TaskStatus.COMPLETED.value else None
    return Task.from_dict(merged)


class TaskStore(DualBackendStore):
    """Tasks of the current user.

    Holds the working set (``tasks``) that callers render. After each
    operation it is replaced by what the path that served the operation
    returned, remote or local.
    """

    domain = "tasks"

    def __init__(self, *args: Any, **kwargs: Any):
        super().__init__(*args, **kwargs)
        self._tasks: List[Task] = []
        self._source: Optional[Backend] = None

    @property
    def tasks(self) -> List[Task]:
        return list(self._tasks)

    @property
    def source(self) -> Optional[Backend]:
        """Which path produced the current working set."""
        return self._source

    # === Remote path ===

    async def _remote_list(self, token: Optional[str]) -> Result:
        result = await self._gateway.fetch_resource(
            "/tasks",
            RequestOptions(token=token, params={"page": 1, "limit": REMOTE_PAGE_LIMIT}),
        )
        if not result:
            return result
        try:
            records = payload_field(result.data, "tasks")
            if not isinstance(records, list):
                return Result.fail("Malformed response: no 'tasks' array")
            return Result.ok([Task.from_dict(r) for r in records])
        except (TaskflowError, ValueError) as exc:
            return Result.fail(f"Malformed response: {exc}")

    async def _remote_entity(self, method: str, path: str, body: Any, token: Optional[str]) -> Result:
        result = await self._gateway.mutate_resource(method, path, body=body, token=token)
        if not result:
            return result
        record = payload_field(result.data, "task")
        return Result.ok(Task.from_dict(record))

    async def _adopt_remote(self, task: Optional[Task], removed_id: Optional[str] = None) -> None:
        """Fold one remote change into the working set.

        A working set that came from the local store is first replaced by a
        remote listing so the set never mixes both paths.
        """
        if self._source is not Backend.REMOTE:
            listing = await self._remote_list(self._auth.current_credential())
            if listing:
                self._tasks = listing.data
                self._source = Backend.REMOTE
                return
            logger.debug(f"Could not relist after remote change: {listing.error}")
            self._tasks = []
            self._source = Backend.REMOTE

        if removed_id is not None:
            self._tasks = [t for t in self._tasks if t.id != removed_id]
        if task is not None:
            self._tasks = [t for t in self._tasks if t.id != task.id] + [task]

    # === Local path ===

    def _read_local(self) -> List[Task]:
        return self._local.read_entities(self._namespace(), Task.from_dict)

    def _write_local(self, tasks: List[Task]) -> None:
        self._local.write_collection(self._namespace(), [t.to_dict() for t in tasks])
        self._tasks = tasks
        self._source = Backend.LOCAL

    def _local_list(self) -> Result:
        tasks = self._read_local()
        self._tasks = tasks
        self._source = Backend.LOCAL
        return Result.ok(list(tasks))

    def _local_create(self, wire: Dict[str, Any]) -> Result:
        tasks = self._read_local()
        record = dict(wire)
        record["id"] = uuid.uuid4().hex[:12]
        record["userId"] = self._auth.current_user_id()
        if record.get("status") == TaskStatus.COMPLETED.value:
            record["completedAt"] = utc_now_iso()
        task = Task.from_dict(record)
        self._write_local(tasks + [task])
        return Result.ok(task)

    def _local_update(self, task_id: str, wire: Dict[str, Any]) -> Result:
        tasks = self._read_local()
        for index, task in enumerate(tasks):
            if task.id == task_id:
                updated = _apply_changes(task, wire)
                tasks[index] = updated
                self._write_local(tasks)
                return Result.ok(updated)
        return Result.fail("Task not found", status_code=404)

    def _local_delete(self, task_id: str) -> Result:
        tasks = self._read_local()
        remaining = [t for t in tasks if t.id != task_id]
        if len(remaining) == len(tasks):
            return Result.fail("Task not found", status_code=404)
        self._write_local(remaining)
        return Result.ok(task_id)

    # === Public operations ===

    async def list_tasks(self) -> Result:
        """Load the working set. ``data`` is a list of ``Task``."""
        async def remote(token: Optional[str]) -> Result:
            result = await self._remote_list(token)
            if result:
                self._tasks = result.data
                self._source = Backend.REMOTE
            return result

        routed = await self._route("list", remote, self._local_list)
        return routed.result

    load = list_tasks

    def get_task(self, task_id: str) -> Optional[Task]:
        """Task from the working set, or None."""
        for task in self._tasks:
            if task.id == task_id:
                return task
        return None

    async def create_task(self, data: Dict[str, Any]) -> Result:
        """Create a task. ``data`` needs at least a ``title``."""
        routed = await self.route_create(data)
        return routed.result

    async def update_task(self, task_id: str, changes: Dict[str, Any]) -> Result:
        try:
            wire = _normalize_changes(changes)
        except ValueError as exc:
            return Result.fail(f"Invalid task: {exc}")

        async def remote(token: Optional[str]) -> Result:
            result = await self._remote_entity("PUT", f"/tasks/{task_id}", wire, token)
            if result:
                await self._adopt_remote(result.data)
            return result

        routed = await self._route("update", remote, lambda: self._local_update(task_id, wire))
        return routed.result

    async def delete_task(self, task_id: str) -> Result:
        """Delete a task. ``data`` is the deleted id."""
        async def remote(token: Optional[str]) -> Result:
            result = await self._gateway.mutate_resource("DELETE", f"/tasks/{task_id}", token=token)
            if result:
                await self._adopt_remote(None, removed_id=task_id)
                return Result.ok(task_id)
            return result

        routed = await self._route("delete", remote, lambda: self._local_delete(task_id))
        return routed.result

    async def toggle_task_status(self, task_id: str) -> Result:
        """Flip a task between completed and pending."""
        async def remote(token: Optional[str]) -> Result:
            current = self.get_task(task_id) if self._source is Backend.REMOTE else None
            if current is None:
                fetched = await self._gateway.fetch_resource(
                    f"/tasks/{task_id}", RequestOptions(token=token)
                )
                if not fetched:
                    return fetched
                current = Task.from_dict(payload_field(fetched.data, "task"))
            body = {"status": _toggled(current.status).value}
            result = await self._remote_entity("PUT", f"/tasks/{task_id}", body, token)
            if result:
                await self._adopt_remote(result.data)
            return result

        def local() -> Result:
            for task in self._read_local():
                if task.id == task_id:
                    return self._local_update(task_id, {"status": _toggled(task.status).value})
            return Result.fail("Task not found", status_code=404)

        routed = await self._route("toggle", remote, local)
        return routed.result

    async def route_create(self, data: Dict[str, Any]) -> Routed:
        """``create_task`` variant that also reports which path served it."""
        if "title" not in data:
            return Routed(Backend.LOCAL, Result.fail("Invalid task: Task title is required"))
        try:
            wire = _normalize_changes(data)
        except ValueError as exc:
            return Routed(Backend.LOCAL, Result.fail(f"Invalid task: {exc}"))
        wire.setdefault("priority", TaskPriority.MEDIUM.value)
        wire.setdefault("status", TaskStatus.PENDING.value)

        async def remote(token: Optional[str]) -> Result:
            result = await self._remote_entity("POST", "/tasks", wire, token)
            if result:
                await self._adopt_remote(result.data)
            return result

        return await self._route("create", remote, lambda: self._local_create(wire))

    # === Working-set queries ===

    def filter_tasks(
        self,
        search: str = "",
        status: Optional[str] = None,
        priority: Optional[str] = None,
        category: Optional[str] = None,
        sort_by: str = "due_date",
    ) -> List[Task]:
        """Filter and sort the working set (no I/O)."""
        tasks = list(self._tasks)
        if search:
            needle = search.lower()
            tasks = [t for t in tasks if needle in t.title.lower() or needle in t.description.lower()]
        if status:
            tasks = [t for t in tasks if t.status.value == status]
        if priority:
            tasks = [t for t in tasks if t.priority.value == priority]
        if category:
            tasks = [t for t in tasks if t.category == category]

        if sort_by == "due_date":
            tasks.sort(key=lambda t: (t.due_date is None, t.due_date or ""))
        elif sort_by == "priority":
            tasks.sort(key=lambda t: _PRIORITY_ORDER[t.priority.value])
        elif sort_by == "category":
            tasks.sort(key=lambda t: t.category.lower())
        elif sort_by == "created_at":
            tasks.sort(key=lambda t: t.created_at, reverse=True)
        return tasks

    def summary(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        """Counts over the working set: pending, completed, overdue, by_category."""
        now = now or datetime.now(timezone.utc)
        stats: Dict[str, Any] = {"pending": 0, "completed": 0, "overdue": 0, "by_category": {}}
        for task in self._tasks:
            if task.completed:
                stats["completed"] += 1
            else:
                stats["pending"] += 1
                if task.is_overdue(now):
                    stats["overdue"] += 1
            stats["by_category"][task.category] = stats["by_category"].get(task.category, 0) + 1
        return stats


def _toggled(status: TaskStatus) -> TaskStatus:
    return TaskStatus.PENDING if status is TaskStatus.COMPLETED else TaskStatus.COMPLETED
