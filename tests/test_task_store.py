"""Tests for taskflow.stores.tasks module."""

from datetime import datetime, timezone

import pytest

from taskflow.storage import FileKeyValueBackend, LocalStore, MemoryKeyValueBackend
from taskflow.stores import TaskStore
from taskflow.types import Backend, TaskStatus


def _comparable(task):
    data = task.to_dict()
    for volatile in ("id", "createdAt", "updatedAt"):
        data.pop(volatile)
    return data


class OfflineAuth:
    """Capability stub: a signed-in user without a remote credential."""

    def __init__(self, user_id):
        self._user_id = user_id

    def is_authenticated(self):
        return False

    def current_credential(self):
        return None

    def current_user_id(self):
        return self._user_id

    def invalidate_credential(self):
        pass


async def _login(auth):
    result = await auth.login("ana@example.com", "secret123")
    assert result.success
    assert auth.is_authenticated()


class TestLocalPath:
    """Operations without a remote session."""

    @pytest.mark.asyncio
    async def test_create_and_list(self, task_store, local, service):
        created = await task_store.create_task({"title": "Buy milk", "priority": "low"})

        assert created.success
        assert created.data.title == "Buy milk"
        assert task_store.source is Backend.LOCAL
        assert [t["title"] for t in local.read_collection("tasks_local")] == ["Buy milk"]
        assert service.calls == []

        listed = await task_store.list_tasks()
        assert [t.id for t in listed.data] == [created.data.id]

    @pytest.mark.asyncio
    async def test_update(self, task_store):
        created = await task_store.create_task({"title": "Draft"})
        result = await task_store.update_task(created.data.id, {"title": "Final", "priority": "high"})

        assert result.success
        assert result.data.title == "Final"
        assert task_store.get_task(created.data.id).priority.value == "high"

    @pytest.mark.asyncio
    async def test_toggle_sets_and_clears_completed_at(self, task_store):
        created = await task_store.create_task({"title": "Run"})

        done = await task_store.toggle_task_status(created.data.id)
        assert done.data.status is TaskStatus.COMPLETED
        assert done.data.completed_at is not None

        undone = await task_store.toggle_task_status(created.data.id)
        assert undone.data.status is TaskStatus.PENDING
        assert undone.data.completed_at is None

    @pytest.mark.asyncio
    async def test_delete(self, task_store, local):
        created = await task_store.create_task({"title": "Temp"})
        result = await task_store.delete_task(created.data.id)

        assert result.success
        assert result.data == created.data.id
        assert local.read_collection("tasks_local") == []
        assert task_store.tasks == []

    @pytest.mark.asyncio
    async def test_missing_task(self, task_store):
        for outcome in (
            await task_store.update_task("nope", {"title": "x"}),
            await task_store.delete_task("nope"),
            await task_store.toggle_task_status("nope"),
        ):
            assert not outcome
            assert outcome.error == "Task not found"

    @pytest.mark.asyncio
    async def test_invalid_input_is_rejected_before_any_path(self, task_store, local):
        assert not await task_store.create_task({"description": "no title"})
        assert not await task_store.create_task({"title": "x", "priority": "critical"})
        assert not await task_store.create_task({"title": "x", "colour": "red"})
        assert local.read_collection("tasks_local") == []

    @pytest.mark.asyncio
    async def test_corrupted_collection_is_reported(self, gateway, auth):
        local = LocalStore(MemoryKeyValueBackend({"tasks_local": "{not json"}))
        store = TaskStore(gateway, local, auth)

        result = await store.list_tasks()
        assert not result
        assert "corrupted" in result.error
        assert local.backend.get("tasks_local") == "{not json"

    @pytest.mark.asyncio
    async def test_invalid_stored_record_is_reported(self, task_store, local):
        local.write_collection("tasks_local", [{"id": "a", "title": "x", "priority": "bogus"}])

        result = await task_store.list_tasks()

        assert not result
        assert "corrupted" in result.error
        assert "bogus" in result.error

    @pytest.mark.asyncio
    async def test_undecodable_file_is_reported(self, gateway, auth, tmp_path):
        (tmp_path / "tasks_local.json").write_bytes(b"\xff\xfe[]")
        store = TaskStore(gateway, LocalStore(FileKeyValueBackend(tmp_path)), auth)

        result = await store.list_tasks()

        assert not result
        assert "UTF-8" in result.error


class TestRemotePath:
    """Operations with a remote session."""

    @pytest.mark.asyncio
    async def test_list_from_service(self, task_store, auth, service, local):
        await _login(auth)
        service.add_task("Remote one")

        result = await task_store.list_tasks()

        assert result.success
        assert [t.title for t in result.data] == ["Remote one"]
        assert task_store.source is Backend.REMOTE
        assert local.read_collection("tasks_u1") == []

    @pytest.mark.asyncio
    async def test_create_replaces_local_working_set(self, task_store, auth, service):
        await _login(auth)
        service.add_task("Existing")

        routed = await task_store.route_create({"title": "New"})

        assert routed.backend is Backend.REMOTE
        assert not routed.fell_back
        assert sorted(t.title for t in task_store.tasks) == ["Existing", "New"]
        assert task_store.source is Backend.REMOTE

    @pytest.mark.asyncio
    async def test_update_toggle_delete(self, task_store, auth, service):
        await _login(auth)
        remote = service.add_task("Remote", status="pending")
        await task_store.list_tasks()

        updated = await task_store.update_task(remote["id"], {"title": "Renamed"})
        assert updated.data.title == "Renamed"

        toggled = await task_store.toggle_task_status(remote["id"])
        assert toggled.data.status is TaskStatus.COMPLETED
        assert service.tasks[remote["id"]]["status"] == "completed"

        deleted = await task_store.delete_task(remote["id"])
        assert deleted.success
        assert task_store.tasks == []
        assert service.tasks == {}


class TestFallback:
    """Remote failures while signed in."""

    @pytest.mark.asyncio
    async def test_create_falls_back_when_service_is_down(self, task_store, auth, service, local, metrics):
        await _login(auth)
        service.down = True

        routed = await task_store.route_create({"title": "Offline task"})

        assert routed.backend is Backend.LOCAL
        assert routed.fell_back
        assert "ConnectError" in routed.remote_error
        task = routed.result.data
        assert [t.id for t in task_store.tasks] == [task.id]
        assert [t["id"] for t in local.read_collection("tasks_u1")] == [task.id]
        assert local.read_collection("tasks_local") == []
        assert service.tasks == {}
        assert metrics.backend.get_counter("fallbacks_total", labels={"domain": "tasks"}) == 1

    @pytest.mark.asyncio
    async def test_fallback_matches_local_path(self, gateway, auth, service, local):
        """A failed remote create has the same effect as a local-only create."""
        await _login(auth)
        service.down = True
        online = TaskStore(gateway, local, auth)
        offline = TaskStore(gateway, LocalStore(MemoryKeyValueBackend()), OfflineAuth("u1"))
        data = {"title": "Same", "priority": "high", "dueDate": "2026-12-01", "tags": ["a"]}

        a = await online.create_task(data)
        b = await offline.create_task(data)

        assert _comparable(a.data) == _comparable(b.data)
        assert [_comparable(t) for t in online.tasks] == [_comparable(t) for t in offline.tasks]

    @pytest.mark.asyncio
    async def test_service_error_status_falls_back(self, task_store, auth, service):
        await _login(auth)
        service.fail_status = 500

        result = await task_store.list_tasks()
        assert result.success
        assert task_store.source is Backend.LOCAL

    @pytest.mark.asyncio
    async def test_malformed_remote_payload_falls_back(self, task_store, auth, service):
        await _login(auth)
        service.tasks["bad"] = {"id": "bad"}

        result = await task_store.list_tasks()
        assert result.success
        assert result.data == []
        assert task_store.source is Backend.LOCAL

    @pytest.mark.asyncio
    async def test_non_object_task_body_falls_back(self, task_store, auth, service):
        await _login(auth)
        remote = service.add_task("Remote")
        service.bodies[("GET", f"/api/tasks/{remote['id']}")] = [1, 2]

        result = await task_store.toggle_task_status(remote["id"])

        assert not result
        assert result.error == "Task not found"
        assert task_store.source is not Backend.REMOTE
        assert service.tasks[remote["id"]].get("status") is None

    @pytest.mark.asyncio
    async def test_failed_relist_after_remote_create_stays_remote(self, task_store, auth, service, local):
        await _login(auth)
        service.tasks["bad"] = {"id": "bad"}

        routed = await task_store.route_create({"title": "Once"})

        assert routed.backend is Backend.REMOTE
        assert routed.result.data.title == "Once"
        assert [t["title"] for t in service.tasks.values() if "title" in t] == ["Once"]
        assert local.read_collection("tasks_u1") == []
        assert task_store.source is Backend.REMOTE
        assert [t.title for t in task_store.tasks] == ["Once"]

    @pytest.mark.asyncio
    async def test_rejected_credential_is_dropped(self, task_store, auth, service):
        await _login(auth)
        service.token = "rotated"

        result = await task_store.list_tasks()

        assert result.success
        assert task_store.source is Backend.LOCAL
        assert not auth.is_authenticated()
        assert auth.current_user_id() == "u1"

        # Next operation re-checks the capability and stays local.
        calls = len(service.calls)
        await task_store.create_task({"title": "After"})
        assert len(service.calls) == calls

    @pytest.mark.asyncio
    async def test_recovers_when_service_returns(self, task_store, auth, service):
        await _login(auth)
        service.down = True
        await task_store.list_tasks()
        assert task_store.source is Backend.LOCAL

        service.down = False
        service.add_task("Back online")
        await task_store.list_tasks()
        assert task_store.source is Backend.REMOTE
        assert [t.title for t in task_store.tasks] == ["Back online"]


class TestWorkingSetQueries:
    """filter_tasks and summary."""

    @pytest.mark.asyncio
    async def test_filter_and_sort(self, task_store):
        await task_store.create_task({"title": "Gym", "category": "health", "priority": "low", "dueDate": "2026-03-01"})
        await task_store.create_task({"title": "Report", "category": "work", "priority": "urgent"})
        await task_store.create_task({"title": "Review report", "category": "work", "priority": "high", "dueDate": "2026-02-01"})

        assert [t.title for t in task_store.filter_tasks(sort_by="due_date")] == ["Review report", "Gym", "Report"]
        assert [t.title for t in task_store.filter_tasks(sort_by="priority")] == ["Report", "Review report", "Gym"]
        assert [t.title for t in task_store.filter_tasks(search="REPORT")] == ["Review report", "Report"]
        assert [t.title for t in task_store.filter_tasks(category="health")] == ["Gym"]
        assert [t.title for t in task_store.filter_tasks(priority="urgent")] == ["Report"]
        assert task_store.filter_tasks(status="completed") == []

    @pytest.mark.asyncio
    async def test_summary(self, task_store):
        await task_store.create_task({"title": "Late", "dueDate": "2026-01-01", "category": "work"})
        await task_store.create_task({"title": "Future", "dueDate": "2027-01-01", "category": "work"})
        done = await task_store.create_task({"title": "Done", "dueDate": "2026-01-01"})
        await task_store.toggle_task_status(done.data.id)

        stats = task_store.summary(now=datetime(2026, 6, 1, tzinfo=timezone.utc))

        assert stats["pending"] == 2
        assert stats["completed"] == 1
        assert stats["overdue"] == 1
        assert stats["by_category"] == {"work": 2, "general": 1}
