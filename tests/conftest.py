"""Shared fixtures: an in-process fake of the TaskFlow service and fake time."""

import base64
import json
from typing import Any, Dict, List, Optional, Tuple

import httpx
import pytest

from taskflow.gateway import RemoteGateway, TTLCache
from taskflow.storage import LocalStore, MemoryKeyValueBackend
from taskflow.stores import AuthStore, Pbkdf2Hasher, ProfileStore, TaskStore
from taskflow.utils.metrics import GatewayMetrics
from taskflow.utils.retry import RetryConfig

API_URL = "http://taskflow.test/api"
DATA_URL = "http://taskflow.test/data/"

TEMPLATES = {
    "templates": [
        {
            "name": "Weekly meeting",
            "description": "Team sync every Monday",
            "category": "work",
            "priority": "medium",
            "tags": ["meeting", "team"],
        },
        {
            "name": "Pay bills",
            "description": "Electricity and water",
            "category": "personal",
            "priority": "high",
            "tags": ["finance"],
        },
        {
            "name": "Release checklist",
            "description": "Steps before shipping",
            "category": "work",
            "priority": "urgent",
            "tags": ["release"],
        },
    ]
}

CATEGORIES = {"categories": [{"id": "work", "name": "Work"}, {"id": "personal", "name": "Personal"}]}

STATISTICS = {
    "statistics": {
        "byCategory": [{"category": "work", "total": 12}, {"category": "personal", "total": 4}],
        "achievements": [{"id": "first-task", "name": "First task"}],
    }
}


def make_jwt(exp: float) -> str:
    """Unsigned JWT with an ``exp`` claim."""
    def segment(data: Dict[str, Any]) -> str:
        return base64.urlsafe_b64encode(json.dumps(data).encode()).decode().rstrip("=")

    return f"{segment({'alg': 'HS256', 'typ': 'JWT'})}.{segment({'sub': 'u1', 'exp': exp})}.signature"


class FakeClock:
    """Millisecond clock for TTL tests."""

    def __init__(self, start: float = 0.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms


class RecordingSleep:
    """Stand-in for ``asyncio.sleep`` that records delays and returns at once."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


class FakeTaskflowService:
    """Routes requests the way the TaskFlow REST service does.

    ``down`` makes every request fail at the transport level; ``fail_status``
    makes every request answer with that status instead. ``bodies`` maps
    ``(method, path)`` to a JSON body answered with 200 in place of the route.
    """

    def __init__(self):
        self.token = "valid-token"
        self.down = False
        self.fail_status: Optional[int] = None
        self.bodies: Dict[Tuple[str, str], Any] = {}
        self.calls: List[Tuple[str, str]] = []
        self.user = {"id": "u1", "name": "Ana", "email": "ana@example.com", "role": "user"}
        self.password = "secret123"
        self.tasks: Dict[str, Dict[str, Any]] = {}
        self.catalog = {
            "categories.json": CATEGORIES,
            "taskTemplates.json": TEMPLATES,
            "statistics.json": STATISTICS,
        }
        self._next_id = 1

    def add_task(self, title: str, **fields: Any) -> Dict[str, Any]:
        task = {"id": f"r{self._next_id}", "title": title, "userId": self.user["id"], **fields}
        self._next_id += 1
        self.tasks[task["id"]] = task
        return task

    def calls_to(self, method: str, path: str) -> int:
        return sum(1 for call in self.calls if call == (method, path))

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        self.calls.append((request.method, path))
        if self.down:
            raise httpx.ConnectError("Connection refused", request=request)
        if self.fail_status is not None:
            return httpx.Response(self.fail_status, json={"error": "Service unavailable"})
        if (request.method, path) in self.bodies:
            return httpx.Response(200, json=self.bodies[(request.method, path)])

        if path.startswith("/data/"):
            document = self.catalog.get(path[len("/data/"):])
            if document is None:
                return httpx.Response(404)
            return httpx.Response(200, json=document)

        body = json.loads(request.content) if request.content else {}

        if path == "/api/auth/login":
            if body.get("email") == self.user["email"] and body.get("password") == self.password:
                return httpx.Response(200, json={"message": "ok", "user": self.user, "token": self.token})
            return httpx.Response(401, json={"error": "Invalid credentials"})
        if path == "/api/auth/register":
            if body.get("email") == self.user["email"]:
                return httpx.Response(409, json={"error": "Email already registered"})
            user = {"id": "u2", "name": body["name"], "email": body["email"], "role": "user"}
            return httpx.Response(201, json={"message": "created", "user": user, "token": self.token})

        if request.headers.get("Authorization") != f"Bearer {self.token}":
            return httpx.Response(401, json={"error": "Invalid token"})

        if path == "/api/auth/logout":
            return httpx.Response(200, json={"message": "bye"})
        if path == "/api/auth/me":
            return httpx.Response(200, json={"user": self.user})
        if path == "/api/auth/change-password":
            if body.get("currentPassword") != self.password:
                return httpx.Response(400, json={"error": "Current password is incorrect"})
            self.password = body["newPassword"]
            return httpx.Response(200, json={"message": "Password changed"})
        if path == "/api/users/profile":
            if request.method == "PUT":
                self.user = {**self.user, **body}
                return httpx.Response(200, json={"message": "updated", "user": self.user})
            return httpx.Response(200, json={"user": self.user})

        if path == "/api/tasks":
            if request.method == "POST":
                task = self.add_task(**body)
                return httpx.Response(201, json={"message": "created", "task": task})
            tasks = list(self.tasks.values())
            return httpx.Response(200, json={"tasks": tasks, "pagination": {"total": len(tasks)}})
        if path.startswith("/api/tasks/"):
            task_id = path.rsplit("/", 1)[1]
            if task_id not in self.tasks:
                return httpx.Response(404, json={"error": "Task not found"})
            if request.method == "DELETE":
                del self.tasks[task_id]
                return httpx.Response(200, json={"message": "deleted"})
            if request.method == "PUT":
                self.tasks[task_id].update(body)
            return httpx.Response(200, json={"task": self.tasks[task_id]})

        return httpx.Response(404, json={"error": f"No route for {path}"})


@pytest.fixture
def service():
    return FakeTaskflowService()


@pytest.fixture
def sleep():
    return RecordingSleep()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def metrics():
    return GatewayMetrics()


@pytest.fixture
def gateway(service, sleep, clock, metrics):
    return RemoteGateway(
        API_URL,
        DATA_URL,
        retry=RetryConfig(max_attempts=3, base_delay_ms=1000),
        cache=TTLCache(timeout_ms=300000, clock=clock),
        metrics=metrics,
        transport=service.transport(),
        sleep=sleep,
    )


@pytest.fixture
def local():
    return LocalStore(MemoryKeyValueBackend())


@pytest.fixture
def hasher():
    # Few iterations keep the suite fast.
    return Pbkdf2Hasher(iterations=1000)


@pytest.fixture
def auth(gateway, local, hasher):
    return AuthStore(gateway, local, hasher=hasher)


@pytest.fixture
def task_store(gateway, local, auth):
    return TaskStore(gateway, local, auth)


@pytest.fixture
def profile_store(gateway, local, auth):
    return ProfileStore(gateway, local, auth)
