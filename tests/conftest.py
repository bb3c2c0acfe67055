"""
Shared fixtures: an in-memory stand-in for the Supabase client and services
wired to it.
"""

import copy
from datetime import datetime, timedelta, timezone
from typing import Any
from uuid import UUID, uuid4

import httpx
import pytest

from skillportal.auth.identity import IdentityProvider
from skillportal.auth.schemas import User
from skillportal.config import SafeActionSettings, Settings
from skillportal.modules.audit.outbox import AuditOutbox
from skillportal.modules.audit.repository import ActionLogRepository
from skillportal.modules.audit.service import AuditService
from skillportal.modules.pending_actions.repository import PendingActionRepository
from skillportal.modules.pending_actions.service import PendingActionQueue
from skillportal.modules.safe_actions.executor import PendingActionExecutor
from skillportal.modules.safe_actions.service import SafeActionOrchestrator
from skillportal.modules.settings.repository import SettingsHistoryRepository, SettingsRepository
from skillportal.modules.settings.service import SettingsService
from skillportal.modules.settings_history.service import SettingsHistoryService

BASE_TIME = datetime(2026, 1, 9, 12, 0, tzinfo=timezone.utc)
OPERATOR_PASSWORD = "correct-horse-battery"

SEED_SETTINGS = {
    "registration_fee": "5000",
    "registration_open": "true",
    "payment_enabled": "true",
    "form_submissions_open": "true",
    "id_generation_enabled": "true",
    "edit_requests_enabled": "true",
    "maintenance_mode": "false",
    "system_frozen": "false",
}


# =============================================================================
# In-memory Supabase
# =============================================================================


class FakeResponse:
    def __init__(self, data: list[dict[str, Any]]):
        self.data = data
        self.count = len(data)


def _comparable(value: Any) -> Any:
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value)
        except ValueError:
            return value
    return value


class FakeQuery:
    """Chainable query mirroring the postgrest builder calls the repositories use."""

    def __init__(self, db: "FakeSupabase", table: str, operation: str, payload: dict[str, Any] | None = None):
        self.db = db
        self.table_name = table
        self.operation = operation
        self.payload = payload
        self.filters: list[tuple[str, str, Any]] = []
        self.ordering: list[tuple[str, bool]] = []
        self.row_limit: int | None = None

    def select(self, *columns, count=None):
        return self

    def eq(self, column: str, value: Any):
        self.filters.append(("eq", column, value))
        return self

    def neq(self, column: str, value: Any):
        self.filters.append(("neq", column, value))
        return self

    def lte(self, column: str, value: Any):
        self.filters.append(("lte", column, value))
        return self

    def order(self, column: str, desc: bool = False):
        self.ordering.append((column, desc))
        return self

    def limit(self, size: int):
        self.row_limit = size
        return self

    def _matches(self, row: dict[str, Any]) -> bool:
        for kind, column, value in self.filters:
            current = row.get(column)
            if kind == "eq" and (current is None or str(current) != str(value)):
                return False
            if kind == "neq" and current is not None and str(current) == str(value):
                return False
            if kind == "lte" and (current is None or _comparable(current) > _comparable(value)):
                return False
        return True

    def execute(self) -> FakeResponse:
        self.db.calls.append((self.table_name, self.operation))
        self.db.maybe_fail(self.table_name, self.operation)
        rows = self.db.tables.setdefault(self.table_name, [])

        if self.operation == "insert":
            record = copy.deepcopy(self.payload)
            record.setdefault("id", str(uuid4()))
            record.setdefault("created_at", self.db.next_timestamp())
            rows.append(record)
            return FakeResponse([copy.deepcopy(record)])

        matched = [row for row in rows if self._matches(row)]

        if self.operation == "update":
            for row in matched:
                row.update(copy.deepcopy(self.payload))
            return FakeResponse([copy.deepcopy(row) for row in matched])

        for column, desc in reversed(self.ordering):
            matched.sort(key=lambda r: (r.get(column) is None, _comparable(r.get(column))), reverse=desc)
        if self.row_limit is not None:
            matched = matched[: self.row_limit]
        return FakeResponse([copy.deepcopy(row) for row in matched])


class FakeTable:
    def __init__(self, db: "FakeSupabase", name: str):
        self.db = db
        self.name = name

    def select(self, *columns, count=None) -> FakeQuery:
        return FakeQuery(self.db, self.name, "select")

    def insert(self, data: dict[str, Any]) -> FakeQuery:
        return FakeQuery(self.db, self.name, "insert", data)

    def update(self, data: dict[str, Any]) -> FakeQuery:
        return FakeQuery(self.db, self.name, "update", data)


class FakeSupabase:
    """Tables as lists of dicts, with injectable failures per (table, operation)."""

    def __init__(self):
        self.tables: dict[str, list[dict[str, Any]]] = {}
        self.failures: dict[tuple[str, str], int] = {}
        self.calls: list[tuple[str, str]] = []
        self._tick = 0

    def table(self, name: str) -> FakeTable:
        return FakeTable(self, name)

    def next_timestamp(self) -> str:
        self._tick += 1
        return (BASE_TIME + timedelta(seconds=self._tick)).isoformat()

    def fail(self, table: str, operation: str, times: int = 1) -> None:
        self.failures[(table, operation)] = times

    def maybe_fail(self, table: str, operation: str) -> None:
        remaining = self.failures.get((table, operation), 0)
        if remaining > 0:
            self.failures[(table, operation)] = remaining - 1
            raise httpx.ConnectError(f"injected {operation} failure on {table}")

    def rows(self, table: str) -> list[dict[str, Any]]:
        return self.tables.get(table, [])

    def setting(self, key: str) -> str:
        return next(row["value"] for row in self.rows("app_settings") if row["key"] == key)

    def seed_settings(self, values: dict[str, str] | None = None) -> None:
        self.tables["app_settings"] = [
            {
                "id": str(uuid4()),
                "key": key,
                "value": value,
                "description": None,
                "updated_by": None,
                "updated_at": None,
            }
            for key, value in (values or SEED_SETTINGS).items()
        ]


class FakeIdentityProvider(IdentityProvider):
    """Accepts exactly one password."""

    def __init__(self, password: str = OPERATOR_PASSWORD):
        self.password = password
        self.calls: list[tuple[str, UUID | None]] = []

    async def reauthenticate(self, email, secret, expected_user_id=None) -> bool:
        self.calls.append((email, expected_user_id))
        return secret == self.password


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def db() -> FakeSupabase:
    fake = FakeSupabase()
    fake.seed_settings()
    return fake


@pytest.fixture
def app_settings() -> Settings:
    return Settings(safe_actions=SafeActionSettings())


@pytest.fixture
def outbox() -> AuditOutbox:
    return AuditOutbox()


@pytest.fixture
def audit(db, outbox, app_settings) -> AuditService:
    return AuditService(ActionLogRepository(db), outbox, app_settings)


@pytest.fixture
def settings_service(db, audit, app_settings) -> SettingsService:
    return SettingsService(SettingsRepository(db), SettingsHistoryRepository(db), audit, app_settings)


@pytest.fixture
def queue(db, audit, app_settings) -> PendingActionQueue:
    return PendingActionQueue(PendingActionRepository(db), audit, app_settings)


@pytest.fixture
def identity() -> FakeIdentityProvider:
    return FakeIdentityProvider()


@pytest.fixture
def orchestrator(settings_service, queue, audit, identity, app_settings) -> SafeActionOrchestrator:
    return SafeActionOrchestrator(settings_service, queue, audit, identity, app_settings)


@pytest.fixture
def executor(orchestrator, app_settings) -> PendingActionExecutor:
    return PendingActionExecutor(orchestrator, app_settings)


@pytest.fixture
def history_service(settings_service, identity, app_settings) -> SettingsHistoryService:
    return SettingsHistoryService(settings_service, identity, app_settings)


@pytest.fixture
def operator() -> User:
    return User(
        id=UUID("5f0c7a52-1d55-4b1e-9d4c-2b8a6e1f0a11"),
        email="registrar@portal.test",
        display_name="Registrar",
        roles=["super_admin"],
    )
