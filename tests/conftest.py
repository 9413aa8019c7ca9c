"""Shared test fixtures for the access control core."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import List
from unittest.mock import MagicMock

import pytest

from access_control.ability_builder import AbilityBuilder
from access_control.permission_cache import PermissionCache
from permissions.database import DatabaseConfig, DatabaseManager
from permissions.schemas import PermissionRule, Principal, Role
from permissions.service import PermissionService


class FakeClock:
    """Manually advanced clock for TTL tests."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2025, 6, 1, 12, 0, 0)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


def make_rule(
    action: str,
    subject: str,
    *,
    user_id: str = "u1",
    condition: str | None = None,
    inverted: bool = False,
    reason: str | None = None,
    rule_id: str | None = None,
) -> PermissionRule:
    return PermissionRule(
        id=rule_id or f"perm-{action}-{subject}-{int(inverted)}",
        user_id=user_id,
        action=action,
        subject=subject,
        condition=condition,
        inverted=inverted,
        reason=reason,
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache(clock: FakeClock) -> PermissionCache:
    return PermissionCache(
        ttl=timedelta(minutes=5),
        sweep_interval=timedelta(minutes=10),
        clock=clock,
    )


@pytest.fixture
def permission_source():
    """Stands in for the permission repository; returns no overrides by default."""
    source = MagicMock()
    source.find_user_permissions.return_value = []
    return source


@pytest.fixture
def builder(permission_source, cache) -> AbilityBuilder:
    return AbilityBuilder(permission_source, cache)


@pytest.fixture
def with_overrides(permission_source):
    def _set(rules: List[PermissionRule]) -> None:
        permission_source.find_user_permissions.return_value = rules
    return _set


@pytest.fixture
def admin() -> Principal:
    return Principal(id="admin-id", role=Role.ADMIN)


@pytest.fixture
def editor() -> Principal:
    return Principal(id="editor-id", role=Role.EDITOR)


@pytest.fixture
def regular_user() -> Principal:
    return Principal(id="u1", role=Role.USER)


@pytest.fixture
def db_manager():
    manager = DatabaseManager(DatabaseConfig(url="sqlite:///:memory:", echo=False))
    manager.create_tables()
    yield manager
    manager.drop_tables()
    manager.dispose()


@pytest.fixture
def permission_service(db_manager, cache) -> PermissionService:
    return PermissionService(db_manager, cache)
