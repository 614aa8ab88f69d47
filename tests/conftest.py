"""Pytest configuration and fixtures."""

import os
from datetime import date
from uuid import UUID

import pytest

from capa_tracker.core.capa_lifecycle import CapaLifecycleManager
from capa_tracker.core.schemas_auth import UserLevel, UserProfile
from tests.fakes.fake_db import FakeCapaStore

TEST_ENV = {
    "SUPABASE_URL": "https://test.supabase.co",
    "SUPABASE_SERVICE_ROLE_KEY": "test-key",
    "CAPA_ENV": "test",
}

# Modules read settings at import time, before session fixtures run
os.environ.update(TEST_ENV)
os.environ.pop("ANTHROPIC_API_KEY", None)

TODAY = date(2024, 5, 20)

ADMIN_ID = UUID("00000000-0000-0000-0000-0000000000a1")
SUPERVISOR_ID = UUID("00000000-0000-0000-0000-0000000000b1")
OPERATOR_ID = UUID("00000000-0000-0000-0000-0000000000c1")


@pytest.fixture(scope="session", autouse=True)
def setup_test_env():
    """Set up test environment variables."""
    os.environ.update(TEST_ENV)
    os.environ.pop("ANTHROPIC_API_KEY", None)


@pytest.fixture
def users() -> list[UserProfile]:
    """Directory with one user per access level."""
    return [
        UserProfile(
            id=ADMIN_ID,
            email="admin@ehs.com",
            full_name="Ana Admin",
            level=UserLevel.ADMINISTRATOR,
            permissions=[],
        ),
        UserProfile(
            id=SUPERVISOR_ID,
            email="sup@ehs.com",
            full_name="Sam Supervisor",
            level=UserLevel.SUPERVISOR,
            permissions=["manage_capa"],
        ),
        UserProfile(
            id=OPERATOR_ID,
            email="op@ehs.com",
            full_name="Omar Operator",
            level=UserLevel.OPERATOR,
            permissions=None,
        ),
    ]


@pytest.fixture
def store(users) -> FakeCapaStore:
    return FakeCapaStore(users=users)


@pytest.fixture
def manager(store) -> CapaLifecycleManager:
    """Lifecycle manager over the fake store with a fixed clock."""
    return CapaLifecycleManager(store, folio_prefix="CAPA", today=lambda: TODAY)
