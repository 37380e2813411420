"""Pytest configuration and shared fixtures."""

from datetime import date

import pytest

from record_tracker.config.settings import reset_settings
from record_tracker.records.models import (
    ApplicationStatus,
    JobApplication,
    Priority,
    Ticket,
)
from record_tracker.records.service import open_store
from record_tracker.utils.logging import reset_logging

BACKENDS = ["memory", "sqlite"]


@pytest.fixture(autouse=True)
def reset_singletons():
    """Reset settings and logging state after every test."""
    yield
    reset_settings()
    reset_logging()


@pytest.fixture
def acme() -> JobApplication:
    """Job application at Acme."""
    return JobApplication(
        company="Acme",
        position="Developer",
        location="Remote",
        status=ApplicationStatus.APPLIED,
        date_applied=date(2026, 1, 1),
    )


@pytest.fixture
def beta() -> JobApplication:
    """Job application at Beta."""
    return JobApplication(
        company="Beta",
        position="Analyst",
        location="NY",
        status=ApplicationStatus.INTERVIEW,
        date_applied=date(2026, 1, 2),
    )


@pytest.fixture
def vpn_ticket() -> Ticket:
    """A new helpdesk ticket."""
    return Ticket(
        title="VPN not connecting",
        description="User cannot connect to VPN from home network.",
        priority=Priority.HIGH,
    )


@pytest.fixture(params=BACKENDS)
async def job_store(request, tmp_path):
    """Job application store, once per backend."""
    store = await open_store("job", request.param, tmp_path / "records.db")
    yield store
    await store.close()


@pytest.fixture(params=BACKENDS)
async def ticket_store(request, tmp_path):
    """Ticket store, once per backend."""
    store = await open_store("ticket", request.param, tmp_path / "records.db")
    yield store
    await store.close()
