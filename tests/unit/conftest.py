"""Pytest configuration and fixtures for unit tests."""

import pytest

from src.interface.push_sender import SendPushResult
from src.services.engine import NotificationEngine
from tests.unit.mocks import FakeLocationProvider, FakeNotificationService, FrozenClock, InMemoryDBClient


@pytest.fixture
def in_memory_db():
    """Provides a fresh InMemoryDBClient for each test."""
    return InMemoryDBClient()


@pytest.fixture
def clock():
    return FrozenClock()


@pytest.fixture
def notification_service():
    return FakeNotificationService()


@pytest.fixture
def location_provider():
    return FakeLocationProvider()


async def _mock_send_push(**kwargs) -> SendPushResult:
    """Mock Expo sender that returns success instantly."""
    return SendPushResult(success=True, ticket_id="mock_ticket_id")


@pytest.fixture
def patched_db(monkeypatch, in_memory_db):
    """Patches src.core.db_client functions to use InMemoryDBClient.

    Also patches the Expo push sender to avoid real HTTP calls and retry delays.
    """
    monkeypatch.setattr("src.core.db_client.create_record", in_memory_db.create_record)
    monkeypatch.setattr("src.core.db_client.get_record", in_memory_db.get_record)
    monkeypatch.setattr("src.core.db_client.update_record", in_memory_db.update_record)
    monkeypatch.setattr("src.core.db_client.delete_record", in_memory_db.delete_record)
    monkeypatch.setattr("src.core.db_client.list_records", in_memory_db.list_records)
    monkeypatch.setattr("src.core.db_client.get_first_record", in_memory_db.get_first_record)

    monkeypatch.setattr("src.interface.push_sender.send_push", _mock_send_push)

    return in_memory_db


@pytest.fixture
def engine(notification_service, location_provider, clock):
    """NotificationEngine wired to fakes, with push delivery disabled."""
    engine = NotificationEngine(
        notification_service,
        location_provider,
        clock=clock,
        push_enabled=False,
        snooze_minutes=10,
    )
    engine.start_session()
    return engine


@pytest.fixture
async def family(patched_db):
    """A family with two guardians and one child, stored in the in-memory db.

    Returns a dict with the family and member IDs.
    """
    await patched_db.create_record(
        collection="families",
        data={"id": "fam1", "name": "Smiths", "parent_ids": ["mom", "dad"], "children_ids": ["kid"]},
    )
    members = [
        {"id": "mom", "display_name": "Mom", "role": "parent"},
        {"id": "dad", "display_name": "Dad", "role": "parent"},
        {"id": "kid", "display_name": "Sam", "role": "child", "push_token": "ExponentPushToken[kid]"},
    ]
    for member in members:
        await patched_db.create_record(collection="members", data={**member, "family_id": "fam1"})
    return {"family_id": "fam1", "parents": ["mom", "dad"], "child": "kid"}

