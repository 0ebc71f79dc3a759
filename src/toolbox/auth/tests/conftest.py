"""Shared fixtures for authentication tests."""

from unittest.mock import Mock

import pytest

from src.toolbox.auth.models import LocalAccount
from src.toolbox.auth.sessions import SessionEstablisher

SECRET = "test-session-secret"


@pytest.fixture
def account() -> LocalAccount:
    """Provide a local account."""
    return LocalAccount(id=42, username="zalo_8001", provider="zalo", federated_id="8001")


@pytest.fixture
def sessions_table() -> dict:
    """Provide the rows of a fake auth_sessions table."""
    return {}


@pytest.fixture
def mock_db(sessions_table: dict) -> Mock:
    """Mock query builder backed by sessions_table."""
    db = Mock()

    def insert_record(table, data):
        sessions_table[data["id"]] = data
        return data

    db.insert_record.side_effect = insert_record
    db.get_by_id.side_effect = lambda table, record_id: sessions_table.get(record_id)
    db.delete_record.side_effect = lambda table, record_id: (
        sessions_table.pop(record_id, None) is not None
    )
    return db


@pytest.fixture
def establisher(mock_db: Mock) -> SessionEstablisher:
    """Provide a session establisher over the fake table."""
    return SessionEstablisher(mock_db, SECRET, issuer="toolbox", ttl_seconds=3600)
