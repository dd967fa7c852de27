"""
Shared pytest fixtures for tournament manager tests.

Running tests:
    pytest tests/
"""
import pytest
import sys
import os
from datetime import datetime, timedelta, timezone

# Add src directory to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from tourney.audit import AuditLog
from tourney.models import Actor
from tourney.storage import FileObjectStore, YamlDocumentStore
from tourney.tournament import TournamentManager


class TickingClock:
    """Clock that moves forward one second on every read, so timestamps are distinct."""

    def __init__(self, start):
        self.current = start

    def __call__(self):
        self.current += timedelta(seconds=1)
        return self.current


@pytest.fixture
def clock():
    return TickingClock(datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc))


@pytest.fixture
def store(tmp_path):
    """Document store rooted in a temporary directory."""
    return YamlDocumentStore(str(tmp_path / "data"), lock_timeout=5)


@pytest.fixture
def manager(store, tmp_path, clock):
    """Tournament manager with object storage and an audit log."""
    objects = FileObjectStore(str(tmp_path / "media"), base_url='/media')
    return TournamentManager(store, objects=objects, audit=AuditLog(store, clock=clock), clock=clock)


@pytest.fixture
def actor():
    return Actor('user-1', 'organiser@example.com')


@pytest.fixture
def tournament_id(manager, actor):
    return manager.create_tournament('Spring Cup', 'كأس الربيع', actor=actor)


@pytest.fixture
def team_ids(manager, tournament_id):
    """Eight teams in creation order."""
    return [
        manager.create_team(tournament_id, f'Team {i}', f'فريق {i}')
        for i in range(1, 9)
    ]


@pytest.fixture
def client(tmp_path, monkeypatch):
    """Flask test client writing into a temporary data directory."""
    import app as app_module

    monkeypatch.setattr(app_module, 'DATA_DIR', str(tmp_path / "data"))
    monkeypatch.setattr(app_module, 'STREAM_INTERVAL', 0)
    app_module.app.config['TESTING'] = True
    with app_module.app.test_client() as client:
        yield client
