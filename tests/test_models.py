"""
Unit tests for the document factories and shared helpers.
"""
import pytest
import sys
import os
from datetime import datetime, timedelta, timezone

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from tourney.errors import InvalidScore, NotFound, TournamentError
from tourney.models import (
    DEFAULT_TEAM_LOGO_URL,
    Actor,
    actor_fields,
    new_group,
    new_match,
    new_team,
    new_tournament,
    parse_timestamp,
    to_timestamp,
    validate_score,
)

NOW = datetime(2026, 5, 4, 18, 30, tzinfo=timezone.utc)


class TestActor:
    """Tests for the Actor value."""

    def test_actor_repr(self):
        """Test actor string representation."""
        actor = Actor('u1', 'a@example.com')
        assert 'u1' in repr(actor)
        assert 'a@example.com' in repr(actor)

    def test_actor_fields(self):
        assert actor_fields(Actor('u1', 'a@example.com')) == {
            'updated_by_user_id': 'u1',
            'updated_by_email': 'a@example.com',
        }
        assert actor_fields(None) == {}


class TestTimestamps:
    """Tests for timestamp parsing and formatting."""

    def test_naive_values_are_utc(self):
        assert parse_timestamp('2026-05-04T18:30:00') == NOW

    def test_offsets_are_normalised(self):
        assert parse_timestamp('2026-05-04T20:30:00+02:00') == NOW
        assert to_timestamp('2026-05-04T20:30:00+02:00') == '2026-05-04T18:30:00+00:00'

    def test_datetime_passthrough(self):
        local = NOW.astimezone(timezone(timedelta(hours=-5)))
        assert parse_timestamp(local) == NOW

    def test_empty_values(self):
        assert to_timestamp(None) is None
        assert to_timestamp('') is None

    def test_invalid_value(self):
        with pytest.raises(ValueError):
            parse_timestamp('next tuesday')


class TestFactories:
    """Tests for the default fields of new documents."""

    def test_new_tournament(self):
        doc = new_tournament('t1', 'Cup', 'كأس', 'u1', 'a@example.com', now=NOW)
        assert doc['status'] == 'draft'
        assert doc['logo_url'] == ''
        assert doc['created_by'] == 'u1'
        assert doc['created_at'] == doc['updated_at'] == NOW.isoformat()

    def test_new_team_gets_default_logo(self):
        doc = new_team('team1', 'Falcons', 'الصقور', now=NOW)
        assert doc['logo_url'] == DEFAULT_TEAM_LOGO_URL
        assert doc['description'] == ''

    def test_new_group(self):
        doc = new_group('g1', 'Group A', '2', now=NOW)
        assert doc['order'] == 2
        assert doc['team_ids'] == []

    def test_new_match(self):
        doc = new_match('m1', 'a', 'b', group_id='g1', scheduled_at='2026-05-05T10:00:00', now=NOW)
        assert doc['status'] == 'scheduled'
        assert doc['scheduled_at'] == '2026-05-05T10:00:00+00:00'
        assert doc['score1'] is None and doc['score2'] is None
        assert doc['winner_team_id'] is None
        assert doc['finished_at'] is None


class TestValidateScore:
    """Tests for score validation."""

    @pytest.mark.parametrize('value', [0, 1, 42])
    def test_valid(self, value):
        assert validate_score(value) == value

    @pytest.mark.parametrize('value', [-1, 1.0, '2', None, True, False])
    def test_invalid(self, value):
        with pytest.raises(InvalidScore):
            validate_score(value)


class TestErrors:
    """Tests for error codes and messages."""

    def test_default_message(self):
        err = InvalidScore()
        assert err.message == InvalidScore.default_message
        assert str(err) == err.message
        assert err.code == 'invalid_score'

    def test_custom_message(self):
        err = InvalidScore('bad score')
        assert err.message == 'bad score'

    def test_hierarchy(self):
        from tourney.errors import MatchNotFound
        assert issubclass(MatchNotFound, NotFound)
        assert issubclass(NotFound, TournamentError)
