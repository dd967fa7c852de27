"""
Document shapes for tournaments, teams, groups and matches.

Entities are plain dicts so they serialise straight to YAML; the factories
below are the single place where their default fields are defined.
"""
from datetime import datetime, timezone
from typing import Dict, Optional

from tourney.errors import InvalidScore

TOURNAMENT_STATUSES = ('draft', 'published')

MATCH_SCHEDULED = 'scheduled'
MATCH_IN_PROGRESS = 'in_progress'
MATCH_FINISHED = 'finished'
MATCH_STATUSES = (MATCH_SCHEDULED, MATCH_IN_PROGRESS, MATCH_FINISHED)

DEFAULT_TEAM_LOGO_URL = '/static/default-team-logo.svg'


class Actor:
    """The user performing a mutation, used only for audit attribution."""

    def __init__(self, user_id, user_email=None):
        self.user_id = user_id
        self.user_email = user_email

    def __repr__(self):
        return f"Actor(user_id={self.user_id}, user_email={self.user_email})"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_timestamp(value) -> Optional[str]:
    """Normalise a datetime or ISO string to an ISO-8601 UTC string."""
    if value is None or value == '':
        return None
    return parse_timestamp(value).isoformat()


def parse_timestamp(value) -> datetime:
    """Parse an ISO string (or pass through a datetime) as an aware UTC datetime.

    Naive values are taken to be UTC.
    """
    if isinstance(value, datetime):
        dt = value
    else:
        text = str(value).strip()
        if text.endswith('Z'):
            text = text[:-1] + '+00:00'
        dt = datetime.fromisoformat(text)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def actor_fields(actor: Optional[Actor]) -> Dict:
    if actor is None:
        return {}
    return {
        'updated_by_user_id': actor.user_id,
        'updated_by_email': actor.user_email,
    }


def new_tournament(tournament_id: str, name_en: str, name_ar: str, created_by: str,
                   created_by_email: Optional[str] = None, description: str = '',
                   now: Optional[datetime] = None) -> Dict:
    stamp = to_timestamp(now or utcnow())
    return {
        'id': tournament_id,
        'name_en': name_en,
        'name_ar': name_ar,
        'description': description or '',
        'logo_url': '',
        'logo_path': '',
        'about_us': None,
        'status': 'draft',
        'created_by': created_by,
        'created_by_email': created_by_email,
        'created_at': stamp,
        'updated_at': stamp,
    }


def new_team(team_id: str, name_en: str, name_ar: str, description: str = '',
             now: Optional[datetime] = None) -> Dict:
    stamp = to_timestamp(now or utcnow())
    return {
        'id': team_id,
        'name_en': name_en,
        'name_ar': name_ar,
        'description': description or '',
        'logo_url': DEFAULT_TEAM_LOGO_URL,
        'logo_path': '',
        'created_at': stamp,
        'updated_at': stamp,
    }


def new_group(group_id: str, name: str, order: int, now: Optional[datetime] = None) -> Dict:
    stamp = to_timestamp(now or utcnow())
    return {
        'id': group_id,
        'name': name,
        'order': int(order),
        'team_ids': [],
        'created_at': stamp,
        'updated_at': stamp,
    }


def new_match(match_id: str, team1_id: str, team2_id: str, group_id: Optional[str] = None,
              scheduled_at=None, now: Optional[datetime] = None) -> Dict:
    stamp = to_timestamp(now or utcnow())
    return {
        'id': match_id,
        'group_id': group_id,
        'team1_id': team1_id,
        'team2_id': team2_id,
        'scheduled_at': to_timestamp(scheduled_at),
        'status': MATCH_SCHEDULED,
        'score1': None,
        'score2': None,
        'winner_team_id': None,
        'finished_at': None,
        'created_at': stamp,
        'updated_at': stamp,
    }


def validate_score(value) -> int:
    """Return ``value`` as a score, raising InvalidScore unless it is a non-negative int."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidScore(f'Score must be a whole number, got {value!r}.')
    if value < 0:
        raise InvalidScore(f'Score cannot be negative, got {value}.')
    return value
