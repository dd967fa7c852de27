"""
Lifecycle of group-stage matches: scheduled -> in_progress -> finished.

Unlike bracket matches, group matches may end in a draw and are independent
of each other, so nothing here cascades.
"""
import copy
import logging
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from tourney.errors import InvalidMatch, InvalidScore, InvalidTransition
from tourney.models import (
    MATCH_FINISHED,
    MATCH_IN_PROGRESS,
    MATCH_SCHEDULED,
    MATCH_STATUSES,
    parse_timestamp,
    to_timestamp,
    utcnow,
    validate_score,
)

logger = logging.getLogger(__name__)

_STATUS_RANK = {status: rank for rank, status in enumerate(MATCH_STATUSES)}

EDITABLE_FIELDS = ('group_id', 'team1_id', 'team2_id', 'scheduled_at', 'status', 'score1', 'score2')


def compute_winner(team1_id: str, team2_id: str, score1: int, score2: int) -> Optional[str]:
    """Return the winning team id, or None for a draw."""
    if score1 > score2:
        return team1_id
    if score1 < score2:
        return team2_id
    return None


def validate_match(match: Dict):
    """Check the invariants every stored match must satisfy."""
    if not match.get('team1_id') or not match.get('team2_id'):
        raise InvalidMatch("Both teams must be selected.")
    if match['team1_id'] == match['team2_id']:
        raise InvalidMatch("A team cannot play against itself.")
    if match.get('status') not in MATCH_STATUSES:
        raise InvalidTransition(f"Unknown match status {match.get('status')!r}.")
    has_score1 = match.get('score1') is not None
    has_score2 = match.get('score2') is not None
    if has_score1 != has_score2:
        raise InvalidScore("Both scores must be filled or both must be empty.")
    if has_score1:
        validate_score(match['score1'])
        validate_score(match['score2'])


def due_for_start(matches: Iterable[Dict], now: Optional[datetime] = None) -> List[str]:
    """Ids of scheduled matches whose kick-off time is at or before ``now``."""
    now = parse_timestamp(now or utcnow())
    due = []
    for match in matches:
        if match.get('status') != MATCH_SCHEDULED or not match.get('scheduled_at'):
            continue
        if parse_timestamp(match['scheduled_at']) <= now:
            due.append(match['id'])
    return due


def start_match(match: Dict, now: Optional[datetime] = None) -> Dict:
    """Move a scheduled match to in_progress. Later states are returned unchanged."""
    updated = copy.deepcopy(match)
    if updated.get('status') == MATCH_SCHEDULED:
        updated['status'] = MATCH_IN_PROGRESS
        updated['updated_at'] = to_timestamp(now or utcnow())
    return updated


def start_due_matches(matches: Iterable[Dict], now: Optional[datetime] = None) -> List[Dict]:
    """Return started copies of every match that is due. The caller persists them."""
    now = now or utcnow()
    matches = list(matches)
    due = set(due_for_start(matches, now))
    if due:
        logger.info("Starting %d due match(es)", len(due))
    return [start_match(m, now) for m in matches if m['id'] in due]


def record_match_result(match: Dict, score1: int, score2: int, now: Optional[datetime] = None) -> Dict:
    """Finish a match with the given score, or correct the score of a finished one.

    Draws are allowed and leave ``winner_team_id`` as None. ``finished_at``
    keeps the time the match first finished.
    """
    score1 = validate_score(score1)
    score2 = validate_score(score2)
    stamp = to_timestamp(now or utcnow())

    updated = copy.deepcopy(match)
    updated['score1'] = score1
    updated['score2'] = score2
    updated['winner_team_id'] = compute_winner(updated['team1_id'], updated['team2_id'], score1, score2)
    if updated.get('status') != MATCH_FINISHED or not updated.get('finished_at'):
        updated['finished_at'] = stamp
    updated['status'] = MATCH_FINISHED
    updated['updated_at'] = stamp
    return updated


def update_match(match: Dict, now: Optional[datetime] = None, **changes) -> Dict:
    """
    Edit a match from the management form.

    Accepts any of ``EDITABLE_FIELDS``. Status may only move forward; scores
    are only kept together. When the resulting match is finished its winner
    is recomputed from the scores.
    """
    unknown = set(changes) - set(EDITABLE_FIELDS)
    if unknown:
        raise InvalidMatch(f"Cannot edit field(s): {', '.join(sorted(unknown))}.")

    updated = copy.deepcopy(match)
    if 'scheduled_at' in changes:
        changes['scheduled_at'] = to_timestamp(changes['scheduled_at'])
    old_status = updated.get('status', MATCH_SCHEDULED)
    updated.update(changes)

    new_status = updated.get('status')
    if new_status not in _STATUS_RANK:
        raise InvalidTransition(f"Unknown match status {new_status!r}.")
    if _STATUS_RANK[new_status] < _STATUS_RANK[old_status]:
        raise InvalidTransition(f"Cannot move a match from {old_status} back to {new_status}.")

    validate_match(updated)

    stamp = to_timestamp(now or utcnow())
    if new_status == MATCH_FINISHED:
        if updated.get('score1') is None:
            raise InvalidScore("A finished match needs a score.")
        updated['winner_team_id'] = compute_winner(
            updated['team1_id'], updated['team2_id'], updated['score1'], updated['score2'])
        if not updated.get('finished_at'):
            updated['finished_at'] = stamp
    else:
        updated['winner_team_id'] = None

    updated['updated_at'] = stamp
    return updated
