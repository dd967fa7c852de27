"""
Fixed-topology event bracket.

Two sides (left and right) each play six round-1 matches and send two teams
through winner slots into the semifinals::

    SF1 = left W1  vs right W2
    SF2 = right W1 vs left W2
    Final       = SF1 winner vs SF2 winner
    Third place = SF1 loser  vs SF2 loser

A winner slot is a tagged union stored in ``slot['source']``:

    {'kind': 'unassigned'}
    {'kind': 'derived', 'match_index': i}   # follows round-1 match i of the side
    {'kind': 'manual', 'team_id': t}        # pinned by an organiser

``slot['team_id']`` always holds the resolved value. After every change the
slots are resolved again and any knockout match whose participants moved
has its result cleared, which cascades to the final and third place.
"""
import copy
import logging
from typing import Dict, List, Optional, Tuple

from tourney.errors import (
    DrawNotAllowed,
    InvalidMatch,
    MatchNotFound,
    NotFound,
    TeamsNotAssigned,
)
from tourney.models import validate_score

logger = logging.getLogger(__name__)

EVENT_FORMAT = 'event'
SIDES = ('left', 'right')
ROUND1_MATCH_COUNT = 6
WINNER_SLOT_COUNT = 2

STAGE_SEMI = 'semi'
STAGE_THIRD_PLACE = 'third_place'
STAGE_FINAL = 'final'
STAGES = SIDES + (STAGE_SEMI, STAGE_THIRD_PLACE, STAGE_FINAL)
KNOCKOUT_STAGES = (STAGE_SEMI, STAGE_THIRD_PLACE, STAGE_FINAL)

EVENT_PENDING = 'pending'
EVENT_SCHEDULED = 'scheduled'
EVENT_FINISHED = 'finished'

SLOT_UNASSIGNED = 'unassigned'
SLOT_DERIVED = 'derived'
SLOT_MANUAL = 'manual'


def _event_match(match_id: str) -> Dict:
    return {
        'id': match_id,
        'team1_id': None,
        'team2_id': None,
        'score1': None,
        'score2': None,
        'winner_id': None,
        'status': EVENT_PENDING,
    }


def _side(prefix: str, group_id: Optional[str]) -> Dict:
    return {
        'group_id': group_id,
        'round1_matches': [_event_match(f"{prefix}-R1-M{i + 1}") for i in range(ROUND1_MATCH_COUNT)],
        'winner_slots': [
            {'id': f"{prefix}-W{i + 1}", 'source': {'kind': SLOT_UNASSIGNED}, 'team_id': None}
            for i in range(WINNER_SLOT_COUNT)
        ],
    }


def create_event_bracket(left_group_id: Optional[str] = None, right_group_id: Optional[str] = None) -> Dict:
    """Return an empty event bracket; every match starts pending."""
    return {
        'format': EVENT_FORMAT,
        'version': 0,
        'left_side': _side('L', left_group_id),
        'right_side': _side('R', right_group_id),
        'semi_finals': [_event_match('SF1'), _event_match('SF2')],
        'third_place': _event_match('TP'),
        'final': _event_match('F'),
    }


def _get_side(state: Dict, side: str) -> Dict:
    if side not in SIDES:
        raise NotFound(f"Unknown bracket side {side!r}; expected 'left' or 'right'.")
    return state[f"{side}_side"]


def get_event_match(state: Dict, stage: str, index: int = 0) -> Optional[Dict]:
    """Look up a match by stage ('left', 'right', 'semi', 'third_place', 'final') and index."""
    if stage in SIDES:
        matches = state[f"{stage}_side"]['round1_matches']
    elif stage == STAGE_SEMI:
        matches = state['semi_finals']
    elif stage in (STAGE_THIRD_PLACE, STAGE_FINAL):
        return state[stage] if index is None or (index == 0 and not isinstance(index, bool)) else None
    else:
        return None
    if isinstance(index, bool) or not isinstance(index, int) or not 0 <= index < len(matches):
        return None
    return matches[index]


def _require_match(state: Dict, stage: str, index: int) -> Dict:
    match = get_event_match(state, stage, index)
    if match is None:
        raise MatchNotFound(f"No event bracket match at {stage} #{index}.")
    return match


def _reset(match: Dict):
    match['score1'] = None
    match['score2'] = None
    match['winner_id'] = None
    match['status'] = EVENT_SCHEDULED if match['team1_id'] and match['team2_id'] else EVENT_PENDING


def _set_participants(match: Dict, team1_id: Optional[str], team2_id: Optional[str]) -> bool:
    """Place teams in a match, clearing its result if they changed."""
    if match['team1_id'] == team1_id and match['team2_id'] == team2_id:
        return False
    match['team1_id'] = team1_id
    match['team2_id'] = team2_id
    _reset(match)
    return True


def _slot_value(side: Dict, slot: Dict) -> Optional[str]:
    source = slot.get('source') or {'kind': SLOT_UNASSIGNED}
    if source['kind'] == SLOT_MANUAL:
        return source.get('team_id')
    if source['kind'] == SLOT_DERIVED:
        match = side['round1_matches'][source['match_index']]
        if match['status'] == EVENT_FINISHED:
            return match['winner_id']
    return None


def _outcome(match: Dict) -> Tuple[Optional[str], Optional[str]]:
    """(winner, loser) of a finished knockout match, else (None, None)."""
    if match['status'] != EVENT_FINISHED or not match['winner_id']:
        return None, None
    if match['winner_id'] == match['team1_id']:
        return match['team1_id'], match['team2_id']
    return match['team2_id'], match['team1_id']


def _resolve(state: Dict):
    """Recompute winner slots and knockout participants after a change."""
    for side_name in SIDES:
        side = state[f"{side_name}_side"]
        for slot in side['winner_slots']:
            slot['team_id'] = _slot_value(side, slot)

    left = state['left_side']['winner_slots']
    right = state['right_side']['winner_slots']
    sf1, sf2 = state['semi_finals']
    if _set_participants(sf1, left[0]['team_id'], right[1]['team_id']):
        logger.debug("Semifinal SF1 participants changed; result cleared")
    if _set_participants(sf2, right[0]['team_id'], left[1]['team_id']):
        logger.debug("Semifinal SF2 participants changed; result cleared")

    sf1_winner, sf1_loser = _outcome(sf1)
    sf2_winner, sf2_loser = _outcome(sf2)
    _set_participants(state['final'], sf1_winner, sf2_winner)
    _set_participants(state['third_place'], sf1_loser, sf2_loser)


def _bump(state: Dict, next_state: Dict) -> Dict:
    _resolve(next_state)
    next_state['version'] = state.get('version', 0) + 1
    return next_state


def set_side_group(state: Dict, side: str, group_id: Optional[str]) -> Dict:
    """Set which group a side draws its round-1 teams from."""
    next_state = copy.deepcopy(state)
    _get_side(next_state, side)['group_id'] = group_id
    return _bump(state, next_state)


def _round1_placement(state: Dict, team_id: Optional[str]) -> Optional[Tuple[str, int]]:
    """(side, match_index) of the round-1 match a team is placed in, if any."""
    if not team_id:
        return None
    for side_name in SIDES:
        for i, match in enumerate(state[f"{side_name}_side"]['round1_matches']):
            if team_id in (match['team1_id'], match['team2_id']):
                return side_name, i
    return None


def round1_team_ids(state: Dict, side: str) -> List[str]:
    """Every team placed in the side's round-1 matches."""
    team_ids = []
    for match in _get_side(state, side)['round1_matches']:
        team_ids.extend(t for t in (match['team1_id'], match['team2_id']) if t)
    return team_ids


def assign_round1_teams(state: Dict, side: str, match_index: int,
                        team1_id: Optional[str], team2_id: Optional[str]) -> Dict:
    """Place teams into a round-1 match. Changing them clears its result."""
    _get_side(state, side)
    if team1_id and team1_id == team2_id:
        raise InvalidMatch("A team cannot play against itself.")
    _require_match(state, side, match_index)
    for team_id in (team1_id, team2_id):
        placed = _round1_placement(state, team_id)
        if placed and placed != (side, match_index):
            raise InvalidMatch(f"Team {team_id} is already placed in {placed[0]} round-1 match #{placed[1]}.")

    next_state = copy.deepcopy(state)
    _set_participants(_require_match(next_state, side, match_index), team1_id or None, team2_id or None)
    return _bump(state, next_state)


def set_event_match_result(state: Dict, stage: str, index: int, score1: int, score2: int) -> Dict:
    """
    Record a result anywhere in the event bracket.

    Round-1 matches may be drawn; semifinals, third place and final may not.

    Raises:
        MatchNotFound, TeamsNotAssigned, InvalidScore, DrawNotAllowed
    """
    _require_match(state, stage, index)
    next_state = copy.deepcopy(state)
    match = _require_match(next_state, stage, index)

    if not match['team1_id'] or not match['team2_id']:
        raise TeamsNotAssigned()
    if match['team1_id'] == match['team2_id']:
        raise InvalidMatch("A team cannot play against itself.")
    score1 = validate_score(score1)
    score2 = validate_score(score2)
    if score1 == score2 and stage in KNOCKOUT_STAGES:
        raise DrawNotAllowed()

    if score1 > score2:
        winner_id = match['team1_id']
    elif score2 > score1:
        winner_id = match['team2_id']
    else:
        winner_id = None

    match['score1'] = score1
    match['score2'] = score2
    match['winner_id'] = winner_id
    match['status'] = EVENT_FINISHED
    return _bump(state, next_state)


def clear_event_match_result(state: Dict, stage: str, index: int) -> Dict:
    _require_match(state, stage, index)
    next_state = copy.deepcopy(state)
    _reset(_require_match(next_state, stage, index))
    return _bump(state, next_state)


def _require_slot(side: Dict, slot_index: int) -> Dict:
    slots = side['winner_slots']
    if isinstance(slot_index, bool) or not isinstance(slot_index, int) or not 0 <= slot_index < len(slots):
        raise NotFound(f"No winner slot #{slot_index}.")
    return slots[slot_index]


def bind_winner_slot(state: Dict, side: str, slot_index: int, match_index: int) -> Dict:
    """Make a winner slot follow the winner of one of the side's round-1 matches."""
    _require_slot(_get_side(state, side), slot_index)
    _require_match(state, side, match_index)

    next_state = copy.deepcopy(state)
    slot = _require_slot(_get_side(next_state, side), slot_index)
    slot['source'] = {'kind': SLOT_DERIVED, 'match_index': match_index}
    return _bump(state, next_state)


def override_winner_slot(state: Dict, side: str, slot_index: int, team_id: Optional[str]) -> Dict:
    """Pin a winner slot to a team, or release it with ``team_id=None``."""
    target = _require_slot(_get_side(state, side), slot_index)
    if team_id:
        for side_name in SIDES:
            for slot in state[f"{side_name}_side"]['winner_slots']:
                if slot is not target and slot['team_id'] == team_id:
                    raise InvalidMatch(f"Team {team_id} already holds winner slot {slot['id']}.")

    next_state = copy.deepcopy(state)
    slot = _require_slot(_get_side(next_state, side), slot_index)
    if team_id:
        slot['source'] = {'kind': SLOT_MANUAL, 'team_id': team_id}
    else:
        slot['source'] = {'kind': SLOT_UNASSIGNED}
    return _bump(state, next_state)


def iter_event_matches(state: Optional[Dict]) -> List[Dict]:
    if not state:
        return []
    matches = []
    for side_name in SIDES:
        matches.extend(state[f"{side_name}_side"]['round1_matches'])
    matches.extend(state['semi_finals'])
    matches.append(state['third_place'])
    matches.append(state['final'])
    return matches


def event_progress(state: Optional[Dict]) -> Tuple[int, int]:
    """Return (total_matches, finished_matches) for an event bracket."""
    matches = iter_event_matches(state)
    return len(matches), sum(1 for m in matches if m['status'] == EVENT_FINISHED)
