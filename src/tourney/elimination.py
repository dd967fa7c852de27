"""
Single elimination bracket generation and result propagation.

A bracket is one document::

    {'format': 'single_elimination', 'size': 8, 'version': 3,
     'rounds': [{'name': 'Quarter Final', 'matches': [...]}, ...]}

Every function here is pure: results are applied to a deep copy and the
caller decides whether to persist the new snapshot.
"""
import copy
import logging
import math
from typing import Dict, List, Optional, Tuple

from tourney.errors import (
    DrawNotAllowed,
    InvalidMatch,
    InvalidSize,
    MatchNotFound,
    TeamCountMismatch,
    TeamsNotAssigned,
)
from tourney.models import validate_score

logger = logging.getLogger(__name__)

BRACKET_FORMAT = 'single_elimination'
MIN_BRACKET_SIZE = 4

BRACKET_SCHEDULED = 'scheduled'
BRACKET_FINISHED = 'finished'


def is_power_of_two(n: int) -> bool:
    return n > 0 and (n & (n - 1)) == 0


def get_round_name(teams_in_round: int) -> str:
    """Get the name of a round based on number of teams still in it."""
    if teams_in_round == 2:
        return "Final"
    elif teams_in_round == 4:
        return "Semi Final"
    elif teams_in_round == 8:
        return "Quarter Final"
    else:
        return f"Round of {teams_in_round}"


def empty_match(match_id: str, team1_id: Optional[str] = None, team2_id: Optional[str] = None) -> Dict:
    return {
        'id': match_id,
        'team1_id': team1_id,
        'team2_id': team2_id,
        'score1': None,
        'score2': None,
        'winner_team_id': None,
        'status': BRACKET_SCHEDULED,
    }


def generate_single_elimination_bracket(team_ids: List[str], size: int) -> Dict:
    """
    Seed a new bracket of ``size`` slots from ``team_ids``.

    Round 1 pairs consecutive teams (1v2, 3v4, ...). Later rounds hold
    placeholder matches whose teams are filled in as winners advance.

    Raises:
        InvalidSize: ``size`` is not a power of two of at least 4.
        TeamCountMismatch: ``len(team_ids) != size``.
        InvalidMatch: a team is seeded more than once.
    """
    if isinstance(size, bool) or not isinstance(size, int) or size < MIN_BRACKET_SIZE or not is_power_of_two(size):
        raise InvalidSize(f"Bracket size must be a power of two (4, 8, 16, 32...), got {size!r}.")
    if len(team_ids) != size:
        raise TeamCountMismatch(f"Please select exactly {size} teams to seed the bracket (got {len(team_ids)}).")
    if len(set(team_ids)) != len(team_ids) or not all(team_ids):
        raise InvalidMatch("Each seeded team must be set and appear only once.")

    total_rounds = int(math.log2(size))
    rounds = []

    rounds.append({
        'name': get_round_name(size),
        'matches': [
            empty_match(f"R1-M{i + 1}", team_ids[i * 2], team_ids[i * 2 + 1])
            for i in range(size // 2)
        ]
    })

    # Placeholder rounds, filled from winners
    for round_num in range(1, total_rounds):
        teams_remaining = size // 2 ** round_num
        rounds.append({
            'name': get_round_name(teams_remaining),
            'matches': [
                empty_match(f"R{round_num + 1}-M{i + 1}")
                for i in range(teams_remaining // 2)
            ]
        })

    return {
        'format': BRACKET_FORMAT,
        'size': size,
        'rounds': rounds,
        'version': 0,
    }


def _get_match(state: Dict, round_index: int, match_index: int) -> Optional[Dict]:
    rounds = state.get('rounds', [])
    if isinstance(round_index, bool) or not isinstance(round_index, int) or not 0 <= round_index < len(rounds):
        return None
    matches = rounds[round_index]['matches']
    if isinstance(match_index, bool) or not isinstance(match_index, int) or not 0 <= match_index < len(matches):
        return None
    return matches[match_index]


def _next_slot(state: Dict, round_index: int, match_index: int) -> Optional[Tuple[Dict, str]]:
    """Return (next_match, slot_key) that the winner of a match feeds into."""
    next_match = _get_match(state, round_index + 1, match_index // 2)
    if next_match is None:
        return None
    slot_key = 'team1_id' if match_index % 2 == 0 else 'team2_id'
    return next_match, slot_key


def _clear_result(match: Dict):
    match['score1'] = None
    match['score2'] = None
    match['winner_team_id'] = None
    match['status'] = BRACKET_SCHEDULED


def _clear_result_and_downstream(state: Dict, round_index: int, match_index: int):
    """Clear a match result and every result and slot that depended on it."""
    r, m = round_index, match_index
    while True:
        match = _get_match(state, r, m)
        if match is None:
            return
        _clear_result(match)

        nxt = _next_slot(state, r, m)
        if nxt is None:
            return
        next_match, slot_key = nxt
        next_match[slot_key] = None
        r, m = r + 1, m // 2


def _advance_winner(state: Dict, round_index: int, match_index: int, winner_team_id: Optional[str]):
    """Write a winner into the next round, invalidating downstream results if it changed."""
    nxt = _next_slot(state, round_index, match_index)
    if nxt is None:
        return
    next_match, slot_key = nxt
    if next_match[slot_key] == winner_team_id:
        return
    logger.debug("Slot %s.%s changes %r -> %r; clearing downstream",
                 next_match['id'], slot_key, next_match[slot_key], winner_team_id)
    next_match[slot_key] = winner_team_id
    _clear_result_and_downstream(state, round_index + 1, match_index // 2)


def set_bracket_match_result(state: Dict, round_index: int, match_index: int,
                             score1: int, score2: int) -> Dict:
    """
    Record a knockout result and return the updated bracket.

    The winner moves into the next round (even match index feeds team1,
    odd feeds team2). When that changes who occupies the slot, everything
    downstream of it is reset; when the same team still advances, later
    results are kept.

    Raises:
        MatchNotFound: no match at (round_index, match_index).
        TeamsNotAssigned: one of the two sides is still empty.
        InvalidScore: a score is not a non-negative integer.
        DrawNotAllowed: ``score1 == score2``.
    """
    if _get_match(state, round_index, match_index) is None:
        raise MatchNotFound(f"No bracket match at round {round_index}, match {match_index}.")

    next_state = copy.deepcopy(state)
    match = _get_match(next_state, round_index, match_index)

    if not match['team1_id'] or not match['team2_id']:
        raise TeamsNotAssigned()
    score1 = validate_score(score1)
    score2 = validate_score(score2)
    if score1 == score2:
        raise DrawNotAllowed()

    winner_team_id = match['team1_id'] if score1 > score2 else match['team2_id']

    match['score1'] = score1
    match['score2'] = score2
    match['winner_team_id'] = winner_team_id
    match['status'] = BRACKET_FINISHED

    _advance_winner(next_state, round_index, match_index, winner_team_id)
    next_state['version'] = state.get('version', 0) + 1
    return next_state


def clear_bracket_match_result(state: Dict, round_index: int, match_index: int) -> Dict:
    """Remove a recorded result, emptying the slot it fed and everything after it."""
    if _get_match(state, round_index, match_index) is None:
        raise MatchNotFound(f"No bracket match at round {round_index}, match {match_index}.")

    next_state = copy.deepcopy(state)
    _clear_result_and_downstream(next_state, round_index, match_index)
    next_state['version'] = state.get('version', 0) + 1
    return next_state


def bracket_progress(state: Optional[Dict]) -> Tuple[int, int]:
    """Return (total_matches, finished_matches) for a bracket."""
    if not state:
        return 0, 0
    total = 0
    finished = 0
    for round_data in state.get('rounds', []):
        for match in round_data['matches']:
            total += 1
            if match.get('status') == BRACKET_FINISHED:
                finished += 1
    return total, finished


def get_champion(state: Optional[Dict]) -> Optional[str]:
    """Return the winner of the final, if it has been played."""
    if not state or not state.get('rounds'):
        return None
    final_matches = state['rounds'][-1]['matches']
    if not final_matches:
        return None
    return final_matches[0].get('winner_team_id')
