"""
Round-robin pairing for group play.
"""
from itertools import combinations
from typing import Dict, Iterable, List


def generate_round_robin_pairs(team_ids: Iterable[str]) -> List[Dict[str, str]]:
    """Return every unordered pairing of ``team_ids`` in input order.

    Blank ids are dropped and repeated ids keep their first position, so
    ``n`` distinct teams always produce ``n * (n - 1) / 2`` pairs. Calling
    this again with the same input yields the same list; persisting it twice
    creates duplicate matches, which is up to the caller to avoid.
    """
    ids = []
    seen = set()
    for team_id in team_ids:
        if not team_id or team_id in seen:
            continue
        seen.add(team_id)
        ids.append(team_id)

    return [
        {'team1_id': team1_id, 'team2_id': team2_id}
        for team1_id, team2_id in combinations(ids, 2)
    ]
