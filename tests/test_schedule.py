"""
Unit tests for round-robin pairing.
"""
import pytest
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from tourney.schedule import generate_round_robin_pairs


class TestRoundRobinPairs:
    """Tests for generate_round_robin_pairs."""

    def test_four_teams(self):
        """Pairs follow input order: each team meets every later team."""
        pairs = generate_round_robin_pairs(['A', 'B', 'C', 'D'])
        assert [(p['team1_id'], p['team2_id']) for p in pairs] == [
            ('A', 'B'), ('A', 'C'), ('A', 'D'),
            ('B', 'C'), ('B', 'D'),
            ('C', 'D'),
        ]

    @pytest.mark.parametrize('n', [2, 3, 5, 8, 12])
    def test_pair_count(self, n):
        pairs = generate_round_robin_pairs([f'T{i}' for i in range(n)])
        assert len(pairs) == n * (n - 1) // 2

    def test_each_pair_once_and_no_self_play(self):
        teams = [f'T{i}' for i in range(6)]
        pairs = generate_round_robin_pairs(teams)
        seen = set()
        for pair in pairs:
            assert pair['team1_id'] != pair['team2_id']
            key = frozenset((pair['team1_id'], pair['team2_id']))
            assert key not in seen
            seen.add(key)

    @pytest.mark.parametrize('teams', [[], ['A']])
    def test_too_few_teams(self, teams):
        assert generate_round_robin_pairs(teams) == []

    def test_duplicates_and_blanks_ignored(self):
        pairs = generate_round_robin_pairs(['A', '', 'B', 'A', None, 'C'])
        assert [(p['team1_id'], p['team2_id']) for p in pairs] == [
            ('A', 'B'), ('A', 'C'), ('B', 'C'),
        ]

    def test_repeatable(self):
        teams = ['X', 'Y', 'Z']
        assert generate_round_robin_pairs(teams) == generate_round_robin_pairs(teams)
