"""
Integration tests for TournamentManager on a real YAML store.
"""
import pytest
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from tourney.errors import (
    DrawNotAllowed,
    GroupNotFound,
    InvalidMatch,
    InvalidScore,
    InvalidSize,
    InvalidTransition,
    MatchNotFound,
    TeamAlreadyGrouped,
    TeamNotFound,
    TeamNotInGroup,
    TournamentNotFound,
    ValidationError,
)
from tourney.models import DEFAULT_TEAM_LOGO_URL, Actor
from tourney.storage import ConflictError
from tourney.tournament import TournamentManager

PNG = b'\x89PNG\r\n\x1a\n'


class TestTournaments:
    """Tests for tournament documents."""

    def test_create_and_get(self, manager, tournament_id, actor):
        doc = manager.get_tournament(tournament_id)
        assert doc['name_en'] == 'Spring Cup'
        assert doc['status'] == 'draft'
        assert doc['created_by'] == actor.user_id
        assert doc['updated_by_email'] == actor.user_email

    def test_blank_name_rejected(self, manager):
        with pytest.raises(ValidationError):
            manager.create_tournament('  ', 'كأس')

    def test_missing_tournament(self, manager):
        with pytest.raises(TournamentNotFound):
            manager.get_tournament('missing')

    def test_list_filters_by_creator(self, manager, tournament_id):
        other = manager.create_tournament('Autumn Cup', 'كأس الخريف', actor=Actor('user-2'))
        assert [t['id'] for t in manager.list_tournaments()] == [other, tournament_id]
        assert [t['id'] for t in manager.list_tournaments('user-1')] == [tournament_id]

    def test_update_and_publish(self, manager, tournament_id):
        doc = manager.update_tournament(tournament_id, 'Spring Cup 2026', 'كأس', 'Finals day', 'published')
        assert manager.get_tournament(tournament_id)['status'] == 'published'
        assert doc['description'] == 'Finals day'

    def test_unknown_status(self, manager, tournament_id):
        with pytest.raises(ValidationError):
            manager.update_tournament(tournament_id, 'Cup', 'كأس', status='archived')

    def test_about_us(self, manager, tournament_id, actor):
        doc = manager.update_tournament_about_us(
            tournament_id, ['  Founded in 1990. ', '', '   ', 'Open to all clubs.'],
            logo_url=' https://example.com/club.png ', logo_alt='', actor=actor)
        assert doc['about_us'] == {
            'paragraphs': ['Founded in 1990.', 'Open to all clubs.'],
            'logo_url': 'https://example.com/club.png',
        }
        assert manager.get_tournament(tournament_id)['about_us'] == doc['about_us']

        entry = manager.audit_log(tournament_id)[0]
        assert (entry['action'], entry['entity_type']) == ('update', 'tournament_about_us')

    def test_about_us_cleared_by_blank_paragraphs(self, manager, tournament_id):
        manager.update_tournament_about_us(tournament_id, ['Hello'], logo_alt='Crest')
        doc = manager.update_tournament_about_us(tournament_id, [' '], logo_url='x.png')
        assert doc['about_us'] is None

    @pytest.mark.parametrize('paragraphs', ['Hello', None, ['ok', 3]])
    def test_about_us_rejects_non_string_list(self, manager, tournament_id, paragraphs):
        with pytest.raises(ValidationError):
            manager.update_tournament_about_us(tournament_id, paragraphs)

    def test_upload_logo_replaces_previous(self, manager, tournament_id, tmp_path):
        first = manager.upload_tournament_logo(tournament_id, 'logo.png', PNG)
        assert first['logo_url'] == f'/media/tournaments/{tournament_id}/logo.png'
        second = manager.upload_tournament_logo(tournament_id, 'logo.jpg', b'jpeg')

        media = tmp_path / "media" / "tournaments" / tournament_id
        assert not (media / "logo.png").exists()
        assert (media / "logo.jpg").read_bytes() == b'jpeg'
        assert manager.get_tournament(tournament_id)['logo_path'] == second['logo_path']

    def test_logo_without_object_store(self, store, clock):
        manager = TournamentManager(store, clock=clock)
        tournament_id = manager.create_tournament('Cup', 'كأس')
        with pytest.raises(ValidationError):
            manager.upload_tournament_logo(tournament_id, 'logo.png', PNG)


class TestTeams:
    """Tests for team management."""

    def test_default_logo(self, manager, tournament_id, team_ids):
        team = manager.get_team(tournament_id, team_ids[0])
        assert team['logo_url'] == DEFAULT_TEAM_LOGO_URL
        assert [t['id'] for t in manager.list_teams(tournament_id)] == team_ids

    def test_create_with_logo(self, manager, tournament_id):
        team_id = manager.create_team(tournament_id, 'Falcons', 'الصقور', logo=('crest.png', PNG))
        team = manager.get_team(tournament_id, team_id)
        assert team['logo_path'] == f'tournaments/{tournament_id}/teams/{team_id}/logo.png'
        assert team['logo_url'] == f"/media/{team['logo_path']}"

    def test_team_needs_tournament(self, manager):
        with pytest.raises(TournamentNotFound):
            manager.create_team('missing', 'A', 'ا')

    def test_update(self, manager, tournament_id, team_ids):
        team = manager.update_team(tournament_id, team_ids[0], 'Eagles', 'النسور', 'new kit')
        assert team['name_en'] == 'Eagles'
        assert manager.get_team(tournament_id, team_ids[0])['description'] == 'new kit'

    def test_delete_detaches_from_group_and_removes_logo(self, manager, tournament_id, tmp_path):
        team_id = manager.create_team(tournament_id, 'Falcons', 'الصقور', logo=('crest.png', PNG))
        group_id = manager.create_group(tournament_id, 'Group A')
        manager.add_team_to_group(tournament_id, group_id, team_id)

        manager.delete_team(tournament_id, team_id)

        with pytest.raises(TeamNotFound):
            manager.get_team(tournament_id, team_id)
        assert manager.get_group(tournament_id, group_id)['team_ids'] == []
        assert not (tmp_path / "media" / "tournaments" / tournament_id / "teams" / team_id / "logo.png").exists()


class TestGroups:
    """Tests for groups and membership."""

    def test_list_ordered(self, manager, tournament_id):
        b = manager.create_group(tournament_id, 'Group B', order=2)
        a = manager.create_group(tournament_id, 'Group A', order=1)
        c = manager.create_group(tournament_id, 'Group C', order=2)
        assert [g['id'] for g in manager.list_groups(tournament_id)] == [a, b, c]

    def test_bad_order(self, manager, tournament_id):
        with pytest.raises(ValidationError):
            manager.create_group(tournament_id, 'Group A', order='first')

    def test_add_team_is_idempotent(self, manager, tournament_id, team_ids):
        group_id = manager.create_group(tournament_id, 'Group A')
        manager.add_team_to_group(tournament_id, group_id, team_ids[0])
        group = manager.add_team_to_group(tournament_id, group_id, team_ids[0])
        assert group['team_ids'] == [team_ids[0]]

    def test_team_in_one_group_only(self, manager, tournament_id, team_ids):
        group_a = manager.create_group(tournament_id, 'Group A')
        group_b = manager.create_group(tournament_id, 'Group B')
        manager.add_team_to_group(tournament_id, group_a, team_ids[0])
        with pytest.raises(TeamAlreadyGrouped):
            manager.add_team_to_group(tournament_id, group_b, team_ids[0])
        assert manager.get_group(tournament_id, group_a)['team_ids'] == [team_ids[0]]
        assert manager.get_group(tournament_id, group_b)['team_ids'] == []

        manager.remove_team_from_group(tournament_id, group_a, team_ids[0])
        manager.add_team_to_group(tournament_id, group_b, team_ids[0])
        assert manager.get_group(tournament_id, group_b)['team_ids'] == [team_ids[0]]

    def test_add_unknown_team(self, manager, tournament_id):
        group_id = manager.create_group(tournament_id, 'Group A')
        with pytest.raises(TeamNotFound):
            manager.add_team_to_group(tournament_id, group_id, 'ghost')

    def test_delete_group_keeps_matches(self, manager, tournament_id, team_ids):
        group_id = manager.create_group(tournament_id, 'Group A')
        match_id = manager.create_match(tournament_id, team_ids[0], team_ids[1], group_id=group_id)
        manager.delete_group(tournament_id, group_id)

        with pytest.raises(GroupNotFound):
            manager.get_group(tournament_id, group_id)
        assert manager.get_match(tournament_id, match_id)['group_id'] == group_id

    def test_generate_group_matches(self, manager, tournament_id, team_ids):
        group_id = manager.create_group(tournament_id, 'Group A')
        for team_id in team_ids[:4]:
            manager.add_team_to_group(tournament_id, group_id, team_id)

        match_ids = manager.generate_group_matches(tournament_id, group_id)

        assert len(match_ids) == 6
        matches = manager.list_matches(tournament_id)
        assert {m['id'] for m in matches} == set(match_ids)
        assert all(m['group_id'] == group_id and m['status'] == 'scheduled' for m in matches)

    def test_generate_for_small_group(self, manager, tournament_id, team_ids):
        group_id = manager.create_group(tournament_id, 'Group A')
        manager.add_team_to_group(tournament_id, group_id, team_ids[0])
        assert manager.generate_group_matches(tournament_id, group_id) == []


class TestMatches:
    """Tests for group match management."""

    def test_create_validates_teams(self, manager, tournament_id, team_ids):
        with pytest.raises(InvalidMatch):
            manager.create_match(tournament_id, team_ids[0], team_ids[0])
        with pytest.raises(TeamNotFound):
            manager.create_match(tournament_id, team_ids[0], 'ghost')
        with pytest.raises(GroupNotFound):
            manager.create_match(tournament_id, team_ids[0], team_ids[1], group_id='ghost')

    def test_bad_schedule(self, manager, tournament_id, team_ids):
        with pytest.raises(ValidationError):
            manager.create_match(tournament_id, team_ids[0], team_ids[1], scheduled_at='soon')

    def test_batch_is_all_or_nothing(self, manager, tournament_id, team_ids):
        with pytest.raises(TeamNotFound):
            manager.create_matches_batch(tournament_id, [
                {'team1_id': team_ids[0], 'team2_id': team_ids[1]},
                {'team1_id': team_ids[2], 'team2_id': 'ghost'},
            ])
        assert manager.list_matches(tournament_id) == []

    def test_list_newest_first(self, manager, tournament_id, team_ids):
        first = manager.create_match(tournament_id, team_ids[0], team_ids[1])
        second = manager.create_match(tournament_id, team_ids[2], team_ids[3])
        assert [m['id'] for m in manager.list_matches(tournament_id)] == [second, first]

    def test_list_starts_due_matches(self, manager, tournament_id, team_ids):
        due = manager.create_match(tournament_id, team_ids[0], team_ids[1],
                                   scheduled_at='2026-03-01T08:00:00')
        later = manager.create_match(tournament_id, team_ids[2], team_ids[3],
                                     scheduled_at='2026-12-01T08:00:00')

        statuses = {m['id']: m['status'] for m in manager.list_matches(tournament_id)}

        assert statuses == {due: 'in_progress', later: 'scheduled'}
        assert manager.get_match(tournament_id, due)['status'] == 'in_progress'

    def test_record_result_and_correct(self, manager, tournament_id, team_ids):
        match_id = manager.create_match(tournament_id, team_ids[0], team_ids[1])
        first = manager.record_match_result(tournament_id, match_id, 1, 1)
        assert first['status'] == 'finished'
        assert first['winner_team_id'] is None

        corrected = manager.record_match_result(tournament_id, match_id, 2, 1)
        assert corrected['winner_team_id'] == team_ids[0]
        assert corrected['finished_at'] == first['finished_at']

    def test_record_invalid_score(self, manager, tournament_id, team_ids):
        match_id = manager.create_match(tournament_id, team_ids[0], team_ids[1])
        with pytest.raises(InvalidScore):
            manager.record_match_result(tournament_id, match_id, -1, 0)

    def test_update_match(self, manager, tournament_id, team_ids, actor):
        match_id = manager.create_match(tournament_id, team_ids[0], team_ids[1])
        updated = manager.update_match(tournament_id, match_id, actor=actor,
                                       team2_id=team_ids[2], status='finished', score1=0, score2=2)
        assert updated['winner_team_id'] == team_ids[2]
        assert updated['updated_by_user_id'] == actor.user_id

        with pytest.raises(InvalidTransition):
            manager.update_match(tournament_id, match_id, status='in_progress')
        with pytest.raises(TeamNotFound):
            manager.update_match(tournament_id, match_id, team1_id='ghost')

    def test_delete_match(self, manager, tournament_id, team_ids):
        match_id = manager.create_match(tournament_id, team_ids[0], team_ids[1])
        manager.delete_match(tournament_id, match_id)
        with pytest.raises(MatchNotFound):
            manager.get_match(tournament_id, match_id)


class TestBracket:
    """Tests for the persisted single elimination bracket."""

    def test_generate(self, manager, tournament_id, team_ids):
        bracket = manager.generate_bracket(tournament_id, team_ids, 8)
        assert bracket['version'] == 1
        assert manager.get_bracket(tournament_id)['rounds'][0]['matches'][0]['team1_id'] == team_ids[0]

    def test_generate_validates(self, manager, tournament_id, team_ids):
        with pytest.raises(InvalidSize):
            manager.generate_bracket(tournament_id, team_ids[:6], 6)
        with pytest.raises(TeamNotFound):
            manager.generate_bracket(tournament_id, team_ids[:3] + ['ghost'], 4)
        assert manager.get_bracket(tournament_id) is None

    def test_regenerate_bumps_version(self, manager, tournament_id, team_ids):
        manager.generate_bracket(tournament_id, team_ids, 8)
        manager.set_bracket_result(tournament_id, 0, 0, 1, 0)
        bracket = manager.generate_bracket(tournament_id, team_ids[:4], 4)
        assert bracket['version'] == 3
        assert bracket['size'] == 4

    def test_results_cascade_and_persist(self, manager, tournament_id, team_ids):
        manager.generate_bracket(tournament_id, team_ids, 8)
        manager.set_bracket_result(tournament_id, 0, 0, 2, 0)
        manager.set_bracket_result(tournament_id, 0, 1, 2, 0)
        manager.set_bracket_result(tournament_id, 1, 0, 1, 0)
        bracket = manager.set_bracket_result(tournament_id, 0, 0, 0, 2)

        stored = manager.get_bracket(tournament_id)
        assert stored == bracket
        assert stored['version'] == 5
        semi = stored['rounds'][1]['matches'][0]
        assert semi['team1_id'] == team_ids[1]
        assert semi['status'] == 'scheduled'

    def test_draw_rejected(self, manager, tournament_id, team_ids):
        manager.generate_bracket(tournament_id, team_ids, 8)
        with pytest.raises(DrawNotAllowed):
            manager.set_bracket_result(tournament_id, 0, 0, 1, 1)
        assert manager.get_bracket(tournament_id)['version'] == 1

    def test_no_bracket(self, manager, tournament_id):
        with pytest.raises(MatchNotFound):
            manager.set_bracket_result(tournament_id, 0, 0, 1, 0)

    def test_stale_snapshot_conflicts(self, manager, tournament_id, team_ids, monkeypatch):
        stale = manager.generate_bracket(tournament_id, team_ids, 8)
        manager.set_bracket_result(tournament_id, 0, 0, 1, 0)

        monkeypatch.setattr(manager, 'get_bracket', lambda tid: stale)
        with pytest.raises(ConflictError):
            manager.set_bracket_result(tournament_id, 0, 1, 1, 0)

    def test_clear_result(self, manager, tournament_id, team_ids):
        manager.generate_bracket(tournament_id, team_ids, 8)
        manager.set_bracket_result(tournament_id, 0, 0, 1, 0)
        bracket = manager.clear_bracket_result(tournament_id, 0, 0)
        assert bracket['rounds'][0]['matches'][0]['status'] == 'scheduled'
        assert bracket['rounds'][1]['matches'][0]['team1_id'] is None


class TestEventBracket:
    """Tests for the persisted event bracket."""

    def _groups(self, manager, tournament_id, team_ids):
        left = manager.create_group(tournament_id, 'Left', order=1)
        right = manager.create_group(tournament_id, 'Right', order=2)
        for team_id in team_ids[:4]:
            manager.add_team_to_group(tournament_id, left, team_id)
        for team_id in team_ids[4:]:
            manager.add_team_to_group(tournament_id, right, team_id)
        return left, right

    def test_create(self, manager, tournament_id, team_ids):
        left, right = self._groups(manager, tournament_id, team_ids)
        bracket = manager.create_event_bracket(tournament_id, left, right)
        assert bracket['version'] == 1
        assert bracket['left_side']['group_id'] == left
        with pytest.raises(GroupNotFound):
            manager.create_event_bracket(tournament_id, 'ghost')

    def test_group_filter(self, manager, tournament_id, team_ids):
        left, right = self._groups(manager, tournament_id, team_ids)
        manager.create_event_bracket(tournament_id, left, right)
        with pytest.raises(TeamNotInGroup):
            manager.assign_event_match_teams(tournament_id, 'left', 0, team_ids[0], team_ids[5])

        bracket = manager.assign_event_match_teams(tournament_id, 'left', 0, team_ids[0], team_ids[1])
        assert bracket['left_side']['round1_matches'][0]['status'] == 'scheduled'

    def test_side_without_group_accepts_any_team(self, manager, tournament_id, team_ids):
        manager.create_event_bracket(tournament_id)
        bracket = manager.assign_event_match_teams(tournament_id, 'right', 0, team_ids[0], team_ids[7])
        assert bracket['right_side']['round1_matches'][0]['team2_id'] == team_ids[7]

    def test_full_flow(self, manager, tournament_id, team_ids):
        t = team_ids
        manager.create_event_bracket(tournament_id)
        manager.assign_event_match_teams(tournament_id, 'left', 0, t[0], t[1])
        manager.assign_event_match_teams(tournament_id, 'left', 1, t[2], t[3])
        manager.assign_event_match_teams(tournament_id, 'right', 0, t[4], t[5])
        manager.assign_event_match_teams(tournament_id, 'right', 1, t[6], t[7])
        for side in ('left', 'right'):
            manager.bind_event_winner_slot(tournament_id, side, 0, 0)
            manager.bind_event_winner_slot(tournament_id, side, 1, 1)
        manager.set_event_match_result(tournament_id, 'left', 0, 1, 0)
        manager.set_event_match_result(tournament_id, 'left', 1, 1, 0)
        manager.set_event_match_result(tournament_id, 'right', 0, 1, 0)
        bracket = manager.set_event_match_result(tournament_id, 'right', 1, 1, 0)

        sf1, sf2 = bracket['semi_finals']
        assert (sf1['team1_id'], sf1['team2_id']) == (t[0], t[6])
        assert (sf2['team1_id'], sf2['team2_id']) == (t[4], t[2])

        manager.override_event_winner_slot(tournament_id, 'left', 0, t[1])
        bracket = manager.get_event_bracket(tournament_id)
        assert bracket['semi_finals'][0]['team1_id'] == t[1]
        assert bracket['version'] == 1 + 4 + 4 + 4 + 1

        bracket = manager.clear_event_match_result(tournament_id, 'right', 1)
        assert bracket['semi_finals'][0]['team2_id'] is None

    def test_override_unknown_team(self, manager, tournament_id):
        manager.create_event_bracket(tournament_id)
        with pytest.raises(TeamNotFound):
            manager.override_event_winner_slot(tournament_id, 'left', 0, 'ghost')

    def test_no_event_bracket(self, manager, tournament_id):
        with pytest.raises(MatchNotFound):
            manager.set_event_match_result(tournament_id, 'final', 0, 1, 0)

    def test_set_side_group(self, manager, tournament_id, team_ids):
        left, _ = self._groups(manager, tournament_id, team_ids)
        manager.create_event_bracket(tournament_id)
        bracket = manager.set_event_side_group(tournament_id, 'left', left)
        assert bracket['left_side']['group_id'] == left

    def test_side_group_must_hold_placed_teams(self, manager, tournament_id, team_ids):
        left, right = self._groups(manager, tournament_id, team_ids)
        manager.create_event_bracket(tournament_id)
        manager.assign_event_match_teams(tournament_id, 'left', 0, team_ids[0], team_ids[5])

        with pytest.raises(TeamNotInGroup):
            manager.set_event_side_group(tournament_id, 'left', left)
        assert manager.get_event_bracket(tournament_id)['left_side']['group_id'] is None

        manager.assign_event_match_teams(tournament_id, 'left', 0, team_ids[0], team_ids[1])
        bracket = manager.set_event_side_group(tournament_id, 'left', left)
        assert bracket['left_side']['group_id'] == left

    def test_team_placed_once_across_sides(self, manager, tournament_id, team_ids):
        manager.create_event_bracket(tournament_id)
        manager.assign_event_match_teams(tournament_id, 'left', 0, team_ids[0], team_ids[1])
        with pytest.raises(InvalidMatch):
            manager.assign_event_match_teams(tournament_id, 'right', 3, team_ids[1], team_ids[2])


class TestOverview:
    """Tests for stats and the audit trail."""

    def test_stats(self, manager, tournament_id, team_ids):
        group_id = manager.create_group(tournament_id, 'Group A')
        for team_id in team_ids[:3]:
            manager.add_team_to_group(tournament_id, group_id, team_id)
        match_ids = manager.generate_group_matches(tournament_id, group_id)
        manager.record_match_result(tournament_id, match_ids[0], 2, 0)

        stats = manager.tournament_stats(tournament_id)

        assert stats['teams_count'] == 8
        assert stats['groups_count'] == 1
        assert stats['group_sizes'] == [{'id': group_id, 'name': 'Group A', 'team_count': 3}]
        assert stats['matches_total'] == 3
        assert stats['matches_finished'] == 1
        assert stats['bracket_total_matches'] is None
        assert stats['bracket_champion'] is None
        assert stats['event_total_matches'] == 0

    def test_stats_with_brackets(self, manager, tournament_id, team_ids):
        manager.generate_bracket(tournament_id, team_ids[:4], 4)
        manager.set_bracket_result(tournament_id, 0, 0, 1, 0)
        manager.set_bracket_result(tournament_id, 0, 1, 1, 0)
        manager.set_bracket_result(tournament_id, 1, 0, 0, 1)
        manager.create_event_bracket(tournament_id)

        stats = manager.tournament_stats(tournament_id)

        assert stats['bracket_total_matches'] == 3
        assert stats['bracket_finished_matches'] == 3
        assert stats['bracket_champion'] == team_ids[2]
        assert stats['event_total_matches'] == 16
        assert stats['event_finished_matches'] == 0

    def test_audit_trail(self, manager, tournament_id, team_ids, actor):
        group_id = manager.create_group(tournament_id, 'Group A', actor=actor)
        manager.add_team_to_group(tournament_id, group_id, team_ids[0], actor=actor)

        entries = manager.audit_log(tournament_id)

        assert [e['action'] for e in entries] == ['add_team_to_group', 'create', 'create']
        assert entries[0]['entity_type'] == 'group'
        assert entries[0]['user_id'] == actor.user_id
        assert entries[-1]['entity_type'] == 'tournament'

    def test_no_actor_no_audit(self, manager, tournament_id, team_ids):
        assert [e['entity_type'] for e in manager.audit_log(tournament_id)] == ['tournament']
