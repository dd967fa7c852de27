"""
Tournament aggregate: teams, groups, matches and both brackets of one tournament.

``TournamentManager`` validates cross-entity rules, calls the pure engine
functions and hands each resulting snapshot to the document store as one
write. Bracket snapshots are written conditionally on their version so two
organisers editing at once get a ConflictError instead of silently
overwriting each other.
"""
import logging
import os
import uuid
from typing import Dict, List, Optional

from tourney import elimination, event_bracket, lifecycle
from tourney.errors import (
    GroupNotFound,
    MatchNotFound,
    TeamAlreadyGrouped,
    TeamNotFound,
    TeamNotInGroup,
    TournamentNotFound,
    ValidationError,
)
from tourney.models import (
    TOURNAMENT_STATUSES,
    Actor,
    actor_fields,
    new_group,
    new_match,
    new_team,
    new_tournament,
    to_timestamp,
    utcnow,
)
from tourney.schedule import generate_round_robin_pairs
from tourney.storage import delete_op, set_op

logger = logging.getLogger(__name__)

TOURNAMENTS = 'tournaments'


def _new_id() -> str:
    return uuid.uuid4().hex


def _file_extension(filename: str) -> str:
    ext = os.path.splitext(filename or '')[1].lower().lstrip('.')
    return f".{ext}" if ext else ''


def _require_name(value: str, label: str) -> str:
    value = (value or '').strip()
    if not value:
        raise ValidationError(f'{label} is required.')
    return value


class TournamentManager:
    def __init__(self, store, objects=None, audit=None, clock=utcnow):
        self.store = store
        self.objects = objects
        self.audit = audit
        self.clock = clock

    def __repr__(self):
        return f"TournamentManager(store={self.store})"

    # ------------------------------------------------------------------
    # Paths and helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _path(tournament_id: str, *parts: str) -> str:
        return '/'.join((TOURNAMENTS, tournament_id) + parts)

    def _now(self) -> str:
        return to_timestamp(self.clock())

    def _record(self, actor: Optional[Actor], action: str, entity_type: str,
                entity_id: Optional[str] = None, tournament_id: Optional[str] = None):
        if actor is None or self.audit is None:
            return
        self.audit.record(actor.user_id, actor.user_email, action, entity_type,
                          entity_id=entity_id, tournament_id=tournament_id)

    def _stamp(self, doc: Dict, actor: Optional[Actor]) -> Dict:
        doc['updated_at'] = self._now()
        doc.update(actor_fields(actor))
        return doc

    def _store_logo(self, path_prefix: str, logo) -> Dict:
        """Upload ``logo`` (filename, bytes) and return the logo fields to save."""
        if self.objects is None:
            raise ValidationError('Logo uploads are not configured.')
        filename, data = logo
        logo_path = f"{path_prefix}/logo{_file_extension(filename)}"
        logo_url = self.objects.put(logo_path, data)
        return {'logo_url': logo_url, 'logo_path': logo_path}

    def _discard_logo(self, logo_path: Optional[str]):
        """Best-effort removal of an old logo object."""
        if not logo_path or self.objects is None:
            return
        try:
            self.objects.delete(logo_path)
        except Exception as e:
            logger.warning(f'Failed to delete logo {logo_path}: {e}')

    # ------------------------------------------------------------------
    # Tournaments
    # ------------------------------------------------------------------

    def create_tournament(self, name_en: str, name_ar: str, description: str = '',
                          actor: Optional[Actor] = None) -> str:
        tournament_id = _new_id()
        doc = new_tournament(
            tournament_id,
            _require_name(name_en, 'English name'),
            _require_name(name_ar, 'Arabic name'),
            created_by=actor.user_id if actor else None,
            created_by_email=actor.user_email if actor else None,
            description=description,
            now=self.clock(),
        )
        doc.update(actor_fields(actor))
        self.store.set(self._path(tournament_id), doc)
        logger.info("Created tournament %s (%s)", tournament_id, doc['name_en'])
        self._record(actor, 'create', 'tournament', tournament_id, tournament_id)
        return tournament_id

    def get_tournament(self, tournament_id: str) -> Dict:
        doc = self.store.get(self._path(tournament_id))
        if doc is None:
            raise TournamentNotFound(f"Tournament {tournament_id} not found.")
        return doc

    def list_tournaments(self, created_by: Optional[str] = None) -> List[Dict]:
        """Tournaments newest first, optionally only those created by one user."""
        docs = [d for d in self.store.list(TOURNAMENTS) if d.get('id')]
        if created_by:
            docs = [d for d in docs if d.get('created_by') == created_by]
        docs.sort(key=lambda d: d.get('created_at') or '', reverse=True)
        return docs

    def update_tournament(self, tournament_id: str, name_en: str, name_ar: str,
                          description: str = '', status: str = 'draft',
                          actor: Optional[Actor] = None) -> Dict:
        doc = self.get_tournament(tournament_id)
        if status not in TOURNAMENT_STATUSES:
            raise ValidationError(f"Status must be one of {', '.join(TOURNAMENT_STATUSES)}.")
        doc.update({
            'name_en': _require_name(name_en, 'English name'),
            'name_ar': _require_name(name_ar, 'Arabic name'),
            'description': description or '',
            'status': status,
        })
        self.store.set(self._path(tournament_id), self._stamp(doc, actor))
        self._record(actor, 'update', 'tournament', tournament_id, tournament_id)
        return doc

    def update_tournament_about_us(self, tournament_id: str, paragraphs, logo_url: str = '',
                                   logo_alt: str = '', actor: Optional[Actor] = None) -> Dict:
        """
        Replace the tournament's About Us content.

        Paragraphs are trimmed and blank ones dropped. When none remain the
        custom content is cleared and clients fall back to the default text.
        The logo fields are kept only when non-blank.
        """
        doc = self.get_tournament(tournament_id)
        if not isinstance(paragraphs, list) or not all(isinstance(p, str) for p in paragraphs):
            raise ValidationError("About Us paragraphs must be a list of strings.")
        if not isinstance(logo_url or '', str) or not isinstance(logo_alt or '', str):
            raise ValidationError("About Us logo fields must be strings.")
        kept = [p.strip() for p in paragraphs if p.strip()]
        about_us = None
        if kept:
            about_us = {'paragraphs': kept}
            if logo_url and logo_url.strip():
                about_us['logo_url'] = logo_url.strip()
            if logo_alt and logo_alt.strip():
                about_us['logo_alt'] = logo_alt.strip()
        doc['about_us'] = about_us
        self.store.set(self._path(tournament_id), self._stamp(doc, actor))
        self._record(actor, 'update', 'tournament_about_us', tournament_id, tournament_id)
        return doc

    def upload_tournament_logo(self, tournament_id: str, filename: str, data: bytes,
                               actor: Optional[Actor] = None) -> Dict:
        doc = self.get_tournament(tournament_id)
        previous_path = doc.get('logo_path')
        doc.update(self._store_logo(self._path(tournament_id), (filename, data)))
        self.store.set(self._path(tournament_id), self._stamp(doc, actor))
        self._record(actor, 'update', 'tournament_logo', tournament_id, tournament_id)
        if previous_path != doc['logo_path']:
            self._discard_logo(previous_path)
        return {'logo_url': doc['logo_url'], 'logo_path': doc['logo_path']}

    # ------------------------------------------------------------------
    # Teams
    # ------------------------------------------------------------------

    def create_team(self, tournament_id: str, name_en: str, name_ar: str, description: str = '',
                    logo=None, actor: Optional[Actor] = None) -> str:
        self.get_tournament(tournament_id)
        team_id = _new_id()
        doc = new_team(team_id, _require_name(name_en, 'English name'),
                       _require_name(name_ar, 'Arabic name'), description, now=self.clock())
        doc.update(actor_fields(actor))
        if logo:
            doc.update(self._store_logo(self._path(tournament_id, 'teams', team_id), logo))
        self.store.set(self._path(tournament_id, 'teams', team_id), doc)
        self._record(actor, 'create', 'team', team_id, tournament_id)
        return team_id

    def get_team(self, tournament_id: str, team_id: str) -> Dict:
        doc = self.store.get(self._path(tournament_id, 'teams', team_id)) if team_id else None
        if doc is None:
            raise TeamNotFound(f"Team {team_id} not found.")
        return doc

    def list_teams(self, tournament_id: str) -> List[Dict]:
        docs = self.store.list(self._path(tournament_id, 'teams'))
        docs.sort(key=lambda d: d.get('created_at') or '')
        return docs

    def update_team(self, tournament_id: str, team_id: str, name_en: str, name_ar: str,
                    description: str = '', logo=None, actor: Optional[Actor] = None) -> Dict:
        doc = self.get_team(tournament_id, team_id)
        previous_path = doc.get('logo_path')
        doc.update({
            'name_en': _require_name(name_en, 'English name'),
            'name_ar': _require_name(name_ar, 'Arabic name'),
            'description': description or '',
        })
        if logo:
            doc.update(self._store_logo(self._path(tournament_id, 'teams', team_id), logo))
        self.store.set(self._path(tournament_id, 'teams', team_id), self._stamp(doc, actor))
        self._record(actor, 'update', 'team', team_id, tournament_id)
        if logo and previous_path != doc['logo_path']:
            self._discard_logo(previous_path)
        return doc

    def delete_team(self, tournament_id: str, team_id: str, actor: Optional[Actor] = None):
        """Delete a team after detaching it from whichever group holds it."""
        doc = self.get_team(tournament_id, team_id)
        writes = []
        for group in self.list_groups(tournament_id):
            if team_id in group.get('team_ids', []):
                group['team_ids'] = [t for t in group['team_ids'] if t != team_id]
                self._stamp(group, actor)
                writes.append(set_op(self._path(tournament_id, 'groups', group['id']), group))
        writes.append(delete_op(self._path(tournament_id, 'teams', team_id)))
        self.store.run_batch(writes)
        self._record(actor, 'delete', 'team', team_id, tournament_id)
        self._discard_logo(doc.get('logo_path'))

    # ------------------------------------------------------------------
    # Groups
    # ------------------------------------------------------------------

    def create_group(self, tournament_id: str, name: str, order: int = 0,
                     actor: Optional[Actor] = None) -> str:
        self.get_tournament(tournament_id)
        group_id = _new_id()
        doc = new_group(group_id, _require_name(name, 'Group name'), self._order(order), now=self.clock())
        doc.update(actor_fields(actor))
        self.store.set(self._path(tournament_id, 'groups', group_id), doc)
        self._record(actor, 'create', 'group', group_id, tournament_id)
        return group_id

    @staticmethod
    def _order(order) -> int:
        try:
            return int(order)
        except (TypeError, ValueError) as e:
            raise ValidationError(f"Group order must be an integer, got {order!r}.") from e

    def get_group(self, tournament_id: str, group_id: str) -> Dict:
        doc = self.store.get(self._path(tournament_id, 'groups', group_id)) if group_id else None
        if doc is None:
            raise GroupNotFound(f"Group {group_id} not found.")
        return doc

    def list_groups(self, tournament_id: str) -> List[Dict]:
        docs = self.store.list(self._path(tournament_id, 'groups'))
        docs.sort(key=lambda d: (d.get('order', 0), d.get('name', '')))
        return docs

    def update_group(self, tournament_id: str, group_id: str, name: str, order: int,
                     actor: Optional[Actor] = None) -> Dict:
        doc = self.get_group(tournament_id, group_id)
        doc['name'] = _require_name(name, 'Group name')
        doc['order'] = self._order(order)
        self.store.set(self._path(tournament_id, 'groups', group_id), self._stamp(doc, actor))
        self._record(actor, 'update', 'group', group_id, tournament_id)
        return doc

    def delete_group(self, tournament_id: str, group_id: str, actor: Optional[Actor] = None):
        """Delete a group. Matches that reference it keep their group_id."""
        self.get_group(tournament_id, group_id)
        self.store.delete(self._path(tournament_id, 'groups', group_id))
        self._record(actor, 'delete', 'group', group_id, tournament_id)

    def add_team_to_group(self, tournament_id: str, group_id: str, team_id: str,
                          actor: Optional[Actor] = None) -> Dict:
        """
        Add a team to a group.

        Raises:
            TeamAlreadyGrouped: the team is already a member of a different group.
        """
        group = self.get_group(tournament_id, group_id)
        self.get_team(tournament_id, team_id)
        for other in self.list_groups(tournament_id):
            if other['id'] != group_id and team_id in other.get('team_ids', []):
                raise TeamAlreadyGrouped(f"Team {team_id} is already in group {other['name']}.")

        if team_id in group.get('team_ids', []):
            return group
        group['team_ids'] = list(group.get('team_ids', [])) + [team_id]
        self.store.set(self._path(tournament_id, 'groups', group_id), self._stamp(group, actor))
        self._record(actor, 'add_team_to_group', 'group', group_id, tournament_id)
        return group

    def remove_team_from_group(self, tournament_id: str, group_id: str, team_id: str,
                               actor: Optional[Actor] = None) -> Dict:
        group = self.get_group(tournament_id, group_id)
        group['team_ids'] = [t for t in group.get('team_ids', []) if t != team_id]
        self.store.set(self._path(tournament_id, 'groups', group_id), self._stamp(group, actor))
        self._record(actor, 'remove_team_from_group', 'group', group_id, tournament_id)
        return group

    def generate_group_matches(self, tournament_id: str, group_id: str,
                               actor: Optional[Actor] = None) -> List[str]:
        """
        Create a round-robin of matches for a group in one batch.

        Calling this twice creates every match twice.
        """
        group = self.get_group(tournament_id, group_id)
        pairs = generate_round_robin_pairs(group.get('team_ids', []))
        return self.create_matches_batch(tournament_id, pairs, group_id=group_id, actor=actor)

    # ------------------------------------------------------------------
    # Matches
    # ------------------------------------------------------------------

    def _build_match(self, tournament_id: str, team1_id: str, team2_id: str,
                     group_id: Optional[str], scheduled_at, actor: Optional[Actor]) -> Dict:
        self.get_team(tournament_id, team1_id)
        self.get_team(tournament_id, team2_id)
        if group_id:
            self.get_group(tournament_id, group_id)
        try:
            doc = new_match(_new_id(), team1_id, team2_id, group_id=group_id,
                            scheduled_at=scheduled_at, now=self.clock())
        except ValueError as e:
            raise ValidationError(f"Invalid scheduled time {scheduled_at!r}.") from e
        doc.update(actor_fields(actor))
        lifecycle.validate_match(doc)
        return doc

    def create_match(self, tournament_id: str, team1_id: str, team2_id: str,
                     group_id: Optional[str] = None, scheduled_at=None,
                     actor: Optional[Actor] = None) -> str:
        self.get_tournament(tournament_id)
        doc = self._build_match(tournament_id, team1_id, team2_id, group_id, scheduled_at, actor)
        self.store.set(self._path(tournament_id, 'matches', doc['id']), doc)
        self._record(actor, 'create', 'match', doc['id'], tournament_id)
        return doc['id']

    def create_matches_batch(self, tournament_id: str, matches: List[Dict],
                             group_id: Optional[str] = None,
                             actor: Optional[Actor] = None) -> List[str]:
        """Create many matches in one write. Each item has team1_id, team2_id and optional scheduled_at."""
        self.get_tournament(tournament_id)
        docs = [
            self._build_match(tournament_id, m.get('team1_id'), m.get('team2_id'), group_id,
                              m.get('scheduled_at'), actor)
            for m in matches
        ]
        if not docs:
            return []
        self.store.run_batch([set_op(self._path(tournament_id, 'matches', d['id']), d) for d in docs])
        logger.info("Created %d match(es) in tournament %s", len(docs), tournament_id)
        self._record(actor, 'create_batch', 'matches', None, tournament_id)
        return [d['id'] for d in docs]

    def get_match(self, tournament_id: str, match_id: str) -> Dict:
        doc = self.store.get(self._path(tournament_id, 'matches', match_id)) if match_id else None
        if doc is None:
            raise MatchNotFound(f"Match {match_id} not found.")
        return doc

    def list_matches(self, tournament_id: str, now=None) -> List[Dict]:
        """
        Matches newest first.

        Observing the list also starts every scheduled match whose time has
        come; the started matches are saved in one batch.
        """
        docs = self.store.list(self._path(tournament_id, 'matches'))
        started = lifecycle.start_due_matches(docs, now or self.clock())
        if started:
            self.store.run_batch([
                set_op(self._path(tournament_id, 'matches', m['id']), m) for m in started
            ])
            by_id = {m['id']: m for m in started}
            docs = [by_id.get(d['id'], d) for d in docs]
        docs.sort(key=lambda d: d.get('created_at') or '', reverse=True)
        return docs

    def update_match(self, tournament_id: str, match_id: str, actor: Optional[Actor] = None,
                     **changes) -> Dict:
        doc = self.get_match(tournament_id, match_id)
        for key in ('team1_id', 'team2_id'):
            if changes.get(key):
                self.get_team(tournament_id, changes[key])
        if changes.get('group_id'):
            self.get_group(tournament_id, changes['group_id'])
        try:
            updated = lifecycle.update_match(doc, now=self.clock(), **changes)
        except ValueError as e:
            raise ValidationError(f"Invalid scheduled time {changes.get('scheduled_at')!r}.") from e
        updated.update(actor_fields(actor))
        self.store.set(self._path(tournament_id, 'matches', match_id), updated)
        self._record(actor, 'update', 'match', match_id, tournament_id)
        return updated

    def record_match_result(self, tournament_id: str, match_id: str, score1: int, score2: int,
                            actor: Optional[Actor] = None) -> Dict:
        """Finish a group match (draws allowed) or correct a finished one."""
        doc = self.get_match(tournament_id, match_id)
        updated = lifecycle.record_match_result(doc, score1, score2, now=self.clock())
        updated.update(actor_fields(actor))
        self.store.set(self._path(tournament_id, 'matches', match_id), updated)
        self._record(actor, 'finish_match', 'match', match_id, tournament_id)
        return updated

    def delete_match(self, tournament_id: str, match_id: str, actor: Optional[Actor] = None):
        self.get_match(tournament_id, match_id)
        self.store.delete(self._path(tournament_id, 'matches', match_id))
        self._record(actor, 'delete', 'match', match_id, tournament_id)

    # ------------------------------------------------------------------
    # Brackets
    # ------------------------------------------------------------------

    def _save_snapshot(self, path: str, previous: Optional[Dict], state: Dict,
                       actor: Optional[Actor]) -> Dict:
        """Write a bracket snapshot only if nobody else saved since ``previous`` was read."""
        expected = (previous or {}).get('version', 0)
        state['created_at'] = (previous or {}).get('created_at') or self._now()
        self._stamp(state, actor)
        self.store.set(path, state, expected_version=expected)
        return state

    def generate_bracket(self, tournament_id: str, team_ids: List[str], size: int,
                         actor: Optional[Actor] = None) -> Dict:
        """Seed a new single-elimination bracket, replacing any existing one and its results."""
        self.get_tournament(tournament_id)
        state = elimination.generate_single_elimination_bracket(team_ids, size)
        for team_id in team_ids:
            self.get_team(tournament_id, team_id)

        path = self._path(tournament_id, 'bracket', 'state')
        previous = self.store.get(path)
        if previous:
            logger.warning("Replacing existing bracket of tournament %s", tournament_id)
        state['version'] = (previous or {}).get('version', 0) + 1
        state = self._save_snapshot(path, previous, state, actor)
        self._record(actor, 'generate', 'bracket', 'state', tournament_id)
        return state

    def get_bracket(self, tournament_id: str) -> Optional[Dict]:
        return self.store.get(self._path(tournament_id, 'bracket', 'state'))

    def _require_bracket(self, tournament_id: str) -> Dict:
        state = self.get_bracket(tournament_id)
        if state is None:
            raise MatchNotFound("No bracket has been generated for this tournament.")
        return state

    def set_bracket_result(self, tournament_id: str, round_index: int, match_index: int,
                           score1: int, score2: int, actor: Optional[Actor] = None) -> Dict:
        state = self._require_bracket(tournament_id)
        updated = elimination.set_bracket_match_result(state, round_index, match_index, score1, score2)
        updated = self._save_snapshot(self._path(tournament_id, 'bracket', 'state'), state, updated, actor)
        self._record(actor, 'update', 'bracket', 'state', tournament_id)
        return updated

    def clear_bracket_result(self, tournament_id: str, round_index: int, match_index: int,
                             actor: Optional[Actor] = None) -> Dict:
        state = self._require_bracket(tournament_id)
        updated = elimination.clear_bracket_match_result(state, round_index, match_index)
        updated = self._save_snapshot(self._path(tournament_id, 'bracket', 'state'), state, updated, actor)
        self._record(actor, 'clear_result', 'bracket', 'state', tournament_id)
        return updated

    # ------------------------------------------------------------------
    # Event bracket
    # ------------------------------------------------------------------

    def _event_path(self, tournament_id: str) -> str:
        return self._path(tournament_id, 'eventBracket', 'state')

    def get_event_bracket(self, tournament_id: str) -> Optional[Dict]:
        return self.store.get(self._event_path(tournament_id))

    def _require_event_bracket(self, tournament_id: str) -> Dict:
        state = self.get_event_bracket(tournament_id)
        if state is None:
            raise MatchNotFound("No event bracket has been created for this tournament.")
        return state

    def _save_event(self, tournament_id: str, previous: Dict, updated: Dict,
                    actor: Optional[Actor], action: str = 'update') -> Dict:
        updated = self._save_snapshot(self._event_path(tournament_id), previous, updated, actor)
        self._record(actor, action, 'event_bracket', 'state', tournament_id)
        return updated

    def create_event_bracket(self, tournament_id: str, left_group_id: Optional[str] = None,
                             right_group_id: Optional[str] = None,
                             actor: Optional[Actor] = None) -> Dict:
        self.get_tournament(tournament_id)
        for group_id in (left_group_id, right_group_id):
            if group_id:
                self.get_group(tournament_id, group_id)
        previous = self.get_event_bracket(tournament_id)
        state = event_bracket.create_event_bracket(left_group_id, right_group_id)
        state['version'] = (previous or {}).get('version', 0) + 1
        return self._save_event(tournament_id, previous, state, actor, action='create')

    def set_event_side_group(self, tournament_id: str, side: str, group_id: Optional[str],
                             actor: Optional[Actor] = None) -> Dict:
        """Point a side at a group; teams already placed on that side must belong to it."""
        state = self._require_event_bracket(tournament_id)
        if group_id:
            group = self.get_group(tournament_id, group_id)
            for team_id in event_bracket.round1_team_ids(state, side):
                if team_id not in group.get('team_ids', []):
                    raise TeamNotInGroup(f"Team {team_id} is already placed on the {side} side "
                                         f"and is not in group {group['name']}.")
        updated = event_bracket.set_side_group(state, side, group_id or None)
        return self._save_event(tournament_id, state, updated, actor)

    def assign_event_match_teams(self, tournament_id: str, side: str, match_index: int,
                                 team1_id: Optional[str], team2_id: Optional[str],
                                 actor: Optional[Actor] = None) -> Dict:
        """Place teams into a round-1 event match, honouring the side's group filter."""
        state = self._require_event_bracket(tournament_id)
        side_doc = state.get(f"{side}_side") or {}
        group = self.get_group(tournament_id, side_doc['group_id']) if side_doc.get('group_id') else None
        for team_id in (team1_id, team2_id):
            if not team_id:
                continue
            self.get_team(tournament_id, team_id)
            if group is not None and team_id not in group.get('team_ids', []):
                raise TeamNotInGroup(f"Team {team_id} is not in group {group['name']}.")
        updated = event_bracket.assign_round1_teams(state, side, match_index, team1_id, team2_id)
        return self._save_event(tournament_id, state, updated, actor)

    def set_event_match_result(self, tournament_id: str, stage: str, index: int,
                               score1: int, score2: int, actor: Optional[Actor] = None) -> Dict:
        state = self._require_event_bracket(tournament_id)
        updated = event_bracket.set_event_match_result(state, stage, index, score1, score2)
        return self._save_event(tournament_id, state, updated, actor)

    def clear_event_match_result(self, tournament_id: str, stage: str, index: int,
                                 actor: Optional[Actor] = None) -> Dict:
        state = self._require_event_bracket(tournament_id)
        updated = event_bracket.clear_event_match_result(state, stage, index)
        return self._save_event(tournament_id, state, updated, actor, action='clear_result')

    def bind_event_winner_slot(self, tournament_id: str, side: str, slot_index: int,
                               match_index: int, actor: Optional[Actor] = None) -> Dict:
        state = self._require_event_bracket(tournament_id)
        updated = event_bracket.bind_winner_slot(state, side, slot_index, match_index)
        return self._save_event(tournament_id, state, updated, actor)

    def override_event_winner_slot(self, tournament_id: str, side: str, slot_index: int,
                                   team_id: Optional[str], actor: Optional[Actor] = None) -> Dict:
        state = self._require_event_bracket(tournament_id)
        if team_id:
            self.get_team(tournament_id, team_id)
        updated = event_bracket.override_winner_slot(state, side, slot_index, team_id)
        return self._save_event(tournament_id, state, updated, actor)

    # ------------------------------------------------------------------
    # Overview
    # ------------------------------------------------------------------

    def tournament_stats(self, tournament_id: str) -> Dict:
        """Counts shown on the tournament dashboard."""
        self.get_tournament(tournament_id)
        groups = self.list_groups(tournament_id)
        matches = self.store.list(self._path(tournament_id, 'matches'))
        bracket = self.get_bracket(tournament_id)
        bracket_total, bracket_finished = elimination.bracket_progress(bracket)
        event_total, event_finished = event_bracket.event_progress(self.get_event_bracket(tournament_id))
        return {
            'teams_count': len(self.list_teams(tournament_id)),
            'groups_count': len(groups),
            'group_sizes': [
                {'id': g['id'], 'name': g['name'], 'team_count': len(g.get('team_ids', []))}
                for g in groups
            ],
            'matches_total': len(matches),
            'matches_finished': sum(1 for m in matches if m.get('status') == 'finished'),
            'bracket_total_matches': bracket_total if bracket else None,
            'bracket_finished_matches': bracket_finished if bracket else None,
            'bracket_champion': elimination.get_champion(bracket),
            'event_total_matches': event_total,
            'event_finished_matches': event_finished,
        }

    def audit_log(self, tournament_id: Optional[str] = None, limit: int = 100) -> List[Dict]:
        if self.audit is None:
            return []
        return self.audit.entries(tournament_id=tournament_id, limit=limit)
