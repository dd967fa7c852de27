"""
Flask JSON API for the tournament manager.

This is the calling layer around ``tourney.tournament.TournamentManager``:
it reads the actor from request headers, turns engine errors into JSON
error responses and streams live updates with Server-Sent Events.
"""
import json
import logging
import os

from flask import Flask, Response, g, jsonify, request, send_from_directory, stream_with_context
from werkzeug.utils import secure_filename

from tourney.audit import AuditLog
from tourney.errors import NotFound, TournamentError, ValidationError
from tourney.models import Actor
from tourney.storage import ConflictError, FileObjectStore, StorageError, YamlDocumentStore
from tourney.tournament import TournamentManager

app = Flask(__name__)


def _env_float(name: str, default: float) -> float:
    value = os.environ.get(name, '').strip()
    if not value:
        return default
    try:
        return float(value)
    except ValueError as e:
        raise ValueError(f"{name} must be a number, got: {value!r}") from e


BASE_DIR = os.path.dirname(os.path.dirname(__file__))
DATA_DIR = os.environ.get('TOURNAMENT_DATA_DIR', os.path.join(BASE_DIR, 'data'))
LOCK_TIMEOUT = _env_float('TOURNAMENT_LOCK_TIMEOUT', 10)
STREAM_INTERVAL = _env_float('TOURNAMENT_STREAM_INTERVAL', 3)
LOG_LEVEL = (os.environ.get('TOURNAMENT_LOG_LEVEL') or 'INFO').upper()
MAX_UPLOAD_SIZE = 10 * 1024 * 1024  # 10 MB
ALLOWED_LOGO_EXTENSIONS = {'.png', '.jpg', '.jpeg', '.gif', '.svg', '.webp'}
STREAM_TARGETS = {
    'tournament': ((), False),
    'teams': (('teams',), True),
    'groups': (('groups',), True),
    'matches': (('matches',), True),
    'bracket': (('bracket', 'state'), False),
    'event-bracket': (('eventBracket', 'state'), False),
}

app.config['MAX_CONTENT_LENGTH'] = MAX_UPLOAD_SIZE
logging.basicConfig(level=LOG_LEVEL, format='%(asctime)s %(levelname)s %(name)s: %(message)s')


def get_manager() -> TournamentManager:
    """Return the manager for this request, built on the configured data directory."""
    if 'manager' not in g:
        store = YamlDocumentStore(DATA_DIR, lock_timeout=LOCK_TIMEOUT)
        objects = FileObjectStore(os.path.join(DATA_DIR, 'media'), base_url='/media')
        g.manager = TournamentManager(store, objects=objects, audit=AuditLog(store))
    return g.manager


def current_actor():
    """Build the Actor from the X-User-Id / X-User-Email headers, if present."""
    user_id = request.headers.get('X-User-Id', '').strip()
    if not user_id:
        return None
    return Actor(user_id, request.headers.get('X-User-Email', '').strip() or None)


def _json_body() -> dict:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _form_or_json() -> dict:
    if request.mimetype == 'multipart/form-data':
        return request.form.to_dict()
    return _json_body()


def _int_field(data: dict, key: str, default=None):
    """Read an integer field, accepting digit strings from form posts."""
    value = data.get(key, default)
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            raise ValidationError(f"'{key}' must be an integer.")
    if value is None or isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"'{key}' must be an integer.")
    return value


def _logo_upload():
    """Return (filename, bytes) for an uploaded 'logo' file, or None."""
    file = request.files.get('logo')
    if not file or not file.filename:
        return None
    filename = secure_filename(file.filename)
    ext = os.path.splitext(filename)[1].lower()
    if ext not in ALLOWED_LOGO_EXTENSIONS:
        raise ValidationError(f'Invalid file type. Allowed: {", ".join(sorted(ALLOWED_LOGO_EXTENSIONS))}')
    return filename, file.read()


@app.errorhandler(NotFound)
def handle_not_found(error):
    return jsonify({'error': error.message, 'code': error.code}), 404


@app.errorhandler(TournamentError)
def handle_tournament_error(error):
    return jsonify({'error': error.message, 'code': error.code}), 400


@app.errorhandler(ConflictError)
def handle_conflict(error):
    return jsonify({'error': str(error), 'code': 'conflict'}), 409


@app.errorhandler(StorageError)
def handle_storage_error(error):
    app.logger.error(f'Storage failure: {error}')
    return jsonify({'error': 'Storage is temporarily unavailable.', 'code': 'storage_error'}), 503


# ----------------------------------------------------------------------
# Tournaments
# ----------------------------------------------------------------------

@app.route('/api/tournaments', methods=['GET'])
def api_list_tournaments():
    return jsonify({'tournaments': get_manager().list_tournaments(request.args.get('created_by'))})


@app.route('/api/tournaments', methods=['POST'])
def api_create_tournament():
    data = _json_body()
    tournament_id = get_manager().create_tournament(
        data.get('name_en'), data.get('name_ar'), data.get('description', ''), actor=current_actor())
    return jsonify({'success': True, 'id': tournament_id}), 201


@app.route('/api/tournaments/<tournament_id>', methods=['GET'])
def api_get_tournament(tournament_id):
    return jsonify(get_manager().get_tournament(tournament_id))


@app.route('/api/tournaments/<tournament_id>', methods=['PUT'])
def api_update_tournament(tournament_id):
    data = _json_body()
    tournament = get_manager().update_tournament(
        tournament_id, data.get('name_en'), data.get('name_ar'),
        description=data.get('description', ''), status=data.get('status', 'draft'),
        actor=current_actor())
    return jsonify(tournament)


@app.route('/api/tournaments/<tournament_id>/about-us', methods=['PUT'])
def api_update_tournament_about_us(tournament_id):
    data = _json_body()
    tournament = get_manager().update_tournament_about_us(
        tournament_id, data.get('paragraphs', []),
        logo_url=data.get('logo_url', ''), logo_alt=data.get('logo_alt', ''),
        actor=current_actor())
    return jsonify(tournament)


@app.route('/api/tournaments/<tournament_id>/logo', methods=['POST'])
def api_upload_tournament_logo(tournament_id):
    logo = _logo_upload()
    if logo is None:
        return jsonify({'error': 'No file provided', 'code': 'validation_error'}), 400
    result = get_manager().upload_tournament_logo(tournament_id, logo[0], logo[1], actor=current_actor())
    return jsonify({'success': True, **result})


@app.route('/api/tournaments/<tournament_id>/stats')
def api_tournament_stats(tournament_id):
    return jsonify(get_manager().tournament_stats(tournament_id))


# ----------------------------------------------------------------------
# Teams
# ----------------------------------------------------------------------

@app.route('/api/tournaments/<tournament_id>/teams', methods=['GET'])
def api_list_teams(tournament_id):
    return jsonify({'teams': get_manager().list_teams(tournament_id)})


@app.route('/api/tournaments/<tournament_id>/teams', methods=['POST'])
def api_create_team(tournament_id):
    data = _form_or_json()
    team_id = get_manager().create_team(
        tournament_id, data.get('name_en'), data.get('name_ar'), data.get('description', ''),
        logo=_logo_upload(), actor=current_actor())
    return jsonify({'success': True, 'id': team_id}), 201


@app.route('/api/tournaments/<tournament_id>/teams/<team_id>', methods=['PUT'])
def api_update_team(tournament_id, team_id):
    data = _form_or_json()
    team = get_manager().update_team(
        tournament_id, team_id, data.get('name_en'), data.get('name_ar'), data.get('description', ''),
        logo=_logo_upload(), actor=current_actor())
    return jsonify(team)


@app.route('/api/tournaments/<tournament_id>/teams/<team_id>', methods=['DELETE'])
def api_delete_team(tournament_id, team_id):
    get_manager().delete_team(tournament_id, team_id, actor=current_actor())
    return jsonify({'success': True})


# ----------------------------------------------------------------------
# Groups
# ----------------------------------------------------------------------

@app.route('/api/tournaments/<tournament_id>/groups', methods=['GET'])
def api_list_groups(tournament_id):
    return jsonify({'groups': get_manager().list_groups(tournament_id)})


@app.route('/api/tournaments/<tournament_id>/groups', methods=['POST'])
def api_create_group(tournament_id):
    data = _json_body()
    group_id = get_manager().create_group(
        tournament_id, data.get('name'), _int_field(data, 'order', 0), actor=current_actor())
    return jsonify({'success': True, 'id': group_id}), 201


@app.route('/api/tournaments/<tournament_id>/groups/<group_id>', methods=['PUT'])
def api_update_group(tournament_id, group_id):
    data = _json_body()
    group = get_manager().update_group(
        tournament_id, group_id, data.get('name'), _int_field(data, 'order', 0), actor=current_actor())
    return jsonify(group)


@app.route('/api/tournaments/<tournament_id>/groups/<group_id>', methods=['DELETE'])
def api_delete_group(tournament_id, group_id):
    get_manager().delete_group(tournament_id, group_id, actor=current_actor())
    return jsonify({'success': True})


@app.route('/api/tournaments/<tournament_id>/groups/<group_id>/teams', methods=['POST'])
def api_add_team_to_group(tournament_id, group_id):
    data = _json_body()
    group = get_manager().add_team_to_group(tournament_id, group_id, data.get('team_id'), actor=current_actor())
    return jsonify(group)


@app.route('/api/tournaments/<tournament_id>/groups/<group_id>/teams/<team_id>', methods=['DELETE'])
def api_remove_team_from_group(tournament_id, group_id, team_id):
    group = get_manager().remove_team_from_group(tournament_id, group_id, team_id, actor=current_actor())
    return jsonify(group)


@app.route('/api/tournaments/<tournament_id>/groups/<group_id>/generate-matches', methods=['POST'])
def api_generate_group_matches(tournament_id, group_id):
    match_ids = get_manager().generate_group_matches(tournament_id, group_id, actor=current_actor())
    return jsonify({'success': True, 'match_ids': match_ids}), 201


# ----------------------------------------------------------------------
# Matches
# ----------------------------------------------------------------------

@app.route('/api/tournaments/<tournament_id>/matches', methods=['GET'])
def api_list_matches(tournament_id):
    return jsonify({'matches': get_manager().list_matches(tournament_id)})


@app.route('/api/tournaments/<tournament_id>/matches', methods=['POST'])
def api_create_match(tournament_id):
    data = _json_body()
    match_id = get_manager().create_match(
        tournament_id, data.get('team1_id'), data.get('team2_id'),
        group_id=data.get('group_id'), scheduled_at=data.get('scheduled_at'), actor=current_actor())
    return jsonify({'success': True, 'id': match_id}), 201


@app.route('/api/tournaments/<tournament_id>/matches/batch', methods=['POST'])
def api_create_matches_batch(tournament_id):
    data = _json_body()
    matches = data.get('matches')
    if not isinstance(matches, list):
        raise ValidationError("'matches' must be a list.")
    match_ids = get_manager().create_matches_batch(
        tournament_id, matches, group_id=data.get('group_id'), actor=current_actor())
    return jsonify({'success': True, 'match_ids': match_ids}), 201


@app.route('/api/tournaments/<tournament_id>/matches/<match_id>', methods=['PUT'])
def api_update_match(tournament_id, match_id):
    data = _json_body()
    changes = {k: v for k, v in data.items() if k in
               ('group_id', 'team1_id', 'team2_id', 'scheduled_at', 'status', 'score1', 'score2')}
    for key in ('score1', 'score2'):
        if changes.get(key) is not None:
            changes[key] = _int_field(changes, key)
    match = get_manager().update_match(tournament_id, match_id, actor=current_actor(), **changes)
    return jsonify(match)


@app.route('/api/tournaments/<tournament_id>/matches/<match_id>/result', methods=['POST'])
def api_record_match_result(tournament_id, match_id):
    data = _json_body()
    match = get_manager().record_match_result(
        tournament_id, match_id, _int_field(data, 'score1'), _int_field(data, 'score2'),
        actor=current_actor())
    return jsonify(match)


@app.route('/api/tournaments/<tournament_id>/matches/<match_id>', methods=['DELETE'])
def api_delete_match(tournament_id, match_id):
    get_manager().delete_match(tournament_id, match_id, actor=current_actor())
    return jsonify({'success': True})


# ----------------------------------------------------------------------
# Single elimination bracket
# ----------------------------------------------------------------------

@app.route('/api/tournaments/<tournament_id>/bracket', methods=['GET'])
def api_get_bracket(tournament_id):
    return jsonify({'bracket': get_manager().get_bracket(tournament_id)})


@app.route('/api/tournaments/<tournament_id>/bracket', methods=['POST'])
def api_generate_bracket(tournament_id):
    data = _json_body()
    team_ids = data.get('team_ids')
    if not isinstance(team_ids, list):
        raise ValidationError("'team_ids' must be a list.")
    bracket = get_manager().generate_bracket(
        tournament_id, team_ids, _int_field(data, 'size'), actor=current_actor())
    return jsonify({'bracket': bracket}), 201


@app.route('/api/tournaments/<tournament_id>/bracket/result', methods=['POST'])
def api_set_bracket_result(tournament_id):
    data = _json_body()
    bracket = get_manager().set_bracket_result(
        tournament_id, _int_field(data, 'round_index'), _int_field(data, 'match_index'),
        _int_field(data, 'score1'), _int_field(data, 'score2'), actor=current_actor())
    return jsonify({'bracket': bracket})


@app.route('/api/tournaments/<tournament_id>/bracket/clear-result', methods=['POST'])
def api_clear_bracket_result(tournament_id):
    data = _json_body()
    bracket = get_manager().clear_bracket_result(
        tournament_id, _int_field(data, 'round_index'), _int_field(data, 'match_index'),
        actor=current_actor())
    return jsonify({'bracket': bracket})


# ----------------------------------------------------------------------
# Event bracket
# ----------------------------------------------------------------------

@app.route('/api/tournaments/<tournament_id>/event-bracket', methods=['GET'])
def api_get_event_bracket(tournament_id):
    return jsonify({'bracket': get_manager().get_event_bracket(tournament_id)})


@app.route('/api/tournaments/<tournament_id>/event-bracket', methods=['POST'])
def api_create_event_bracket(tournament_id):
    data = _json_body()
    bracket = get_manager().create_event_bracket(
        tournament_id, data.get('left_group_id'), data.get('right_group_id'), actor=current_actor())
    return jsonify({'bracket': bracket}), 201


@app.route('/api/tournaments/<tournament_id>/event-bracket/side-group', methods=['POST'])
def api_set_event_side_group(tournament_id):
    data = _json_body()
    bracket = get_manager().set_event_side_group(
        tournament_id, data.get('side'), data.get('group_id'), actor=current_actor())
    return jsonify({'bracket': bracket})


@app.route('/api/tournaments/<tournament_id>/event-bracket/teams', methods=['POST'])
def api_assign_event_teams(tournament_id):
    data = _json_body()
    bracket = get_manager().assign_event_match_teams(
        tournament_id, data.get('side'), _int_field(data, 'match_index'),
        data.get('team1_id'), data.get('team2_id'), actor=current_actor())
    return jsonify({'bracket': bracket})


@app.route('/api/tournaments/<tournament_id>/event-bracket/result', methods=['POST'])
def api_set_event_result(tournament_id):
    data = _json_body()
    bracket = get_manager().set_event_match_result(
        tournament_id, data.get('stage'), _int_field(data, 'index', 0),
        _int_field(data, 'score1'), _int_field(data, 'score2'), actor=current_actor())
    return jsonify({'bracket': bracket})


@app.route('/api/tournaments/<tournament_id>/event-bracket/clear-result', methods=['POST'])
def api_clear_event_result(tournament_id):
    data = _json_body()
    bracket = get_manager().clear_event_match_result(
        tournament_id, data.get('stage'), _int_field(data, 'index', 0), actor=current_actor())
    return jsonify({'bracket': bracket})


@app.route('/api/tournaments/<tournament_id>/event-bracket/slots', methods=['POST'])
def api_set_event_slot(tournament_id):
    """Bind a winner slot to a round-1 match, or pin it to a team (or release it)."""
    data = _json_body()
    manager = get_manager()
    side = data.get('side')
    slot_index = _int_field(data, 'slot_index')
    if data.get('match_index') is not None:
        bracket = manager.bind_event_winner_slot(
            tournament_id, side, slot_index, _int_field(data, 'match_index'), actor=current_actor())
    else:
        bracket = manager.override_event_winner_slot(
            tournament_id, side, slot_index, data.get('team_id'), actor=current_actor())
    return jsonify({'bracket': bracket})


# ----------------------------------------------------------------------
# Audit log, live updates and media
# ----------------------------------------------------------------------

@app.route('/api/audit-log')
def api_audit_log():
    limit = _int_field(request.args.to_dict(), 'limit', 100)
    entries = get_manager().audit_log(request.args.get('tournament_id'), limit=limit)
    return jsonify({'entries': entries})


@app.route('/api/tournaments/<tournament_id>/stream')
def api_stream(tournament_id):
    """Server-Sent Events stream of snapshots for one part of a tournament."""
    target = request.args.get('target', 'matches')
    if target not in STREAM_TARGETS:
        raise ValidationError(f"Unknown stream target {target!r}.")
    manager = get_manager()
    manager.get_tournament(tournament_id)
    parts, is_collection = STREAM_TARGETS[target]
    path = '/'.join(('tournaments', tournament_id) + parts)
    max_events = request.args.get('max_events', type=int)

    def generate():
        """Yield an SSE event for the current snapshot and every change after it."""
        yield "event: connected\ndata: ok\n\n"
        for snapshot in manager.store.subscribe(path, collection=is_collection,
                                                interval=STREAM_INTERVAL, max_events=max_events):
            if target == 'matches':
                # observing matches starts any that are due
                snapshot = manager.list_matches(tournament_id)
            yield f"event: update\ndata: {json.dumps(snapshot)}\n\n"

    return Response(
        stream_with_context(generate()),
        mimetype='text/event-stream',
        headers={
            'Cache-Control': 'no-cache',
            'X-Accel-Buffering': 'no',
        },
    )


@app.route('/media/<path:filename>')
def media(filename):
    return send_from_directory(os.path.join(DATA_DIR, 'media'), filename)


if __name__ == '__main__':
    app.run(debug=True, port=5000)
