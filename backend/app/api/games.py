from datetime import datetime

from flask import Blueprint, jsonify, request
from app.services.games import lifecycle
from app.services.games.control_points import capture_control_point, get_control_points
from app.services.games.results import (
    ANOTHER_GAME_ACTIVE,
    INVALID,
    INVALID_CODE,
    NO_ACTIVE_GAME,
    NOT_FOUND,
    WRONG_STATE,
)
from app.services.games.scoring import get_scoreboard


games = Blueprint('games', __name__)

_STATUS_BY_REASON = {
    NOT_FOUND: 404,
    WRONG_STATE: 409,
    ANOTHER_GAME_ACTIVE: 409,
    NO_ACTIVE_GAME: 409,
    INVALID: 400,
    INVALID_CODE: 403,
}


def result_response(result, payload=None):
    """Translate a ServiceResult into a JSON response."""
    if not result.ok:
        status = _STATUS_BY_REASON.get(result.reason, 400)
        return jsonify({'error': result.message, 'reason': result.reason}), status
    body = {'message': result.message}
    if result.reason:
        body['reason'] = result.reason
    if payload:
        body.update(payload)
    return jsonify(body), 200


def _parse_time(value):
    if not value:
        return None
    try:
        return datetime.fromisoformat(value)
    except (TypeError, ValueError):
        return None


@games.route('', methods=['GET'])
def list_games():
    return jsonify([g.to_dict() for g in lifecycle.get_all_games()])


@games.route('', methods=['POST'])
def create_game():
    data = request.get_json(silent=True) or {}
    result, game = lifecycle.create_game(
        data.get('name') or '',
        _parse_time(data.get('start_time')),
        _parse_time(data.get('end_time')),
    )
    if not result.ok:
        return result_response(result)
    return jsonify(game.to_dict()), 201


@games.route('/<int:game_id>', methods=['GET'])
def get_game(game_id):
    game = lifecycle.get_game(game_id)
    if not game:
        return jsonify({'error': 'Game not found'}), 404
    payload = game.to_dict()
    payload['participants'] = [t.to_dict() for t in lifecycle.get_participants(game_id)]
    payload['available_teams'] = [t.to_dict() for t in lifecycle.get_non_participants(game_id)]
    payload['control_points'] = [cp.to_dict() for cp in get_control_points(game_id)]
    return jsonify(payload)


@games.route('/<int:game_id>/start', methods=['POST'])
def start_game(game_id):
    return result_response(lifecycle.start_game(game_id))


@games.route('/<int:game_id>/end', methods=['POST'])
def end_game(game_id):
    return result_response(lifecycle.end_game(game_id))


@games.route('/<int:game_id>/reset', methods=['POST'])
def reset_game(game_id):
    return result_response(lifecycle.reset_game(game_id))


@games.route('/<int:game_id>/participants', methods=['POST'])
def add_participant(game_id):
    data = request.get_json(silent=True) or {}
    team_id = data.get('team_id')
    if not isinstance(team_id, int):
        return jsonify({'error': 'team_id is required'}), 400
    return result_response(lifecycle.add_participant(game_id, team_id))


@games.route('/<int:game_id>/participants/<int:team_id>', methods=['DELETE'])
def remove_participant(game_id, team_id):
    return result_response(lifecycle.remove_participant(game_id, team_id))


@games.route('/<int:game_id>/map', methods=['POST'])
def edit_map(game_id):
    data = request.get_json(silent=True) or {}
    x, y = data.get('position_x'), data.get('position_y')
    if not isinstance(x, int) or not isinstance(y, int):
        return jsonify({'error': 'position_x and position_y are required'}), 400
    is_cp = bool(data.get('is_control_point', True))
    return result_response(lifecycle.set_control_point_marker(game_id, x, y, is_cp))


@games.route('/<int:game_id>/control-points', methods=['GET'])
def list_control_points(game_id):
    if not lifecycle.get_game(game_id):
        return jsonify({'error': 'Game not found'}), 404
    return jsonify([cp.to_dict() for cp in get_control_points(game_id)])


@games.route('/<int:game_id>/control-points/<int:cp_id>/owner', methods=['POST'])
def set_control_point_owner(game_id, cp_id):
    """Admin override of a control point's owner; ``team_id: null`` makes it neutral."""
    data = request.get_json(silent=True) or {}
    team_id = data.get('team_id')
    if team_id is not None and not isinstance(team_id, int):
        return jsonify({'error': 'team_id must be an integer or null'}), 400
    if not any(cp.id == cp_id for cp in get_control_points(game_id)):
        return jsonify({'error': 'Control point not found in this game', 'reason': NOT_FOUND}), 404
    return result_response(capture_control_point(cp_id, team_id))


@games.route('/<int:game_id>/scoreboard', methods=['GET'])
def scoreboard(game_id):
    scores = get_scoreboard(game_id)
    if scores is None:
        return jsonify({'error': 'Game not found'}), 404
    game = lifecycle.get_game(game_id)
    return jsonify({
        'game': game.to_dict(),
        'team_scores': [s.to_dict() for s in scores],
    })
