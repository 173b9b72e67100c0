from flask import Blueprint, jsonify, request
from app.services.games.gameplay import capture_with_code
from .games import result_response

gameplay = Blueprint('gameplay', __name__)


@gameplay.route('/control-points/<int:cp_id>/capture', methods=['POST'])
def capture(cp_id):
    """A team presents its numeric code at a physical control point."""
    data = request.get_json(silent=True) or {}
    team_id = data.get('team_id')
    numpad_code = data.get('numpad_code')
    if not isinstance(team_id, int) or not numpad_code:
        return jsonify({'error': 'team_id and numpad_code are required'}), 400
    return result_response(capture_with_code(cp_id, team_id, str(numpad_code)))
