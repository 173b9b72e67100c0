from flask import Blueprint, request, jsonify
from app import db
from app.models import Team

main = Blueprint('main', __name__)

@main.route('/')
def index():
    return jsonify({'message': 'Welcome to the Domination Point game server!'})

@main.route('/teams', methods=['GET'])
def list_teams():
    return jsonify([t.to_dict() for t in Team.query.order_by(Team.id).all()])

@main.route('/teams', methods=['POST'])
def add_team():
    data = request.get_json(silent=True)
    if not data or not data.get('name') or not data.get('numpad_code'):
        return jsonify({'error': 'Missing team name or numpad code'}), 400

    if Team.query.filter_by(name=data['name']).first():
        return jsonify({'error': 'Team name already exists'}), 400

    team = Team(name=data['name'], color_hex=data.get('color_hex') or '#FFFFFF')
    team.set_numpad_code(str(data['numpad_code']))
    db.session.add(team)
    db.session.commit()

    return jsonify(team.to_dict()), 201
