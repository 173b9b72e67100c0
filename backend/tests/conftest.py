import os
import sys
from datetime import datetime, timedelta
import pytest

# Ensure the backend root (containing the `app` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from app import create_app, db


T0 = datetime(2026, 6, 1, 12, 0, 0)


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    BCRYPT_LOG_ROUNDS = 4
    CAPTURE_BONUS_POINTS = 100
    LIVE_SCORE_INTERVAL_SEC = 10
    LOG_LEVEL = 'INFO'


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        # Ensure models are imported so tables are created
        import app.models  # noqa: F401
        db.create_all()
        yield application
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def make_team(flask_app):
    from app.models import Team

    def _make(name, code='1234', color='#FF0000'):
        team = Team(name=name, color_hex=color)
        team.set_numpad_code(code)
        db.session.add(team)
        db.session.commit()
        return team
    return _make


@pytest.fixture()
def make_game(flask_app):
    """Create a game with participants and control points; returns (game, [control points])."""
    from app.models import ControlPoint, Game, GameParticipant

    def _make(name='Game', teams=(), positions=((0, 0),), status='scheduled'):
        game = Game(name=name, start_time=T0, end_time=T0 + timedelta(hours=1), status=status)
        db.session.add(game)
        db.session.flush()
        for team in teams:
            db.session.add(GameParticipant(game_id=game.id, team_id=team.id))
        cps = []
        for x, y in positions:
            cp = ControlPoint(game_id=game.id, position_x=x, position_y=y)
            db.session.add(cp)
            cps.append(cp)
        db.session.commit()
        return game, cps
    return _make
