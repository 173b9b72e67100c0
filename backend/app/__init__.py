from datetime import timedelta

from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from flask_bcrypt import Bcrypt
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
import click
from config import Config

db = SQLAlchemy()
bcrypt = Bcrypt()
migrate = Migrate()
allowed_origins = [
    "http://localhost:5173",
    "http://127.0.0.1:5173",
]
# Used as the server runner and for background tasks; nothing is pushed to clients.
socketio = SocketIO(cors_allowed_origins=allowed_origins, async_mode=None)

def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)
    flask_app.logger.setLevel(flask_app.config.get('LOG_LEVEL', 'INFO'))

    db.init_app(flask_app)
    bcrypt.init_app(flask_app)
    migrate.init_app(flask_app, db)
    CORS(flask_app, origins=allowed_origins)
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    from app.routes import main
    flask_app.register_blueprint(main)

    from app.api.games import games
    flask_app.register_blueprint(games, url_prefix='/api/games')

    from app.api.gameplay import gameplay
    flask_app.register_blueprint(gameplay, url_prefix='/api/gameplay')

    @click.command('db-reset')
    def db_reset_command():
        """Drops, recreates, and seeds the database."""
        from app.models import Team, Game, ControlPoint, GameParticipant, utcnow
        with flask_app.app_context():
            db.drop_all()
            db.create_all()

            # Seed teams
            teams = [('Red', '#E53935', '1111'), ('Blue', '#1E88E5', '2222'), ('Green', '#43A047', '3333')]
            for name, color, code in teams:
                team = Team(name=name, color_hex=color)
                team.set_numpad_code(code)
                db.session.add(team)
            db.session.flush()

            start = utcnow().replace(microsecond=0)
            game = Game(name='Demo Game', start_time=start, end_time=start + timedelta(hours=2))
            db.session.add(game)
            db.session.flush()
            for team in Team.query.order_by(Team.id).all():
                db.session.add(GameParticipant(game_id=game.id, team_id=team.id))
            for x, y in [(2, 3), (5, 5), (8, 1)]:
                db.session.add(ControlPoint(game_id=game.id, position_x=x, position_y=y))

            db.session.commit()
            print('Database has been reset and seeded!')

    @click.command('finalize-scores')
    @click.argument('game_id', type=int)
    def finalize_scores_command(game_id):
        """Recompute and save the final scoreboard of a finished game."""
        from app.services.games.lifecycle import finalize_game_scores
        with flask_app.app_context():
            scores = finalize_game_scores(game_id)
            for score in scores:
                print(f'{score.team_name}: {score.total_score}')

    @click.command('live-scores-tick')
    def live_scores_tick_command():
        """Run a single live score recompute for every active game."""
        from app.services.games.scheduler import run_live_score_tick
        with flask_app.app_context():
            updated = run_live_score_tick()
            print(f'Updated live scores for {len(updated)} game(s)')

    flask_app.cli.add_command(db_reset_command)
    flask_app.cli.add_command(finalize_scores_command)
    flask_app.cli.add_command(live_scores_tick_command)

    return flask_app
