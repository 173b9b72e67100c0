from app import create_app, socketio
from app.services.games.scheduler import start_live_score_updates

app = create_app()
start_live_score_updates(app)

if __name__ == '__main__':
    # The reloader would start a second process with its own recompute loop
    socketio.run(app, debug=True, use_reloader=False)
