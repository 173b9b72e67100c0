import atexit
import threading
import time
from typing import List, Optional

from flask import current_app

from app import db, socketio
from app.models import Game
from .scoring import calculate_scoreboard, save_scoreboard


class _LoopHandle:
    """Stop request and exit signal of one run of the recompute loop."""

    def __init__(self):
        self.stop = threading.Event()
        self.done = threading.Event()


_loop: Optional[_LoopHandle] = None
_start_lock = threading.Lock()
_atexit_registered = False


def start_live_score_updates(app) -> bool:
    """Start the background loop that keeps active games' scoreboards current.

    - Runs at most once per process; later calls are no-ops
    - No-ops in TESTING mode unless ENABLE_SCHEDULER_IN_TESTS is set
    - No-ops when LIVE_SCORE_UPDATES_ENABLED is false
    - After a stop, a new loop starts only once the previous one has exited

    Returns True when this call started the loop.
    """
    global _loop, _atexit_registered
    if app.config.get('TESTING') and not app.config.get('ENABLE_SCHEDULER_IN_TESTS'):
        return False
    if not app.config.get('LIVE_SCORE_UPDATES_ENABLED', True):
        app.logger.info("[live-scores] disabled by configuration")
        return False

    with _start_lock:
        if _loop is not None and not _loop.done.is_set():
            if _loop.stop.is_set():
                app.logger.warning("[live-scores] previous loop is still stopping, not restarted")
            return False
        handle = _loop = _LoopHandle()
        if not _atexit_registered:
            atexit.register(stop_live_score_updates)
            _atexit_registered = True

    interval = max(float(app.config.get('LIVE_SCORE_INTERVAL_SEC', 10)), 0.1)
    app.logger.info(f"[live-scores] starting, interval={interval}s")
    try:
        socketio.start_background_task(_live_score_loop, app, interval, handle)
    except Exception:
        handle.done.set()
        raise
    return True


def stop_live_score_updates() -> None:
    with _start_lock:
        handle = _loop
    if handle is not None:
        handle.stop.set()


def _live_score_loop(app, interval: float, handle: _LoopHandle) -> None:
    # Ticks fire on a fixed grid from the loop start, whatever the previous tick did
    next_run = time.monotonic()
    try:
        while not handle.stop.is_set():
            try:
                with app.app_context():
                    run_live_score_tick()
            except Exception:
                app.logger.exception("[live-scores] tick failed, retrying at the next interval")
            next_run += interval
            now = time.monotonic()
            if next_run < now:
                # Skip slots missed by a slow tick instead of bursting to catch up
                next_run += ((now - next_run) // interval + 1) * interval
            socketio.sleep(next_run - now)
    finally:
        handle.done.set()
        app.logger.info("[live-scores] stopped")


def _discard_session(logger) -> None:
    try:
        db.session.rollback()
    except Exception:
        logger.exception("[live-scores] session rollback failed")


def run_live_score_tick() -> List[int]:
    """Recompute and save the scoreboard of every active game.

    Must run inside an app context. Never raises: a failure for one game is
    logged and the remaining games are still processed. Returns the ids of
    the games whose scores were saved.
    """
    logger = current_app.logger
    updated = []
    try:
        games = Game.query.filter_by(status=Game.STATUS_ACTIVE).order_by(Game.id).all()
        targets = [(g.id, g.name) for g in games]
    except Exception:
        logger.exception("[live-scores] could not load active games")
        _discard_session(logger)
        return updated

    if not targets:
        logger.info("[live-scores] no active games to score")
        return updated

    for game_id, name in targets:
        try:
            logger.info(f"[live-scores] calculating game={game_id} name={name!r}")
            scores = calculate_scoreboard(game_id)
            save_scoreboard(game_id, scores)
            updated.append(game_id)
            logger.info(f"[live-scores] updated game={game_id} teams={len(scores)}")
        except Exception:
            logger.exception(f"[live-scores] failed to update game={game_id}")
            _discard_session(logger)
    return updated
