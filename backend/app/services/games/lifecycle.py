"""Game lifecycle: scheduled -> active -> finished.

Only one game may be active at a time. Ending a game happens in two phases:

1. History: a ``game_end`` event closes every held control point, the game
   becomes finished and all control points go neutral, in one commit.
2. Scores: the final scoreboard is computed and saved by
   :func:`finalize_game_scores`.

Phase 1 is never undone when phase 2 fails; the failure is logged and
re-raised, and phase 2 can be run again on its own (``flask finalize-scores``).
"""

import threading
from datetime import datetime
from typing import List, Optional

from flask import current_app

from app import db
from app.models import ControlPoint, Game, GameEvent, GameParticipant, Team, utcnow
from .control_points import control_point_locks
from .results import (
    ANOTHER_GAME_ACTIVE,
    INVALID,
    NOT_FOUND,
    WRONG_STATE,
    ServiceResult,
    rejected,
    success,
)
from .scoring import TeamScore, calculate_scoreboard, save_scoreboard


# Serializes start/end so the single-active check and the status write can't interleave
_lifecycle_lock = threading.Lock()


def create_game(name: str, start_time: datetime, end_time: datetime):
    """Create a scheduled game. Returns ``(result, game)``."""
    if not name or not name.strip():
        return rejected(INVALID, 'Game must have a name.'), None
    if not start_time or not end_time or end_time <= start_time:
        return rejected(INVALID, 'Start time must be before end time.'), None
    game = Game(name=name.strip(), start_time=start_time, end_time=end_time, status=Game.STATUS_SCHEDULED)
    db.session.add(game)
    db.session.commit()
    current_app.logger.info(f"[game-create] game={game.id} name={game.name!r}")
    return success(f'Game {game.name} created.'), game


def get_game(game_id: int) -> Optional[Game]:
    return db.session.get(Game, game_id)


def get_all_games() -> List[Game]:
    return Game.query.order_by(Game.start_time.desc()).all()


def get_active_game() -> Optional[Game]:
    return Game.query.filter_by(status=Game.STATUS_ACTIVE).order_by(Game.id).first()


def start_game(game_id: int) -> ServiceResult:
    with _lifecycle_lock:
        game = Game.query.filter_by(id=game_id).with_for_update().first()
        if not game:
            db.session.rollback()
            return rejected(NOT_FOUND, f'Game {game_id} not found.')
        if game.status != Game.STATUS_SCHEDULED:
            message = f'Game {game_id} is {game.status}, only scheduled games can start.'
            db.session.rollback()
            return rejected(WRONG_STATE, message)

        other = Game.query.filter(Game.status == Game.STATUS_ACTIVE, Game.id != game_id).first()
        if other:
            other_id = other.id
            db.session.rollback()
            current_app.logger.warning(
                f"[game-start] rejected game={game_id}: game={other_id} is already active"
            )
            return rejected(ANOTHER_GAME_ACTIVE, f'Game {other_id} is already active.')

        game.status = Game.STATUS_ACTIVE
        db.session.commit()
    current_app.logger.info(f"[game-start] game={game_id} is now active")
    return success(f'Game {game_id} started.')


def end_game(game_id: int, now: Optional[datetime] = None) -> ServiceResult:
    """Finish an active game and save its final scores.

    Rejections (unknown game, game not active) change nothing. A fault while
    scoring propagates after the history phase has been committed.
    """
    with _lifecycle_lock:
        game = Game.query.filter_by(id=game_id).with_for_update().first()
        if not game:
            db.session.rollback()
            return rejected(NOT_FOUND, f'Game {game_id} not found.')
        if game.status != Game.STATUS_ACTIVE:
            message = f'Game {game_id} is {game.status}, only active games can end.'
            db.session.rollback()
            return rejected(WRONG_STATE, message)

        cp_ids = [cp_id for (cp_id,) in db.session.query(ControlPoint.id).filter_by(game_id=game_id).all()]
        with control_point_locks(cp_ids):
            closed = _close_ownership(game, now or utcnow())

    current_app.logger.info(f"[game-end] game={game_id} finished, closed {closed} held control point(s)")
    finalize_game_scores(game_id)
    return success(f'Game {game_id} ended.')


def reset_game(game_id: int, now: Optional[datetime] = None) -> ServiceResult:
    return end_game(game_id, now=now)


def _close_ownership(game: Game, ended_at: datetime) -> int:
    try:
        control_points = (
            ControlPoint.query.filter_by(game_id=game.id)
            .order_by(ControlPoint.id)
            .with_for_update()
            .all()
        )
        closed = 0
        for cp in control_points:
            if cp.team_id is not None:
                db.session.add(GameEvent(
                    game_id=game.id,
                    control_point_id=cp.id,
                    event_type=GameEvent.TYPE_GAME_END,
                    timestamp=ended_at,
                    acting_team_id=None,
                    previous_owner_team_id=cp.team_id,
                ))
                closed += 1
            cp.set_owner(None)
        game.status = Game.STATUS_FINISHED
        db.session.commit()
        return closed
    except Exception:
        db.session.rollback()
        raise


def finalize_game_scores(game_id: int) -> List[TeamScore]:
    """Compute and save the final scoreboard of a game."""
    current_app.logger.info(f"[game-end] calculating final scores for game={game_id}")
    try:
        scores = calculate_scoreboard(game_id)
        save_scoreboard(game_id, scores)
    except Exception:
        current_app.logger.exception(
            f"[game-end] game={game_id} is finished but its final scores were not saved"
        )
        raise
    current_app.logger.info(f"[game-end] game={game_id} final scores saved for {len(scores)} team(s)")
    return scores


# ---- Roster and map setup (only while the game is not active) ----

def _editable_game(game_id: int):
    game = db.session.get(Game, game_id)
    if not game:
        return None, rejected(NOT_FOUND, f'Game {game_id} not found.')
    if game.status == Game.STATUS_ACTIVE:
        return None, rejected(WRONG_STATE, 'Game setup cannot change while the game is active.')
    return game, None


def add_participant(game_id: int, team_id: int) -> ServiceResult:
    game, error = _editable_game(game_id)
    if error:
        return error
    if not db.session.get(Team, team_id):
        return rejected(NOT_FOUND, f'Team {team_id} not found.')
    if GameParticipant.query.filter_by(game_id=game.id, team_id=team_id).first():
        return success('Team already participates.')
    db.session.add(GameParticipant(game_id=game.id, team_id=team_id))
    db.session.commit()
    return success('Team added.')


def remove_participant(game_id: int, team_id: int) -> ServiceResult:
    game, error = _editable_game(game_id)
    if error:
        return error
    GameParticipant.query.filter_by(game_id=game.id, team_id=team_id).delete()
    db.session.commit()
    return success('Team removed.')


def get_participants(game_id: int) -> List[Team]:
    participants = (
        GameParticipant.query.filter_by(game_id=game_id)
        .order_by(GameParticipant.id)
        .all()
    )
    return [p.team for p in participants]


def get_non_participants(game_id: int) -> List[Team]:
    """Teams that could still be added to the game's roster."""
    taken = db.select(GameParticipant.team_id).where(GameParticipant.game_id == game_id)
    return Team.query.filter(Team.id.not_in(taken)).order_by(Team.id).all()


def set_control_point_marker(game_id: int, x: int, y: int, is_control_point: bool) -> ServiceResult:
    """Place or remove a control point at a map grid position."""
    game, error = _editable_game(game_id)
    if error:
        return error
    cp = ControlPoint.query.filter_by(game_id=game.id, position_x=x, position_y=y).first()
    if is_control_point:
        if cp is None:
            db.session.add(ControlPoint(game_id=game.id, position_x=x, position_y=y))
            db.session.commit()
        return success('Control point placed.')
    if cp is not None:
        if GameEvent.query.filter_by(control_point_id=cp.id).first():
            return rejected(WRONG_STATE, 'Control point has recorded history and cannot be removed.')
        db.session.delete(cp)
        db.session.commit()
    return success('Control point removed.')
