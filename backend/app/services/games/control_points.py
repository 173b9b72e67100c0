import threading
from contextlib import ExitStack, contextmanager
from datetime import datetime
from typing import Dict, Iterable, Iterator, Optional

from flask import current_app

from app import db
from app.models import ControlPoint, Game, GameEvent, utcnow
from .results import NO_ACTIVE_GAME, NOT_FOUND, UNCHANGED, ServiceResult, rejected, success


_control_point_locks: Dict[int, threading.Lock] = {}
_registry_lock = threading.Lock()


def _lock_for(cp_id: int) -> threading.Lock:
    with _registry_lock:
        lock = _control_point_locks.get(cp_id)
        if lock is None:
            lock = _control_point_locks[cp_id] = threading.Lock()
        return lock


@contextmanager
def control_point_locks(cp_ids: Iterable[int]) -> Iterator[None]:
    """Hold the exclusive-access lock of every given control point.

    Locks are taken in ascending id order so overlapping callers can't deadlock.
    """
    with ExitStack() as stack:
        for cp_id in sorted(set(cp_ids)):
            stack.enter_context(_lock_for(cp_id))
        yield


def capture_control_point(cp_id: int, team_id: Optional[int], now: Optional[datetime] = None) -> ServiceResult:
    """Change the owner of a control point and log the capture.

    ``team_id=None`` makes the point neutral. Requesting the current owner is
    a no-op for every caller: no event is written and nothing changes.
    Only points of the active game can change hands; the game status is read
    under the point's lock, which ``end_game`` also holds while closing.
    """
    with control_point_locks([cp_id]):
        cp = (
            ControlPoint.query.filter_by(id=cp_id)
            .with_for_update()
            .first()
        )
        if cp is None:
            db.session.rollback()
            return rejected(NOT_FOUND, f'Control point {cp_id} not found.')

        previous_owner = cp.team_id
        game_id = cp.game_id
        # Re-read rather than trust the identity map, the game may have ended meanwhile
        game = (
            Game.query.filter_by(id=game_id)
            .populate_existing()
            .with_for_update(read=True)
            .first()
        )
        if game is None or game.status != Game.STATUS_ACTIVE:
            db.session.rollback()
            current_app.logger.warning(f"[capture] rejected cp={cp_id}: game={game_id} is not active")
            return rejected(NO_ACTIVE_GAME, f'Game {game_id} is not active.')

        if previous_owner == team_id:
            db.session.rollback()
            return success(f'Control point {cp_id} is already held by that owner.', reason=UNCHANGED)

        try:
            db.session.add(GameEvent(
                game_id=game_id,
                control_point_id=cp.id,
                event_type=GameEvent.TYPE_CAPTURE,
                timestamp=now or utcnow(),
                acting_team_id=team_id,
                previous_owner_team_id=previous_owner,
            ))
            cp.set_owner(team_id)
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise

    current_app.logger.info(
        f"[capture] game={game_id} cp={cp_id} owner {previous_owner} -> {team_id}"
    )
    return success(f'Control point {cp_id} captured.')


def get_control_points(game_id: int):
    return ControlPoint.query.filter_by(game_id=game_id).order_by(ControlPoint.id).all()
