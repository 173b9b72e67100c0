from dataclasses import dataclass
from itertools import groupby
from typing import Iterable, List, Optional

from flask import current_app

from app import db
from app.models import Game, GameEvent, GameParticipant, GameScore

DEFAULT_CAPTURE_BONUS = 100


@dataclass
class TeamScore:
    team_id: int
    team_name: str
    color_hex: str = '#FFFFFF'
    capture_bonus_score: int = 0
    holding_score: int = 0
    # Set when the row comes from a saved scoreboard instead of a replay
    total_score_from_db: Optional[int] = None

    @property
    def total_score(self) -> int:
        if self.total_score_from_db is not None:
            return self.total_score_from_db
        return self.capture_bonus_score + self.holding_score

    def to_dict(self):
        return {
            'team_id': self.team_id,
            'team_name': self.team_name,
            'color_hex': self.color_hex,
            'capture_bonus_score': self.capture_bonus_score,
            'holding_score': self.holding_score,
            'total_score': self.total_score,
        }


def calculate_team_scores(events: Iterable[GameEvent], teams: Iterable, capture_bonus: int = DEFAULT_CAPTURE_BONUS) -> List[TeamScore]:
    """Replay a game's event log into per-team scores.

    ``teams`` is the participant roster in seeding order (objects with
    ``id``, ``name`` and optionally ``color_hex``). Only participants are
    scored; events acted by anyone else are ignored.

    - Every ``capture`` event with a participating actor earns ``capture_bonus``.
    - Per control point, each interval between consecutive ``capture`` /
      ``game_end`` events earns its whole seconds to the team that acted on
      the interval's opening event.

    The result is ordered by total descending; ties keep seeding order.
    """
    scores = {}
    for team in teams:
        scores[team.id] = TeamScore(
            team_id=team.id,
            team_name=team.name,
            color_hex=getattr(team, 'color_hex', None) or '#FFFFFF',
        )

    # sorted() is stable: events sharing a timestamp keep log order
    ordered = sorted(events, key=lambda e: e.timestamp)

    for ev in ordered:
        if ev.event_type == GameEvent.TYPE_CAPTURE and ev.acting_team_id in scores:
            scores[ev.acting_team_id].capture_bonus_score += capture_bonus

    ownership_events = [
        e for e in ordered if e.event_type in (GameEvent.TYPE_CAPTURE, GameEvent.TYPE_GAME_END)
    ]
    # Group by control point, keeping time order inside each group
    ownership_events.sort(key=lambda e: e.control_point_id)
    for _, group in groupby(ownership_events, key=lambda e: e.control_point_id):
        previous = None
        for current in group:
            if previous is not None:
                _credit_interval(scores, previous, current)
            previous = current

    return sorted(scores.values(), key=lambda s: s.total_score, reverse=True)


def _credit_interval(scores, previous: GameEvent, current: GameEvent) -> None:
    # A game_end closes an interval; it never opens one.
    if previous.event_type == GameEvent.TYPE_GAME_END:
        return
    owner = previous.acting_team_id
    if owner is None or owner not in scores:
        return
    seconds = int((current.timestamp - previous.timestamp).total_seconds())
    scores[owner].holding_score += seconds


def calculate_scoreboard(game_id: int) -> List[TeamScore]:
    """Load a game's event log and roster and replay them."""
    events = (
        GameEvent.query.filter_by(game_id=game_id)
        .order_by(GameEvent.timestamp, GameEvent.id)
        .all()
    )
    participants = (
        GameParticipant.query.filter_by(game_id=game_id)
        .order_by(GameParticipant.id)
        .all()
    )
    bonus = int(current_app.config.get('CAPTURE_BONUS_POINTS', DEFAULT_CAPTURE_BONUS))
    return calculate_team_scores(events, [p.team for p in participants], capture_bonus=bonus)


def save_scoreboard(game_id: int, team_scores: Iterable[TeamScore]) -> None:
    """Replace every saved score row of the game with ``team_scores``."""
    try:
        GameScore.query.filter_by(game_id=game_id).delete()
        for ts in team_scores:
            db.session.add(GameScore(game_id=game_id, team_id=ts.team_id, points=ts.total_score))
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise


def get_scoreboard(game_id: int) -> Optional[List[TeamScore]]:
    """Latest saved scoreboard of a game, or ``None`` if the game doesn't exist.

    An active game that has not been recomputed yet is scored on demand.
    """
    game = db.session.get(Game, game_id)
    if not game:
        return None
    rows = (
        GameScore.query.filter_by(game_id=game_id)
        .order_by(GameScore.points.desc(), GameScore.id)
        .all()
    )
    if not rows and game.status == Game.STATUS_ACTIVE:
        return calculate_scoreboard(game_id)
    return [
        TeamScore(
            team_id=row.team_id,
            team_name=row.team.name,
            color_hex=row.team.color_hex,
            total_score_from_db=row.points,
        )
        for row in rows
    ]
