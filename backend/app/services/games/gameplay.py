from typing import Optional

from flask import current_app

from app import db
from app.models import ControlPoint, Team
from .control_points import capture_control_point
from .lifecycle import get_active_game
from .results import INVALID_CODE, NO_ACTIVE_GAME, NOT_FOUND, ServiceResult, rejected, success


def capture_with_code(cp_id: int, team_id: Optional[int], numpad_code: Optional[str]) -> ServiceResult:
    """A team claims a control point by entering its code at the point.

    The team's code is checked and the point must belong to the active game;
    the ownership change itself goes through :func:`capture_control_point`,
    so re-entering a code at a point the team already holds changes nothing.
    """
    cp = db.session.get(ControlPoint, cp_id)
    if cp is None:
        return rejected(NOT_FOUND, 'Control Point not found.')

    team = db.session.get(Team, team_id) if team_id else None
    if team is None or not team.check_numpad_code(numpad_code):
        current_app.logger.warning(f"[capture] rejected code for cp={cp_id} team={team_id}")
        return rejected(INVALID_CODE, 'Invalid team or code.')

    active = get_active_game()
    if active is None or active.id != cp.game_id:
        return rejected(NO_ACTIVE_GAME, 'No game is currently active for this control point.')

    result = capture_control_point(cp_id, team.id)
    if not result.ok:
        return result
    return success(f'Control Point {cp_id} captured by team {team.name}.', reason=result.reason)
