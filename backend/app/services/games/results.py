from typing import NamedTuple, Optional

NOT_FOUND = 'not_found'
WRONG_STATE = 'wrong_state'
ANOTHER_GAME_ACTIVE = 'another_game_active'
INVALID = 'invalid'
INVALID_CODE = 'invalid_code'
NO_ACTIVE_GAME = 'no_active_game'
UNCHANGED = 'unchanged'


class ServiceResult(NamedTuple):
    """Outcome of a service operation.

    Expected rejections come back with ``ok=False`` and a ``reason``; they
    are never raised. ``reason`` may also be set on success (``unchanged``).
    """
    ok: bool
    reason: Optional[str] = None
    message: str = ''


def success(message: str = '', reason: Optional[str] = None) -> ServiceResult:
    return ServiceResult(True, reason, message)


def rejected(reason: str, message: str = '') -> ServiceResult:
    return ServiceResult(False, reason, message)
