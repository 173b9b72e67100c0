import logging
from datetime import datetime, timedelta
from types import SimpleNamespace

import pytest

from app import db, socketio
from app.models import GameEvent, GameScore
from app.services.games import scheduler


T0 = datetime(2026, 6, 1, 12, 0, 0)


def add_capture(game, cp, team, seconds):
    db.session.add(GameEvent(
        game_id=game.id,
        control_point_id=cp.id,
        event_type=GameEvent.TYPE_CAPTURE,
        timestamp=T0 + timedelta(seconds=seconds),
        acting_team_id=team.id,
    ))
    db.session.commit()


def test_tick_saves_live_scores_for_active_games(make_team, make_game):
    red, blue = make_team('Red'), make_team('Blue')
    active, (cp,) = make_game(name='Live', teams=[red, blue], status='active')
    scheduled, _ = make_game(name='Later', teams=[red, blue])
    add_capture(active, cp, red, 0)

    updated = scheduler.run_live_score_tick()

    assert updated == [active.id]
    rows = {r.team_id: r.points for r in GameScore.query.filter_by(game_id=active.id).all()}
    # The open interval is not counted until something closes it
    assert rows == {red.id: 100, blue.id: 0}
    assert GameScore.query.filter_by(game_id=scheduled.id).count() == 0


def test_tick_replaces_previous_snapshot(make_team, make_game):
    red = make_team('Red')
    game, (cp,) = make_game(teams=[red], status='active')
    scheduler.run_live_score_tick()
    add_capture(game, cp, red, 0)

    scheduler.run_live_score_tick()

    rows = GameScore.query.filter_by(game_id=game.id).all()
    assert [(r.team_id, r.points) for r in rows] == [(red.id, 100)]


def test_tick_without_active_games(flask_app, make_game, caplog):
    make_game(status='finished')
    caplog.set_level(logging.INFO, logger=flask_app.logger.name)

    assert scheduler.run_live_score_tick() == []
    assert 'no active games' in caplog.text
    assert GameScore.query.count() == 0


def test_failing_game_does_not_stop_the_others(flask_app, make_team, make_game, monkeypatch, caplog):
    red = make_team('Red')
    broken, _ = make_game(name='Broken', teams=[red], status='active')
    healthy, _ = make_game(name='Healthy', teams=[red], status='active')
    real = scheduler.calculate_scoreboard

    def flaky(game_id):
        if game_id == broken.id:
            raise RuntimeError('boom')
        return real(game_id)
    monkeypatch.setattr(scheduler, 'calculate_scoreboard', flaky)
    caplog.set_level(logging.INFO, logger=flask_app.logger.name)

    updated = scheduler.run_live_score_tick()

    assert updated == [healthy.id]
    assert GameScore.query.filter_by(game_id=healthy.id).count() == 1
    assert GameScore.query.filter_by(game_id=broken.id).count() == 0
    assert f'failed to update game={broken.id}' in caplog.text


def test_failing_roster_fetch_is_logged(flask_app, monkeypatch, caplog):
    class _BrokenQuery:
        def filter_by(self, **kwargs):
            raise RuntimeError('database unavailable')

    class _BrokenGame:
        STATUS_ACTIVE = 'active'
        query = _BrokenQuery()

    monkeypatch.setattr(scheduler, 'Game', _BrokenGame)
    caplog.set_level(logging.INFO, logger=flask_app.logger.name)

    assert scheduler.run_live_score_tick() == []
    assert 'could not load active games' in caplog.text


def test_tick_survives_a_failing_rollback(flask_app, monkeypatch, caplog):
    class _BrokenQuery:
        def filter_by(self, **kwargs):
            raise RuntimeError('database unavailable')

    class _BrokenGame:
        STATUS_ACTIVE = 'active'
        query = _BrokenQuery()

    def broken_rollback():
        raise RuntimeError('connection lost')

    monkeypatch.setattr(scheduler, 'Game', _BrokenGame)
    monkeypatch.setattr(scheduler, 'db', SimpleNamespace(session=SimpleNamespace(rollback=broken_rollback)))
    caplog.set_level(logging.INFO, logger=flask_app.logger.name)

    assert scheduler.run_live_score_tick() == []
    # The original failure is logged before the rollback is attempted
    assert caplog.text.index('could not load active games') < caplog.text.index('session rollback failed')


@pytest.fixture()
def no_running_loop(monkeypatch):
    monkeypatch.setattr(scheduler, '_loop', None)
    monkeypatch.setattr(scheduler, '_atexit_registered', False)
    registered = []
    monkeypatch.setattr(scheduler.atexit, 'register', registered.append)
    return registered


@pytest.fixture()
def fake_clock(monkeypatch):
    """Replaces the loop's monotonic clock; ``socketio.sleep`` advances it."""
    clock = SimpleNamespace(now=0.0, sleeps=[])

    def sleep(seconds):
        clock.sleeps.append(seconds)
        clock.now += seconds

    monkeypatch.setattr(scheduler, 'time', SimpleNamespace(monotonic=lambda: clock.now))
    monkeypatch.setattr(socketio, 'sleep', sleep)
    return clock


def test_updates_do_not_start_in_tests(flask_app, monkeypatch, no_running_loop):
    started = []
    monkeypatch.setattr(socketio, 'start_background_task', lambda *a, **k: started.append(a))
    assert scheduler.start_live_score_updates(flask_app) is False
    assert started == []


def test_updates_start_once(flask_app, monkeypatch, no_running_loop):
    started = []
    monkeypatch.setattr(socketio, 'start_background_task', lambda *a, **k: started.append(a))
    flask_app.config['ENABLE_SCHEDULER_IN_TESTS'] = True

    assert scheduler.start_live_score_updates(flask_app) is True
    assert scheduler.start_live_score_updates(flask_app) is False

    assert len(started) == 1
    target, app_arg, interval, handle = started[0]
    assert target is scheduler._live_score_loop
    assert app_arg is flask_app
    assert interval == 10
    assert no_running_loop == [scheduler.stop_live_score_updates]

    scheduler.stop_live_score_updates()
    assert handle.stop.is_set()


def test_restart_waits_for_the_previous_loop_to_exit(flask_app, monkeypatch, no_running_loop, fake_clock):
    started = []
    monkeypatch.setattr(socketio, 'start_background_task', lambda *a, **k: started.append(a))
    monkeypatch.setattr(scheduler, 'run_live_score_tick', lambda: [])
    flask_app.config['ENABLE_SCHEDULER_IN_TESTS'] = True

    assert scheduler.start_live_score_updates(flask_app) is True
    scheduler.stop_live_score_updates()
    # The first loop has not noticed the stop yet, so nothing new starts
    assert scheduler.start_live_score_updates(flask_app) is False
    assert len(started) == 1

    target, app_arg, interval, first = started[0]
    target(app_arg, interval, first)
    assert first.done.is_set()

    assert scheduler.start_live_score_updates(flask_app) is True
    second = started[1][3]
    assert second is not first
    assert not second.stop.is_set()
    # Registered once however many times the loop starts
    assert no_running_loop == [scheduler.stop_live_score_updates]


def test_updates_can_be_disabled(flask_app, monkeypatch, no_running_loop):
    started = []
    monkeypatch.setattr(socketio, 'start_background_task', lambda *a, **k: started.append(a))
    flask_app.config['ENABLE_SCHEDULER_IN_TESTS'] = True
    flask_app.config['LIVE_SCORE_UPDATES_ENABLED'] = False
    assert scheduler.start_live_score_updates(flask_app) is False
    assert started == []


def run_loop(flask_app, monkeypatch, clock, tick, ticks_before_stop=3):
    """Run the loop with ``tick`` until it has been called the given number of times."""
    handle = scheduler._LoopHandle()
    tick_times = []

    def counted_tick():
        tick_times.append(clock.now)
        if len(tick_times) == ticks_before_stop:
            handle.stop.set()
        return tick()

    monkeypatch.setattr(scheduler, 'run_live_score_tick', counted_tick)
    scheduler._live_score_loop(flask_app, 10, handle)
    assert handle.done.is_set()
    return tick_times


def test_loop_ticks_on_a_fixed_grid_until_stopped(flask_app, monkeypatch, fake_clock):
    tick_times = run_loop(flask_app, monkeypatch, fake_clock, lambda: [])

    assert tick_times == [0, 10, 20]
    assert fake_clock.sleeps == [10, 10, 10]


def test_slow_tick_skips_missed_slots(flask_app, monkeypatch, fake_clock):
    calls = []

    def slow_first_tick():
        calls.append(1)
        if len(calls) == 1:
            fake_clock.now += 25
        return []

    tick_times = run_loop(flask_app, monkeypatch, fake_clock, slow_first_tick)

    # Slots at 10 and 20 were missed; the next tick lands on 30, not straight away
    assert tick_times == [0, 30, 40]
    assert fake_clock.sleeps == [5, 10, 10]


def test_loop_survives_a_failing_tick(flask_app, monkeypatch, fake_clock, caplog):
    calls = []

    def failing_first_tick():
        calls.append(1)
        if len(calls) == 1:
            raise RuntimeError('session rollback failed')
        return []

    caplog.set_level(logging.INFO, logger=flask_app.logger.name)

    tick_times = run_loop(flask_app, monkeypatch, fake_clock, failing_first_tick)

    assert tick_times == [0, 10, 20]
    assert 'tick failed' in caplog.text
    assert '[live-scores] stopped' in caplog.text
