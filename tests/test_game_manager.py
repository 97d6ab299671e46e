import time

import pytest

from models import GameState, TradeState
from core.stores import GameStore
from tests.helpers import RecordingConnection, wait_until


@pytest.fixture
def connection(runtime):
    connection = RecordingConnection()
    runtime.notifier.register_connection(connection)
    return connection


def _fresh_game(session_factory):
    session = session_factory()
    try:
        game = GameStore.get(session)
        return game.state, game.current_round, game.trade_state, game.current_game
    finally:
        session.close()


class TestSingleton:
    def test_ensure_game_is_idempotent(self, runtime, db):
        first = runtime.game_manager.ensure_game(db)
        second = runtime.game_manager.ensure_game(db)

        assert first.id == second.id == 1
        assert second.state == GameState.CLOSED
        assert second.trade_state == TradeState.NOT_STARTED


class TestGameTransitions:
    def test_start_registration_opens_gate(self, runtime, db, connection):
        game = runtime.game_manager.start_registration(db)

        assert game.state == GameState.OPENED
        assert wait_until(lambda: runtime.gate.is_registration_period)
        assert {"gameState": GameState.OPENED.value} in connection.messages
        assert wait_until(lambda: connection.values("isRegistrationStage") == [True])

    def test_stop_registration_closes_gate(self, runtime, db, connection):
        runtime.game_manager.start_registration(db)
        assert wait_until(lambda: runtime.gate.is_registration_period)

        game = runtime.game_manager.stop_registration(db)

        assert game.state == GameState.CLOSED
        assert wait_until(lambda: not runtime.gate.is_registration_period)
        assert connection.values("gameState") == [GameState.OPENED.value, GameState.CLOSED.value]

    def test_registration_period_expires(self, make_runtime, db, session_factory):
        runtime = make_runtime(registration_period_seconds=0.1)
        connection = RecordingConnection()
        runtime.notifier.register_connection(connection)

        runtime.game_manager.start_registration(db)

        assert wait_until(lambda: _fresh_game(session_factory)[0] == GameState.CLOSED)
        assert not runtime.gate.is_registration_period
        assert wait_until(lambda: connection.values("gameState")[-1:] == [GameState.CLOSED.value])

    def test_start_game_ends_registration(self, runtime, db):
        runtime.game_manager.start_registration(db)
        assert wait_until(lambda: runtime.gate.is_registration_period)

        game = runtime.game_manager.start_game(db)

        assert game.state == GameState.STARTED
        assert game.current_round == 0
        assert game.trade_state == TradeState.NOT_STARTED
        assert wait_until(lambda: not runtime.gate.is_registration_period)

    def test_create_new_game(self, runtime, db):
        runtime.game_manager.start_game(db)
        runtime.game_manager.start_round(db)

        game = runtime.game_manager.create_new_game(db)

        assert game.current_game == 2
        assert game.state == GameState.CLOSED
        assert game.current_round == 0

    def test_start_round_increments(self, runtime, db):
        runtime.game_manager.start_round(db)
        game = runtime.game_manager.start_round(db)

        assert game.current_round == 2
        assert game.state == GameState.CLOSED


class TestTradePeriod:
    def test_trade_period_runs_and_resets_trade_state(self, runtime, db, session_factory, connection):
        game = runtime.game_manager.start_trade(db)
        assert game.trade_state == TradeState.STARTED

        assert wait_until(lambda: connection.values("isTradeStage") == [True, False])
        assert wait_until(lambda: _fresh_game(session_factory)[2] == TradeState.NOT_STARTED)
        assert not runtime.gate.is_trade_period

    def test_stop_trade_ends_period_early(self, make_runtime, db, session_factory):
        runtime = make_runtime(trade_period_seconds=30)
        runtime.game_manager.start_trade(db)
        assert wait_until(lambda: runtime.gate.is_trade_period)

        runtime.game_manager.stop_trade()

        assert wait_until(lambda: not runtime.gate.is_trade_period)
        assert wait_until(lambda: _fresh_game(session_factory)[2] == TradeState.NOT_STARTED)

    def test_second_start_does_not_stack(self, make_runtime, db):
        runtime = make_runtime(trade_period_seconds=30)
        connection = RecordingConnection()
        runtime.notifier.register_connection(connection)

        runtime.game_manager.start_trade(db)
        assert wait_until(lambda: runtime.gate.is_trade_period)
        runtime.game_manager.start_trade(db)
        assert wait_until(lambda: runtime.tasks.active_count == 1)

        assert connection.values("isTradeStage") == [True]

    def test_trade_end_keeps_admin_changes(self, runtime, db, session_factory, connection):
        runtime.game_manager.start_trade(db)
        runtime.game_manager.start_round(db)

        assert wait_until(lambda: connection.values("isTradeStage") == [True, False])
        assert wait_until(lambda: _fresh_game(session_factory)[2] == TradeState.NOT_STARTED)
        assert _fresh_game(session_factory)[1] == 1

    def test_duration_update_applies_to_next_period(self, make_runtime, db):
        runtime = make_runtime(trade_period_seconds=30)
        runtime.game_manager.update_trade_period(0.1)

        runtime.game_manager.start_trade(db)

        assert wait_until(lambda: runtime.gate.is_trade_period)
        assert wait_until(lambda: not runtime.gate.is_trade_period)


class TestBulkUpdate:
    def test_started_forces_first_round(self, runtime, db):
        game = runtime.game_manager.update(db, GameState.STARTED, 5, TradeState.NOT_STARTED)

        assert game.state == GameState.STARTED
        assert game.current_round == 1

    def test_round_kept_when_state_unchanged(self, runtime, db):
        runtime.game_manager.update(db, GameState.STARTED, 0, TradeState.NOT_STARTED)

        game = runtime.game_manager.update(db, GameState.STARTED, 3, TradeState.NOT_STARTED)

        assert game.current_round == 3

    def test_trade_started_spawns_period(self, make_runtime, db, session_factory):
        runtime = make_runtime(trade_period_seconds=30)

        runtime.game_manager.update(db, GameState.STARTED, 1, TradeState.STARTED)
        assert wait_until(lambda: runtime.gate.is_trade_period)

        runtime.game_manager.update(db, GameState.STARTED, 1, TradeState.NOT_STARTED)
        assert wait_until(lambda: not runtime.gate.is_trade_period)
        assert wait_until(lambda: _fresh_game(session_factory)[2] == TradeState.NOT_STARTED)

    def test_state_change_notifies(self, runtime, db, connection):
        runtime.game_manager.update(db, GameState.PAUSED, 0, TradeState.NOT_STARTED)

        assert connection.values("gameState") == [GameState.PAUSED.value]


def _delay_background_start(runtime, monkeypatch, delay=0.05):
    """背景執行緒延後開始執行，模擬排程延遲"""
    spawn = runtime.tasks.spawn

    def delayed_spawn(name, target):
        def run():
            time.sleep(delay)
            target()
        return spawn(name, run)

    monkeypatch.setattr(runtime.tasks, "spawn", delayed_spawn)


class TestStopRightAfterStart:
    def test_registration_gate_open_when_start_returns(self, runtime, db, monkeypatch):
        _delay_background_start(runtime, monkeypatch)

        runtime.game_manager.start_registration(db)

        assert runtime.gate.is_registration_period

    def test_stop_registration_before_background_runs(self, runtime, db, session_factory, monkeypatch):
        _delay_background_start(runtime, monkeypatch)

        runtime.game_manager.start_registration(db)
        runtime.game_manager.stop_registration(db)

        assert runtime.tasks.drain(2) is True
        assert not runtime.gate.is_registration_period
        assert not runtime.registration_controller.is_running
        assert _fresh_game(session_factory)[0] == GameState.CLOSED

    def test_stop_trade_before_background_runs(self, make_runtime, db, session_factory, monkeypatch):
        runtime = make_runtime(trade_period_seconds=30)
        _delay_background_start(runtime, monkeypatch)

        runtime.game_manager.start_trade(db)
        assert runtime.gate.is_trade_period
        runtime.game_manager.stop_trade()

        assert runtime.tasks.drain(2) is True
        assert not runtime.gate.is_trade_period
        assert _fresh_game(session_factory)[2] == TradeState.NOT_STARTED


class TestRecovery:
    def test_interrupted_trade_state_reset(self, runtime, db):
        game = GameStore.get(db)
        game.trade_state = TradeState.STARTED
        db.commit()

        runtime.game_manager.recover(db)

        db.expire_all()
        assert GameStore.get(db).trade_state == TradeState.NOT_STARTED
        assert not runtime.gate.is_trade_period

    def test_open_registration_resumed(self, runtime, db):
        game = GameStore.get(db)
        game.state = GameState.OPENED
        db.commit()

        runtime.game_manager.recover(db)

        assert wait_until(lambda: runtime.gate.is_registration_period)


class TestShutdown:
    def test_shutdown_stops_running_periods(self, make_runtime, db):
        runtime = make_runtime(trade_period_seconds=30)
        runtime.game_manager.start_trade(db)
        runtime.game_manager.start_registration(db)
        assert wait_until(lambda: runtime.gate.is_trade_period and runtime.gate.is_registration_period)

        assert runtime.game_manager.shutdown(2.0) is True
        assert not runtime.gate.is_trade_period
        assert not runtime.gate.is_registration_period
