"""
Game Manager：管理遊戲 / 回合 / 交易時段的完整生命週期

職責：
1. 管理員的遊戲狀態轉換（開放註冊、開始遊戲、開新一場）
2. 回合推進
3. 交易時段的開始 / 結束（背景執行緒跑 PeriodController）
4. 狀態改變時通知相依服務（PeriodGate、TeamsNotifier）

兩條互相獨立的狀態軸：
- Game.state：CLOSED / PAUSED / OPENED / STARTED / STOP_GENERALLY
- Game.trade_state：NOT_STARTED / STARTED

原則：
- 先寫入資料庫（@transactional commit），成功後才發通知、啟動背景時段
- 任何讀寫失敗都直接拋出，不留下部分狀態
"""
from typing import Callable, Optional, Tuple
import logging

from sqlalchemy.orm import Session

from models import Game, GameState, TradeState
from core.background import BackgroundTasks
from core.exceptions import GameNotFound
from core.notifier import TeamsNotifier
from core.period_controller import PeriodController
from core.stores import GameStore
from database import transactional

logger = logging.getLogger(__name__)


class GameManager:
    """遊戲生命週期管理器"""

    def __init__(
        self,
        trade_controller: PeriodController,
        registration_controller: PeriodController,
        notifier: TeamsNotifier,
        session_factory: Callable[[], Session],
        tasks: BackgroundTasks,
    ):
        self._trade_controller = trade_controller
        self._registration_controller = registration_controller
        self._notifier = notifier
        self._session_factory = session_factory
        self._tasks = tasks

    # ============ 查詢 ============

    @transactional
    def ensure_game(self, db: Session) -> Game:
        """建立 game 單例列（已存在則直接返回）"""
        try:
            return GameStore.get(db)
        except GameNotFound:
            game = Game(
                id=1,
                state=GameState.CLOSED,
                current_round=0,
                trade_state=TradeState.NOT_STARTED,
                current_game=1
            )
            db.add(game)
            db.flush()
            logger.info("Created game singleton row")
            return game

    def get_game(self, db: Session) -> Game:
        return GameStore.get(db)

    def recover(self, db: Session) -> None:
        """
        程序重啟後恢復時段

        - trade_state 還是 STARTED：計時已遺失，寫回 NOT_STARTED
        - state 是 OPENED：重新開放註冊時段
        """
        game = GameStore.get(db)
        if game.trade_state == TradeState.STARTED:
            logger.warning("Trade period was interrupted by restart, resetting trade_state")
            self._revert_trade_state(db)
        if game.state == GameState.OPENED:
            self._spawn_registration_period()

    # ============ 管理員批次更新 ============

    def update(
        self,
        db: Session,
        state: GameState,
        current_round: int,
        trade_state: TradeState
    ) -> Game:
        """
        管理員一次更新 state / current_round / trade_state

        流程：
        1. 套用新值（state 轉為 STARTED 時 current_round 強制為 1）
        2. 寫入資料庫
        3. state 有變化 -> 發送狀態通知（開 / 關註冊時段）
        4. trade_state 變成 STARTED -> 背景啟動交易時段
           trade_state 變成 NOT_STARTED -> 提前結束交易時段
        """
        game, state_changed, trade_state_changed = self._apply_update(
            db, state, current_round, trade_state
        )

        if state_changed:
            self._on_game_state_change(game.state)

        if trade_state_changed:
            if game.trade_state == TradeState.STARTED:
                self._spawn_trade_period()
            else:
                self._trade_controller.stop()

        return game

    @transactional
    def _apply_update(
        self,
        db: Session,
        state: GameState,
        current_round: int,
        trade_state: TradeState
    ) -> Tuple[Game, bool, bool]:
        game = GameStore.get(db, lock=True)

        game.current_round = current_round

        trade_state_changed = game.trade_state != trade_state
        game.trade_state = trade_state

        state_changed = game.state != state
        game.state = state
        if state_changed and state == GameState.STARTED:
            game.current_round = 1

        GameStore.update(db, game)
        logger.info(
            f"Game updated: state={game.state.name} round={game.current_round} "
            f"trade_state={game.trade_state.name}"
        )
        return game, state_changed, trade_state_changed

    # ============ 遊戲狀態轉換 ============

    def create_new_game(self, db: Session) -> Game:
        """
        開新一場遊戲

        - current_game + 1（之後註冊的隊伍屬於新的一場）
        - state -> CLOSED（關閉註冊時段）
        - current_round -> 0，trade_state -> NOT_STARTED
        - 強制結束進行中的交易時段
        """
        game = self._reset_game(db, GameState.CLOSED, new_game=True)
        logger.info(f"Created new game #{game.current_game}")

        self._on_game_state_change(GameState.CLOSED)
        self._trade_controller.stop()
        return game

    def start_game(self, db: Session) -> Game:
        """
        開始遊戲（STARTED 同時代表註冊結束）

        current_round 歸零，等管理員呼叫 start_round 進入第 1 回合
        """
        game = self._reset_game(db, GameState.STARTED, new_game=False)
        logger.info(f"Game #{game.current_game} started")

        self._on_game_state_change(GameState.STARTED)
        self._trade_controller.stop()
        return game

    @transactional
    def _reset_game(self, db: Session, state: GameState, new_game: bool) -> Game:
        game = GameStore.get(db, lock=True)
        if new_game:
            game.current_game += 1
        game.state = state
        game.current_round = 0
        game.trade_state = TradeState.NOT_STARTED
        GameStore.update(db, game)
        return game

    def start_registration(self, db: Session) -> Game:
        game = self._set_state(db, GameState.OPENED)
        logger.info("Registration opened")
        self._on_game_state_change(GameState.OPENED)
        return game

    def stop_registration(self, db: Session) -> Game:
        game = self._set_state(db, GameState.CLOSED)
        logger.info("Registration closed")
        self._on_game_state_change(GameState.CLOSED)
        return game

    @transactional
    def _set_state(self, db: Session, state: GameState) -> Game:
        game = GameStore.get(db, lock=True)
        game.state = state
        GameStore.update(db, game)
        return game

    # ============ 回合 / 交易 ============

    @transactional
    def start_round(self, db: Session) -> Game:
        """進入下一回合（不改變遊戲狀態）"""
        game = GameStore.get(db, lock=True)
        game.current_round += 1
        GameStore.update(db, game)
        logger.info(f"Round {game.current_round} started")
        return game

    def start_trade(self, db: Session) -> Game:
        """
        開始交易時段

        trade_state 寫入 STARTED 後立即返回；
        時段本身在背景執行緒跑 rounds_duration 秒，結束後 trade_state 寫回 NOT_STARTED
        """
        game = self._set_trade_state(db, TradeState.STARTED)
        self._spawn_trade_period()
        return game

    @transactional
    def _set_trade_state(self, db: Session, trade_state: TradeState) -> Game:
        game = GameStore.get(db, lock=True)
        game.trade_state = trade_state
        GameStore.update(db, game)
        return game

    def stop_trade(self) -> None:
        """提前結束交易時段（不論已經過多久）"""
        logger.info("Stop trade requested")
        self._trade_controller.stop()

    def update_trade_period(self, seconds: Optional[float]) -> None:
        self._trade_controller.set_duration(seconds)

    def shutdown(self, timeout: float) -> bool:
        """結束所有時段並等待背景執行緒收尾"""
        self._trade_controller.stop()
        self._registration_controller.stop()
        return self._tasks.drain(timeout)

    # ============ 背景時段 ============

    def _spawn_trade_period(self) -> None:
        # 在呼叫者的執行緒佔用時段，之後的 stop_trade() 不會落空
        if self._trade_controller.begin():
            self._tasks.spawn("trade-period", self._run_trade_period)

    def _run_trade_period(self) -> None:
        self._trade_controller.wait_for_end()
        self._finish_period(self._revert_trade_state)

    def _spawn_registration_period(self) -> None:
        if self._registration_controller.begin():
            self._tasks.spawn("registration-period", self._run_registration_period)

    def _run_registration_period(self) -> None:
        self._registration_controller.wait_for_end()
        self._finish_period(self._close_expired_registration)

    def _finish_period(self, finalize: Callable[[Session], Optional[GameState]]) -> None:
        """
        時段結束後的資料庫收尾（在背景執行緒自己的 session 裡）

        沒有呼叫者可以回報錯誤，失敗只記錄 log
        """
        db = self._session_factory()
        try:
            changed_state = finalize(db)
        except Exception as e:
            logger.error(f"Failed to persist period end: {e}", exc_info=True)
            return
        finally:
            db.close()

        if changed_state is not None:
            self._notifier.notify_game_state_changed(changed_state)

    @transactional
    def _revert_trade_state(self, db: Session) -> None:
        # 只改 trade_state，不覆蓋期間內管理員對其他欄位的修改
        game = GameStore.get(db, lock=True)
        game.trade_state = TradeState.NOT_STARTED
        GameStore.update(db, game)
        logger.info("Trade period finished, trade_state reset")
        return None

    @transactional
    def _close_expired_registration(self, db: Session) -> Optional[GameState]:
        # 由 stop_registration / start_game 結束時 state 早已不是 OPENED
        game = GameStore.get(db, lock=True)
        if game.state != GameState.OPENED:
            return None
        game.state = GameState.CLOSED
        GameStore.update(db, game)
        logger.info("Registration period expired, game closed")
        return GameState.CLOSED

    def _on_game_state_change(self, state: GameState) -> None:
        self._notifier.notify_game_state_changed(state)

        if state == GameState.OPENED:
            self._spawn_registration_period()
        elif state in (GameState.CLOSED, GameState.STARTED):
            self._registration_controller.stop()
