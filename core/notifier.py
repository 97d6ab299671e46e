"""
Teams Notifier：推送給隊伍前端的通知出口

職責：
1. 管理已連線的前端（register / remove）
2. 把時段與遊戲狀態的變化廣播給所有連線

核心只呼叫三個 notify_* 方法，不知道傳輸方式。
連線是任何有同步 send_json(message) 的物件；
websocket router 把每個 socket 包成這樣的 adapter。

訊息格式：
- {"isTradeStage": bool}
- {"isRegistrationStage": bool}
- {"gameState": int}
"""
import logging
import threading
from typing import Any, Dict, Protocol, Set

from models import GameState

logger = logging.getLogger(__name__)


class Connection(Protocol):
    def send_json(self, message: Dict[str, Any]) -> None:
        ...


class TeamsNotifier:
    """
    隊伍通知廣播

    notify_* 可能在任何執行緒被呼叫（請求執行緒、背景時段執行緒）
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._connections: Set[Connection] = set()

    def register_connection(self, connection: Connection) -> None:
        with self._lock:
            self._connections.add(connection)

    def remove_connection(self, connection: Connection) -> None:
        with self._lock:
            self._connections.discard(connection)

    @property
    def connections_count(self) -> int:
        with self._lock:
            return len(self._connections)

    def notify_trade_period_changed(self, is_trade: bool) -> None:
        logger.debug(f"notify: trade period changed to {is_trade}")
        self._broadcast({"isTradeStage": is_trade})

    def notify_registration_period_changed(self, is_registration: bool) -> None:
        logger.debug(f"notify: registration period changed to {is_registration}")
        self._broadcast({"isRegistrationStage": is_registration})

    def notify_game_state_changed(self, state: GameState) -> None:
        logger.debug(f"notify: game state changed to {state.name}")
        self._broadcast({"gameState": int(state.value)})

    def _broadcast(self, message: Dict[str, Any]) -> None:
        """
        送給所有連線

        送出失敗的連線視為已斷線，移除後繼續通知其他連線
        """
        with self._lock:
            connections = list(self._connections)

        broken = []
        for connection in connections:
            try:
                connection.send_json(message)
            except Exception as e:
                logger.info(f"Dropping notifier connection: {e}")
                broken.append(connection)

        if broken:
            with self._lock:
                for connection in broken:
                    self._connections.discard(connection)
