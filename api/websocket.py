"""
WebSocket：推送交易 / 註冊時段與遊戲狀態給隊伍前端

TeamsNotifier 可能在任何執行緒呼叫 send_json（請求執行緒、背景時段執行緒），
所以每條連線用一個 asyncio.Queue 接收訊息，再由 event loop 上的 task 送出。

訊息格式：
- {"isTradeStage": bool}
- {"isRegistrationStage": bool}
- {"gameState": int}
"""
import asyncio
import logging
from typing import Any, Dict

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from core.runtime import Runtime

router = APIRouter(tags=["websocket"])
logger = logging.getLogger(__name__)


class QueuedConnection:
    """把執行緒安全的 send_json 轉交給 event loop"""

    def __init__(self, loop: asyncio.AbstractEventLoop):
        self._loop = loop
        self.queue: "asyncio.Queue[Dict[str, Any]]" = asyncio.Queue()

    def send_json(self, message: Dict[str, Any]) -> None:
        if self._loop.is_closed():
            raise ConnectionError("Event loop already closed")
        self._loop.call_soon_threadsafe(self.queue.put_nowait, message)


async def _pump(websocket: WebSocket, connection: QueuedConnection) -> None:
    try:
        while True:
            message = await connection.queue.get()
            await websocket.send_json(message)
    except (WebSocketDisconnect, RuntimeError) as e:
        logger.debug(f"Stopped sending to websocket: {e}")


@router.websocket("/ws/teams")
async def teams_websocket(websocket: WebSocket):
    """
    隊伍端通知頻道

    連線後先送出目前的時段旗標，之後只推送變化；
    前端送來的訊息一律忽略
    """
    runtime: Runtime = websocket.app.state.runtime
    await websocket.accept()

    connection = QueuedConnection(asyncio.get_running_loop())
    connection.queue.put_nowait({"isTradeStage": runtime.gate.is_trade_period})
    connection.queue.put_nowait({"isRegistrationStage": runtime.gate.is_registration_period})

    runtime.notifier.register_connection(connection)
    logger.info(f"Team websocket connected ({runtime.notifier.connections_count} total)")
    sender = asyncio.create_task(_pump(websocket, connection))

    try:
        while True:
            await websocket.receive_text()
    except (WebSocketDisconnect, RuntimeError):
        pass
    finally:
        runtime.notifier.remove_connection(connection)
        sender.cancel()
        logger.info("Team websocket disconnected")
