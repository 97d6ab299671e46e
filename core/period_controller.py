"""
時段控制器：有時限、可廣播的開/關時段

兩個常駐實例：
- 交易時段（trade）：開始後經過 rounds_duration 或管理員提前結束
- 註冊時段（registration）：預設沒有時限，直到管理員關閉

每次開始 / 結束都會依註冊順序同步呼叫所有 subscriber（True / False）。
PeriodGate 是 subscriber 之一，保存給購買 / 註冊入口讀取的兩個旗標。
"""
import logging
import threading
import time
from typing import Callable, List, Optional

logger = logging.getLogger(__name__)

Subscriber = Callable[[bool], None]


class PeriodController:
    """
    一個開/關時段

    start() 會阻塞呼叫者直到時段結束（逾時或 stop()）。
    需要非阻塞時，呼叫者先在自己的執行緒 begin() 佔用時段，
    再把 wait_for_end() 放到背景執行緒（見 BackgroundTasks）。
    """

    def __init__(self, name: str, duration: Optional[float], stop_grace: float = 1.0):
        self._name = name
        self._duration = duration
        self._stop_grace = stop_grace
        self._subscribers: List[Subscriber] = []
        self._cond = threading.Condition()
        self._running = False
        self._stop_requested = False
        self._generation = 0
        self._deadline: Optional[float] = None

    @property
    def name(self) -> str:
        return self._name

    @property
    def is_running(self) -> bool:
        with self._cond:
            return self._running

    @property
    def duration(self) -> Optional[float]:
        with self._cond:
            return self._duration

    def set_duration(self, duration: Optional[float]) -> None:
        """只影響之後的 start()，進行中的時段不變"""
        with self._cond:
            self._duration = duration
        logger.info(f"{self._name} period duration set to {duration}")

    def register_subscriber(self, subscriber: Subscriber) -> None:
        self._subscribers.append(subscriber)

    def start(self) -> bool:
        """
        開始一個時段並阻塞到結束（begin() + wait_for_end()）

        返回：
            True 如果這次呼叫真的跑完一個時段
        """
        if not self.begin():
            return False
        self.wait_for_end()
        return True

    def begin(self) -> bool:
        """
        佔用並開啟時段（不阻塞）

        流程：
        1. 標記 running（已經有時段進行中則直接返回 False，不通知任何人）
        2. 通知所有 subscriber True
        3. 開始計時

        begin() 返回之後的 stop() 一定會結束這個時段，
        即使負責 wait_for_end() 的背景執行緒還沒開始執行
        """
        with self._cond:
            if self._running:
                logger.warning(f"{self._name} period is already running, start ignored")
                return False
            self._running = True
            self._stop_requested = False
            self._generation += 1
            duration = self._duration

        logger.info(f"{self._name} period started (duration={duration})")
        try:
            self._notify(True)
        except Exception:
            self._release()
            raise

        with self._cond:
            self._deadline = None if duration is None else time.monotonic() + duration
        return True

    def wait_for_end(self) -> None:
        """
        阻塞到 begin() 開啟的時段結束（逾時或 stop()）

        流程：
        1. 等待逾時或 stop()
        2. 通知所有 subscriber False
        3. 清除 running，喚醒等待中的 stop()
        """
        try:
            with self._cond:
                while not self._stop_requested:
                    if self._deadline is None:
                        self._cond.wait()
                        continue
                    remaining = self._deadline - time.monotonic()
                    if remaining <= 0:
                        break
                    self._cond.wait(remaining)
                stopped_early = self._stop_requested

            logger.info(
                f"{self._name} period ended ({'stopped' if stopped_early else 'timeout'})"
            )
            self._notify(False)
        finally:
            self._release()

    def _release(self) -> None:
        with self._cond:
            self._running = False
            self._stop_requested = False
            self._deadline = None
            self._cond.notify_all()

    def stop(self) -> None:
        """
        結束時段（best-effort）

        - 有時段進行中：送出停止請求，最多等待 stop_grace 秒讓 wait_for_end() 確認；
          逾時就放棄等待，但停止請求仍然有效
        - 沒有時段進行中：直接通知所有 subscriber False（每次呼叫都會通知，不去重）
        """
        with self._cond:
            if self._running:
                generation = self._generation
                self._stop_requested = True
                self._cond.notify_all()
                acknowledged = self._cond.wait_for(
                    lambda: not self._running or self._generation != generation,
                    timeout=self._stop_grace
                )
                if not acknowledged:
                    logger.warning(
                        f"{self._name} period did not acknowledge stop within {self._stop_grace}s"
                    )
                return

        self._notify(False)

    def _notify(self, active: bool) -> None:
        for subscriber in self._subscribers:
            subscriber(active)


class PeriodGate:
    """
    購買 / 註冊入口讀取的兩個旗標

    只由 PeriodController 的 subscriber 寫入，多個請求執行緒同時讀取
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._is_trade_period = False
        self._is_registration_period = False

    @property
    def is_trade_period(self) -> bool:
        with self._lock:
            return self._is_trade_period

    @property
    def is_registration_period(self) -> bool:
        with self._lock:
            return self._is_registration_period

    def set_trade_period_active(self, active: bool) -> None:
        logger.debug(f"trade period flag -> {active}")
        with self._lock:
            self._is_trade_period = active

    def set_registration_period_active(self, active: bool) -> None:
        logger.debug(f"registration period flag -> {active}")
        with self._lock:
            self._is_registration_period = active
