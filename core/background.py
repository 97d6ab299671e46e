"""
背景工作登記表

交易時段 / 註冊時段的 start() 會阻塞，必須放到獨立執行緒；
這裡追蹤所有執行中的執行緒，應用程式關閉時 drain() 等待它們結束，
避免背景工作被默默丟掉。
"""
import logging
import threading
from typing import Callable, Set

logger = logging.getLogger(__name__)


class BackgroundTasks:

    def __init__(self):
        self._lock = threading.Lock()
        self._threads: Set[threading.Thread] = set()

    def spawn(self, name: str, target: Callable[[], None]) -> threading.Thread:
        """
        啟動一個背景執行緒（呼叫者不等待）

        target 拋出的異常只會記錄到 log，沒有呼叫者可以回報
        """
        def run():
            try:
                target()
            except Exception as e:
                logger.error(f"Background task {name} failed: {e}", exc_info=True)
            finally:
                with self._lock:
                    self._threads.discard(threading.current_thread())

        thread = threading.Thread(target=run, name=name, daemon=True)
        with self._lock:
            self._threads.add(thread)
        thread.start()
        return thread

    @property
    def active_count(self) -> int:
        with self._lock:
            return len(self._threads)

    def drain(self, timeout: float) -> bool:
        """
        等待所有背景執行緒結束（總共最多 timeout 秒）

        返回：
            True 如果全部結束
        """
        with self._lock:
            threads = list(self._threads)

        per_thread = timeout / len(threads) if threads else 0
        for thread in threads:
            thread.join(per_thread)

        still_running = [thread.name for thread in threads if thread.is_alive()]
        if still_running:
            logger.warning(f"Background tasks still running after drain: {still_running}")
            return False
        return True
