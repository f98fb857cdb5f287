"""
zpool iostat 进程守护

状态机: idle -> running -> failed -> restarting -> running ...
stop() 后为 stopped；连续失败次数超过 max_restarts 后停留在 failed。
由一个看门狗线程循环运行 ProducerSession，失败后按指数退避重启。
"""

import logging
import queue
import threading
from dataclasses import dataclass
from typing import Optional

from zfs_agent.config import IostatConfig
from zfs_agent.iostat.producer import ProducerSession

logger = logging.getLogger(__name__)


@dataclass
class IostatStatus:
    state: str = "idle"  # disabled|idle|running|failed|restarting|stopped
    pid: Optional[int] = None
    started_since: Optional[str] = None
    last_error: Optional[str] = None
    restart_count: int = 0
    consecutive_failures: int = 0
    queue_depth: int = 0
    queue_capacity: int = 0


class IostatSupervisor:
    def __init__(self, config: IostatConfig):
        self._config = config
        self._lock = threading.Lock()
        self._stop_event = threading.Event()
        self._session: Optional[ProducerSession] = None
        self._watchdog: Optional[threading.Thread] = None
        self._status = IostatStatus(
            state="idle" if config.enabled else "disabled",
            queue_capacity=config.buffer_size,
        )

    @property
    def config(self) -> IostatConfig:
        return self._config

    @property
    def buffer(self) -> "Optional[queue.Queue[str]]":
        """当前会话的行缓冲区；未运行时为 None"""
        with self._lock:
            return self._session.buffer if self._session else None

    def is_running(self) -> bool:
        with self._lock:
            return self._watchdog is not None and self._watchdog.is_alive()

    def get_status(self) -> IostatStatus:
        with self._lock:
            status = IostatStatus(**self._status.__dict__)
            session = self._session
        if session is not None:
            status.pid = session.pid
            status.started_since = session.started_at
            status.queue_depth = session.buffer.qsize()
        return status

    def start(self):
        """
        启动持续采集

        Raises:
            ValueError: 配置中未启用 iostat
        """
        with self._lock:
            if not self._config.enabled:
                raise ValueError("zpool iostat is disabled in config")
            if self._watchdog is not None and self._watchdog.is_alive():
                if self._stop_event.is_set():
                    logger.warning("zpool iostat watchdog is still stopping, start ignored")
                return

            self._stop_event.clear()
            self._status.state = "running"
            self._status.last_error = None
            self._status.consecutive_failures = 0
            self._watchdog = threading.Thread(
                target=self._watchdog_loop, name="zpool-iostat-watchdog", daemon=True
            )
            self._watchdog.start()

    def stop(self, timeout: float = 10.0):
        """停止持续采集；未运行时调用也是安全的"""
        with self._lock:
            self._stop_event.set()
            session = self._session
            watchdog = self._watchdog

        if session is not None:
            session.cancel()
        if watchdog is not None and watchdog is not threading.current_thread():
            watchdog.join(timeout)
            if watchdog.is_alive():
                # 看门狗退出时自行进入 stopped
                logger.warning("zpool iostat watchdog did not stop in time")
                return

        self._mark_stopped()

    def _mark_stopped(self):
        with self._lock:
            self._session = None
            self._watchdog = None
            if self._status.state != "disabled":
                self._status.state = "stopped"

    def _backoff(self, failures: int) -> float:
        delay = self._config.restart_backoff_initial * 2 ** min(6, max(0, failures - 1))
        return min(self._config.restart_backoff_max, delay)

    def _watchdog_loop(self):
        try:
            self._supervise()
        finally:
            if self._stop_event.is_set():
                self._mark_stopped()

    def _supervise(self):
        while not self._stop_event.is_set():
            session = ProducerSession(self._config.command, self._config.buffer_size)
            with self._lock:
                if self._stop_event.is_set():
                    return
                self._session = session
                self._status.state = "running"
            session.start()

            error = session.wait()
            session.join(timeout=5)

            if self._stop_event.is_set():
                return

            if error is None:
                error = RuntimeError("zpool iostat session ended without error")

            with self._lock:
                if session.lines_read > 0:
                    self._status.consecutive_failures = 0
                self._status.consecutive_failures += 1
                self._status.state = "failed"
                self._status.last_error = str(error)
                failures = self._status.consecutive_failures
                max_restarts = self._config.max_restarts

            if max_restarts is not None and failures > max_restarts:
                logger.error(
                    f"zpoolIostat return error: {error}, giving up after {failures} consecutive failures"
                )
                with self._lock:
                    self._session = None
                return

            delay = self._backoff(failures)
            logger.warning(f"zpoolIostat return error: {error}, restarting in {delay}s")
            if self._stop_event.wait(delay):
                return

            with self._lock:
                self._status.state = "restarting"
                self._status.restart_count += 1


_supervisor: Optional[IostatSupervisor] = None


def get_iostat_supervisor(config: Optional[IostatConfig] = None) -> IostatSupervisor:
    global _supervisor
    if _supervisor is None:
        if config is None:
            from zfs_agent.config import get_config
            config = get_config().iostat
        _supervisor = IostatSupervisor(config)
    return _supervisor


def reset_iostat_supervisor():
    """停止并丢弃全局 Supervisor（主要用于测试）"""
    global _supervisor
    if _supervisor is not None:
        _supervisor.stop()
    _supervisor = None
