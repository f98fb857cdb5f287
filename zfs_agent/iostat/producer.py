"""
zpool iostat 后台进程会话

在独立线程中运行 `zpool iostat -Hp -l -q -y 1`，逐行写入有界缓冲区。
缓冲区满时阻塞写入（背压），stderr 转发到日志。
每个会话只运行一次进程，结束时向结果槽写入唯一一个结果：
取消返回 None，其余情况返回异常，由 Supervisor 决定是否重启。
"""

import logging
import queue
import subprocess
import threading
from datetime import datetime
from typing import List, Optional

from zfs_agent.errors import CommandNotFoundError, ProducerExitedError

logger = logging.getLogger(__name__)


def _utc_now_iso() -> str:
    return datetime.utcnow().strftime("%Y-%m-%dT%H:%M:%SZ")


def _proxy_stderr(stream, name: str):
    """转发子进程 stderr，避免隐藏任何错误信息"""
    try:
        for line in stream:
            text = line.strip()
            if text:
                logger.warning(f"{name} stderr: {text}")
    except (OSError, ValueError) as e:
        logger.debug(f"{name} stderr reader error: {e}")


def _terminate(proc: subprocess.Popen, timeout: float = 5.0):
    if proc.poll() is not None:
        return

    proc.terminate()
    try:
        proc.wait(timeout=timeout)
    except subprocess.TimeoutExpired:
        proc.kill()
        proc.wait(timeout=timeout)


class ProducerSession:
    """一次 zpool iostat 进程运行：缓冲区、结果槽和取消句柄"""

    def __init__(self, command: List[str], buffer_size: int, put_interval: float = 0.2):
        self.command = list(command)
        self.buffer: "queue.Queue[str]" = queue.Queue(maxsize=buffer_size)
        self.lines_read = 0
        self.started_at: Optional[str] = None
        self._outcome: "queue.Queue[Optional[BaseException]]" = queue.Queue(maxsize=1)
        self._cancelled = threading.Event()
        self._put_interval = put_interval
        self._lock = threading.Lock()
        self._proc: Optional[subprocess.Popen] = None
        self._thread: Optional[threading.Thread] = None

    @property
    def name(self) -> str:
        return " ".join(self.command[:2])

    @property
    def pid(self) -> Optional[int]:
        with self._lock:
            return self._proc.pid if self._proc else None

    @property
    def returncode(self) -> Optional[int]:
        """子进程退出码；未启动或仍在运行时为 None"""
        with self._lock:
            return self._proc.poll() if self._proc else None

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def start(self):
        self._thread = threading.Thread(target=self._run, name="zpool-iostat", daemon=True)
        self._thread.start()

    def cancel(self):
        """取消会话：终止子进程，解除读循环和阻塞写入"""
        self._cancelled.set()
        with self._lock:
            proc = self._proc
        if proc is not None and proc.poll() is None:
            proc.terminate()

    def wait(self, timeout: Optional[float] = None) -> Optional[BaseException]:
        """
        等待会话结束

        Returns:
            会话错误；被取消时返回 None

        Raises:
            queue.Empty: 超时
        """
        return self._outcome.get(timeout=timeout)

    def join(self, timeout: Optional[float] = None) -> bool:
        if self._thread is None:
            return True
        self._thread.join(timeout)
        return not self._thread.is_alive()

    def _run(self):
        error: Optional[BaseException] = None
        try:
            error = self._stream()
        except Exception as e:
            logger.error(f"{self.name} producer crashed: {e}", exc_info=True)
            error = e
        finally:
            self._outcome.put_nowait(error)

    def _stream(self) -> Optional[BaseException]:
        if self._cancelled.is_set():
            return None

        try:
            proc = subprocess.Popen(
                self.command,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                bufsize=1,
                errors="replace",
            )
        except OSError as e:
            logger.error(f"Command start error: {e}")
            return CommandNotFoundError(self.command[0], str(e))

        with proc:
            with self._lock:
                self._proc = proc
            self.started_at = _utc_now_iso()
            logger.info(f"{self.name} started (pid={proc.pid})")

            stderr_thread = threading.Thread(
                target=_proxy_stderr,
                args=(proc.stderr, self.name),
                name="zpool-iostat-stderr",
                daemon=True,
            )
            stderr_thread.start()

            try:
                if self._cancelled.is_set():
                    return None
                for line in proc.stdout:
                    if not self._put(line.rstrip("\n")):
                        break
                    self.lines_read += 1
            except (OSError, ValueError) as e:
                if not self._cancelled.is_set():
                    logger.error(f"{self.name} read error: {e}")
                    return e
            finally:
                _terminate(proc)
                stderr_thread.join(timeout=5)

        if self._cancelled.is_set():
            logger.info(f"{self.name} stopped (pid={proc.pid})")
            return None

        logger.warning(f"{self.name} exit, Exit Status: {proc.returncode}")
        return ProducerExitedError(self.command, proc.returncode)

    def _put(self, line: str) -> bool:
        """阻塞写入缓冲区，期间定期检查取消；被取消返回 False"""
        stalled = False
        while not self._cancelled.is_set():
            try:
                self.buffer.put(line, timeout=self._put_interval)
                if stalled:
                    logger.info(f"{self.name} buffer drained, resuming")
                return True
            except queue.Full:
                if not stalled:
                    stalled = True
                    logger.warning(
                        f"{self.name} buffer full ({self.buffer.maxsize} lines), "
                        f"reader stalled until the next gather"
                    )
        return False
