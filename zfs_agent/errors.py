"""
异常定义

采集周期内的错误（解析、一次性命令）同步抛给调用方；
iostat 后台进程的错误只通过会话的结果槽交给 Supervisor。
"""

from typing import Dict, List, Optional


class ZfsAgentError(Exception):
    """所有 zfs-agent 异常的基类"""


class IostatParseError(ZfsAgentError):
    """zpool iostat 行中某列无法解析为整数"""

    def __init__(self, key: str, value: str, line: str, record=None):
        self.key = key
        self.value = value
        self.line = line
        # 已解析出的部分记录，调用方可自行决定是否丢弃
        self.record = record
        super().__init__(f'Error parsing {key}: "{value}" can not be parsed into int')


class IostatColumnCountError(ZfsAgentError):
    """zpool iostat 行的列数既不是 1 也不是完整的 schema 宽度"""

    def __init__(self, line: str, count: int, expected: int):
        self.line = line
        self.count = count
        self.expected = expected
        super().__init__(
            f"Unexpected column count {count} (expected {expected}) in line {line!r}"
        )


class KstatParseError(ZfsAgentError):
    """kstat 文件格式错误"""


class ZpoolParseError(ZfsAgentError):
    """zpool list 输出解析失败"""


class CommandError(ZfsAgentError):
    """外部命令执行失败（非零退出码）"""

    def __init__(self, command: str, stderr: str, returncode: Optional[int] = None):
        self.command = command
        self.stderr = stderr
        self.returncode = returncode
        super().__init__(f"{command} error: {stderr}")


class CommandNotFoundError(ZfsAgentError):
    """外部命令不存在或不可执行"""

    def __init__(self, command: str, reason: str):
        self.command = command
        super().__init__(f"{command} was not found or not executable. Wrapped error: {reason}")


class ProducerExitedError(ZfsAgentError):
    """zpool iostat 进程在未被取消的情况下退出"""

    def __init__(self, command: List[str], returncode: Optional[int]):
        self.command = command
        self.returncode = returncode
        super().__init__(f"{' '.join(command)} exited with code {returncode}")


def describe(error: BaseException) -> Dict[str, str]:
    """把异常转换为 API 返回的错误详情"""
    return {"type": type(error).__name__, "message": str(error)}
