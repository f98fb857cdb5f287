"""
一次性命令执行

运行命令直到结束，返回 stdout 行列表
"""

import asyncio
from typing import List

from zfs_agent.errors import CommandError, CommandNotFoundError


async def run_command(command: List[str], timeout: float = 10.0) -> List[str]:
    """
    执行命令并采集输出

    Args:
        command: 命令及参数
        timeout: 超时时间（秒）

    Returns:
        去掉首尾空白后按行拆分的 stdout

    Raises:
        CommandNotFoundError: 命令不存在或不可执行
        CommandError: 非零退出码或超时
    """
    try:
        proc = await asyncio.create_subprocess_exec(
            *command,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE
        )
    except OSError as e:
        raise CommandNotFoundError(command[0], str(e)) from e

    try:
        stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        proc.kill()
        await proc.wait()
        raise CommandError(command[0], f"timed out after {timeout}s") from None

    if proc.returncode != 0:
        raise CommandError(command[0], stderr.decode(errors="replace").strip(), proc.returncode)

    return stdout.decode(errors="replace").strip().split("\n")
