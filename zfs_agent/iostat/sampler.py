"""
采集周期内的 iostat 取样

从行缓冲区中取出本周期的行，解析并按 pool 累加，最后归一化。
"""

import logging
import queue
from typing import Dict

from zfs_agent.iostat.accumulator import PoolAccumulator, PoolIostats
from zfs_agent.iostat.parser import parse_iostat_line

logger = logging.getLogger(__name__)


def _enough_lines(lines_count: int, number_of_pools: int, pending: int) -> bool:
    # 行数需为 pool 数的整数倍，避免各 pool 采样次数不一致
    return (
        lines_count >= number_of_pools
        and lines_count % number_of_pools == 0
        and pending < number_of_pools
    )


def collect_iostats(
    buffer: "queue.Queue[str]",
    number_of_pools: int,
    poll_interval: float = 0.1,
    max_poll_attempts: int = 50,
) -> Dict[str, PoolIostats]:
    """
    取出并聚合一个采集周期的 zpool iostat 行

    至少为每个 pool 取到一行，且总行数为 pool 数的整数倍；缓冲区暂时为空时
    最多等待 max_poll_attempts 次，每次 poll_interval 秒，超过后返回已聚合的结果。

    Args:
        buffer: 后台进程写入的行缓冲区
        number_of_pools: 已知 pool 数量
        poll_interval: 单次等待时长（秒）
        max_poll_attempts: 最多等待次数

    Returns:
        {pool 名称: PoolIostats}

    Raises:
        IostatParseError / IostatColumnCountError: 任意一行解析失败，本周期不输出
    """
    if number_of_pools <= 0:
        return {}

    accumulators: Dict[str, PoolAccumulator] = {}
    lines_count = 0
    poll_attempts = 0

    while True:
        try:
            line = buffer.get_nowait()
        except queue.Empty:
            if lines_count >= number_of_pools and lines_count % number_of_pools == 0:
                break
            if poll_attempts >= max_poll_attempts:
                logger.warning(
                    f"Got {lines_count} zpool iostat lines for {number_of_pools} pools "
                    f"after {poll_attempts} polls, returning partial window"
                )
                break
            poll_attempts += 1
            try:
                line = buffer.get(timeout=poll_interval)
            except queue.Empty:
                continue

        record = parse_iostat_line(line)
        if record is None:
            continue

        lines_count += 1
        existing = accumulators.get(record.name)
        if existing is None:
            accumulators[record.name] = PoolAccumulator.from_record(record)
        else:
            existing.merge(record)

        if _enough_lines(lines_count, number_of_pools, buffer.qsize()):
            break

    result = {}
    for name, acc in accumulators.items():
        stats = acc.normalize()
        if stats is not None:
            result[name] = stats

    logger.debug(
        f"Collected {lines_count} zpool iostat lines for {len(result)} pools "
        f"(pending={buffer.qsize()}, polls={poll_attempts})"
    )
    return result
