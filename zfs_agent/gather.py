"""
采集周期

合并 kstat、zpool list 和 zpool iostat 的结果，生成一次快照
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Union

from zfs_agent.collectors import PoolListing, gather_kstats, get_pools, get_zpool_stats, read_pool_kstat
from zfs_agent.config import AgentConfig
from zfs_agent.iostat import IostatSupervisor, PoolIostats, collect_iostats
from zfs_agent.models import MetricPoint

logger = logging.getLogger(__name__)

POOL_NAMES_SEPARATOR = "::"


@dataclass
class PoolStats:
    name: str
    health: str
    fields: Dict[str, Union[int, float]] = field(default_factory=dict)


@dataclass
class ZfsSnapshot:
    pools: List[PoolStats] = field(default_factory=list)
    pool_names: List[str] = field(default_factory=list)
    kstats: Dict[str, int] = field(default_factory=dict)


async def _collect_iostats(config: AgentConfig, supervisor: Optional[IostatSupervisor], number_of_pools: int) -> Dict[str, PoolIostats]:
    buffer = supervisor.buffer if supervisor else None
    if buffer is None:
        return {}

    # 取样会阻塞等待，放到线程中执行
    return await asyncio.to_thread(
        collect_iostats,
        buffer,
        number_of_pools,
        config.iostat.poll_interval,
        config.iostat.max_poll_attempts,
    )


async def gather_metrics(config: AgentConfig, supervisor: Optional[IostatSupervisor] = None) -> ZfsSnapshot:
    """
    执行一次采集

    调用方需保证同一时间只有一个采集周期。

    Args:
        config: Agent 配置
        supervisor: zpool iostat 守护；None 或未运行时不采集 iostat

    Returns:
        ZfsSnapshot

    Raises:
        ZfsAgentError: 解析或命令失败，本周期没有输出
        OSError: kstat 文件读取失败
    """
    listings: Dict[str, PoolListing] = {}
    if config.pool_metrics:
        listings = await get_zpool_stats(config.zpool_binary, timeout=config.command_timeout)

    pools = get_pools(config.kstat_path)
    iostats = await _collect_iostats(config, supervisor, len(pools))

    snapshot = ZfsSnapshot()
    for pool in pools:
        snapshot.pool_names.append(pool.name)

        pool_iostats = iostats.get(pool.name)
        if not config.pool_metrics and pool_iostats is None:
            continue

        fields: Dict[str, Union[int, float]] = {}
        health = "UNKNOWN"
        if config.pool_metrics:
            fields.update(read_pool_kstat(pool))
            listing = listings.get(pool.name)
            if listing is not None:
                health = listing.health
                fields.update(listing.fields)
            else:
                logger.warning(f"Pool {pool.name} not found in zpool list output")
        if pool_iostats is not None:
            fields.update(pool_iostats.as_fields())

        snapshot.pools.append(PoolStats(name=pool.name, health=health, fields=fields))

    snapshot.kstats = gather_kstats(config.kstat_path, config.kstat_metrics)
    return snapshot


def to_metric_points(snapshot: ZfsSnapshot) -> List[MetricPoint]:
    """转换为通用指标记录：每个 pool 一条 zfs_pool，外加一条 zfs"""
    points = [
        MetricPoint(
            measurement="zfs_pool",
            tags={"pool": pool.name, "health": pool.health},
            fields=pool.fields,
        )
        for pool in snapshot.pools
    ]
    points.append(MetricPoint(
        measurement="zfs",
        tags={"pools": POOL_NAMES_SEPARATOR.join(snapshot.pool_names)},
        fields=snapshot.kstats,
    ))
    return points
