"""
数据采集器模块

包含 kstat 文件读取和 zpool list 一次性命令采集器
"""

from .command import run_command
from .kstat import PoolInfo, gather_kstats, get_pools, read_pool_kstat
from .zpool import PoolListing, get_zpool_stats, parse_zpool_list

__all__ = [
    "run_command",
    "PoolInfo",
    "gather_kstats",
    "get_pools",
    "read_pool_kstat",
    "PoolListing",
    "get_zpool_stats",
    "parse_zpool_list",
]
