"""
zpool iostat 持续采集

后台进程逐行输出，采集周期内取样、按 pool 累加并归一化
"""

from .parser import IOSTAT_FIELDS, GAUGE_FIELDS, IostatRecord, parse_iostat_line
from .accumulator import PoolAccumulator, PoolIostats
from .sampler import collect_iostats
from .producer import ProducerSession
from .supervisor import IostatStatus, IostatSupervisor, get_iostat_supervisor

__all__ = [
    "IOSTAT_FIELDS",
    "GAUGE_FIELDS",
    "IostatRecord",
    "parse_iostat_line",
    "PoolAccumulator",
    "PoolIostats",
    "collect_iostats",
    "ProducerSession",
    "IostatStatus",
    "IostatSupervisor",
    "get_iostat_supervisor",
]
