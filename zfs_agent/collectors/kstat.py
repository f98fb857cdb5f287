"""
kstat 采集器

读取 /proc/spl/kstat/zfs 下的静态统计文件
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List

from zfs_agent.errors import KstatParseError

logger = logging.getLogger(__name__)

# 这些 kstat 的字段名不加文件名前缀
UNPREFIXED_METRICS = ("zil", "dmu_tx", "dnodestats")


@dataclass
class PoolInfo:
    name: str
    io_path: Path


def get_pools(kstat_path: str) -> List[PoolInfo]:
    """
    列出存在 io kstat 的 pool

    Args:
        kstat_path: kstat 根目录

    Returns:
        PoolInfo 列表，按名称排序
    """
    return [
        PoolInfo(name=io_file.parent.name, io_path=io_file)
        for io_file in sorted(Path(kstat_path).glob("*/io"))
    ]


def read_pool_kstat(pool: PoolInfo) -> Dict[str, int]:
    """
    读取单个 pool 的 io kstat

    文件格式:
        <header>
        nread nwritten reads writes ...
        1234  5678     12    34     ...

    Returns:
        {字段名: 数值}；文件不是 3 行时返回空字典

    Raises:
        OSError: 文件读取失败
        KstatParseError: 字段数与数值数不一致或数值不是整数
    """
    lines = pool.io_path.read_text().strip("\n").split("\n")
    if len(lines) != 3:
        logger.debug(f"Unexpected line count {len(lines)} in {pool.io_path}")
        return {}

    keys = lines[1].split()
    values = lines[2].split()

    if len(keys) != len(values):
        raise KstatParseError(f"Key and value count don't match Keys:{keys} Values:{values}")

    fields = {}
    for key, raw in zip(keys, values):
        try:
            fields[key] = int(raw)
        except ValueError:
            raise KstatParseError(f"Error parsing {key}: {raw!r} in {pool.io_path}") from None
    return fields


def gather_kstats(kstat_path: str, metrics: List[str]) -> Dict[str, int]:
    """
    采集全局 kstat（arcstats、zfetchstats 等）

    每个文件前两行为表头，之后每行格式为 `name type data`。
    不存在的文件直接跳过，无法解析的数值记为 0。
    """
    fields: Dict[str, int] = {}
    root = Path(kstat_path)

    for metric in metrics:
        try:
            lines = (root / metric).read_text().split("\n")
        except OSError:
            continue

        for line in lines[2:]:
            raw_data = line.split()
            if not raw_data:
                continue

            key = raw_data[0] if metric in UNPREFIXED_METRICS else f"{metric}_{raw_data[0]}"
            try:
                fields[key] = int(raw_data[-1])
            except ValueError:
                fields[key] = 0

    return fields
