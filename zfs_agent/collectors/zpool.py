"""
zpool list 采集器

通过 `zpool list -Hp` 采集 pool 的容量、健康状态等静态属性
"""

from dataclasses import dataclass, field
from typing import Dict, List, Union

from zfs_agent.collectors.command import run_command
from zfs_agent.errors import ZpoolParseError


ZPOOL_LIST_COLUMNS = "name,health,size,alloc,free,fragmentation,capacity,dedupratio,freeing,leaked"


@dataclass
class PoolListing:
    """zpool list 中一个 pool 的属性"""
    name: str
    health: str
    fields: Dict[str, Union[int, float]] = field(default_factory=dict)


def _parse_int(raw: str, label: str) -> int:
    try:
        return int(raw)
    except ValueError:
        raise ZpoolParseError(f"Error parsing {label}: {raw!r}") from None


def parse_zpool_list(lines: List[str]) -> Dict[str, PoolListing]:
    """
    解析 zpool list 输出

    格式（Tab 分隔，共 10 列）:
        name health size alloc free frag capacity dedupratio freeing leaked

    Returns:
        {pool 名称: PoolListing}；列数不是 10 的行跳过

    Raises:
        ZpoolParseError: 数值列解析失败
    """
    result = {}

    for line in lines:
        col = line.split("\t")
        if len(col) != 10:
            continue

        name, health = col[0], col[1]
        listing = PoolListing(name=name, health=health)

        if health == "UNAVAIL":
            listing.fields["size"] = 0
        else:
            listing.fields["size"] = _parse_int(col[2], "size")
            listing.fields["allocated"] = _parse_int(col[3], "allocation")
            listing.fields["free"] = _parse_int(col[4], "free")

            # 只读设备的碎片率为 "-"
            try:
                listing.fields["fragmentation"] = int(col[5].rstrip("%"))
            except ValueError:
                listing.fields["fragmentation"] = 0

            listing.fields["capacity"] = _parse_int(col[6], "capacity")

            try:
                listing.fields["dedupratio"] = float(col[7].rstrip("x"))
            except ValueError:
                raise ZpoolParseError(f"Error parsing dedupratio: {col[7]!r}") from None

            listing.fields["freeing"] = _parse_int(col[8], "freeing")
            listing.fields["leaked"] = _parse_int(col[9], "leaked")

        result[name] = listing

    return result


async def get_zpool_stats(zpool_binary: str = "zpool", timeout: float = 10.0) -> Dict[str, PoolListing]:
    """
    采集所有 pool 的 zpool list 属性

    Raises:
        CommandNotFoundError / CommandError: zpool 执行失败
        ZpoolParseError: 输出解析失败
    """
    lines = await run_command(
        [zpool_binary, "list", "-Hp", "-o", ZPOOL_LIST_COLUMNS],
        timeout=timeout,
    )
    return parse_zpool_list(lines)
