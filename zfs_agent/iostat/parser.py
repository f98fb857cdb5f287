"""
zpool iostat 行解析

`zpool iostat -Hp -l -q -y 1` 每行格式（Tab 分隔，共 26 列）:
    name alloc free ops_r ops_w bw_r bw_w total_wait_r total_wait_w ...
"-" 表示该列不适用，按 0 处理。
"""

import re
from dataclasses import dataclass, field
from typing import Dict, Optional

from zfs_agent.errors import IostatColumnCountError, IostatParseError


# 列 1..25 的固定顺序
IOSTAT_FIELDS = (
    "iostat_alloc",
    "iostat_free",
    "operations_read",
    "operations_write",
    "bandwidth_read",
    "bandwidth_write",
    "total_wait_read",
    "total_wait_write",
    "disk_wait_read",
    "disk_wait_write",
    "syncq_wait_read",
    "syncq_wait_write",
    "asyncq_wait_read",
    "asyncq_wait_write",
    "scrub_wait",
    "syncq_read_operations_pend",
    "syncq_read_operations_activ",
    "syncq_write_operations_pend",
    "syncq_write_operations_activ",
    "asyncq_read_operations_pend",
    "asyncq_read_operations_activ",
    "asyncq_write_operations_pend",
    "asyncq_write_operations_activ",
    "scrubq_read_pend",
    "scrubq_read_activ",
)

# 时间点数值，取窗口内最后一次
GAUGE_FIELDS = frozenset(("iostat_alloc", "iostat_free"))

# 其余为累计值，窗口内求和后取平均
CUMULATIVE_FIELDS = tuple(k for k in IOSTAT_FIELDS if k not in GAUGE_FIELDS)

IOSTAT_COLUMNS = len(IOSTAT_FIELDS) + 1

NOT_APPLICABLE = "-"

INT64_MIN = -(2 ** 63)
INT64_MAX = 2 ** 63 - 1

_INT_RE = re.compile(r"[+-]?[0-9]+")


@dataclass
class IostatRecord:
    """单行 iostat 解析结果"""
    name: str
    values: Dict[str, int] = field(default_factory=dict)


def parse_int64(raw: str) -> int:
    """按十进制有符号 64 位整数解析，失败抛出 ValueError"""
    if not _INT_RE.fullmatch(raw):
        raise ValueError(f"invalid syntax: {raw!r}")
    value = int(raw)
    if value < INT64_MIN or value > INT64_MAX:
        raise ValueError(f"value out of range: {raw!r}")
    return value


def parse_iostat_line(line: str) -> Optional[IostatRecord]:
    """
    解析一行 zpool iostat 输出

    Args:
        line: 原始行（不含换行符）

    Returns:
        IostatRecord；单列行（空行、分隔行）返回 None

    Raises:
        IostatColumnCountError: 列数不匹配
        IostatParseError: 某列不是整数，error.record 携带已解析的部分
    """
    columns = line.split("\t")
    if len(columns) == 1:
        return None

    if len(columns) != IOSTAT_COLUMNS:
        raise IostatColumnCountError(line, len(columns), IOSTAT_COLUMNS)

    columns = ["0" if c == NOT_APPLICABLE else c for c in columns]

    record = IostatRecord(name=columns[0])
    if not record.name:
        raise IostatParseError("name", columns[0], line, record)

    for position, key in enumerate(IOSTAT_FIELDS, start=1):
        raw = columns[position]
        try:
            record.values[key] = parse_int64(raw)
        except ValueError:
            raise IostatParseError(key, raw, line, record) from None

    return record
