"""
单个 pool 的窗口累加器

alloc/free 为时间点数值（后写覆盖），其余计数求和，归一化时按采样次数取平均。
"""

from dataclasses import dataclass, field
from typing import Dict, Optional

from zfs_agent.iostat.parser import CUMULATIVE_FIELDS, GAUGE_FIELDS, IostatRecord


def round_div(total: int, count: int) -> int:
    """整数除法并四舍五入（.5 远离零）"""
    quotient, remainder = divmod(abs(total), count)
    if remainder * 2 >= count:
        quotient += 1
    return -quotient if total < 0 else quotient


@dataclass
class PoolIostats:
    """一个采集周期内归一化后的 pool iostat 结果"""
    name: str
    gauges: Dict[str, int]
    averages: Dict[str, int]
    sample_count: int

    def as_fields(self) -> Dict[str, int]:
        fields = dict(self.averages)
        fields.update(self.gauges)
        return fields


@dataclass
class PoolAccumulator:
    name: str
    gauges: Dict[str, int] = field(default_factory=dict)
    sums: Dict[str, int] = field(default_factory=dict)
    sample_count: int = 0

    @classmethod
    def from_record(cls, record: IostatRecord) -> "PoolAccumulator":
        """用 pool 在本周期的第一条记录创建累加器"""
        return cls(
            name=record.name,
            gauges={k: record.values[k] for k in GAUGE_FIELDS},
            sums={k: record.values[k] for k in CUMULATIVE_FIELDS},
            sample_count=1,
        )

    def merge(self, record: IostatRecord) -> "PoolAccumulator":
        if record.name != self.name:
            raise ValueError(f"cannot merge pool {record.name} into {self.name}")

        for k in GAUGE_FIELDS:
            self.gauges[k] = record.values[k]
        for k in CUMULATIVE_FIELDS:
            self.sums[k] = self.sums.get(k, 0) + record.values[k]
        self.sample_count += 1
        return self

    def normalize(self) -> Optional[PoolIostats]:
        """
        计算窗口平均值

        Returns:
            PoolIostats；没有采样时返回 None（不做除零）
        """
        if self.sample_count <= 0:
            return None

        return PoolIostats(
            name=self.name,
            gauges=dict(self.gauges),
            averages={k: round_div(v, self.sample_count) for k, v in self.sums.items()},
            sample_count=self.sample_count,
        )
