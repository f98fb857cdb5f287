"""
数据模型定义

使用 Pydantic 定义 API 响应数据结构
"""

from datetime import datetime
from typing import Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field


class MetricPoint(BaseModel):
    """交给指标接收方的通用指标记录"""
    measurement: str = Field(..., description="指标名: zfs_pool|zfs")
    tags: Dict[str, str] = Field(default_factory=dict, description="标签")
    fields: Dict[str, Union[int, float]] = Field(default_factory=dict, description="字段值")


class MetricsResponse(BaseModel):
    """一次采集周期的结果"""
    node_id: str = Field(..., description="节点 ID")
    ts: datetime = Field(..., description="采集时间戳")
    metrics: List[MetricPoint] = Field(default_factory=list, description="指标列表")


class HealthResponse(BaseModel):
    """健康检查响应"""
    status: str = Field(..., description="健康状态: ok|degraded|error")
    timestamp: datetime = Field(..., description="检查时间")
    checks: Dict[str, str] = Field(..., description="各组件检查结果")
    details: Dict[str, Optional[str]] = Field(..., description="详细信息")


class IostatStatusResponse(BaseModel):
    """zpool iostat 持续采集状态"""

    state: Literal["disabled", "idle", "running", "failed", "restarting", "stopped"]
    pid: Optional[int] = None
    started_since: Optional[str] = None
    last_error: Optional[str] = None
    restart_count: int = 0
    consecutive_failures: int = 0
    queue_depth: int = 0
    queue_capacity: int = 0
