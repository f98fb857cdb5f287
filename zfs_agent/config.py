"""
配置管理模块

从 YAML 文件加载配置，支持环境变量指定配置路径
"""

import os
from pathlib import Path
from typing import List, Optional

import yaml
from pydantic import BaseModel, Field


DEFAULT_KSTAT_PATH = "/proc/spl/kstat/zfs"

# Linux 下默认采集的 kstat；vdev_cache_stats 已废弃，xuio_stats 在 Linux 上没有使用者
DEFAULT_KSTAT_METRICS = [
    "abdstats",
    "arcstats",
    "dnodestats",
    "dbufcachestats",
    "dmu_tx",
    "fm",
    "vdev_mirror_stats",
    "zfetchstats",
    "zil",
]

# 每秒为每个 pool 输出一行
DEFAULT_IOSTAT_COMMAND = ["zpool", "iostat", "-Hp", "-l", "-q", "-y", "1"]


class IostatConfig(BaseModel):
    """zpool iostat 持续采集配置"""

    enabled: bool = Field(default=False, description="是否启用 zpool iostat 持续采集")
    command: List[str] = Field(default_factory=lambda: list(DEFAULT_IOSTAT_COMMAND), description="后台运行的命令")
    # 缓冲区需要容纳采集间隔内每个 pool 每秒一行
    buffer_size: int = Field(default=1000, ge=1, description="行缓冲区容量")
    poll_interval: float = Field(default=0.1, gt=0, description="缓冲区为空时单次等待时长（秒）")
    max_poll_attempts: int = Field(default=50, ge=1, description="单个采集周期内最多等待次数")
    restart_backoff_initial: float = Field(default=1.0, ge=0, description="重启退避初始时长（秒）")
    restart_backoff_max: float = Field(default=60.0, ge=0, description="重启退避上限（秒）")
    max_restarts: Optional[int] = Field(default=None, ge=0, description="连续失败重启上限，None 表示不限")


class LoggingConfig(BaseModel):
    """日志配置"""

    level: str = "INFO"
    file: Optional[str] = None


class AgentConfig(BaseModel):
    """Agent 配置模型"""

    node_id: str = Field(..., description="节点唯一标识")
    listen: str = Field(default="0.0.0.0:9110", description="监听地址")
    token: str = Field(..., description="认证 Token")
    kstat_path: str = Field(default=DEFAULT_KSTAT_PATH, description="ZFS kstat 目录")
    kstat_metrics: List[str] = Field(default_factory=lambda: list(DEFAULT_KSTAT_METRICS), description="采集的 kstat 文件")
    pool_metrics: bool = Field(default=False, description="是否采集 pool 级别指标（需要 zpool 命令）")
    zpool_binary: str = Field(default="zpool", description="zpool 命令路径")
    command_timeout: float = Field(default=10.0, gt=0, description="一次性命令超时（秒）")
    iostat: IostatConfig = Field(default_factory=IostatConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @property
    def host(self) -> str:
        """获取监听主机"""
        return self.listen.split(":")[0]

    @property
    def port(self) -> int:
        """获取监听端口"""
        return int(self.listen.split(":")[1])


def load_config(config_path: Optional[str] = None) -> AgentConfig:
    """
    加载配置文件

    Args:
        config_path: 配置文件路径，默认为 /etc/zfs-agent/config.yaml

    Returns:
        AgentConfig 实例
    """
    if config_path is None:
        config_path = os.getenv(
            "ZFS_AGENT_CONFIG",
            "/etc/zfs-agent/config.yaml"
        )

    config_file = Path(config_path)
    if not config_file.exists():
        raise FileNotFoundError(f"配置文件不存在: {config_path}")

    with open(config_file, "r", encoding="utf-8") as f:
        config_data = yaml.safe_load(f) or {}

    return AgentConfig(**config_data)


# 全局配置实例（延迟加载）
_config: Optional[AgentConfig] = None


def get_config() -> AgentConfig:
    """获取全局配置实例"""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def set_config(config: AgentConfig):
    """替换全局配置（主要用于测试）"""
    global _config
    _config = config


def reset_config():
    """重置配置（主要用于测试）"""
    global _config
    _config = None
