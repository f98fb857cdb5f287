"""
ZFS Agent - ZFS pool 监控代理

负责：
- 后台运行 zpool iostat 并在每个采集周期内聚合
- 读取 kstat 和 zpool list
- 提供 HTTP 接口供中心节点拉取
"""

__version__ = "1.0.0"
