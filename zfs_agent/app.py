"""
FastAPI 应用入口

提供 HTTP 接口供中心节点按周期拉取 ZFS 指标
"""

import asyncio
import logging
import shutil
from datetime import datetime
from pathlib import Path
from typing import Optional

from fastapi import Depends, FastAPI, Header, HTTPException

from zfs_agent.config import get_config
from zfs_agent.errors import ZfsAgentError, describe
from zfs_agent.gather import gather_metrics, to_metric_points
from zfs_agent.iostat import IostatSupervisor, get_iostat_supervisor
from zfs_agent.models import HealthResponse, IostatStatusResponse, MetricsResponse

logger = logging.getLogger(__name__)


# 创建 FastAPI 应用
app = FastAPI(
    title="ZFS Agent",
    version="1.0.0",
    description="ZFS pool 监控代理"
)


def verify_token(authorization: Optional[str] = Header(None)) -> bool:
    """
    验证 Token

    Args:
        authorization: Authorization 头，格式为 "Bearer <token>"

    Raises:
        HTTPException: Token 无效时抛出 401 错误
    """
    config = get_config()

    if not authorization:
        raise HTTPException(status_code=401, detail="Missing authorization header")

    # 解析 Bearer token
    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise HTTPException(status_code=401, detail="Invalid authorization header format")

    if parts[1] != config.token:
        raise HTTPException(status_code=401, detail="Invalid token")

    return True


def get_supervisor() -> IostatSupervisor:
    return get_iostat_supervisor(get_config().iostat)


def _gather_lock() -> asyncio.Lock:
    # 采集周期必须串行执行
    lock = getattr(app.state, "gather_lock", None)
    if lock is None:
        lock = asyncio.Lock()
        app.state.gather_lock = lock
    return lock


@app.on_event("startup")
async def _startup_iostat():
    app.state.gather_lock = asyncio.Lock()
    supervisor = get_supervisor()
    if supervisor.config.enabled:
        try:
            supervisor.start()
            logger.info("zpool iostat collection started")
        except ValueError as e:
            # 仅记录状态，不阻塞 Agent 启动
            logger.error(f"Failed to start zpool iostat collection: {e}")


@app.on_event("shutdown")
async def _shutdown_iostat():
    await asyncio.to_thread(get_supervisor().stop)


@app.get("/v1/metrics", response_model=MetricsResponse)
async def get_metrics(
    authorized: bool = Depends(verify_token),
    supervisor: IostatSupervisor = Depends(get_supervisor),
):
    """
    执行一次采集周期

    返回每个 pool 的 zfs_pool 指标和一条全局 zfs 指标；
    解析或命令失败时本周期返回 500，下一周期重试
    """
    config = get_config()

    async with _gather_lock():
        try:
            snapshot = await gather_metrics(config, supervisor)
        except (ZfsAgentError, OSError) as e:
            logger.error(f"Gather cycle failed: {e}")
            raise HTTPException(status_code=500, detail=describe(e))

    return MetricsResponse(
        node_id=config.node_id,
        ts=datetime.utcnow(),
        metrics=to_metric_points(snapshot),
    )


@app.get("/v1/health", response_model=HealthResponse)
async def get_health(supervisor: IostatSupervisor = Depends(get_supervisor)):
    """
    健康检查端点

    检查 kstat 目录、zpool 命令和 iostat 后台进程
    """
    config = get_config()
    checks = {}
    details = {}
    overall_status = "ok"

    # 检查 kstat 目录
    if Path(config.kstat_path).is_dir():
        checks["kstat"] = "ok"
        details["kstat"] = None
    else:
        checks["kstat"] = "error"
        details["kstat"] = f"kstat path not found: {config.kstat_path}"
        overall_status = "degraded"

    # 检查 zpool 命令
    if config.pool_metrics:
        if shutil.which(config.zpool_binary):
            checks["zpool"] = "ok"
            details["zpool"] = None
        else:
            checks["zpool"] = "error"
            details["zpool"] = f"{config.zpool_binary} not found in PATH"
            overall_status = "degraded"
    else:
        checks["zpool"] = "disabled"
        details["zpool"] = "Pool metrics disabled in config"

    # 检查 iostat 后台进程
    status = supervisor.get_status()
    if status.state == "disabled":
        checks["iostat"] = "disabled"
        details["iostat"] = "zpool iostat collection disabled in config"
    elif status.state == "running":
        checks["iostat"] = "ok"
        details["iostat"] = f"queue {status.queue_depth}/{status.queue_capacity}"
    else:
        checks["iostat"] = "degraded"
        details["iostat"] = status.last_error or f"state: {status.state}"
        overall_status = "degraded"

    return HealthResponse(
        status=overall_status,
        timestamp=datetime.utcnow(),
        checks=checks,
        details=details
    )


@app.get("/v1/iostat/status", response_model=IostatStatusResponse)
async def get_iostat_status(
    authorized: bool = Depends(verify_token),
    supervisor: IostatSupervisor = Depends(get_supervisor),
):
    """获取 zpool iostat 持续采集状态"""
    return IostatStatusResponse(**supervisor.get_status().__dict__)


@app.post("/v1/iostat/start", response_model=IostatStatusResponse)
async def start_iostat(
    authorized: bool = Depends(verify_token),
    supervisor: IostatSupervisor = Depends(get_supervisor),
):
    """启动 zpool iostat 持续采集"""
    try:
        supervisor.start()
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return IostatStatusResponse(**supervisor.get_status().__dict__)


@app.post("/v1/iostat/stop", response_model=IostatStatusResponse)
async def stop_iostat(
    authorized: bool = Depends(verify_token),
    supervisor: IostatSupervisor = Depends(get_supervisor),
):
    """停止 zpool iostat 持续采集"""
    await asyncio.to_thread(supervisor.stop)
    return IostatStatusResponse(**supervisor.get_status().__dict__)
