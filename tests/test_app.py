"""
测试 Agent HTTP API

覆盖：
- Token 校验
- GET /v1/metrics 采集周期（含 iostat 后台进程）
- 采集失败时返回 500，服务继续可用
- GET /v1/health
- iostat start/stop/status
"""

import pytest
from fastapi.testclient import TestClient

from conftest import build_iostat_line, python_command
from zfs_agent.app import app
from zfs_agent.config import AgentConfig, IostatConfig, reset_config, set_config
from zfs_agent.iostat.supervisor import reset_iostat_supervisor


HEADERS = {"Authorization": "Bearer test-token"}

TWO_POOL_SCRIPT = f"""
import time
while True:
    print({build_iostat_line("rpool", iostat_alloc=100, iostat_free=50, operations_read=10)!r})
    print({build_iostat_line("tank", iostat_alloc=200, iostat_free=20, operations_read=30)!r})
    time.sleep(0.05)
"""

BAD_LINE_SCRIPT = """
import time
while True:
    print('rpool\\t1\\t2')
    time.sleep(0.05)
"""


def make_config(kstat_dir, iostat: IostatConfig = None) -> AgentConfig:
    return AgentConfig(
        node_id="storage-01",
        token="test-token",
        kstat_path=str(kstat_dir),
        kstat_metrics=["arcstats", "zil"],
        iostat=iostat or IostatConfig(),
    )


@pytest.fixture
def use_config():
    def _use(config: AgentConfig) -> AgentConfig:
        reset_iostat_supervisor()
        set_config(config)
        return config

    yield _use
    reset_iostat_supervisor()
    reset_config()


@pytest.fixture
def client(use_config, kstat_dir):
    use_config(make_config(kstat_dir))
    with TestClient(app) as client:
        yield client


def iostat_client(use_config, kstat_dir, script):
    iostat = IostatConfig(
        enabled=True,
        command=python_command(script),
        poll_interval=0.05,
        restart_backoff_initial=0.05,
        restart_backoff_max=0.1,
    )
    use_config(make_config(kstat_dir, iostat))
    return TestClient(app)


def test_metrics_requires_token(client: TestClient):
    assert client.get("/v1/metrics").status_code == 401
    assert client.get("/v1/metrics", headers={"Authorization": "Bearer wrong"}).status_code == 401
    assert client.get("/v1/metrics", headers={"Authorization": "test-token"}).status_code == 401


def test_metrics_kstats_only(client: TestClient):
    resp = client.get("/v1/metrics", headers=HEADERS)
    assert resp.status_code == 200
    data = resp.json()
    assert data["node_id"] == "storage-01"
    assert len(data["metrics"]) == 1
    zfs = data["metrics"][0]
    assert zfs["measurement"] == "zfs"
    assert zfs["tags"] == {"pools": "rpool::tank"}
    assert zfs["fields"]["arcstats_hits"] == 123


def test_health_ok(client: TestClient):
    resp = client.get("/v1/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "ok"
    assert data["checks"] == {"kstat": "ok", "zpool": "disabled", "iostat": "disabled"}


def test_health_missing_kstat(use_config, tmp_path):
    use_config(make_config(tmp_path / "missing"))
    with TestClient(app) as client:
        data = client.get("/v1/health").json()

    assert data["status"] == "degraded"
    assert data["checks"]["kstat"] == "error"


def test_iostat_disabled(client: TestClient):
    resp = client.get("/v1/iostat/status", headers=HEADERS)
    assert resp.status_code == 200
    assert resp.json()["state"] == "disabled"

    resp = client.post("/v1/iostat/start", headers=HEADERS)
    assert resp.status_code == 400


def test_metrics_with_iostat(use_config, kstat_dir, wait_until):
    with iostat_client(use_config, kstat_dir, TWO_POOL_SCRIPT) as client:
        assert wait_until(
            lambda: client.get("/v1/iostat/status", headers=HEADERS).json()["queue_depth"] >= 2
        )

        resp = client.get("/v1/metrics", headers=HEADERS)
        assert resp.status_code == 200
        points = {p["tags"].get("pool"): p for p in resp.json()["metrics"]}

        assert points["rpool"]["measurement"] == "zfs_pool"
        assert points["rpool"]["tags"]["health"] == "UNKNOWN"
        assert points["rpool"]["fields"]["operations_read"] == 10
        assert points["rpool"]["fields"]["iostat_alloc"] == 100
        assert points["tank"]["fields"]["operations_read"] == 30
        assert points[None]["measurement"] == "zfs"

        health = client.get("/v1/health").json()
        assert health["checks"]["iostat"] == "ok"


def test_iostat_stop_and_start(use_config, kstat_dir, wait_until):
    with iostat_client(use_config, kstat_dir, TWO_POOL_SCRIPT) as client:
        assert wait_until(
            lambda: client.get("/v1/iostat/status", headers=HEADERS).json()["pid"] is not None
        )

        resp = client.post("/v1/iostat/stop", headers=HEADERS)
        assert resp.status_code == 200
        assert resp.json()["state"] == "stopped"
        assert resp.json()["pid"] is None

        # 停止后采集周期不再包含 iostat
        metrics = client.get("/v1/metrics", headers=HEADERS).json()["metrics"]
        assert [p["measurement"] for p in metrics] == ["zfs"]

        resp = client.post("/v1/iostat/start", headers=HEADERS)
        assert resp.status_code == 200
        assert resp.json()["state"] == "running"
        assert wait_until(
            lambda: client.get("/v1/iostat/status", headers=HEADERS).json()["queue_depth"] >= 2
        )


def test_gather_failure_returns_500(use_config, kstat_dir, wait_until):
    with iostat_client(use_config, kstat_dir, BAD_LINE_SCRIPT) as client:
        assert wait_until(
            lambda: client.get("/v1/iostat/status", headers=HEADERS).json()["queue_depth"] >= 1
        )

        resp = client.get("/v1/metrics", headers=HEADERS)
        assert resp.status_code == 500
        assert resp.json()["detail"]["type"] == "IostatColumnCountError"

        # 失败的周期不影响服务
        assert client.get("/v1/health").status_code == 200
