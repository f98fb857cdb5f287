"""
测试公共夹具
"""

import sys
import time
from pathlib import Path

import pytest

# 添加项目路径到 sys.path
sys.path.insert(0, str(Path(__file__).parent.parent))

from zfs_agent.iostat.parser import IOSTAT_FIELDS


def build_iostat_line(name: str = "rpool", **values) -> str:
    """生成一行 zpool iostat 输出，未指定的列为 0"""
    columns = [name] + [str(values.get(k, 0)) for k in IOSTAT_FIELDS]
    return "\t".join(columns)


def python_command(script: str):
    """以当前解释器运行脚本的命令"""
    return [sys.executable, "-u", "-c", script]


@pytest.fixture
def iostat_line():
    return build_iostat_line


@pytest.fixture
def wait_until():
    def _wait(predicate, timeout: float = 5.0, interval: float = 0.02) -> bool:
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            if predicate():
                return True
            time.sleep(interval)
        return predicate()

    return _wait


@pytest.fixture
def kstat_dir(tmp_path):
    """构造 /proc/spl/kstat/zfs 目录结构：两个 pool + arcstats + zil"""
    root = tmp_path / "kstat"
    for pool, (nread, nwritten) in {"rpool": (1000, 2000), "tank": (3000, 4000)}.items():
        (root / pool).mkdir(parents=True)
        (root / pool / "io").write_text(
            "12 3 0x00 1 80 5678901234 5678901235\n"
            "nread    nwritten reads    writes   wtime    wlentime wupdate  rtime    rlentime rupdate  wcnt     rcnt\n"
            f"{nread}     {nwritten}     10       20       30       40       50       60       70       80       0        0\n"
        )

    (root / "arcstats").write_text(
        "13 1 0x01 96 26112 5678901234 5678901235\n"
        "name                            type data\n"
        "hits                            4    123\n"
        "misses                          4    45\n"
        "size                            4    bogus\n"
    )
    (root / "zil").write_text(
        "15 1 0x01 13 3536 5678901234 5678901235\n"
        "name                            type data\n"
        "zil_commit_count                4    7\n"
    )
    return root


ZPOOL_LIST_OUTPUT = [
    "rpool\tONLINE\t32212254720\t1834799104\t30377455616\t4%\t5\t1.00x\t0\t0",
    "tank\tONLINE\t1000\t400\t600\t-\t40\t1.23x\t5\t6",
    "backup\tUNAVAIL\t-\t-\t-\t-\t-\t-\t-\t-",
]


def make_fake_zpool(tmp_path, lines, returncode=0):
    """生成一个输出固定内容的 zpool 脚本"""
    script = tmp_path / "zpool"
    script.write_text(
        f"#!{sys.executable}\n"
        "import sys\n"
        f"print({chr(10).join(lines)!r})\n"
        f"sys.exit({returncode})\n"
    )
    script.chmod(0o755)
    return str(script)
