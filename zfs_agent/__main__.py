"""
ZFS Agent 主程序入口

使用方式:
    python -m zfs_agent
    或
    uvicorn zfs_agent.app:app --host 0.0.0.0 --port 9110
"""

import logging
import sys
from pathlib import Path

import uvicorn

from zfs_agent.config import AgentConfig, get_config


def setup_logging(config: AgentConfig):
    """配置日志"""
    log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    level = getattr(logging, config.logging.level.upper(), logging.INFO)

    logging.basicConfig(
        level=level,
        format=log_format,
        handlers=[logging.StreamHandler(sys.stdout)]
    )

    # 如果配置了文件日志
    if config.logging.file:
        log_path = Path(config.logging.file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(str(log_path), encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(log_format))
        logging.getLogger().addHandler(file_handler)

    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def main():
    """主程序入口"""
    try:
        config = get_config()
    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        print("Please create config file at /etc/zfs-agent/config.yaml", file=sys.stderr)
        sys.exit(1)
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    setup_logging(config)
    logger = logging.getLogger(__name__)
    logger.info(f"Starting ZFS Agent (node_id={config.node_id}, listen={config.listen})")

    uvicorn.run(
        "zfs_agent.app:app",
        host=config.host,
        port=config.port,
        log_level=config.logging.level.lower(),
        log_config=None,
        access_log=True
    )


if __name__ == "__main__":
    main()
