"""
应用配置模块 (Application Configuration Module)

使用 Pydantic Settings 管理 hostwatch 的全局配置项，支持从 .env 文件和环境变量读取。
另提供 YAML 配置文件加载（CLI 使用），两者都产出同一个只读的 MonitoringSettings。

Uses Pydantic Settings for process-wide configuration (environment variables and .env file).
Also loads a YAML settings file for the CLI; both sources produce the same read-only
MonitoringSettings consumed by the reconciliation engine.
"""
import logging
import os
from pathlib import Path

import yaml
from pydantic_settings import BaseSettings

from hostwatch.schemas.settings import MonitoringSettings

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """
    应用全局配置类 (Application Global Configuration Class)

    字段名自动映射同名环境变量（不区分大小写），支持 .env 文件加载。
    Field names map to same-named environment variables (case insensitive).
    """

    # Zabbix 服务端配置 (Zabbix Server Configuration)
    zabbix_url: str = ""  # Zabbix 前端地址，可带或不带 /api_jsonrpc.php (Zabbix frontend URL)
    zabbix_api_token: str = ""  # Zabbix API Token
    zabbix_refresh_interval: int = 60  # 前端刷新间隔（秒），仅透传 (UI refresh interval, passed through)

    # 超时配置 (Timeout Configuration)
    rpc_timeout_seconds: float = 10.0  # 单次 JSON-RPC 调用超时 (Per-call RPC timeout)
    probe_timeout_seconds: float = 1.0  # 单次 ICMP 探测等待时间 (Per-probe wait)

    log_level: str = "INFO"

    def monitoring(self) -> MonitoringSettings:
        """从环境配置构造单次调用使用的 MonitoringSettings。"""
        return MonitoringSettings(
            zabbix_url=self.zabbix_url,
            zabbix_api_token=self.zabbix_api_token,
            refresh_interval=self.zabbix_refresh_interval,
        )

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}


# 全局配置实例 (Global Configuration Instance)
settings = Settings()


def _parse_interval(val) -> int:
    """解析时间间隔，支持 '30s'、'2m' 等简写格式。"""
    if isinstance(val, int):
        return val
    s = str(val).strip().lower()
    if s.endswith("s"):
        return int(s[:-1])
    if s.endswith("m"):
        return int(s[:-1]) * 60
    return int(s)


def load_settings_file(path: str) -> MonitoringSettings:
    """从 YAML 文件加载 Zabbix 连接配置。

    文件格式::

        zabbix:
          url: https://zabbix.example.com
          token: xxxxx
          refresh_interval: 1m

    Token 优先从环境变量 ZABBIX_API_TOKEN 读取（非空时）。

    Raises:
        FileNotFoundError: 配置文件不存在时抛出。
        ValueError: 文件结构不是映射或 refresh_interval 无法解析时抛出。
        yaml.YAMLError: 文件不是合法 YAML 时抛出。
    """
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(p) as f:
        data = yaml.safe_load(f) or {}

    if not isinstance(data, dict):
        raise ValueError(f"Config file {path} must contain a mapping")
    zbx = data.get("zabbix") or {}
    if not isinstance(zbx, dict):
        raise ValueError(f"Config file {path}: 'zabbix' section must be a mapping")
    return MonitoringSettings(
        zabbix_url=str(zbx.get("url", "")).strip(),
        zabbix_api_token=os.environ.get("ZABBIX_API_TOKEN") or str(zbx.get("token", "") or ""),
        refresh_interval=_parse_interval(zbx.get("refresh_interval", 60)),
    )
