"""
Zabbix 连接配置模型

每次调用传入一份只读的 MonitoringSettings，引擎内部不缓存、不修改。
"""
from pydantic import BaseModel

from hostwatch.core.exceptions import ConfigurationError

API_PATH = "/api_jsonrpc.php"


class MonitoringSettings(BaseModel):
    """Zabbix 服务端地址、API Token 与前端刷新间隔。"""
    zabbix_url: str = ""
    zabbix_api_token: str = ""
    refresh_interval: int = 60

    model_config = {"frozen": True}

    @property
    def api_url(self) -> str:
        """规范化后的 JSON-RPC 端点，保证以 /api_jsonrpc.php 结尾。"""
        url = self.zabbix_url.strip()
        if url.endswith(API_PATH):
            return url
        return f"{url.rstrip('/')}{API_PATH}"

    def ensure_complete(self) -> "MonitoringSettings":
        """URL 或 Token 缺失时抛出 ConfigurationError，否则原样返回。"""
        if not self.zabbix_url.strip():
            raise ConfigurationError("Zabbix not configured", detail="zabbix_url is empty")
        if not self.zabbix_api_token.strip():
            raise ConfigurationError("Zabbix URL or API token missing", detail="zabbix_api_token is empty")
        return self
