"""
Zabbix JSON-RPC 客户端 (Zabbix JSON-RPC Client)

功能描述 (Description):
    对 Zabbix api_jsonrpc.php 的一次请求/响应封装。每次调用发送一个 HTTP POST，
    使用 JSON-RPC 2.0 信封（jsonrpc / method / params / id），Bearer Token 认证。

错误归一化 (Error Normalization):
    - 连接失败、超时、非 2xx 状态码、非 JSON 响应 → TransportError
    - 响应信封中包含 error 对象 → ProtocolError，消息取 error.data，回退到 error.message
    - 地址无法解析为合法 URL → ConfigurationError

设计约束:
    - 无状态：只持有不可变的配置，可并发调用
    - 不重试：重试/退避策略由调用方决定
    - 每次调用新建 httpx.AsyncClient，不共享全局连接
"""
import logging
from typing import Any

import httpx

from hostwatch.core.exceptions import ConfigurationError, ProtocolError, TransportError
from hostwatch.schemas.settings import MonitoringSettings

logger = logging.getLogger(__name__)

JSONRPC_VERSION = "2.0"
DEFAULT_TIMEOUT = 10.0


class ZabbixClient:
    """Zabbix API 客户端。

    Args:
        settings: Zabbix 连接配置（只读）。
        timeout: 单次调用超时（秒），建议不超过 10 秒。
        transport: 可选的 httpx transport，测试时注入 MockTransport。
    """

    def __init__(
        self,
        settings: MonitoringSettings,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.settings = settings
        self.timeout = timeout
        self._transport = transport

    def _headers(self, authenticated: bool) -> dict:
        headers = {"Content-Type": "application/json-rpc"}
        if authenticated:
            headers["Authorization"] = f"Bearer {self.settings.zabbix_api_token}"
        return headers

    async def call(self, method: str, params: Any = None, *, authenticated: bool = True) -> Any:
        """调用一个 JSON-RPC 方法并返回 result 字段。

        Args:
            method: 方法名，如 host.get、item.get。
            params: 方法参数，默认空字典。
            authenticated: 是否携带 Token；apiinfo.version 必须不带认证。

        Raises:
            TransportError: HTTP 层失败。
            ProtocolError: 服务器返回 JSON-RPC 错误。
            ConfigurationError: 地址不是合法 URL。
        """
        url = self.settings.api_url
        payload = {
            "jsonrpc": JSONRPC_VERSION,
            "method": method,
            "params": params if params is not None else {},
            "id": 1,
        }
        logger.debug("Zabbix RPC %s -> %s", method, url)

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                resp = await client.post(url, json=payload, headers=self._headers(authenticated))
        except httpx.TimeoutException as e:
            raise TransportError(
                f"Zabbix API request timed out after {self.timeout}s", detail=str(e) or None
            ) from e
        except httpx.HTTPError as e:
            raise TransportError(f"Zabbix API request failed: {e}", detail=type(e).__name__) from e
        except httpx.InvalidURL as e:
            raise ConfigurationError("Invalid Zabbix URL", detail=f"{url}: {e}") from e

        if not resp.is_success:
            raise TransportError(
                f"Zabbix API request failed: {resp.status_code} {resp.reason_phrase}".rstrip(),
                detail=resp.text[:500] or None,
            )

        try:
            data = resp.json()
        except ValueError as e:
            raise TransportError("Zabbix API returned a non-JSON response", detail=resp.text[:500]) from e

        if not isinstance(data, dict):
            raise ProtocolError("Malformed JSON-RPC response", detail=str(data)[:500])

        error = data.get("error")
        if error:
            if isinstance(error, dict):
                message = error.get("data") or error.get("message") or "Unknown error"
                detail = error.get("message")
            else:
                message, detail = str(error), None
            raise ProtocolError(f"Zabbix API error: {message}", detail=detail)

        if "result" not in data:
            raise ProtocolError("Malformed JSON-RPC response", detail="missing result field")
        return data["result"]
