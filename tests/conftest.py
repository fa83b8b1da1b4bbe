"""
hostwatch 测试基础配置

提供 Zabbix JSON-RPC 模拟服务（httpx MockTransport）、可控的探测器、固定时钟等通用 fixture。
所有测试不访问真实 Zabbix，也不执行真实 ping。
"""
import json
import os
from typing import Any, AsyncGenerator, Callable

import httpx
import pytest_asyncio
import pytest

# 必须在导入 app 之前设置环境变量，避免读取本机 .env
os.environ["ZABBIX_URL"] = ""
os.environ["ZABBIX_API_TOKEN"] = ""

from hostwatch.core.exceptions import ProbeError
from hostwatch.schemas.settings import MonitoringSettings
from hostwatch.services.host_monitor import HostMonitor
from hostwatch.services.prober import ProbeResult, ProbeStatus

NOW = 1_750_000_000


# ── Zabbix 模拟服务 ───────────────────────────────────────────────────
class FakeZabbix:
    """按 JSON-RPC 方法名返回预置结果，并记录每一次调用。

    handlers 的值可以是：
      - 任意 JSON 数据：作为 result 返回
      - 可调用对象：以 params 调用，返回值作为 result
      - {"__error__": {...}}：作为 JSON-RPC error 返回
      - httpx.Response：原样返回（模拟 HTTP 层错误）
    """

    def __init__(self):
        self.handlers: dict[str, Any] = {}
        self.calls: list[dict] = []

    def on(self, method: str, result: Any) -> "FakeZabbix":
        self.handlers[method] = result
        return self

    def calls_to(self, method: str) -> list[dict]:
        return [c for c in self.calls if c["method"] == method]

    def _handle(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        self.calls.append({
            "method": body["method"],
            "params": body["params"],
            "headers": request.headers,
            "url": str(request.url),
            "body": body,
        })
        handler = self.handlers.get(body["method"])
        if isinstance(handler, httpx.Response):
            return handler
        if isinstance(handler, dict) and "__error__" in handler:
            return httpx.Response(200, json={"jsonrpc": "2.0", "error": handler["__error__"], "id": body["id"]})
        if callable(handler):
            handler = handler(body["params"])
        if handler is None:
            handler = []
        return httpx.Response(200, json={"jsonrpc": "2.0", "result": handler, "id": body["id"]})

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self._handle)


# ── 可控探测器 ────────────────────────────────────────────────────────
class FakeProber:
    """按地址返回预置探测结果；未配置的地址视为不可达。"""

    def __init__(self, results: dict[str, ProbeResult | Exception] | None = None):
        self.results = results or {}
        self.probed: list[str | None] = []

    async def probe(self, address):
        self.probed.append(address)
        if not address:
            return ProbeResult(ProbeStatus.NO_ADDRESS)
        outcome = self.results.get(address, ProbeResult(ProbeStatus.UNREACHABLE))
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


REACHABLE = ProbeResult(ProbeStatus.REACHABLE, latency_ms=0.8)
UNREACHABLE = ProbeResult(ProbeStatus.UNREACHABLE)


# ── 数据构造 ──────────────────────────────────────────────────────────
def make_host(hostid: str, name: str, ip: str | None = "10.0.0.1", available: str = "0",
              status: str = "0", groups: list[str] | None = None) -> dict:
    interfaces = [] if ip is None else [{"interfaceid": f"if{hostid}", "ip": ip, "type": "1",
                                         "main": "1", "available": available}]
    return {
        "hostid": hostid,
        "host": name.lower().replace(" ", "-"),
        "name": name,
        "status": status,
        "interfaces": interfaces,
        "groups": [{"groupid": str(i), "name": g} for i, g in enumerate(groups or [])],
    }


def make_item(key: str, name: str = "", lastvalue: str | None = "1", lastclock: int | None = NOW - 30,
              status: str = "0", itemid: str = "1") -> dict:
    item = {"itemid": itemid, "key_": key, "name": name, "status": status, "state": "0",
            "lastclock": "" if lastclock is None else str(lastclock)}
    if lastvalue is not None:
        item["lastvalue"] = lastvalue
    return item


def items_by_host(mapping: dict[str, list[dict]]) -> Callable[[dict], list[dict]]:
    """item.get 处理函数：按 hostids[0] 返回对应监控项。"""
    def handler(params):
        return mapping.get(str(params["hostids"][0]), [])
    return handler


# ── Fixtures ──────────────────────────────────────────────────────────

@pytest.fixture
def zabbix() -> FakeZabbix:
    return FakeZabbix()


@pytest.fixture
def monitoring_settings() -> MonitoringSettings:
    return MonitoringSettings(zabbix_url="https://zabbix.test", zabbix_api_token="secret-token")


@pytest.fixture
def prober() -> FakeProber:
    return FakeProber()


@pytest.fixture
def monitor(zabbix: FakeZabbix, prober: FakeProber) -> HostMonitor:
    return HostMonitor(prober=prober, rpc_timeout=5, transport=zabbix.transport, clock=lambda: NOW)


@pytest.fixture
def probe_error() -> ProbeError:
    return ProbeError("'ping' command not available")


@pytest_asyncio.fixture
async def api_client(monitoring_settings: MonitoringSettings, monitor: HostMonitor) -> AsyncGenerator[httpx.AsyncClient, None]:
    """提供覆盖了连接配置与对账引擎依赖的异步 HTTP 测试客户端。"""
    from hostwatch.main import app
    from hostwatch.routers.zabbix import get_host_monitor, get_monitoring_settings

    app.dependency_overrides[get_monitoring_settings] = lambda: monitoring_settings
    app.dependency_overrides[get_host_monitor] = lambda: monitor

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
