"""
主机监控对账服务 (Host Monitoring Reconciliation Service)

功能描述 (Description):
    对外提供 listHosts / getMetrics / listProblems 三个入口，以及连接测试、
    历史数据、监控项排查等辅助操作。每个入口都显式接收一份 MonitoringSettings。

调度模型 (Scheduling Model):
    - 主机之间并行：每台主机一条独立流水线，互不共享可变状态
    - 主机内部：本机 ping 与 item.get 并发执行，两者都完成后再评分（gather 汇合点）
    - 指标与评分共用同一次 item.get，匹配优先级不变

失败分类 (Failure Classes):
    - 配置缺失、Zabbix 连接失败、Zabbix 返回错误 → 整次调用失败，抛出对应异常
    - 单台主机探测失败 → 该主机直连信号降级为 error（不计分），不影响其他主机

无隐藏状态：同样的 Host / Item / 探测输入必然得到同样的结论与指标。
"""
import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Protocol

import httpx

from hostwatch.core.exceptions import ConfigurationError, ProbeError, RpcError
from hostwatch.schemas.settings import MonitoringSettings
from hostwatch.schemas.zabbix import (
    ConnectionTestResult,
    HistoryPoint,
    Host,
    HostAvailability,
    HostItemsResponse,
    Item,
    MetricsSnapshot,
    Problem,
    Reconciliation,
    SignalKind,
)
from hostwatch.services import item_matcher, metrics_extractor, problem_resolver
from hostwatch.services.prober import NetworkProber, ProbeResult
from hostwatch.services.reconciler import interface_signal, probe_signal, reconcile_signals
from hostwatch.services.staleness import item_signal
from hostwatch.services.zabbix_client import DEFAULT_TIMEOUT, ZabbixClient

logger = logging.getLogger(__name__)

HOST_OUTPUT = ["hostid", "host", "name", "status", "available", "error"]
INTERFACE_OUTPUT = ["interfaceid", "ip", "type", "main", "available", "error", "details"]
ITEM_OUTPUT = ["itemid", "key_", "lastvalue", "name", "state", "status", "lastclock", "units", "value_type"]
HISTORY_WINDOW_SECONDS = 3600
HISTORY_LIMIT = 100


class Prober(Protocol):
    async def probe(self, address: str | None) -> ProbeResult: ...


@dataclass
class HostEvaluation:
    """单台主机一次对账的中间结果。"""
    host: Host
    items: list[Item]
    probe: ProbeResult | ProbeError
    reconciliation: Reconciliation


async def _gather_all(*aws: Awaitable):
    """并发执行，任一失败时取消并等待其余任务结束后再抛出。"""
    tasks = [asyncio.ensure_future(aw) for aw in aws]
    try:
        return await asyncio.gather(*tasks)
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise


class HostMonitor:
    """对账引擎入口。

    Args:
        prober: 本机可达性探测器，默认使用系统 ping。
        rpc_timeout: 每次 Zabbix 调用的超时（秒）。
        transport: 可选 httpx transport，测试时注入。
        clock: 返回当前 epoch 秒的函数，用于时效判断。
    """

    def __init__(
        self,
        prober: Prober | None = None,
        rpc_timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.prober = prober or NetworkProber()
        self.rpc_timeout = rpc_timeout
        self._transport = transport
        self._clock = clock

    def client(self, settings: MonitoringSettings | None) -> ZabbixClient:
        if settings is None:
            raise ConfigurationError("Zabbix not configured")
        settings.ensure_complete()
        return ZabbixClient(settings, timeout=self.rpc_timeout, transport=self._transport)

    # ------------------------------------------------------------------
    # 远端数据获取 (Remote Fetches)
    # ------------------------------------------------------------------

    async def fetch_hosts(self, client: ZabbixClient, host_ids: list[str] | None = None) -> list[Host]:
        params = {
            "output": HOST_OUTPUT,
            "selectInterfaces": INTERFACE_OUTPUT,
            "selectGroups": ["groupid", "name"],
        }
        if host_ids is not None:
            params["hostids"] = host_ids
        raw_hosts = await client.call("host.get", params)
        return [Host.from_api(h) for h in raw_hosts or []]

    async def fetch_items(self, client: ZabbixClient, host_id: str) -> list[Item]:
        # 不按 key 过滤，交给匹配器自由搜索
        raw_items = await client.call(
            "item.get",
            {"hostids": [host_id], "output": ITEM_OUTPUT, "sortfield": "name"},
        )
        items = [Item.from_api(i) for i in raw_items or []]
        logger.debug("Fetched %d items for host %s (%d enabled)",
                     len(items), host_id, sum(1 for i in items if i.enabled))
        return items

    async def _probe_host(self, host: Host) -> ProbeResult | ProbeError:
        try:
            result = await self.prober.probe(host.address)
        except ProbeError as e:
            logger.warning("Error pinging %s (%s): %s", host.display_name, host.address, e.message)
            return e
        logger.debug("Direct ping to %s (%s): %s", host.display_name, host.address, result.status.value)
        return result

    async def evaluate_host(self, client: ZabbixClient, host: Host) -> HostEvaluation:
        """单台主机流水线：探测与拉取监控项并发，汇合后评分。"""
        probe, items = await _gather_all(self._probe_host(host), self.fetch_items(client, host.host_id))
        now = self._clock()

        icmp_item = item_matcher.match(items, SignalKind.REMOTE_ICMP)
        agent_item = item_matcher.match(items, SignalKind.REMOTE_AGENT)
        if icmp_item is None:
            logger.debug("No ICMP item found for %s", host.display_name)
        if agent_item is None:
            logger.debug("No Agent item found for %s", host.display_name)

        reconciliation = reconcile_signals(
            direct=probe_signal(probe),
            icmp=item_signal(icmp_item, SignalKind.REMOTE_ICMP, now),
            agent=item_signal(agent_item, SignalKind.REMOTE_AGENT, now),
            interface_flag=interface_signal(host.interfaces),
            host_label=f"{host.display_name} ({host.host_id})",
        )
        return HostEvaluation(host=host, items=items, probe=probe, reconciliation=reconciliation)

    # ------------------------------------------------------------------
    # 对外入口 (Inbound Operations)
    # ------------------------------------------------------------------

    async def list_hosts(self, settings: MonitoringSettings | None) -> list[HostAvailability]:
        """全部主机及其可用性结论。"""
        client = self.client(settings)
        hosts = await self.fetch_hosts(client)
        evaluations = await _gather_all(*(self.evaluate_host(client, h) for h in hosts))
        return [self._to_availability(e) for e in evaluations]

    async def get_metrics(self, settings: MonitoringSettings | None, host_ids: list[str]) -> list[MetricsSnapshot]:
        """指定主机的性能指标，按请求顺序返回；Zabbix 中不存在的主机被跳过。"""
        client = self.client(settings)
        if not host_ids:
            return []
        hosts = {h.host_id: h for h in await self.fetch_hosts(client, list(host_ids))}

        targets = []
        for host_id in dict.fromkeys(str(h) for h in host_ids):
            host = hosts.get(host_id)
            if host is None:
                logger.warning("Host %s not found in Zabbix, skipped", host_id)
                continue
            targets.append(host)

        evaluations = await _gather_all(*(self.evaluate_host(client, h) for h in targets))
        return [self._to_metrics(e) for e in evaluations]

    async def list_problems(self, settings: MonitoringSettings | None, include_resolved: bool = False) -> list[Problem]:
        client = self.client(settings)
        return await problem_resolver.list_problems(client, include_resolved=include_resolved)

    async def test_connection(self, settings: MonitoringSettings) -> ConnectionTestResult:
        """测试 Zabbix 连通性与 Token 有效性，结果以 success 字段表达，不抛异常。"""
        if not settings.zabbix_url.strip() or not settings.zabbix_api_token.strip():
            return ConnectionTestResult(success=False, message="Zabbix URL and API Token are required")

        client = ZabbixClient(settings, timeout=self.rpc_timeout, transport=self._transport)
        logger.info("Testing Zabbix connection to: %s", settings.api_url)
        try:
            version = await client.call("apiinfo.version", {}, authenticated=False)
        except ConfigurationError as e:
            return ConnectionTestResult(success=False, message=e.message)
        except RpcError as e:
            prefix = "API Error" if e.error == "protocol_error" else "Connection failed"
            return ConnectionTestResult(success=False, message=f"{prefix}: {e.message}")

        try:
            await client.call("host.get", {"output": ["hostid", "host"], "limit": 1})
        except RpcError as e:
            return ConnectionTestResult(
                success=False,
                message=f"Authentication failed: {e.message}. Please check your API token.",
                version=str(version),
            )

        return ConnectionTestResult(
            success=True,
            message=f"Successfully connected to Zabbix {version}",
            version=str(version),
        )

    async def get_history(
        self,
        settings: MonitoringSettings | None,
        host_id: str,
        item_key: str,
        time_from: int | None = None,
    ) -> list[HistoryPoint]:
        """某主机某监控项最近的历史数据（图表用）。"""
        client = self.client(settings)
        items = await client.call(
            "item.get",
            {"hostids": [host_id], "search": {"key_": item_key}, "output": ["itemid", "value_type"]},
        )
        if not items:
            return []

        item = items[0]
        params = {
            "itemids": [item["itemid"]],
            "time_from": time_from if time_from is not None else int(self._clock()) - HISTORY_WINDOW_SECONDS,
            "output": "extend",
            "sortfield": "clock",
            "sortorder": "ASC",
            "limit": HISTORY_LIMIT,
        }
        if item.get("value_type") not in (None, ""):
            params["history"] = int(item["value_type"])
        history = await client.call("history.get", params)
        return [HistoryPoint.from_api(h) for h in history or []]

    async def get_host_items(self, settings: MonitoringSettings | None, host_id: str) -> HostItemsResponse:
        """列出主机全部监控项，用于排查匹配规则。"""
        client = self.client(settings)
        items = await self.fetch_items(client, host_id)
        return HostItemsResponse(host_id=host_id, total_items=len(items), items=items)

    # ------------------------------------------------------------------
    # 结果组装 (Result Assembly)
    # ------------------------------------------------------------------

    @staticmethod
    def _to_availability(evaluation: HostEvaluation) -> HostAvailability:
        host, rec = evaluation.host, evaluation.reconciliation
        probe = evaluation.probe
        return HostAvailability(
            host_id=host.host_id,
            host=host.host,
            name=host.name,
            ip_address=host.address or "N/A",
            groups=", ".join(host.groups) or "None",
            monitoring_enabled=host.monitoring_enabled,
            availability_status=rec.verdict,
            score=rec.score,
            direct_ping_status=rec.direct_probe,
            icmp_status=rec.remote_icmp,
            agent_status=rec.remote_agent,
            interface_status=rec.interface_flag,
            probe_latency_ms=probe.latency_ms if isinstance(probe, ProbeResult) else None,
        )

    @staticmethod
    def _to_metrics(evaluation: HostEvaluation) -> MetricsSnapshot:
        host, rec = evaluation.host, evaluation.reconciliation
        extracted = metrics_extractor.extract(evaluation.items)
        return MetricsSnapshot(
            host_id=host.host_id,
            hostname=host.name,
            host=host.host,
            ip_address=host.address or "N/A",
            cpu_utilization=extracted.cpu_utilization,
            memory_utilization=extracted.memory_utilization,
            disk_usage=extracted.disk_usage,
            uptime=extracted.uptime,
            network_in=extracted.network_in,
            network_out=extracted.network_out,
            status=rec.verdict,
            score=rec.score,
            monitoring_status="monitored" if host.monitoring_enabled else "not monitored",
            direct_ping_status=rec.direct_probe,
            icmp_status=rec.remote_icmp,
            agent_status=rec.remote_agent,
        )
