"""
Zabbix 监控路由 (Zabbix Monitoring Router)

功能说明：把对账引擎的入口暴露为 HTTP 接口
核心职责：
  - 主机列表 + 可用性结论（本机 ping / Zabbix ICMP / Agent / 接口标志 四源融合）
  - 选定主机的性能指标
  - 当前告警问题（含所属主机名称）
  - 连接测试、历史数据、监控项排查
依赖关系：连接配置通过 get_monitoring_settings 依赖注入，测试中可覆盖
API端点：/api/v1/zabbix/*

Zabbix 不可达、配置缺失等错误统一由全局异常处理器转换为结构化错误响应，
与主机 unavailable 的正常结果区分开。
"""
from fastapi import APIRouter, Depends, Query

from hostwatch.core.config import settings as app_settings
from hostwatch.schemas.settings import MonitoringSettings
from hostwatch.schemas.zabbix import (
    ConnectionTestRequest,
    ConnectionTestResult,
    HistoryPoint,
    HistoryRequest,
    HostAvailability,
    HostItemsResponse,
    MetricsRequest,
    MetricsSnapshot,
    Problem,
)
from hostwatch.services.host_monitor import HostMonitor
from hostwatch.services.prober import NetworkProber

router = APIRouter(prefix="/api/v1/zabbix", tags=["zabbix"])


def get_monitoring_settings() -> MonitoringSettings:
    """读取当前 Zabbix 连接配置（每次请求读取一次，只读）。"""
    return app_settings.monitoring()


def get_host_monitor() -> HostMonitor:
    return HostMonitor(
        prober=NetworkProber(timeout=app_settings.probe_timeout_seconds),
        rpc_timeout=app_settings.rpc_timeout_seconds,
    )


@router.get("/hosts", response_model=list[HostAvailability])
async def list_hosts(
    settings: MonitoringSettings = Depends(get_monitoring_settings),
    monitor: HostMonitor = Depends(get_host_monitor),
):
    """
    主机列表查询接口 (Host List with Availability)

    返回 Zabbix 中全部主机，每台主机附带四个信号的状态、加权得分与最终可用性结论。
    """
    return await monitor.list_hosts(settings)


@router.post("/metrics", response_model=list[MetricsSnapshot])
async def get_metrics(
    body: MetricsRequest,
    settings: MonitoringSettings = Depends(get_monitoring_settings),
    monitor: HostMonitor = Depends(get_host_monitor),
):
    """选定主机的 CPU / 内存 / 磁盘 / 运行时间 / 网络流量指标。"""
    return await monitor.get_metrics(settings, body.host_ids)


@router.get("/problems", response_model=list[Problem])
async def list_problems(
    include_resolved: bool = Query(False),
    settings: MonitoringSettings = Depends(get_monitoring_settings),
    monitor: HostMonitor = Depends(get_host_monitor),
):
    return await monitor.list_problems(settings, include_resolved=include_resolved)


@router.post("/test-connection", response_model=ConnectionTestResult)
async def test_connection(
    body: ConnectionTestRequest,
    monitor: HostMonitor = Depends(get_host_monitor),
):
    """
    测试 Zabbix 连接 (Test Zabbix Connection)

    使用请求体中的地址与 Token（尚未保存的配置）测试连通性。
    失败时仍返回 200，由 success=false 与 message 说明原因。
    """
    candidate = MonitoringSettings(zabbix_url=body.zabbix_url, zabbix_api_token=body.zabbix_api_token)
    return await monitor.test_connection(candidate)


@router.post("/history", response_model=list[HistoryPoint])
async def get_history(
    body: HistoryRequest,
    settings: MonitoringSettings = Depends(get_monitoring_settings),
    monitor: HostMonitor = Depends(get_host_monitor),
):
    return await monitor.get_history(settings, body.host_id, body.item_key, body.time_from)


@router.get("/debug/hosts/{host_id}/items", response_model=HostItemsResponse)
async def debug_host_items(
    host_id: str,
    settings: MonitoringSettings = Depends(get_monitoring_settings),
    monitor: HostMonitor = Depends(get_host_monitor),
):
    """列出主机全部监控项（含 key、取值、状态、时间戳），用于排查匹配规则。"""
    return await monitor.get_host_items(settings, host_id)
