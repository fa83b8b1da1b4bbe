"""
可用性对账模块 (Availability Reconciler)

把四个独立信号融合为一个主机可用性结论，固定权重加权求和：

    本机直连 ping      ±3   （本地执行，最可信）
    Zabbix ICMP 监控项  ±2
    Zabbix Agent 监控项 ±2
    接口可用性标志      ±1   （粒度最粗）

得分 > 0 → available，< 0 → unavailable，= 0 → unknown。
"全部沉默" 与 "正负恰好抵消" 都得 0，两者刻意不做区分。
结论只取决于这四个信号，不读取任何其他状态，相同输入必得相同输出。
"""
import logging
from typing import Iterable

from hostwatch.schemas.zabbix import (
    AvailabilityVerdict,
    HostInterface,
    InterfaceAvailability,
    Reconciliation,
    SignalKind,
    SignalState,
)
from hostwatch.services.prober import ProbeResult, ProbeStatus

logger = logging.getLogger(__name__)

SIGNAL_WEIGHTS: dict[SignalKind, int] = {
    SignalKind.DIRECT_PROBE: 3,
    SignalKind.REMOTE_ICMP: 2,
    SignalKind.REMOTE_AGENT: 2,
    SignalKind.INTERFACE_FLAG: 1,
}


def probe_signal(result: ProbeResult | BaseException) -> SignalState:
    """把探测结果（或探测异常）映射为直连信号。"""
    if isinstance(result, BaseException):
        return SignalState.ERROR
    if result.status is ProbeStatus.NO_ADDRESS:
        return SignalState.NO_IP
    if result.status is ProbeStatus.REACHABLE:
        return SignalState.RESPONDING
    return SignalState.NO_RESPONSE


def interface_signal(interfaces: Iterable[HostInterface]) -> SignalState:
    """任一接口可用 → available；否则任一接口不可用 → unavailable；否则 unknown。"""
    has_unavailable = False
    for iface in interfaces:
        if iface.available is InterfaceAvailability.AVAILABLE:
            return SignalState.AVAILABLE
        if iface.available is InterfaceAvailability.UNAVAILABLE:
            has_unavailable = True
    return SignalState.UNAVAILABLE if has_unavailable else SignalState.UNKNOWN


def score(
    direct: SignalState,
    icmp: SignalState,
    agent: SignalState,
    interface_flag: SignalState,
) -> int:
    return (
        SIGNAL_WEIGHTS[SignalKind.DIRECT_PROBE] * direct.polarity
        + SIGNAL_WEIGHTS[SignalKind.REMOTE_ICMP] * icmp.polarity
        + SIGNAL_WEIGHTS[SignalKind.REMOTE_AGENT] * agent.polarity
        + SIGNAL_WEIGHTS[SignalKind.INTERFACE_FLAG] * interface_flag.polarity
    )


def verdict_for(total: int) -> AvailabilityVerdict:
    if total > 0:
        return AvailabilityVerdict.AVAILABLE
    if total < 0:
        return AvailabilityVerdict.UNAVAILABLE
    return AvailabilityVerdict.UNKNOWN


def reconcile(
    direct: SignalState,
    icmp: SignalState,
    agent: SignalState,
    interface_flag: SignalState,
) -> AvailabilityVerdict:
    return verdict_for(score(direct, icmp, agent, interface_flag))


def reconcile_signals(
    direct: SignalState,
    icmp: SignalState,
    agent: SignalState,
    interface_flag: SignalState,
    host_label: str = "",
) -> Reconciliation:
    """计算得分与结论，并保留全部信号便于展示与排查。"""
    total = score(direct, icmp, agent, interface_flag)
    result = Reconciliation(
        direct_probe=direct,
        remote_icmp=icmp,
        remote_agent=agent,
        interface_flag=interface_flag,
        score=total,
        verdict=verdict_for(total),
    )
    logger.debug(
        "Signals for %s: direct=%s icmp=%s agent=%s interface=%s",
        host_label, direct.value, icmp.value, agent.value, interface_flag.value,
    )
    logger.info("Final status for %s: %s (score: %d)", host_label, result.verdict.value, total)
    return result
