"""
Zabbix 相关数据模型 (Zabbix Data Models)

包括两类：
  - 从 Zabbix API 原始 JSON 解析出的只读快照：Host、HostInterface、Item
  - 对账引擎的产出：Signal、Reconciliation、HostAvailability、MetricsSnapshot、Problem

Zabbix API 几乎所有字段都以字符串返回（"0"、"1"、"1719999999"），
from_api() 负责宽松地转换，缺失或格式错误的字段回退为默认值。
"""
import enum
from typing import Any

from pydantic import BaseModel, Field

UNKNOWN_HOST = "Unknown"


def _to_int(value: Any, default: int | None = 0) -> int | None:
    if value is None or value == "":
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        try:
            return int(float(value))
        except (TypeError, ValueError):
            return default


# ============================================================
# 远端快照 (Remote Snapshots)
# ============================================================

class InterfaceAvailability(int, enum.Enum):
    """Zabbix 接口 available 字段的三种取值。"""
    UNKNOWN = 0
    AVAILABLE = 1
    UNAVAILABLE = 2


class HostInterface(BaseModel):
    """主机接口。"""
    interface_id: str | None = None
    ip: str | None = None
    available: InterfaceAvailability = InterfaceAvailability.UNKNOWN
    main: bool = False

    @classmethod
    def from_api(cls, raw: dict) -> "HostInterface":
        try:
            available = InterfaceAvailability(_to_int(raw.get("available"), 0))
        except ValueError:
            available = InterfaceAvailability.UNKNOWN
        ip = (raw.get("ip") or "").strip() or None
        return cls(
            interface_id=raw.get("interfaceid"),
            ip=ip,
            available=available,
            main=_to_int(raw.get("main"), 0) == 1,
        )


class Host(BaseModel):
    """Zabbix 主机快照，每次调用重新获取，不跨周期缓存。"""
    host_id: str
    host: str = ""
    name: str = ""
    monitoring_enabled: bool = True
    interfaces: list[HostInterface] = Field(default_factory=list)
    groups: list[str] = Field(default_factory=list)

    @property
    def address(self) -> str | None:
        """规范地址：第一个接口的 IP，没有接口时为 None。"""
        if not self.interfaces:
            return None
        return self.interfaces[0].ip

    @property
    def display_name(self) -> str:
        return self.name or self.host or self.host_id

    @classmethod
    def from_api(cls, raw: dict) -> "Host":
        return cls(
            host_id=str(raw.get("hostid", "")),
            host=raw.get("host") or "",
            name=raw.get("name") or "",
            # status: 0 = monitored, 1 = unmonitored
            monitoring_enabled=_to_int(raw.get("status"), 0) == 0,
            interfaces=[HostInterface.from_api(i) for i in raw.get("interfaces") or []],
            groups=[g.get("name", "") for g in raw.get("groups") or [] if g.get("name")],
        )


class Item(BaseModel):
    """Zabbix 监控项快照。key 与 name 由厂商/模板定义，格式不固定。"""
    item_id: str | None = None
    key: str = ""
    name: str = ""
    last_value: str | None = None
    last_clock: int | None = None
    enabled: bool = True
    state: str | None = None
    units: str | None = None
    value_type: str | None = None

    @classmethod
    def from_api(cls, raw: dict) -> "Item":
        last_value = raw.get("lastvalue")
        clock = _to_int(raw.get("lastclock"), None)
        return cls(
            item_id=raw.get("itemid"),
            key=raw.get("key_") or "",
            name=raw.get("name") or "",
            last_value=None if last_value is None else str(last_value),
            last_clock=clock if clock else None,
            # status: 0 = enabled, 1 = disabled
            enabled=_to_int(raw.get("status"), 0) == 0,
            state=None if raw.get("state") is None else str(raw.get("state")),
            units=raw.get("units"),
            value_type=None if raw.get("value_type") is None else str(raw.get("value_type")),
        )


# ============================================================
# 信号与结论 (Signals and Verdicts)
# ============================================================

class SignalKind(str, enum.Enum):
    DIRECT_PROBE = "direct_probe"
    REMOTE_ICMP = "remote_icmp"
    REMOTE_AGENT = "remote_agent"
    INTERFACE_FLAG = "interface_flag"


class SignalState(str, enum.Enum):
    """单个数据源的分类结果。

    只有 responding/available 计为正向，no response/unavailable 计为负向，
    其余状态（未配置、无数据、过期、无 IP、探测出错）都不参与评分。
    """
    RESPONDING = "responding"
    NO_RESPONSE = "no response"
    AVAILABLE = "available"
    UNAVAILABLE = "unavailable"
    UNKNOWN = "unknown"
    NOT_CONFIGURED = "not configured"
    NO_DATA = "no data"
    STALE_DATA = "stale data"
    NO_IP = "no ip"
    ERROR = "error"

    @property
    def polarity(self) -> int:
        if self in (SignalState.RESPONDING, SignalState.AVAILABLE):
            return 1
        if self in (SignalState.NO_RESPONSE, SignalState.UNAVAILABLE):
            return -1
        return 0


class AvailabilityVerdict(str, enum.Enum):
    AVAILABLE = "available"
    UNAVAILABLE = "unavailable"
    UNKNOWN = "unknown"


class Reconciliation(BaseModel):
    """一台主机一次对账的结果：四个信号、加权得分与最终结论。"""
    direct_probe: SignalState
    remote_icmp: SignalState
    remote_agent: SignalState
    interface_flag: SignalState
    score: int
    verdict: AvailabilityVerdict


class HostAvailability(BaseModel):
    """listHosts 的单条结果。"""
    host_id: str
    host: str
    name: str
    ip_address: str = "N/A"
    groups: str = "None"
    monitoring_enabled: bool
    availability_status: AvailabilityVerdict
    score: int
    direct_ping_status: SignalState
    icmp_status: SignalState
    agent_status: SignalState
    interface_status: SignalState
    probe_latency_ms: float | None = None


class MetricsSnapshot(BaseModel):
    """getMetrics 的单条结果，派生数据，不落库。"""
    host_id: str
    hostname: str
    host: str
    ip_address: str = "N/A"
    cpu_utilization: float = 0.0
    memory_utilization: float = 0.0
    disk_usage: float = 0.0
    uptime: str = "N/A"
    network_in: float = 0.0
    network_out: float = 0.0
    status: AvailabilityVerdict = AvailabilityVerdict.UNKNOWN
    score: int = 0
    monitoring_status: str = "monitored"
    direct_ping_status: SignalState = SignalState.UNKNOWN
    icmp_status: SignalState = SignalState.UNKNOWN
    agent_status: SignalState = SignalState.UNKNOWN


# ============================================================
# 告警 (Problems)
# ============================================================

class Problem(BaseModel):
    """Zabbix 告警事件，hostname 由 trigger → host 映射事后补充。"""
    event_id: str
    trigger_id: str | None = None
    name: str = ""
    severity: int = 0
    acknowledged: bool = False
    clock: int | None = None
    resolved: bool = False
    hostname: str = UNKNOWN_HOST
    host: str = UNKNOWN_HOST
    tags: list[dict] = Field(default_factory=list)

    @classmethod
    def from_api(cls, raw: dict) -> "Problem":
        severity = _to_int(raw.get("severity"), 0)
        r_eventid = str(raw.get("r_eventid") or "").strip()
        return cls(
            event_id=str(raw.get("eventid", "")),
            trigger_id=None if raw.get("objectid") is None else str(raw.get("objectid")),
            name=raw.get("name") or "",
            severity=min(max(severity, 0), 5),
            acknowledged=_to_int(raw.get("acknowledged"), 0) == 1,
            clock=_to_int(raw.get("clock"), None),
            resolved=r_eventid not in ("", "0"),
            tags=list(raw.get("tags") or []),
        )


# ============================================================
# 辅助接口 (Auxiliary Endpoints)
# ============================================================

class ConnectionTestResult(BaseModel):
    success: bool
    message: str
    version: str | None = None


class HistoryPoint(BaseModel):
    item_id: str | None = None
    clock: int
    value: str
    ns: int | None = None

    @classmethod
    def from_api(cls, raw: dict) -> "HistoryPoint":
        return cls(
            item_id=raw.get("itemid"),
            clock=_to_int(raw.get("clock"), 0),
            value=str(raw.get("value", "")),
            ns=_to_int(raw.get("ns"), None),
        )


class HostItemsResponse(BaseModel):
    host_id: str
    total_items: int
    items: list[Item]


class MetricsRequest(BaseModel):
    host_ids: list[str]


class ConnectionTestRequest(BaseModel):
    zabbix_url: str = ""
    zabbix_api_token: str = ""


class HistoryRequest(BaseModel):
    host_id: str
    item_key: str
    time_from: int | None = None
