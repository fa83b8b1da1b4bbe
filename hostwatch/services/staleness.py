"""
监控项时效判断与取值归一化。

Zabbix 的 lastvalue 是字符串，可能是数字、"up"/"down" 这类标记，也可能为空；
lastclock 是最后一次采集的 epoch 秒，可能缺失。
"""
import enum
import math

from hostwatch.schemas.zabbix import Item, SignalKind, SignalState

STALE_AFTER_SECONDS = 600  # 超过 10 分钟未更新视为过期

_POSITIVE_TOKENS = {"1", "up"}
_NEGATIVE_TOKENS = {"0", "down"}


class Freshness(str, enum.Enum):
    FRESH = "fresh"
    STALE = "stale"


def freshness(item: Item, now: float) -> Freshness:
    """按 lastclock 判断数据是否新鲜；没有时间戳的监控项视为最旧。"""
    if not item.last_clock:
        return Freshness.STALE
    age = now - item.last_clock
    if 0 <= age < STALE_AFTER_SECONDS:
        return Freshness.FRESH
    return Freshness.STALE


def parse_number(value) -> float | None:
    """严格数值解析，失败（含 NaN）返回 None。"""
    if value is None:
        return None
    try:
        number = float(str(value).strip())
    except ValueError:
        return None
    if math.isnan(number):
        return None
    return number


def coerce_value(value: str, kind: SignalKind) -> SignalState:
    """把原始取值归一化为信号状态。

    先尝试数值：> 0 为正向，<= 0 为负向；解析失败再匹配 1/up、0/down 标记；其余为 unknown。
    ICMP 使用 responding / no response，Agent 使用 available / unavailable。
    """
    positive, negative = _states_for(kind)
    text = str(value).strip()
    number = parse_number(text)
    if number is not None:
        return positive if number > 0 else negative
    token = text.lower()
    if token in _POSITIVE_TOKENS:
        return positive
    if token in _NEGATIVE_TOKENS:
        return negative
    return SignalState.UNKNOWN


def _states_for(kind: SignalKind) -> tuple[SignalState, SignalState]:
    if kind is SignalKind.REMOTE_AGENT:
        return SignalState.AVAILABLE, SignalState.UNAVAILABLE
    return SignalState.RESPONDING, SignalState.NO_RESPONSE


def item_signal(item: Item | None, kind: SignalKind, now: float) -> SignalState:
    """由匹配到的监控项得出远端信号。

    - 没有匹配项 → not configured
    - 有取值 → 按取值归一化（即使已过期，也优先采用旧读数而不是丢弃）
    - 无取值 → 新鲜时 no data，过期时 stale data
    """
    if item is None:
        return SignalState.NOT_CONFIGURED
    if item.last_value is not None and item.last_value.strip() != "":
        return coerce_value(item.last_value, kind)
    if freshness(item, now) is Freshness.FRESH:
        return SignalState.NO_DATA
    return SignalState.STALE_DATA
