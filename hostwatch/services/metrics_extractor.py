"""
性能指标提取模块。

从主机监控项中找出 CPU、内存、磁盘、运行时间、网络进出流量，转换为数值字段。
指标属于尽力而为的遥测数据：找不到监控项或取值无法解析时一律记为 0，不抛异常。
"""
from dataclasses import dataclass
from typing import Iterable

from hostwatch.schemas.zabbix import Item
from hostwatch.services.item_matcher import MatchRule, find_item
from hostwatch.services.staleness import parse_number

# 每个指标的同义词按优先级排列，key 片段优先于名称片段
METRIC_RULES: dict[str, MatchRule] = {
    "cpu": MatchRule(
        key_fragments=("system.cpu.util", "cpu.util", "system.cpu"),
        name_fragments=("cpu utilization", "cpu"),
    ),
    "memory": MatchRule(
        key_fragments=("vm.memory.utilization", "memory.util", "vm.memory.size[pused]", "vm.memory"),
        name_fragments=("memory utilization",),
    ),
    "disk": MatchRule(
        # ",pused]" 匹配 vfs.fs.size[/,pused]，不会误中 vm.memory.size[pused]
        key_fragments=("fs.pused", ",pused]", "disk"),
        name_fragments=("disk space", "space utilization"),
    ),
    "uptime": MatchRule(
        key_fragments=("system.uptime", "uptime"),
        name_fragments=("uptime",),
    ),
    "net_in": MatchRule(
        key_fragments=("net.if.in",),
        name_fragments=("incoming",),
    ),
    "net_out": MatchRule(
        key_fragments=("net.if.out",),
        name_fragments=("outgoing",),
    ),
}


@dataclass(frozen=True)
class ExtractedMetrics:
    cpu_utilization: float = 0.0
    memory_utilization: float = 0.0
    disk_usage: float = 0.0
    uptime: str = "N/A"
    network_in: float = 0.0
    network_out: float = 0.0


def parse_item_value(value) -> float:
    """解析数值，空值或无法解析时返回 0。"""
    number = parse_number(value)
    return 0.0 if number is None else number


def format_uptime(seconds: float) -> str:
    """把秒数格式化为紧凑字符串：'3d 4h'、'5h 12m'、'7m'。"""
    total = max(int(seconds), 0)
    days = total // 86400
    hours = (total % 86400) // 3600
    minutes = (total % 3600) // 60
    if days > 0:
        return f"{days}d {hours}h"
    if hours > 0:
        return f"{hours}h {minutes}m"
    return f"{minutes}m"


def _value_of(item: Item | None) -> str | None:
    return item.last_value if item is not None else None


def extract(items: Iterable[Item]) -> ExtractedMetrics:
    items = list(items)
    found = {name: find_item(items, rule) for name, rule in METRIC_RULES.items()}

    uptime = "N/A"
    uptime_seconds = parse_number(_value_of(found["uptime"]))
    if uptime_seconds is not None:
        uptime = format_uptime(uptime_seconds)

    return ExtractedMetrics(
        cpu_utilization=parse_item_value(_value_of(found["cpu"])),
        memory_utilization=parse_item_value(_value_of(found["memory"])),
        disk_usage=parse_item_value(_value_of(found["disk"])),
        uptime=uptime,
        network_in=parse_item_value(_value_of(found["net_in"])),
        network_out=parse_item_value(_value_of(found["net_out"])),
    )
