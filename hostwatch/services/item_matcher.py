"""
监控项匹配模块 (Item Matcher)

在一台主机的全部监控项中，按 key / name 启发式规则找到代表某个信号的监控项。
不同 Zabbix 版本和模板对同一指标的命名不同，所以匹配按优先级逐级放宽：

    1. key 完全相等（如 icmpping、agent.ping）
    2. key 前缀匹配，允许带方括号参数（如 icmpping[,3]）
    3. key 包含规范片段
    4. 显示名称包含同义词（如 "ping response"、"agent ping"）

每一级都线性扫描全部已启用监控项，先命中的级别胜出；精确 key 永远优先于宽松的名称匹配。
监控指标（CPU、内存等）使用同一套规则结构，只是没有精确 key 一级。
"""
from dataclasses import dataclass
from typing import Iterable

from hostwatch.schemas.zabbix import Item, SignalKind


@dataclass(frozen=True)
class MatchRule:
    """一个信号或指标的匹配规则，所有比较都不区分大小写。"""
    exact_keys: tuple[str, ...] = ()
    key_prefixes: tuple[str, ...] = ()
    key_fragments: tuple[str, ...] = ()
    name_fragments: tuple[str, ...] = ()
    # 基础 key（方括号之前部分）命中这些值时整体跳过
    excluded_keys: tuple[str, ...] = ()

    def levels(self):
        """按优先级依次产出判定函数 predicate(key, name)。

        片段与同义词逐个成为一级，列在前面的片段优先。
        """
        if self.exact_keys:
            yield lambda key, name: key in self.exact_keys
        if self.key_prefixes:
            yield lambda key, name: any(key.startswith(p) for p in self.key_prefixes)
        for fragment in self.key_fragments:
            yield lambda key, name, f=fragment: f in key
        for fragment in self.name_fragments:
            yield lambda key, name, f=fragment: f in name


SIGNAL_RULES: dict[SignalKind, MatchRule] = {
    SignalKind.REMOTE_ICMP: MatchRule(
        exact_keys=("icmpping", "icmpping[]"),
        key_prefixes=("icmpping[",),
        key_fragments=("icmpping", "icmp"),
        name_fragments=("icmp ping", "ping response", "icmp response"),
        excluded_keys=("icmppingloss", "icmppingsec"),
    ),
    SignalKind.REMOTE_AGENT: MatchRule(
        exact_keys=("agent.ping", "agent.ping[]"),
        key_prefixes=("agent.ping[",),
        key_fragments=("agent.ping",),
        name_fragments=("agent ping", "zabbix agent ping", "agent availability"),
    ),
}


def _base_key(key: str) -> str:
    return key.split("[", 1)[0]


def find_item(items: Iterable[Item], rule: MatchRule) -> Item | None:
    """按规则优先级返回第一个命中的已启用监控项，没有则返回 None。"""
    eligible = [
        (item, item.key.strip().lower(), item.name.strip().lower())
        for item in items
        if item.enabled
    ]
    if rule.excluded_keys:
        eligible = [e for e in eligible if _base_key(e[1]) not in rule.excluded_keys]

    for predicate in rule.levels():
        for item, key, name in eligible:
            if predicate(key, name):
                return item
    return None


def match(items: Iterable[Item], kind: SignalKind) -> Item | None:
    """为远端信号（ICMP / Agent）定位监控项。"""
    rule = SIGNAL_RULES.get(kind)
    if rule is None:
        raise ValueError(f"Signal {kind.value} is not backed by a Zabbix item")
    return find_item(items, rule)
