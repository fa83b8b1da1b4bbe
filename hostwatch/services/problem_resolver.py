"""
告警问题解析模块 (Problem Resolver)

功能描述 (Description):
    拉取 Zabbix 近期问题事件，并为每个问题补充所属主机名称。

核心流程 (Flow):
    1. problem.get 获取近期问题（默认只保留未恢复的问题）
    2. 收集去重后的 trigger id
    3. 一次 trigger.get 批量查询 trigger → host 映射（避免 N+1 调用）
    4. 为每个问题挂上第一个关联主机的名称

容错 (Fault Tolerance):
    trigger 查询失败或某个 trigger 没有关联主机时，问题挂上 "Unknown" 主机，
    绝不因为次要查询失败而丢弃问题。problem.get 本身失败则整次调用失败。
"""
import logging

from hostwatch.core.exceptions import LookupGap, RpcError
from hostwatch.schemas.zabbix import UNKNOWN_HOST, Problem
from hostwatch.services.zabbix_client import ZabbixClient

logger = logging.getLogger(__name__)

PROBLEM_OUTPUT = ["eventid", "objectid", "name", "severity", "acknowledged", "clock", "r_eventid"]


async def fetch_trigger_hosts(client: ZabbixClient, trigger_ids: list[str]) -> dict[str, dict]:
    """批量解析 trigger → 第一个关联主机 {"hostname", "host"}。

    Raises:
        LookupGap: trigger.get 调用失败。
    """
    try:
        triggers = await client.call(
            "trigger.get",
            {
                "triggerids": trigger_ids,
                "output": ["triggerid"],
                "selectHosts": ["host", "name"],
            },
        )
    except RpcError as e:
        raise LookupGap(f"Trigger lookup failed: {e.message}", detail=e.detail) from e

    mapping: dict[str, dict] = {}
    for trigger in triggers or []:
        hosts = trigger.get("hosts") or []
        if not hosts:
            continue
        first = hosts[0]
        mapping[str(trigger.get("triggerid"))] = {
            "hostname": first.get("name") or UNKNOWN_HOST,
            "host": first.get("host") or UNKNOWN_HOST,
        }
    return mapping


async def list_problems(client: ZabbixClient, include_resolved: bool = False) -> list[Problem]:
    raw_problems = await client.call(
        "problem.get",
        {
            "output": PROBLEM_OUTPUT,
            "recent": True,
            "sortfield": ["eventid"],
            "sortorder": "DESC",
        },
    )
    problems = [Problem.from_api(p) for p in raw_problems or []]
    if not include_resolved:
        problems = [p for p in problems if not p.resolved]

    # 去重并保持出现顺序
    trigger_ids = list(dict.fromkeys(p.trigger_id for p in problems if p.trigger_id))

    trigger_hosts: dict[str, dict] = {}
    if trigger_ids:
        try:
            trigger_hosts = await fetch_trigger_hosts(client, trigger_ids)
        except LookupGap as e:
            logger.warning("Error fetching hosts for problems: %s", e.message)

    for problem in problems:
        info = trigger_hosts.get(problem.trigger_id or "")
        if info is None:
            logger.debug("No host resolved for problem %s (trigger %s)", problem.event_id, problem.trigger_id)
            continue
        problem.hostname = info["hostname"]
        problem.host = info["host"]

    return problems
