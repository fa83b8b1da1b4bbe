"""告警问题解析测试：trigger → host 批量映射与容错。"""
import pytest

from hostwatch.core.exceptions import LookupGap, ProtocolError
from hostwatch.schemas.zabbix import UNKNOWN_HOST
from hostwatch.services.problem_resolver import fetch_trigger_hosts, list_problems
from hostwatch.services.zabbix_client import ZabbixClient


def _problem(eventid, objectid, name="High CPU", severity="3", r_eventid="0", acknowledged="0"):
    return {
        "eventid": eventid,
        "objectid": objectid,
        "name": name,
        "severity": severity,
        "acknowledged": acknowledged,
        "clock": "1749999000",
        "r_eventid": r_eventid,
    }


TRIGGERS = [
    {"triggerid": "t1", "hosts": [{"hostid": "1", "host": "web-01", "name": "Web 01"}]},
    {"triggerid": "t2", "hosts": [{"hostid": "2", "host": "db-01", "name": "DB 01"},
                                  {"hostid": "3", "host": "db-02", "name": "DB 02"}]},
    {"triggerid": "t3", "hosts": []},
]


@pytest.fixture
def client(zabbix, monitoring_settings):
    return ZabbixClient(monitoring_settings, transport=zabbix.transport)


async def test_single_trigger_lookup_for_many_problems(client, zabbix):
    triggers = ["t1", "t2", "t3", "t1", "t2", "t1", "t3", "t2", "t1", "t1"]
    zabbix.on("problem.get", [_problem(str(100 - i), t) for i, t in enumerate(triggers)])
    zabbix.on("trigger.get", TRIGGERS)

    problems = await list_problems(client)

    assert len(problems) == 10
    lookups = zabbix.calls_to("trigger.get")
    assert len(lookups) == 1
    assert lookups[0]["params"]["triggerids"] == ["t1", "t2", "t3"]
    assert lookups[0]["params"]["selectHosts"] == ["host", "name"]

    by_trigger = {p.trigger_id: p for p in problems}
    assert by_trigger["t1"].hostname == "Web 01"
    assert by_trigger["t1"].host == "web-01"
    # 多个关联主机时取第一个
    assert by_trigger["t2"].hostname == "DB 01"
    assert by_trigger["t3"].hostname == UNKNOWN_HOST


async def test_problem_query_parameters(client, zabbix):
    await list_problems(client)
    params = zabbix.calls_to("problem.get")[0]["params"]
    assert params["recent"] is True
    assert params["sortfield"] == ["eventid"]
    assert params["sortorder"] == "DESC"


async def test_no_problems_no_trigger_lookup(client, zabbix):
    zabbix.on("problem.get", [])
    assert await list_problems(client) == []
    assert zabbix.calls_to("trigger.get") == []


async def test_trigger_lookup_failure_keeps_problems(client, zabbix):
    zabbix.on("problem.get", [_problem("10", "t1"), _problem("9", "t2")])
    zabbix.on("trigger.get", {"__error__": {"code": -32500, "message": "Application error."}})

    problems = await list_problems(client)

    assert [p.event_id for p in problems] == ["10", "9"]
    assert all(p.hostname == UNKNOWN_HOST and p.host == UNKNOWN_HOST for p in problems)


async def test_problem_query_failure_propagates(client, zabbix):
    zabbix.on("problem.get", {"__error__": {"code": -32602, "message": "Invalid params.", "data": "No permissions."}})
    with pytest.raises(ProtocolError):
        await list_problems(client)


async def test_resolved_problems_filtered_by_default(client, zabbix):
    zabbix.on("problem.get", [_problem("3", "t1"), _problem("2", "t1", r_eventid="55"), _problem("1", "t2")])
    zabbix.on("trigger.get", TRIGGERS)

    active = await list_problems(client)
    assert [p.event_id for p in active] == ["3", "1"]

    everything = await list_problems(client, include_resolved=True)
    assert [p.event_id for p in everything] == ["3", "2", "1"]
    assert everything[1].resolved


async def test_problem_fields(client, zabbix):
    zabbix.on("problem.get", [_problem("7", "t1", name="Disk full", severity="9", acknowledged="1")])
    zabbix.on("trigger.get", TRIGGERS)

    problem = (await list_problems(client))[0]
    assert problem.name == "Disk full"
    assert problem.severity == 5
    assert problem.acknowledged is True
    assert problem.clock == 1749999000


async def test_fetch_trigger_hosts_raises_lookup_gap(client, zabbix):
    zabbix.on("trigger.get", {"__error__": {"code": -32500, "message": "Application error."}})
    with pytest.raises(LookupGap):
        await fetch_trigger_hosts(client, ["t1"])
