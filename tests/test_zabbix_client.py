"""Zabbix JSON-RPC 客户端测试。"""
import httpx
import pytest

from hostwatch.core.exceptions import ConfigurationError, ProtocolError, RpcError, TransportError
from hostwatch.schemas.settings import MonitoringSettings
from hostwatch.services.zabbix_client import ZabbixClient


@pytest.fixture
def client(zabbix, monitoring_settings):
    return ZabbixClient(monitoring_settings, timeout=5, transport=zabbix.transport)


class TestEnvelope:
    async def test_request_envelope(self, client, zabbix):
        zabbix.on("host.get", [{"hostid": "1"}])
        result = await client.call("host.get", {"output": ["hostid"]})

        assert result == [{"hostid": "1"}]
        body = zabbix.calls[0]["body"]
        assert body["jsonrpc"] == "2.0"
        assert body["method"] == "host.get"
        assert body["params"] == {"output": ["hostid"]}
        assert body["id"] == 1

    async def test_default_params_is_empty_object(self, client, zabbix):
        zabbix.on("apiinfo.version", "7.0.3")
        await client.call("apiinfo.version", authenticated=False)
        assert zabbix.calls[0]["params"] == {}

    async def test_bearer_token_and_content_type(self, client, zabbix):
        await client.call("host.get")
        headers = zabbix.calls[0]["headers"]
        assert headers["Authorization"] == "Bearer secret-token"
        assert headers["Content-Type"] == "application/json-rpc"

    async def test_unauthenticated_call_has_no_token(self, client, zabbix):
        zabbix.on("apiinfo.version", "6.4.0")
        assert await client.call("apiinfo.version", {}, authenticated=False) == "6.4.0"
        assert "Authorization" not in zabbix.calls[0]["headers"]

    @pytest.mark.parametrize("url", [
        "https://zabbix.test",
        "https://zabbix.test/",
        "https://zabbix.test/api_jsonrpc.php",
    ])
    async def test_endpoint_normalized(self, zabbix, url):
        settings = MonitoringSettings(zabbix_url=url, zabbix_api_token="t")
        await ZabbixClient(settings, transport=zabbix.transport).call("host.get")
        assert zabbix.calls[0]["url"] == "https://zabbix.test/api_jsonrpc.php"


class TestTransportErrors:
    async def test_http_500(self, client, zabbix):
        zabbix.on("host.get", httpx.Response(500, text="boom"))
        with pytest.raises(TransportError) as exc_info:
            await client.call("host.get")
        assert exc_info.value.message == "Zabbix API request failed: 500 Internal Server Error"
        assert exc_info.value.status_code == 502

    async def test_timeout(self, monitoring_settings):
        def handler(request):
            raise httpx.ConnectTimeout("timed out", request=request)

        client = ZabbixClient(monitoring_settings, timeout=3, transport=httpx.MockTransport(handler))
        with pytest.raises(TransportError, match="timed out after 3s"):
            await client.call("host.get")

    async def test_connection_refused(self, monitoring_settings):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = ZabbixClient(monitoring_settings, transport=httpx.MockTransport(handler))
        with pytest.raises(TransportError, match="connection refused"):
            await client.call("host.get")

    async def test_non_json_body(self, client, zabbix):
        zabbix.on("host.get", httpx.Response(200, text="<html>maintenance</html>"))
        with pytest.raises(TransportError, match="non-JSON"):
            await client.call("host.get")

    async def test_invalid_url_is_configuration_error(self, zabbix):
        settings = MonitoringSettings(zabbix_url="http://[::1", zabbix_api_token="t")
        with pytest.raises(ConfigurationError, match="Invalid Zabbix URL") as exc_info:
            await ZabbixClient(settings, transport=zabbix.transport).call("host.get")
        assert exc_info.value.status_code == 400
        assert exc_info.value.detail.startswith("http://[::1/api_jsonrpc.php")
        assert zabbix.calls == []


class TestProtocolErrors:
    async def test_error_data_preferred(self, client, zabbix):
        zabbix.on("host.get", {"__error__": {"code": -32602, "message": "Invalid params.", "data": "Not authorized."}})
        with pytest.raises(ProtocolError) as exc_info:
            await client.call("host.get")
        assert exc_info.value.message == "Zabbix API error: Not authorized."
        assert exc_info.value.detail == "Invalid params."

    async def test_error_message_fallback(self, client, zabbix):
        zabbix.on("item.get", {"__error__": {"code": -32500, "message": "Application error."}})
        with pytest.raises(ProtocolError, match="Zabbix API error: Application error."):
            await client.call("item.get")

    async def test_missing_result(self, client, zabbix):
        zabbix.on("host.get", httpx.Response(200, json={"jsonrpc": "2.0", "id": 1}))
        with pytest.raises(ProtocolError, match="Malformed"):
            await client.call("host.get")

    def test_both_are_rpc_errors(self):
        assert issubclass(TransportError, RpcError)
        assert issubclass(ProtocolError, RpcError)
