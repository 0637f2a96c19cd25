import pytest

from coinbridge.errors import NetworkError
from coinbridge.utils import http


class TestHttpRequest:

    @pytest.mark.asyncio
    async def test_returns_body(self, fake_http):
        fake_http.add("GET", "/ping", "pong")
        assert await http.http_get_request("https://x.test/ping", params={"a": "1"}) == "pong"
        assert fake_http.calls[0]["params"] == {"a": "1"}

    @pytest.mark.asyncio
    async def test_retries_server_errors(self, fake_http):
        fake_http.add("GET", "/flaky", "busy", status=503).add("GET", "/flaky", '{"ok":1}')

        body = await http.http_request("GET", "https://x.test/flaky")

        assert body == '{"ok":1}'
        assert len(fake_http.calls) == 2

    @pytest.mark.asyncio
    async def test_client_error_body_returned(self, fake_http):
        fake_http.add("POST", "/order", '{"errorCode": 400, "message": "bad"}', status=400)
        body = await http.http_request("POST", "https://x.test/order", retry=False)
        assert "bad" in body

    @pytest.mark.asyncio
    async def test_no_retry_raises_network_error(self, fake_http):
        fake_http.add("POST", "/order", "down", status=502)

        with pytest.raises(NetworkError):
            await http.http_request("POST", "https://x.test/order", retry=False)
        assert len(fake_http.calls) == 1

    @pytest.mark.asyncio
    async def test_gives_up_after_max_retries(self, fake_http):
        fake_http.add("GET", "/down", "rate limited", status=429)

        with pytest.raises(NetworkError, match="429"):
            await http.http_request("GET", "https://x.test/down")
        assert len(fake_http.calls) == http.NET_MAX_RETRIES


def test_external_ip_cached(fake_http):
    assert http.get_external_ip() == "10.0.0.7"
