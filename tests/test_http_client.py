"""Tests for the httpx-backed JSON fetcher."""

import asyncio

import httpx
import pytest

from errors import InvalidUpstreamData, NetworkError, UpstreamHTTPError
from services.http_client import JSONFetcher


def fetcher_for(handler) -> JSONFetcher:
    return JSONFetcher(
        "https://api.weather.gov/",
        headers={"User-Agent": "ZipWeather/test"},
        transport=httpx.MockTransport(handler),
    )


def get(fetcher: JSONFetcher, path: str, params=None):
    async def go():
        try:
            return await fetcher.get_json(path, params=params)
        finally:
            await fetcher.aclose()

    return asyncio.run(go())


class TestJSONFetcher:
    def test_returns_parsed_json(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["agent"] = request.headers["User-Agent"]
            return httpx.Response(200, json={"properties": {"gridId": "FWD"}})

        data = get(fetcher_for(handler), "/points/33.2841,-96.5740")

        assert data == {"properties": {"gridId": "FWD"}}
        assert seen["url"] == "https://api.weather.gov/points/33.2841,-96.5740"
        assert seen["agent"] == "ZipWeather/test"

    def test_passes_query_params(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.params["point"] == "33.2841,-96.5740"
            return httpx.Response(200, json={"features": []})

        assert get(fetcher_for(handler), "/alerts/active", {"point": "33.2841,-96.5740"}) == {"features": []}

    @pytest.mark.parametrize("status", [404, 429, 500, 503])
    def test_error_status_classified(self, status):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(status, json={"title": "nope"})

        with pytest.raises(UpstreamHTTPError) as exc_info:
            get(fetcher_for(handler), "/points/0,0")

        assert exc_info.value.status == status
        assert exc_info.value.body == {"title": "nope"}

    def test_text_error_body_kept(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(502, text="Bad Gateway")

        with pytest.raises(UpstreamHTTPError) as exc_info:
            get(fetcher_for(handler), "/points/0,0")

        assert exc_info.value.body == "Bad Gateway"

    def test_timeout_is_network_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        with pytest.raises(NetworkError):
            get(fetcher_for(handler), "/points/0,0")

    def test_connection_failure_is_network_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(NetworkError):
            get(fetcher_for(handler), "/points/0,0")

    def test_non_json_body(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text="<html>maintenance</html>")

        with pytest.raises(InvalidUpstreamData):
            get(fetcher_for(handler), "/points/0,0")

    def test_follows_redirect(self):
        """A 301 to the canonical point URL is followed transparently."""
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/points/33.2841,-96.5740":
                return httpx.Response(
                    301,
                    headers={"Location": "/points/33.2841,-96.574"},
                    json={"status": 301, "detail": "Moved"},
                )
            return httpx.Response(200, json={"properties": {"gridId": "FWD"}})

        assert get(fetcher_for(handler), "/points/33.2841,-96.5740") == {"properties": {"gridId": "FWD"}}

    @pytest.mark.parametrize("status", [301, 304])
    def test_unfollowed_redirect_is_error(self, status):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(status, json={"status": status})

        with pytest.raises(UpstreamHTTPError) as exc_info:
            get(fetcher_for(handler), "/points/0,0")

        assert exc_info.value.status == status

    def test_redirect_loop_is_network_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(302, headers={"Location": "/points/0,0"})

        with pytest.raises(NetworkError):
            get(fetcher_for(handler), "/points/0,0")
