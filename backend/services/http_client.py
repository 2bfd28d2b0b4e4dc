"""Thin async JSON fetcher on top of httpx.

This is the remote fetch capability every client is built on: it turns an
HTTP exchange into parsed JSON or a classified error. Retrying is the
executor's job, not this one's.
"""

import logging
from typing import Any, Protocol

import httpx

from errors import InvalidUpstreamData, NetworkError, UpstreamHTTPError

logger = logging.getLogger(__name__)


class Fetcher(Protocol):
    async def get_json(self, path: str, params: dict | None = None) -> Any: ...


class JSONFetcher:
    """A minimal client for retrieving JSON from one upstream base URL."""

    def __init__(
        self,
        base_url: str,
        headers: dict[str, str] | None = None,
        timeout: float = 30,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers=headers or {},
            timeout=timeout,
            transport=transport,
            follow_redirects=True,
        )

    async def get_json(self, path: str, params: dict | None = None) -> Any:
        """GET base_url + path and return parsed JSON.

        Raises:
            UpstreamHTTPError on non-2xx responses (status + body) after
                redirects are followed.
            NetworkError on timeouts and connection failures.
            InvalidUpstreamData when the body is not JSON.
        """
        try:
            resp = await self._client.get(path, params=params)
        except httpx.TimeoutException as e:
            raise NetworkError(f"Request to {self.base_url}{path} timed out") from e
        except httpx.TransportError as e:
            raise NetworkError(f"Unable to reach {self.base_url}: {e}") from e
        except httpx.TooManyRedirects as e:
            raise NetworkError(f"Redirect loop at {self.base_url}{path}") from e

        # Redirects are followed; any 1xx/3xx left over is not data
        if not resp.is_success:
            raise UpstreamHTTPError(
                f"HTTP {resp.status_code} from {self.base_url}{path}",
                status=resp.status_code,
                body=_body_of(resp),
            )

        try:
            return resp.json()
        except ValueError as e:
            raise InvalidUpstreamData(f"Non-JSON response from {self.base_url}{path}") from e

    async def aclose(self) -> None:
        await self._client.aclose()


def _body_of(resp: httpx.Response) -> Any:
    try:
        return resp.json()
    except ValueError:
        return resp.text
