"""httpx-backed implementation of the outbound HTTP port."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import httpx

from claims_pipeline.domain.errors import ConnectorError, ErrorKind
from claims_pipeline.domain.network import HttpResponse
from claims_pipeline.domain.ports import HttpClient

_DEFAULT_USER_AGENT = "Claims-Pipeline/1.0"


class HttpxClient(HttpClient):
    """Send requests with httpx and normalize transport failures."""

    def __init__(
        self,
        timeout_seconds: float = 30.0,
        user_agent: str = _DEFAULT_USER_AGENT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._timeout_seconds = timeout_seconds
        self._user_agent = user_agent
        self._transport = transport

    async def request(
        self,
        method: str,
        url: str,
        *,
        headers: Mapping[str, str] | None = None,
        json: Any = None,
        data: Mapping[str, str] | None = None,
        params: Mapping[str, str] | None = None,
    ) -> HttpResponse:
        request_headers = {"User-Agent": self._user_agent}
        if headers:
            request_headers.update(headers)
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout_seconds,
                transport=self._transport,
            ) as http_client:
                response = await http_client.request(
                    method,
                    url,
                    headers=request_headers,
                    json=json,
                    data=None if data is None else dict(data),
                    params=None if params is None else dict(params),
                )
        except httpx.TimeoutException as exc:
            raise ConnectorError(
                ErrorKind.TIMEOUT,
                f"{method} {url} timed out after {self._timeout_seconds}s",
                {"url": url},
            ) from exc
        except httpx.HTTPError as exc:
            raise ConnectorError(
                ErrorKind.TRANSPORT_ERROR,
                f"{method} {url} failed: {exc}",
                {"url": url},
            ) from exc
        return self._to_response(response)

    def _to_response(self, response: httpx.Response) -> HttpResponse:
        text = response.text
        try:
            body: Any = response.json()
        except ValueError:
            body = None
        return HttpResponse(
            status_code=response.status_code,
            headers=dict(response.headers),
            body=body,
            text=text,
        )


__all__ = ["HttpxClient"]
