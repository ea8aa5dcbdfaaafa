from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from types import TracebackType
from typing import Any

import httpx

from openlibrary_api.core.config import ClientConfig, get_client_config
from openlibrary_api.observability.metrics import increment, observe_ms

logger = logging.getLogger(__name__)

NO_RESPONSE_STATUS = 500
NO_RESPONSE_BODY = b"No Response"


@dataclass(frozen=True)
class RawResponse:
    status: int
    body: bytes
    headers: dict[str, list[str]] = field(default_factory=dict)

    @classmethod
    def no_response(cls) -> RawResponse:
        return cls(status=NO_RESPONSE_STATUS, body=NO_RESPONSE_BODY, headers={})

    @classmethod
    def from_httpx(cls, response: httpx.Response) -> RawResponse:
        headers: dict[str, list[str]] = {}
        for name, value in response.headers.multi_items():
            headers.setdefault(name, []).append(value)
        return cls(status=response.status_code, body=response.content, headers=headers)


class RequestHandler:
    """Performs single GET requests against the configured Open Library endpoint.

    Transport failures never leave :meth:`request`; they come back as a
    synthetic 500 response with the body ``No Response``. A remote 500 and a
    dropped connection are therefore indistinguishable to callers.
    """

    def __init__(
        self,
        config: ClientConfig | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._config = config or get_client_config()
        self._client = httpx.Client(
            base_url=self._config.base_url,
            follow_redirects=False,
            headers={"User-Agent": self._config.user_agent},
            timeout=httpx.Timeout(self._config.timeout_seconds),
            transport=transport,
        )

    @property
    def config(self) -> ClientConfig:
        return self._config

    def request(self, method: str, path: str, params: dict[str, Any] | None = None) -> RawResponse:
        started = time.perf_counter()
        try:
            response = self._client.request(method, path, params=params or None)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raw = RawResponse.no_response()
            logger.warning(
                "openlibrary.request.transport_error",
                extra={
                    "method": method,
                    "path": path,
                    "status_code": raw.status,
                    "error_code": type(exc).__name__,
                },
            )
        else:
            raw = RawResponse.from_httpx(response)

        latency_ms = (time.perf_counter() - started) * 1000.0
        increment("openlibrary.request", labels={"method": method, "status": raw.status})
        observe_ms("openlibrary.latency_ms", latency_ms, labels={"method": method})
        logger.info(
            "openlibrary.request.end",
            extra={
                "method": method,
                "path": path,
                "status_code": raw.status,
                "latency_ms": round(latency_ms, 2),
            },
        )
        return raw

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> RequestHandler:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()
