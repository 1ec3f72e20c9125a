"""HTTP request client used to fetch the payload under test."""

from __future__ import annotations

import enum
import time
from dataclasses import dataclass, field
from typing import Any, Mapping

import httpx

from schemaprobe.telemetry.logger import get_logger

from .types import BODY_METHODS, RequestOptions

_LOGGER = get_logger("schemaprobe.request")


class RequestFailureKind(str, enum.Enum):
    NO_RESPONSE = "NoResponse"
    SETUP_ERROR = "SetupError"


@dataclass(slots=True)
class RequestResponse:
    """A received response; any HTTP status counts, including 4xx and 5xx."""

    status: int
    status_text: str
    headers: dict[str, str] = field(default_factory=dict)
    data: Any = None
    elapsed_ms: float = 0.0


@dataclass(slots=True)
class RequestFailure:
    """The request never produced a response."""

    kind: RequestFailureKind
    detail: str


def _decode_body(response: httpx.Response) -> Any:
    if not response.content:
        return ""
    try:
        return response.json()
    except (ValueError, RecursionError):
        return response.text


class RequestClient:
    """Execute one request and classify the outcome without raising."""

    def __init__(
        self,
        options: RequestOptions | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.options = options or RequestOptions()
        self._transport = transport

    async def execute(
        self,
        url: str,
        method: str,
        headers: Mapping[str, str] | None = None,
        body: Any = None,
    ) -> RequestResponse | RequestFailure:
        verb = method.upper()
        merged_headers = {**self.options.default_headers, **dict(headers or {})}
        request_kwargs: dict[str, Any] = {"headers": merged_headers}
        if verb in BODY_METHODS and body is not None:
            request_kwargs["json"] = body
        started = time.perf_counter()
        try:
            async with httpx.AsyncClient(
                timeout=self.options.timeout,
                follow_redirects=self.options.follow_redirects,
                transport=self._transport,
            ) as client:
                response = await client.request(verb, url, **request_kwargs)
        except (httpx.InvalidURL, httpx.UnsupportedProtocol) as exc:
            return self._failure(RequestFailureKind.SETUP_ERROR, str(exc), url)
        except httpx.RequestError as exc:
            # Also covers redirect loops and undecodable bodies.
            return self._failure(RequestFailureKind.NO_RESPONSE, str(exc) or type(exc).__name__, url)
        except (TypeError, ValueError) as exc:
            return self._failure(RequestFailureKind.SETUP_ERROR, str(exc), url)
        elapsed_ms = (time.perf_counter() - started) * 1000.0
        _LOGGER.info(
            "response received | method=%s url=%s status=%d elapsed_ms=%.1f",
            verb,
            url,
            response.status_code,
            elapsed_ms,
        )
        return RequestResponse(
            status=response.status_code,
            status_text=response.reason_phrase,
            headers=dict(response.headers),
            data=_decode_body(response),
            elapsed_ms=elapsed_ms,
        )

    @staticmethod
    def _failure(kind: RequestFailureKind, detail: str, url: str) -> RequestFailure:
        _LOGGER.warning("request failed | kind=%s url=%s detail=%s", kind.value, url, detail)
        return RequestFailure(kind=kind, detail=detail)


__all__ = ["RequestClient", "RequestFailure", "RequestFailureKind", "RequestResponse"]
