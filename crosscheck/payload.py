"""Tagged results for decoding and fetching external JSON payloads."""

from __future__ import annotations

import json
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional, Union

import httpx


@dataclass(frozen=True)
class Ok:
    """A decoded payload."""
    value: Any
    status_code: Optional[int] = None
    duration_ms: int = 0

    ok = True

    def and_then(self, fn: Callable[[Any], "Result"]) -> "Result":
        return fn(self.value)

    def unwrap(self) -> Any:
        return self.value


@dataclass(frozen=True)
class ParseError:
    """The payload was not valid JSON."""
    reason: str
    # Set when the body came from an HTTP response
    status_code: Optional[int] = None
    duration_ms: int = 0

    ok = False

    def and_then(self, fn: Callable[[Any], "Result"]) -> "Result":
        return self

    def unwrap(self) -> Any:
        raise ValueError(self.reason)


@dataclass(frozen=True)
class FetchError:
    """The request failed before a usable body was received."""
    reason: str
    status_code: Optional[int] = None
    duration_ms: int = 0

    ok = False

    def and_then(self, fn: Callable[[Any], "Result"]) -> "Result":
        return self

    def unwrap(self) -> Any:
        raise ValueError(self.reason)


Result = Union[Ok, ParseError, FetchError]


def parse_payload(text: str | bytes) -> Ok | ParseError:
    """Decode a JSON document."""
    try:
        return Ok(json.loads(text))
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        return ParseError(f"Invalid JSON: {e}")


async def send_request(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    **kwargs
) -> Ok | FetchError:
    """Issue one request; transport errors and non-2xx responses become FetchError."""
    start = time.perf_counter()
    try:
        response = await client.request(method, url, **kwargs)
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        duration_ms = int((time.perf_counter() - start) * 1000)
        return FetchError(str(e) or type(e).__name__, duration_ms=duration_ms)

    duration_ms = int((time.perf_counter() - start) * 1000)
    if not response.is_success:
        return FetchError(f"HTTP {response.status_code}", response.status_code, duration_ms)
    return Ok(response.content, response.status_code, duration_ms)


async def fetch_json(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    **kwargs
) -> Ok | ParseError | FetchError:
    """Fetch a URL and decode its body, keeping status and timing on success."""
    response = await send_request(client, method, url, **kwargs)
    return response.and_then(
        lambda body: _with_meta(parse_payload(body), response)
    )


def _with_meta(decoded: Ok | ParseError, response: Ok) -> Ok | ParseError:
    if isinstance(decoded, Ok):
        return Ok(decoded.value, response.status_code, response.duration_ms)
    return ParseError(decoded.reason, response.status_code, response.duration_ms)
