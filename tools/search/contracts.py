"""Contracts shared by the image search strategies."""

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import httpx

from models.errors import TransportError
from models.illustration import Candidate

USER_AGENT = "AutoIllustration/2.0 (chat transcript illustration; python-httpx)"


def as_dict(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def as_records(value: Any) -> list[dict[str, Any]]:
    """Dict entries of a JSON list (or of a JSON object's values); anything else is dropped."""
    if isinstance(value, dict):
        value = list(value.values())
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, dict)]


def as_text(value: Any) -> str:
    return value if isinstance(value, str) else ""


def as_int(value: Any) -> int:
    """Pixel sizes from third-party payloads; missing or malformed values count as 0."""
    try:
        return max(int(value or 0), 0)
    except (TypeError, ValueError, OverflowError):
        return 0


class ImageSearchStrategy(ABC):
    """
    One image source. ``search`` never raises: transport and payload problems are
    logged by the strategy and reported as an empty list.

    Strategies share an ``httpx.AsyncClient`` when one is injected (tests, the server);
    otherwise each request opens a short-lived client.
    """

    service_name = "search"

    def __init__(self, *, http_client: httpx.AsyncClient | None = None, timeout_s: float = 20.0):
        self._http_client = http_client
        self.timeout_s = timeout_s

    @property
    def is_configured(self) -> bool:
        return True

    @abstractmethod
    async def search(self, query: str, limit: int) -> list[Candidate]:
        """Return at most ``limit`` candidates for ``query`` in source rank order."""

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._http_client is not None:
            yield self._http_client
            return
        async with httpx.AsyncClient(
            timeout=self.timeout_s, headers={"User-Agent": USER_AGENT}
        ) as client:
            yield client

    async def _request_json(self, method: str, url: str, **kwargs: Any) -> dict[str, Any]:
        """
        Perform one request and decode a JSON object body.

        Raises:
            TransportError: network failure, timeout, non-2xx status or non-JSON body
        """
        try:
            async with self._session() as client:
                response = await client.request(method, url, **kwargs)
                response.raise_for_status()
                payload = response.json() if response.content else {}
        except httpx.HTTPStatusError as e:
            raise TransportError(
                e.response.reason_phrase or "request failed",
                service=self.service_name,
                status_code=e.response.status_code,
            ) from e
        except httpx.HTTPError as e:
            raise TransportError(str(e) or type(e).__name__, service=self.service_name) from e
        except ValueError as e:
            raise TransportError(f"invalid JSON body: {e}", service=self.service_name) from e

        if not isinstance(payload, dict):
            raise TransportError("unexpected JSON payload", service=self.service_name)
        return payload
