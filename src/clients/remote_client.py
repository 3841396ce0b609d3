from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Union

import httpx

from src.shared.observability import get_logger
from src.shared.observability.metrics import (
    backend_request_duration_seconds,
    backend_requests_total,
)

logger = get_logger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30.0


@dataclass(frozen=True)
class BackendOk:
    payload: Any


@dataclass(frozen=True)
class BackendFailure:
    description: str


BackendResult = Union[BackendOk, BackendFailure]


class RemoteClient:
    """Async client for the VFB term info service and the Solr ontology index.

    Every call returns a ``BackendResult``. Network errors, timeouts,
    non-2xx responses and unparseable bodies come back as ``BackendFailure``
    instead of raising.
    """

    def __init__(
        self,
        term_info_url: str,
        solr_url: str,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.term_info_url = term_info_url.rstrip("/")
        self.solr_url = solr_url.rstrip("/")
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "RemoteClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def get_term_info(self, term_id: str) -> BackendResult:
        return await self._get(
            "term_info", f"{self.term_info_url}/get_term_info", {"id": term_id}
        )

    async def run_query(self, term_id: str, query_type: str) -> BackendResult:
        return await self._get(
            "term_info",
            f"{self.term_info_url}/run_query",
            {"id": term_id, "query_type": query_type},
        )

    async def search(self, params: Mapping[str, Any]) -> BackendResult:
        return await self._get("solr", self.solr_url, params)

    async def facet_counts(self, facet_field: str) -> BackendResult:
        """Distinct values of ``facet_field`` across the whole index."""
        params = {
            "q": "*:*",
            "rows": "0",
            "facet": "true",
            "facet.field": facet_field,
            "facet.limit": "-1",
            "facet.mincount": "1",
            "wt": "json",
        }
        return await self._get("solr", self.solr_url, params)

    async def _get(
        self, backend: str, url: str, params: Mapping[str, Any]
    ) -> BackendResult:
        start = time.time()
        try:
            response = await self._client.get(url, params=params)
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPStatusError as exc:
            result: BackendResult = BackendFailure(
                f"HTTP {exc.response.status_code} from {backend} backend: "
                f"{exc.response.reason_phrase or 'error'}"
            )
        except httpx.TimeoutException as exc:
            result = BackendFailure(
                f"Timeout contacting {backend} backend: {type(exc).__name__}"
            )
        except (httpx.HTTPError, httpx.InvalidURL, httpx.StreamError) as exc:
            result = BackendFailure(
                f"Request to {backend} backend failed: {type(exc).__name__}: {exc}"
            )
        except ValueError as exc:
            result = BackendFailure(
                f"Malformed response from {backend} backend: {exc}"
            )
        else:
            result = BackendOk(payload)

        outcome = "ok" if isinstance(result, BackendOk) else "failure"
        backend_requests_total.labels(backend=backend, outcome=outcome).inc()
        backend_request_duration_seconds.labels(backend=backend).observe(
            time.time() - start
        )
        if isinstance(result, BackendFailure):
            logger.warning(
                "Backend request failed",
                backend=backend,
                url=url,
                error=result.description,
            )
        return result
