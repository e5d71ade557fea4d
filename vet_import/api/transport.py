from __future__ import annotations

import json
import logging
from typing import Any

import httpx

from .rate_limiter import RateLimiter

"""GraphQL over HTTP transport (form-encoded POST).

The Vetspire endpoint accepts ``query`` and ``variables`` as form fields and the
raw API key in the Authorization header. Every call passes through the run's
RateLimiter before the request is issued.
"""

__all__ = [
    "ApiError",
    "GraphQLTransport",
]

logger = logging.getLogger(__name__)


class ApiError(Exception):
    """Raised for HTTP failures, timeouts and GraphQL ``errors`` payloads."""


class GraphQLTransport:
    def __init__(
        self,
        url: str,
        api_key: str,
        *,
        rate_limiter: RateLimiter | None = None,
        timeout_sec: float = 30.0,
        verbose: bool = False,
        http_client: httpx.Client | None = None,
    ) -> None:
        self.url = url
        self.api_key = api_key
        self.rate_limiter = rate_limiter or RateLimiter()
        self.verbose = verbose
        self._client = http_client or httpx.Client(timeout=timeout_sec)

    def execute(self, query: str, variables: dict[str, Any] | None = None) -> dict[str, Any]:
        """POST one GraphQL document and return its ``data`` object."""
        form = {"query": query}
        if variables:
            form["variables"] = json.dumps(variables)
        if self.verbose:
            logger.debug("GraphQL request query=%s variables=%s", " ".join(query.split()), form.get("variables", "{}"))

        self.rate_limiter.wait()
        try:
            response = self._client.post(
                self.url,
                data=form,
                headers={
                    "Content-Type": "application/x-www-form-urlencoded",
                    "Authorization": self.api_key,
                },
            )
        except httpx.TimeoutException as e:
            raise ApiError(f"request timed out: {e}") from e
        except httpx.HTTPError as e:
            raise ApiError(f"request failed: {e}") from e

        if response.status_code >= 400:
            raise ApiError(f"HTTP {response.status_code}: {response.reason_phrase}")
        try:
            body = response.json()
        except ValueError as e:
            raise ApiError(f"invalid JSON response: {e}") from e
        if self.verbose:
            logger.debug("GraphQL response %s", json.dumps(body, ensure_ascii=False))
        if not isinstance(body, dict):
            raise ApiError(f"unexpected response type: {type(body).__name__}")
        if body.get("errors"):
            raise ApiError(f"GraphQL Error: {json.dumps(body['errors'], ensure_ascii=False)}")
        data = body.get("data")
        return data if isinstance(data, dict) else {}

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> GraphQLTransport:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()
