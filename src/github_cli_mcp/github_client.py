"""GitHub REST client wrapper.

Provides:
- bearer-token auth from host configuration
- fixed API host and no-redirect behavior
- bounded retries with backoff for 429/5xx
- finite timeouts
- translation of every failure into RemoteApiError
"""

from __future__ import annotations

import asyncio
import base64
import json
import logging
from dataclasses import dataclass
from typing import Any

import httpx

from .config import LimitsConfig
from .errors import CONFIG_ERROR, SafeError, remote_api_error

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class RequestBudget:
    """Budget for a single tool call."""

    total_timeout_s: float


class GitHubClient:
    """Minimal GitHub REST client."""

    def __init__(
        self,
        *,
        token: str,
        limits: LimitsConfig,
        api_base_url: str = "https://api.github.com",
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Create a GitHub REST client.

        Args:
            token: Bearer credential supplied by the host.
            limits: Timeouts/retry limits.
            api_base_url: Must be https://api.github.com (enforced).
            transport: Optional httpx transport for tests.
        """
        self._token = token
        self._limits = limits
        self._api_base_url = api_base_url.rstrip("/")
        self._transport = transport

        if self._api_base_url != "https://api.github.com":
            raise SafeError(code=CONFIG_ERROR, message="Only https://api.github.com is allowed")

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._token}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
            "User-Agent": "github-cli-mcp",
        }

    def _compute_backoff_s(self, attempt_index: int) -> float:
        # attempt_index: 1 for first retry, 2 for second retry...
        base = min(self._limits.max_backoff_s, 0.5 * (2 ** (attempt_index - 1)))
        jitter = min(0.05, 0.01 * attempt_index)
        return min(self._limits.max_backoff_s, base + jitter)

    def _is_retryable(self, status_code: int | None, exc: Exception | None) -> bool:
        if exc is not None:
            return isinstance(exc, (httpx.TimeoutException, httpx.TransportError))
        if status_code is None:
            return False
        if status_code == 429:
            return True
        return 500 <= status_code <= 599

    @staticmethod
    def _upstream_message(resp: httpx.Response) -> str | None:
        try:
            payload = resp.json()
        except ValueError:
            return None
        if not isinstance(payload, dict) or not isinstance(payload.get("message"), str):
            return None
        message = payload["message"]
        errors = payload.get("errors")
        if isinstance(errors, list):
            # Validation errors carry either a message or only a machine code such as already_exists.
            extra = [
                e.get("message") or e.get("code")
                for e in errors
                if isinstance(e, dict) and isinstance(e.get("message") or e.get("code"), str)
            ]
            if extra:
                message = f"{message}: {'; '.join(extra)}"
        return message

    async def request_json(
        self,
        *,
        method: str,
        path: str,
        json_body: dict | None = None,
        params: dict[str, str] | None = None,
        budget: RequestBudget,
    ) -> object:
        """Make a request and return decoded JSON.

        GitHub APIs may return either an object (dict) or an array (list).
        Empty bodies (204) decode to None.
        """
        url = f"{self._api_base_url}{path}"

        timeout = httpx.Timeout(
            timeout=min(budget.total_timeout_s, self._limits.total_timeout_s),
            connect=self._limits.connect_timeout_s,
            read=self._limits.read_timeout_s,
        )

        async with httpx.AsyncClient(
            follow_redirects=False,
            timeout=timeout,
            transport=self._transport,
        ) as client:
            for attempt in range(1, self._limits.max_attempts + 1):
                try:
                    resp = await client.request(
                        method,
                        url,
                        headers=self._headers(),
                        json=json_body,
                        params=params,
                    )
                except httpx.HTTPError as exc:
                    if attempt < self._limits.max_attempts and self._is_retryable(None, exc):
                        await asyncio.sleep(self._compute_backoff_s(attempt))
                        continue
                    logger.warning("GitHub %s %s failed: %s", method, path, type(exc).__name__)
                    raise remote_api_error(status_code=None, upstream_message="Network request failed") from exc

                if resp.status_code >= 400:
                    if attempt < self._limits.max_attempts and self._is_retryable(resp.status_code, None):
                        await asyncio.sleep(self._compute_backoff_s(attempt))
                        continue
                    raise remote_api_error(
                        status_code=resp.status_code,
                        upstream_message=self._upstream_message(resp),
                    )

                if resp.status_code == 204 or not resp.content:
                    return None
                try:
                    return resp.json()
                except json.JSONDecodeError as exc:
                    raise remote_api_error(
                        status_code=resp.status_code,
                        upstream_message="GitHub returned invalid JSON",
                    ) from exc

        raise remote_api_error(status_code=None, upstream_message="Request attempts exhausted")

    async def get_file_sha(self, *, owner: str, repo: str, path: str, budget: RequestBudget) -> str | None:
        """Return the blob sha of an existing file, or None when it does not exist."""
        try:
            data = await self.request_json(
                method="GET",
                path=f"/repos/{owner}/{repo}/contents/{path}",
                budget=budget,
            )
        except SafeError as err:
            if err.status_code == 404:
                return None
            raise
        if isinstance(data, dict) and isinstance(data.get("sha"), str):
            return data["sha"]
        return None

    async def put_file(
        self,
        *,
        owner: str,
        repo: str,
        path: str,
        content: str,
        message: str,
        budget: RequestBudget,
        sha: str | None = None,
    ) -> dict[str, Any]:
        """Create or update a file through the contents API."""
        payload: dict[str, Any] = {
            "message": message,
            "content": base64.b64encode(content.encode("utf-8")).decode("ascii"),
        }
        if sha is not None:
            payload["sha"] = sha
        data = await self.request_json(
            method="PUT",
            path=f"/repos/{owner}/{repo}/contents/{path}",
            json_body=payload,
            budget=budget,
        )
        if not isinstance(data, dict):
            raise remote_api_error(status_code=None, upstream_message="Unexpected contents response")
        return data
