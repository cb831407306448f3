"""FunnelDash — RedTrack API Client.

Handles authentication, retry logic and rate limiting for the ``/report``
endpoint.
"""

import asyncio
from datetime import date
from typing import Any, Dict, List, Optional

import httpx

from funneldash.config import settings
from funneldash.core.logging import get_logger

logger = get_logger("redtrack.client")

REPORT_PATH = "/report"
MAX_RETRIES = 3
RETRY_BASE_DELAY = 2  # seconds


class RedTrackAPIError(Exception):
    """Raised when the RedTrack API returns an error or cannot be reached."""

    def __init__(self, message: str, status_code: int = 0):
        self.status_code = status_code
        super().__init__(message)


class RedTrackClient:
    """Async HTTP client for the RedTrack reporting API."""

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_key = api_key or settings.redtrack_api_key
        self.base_url = (base_url or settings.redtrack_api_url).rstrip("/")
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self._sleep = asyncio.sleep

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url, timeout=30.0, transport=self._transport
            )
        return self._client

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()

    # ── Core Request Method ──

    async def _request(self, path: str, params: Dict[str, Any] | None = None) -> Any:
        """GET with retry on 429, 5xx and transport errors."""
        if not self.api_key:
            raise RedTrackAPIError("REDTRACK_API_KEY is not configured")

        params = dict(params or {})
        params["api_key"] = self.api_key
        client = await self._get_client()

        for attempt in range(1, MAX_RETRIES + 1):
            wait = RETRY_BASE_DELAY * (2 ** (attempt - 1))
            try:
                resp = await client.get(path, params=params)

                # Rate limited
                if resp.status_code == 429:
                    if attempt < MAX_RETRIES:
                        logger.warning(
                            f"Rate limited (429). Retrying in {wait}s (attempt {attempt}/{MAX_RETRIES})"
                        )
                        await self._sleep(wait)
                        continue
                    raise RedTrackAPIError("Rate limit exceeded", 429)

                resp.raise_for_status()
                return resp.json()

            except httpx.HTTPStatusError as e:
                status = e.response.status_code
                if attempt < MAX_RETRIES and status >= 500:
                    logger.warning(f"Server error {status}. Retrying in {wait}s")
                    await self._sleep(wait)
                    continue
                raise RedTrackAPIError(_error_message(e.response), status) from e

            except httpx.RequestError as e:
                if attempt < MAX_RETRIES:
                    logger.warning(f"Request error: {e}. Retrying in {wait}s")
                    await self._sleep(wait)
                    continue
                raise RedTrackAPIError(
                    f"Connection failed after {MAX_RETRIES} retries: {e}"
                ) from e

            except ValueError as e:
                raise RedTrackAPIError(f"Invalid JSON from RedTrack: {e}") from e

        raise RedTrackAPIError("Max retries exhausted")

    # ── Reports ──

    async def get_report(self, params: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Fetch one report page; accepts both a bare list and ``{"items": [...]}``."""
        data = await self._request(REPORT_PATH, params)
        if isinstance(data, dict):
            data = data.get("items") or []
        if not isinstance(data, list):
            raise RedTrackAPIError("Unexpected report payload from RedTrack")
        return [row for row in data if isinstance(row, dict)]

    # ── Pagination ──

    async def get_report_pages(
        self,
        params: Dict[str, Any],
        page_size: int | None = None,
        max_pages: int | None = None,
    ) -> List[Dict[str, Any]]:
        """Fetch every page of a report, stopping at the first short page.

        Raises ``RedTrackAPIError`` rather than returning a truncated report
        when the page cap is reached.
        """
        page_size = page_size or settings.redtrack_page_size
        max_pages = max_pages or settings.redtrack_max_pages
        all_rows: List[Dict[str, Any]] = []

        for page in range(1, max_pages + 1):
            rows = await self.get_report({**params, "page": page, "per": page_size})
            all_rows.extend(rows)
            if len(rows) < page_size:
                break
        else:
            raise RedTrackAPIError(
                f"Report still incomplete after {max_pages} pages of {page_size} rows"
            )

        if page > 1:
            logger.info(f"Fetched {len(all_rows)} report rows across {page} pages")
        return all_rows

    # ── Connection Probe ──

    async def test_connection(self) -> bool:
        """Request today's report grouped by campaign; True on success, never raises."""
        today = date.today().isoformat()
        try:
            await self._request(
                REPORT_PATH,
                {
                    "group": "campaign",
                    "date_from": today,
                    "date_to": today,
                    "total": "false",
                },
            )
            logger.info("RedTrack connection test: SUCCESS")
            return True
        except RedTrackAPIError as e:
            logger.error(f"RedTrack connection test: FAILED — {e}")
            return False


def _error_message(response: httpx.Response) -> str:
    """Upstream error message from a JSON body, else the status line."""
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        message = body.get("message") or body.get("error")
        if isinstance(message, dict):
            message = message.get("message")
        if message:
            return str(message)
    return f"HTTP {response.status_code}: {response.reason_phrase}"
