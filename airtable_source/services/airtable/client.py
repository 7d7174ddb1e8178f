"""
Airtable REST API client: async httpx.

Covers the two endpoints the plugin needs:
  - ``GET /v0/{baseId}/{table}``           list records, cursor-paginated via ``offset``
  - ``GET /v0/meta/bases/{baseId}/tables``  table discovery for interactive setup

The API key is passed in (no global credentials).
"""

from __future__ import annotations

import logging
from typing import Any, AsyncIterator, Dict, List, Optional
from urllib.parse import quote

import httpx
from pydantic import ValidationError
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from airtable_source.config import settings
from airtable_source.schemas.records import AirtableRecord, RecordPage, TableSchema

logger = logging.getLogger(__name__)

RETRYABLE_STATUS = (429, 500, 502, 503, 504)


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------

class AirtableAPIError(Exception):
    """Raised when an Airtable request fails or returns an unexpected body."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response: Any = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.response = response


class AirtableRetryableError(AirtableAPIError):
    """Raised on rate limiting (429) and server errors (5xx)."""


# ---------------------------------------------------------------------------
# AirtableClient: async httpx
# ---------------------------------------------------------------------------

class AirtableClient:
    """Async Airtable client bound to one base."""

    def __init__(
        self,
        api_key: str,
        base_id: str,
        *,
        api_url: Optional[str] = None,
        page_size: Optional[int] = None,
        timeout: Optional[float] = None,
        max_attempts: Optional[int] = None,
        retry_backoff: Optional[float] = None,
    ):
        if not api_key:
            raise ValueError("Airtable API key is required")
        if not base_id:
            raise ValueError("Airtable base id is required")

        self.base_id = base_id
        self.api_url = (api_url or settings.airtable_api_url).rstrip("/")
        self.page_size = page_size or settings.airtable_page_size
        self.max_attempts = max_attempts or settings.fetch_max_attempts
        self.retry_backoff = (
            settings.fetch_retry_backoff if retry_backoff is None else retry_backoff
        )

        # Shared async client (caller must close via ``aclose()``)
        self._http = httpx.AsyncClient(
            base_url=self.api_url,
            timeout=timeout or settings.request_timeout,
            headers={
                "Authorization": f"Bearer {api_key}",
                "Accept": "application/json",
            },
        )

    # -- core request methods --

    async def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """GET ``path`` with opt-in retries of 429/5xx (``max_attempts`` = 1 disables them)."""
        async for attempt in AsyncRetrying(
            retry=retry_if_exception_type(AirtableRetryableError),
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=self.retry_backoff, max=30),
            reraise=True,
        ):
            with attempt:
                return await self._get_once(path, params)
        raise AssertionError("unreachable")  # pragma: no cover

    async def _get_once(self, path: str, params: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        try:
            resp = await self._http.get(path, params=params)
        except httpx.RequestError as exc:
            raise AirtableAPIError(f"Request failed: {exc}") from exc

        if resp.status_code in RETRYABLE_STATUS:
            raise AirtableRetryableError(
                f"HTTP {resp.status_code}: {resp.text[:500]}",
                status_code=resp.status_code,
                response=resp.text,
            )
        try:
            resp.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise AirtableAPIError(
                f"HTTP {exc.response.status_code}: {exc.response.text[:500]}",
                status_code=exc.response.status_code,
                response=exc.response.text,
            ) from exc

        try:
            data = resp.json()
        except ValueError as exc:
            raise AirtableAPIError(
                f"Non-JSON response for {path}", status_code=resp.status_code, response=resp.text
            ) from exc
        if not isinstance(data, dict):
            raise AirtableAPIError(
                f"Unexpected response shape for {path}", status_code=resp.status_code, response=data
            )
        return data

    # -- records --

    def _table_path(self, table: str) -> str:
        return f"/v0/{self.base_id}/{quote(table, safe='')}"

    async def list_record_pages(
        self,
        table: str,
        *,
        view: Optional[str] = None,
        fields: Optional[List[str]] = None,
    ) -> AsyncIterator[List[AirtableRecord]]:
        """Yield pages of records from ``table`` in source order.

        Follows the ``offset`` cursor until the service stops returning one.
        A failing page raises ``AirtableAPIError``; pages already yielded stay valid.
        """
        offset: Optional[str] = None
        while True:
            params: Dict[str, Any] = {"pageSize": self.page_size}
            if view:
                params["view"] = view
            if fields:
                params["fields[]"] = list(fields)
            if offset:
                params["offset"] = offset

            data = await self._get(self._table_path(table), params=params)
            try:
                page = RecordPage.model_validate(data)
            except ValidationError as exc:
                raise AirtableAPIError(
                    f"Unexpected record shape in table '{table}': {exc.error_count()} invalid values",
                    response=data,
                ) from exc

            logger.debug(f"Fetched page of {len(page.records)} records from '{table}'")
            yield page.records

            if not page.offset:
                break
            offset = page.offset

    # -- metadata --

    async def list_tables(self) -> List[TableSchema]:
        """List the tables of the bound base (requires the ``schema.bases:read`` scope)."""
        data = await self._get(f"/v0/meta/bases/{self.base_id}/tables")
        tables = data.get("tables", [])
        if not isinstance(tables, list):
            raise AirtableAPIError("Unexpected tables response", response=data)
        try:
            return [TableSchema.model_validate(t) for t in tables]
        except ValidationError as exc:
            raise AirtableAPIError("Unexpected table schema shape", response=data) from exc

    async def aclose(self) -> None:
        await self._http.aclose()

    # context-manager support
    async def __aenter__(self) -> "AirtableClient":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.aclose()
