"""
Supabase REST (PostgREST) client for table reads/writes and RPC calls.
Row-level security is enforced by the backend: every call carries the caller's
access token, falling back to the anon key when none is given.
Low-level client; data modules build on top of it.
"""

import asyncio
from typing import Any

import httpx

from rescue_timeline.config import settings
from rescue_timeline.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

# Request retry configuration
MAX_RETRIES = 3
BACKOFF_FACTOR = 0.5
RETRY_STATUS_CODES = {429, 500, 502, 503, 504}

RLS_ERROR_CODE = "42501"


class SupabaseError(Exception):
    """Error returned by PostgREST or raised while talking to it."""

    def __init__(
        self,
        message: str,
        code: str | None = None,
        status_code: int | None = None,
        details: str | None = None,
        hint: str | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details
        self.hint = hint

    def is_rls_error(self) -> bool:
        return (
            self.code == RLS_ERROR_CODE
            or "rls" in (self.message or "").lower()
            or "rls" in (self.details or "").lower()
        )

    def is_missing_rpc(self, rpc_name: str | None = None) -> bool:
        msg = (self.message or "").lower()
        if "function" not in msg or "does not exist" not in msg:
            return False
        return not rpc_name or rpc_name.lower() in msg


def format_supabase_error(error: SupabaseError, context: str | None = None) -> str:
    """Turn a Supabase error into a short human-readable message."""
    prefix = f"{context}: " if context else ""

    if error.is_rls_error():
        return (
            f"{prefix}Access denied by RLS. Make sure you are a member of the selected org "
            f"and that the table policies are applied. ({error.message})"
        )

    if error.is_missing_rpc():
        return (
            f"{prefix}RPC is missing on the backend. Apply the latest migrations. "
            f"({error.message})"
        )

    return f"{prefix}{error.message}"


class SupabaseClient:
    """
    Thin async client over PostgREST.

    Handles auth headers, retry with backoff on transient failures and mapping
    of error bodies into `SupabaseError`.
    """

    def __init__(
        self,
        base_url: str,
        anon_key: str,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.rest_url = f"{self.base_url}/rest/v1"
        self._anon_key = anon_key
        self._client = self._create_client(timeout, transport)

    def _create_client(
        self, timeout: float, transport: httpx.AsyncBaseTransport | None
    ) -> httpx.AsyncClient:
        limits = httpx.Limits(max_keepalive_connections=20, max_connections=50)
        return httpx.AsyncClient(
            timeout=httpx.Timeout(timeout), limits=limits, transport=transport
        )

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    def _headers(self, access_token: str | None, prefer: str | None = None) -> dict[str, str]:
        headers = {
            "apikey": self._anon_key,
            "Authorization": f"Bearer {access_token or self._anon_key}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if prefer:
            headers["Prefer"] = prefer
        return headers

    async def _request_with_retry(
        self, method: str, url: str, *, retry: bool = True, **kwargs
    ) -> httpx.Response:
        """
        Execute an HTTP request with retry and backoff.

        With `retry=False` the request is sent exactly once; inserts use it since
        the row may already be committed when a 5xx or dropped connection comes back.
        """
        max_attempts = MAX_RETRIES if retry else 1
        for attempt in range(1, max_attempts + 1):
            try:
                response = await self._client.request(method, url, **kwargs)
                if response.status_code in RETRY_STATUS_CODES and attempt < max_attempts:
                    backoff = BACKOFF_FACTOR * (2 ** (attempt - 1))
                    logger.debug(
                        "Supabase retrying request",
                        attempt=attempt,
                        status_code=response.status_code,
                        backoff_seconds=backoff,
                    )
                    await asyncio.sleep(backoff)
                    continue
                return response
            except httpx.RequestError as e:
                if attempt >= max_attempts:
                    raise SupabaseError(f"Supabase request failed: {e}") from e
                backoff = BACKOFF_FACTOR * (2 ** (attempt - 1))
                logger.debug(
                    "Supabase request error, retrying",
                    attempt=attempt,
                    error=str(e),
                    backoff_seconds=backoff,
                )
                await asyncio.sleep(backoff)
        raise SupabaseError("Supabase retry loop exhausted")

    def _handle_response(self, response: httpx.Response, operation: str) -> Any:
        """
        Validate a PostgREST response.

        Returns:
            Parsed JSON body (None for empty bodies)

        Raises:
            SupabaseError: If the response is an error
        """
        if response.is_success:
            if not response.content:
                return None
            try:
                return response.json()
            except ValueError as e:
                logger.error("Failed to parse Supabase response", operation=operation, error=str(e))
                raise SupabaseError(f"Invalid response format: {e}") from e

        try:
            error_data = response.json() if response.content else {}
        except ValueError:
            error_data = {}
        if not isinstance(error_data, dict):
            error_data = {}

        message = error_data.get("message") or f"Supabase error (HTTP {response.status_code})"
        logger.error(
            "Supabase request failed",
            operation=operation,
            status_code=response.status_code,
            code=error_data.get("code"),
            error_message=message,
        )
        raise SupabaseError(
            message,
            code=error_data.get("code"),
            status_code=response.status_code,
            details=error_data.get("details"),
            hint=error_data.get("hint"),
        )

    async def rpc(
        self, name: str, params: dict[str, Any], *, access_token: str | None = None
    ) -> Any:
        """Call a Postgres function exposed through PostgREST."""
        url = f"{self.rest_url}/rpc/{name}"
        logger.debug("Calling Supabase RPC", rpc=name)
        response = await self._request_with_retry(
            "POST", url, json=params, headers=self._headers(access_token)
        )
        return self._handle_response(response, f"rpc:{name}")

    async def select(
        self,
        table: str,
        *,
        columns: str = "*",
        filters: dict[str, Any] | None = None,
        order: str | None = None,
        limit: int | None = None,
        access_token: str | None = None,
    ) -> list[dict[str, Any]]:
        """
        Read rows from a table.

        Args:
            table: Table name
            columns: PostgREST select expression
            filters: Column equality filters (`{"org_id": "..."}`)
            order: PostgREST order expression (`created_at.desc`)
            limit: Maximum rows to return
            access_token: Caller's JWT
        """
        params: dict[str, Any] = {"select": columns}
        for column, value in (filters or {}).items():
            params[column] = f"eq.{value}"
        if order:
            params["order"] = order
        if limit is not None:
            params["limit"] = str(limit)

        response = await self._request_with_retry(
            "GET", f"{self.rest_url}/{table}", params=params, headers=self._headers(access_token)
        )
        data = self._handle_response(response, f"select:{table}")
        return data or []

    async def insert(
        self, table: str, row: dict[str, Any], *, access_token: str | None = None
    ) -> dict[str, Any] | None:
        """Insert one row and return its representation."""
        response = await self._request_with_retry(
            "POST",
            f"{self.rest_url}/{table}",
            retry=False,
            json=row,
            headers=self._headers(access_token, prefer="return=representation"),
        )
        data = self._handle_response(response, f"insert:{table}")
        if isinstance(data, list):
            return data[0] if data else None
        return data

    async def upsert(
        self,
        table: str,
        rows: list[dict[str, Any]],
        *,
        on_conflict: str,
        access_token: str | None = None,
    ) -> None:
        """Insert rows, merging on the given unique columns."""
        response = await self._request_with_retry(
            "POST",
            f"{self.rest_url}/{table}",
            params={"on_conflict": on_conflict},
            json=rows,
            headers=self._headers(access_token, prefer="resolution=merge-duplicates"),
        )
        self._handle_response(response, f"upsert:{table}")

    async def health_check(self) -> dict[str, Any]:
        """Check that the REST endpoint answers."""
        try:
            response = await self._client.get(f"{self.rest_url}/", headers=self._headers(None))
            return {"healthy": response.status_code < 500, "status_code": response.status_code}
        except httpx.RequestError as e:
            return {"healthy": False, "error": str(e)}


def create_supabase_client() -> SupabaseClient | None:
    """Build a client from settings; None when the backend is not configured."""
    if not settings.supabase_configured():
        logger.warning(
            "Supabase settings (SUPABASE_URL / SUPABASE_ANON_KEY) are missing; using mock data"
        )
        return None
    return SupabaseClient(
        settings.SUPABASE_URL, settings.SUPABASE_ANON_KEY, timeout=settings.SUPABASE_REQUEST_TIMEOUT
    )
