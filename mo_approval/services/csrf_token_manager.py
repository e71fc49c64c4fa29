"""CSRF token cache for state-changing SAP OData calls.

SAP Gateway rejects POST/PUT/PATCH/DELETE requests unless they carry an
``X-CSRF-Token`` header together with the session cookies that were issued
alongside that token. Fetching a token costs a round trip, so the token is
cached until shortly before it is considered stale.

Only one fetch runs at a time: callers that arrive while a fetch is in
flight await the same task and receive the same outcome.
"""

import asyncio
import time
from datetime import datetime, timezone
from typing import Callable, Optional

import httpx
import structlog

from mo_approval.config import Settings
from mo_approval.exceptions import UpstreamTokenFetchError
from mo_approval.models.upstream import TokenInfo, UpstreamCredentials

logger = structlog.get_logger(__name__)

CSRF_HEADER = "X-CSRF-Token"
EXPIRY_BUFFER_SECONDS = 5 * 60


def join_set_cookie_headers(set_cookie_headers: list[str]) -> str:
    """Turn ``Set-Cookie`` values into a single ``Cookie`` header value.

    Only the ``name=value`` part of each cookie is kept.
    """
    pairs = [header.split(";", 1)[0].strip() for header in set_cookie_headers]
    return "; ".join(pair for pair in pairs if pair)


class CsrfTokenManager:
    """Fetches, caches and invalidates the SAP CSRF token."""

    def __init__(
        self,
        settings: Settings,
        client: httpx.AsyncClient,
        clock: Callable[[], float] = time.time,
    ):
        self.settings = settings
        self._client = client
        self._clock = clock

        self._token: Optional[str] = None
        self._cookies: Optional[str] = None
        self._expiry: Optional[float] = None
        self._refresh_task: Optional[asyncio.Task] = None

    @property
    def token_url(self) -> str:
        return f"{self.settings.sap_base_url}{self.settings.sap_csrf_token_endpoint}"

    @property
    def is_refreshing(self) -> bool:
        return self._refresh_task is not None

    def is_token_valid(self) -> bool:
        """True if a complete token is cached and not within the expiry buffer."""
        if self._token is None or self._cookies is None or self._expiry is None:
            return False
        return self._clock() < self._expiry - EXPIRY_BUFFER_SECONDS

    def _set_state(
        self,
        token: Optional[str],
        cookies: Optional[str],
        expiry: Optional[float],
    ) -> None:
        self._token, self._cookies, self._expiry = token, cookies, expiry

    async def get_token(self) -> UpstreamCredentials:
        """Return cached credentials, fetching new ones if needed."""
        if self.is_token_valid():
            logger.debug("csrf_token_cache_hit")
            return UpstreamCredentials(token=self._token, cookies=self._cookies)

        if self._refresh_task is not None:
            logger.debug("csrf_token_refresh_join")

        return await self.refresh_token()

    async def refresh_token(self) -> UpstreamCredentials:
        """Fetch a fresh token, or join the fetch already in flight.

        Raises:
            UpstreamTokenFetchError: If the token endpoint fails
        """
        if self._refresh_task is None:
            self._refresh_task = asyncio.create_task(self._fetch_token())
        # Shield so a cancelled caller does not cancel the fetch for everyone else.
        return await asyncio.shield(self._refresh_task)

    async def _fetch_token(self) -> UpstreamCredentials:
        logger.info("csrf_token_fetch_started", url=self.token_url)
        try:
            response = await self._client.get(
                self.token_url,
                headers={CSRF_HEADER: "Fetch"},
                timeout=self.settings.csrf_fetch_timeout_seconds,
            )
            response.raise_for_status()

            token = response.headers.get(CSRF_HEADER)
            if not token:
                raise UpstreamTokenFetchError(
                    "response did not include an X-CSRF-Token header"
                )
            cookies = join_set_cookie_headers(response.headers.get_list("set-cookie"))
            expiry = self._clock() + self.settings.csrf_token_cache_seconds
            self._set_state(token, cookies, expiry)

            logger.info(
                "csrf_token_fetched",
                expires_in_seconds=self.settings.csrf_token_cache_seconds,
            )
            return UpstreamCredentials(token=token, cookies=cookies)

        except UpstreamTokenFetchError as e:
            self._set_state(None, None, None)
            logger.error("csrf_token_fetch_failed", error=e.message, status_code=e.status_code)
            raise UpstreamTokenFetchError(
                f"CSRF token fetch failed: {e.message}", status_code=e.status_code
            ) from e

        except httpx.HTTPStatusError as e:
            self._set_state(None, None, None)
            logger.error(
                "csrf_token_fetch_failed",
                error=str(e),
                status_code=e.response.status_code,
                reason=e.response.reason_phrase,
            )
            raise UpstreamTokenFetchError(
                f"CSRF token fetch failed: {e}",
                status_code=e.response.status_code,
            ) from e

        except httpx.HTTPError as e:
            self._set_state(None, None, None)
            logger.error(
                "csrf_token_fetch_failed",
                error=str(e),
                error_type=type(e).__name__,
            )
            raise UpstreamTokenFetchError(f"CSRF token fetch failed: {e}") from e

        finally:
            self._refresh_task = None

    def invalidate_token(self) -> None:
        """Forget the cached token so the next call fetches a new one."""
        logger.info("csrf_token_invalidated")
        self._set_state(None, None, None)

    def get_token_info(self) -> TokenInfo:
        """Describe the cached token for diagnostics."""
        expires_at = None
        expires_in_ms = 0
        if self._expiry is not None:
            expires_at = datetime.fromtimestamp(self._expiry, tz=timezone.utc)
            expires_in_ms = max(0, int((self._expiry - self._clock()) * 1000))

        return TokenInfo(
            has_token=bool(self._token),
            has_cookies=bool(self._cookies),
            is_valid=self.is_token_valid(),
            expires_at=expires_at,
            expires_in_ms=expires_in_ms,
        )
