"""HTTP gateway to the SAP OData service."""

from typing import Any, Optional

import httpx
import structlog

from mo_approval.config import Settings
from mo_approval.exceptions import UpstreamRequestError
from mo_approval.models.upstream import TokenInfo, UpstreamCredentials
from mo_approval.services.csrf_token_manager import CSRF_HEADER, CsrfTokenManager

logger = structlog.get_logger(__name__)

MUTATING_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})

# A rejected CSRF token is refreshed and the request resent at most this often.
MAX_TOKEN_RETRIES = 1


def build_http_client(
    settings: Settings,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> httpx.AsyncClient:
    """Create the shared HTTP client for SAP calls.

    Basic auth and the ``sap-client`` header go on every request; TLS
    verification follows ``SSL_REJECT_UNAUTHORIZED``.
    """
    return httpx.AsyncClient(
        auth=(settings.sap_username, settings.sap_password),
        headers={"sap-client": settings.sap_client},
        verify=settings.ssl_reject_unauthorized,
        timeout=httpx.Timeout(settings.sap_timeout_seconds),
        transport=transport,
    )


def _response_details(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text or None


class SapClient:
    """Sends OData requests, attaching CSRF credentials to mutating calls.

    A 403 on a mutating call usually means SAP discarded the CSRF token, so
    the token is invalidated and the request resent once with a fresh one.
    """

    def __init__(
        self,
        settings: Settings,
        token_manager: CsrfTokenManager,
        client: httpx.AsyncClient,
    ):
        self.settings = settings
        self.token_manager = token_manager
        self._client = client

    @property
    def base_url(self) -> str:
        return f"{self.settings.sap_base_url}{self.settings.sap_odata_service_path}"

    def get_full_url(self, endpoint: str) -> str:
        """Resolve an endpoint relative to the OData service root."""
        path = endpoint if endpoint.startswith("/") else f"/{endpoint}"
        return f"{self.base_url}{path}"

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        if not self._client.is_closed:
            await self._client.aclose()

    async def request(
        self,
        method: str,
        endpoint: str,
        *,
        json: Any = None,
        params: Optional[dict] = None,
        retry_count: int = 0,
    ) -> httpx.Response:
        """Send a request to the OData service.

        Args:
            method: HTTP verb
            endpoint: Path below the service root (leading slash optional)
            json: Optional JSON body
            params: Optional query parameters
            retry_count: Number of CSRF retries already spent on this call

        Returns:
            The successful httpx response

        Raises:
            UpstreamRequestError: On transport failure or an error status
            UpstreamTokenFetchError: If a CSRF token cannot be obtained
        """
        method = method.upper()
        url = self.get_full_url(endpoint)
        mutating = method in MUTATING_METHODS

        headers: dict[str, str] = {}
        if mutating:
            credentials: UpstreamCredentials = await self.token_manager.get_token()
            headers[CSRF_HEADER] = credentials.token
            if credentials.cookies:
                headers["Cookie"] = credentials.cookies
            headers["Content-Type"] = "application/json"

        logger.debug("sap_request", method=method, url=url, retry_count=retry_count)

        try:
            response = await self._client.request(
                method, url, json=json, params=params, headers=headers
            )
        except httpx.HTTPError as e:
            logger.error(
                "sap_request_failed",
                method=method,
                url=url,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise UpstreamRequestError(str(e) or type(e).__name__) from e

        if (
            mutating
            and response.status_code == httpx.codes.FORBIDDEN
            and retry_count < MAX_TOKEN_RETRIES
        ):
            logger.warning("sap_csrf_token_rejected", method=method, url=url)
            self.token_manager.invalidate_token()
            return await self.request(
                method,
                endpoint,
                json=json,
                params=params,
                retry_count=retry_count + 1,
            )

        if response.is_error:
            logger.error(
                "sap_request_failed",
                method=method,
                url=url,
                status_code=response.status_code,
                reason=response.reason_phrase,
                retry_count=retry_count,
            )
            raise UpstreamRequestError(
                f"Request failed with status code {response.status_code}",
                status_code=response.status_code,
                details=_response_details(response),
            )

        logger.debug("sap_response", url=url, status_code=response.status_code)
        return response

    async def get(self, endpoint: str, params: Optional[dict] = None) -> httpx.Response:
        return await self.request("GET", endpoint, params=params)

    async def post(self, endpoint: str, json: Any = None) -> httpx.Response:
        return await self.request("POST", endpoint, json=json)

    async def put(self, endpoint: str, json: Any = None) -> httpx.Response:
        return await self.request("PUT", endpoint, json=json)

    async def patch(self, endpoint: str, json: Any = None) -> httpx.Response:
        return await self.request("PATCH", endpoint, json=json)

    async def delete(self, endpoint: str) -> httpx.Response:
        return await self.request("DELETE", endpoint)

    def get_token_info(self) -> TokenInfo:
        return self.token_manager.get_token_info()

    async def refresh_token(self) -> UpstreamCredentials:
        """Force a CSRF token refresh."""
        return await self.token_manager.refresh_token()
