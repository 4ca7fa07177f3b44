"""
Cloudflare for SaaS custom hostname client.

Wraps the two calls the verification flow needs:
  - create a custom hostname (DV certificate, TXT validation)
  - read a custom hostname for status polling
"""
import logging
from typing import Any, Optional

import httpx
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from app.config import settings
from app.schemas.custom_domain import CloudflareHostname

logger = logging.getLogger("customdomains.cloudflare")

CREATE_ERROR_PREFIX = "Failed to create Cloudflare hostname"
READ_ERROR_PREFIX = "Failed to read Cloudflare hostname"


class CloudflareConfigError(RuntimeError):
    """Account id / API token are not configured."""


class CloudflareAPIError(Exception):
    """Non-2xx response or an unsuccessful API envelope."""

    def __init__(self, message: str, status_code: Optional[int] = None, body: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class CloudflareClient:
    def __init__(
        self,
        account_id: Optional[str] = None,
        api_token: Optional[str] = None,
        api_base: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.account_id = account_id if account_id is not None else settings.CLOUDFLARE_ACCOUNT_ID
        self.api_token = api_token if api_token is not None else settings.CLOUDFLARE_API_TOKEN
        self.api_base = (api_base or settings.CLOUDFLARE_API_BASE).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.OUTBOUND_HTTP_TIMEOUT
        self._transport = transport

    def _ensure_config(self) -> None:
        if not self.account_id or not self.api_token:
            raise CloudflareConfigError(
                "Cloudflare API credentials are missing (CLOUDFLARE_ACCOUNT_ID / CLOUDFLARE_API_TOKEN)"
            )

    @property
    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_token}",
            "Content-Type": "application/json",
        }

    @property
    def _hostnames_url(self) -> str:
        return f"{self.api_base}/accounts/{self.account_id}/custom_hostnames"

    @staticmethod
    def _unwrap(response: httpx.Response) -> CloudflareHostname:
        try:
            payload: dict[str, Any] = response.json()
        except ValueError:
            payload = {}
        if not payload.get("success"):
            errors = payload.get("errors") or []
            message = (errors[0] or {}).get("message") if errors else None
            raise CloudflareAPIError(
                message or response.reason_phrase or "Cloudflare API error",
                status_code=response.status_code,
                body=response.text,
            )
        return CloudflareHostname.model_validate(payload.get("result") or {})

    async def _request(self, method: str, url: str, json: Optional[dict] = None) -> httpx.Response:
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            return await client.request(method, url, headers=self._headers, json=json)

    @retry(
        retry=retry_if_exception_type(httpx.TransportError),
        stop=stop_after_attempt(settings.OUTBOUND_HTTP_RETRIES),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
        reraise=True,
    )
    async def _get(self, url: str) -> httpx.Response:
        return await self._request("GET", url)

    # A POST is only resent when it never reached Cloudflare; after a read
    # timeout the hostname may already exist.
    @retry(
        retry=retry_if_exception_type((httpx.ConnectError, httpx.ConnectTimeout)),
        stop=stop_after_attempt(settings.OUTBOUND_HTTP_RETRIES),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
        reraise=True,
    )
    async def _post(self, url: str, json: dict) -> httpx.Response:
        return await self._request("POST", url, json=json)

    async def create_hostname(self, hostname: str) -> CloudflareHostname:
        self._ensure_config()
        body = {
            "hostname": hostname,
            "ssl": {"method": "txt", "type": "dv"},
        }
        try:
            response = await self._post(self._hostnames_url, json=body)
        except httpx.HTTPError as e:
            raise CloudflareAPIError(f"{CREATE_ERROR_PREFIX}: {e}") from e
        if not response.is_success:
            logger.warning("Cloudflare create %s → %d", hostname, response.status_code)
            raise CloudflareAPIError(
                f"{CREATE_ERROR_PREFIX} ({response.status_code}): {response.text}",
                status_code=response.status_code,
                body=response.text,
            )
        result = self._unwrap(response)
        logger.info("Cloudflare custom hostname created: %s (%s)", hostname, result.id)
        return result

    async def get_hostname(self, cf_hostname_id: str) -> CloudflareHostname:
        self._ensure_config()
        try:
            response = await self._get(f"{self._hostnames_url}/{cf_hostname_id}")
        except httpx.HTTPError as e:
            raise CloudflareAPIError(f"{READ_ERROR_PREFIX}: {e}") from e
        if not response.is_success:
            logger.warning("Cloudflare read %s → %d", cf_hostname_id, response.status_code)
            raise CloudflareAPIError(
                f"{READ_ERROR_PREFIX} ({response.status_code}): {response.text}",
                status_code=response.status_code,
                body=response.text,
            )
        return self._unwrap(response)
