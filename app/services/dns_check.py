"""
DNS record checks over DNS-over-HTTPS (JSON API).

Used by domain verification to confirm the owner published the CNAME to
our edge target and the TXT ownership token.
"""
import logging
from typing import Any, Dict, List, Optional

import httpx
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from app.config import settings
from app.middleware.metrics import UPSTREAM_ERRORS
from app.schemas.custom_domain import DnsCheckResult, DnsRecordCheck
from app.services.hostname import normalize_fqdn

logger = logging.getLogger("customdomains.dns")


class DnsQueryError(Exception):
    """Resolver returned a non-2xx response or an unreadable body."""


def clean_txt_value(data: Optional[str]) -> str:
    """Strip one pair of surrounding quotes and collapse doubled inner quotes."""
    value = data or ""
    if value.startswith('"'):
        value = value[1:]
    if value.endswith('"'):
        value = value[:-1]
    return value.replace('""', '"')


class DnsChecker:
    def __init__(
        self,
        endpoint: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.endpoint = endpoint or settings.DOH_ENDPOINT
        self.timeout = timeout if timeout is not None else settings.OUTBOUND_HTTP_TIMEOUT
        self._transport = transport

    @retry(
        retry=retry_if_exception_type(httpx.TransportError),
        stop=stop_after_attempt(settings.OUTBOUND_HTTP_RETRIES),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
        reraise=True,
    )
    async def query_dns(self, name: str, record_type: str) -> List[Dict[str, Any]]:
        """Return the `Answer` list for `name`/`record_type` (empty if none)."""
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            response = await client.get(
                self.endpoint,
                params={"name": name, "type": record_type},
                headers={"accept": "application/dns-json"},
            )
        if response.status_code < 200 or response.status_code >= 300:
            raise DnsQueryError(f"DNS query failed ({response.status_code})")
        try:
            payload = response.json()
        except ValueError as e:
            raise DnsQueryError(f"DNS query returned invalid JSON: {e}") from e
        if not isinstance(payload, dict):
            raise DnsQueryError("DNS query returned an unexpected body")
        answers = payload.get("Answer") or []
        if not isinstance(answers, list):
            raise DnsQueryError("DNS query returned a malformed Answer section")
        # Entries without string data cannot match anything
        return [a for a in answers if isinstance(a, dict) and isinstance(a.get("data"), str)]

    async def _answers(self, name: str, record_type: str) -> tuple[List[Dict[str, Any]], Optional[str]]:
        # Resolver failures count as "no answers"; the error is kept for diagnostics.
        try:
            return await self.query_dns(name, record_type), None
        except (DnsQueryError, httpx.HTTPError) as e:
            UPSTREAM_ERRORS.labels(service="doh").inc()
            logger.info("DoH %s lookup for %s failed: %s", record_type, name, e)
            return [], str(e) or e.__class__.__name__

    async def check_records(
        self,
        hostname: str,
        target: str,
        txt_name: str,
        txt_value: str,
    ) -> DnsCheckResult:
        fqdn = normalize_fqdn(hostname)
        expected_target = normalize_fqdn(target)

        cname_answers, cname_error = await self._answers(fqdn, "CNAME")
        cname_match = next(
            (a for a in cname_answers if normalize_fqdn(a.get("data")) == expected_target),
            None,
        )

        txt_answers, txt_error = await self._answers(txt_name, "TXT")
        expected_txt = txt_value.strip()
        txt_match = next(
            (a for a in txt_answers if clean_txt_value(a.get("data")) == expected_txt),
            None,
        )

        result = DnsCheckResult(
            cname=DnsRecordCheck(
                ok=cname_match is not None,
                found=cname_match.get("data") if cname_match else None,
                error=cname_error,
            ),
            txt=DnsRecordCheck(
                ok=txt_match is not None,
                found=txt_match.get("data") if txt_match else None,
                error=txt_error,
            ),
        )
        logger.debug(
            "DNS check %s: cname=%s txt=%s", fqdn, result.cname.ok, result.txt.ok
        )
        return result
