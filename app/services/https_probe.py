"""HTTPS reachability probe for domains that just went active."""
import logging
from typing import Optional

import httpx

from app.config import settings
from app.schemas.custom_domain import HttpProbeResult

logger = logging.getLogger("customdomains.probe")


async def check_https_status(
    hostname: str,
    timeout: Optional[float] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> HttpProbeResult:
    """GET https://<hostname>/ and report the status code. Never raises."""
    url = f"https://{hostname}/"
    try:
        async with httpx.AsyncClient(
            timeout=timeout if timeout is not None else settings.OUTBOUND_HTTP_TIMEOUT,
            follow_redirects=False,
            transport=transport,
        ) as client:
            response = await client.get(url)
        return HttpProbeResult(ok=response.status_code < 400, status=response.status_code)
    except httpx.HTTPError as e:
        logger.info("HTTPS probe failed for %s: %s", hostname, e)
        return HttpProbeResult(ok=False, error=str(e) or e.__class__.__name__)
