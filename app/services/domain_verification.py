"""
Custom domain verification state machine.

    pending_dns ──verify(DNS ok)──▶ verifying ──refresh(active)──▶ active
         ▲                              │
         └──verify(DNS missing) /       ├──refresh(pending_deletion)──▶ failed
            refresh(verification errors)┘

`verify` proves ownership via the CNAME + TXT records and creates the
Cloudflare custom hostname. `refresh` polls Cloudflare and maps its
hostname / SSL state onto our status. Both are safe to repeat.
"""
import logging
import uuid
from datetime import datetime, timezone
from typing import Awaitable, Callable, List, Optional, Tuple

from sqlalchemy.orm import Session

from app.config import settings
from app.core.errors import DomainError, ErrorKind
from app.crud import crud_custom_domain
from app.crud.crud_custom_domain import StaleUpdateError
from app.logging_config import hostname_ctx
from app.middleware.metrics import DOMAIN_TRANSITIONS, UPSTREAM_ERRORS
from app.models.custom_domain import CustomDomain, DomainStatus, default_txt_name
from app.schemas.custom_domain import (
    CloudflareHostname,
    Domain,
    HttpProbeResult,
    RefreshResult,
    ResolvedDomain,
    VerifyResult,
)
from app.services.cloudflare import CloudflareAPIError, CloudflareClient, CloudflareConfigError
from app.services.dns_check import DnsChecker
from app.services.hostname import has_wildcard, is_apex_hostname, normalize_hostname
from app.services.https_probe import check_https_status
from app.services.resolution_cache import ResolutionCache, get_resolution_cache

logger = logging.getLogger("customdomains.verify")

CNAME_NOT_DETECTED = "CNAME record not detected yet."
TXT_NOT_DETECTED = "TXT record not detected yet."
PENDING_DELETION_MESSAGE = "Cloudflare marked this hostname for deletion."


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def generate_verification_token() -> str:
    return uuid.uuid4().hex


def evaluate_hostname_status(cf: CloudflareHostname) -> Tuple[DomainStatus, Optional[str]]:
    """
    Map a Cloudflare custom hostname onto (status, last_error).

    Precedence: verification errors > active > pending_deletion > verifying.
    Cloudflare can report `active` while validation errors are still
    outstanding; the errors win.
    """
    errors: List[str] = cf.all_verification_errors()
    if errors:
        return DomainStatus.PENDING_DNS, "; ".join(errors)
    ssl_status = cf.ssl.status if cf.ssl else None
    if cf.status == "active" or ssl_status == "active":
        return DomainStatus.ACTIVE, None
    if cf.status == "pending_deletion":
        return DomainStatus.FAILED, PENDING_DELETION_MESSAGE
    return DomainStatus.VERIFYING, None


class DomainVerificationService:
    def __init__(
        self,
        db: Session,
        dns_checker: Optional[DnsChecker] = None,
        cloudflare: Optional[CloudflareClient] = None,
        https_probe: Callable[[str], Awaitable[HttpProbeResult]] = check_https_status,
        cache: Optional[ResolutionCache] = None,
    ):
        self.db = db
        self.dns_checker = dns_checker or DnsChecker()
        self.cloudflare = cloudflare or CloudflareClient()
        self.https_probe = https_probe
        self.cache = cache or get_resolution_cache()

    # ── Create / read ──

    def create_domain(
        self,
        owner_id: str,
        hostname: Optional[str],
        distribution_id: Optional[str] = None,
        dns_target: Optional[str] = None,
    ) -> CustomDomain:
        if has_wildcard(hostname):
            raise DomainError(ErrorKind.WILDCARD_NOT_ALLOWED)
        normalized = normalize_hostname(hostname)
        if not normalized:
            raise DomainError(ErrorKind.INVALID_HOSTNAME)
        if is_apex_hostname(normalized):
            raise DomainError(ErrorKind.APEX_NOT_ALLOWED)
        if crud_custom_domain.get_by_hostname(self.db, normalized) is not None:
            raise DomainError(ErrorKind.HOSTNAME_EXISTS)

        linked_id: Optional[str] = None
        requested = (distribution_id or "").strip()
        if requested:
            distribution = crud_custom_domain.get_distribution(self.db, requested)
            if distribution is None:
                raise DomainError(ErrorKind.DISTRIBUTION_NOT_FOUND)
            if (distribution.owner_id or "").strip() != owner_id:
                raise DomainError(ErrorKind.FORBIDDEN_DISTRIBUTION)
            linked_id = distribution.id

        token = generate_verification_token()
        record = crud_custom_domain.create(
            self.db,
            owner_id=owner_id,
            distribution_id=linked_id,
            hostname=normalized,
            dns_target=(dns_target or "").strip() or settings.CUSTOM_DOMAIN_EDGE_TARGET,
            verification_token=token,
            txt_name=default_txt_name(normalized),
            txt_value=token,
        )
        self.cache.invalidate(normalized)
        logger.info("Custom domain added: %s for owner %s", normalized, owner_id)
        return record

    def list_domains(self, owner_id: str) -> List[CustomDomain]:
        return crud_custom_domain.list_by_owner(self.db, owner_id)

    def get_owned(self, domain_id: str, owner_id: str) -> CustomDomain:
        if not domain_id or not domain_id.strip():
            raise DomainError(ErrorKind.DOMAIN_ID_REQUIRED)
        record = crud_custom_domain.get_for_owner(self.db, domain_id.strip(), owner_id)
        if record is None:
            raise DomainError(ErrorKind.DOMAIN_NOT_FOUND)
        return record

    def resolve(self, hostname: Optional[str]) -> ResolvedDomain:
        normalized = normalize_hostname(hostname)
        if not normalized:
            raise DomainError(ErrorKind.INVALID_HOSTNAME)
        record = crud_custom_domain.get_by_hostname(self.db, normalized)
        if record is None:
            raise DomainError(ErrorKind.NOT_FOUND)
        return ResolvedDomain(
            hostname=record.hostname,
            distribution_id=record.distribution_id,
            link_code=record.distribution_code,
            status=record.status,
        )

    # ── Transitions ──

    async def verify(self, domain_id: str, owner_id: str) -> VerifyResult:
        record = self.get_owned(domain_id, owner_id)
        hostname_ctx.set(record.hostname)
        read_version = record.updated_at
        previous = record.status

        dns = await self.dns_checker.check_records(
            record.hostname,
            record.dns_target,
            record.expected_txt_name,
            record.expected_txt_value,
        )

        if not dns.cname.ok or not dns.txt.ok:
            message = CNAME_NOT_DETECTED if not dns.cname.ok else TXT_NOT_DETECTED
            try:
                updated = crud_custom_domain.update(
                    self.db,
                    record.id,
                    expected_updated_at=read_version,
                    status=DomainStatus.PENDING_DNS.value,
                    last_error=message,
                    last_checked_at=_utcnow(),
                )
                DOMAIN_TRANSITIONS.labels(action="verify", status=updated.status).inc()
                self._on_status_written(updated, previous)
            except StaleUpdateError:
                # A newer verify/refresh already wrote this row; keep its result.
                logger.info("Dropping stale DNS result for %s", record.hostname)
                self.db.expire_all()
                updated = self.get_owned(record.id, owner_id)
            raise DomainError(
                ErrorKind.DNS_NOT_READY,
                message,
                dns=dns.model_dump(mode="json", by_alias=True),
                domain=Domain.from_model(updated).model_dump(mode="json", by_alias=True),
            )

        cf = await self._cloudflare_call(self.cloudflare.create_hostname, record.hostname)
        updated = crud_custom_domain.update(
            self.db,
            record.id,
            cf_hostname_id=cf.id,
            status=DomainStatus.VERIFYING.value,
            last_error=None,
            last_checked_at=_utcnow(),
        )
        DOMAIN_TRANSITIONS.labels(action="verify", status=updated.status).inc()
        self._on_status_written(updated, previous)
        return VerifyResult(domain=Domain.from_model(updated), dns=dns, cloudflare=cf)

    async def refresh(self, domain_id: str, owner_id: str) -> RefreshResult:
        record = self.get_owned(domain_id, owner_id)
        return await self.refresh_record(record)

    async def refresh_record(self, record: CustomDomain, action: str = "refresh") -> RefreshResult:
        """Poll Cloudflare for `record`. Ownership must already be checked."""
        if not record.cf_hostname_id:
            raise DomainError(ErrorKind.CLOUDFLARE_HOSTNAME_MISSING)
        hostname_ctx.set(record.hostname)
        previous = record.status

        cf = await self._cloudflare_call(self.cloudflare.get_hostname, record.cf_hostname_id)
        status, last_error = evaluate_hostname_status(cf)

        updated = crud_custom_domain.update(
            self.db,
            record.id,
            status=status.value,
            last_error=last_error,
            last_checked_at=_utcnow(),
        )
        DOMAIN_TRANSITIONS.labels(action=action, status=updated.status).inc()
        self._on_status_written(updated, previous)

        http: Optional[HttpProbeResult] = None
        if status == DomainStatus.ACTIVE:
            http = await self.https_probe(updated.hostname)
        return RefreshResult(domain=Domain.from_model(updated), cloudflare=cf, http=http)

    # ── Helpers ──

    async def _cloudflare_call(self, func, arg: str) -> CloudflareHostname:
        try:
            return await func(arg)
        except CloudflareConfigError as e:
            logger.error("Cloudflare is not configured: %s", e)
            raise DomainError(ErrorKind.CONFIGURATION_ERROR, str(e)) from e
        except CloudflareAPIError as e:
            UPSTREAM_ERRORS.labels(service="cloudflare").inc()
            logger.warning("Cloudflare call failed for %s: %s", arg, e)
            raise DomainError(
                ErrorKind.CLOUDFLARE_ERROR,
                str(e),
                upstreamStatus=e.status_code,
            ) from e

    def _on_status_written(self, record: CustomDomain, previous: str) -> None:
        if record.status == previous:
            return
        logger.info(
            "Custom domain %s: %s → %s", record.hostname, previous, record.status
        )
        self.cache.invalidate(record.hostname)
