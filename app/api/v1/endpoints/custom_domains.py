"""
Custom Domain Management API

Lets a signed-in owner:
  1. Add a custom domain (returns CNAME + TXT instructions)
  2. List / read their domains
  3. Verify DNS and create the Cloudflare custom hostname
  4. Refresh Cloudflare hostname / certificate status
"""
import logging
from typing import Any

from fastapi import APIRouter, Depends, Request
from pydantic import ValidationError
from sqlalchemy.orm import Session

from app.api import deps
from app.config import settings
from app.core.errors import DomainError, ErrorKind
from app.schemas.custom_domain import (
    Domain,
    DomainCreate,
    DomainDetail,
    DomainList,
    RefreshResult,
    VerifyResult,
)
from app.services.domain_verification import DomainVerificationService

router = APIRouter()
logger = logging.getLogger("customdomains.api")


def get_verification_service(db: Session = Depends(deps.get_db)) -> DomainVerificationService:
    return DomainVerificationService(db)


def _detail(record) -> DomainDetail:
    return DomainDetail(domain=Domain.from_model(record), instructions=record.instructions())


@router.get("/", response_model=DomainList)
def list_domains(
    owner_id: str = Depends(deps.get_current_owner_id),
    service: DomainVerificationService = Depends(get_verification_service),
) -> Any:
    """List the caller's domains, newest first."""
    domains = service.list_domains(owner_id)
    return DomainList(
        dns_target=settings.CUSTOM_DOMAIN_EDGE_TARGET,
        domains=[Domain.from_model(d) for d in domains],
    )


@router.post("/", response_model=DomainDetail, status_code=201)
async def add_domain(
    request: Request,
    owner_id: str = Depends(deps.get_current_owner_id),
    service: DomainVerificationService = Depends(get_verification_service),
) -> Any:
    try:
        body = DomainCreate.model_validate(await request.json())
    except (ValueError, ValidationError) as e:
        raise DomainError(ErrorKind.INVALID_PAYLOAD) from e

    record = service.create_domain(owner_id, body.hostname, body.distribution_id)
    return _detail(record)


@router.get("/{domain_id}", response_model=DomainDetail)
def get_domain(
    domain_id: str,
    owner_id: str = Depends(deps.get_current_owner_id),
    service: DomainVerificationService = Depends(get_verification_service),
) -> Any:
    return _detail(service.get_owned(domain_id, owner_id))


@router.post("/{domain_id}/verify", response_model=VerifyResult)
async def verify_domain(
    domain_id: str,
    owner_id: str = Depends(deps.get_current_owner_id),
    service: DomainVerificationService = Depends(get_verification_service),
) -> Any:
    """
    Check DNS and create the Cloudflare custom hostname.

    The owner must publish:
      <hostname>                      CNAME → <dns target>
      _cf-custom-hostname.<hostname>  TXT   → <verification token>
    """
    return await service.verify(domain_id, owner_id)


@router.post("/{domain_id}/refresh", response_model=RefreshResult)
async def refresh_domain(
    domain_id: str,
    owner_id: str = Depends(deps.get_current_owner_id),
    service: DomainVerificationService = Depends(get_verification_service),
) -> Any:
    return await service.refresh(domain_id, owner_id)
