"""
Public custom domain resolution (no auth).

Used by edge routing to map a hostname to the link it serves.
"""
from typing import Any, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.api import deps
from app.schemas.custom_domain import ResolvedDomain
from app.services.domain_verification import DomainVerificationService

router = APIRouter()


@router.get("/resolve", response_model=ResolvedDomain)
def resolve_hostname(
    hostname: Optional[str] = Query(None),
    db: Session = Depends(deps.get_db),
) -> Any:
    return DomainVerificationService(db).resolve(hostname)
