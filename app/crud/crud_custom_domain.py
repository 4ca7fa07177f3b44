from datetime import datetime, timezone
from typing import Any, List, Optional

from sqlalchemy import update as sql_update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.errors import DomainError, ErrorKind
from app.models.custom_domain import CustomDomain, DomainStatus
from app.models.distribution import Distribution

# Columns a state transition may touch; everything else is fixed at creation.
UPDATABLE_FIELDS = {"status", "last_error", "last_checked_at", "cf_hostname_id"}


class StaleUpdateError(Exception):
    """A conditional update lost to a newer write on the same row."""


def get(db: Session, domain_id: str) -> Optional[CustomDomain]:
    if not domain_id or not domain_id.strip():
        return None
    return db.query(CustomDomain).filter(CustomDomain.id == domain_id).first()


def get_by_hostname(db: Session, hostname: str) -> Optional[CustomDomain]:
    if not hostname or not hostname.strip():
        return None
    return (
        db.query(CustomDomain)
        .filter(CustomDomain.hostname == hostname.strip().lower())
        .first()
    )


def get_for_owner(db: Session, domain_id: str, owner_id: str) -> Optional[CustomDomain]:
    """Owned lookup; another owner's domain is indistinguishable from a missing one."""
    record = get(db, domain_id)
    if record is None or record.owner_id != owner_id:
        return None
    return record


def list_by_owner(db: Session, owner_id: str) -> List[CustomDomain]:
    if not owner_id or not owner_id.strip():
        return []
    return (
        db.query(CustomDomain)
        .filter(CustomDomain.owner_id == owner_id)
        .order_by(CustomDomain.created_at.desc())
        .all()
    )


def list_refreshable(db: Session, limit: int = 50) -> List[CustomDomain]:
    """Domains waiting on Cloudflare, least recently checked first."""
    return (
        db.query(CustomDomain)
        .filter(
            CustomDomain.status == DomainStatus.VERIFYING.value,
            CustomDomain.cf_hostname_id.isnot(None),
        )
        .order_by(CustomDomain.last_checked_at.asc().nullsfirst())
        .limit(limit)
        .all()
    )


def get_distribution(db: Session, distribution_id: str) -> Optional[Distribution]:
    return db.query(Distribution).filter(Distribution.id == distribution_id).first()


def create(
    db: Session,
    *,
    owner_id: str,
    hostname: str,
    dns_target: str,
    verification_token: str,
    txt_name: str,
    txt_value: str,
    distribution_id: Optional[str] = None,
) -> CustomDomain:
    # Pre-flight check gives a clean error in the common case; the unique
    # index on hostname decides the race.
    if get_by_hostname(db, hostname) is not None:
        raise DomainError(ErrorKind.HOSTNAME_EXISTS)

    now = datetime.now(timezone.utc)
    db_obj = CustomDomain(
        owner_id=owner_id,
        distribution_id=distribution_id or None,
        hostname=hostname,
        status=DomainStatus.PENDING_DNS.value,
        verification_method="txt",
        verification_token=verification_token,
        dns_target=dns_target,
        txt_name=txt_name,
        txt_value=txt_value,
        created_at=now,
        updated_at=now,
    )
    db.add(db_obj)
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        raise DomainError(ErrorKind.HOSTNAME_EXISTS) from e
    db.refresh(db_obj)
    return db_obj


def update(
    db: Session,
    domain_id: str,
    *,
    expected_updated_at: Optional[datetime] = None,
    **fields: Any,
) -> CustomDomain:
    """
    Apply a partial update and bump updated_at.

    With `expected_updated_at`, the write only lands if the row was not
    modified since it was read; otherwise StaleUpdateError is raised.
    """
    unknown = set(fields) - UPDATABLE_FIELDS
    if unknown:
        raise ValueError(f"Cannot update fields: {', '.join(sorted(unknown))}")

    values = dict(fields)
    values["updated_at"] = datetime.now(timezone.utc)

    stmt = sql_update(CustomDomain).where(CustomDomain.id == domain_id)
    if expected_updated_at is not None:
        stmt = stmt.where(CustomDomain.updated_at == expected_updated_at)
    result = db.execute(
        stmt.values(**values).execution_options(synchronize_session=False)
    )
    db.commit()

    if result.rowcount == 0:
        if get(db, domain_id) is None:
            raise DomainError(ErrorKind.DOMAIN_NOT_FOUND)
        raise StaleUpdateError(domain_id)

    db.expire_all()
    record = get(db, domain_id)
    if record is None:
        raise DomainError(ErrorKind.DOMAIN_NOT_FOUND)
    return record
