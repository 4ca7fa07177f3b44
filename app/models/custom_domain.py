"""
Custom Domain Model

One row per user-owned hostname attached to a link, tracking the DNS proof
and Cloudflare custom hostname (TLS) lifecycle.
"""
import enum
import uuid
from datetime import datetime, timezone
from sqlalchemy import Column, String, DateTime, ForeignKey, Index
from sqlalchemy.orm import relationship
from app.config import settings
from app.db.base_class import Base


class DomainStatus(str, enum.Enum):
    PENDING_DNS = "pending_dns"
    VERIFYING = "verifying"
    ACTIVE = "active"
    FAILED = "failed"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


def default_txt_name(hostname: str) -> str:
    return f"{settings.CUSTOM_DOMAIN_TXT_PREFIX}.{hostname}"


class CustomDomain(Base):
    __tablename__ = "custom_domains"

    id = Column(String(36), primary_key=True, default=_new_id)
    owner_id = Column(String(64), nullable=False)
    distribution_id = Column(String(64), ForeignKey("links.id", ondelete="CASCADE"), nullable=True)
    hostname = Column(String(253), nullable=False, unique=True)
    status = Column(String(32), nullable=False, default=DomainStatus.PENDING_DNS.value)
    verification_method = Column(String(16), nullable=False, default="txt")
    verification_token = Column(String(64), nullable=False)
    cf_hostname_id = Column(String(64), nullable=True)
    dns_target = Column(String(253), nullable=False, default=lambda: settings.CUSTOM_DOMAIN_EDGE_TARGET)

    # Stored instructions; older rows may have these unset
    txt_name = Column(String(253), nullable=True)
    txt_value = Column(String(255), nullable=True)

    last_error = Column(String(1024), nullable=True)
    last_checked_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    # Outer join: a domain with no (or a deleted) link still loads
    distribution = relationship("Distribution", lazy="joined", innerjoin=False)

    __table_args__ = (
        Index("ix_custom_domains_owner_id", "owner_id"),
        Index("ix_custom_domains_distribution_id", "distribution_id"),
    )

    @property
    def expected_txt_name(self) -> str:
        return self.txt_name or default_txt_name(self.hostname)

    @property
    def expected_txt_value(self) -> str:
        return self.txt_value or self.verification_token

    @property
    def distribution_code(self):
        return self.distribution.code if self.distribution else None

    @property
    def distribution_title(self):
        return self.distribution.title if self.distribution else None

    def instructions(self) -> dict:
        """DNS records the owner must publish before verifying."""
        return {
            "cname": {"type": "CNAME", "name": self.hostname, "value": self.dns_target},
            "txt": {"type": "TXT", "name": self.expected_txt_name, "value": self.expected_txt_value},
        }
