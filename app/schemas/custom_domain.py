from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# Properties to receive via API on creation
class DomainCreate(CamelModel):
    hostname: Optional[str] = None
    distribution_id: Optional[str] = None


class Domain(CamelModel):
    id: str
    owner_id: str
    distribution_id: Optional[str] = None
    hostname: str
    status: str
    verification_method: str = "txt"
    verification_token: str
    cf_hostname_id: Optional[str] = None
    dns_target: str
    txt_name: str
    txt_value: str
    last_error: Optional[str] = None
    last_checked_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    distribution_code: Optional[str] = None
    distribution_title: Optional[str] = None

    @classmethod
    def from_model(cls, record) -> "Domain":
        return cls(
            id=record.id,
            owner_id=record.owner_id,
            distribution_id=record.distribution_id or None,
            hostname=record.hostname,
            status=record.status,
            verification_method=record.verification_method or "txt",
            verification_token=record.verification_token,
            cf_hostname_id=record.cf_hostname_id,
            dns_target=record.dns_target,
            txt_name=record.expected_txt_name,
            txt_value=record.expected_txt_value,
            last_error=record.last_error,
            last_checked_at=record.last_checked_at,
            created_at=record.created_at,
            updated_at=record.updated_at,
            distribution_code=record.distribution_code,
            distribution_title=record.distribution_title,
        )


class DnsInstruction(CamelModel):
    type: str
    name: str
    value: str


class DomainInstructions(CamelModel):
    cname: DnsInstruction
    txt: DnsInstruction


class DomainList(CamelModel):
    ok: bool = True
    dns_target: str
    domains: List[Domain]


class DomainDetail(CamelModel):
    ok: bool = True
    domain: Domain
    instructions: DomainInstructions


# ── DNS / provider / probe results ──

class DnsRecordCheck(CamelModel):
    ok: bool
    found: Optional[str] = None
    error: Optional[str] = None  # resolver failure, as opposed to "no matching record"


class DnsCheckResult(CamelModel):
    cname: DnsRecordCheck
    txt: DnsRecordCheck


class ValidationRecord(BaseModel):
    model_config = ConfigDict(extra="allow")

    type: Optional[str] = None
    name: Optional[str] = None
    value: Optional[str] = None
    status: Optional[str] = None


class CloudflareSSL(BaseModel):
    model_config = ConfigDict(extra="allow")

    status: Optional[str] = None
    method: Optional[str] = None
    type: Optional[str] = None
    verification_errors: List[str] = []
    validation_records: List[ValidationRecord] = []


class CloudflareHostname(BaseModel):
    """Custom hostname resource as returned by the Cloudflare API."""
    model_config = ConfigDict(extra="allow")

    id: str
    hostname: Optional[str] = None
    status: Optional[str] = None
    verification_errors: List[str] = []
    ssl: Optional[CloudflareSSL] = None

    def all_verification_errors(self) -> List[str]:
        errors = list(self.verification_errors)
        if self.ssl:
            errors.extend(self.ssl.verification_errors)
        return [e for e in errors if e]


class HttpProbeResult(CamelModel):
    ok: bool
    status: Optional[int] = None
    error: Optional[str] = None


class VerifyResult(CamelModel):
    ok: bool = True
    domain: Domain
    dns: DnsCheckResult
    cloudflare: CloudflareHostname


class RefreshResult(CamelModel):
    ok: bool = True
    domain: Domain
    cloudflare: CloudflareHostname
    http: Optional[HttpProbeResult] = None


class ResolvedDomain(CamelModel):
    ok: bool = True
    hostname: str
    distribution_id: Optional[str] = None
    link_code: Optional[str] = None
    status: str
