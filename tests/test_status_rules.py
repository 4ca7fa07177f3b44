"""Mapping Cloudflare hostname state onto custom domain status."""
from app.models.custom_domain import DomainStatus
from app.schemas.custom_domain import CloudflareHostname
from app.services.domain_verification import (
    PENDING_DELETION_MESSAGE,
    evaluate_hostname_status,
)


def _hostname(status="pending", ssl_status="pending_validation", errors=None, ssl_errors=None):
    return CloudflareHostname.model_validate({
        "id": "cf-1",
        "hostname": "shop.example.com",
        "status": status,
        "verification_errors": errors or [],
        "ssl": {"status": ssl_status, "verification_errors": ssl_errors or []},
    })


def test_active_without_errors():
    assert evaluate_hostname_status(_hostname(status="active", ssl_status="active")) == (
        DomainStatus.ACTIVE, None,
    )


def test_ssl_active_alone_is_enough():
    status, _ = evaluate_hostname_status(_hostname(status="pending", ssl_status="active"))
    assert status == DomainStatus.ACTIVE


def test_errors_win_over_active():
    cf = _hostname(status="active", ssl_status="active", errors=["CNAME missing"])
    assert evaluate_hostname_status(cf) == (DomainStatus.PENDING_DNS, "CNAME missing")


def test_hostname_and_ssl_errors_are_joined():
    cf = _hostname(errors=["a"], ssl_errors=["b", ""])
    assert evaluate_hostname_status(cf) == (DomainStatus.PENDING_DNS, "a; b")


def test_pending_deletion_fails():
    assert evaluate_hostname_status(_hostname(status="pending_deletion")) == (
        DomainStatus.FAILED, PENDING_DELETION_MESSAGE,
    )


def test_anything_else_keeps_verifying():
    assert evaluate_hostname_status(_hostname(status="pending")) == (DomainStatus.VERIFYING, None)


def test_missing_ssl_block():
    cf = CloudflareHostname.model_validate({"id": "cf-1", "status": "pending"})
    assert evaluate_hostname_status(cf) == (DomainStatus.VERIFYING, None)
