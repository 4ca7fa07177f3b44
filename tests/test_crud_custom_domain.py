"""Store-level behaviour of crud_custom_domain."""
import uuid
from datetime import datetime, timedelta, timezone

import pytest

from app.core.errors import DomainError, ErrorKind
from app.crud import crud_custom_domain
from app.crud.crud_custom_domain import StaleUpdateError
from app.models.distribution import Distribution
from tests.conftest import OWNER_A, OWNER_B, add_distribution


def _create(db, hostname, owner_id=OWNER_A, **kwargs):
    token = uuid.uuid4().hex
    return crud_custom_domain.create(
        db,
        owner_id=owner_id,
        hostname=hostname,
        dns_target="edge.dataruapp.com",
        verification_token=token,
        txt_name=f"_cf-custom-hostname.{hostname}",
        txt_value=token,
        **kwargs,
    )


def test_create_defaults(db):
    record = _create(db, "shop.example.com")
    assert record.id
    assert record.status == "pending_dns"
    assert record.cf_hostname_id is None
    assert record.created_at is not None
    assert record.updated_at is not None


def test_unique_index_decides_concurrent_creates(db, monkeypatch):
    _create(db, "shop.example.com")
    # Simulate a writer that passed the pre-check before the first insert landed
    monkeypatch.setattr(crud_custom_domain, "get_by_hostname", lambda db, hostname: None)

    with pytest.raises(DomainError) as exc:
        _create(db, "shop.example.com", OWNER_B)

    assert exc.value.kind == ErrorKind.HOSTNAME_EXISTS
    # Session is usable after the rollback
    assert crud_custom_domain.get(db, "missing") is None


def test_get_by_hostname_is_case_insensitive(db):
    record = _create(db, "shop.example.com")
    assert crud_custom_domain.get_by_hostname(db, " SHOP.example.com ").id == record.id
    assert crud_custom_domain.get_by_hostname(db, "") is None


def test_get_for_owner(db):
    record = _create(db, "shop.example.com")
    assert crud_custom_domain.get_for_owner(db, record.id, OWNER_A).id == record.id
    assert crud_custom_domain.get_for_owner(db, record.id, OWNER_B) is None


def test_distribution_join_is_outer(db):
    dist = add_distribution(db, OWNER_A, code="launch", title="Launch")
    linked = _create(db, "a.example.com", distribution_id=dist.id)
    unlinked = _create(db, "b.example.com")

    assert linked.distribution_code == "launch"
    assert linked.distribution_title == "Launch"
    assert unlinked.distribution_code is None
    assert {d.hostname for d in crud_custom_domain.list_by_owner(db, OWNER_A)} == {
        "a.example.com", "b.example.com",
    }


def test_get_distribution(db):
    dist = add_distribution(db, OWNER_A)
    found = crud_custom_domain.get_distribution(db, dist.id)
    assert isinstance(found, Distribution)
    assert crud_custom_domain.get_distribution(db, "missing") is None


def test_list_by_owner_blank_owner(db):
    _create(db, "shop.example.com")
    assert crud_custom_domain.list_by_owner(db, "") == []


def test_update_bumps_updated_at(db):
    record = _create(db, "shop.example.com")
    before = record.updated_at

    updated = crud_custom_domain.update(db, record.id, status="verifying", cf_hostname_id="cf-1")

    assert updated.status == "verifying"
    assert updated.cf_hostname_id == "cf-1"
    assert updated.updated_at > before


def test_update_rejects_fixed_columns(db):
    record = _create(db, "shop.example.com")
    with pytest.raises(ValueError):
        crud_custom_domain.update(db, record.id, hostname="other.example.com")


def test_update_missing_row(db):
    with pytest.raises(DomainError) as exc:
        crud_custom_domain.update(db, "missing", status="failed")
    assert exc.value.kind == ErrorKind.DOMAIN_NOT_FOUND


def test_conditional_update(db):
    record = _create(db, "shop.example.com")
    read_version = record.updated_at

    crud_custom_domain.update(db, record.id, expected_updated_at=read_version, status="verifying")

    with pytest.raises(StaleUpdateError):
        crud_custom_domain.update(
            db, record.id, expected_updated_at=read_version, status="pending_dns",
        )
    db.expire_all()
    assert crud_custom_domain.get(db, record.id).status == "verifying"


def test_list_refreshable(db):
    now = datetime.now(timezone.utc)
    pending = _create(db, "pending.example.com")
    no_cf = _create(db, "nocf.example.com")
    recent = _create(db, "recent.example.com")
    stale = _create(db, "stale.example.com")
    never = _create(db, "never.example.com")

    crud_custom_domain.update(db, no_cf.id, status="verifying")
    crud_custom_domain.update(
        db, recent.id, status="verifying", cf_hostname_id="cf-1", last_checked_at=now,
    )
    crud_custom_domain.update(
        db, stale.id, status="verifying", cf_hostname_id="cf-2",
        last_checked_at=now - timedelta(hours=1),
    )
    crud_custom_domain.update(db, never.id, status="verifying", cf_hostname_id="cf-3")

    refreshable = crud_custom_domain.list_refreshable(db)

    assert [d.hostname for d in refreshable] == [
        "never.example.com", "stale.example.com", "recent.example.com",
    ]
    assert pending.id not in {d.id for d in refreshable}
    assert len(crud_custom_domain.list_refreshable(db, limit=1)) == 1
