from typing import Generator, Optional

from fastapi import Cookie, Request
from sqlalchemy.orm import Session

from app.core.errors import DomainError, ErrorKind
from app.core.security import decode_owner_id
from app.db.session import SessionLocal
from app.logging_config import owner_id_ctx


def get_db() -> Generator:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_current_owner_id(
    request: Request,
    uid: Optional[str] = Cookie(None),
) -> str:
    """
    Resolve the authenticated owner.

    Bearer token (`sub` claim) first, then the `uid` session cookie.
    """
    owner_id: Optional[str] = None
    auth = request.headers.get("authorization", "")
    if auth.startswith("Bearer "):
        owner_id = decode_owner_id(auth[7:])
    elif uid and uid.strip():
        owner_id = uid.strip()

    if not owner_id:
        raise DomainError(ErrorKind.UNAUTHENTICATED)
    owner_id_ctx.set(owner_id)
    return owner_id
