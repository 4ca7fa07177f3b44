"""
Distribution (link) Model

The backend resource a custom hostname routes to. Only the columns the
custom domain flow reads are mapped here.
"""
from datetime import datetime, timezone
from sqlalchemy import Column, String, DateTime, Index
from app.db.base_class import Base


class Distribution(Base):
    __tablename__ = "links"

    id = Column(String(64), primary_key=True)
    owner_id = Column(String(64), nullable=False)
    code = Column(String(64), nullable=False, unique=True)
    title = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    __table_args__ = (
        Index("ix_links_owner_id", "owner_id"),
    )
