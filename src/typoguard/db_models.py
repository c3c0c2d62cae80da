"""
TypoGuard - SQLAlchemy ORM Models
Scans, imposters and per-channel takedown reports
"""
from __future__ import annotations

from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Enum as SQLEnum,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from typoguard.database import Base
from typoguard.models import (
    ImposterSource,
    ImposterStatus,
    ReportStatus,
    ReportType,
    ScanStatus,
)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _uuid() -> str:
    return str(uuid4())


class ScanDB(Base):
    """One run of the search-and-classify pipeline. Never deleted."""
    __tablename__ = "imposter_scans"

    id = Column(String(36), primary_key=True, default=_uuid)
    brand_id = Column(String(64), nullable=False, index=True)
    search_keyword = Column(String(255), nullable=False)
    geolocation = Column(String(8), nullable=False, default="GB")
    requested_pages = Column(Integer, nullable=False, default=10)
    pages_scanned = Column(Integer, nullable=False, default=0)
    total_results = Column(Integer, nullable=False, default=0)
    impostors_found = Column(Integer, nullable=False, default=0)
    status = Column(SQLEnum(ScanStatus, name="scan_status"), nullable=False, default=ScanStatus.RUNNING)
    errors = Column(JSON, nullable=False, default=list)
    error_message = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    imposters = relationship("ImposterDB", back_populates="scan")


class ImposterDB(Base):
    """A domain suspected of impersonating a brand."""
    __tablename__ = "imposters"
    __table_args__ = (
        UniqueConstraint("brand_id", "domain", name="uq_imposter_brand_domain"),
    )

    id = Column(String(36), primary_key=True, default=_uuid)
    brand_id = Column(String(64), nullable=False, index=True)
    # Most recent scan that detected this domain
    scan_id = Column(String(36), ForeignKey("imposter_scans.id", ondelete="SET NULL"), nullable=True)
    domain = Column(String(255), nullable=False)
    full_url = Column(Text, nullable=True)
    page_title = Column(Text, nullable=True)
    page_description = Column(Text, nullable=True)
    search_rank = Column(Integer, nullable=True)  # NULL for manual entries
    match_rule = Column(String(50), nullable=True)
    source = Column(SQLEnum(ImposterSource, name="imposter_source"), nullable=False)
    status = Column(
        SQLEnum(ImposterStatus, name="imposter_status"),
        nullable=False,
        default=ImposterStatus.SUSPECTED,
        index=True,
    )
    review_notes = Column(Text, nullable=True)
    reviewed_by = Column(String(64), nullable=True)
    reviewed_at = Column(DateTime(timezone=True), nullable=True)
    detected_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    confirmed_at = Column(DateTime(timezone=True), nullable=True)
    resolved_at = Column(DateTime(timezone=True), nullable=True)

    scan = relationship("ScanDB", back_populates="imposters")
    reports = relationship(
        "ReportDB",
        back_populates="imposter",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="ReportDB.report_type",
    )

    @property
    def report_count(self) -> int:
        return len(self.reports)

    def report_for(self, report_type: ReportType) -> "ReportDB | None":
        return next((r for r in self.reports if r.report_type == report_type), None)


class ReportDB(Base):
    """Takedown request for one imposter on one channel."""
    __tablename__ = "imposter_reports"
    __table_args__ = (
        UniqueConstraint("imposter_id", "report_type", name="uq_report_imposter_type"),
    )

    id = Column(String(36), primary_key=True, default=_uuid)
    imposter_id = Column(String(36), ForeignKey("imposters.id", ondelete="CASCADE"), nullable=False, index=True)
    report_type = Column(SQLEnum(ReportType, name="report_type"), nullable=False)
    status = Column(SQLEnum(ReportStatus, name="report_status"), nullable=False, default=ReportStatus.NOT_REPORTED)
    reported_at = Column(DateTime(timezone=True), nullable=True)
    reported_by = Column(String(64), nullable=True)
    last_follow_up_at = Column(DateTime(timezone=True), nullable=True)
    follow_up_count = Column(Integer, nullable=False, default=0)
    ticket_number = Column(String(255), nullable=True)
    contact_email = Column(String(255), nullable=True)
    notes = Column(Text, nullable=True)
    response_received = Column(Boolean, nullable=False, default=False)
    response_at = Column(DateTime(timezone=True), nullable=True)
    response_notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    imposter = relationship("ImposterDB", back_populates="reports")
