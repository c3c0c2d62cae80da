"""
Lifecycle store for scans, imposters and takedown reports.

Imposter state machine (no back-edges):
    SUSPECTED -> CONFIRMED -> RESOLVED
    SUSPECTED -> FALSE_POSITIVE

FALSE_POSITIVE and RESOLVED are terminal. Administrative correction goes
through reopen_imposter(), never through the normal transition path.

Reports are tracked per (imposter, channel) and have no transition
restrictions; status changes after the first contact count as follow-ups.
"""
from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Callable, Iterator, Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from typoguard.db_models import ImposterDB, ReportDB, ScanDB, utcnow
from typoguard.domains import DomainNormalizer
from typoguard.errors import DuplicateDomain, InvalidTransition, NotFound
from typoguard.models import (
    Candidate,
    ImposterSource,
    ImposterStatus,
    ReportDetails,
    ReportStatus,
    ReportType,
    ScanParams,
    ScanStatus,
)

logger = logging.getLogger(__name__)

# Allowed moves: current status -> statuses it may move to
IMPOSTER_TRANSITIONS: dict[ImposterStatus, frozenset[ImposterStatus]] = {
    ImposterStatus.SUSPECTED: frozenset({ImposterStatus.CONFIRMED, ImposterStatus.FALSE_POSITIVE}),
    ImposterStatus.CONFIRMED: frozenset({ImposterStatus.RESOLVED}),
    ImposterStatus.FALSE_POSITIVE: frozenset(),
    ImposterStatus.RESOLVED: frozenset(),
}

# Listing order: work still to review first
STATUS_ORDER = [
    ImposterStatus.SUSPECTED,
    ImposterStatus.CONFIRMED,
    ImposterStatus.FALSE_POSITIVE,
    ImposterStatus.RESOLVED,
]


def can_transition(current: ImposterStatus, requested: ImposterStatus) -> bool:
    return requested in IMPOSTER_TRANSITIONS[current]


class LifecycleStore:
    """
    Persistence-backed owner of every Scan, Imposter and Report mutation.

    Each public method runs in its own transaction. Objects returned stay
    readable after the session closes (reports are eagerly loaded).
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        normalizer: Optional[DomainNormalizer] = None,
    ):
        self._session_factory = session_factory
        self.normalizer = normalizer or DomainNormalizer()

    @contextmanager
    def _session(self) -> Iterator[Session]:
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    # =========================================================================
    # SCANS
    # =========================================================================

    def record_scan(self, brand_id: str, params: ScanParams) -> str:
        """Create a RUNNING scan row and return its id."""
        with self._session() as session:
            scan = ScanDB(
                brand_id=brand_id,
                search_keyword=params.search_keyword,
                geolocation=params.geolocation,
                requested_pages=params.requested_pages,
                pages_scanned=0,
                total_results=0,
                impostors_found=0,
                status=ScanStatus.RUNNING,
                errors=[],
                created_at=utcnow(),
            )
            session.add(scan)
            session.flush()
            logger.info("Scan %s started for brand %s (%r)", scan.id, brand_id, params.search_keyword)
            return scan.id

    def complete_scan(
        self,
        scan_id: str,
        pages_scanned: int,
        total_results: int,
        candidate_count: int,
        any_page_succeeded: bool,
        errors: Optional[list[str]] = None,
        error_message: Optional[str] = None,
    ) -> ScanDB:
        """
        Close a scan as COMPLETED, or FAILED when no page succeeded.

        Terminal scans are immutable; completing one again returns it unchanged.
        """
        with self._session() as session:
            scan = self._get_scan(session, scan_id)
            if scan.status != ScanStatus.RUNNING:
                logger.warning("Scan %s already %s; ignoring completion", scan_id, scan.status.value)
                return scan

            scan.status = ScanStatus.COMPLETED if any_page_succeeded else ScanStatus.FAILED
            scan.pages_scanned = pages_scanned
            scan.total_results = total_results
            scan.impostors_found = candidate_count
            scan.errors = list(errors or [])
            if error_message is None and not any_page_succeeded and scan.errors:
                error_message = scan.errors[-1]
            scan.error_message = error_message
            scan.completed_at = utcnow()
            logger.info("Scan %s %s (%d candidates)", scan_id, scan.status.value, candidate_count)
            return scan

    def get_scan(self, scan_id: str) -> ScanDB:
        with self._session() as session:
            return self._get_scan(session, scan_id)

    def list_scans(self, brand_id: Optional[str] = None) -> list[tuple[ScanDB, int]]:
        """Scans newest first, each paired with the imposters it last detected."""
        with self._session() as session:
            query = (
                session.query(ScanDB, func.count(ImposterDB.id))
                .outerjoin(ImposterDB, ImposterDB.scan_id == ScanDB.id)
                .group_by(ScanDB.id)
                .order_by(ScanDB.created_at.desc())
            )
            if brand_id is not None:
                query = query.filter(ScanDB.brand_id == brand_id)
            return [(scan, count) for scan, count in query.all()]

    @staticmethod
    def _get_scan(session: Session, scan_id: str) -> ScanDB:
        scan = session.get(ScanDB, scan_id)
        if scan is None:
            raise NotFound("Scan", scan_id)
        return scan

    # =========================================================================
    # IMPOSTERS
    # =========================================================================

    def upsert_imposter(
        self,
        brand_id: str,
        candidate: Candidate,
        scan_id: Optional[str] = None,
    ) -> tuple[ImposterDB, bool]:
        """
        Insert a SUSPECTED imposter or refresh an existing one.

        Existing rows keep their status and detection time; only the
        descriptive fields and latest rank change.

        Returns:
            Tuple of (imposter, created).
        """
        try:
            return self._upsert_imposter_once(brand_id, candidate, scan_id)
        except IntegrityError:
            # Another writer inserted the same (brand, domain) first.
            logger.info("Concurrent insert of %s for brand %s; retrying as update", candidate.domain, brand_id)
            return self._upsert_imposter_once(brand_id, candidate, scan_id)

    def _upsert_imposter_once(
        self,
        brand_id: str,
        candidate: Candidate,
        scan_id: Optional[str],
    ) -> tuple[ImposterDB, bool]:
        with self._session() as session:
            imposter = self._find_by_domain(session, brand_id, candidate.domain)
            created = imposter is None
            if created:
                imposter = ImposterDB(
                    brand_id=brand_id,
                    domain=candidate.domain,
                    source=ImposterSource.GOOGLE_SEARCH,
                    status=ImposterStatus.SUSPECTED,
                    detected_at=utcnow(),
                    reports=[],
                )
                session.add(imposter)

            imposter.full_url = candidate.full_url
            imposter.page_title = candidate.page_title
            imposter.page_description = candidate.page_description
            imposter.search_rank = candidate.search_rank
            imposter.match_rule = candidate.matched_rule or None
            if scan_id is not None:
                imposter.scan_id = scan_id

            session.flush()
            if created:
                logger.info("New imposter %s for brand %s (rank %s)", candidate.domain, brand_id, candidate.search_rank)
            return imposter, created

    def add_manual_imposter(
        self,
        brand_id: str,
        domain: str,
        notes: Optional[str] = None,
        acting_user: Optional[str] = None,
        full_url: Optional[str] = None,
    ) -> ImposterDB:
        """Record an operator-reported domain as SUSPECTED.

        Raises:
            DuplicateDomain: The brand already tracks this domain.
        """
        normalized = self.normalizer.normalize(domain)
        if not normalized:
            raise ValueError("domain is required")

        now = utcnow()
        try:
            with self._session() as session:
                if self._find_by_domain(session, brand_id, normalized) is not None:
                    raise DuplicateDomain(brand_id, normalized)
                imposter = ImposterDB(
                    brand_id=brand_id,
                    domain=normalized,
                    full_url=full_url or f"https://{normalized}",
                    source=ImposterSource.MANUAL,
                    status=ImposterStatus.SUSPECTED,
                    review_notes=notes,
                    reviewed_by=acting_user,
                    reviewed_at=now if acting_user else None,
                    detected_at=now,
                    reports=[],
                )
                session.add(imposter)
                session.flush()
        except IntegrityError as exc:
            raise DuplicateDomain(brand_id, normalized) from exc

        logger.info("Manual imposter %s added for brand %s by %s", normalized, brand_id, acting_user)
        return imposter

    def get_imposter(self, imposter_id: str) -> ImposterDB:
        with self._session() as session:
            return self._get_imposter(session, imposter_id)

    def find_imposter(self, brand_id: str, domain: str) -> Optional[ImposterDB]:
        with self._session() as session:
            return self._find_by_domain(session, brand_id, self.normalizer.normalize(domain))

    def delete_imposter(self, imposter_id: str) -> None:
        """Administrative removal; the imposter's reports go with it."""
        with self._session() as session:
            imposter = self._get_imposter(session, imposter_id)
            session.delete(imposter)
            logger.info("Imposter %s (%s) deleted", imposter_id, imposter.domain)

    def transition_imposter_status(
        self,
        imposter_id: str,
        new_status: ImposterStatus,
        acting_user: Optional[str] = None,
        review_notes: Optional[str] = None,
    ) -> ImposterDB:
        """
        Move an imposter along the review lifecycle.

        Requesting the status the imposter already has is a no-op.

        Raises:
            InvalidTransition: The move is not in IMPOSTER_TRANSITIONS.
            NotFound: Unknown imposter id.
        """
        new_status = ImposterStatus(new_status)
        with self._session() as session:
            imposter = self._get_imposter(session, imposter_id)
            current = imposter.status
            if current == new_status:
                return imposter
            if not can_transition(current, new_status):
                raise InvalidTransition(current.value, new_status.value)

            now = utcnow()
            imposter.status = new_status
            imposter.reviewed_by = acting_user
            imposter.reviewed_at = now
            if new_status == ImposterStatus.CONFIRMED:
                imposter.confirmed_at = now
            elif new_status == ImposterStatus.RESOLVED:
                imposter.resolved_at = now
            if review_notes is not None:
                imposter.review_notes = review_notes

            logger.info("Imposter %s: %s -> %s by %s", imposter.domain, current.value, new_status.value, acting_user)
            return imposter

    def reopen_imposter(
        self,
        imposter_id: str,
        acting_user: Optional[str] = None,
        review_notes: Optional[str] = None,
    ) -> ImposterDB:
        """
        Administrative correction: put a reviewed imposter back to SUSPECTED.

        Clears the confirmation and resolution timestamps. Reports are kept.
        """
        with self._session() as session:
            imposter = self._get_imposter(session, imposter_id)
            if imposter.status == ImposterStatus.SUSPECTED:
                raise InvalidTransition(imposter.status.value, ImposterStatus.SUSPECTED.value)

            previous = imposter.status
            imposter.status = ImposterStatus.SUSPECTED
            imposter.confirmed_at = None
            imposter.resolved_at = None
            imposter.reviewed_by = acting_user
            imposter.reviewed_at = utcnow()
            if review_notes is not None:
                imposter.review_notes = review_notes

            logger.warning("Imposter %s reopened from %s by %s", imposter.domain, previous.value, acting_user)
            return imposter

    def list_imposters(
        self,
        brand_id: Optional[str] = None,
        status_filter: Optional[ImposterStatus] = None,
    ) -> list[ImposterDB]:
        """Imposters with their reports, unreviewed first, newest first within a status."""
        with self._session() as session:
            query = session.query(ImposterDB)
            if brand_id is not None:
                query = query.filter(ImposterDB.brand_id == brand_id)
            if status_filter is not None:
                query = query.filter(ImposterDB.status == ImposterStatus(status_filter))
            imposters = query.order_by(ImposterDB.detected_at.desc()).all()

        imposters.sort(key=lambda i: STATUS_ORDER.index(i.status))
        return imposters

    def imposter_stats(self, brand_id: Optional[str] = None) -> dict[str, int]:
        """Count imposters per status, plus a 'total' entry."""
        with self._session() as session:
            query = session.query(ImposterDB.status, func.count(ImposterDB.id))
            if brand_id is not None:
                query = query.filter(ImposterDB.brand_id == brand_id)
            counts = dict(query.group_by(ImposterDB.status).all())

        stats = {status.value: counts.get(status, 0) for status in ImposterStatus}
        stats["total"] = sum(stats.values())
        return stats

    @staticmethod
    def _find_by_domain(session: Session, brand_id: str, domain: str) -> Optional[ImposterDB]:
        return (
            session.query(ImposterDB)
            .filter(ImposterDB.brand_id == brand_id, ImposterDB.domain == domain)
            .one_or_none()
        )

    @staticmethod
    def _get_imposter(session: Session, imposter_id: str) -> ImposterDB:
        imposter = session.get(ImposterDB, imposter_id)
        if imposter is None:
            raise NotFound("Imposter", imposter_id)
        return imposter

    # =========================================================================
    # REPORTS
    # =========================================================================

    def upsert_report_status(
        self,
        imposter_id: str,
        report_type: ReportType,
        new_status: ReportStatus,
        details: Optional[ReportDetails] = None,
    ) -> ReportDB:
        """
        Record the status of a takedown report on one channel.

        The row is created on first use. Every status change after the first
        contact counts as a follow-up, including a return to NOT_REPORTED.
        Supplied details always overwrite stored values.
        """
        report_type = ReportType(report_type)
        new_status = ReportStatus(new_status)
        details = details or ReportDetails()
        try:
            return self._upsert_report_once(imposter_id, report_type, new_status, details)
        except IntegrityError:
            logger.info("Concurrent insert of %s report for %s; retrying", report_type.value, imposter_id)
            return self._upsert_report_once(imposter_id, report_type, new_status, details)

    def _upsert_report_once(
        self,
        imposter_id: str,
        report_type: ReportType,
        new_status: ReportStatus,
        details: ReportDetails,
    ) -> ReportDB:
        with self._session() as session:
            imposter = self._get_imposter(session, imposter_id)
            if imposter.status == ImposterStatus.FALSE_POSITIVE:
                logger.warning("Recording %s report on false positive %s", report_type.value, imposter.domain)

            now = utcnow()
            report = imposter.report_for(report_type)
            if report is None:
                report = ReportDB(
                    imposter_id=imposter.id,
                    report_type=report_type,
                    status=ReportStatus.NOT_REPORTED,
                    follow_up_count=0,
                    response_received=False,
                    created_at=now,
                    updated_at=now,
                )
                imposter.reports.append(report)

            previous = report.status
            if new_status != previous:
                # The first move off NOT_REPORTED is the initial contact
                if report.reported_at is None:
                    report.reported_at = now
                    report.reported_by = details.acting_user
                else:
                    report.follow_up_count += 1
                    report.last_follow_up_at = now
                report.status = new_status

            self._apply_details(report, details, now)
            session.flush()
            logger.info(
                "Report %s/%s: %s -> %s (follow-ups: %d)",
                imposter.domain, report_type.value, previous.value, new_status.value, report.follow_up_count,
            )
            return report

    def record_follow_up(
        self,
        imposter_id: str,
        report_type: ReportType,
        details: Optional[ReportDetails] = None,
    ) -> ReportDB:
        """Count a re-contact on a channel without changing its status."""
        report_type = ReportType(report_type)
        with self._session() as session:
            imposter = self._get_imposter(session, imposter_id)
            report = imposter.report_for(report_type)
            if report is None:
                raise NotFound("Report", f"{imposter_id}/{report_type.value}")

            now = utcnow()
            report.follow_up_count += 1
            report.last_follow_up_at = now
            if details is not None:
                self._apply_details(report, details, now)
            return report

    def list_reports(self, imposter_id: str) -> list[ReportDB]:
        with self._session() as session:
            return list(self._get_imposter(session, imposter_id).reports)

    @staticmethod
    def _apply_details(report: ReportDB, details: ReportDetails, now) -> None:
        if details.notes is not None:
            report.notes = details.notes
        if details.ticket_number is not None:
            report.ticket_number = details.ticket_number
        if details.contact_email is not None:
            report.contact_email = details.contact_email
        if details.response_notes is not None:
            report.response_notes = details.response_notes
        if details.response_received is not None:
            if details.response_received and not report.response_received:
                report.response_at = now
            report.response_received = details.response_received
        report.updated_at = now
