"""Operator-facing API: scans, imposter review and takedown reporting."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from typoguard.analyzer import ImpostorAnalyzer
from typoguard.brands import BrandDirectory
from typoguard.config import get_api_key, get_section
from typoguard.database import DEFAULT_DATABASE_URL, init_db, make_engine, make_session_factory
from typoguard.db_models import ImposterDB, ReportDB, ScanDB
from typoguard.models import (
    Candidate,
    ImposterStatus,
    ReportDetails,
    ReportStatus,
    ReportType,
    ScanParams,
)
from typoguard.scanner import EventCallback, ScanOrchestrator
from typoguard.search.zyte import ZyteSearchProvider
from typoguard.similarity import SimilarityClassifier
from typoguard.store import LifecycleStore

logger = logging.getLogger(__name__)


@dataclass
class ScanSummary:
    """Result of one triggered scan."""

    scan: ScanDB
    candidates: list[Candidate] = field(default_factory=list)
    new_imposters: int = 0
    errors: list[str] = field(default_factory=list)


class ImposterService:
    """Entry points used by the web API and the CLI.

    Scans run synchronously: the call returns once every page has been
    attempted and the results are stored.
    """

    def __init__(
        self,
        store: LifecycleStore,
        brands: BrandDirectory,
        orchestrator: ScanOrchestrator,
        analyzer: ImpostorAnalyzer | None = None,
        default_pages: int = 10,
        max_pages: int = 10,
        default_geolocation: str = "GB",
        deadline_seconds: float | None = None,
    ) -> None:
        self.store = store
        self.brands = brands
        self.orchestrator = orchestrator
        self.analyzer = analyzer or ImpostorAnalyzer()
        self.default_pages = default_pages
        self.max_pages = max_pages
        self.default_geolocation = default_geolocation
        self.deadline_seconds = deadline_seconds

    @classmethod
    def from_config(cls, config: dict[str, Any]) -> "ImposterService":
        """Wire the service from a loaded configuration.

        Creates the database tables if they do not exist yet.
        """
        engine = make_engine(get_section(config, "database").get("url") or DEFAULT_DATABASE_URL)
        init_db(engine)
        store = LifecycleStore(make_session_factory(engine))

        search_cfg = get_section(config, "search")
        provider = ZyteSearchProvider(
            get_api_key(config, "zyte"),
            timeout=search_cfg.get("timeout", 30),
        )
        scan_cfg = get_section(config, "scan")
        return cls(
            store=store,
            brands=BrandDirectory.from_config(config),
            orchestrator=ScanOrchestrator.from_config(provider, config),
            analyzer=ImpostorAnalyzer(SimilarityClassifier.from_config(config)),
            default_pages=int(scan_cfg.get("default_pages", 10)),
            max_pages=int(scan_cfg.get("max_pages", 10)),
            default_geolocation=scan_cfg.get("default_geolocation", "GB"),
            deadline_seconds=scan_cfg.get("deadline_seconds"),
        )

    # ------------------------------------------------------------------
    # Scans
    # ------------------------------------------------------------------

    def trigger_scan(
        self,
        brand_id: str,
        keyword: str | None = None,
        geolocation: str | None = None,
        page_count: int | None = None,
        on_event: EventCallback = None,
    ) -> ScanSummary:
        """Search for the brand, classify results and store candidates.

        Args:
            brand_id: Brand to scan for.
            keyword: Search query; defaults to the brand name.
            geolocation: Region code; defaults to the configured region.
            page_count: Result pages to fetch, 1..max_pages.
            on_event: Optional progress callback passed to the orchestrator.

        Returns:
            ScanSummary with the stored scan row and this run's candidates.

        Raises:
            NotFound: Unknown brand.
            ValueError: Brand has no domain or page_count is out of range.
        """
        brand = self.brands.get(brand_id)
        if not brand.domain:
            raise ValueError("Brand domain is required for imposter scanning")

        pages = self.default_pages if page_count is None else int(page_count)
        if not 1 <= pages <= self.max_pages:
            raise ValueError(f"page_count must be between 1 and {self.max_pages}")

        params = ScanParams(
            search_keyword=keyword or brand.name,
            geolocation=geolocation or self.default_geolocation,
            requested_pages=pages,
        )
        scan_id = self.store.record_scan(brand.id, params)

        outcome = None
        try:
            outcome = self.orchestrator.run_scan(
                params.search_keyword,
                params.geolocation,
                pages,
                deadline_seconds=self.deadline_seconds,
                on_event=on_event,
            )
            candidates = self.analyzer.analyze(outcome.results, brand.domain, brand.name)

            new_count = 0
            for candidate in candidates:
                _imposter, created = self.store.upsert_imposter(brand.id, candidate, scan_id=scan_id)
                new_count += int(created)

            scan = self.store.complete_scan(
                scan_id,
                pages_scanned=outcome.pages_scanned,
                total_results=outcome.total_results,
                candidate_count=len(candidates),
                any_page_succeeded=outcome.any_page_succeeded,
                errors=outcome.errors,
            )
        except Exception as exc:
            logger.error("Scan %s failed: %s", scan_id, exc)
            # Keep what the search itself achieved in the audit record
            self.store.complete_scan(
                scan_id,
                pages_scanned=outcome.pages_scanned if outcome is not None else 0,
                total_results=outcome.total_results if outcome is not None else 0,
                candidate_count=0,
                any_page_succeeded=False,
                errors=(list(outcome.errors) if outcome is not None else []) + [str(exc)],
                error_message=str(exc),
            )
            raise

        if outcome.errors:
            logger.warning("Scan %s had %d page error(s)", scan_id, len(outcome.errors))

        return ScanSummary(
            scan=scan,
            candidates=candidates,
            new_imposters=new_count,
            errors=list(outcome.errors),
        )

    def list_scans(self, brand_id: str | None = None) -> list[tuple[ScanDB, int]]:
        return self.store.list_scans(brand_id)

    # ------------------------------------------------------------------
    # Imposters
    # ------------------------------------------------------------------

    def list_imposters(
        self,
        brand_id: str | None = None,
        status: ImposterStatus | str | None = None,
    ) -> list[ImposterDB]:
        status_filter = ImposterStatus(status) if status else None
        return self.store.list_imposters(brand_id, status_filter)

    def get_imposter(self, imposter_id: str) -> ImposterDB:
        return self.store.get_imposter(imposter_id)

    def add_manual_imposter(
        self,
        brand_id: str,
        domain: str,
        notes: str | None = None,
        acting_user: str | None = None,
        full_url: str | None = None,
    ) -> ImposterDB:
        brand = self.brands.get(brand_id)
        return self.store.add_manual_imposter(
            brand.id, domain, notes=notes, acting_user=acting_user, full_url=full_url,
        )

    def set_imposter_status(
        self,
        imposter_id: str,
        status: ImposterStatus | str,
        acting_user: str | None = None,
        review_notes: str | None = None,
    ) -> ImposterDB:
        return self.store.transition_imposter_status(
            imposter_id, ImposterStatus(status), acting_user=acting_user, review_notes=review_notes,
        )

    def reopen_imposter(
        self,
        imposter_id: str,
        acting_user: str | None = None,
        review_notes: str | None = None,
    ) -> ImposterDB:
        return self.store.reopen_imposter(imposter_id, acting_user=acting_user, review_notes=review_notes)

    def delete_imposter(self, imposter_id: str) -> None:
        self.store.delete_imposter(imposter_id)

    def imposter_stats(self, brand_id: str | None = None) -> dict[str, int]:
        return self.store.imposter_stats(brand_id)

    # ------------------------------------------------------------------
    # Reports
    # ------------------------------------------------------------------

    def set_report_status(
        self,
        imposter_id: str,
        report_type: ReportType | str,
        status: ReportStatus | str,
        details: ReportDetails | None = None,
    ) -> ReportDB:
        return self.store.upsert_report_status(
            imposter_id, ReportType(report_type), ReportStatus(status), details,
        )

    def record_follow_up(
        self,
        imposter_id: str,
        report_type: ReportType | str,
        details: ReportDetails | None = None,
    ) -> ReportDB:
        return self.store.record_follow_up(imposter_id, ReportType(report_type), details)

    def list_reports(self, imposter_id: str) -> list[ReportDB]:
        return self.store.list_reports(imposter_id)
