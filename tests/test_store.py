"""Tests for the scan / imposter / report lifecycle store."""
import pytest

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


def _candidate(domain="monster-casino.com", rank=3, title="Monster Casino"):
    return Candidate(
        domain=domain,
        full_url=f"https://{domain}/",
        page_title=title,
        page_description="desc",
        search_rank=rank,
        matched_rule="hyphenation",
    )


def _imposter(store, domain="monster-casino.com", brand_id="monster"):
    imposter, _ = store.upsert_imposter(brand_id, _candidate(domain))
    return imposter


# =============================================================================
# SCANS
# =============================================================================

class TestScans:
    """Scan audit records."""

    def test_record_scan_starts_running(self, store):
        scan_id = store.record_scan("monster", ScanParams("monster casino", "GB", 5))
        scan = store.get_scan(scan_id)
        assert scan.status == ScanStatus.RUNNING
        assert scan.requested_pages == 5
        assert scan.completed_at is None

    def test_complete_with_a_successful_page(self, store):
        scan_id = store.record_scan("monster", ScanParams("q"))
        scan = store.complete_scan(scan_id, 2, 400, 4, True, errors=["Failed to fetch page 2"])
        assert scan.status == ScanStatus.COMPLETED
        assert scan.pages_scanned == 2
        assert scan.total_results == 400
        assert scan.impostors_found == 4
        assert scan.errors == ["Failed to fetch page 2"]
        assert scan.error_message is None
        assert scan.completed_at is not None

    def test_complete_without_success_fails(self, store):
        scan_id = store.record_scan("monster", ScanParams("q"))
        scan = store.complete_scan(scan_id, 0, 0, 0, False, errors=["bad key"])
        assert scan.status == ScanStatus.FAILED
        assert scan.error_message == "bad key"

    def test_terminal_scan_is_immutable(self, store):
        scan_id = store.record_scan("monster", ScanParams("q"))
        store.complete_scan(scan_id, 1, 10, 1, True)
        scan = store.complete_scan(scan_id, 0, 0, 0, False)
        assert scan.status == ScanStatus.COMPLETED
        assert store.get_scan(scan_id).pages_scanned == 1

    def test_unknown_scan(self, store):
        with pytest.raises(NotFound):
            store.complete_scan("nope", 0, 0, 0, False)

    def test_list_scans_counts_imposters(self, store):
        first = store.record_scan("monster", ScanParams("a"))
        second = store.record_scan("monster", ScanParams("b"))
        store.record_scan("other", ScanParams("c"))
        store.upsert_imposter("monster", _candidate("monstercasino.com"), scan_id=first)
        store.upsert_imposter("monster", _candidate("monster-casino.com"), scan_id=second)
        store.upsert_imposter("monster", _candidate("monstercasino.net"), scan_id=second)

        scans = store.list_scans("monster")
        assert {scan.id: count for scan, count in scans} == {first: 1, second: 2}


# =============================================================================
# IMPOSTERS
# =============================================================================

class TestUpsertImposter:
    """Idempotent insert-or-refresh by (brand, domain)."""

    def test_creates_suspected(self, store):
        imposter, created = store.upsert_imposter("monster", _candidate())
        assert created is True
        assert imposter.status == ImposterStatus.SUSPECTED
        assert imposter.source == ImposterSource.GOOGLE_SEARCH
        assert imposter.search_rank == 3
        assert imposter.match_rule == "hyphenation"
        assert imposter.detected_at is not None

    def test_rescan_never_regresses_status(self, store):
        imposter = _imposter(store)
        store.transition_imposter_status(imposter.id, ImposterStatus.CONFIRMED, "alice")

        refreshed, created = store.upsert_imposter(
            "monster", _candidate(rank=1, title="New title"),
        )

        assert created is False
        assert refreshed.id == imposter.id
        assert refreshed.status == ImposterStatus.CONFIRMED
        assert refreshed.search_rank == 1
        assert refreshed.page_title == "New title"
        assert len(store.list_imposters("monster")) == 1

    def test_same_domain_for_other_brand_is_separate(self, store):
        _imposter(store, brand_id="monster")
        _imposter(store, brand_id="other")
        assert len(store.list_imposters()) == 2


class TestManualImposter:
    def test_creates_manual_suspected(self, store):
        imposter = store.add_manual_imposter(
            "monster", "https://www.Monster-Casino.com/login", notes="Reported by support", acting_user="bob",
        )
        assert imposter.domain == "monster-casino.com"
        assert imposter.source == ImposterSource.MANUAL
        assert imposter.status == ImposterStatus.SUSPECTED
        assert imposter.search_rank is None
        assert imposter.review_notes == "Reported by support"
        assert imposter.reviewed_by == "bob"
        assert imposter.reviewed_at is not None

    def test_duplicate_domain(self, store):
        _imposter(store)
        with pytest.raises(DuplicateDomain):
            store.add_manual_imposter("monster", "monster-casino.com")

    def test_duplicate_after_normalization(self, store):
        store.add_manual_imposter("monster", "monster-casino.com")
        with pytest.raises(DuplicateDomain):
            store.add_manual_imposter("monster", "http://shop.monster-casino.com/path")

    def test_empty_domain(self, store):
        with pytest.raises(ValueError):
            store.add_manual_imposter("monster", "  ")


class TestImposterTransitions:
    """SUSPECTED -> CONFIRMED -> RESOLVED, SUSPECTED -> FALSE_POSITIVE."""

    def test_confirm(self, store):
        imposter = _imposter(store)
        confirmed = store.transition_imposter_status(imposter.id, ImposterStatus.CONFIRMED, "alice")
        assert confirmed.status == ImposterStatus.CONFIRMED
        assert confirmed.confirmed_at is not None
        assert confirmed.reviewed_by == "alice"
        assert confirmed.reviewed_at is not None

    def test_resolve_after_confirm(self, store):
        imposter = _imposter(store)
        store.transition_imposter_status(imposter.id, ImposterStatus.CONFIRMED, "alice")
        resolved = store.transition_imposter_status(imposter.id, ImposterStatus.RESOLVED, "bob", review_notes="taken down")
        assert resolved.status == ImposterStatus.RESOLVED
        assert resolved.resolved_at is not None
        assert resolved.confirmed_at is not None
        assert resolved.review_notes == "taken down"

    def test_false_positive(self, store):
        imposter = _imposter(store)
        result = store.transition_imposter_status(imposter.id, "FALSE_POSITIVE", "alice")
        assert result.status == ImposterStatus.FALSE_POSITIVE

    @pytest.mark.parametrize("target", [
        ImposterStatus.SUSPECTED,
        ImposterStatus.CONFIRMED,
        ImposterStatus.FALSE_POSITIVE,
    ])
    def test_resolved_is_terminal(self, store, target):
        imposter = _imposter(store)
        store.transition_imposter_status(imposter.id, ImposterStatus.CONFIRMED, "alice")
        before = store.transition_imposter_status(imposter.id, ImposterStatus.RESOLVED, "alice")

        with pytest.raises(InvalidTransition):
            store.transition_imposter_status(imposter.id, target, "mallory", review_notes="oops")

        after = store.get_imposter(imposter.id)
        assert after.status == ImposterStatus.RESOLVED
        assert after.reviewed_by == "alice"
        assert after.review_notes == before.review_notes

    @pytest.mark.parametrize("target", [
        ImposterStatus.SUSPECTED,
        ImposterStatus.CONFIRMED,
        ImposterStatus.RESOLVED,
    ])
    def test_false_positive_is_terminal(self, store, target):
        imposter = _imposter(store)
        store.transition_imposter_status(imposter.id, ImposterStatus.FALSE_POSITIVE)
        with pytest.raises(InvalidTransition):
            store.transition_imposter_status(imposter.id, target)

    def test_cannot_resolve_unconfirmed(self, store):
        imposter = _imposter(store)
        with pytest.raises(InvalidTransition):
            store.transition_imposter_status(imposter.id, ImposterStatus.RESOLVED)
        assert store.get_imposter(imposter.id).status == ImposterStatus.SUSPECTED

    def test_repeating_current_status_is_a_no_op(self, store):
        imposter = _imposter(store)
        store.transition_imposter_status(imposter.id, ImposterStatus.CONFIRMED, "alice")
        confirmed_at = store.get_imposter(imposter.id).confirmed_at
        again = store.transition_imposter_status(imposter.id, ImposterStatus.CONFIRMED, "bob")
        assert again.reviewed_by == "alice"
        assert again.confirmed_at == confirmed_at

    def test_unknown_imposter(self, store):
        with pytest.raises(NotFound):
            store.transition_imposter_status("missing", ImposterStatus.CONFIRMED)


class TestReopen:
    """Administrative correction path."""

    def test_reopen_resolved(self, store):
        imposter = _imposter(store)
        store.transition_imposter_status(imposter.id, ImposterStatus.CONFIRMED)
        store.transition_imposter_status(imposter.id, ImposterStatus.RESOLVED)
        store.upsert_report_status(imposter.id, ReportType.HOSTING, ReportStatus.RESOLVED)

        reopened = store.reopen_imposter(imposter.id, "admin", review_notes="site came back")

        assert reopened.status == ImposterStatus.SUSPECTED
        assert reopened.confirmed_at is None
        assert reopened.resolved_at is None
        assert reopened.review_notes == "site came back"
        assert reopened.report_count == 1

    def test_reopen_suspected_is_invalid(self, store):
        imposter = _imposter(store)
        with pytest.raises(InvalidTransition):
            store.reopen_imposter(imposter.id)


class TestListing:
    def test_filter_and_order(self, store):
        a = _imposter(store, "monstercasino.com")
        b = _imposter(store, "monster-casino.com")
        _imposter(store, "monstercasino.net")
        store.transition_imposter_status(a.id, ImposterStatus.CONFIRMED)
        store.transition_imposter_status(b.id, ImposterStatus.FALSE_POSITIVE)

        everything = store.list_imposters("monster")
        assert [i.status for i in everything] == [
            ImposterStatus.SUSPECTED,
            ImposterStatus.CONFIRMED,
            ImposterStatus.FALSE_POSITIVE,
        ]
        confirmed = store.list_imposters("monster", ImposterStatus.CONFIRMED)
        assert [i.domain for i in confirmed] == ["monstercasino.com"]

    def test_includes_reports_and_count(self, store):
        imposter = _imposter(store)
        store.upsert_report_status(imposter.id, ReportType.CLOUDFLARE, ReportStatus.PENDING)
        store.upsert_report_status(imposter.id, ReportType.HOSTING, ReportStatus.PENDING)

        listed = store.list_imposters("monster")[0]
        assert listed.report_count == 2
        assert {r.report_type for r in listed.reports} == {ReportType.CLOUDFLARE, ReportType.HOSTING}

    def test_stats(self, store):
        a = _imposter(store, "monstercasino.com")
        _imposter(store, "monster-casino.com")
        store.transition_imposter_status(a.id, ImposterStatus.CONFIRMED)
        _imposter(store, "monstercasino.com", brand_id="other")

        stats = store.imposter_stats("monster")
        assert stats["SUSPECTED"] == 1
        assert stats["CONFIRMED"] == 1
        assert stats["RESOLVED"] == 0
        assert stats["total"] == 2
        assert store.imposter_stats()["total"] == 3

    def test_delete_cascades_reports(self, store):
        imposter = _imposter(store)
        store.upsert_report_status(imposter.id, ReportType.CLOUDFLARE, ReportStatus.PENDING)
        store.delete_imposter(imposter.id)
        with pytest.raises(NotFound):
            store.get_imposter(imposter.id)
        with pytest.raises(NotFound):
            store.list_reports(imposter.id)
        assert store.find_imposter("monster", "monster-casino.com") is None


# =============================================================================
# REPORTS
# =============================================================================

class TestReports:
    """Per-channel takedown tracking with counted follow-ups."""

    def test_first_contact_then_follow_up(self, store):
        imposter = _imposter(store)
        first = store.upsert_report_status(
            imposter.id, ReportType.CLOUDFLARE, ReportStatus.PENDING,
            ReportDetails(acting_user="alice", ticket_number="CF-1"),
        )
        assert first.follow_up_count == 0
        assert first.reported_at is not None
        assert first.reported_by == "alice"
        assert first.last_follow_up_at is None

        second = store.upsert_report_status(imposter.id, ReportType.CLOUDFLARE, ReportStatus.IN_PROGRESS)
        assert second.id == first.id
        assert second.follow_up_count == 1
        assert second.last_follow_up_at is not None
        assert second.ticket_number == "CF-1"

    def test_follow_ups_accumulate(self, store):
        imposter = _imposter(store)
        for status in (ReportStatus.PENDING, ReportStatus.IN_PROGRESS, ReportStatus.NO_RESPONSE, ReportStatus.IN_PROGRESS):
            report = store.upsert_report_status(imposter.id, ReportType.HOSTING, status)
        assert report.follow_up_count == 3

    def test_unchanged_status_is_not_a_follow_up(self, store):
        imposter = _imposter(store)
        store.upsert_report_status(imposter.id, ReportType.HOSTING, ReportStatus.PENDING)
        report = store.upsert_report_status(
            imposter.id, ReportType.HOSTING, ReportStatus.PENDING, ReportDetails(notes="chased by phone"),
        )
        assert report.follow_up_count == 0
        assert report.notes == "chased by phone"

    def test_not_reported_row_then_first_contact(self, store):
        imposter = _imposter(store)
        created = store.upsert_report_status(imposter.id, ReportType.DOMAIN_OWNER, ReportStatus.NOT_REPORTED)
        assert created.reported_at is None

        reported = store.upsert_report_status(imposter.id, ReportType.DOMAIN_OWNER, ReportStatus.PENDING)
        assert reported.reported_at is not None
        assert reported.follow_up_count == 0

    def test_returning_to_not_reported_still_counts(self, store):
        imposter = _imposter(store)
        for status in (ReportStatus.PENDING, ReportStatus.NOT_REPORTED, ReportStatus.PENDING):
            report = store.upsert_report_status(imposter.id, ReportType.HOSTING, status)
        assert report.follow_up_count == 2
        assert report.status == ReportStatus.PENDING

    def test_reported_at_is_kept(self, store):
        imposter = _imposter(store)
        store.upsert_report_status(imposter.id, ReportType.HOSTING, ReportStatus.PENDING)
        first_contact = store.list_reports(imposter.id)[0].reported_at
        store.upsert_report_status(imposter.id, ReportType.HOSTING, ReportStatus.REJECTED)
        assert store.list_reports(imposter.id)[0].reported_at == first_contact

    def test_details_only_overwrite_when_supplied(self, store):
        imposter = _imposter(store)
        store.upsert_report_status(
            imposter.id, ReportType.DOMAIN_REGISTRAR, ReportStatus.PENDING,
            ReportDetails(notes="first", ticket_number="T-1", contact_email="abuse@registrar.test"),
        )
        report = store.upsert_report_status(
            imposter.id, ReportType.DOMAIN_REGISTRAR, ReportStatus.IN_PROGRESS,
            ReportDetails(notes="second", response_received=True, response_notes="looking into it"),
        )
        assert report.notes == "second"
        assert report.ticket_number == "T-1"
        assert report.contact_email == "abuse@registrar.test"
        assert report.response_received is True
        assert report.response_at is not None
        assert report.response_notes == "looking into it"

    def test_channels_are_independent(self, store):
        imposter = _imposter(store)
        store.upsert_report_status(imposter.id, ReportType.CLOUDFLARE, ReportStatus.PENDING)
        store.upsert_report_status(imposter.id, ReportType.CLOUDFLARE, ReportStatus.RESOLVED)
        store.upsert_report_status(imposter.id, ReportType.GOOGLE_LEGAL, ReportStatus.PENDING)

        reports = {r.report_type: r for r in store.list_reports(imposter.id)}
        assert reports[ReportType.CLOUDFLARE].status == ReportStatus.RESOLVED
        assert reports[ReportType.CLOUDFLARE].follow_up_count == 1
        assert reports[ReportType.GOOGLE_LEGAL].status == ReportStatus.PENDING
        assert reports[ReportType.GOOGLE_LEGAL].follow_up_count == 0

    def test_one_row_per_channel(self, store):
        imposter = _imposter(store)
        for _ in range(3):
            store.upsert_report_status(imposter.id, "HOSTING", "PENDING")
        assert len(store.list_reports(imposter.id)) == 1

    def test_unknown_imposter(self, store):
        with pytest.raises(NotFound):
            store.upsert_report_status("missing", ReportType.HOSTING, ReportStatus.PENDING)

    def test_invalid_channel(self, store):
        imposter = _imposter(store)
        with pytest.raises(ValueError):
            store.upsert_report_status(imposter.id, "FAX", ReportStatus.PENDING)


class TestRecordFollowUp:
    def test_increments_without_status_change(self, store):
        imposter = _imposter(store)
        store.upsert_report_status(imposter.id, ReportType.HOSTING, ReportStatus.PENDING)
        report = store.record_follow_up(imposter.id, ReportType.HOSTING, ReportDetails(notes="emailed again"))
        assert report.follow_up_count == 1
        assert report.status == ReportStatus.PENDING
        assert report.last_follow_up_at is not None
        assert report.notes == "emailed again"

    def test_requires_existing_report(self, store):
        imposter = _imposter(store)
        with pytest.raises(NotFound):
            store.record_follow_up(imposter.id, ReportType.HOSTING)
