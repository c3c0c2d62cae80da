"""FastAPI web application for TypoGuard."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any

import uvicorn
from fastapi import FastAPI, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse

from typoguard.config import load_config
from typoguard.db_models import ImposterDB, ReportDB, ScanDB
from typoguard.errors import DuplicateDomain, InvalidTransition, NotFound
from typoguard.models import ReportDetails
from typoguard.service import ImposterService, ScanSummary

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Serialisation
# ---------------------------------------------------------------------------

def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def serialize_scan(scan: ScanDB, imposter_count: int | None = None) -> dict[str, Any]:
    """Convert a scan row to a JSON-safe dict."""
    d = {
        "id": scan.id,
        "brand_id": scan.brand_id,
        "search_keyword": scan.search_keyword,
        "geolocation": scan.geolocation,
        "requested_pages": scan.requested_pages,
        "pages_scanned": scan.pages_scanned,
        "total_results": scan.total_results,
        "impostors_found": scan.impostors_found,
        "status": scan.status.value,
        "errors": list(scan.errors or []),
        "error_message": scan.error_message,
        "created_at": _iso(scan.created_at),
        "completed_at": _iso(scan.completed_at),
    }
    if imposter_count is not None:
        d["imposter_count"] = imposter_count
    return d


def serialize_report(report: ReportDB) -> dict[str, Any]:
    """Convert a report row to a JSON-safe dict."""
    return {
        "id": report.id,
        "imposter_id": report.imposter_id,
        "report_type": report.report_type.value,
        "status": report.status.value,
        "reported_at": _iso(report.reported_at),
        "reported_by": report.reported_by,
        "last_follow_up_at": _iso(report.last_follow_up_at),
        "follow_up_count": report.follow_up_count,
        "ticket_number": report.ticket_number,
        "contact_email": report.contact_email,
        "notes": report.notes,
        "response_received": report.response_received,
        "response_at": _iso(report.response_at),
        "response_notes": report.response_notes,
    }


def serialize_imposter(imposter: ImposterDB) -> dict[str, Any]:
    """Convert an imposter row, including its reports, to a JSON-safe dict."""
    return {
        "id": imposter.id,
        "brand_id": imposter.brand_id,
        "scan_id": imposter.scan_id,
        "domain": imposter.domain,
        "full_url": imposter.full_url,
        "page_title": imposter.page_title,
        "page_description": imposter.page_description,
        "search_rank": imposter.search_rank,
        "match_rule": imposter.match_rule,
        "source": imposter.source.value,
        "status": imposter.status.value,
        "review_notes": imposter.review_notes,
        "reviewed_by": imposter.reviewed_by,
        "reviewed_at": _iso(imposter.reviewed_at),
        "detected_at": _iso(imposter.detected_at),
        "confirmed_at": _iso(imposter.confirmed_at),
        "resolved_at": _iso(imposter.resolved_at),
        "reports": [serialize_report(r) for r in imposter.reports],
        "report_count": imposter.report_count,
    }


def _serialize_summary(summary: ScanSummary) -> dict[str, Any]:
    return {
        "scan": serialize_scan(summary.scan),
        "new_imposters": summary.new_imposters,
        "candidates": [c.domain for c in summary.candidates],
        "search_errors": summary.errors,
    }


def _details_from_body(body: dict[str, Any]) -> ReportDetails:
    return ReportDetails(
        notes=body.get("notes"),
        ticket_number=body.get("ticket_number"),
        response_received=body.get("response_received"),
        contact_email=body.get("contact_email"),
        response_notes=body.get("response_notes"),
        acting_user=body.get("acting_user"),
    )


async def _json_body(request: Request) -> dict[str, Any]:
    if not await request.body():
        return {}
    try:
        body = await request.json()
    except ValueError:
        raise ValueError("Request body must be JSON") from None
    if not isinstance(body, dict):
        raise ValueError("Request body must be a JSON object")
    return body


# ---------------------------------------------------------------------------
# App setup
# ---------------------------------------------------------------------------

def create_app(service: ImposterService | None = None) -> FastAPI:
    """Build the FastAPI app.

    Args:
        service: Service to serve. When omitted, one is built from the
            loaded configuration at startup.
    """

    @asynccontextmanager
    async def _lifespan(app: FastAPI):
        if app.state.service is None:
            app.state.service = ImposterService.from_config(load_config())
        yield

    app = FastAPI(title="TypoGuard", version="0.1.0", lifespan=_lifespan)
    app.state.service = service

    def _svc(request: Request) -> ImposterService:
        return request.app.state.service

    @app.exception_handler(NotFound)
    async def _not_found(request: Request, exc: NotFound) -> JSONResponse:
        return JSONResponse({"error": str(exc)}, status_code=404)

    @app.exception_handler(DuplicateDomain)
    async def _duplicate(request: Request, exc: DuplicateDomain) -> JSONResponse:
        return JSONResponse({"error": str(exc)}, status_code=409)

    @app.exception_handler(InvalidTransition)
    async def _invalid_transition(request: Request, exc: InvalidTransition) -> JSONResponse:
        return JSONResponse({"error": str(exc)}, status_code=409)

    @app.exception_handler(ValueError)
    async def _bad_request(request: Request, exc: ValueError) -> JSONResponse:
        return JSONResponse({"error": str(exc)}, status_code=400)

    # Handlers without a request body are sync so FastAPI runs them in its
    # threadpool; handlers that read a body hand the service call to it.

    # -- Scans ---------------------------------------------------------------

    @app.post("/api/scans")
    async def api_trigger_scan(request: Request) -> JSONResponse:
        """Run a scan synchronously and return its summary."""
        body = await _json_body(request)
        brand_id = body.get("brand_id")
        if not brand_id:
            raise ValueError("brand_id is required")

        summary = await run_in_threadpool(
            _svc(request).trigger_scan,
            brand_id,
            keyword=body.get("search_keyword"),
            geolocation=body.get("geolocation"),
            page_count=body.get("pages"),
        )
        return JSONResponse(_serialize_summary(summary))

    @app.get("/api/scans")
    def api_list_scans(request: Request, brand_id: str | None = None) -> JSONResponse:
        scans = _svc(request).list_scans(brand_id)
        return JSONResponse([serialize_scan(scan, count) for scan, count in scans])

    # -- Imposters -----------------------------------------------------------

    @app.get("/api/imposters")
    def api_list_imposters(
        request: Request,
        brand_id: str | None = None,
        status: str | None = None,
    ) -> JSONResponse:
        imposters = _svc(request).list_imposters(brand_id, status)
        return JSONResponse([serialize_imposter(i) for i in imposters])

    @app.post("/api/imposters")
    async def api_add_imposter(request: Request) -> JSONResponse:
        body = await _json_body(request)
        if not body.get("brand_id") or not body.get("domain"):
            raise ValueError("brand_id and domain are required")
        imposter = await run_in_threadpool(
            _svc(request).add_manual_imposter,
            body["brand_id"],
            body["domain"],
            notes=body.get("notes"),
            acting_user=body.get("acting_user"),
            full_url=body.get("full_url"),
        )
        return JSONResponse(serialize_imposter(imposter), status_code=201)

    @app.get("/api/imposters/{imposter_id}")
    def api_get_imposter(request: Request, imposter_id: str) -> JSONResponse:
        return JSONResponse(serialize_imposter(_svc(request).get_imposter(imposter_id)))

    @app.put("/api/imposters/{imposter_id}")
    async def api_set_imposter_status(request: Request, imposter_id: str) -> JSONResponse:
        body = await _json_body(request)
        if not body.get("status"):
            raise ValueError("status is required")
        imposter = await run_in_threadpool(
            _svc(request).set_imposter_status,
            imposter_id,
            body["status"],
            acting_user=body.get("acting_user"),
            review_notes=body.get("review_notes"),
        )
        return JSONResponse(serialize_imposter(imposter))

    @app.delete("/api/imposters/{imposter_id}")
    def api_delete_imposter(request: Request, imposter_id: str) -> JSONResponse:
        _svc(request).delete_imposter(imposter_id)
        return JSONResponse({"success": True})

    @app.post("/api/imposters/{imposter_id}/reopen")
    async def api_reopen_imposter(request: Request, imposter_id: str) -> JSONResponse:
        body = await _json_body(request)
        imposter = await run_in_threadpool(
            _svc(request).reopen_imposter,
            imposter_id,
            acting_user=body.get("acting_user"),
            review_notes=body.get("review_notes"),
        )
        return JSONResponse(serialize_imposter(imposter))

    # -- Reports -------------------------------------------------------------

    @app.get("/api/imposters/{imposter_id}/reports")
    def api_list_reports(request: Request, imposter_id: str) -> JSONResponse:
        reports = _svc(request).list_reports(imposter_id)
        return JSONResponse([serialize_report(r) for r in reports])

    @app.post("/api/imposters/{imposter_id}/reports")
    async def api_set_report_status(request: Request, imposter_id: str) -> JSONResponse:
        body = await _json_body(request)
        if not body.get("report_type") or not body.get("status"):
            raise ValueError("report_type and status are required")
        report = await run_in_threadpool(
            _svc(request).set_report_status,
            imposter_id, body["report_type"], body["status"], _details_from_body(body),
        )
        return JSONResponse(serialize_report(report))

    @app.post("/api/imposters/{imposter_id}/reports/{report_type}/follow-up")
    async def api_record_follow_up(request: Request, imposter_id: str, report_type: str) -> JSONResponse:
        body = await _json_body(request)
        report = await run_in_threadpool(
            _svc(request).record_follow_up, imposter_id, report_type, _details_from_body(body),
        )
        return JSONResponse(serialize_report(report))

    @app.get("/api/stats")
    def api_stats(request: Request, brand_id: str | None = None) -> JSONResponse:
        return JSONResponse(_svc(request).imposter_stats(brand_id))

    return app


app = create_app()


def main() -> None:
    """Launch the TypoGuard web server."""
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    uvicorn.run("typoguard.web.app:app", host="127.0.0.1", port=8000)


if __name__ == "__main__":
    main()
