"""Rich terminal output renderer for TypoGuard."""

from __future__ import annotations

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from typoguard.db_models import ImposterDB
from typoguard.models import ImposterStatus, ReportStatus, ReportType, ScanStatus
from typoguard.service import ScanSummary


console = Console()

SCAN_STATUS_COLORS = {
    ScanStatus.RUNNING: "yellow",
    ScanStatus.COMPLETED: "green",
    ScanStatus.FAILED: "bold red",
}

IMPOSTER_STATUS_COLORS = {
    ImposterStatus.SUSPECTED: "yellow",
    ImposterStatus.CONFIRMED: "bold red",
    ImposterStatus.FALSE_POSITIVE: "dim",
    ImposterStatus.RESOLVED: "green",
}

# Short channel labels for the report column
REPORT_LABELS = {
    ReportType.CLOUDFLARE: "CF",
    ReportType.HOSTING: "Host",
    ReportType.GOOGLE_LEGAL: "G-Legal",
    ReportType.GOOGLE_COPYRIGHT: "G-DMCA",
    ReportType.DOMAIN_REGISTRAR: "Registrar",
    ReportType.DOMAIN_OWNER: "Owner",
}


def render_scan_summary(summary: ScanSummary) -> None:
    """Print the outcome of a scan and the candidates it found.

    Args:
        summary: The ScanSummary returned by ImposterService.trigger_scan.
    """
    scan = summary.scan
    color = SCAN_STATUS_COLORS.get(scan.status, "white")
    console.print()
    console.print(
        Panel(
            f"[bold]Query:[/bold] {scan.search_keyword} ({scan.geolocation})\n"
            f"[bold]Pages:[/bold] {scan.pages_scanned}/{scan.requested_pages}   "
            f"[bold]Engine results:[/bold] {scan.total_results}\n"
            f"[bold]Candidates:[/bold] {scan.impostors_found}   "
            f"[bold]New:[/bold] {summary.new_imposters}",
            title=f"[bold]Scan {scan.status.value}[/bold]",
            border_style=color,
        )
    )

    if summary.candidates:
        table = Table(title="Candidates", show_lines=False)
        table.add_column("Rank", justify="right", width=5)
        table.add_column("Domain", min_width=25)
        table.add_column("Rule")
        table.add_column("Edits", justify="right", width=5)
        table.add_column("Title")
        for c in summary.candidates:
            table.add_row(str(c.search_rank), c.domain, c.matched_rule, str(c.edit_distance), c.page_title)
        console.print(table)

    if summary.errors:
        console.print(
            Panel(
                "\n".join(summary.errors),
                title="[bold yellow]Page errors[/bold yellow]",
                border_style="yellow",
            )
        )
    console.print()


def render_imposters(imposters: list[ImposterDB]) -> None:
    """Print a table of imposters with per-channel report status."""
    table = Table(title=f"Imposters ({len(imposters)})", show_lines=True)
    table.add_column("Status", justify="center")
    table.add_column("Domain", min_width=25)
    table.add_column("Source")
    table.add_column("Rank", justify="right", width=5)
    table.add_column("Reports")

    for imposter in imposters:
        color = IMPOSTER_STATUS_COLORS.get(imposter.status, "white")
        rank = str(imposter.search_rank) if imposter.search_rank is not None else "--"
        table.add_row(
            f"[{color}]{imposter.status.value}[/{color}]",
            imposter.domain,
            imposter.source.value,
            rank,
            _reports_cell(imposter),
        )

    console.print(table)


def _reports_cell(imposter: ImposterDB) -> str:
    parts = []
    for report in imposter.reports:
        if report.status == ReportStatus.NOT_REPORTED:
            continue
        label = REPORT_LABELS.get(report.report_type, report.report_type.value)
        suffix = f" +{report.follow_up_count}" if report.follow_up_count else ""
        parts.append(f"{label}: {report.status.value}{suffix}")
    return "\n".join(parts) or "[dim]none[/dim]"
