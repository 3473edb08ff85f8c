"""BMCalc CLI - async commands over the catalog, daily reports and bulletins.

Commands:
- init: Initialize database schema
- ingest-prices: Import contractor price sheets (XLSX/CSV, or PDF/JPG read by AI)
- sheets: Show imported sheets and per-contractor quota
- delete-sheet: Remove a sheet with its items and stored file
- find: Look up catalog items by code, description or free search
- add-report: Record a daily report (optionally structured by AI from text or a photo)
- import-reports: Bulk import daily reports from a spreadsheet
- reconcile: Price the services of a daily report and record them
- summary: Per-contractor measurement totals
- export: Render a measurement bulletin (XLSX/PDF/CSV)
"""

from __future__ import annotations

import asyncio
import logging
from datetime import date
from decimal import Decimal, InvalidOperation
from pathlib import Path
from uuid import UUID

import typer
from rich.console import Console
from rich.table import Table

from bmcalc.catalog import sheets_summary
from bmcalc.config import get_config
from bmcalc.core.logging import configure_logging
from bmcalc.db.connection import close_db, get_engine, get_session
from bmcalc.db.daily_reports import add_daily_report, get_daily_report, load_daily_reports
from bmcalc.db.models import Base
from bmcalc.db.price_queries import delete_sheet_file, list_sheet_files, load_catalog
from bmcalc.db.service_entries import add_service_entries, list_service_entries
from bmcalc.exceptions import BMCalcError, FileTooLargeError
from bmcalc.extraction import ExtractionClient
from bmcalc.ingestion.pricesheets import PriceSheetIngestor
from bmcalc.ingestion.report_sheets import read_report_sheet
from bmcalc.ingestion.storage import LocalFileStorage
from bmcalc.matching import JsonFileMatchHistory, ServiceReconciler
from bmcalc.measurement import summarize
from bmcalc.models import (
    DailyReport,
    IngestionResult,
    Period,
    ServiceOccurrence,
    weekday_name,
)
from bmcalc.reporting import (
    BulletinConfig,
    ReportTemplate,
    build_bulletin,
    render_bulletin_pdf,
    render_bulletin_xlsx,
    render_entries_csv,
)
from bmcalc.reporting.templates import format_currency, format_date, format_number

app = typer.Typer(
    name="bmcalc",
    help="BMCalc - Daily reports, price sheets and measurement bulletins",
    no_args_is_help=True,
)

console = Console()
logger = logging.getLogger(__name__)

@app.callback()
def main(
    log_level: str | None = typer.Option(None, "--log-level", help="Override LOG_LEVEL"),
):
    configure_logging(log_level)


def _run(coro) -> None:
    """Run a command coroutine; BMCalc errors become a red message and exit code 1."""

    async def _wrapped():
        try:
            await coro
        finally:
            await close_db()

    try:
        asyncio.run(_wrapped())
    except BMCalcError as e:
        console.print(f"[bold red]✗[/bold red] {e}")
        raise typer.Exit(code=1) from e


def parse_service(raw: str) -> ServiceOccurrence:
    """``"descrição;quantidade;unidade[;código]"`` -> ServiceOccurrence."""
    parts = [part.strip() for part in raw.split(";")]
    if len(parts) < 2 or not parts[0]:
        raise typer.BadParameter(
            f"Serviço inválido: {raw!r} (use 'descrição;quantidade;unidade[;código]')"
        )
    try:
        quantity = Decimal(parts[1].replace(",", "."))
    except InvalidOperation as e:
        raise typer.BadParameter(f"Quantidade inválida em {raw!r}") from e

    return ServiceOccurrence(
        description=parts[0],
        quantity=quantity,
        unit=parts[2] if len(parts) > 2 else "",
        raw_code=parts[3] if len(parts) > 3 and parts[3] else None,
    )


@app.command()
def init(
    drop: bool = typer.Option(False, "--drop", help="Drop existing tables"),
):
    """Initialize database schema."""
    config = get_config()
    console.print(f"[bold]Initializing database:[/bold] {config.db.url}")

    async def _init():
        engine = get_engine()
        async with engine.begin() as conn:
            if drop:
                console.print("[yellow]Dropping existing tables...[/yellow]")
                await conn.run_sync(Base.metadata.drop_all)
            console.print("[green]Creating tables...[/green]")
            await conn.run_sync(Base.metadata.create_all)

    _run(_init())
    console.print("[bold green]✓[/bold green] Database initialized")


# Price sheets the extraction gateway reads instead of the spreadsheet parser
DOCUMENT_KINDS = {".pdf": "pdf", ".jpg": "image", ".jpeg": "image"}


async def _ingest_document(
    ingestor: PriceSheetIngestor,
    file_path: Path,
    contractor: str,
    contract: str,
) -> IngestionResult:
    """Read a PDF or scanned price sheet through the gateway, then persist it."""
    config = get_config()
    size = file_path.stat().st_size
    if size > config.ingestion.max_file_size:
        raise FileTooLargeError(size, config.ingestion.max_file_size)

    content = file_path.read_bytes()
    async with ExtractionClient(config.extraction) as client:
        payload = await client.extract_price_items(
            content, DOCUMENT_KINDS[file_path.suffix.lower()]
        )
    return await ingestor.ingest_extracted(
        payload.to_extracted(contractor, contract), content, file_path.name
    )


@app.command(name="ingest-prices")
def ingest_prices_cmd(
    files: list[Path] = typer.Argument(..., help="Price sheet files (XLSX/CSV, or PDF/JPG read by AI)"),
    contractor: str = typer.Option(
        "", "--contractor", "-c", help="Contractor of PDF/JPG sheets (not detected from scans)"
    ),
    contract: str = typer.Option("", "--contract", help="Contract number of PDF/JPG sheets"),
):
    """Import contractor price sheets into the catalog."""
    config = get_config()
    storage = LocalFileStorage(config.ingestion.storage_dir)
    console.print(f"[bold]Ingesting price sheets:[/bold] {len(files)} file(s)")

    async def _ingest():
        total_added = 0
        total_updated = 0
        failures = 0

        for file_path in files:
            console.print(f"  Processing: {file_path}")
            async with get_session() as session:
                ingestor = PriceSheetIngestor(session, storage, config.ingestion)
                try:
                    if file_path.suffix.lower() in DOCUMENT_KINDS:
                        result = await _ingest_document(
                            ingestor, file_path, contractor, contract
                        )
                    else:
                        result = await ingestor.ingest(file_path)
                except BMCalcError as e:
                    console.print(f"    [red]✗[/red] {e}")
                    failures += 1
                    continue

            total_added += result.added
            total_updated += result.updated
            label = result.contractor or "Não identificada"
            console.print(
                f"    [green]✓[/green] {result.added} added, {result.updated} updated "
                f"({label}{' / ' + result.contract if result.contract else ''})"
            )
            for err in result.errors[:5]:  # Show first 5 notes
                console.print(f"      {err}", style="dim")

        console.print(
            f"\n[bold green]✓[/bold green] Total: {total_added} added, "
            f"{total_updated} updated"
        )
        if failures:
            console.print(f"[yellow]⚠[/yellow] {failures} file(s) rejected (see above)")

    _run(_ingest())


@app.command()
def sheets(
    contractor: str | None = typer.Option(None, "--contractor", "-c", help="Filter by contractor"),
):
    """Show imported price sheets and the per-contractor quota."""
    config = get_config()

    async def _sheets():
        async with get_session() as session:
            files = await list_sheet_files(session, contractor)

        if not files:
            console.print("[yellow]No price sheets imported[/yellow]")
            return

        table = Table(title="Price Sheets")
        table.add_column("ID", style="dim")
        table.add_column("File", style="cyan")
        table.add_column("Contractor")
        table.add_column("Contract")
        table.add_column("Items", justify="right")
        table.add_column("Uploaded")
        for sheet in files:
            table.add_row(
                str(sheet.id),
                sheet.file_name,
                sheet.contractor,
                sheet.contract or "-",
                str(sheet.items_count),
                sheet.uploaded_at.strftime("%d/%m/%Y %H:%M"),
            )
        console.print(table)

        quota = Table(title="Quota")
        quota.add_column("Contractor", style="cyan")
        quota.add_column("Sheets", justify="right")
        quota.add_column("Items", justify="right")
        quota.add_column("Size (KB)", justify="right")
        quota.add_column("Can add", justify="center")
        for summary in sheets_summary(files, config.ingestion.max_sheets_per_contractor):
            quota.add_row(
                summary.contractor,
                f"{summary.sheets}/{config.ingestion.max_sheets_per_contractor}",
                str(summary.items),
                f"{summary.size / 1024:.0f}",
                "[green]yes[/green]" if summary.can_add_more else "[red]no[/red]",
            )
        console.print(quota)

    _run(_sheets())


@app.command(name="delete-sheet")
def delete_sheet_cmd(
    sheet_id: UUID = typer.Argument(..., help="Sheet ID (see 'bmcalc sheets')"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
):
    """Delete a price sheet, the items it imported and its stored file."""
    if not yes:
        typer.confirm(f"Delete sheet {sheet_id} and its items?", abort=True)

    config = get_config()
    storage = LocalFileStorage(config.ingestion.storage_dir)

    async def _delete():
        async with get_session() as session:
            removed = await delete_sheet_file(session, sheet_id, storage)
        console.print(f"[bold green]✓[/bold green] Sheet deleted ({removed} items removed)")

    _run(_delete())


@app.command()
def find(
    query: str = typer.Argument(..., help="Code, description or search terms"),
    by: str = typer.Option("search", "--by", help="code | description | search | suggest"),
    contractor: str | None = typer.Option(None, "--contractor", "-c", help="Restrict to contractor"),
    strict: bool = typer.Option(False, "--strict", help="Exact code match only"),
):
    """Look up catalog items."""
    config = get_config()
    if by not in ("code", "description", "search", "suggest"):
        raise typer.BadParameter(f"Unknown lookup mode: {by}")

    async def _find():
        async with get_session() as session:
            catalog = await load_catalog(
                session, contractor, config.matching.min_description_score
            )

        scores: dict = {}
        if by == "code":
            found = catalog.find_by_code(query, strict=strict)
            items = [found] if found else []
        elif by == "description":
            found = catalog.find_by_description(query)
            items = [found] if found else []
        elif by == "suggest":
            ranked = catalog.suggest(query, min_score=config.matching.suggest_min_score)
            items = [item for item, _ in ranked]
            scores = {item.id: score for item, score in ranked}
        else:
            items = catalog.search(query, limit=config.matching.search_limit)

        if not items:
            console.print("[yellow]No matching items[/yellow]")
            return

        table = Table(title=f"Catalog ({len(catalog)} items)")
        table.add_column("Code", style="cyan")
        table.add_column("Description")
        table.add_column("Unit", justify="center")
        table.add_column("Unit price", justify="right")
        table.add_column("Contractor", style="dim")
        if scores:
            table.add_column("Score", justify="right")
        for item in items:
            row = [
                item.code,
                item.description,
                item.unit,
                format_currency(item.unit_price),
                item.contractor or "-",
            ]
            if scores:
                row.append(f"{scores[item.id]:.0f}")
            table.add_row(*row)
        console.print(table)

    _run(_find())


@app.command(name="add-report")
def add_report_cmd(
    report_date: str | None = typer.Option(None, "--date", help="Report date (YYYY-MM-DD), default today"),
    contractor: str = typer.Option("", "--contractor", "-c"),
    fiscal: str = typer.Option("", "--fiscal"),
    job_site: str = typer.Option("", "--job-site"),
    work_front: str = typer.Option("", "--work-front"),
    activities: str = typer.Option("", "--activities", help="Activities performed"),
    notes: str = typer.Option("", "--notes"),
    crew: int = typer.Option(0, "--crew", help="Total crew on site"),
    equipment: int = typer.Option(0, "--equipment", help="Total equipment on site"),
    from_text: Path | None = typer.Option(
        None, "--from-text", help="Free-text report to structure with the AI gateway"
    ),
    from_image: Path | None = typer.Option(
        None, "--from-image", help="Photo (JPG) or PDF of a report to structure with the AI gateway"
    ),
):
    """Record a daily report (RDA/RDO)."""
    config = get_config()

    async def _add():
        if from_text is not None or from_image is not None:
            async with ExtractionClient(config.extraction) as client:
                if from_image is not None:
                    kind = "pdf" if from_image.suffix.lower() == ".pdf" else "image"
                    extracted = await client.extract_report(
                        document=from_image.read_bytes(), kind=kind
                    )
                else:
                    extracted = await client.extract_report(
                        from_text.read_text(encoding="utf-8")
                    )
            reports = [activity.to_daily_report() for activity in extracted.activities]
            if not reports:
                console.print("[yellow]No activities found in report[/yellow]")
                return
        else:
            day = report_date or date.today().isoformat()
            try:
                weekday = weekday_name(day)
            except ValueError as e:
                raise typer.BadParameter(f"Invalid date: {day}") from e
            reports = [
                DailyReport(
                    date=day,
                    weekday=weekday,
                    fiscal=fiscal,
                    contractor=contractor,
                    job_site=job_site,
                    work_front=work_front,
                    activities=activities,
                    notes=notes,
                    crew_total=crew,
                    equipment_total=equipment,
                )
            ]

        async with get_session() as session:
            for report in reports:
                await add_daily_report(session, report)
                console.print(
                    f"  [green]✓[/green] {format_date(report.date)} "
                    f"{report.contractor or '-'} [dim]{report.id}[/dim]"
                )

        console.print(f"[bold green]✓[/bold green] {len(reports)} report(s) recorded")

    _run(_add())


@app.command(name="import-reports")
def import_reports_cmd(
    file: Path = typer.Argument(..., help="Spreadsheet of daily reports (XLSX/CSV)"),
    mode: str = typer.Option(
        "merge", "--mode", help="merge: add to existing reports; replace: wipe reports and entries first"
    ),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation for --mode replace"),
):
    """Bulk import daily reports from a spreadsheet."""
    if mode not in ("merge", "replace"):
        raise typer.BadParameter("--mode must be 'merge' or 'replace'")

    try:
        sheet = read_report_sheet(file.read_bytes(), file.name)
    except BMCalcError as e:
        console.print(f"[bold red]✗[/bold red] {e}")
        raise typer.Exit(code=1) from e

    for err in sheet.errors:
        console.print(f"  {err}", style="dim")
    if not sheet.reports:
        console.print("[yellow]No valid report found in the spreadsheet[/yellow]")
        raise typer.Exit(code=1)

    if mode == "replace" and not yes:
        typer.confirm(
            "Replace ALL daily reports and their service entries?", abort=True
        )

    async def _import():
        async with get_session() as session:
            loaded = await load_daily_reports(session, sheet.reports, mode=mode)
        console.print(f"[bold green]✓[/bold green] {loaded} report(s) imported ({mode})")

    _run(_import())


@app.command()
def reconcile(
    report_id: UUID = typer.Argument(..., help="Daily report ID"),
    services: list[str] = typer.Option(
        [], "--service", "-s", help="'descrição;quantidade;unidade[;código]' (repeatable)"
    ),
    extract: bool = typer.Option(
        False, "--extract", help="Extract services from the report text with the AI gateway"
    ),
    interactive: bool = typer.Option(
        True, "--interactive/--no-interactive", help="Ask for a match for unmatched services"
    ),
):
    """Price the services of a daily report against the catalog and record them."""
    config = get_config()
    occurrences = [parse_service(raw) for raw in services]

    async def _reconcile():
        async with get_session() as session:
            report = await get_daily_report(session, report_id)
            catalog = await load_catalog(
                session, report.contractor or None, config.matching.min_description_score
            )

            if extract:
                context = {
                    "date": report.date,
                    "contractor": report.contractor,
                    "fiscal": report.fiscal,
                    "job_site": report.job_site,
                    "work_front": report.work_front,
                }
                async with ExtractionClient(config.extraction) as client:
                    payload = await client.extract_services(
                        text=report.activities, price_items=catalog.items, context=context
                    )
                occurrences.extend(payload.occurrences())

            if not occurrences:
                console.print("[yellow]No services to reconcile[/yellow]")
                return

            reconciler = ServiceReconciler(
                catalog, JsonFileMatchHistory(config.matching.history_path)
            )
            drafts = reconciler.reconcile_all(occurrences)

            if interactive:
                for index, draft in enumerate(drafts):
                    if draft.matched:
                        continue
                    candidates = catalog.suggest(
                        draft.occurrence.description,
                        min_score=config.matching.suggest_min_score,
                    )
                    if not candidates:
                        continue
                    console.print(f"\n[bold]Unmatched:[/bold] {draft.occurrence.description}")
                    for number, (item, score) in enumerate(candidates, 1):
                        console.print(
                            f"  {number}. {item.code} - {item.description} "
                            f"({format_currency(item.unit_price)}) [dim]{score:.0f}[/dim]"
                        )
                    choice = typer.prompt("Choose (0 to skip)", default=0, type=int)
                    if 1 <= choice <= len(candidates):
                        drafts[index] = reconciler.confirm(
                            draft.occurrence, candidates[choice - 1][0]
                        )

            entries = [
                ServiceReconciler.to_entry(draft, report.context()) for draft in drafts
            ]
            await add_service_entries(session, entries)

        table = Table(title=f"Services {format_date(report.date)} - {report.contractor or '-'}")
        table.add_column("Code", style="cyan")
        table.add_column("Description")
        table.add_column("Qty", justify="right")
        table.add_column("Unit", justify="center")
        table.add_column("Unit price", justify="right")
        table.add_column("Total", justify="right")
        table.add_column("Method", style="dim")
        for draft, entry in zip(drafts, entries):
            quantity = format_number(entry.quantity)
            if draft.suspicious_quantity:
                quantity = f"[yellow]{quantity}[/yellow]"
            table.add_row(
                entry.code or "[red]-[/red]",
                entry.description,
                quantity,
                entry.unit,
                format_currency(entry.unit_price),
                format_currency(entry.total_value),
                draft.method.value,
            )
        console.print(table)

        matched = sum(1 for entry in entries if entry.matched)
        console.print(
            f"\n[bold green]✓[/bold green] {len(entries)} entries recorded "
            f"({matched} matched, {len(entries) - matched} unmatched)"
        )

    _run(_reconcile())


@app.command()
def summary(
    contractor: str | None = typer.Option(None, "--contractor", "-c", help="Contractor (substring)"),
    start: str = typer.Option("", "--from", help="Start date (YYYY-MM-DD)"),
    end: str = typer.Option("", "--to", help="End date (YYYY-MM-DD)"),
):
    """Show measurement totals per contractor."""

    async def _summary():
        async with get_session() as session:
            entries = await list_service_entries(session)

        period = Period(start=start, end=end) if (start or end) else None
        summaries = summarize(entries, contractor=contractor, period=period)
        if not summaries:
            console.print("[yellow]No service entries for the selected filters[/yellow]")
            return

        table = Table(title="Measurement Summary")
        table.add_column("Contractor", style="cyan")
        table.add_column("Period")
        table.add_column("Entries", justify="right")
        table.add_column("Job site")
        table.add_column("Total", justify="right", style="green")
        for item in summaries:
            table.add_row(
                item.contractor or "-",
                f"{format_date(item.period.start)} a {format_date(item.period.end)}",
                str(len(item.entries)),
                item.job_site or "-",
                format_currency(item.total_value),
            )
        console.print(table)

        grand_total = sum((item.total_value for item in summaries), Decimal("0"))
        console.print(f"\n[bold]Total:[/bold] {format_currency(grand_total)}")

    _run(_summary())


@app.command()
def export(
    output: Path = typer.Option(..., "--out", "-o", help="Output file (.xlsx, .pdf or .csv)"),
    template: ReportTemplate = typer.Option(
        ReportTemplate.SERVICE_NOTE, "--template", "-t", help="Bulletin template"
    ),
    contractor: str = typer.Option("", "--contractor", "-c", help="Contractor (substring)"),
    start: str = typer.Option("", "--from", help="Start date (YYYY-MM-DD)"),
    end: str = typer.Option("", "--to", help="End date (YYYY-MM-DD)"),
    title: str = typer.Option("", "--title", help="Override bulletin title"),
    client: str = typer.Option("", "--client", help="Contracting party"),
    contract: str = typer.Option("", "--contract", help="Contract number"),
    number: int = typer.Option(1, "--number", help="Measurement number"),
):
    """Export a measurement bulletin."""
    suffix = output.suffix.lower()
    if suffix not in (".xlsx", ".pdf", ".csv"):
        raise typer.BadParameter(f"Unsupported export format: {suffix or output.name}")

    async def _export():
        async with get_session() as session:
            entries = await list_service_entries(session)

        bulletin = build_bulletin(
            entries,
            BulletinConfig(
                template=template,
                title=title,
                client=client,
                contractor=contractor,
                contract=contract,
                number=number,
                period=Period(start=start, end=end),
            ),
        )

        if suffix == ".xlsx":
            output.write_bytes(render_bulletin_xlsx(bulletin))
        elif suffix == ".pdf":
            output.write_bytes(render_bulletin_pdf(bulletin))
        else:
            output.write_text(render_entries_csv(bulletin.entries), encoding="utf-8-sig")

        logger.info(f"Exported bulletin to {output}")
        console.print(
            f"[bold green]✓[/bold green] {bulletin.config.heading}: "
            f"{len(bulletin.rollups)} codes, {format_currency(bulletin.total_value)} -> {output}"
        )

    _run(_export())


if __name__ == "__main__":
    app()
