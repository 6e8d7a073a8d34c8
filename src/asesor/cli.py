"""Command-line interface for the Asesor thesis assistant."""

from __future__ import annotations

import asyncio
import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import httpx
import structlog
import typer
from rich.console import Console
from rich.markdown import Markdown
from rich.table import Table

from asesor import exporters
from asesor.models import Reference
from asesor.services import (
    AgentError,
    AnalysisError,
    DocumentFormatError,
    DocumentIngestPipeline,
    DocumentService,
    InvalidReferenceError,
    LangflowAgentClient,
    LocalDocumentStore,
    LocalReferenceStore,
    ReferenceReconciler,
    ThesisAnalyzer,
    parse_citation,
    scan_document_text,
)
from asesor.settings import Settings, get_settings
from asesor.utils import html_to_text, slugify

console = Console()
app = typer.Typer(help="Asesor – virtual thesis advisor")
ref_app = typer.Typer(help="Bibliography management")
doc_app = typer.Typer(help="Thesis document")
app.add_typer(ref_app, name="ref")
app.add_typer(doc_app, name="doc")
EXPORT_FORMATS = {"text", "bibtex", "csljson"}


@dataclass(slots=True)
class _Context:
    settings: Settings
    references: LocalReferenceStore
    documents: DocumentService
    reconciler: ReferenceReconciler


def _context() -> _Context:
    settings = get_settings()
    references = LocalReferenceStore(settings)
    documents = DocumentService(LocalDocumentStore(settings), chunk_size=settings.chunk_size)
    return _Context(
        settings=settings,
        references=references,
        documents=documents,
        reconciler=ReferenceReconciler(references),
    )


def _configure_logging(level_name: str) -> None:
    level = logging.getLevelName(level_name.upper())
    if not isinstance(level, int):
        level = logging.INFO
    structlog.configure(
        wrapper_class=structlog.make_filtering_bound_logger(level),
        # resolve stderr per logger so redirected streams are honoured
        logger_factory=lambda *args: structlog.PrintLogger(sys.stderr),
    )


@app.callback()
def main() -> None:
    """Asesor keeps a thesis, its bibliography and agent feedback together."""
    _configure_logging(get_settings().log_level)


def _print_references(references: list[Reference], title: str = "Bibliography") -> None:
    table = Table(title=title)
    table.add_column("ID", overflow="fold")
    table.add_column("Author")
    table.add_column("Year")
    table.add_column("Title", overflow="fold")
    table.add_column("Source")
    table.add_column("Used")
    table.add_column("Agent")
    for reference in references:
        table.add_row(
            reference.id or "—",
            reference.author,
            reference.year,
            reference.title,
            reference.source or "—",
            "Yes" if reference.in_document else "No",
            "Yes" if reference.from_agent else "No",
        )
    console.print(table)


@app.command()
def config(
    json_output: bool = typer.Option(False, "--json", help="Output settings as JSON"),
) -> None:
    """Display the resolved settings."""
    settings = get_settings()
    if json_output:
        typer.echo(settings.model_dump_json(indent=2, exclude={"langflow_token"}))
        return
    table = Table(title="Asesor Settings")
    table.add_column("Key")
    table.add_column("Value", overflow="fold")
    for key, value in settings.model_dump(exclude={"langflow_token"}).items():
        table.add_row(key, str(value))
    console.print(table)


@app.command()
def doctor() -> None:
    """Environment checks (Python, deps, data directory, agent flows)."""
    checks: list[tuple[str, bool, str]] = []
    checks.append(("python>=3.11", sys.version_info >= (3, 11), sys.version))
    for mod in ("httpx", "sqlmodel", "structlog", "docx", "pypdf"):
        try:
            module = __import__(mod)
            ver = getattr(module, "__version__", "unknown")
            checks.append((f"{mod} import", True, ver))
        except Exception as exc:  # pragma: no cover
            checks.append((f"{mod} import", False, str(exc)))
    settings = get_settings()
    data_dir = settings.data_dir
    try:
        data_dir.mkdir(parents=True, exist_ok=True)
        probe = data_dir / ".asesor_doctor"
        probe.write_text("ok", encoding="utf-8")
        probe.unlink()
        checks.append(("data_dir writable", True, str(data_dir)))
    except Exception as exc:  # pragma: no cover
        checks.append(("data_dir writable", False, str(exc)))

    passed = True
    for name, ok, note in checks:
        status = "[green]OK[/green]" if ok else "[red]FAIL[/red]"
        console.print(f"{status} {name} ({note})")
        passed = passed and ok
    missing = [role for role in ("structure", "writing", "citations") if not settings.agent_id(role)]
    if missing:
        console.print(f"[yellow]WARN[/yellow] no agent flow for: {', '.join(missing)}")
    if not passed:
        raise typer.Exit(code=1)
    console.print("[green]Doctor checks passed.[/green]")


@ref_app.command("add")
def ref_add(raw: str = typer.Argument(..., help="APA reference, e.g. 'García, J. (2023). Title. Publisher.'")) -> None:
    """Parse and store a reference."""

    async def runner() -> None:
        ctx = _context()
        reference = parse_citation(raw)
        try:
            stored = await ctx.reconciler.add_reference(ctx.settings.owner_id, reference)
        except InvalidReferenceError as exc:
            console.print(f"[red]{exc}[/red]")
            console.print("Expected APA format, e.g. García, J. (2023). Title. Publisher.")
            raise typer.Exit(code=1) from exc
        console.print(f"[green]Stored[/green]: {exporters.reference_to_line(stored)} ({stored.id})")

    asyncio.run(runner())


@ref_app.command("list")
def ref_list(
    used: Optional[bool] = typer.Option(None, "--used/--unused", help="Filter by document usage"),
    agent: bool = typer.Option(False, "--agent", help="Only agent-suggested references"),
) -> None:
    """List stored references."""

    async def runner() -> None:
        ctx = _context()
        items = await ctx.references.select(ctx.settings.owner_id, in_document=used)
        if agent:
            items = [reference for reference in items if reference.from_agent]
        if not items:
            console.print("[yellow]No references yet. Use `asesor ref add` or `asesor doc load`.")
            return
        _print_references(items)

    asyncio.run(runner())


@ref_app.command("delete")
def ref_delete(reference_id: str = typer.Argument(..., help="Reference ID")) -> None:
    """Delete one reference."""

    async def runner() -> None:
        ctx = _context()
        if not await ctx.references.delete(reference_id):
            console.print(f"[red]No reference with id {reference_id}[/red]")
            raise typer.Exit(code=1)
        console.print(f"[green]Deleted[/green] {reference_id}")

    asyncio.run(runner())


@ref_app.command("clear")
def ref_clear(
    unused_only: bool = typer.Option(False, "--unused-only", help="Keep references cited in the document"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
) -> None:
    """Delete references in bulk."""
    if not yes and not typer.confirm("Delete references?"):
        raise typer.Abort()

    async def runner() -> None:
        ctx = _context()
        removed = await ctx.references.delete_where(
            ctx.settings.owner_id, in_document=False if unused_only else None
        )
        console.print(f"[green]Removed {removed} references.")

    asyncio.run(runner())


@ref_app.command("sync")
def ref_sync() -> None:
    """Recompute which references are cited in the stored document."""

    async def runner() -> None:
        ctx = _context()
        text = await ctx.documents.load_text(ctx.settings.owner_id)
        result = await ctx.reconciler.sync(ctx.settings.owner_id, text)
        console.print(
            f"[green]Checked {result.checked} references[/green]: "
            f"{len(result.marked_used)} now used, {len(result.marked_unused)} no longer used."
        )

    asyncio.run(runner())


@app.command()
def export(
    format: str = typer.Option("text", "--format", "-f", help="text, bibtex or csljson", case_sensitive=False),
    used_only: bool = typer.Option(False, "--used-only", help="Only references cited in the document"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write to file"),
) -> None:
    """Export the bibliography."""

    fmt = format.lower()
    if fmt not in EXPORT_FORMATS:
        raise typer.BadParameter("Format must be 'text', 'bibtex' or 'csljson'.")

    async def runner() -> None:
        ctx = _context()
        items = await ctx.references.select(ctx.settings.owner_id, in_document=True if used_only else None)
        if not items:
            console.print("[yellow]No references matched the export criteria.")
            return
        if fmt == "text":
            payload = exporters.export_text(items)
        elif fmt == "bibtex":
            payload = exporters.export_bibtex(items)
        else:
            payload = exporters.export_csl_json(items)
        if output:
            output.parent.mkdir(parents=True, exist_ok=True)
            output.write_text(payload, encoding="utf-8")
            console.print(f"[green]Wrote {fmt} export to {output}")
        else:
            typer.echo(payload)

    asyncio.run(runner())


@doc_app.command("load")
def doc_load(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True, resolve_path=True),
) -> None:
    """Load a .docx/.pdf/.html/.txt thesis and extract its references."""

    async def runner() -> None:
        ctx = _context()
        pipeline = DocumentIngestPipeline(ctx.documents, ctx.reconciler)
        try:
            outcome = await pipeline.ingest(ctx.settings.owner_id, path)
        except DocumentFormatError as exc:
            console.print(f"[red]{exc}[/red]")
            raise typer.Exit(code=1) from exc
        console.print(
            f"[green]Loaded[/green] {outcome.document.title}: "
            f"{outcome.document.word_count} words in {outcome.chunks} chunks."
        )
        if outcome.found:
            console.print(f"Found {outcome.found} references, {outcome.inserted} new.")
        else:
            console.print("[yellow]No references found in the document.")

    asyncio.run(runner())


@doc_app.command("show")
def doc_show(full: bool = typer.Option(False, help="Print the whole text")) -> None:
    """Show the stored document."""

    async def runner() -> None:
        ctx = _context()
        document = await ctx.documents.load(ctx.settings.owner_id)
        if document is None:
            console.print("[yellow]No document stored. Use `asesor doc load`.")
            return
        text = html_to_text(document.html)
        console.print(f"[bold]{document.title}[/bold] ({len(text.split())} words, {document.chunk_count} chunks)")
        console.print(text if full else text[:500])

    asyncio.run(runner())


@doc_app.command("reset")
def doc_reset(yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation")) -> None:
    """Start over: delete the stored document."""
    if not yes and not typer.confirm("Delete the current document?"):
        raise typer.Abort()

    async def runner() -> None:
        ctx = _context()
        await ctx.documents.clear(ctx.settings.owner_id)
        console.print("[green]Document cleared.")

    asyncio.run(runner())


@app.command()
def scan() -> None:
    """Re-scan the stored document for references."""

    async def runner() -> None:
        ctx = _context()
        text = await ctx.documents.load_text(ctx.settings.owner_id)
        found = scan_document_text(text)
        if not found:
            console.print("[yellow]No references found in the document.")
            return
        inserted = await ctx.reconciler.reconcile(ctx.settings.owner_id, found.values())
        _print_references(list(found.values()), title=f"Found {len(found)} references")
        console.print(f"[green]{inserted} new references stored.")

    asyncio.run(runner())


@app.command()
def analyze() -> None:
    """Run the structure, writing and citation agents over the document."""

    async def runner() -> None:
        ctx = _context()
        text = await ctx.documents.load_text(ctx.settings.owner_id)
        async with httpx.AsyncClient(timeout=120) as client:
            analyzer = ThesisAnalyzer(
                LangflowAgentClient(client, ctx.settings),
                ctx.references,
                ctx.reconciler,
                ctx.settings.agent_flows,
            )
            try:
                report = await analyzer.analyze(ctx.settings.owner_id, text)
            except (AnalysisError, AgentError) as exc:
                console.print(f"[red]{exc}[/red]")
                raise typer.Exit(code=1) from exc
        for heading, body in (
            ("Structure agent", report.structure),
            ("Writing agent", report.writing),
            ("Citations agent", report.citations),
        ):
            console.rule(heading)
            console.print(Markdown(body))
        console.print(
            f"[green]Analysis complete.[/green] {len(report.suggested)} references suggested, "
            f"{report.inserted} added to the bibliography."
        )

    asyncio.run(runner())


@app.command()
def chat(query: str = typer.Argument(..., help="Question for the advisor")) -> None:
    """Ask the advisor agent a question about the thesis."""

    async def runner() -> None:
        ctx = _context()
        text = await ctx.documents.load_text(ctx.settings.owner_id)
        async with httpx.AsyncClient(timeout=120) as client:
            analyzer = ThesisAnalyzer(
                LangflowAgentClient(client, ctx.settings),
                ctx.references,
                ctx.reconciler,
                ctx.settings.agent_flows,
            )
            try:
                reply = await analyzer.chat(query, context=text[:4000])
            except AgentError as exc:
                console.print(f"[red]{exc}[/red]")
                raise typer.Exit(code=1) from exc
        console.print(Markdown(reply))

    asyncio.run(runner())


@app.command()
def report(
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="HTML file to write"),
) -> None:
    """Write an HTML report of the document and its bibliography."""

    async def runner() -> None:
        ctx = _context()
        document = await ctx.documents.load(ctx.settings.owner_id)
        if document is None:
            console.print("[yellow]No document stored. Use `asesor doc load`.")
            raise typer.Exit(code=1)
        references = await ctx.references.select(ctx.settings.owner_id)
        html = exporters.render_report_html(document.title, html_to_text(document.html), references)
        destination = output or Path("outputs") / f"report-{slugify(document.title)}.html"
        destination.parent.mkdir(parents=True, exist_ok=True)
        destination.write_text(html, encoding="utf-8")
        console.print(f"[green]Wrote report to {destination}")

    asyncio.run(runner())


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", help="Host interface"),
    port: int = typer.Option(8000, help="Port to bind"),
    reload: bool = typer.Option(False, help="Enable auto-reload"),
) -> None:
    """Launch the HTTP API."""
    try:
        import uvicorn
    except ImportError as exc:  # pragma: no cover
        console.print("[red]uvicorn is not installed.[/red]")
        raise typer.Exit(code=1) from exc

    uvicorn.run(
        "asesor.web.app:create_app",
        host=host,
        port=port,
        reload=reload,
        factory=True,
    )
