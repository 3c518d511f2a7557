"""CLI entry point for firm-enrich."""

from __future__ import annotations

import logging
from collections.abc import Callable
from pathlib import Path

import pandas as pd
import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table as RichTable

from firm_enrich import REQUIRED_COLUMNS, __version__
from firm_enrich.audit import write_run_report
from firm_enrich.config import (
    DEFAULT_SHEET_NAME,
    EnrichmentSettings,
)
from firm_enrich.enrich import Enricher, utcnow_iso
from firm_enrich.io import input_digest, write_json, write_text
from firm_enrich.lookup import LookupClient
from firm_enrich.models import Criteria, EnrichmentSummary, LoadReport, RowOutcome, RunManifest
from firm_enrich.pipeline import DEFAULT_PRIORITY, parse_priority, select_firms
from firm_enrich.report import results_filename, write_results
from firm_enrich.workbook import DatasetError, FirmDataset, open_dataset

app = typer.Typer(
    name="fenrich",
    help="firm-enrich — Enrich, filter and rank private-equity firm workbooks.",
    add_completion=False,
    no_args_is_help=True,
)
console = Console()
logger = logging.getLogger("firm_enrich")

PREVIEW_ROWS = 12


def _noop(*_args: object, **_kwargs: object) -> None:
    return None


def _printer(quiet: bool) -> Callable[..., None]:
    return _noop if quiet else console.print


def _err(msg: str) -> None:
    console.print(f"[red]x[/red] {escape(msg)}")


def _configure_logging(verbose: bool) -> None:
    handler = RichHandler(console=console, show_path=False, markup=False)
    logger.handlers = [handler]
    logger.setLevel(logging.INFO if verbose else logging.WARNING)
    logger.propagate = False


# ── Helpers ──────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"firm-enrich v{__version__}")
        raise typer.Exit()


def _parse_float(raw: str | None) -> float:
    """Operator numbers: blank, negative or garbage all mean 0."""
    if raw is None:
        return 0.0
    text = raw.replace(",", "").strip()
    if not text:
        return 0.0
    try:
        value = float(text)
    except ValueError:
        return 0.0
    return value if value > 0 else 0.0


def _ask(text: str) -> str:
    return str(typer.prompt(text, default="", show_default=False)).strip()


def _region_examples(df: pd.DataFrame, dataset: FirmDataset) -> list[str]:
    header = dataset.field_headers["region"]
    if df.empty or header not in df.columns:
        return []
    values = df[header].astype("string").fillna("").str.strip()
    return sorted({v for v in values if v})[:12]


def _resolve_criteria(
    *,
    dataset: FirmDataset,
    df: pd.DataFrame,
    interactive: bool,
    region: str | None,
    min_aum: str | None,
    min_fund_size: str | None,
    min_capital_raised: str | None,
    focus: str | None,
    priority: str | None,
) -> Criteria:
    """Build criteria from options, prompting for the ones not given."""
    if interactive:
        if region is None:
            console.print(f"Examples of region values: {_region_examples(df, dataset)}")
            region = _ask("Region equals (blank = ANY)")
        if min_aum is None:
            min_aum = _ask("Min AUM (USD B)")
        if min_fund_size is None:
            min_fund_size = _ask("Min Latest Fund Size (USD B)")
        if min_capital_raised is None:
            min_capital_raised = _ask("Min Capital Raised (USD M)")
        if focus is None:
            focus = _ask("Primary Focus contains (blank = ANY; e.g., Buyout)")
        if priority is None:
            default_csv = ",".join(key.value for key in DEFAULT_PRIORITY)
            priority = _ask(f"Priority CSV (default {default_csv})")

    return Criteria(
        region_equals=region or "",
        min_aum=_parse_float(min_aum),
        min_latest_fund_size=_parse_float(min_fund_size),
        min_capital_raised=_parse_float(min_capital_raised),
        focus_contains=focus or "",
        priority=[key.value for key in parse_priority(priority)],
    )


def _write_manifest(
    out_dir: Path,
    input_file: Path,
    command: str,
    created_at: str,
    load: LoadReport,
    *,
    enriched_rows: int = 0,
    matches: int = 0,
    status: str = "success",
    error_code: int | None = None,
    error_message: str = "",
) -> Path:
    sha256 = ""
    try:
        sha256 = input_digest(input_file)
    except OSError:
        pass

    manifest = RunManifest(
        version=__version__,
        command=command,
        input_path=str(input_file.resolve()),
        output_dir=str(out_dir.resolve()),
        created_at_utc=created_at,
        rows_in=load.rows_in,
        rows_out=load.rows_out,
        enriched_rows=enriched_rows,
        matches=matches,
        sha256=sha256,
        status=status,
        error_code=error_code,
        error_message=error_message,
    )
    return write_json(out_dir / "run_manifest.json", manifest.to_dict())


def _fail(
    out_dir: Path,
    input_file: Path,
    command: str,
    created_at: str,
    message: str,
    *,
    code: int,
    load: LoadReport | None = None,
) -> typer.Exit:
    load = load or LoadReport()
    manifest_path = _write_manifest(
        out_dir,
        input_file,
        command,
        created_at,
        load,
        status="failed",
        error_code=code,
        error_message=message,
    )
    _err(message)
    console.print(f"  Manifest -> {manifest_path}")
    return typer.Exit(code=code)


def _load(input_file: Path, sheet: str, out_dir: Path, command: str, created_at: str) -> FirmDataset:
    try:
        return open_dataset(input_file, sheet)
    except (FileNotFoundError, DatasetError) as exc:
        exit_ = _fail(out_dir, input_file, command, created_at, str(exc), code=2)
        if isinstance(exc, DatasetError) and str(exc).startswith("Missing required columns"):
            expected = ", ".join(synonyms[0] for synonyms in REQUIRED_COLUMNS.values())
            console.print(f"  Expected: {expected}")
        raise exit_ from exc


def _outcome_printer(quiet: bool) -> Callable[[RowOutcome], None]:
    icons = {"filled": "[green]+[/green]", "attempted": "[blue]=[/blue]",
             "not_found": "[yellow]?[/yellow]", "failed": "[red]x[/red]"}

    def _print(outcome: RowOutcome) -> None:
        if quiet:
            return
        detail = f" ({escape(outcome.reason)})" if outcome.reason else ""
        console.print(f"  {icons[outcome.status]} {outcome.rank:>4} {escape(outcome.firm_name)}{detail}")

    return _print


def _enrich(
    dataset: FirmDataset,
    settings: EnrichmentSettings,
    *,
    quiet: bool,
) -> EnrichmentSummary:
    with LookupClient(settings) as lookup:
        enricher = Enricher(dataset, lookup, settings, on_row=_outcome_printer(quiet))
        return enricher.run()


def _enriched_path(input_file: Path, out_dir: Path, in_place: bool) -> Path:
    if in_place:
        return input_file
    return out_dir / f"{input_file.stem}_enriched{input_file.suffix}"


def _write_summary_artifact(
    out_dir: Path,
    input_file: Path,
    load: LoadReport,
    summary: EnrichmentSummary | None,
    matches: int | None = None,
) -> Path:
    lines = [
        "firm-enrich summary",
        f"tool_version: firm-enrich v{__version__}",
        f"input_file: {input_file.name}",
        f"rows_in: {load.rows_in}",
        f"rows_out: {load.rows_out}",
        f"rows_skipped: {load.skipped_rows}",
    ]
    for idx, warning in enumerate(load.warnings, start=1):
        lines.append(f"warning_{idx}: {warning}")
    if summary is not None:
        lines.extend(
            [
                f"enrich_candidates: {summary.candidates}",
                f"enrich_cap: {summary.cap}",
                f"enrich_attempted: {summary.attempted}",
                f"enrich_filled: {summary.filled}",
                f"enrich_not_found: {summary.not_found}",
                f"enrich_failed: {summary.failed}",
            ]
        )
    if matches is not None:
        lines.append(f"matches: {matches}")
    return write_text(out_dir / "summary.txt", "\n".join(lines) + "\n")


def _preview(df: pd.DataFrame, dataset: FirmDataset) -> None:
    h = dataset.field_headers
    tbl = RichTable(title=f"Top {min(PREVIEW_ROWS, len(df))} of {len(df)} matches")
    for label in ("Rank", "Firm", "Region", "AUM (B)", "LFS (B)", "CR (M)", "Focus"):
        tbl.add_column(label)
    for _, row in df.head(PREVIEW_ROWS).iterrows():
        tbl.add_row(
            str(row[h["rank"]]),
            str(row[h["name"]]),
            str(row[h["region"]]),
            f"{row[h['aum']]:.2f}",
            f"{row[h['latest_fund_size']]:.2f}",
            f"{row[h['capital_raised']]:.0f}",
            str(row[h["focus"]]),
        )
    console.print(tbl)


# ── Shared options ───────────────────────────────────────────────

InputOption = typer.Option(
    ..., "--input", "-i", help="Path to the XLSX workbook.", exists=True, readable=True,
)
SheetOption = typer.Option(DEFAULT_SHEET_NAME, "--sheet", "-s", help="Worksheet holding the firms.")
MaxRowsOption = typer.Option(
    None, "--max-rows", envvar="FENRICH_MAX_ROWS",
    help="Most rows to look up per run (default 50; 0 disables lookups).",
)
DelayOption = typer.Option(
    None, "--delay", envvar="FENRICH_DELAY", help="Seconds to wait before each lookup.",
)
TimeoutOption = typer.Option(
    None, "--timeout", envvar="FENRICH_TIMEOUT", help="Per-request HTTP timeout in seconds.",
)
UserAgentOption = typer.Option(
    None, "--user-agent", envvar="FENRICH_USER_AGENT", help="User-Agent for lookups.",
)
QuietOption = typer.Option(
    False, "--quiet", "-q", help="Suppress informational output; still writes all artifacts.",
)
VerboseOption = typer.Option(False, "--verbose", "-v", help="Log lookups at INFO level.")


# ── Callbacks ────────────────────────────────────────────────────


@app.callback()
def main(
    version: bool | None = typer.Option(
        None, "--version", "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """firm-enrich CLI."""


# ── run command ──────────────────────────────────────────────────


@app.command()
def run(
    input_file: Path = InputOption,
    out_dir: Path = typer.Option(
        Path("output"), "--out-dir", "-o", help="Output directory for workbooks + reports.",
    ),
    sheet: str = SheetOption,
    results_name: str = typer.Option(
        "PEI300_SortedFile.xlsx", "--results-name", help="File name of the results workbook.",
    ),
    enrich: bool = typer.Option(True, "--enrich/--no-enrich", help="Look up rows missing AUM."),
    in_place: bool = typer.Option(
        False, "--in-place", help="Save enrichment back into the input workbook.",
    ),
    max_rows: int | None = MaxRowsOption,
    delay: float | None = DelayOption,
    timeout: float | None = TimeoutOption,
    user_agent: str | None = UserAgentOption,
    region: str | None = typer.Option(None, "--region", help="Region equals (blank = any)."),
    min_aum: str | None = typer.Option(None, "--min-aum", help="Minimum AUM (USD B)."),
    min_fund_size: str | None = typer.Option(
        None, "--min-fund-size", help="Minimum latest fund size (USD B).",
    ),
    min_capital_raised: str | None = typer.Option(
        None, "--min-capital-raised", help="Minimum capital raised (USD M).",
    ),
    focus: str | None = typer.Option(None, "--focus", help="Primary focus contains."),
    priority: str | None = typer.Option(
        None, "--priority",
        help="Comma-separated ranking keys: AUM, LATEST_FUND_SIZE, CAPITAL_RAISED, PEI_RANK.",
    ),
    interactive: bool = typer.Option(
        True, "--interactive/--no-interactive", help="Prompt for criteria not given as options.",
    ),
    open_file: bool = typer.Option(False, "--open", help="Open the results workbook when done."),
    quiet: bool = QuietOption,
    verbose: bool = VerboseOption,
) -> None:
    """Enrich, filter and rank a firm workbook, then write the results workbook."""
    _configure_logging(verbose)
    echo = _printer(quiet)
    created_at = utcnow_iso()
    out_dir.mkdir(parents=True, exist_ok=True)
    try:
        settings = EnrichmentSettings().with_overrides(
            max_rows=max_rows, delay_seconds=delay, timeout_seconds=timeout, user_agent=user_agent,
        )
    except (TypeError, ValueError) as exc:
        raise _fail(out_dir, input_file, "run", created_at, str(exc), code=2) from exc

    if not quiet:
        console.print(Panel(
            f"[bold]firm-enrich[/bold] v{__version__}\n"
            f"Input:  {escape(f'{input_file} [{sheet}]')}\nOutput: {out_dir}",
            title="Run Start", border_style="blue",
        ))

    # ── Load ─────────────────────────────────────────────────────
    echo("[blue]>[/blue] Loading workbook …")
    dataset = _load(input_file, sheet, out_dir, "run", created_at)
    load = dataset.report
    echo(f"  {load.rows_out} firms ({load.skipped_rows} rows without a name skipped)")

    try:
        # ── Enrich ───────────────────────────────────────────────
        summary: EnrichmentSummary | None = None
        if enrich and settings.max_rows:
            echo("[blue]>[/blue] Enriching rows missing AUM …")
            summary = _enrich(dataset, settings, quiet=quiet)
            enriched_path = dataset.save(_enriched_path(input_file, out_dir, in_place))
            echo(
                f"  {summary.filled} filled / {summary.attempted} looked up "
                f"({summary.candidates} missing AUM)"
            )
            echo(f"  Workbook -> {enriched_path}")

        # ── Filter + rank ────────────────────────────────────────
        df = dataset.to_frame()
        criteria = _resolve_criteria(
            dataset=dataset,
            df=df,
            interactive=interactive,
            region=region,
            min_aum=min_aum,
            min_fund_size=min_fund_size,
            min_capital_raised=min_capital_raised,
            focus=focus,
            priority=priority,
        )
        echo("[blue]>[/blue] Filtering + ranking …")
        selected = select_firms(df, criteria, dataset.field_headers)

        results_path = write_results(
            out_dir / results_filename(results_name), criteria, selected, summary
        )
        echo(f"  Results -> {results_path}")

        report_path = write_run_report(out_dir, load, summary)
        manifest_path = _write_manifest(
            out_dir,
            input_file,
            "run",
            created_at,
            load,
            enriched_rows=summary.filled if summary else 0,
            matches=len(selected),
        )
        summary_path = _write_summary_artifact(out_dir, input_file, load, summary, len(selected))
        echo(f"  Report   -> {report_path}")
        echo(f"  Manifest -> {manifest_path}")
        echo(f"  Summary  -> {summary_path}")

        if not quiet:
            _preview(selected, dataset)
            console.print(Panel(
                f"[green]Done[/green] — {len(selected)} matches -> {results_path}",
                title="Run Complete", border_style="green",
            ))
        if open_file:
            typer.launch(str(results_path))
    except typer.Exit:
        raise
    except Exception as exc:
        raise _fail(
            out_dir, input_file, "run", created_at,
            f"Unexpected internal error: {exc}", code=1, load=load,
        ) from exc


# ── enrich command ───────────────────────────────────────────────


@app.command("enrich")
def enrich_command(
    input_file: Path = InputOption,
    out_dir: Path = typer.Option(
        Path("output"), "--out-dir", "-o", help="Output directory for the workbook + reports.",
    ),
    sheet: str = SheetOption,
    in_place: bool = typer.Option(
        False, "--in-place", help="Save enrichment back into the input workbook.",
    ),
    max_rows: int | None = MaxRowsOption,
    delay: float | None = DelayOption,
    timeout: float | None = TimeoutOption,
    user_agent: str | None = UserAgentOption,
    quiet: bool = QuietOption,
    verbose: bool = VerboseOption,
) -> None:
    """Fill missing AUM / region / focus from Wikipedia and save the workbook."""
    _configure_logging(verbose)
    echo = _printer(quiet)
    created_at = utcnow_iso()
    out_dir.mkdir(parents=True, exist_ok=True)
    try:
        settings = EnrichmentSettings().with_overrides(
            max_rows=max_rows, delay_seconds=delay, timeout_seconds=timeout, user_agent=user_agent,
        )
    except (TypeError, ValueError) as exc:
        raise _fail(out_dir, input_file, "enrich", created_at, str(exc), code=2) from exc

    dataset = _load(input_file, sheet, out_dir, "enrich", created_at)
    load = dataset.report
    echo(f"  {load.rows_out} firms loaded from {input_file.name}")

    try:
        summary = _enrich(dataset, settings, quiet=quiet)
        enriched_path = dataset.save(_enriched_path(input_file, out_dir, in_place))
        report_path = write_run_report(out_dir, load, summary)
        manifest_path = _write_manifest(
            out_dir, input_file, "enrich", created_at, load, enriched_rows=summary.filled,
        )
        _write_summary_artifact(out_dir, input_file, load, summary)
    except Exception as exc:
        raise _fail(
            out_dir, input_file, "enrich", created_at,
            f"Unexpected internal error: {exc}", code=1, load=load,
        ) from exc

    if not quiet:
        tbl = RichTable(title="Enrichment Summary", show_lines=True)
        tbl.add_column("Check", style="bold")
        tbl.add_column("Result")
        tbl.add_row("Missing AUM", str(summary.candidates))
        tbl.add_row("Looked up", f"{summary.attempted} (cap {summary.cap})")
        tbl.add_row("Filled", f"[green]{summary.filled}[/green]")
        tbl.add_row("Not found", str(summary.not_found))
        tbl.add_row("Failed", f"[red]{summary.failed}[/red]" if summary.failed else "0")
        console.print(tbl)
    console.print(f"  Workbook -> {enriched_path}")
    echo(f"  Report   -> {report_path}")
    echo(f"  Manifest -> {manifest_path}")


# ── validate command ─────────────────────────────────────────────


@app.command()
def validate(
    input_file: Path = InputOption,
    out_dir: Path = typer.Option(
        Path("output"), "--out-dir", "-o", help="Output directory for report + manifest.",
    ),
    sheet: str = SheetOption,
    quiet: bool = QuietOption,
) -> None:
    """Check the workbook's sheet and required columns without enriching.

    Exit 0 = OK, exit 2 = schema failure.
    """
    created_at = utcnow_iso()
    out_dir.mkdir(parents=True, exist_ok=True)
    dataset = _load(input_file, sheet, out_dir, "validate", created_at)
    load = dataset.report
    report_path = write_run_report(out_dir, load)
    manifest_path = _write_manifest(out_dir, input_file, "validate", created_at, load)

    if not quiet:
        tbl = RichTable(title="Validation Summary", show_lines=True)
        tbl.add_column("Check", style="bold")
        tbl.add_column("Result")
        tbl.add_row("Rows in", str(load.rows_in))
        tbl.add_row("Firms", str(load.rows_out))
        tbl.add_row("Skipped", str(load.skipped_rows))
        tbl.add_row("Missing AUM", str(sum(r.needs_enrichment for r in dataset.records())))
        for w in load.warnings:
            tbl.add_row("Warning", f"[yellow]{w}[/yellow]")
        tbl.add_row("Status", "[green]PASS[/green]")
        console.print(tbl)
    console.print(f"  Report   -> {report_path}")
    console.print(f"  Manifest -> {manifest_path}")
