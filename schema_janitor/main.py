"""Schema Janitor CLI - find Prisma models your code no longer uses."""
from pathlib import Path
from typing import Dict, List, Optional

import typer
from rich.markup import escape
from rich.progress import (
    Progress,
    SpinnerColumn,
    TextColumn,
    BarColumn,
    TaskProgressColumn,
    TimeElapsedColumn,
)
from rich.table import Table

from schema_janitor.analyzer.file_walker import FileWalker, area_for
from schema_janitor.analyzer.models import AnalysisMode, FileArea, Model, ModelUsage, RiskLevel
from schema_janitor.analyzer.relationship_auditor import RelationshipFinding
from schema_janitor.analyzer.schema_parser import SchemaParser
from schema_janitor.analyzer.detectors import build_tiers
from schema_janitor.analyzer.usage_analyzer import UsageAnalyzer
from schema_janitor.config import Config, get_config, __version__
from schema_janitor.reporting.report import build_report, export_report, group_by_risk, real_usage_rate
from schema_janitor.utils.safe_console import SafeConsole

app = typer.Typer(
    name="schema-janitor",
    help="Heuristic usage analysis of Prisma schema models across server and client code",
    add_completion=False
)
console = SafeConsole()

RISK_ICONS = {
    RiskLevel.SAFE: "✅",
    RiskLevel.PROBABLY_SAFE: "🟢",
    RiskLevel.SUSPICIOUS: "🟡",
    RiskLevel.LIKELY_UNUSED: "🟠",
    RiskLevel.DEFINITELY_UNUSED: "❌",
}

RISK_STYLES = {
    RiskLevel.SAFE: "green",
    RiskLevel.PROBABLY_SAFE: "green",
    RiskLevel.SUSPICIOUS: "yellow",
    RiskLevel.LIKELY_UNUSED: "dark_orange",
    RiskLevel.DEFINITELY_UNUSED: "red",
}


def _load_config() -> Config:
    try:
        return get_config()
    except ValueError as e:
        console.print(f"[bold red]Error:[/bold red] {escape(str(e))}")
        raise typer.Exit(1)


def _resolve_paths(config: Config, server_path: Optional[str], client_path: Optional[str],
                   schema: Optional[str]):
    """Apply CLI overrides on top of configuration and check the server root."""
    server_root = Path(server_path).resolve() if server_path else config.server_path.resolve()
    client_root = Path(client_path).resolve() if client_path else config.client_path.resolve()

    if schema:
        schema_path = Path(schema)
    elif server_path:
        schema_path = server_root / "prisma" / "schema.prisma"
    else:
        schema_path = config.schema_path

    if not server_root.is_dir():
        console.print(f"[bold red]Error:[/bold red] Server directory not found: {escape(str(server_root))}")
        raise typer.Exit(1)

    return server_root, client_root, schema_path


def _parse_schema(schema_path: Path) -> List[Model]:
    try:
        return SchemaParser(schema_path).parse()
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[bold red]Error:[/bold red] {escape(str(e))}")
        raise typer.Exit(1)


def _resolve_mode(config: Config, mode: Optional[AnalysisMode]) -> AnalysisMode:
    return mode if mode is not None else AnalysisMode(config.mode)


def build_analyzer(models: List[Model], server_root: Path, client_root: Path,
                   mode: AnalysisMode, config: Config) -> UsageAnalyzer:
    """Discover files and set up an analyzer for one run."""
    client = client_root if client_root.is_dir() else None
    walker = FileWalker(server_root, client)
    files = walker.discover()

    return UsageAnalyzer(
        models,
        files,
        client_roots=walker.client_roots,
        server_root=server_root,
        mode=mode,
        tiers=build_tiers(config.db_handles),
    )


def run_analysis(analyzer: UsageAnalyzer, show_progress: bool = True) -> Dict[str, ModelUsage]:
    """Classify every model, with a progress bar unless disabled."""
    if not show_progress:
        return analyzer.analyze_all()

    with Progress(
        SpinnerColumn(),
        TextColumn("[bold blue]{task.description}"),
        BarColumn(),
        TaskProgressColumn(),
        TimeElapsedColumn(),
        console=console,
        transient=True
    ) as progress:
        task = progress.add_task("[cyan]Analyzing models...", total=len(analyzer.models))

        def advance(usage: ModelUsage):
            progress.update(task, advance=1, description=f"[cyan]Analyzed {usage.name}")

        return analyzer.analyze_all(progress=advance)


def _print_risk_tables(usages: Dict[str, ModelUsage], top: int, mode: AnalysisMode = AnalysisMode.TIERED):
    groups = group_by_risk(usages)
    strict = mode is AnalysisMode.STRICT

    for level, members in groups.items():
        if not members:
            continue

        table = Table(title=f"{console.icon(RISK_ICONS[level])} {level.value} MODELS ({len(members)})")
        table.add_column("Model", style=RISK_STYLES[level])
        table.add_column("Confidence", justify="right", style="yellow")
        table.add_column("Files", justify="right")
        table.add_column("Server", justify="right")
        table.add_column("Client", justify="right")
        if strict:
            table.add_column("Real Usage", justify="right", style="green")
        table.add_column("Usage Types", style="magenta", no_wrap=False)
        table.add_column("Top Usage", style="cyan", no_wrap=False)

        for usage in members:
            top_files = usage.top_files(top)
            row = [
                usage.name,
                str(usage.total_confidence),
                str(usage.total_files),
                str(usage.server_files),
                str(usage.client_files),
            ]
            if strict:
                row.append(str(usage.real_usage_files))
            row.append(", ".join(t.value for t in usage.usage_types) or "-")
            row.append("\n".join(f"{escape(a.display_path)} ({a.confidence})" for a in top_files) or "-")
            table.add_row(*row)

        console.print(table)
        console.print()


def _print_relationships(findings: Dict[str, RelationshipFinding]):
    console.print(f"[bold cyan]{console.icon('🔗')} RELATIONSHIP ANALYSIS:[/bold cyan]")
    console.print(f"   Checking relationships for {len(findings)} at-risk model(s)...")

    for name, finding in findings.items():
        if not finding.referenced_by:
            continue
        label = "UNUSED" if finding.risk_level is RiskLevel.DEFINITELY_UNUSED else "RISKY"
        console.print(
            f"   {console.icon('⚠️')}  {label} model [bold]{name}[/bold] is referenced by: "
            f"{', '.join(finding.referenced_by)}"
        )
        if finding.is_dangerous:
            console.print(
                f"      [bold red]{console.icon('🚨')} DANGER:[/bold red] Referenced by actively used models: "
                f"{', '.join(finding.safe_referrers)}"
            )
    console.print()


def _print_recommendations(usages: Dict[str, ModelUsage]):
    groups = group_by_risk(usages)
    unused = groups[RiskLevel.DEFINITELY_UNUSED]
    risky = groups[RiskLevel.SUSPICIOUS] + groups[RiskLevel.LIKELY_UNUSED]
    safe_count = len(groups[RiskLevel.SAFE]) + len(groups[RiskLevel.PROBABLY_SAFE])
    really_used = sum(1 for usage in usages.values() if usage.is_really_used)
    total = len(usages)

    console.print(f"[bold yellow]{console.icon('📊')} SUMMARY:[/bold yellow]")
    console.print(f"  Total models: {total}")
    if total:
        console.print(f"  Safe models: {safe_count} ({safe_count / total:.1%})")
        console.print(f"  Risky models: {len(risky)} ({len(risky) / total:.1%})")
        console.print(f"  Unused models: {len(unused)} ({len(unused) / total:.1%})")
        console.print(f"  Really used: {really_used} (real usage rate: {real_usage_rate(usages)}%)")
    console.print()

    console.print(f"[bold yellow]{console.icon('💡')} RECOMMENDATIONS:[/bold yellow]")
    if unused:
        console.print(f"   [bold red]Remove {len(unused)} definitely unused model(s):[/bold red]")
        for usage in unused:
            console.print(f"     - {usage.name}")
    if risky:
        console.print(f"   [bold]Review {len(risky)} suspicious/likely unused model(s):[/bold]")
        for usage in risky:
            console.print(f"     - {usage.name} (confidence: {usage.total_confidence})")
    if total and safe_count == total:
        console.print("   [bold green]All models are actively used.[/bold green]")
    console.print()

    console.print("[bold yellow]CLEANUP CHECKLIST:[/bold yellow]")
    for item in (
        "Backup your database before making changes",
        "Check if unused models are referenced in migrations",
        "Verify models aren't used in external systems",
        "Test your application after removing models",
        "Update any documentation that references removed models",
    ):
        console.print(f"   {console.icon('□')} {item}")


@app.command()
def audit(
    server_path: Optional[str] = typer.Argument(None, help="Server project root (default from config: ../server)"),
    client_path: Optional[str] = typer.Argument(None, help="Client project root (default from config: ../client)"),
    schema: Optional[str] = typer.Option(None, "--schema", "-s", help="Path to schema.prisma (default: <server>/prisma/schema.prisma)"),
    mode: Optional[AnalysisMode] = typer.Option(None, "--mode", "-m", help="Classifier: 'tiered' (five risk levels) or 'strict' (binary)"),
    export: bool = typer.Option(True, "--export/--no-export", help="Write the JSON report"),
    output: Optional[str] = typer.Option(None, "--output", "-o", help="JSON report path"),
    top: int = typer.Option(3, "--top", help="Top usage files shown per model"),
    no_progress: bool = typer.Option(False, "--no-progress", help="Disable the progress bar"),
):
    """Classify every schema model by how the code uses it."""
    config = _load_config()
    server_root, client_root, schema_path = _resolve_paths(config, server_path, client_path, schema)
    analysis_mode = _resolve_mode(config, mode)

    console.print(f"[bold blue]Server path:[/bold blue] {escape(str(server_root))}")
    client_note = "" if client_root.is_dir() else " [dim](not found)[/dim]"
    console.print(f"[bold blue]Client path:[/bold blue] {escape(str(client_root))}{client_note}")

    models = _parse_schema(schema_path)
    console.print(f"[bold blue]Parsed {len(models)} models from[/bold blue] {escape(str(schema_path))}")

    analyzer = build_analyzer(models, server_root, client_root, analysis_mode, config)
    server_count = sum(1 for f in analyzer.files if area_for(f, analyzer.client_roots) is FileArea.SERVER)
    console.print(
        f"Analyzing {len(analyzer.files)} files "
        f"(server: {server_count}, client: {len(analyzer.files) - server_count}) "
        f"in [bold]{analysis_mode.value}[/bold] mode\n"
    )

    usages = run_analysis(analyzer, show_progress=not no_progress)
    findings = analyzer.audit_relationships()

    _print_risk_tables(usages, top, analysis_mode)
    _print_relationships(findings)
    _print_recommendations(usages)

    if export:
        output_path = Path(output) if output else config.report_path
        report = build_report(usages, findings, analysis_mode)
        try:
            written = export_report(report, output_path)
        except OSError as e:
            console.print(f"\n[bold red]Error:[/bold red] Could not export report: {escape(str(e))}")
            raise typer.Exit(1)
        console.print(f"\n[green]{console.icon('💾')} Analysis exported to:[/green] {escape(str(written))}")


@app.command()
def inspect(
    model_name: str = typer.Argument(..., help="Model to inspect (case-sensitive)"),
    server_path: Optional[str] = typer.Argument(None, help="Server project root"),
    client_path: Optional[str] = typer.Argument(None, help="Client project root"),
    schema: Optional[str] = typer.Option(None, "--schema", "-s", help="Path to schema.prisma"),
    mode: Optional[AnalysisMode] = typer.Option(None, "--mode", "-m", help="Classifier: 'tiered' or 'strict'"),
):
    """Show every matched signal for one model, file by file."""
    config = _load_config()
    server_root, client_root, schema_path = _resolve_paths(config, server_path, client_path, schema)
    analysis_mode = _resolve_mode(config, mode)

    models = _parse_schema(schema_path)
    if model_name not in {m.name for m in models}:
        console.print(f"[bold red]Error:[/bold red] Model not declared in schema: {escape(model_name)}")
        raise typer.Exit(1)

    analyzer = build_analyzer(models, server_root, client_root, analysis_mode, config)
    usage = analyzer.analyze_model(model_name)

    level = usage.risk_level
    console.print(
        f"{console.icon(RISK_ICONS[level])} [bold]{model_name}[/bold] - "
        f"[{RISK_STYLES[level]}]{level.value}[/{RISK_STYLES[level]}]"
    )
    console.print(
        f"   Confidence: {usage.total_confidence}, Files: {usage.total_files} "
        f"(server: {usage.server_files}, client: {usage.client_files}, real usage: {usage.real_usage_files})"
    )

    if not usage.file_analyses:
        console.print("[dim]No mentions found.[/dim]")
        return

    table = Table(title=f"Signals for {model_name}")
    table.add_column("File", style="cyan", no_wrap=False)
    table.add_column("Area")
    table.add_column("Tier", style="magenta")
    table.add_column("Matches", justify="right")
    table.add_column("Confidence", justify="right", style="yellow")
    table.add_column("Examples", no_wrap=False)

    for analysis in usage.file_analyses:
        for signal in analysis.signals:
            table.add_row(
                escape(analysis.display_path),
                analysis.area.value,
                signal.usage_type.value,
                str(signal.match_count),
                str(signal.confidence),
                escape(" | ".join(signal.examples)),
            )

    console.print(table)


@app.command()
def models(
    server_path: Optional[str] = typer.Argument(None, help="Server project root"),
    schema: Optional[str] = typer.Option(None, "--schema", "-s", help="Path to schema.prisma"),
):
    """List the models declared in the schema."""
    config = _load_config()
    server_root, _, schema_path = _resolve_paths(config, server_path, None, schema)
    parsed = _parse_schema(schema_path)

    table = Table(title=f"Models in {schema_path.name} ({len(parsed)})")
    table.add_column("Model", style="cyan")
    table.add_column("Fields", justify="right")
    table.add_column("Relations", justify="right")
    table.add_column("Relation Targets", style="magenta", no_wrap=False)

    for model in parsed:
        table.add_row(
            model.name,
            str(len(model.fields)),
            str(len(model.relationships)),
            ", ".join(r.model + ("[]" if r.is_array else "") for r in model.relationships) or "-",
        )

    console.print(table)


def _version_callback(value: bool):
    if value:
        console.print(f"schema-janitor {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(False, "--version", callback=_version_callback, is_eager=True,
                                 help="Show version and exit"),
):
    """Schema Janitor - find Prisma models your code no longer uses."""
    pass


if __name__ == "__main__":
    app()
