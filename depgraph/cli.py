"""CLI entry point: depgraph.

Subcommands:
    depgraph scan ORG --save graph.json      # Scan an organisation, save the graph
    depgraph scan ORG --local ./checkouts    # Scan local checkouts instead of GitHub
    depgraph stats --graph graph.json        # Summary statistics
    depgraph conflicts --graph graph.json    # Modules used at several versions
    depgraph impact -m MODULE --graph g.json # Blast radius of a module change
"""

from __future__ import annotations

import asyncio
import dataclasses
import json
from pathlib import Path
from typing import Any

import click
import structlog

from depgraph.analysis import HEURISTIC_DISCLAIMER, DependencyAnalyzer
from depgraph.core.config import DepGraphConfig
from depgraph.core.logging import setup_logging
from depgraph.exceptions import DepGraphError
from depgraph.github.cache import FileCache
from depgraph.github.client import GitHubClient
from depgraph.graph.graph import DependencyGraph
from depgraph.graph.serialize import load_graph, save_graph
from depgraph.scanner.builder import build_graph
from depgraph.scanner.context import ScanContext
from depgraph.scanner.host import LocalDirectoryHost
from depgraph.scanner.models import ScanResult
from depgraph.scanner.scanner import RepositoryScanner

log = structlog.get_logger("depgraph.cli")

_graph_option = click.option(
    "--graph",
    "graph_path",
    required=True,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Saved graph JSON (from 'depgraph scan --save')",
)


def _parse_overrides(values: tuple[str, ...]) -> dict[str, str]:
    overrides: dict[str, str] = {}
    for item in values:
        key, sep, value = item.partition("=")
        if not sep or not key:
            raise click.BadParameter(f"expected KEY=VALUE, got {item!r}", param_hint="--set")
        overrides[key.strip()] = value.strip()
    return overrides


def _load(graph_path: Path) -> DependencyGraph:
    try:
        return load_graph(graph_path)
    except (DepGraphError, OSError) as exc:
        raise click.ClickException(f"cannot load graph {graph_path}: {exc}") from exc


def _jsonable(data: Any) -> Any:
    if dataclasses.is_dataclass(data) and not isinstance(data, type):
        return dataclasses.asdict(data)
    if isinstance(data, list):
        return [_jsonable(item) for item in data]
    if isinstance(data, dict):
        return {k: _jsonable(v) for k, v in data.items()}
    return data


def _emit(ctx: click.Context, data: Any, render) -> None:
    if ctx.obj["output"] == "json":
        click.echo(json.dumps(_jsonable(data), indent=2, default=str))
    else:
        render(data)


def _scan_record(result: ScanResult) -> dict[str, Any]:
    return {
        "repository": result.repo_label,
        "module_path": result.manifest.module_path if result.manifest else None,
        "dependencies": [dataclasses.asdict(d) for d in result.dependencies],
        "error": result.error,
        "error_kind": result.error_kind.value if result.error_kind else None,
    }


def _table(rows: list[list[str]], headers: list[str]) -> None:
    widths = [len(h) for h in headers]
    for row in rows:
        widths = [max(w, len(cell)) for w, cell in zip(widths, row)]
    fmt = "  ".join(f"{{:<{w}}}" for w in widths)
    click.echo(fmt.format(*headers).rstrip())
    for row in rows:
        click.echo(fmt.format(*row).rstrip())


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Verbose logging")
@click.option(
    "-o",
    "--output",
    type=click.Choice(["text", "json"]),
    default="text",
    show_default=True,
    help="Output format",
)
@click.option(
    "--set",
    "overrides",
    multiple=True,
    metavar="KEY=VALUE",
    help="Override a config option, e.g. --set cache.maxAge=600",
)
@click.pass_context
def main(ctx: click.Context, verbose: bool, output: str, overrides: tuple[str, ...]) -> None:
    """DepGraph: cross-repository Go module dependency analysis."""
    try:
        setup_logging("DEBUG" if verbose else None)
        config = DepGraphConfig.from_env().merged(_parse_overrides(overrides))
    except DepGraphError as exc:
        raise click.ClickException(str(exc)) from exc
    ctx.obj = {"output": output, "config": config}


# ── scan ─────────────────────────────────────────────────────────────────


async def _run_scan(
    config: DepGraphConfig,
    org: str,
    local: Path | None,
    timeout: float | None,
) -> list[ScanResult]:
    scan_ctx = ScanContext(timeout=timeout)
    if local is not None:
        scanner = RepositoryScanner(
            LocalDirectoryHost(local),
            manifest_path=config.scanner.manifest_path,
            max_in_flight=config.scanner.max_in_flight,
        )
        return await scanner.scan_organization(org, scan_ctx)

    cache = FileCache(
        config.cache.dir,
        config.cache.max_age,
        enabled=config.cache.enabled,
    )
    async with GitHubClient.from_config(config.remote, cache=cache) as client:
        scanner = RepositoryScanner(
            client,
            manifest_path=config.scanner.manifest_path,
            max_in_flight=config.scanner.max_in_flight,
        )
        return await scanner.scan_organization(org, scan_ctx)


@main.command()
@click.argument("org")
@click.option("--save", "save_path", type=click.Path(dir_okay=False, path_type=Path),
              help="Write the resulting graph to this JSON file")
@click.option("--local", type=click.Path(exists=True, file_okay=False, path_type=Path),
              help="Scan subdirectories of this directory instead of GitHub")
@click.option("--max-in-flight", type=click.IntRange(min=1), default=None,
              help="Maximum concurrent manifest requests")
@click.option("--no-cache", is_flag=True, help="Bypass the response cache")
@click.option("--timeout", type=float, default=None, help="Overall scan deadline in seconds")
@click.pass_context
def scan(
    ctx: click.Context,
    org: str,
    save_path: Path | None,
    local: Path | None,
    max_in_flight: int | None,
    no_cache: bool,
    timeout: float | None,
) -> None:
    """Scan every repository of ORG and build the dependency graph."""
    config: DepGraphConfig = ctx.obj["config"].merged(
        {
            "scanner.maxInFlight": max_in_flight,
            "cache.enabled": False if no_cache else None,
        }
    )
    try:
        results = asyncio.run(_run_scan(config, org, local, timeout))
    except DepGraphError as exc:
        raise click.ClickException(str(exc)) from exc

    graph = build_graph(results)
    if save_path is not None:
        try:
            save_graph(graph, save_path)
        except OSError as exc:
            raise click.ClickException(f"cannot write graph {save_path}: {exc}") from exc
        log.info("cli.graph_saved", path=str(save_path), nodes=len(graph))

    if ctx.obj["output"] == "json":
        click.echo(json.dumps([_scan_record(r) for r in results], indent=2))
        return

    _table(
        [
            [r.repo_label, str(len(r.dependencies)) if r.ok else "-", r.error or "ok"]
            for r in results
        ],
        ["REPOSITORY", "DEPENDENCIES", "STATUS"],
    )
    if save_path is not None:
        click.echo(f"\nGraph written to {save_path}")


# ── analysis ─────────────────────────────────────────────────────────────


@main.command()
@_graph_option
@click.pass_context
def stats(ctx: click.Context, graph_path: Path) -> None:
    """Repository/module counts, shared modules and conflicts."""
    result = DependencyAnalyzer(_load(graph_path)).analyze_dependencies()

    def render(s) -> None:
        click.echo(f"Total Repositories:    {s.total_repositories}")
        click.echo(f"Total Modules:         {s.total_modules}")
        click.echo(f"Shared Modules:        {s.shared_modules}")
        click.echo(f"Version Conflicts:     {s.version_conflicts}")
        click.echo(f"Average Dependencies:  {s.average_dependencies:.2f}")
        click.echo("\nTop Shared Modules:")
        for label in s.top_shared:
            click.echo(f"  {label}")

    _emit(ctx, result, render)


@main.command()
@_graph_option
@click.pass_context
def conflicts(ctx: click.Context, graph_path: Path) -> None:
    """Modules declared at more than one version."""
    result = DependencyAnalyzer(_load(graph_path)).find_version_conflicts()

    def render(items) -> None:
        if not items:
            click.echo("No version conflicts.")
        for c in items:
            click.echo(f"{c.label}  (recommended: {c.recommended})")
            for version, repos in c.versions.items():
                click.echo(f"  {version}: {', '.join(repos)}")

    _emit(ctx, result, render)


@main.command()
@_graph_option
@click.pass_context
def critical(ctx: click.Context, graph_path: Path) -> None:
    """Modules used by at least half of all repositories."""
    graph = _load(graph_path)
    nodes = DependencyAnalyzer(graph).find_critical_dependencies()
    result = [
        {"module": n.id, "label": n.label, "dependents": len(graph.dependents(n.id))}
        for n in nodes
    ]

    def render(items) -> None:
        _table(
            [[i["label"], str(i["dependents"])] for i in items],
            ["MODULE", "DEPENDENTS"],
        )

    _emit(ctx, result, render)


@main.command()
@_graph_option
@click.pass_context
def updates(ctx: click.Context, graph_path: Path) -> None:
    """Repositories behind the recommended version of a conflicted module."""
    result = DependencyAnalyzer(_load(graph_path)).find_update_candidates()

    def render(items: dict[str, list[str]]) -> None:
        if not items:
            click.echo("No update candidates.")
        for module, repos in items.items():
            click.echo(f"{module}: {', '.join(repos)}")

    _emit(ctx, result, render)


@main.command()
@_graph_option
@click.option("-l", "--limit", type=click.IntRange(min=1), default=5, show_default=True,
              help="Maximum number of chains to show")
@click.pass_context
def chains(ctx: click.Context, graph_path: Path, limit: int) -> None:
    """Longest dependency chains rooted at repositories."""
    result = DependencyAnalyzer(_load(graph_path)).find_longest_dependency_chains(limit)

    def render(items) -> None:
        for i, chain in enumerate(items, start=1):
            click.echo(f"Chain {i} (Length: {chain.length}):")
            click.echo("  " + " -> ".join(chain.path))
            if chain.circular:
                click.echo("  (Circular Dependency Detected)")

    _emit(ctx, result, render)


@main.command()
@_graph_option
@click.pass_context
def cycles(ctx: click.Context, graph_path: Path) -> None:
    """One witness cycle per back-edge, plus non-trivial strongly connected components."""
    graph = _load(graph_path)
    result = {
        "cycles": graph.find_cycles(),
        "components": [c for c in graph.strongly_connected_components() if len(c) > 1],
    }

    def render(data) -> None:
        if not data["cycles"]:
            click.echo("No cycles.")
        for cycle in data["cycles"]:
            click.echo(" -> ".join(cycle))
        for component in data["components"]:
            click.echo(f"Component: {', '.join(component)}")

    _emit(ctx, result, render)


@main.command()
@_graph_option
@click.option("-m", "--module", "module_id", required=True, help="Module ID to analyze")
@click.pass_context
def impact(ctx: click.Context, graph_path: Path, module_id: str) -> None:
    """Impact score of changing a module."""
    try:
        result = DependencyAnalyzer(_load(graph_path)).analyze_module_impact(module_id)
    except DepGraphError as exc:
        raise click.ClickException(str(exc)) from exc

    def render(r) -> None:
        click.echo(f"Module:                   {r.label}")
        click.echo(f"Impact Score:             {r.impact_score:.2f}")
        click.echo(f"Breaking Changes:         {r.breaking_changes}")
        click.echo(f"Direct Dependents:        {r.direct_dependents}")
        click.echo(f"Transitive Dependents:    {r.transitive_dependents}")
        click.echo("\nAffected Repositories:")
        for repo in r.affected_repos:
            click.echo(f"  {repo}")

    _emit(ctx, result, render)


@main.command()
@_graph_option
@click.option("--low/--no-low", "include_low", default=None,
              help="Include LOW findings (default: analysis.includeLowRisk)")
@click.pass_context
def risk(ctx: click.Context, graph_path: Path, include_low: bool | None) -> None:
    """Heuristic version-pattern risk flags (no vulnerability database)."""
    if include_low is None:
        include_low = ctx.obj["config"].analysis.include_low_risk
    findings = DependencyAnalyzer(_load(graph_path)).simulate_security_scan(
        include_low=include_low
    )

    if ctx.obj["output"] == "json":
        click.echo(
            json.dumps(
                {"disclaimer": HEURISTIC_DISCLAIMER, "findings": _jsonable(findings)},
                indent=2,
                default=str,
            )
        )
        return

    click.echo(f"NOTE: {HEURISTIC_DISCLAIMER}\n")
    _table(
        [[f.label, f.version, f.risk_level.value, f.recommended_fix] for f in findings],
        ["MODULE", "VERSION", "RISK LEVEL", "RECOMMENDED FIX"],
    )


@main.command("cache-clear")
@click.pass_context
def cache_clear(ctx: click.Context) -> None:
    """Remove every cached API response."""
    config: DepGraphConfig = ctx.obj["config"]
    try:
        removed = FileCache(config.cache.dir, config.cache.max_age).clear()
    except DepGraphError as exc:
        raise click.ClickException(str(exc)) from exc
    click.echo(f"Removed {removed} cache entries from {config.cache.dir}")


if __name__ == "__main__":
    main()
