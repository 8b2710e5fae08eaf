"""CLI entry point for kbrecall."""

import json
import logging
from pathlib import PurePosixPath

import click
from rich.console import Console
from rich.table import Table

from .config import load_config

console = Console()


@click.group()
@click.option("--config", "-c", "config_path", default=None, help="Path to config file")
@click.option("--verbose", "-v", is_flag=True, help="Log progress to stderr")
@click.pass_context
def cli(ctx, config_path, verbose):
    """kbrecall - Fused recall and relationship graph for a personal knowledge base."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    if verbose:
        from rich.logging import RichHandler

        root = logging.getLogger()
        root.handlers.clear()
        root.addHandler(RichHandler(console=Console(stderr=True), markup=False, show_path=False))
        root.setLevel(logging.INFO)


def _get_config(ctx) -> dict:
    return load_config(ctx.obj.get("config_path"))


def _get_adapter(config: dict):
    from .search import get_search_adapter
    return get_search_adapter(config)


def _load_graph(ctx, config: dict):
    from .graph import GraphStore

    graph = GraphStore(config["graph_path"]).load()
    if graph is None:
        console.print("[red]No graph found, run `kbrecall graph build`[/]")
        ctx.exit(1)
    return graph


@cli.command()
@click.argument("query", required=False)
@click.option("--limit", "-n", default=None, type=int, help="Number of results")
@click.option("--json", "as_json", is_flag=True, help="Print machine-readable JSON")
@click.option("--date", "ref_date", type=click.DateTime(formats=["%Y-%m-%d"]), default=None,
              help="Reference date for temporal parsing (YYYY-MM-DD)")
@click.option("--benchmark", is_flag=True, help="Score smart search against raw search")
@click.pass_context
def search(ctx, query, limit, as_json, ref_date, benchmark):
    """Smart search: temporal, concept and expansion signals fused with RRF."""
    config = _get_config(ctx)
    today = ref_date.date() if ref_date else None

    if benchmark:
        _run_benchmark(config, today, as_json)
        return
    if not query:
        console.print("[red]Missing QUERY (or pass --benchmark)[/]")
        ctx.exit(2)

    from .query.search import smart_search

    result = smart_search(query, config, limit=limit, now=today, adapter=_get_adapter(config))

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        return

    console.print(f"[blue]Smart search: '{query}'[/]")
    if result.temporal.found:
        t = result.temporal
        files = ", ".join(PurePosixPath(f).name for f in t.files) or "none"
        console.print(f"  Temporal: {t.type} → {t.matched_text} ({t.confidence})  files: {files}")
    if result.concept_matches:
        console.print(f"  Concepts: {', '.join(result.concept_matches)}")
    if result.expanded:
        console.print(f"  Expanded: {' | '.join(result.expanded)}")
    console.print(f"  [dim]{result.elapsed_ms}ms[/]\n")

    if not result.results:
        console.print("[yellow]No results found.[/]")
        return

    table = Table(title="Search Results")
    table.add_column("#", style="dim", width=3)
    table.add_column("Path", style="cyan")
    table.add_column("RRF", justify="right", style="green")
    table.add_column("Sources")
    table.add_column("Preview", max_width=60)
    for i, r in enumerate(result.results, 1):
        preview = r.snippet[:80].replace("\n", " ")
        table.add_row(str(i), r.path, f"{r.rrf_score:.4f}", ", ".join(r.sources), preview)
    console.print(table)


def _run_benchmark(config: dict, today, as_json: bool):
    from .query.benchmark import append_history, run_benchmark

    bench_cfg = config.get("benchmark", {})
    report = run_benchmark(config, _get_adapter(config), today=today)
    record = report.summary()
    append_history(bench_cfg["history_path"], record, bench_cfg.get("history_size", 20))

    if as_json:
        click.echo(json.dumps(record, indent=2))
        return

    table = Table(title=f"Smart vs Baseline ({report.reference_date})")
    table.add_column("Category", style="dim")
    table.add_column("Case", style="cyan")
    table.add_column("Smart", justify="right")
    table.add_column("Baseline", justify="right")
    table.add_column("Winner")
    for o in report.outcomes:
        table.add_row(
            o.case.category,
            o.case.description or o.case.query,
            str(o.smart_rank) if o.smart_rank <= 10 else "miss",
            str(o.baseline_rank) if o.baseline_rank <= 10 else "miss",
            o.winner,
        )
    console.print(table)
    console.print(
        f"  Smart {record['smartWins']} wins | Baseline {record['baselineWins']} wins | {record['ties']} ties"
    )
    console.print(f"  P@1: Smart {record['smartP1']}% | Baseline {record['baselineP1']}%")
    console.print(f"  P@3: Smart {record['smartP3']}% | Baseline {record['baselineP3']}%")
    for cat, stats in record["byCategory"].items():
        console.print(f"    {cat}: Smart +{stats['smart']} | Baseline +{stats['baseline']} / {stats['total']}")
    console.print(f"  [dim]Saved to {bench_cfg['history_path']}[/]")


@cli.group()
def graph():
    """Build and query the relationship graph."""


@graph.command()
@click.pass_context
def build(ctx):
    """Rebuild the graph from every entry and save it."""
    from .graph import GraphStore, build_graph

    config = _get_config(ctx)
    console.print("[blue]Building memory graph...[/]")
    g = build_graph(config)
    GraphStore(config["graph_path"]).save(g)
    console.print(f"[green]✓ {g.node_count} nodes, {g.edge_count} edges, {len(g.clusters)} clusters[/]")
    if g.node_count == 0:
        console.print(f"[yellow]No entries found under {config['memory_path']}[/]")
    console.print(f"  Saved to {config['graph_path']}")


@graph.command()
@click.argument("path")
@click.option("--limit", "-n", default=10, help="Number of neighbors")
@click.pass_context
def neighbors(ctx, path, limit):
    """Entries most strongly related to PATH."""
    from .graph.queries import neighbors as find_neighbors

    g = _load_graph(ctx, _get_config(ctx))
    found = find_neighbors(g, path, limit)
    if found is None:
        console.print(f"[red]Not in graph: {path}[/]")
        ctx.exit(1)
    if not found:
        console.print(f"[yellow]{path} has no neighbors.[/]")
        return

    table = Table(title=f"Neighbors of {path}")
    table.add_column("Weight", justify="right", style="green")
    table.add_column("Path", style="cyan")
    table.add_column("Reasons")
    for n in found:
        table.add_row(f"{n.weight:.3f}", n.path, ", ".join(n.reasons))
    console.print(table)


@graph.command()
@click.pass_context
def clusters(ctx):
    """Detected topic clusters."""
    g = _load_graph(ctx, _get_config(ctx))
    console.print(f"[bold]{len(g.clusters)} clusters[/]\n")
    for c in g.clusters:
        console.print(f"  [{c.id}] [cyan]{c.label}[/] - {len(c.members)} entries, coherence {c.coherence:.3f}")
        for member in c.members:
            console.print(f"      {member}")


@graph.command()
@click.option("--threshold", "-t", default=2, help="Degree below which an entry counts as isolated")
@click.pass_context
def isolated(ctx, threshold):
    """Entries with few connections."""
    from .graph.queries import isolated as find_isolated

    g = _load_graph(ctx, _get_config(ctx))
    nodes = find_isolated(g, threshold)
    console.print(f"[bold]Entries with degree < {threshold}: {len(nodes)}[/]")
    for n in nodes:
        console.print(f"  {n.path} (degree: {n.degree}, type: {n.type})")


@graph.command()
@click.argument("query")
@click.option("--max", "max_results", default=None, type=int, help="Maximum entries to return")
@click.pass_context
def context(ctx, query, max_results):
    """Search results widened with their graph neighbors."""
    from .graph.queries import context_expand

    config = _get_config(ctx)
    ctx_cfg = config.get("context", {})
    g = _load_graph(ctx, config)
    initial = _get_adapter(config).search(query, ctx_cfg.get("initial_results", 5))
    if not initial:
        console.print("[yellow]No initial results found.[/]")
        return

    expanded = context_expand(
        g,
        initial,
        max_results=max_results or ctx_cfg.get("max_results", 8),
        seeds=ctx_cfg.get("seeds", 3),
        per_seed=ctx_cfg.get("neighbors_per_seed", 3),
        decay=ctx_cfg.get("decay", 0.6),
    )
    table = Table(title=f"Context for '{query}'")
    table.add_column("Score", justify="right", style="green")
    table.add_column("Path", style="cyan")
    table.add_column("Source")
    for r in expanded:
        table.add_row(f"{r.score:.3f}", r.path, r.source)
    console.print(table)


@graph.command()
@click.pass_context
def stats(ctx):
    """Graph statistics."""
    from .graph.queries import graph_stats

    g = _load_graph(ctx, _get_config(ctx))
    s = graph_stats(g)
    console.print("\n[bold]🕸️  Memory Graph Statistics[/]")
    console.print(f"  Nodes: {s['nodes']}")
    console.print(f"  Edges: {s['edges']}")
    console.print(f"  Density: {s['density']:.3f}")
    console.print(f"  Clusters: {s['clusters']}")
    console.print(f"  Built: {s['built_at']}")
    console.print(f"  Degree: avg={s['avg_degree']:.1f} min={s['min_degree']} max={s['max_degree']}")
    if s["most_connected"]:
        console.print("\n  [bold]Most connected:[/]")
        for node in s["most_connected"]:
            console.print(f"    {node.weighted_degree:.2f} | {node.path} ({node.degree} edges, {node.type})")
    if s["edge_types"]:
        console.print("\n  [bold]Edge types:[/]")
        for kind, count in s["edge_types"].items():
            console.print(f"    {kind}: {count}")


@graph.command()
@click.pass_context
def viz(ctx):
    """ASCII rendering of clusters."""
    from .graph.queries import render_ascii

    g = _load_graph(ctx, _get_config(ctx))
    click.echo(render_ascii(g))


if __name__ == "__main__":
    cli()
