"""
Command-line interface for simsketch.

Thin consumer of the MinHasher, LSHBuckets and SimHasher APIs: every
command reads texts from arguments or files (one text per line), runs the
sketches configured by ``.simsketch.yml`` plus SIMSKETCH_* environment
overrides, and renders the results with rich.
"""

import sys
from pathlib import Path
from typing import List, Optional

import click
from rich.console import Console
from rich.table import Table

from . import __version__
from .config import ConfigManager, SketchConfig
from .errors import SketchError
from .lsh import LSHBuckets
from .minhash import MinHasher
from .shingles import extract_shingles
from .simhash import SimHasher
from .utils.logging_setup import log_operation, setup_logging

console = Console()


def _read_lines(path: str) -> List[str]:
    """Non-blank lines of *path*, or of stdin for ``-``."""
    if path == "-":
        lines = sys.stdin.read().splitlines()
    else:
        lines = Path(path).read_text(encoding="utf-8").splitlines()
    return [line.strip() for line in lines if line.strip()]


def _truncate(text: str, width: int = 60) -> str:
    return text if len(text) <= width else text[: width - 3] + "..."


@click.group()
@click.version_option(__version__, prog_name="simsketch")
@click.option("--config", "config_path", type=click.Path(dir_okay=False),
              help="Path to config file (default: ./.simsketch.yml)")
@click.option("-v", "--verbose", count=True, help="Increase log verbosity (-v info, -vv debug)")
@click.option("--log-dir", type=click.Path(file_okay=False), help="Also write JSON logs to this directory")
@click.pass_context
def cli(ctx, config_path, verbose, log_dir):
    """Near-duplicate detection with MinHash, LSH and SimHash."""
    level = {0: "WARNING", 1: "INFO"}.get(verbose, "DEBUG")
    logger = setup_logging("simsketch", level=level,
                           log_dir=Path(log_dir) if log_dir else None,
                           file=bool(log_dir))

    manager = ConfigManager(Path(config_path) if config_path else None, console=console)
    ctx.obj = {"manager": manager, "logger": logger}


def _load_config(ctx) -> SketchConfig:
    try:
        return ctx.obj["manager"].load()
    except SketchError as e:
        raise click.ClickException(f"Invalid configuration: {e}") from e


@cli.command()
@click.argument("text_a")
@click.argument("text_b")
@click.pass_context
def compare(ctx, text_a, text_b):
    """Compare two texts with every sketch."""
    config = _load_config(ctx)
    log_operation(ctx.obj["logger"], "compare")

    minhasher = MinHasher.from_config(config.minhash)
    simhasher = SimHasher.from_config(config.simhash)

    shingles_a = extract_shingles(text_a, config.minhash.shingles)
    shingles_b = extract_shingles(text_b, config.minhash.shingles)
    estimate = minhasher.estimate_similarity(
        minhasher.compute_signature(shingles_a),
        minhasher.compute_signature(shingles_b),
    )
    exact = MinHasher.compute_jaccard_similarity(shingles_a, shingles_b)

    fp_a = simhasher.compute_from_text(text_a)
    fp_b = simhasher.compute_from_text(text_b)
    distance = simhasher.hamming_distance(fp_a, fp_b)

    table = Table(title="Similarity", show_header=True, header_style="bold cyan")
    table.add_column("Measure", style="cyan")
    table.add_column("Value", justify="right")
    table.add_row("Jaccard (exact)", f"{exact:.4f}")
    table.add_row(f"MinHash estimate ({minhasher.num_hashes} hashes)", f"{estimate:.4f}")
    table.add_row(f"SimHash distance ({simhasher.hash_bits} bits)", str(distance))
    table.add_row("SimHash similarity", f"{simhasher.similarity(fp_a, fp_b):.4f}")
    console.print(table)


@cli.command()
@click.argument("texts", nargs=-1, required=True)
@click.option("--format", "fmt", type=click.Choice(["hex", "binary", "int"]), default="hex",
              show_default=True, help="Fingerprint output format")
@click.pass_context
def fingerprint(ctx, texts, fmt):
    """Print the SimHash fingerprint of each TEXT."""
    config = _load_config(ctx)
    simhasher = SimHasher.from_config(config.simhash)

    for text, value in zip(texts, simhasher.compute_batch(list(texts))):
        if fmt == "hex":
            rendered = simhasher.to_hex_string(value)
        elif fmt == "binary":
            rendered = simhasher.to_binary_string(value)
        else:
            rendered = str(value)
        click.echo(f"{rendered}\t{text}")


@cli.command()
@click.argument("source", type=click.Path(exists=True, dir_okay=False, allow_dash=True))
@click.option("--max-distance", type=int, default=2, show_default=True,
              help="Maximum Hamming distance from the cluster seed")
@click.option("--min-size", type=int, default=1, show_default=True,
              help="Hide clusters smaller than this")
@click.pass_context
def cluster(ctx, source, max_distance, min_size):
    """Group near-duplicate lines of SOURCE by SimHash."""
    config = _load_config(ctx)
    log_operation(ctx.obj["logger"], "cluster", source=source, max_distance=max_distance)

    texts = _read_lines(source)
    simhasher = SimHasher.from_config(config.simhash)
    clusters = [c for c in simhasher.cluster_similar(texts, max_distance=max_distance)
                if len(c.members) >= min_size]

    if not clusters:
        console.print("[yellow]No clusters found[/yellow]")
        return

    table = Table(title=f"{len(clusters)} clusters from {len(texts)} texts",
                  show_header=True, header_style="bold cyan")
    table.add_column("#", justify="right")
    table.add_column("Size", justify="right")
    table.add_column("Representative")
    for i, c in enumerate(clusters, 1):
        table.add_row(str(i), str(len(c.members)), _truncate(c.representative))
    console.print(table)


@cli.command()
@click.argument("query")
@click.argument("source", type=click.Path(exists=True, dir_okay=False, allow_dash=True))
@click.option("--threshold", type=float, default=None,
              help="Minimum estimated similarity (default: configured LSH threshold)")
@click.option("--max-results", type=int, default=10, show_default=True)
@click.pass_context
def search(ctx, query, source, threshold, max_results):
    """Find lines of SOURCE similar to QUERY via MinHash LSH."""
    config = _load_config(ctx)
    log_operation(ctx.obj["logger"], "search", source=source)

    if config.lsh.signature_length != config.minhash.num_hashes:
        raise click.ClickException(
            f"lsh.signature_length ({config.lsh.signature_length}) must equal "
            f"minhash.num_hashes ({config.minhash.num_hashes})"
        )

    texts = _read_lines(source)
    minhasher = MinHasher.from_config(config.minhash)
    index = LSHBuckets.from_config(config.lsh)

    try:
        index.add_batch(zip(texts, minhasher.compute_text_signatures(texts)))
        results = index.search(minhasher.compute_text_signature(query),
                               threshold=threshold, max_results=max_results)
    except SketchError as e:
        raise click.ClickException(str(e)) from e

    if not results:
        console.print("[yellow]No similar texts found[/yellow]")
        return

    table = Table(title=f"Matches for {_truncate(query, 40)!r}", show_header=True,
                  header_style="bold cyan")
    table.add_column("Line id", justify="right")
    table.add_column("Est. similarity", justify="right")
    table.add_column("Text")
    for r in results:
        table.add_row(str(r.item_id), f"{r.similarity:.3f}", _truncate(r.item))
    console.print(table)


@cli.command()
@click.option("--threshold", type=float, default=0.5, show_default=True,
              help="Target Jaccard threshold, strictly between 0 and 1")
@click.option("--signature-length", type=int, default=128, show_default=True)
@click.option("--write", is_flag=True, help="Store the tuned LSH settings in the config file")
@click.pass_context
def tune(ctx, threshold, signature_length, write):
    """Pick the band/row split whose S-curve is steepest at THRESHOLD."""
    try:
        best = LSHBuckets.find_optimal_bands(threshold, signature_length)
        index = LSHBuckets(best.num_bands, signature_length, threshold)
        false_pos, false_neg = index.estimate_error_rates()
    except SketchError as e:
        raise click.ClickException(str(e)) from e

    table = Table(title="LSH banding", show_header=True, header_style="bold cyan")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", justify="right")
    table.add_row("Bands", str(best.num_bands))
    table.add_row("Rows per band", str(best.rows_per_band))
    table.add_row("Signature positions used", f"{best.signature_length}/{signature_length}")
    table.add_row(f"P(candidate | s={threshold})", f"{best.collision_probability:.4f}")
    table.add_row("False-positive area", f"{false_pos:.4f}")
    table.add_row("False-negative area", f"{false_neg:.4f}")
    console.print(table)

    if write:
        manager = ctx.obj["manager"]
        config = _load_config(ctx)
        tuned = SketchConfig(minhash=config.minhash, lsh=index.config, simhash=config.simhash)
        path = manager.save(tuned)
        console.print(f"[green]✓ Saved LSH settings to {path}[/green]")


@cli.group(name="config")
def config_group():
    """Manage simsketch configuration."""
    pass


@config_group.command(name="init")
@click.option("--force", is_flag=True, help="Overwrite an existing file")
@click.pass_context
def config_init(ctx, force):
    """Write a default configuration file."""
    manager = ctx.obj["manager"]
    if manager.config_path.exists() and not force:
        if not click.confirm(f"Config file {manager.config_path} already exists. Overwrite?"):
            console.print("[yellow]Aborted[/yellow]")
            return
    path = manager.save(SketchConfig())
    console.print(f"[green]✓ Created config file at {path}[/green]")


@config_group.command(name="show")
@click.pass_context
def config_show(ctx):
    """Display the effective configuration."""
    manager = ctx.obj["manager"]
    manager.display(_load_config(ctx))


def main(argv: Optional[List[str]] = None):
    """Console-script entry point."""
    cli.main(args=argv, prog_name="simsketch")


if __name__ == "__main__":
    main()
