"""Command line interface for soundslike."""

import json
import sys
from pathlib import Path
from typing import Optional

import click

from . import __version__
from .config import configure_logging, load_config
from .correction import CorrectionContext, correct_text
from .errors import SoundsLikeError
from .models import Classification, CollisionContext, Tier
from .output import JsonStatsSink, format_mappings, format_stats, write_collisions_json


def _build_context(
    config_path: Optional[Path],
    context_dirs: tuple[Path, ...],
    stats_dir: Optional[Path] = None,
) -> CorrectionContext:
    """Create a correction context from command line options."""
    config = load_config(config_path)
    if context_dirs:
        context = CorrectionContext.from_paths(list(context_dirs), config)
    else:
        context = CorrectionContext(config)

    if stats_dir:
        context.stats_sink = JsonStatsSink(stats_dir, database=context.database)
    return context


def _context_options(f):
    """Options shared by every command that reads the registry."""
    f = click.option(
        "--context-dir", "-c", "context_dirs",
        multiple=True,
        type=click.Path(path_type=Path),
        help="Registry context directory (repeatable, default: ~/.soundslike/context)"
    )(f)
    f = click.option(
        "--config",
        "config_path",
        type=click.Path(exists=True, path_type=Path),
        help="YAML configuration file"
    )(f)
    f = click.option(
        "--verbose", "-v",
        is_flag=True,
        help="Log debug output to stderr"
    )(f)
    return f


@click.group()
@click.version_option(version=__version__)
def main():
    """soundslike - phonetic entity-name correction for transcripts."""
    pass


@main.command()
@click.argument("input_path", metavar="INPUT", required=False, type=click.Path(exists=True, path_type=Path))
@click.option(
    "--project", "-p",
    default=None,
    help="Project the document was classified into"
)
@click.option(
    "--confidence",
    type=click.FloatRange(0.0, 1.0),
    default=None,
    help="Classification confidence between 0 and 1"
)
@click.option(
    "-o", "--output",
    type=click.Path(path_type=Path),
    help="Output file path (default: stdout)"
)
@click.option(
    "--stats",
    "show_stats",
    is_flag=True,
    help="Print correction statistics to stderr"
)
@click.option(
    "--stats-dir",
    type=click.Path(path_type=Path),
    default=None,
    help="Write <name>.corrections.stats.json files to this directory"
)
@_context_options
def correct(
    input_path: Optional[Path],
    project: Optional[str],
    confidence: Optional[float],
    output: Optional[Path],
    show_stats: bool,
    stats_dir: Optional[Path],
    context_dirs: tuple[Path, ...],
    config_path: Optional[Path],
    verbose: bool,
):
    """
    Correct entity names in a transcript.

    INPUT is a text file; standard input is read when omitted.
    """
    configure_logging(verbose)

    try:
        if input_path:
            text = input_path.read_text(encoding="utf-8")
            document_id = input_path.stem
        else:
            text = sys.stdin.read()
            document_id = "stdin"

        context = _build_context(config_path, context_dirs, stats_dir)
        classification = Classification(project=project, confidence=confidence)
        result = correct_text(context, text, classification, document_id=document_id)

        if output:
            output.write_text(result.text, encoding="utf-8")
            click.echo(f"Made {result.stats.total_replacements} replacements, wrote {output}", err=True)
        else:
            click.echo(result.text, nl=False)

        if show_stats:
            click.echo(format_stats(result.stats), err=True)

    except (SoundsLikeError, OSError) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


@main.command()
@click.option(
    "--tier",
    type=click.IntRange(1, 3),
    default=None,
    help="Only list mappings of this tier"
)
@click.option(
    "--format", "-f",
    type=click.Choice(["csv", "json"]),
    default="csv",
    help="Output format (default: csv)"
)
@click.option(
    "-o", "--output",
    type=click.Path(path_type=Path),
    help="Output file path (default: stdout)"
)
@_context_options
def mappings(
    tier: Optional[int],
    format: str,
    output: Optional[Path],
    context_dirs: tuple[Path, ...],
    config_path: Optional[Path],
    verbose: bool,
):
    """List every sounds_like mapping with its tier."""
    configure_logging(verbose)

    try:
        database = _build_context(config_path, context_dirs).load()
        selected = database.mappings
        if tier is not None:
            selected = [m for m in selected if m.tier == Tier(tier)]

        format_mappings(selected, output or sys.stdout, format=format)
        if output:
            click.echo(f"Wrote {len(selected)} mappings to {output}", err=True)

    except (SoundsLikeError, OSError) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


@main.command()
@click.option(
    "-o", "--output",
    type=click.Path(path_type=Path),
    help="Output file path (default: stdout)"
)
@_context_options
def collisions(output: Optional[Path], context_dirs: tuple[Path, ...], config_path: Optional[Path], verbose: bool):
    """List sounds_like values shared by several entities."""
    configure_logging(verbose)

    try:
        database = _build_context(config_path, context_dirs).load()
        found = database.get_all_collisions()
        write_collisions_json(found, output or sys.stdout)
        if output:
            click.echo(f"Wrote {len(found)} collisions to {output}", err=True)
        else:
            click.echo()

    except (SoundsLikeError, OSError) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


@main.command()
@click.argument("sounds_like")
@click.option(
    "--project", "-p",
    default=None,
    help="Project the document was classified into"
)
@click.option(
    "--confidence",
    type=click.FloatRange(0.0, 1.0),
    default=None,
    help="Classification confidence between 0 and 1"
)
@click.option(
    "--text", "-t",
    "surrounding_text",
    default=None,
    help="Text around the token, used for capitalization hints"
)
@_context_options
def decide(
    sounds_like: str,
    project: Optional[str],
    confidence: Optional[float],
    surrounding_text: Optional[str],
    context_dirs: tuple[Path, ...],
    config_path: Optional[Path],
    verbose: bool,
):
    """
    Explain whether SOUNDS_LIKE would be replaced.

    Prints the decision as JSON.
    """
    configure_logging(verbose)

    try:
        context = _build_context(config_path, context_dirs)
        database = context.load()
        decision = context.detector.decide_replacement(CollisionContext(
            classification=Classification(project=project, confidence=confidence),
            sounds_like=sounds_like,
            available_mappings=database.get_mappings(sounds_like),
            surrounding_text=surrounding_text,
        ))
        click.echo(json.dumps(decision.to_dict(), indent=2, ensure_ascii=False))

    except (SoundsLikeError, OSError) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


@main.command()
@click.option(
    "--host",
    default="127.0.0.1",
    help="Host to bind to (default: 127.0.0.1)"
)
@click.option(
    "--port",
    default=8000,
    type=int,
    help="Port to bind to (default: 8000)"
)
@click.option(
    "--reload",
    is_flag=True,
    help="Enable auto-reload for development"
)
@click.option(
    "--verbose", "-v",
    is_flag=True,
    help="Log debug output to stderr"
)
def serve(host: str, port: int, reload: bool, verbose: bool):
    """Start the FastAPI correction server."""
    import uvicorn

    configure_logging(verbose)

    click.echo(f"Starting soundslike API server at http://{host}:{port}")
    click.echo("API docs available at /docs")

    uvicorn.run(
        "soundslike.api:app",
        host=host,
        port=port,
        reload=reload,
    )


if __name__ == "__main__":
    main()
