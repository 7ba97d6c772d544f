"""tabscribe CLI entry point."""

import logging
import sys
from pathlib import Path

import click

from tabscribe import __version__
from tabscribe.repeat_inference import DEFAULT_MAX_BODY_LEN, DEFAULT_MIN_REPEAT_LEN, RepeatBlock
from tabscribe.score_loader import load_score
from tabscribe.tab_exporter import TabExporter
from tabscribe.tab_renderers import DEFAULT_MEASURES_PER_LINE

MAX_BODY_LEN_LIMIT = 64


def _configure_logging(verbose: bool) -> None:
    package_logger = logging.getLogger("tabscribe")
    if not verbose or package_logger.handlers:
        return
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))
    package_logger.addHandler(handler)
    package_logger.setLevel(logging.DEBUG)


def _describe_block(block: RepeatBlock) -> list[str]:
    first = block.start + 1
    last = block.start + block.length
    bars = f"bar {first}" if first == last else f"bars {first}-{last}"
    lines = [f"  {bars}  x{block.count}"]
    for ending in block.endings:
        start = ending.start + 1
        stop = ending.start + ending.length
        span = f"bar {start}" if start == stop else f"bars {start}-{stop}"
        lines.append(f"    ending {ending.number}: {span}")
    return lines


min_repeat_option = click.option(
    "--min-repeat-len",
    type=click.IntRange(1, None),
    default=DEFAULT_MIN_REPEAT_LEN,
    show_default=True,
    metavar="N",
    help=(
        "Minimum body length x pass count for a non-silent repeat. "
        "Repeated full-measure rests always collapse."
    ),
)
max_body_option = click.option(
    "--max-body-len",
    type=click.IntRange(1, MAX_BODY_LEN_LIMIT),
    default=DEFAULT_MAX_BODY_LEN,
    show_default=True,
    metavar="N",
    help="Longest repeated section (in measures) to look for.",
)


# ── CLI group ──────────────────────────────────────────────────────────────────

@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(version=__version__, prog_name="tabscribe")
def main() -> None:
    """tabscribe — score JSON to ASCII tablature and alphaTex."""


# ── render subcommand ──────────────────────────────────────────────────────────

@main.command()
@click.argument("json_file", type=click.Path(exists=True, dir_okay=False, readable=True))
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["ascii", "alphatex"], case_sensitive=False),
    default="ascii",
    show_default=True,
    help="Output format: fixed-width ASCII tablature or alphaTex markup.",
)
@click.option(
    "--output",
    "-o",
    default=None,
    metavar="PATH",
    help="Destination file path, or '-' for stdout. Defaults to extension based on --format.",
)
@click.option(
    "--per-line",
    type=click.IntRange(1, None),
    default=DEFAULT_MEASURES_PER_LINE,
    show_default=True,
    metavar="N",
    help="Measures per printed ASCII line (a repeat close always ends the line).",
)
@min_repeat_option
@max_body_option
@click.option("--verbose", "-v", is_flag=True, help="Log pipeline details to stderr.")
def render(
    json_file: str,
    output_format: str,
    output: str | None,
    per_line: int,
    min_repeat_len: int,
    max_body_len: int,
    verbose: bool,
) -> None:
    """
    Render a score JSON file as ASCII tablature or alphaTex.

    JSON_FILE is the path to an exported score document.

    \b
    Examples:
      tabscribe render song.json
      tabscribe render song.json --format alphatex -o song.alphatex
      tabscribe render song.json --per-line 4 --min-repeat-len 2 -o -
    """
    _configure_logging(verbose)

    exporter = TabExporter(
        output_format=output_format,
        measures_per_line=per_line,
        min_repeat_len=min_repeat_len,
        max_body_len=max_body_len,
    )

    if output == "-":
        try:
            content = exporter.render(load_score(json_file))
        except (OSError, ValueError) as exc:
            click.echo(f"  ERROR: Could not render score — {exc}", err=True)
            sys.exit(1)
        click.echo(content, nl=False)
        return

    resolved_output = (
        output if output is not None else str(Path(json_file).with_suffix(exporter.default_extension))
    )

    click.echo(f"tabscribe v{__version__}")
    click.echo(f"  Score  : {json_file}")
    click.echo(f"  Format : {exporter.output_format}")
    click.echo(f"  Output : {resolved_output}")
    click.echo()

    click.echo("[1/3] Parsing score JSON...")
    click.echo("[2/3] Inferring repeats and alternate endings...")
    click.echo("[3/3] Writing output file...")

    try:
        exporter.export(json_file, resolved_output)
    except OSError as exc:
        click.echo(f"  ERROR: Could not write output file — {exc}", err=True)
        sys.exit(1)
    except ValueError as exc:
        click.echo(f"  ERROR: Could not render score — {exc}", err=True)
        sys.exit(1)

    click.echo()
    click.echo(f"Done!  Wrote '{resolved_output}'.")


# ── repeats subcommand ─────────────────────────────────────────────────────────

@main.command()
@click.argument("json_file", type=click.Path(exists=True, dir_okay=False, readable=True))
@min_repeat_option
@max_body_option
def repeats(json_file: str, min_repeat_len: int, max_body_len: int) -> None:
    """
    List the repeat blocks inferred for a score JSON file.

    Bar numbers are 1-based, as printed in the ASCII tablature.
    """
    try:
        score = load_score(json_file)
    except (OSError, ValueError) as exc:
        click.echo(f"  ERROR: Could not read score — {exc}", err=True)
        sys.exit(1)

    exporter = TabExporter(min_repeat_len=min_repeat_len, max_body_len=max_body_len)
    blocks = exporter.infer_blocks(score)

    click.echo(f"{len(score.measures)} measure(s), {len(blocks)} repeat block(s)")
    for block in blocks:
        for line in _describe_block(block):
            click.echo(line)
