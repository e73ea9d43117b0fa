"""apidiff CLI entry point."""

from __future__ import annotations

import json
import logging
import sys
from typing import IO, Any

import click

from apidiff import __version__
from apidiff.engine.loader import load_diff, parse_diff_document
from apidiff.engine.renderer import ByteSink, DiffRenderer

logger = logging.getLogger(__name__)

# Exit codes
EXIT_SUCCESS = 0
EXIT_INCOMPATIBLE = 1  # Only with --fail-on-incompatible
EXIT_ERROR = 2


class _StreamSink:
    """Sink over a stream the CLI does not own; closing only flushes it."""

    def __init__(self, stream: IO[bytes]) -> None:
        self._stream = stream

    def write(self, data: bytes) -> Any:
        return self._stream.write(data)

    def close(self) -> None:
        self._stream.flush()


@click.group()
@click.version_option(__version__, "--version", "-v")
def main() -> None:
    """apidiff — Render API description diffs as compact, change-only JSON."""


@main.command()
@click.argument("diff_file", required=False, default="-")
@click.option(
    "--output",
    "-o",
    "output_path",
    type=click.Path(dir_okay=False, writable=True),
    default=None,
    help="Write the rendered JSON here instead of stdout.",
)
@click.option(
    "--fail-on-incompatible",
    is_flag=True,
    default=False,
    help="Exit with status 1 when the diff is not backward compatible.",
)
def render(diff_file: str, output_path: str | None, fail_on_incompatible: bool) -> None:
    """Render a serialized diff graph as JSON.

    DIFF_FILE: JSON diff document produced by the comparison engine.
    Use '-' (default) to read from stdin.
    """
    try:
        if diff_file == "-":
            diff = parse_diff_document(json.loads(sys.stdin.read()))
        else:
            diff = load_diff(diff_file)

        sink: ByteSink
        if output_path is None:
            sink = _StreamSink(click.get_binary_stream("stdout"))
        else:
            sink = open(output_path, "wb")  # noqa: SIM115 - closed by the renderer

        DiffRenderer().render(diff, sink)

        if fail_on_incompatible and not diff.compatible:
            sys.exit(EXIT_INCOMPATIBLE)
        sys.exit(EXIT_SUCCESS)

    except SystemExit:
        raise
    except Exception as exc:
        logger.debug("CLI error", exc_info=True)
        click.echo(f"Error: {exc}", err=True)
        sys.exit(EXIT_ERROR)
