import sys
import argparse
import gzip
import io
import time
import zlib
from contextlib import ExitStack
from typing import BinaryIO, List, Optional, TextIO

import zstandard

from .registry import available_statistics, create_statistics
from .report import assemble_report, render_report
from .runner import (
    WorkflowRunner,
    LENGTH_MISMATCH_POLICIES,
    DEFAULT_LENGTH_MISMATCH,
)

# Exit status when an input file cannot be opened
EXIT_OPEN_FAILURE = 3
# Exit status when an input cannot be decompressed or read
EXIT_READ_FAILURE = 4

PROGRESS_INTERVAL = 1_000_000

_GZIP_SUFFIXES = (".gz",)
_ZSTD_SUFFIXES = (".zst", ".zstd")


# --- I/O HELPERS ---

def is_stdin(filepath: Optional[str]) -> bool:
    return filepath is None or filepath == "-"


def get_input_handle(filepath: Optional[str]) -> BinaryIO:
    """Returns a line-readable binary handle (supports gzip, zstd and stdin).

    Compression is chosen from the file extension only.
    """
    if is_stdin(filepath):
        return sys.stdin.buffer
    lower = filepath.lower()
    if lower.endswith(_GZIP_SUFFIXES):
        return gzip.open(filepath, "rb")
    if lower.endswith(_ZSTD_SUFFIXES):
        # The zstd stream reader has no readline(); buffer it
        return io.BufferedReader(zstandard.open(filepath, "rb"))
    return open(filepath, "rb")


def get_output_handle(filepath: Optional[str]) -> TextIO:
    """Returns a text handle for the report (supports gzip and stdout)."""
    if filepath is None or filepath == "-":
        return sys.stdout
    if filepath.endswith(".gz"):
        return gzip.open(filepath, "wt")
    return open(filepath, "w")


def open_inputs(stack: ExitStack, paths: List[str]) -> List[BinaryIO]:
    """Open every input up front so a bad path fails before any parsing.

    Handles other than stdin are registered on *stack* for closing.
    Raises ``OSError`` (with ``filename`` set) for the first path that
    cannot be opened.
    """
    handles = []
    for path in paths:
        try:
            fh = get_input_handle(path)
        except OSError as exc:
            if exc.filename is None:
                exc.filename = path
            raise
        if not is_stdin(path):
            stack.enter_context(fh)
        handles.append(fh)
    return handles


# --- COMMAND ---

def stats_command(args) -> int:
    """Compute the report for ``args.read1`` (and ``args.read2``) and print it.

    Returns the process exit status.
    """
    start_time = time.time()
    quiet = getattr(args, "quiet", False)

    paths = [args.read1]
    if getattr(args, "read2", None):
        paths.append(args.read2)

    statistics = create_statistics(getattr(args, "stat", None) or None)
    runner = WorkflowRunner(
        statistics,
        length_mismatch=getattr(args, "length_mismatch", DEFAULT_LENGTH_MISMATCH),
    )

    def progress(count: int) -> None:
        if count % PROGRESS_INTERVAL == 0:
            print(f"      Processed {count // PROGRESS_INTERVAL}M records...",
                  end="\r", file=sys.stderr)

    indent = None if getattr(args, "compact", False) else getattr(args, "indent", 2)
    output = getattr(args, "output", None)

    with ExitStack() as stack:
        try:
            handles = open_inputs(stack, paths)
        except OSError as exc:
            reason = exc.strerror or exc
            print(f"Error: cannot open {exc.filename}: {reason}", file=sys.stderr)
            return EXIT_OPEN_FAILURE

        # Open the report destination before reading so a bad -o fails fast
        try:
            out = get_output_handle(output)
        except OSError as exc:
            reason = exc.strerror or exc
            print(f"Error: cannot open {output}: {reason}", file=sys.stderr)
            return EXIT_OPEN_FAILURE
        if out is not sys.stdout:
            stack.enter_context(out)

        for path, fh in zip(paths, handles):
            src_name = "stdin" if is_stdin(path) else path
            if not quiet:
                print(f"[FQSTAT] Reading {src_name}...", file=sys.stderr)
            try:
                summary = runner.process(
                    fh, source=src_name, progress=None if quiet else progress
                )
            except (OSError, zlib.error, zstandard.ZstdError) as exc:
                print(f"Error: {src_name}: {exc}", file=sys.stderr)
                return EXIT_READ_FAILURE
            for warning in summary.warnings:
                print(f"[Warning] {warning}", file=sys.stderr)

        total = runner.records_processed
        report = assemble_report(runner.finalize())
        try:
            render_report(report, out, indent=indent)
        except BrokenPipeError:
            sys.stderr.close()
            return 0

    duration = time.time() - start_time
    if not quiet:
        print(f"\n[FQSTAT] Done. Processed {total} records in {duration:.2f}s.",
              file=sys.stderr)
    return 0


def get_fqstat_version():
    try:
        from . import __version__
        return f"fqstat {__version__}"
    except ImportError:
        return "fqstat (unknown version)"


# --- MAIN ---

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="fqstat: per-sample quality statistics for FASTQ files")
    parser.add_argument('--version', action='version', version=get_fqstat_version(),
                        help="Show fqstat version and exit")

    input_group = parser.add_argument_group("Input Options")
    input_group.add_argument("-1", "--read1", required=True,
                             help="FASTQ file (single-end or read 1). '-' reads stdin. "
                                  ".gz and .zst are decompressed.")
    input_group.add_argument("-2", "--read2", default=None,
                             help="Second FASTQ file of a pair (optional). "
                                  "Pooled with read 1 into one report.")
    input_group.add_argument("--length-mismatch", choices=LENGTH_MISMATCH_POLICIES,
                             default=DEFAULT_LENGTH_MISMATCH,
                             help="What to do when a record's sequence and quality "
                                  "lengths differ: stop reading that file, skip the "
                                  "record, or tolerate it (default: stop)")
    input_group.add_argument("-q", "--quiet", action="store_true",
                             help="Suppress progress messages")

    stat_group = parser.add_argument_group("Statistics")
    stat_group.add_argument("-s", "--stat", action="append", choices=available_statistics(),
                            help="Statistic to compute; repeat for several (default: all)")

    out_group = parser.add_argument_group("Output Options")
    out_group.add_argument("-o", "--output", help="Output file. Defaults to stdout (-).")
    fmt = out_group.add_mutually_exclusive_group()
    fmt.add_argument("--indent", type=int, default=2, help="JSON indent (default: 2)")
    fmt.add_argument("--compact", action="store_true", help="Write JSON on a single line")
    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)
    sys.exit(stats_command(args))


if __name__ == "__main__":
    main()
