"""Main CLI entry point for the guess-encoding command-line tool.

Provides probing of files for their encoding mix, and conversion of files to
ASCII or canonical UTF-8.
"""

import argparse
import json
import logging
import sys
import time
from concurrent.futures import ThreadPoolExecutor
from contextlib import nullcontext
from dataclasses import replace
from pathlib import Path
from typing import Any, ContextManager, Dict, Iterator, List, Optional

from guess_encoding import __version__
from guess_encoding.character import (
    UnreadableSourceError,
    probe_file,
    to_ascii,
    to_utf8,
    utf8toascii,
)
from guess_encoding.shared.config import ConfigError, GuessEncodingConfig, ProbeConfig
from guess_encoding.shared.logging import get_logger

STDIN_PATH = Path("-")


class CLIConfig:
    """Configuration management for CLI operations."""

    def __init__(self, config: Optional[GuessEncodingConfig] = None):
        self.config = config or GuessEncodingConfig()
        self.max_workers = 1
        self.output_format = "text"
        self.verbose = False
        self.quiet = False

    @classmethod
    def from_file(cls, config_path: Path) -> "CLIConfig":
        """Load CLI configuration from a JSON file."""
        return cls(GuessEncodingConfig.from_file(config_path))


class ProgressTracker:
    """Progress tracking for long-running operations."""

    def __init__(self, total: int, description: str = "Probing"):
        self.total = total
        self.completed = 0
        self.description = description
        self.start_time = time.time()
        self.last_update = 0.0

    def update(self, increment: int = 1) -> None:
        """Update progress and display if needed."""
        self.completed += increment
        current_time = time.time()

        # Update every second or on completion
        if current_time - self.last_update >= 1.0 or self.completed >= self.total:
            self._display_progress()
            self.last_update = current_time

    def _display_progress(self) -> None:
        if self.total == 0:
            return

        percentage = (self.completed / self.total) * 100
        progress_bar = "=" * int(percentage // 2)
        progress_bar += " " * (50 - len(progress_bar))

        print(f"\r{self.description}: [{progress_bar}] "
              f"{percentage:.1f}% ({self.completed}/{self.total})",
              end="", file=sys.stderr)

        if self.completed >= self.total:
            print(file=sys.stderr)


class FileProber:
    """Probe files and collect their reports."""

    def __init__(self, config: CLIConfig):
        self.config = config
        self.logger = get_logger(__name__, config.config.correlation_id, "cli_prober")

    def probe_single_file(self, file_path: Path) -> Dict[str, Any]:
        """Probe one file (or stdin for ``-``) and return a result dictionary."""
        probe_config = self.config.config.probe
        try:
            if file_path == STDIN_PATH:
                result = probe_file(sys.stdin.buffer, name="<stdin>", config=probe_config)
            else:
                with file_path.open("rb") as fd:
                    result = probe_file(fd, name=str(file_path), config=probe_config)
        except OSError as e:
            self.logger.warning(
                "Failed to probe file", extra={"file": str(file_path)}, exc_info=True
            )
            failure: Dict[str, Any] = {"name": str(file_path), "success": False,
                                       "error": str(e)}
            if isinstance(e, UnreadableSourceError) and e.partial is not None:
                failure["counters"] = e.partial.to_dict()
            return failure

        data = result.to_dict()
        data["success"] = True
        data["report"] = result.report()
        return data

    def find_files(self, path: Path, recursive: bool = False) -> Iterator[Path]:
        """Expand a command-line path into the files to probe."""
        if path == STDIN_PATH or not path.is_dir():
            yield path
            return

        pattern = "**/*" if recursive else "*"
        for candidate in sorted(path.glob(pattern)):
            if candidate.is_file():
                yield candidate

    def batch_probe(
        self, paths: List[Path], recursive: bool = False, show_progress: bool = False
    ) -> List[Dict[str, Any]]:
        """Probe multiple files, optionally in parallel threads.

        Results keep the order of the expanded file list.
        """
        all_files: List[Path] = []
        for path in paths:
            all_files.extend(self.find_files(path, recursive))

        if not all_files:
            return []

        progress = ProgressTracker(len(all_files)) if show_progress else None
        results: List[Dict[str, Any]] = []

        if len(all_files) == 1 or self.config.max_workers == 1:
            for file_path in all_files:
                results.append(self.probe_single_file(file_path))
                if progress:
                    progress.update()
        else:
            with ThreadPoolExecutor(max_workers=self.config.max_workers) as executor:
                for result in executor.map(self.probe_single_file, all_files):
                    results.append(result)
                    if progress:
                        progress.update()

        return results


def _positive_int(value: str) -> int:
    """argparse type for counts that must be at least 1."""
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid int value: {value!r}") from None
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {number}")
    return number


def create_argument_parser() -> argparse.ArgumentParser:
    """Create the main argument parser."""
    parser = argparse.ArgumentParser(
        prog="guess-encoding",
        description="Probe byte streams for ASCII, UTF-8 and Latin-1 content "
                    "and transliterate them to ASCII"
    )

    parser.add_argument("--version", action="version", version=__version__)

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Probe command
    probe_parser = subparsers.add_parser("probe", help="Probe files for their encoding")
    probe_parser.add_argument(
        "paths",
        nargs="+",
        type=Path,
        help="Files or directories to probe ('-' for stdin)"
    )
    probe_parser.add_argument(
        "--recursive", "-r",
        action="store_true",
        help="Recursively probe directories"
    )
    probe_parser.add_argument(
        "--format", "-f",
        choices=["text", "json", "csv"],
        default="text",
        help="Output format (default: text)"
    )
    probe_parser.add_argument(
        "--output", "-o",
        type=Path,
        help="Output file (default: stdout)"
    )
    probe_parser.add_argument(
        "--max-bytes",
        type=int,
        help="Probe at most this many bytes per file"
    )
    probe_parser.add_argument(
        "--legacy",
        action="store_true",
        help="Count bytes 0-7 as invalid and drop truncated trailing sequences"
    )
    probe_parser.add_argument(
        "--workers", "-w",
        type=_positive_int,
        help="Number of parallel worker threads"
    )
    probe_parser.add_argument(
        "--progress",
        action="store_true",
        help="Show a progress bar on stderr"
    )

    # Conversion commands
    ascii_parser = subparsers.add_parser("to-ascii", help="Transliterate a file to ASCII")
    ascii_parser.add_argument("path", type=Path, help="File to convert ('-' for stdin)")
    ascii_parser.add_argument(
        "--output", "-o",
        type=Path,
        help="Output file (default: stdout)"
    )
    ascii_parser.add_argument(
        "--mixed",
        action="store_true",
        help="Treat bytes that are not valid UTF-8 as Latin-1"
    )

    utf8_parser = subparsers.add_parser(
        "to-utf8", help="Repair a mixed UTF-8/Latin-1 file into UTF-8"
    )
    utf8_parser.add_argument("path", type=Path, help="File to convert ('-' for stdin)")
    utf8_parser.add_argument(
        "--output", "-o",
        type=Path,
        help="Output file (default: stdout)"
    )

    # Global options
    parser.add_argument(
        "--config", "-c",
        type=Path,
        help="Configuration file path (JSON)"
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Verbose output"
    )
    parser.add_argument(
        "--quiet", "-q",
        action="store_true",
        help="Quiet output"
    )

    return parser


def format_results(results: List[Dict[str, Any]], format_type: str) -> str:
    """Format probe results for output."""
    if format_type == "json":
        return json.dumps(results, indent=2)

    if format_type == "csv":
        lines = ["file,verdict,utf8_valid,utf8_invalid,latin1_typ,ascii"]
        for result in results:
            counters = result.get("counters", {})
            lines.append(
                f"{result['name']},{result.get('verdict', 'error')},"
                f"{counters.get('utf8_valid', '')},{counters.get('utf8_invalid', '')},"
                f"{counters.get('latin1_typical', '')},{counters.get('ascii', '')}"
            )
        return "\n".join(lines)

    lines = []
    for result in results:
        if result.get("success", False):
            lines.append(f"{result['report']} ({result['verdict']})")
        else:
            lines.append(f"{result['name']}: error: {result.get('error', 'unknown')}")
    return "\n".join(lines)


def _write_output(text: str, output: Optional[Path]) -> None:
    if output:
        output.write_text(text, encoding="utf-8")
    else:
        sys.stdout.write(text)


def _open_input(path: Path) -> ContextManager[Any]:
    if path == STDIN_PATH:
        return nullcontext(sys.stdin.buffer)
    return path.open("rb")


def cmd_probe(args: argparse.Namespace, config: CLIConfig) -> int:
    """Handle probe command."""
    overrides: Dict[str, Any] = {}
    if args.legacy:
        overrides["probe"] = ProbeConfig.legacy()
    if args.max_bytes is not None:
        overrides["probe__max_bytes"] = args.max_bytes
    try:
        config.config = config.config.override(**overrides)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if args.workers:
        config.max_workers = args.workers
    config.output_format = args.format

    prober = FileProber(config)
    results = prober.batch_probe(args.paths, args.recursive, args.progress)

    formatted_output = format_results(results, args.format)
    if formatted_output:
        formatted_output += "\n"

    try:
        _write_output(formatted_output, args.output)
    except OSError as e:
        print(f"Error writing output: {e}", file=sys.stderr)
        return 1

    if not results:
        return 1
    return 0 if all(r.get("success", False) for r in results) else 1


def cmd_to_ascii(args: argparse.Namespace, config: CLIConfig) -> int:
    """Handle to-ascii command."""
    # The unmapped list is written to stderr below instead of being logged
    transliteration = replace(config.config.transliteration, log_unmapped=False)
    try:
        with _open_input(args.path) as source:
            if args.mixed:
                result = to_ascii(source, transliteration)
                unmapped_log = "".join(f"{u.log_line()}\n" for u in result.unmapped)
            else:
                result = utf8toascii(source, config=transliteration)
                unmapped_log = result.diagnostics_log
        _write_output(result.text, args.output)
    except OSError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if unmapped_log and not config.quiet:
        sys.stderr.write(unmapped_log)
    return 0


def cmd_to_utf8(args: argparse.Namespace, config: CLIConfig) -> int:
    """Handle to-utf8 command."""
    try:
        with _open_input(args.path) as source:
            result = to_utf8(source, config.config.transliteration.chunk_size)
        _write_output(result.text, args.output)
    except OSError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if config.verbose:
        for encoding, offsets in result.mapping.items():
            print(f"{encoding}: {len(offsets)} character(s)", file=sys.stderr)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    parser = create_argument_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    try:
        config = CLIConfig.from_file(args.config) if args.config else CLIConfig()
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    config.verbose = args.verbose
    config.quiet = args.quiet

    # Set up logging verbosity
    if args.verbose:
        logging.basicConfig(level=logging.DEBUG)
    elif args.quiet:
        logging.basicConfig(level=logging.ERROR)
    else:
        logging.basicConfig(level=config.config.logging_level)

    # Route to appropriate command handler
    try:
        if args.command == "probe":
            return cmd_probe(args, config)
        if args.command == "to-ascii":
            return cmd_to_ascii(args, config)
        if args.command == "to-utf8":
            return cmd_to_utf8(args, config)
        print(f"Unknown command: {args.command}", file=sys.stderr)
        return 1

    except KeyboardInterrupt:
        print("\nOperation interrupted by user", file=sys.stderr)
        return 130  # Standard exit code for SIGINT


if __name__ == "__main__":
    sys.exit(main())
