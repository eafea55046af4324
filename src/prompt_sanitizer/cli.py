# Copyright 2025 Lars Marowsky-Brée <lars@marowsky-bree.eu>
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Command-line interface for the prompt sanitizer."""

import argparse
import logging
import sys
from pathlib import Path
from typing import NoReturn

from . import __version__
from .config import (
    ConfigError,
    build_rules,
    get_config_path,
    load_config,
    load_config_file,
    validate_config_file,
)
from .models import CATEGORIES, SanitizationResult
from .sanitizer import Sanitizer

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_MATCHED = 2
EXIT_NOT_FOUND = 3
EXIT_PERMISSION = 4
EXIT_OUTPUT_EXISTS = 5
EXIT_FILE_ERROR = 6


class SanitizerIOError(Exception):
    """A file-level failure reported to the user with its own exit code."""

    exit_code = EXIT_ERROR


class InputNotFoundError(SanitizerIOError):
    exit_code = EXIT_NOT_FOUND

    def __init__(self, path: Path) -> None:
        super().__init__(f"Input file does not exist: {path}")


class PermissionDeniedError(SanitizerIOError):
    exit_code = EXIT_PERMISSION

    def __init__(self, path: Path) -> None:
        super().__init__(f"Permission denied: {path}")


class OutputExistsError(SanitizerIOError):
    exit_code = EXIT_OUTPUT_EXISTS

    def __init__(self, path: Path) -> None:
        super().__init__(f"Output file already exists: {path}. Use --force to overwrite.")


class FileAccessError(SanitizerIOError):
    exit_code = EXIT_FILE_ERROR

    def __init__(self, path: Path, reason: str) -> None:
        super().__init__(f"Cannot access {path}: {reason}")


def _build_sanitizer(config_path: str | None) -> Sanitizer:
    """Build a sanitizer from the built-in catalog and configuration."""
    config = load_config_file(Path(config_path)) if config_path else load_config()
    return Sanitizer(build_rules(config))


def read_input(path: Path) -> str:
    """Read an input file, mapping failures to named errors."""
    if not path.exists():
        raise InputNotFoundError(path)
    try:
        return path.read_text(encoding="utf-8")
    except PermissionError as e:
        raise PermissionDeniedError(path) from e
    except OSError as e:
        raise FileAccessError(path, e.strerror or str(e)) from e


def write_output(path: Path, content: str) -> None:
    """Write the sanitized output, mapping failures to named errors."""
    try:
        path.write_text(content, encoding="utf-8")
    except PermissionError as e:
        raise PermissionDeniedError(path) from e
    except OSError as e:
        raise FileAccessError(path, e.strerror or str(e)) from e


def format_report(original: str, result: SanitizationResult) -> list[str]:
    """Render a human-readable report of what was filtered."""
    if result.is_clean:
        return ["No malicious patterns detected - input is clean"]

    lines = [f"Filtered {result.filtered_count} potentially malicious patterns"]
    if original != result.sanitized_text:
        lines.append("")
        lines.append("--- Changes Made ---")
        lines.append(f"Original length: {result.original_length} chars")
        lines.append(f"Sanitized length: {result.sanitized_length} chars")
        for i, (orig, san) in enumerate(
            zip(original.splitlines(), result.sanitized_text.splitlines()), start=1
        ):
            if orig != san:
                lines.append(f"Line {i}: '{orig}' -> '{san}'")
        lines.append("")
        lines.append("--- Filtered Patterns ---")
        for event in result.filtered_events:
            lines.append(f"[{event.category}] {event.original_text!r} at {event.start}")
    return lines


def cmd_sanitize(args: argparse.Namespace) -> int:
    """Sanitize an input file into an output file."""
    input_path = Path(args.input)
    output_path = Path(args.output)
    sanitizer = _build_sanitizer(args.config)

    content = read_input(input_path)
    if output_path.exists() and not args.force:
        raise OutputExistsError(output_path)

    if args.verbose:
        print(f"Read {len(content)} characters from input file")

    result = sanitizer.sanitize(content)
    if args.verbose:
        for line in format_report(content, result):
            print(line)

    write_output(output_path, result.sanitized_text)
    print(f"Successfully sanitized prompt from '{input_path}' to '{output_path}'")
    return EXIT_OK


def cmd_check(args: argparse.Namespace) -> int:
    """Scan file(s) without writing any output."""
    sanitizer = _build_sanitizer(args.config)
    any_matched, any_error = False, False

    for file_arg in args.files:
        path = Path(file_arg)
        try:
            content = read_input(path)
        except SanitizerIOError as e:
            print(f"Error: {e}", file=sys.stderr)
            any_error = True
            continue
        except UnicodeDecodeError:
            logger.debug("Skipping undecodable file %s", path)
            continue

        result = sanitizer.sanitize(content)
        if result.is_clean:
            continue
        any_matched = True
        print(f"{path}: {result.filtered_count} pattern(s) filtered")
        if not args.quiet:
            for event in result.filtered_events:
                print(f"  [{event.category}] {event.original_text!r} at {event.start}")

    if any_matched:
        return EXIT_MATCHED
    if any_error:
        return EXIT_ERROR
    if not args.quiet:
        print("No matches found")
    return EXIT_OK


def cmd_validate(args: argparse.Namespace) -> int:
    """Validate configuration file syntax."""
    path = Path(args.config) if args.config else get_config_path(global_=args.glob)
    errors = validate_config_file(path)
    if errors:
        print(f"Validation errors in {path}:", file=sys.stderr)
        for err in errors:
            print(f"  {err}", file=sys.stderr)
        return EXIT_ERROR
    print(f"{path}: OK")
    return EXIT_OK


def cmd_rules(args: argparse.Namespace) -> int:
    """List the active rule catalog."""
    sanitizer = _build_sanitizer(args.config)
    for rule in sanitizer.rules:
        if args.category and rule.category != args.category:
            continue
        desc = f" - {rule.description}" if rule.description else ""
        print(f"{rule.id} [{rule.category}]{desc}")
    return EXIT_OK


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="prompt-sanitizer",
        description="Sanitize LLM prompts against OWASP prompt injection patterns",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    # sanitize subcommand
    sanitize_parser = subparsers.add_parser("sanitize", help="Sanitize a prompt file")
    sanitize_parser.add_argument("-i", "--input", required=True, help="Input prompt file")
    sanitize_parser.add_argument("-o", "--output", required=True, help="Output file")
    sanitize_parser.add_argument(
        "-v", "--verbose", action="store_true", help="Show what was filtered"
    )
    sanitize_parser.add_argument(
        "-f", "--force", action="store_true", help="Overwrite output file if it exists"
    )
    sanitize_parser.add_argument("--config", help="Custom configuration file")

    # check subcommand
    check_parser = subparsers.add_parser("check", help="Scan files for injection patterns")
    check_parser.add_argument("files", nargs="+", help="Files to scan")
    check_parser.add_argument("--config", help="Custom configuration file")
    check_parser.add_argument("-q", "--quiet", action="store_true", help="Only list files")

    # validate subcommand
    validate_parser = subparsers.add_parser("validate", help="Validate configuration file")
    validate_parser.add_argument(
        "--global", dest="glob", action="store_true", help="Validate global configuration"
    )
    validate_parser.add_argument("--config", help="Custom configuration file")

    # rules subcommand
    rules_parser = subparsers.add_parser("rules", help="List active detection rules")
    rules_parser.add_argument(
        "--category", choices=CATEGORIES, help="Only list rules of this category"
    )
    rules_parser.add_argument("--config", help="Custom configuration file")

    return parser


def main() -> int | NoReturn:
    """Main CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.WARNING,
        format="%(levelname)s: %(message)s",
        stream=sys.stderr,
    )

    commands = {
        "sanitize": cmd_sanitize,
        "check": cmd_check,
        "validate": cmd_validate,
        "rules": cmd_rules,
    }
    command = commands.get(args.command)
    if command is None:
        parser.print_help()
        return EXIT_ERROR

    try:
        return command(args)
    except SanitizerIOError as e:
        print(f"Error: {e}", file=sys.stderr)
        return e.exit_code
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_ERROR
    except UnicodeDecodeError as e:
        print(f"Error: input is not valid UTF-8: {e}", file=sys.stderr)
        return EXIT_ERROR
