"""
gbmetrics - Game Boy Assembly Metrics Command-Line Interface
============================================================

This module implements the command-line interface for the metrics engine.
It prints RGBDS source annotated with byte and cycle costs, looks up
single instructions and lists routine documentation found in source trees.

Usage Examples
--------------
Annotate a file:
    $ gbmetrics annotate src/main.asm

Count from line 120, using not-taken branch timings:
    $ gbmetrics annotate src/main.asm --start-line 120 --not-taken

Show opcode/flag details under each line:
    $ gbmetrics annotate src/main.asm --details

Look up one instruction:
    $ gbmetrics lookup "jr nz, .loop"

List documented routines:
    $ gbmetrics routines src engine
    $ gbmetrics routines src --name CopyBytes

Configuration
-------------
Defaults can be set with GBMETRICS_* environment variables
(GBMETRICS_ASSUME_BRANCH_TAKEN=0, GBMETRICS_PREDEF_CYCLES=48, ...).
Command-line options override them.

Exit Codes
----------
0 - Success
1 - Unknown instruction or routine, analysis error
2 - Invalid arguments or configuration error
3 - Internal error
"""

import logging
import sys
from pathlib import Path
from typing import Optional

import click

from gbasm_metrics import __version__
from gbasm_metrics.analyzer import (
    LineParser,
    MetricsConfig,
    MetricsEngine,
    Workspace,
    format_listing,
    format_opcode,
    format_routine,
)
from gbasm_metrics.cli.errors import ExitCode, handle_cli_exception
from gbasm_metrics.cpu import MNEMONICS, default_opcode_table
from gbasm_metrics.errors import SourceError, SourceLocation

logger = logging.getLogger(__name__)


# =============================================================================
# CLI Context
# =============================================================================

class Context:
    """
    Shared context for CLI commands.

    Stores common options like verbosity.
    """

    def __init__(self) -> None:
        self.verbose: bool = False

    def setup_logging(self) -> None:
        """Configure logging based on verbosity."""
        level = logging.DEBUG if self.verbose else logging.WARNING
        logging.basicConfig(
            level=level,
            format="%(levelname)s: %(message)s" if self.verbose else "%(message)s",
        )


pass_context = click.make_pass_decorator(Context, ensure=True)


def read_source(path: Path) -> list[str]:
    """Read a source file into lines; unreadable files raise SourceError."""
    try:
        return path.read_text(encoding="utf-8", errors="replace").splitlines()
    except OSError as e:
        raise SourceError(
            f"cannot read source file: {e.strerror or e}",
            location=SourceLocation(str(path), 0),
        ) from e


# =============================================================================
# Main CLI Group
# =============================================================================

@click.group()
@click.option(
    "-v", "--verbose",
    is_flag=True,
    help="Enable verbose output",
)
@click.version_option(version=__version__, prog_name="gbmetrics")
@pass_context
def main(ctx: Context, verbose: bool) -> None:
    """
    Static byte and cycle metrics for Game Boy (RGBDS) assembly.

    Use 'gbmetrics COMMAND --help' for the options of each command.
    """
    ctx.verbose = verbose
    ctx.setup_logging()


# =============================================================================
# Annotate Command
# =============================================================================

@main.command()
@click.argument(
    "input_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
)
@click.option(
    "-s", "--start-line",
    type=click.IntRange(min=1),
    default=None,
    help="Start cumulative counting at this line (1-based)",
)
@click.option(
    "--not-taken",
    is_flag=True,
    help="Use not-taken cycle counts for conditional instructions and macros",
)
@click.option("--predef-bytes", type=click.IntRange(min=0), help="Bytes per PREDEF call")
@click.option("--predef-cycles", type=click.IntRange(min=0), help="Cycles per PREDEF call")
@click.option("--predef-jump-bytes", type=click.IntRange(min=0), help="Bytes per PREDEF_JUMP")
@click.option("--predef-jump-cycles", type=click.IntRange(min=0), help="Cycles per PREDEF_JUMP")
@click.option(
    "--no-cumulative",
    is_flag=True,
    help="Do not show running totals",
)
@click.option(
    "-d", "--details",
    is_flag=True,
    help="Show opcode, flag, macro and predef details under each line",
)
@pass_context
def annotate(
    ctx: Context,
    input_file: Path,
    start_line: Optional[int],
    not_taken: bool,
    predef_bytes: Optional[int],
    predef_cycles: Optional[int],
    predef_jump_bytes: Optional[int],
    predef_jump_cycles: Optional[int],
    no_cumulative: bool,
    details: bool,
) -> None:
    """
    Print a source file with per-line byte and cycle annotations.

    INPUT_FILE is the assembly source file (.asm, .s, .inc). INCLUDE
    directives are resolved relative to its directory so that macros
    defined in included files are costed.

    \b
    Examples:
        gbmetrics annotate main.asm
        gbmetrics annotate main.asm -s 120 --not-taken
    """
    try:
        overrides = {
            "predef_bytes": predef_bytes,
            "predef_cycles": predef_cycles,
            "predef_jump_bytes": predef_jump_bytes,
            "predef_jump_cycles": predef_jump_cycles,
        }
        config = MetricsConfig.from_env().replace(
            **{name: value for name, value in overrides.items() if value is not None}
        )
        if not_taken:
            config = config.replace(assume_branch_taken=False)
        if no_cumulative:
            config = config.replace(show_cumulative=False)

        lines = read_source(input_file)
        engine = MetricsEngine(config)

        if start_line is not None:
            if start_line > len(lines):
                raise click.BadParameter(
                    f"file has only {len(lines)} lines", param_hint="'--start-line'"
                )
            engine.start_points.set(input_file, start_line - 1)

        metrics = engine.analyze_document(
            lines, file_path=input_file, base_dir=input_file.parent,
        )

        for text in format_listing(lines, metrics, config, details=details):
            click.echo(text)

        total_size, total_cycles = engine.totals(metrics)
        origin = f" from line {start_line}" if start_line else ""
        click.echo(f"\nTotal{origin}: {total_size} bytes, {total_cycles} cycles")

    except Exception as e:
        handle_cli_exception(e, verbose=ctx.verbose, error_type="Analysis")


# =============================================================================
# Lookup Command
# =============================================================================

@main.command()
@click.argument("instruction")
@pass_context
def lookup(ctx: Context, instruction: str) -> None:
    """
    Describe one instruction: opcode, size, cycles and flags.

    INSTRUCTION is written as in source, e.g. "ld a, [hl+]".

    \b
    Examples:
        gbmetrics lookup "bit 3, [hl]"
        gbmetrics lookup "jr nz, .loop"
    """
    try:
        parsed = LineParser().parse_line(instruction, 0)
        entry = None
        if parsed.instruction is not None:
            entry = default_opcode_table().lookup(parsed.instruction, parsed.operands)
    except Exception as e:
        handle_cli_exception(e, verbose=ctx.verbose)

    if entry is None:
        if parsed.instruction in MNEMONICS:
            operands = ", ".join(parsed.operands)
            click.echo(f"Error: no {parsed.instruction} form takes operands: {operands}", err=True)
        else:
            click.echo(f"Error: unknown instruction: {instruction.strip()}", err=True)
        sys.exit(ExitCode.BUILD_ERROR)

    click.echo(format_opcode(entry))


# =============================================================================
# Routines Command
# =============================================================================

@main.command()
@click.argument(
    "roots",
    nargs=-1,
    required=True,
    type=click.Path(exists=True, path_type=Path),
)
@click.option(
    "-n", "--name",
    default=None,
    help="Show the documentation of one routine",
)
@pass_context
def routines(ctx: Context, roots: tuple[Path, ...], name: Optional[str]) -> None:
    """
    List documented routines found under one or more directories.

    A routine is documented when comment lines directly above its label
    describe its register inputs or purpose.

    \b
    Examples:
        gbmetrics routines src
        gbmetrics routines src engine --name CopyBytes
    """
    try:
        workspace = Workspace()
        count = workspace.scan(roots)
        root = roots[0] if len(roots) == 1 and roots[0].is_dir() else None
    except Exception as e:
        handle_cli_exception(e, verbose=ctx.verbose)

    if name is not None:
        routine = workspace.find_routine(name)
        if routine is None:
            click.echo(f"Error: no documentation found for '{name}'", err=True)
            sys.exit(ExitCode.BUILD_ERROR)
        click.echo(format_routine(routine, root))
        return

    documented = sorted(workspace.routines, key=lambda r: r.name.upper())
    if not documented:
        click.echo(f"No documented routines found ({count} files scanned).")
        return

    click.echo("\n\n".join(format_routine(routine, root) for routine in documented))
    click.echo(f"\n{len(documented)} documented routines in {count} files")


# =============================================================================
# Entry Point
# =============================================================================

if __name__ == "__main__":
    main()
