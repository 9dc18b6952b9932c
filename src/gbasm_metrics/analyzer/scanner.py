"""
Document Scanner
================

This module walks a document (and, transitively, the files it INCLUDEs)
once from top to bottom and populates the macro and routine registries.

Scanned Constructs
------------------
1. **INCLUDE**: `INCLUDE "file.inc"` (quotes optional, any case). The path
   is tried relative to the including file's directory, then in its `inc/`,
   `include/` and `src/` subdirectories. Missing or unreadable files are
   skipped. A visited set stops include cycles.

2. **Macro blocks**: `Name: MACRO` or `MACRO Name` up to `ENDM`. Body lines
   are collected verbatim; when ENDM closes the block the body is parsed and
   its cost aggregated into a MacroDefinition.

3. **Routine documentation**: a global label (`Name:` or `Name::`) directly
   below a run of comment-only lines. The comments are mined for register
   inputs and a one-line description:

   ```asm
   ; Copies BC bytes from HL to DE
   ; Inputs: hl = source, de = destination, bc = count
   CopyBytes::
   ```

Macro Cost
----------
For each body line:
- instruction: opcode table bytes; max cycles use the taken value,
  min cycles the not-taken value
- data directive: its byte count, no cycles
- call to an already registered macro: that macro's bytes and max/min

Unknown instructions and unregistered macros add nothing.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterable, Optional, Union
import logging
import re

from gbasm_metrics.cpu import OpcodeTable, REGISTERS, default_opcode_table
from gbasm_metrics.analyzer.parser import LineParser, ParsedLine
from gbasm_metrics.analyzer.registry import (
    MacroDefinition,
    MacroRegistry,
    RoutineArgument,
    RoutineDefinition,
    RoutineRegistry,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Line Patterns
# =============================================================================

_INCLUDE = re.compile(r"""^INCLUDE\s+["']?([^"'\s]+)["']?""", re.IGNORECASE)
_MACRO_HEADER_LABEL = re.compile(r"^(\w+):\s*MACRO\b", re.IGNORECASE)
_MACRO_HEADER_KEYWORD = re.compile(r"^MACRO\s+(\w+)", re.IGNORECASE)
_ENDM = re.compile(r"^ENDM\b", re.IGNORECASE)
_GLOBAL_LABEL = re.compile(r"^(\w+)::?(?:\s|$)")

# Subdirectories searched after the including file's own directory
INCLUDE_SUBDIRECTORIES: tuple[str, ...] = ("inc", "include", "src")

PathLike = Union[str, Path]


# =============================================================================
# Routine Documentation Heuristics
# =============================================================================

VALID_REGISTERS: frozenset[str] = frozenset(register.lower() for register in REGISTERS)

_INPUTS_LINE = re.compile(
    r"(?:inputs?|args?|arguments?|params?|parameters?):\s*(.+)", re.IGNORECASE
)
_INPUT_PIECE = re.compile(r"([a-z]{1,2})(?:\s*[:=\-]\s*)(.+)", re.IGNORECASE)
_REGISTER_LINE = re.compile(
    r"^(?:register\s+)?([a-z]{1,2})(?:\s*[:=\-]\s*)(.+)", re.IGNORECASE
)
_PARAM_LINE = re.compile(r"@?param\s+([a-z]{1,2})(?:\s*[:=\-]?\s*)(.+)", re.IGNORECASE)
_SEPARATOR = re.compile(r"^[-=]+$")

# A matcher returns the arguments found on a line, or None if the line is
# not in its format. An empty list still counts as a match.
ArgumentMatcher = Callable[[str], Optional[list[RoutineArgument]]]


def _argument(register: str, description: str) -> Optional[RoutineArgument]:
    register = register.lower()
    if register not in VALID_REGISTERS:
        return None
    return RoutineArgument(register, description.strip())


def _match_inputs_line(line: str) -> Optional[list[RoutineArgument]]:
    """"Inputs: a = value, hl = pointer" (also args/params/parameters)."""
    match = _INPUTS_LINE.search(line)
    if not match:
        return None
    arguments = []
    for piece in re.split(r"[,;]", match.group(1)):
        piece_match = _INPUT_PIECE.match(piece.strip())
        if piece_match:
            argument = _argument(*piece_match.groups())
            if argument:
                arguments.append(argument)
    return arguments


def _match_register_line(line: str) -> Optional[list[RoutineArgument]]:
    """"hl: pointer" or "register a - value"."""
    match = _REGISTER_LINE.match(line)
    if not match:
        return None
    argument = _argument(*match.groups())
    return [argument] if argument else None


def _match_param_line(line: str) -> Optional[list[RoutineArgument]]:
    """"@param de destination"."""
    match = _PARAM_LINE.search(line)
    if not match:
        return None
    argument = _argument(*match.groups())
    return [argument] if argument else None


# Tried in order; the first matcher that recognizes a line wins
ARGUMENT_MATCHERS: tuple[ArgumentMatcher, ...] = (
    _match_inputs_line,
    _match_register_line,
    _match_param_line,
)


def parse_argument_comments(
    comments: Iterable[str],
) -> tuple[list[RoutineArgument], Optional[str]]:
    """
    Extract register arguments and a description from comment lines.

    Args:
        comments: Comment texts (without ';') in source order

    Returns:
        (arguments, description). The description is the first non-empty,
        non-separator line that no argument matcher recognized.
    """
    arguments: list[RoutineArgument] = []
    description: Optional[str] = None

    for comment in comments:
        line = comment.strip()
        for matcher in ARGUMENT_MATCHERS:
            found = matcher(line)
            if found is not None:
                arguments.extend(found)
                break
        else:
            if description is None and line and not _SEPARATOR.match(line):
                description = line

    return arguments, description


# =============================================================================
# Document Scanner
# =============================================================================

@dataclass
class _MacroBlock:
    """A MACRO block still waiting for its ENDM."""
    name: str
    start_line: int
    lines: list[tuple[int, str]] = field(default_factory=list)


class DocumentScanner:
    """
    Single-pass scanner that builds the macro and routine registries.

    The scanner owns its registries unless they are passed in; the line
    parser it exposes shares the macro registry, so parse_line() recognizes
    every macro found by the last parse_document().

    Usage:
        scanner = DocumentScanner(build_opcode_table())
        scanner.parse_document(lines, base_dir="src", file_path="src/main.asm")
        scanner.macros.get("WAIT_VBLANK")
    """

    def __init__(
        self,
        opcode_table: Optional[OpcodeTable] = None,
        macros: Optional[MacroRegistry] = None,
        routines: Optional[RoutineRegistry] = None,
    ):
        self.opcode_table = opcode_table if opcode_table is not None else default_opcode_table()
        self.macros = macros if macros is not None else MacroRegistry()
        self.routines = routines if routines is not None else RoutineRegistry()
        self.parser = LineParser(self.macros)

    def parse_line(self, text: str, line_number: int) -> ParsedLine:
        """Tokenize one line against the current macro registry."""
        return self.parser.parse_line(text, line_number)

    def parse_document(
        self,
        lines: list[str],
        base_dir: Optional[PathLike] = None,
        file_path: Optional[PathLike] = None,
    ) -> None:
        """
        Rebuild the macro registry from a document.

        The routine registry is not cleared: it may hold routines found in
        other files of the same workspace.

        Args:
            lines: Document lines without terminators
            base_dir: Directory for INCLUDE resolution; includes are ignored
                when None
            file_path: Origin recorded in RoutineDefinition.file_path
        """
        self.macros.clear()
        visited: set[str] = set()
        if file_path is not None:
            visited.add(_visit_key(Path(file_path)))
        self._scan(lines, base_dir, file_path, visited)

    def clear_all(self) -> None:
        """Empty both registries (before a full workspace rescan)."""
        self.macros.clear()
        self.routines.clear()

    # -------------------------------------------------------------------------
    # Scanning
    # -------------------------------------------------------------------------

    def _scan(
        self,
        lines: list[str],
        base_dir: Optional[PathLike],
        file_path: Optional[PathLike],
        visited: set[str],
    ) -> None:
        block: Optional[_MacroBlock] = None
        pending_comments: list[str] = []

        for line_number, line in enumerate(lines):
            trimmed = line.strip()

            if block is not None:
                if _ENDM.match(trimmed):
                    self._close_macro(block, line_number)
                    block = None
                else:
                    block.lines.append((line_number, line))
                continue

            include = _INCLUDE.match(trimmed)
            if include:
                if base_dir is not None:
                    self._scan_include(include.group(1), Path(base_dir), visited)
                pending_comments = []
                continue

            header = _MACRO_HEADER_LABEL.match(trimmed) or _MACRO_HEADER_KEYWORD.match(trimmed)
            if header:
                block = _MacroBlock(header.group(1).upper(), line_number)
                pending_comments = []
                continue

            label = _GLOBAL_LABEL.match(trimmed)
            if label:
                self._register_routine(label.group(1), file_path, line_number, pending_comments)
                pending_comments = []
                continue

            code = self.parser.parse_line(line, line_number)
            if not code.has_code:
                if code.comment is not None:
                    pending_comments.append(code.comment)
            else:
                pending_comments = []

        if block is not None:
            logger.debug(f"Macro {block.name} at line {block.start_line} has no ENDM")

    def _scan_include(self, target: str, base_dir: Path, visited: set[str]) -> None:
        path = _resolve_include(target, base_dir)
        if path is None:
            logger.debug(f"INCLUDE {target!r} not found from {base_dir}")
            return

        key = _visit_key(path)
        if key in visited:
            return
        visited.add(key)

        try:
            lines = path.read_text(encoding="utf-8", errors="replace").splitlines()
        except OSError as e:
            logger.debug(f"Skipping INCLUDE {path}: {e}")
            return

        logger.debug(f"Scanning included file {path}")
        self._scan(lines, path.parent, str(path), visited)

    def _close_macro(self, block: _MacroBlock, end_line: int) -> None:
        size = 0
        max_cycles = 0
        min_cycles = 0
        instructions: list[ParsedLine] = []

        for line_number, text in block.lines:
            parsed = self.parser.parse_line(text, line_number)
            if parsed.instruction is None:
                continue
            instructions.append(parsed)

            if parsed.is_directive:
                size += parsed.directive_bytes or 0
            elif parsed.is_macro_call:
                nested = self.macros.get(parsed.macro_name)
                if nested is not None:
                    size += nested.size
                    max_cycles += nested.max_cycles
                    min_cycles += nested.min_cycles
            elif parsed.is_instruction:
                entry = self.opcode_table.lookup(parsed.instruction, parsed.operands)
                if entry is not None:
                    size += entry.size
                    max_cycles += entry.max_cycles
                    min_cycles += entry.min_cycles

        cycles = (max_cycles,) if max_cycles == min_cycles else (max_cycles, min_cycles)
        self.macros.register(MacroDefinition(
            name=block.name,
            start_line=block.start_line,
            end_line=end_line,
            size=size,
            cycles=cycles,
            instructions=instructions,
        ))
        logger.debug(f"Macro {block.name}: {size} bytes, cycles {list(cycles)}")

    def _register_routine(
        self,
        name: str,
        file_path: Optional[PathLike],
        line_number: int,
        comments: list[str],
    ) -> None:
        arguments, description = parse_argument_comments(comments)
        if not arguments and description is None:
            return
        self.routines.register(RoutineDefinition(
            name=name,
            file_path=str(file_path) if file_path is not None else None,
            line_number=line_number,
            arguments=arguments,
            description=description,
        ))


# =============================================================================
# Include Resolution
# =============================================================================

def _resolve_include(target: str, base_dir: Path) -> Optional[Path]:
    """Resolve an INCLUDE target to an existing file, or None."""
    candidates = [base_dir / target]
    candidates.extend(base_dir / subdir / target for subdir in INCLUDE_SUBDIRECTORIES)
    for candidate in candidates:
        try:
            if candidate.is_file():
                return candidate
        except OSError as e:
            logger.debug(f"Cannot stat {candidate}: {e}")
    return None


def _visit_key(path: Path) -> str:
    try:
        return str(path.resolve())
    except OSError:
        return str(path.absolute())
