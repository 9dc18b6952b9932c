"""
Metrics Engine
==============

This module answers "what does this line cost" and runs the whole-document
pass that produces cumulative totals from a start point.

Per-Line Resolution
-------------------
For one line the engine returns a LineMetrics with bytes and a single
cycle value:

1. Section/meta directives (SECTION, EQU, ...) have no metrics.
2. Predef-style calls cost the configured predef bytes/cycles.
3. Registered macro calls cost the macro's bytes; cycles are its taken
   value, or its not-taken value when assume_branch_taken is off.
4. Instructions are looked up in the opcode table. Conditional branches
   report 12/8 style values the same way.
5. Data directives report their byte count and zero cycles.
6. Anything else (blank lines, labels, unknown instructions) has none.

Start Points and Cumulative Totals
----------------------------------
A document may have one start point (a 0-based line index). Without one,
counting starts at the top. With one, nothing is counted until that line
is reached; from there to the end every line with metrics adds to the
running totals:

```
line  source            size cycles  cumulative
 10   ld a, [hl+]        1B   8c      -
 11   ld [de], a         1B   8c      1B  8c     <- start point
 12   inc de             1B   8c      2B 16c
 13   dec c              1B   4c      3B 20c
 14   jr nz, .copy       2B  12c      5B 32c
```

Lines inside MACRO ... ENDM definitions emit no code where they are
written, so the document pass reports them without metrics.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union
import logging

from gbasm_metrics.cpu import FlagEffect, OpcodeEntry, OpcodeTable
from gbasm_metrics.analyzer.config import MetricsConfig
from gbasm_metrics.analyzer.parser import ParsedLine, PredefKind
from gbasm_metrics.analyzer.registry import MacroDefinition, MacroRegistry, RoutineRegistry
from gbasm_metrics.analyzer.scanner import DocumentScanner

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

# Key used for documents that have no file path (unsaved buffers, stdin)
UNTITLED = "<untitled>"


def _document_key(file_path: Optional[PathLike]) -> str:
    return str(file_path) if file_path is not None else UNTITLED


# =============================================================================
# Line Metrics
# =============================================================================

@dataclass
class LineMetrics:
    """
    Computed cost of one source line.

    Attributes:
        line_number: Line index the metrics belong to
        has_metrics: False for lines that cost nothing or are unknown
        size: Bytes emitted by the line
        cycles: Clock cycles, resolved by the branch-taken policy
        cumulative_size: Running byte total (only while counting)
        cumulative_cycles: Running cycle total (only while counting)
        counting: True if the line is at or after the start point
        opcode: Resolved opcode table entry for instructions
        is_macro_call: Line invokes a registered macro
        macro_name: Name of the invoked macro
        macro: The invoked macro's definition, when registered
        is_predef_call: Line is a PREDEF-style call
        predef_kind: Cost class of the predef-style call
        predef_target: First operand of the predef-style call
        is_data_directive: Line is DB/DW/DL/DS
        parsed: The tokenized line
    """
    line_number: int
    has_metrics: bool = False
    size: int = 0
    cycles: int = 0
    cumulative_size: int = 0
    cumulative_cycles: int = 0
    counting: bool = False
    opcode: Optional[OpcodeEntry] = None
    is_macro_call: bool = False
    macro_name: Optional[str] = None
    macro: Optional[MacroDefinition] = None
    is_predef_call: bool = False
    predef_kind: Optional[PredefKind] = None
    predef_target: Optional[str] = None
    is_data_directive: bool = False
    parsed: Optional[ParsedLine] = None

    @property
    def is_cb_prefixed(self) -> bool:
        return self.opcode is not None and self.opcode.cb_prefixed

    @property
    def opcode_hex(self) -> Optional[str]:
        return self.opcode.hex if self.opcode else None

    @property
    def flags(self) -> Optional[FlagEffect]:
        return self.opcode.flags if self.opcode else None


# =============================================================================
# Start Points
# =============================================================================

class StartPoints:
    """
    Per-document start point store.

    Each document (keyed by file path) has at most one start point, a
    0-based line index. Absence means "count from the top".
    """

    def __init__(self):
        self._points: dict[str, int] = {}

    def set(self, file_path: Optional[PathLike], line: int) -> None:
        self._points[_document_key(file_path)] = line

    def clear(self, file_path: Optional[PathLike]) -> None:
        self._points.pop(_document_key(file_path), None)

    def get(self, file_path: Optional[PathLike]) -> Optional[int]:
        return self._points.get(_document_key(file_path))

    def has(self, file_path: Optional[PathLike]) -> bool:
        return _document_key(file_path) in self._points

    def toggle(self, file_path: Optional[PathLike], line: int) -> Optional[int]:
        """
        Set the start point to line, or clear it if it is already there.

        Returns:
            The start point after the toggle (None when cleared)
        """
        if self.get(file_path) == line:
            self.clear(file_path)
            return None
        self.set(file_path, line)
        return line

    def clear_all(self) -> None:
        self._points.clear()


# =============================================================================
# Metrics Engine
# =============================================================================

class MetricsEngine:
    """
    Computes per-line and cumulative metrics for RGBDS source.

    One engine serves one analysis session: it owns a DocumentScanner (and
    so the macro and routine registries), the start points and the cache of
    the last document pass per file. The opcode table is shared.

    Usage:
        engine = MetricsEngine(MetricsConfig(assume_branch_taken=False))
        engine.start_points.set("main.asm", 10)
        for metrics in engine.analyze_document(lines, file_path="main.asm"):
            ...
    """

    def __init__(
        self,
        config: Optional[MetricsConfig] = None,
        opcode_table: Optional[OpcodeTable] = None,
        scanner: Optional[DocumentScanner] = None,
    ):
        self.config = config if config is not None else MetricsConfig()
        if scanner is None:
            scanner = DocumentScanner(opcode_table)
        self.scanner = scanner
        self.opcode_table = opcode_table if opcode_table is not None else scanner.opcode_table
        self.start_points = StartPoints()
        self._cache: dict[str, list[LineMetrics]] = {}

    @property
    def macros(self) -> MacroRegistry:
        return self.scanner.macros

    @property
    def routines(self) -> RoutineRegistry:
        return self.scanner.routines

    def parse_document(
        self,
        lines: list[str],
        base_dir: Optional[PathLike] = None,
        file_path: Optional[PathLike] = None,
    ) -> None:
        """Rebuild the macro registry (and routine docs) from a document."""
        self.scanner.parse_document(lines, base_dir=base_dir, file_path=file_path)

    # -------------------------------------------------------------------------
    # Per-Line Metrics
    # -------------------------------------------------------------------------

    def get_line_info(
        self,
        line_text: str,
        line_number: int,
        file_path: Optional[PathLike] = None,
    ) -> LineMetrics:
        """
        Compute the metrics of a single line.

        Macro calls are only recognized for macros registered by the last
        parse_document(). The result carries no cumulative values.

        Args:
            line_text: The raw line
            line_number: Line index to record in the result
            file_path: Document the line belongs to (informational)

        Returns:
            LineMetrics; has_metrics is False when the cost is unknown
        """
        parsed = self.scanner.parse_line(line_text, line_number)
        return self._resolve(parsed)

    def _resolve(self, parsed: ParsedLine) -> LineMetrics:
        line_number = parsed.line_number

        if parsed.is_directive and parsed.directive_bytes is None:
            return LineMetrics(line_number, parsed=parsed)

        if parsed.is_predef_call:
            size, cycles = self.config.predef_cost(parsed.predef_kind)
            return LineMetrics(
                line_number,
                has_metrics=True,
                size=size,
                cycles=cycles,
                is_predef_call=True,
                predef_kind=parsed.predef_kind,
                predef_target=parsed.operands[0] if parsed.operands else None,
                parsed=parsed,
            )

        if parsed.is_macro_call:
            macro = self.macros.get(parsed.macro_name)
            if macro is None:
                return LineMetrics(
                    line_number, is_macro_call=True, macro_name=parsed.macro_name, parsed=parsed,
                )
            cycles = macro.max_cycles if self.config.assume_branch_taken else macro.min_cycles
            return LineMetrics(
                line_number,
                has_metrics=True,
                size=macro.size,
                cycles=cycles,
                is_macro_call=True,
                macro_name=parsed.macro_name,
                macro=macro,
                parsed=parsed,
            )

        if parsed.is_instruction:
            entry = self.opcode_table.lookup(parsed.instruction, parsed.operands)
            if entry is None:
                return LineMetrics(line_number, parsed=parsed)
            return LineMetrics(
                line_number,
                has_metrics=True,
                size=entry.size,
                cycles=self._select_cycles(entry),
                opcode=entry,
                parsed=parsed,
            )

        if parsed.is_directive:
            return LineMetrics(
                line_number,
                has_metrics=True,
                size=parsed.directive_bytes,
                cycles=0,
                is_data_directive=True,
                parsed=parsed,
            )

        return LineMetrics(line_number, parsed=parsed)

    def _select_cycles(self, entry: OpcodeEntry) -> int:
        if self.config.assume_branch_taken:
            return entry.cycles[0]
        return entry.cycles[1] if len(entry.cycles) > 1 else entry.cycles[0]

    # -------------------------------------------------------------------------
    # Whole-Document Pass
    # -------------------------------------------------------------------------

    def analyze_document(
        self,
        lines: list[str],
        file_path: Optional[PathLike] = None,
        base_dir: Optional[PathLike] = None,
        rescan: bool = True,
    ) -> list[LineMetrics]:
        """
        Compute metrics for every line with cumulative totals.

        Args:
            lines: Document lines without terminators
            file_path: Document path; selects the start point and cache slot
            base_dir: Directory for INCLUDE resolution during the rescan
            rescan: Rebuild the macro registry from this document first

        Returns:
            One LineMetrics per line, in order. The result also replaces
            the cached metrics of this document.
        """
        if rescan:
            self.parse_document(lines, base_dir=base_dir, file_path=file_path)

        start_point = self.start_points.get(file_path)
        counting = start_point is None
        cumulative_size = 0
        cumulative_cycles = 0
        in_macro_definition = False
        results: list[LineMetrics] = []

        for index, text in enumerate(lines):
            if start_point is not None and index == start_point:
                counting = True

            parsed = self.scanner.parse_line(text, index)

            if parsed.is_directive and parsed.instruction == "MACRO":
                in_macro_definition = True
            if in_macro_definition:
                if parsed.is_directive and parsed.instruction == "ENDM":
                    in_macro_definition = False
                metrics = LineMetrics(index, parsed=parsed)
            else:
                metrics = self._resolve(parsed)

            metrics.counting = counting
            if counting:
                if metrics.has_metrics:
                    cumulative_size += metrics.size
                    cumulative_cycles += metrics.cycles
                metrics.cumulative_size = cumulative_size
                metrics.cumulative_cycles = cumulative_cycles
            results.append(metrics)

        self._cache[_document_key(file_path)] = results
        logger.debug(
            f"Analyzed {_document_key(file_path)}: {len(lines)} lines, "
            f"{cumulative_size} bytes, {cumulative_cycles} cycles counted"
        )
        return results

    def get_cached_metrics(self, file_path: Optional[PathLike] = None) -> Optional[list[LineMetrics]]:
        """Metrics from the last analyze_document() of a file, or None."""
        return self._cache.get(_document_key(file_path))

    @staticmethod
    def totals(metrics: list[LineMetrics]) -> tuple[int, int]:
        """Sum (bytes, cycles) over the counted lines of a document pass."""
        size = sum(m.size for m in metrics if m.counting and m.has_metrics)
        cycles = sum(m.cycles for m in metrics if m.counting and m.has_metrics)
        return size, cycles
