"""
Plain-Text Rendering
====================

Text renderers for metrics, opcode entries and routine documentation.
The CLI prints these; editor hosts can reuse the same strings.

Annotation
----------
`2B | 14B | 12c | 56c` reads: this line is 2 bytes, 14 bytes counted so
far, 12 cycles, 56 cycles counted so far. Cumulative values only appear
on lines at or after the start point. Macro and predef calls are tagged
`[macro]` / `[predef]`.

Details
-------
    [20] Z:- N:- H:- C:- | 12c taken / 8c not taken
    MACRO WAIT_VBLANK: 6B | 28c max / 20c min | 3 instructions
    PREDEF LoadTiles: 8B | 44c (ld a,BANK + ld hl,addr + call)
"""

from pathlib import Path
from typing import Optional, Sequence

from gbasm_metrics.cpu import OpcodeEntry
from gbasm_metrics.analyzer.config import MetricsConfig
from gbasm_metrics.analyzer.metrics import LineMetrics
from gbasm_metrics.analyzer.parser import PredefKind
from gbasm_metrics.analyzer.registry import RoutineDefinition

# Minimum gap between the longest source line and the annotation column
ANNOTATION_PADDING = 4


def format_annotation(metrics: LineMetrics, config: Optional[MetricsConfig] = None) -> str:
    """Render the inline annotation of a line ("" when it has none)."""
    config = config or MetricsConfig()
    if not metrics.has_metrics:
        return ""

    cumulative = config.show_cumulative and metrics.counting
    parts = []
    if config.show_byte_count:
        parts.append(f"{metrics.size}B")
        if cumulative:
            parts.append(f"{metrics.cumulative_size}B")
    if config.show_cycle_count and metrics.cycles > 0:
        parts.append(f"{metrics.cycles}c")
        if cumulative:
            parts.append(f"{metrics.cumulative_cycles}c")
    if metrics.macro is not None:
        parts.append("[macro]")
    if metrics.is_predef_call:
        parts.append("[predef]")
    return " | ".join(parts)


def _cycle_range(cycles: Sequence[int], high: str, low: str) -> str:
    if len(cycles) > 1:
        return f"{cycles[0]}c {high} / {cycles[1]}c {low}"
    return f"{cycles[0]}c"


def format_details(metrics: LineMetrics) -> Optional[str]:
    """Expanded detail line for an instruction, macro or predef call."""
    if metrics.opcode is not None:
        entry = metrics.opcode
        cycles = _cycle_range(entry.cycles, "taken", "not taken")
        return f"[{entry.hex}] {entry.flags} | {cycles}"

    if metrics.macro is not None:
        macro = metrics.macro
        cycles = _cycle_range(macro.cycles, "max", "min")
        return (
            f"MACRO {macro.name}: {macro.size}B | {cycles} | "
            f"{len(macro.instructions)} instructions"
        )

    if metrics.is_predef_call:
        jump = metrics.predef_kind is PredefKind.PREDEF_JUMP
        label = "PREDEF_JUMP" if jump else "PREDEF"
        target = metrics.predef_target or "unknown"
        return (
            f"{label} {target}: {metrics.size}B | {metrics.cycles}c "
            f"(ld a,BANK + ld hl,addr + {'jp' if jump else 'call'})"
        )

    return None


def format_listing(
    lines: Sequence[str],
    metrics: Sequence[LineMetrics],
    config: Optional[MetricsConfig] = None,
    details: bool = False,
) -> list[str]:
    """
    Render source lines with annotations aligned in one column.

    With details, the expanded detail text follows each line that has one,
    indented by four spaces.
    """
    config = config or MetricsConfig()
    annotated = [m for m in metrics if m.has_metrics]
    width = max((len(lines[m.line_number]) for m in annotated), default=0)

    output = []
    for text, line_metrics in zip(lines, metrics):
        annotation = format_annotation(line_metrics, config)
        if annotation:
            padding = " " * (width - len(text) + ANNOTATION_PADDING)
            output.append(f"{text}{padding}{annotation}")
        else:
            output.append(text)
        if details:
            detail = format_details(line_metrics)
            if detail:
                output.append(f"    {detail}")
    return output


def format_opcode(entry: OpcodeEntry) -> str:
    """Multi-line description of an opcode table entry."""
    mnemonic = " ".join(filter(None, (entry.mnemonic, ",".join(entry.operands))))
    if entry.is_conditional:
        cycles = f"{entry.cycles[0]} (branch taken) / {entry.cycles[1]} (not taken)"
    else:
        cycles = str(entry.cycles[0])
    return "\n".join([
        mnemonic,
        f"  Opcode: {entry.hex}",
        f"  Size:   {entry.size} byte{'s' if entry.size != 1 else ''}",
        f"  Cycles: {cycles}",
        f"  Flags:  {entry.flags}",
    ])


def format_routine(routine: RoutineDefinition, root: Optional[Path] = None) -> str:
    """Routine documentation with a 1-based "Defined in file:line" footer."""
    lines = [routine.name]
    if routine.description:
        lines.append(f"  {routine.description}")
    if routine.arguments:
        lines.append("  Arguments:")
        lines.extend(f"    {arg.register.upper()}: {arg.description}" for arg in routine.arguments)
    if routine.file_path:
        location = Path(routine.file_path)
        if root is not None:
            try:
                location = location.relative_to(root)
            except ValueError:
                pass
        lines.append(f"  Defined in {location}:{routine.line_number + 1}")
    return "\n".join(lines)
