"""
gbasm-metrics - Static Size and Timing Metrics for Game Boy Assembly
====================================================================

This package computes byte counts and CPU cycle costs for Game Boy
(SM83, "GB Z80") assembly written in the RGBDS dialect, without
assembling it.

The Game Boy CPU runs at 4.194304 MHz; cycle counts are clock cycles
(NOP = 4). Costs are estimated from the syntactic shape of each line: no
expressions are evaluated and no ROM is produced.

Main Components
---------------
- **cpu**: SM83 instruction set
    Unprefixed and CB-prefixed opcode tables with operand normalization

- **analyzer**: Analysis engine
    Line parser, document scanner (INCLUDE, MACRO/ENDM, routine comments),
    metrics engine with start points and cumulative totals, workspace-wide
    routine documentation

- **cli**: Command-line tool (gbmetrics)

Quick Start
-----------
Cost of one line:
    >>> from gbasm_metrics import MetricsEngine
    >>> engine = MetricsEngine()
    >>> info = engine.get_line_info("    jr nz, .loop", 0)
    >>> info.size, info.cycles
    (2, 12)

Whole document with a start point:
    >>> engine.start_points.set("main.asm", 10)
    >>> metrics = engine.analyze_document(lines, file_path="main.asm")
    >>> engine.totals(metrics)

Or use the command-line tool:
    $ gbmetrics annotate main.asm --start-line 11
    $ gbmetrics lookup "bit 3, [hl]"

Reference Documentation
-----------------------
- RGBDS: https://rgbds.gbdev.io/docs/
- Pan Docs CPU instruction set: https://gbdev.io/pandocs/CPU_Instruction_Set.html
"""

__version__ = "1.0.0"

# =============================================================================
# Public API Exports
# =============================================================================

from gbasm_metrics.errors import (
    MetricsError,
    ConfigError,
    SourceError,
    SourceLocation,
)

from gbasm_metrics.cpu import (
    FlagEffect,
    OpcodeEntry,
    OpcodeTable,
    build_opcode_table,
    default_opcode_table,
)

from gbasm_metrics.analyzer import (
    DocumentScanner,
    LineMetrics,
    LineParser,
    MacroDefinition,
    MacroRegistry,
    MetricsConfig,
    MetricsEngine,
    ParsedLine,
    PredefKind,
    RoutineArgument,
    RoutineDefinition,
    RoutineRegistry,
    StartPoints,
    Workspace,
)

__all__ = [
    # Version info
    "__version__",
    # Exception hierarchy
    "MetricsError",
    "ConfigError",
    "SourceError",
    "SourceLocation",
    # Instruction set
    "FlagEffect",
    "OpcodeEntry",
    "OpcodeTable",
    "build_opcode_table",
    "default_opcode_table",
    # Analysis engine
    "DocumentScanner",
    "LineMetrics",
    "LineParser",
    "MacroDefinition",
    "MacroRegistry",
    "MetricsConfig",
    "MetricsEngine",
    "ParsedLine",
    "PredefKind",
    "RoutineArgument",
    "RoutineDefinition",
    "RoutineRegistry",
    "StartPoints",
    "Workspace",
]
