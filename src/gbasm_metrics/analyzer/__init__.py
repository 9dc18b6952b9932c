"""
gbasm-metrics Analyzer Package
==============================

The analysis engine: line parsing, document scanning, registries, metrics
and workspace queries.

Modules:
    parser: RGBDS line tokenizer/classifier
    registry: Macro and routine registries and their records
    scanner: Document scanner (INCLUDE, MACRO/ENDM, routine comments)
    config: MetricsConfig
    metrics: MetricsEngine, LineMetrics, StartPoints
    workspace: Workspace-wide routine documentation
    formatting: Plain-text rendering

Usage:
    from gbasm_metrics.analyzer import MetricsEngine

    engine = MetricsEngine()
    for metrics in engine.analyze_document(lines, file_path="main.asm"):
        print(metrics.line_number, metrics.size, metrics.cycles)
"""

from gbasm_metrics.analyzer.parser import (
    DATA_DIRECTIVES,
    SECTION_DIRECTIVES,
    PREDEF_KEYWORDS,
    LineParser,
    ParsedLine,
    PredefKind,
    calculate_directive_bytes,
    extract_comment,
    parse_numeric_value,
    split_instruction,
    split_operands,
    strip_comment,
)
from gbasm_metrics.analyzer.registry import (
    MacroDefinition,
    MacroRegistry,
    RoutineArgument,
    RoutineDefinition,
    RoutineRegistry,
)
from gbasm_metrics.analyzer.scanner import DocumentScanner, parse_argument_comments
from gbasm_metrics.analyzer.config import MetricsConfig
from gbasm_metrics.analyzer.metrics import LineMetrics, MetricsEngine, StartPoints
from gbasm_metrics.analyzer.workspace import (
    SKIPPED_DIRECTORIES,
    SOURCE_EXTENSIONS,
    Workspace,
    is_source_file,
    iter_source_files,
)
from gbasm_metrics.analyzer.formatting import (
    format_annotation,
    format_details,
    format_listing,
    format_opcode,
    format_routine,
)

__all__ = [
    # Parser
    "DATA_DIRECTIVES",
    "SECTION_DIRECTIVES",
    "PREDEF_KEYWORDS",
    "LineParser",
    "ParsedLine",
    "PredefKind",
    "calculate_directive_bytes",
    "extract_comment",
    "parse_numeric_value",
    "split_instruction",
    "split_operands",
    "strip_comment",
    # Registries
    "MacroDefinition",
    "MacroRegistry",
    "RoutineArgument",
    "RoutineDefinition",
    "RoutineRegistry",
    # Scanner
    "DocumentScanner",
    "parse_argument_comments",
    # Metrics
    "MetricsConfig",
    "LineMetrics",
    "MetricsEngine",
    "StartPoints",
    # Workspace
    "SKIPPED_DIRECTORIES",
    "SOURCE_EXTENSIONS",
    "Workspace",
    "is_source_file",
    "iter_source_files",
    # Formatting
    "format_annotation",
    "format_details",
    "format_listing",
    "format_opcode",
    "format_routine",
]
