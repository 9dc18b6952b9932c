"""
gbasm-metrics CPU Package
=========================

This package contains the Game Boy CPU (SM83) instruction set used by the
analysis engine.

Modules:
    sm83: Unprefixed and CB-prefixed opcode tables, operand normalization
          and the OpcodeTable lookup.

Usage:
    from gbasm_metrics.cpu import OpcodeTable, build_opcode_table

    table = build_opcode_table()
    entry = table.lookup("ld", ["a", "[hl+]"])
"""

# =============================================================================
# Public API Exports
# =============================================================================

from gbasm_metrics.cpu.sm83 import (
    # Core types
    FlagEffect,
    OpcodeEntry,
    OpcodeTable,
    # Instruction data
    UNPREFIXED_OPCODES,
    CB_PREFIXED_OPCODES,
    CB_INSTRUCTIONS,
    CALL_INSTRUCTIONS,
    MNEMONICS,
    REGISTERS,
    CONDITIONS,
    # Helpers
    build_opcode_table,
    default_opcode_table,
    is_cb_prefixed,
    normalize_operand,
    opcode_hex,
    parse_int_literal,
    table_key,
)

__all__ = [
    "FlagEffect",
    "OpcodeEntry",
    "OpcodeTable",
    "UNPREFIXED_OPCODES",
    "CB_PREFIXED_OPCODES",
    "CB_INSTRUCTIONS",
    "CALL_INSTRUCTIONS",
    "MNEMONICS",
    "REGISTERS",
    "CONDITIONS",
    "build_opcode_table",
    "default_opcode_table",
    "is_cb_prefixed",
    "normalize_operand",
    "opcode_hex",
    "parse_int_literal",
    "table_key",
]
