"""
gbasm-metrics Command-Line Interface
====================================

This package provides the `gbmetrics` command, a Click-based group with
three subcommands:

- **annotate**: print a source file with per-line byte/cycle annotations
- **lookup**: describe one instruction from the opcode table
- **routines**: list documented routines found in source trees
"""

__all__ = ["gbmetrics"]
