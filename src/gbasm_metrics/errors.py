"""
gbasm-metrics Error Hierarchy
=============================

This module defines the exception hierarchy for the metrics toolkit.
All exceptions inherit from MetricsError, allowing callers to catch all
toolkit errors with a single except clause if desired.

Exception Hierarchy
-------------------
MetricsError (base)
├── ConfigError - invalid configuration value supplied by the host
└── SourceError - a top-level source file cannot be read

Design Philosophy
-----------------
The analysis engine itself never raises for problems in the assembly
source. Unknown instructions, malformed comments, unreadable INCLUDE
targets and bad numeric literals all degrade to "no metrics" for the
affected line. The exceptions below are reserved for the boundaries:
configuration handed in by a host, and files a host explicitly asks
to analyze.

Error messages follow this format:
    filename:line:column: error: description
    hint: suggestion for fixing (when available)
"""

from dataclasses import dataclass
from typing import Optional


# =============================================================================
# Base Exception Class
# =============================================================================

class MetricsError(Exception):
    """
    Base exception for all gbasm-metrics errors.

        try:
            engine = MetricsEngine(MetricsConfig.from_mapping(settings))
        except MetricsError as e:
            print(f"Error: {e}")
    """
    pass


# =============================================================================
# Source Location Tracking
# =============================================================================

@dataclass(frozen=True)
class SourceLocation:
    """
    Represents a location in source code for error reporting.

    Attributes:
        filename: Name of the source file (or "<input>" for string input)
        line: Line number (1-indexed)
        column: Column number (1-indexed, 0 when unknown)
    """
    filename: str
    line: int
    column: int = 0

    def __str__(self) -> str:
        """Format as 'filename:line:column' (column omitted when unknown)."""
        if self.column:
            return f"{self.filename}:{self.line}:{self.column}"
        return f"{self.filename}:{self.line}"


# =============================================================================
# Concrete Exceptions
# =============================================================================

class ConfigError(MetricsError):
    """
    Invalid configuration value.

    Raised by MetricsConfig.from_mapping() when a recognized option has a
    value of the wrong type (e.g. predefBytes="lots").

    Attributes:
        option: The option name as supplied by the host
        value: The rejected value
    """

    def __init__(self, option: str, value: object, expected: str):
        self.option = option
        self.value = value
        self.expected = expected
        super().__init__(
            f"invalid value {value!r} for option '{option}' (expected {expected})"
        )


class SourceError(MetricsError):
    """
    A source file requested for analysis cannot be read.

    Only raised for files a caller names explicitly. Files reached through
    INCLUDE directives or workspace scans are skipped silently instead.

    Attributes:
        message: The error description
        location: Where the problem occurred (optional)
        hint: A suggestion for fixing the error (optional)
    """

    def __init__(
        self,
        message: str,
        location: Optional[SourceLocation] = None,
        hint: Optional[str] = None,
    ):
        self.message = message
        self.location = location
        self.hint = hint
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        parts = []
        if self.location:
            parts.append(f"{self.location}: error: {self.message}")
        else:
            parts.append(f"error: {self.message}")
        if self.hint:
            parts.append(f"hint: {self.hint}")
        return "\n".join(parts)
