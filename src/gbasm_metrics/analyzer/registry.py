"""
Macro and Routine Registries
============================

Keyed stores populated by the DocumentScanner and consulted by the parser,
the metrics engine and workspace queries.

Both registries are case-insensitive: names are stored uppercased, and
registering a name again replaces the earlier definition (later
definitions in document order win).

Lifetime
--------
- MacroRegistry: rebuilt wholesale on every DocumentScanner.parse_document()
- RoutineRegistry: accumulates across the files of a workspace scan and is
  only emptied by DocumentScanner.clear_all()
"""

from dataclasses import dataclass, field
from typing import Generic, Iterator, Optional, TypeVar
import logging

from gbasm_metrics.analyzer.parser import ParsedLine

logger = logging.getLogger(__name__)


# =============================================================================
# Definition Records
# =============================================================================

@dataclass
class MacroDefinition:
    """
    A MACRO ... ENDM block with its aggregated cost.

    Attributes:
        name: Macro name, uppercased
        start_line: Line index (0-based) of the MACRO header
        end_line: Line index of the ENDM
        size: Total bytes of the body
        cycles: (cycles,) when taken and not-taken totals agree,
            otherwise (max, min)
        instructions: The body lines as parsed at ENDM time
    """
    name: str
    start_line: int
    end_line: int
    size: int
    cycles: tuple[int, ...]
    instructions: list[ParsedLine] = field(default_factory=list)

    @property
    def max_cycles(self) -> int:
        return self.cycles[0]

    @property
    def min_cycles(self) -> int:
        return self.cycles[-1]


@dataclass(frozen=True)
class RoutineArgument:
    """A documented register input: register is lowercase ("hl")."""
    register: str
    description: str


@dataclass
class RoutineDefinition:
    """
    A label preceded by documentation comments.

    Attributes:
        name: Label name as written
        file_path: Source file the label was found in (None for unsaved text)
        line_number: Line index (0-based) of the label
        arguments: Register inputs in comment order
        description: First free-text comment line, if any
    """
    name: str
    file_path: Optional[str]
    line_number: int
    arguments: list[RoutineArgument] = field(default_factory=list)
    description: Optional[str] = None

    @property
    def is_documented(self) -> bool:
        return bool(self.arguments) or bool(self.description)


# =============================================================================
# Registries
# =============================================================================

T = TypeVar("T", MacroDefinition, RoutineDefinition)


class _Registry(Generic[T]):
    """Case-insensitive name -> definition store."""

    kind = "definition"

    def __init__(self):
        self._items: dict[str, T] = {}

    def register(self, definition: T) -> None:
        key = definition.name.upper()
        if key in self._items:
            logger.debug(f"Redefining {self.kind} {definition.name}")
        self._items[key] = definition

    def get(self, name: str) -> Optional[T]:
        return self._items.get(name.upper())

    def all(self) -> list[T]:
        """All definitions in registration order."""
        return list(self._items.values())

    def clear(self) -> None:
        self._items.clear()

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name.upper() in self._items

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[T]:
        return iter(list(self._items.values()))


class MacroRegistry(_Registry[MacroDefinition]):
    """Macros of the current document and its includes."""
    kind = "macro"


class RoutineRegistry(_Registry[RoutineDefinition]):
    """Documented routines; shared across files in a workspace scan."""
    kind = "routine"
