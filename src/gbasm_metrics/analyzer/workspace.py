"""
Workspace Scan
==============

Builds a workspace-wide routine registry so that call targets can be
documented even when the routine lives in another file.

    workspace = Workspace()
    workspace.scan(["src", "engine"])
    for routine in workspace.documentation_for_line("    call CopyBytes", 0):
        print(routine.name, routine.arguments)

Every `.asm`, `.s` and `.inc` file (any case) below the roots is scanned
with its own directory as the INCLUDE base. Build output and tooling
directories are skipped.
"""

from pathlib import Path
from typing import Iterable, Iterator, Optional, Union
import logging
import os
import re

from gbasm_metrics.cpu import CALL_INSTRUCTIONS, OpcodeTable
from gbasm_metrics.analyzer.parser import ParsedLine
from gbasm_metrics.analyzer.registry import RoutineDefinition, RoutineRegistry
from gbasm_metrics.analyzer.scanner import DocumentScanner

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

SOURCE_EXTENSIONS: frozenset[str] = frozenset({".asm", ".s", ".inc"})

SKIPPED_DIRECTORIES: frozenset[str] = frozenset({
    "node_modules", ".git", "build", "dist", "obj", "bin",
})

_MEMORY_REFERENCE = re.compile(r"\[([a-zA-Z_]\w*)")


def is_source_file(path: PathLike) -> bool:
    """True if the path has a scanned assembly extension."""
    return Path(path).suffix.lower() in SOURCE_EXTENSIONS


def iter_source_files(root: PathLike) -> Iterator[Path]:
    """
    Yield assembly source files below root in sorted, depth-first order.

    Skipped directories are not entered. Unreadable directories are
    logged and skipped. A root that is itself a source file is yielded.
    """
    root = Path(root)
    if root.is_file():
        if is_source_file(root):
            yield root
        return

    def on_error(error: OSError) -> None:
        logger.debug(f"Cannot read directory {error.filename}: {error}")

    for directory, subdirs, files in os.walk(root, onerror=on_error):
        subdirs[:] = sorted(d for d in subdirs if d not in SKIPPED_DIRECTORIES)
        for name in sorted(files):
            if is_source_file(name):
                yield Path(directory) / name


class Workspace:
    """
    Routine documentation across a set of source trees.

    The workspace owns one DocumentScanner. Its routine registry
    accumulates over every file of a scan; the macro registry only ever
    reflects the file scanned last.
    """

    def __init__(self, opcode_table: Optional[OpcodeTable] = None):
        self.scanner = DocumentScanner(opcode_table)

    @property
    def routines(self) -> RoutineRegistry:
        return self.scanner.routines

    def scan(self, roots: Iterable[PathLike]) -> int:
        """
        Rebuild the routine registry from every source file under roots.

        Returns:
            Number of files scanned
        """
        self.scanner.clear_all()
        count = 0

        for root in roots:
            for path in iter_source_files(root):
                try:
                    text = path.read_text(encoding="utf-8", errors="replace")
                except OSError as e:
                    logger.debug(f"Skipping {path}: {e}")
                    continue
                self.scanner.parse_document(
                    text.splitlines(), base_dir=path.parent, file_path=str(path),
                )
                count += 1

        logger.info(f"Scanned {count} files, {len(self.routines)} documented routines")
        return count

    def find_routine(self, name: str) -> Optional[RoutineDefinition]:
        return self.routines.get(name)

    @staticmethod
    def call_target(parsed: ParsedLine) -> Optional[str]:
        """
        The routine a line transfers control to, if any.

        CALL/JP/JR/RST name their target in the last operand; predef-style
        calls in the first.
        """
        if not parsed.operands:
            return None
        if parsed.is_predef_call:
            return parsed.operands[0]
        if parsed.is_instruction and parsed.instruction in CALL_INSTRUCTIONS:
            return parsed.operands[-1]
        return None

    def documentation_for_line(self, text: str, line_number: int = 0) -> list[RoutineDefinition]:
        """
        Documented routines referenced by a line.

        The call target comes first, then each `[label` memory reference in
        the operands. Each routine appears once.
        """
        parsed = self.scanner.parse_line(text, line_number)
        names: list[str] = []

        target = self.call_target(parsed)
        if target:
            names.append(target)
        for operand in parsed.operands:
            names.extend(_MEMORY_REFERENCE.findall(operand))

        found: list[RoutineDefinition] = []
        for name in names:
            routine = self.find_routine(name)
            if routine is not None and routine not in found:
                found.append(routine)
        return found
