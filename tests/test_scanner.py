# =============================================================================
# test_scanner.py - Document Scanner Tests
# =============================================================================
# Tests for the single-pass document scanner and its registries.
#
# Test coverage includes:
#   - MACRO/ENDM blocks in both header styles
#   - Macro cost aggregation (plain, conditional, nested, data)
#   - INCLUDE resolution (same directory, inc/ subdirectory, cycles)
#   - Routine documentation comments and argument extraction
#   - Registry semantics (case-insensitive, redefinition, lifetime)
# =============================================================================

from pathlib import Path

import pytest

from gbasm_metrics.analyzer import (
    DocumentScanner,
    MacroDefinition,
    MacroRegistry,
    RoutineArgument,
    RoutineDefinition,
    RoutineRegistry,
    parse_argument_comments,
)


# =============================================================================
# Helper Functions
# =============================================================================

def scan(source: str, **kwargs) -> DocumentScanner:
    """Scan a dedented source string and return the scanner."""
    scanner = DocumentScanner()
    scanner.parse_document(source.strip("\n").splitlines(), **kwargs)
    return scanner


def write(path: Path, source: str) -> Path:
    """Write a source file, creating parent directories."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(source.strip("\n") + "\n", encoding="utf-8")
    return path


# =============================================================================
# Macro Blocks
# =============================================================================

class TestMacros:
    """Test macro definition scanning and cost aggregation."""

    def test_label_style_header(self):
        """'Name: MACRO' opens a block closed by ENDM."""
        scanner = scan("""
wait_two: MACRO
    nop
    nop
ENDM
""")
        macro = scanner.macros.get("wait_two")
        assert macro is not None
        assert macro.name == "WAIT_TWO"
        assert macro.size == 2
        assert macro.cycles == (8,)
        assert macro.start_line == 0
        assert macro.end_line == 3
        assert len(macro.instructions) == 2

    def test_keyword_style_header(self):
        """'MACRO Name' is the modern RGBDS header."""
        scanner = scan("""
    MACRO copy_byte
    ld a, [hl+]
    ld [de], a
    inc de
    ENDM
""")
        macro = scanner.macros.get("COPY_BYTE")
        assert macro.size == 3
        assert macro.cycles == (24,)

    def test_conditional_macro(self):
        """A conditional branch gives separate max and min totals."""
        scanner = scan("""
MACRO wait_ly
.wait
    ldh a, [rLY]
    cp 144
    jr nz, .wait
ENDM
""")
        macro = scanner.macros.get("WAIT_LY")
        assert macro.size == 2 + 2 + 2
        assert macro.cycles == (12 + 8 + 12, 12 + 8 + 8)
        assert macro.max_cycles == 32
        assert macro.min_cycles == 28

    def test_nested_macro(self):
        """A body calling an earlier macro adds that macro's cost."""
        scanner = scan("""
MACRO two_nops
    nop
    nop
ENDM
MACRO four_nops
    two_nops
    two_nops
ENDM
""")
        macro = scanner.macros.get("FOUR_NOPS")
        assert macro.size == 4
        assert macro.cycles == (16,)

    def test_data_in_macro(self):
        """Data directives in a body count bytes but no cycles."""
        scanner = scan("""
MACRO header
    db "GB", 0
    dw 1234
    nop
ENDM
""")
        macro = scanner.macros.get("HEADER")
        assert macro.size == 3 + 2 + 1
        assert macro.cycles == (4,)

    def test_unknown_lines_add_nothing(self):
        """Unknown instructions and undefined macros are ignored."""
        scanner = scan("""
MACRO odd
    frobnicate a
    not_a_macro
    nop
ENDM
""")
        macro = scanner.macros.get("ODD")
        assert macro.size == 1
        assert macro.cycles == (4,)

    def test_unterminated_macro_not_registered(self):
        """A block without ENDM never reaches the registry."""
        scanner = scan("""
MACRO broken
    nop
""")
        assert "BROKEN" not in scanner.macros

    def test_redefinition_later_wins(self):
        """A later definition of the same name replaces the earlier one."""
        scanner = scan("""
MACRO thing
    nop
ENDM
MACRO thing
    nop
    nop
ENDM
""")
        assert scanner.macros.get("thing").size == 2
        assert len(scanner.macros) == 1

    def test_parse_document_rebuilds_macros(self):
        """Each parse_document() starts from an empty macro registry."""
        scanner = scan("MACRO first\n    nop\nENDM")
        scanner.parse_document(["MACRO second", "    nop", "ENDM"])
        assert "FIRST" not in scanner.macros
        assert "SECOND" in scanner.macros

    def test_parse_line_sees_macros(self):
        """The scanner's parser classifies calls to scanned macros."""
        scanner = scan("MACRO pause\n    halt\nENDM")
        assert scanner.parse_line("    pause", 10).is_macro_call


# =============================================================================
# INCLUDE Handling
# =============================================================================

class TestIncludes:
    """Test INCLUDE resolution against the filesystem."""

    def test_include_same_directory(self, tmp_path):
        """Macros from an included file are registered."""
        write(tmp_path / "macros.inc", "MACRO twice\n    nop\n    nop\nENDM")
        main = write(tmp_path / "main.asm", 'INCLUDE "macros.inc"\n    twice')
        scanner = DocumentScanner()
        scanner.parse_document(main.read_text().splitlines(), base_dir=tmp_path, file_path=main)
        assert scanner.macros.get("TWICE").size == 2

    def test_include_subdirectory(self, tmp_path):
        """Targets are also searched in inc/, include/ and src/."""
        write(tmp_path / "inc" / "hw.inc", "MACRO from_inc\n    nop\nENDM")
        write(tmp_path / "include" / "a.inc", "MACRO from_include\n    nop\nENDM")
        write(tmp_path / "src" / "b.inc", "MACRO from_src\n    nop\nENDM")
        lines = ['INCLUDE "hw.inc"', "include 'a.inc'", "INCLUDE b.inc"]
        scanner = DocumentScanner()
        scanner.parse_document(lines, base_dir=tmp_path)
        assert {"FROM_INC", "FROM_INCLUDE", "FROM_SRC"} <= {m.name for m in scanner.macros}

    def test_missing_include_skipped(self, tmp_path):
        """A missing target is skipped without error."""
        scanner = DocumentScanner()
        scanner.parse_document(['INCLUDE "nowhere.inc"', "MACRO ok", "nop", "ENDM"], base_dir=tmp_path)
        assert "OK" in scanner.macros

    def test_includes_ignored_without_base_dir(self, tmp_path):
        """Without a base directory INCLUDE lines are not followed."""
        write(tmp_path / "macros.inc", "MACRO twice\n    nop\n    nop\nENDM")
        scanner = DocumentScanner()
        scanner.parse_document(['INCLUDE "macros.inc"'])
        assert len(scanner.macros) == 0

    def test_include_cycle_terminates(self, tmp_path):
        """Mutually including files are each scanned once."""
        write(tmp_path / "a.inc", 'INCLUDE "b.inc"\nMACRO from_a\n    nop\nENDM')
        write(tmp_path / "b.inc", 'INCLUDE "a.inc"\nMACRO from_b\n    nop\nENDM')
        scanner = DocumentScanner()
        scanner.parse_document(['INCLUDE "a.inc"'], base_dir=tmp_path)
        assert "FROM_A" in scanner.macros
        assert "FROM_B" in scanner.macros

    def test_self_include(self, tmp_path):
        """A document including itself is not rescanned."""
        main = write(tmp_path / "main.asm", 'INCLUDE "main.asm"\nMACRO once\n    nop\nENDM')
        scanner = DocumentScanner()
        scanner.parse_document(main.read_text().splitlines(), base_dir=tmp_path, file_path=main)
        assert "ONCE" in scanner.macros

    def test_nested_include_resolves_from_its_own_directory(self, tmp_path):
        """An included file resolves its own INCLUDEs relative to itself."""
        write(tmp_path / "lib" / "outer.inc", 'INCLUDE "inner.inc"')
        write(tmp_path / "lib" / "inner.inc", "MACRO deep\n    nop\nENDM")
        scanner = DocumentScanner()
        scanner.parse_document(['INCLUDE "lib/outer.inc"'], base_dir=tmp_path)
        assert "DEEP" in scanner.macros

    def test_routines_from_include_keep_their_file(self, tmp_path):
        """Routines found in an included file record that file."""
        inc = write(tmp_path / "util.inc", "; Clears the screen\nClearScreen::\n    ret")
        scanner = DocumentScanner()
        scanner.parse_document(['INCLUDE "util.inc"'], base_dir=tmp_path)
        routine = scanner.routines.get("ClearScreen")
        assert Path(routine.file_path) == inc
        assert routine.line_number == 1


# =============================================================================
# Routine Documentation
# =============================================================================

class TestRoutines:
    """Test routine documentation scanning."""

    def test_documented_routine(self):
        """Comments directly above a global label document it."""
        scanner = scan("""
; Copies BC bytes from HL to DE
; Inputs: hl = source, de = destination, bc = count
CopyBytes::
    ret
""", file_path="home.asm")
        routine = scanner.routines.get("copybytes")
        assert routine.name == "CopyBytes"
        assert routine.file_path == "home.asm"
        assert routine.line_number == 2
        assert routine.description == "Copies BC bytes from HL to DE"
        assert routine.arguments == [
            RoutineArgument("hl", "source"),
            RoutineArgument("de", "destination"),
            RoutineArgument("bc", "count"),
        ]
        assert routine.is_documented

    def test_undocumented_label_ignored(self):
        """A label without comments is not registered."""
        scanner = scan("Main:\n    nop")
        assert "MAIN" not in scanner.routines

    def test_code_between_comment_and_label(self):
        """Code between the comments and the label breaks the association."""
        scanner = scan("; Orphan comment\n    nop\nLater:")
        assert "LATER" not in scanner.routines

    def test_local_labels_not_routines(self):
        """Local labels are never documented routines."""
        scanner = scan("; Loop body\n.loop:\n    nop")
        assert len(scanner.routines) == 0

    def test_routines_accumulate_across_documents(self):
        """parse_document() keeps routines from earlier documents."""
        scanner = scan("; First\nFirst::", file_path="a.asm")
        scanner.parse_document(["; Second", "Second::"], file_path="b.asm")
        assert "FIRST" in scanner.routines
        assert "SECOND" in scanner.routines

    def test_clear_all(self):
        """clear_all() empties both registries."""
        scanner = scan("; Doc\nRoutine::\nMACRO m\n    nop\nENDM")
        scanner.clear_all()
        assert len(scanner.routines) == 0
        assert len(scanner.macros) == 0


class TestArgumentComments:
    """Test extraction of register arguments from comments."""

    def test_register_lines(self):
        """One register per line in 'reg: description' form."""
        arguments, description = parse_argument_comments([
            "Draws a sprite",
            "hl: sprite data",
            "register a - tile index",
            "de = destination",
        ])
        assert description == "Draws a sprite"
        assert [a.register for a in arguments] == ["hl", "a", "de"]
        assert arguments[1].description == "tile index"

    def test_param_lines(self):
        """'@param reg description' lines are recognized."""
        arguments, _ = parse_argument_comments(["@param bc byte count"])
        assert arguments == [RoutineArgument("bc", "byte count")]

    def test_invalid_register_ignored(self):
        """Pieces naming a non-register are dropped."""
        arguments, _ = parse_argument_comments(["Inputs: hl = ptr, xy = bogus"])
        assert arguments == [RoutineArgument("hl", "ptr")]

    def test_separator_not_description(self):
        """Separator lines never become the description."""
        arguments, description = parse_argument_comments(["-----", "", "Real text"])
        assert arguments == []
        assert description == "Real text"

    def test_inputs_line_without_arguments(self):
        """An empty inputs line is consumed, not used as description."""
        arguments, description = parse_argument_comments(["Inputs: none", "Does nothing"])
        assert arguments == []
        assert description == "Does nothing"

    def test_first_description_wins(self):
        """Only the first free-text line is the description."""
        _, description = parse_argument_comments(["First line", "Second line"])
        assert description == "First line"


# =============================================================================
# Registries
# =============================================================================

class TestRegistries:
    """Test registry behavior directly."""

    def test_case_insensitive(self):
        """Lookups ignore case."""
        registry = MacroRegistry()
        registry.register(MacroDefinition("WAIT", 0, 2, 1, (4,)))
        assert registry.get("wait") is registry.get("Wait")
        assert "wait" in registry
        assert 42 not in registry

    def test_iteration_in_registration_order(self):
        """all() and iteration keep registration order."""
        registry = RoutineRegistry()
        for name in ("B", "A", "C"):
            registry.register(RoutineDefinition(name, None, 0, description="x"))
        assert [r.name for r in registry] == ["B", "A", "C"]
        assert [r.name for r in registry.all()] == ["B", "A", "C"]

    def test_macro_cycle_accessors(self):
        """max/min cycles read the taken and not-taken totals."""
        macro = MacroDefinition("M", 0, 3, 4, (20, 16))
        assert (macro.max_cycles, macro.min_cycles) == (20, 16)
        flat = MacroDefinition("N", 0, 3, 4, (8,))
        assert (flat.max_cycles, flat.min_cycles) == (8, 8)

    def test_undocumented_definition(self):
        """A routine with neither arguments nor description is undocumented."""
        assert not RoutineDefinition("X", None, 0).is_documented


@pytest.mark.parametrize("header", ["Name: MACRO", "name:MACRO", "MACRO name", "macro Name"])
def test_macro_header_spellings(header):
    """Both header styles are recognized in any case."""
    scanner = scan(f"{header}\n    nop\nendm")
    assert "NAME" in scanner.macros
