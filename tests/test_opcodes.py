# =============================================================================
# test_opcodes.py - SM83 Opcode Table Tests
# =============================================================================
# Tests for the Game Boy instruction set tables and lookup.
#
# Test coverage includes:
#   - Table completeness: 244 unprefixed opcodes, 256 CB-prefixed opcodes
#   - Round trip: every entry is found from its canonical operands
#   - Operand normalization (immediates, memory forms, RGBDS functions)
#   - Wildcard fallback for labels and symbolic constants
#   - CB-prefixed lookup including the bit-index retry
#   - Aliases (LDH [C], RST vectors, SP+n)
# =============================================================================

import pytest

from gbasm_metrics.cpu import (
    CB_PREFIXED_OPCODES,
    UNPREFIXED_OPCODES,
    MNEMONICS,
    FlagEffect,
    build_opcode_table,
    default_opcode_table,
    is_cb_prefixed,
    normalize_operand,
    opcode_hex,
    parse_int_literal,
    table_key,
)


@pytest.fixture(scope="module")
def table():
    return build_opcode_table()


# =============================================================================
# Table Completeness
# =============================================================================

class TestTableContents:
    """Test the shape of the generated tables."""

    def test_unprefixed_count(self):
        """All documented single-byte opcodes are present."""
        assert len(UNPREFIXED_OPCODES) == 244

    def test_unused_slots_absent(self):
        """The unused opcode slots and the CB prefix have no entry."""
        opcodes = {entry.opcode for entry in UNPREFIXED_OPCODES}
        for unused in (0xD3, 0xDB, 0xDD, 0xE3, 0xE4, 0xEB, 0xEC, 0xED, 0xF4, 0xFC, 0xFD, 0xCB):
            assert unused not in opcodes

    def test_unprefixed_opcodes_unique(self):
        """No opcode value appears twice."""
        opcodes = [entry.opcode for entry in UNPREFIXED_OPCODES]
        assert len(opcodes) == len(set(opcodes))

    def test_cb_table_complete(self):
        """The CB-prefixed table covers every byte value."""
        assert sorted(entry.opcode for entry in CB_PREFIXED_OPCODES) == list(range(256))
        assert all(entry.size == 2 for entry in CB_PREFIXED_OPCODES)
        assert all(entry.cb_prefixed for entry in CB_PREFIXED_OPCODES)

    def test_table_length_includes_both_tables(self, table):
        """The combined table holds more than 500 keys."""
        assert len(table) > 500

    def test_entries_skip_aliases(self, table):
        """entries() yields each instruction once."""
        assert len(list(table.entries())) == 244 + 256

    def test_halt_replaces_ld_hl_hl(self):
        """Opcode $76 is HALT, not LD [HL],[HL]."""
        halt = next(entry for entry in UNPREFIXED_OPCODES if entry.opcode == 0x76)
        assert halt.mnemonic == "HALT"
        assert halt.operands == ()

    def test_default_table_is_shared(self):
        """default_opcode_table() returns one instance."""
        assert default_opcode_table() is default_opcode_table()

    def test_build_returns_fresh_table(self):
        """build_opcode_table() builds a new table each call."""
        assert build_opcode_table() is not build_opcode_table()


# =============================================================================
# Round Trip
# =============================================================================

class TestRoundTrip:
    """Every entry must be reachable from its own canonical operands."""

    @pytest.mark.parametrize("entry", UNPREFIXED_OPCODES, ids=lambda e: e.hex)
    def test_unprefixed_round_trip(self, table, entry):
        """Lookup by mnemonic and canonical operands returns the entry."""
        found = table.lookup(entry.mnemonic, entry.operands)
        assert found is not None
        assert (found.size, found.cycles, found.flags) == (entry.size, entry.cycles, entry.flags)
        assert found.opcode == entry.opcode

    def test_cb_round_trip(self, table):
        """Every CB-prefixed entry is found with matching metrics."""
        for entry in CB_PREFIXED_OPCODES:
            found = table.lookup(entry.mnemonic, entry.operands)
            assert found is not None, entry
            assert (found.size, found.cycles, found.flags) == (entry.size, entry.cycles, entry.flags)


# =============================================================================
# Concrete Instructions
# =============================================================================

class TestLookup:
    """Test lookup of instructions as they appear in source."""

    def test_nop(self, table):
        """NOP is one byte, four cycles."""
        entry = table.lookup("nop", [])
        assert entry.size == 1
        assert entry.cycles == (4,)
        assert entry.hex == "00"

    def test_conditional_relative_jump(self, table):
        """JR NZ with a label lists taken then not-taken cycles."""
        entry = table.lookup("jr", ["nz", "label"])
        assert entry.opcode == 0x20
        assert entry.size == 2
        assert entry.cycles == (12, 8)
        assert entry.is_conditional
        assert entry.max_cycles == 12
        assert entry.min_cycles == 8

    def test_jr_local_label(self, table):
        """A local label after JR resolves to the relative form."""
        assert table.lookup("JR", [".loop"]).opcode == 0x18

    @pytest.mark.parametrize("operands,opcode", [
        (["a", "5"], 0x3E),
        (["a", "$FF"], 0x3E),
        (["a", "%1010"], 0x3E),
        (["a", "BANK(Foo)"], 0x3E),
        (["a", "HIGH(wBuffer)"], 0x3E),
        (["a", "SOME_CONSTANT"], 0x3E),
        (["hl", "wBuffer"], 0x21),
        (["hl", "$C000"], 0x21),
        (["bc", "1000"], 0x01),
        (["a", "[hl+]"], 0x2A),
        (["a", "[hli]"], 0x2A),
        (["a", "(hl+)"], 0x2A),
        (["[hl-]", "a"], 0x32),
        (["(hld)", "a"], 0x32),
        (["a", "[wCounter]"], 0xFA),
        (["[wCounter]", "a"], 0xEA),
        (["a", "[$FF44]"], 0xFA),
        (["[hl]", "5"], 0x36),
        (["[hl]", "b"], 0x70),
        (["a", "[bc]"], 0x0A),
        (["[c]", "a"], 0xE2),
        (["a", "[$FF00+c]"], 0xF2),
        (["[wStack]", "sp"], 0x08),
        (["sp", "hl"], 0xF9),
    ])
    def test_ld_forms(self, table, operands, opcode):
        """LD resolves across operand spellings."""
        entry = table.lookup("ld", operands)
        assert entry is not None
        assert entry.opcode == opcode

    def test_ldh_to_high_ram(self, table):
        """LDH with a hardware register name is the 2-byte $E0 form."""
        entry = table.lookup("ldh", ["[rLCDC]", "a"])
        assert entry.opcode == 0xE0
        assert entry.size == 2
        assert entry.cycles == (12,)

    def test_ldh_from_high_ram(self, table):
        """LDH A,[$FF44] is $F0."""
        assert table.lookup("ldh", ["a", "[$FF44]"]).opcode == 0xF0

    def test_call_and_jp(self, table):
        """CALL and JP with labels use the absolute forms."""
        assert table.lookup("call", ["Routine"]).opcode == 0xCD
        assert table.lookup("call", ["nz", "Routine"]).cycles == (24, 12)
        assert table.lookup("jp", ["Main"]).opcode == 0xC3
        assert table.lookup("jp", ["z", ".done"]).opcode == 0xCA

    def test_jp_hl(self, table):
        """JP HL and the bracketed spelling are both $E9."""
        assert table.lookup("jp", ["hl"]).opcode == 0xE9
        assert table.lookup("jp", ["[hl]"]).opcode == 0xE9

    def test_conditional_return(self, table):
        """RET C uses the carry condition, not register C."""
        entry = table.lookup("ret", ["c"])
        assert entry.opcode == 0xD8
        assert entry.cycles == (20, 8)

    def test_alu_immediate_and_register(self, table):
        """Single-operand ALU forms take registers and immediates."""
        assert table.lookup("sub", ["b"]).opcode == 0x90
        assert table.lookup("cp", ["$90"]).opcode == 0xFE
        assert table.lookup("and", ["[hl]"]).opcode == 0xA6
        assert table.lookup("xor", ["a"]).opcode == 0xAF

    def test_add_sp_offset(self, table):
        """ADD SP with a signed offset is $E8."""
        entry = table.lookup("add", ["sp", "-2"])
        assert entry.opcode == 0xE8
        assert entry.cycles == (16,)

    def test_sp_plus_offset(self, table):
        """LD HL,SP+n resolves to $F8."""
        assert table.lookup("ld", ["hl", "sp+4"]).opcode == 0xF8
        assert table.lookup("ld", ["hl", "sp - 2"]).opcode == 0xF8

    def test_ldh_c_alias(self, table):
        """LDH [C],A is an alias of LD [C],A."""
        assert table.lookup("ldh", ["[c]", "a"]).hex == "E2"
        assert table.lookup("ldh", ["a", "[c]"]).hex == "F2"

    @pytest.mark.parametrize("vector,opcode", [
        ("$38", 0xFF),
        ("38h", 0xFF),
        ("56", 0xFF),
        ("0x38", 0xFF),
        ("$00", 0xC7),
        ("$08", 0xCF),
        ("$20", 0xE7),
    ])
    def test_rst_vectors(self, table, vector, opcode):
        """RST vectors resolve in any numeric notation."""
        assert table.lookup("rst", [vector]).opcode == opcode

    def test_unknown_instruction(self, table):
        """Unknown mnemonics return None instead of raising."""
        assert table.lookup("mov", ["a", "b"]) is None

    def test_unknown_operand_combination(self, table):
        """A known mnemonic with impossible operands returns None."""
        assert table.lookup("push", ["a"]) is None

    def test_three_operands(self, table):
        """Three operands never match."""
        assert table.lookup("ld", ["a", "b", "c"]) is None

    def test_lookup_is_pure(self, table):
        """Repeated lookups return the same entry."""
        first = table.lookup("ld", ["a", "[hl]"])
        assert table.lookup("ld", ["a", "[hl]"]) is first


# =============================================================================
# CB-Prefixed Instructions
# =============================================================================

class TestCBPrefixed:
    """Test the CB-prefixed extension set."""

    def test_bit_hl(self, table):
        """BIT 3,[HL] is 2 bytes, 12 cycles, flags Z01-."""
        entry = table.lookup("bit", ["3", "[hl]"])
        assert entry.size == 2
        assert entry.cycles == (12,)
        assert entry.flags == FlagEffect("Z", "0", "1", "-")
        assert entry.hex == "CB 5E"

    @pytest.mark.parametrize("mnemonic", ["BIT", "SET", "RES"])
    @pytest.mark.parametrize("bit", range(8))
    @pytest.mark.parametrize("register", ["b", "c", "d", "e", "h", "l", "[hl]", "a"])
    def test_bit_operations_resolve(self, table, mnemonic, bit, register):
        """Every bit index and register form resolves."""
        entry = table.lookup(mnemonic, [str(bit), register])
        assert entry is not None
        assert entry.cb_prefixed
        assert entry.size == 2

    def test_literal_bit_selects_exact_opcode(self, table):
        """A literal bit index picks the opcode of that bit."""
        assert table.lookup("set", ["7", "a"]).hex == "CB FF"
        assert table.lookup("res", ["0", "b"]).hex == "CB 80"
        assert table.lookup("bit", ["%101", "c"]).hex == "CB 69"

    def test_symbolic_bit_uses_sweep(self, table):
        """A symbolic bit name still yields the right cost."""
        entry = table.lookup("res", ["BIT_DIRTY", "[hl]"])
        assert entry is not None
        assert entry.cycles == (16,)

    def test_shift_operations(self, table):
        """Shift/rotate/swap take one register operand."""
        assert table.lookup("swap", ["a"]).hex == "CB 37"
        assert table.lookup("srl", ["[hl]"]).cycles == (16,)
        assert table.lookup("rlc", ["b"]).flags == FlagEffect("Z", "0", "0", "C")
        assert table.lookup("swap", ["b"]).flags == FlagEffect("Z", "0", "0", "0")

    def test_is_cb_prefixed(self):
        """CB routing is decided by mnemonic."""
        assert is_cb_prefixed("bit")
        assert is_cb_prefixed("SWAP")
        assert not is_cb_prefixed("RLA")
        assert not is_cb_prefixed("LD")

    def test_opcode_hex(self, table):
        """Hex rendering adds the CB prefix only for CB entries."""
        assert opcode_hex(table.lookup("ld", ["a", "5"])) == "3E"
        assert opcode_hex(table.lookup("rl", ["c"])) == "CB 11"


# =============================================================================
# Operand Normalization
# =============================================================================

class TestNormalizeOperand:
    """Test the operand signature heuristics."""

    @pytest.mark.parametrize("operand,expected", [
        ("a", "A"),
        ("hl", "HL"),
        ("nz", "NZ"),
        ("5", "D8"),
        ("255", "D8"),
        ("$FF", "D8"),
        ("$C000", "D16"),
        ("wBuffer", "D16"),
        ("BANK(Foo)", "D8"),
        ("low(x)", "D8"),
        ("[hl]", "[HL]"),
        ("[HLI]", "[HL+]"),
        ("(hl-)", "[HL-]"),
        ("[$FF40]", "[A8]"),
        ("[$C000]", "[A16]"),
        ("[wFoo]", "[A16]"),
        ("sp+5", "SP+R8"),
        (".loop", "R8"),
    ])
    def test_normalization(self, operand, expected):
        """Operands map to canonical signature tokens."""
        assert normalize_operand(operand) == expected


# =============================================================================
# Literals and Keys
# =============================================================================

class TestLiteralsAndKeys:
    """Test numeric literal parsing and key construction."""

    @pytest.mark.parametrize("text,value", [
        ("$38", 0x38),
        ("0x38", 0x38),
        ("38h", 0x38),
        ("%0111", 7),
        ("&17", 15),
        ("42", 42),
        (" 7 ", 7),
        ("BIT_FOO", None),
        ("1 + 2", None),
        ("$", None),
    ])
    def test_parse_int_literal(self, text, value):
        """Complete literals parse; symbols and expressions do not."""
        assert parse_int_literal(text) == value

    def test_table_key(self):
        """Keys are uppercase with comma-joined canonical operands."""
        assert table_key("ld", ["a", "(hl+)"]) == "LD A,[HL+]"
        assert table_key("nop", []) == "NOP"

    def test_entry_key_matches_table(self, table):
        """Each entry is stored under its own key."""
        entry = table.get("BIT 3,[HL]", cb_prefixed=True)
        assert entry.key == "BIT 3,[HL]"
        assert table.get("LD A,D8").opcode == 0x3E

    def test_mnemonics(self):
        """The mnemonic set covers both tables and nothing else."""
        assert {"LD", "LDH", "HALT", "SWAP", "BIT", "RST"} <= MNEMONICS
        assert "MOV" not in MNEMONICS
        assert "DB" not in MNEMONICS
