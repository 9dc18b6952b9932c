"""
SM83 (Game Boy "GB Z80") Instruction Set Definition
===================================================

This module defines the complete instruction set of the Game Boy CPU with
opcode values, instruction sizes, cycle counts and flag effects, plus the
operand normalization used to look an instruction up from RGBDS source.

The SM83 runs at 4.194304 MHz. Cycle counts in this table are clock
cycles ("T-states"), so NOP costs 4 and the slowest instruction,
CALL cc,a16 when taken, costs 24.

Instruction Tables
------------------
There are two independent tables:

1. **Unprefixed**: single-opcode instructions $00-$FF. The 11 unused
   slots ($D3 $DB $DD $E3 $E4 $EB $EC $ED $F4 $FC $FD) have no entry, and
   the $CB prefix byte itself is not an instruction.

2. **CB-prefixed**: the bit/shift/rotate extension set. Every entry is
   two bytes ($CB followed by the opcode).

Operand Signatures
------------------
Table keys use canonical operand tokens:

| Token    | Meaning                                   | Example source      |
|----------|-------------------------------------------|---------------------|
| D8       | 8-bit immediate                           | ld a, 5             |
| D16      | 16-bit immediate                          | ld hl, wBuffer      |
| A16      | 16-bit absolute jump/call target          | call Routine        |
| R8       | signed 8-bit relative offset              | jr nz, .loop        |
| [A8]     | high RAM address ($FF00 + n)              | ldh [$FF40], a      |
| [A16]    | 16-bit memory address                     | ld a, [wCounter]    |
| [HL+]    | HL post-increment ([HLI], (HL+), ...)     | ld a, [hl+]         |
| SP+R8    | SP plus signed offset                     | ld hl, sp+4         |

Cycle Lists
-----------
Conditional branches carry two cycle values, (taken, not_taken). The
taken value is always listed first. Every other instruction carries one.

Lookup
------
Source operands are normalized heuristically: the engine never evaluates
expressions, so "is this 8 or 16 bits" is guessed from the syntax. When
the direct key misses, a fixed, ordered list of wildcard substitutions is
tried and the first hit wins.

Reference
---------
- Pan Docs CPU instruction set: https://gbdev.io/pandocs/CPU_Instruction_Set.html
- Opcode table: https://gbdev.io/gb-opcodes/optables/
"""

from dataclasses import dataclass
from functools import lru_cache
from typing import Iterable, Iterator, Optional, Sequence
import logging
import re

logger = logging.getLogger(__name__)


# =============================================================================
# Flag Effects
# =============================================================================

@dataclass(frozen=True)
class FlagEffect:
    """
    Effect of an instruction on the four CPU flags.

    Each field is one of:
        "-"  unchanged
        "0"  reset
        "1"  set
        the flag letter ("Z", "N", "H", "C")  affected by the result
    """
    z: str
    n: str
    h: str
    c: str

    @classmethod
    def parse(cls, text: str) -> "FlagEffect":
        """Build from a compact four-character form such as "Z0H-"."""
        z, n, h, c = text
        return cls(z, n, h, c)

    def __str__(self) -> str:
        return f"Z:{self.z} N:{self.n} H:{self.h} C:{self.c}"


# =============================================================================
# Opcode Entry
# =============================================================================

@dataclass(frozen=True)
class OpcodeEntry:
    """
    Information about a specific instruction encoding.

    Attributes:
        opcode: The opcode byte (0-255); for CB-prefixed entries the byte
            that follows $CB
        mnemonic: Uppercase instruction mnemonic
        size: Total instruction size in bytes (including prefix/operands)
        cycles: (cycles,) or (taken, not_taken) for conditional branches
        flags: Flag effects
        operands: Canonical operand signature tokens
        cb_prefixed: True for entries of the CB-prefixed table
    """
    opcode: int
    mnemonic: str
    size: int
    cycles: tuple[int, ...]
    flags: FlagEffect
    operands: tuple[str, ...]
    cb_prefixed: bool = False

    @property
    def hex(self) -> str:
        """Opcode rendered as "3E" or, for CB-prefixed entries, "CB 7E"."""
        return opcode_hex(self)

    @property
    def is_conditional(self) -> bool:
        return len(self.cycles) > 1

    @property
    def max_cycles(self) -> int:
        """Cycles when a conditional branch is taken."""
        return self.cycles[0]

    @property
    def min_cycles(self) -> int:
        """Cycles when a conditional branch is not taken."""
        return self.cycles[-1]

    @property
    def key(self) -> str:
        return table_key(self.mnemonic, self.operands)

    def __repr__(self) -> str:
        return (
            f"OpcodeEntry({self.hex}, {self.key!r}, size={self.size}, "
            f"cycles={list(self.cycles)})"
        )


# =============================================================================
# Unprefixed Opcode Table
# =============================================================================
# Columns: opcode, mnemonic, size, cycles, flags (ZNHC), operands
#
# $40-$BF (register loads and 8-bit ALU on registers) are regular enough to
# be generated; see _generate_register_block().
# =============================================================================

_EXPLICIT_UNPREFIXED: tuple[tuple, ...] = (
    # $00-$0F
    (0x00, "NOP", 1, (4,), "----", ()),
    (0x01, "LD", 3, (12,), "----", ("BC", "D16")),
    (0x02, "LD", 1, (8,), "----", ("[BC]", "A")),
    (0x03, "INC", 1, (8,), "----", ("BC",)),
    (0x04, "INC", 1, (4,), "Z0H-", ("B",)),
    (0x05, "DEC", 1, (4,), "Z1H-", ("B",)),
    (0x06, "LD", 2, (8,), "----", ("B", "D8")),
    (0x07, "RLCA", 1, (4,), "000C", ()),
    (0x08, "LD", 3, (20,), "----", ("[A16]", "SP")),
    (0x09, "ADD", 1, (8,), "-0HC", ("HL", "BC")),
    (0x0A, "LD", 1, (8,), "----", ("A", "[BC]")),
    (0x0B, "DEC", 1, (8,), "----", ("BC",)),
    (0x0C, "INC", 1, (4,), "Z0H-", ("C",)),
    (0x0D, "DEC", 1, (4,), "Z1H-", ("C",)),
    (0x0E, "LD", 2, (8,), "----", ("C", "D8")),
    (0x0F, "RRCA", 1, (4,), "000C", ()),

    # $10-$1F
    (0x10, "STOP", 2, (4,), "----", ()),
    (0x11, "LD", 3, (12,), "----", ("DE", "D16")),
    (0x12, "LD", 1, (8,), "----", ("[DE]", "A")),
    (0x13, "INC", 1, (8,), "----", ("DE",)),
    (0x14, "INC", 1, (4,), "Z0H-", ("D",)),
    (0x15, "DEC", 1, (4,), "Z1H-", ("D",)),
    (0x16, "LD", 2, (8,), "----", ("D", "D8")),
    (0x17, "RLA", 1, (4,), "000C", ()),
    (0x18, "JR", 2, (12,), "----", ("R8",)),
    (0x19, "ADD", 1, (8,), "-0HC", ("HL", "DE")),
    (0x1A, "LD", 1, (8,), "----", ("A", "[DE]")),
    (0x1B, "DEC", 1, (8,), "----", ("DE",)),
    (0x1C, "INC", 1, (4,), "Z0H-", ("E",)),
    (0x1D, "DEC", 1, (4,), "Z1H-", ("E",)),
    (0x1E, "LD", 2, (8,), "----", ("E", "D8")),
    (0x1F, "RRA", 1, (4,), "000C", ()),

    # $20-$2F
    (0x20, "JR", 2, (12, 8), "----", ("NZ", "R8")),
    (0x21, "LD", 3, (12,), "----", ("HL", "D16")),
    (0x22, "LD", 1, (8,), "----", ("[HL+]", "A")),
    (0x23, "INC", 1, (8,), "----", ("HL",)),
    (0x24, "INC", 1, (4,), "Z0H-", ("H",)),
    (0x25, "DEC", 1, (4,), "Z1H-", ("H",)),
    (0x26, "LD", 2, (8,), "----", ("H", "D8")),
    (0x27, "DAA", 1, (4,), "Z-0C", ()),
    (0x28, "JR", 2, (12, 8), "----", ("Z", "R8")),
    (0x29, "ADD", 1, (8,), "-0HC", ("HL", "HL")),
    (0x2A, "LD", 1, (8,), "----", ("A", "[HL+]")),
    (0x2B, "DEC", 1, (8,), "----", ("HL",)),
    (0x2C, "INC", 1, (4,), "Z0H-", ("L",)),
    (0x2D, "DEC", 1, (4,), "Z1H-", ("L",)),
    (0x2E, "LD", 2, (8,), "----", ("L", "D8")),
    (0x2F, "CPL", 1, (4,), "-11-", ()),

    # $30-$3F
    (0x30, "JR", 2, (12, 8), "----", ("NC", "R8")),
    (0x31, "LD", 3, (12,), "----", ("SP", "D16")),
    (0x32, "LD", 1, (8,), "----", ("[HL-]", "A")),
    (0x33, "INC", 1, (8,), "----", ("SP",)),
    (0x34, "INC", 1, (12,), "Z0H-", ("[HL]",)),
    (0x35, "DEC", 1, (12,), "Z1H-", ("[HL]",)),
    (0x36, "LD", 2, (12,), "----", ("[HL]", "D8")),
    (0x37, "SCF", 1, (4,), "-001", ()),
    (0x38, "JR", 2, (12, 8), "----", ("C", "R8")),
    (0x39, "ADD", 1, (8,), "-0HC", ("HL", "SP")),
    (0x3A, "LD", 1, (8,), "----", ("A", "[HL-]")),
    (0x3B, "DEC", 1, (8,), "----", ("SP",)),
    (0x3C, "INC", 1, (4,), "Z0H-", ("A",)),
    (0x3D, "DEC", 1, (4,), "Z1H-", ("A",)),
    (0x3E, "LD", 2, (8,), "----", ("A", "D8")),
    (0x3F, "CCF", 1, (4,), "-00C", ()),

    # $C0-$CF
    (0xC0, "RET", 1, (20, 8), "----", ("NZ",)),
    (0xC1, "POP", 1, (12,), "----", ("BC",)),
    (0xC2, "JP", 3, (16, 12), "----", ("NZ", "A16")),
    (0xC3, "JP", 3, (16,), "----", ("A16",)),
    (0xC4, "CALL", 3, (24, 12), "----", ("NZ", "A16")),
    (0xC5, "PUSH", 1, (16,), "----", ("BC",)),
    (0xC6, "ADD", 2, (8,), "Z0HC", ("A", "D8")),
    (0xC7, "RST", 1, (16,), "----", ("00H",)),
    (0xC8, "RET", 1, (20, 8), "----", ("Z",)),
    (0xC9, "RET", 1, (16,), "----", ()),
    (0xCA, "JP", 3, (16, 12), "----", ("Z", "A16")),
    (0xCC, "CALL", 3, (24, 12), "----", ("Z", "A16")),
    (0xCD, "CALL", 3, (24,), "----", ("A16",)),
    (0xCE, "ADC", 2, (8,), "Z0HC", ("A", "D8")),
    (0xCF, "RST", 1, (16,), "----", ("08H",)),

    # $D0-$DF
    (0xD0, "RET", 1, (20, 8), "----", ("NC",)),
    (0xD1, "POP", 1, (12,), "----", ("DE",)),
    (0xD2, "JP", 3, (16, 12), "----", ("NC", "A16")),
    (0xD4, "CALL", 3, (24, 12), "----", ("NC", "A16")),
    (0xD5, "PUSH", 1, (16,), "----", ("DE",)),
    (0xD6, "SUB", 2, (8,), "Z1HC", ("D8",)),
    (0xD7, "RST", 1, (16,), "----", ("10H",)),
    (0xD8, "RET", 1, (20, 8), "----", ("C",)),
    (0xD9, "RETI", 1, (16,), "----", ()),
    (0xDA, "JP", 3, (16, 12), "----", ("C", "A16")),
    (0xDC, "CALL", 3, (24, 12), "----", ("C", "A16")),
    (0xDE, "SBC", 2, (8,), "Z1HC", ("A", "D8")),
    (0xDF, "RST", 1, (16,), "----", ("18H",)),

    # $E0-$EF
    (0xE0, "LDH", 2, (12,), "----", ("[A8]", "A")),
    (0xE1, "POP", 1, (12,), "----", ("HL",)),
    (0xE2, "LD", 1, (8,), "----", ("[C]", "A")),
    (0xE5, "PUSH", 1, (16,), "----", ("HL",)),
    (0xE6, "AND", 2, (8,), "Z010", ("D8",)),
    (0xE7, "RST", 1, (16,), "----", ("20H",)),
    (0xE8, "ADD", 2, (16,), "00HC", ("SP", "R8")),
    (0xE9, "JP", 1, (4,), "----", ("HL",)),
    (0xEA, "LD", 3, (16,), "----", ("[A16]", "A")),
    (0xEE, "XOR", 2, (8,), "Z000", ("D8",)),
    (0xEF, "RST", 1, (16,), "----", ("28H",)),

    # $F0-$FF
    (0xF0, "LDH", 2, (12,), "----", ("A", "[A8]")),
    (0xF1, "POP", 1, (12,), "ZNHC", ("AF",)),
    (0xF2, "LD", 1, (8,), "----", ("A", "[C]")),
    (0xF3, "DI", 1, (4,), "----", ()),
    (0xF5, "PUSH", 1, (16,), "----", ("AF",)),
    (0xF6, "OR", 2, (8,), "Z000", ("D8",)),
    (0xF7, "RST", 1, (16,), "----", ("30H",)),
    (0xF8, "LD", 2, (12,), "00HC", ("HL", "SP+R8")),
    (0xF9, "LD", 1, (8,), "----", ("SP", "HL")),
    (0xFA, "LD", 3, (16,), "----", ("A", "[A16]")),
    (0xFB, "EI", 1, (4,), "----", ()),
    (0xFE, "CP", 2, (8,), "Z1HC", ("D8",)),
    (0xFF, "RST", 1, (16,), "----", ("38H",)),
)

# Register operand order used by every register-indexed opcode block
REGISTER_ORDER: tuple[str, ...] = ("B", "C", "D", "E", "H", "L", "[HL]", "A")

# 8-bit ALU blocks $80-$BF: (mnemonic, takes explicit "A," operand, flags)
_ALU_OPERATIONS: tuple[tuple[str, bool, str], ...] = (
    ("ADD", True, "Z0HC"),
    ("ADC", True, "Z0HC"),
    ("SUB", False, "Z1HC"),
    ("SBC", True, "Z1HC"),
    ("AND", False, "Z010"),
    ("XOR", False, "Z000"),
    ("OR", False, "Z000"),
    ("CP", False, "Z1HC"),
)


def _generate_register_block() -> Iterator[tuple]:
    """Rows for $40-$7F (LD r,r' and HALT) and $80-$BF (ALU A,r)."""
    for dst_index, dst in enumerate(REGISTER_ORDER):
        for src_index, src in enumerate(REGISTER_ORDER):
            opcode = 0x40 + dst_index * 8 + src_index
            if opcode == 0x76:
                # LD [HL],[HL] does not exist; the slot is HALT
                yield (0x76, "HALT", 1, (4,), "----", ())
                continue
            cycles = 8 if "[HL]" in (dst, src) else 4
            yield (opcode, "LD", 1, (cycles,), "----", (dst, src))

    for op_index, (mnemonic, explicit_a, flags) in enumerate(_ALU_OPERATIONS):
        for src_index, src in enumerate(REGISTER_ORDER):
            opcode = 0x80 + op_index * 8 + src_index
            cycles = 8 if src == "[HL]" else 4
            operands = ("A", src) if explicit_a else (src,)
            yield (opcode, mnemonic, 1, (cycles,), flags, operands)


def _build_entry(row: tuple, cb_prefixed: bool = False) -> OpcodeEntry:
    opcode, mnemonic, size, cycles, flags, operands = row
    return OpcodeEntry(
        opcode=opcode,
        mnemonic=mnemonic,
        size=size,
        cycles=tuple(cycles),
        flags=FlagEffect.parse(flags),
        operands=tuple(operands),
        cb_prefixed=cb_prefixed,
    )


UNPREFIXED_OPCODES: tuple[OpcodeEntry, ...] = tuple(sorted(
    (_build_entry(row) for row in (*_EXPLICIT_UNPREFIXED, *_generate_register_block())),
    key=lambda entry: entry.opcode,
))


# =============================================================================
# CB-Prefixed Opcode Table
# =============================================================================
# $00-$3F: rotate/shift/swap on each register
# $40-$7F: BIT b,r   $80-$BF: RES b,r   $C0-$FF: SET b,r
# =============================================================================

CB_SHIFT_INSTRUCTIONS: tuple[str, ...] = (
    "RLC", "RRC", "RL", "RR", "SLA", "SRA", "SWAP", "SRL",
)

CB_BIT_INSTRUCTIONS: tuple[str, ...] = ("BIT", "RES", "SET")

# Mnemonics routed to the CB-prefixed table
CB_INSTRUCTIONS: frozenset[str] = frozenset(CB_SHIFT_INSTRUCTIONS + CB_BIT_INSTRUCTIONS)


def _generate_cb_rows() -> Iterator[tuple]:
    for op_index, mnemonic in enumerate(CB_SHIFT_INSTRUCTIONS):
        flags = "Z000" if mnemonic == "SWAP" else "Z00C"
        for reg_index, register in enumerate(REGISTER_ORDER):
            cycles = 16 if register == "[HL]" else 8
            yield (op_index * 8 + reg_index, mnemonic, 2, (cycles,), flags, (register,))

    for op_index, mnemonic in enumerate(CB_BIT_INSTRUCTIONS):
        flags = "Z01-" if mnemonic == "BIT" else "----"
        for bit in range(8):
            for reg_index, register in enumerate(REGISTER_ORDER):
                opcode = 0x40 + op_index * 0x40 + bit * 8 + reg_index
                if register == "[HL]":
                    cycles = 12 if mnemonic == "BIT" else 16
                else:
                    cycles = 8
                yield (opcode, mnemonic, 2, (cycles,), flags, (str(bit), register))


CB_PREFIXED_OPCODES: tuple[OpcodeEntry, ...] = tuple(
    _build_entry(row, cb_prefixed=True) for row in _generate_cb_rows()
)

# Alternate spellings that resolve to an existing unprefixed entry
UNPREFIXED_ALIASES: dict[str, int] = {
    "LDH [C],A": 0xE2,  # $FF00+C loads as written by modern RGBDS
    "LDH A,[C]": 0xF2,
    "JP [HL]": 0xE9,
}


# =============================================================================
# Operand Normalization
# =============================================================================

REGISTERS: frozenset[str] = frozenset({
    "A", "B", "C", "D", "E", "H", "L", "AF", "BC", "DE", "HL", "SP", "PC",
})

CONDITIONS: frozenset[str] = frozenset({"Z", "NZ", "C", "NC"})

# Bracketed forms kept literally instead of becoming [A8]/[A16]
REGISTER_INDIRECT: frozenset[str] = frozenset({"HL", "BC", "DE", "C", "HL+", "HL-"})

# Parenthesized and bracketed HL increment/decrement spellings
_HL_FORMS: tuple[tuple[re.Pattern, str], ...] = (
    (re.compile(r"\(HL\+\)|\(HLI\)|\[HLI\]"), "[HL+]"),
    (re.compile(r"\(HL-\)|\(HLD\)|\[HLD\]"), "[HL-]"),
)
_PARENTHESIZED = re.compile(r"\(([^)]+)\)")

_RGBDS_FUNCTION = re.compile(r"^(BANK|HIGH|LOW|SIZEOF|STARTOF)\s*\(")
_IMMEDIATE = re.compile(r'^(\$[0-9A-F]+|%[01]+|&[0-7]+|\d+|"."|\w+)$', re.IGNORECASE)
_HEX_DIGITS = re.compile(r"\$([0-9A-Fa-f]+)")
_IDENTIFIER = re.compile(r"^[A-Za-z_]\w*$")
_UPPER_IDENTIFIER = re.compile(r"^[A-Z_][A-Z0-9_]*$")
_DECIMAL = re.compile(r"^(\d+)$")
_RELATIVE_TARGET = re.compile(r"^\.?\w+$")
_SP_OFFSET = re.compile(r"^SP[+-]")


def _is_register(operand: str) -> bool:
    return operand.upper() in REGISTERS


def _is_condition(operand: str) -> bool:
    return operand.upper() in CONDITIONS


def _is_immediate(operand: str) -> bool:
    return (
        _IMMEDIATE.match(operand) is not None
        and not _is_register(operand)
        and not _is_condition(operand)
    )


def _is_16bit_value(operand: str) -> bool:
    # More than two hex digits, or a bare label (labels are addresses)
    hex_match = _HEX_DIGITS.search(operand)
    if hex_match and len(hex_match.group(1)) > 2:
        return True
    return (
        _IDENTIFIER.match(operand) is not None
        and not _is_register(operand)
        and not _is_condition(operand)
    )


def _is_8bit_value(operand: str) -> bool:
    hex_match = _HEX_DIGITS.search(operand)
    if hex_match and len(hex_match.group(1)) <= 2:
        return True
    decimal = _DECIMAL.match(operand)
    return decimal is not None and int(decimal.group(1)) <= 255


def _is_relative_target(operand: str) -> bool:
    return (
        _RELATIVE_TARGET.match(operand) is not None
        and not _is_register(operand)
        and not _is_condition(operand)
    )


def _canonical_memory_form(operand: str) -> str:
    """Uppercase, drop whitespace and unify (..) / [..] memory spellings."""
    text = re.sub(r"\s+", "", operand.upper())
    for pattern, replacement in _HL_FORMS:
        text = pattern.sub(replacement, text)
    return _PARENTHESIZED.sub(r"[\1]", text)


def table_key(mnemonic: str, operands: Sequence[str]) -> str:
    """
    Build the lookup key for a table entry: "MNEMONIC OP1,OP2" or "MNEMONIC".

    Table operands are already canonical; only spelling is unified here.
    """
    normalized = ",".join(_canonical_memory_form(op) for op in operands)
    return f"{mnemonic.upper()} {normalized}" if normalized else mnemonic.upper()


def normalize_operand(operand: str) -> str:
    """
    Normalize a source operand into an operand signature token.

    Registers and condition codes pass through, RGBDS compile-time
    functions become D8, immediates become D8/D16, memory references
    become [A8]/[A16] unless they are register-indirect, bare labels
    become R8.

    Examples:
        >>> normalize_operand("bank(Foo)")
        'D8'
        >>> normalize_operand("[hli]")
        '[HL+]'
        >>> normalize_operand("[$FF44]")
        '[A8]'
        >>> normalize_operand("wBuffer")
        'D16'
    """
    stripped = operand.strip()
    upper = stripped.upper()

    if _RGBDS_FUNCTION.match(upper):
        return "D8"

    normalized = _canonical_memory_form(stripped)

    if _is_immediate(normalized):
        if _is_16bit_value(stripped):
            return "D16"
        if _is_8bit_value(stripped):
            return "D8"
        # Symbolic constants (BIT_FOO, counts, ...) default to 8 bits
        return "D8"

    if normalized.startswith("[") and normalized.endswith("]"):
        inner = normalized[1:-1]
        if inner in REGISTER_INDIRECT:
            return normalized
        if inner == "$FF00+C":
            return "[C]"
        if _UPPER_IDENTIFIER.match(inner):
            return "[A16]"
        if _is_immediate(inner) and (inner.startswith("$FF") or inner.startswith("FF")):
            return "[A8]"
        return "[A16]"

    if _SP_OFFSET.match(normalized):
        return "SP+R8"

    if _is_relative_target(stripped):
        return "R8"

    return normalized


def parse_int_literal(text: str) -> Optional[int]:
    """
    Parse a complete integer literal in RGBDS or common notations.

    Accepts $hex, 0xhex, hex with an H suffix, %binary, &octal and
    decimal. Returns None for anything else (symbols, expressions).
    """
    value = text.strip().upper()
    try:
        if value.startswith("$"):
            return int(value[1:], 16)
        if value.startswith("0X"):
            return int(value[2:], 16)
        if value.startswith("%"):
            return int(value[1:], 2)
        if value.startswith("&"):
            return int(value[1:], 8)
        if value.endswith("H") and len(value) > 1:
            return int(value[:-1], 16)
        return int(value, 10)
    except ValueError:
        return None


def _rst_vector(operand: str) -> Optional[str]:
    """Render an RST target as the table's "38H" form, or None."""
    value = parse_int_literal(operand)
    if value is None or value > 0x38 or value % 8:
        return None
    return f"{value:02X}H"


def _literal_bit(operand: str) -> Optional[int]:
    value = parse_int_literal(operand)
    if value is None or not 0 <= value <= 7:
        return None
    return value


# Wildcard substitutions in priority order
OPERAND_WILDCARDS: tuple[str, ...] = ("D8", "D16", "A16", "R8", "[A8]", "[A16]", "[HL]")
_MEMORY_WILDCARDS: tuple[str, ...] = ("[A8]", "[A16]", "[HL]")


def _wildcards_for(operand: str) -> tuple[str, ...]:
    # A bracketed source operand is a memory access; never retry it as a value
    if operand.startswith("["):
        return _MEMORY_WILDCARDS
    return OPERAND_WILDCARDS


def is_cb_prefixed(mnemonic: str) -> bool:
    """True if the mnemonic belongs to the CB-prefixed instruction set."""
    return mnemonic.upper() in CB_INSTRUCTIONS


def opcode_hex(entry: OpcodeEntry) -> str:
    """Two-digit uppercase hex, or "CB xx" for CB-prefixed entries."""
    if entry.cb_prefixed:
        return f"CB {entry.opcode:02X}"
    return f"{entry.opcode:02X}"


# =============================================================================
# Opcode Table
# =============================================================================

class OpcodeTable:
    """
    Immutable catalog of SM83 instructions with pattern-matching lookup.

    Build one with build_opcode_table() (or use default_opcode_table() for
    the shared instance) and pass it by reference to every parser and
    engine that needs it. The table never changes after construction, so
    one instance can serve any number of analysis sessions.

    Usage:
        table = build_opcode_table()
        entry = table.lookup("jr", ["nz", ".loop"])
        entry.size, entry.cycles   # (2, (12, 8))
    """

    def __init__(
        self,
        unprefixed: Iterable[OpcodeEntry],
        cb_prefixed: Iterable[OpcodeEntry],
        aliases: Optional[dict[str, int]] = None,
    ):
        self._unprefixed = self._index(unprefixed)
        self._cb_prefixed = self._index(cb_prefixed)

        by_opcode = {entry.opcode: entry for entry in self._unprefixed.values()}
        for key, opcode in (aliases or {}).items():
            if key in self._unprefixed:
                raise ValueError(f"alias {key!r} shadows an existing entry")
            self._unprefixed[key] = by_opcode[opcode]

    @staticmethod
    def _index(entries: Iterable[OpcodeEntry]) -> dict[str, OpcodeEntry]:
        index: dict[str, OpcodeEntry] = {}
        for entry in entries:
            key = entry.key
            if key in index:
                raise ValueError(f"duplicate opcode table key {key!r}")
            index[key] = entry
        return index

    def __len__(self) -> int:
        return len(self._unprefixed) + len(self._cb_prefixed)

    def entries(self) -> Iterator[OpcodeEntry]:
        """Iterate every distinct entry, unprefixed first (aliases skipped)."""
        seen: set[int] = set()
        for entry in self._unprefixed.values():
            if id(entry) not in seen:
                seen.add(id(entry))
                yield entry
        yield from self._cb_prefixed.values()

    def get(self, key: str, cb_prefixed: bool = False) -> Optional[OpcodeEntry]:
        """Exact key access ("LD A,D8"), no normalization."""
        table = self._cb_prefixed if cb_prefixed else self._unprefixed
        return table.get(key)

    # -------------------------------------------------------------------------
    # Lookup
    # -------------------------------------------------------------------------

    def lookup(self, mnemonic: str, operands: Sequence[str]) -> Optional[OpcodeEntry]:
        """
        Look up an instruction from its source mnemonic and raw operands.

        Args:
            mnemonic: Instruction mnemonic in any case (e.g., "ld")
            operands: Raw operand strings as written (e.g., ["a", "[hl+]"])

        Returns:
            The matching OpcodeEntry, or None if the combination is unknown.
            None means "cost unknown", never an error.
        """
        mnemonic = mnemonic.upper()
        operands = list(operands)

        if mnemonic in CB_INSTRUCTIONS:
            entry = self._lookup_cb(mnemonic, operands)
        elif mnemonic == "RST" and len(operands) == 1 and _rst_vector(operands[0]):
            entry = self._unprefixed.get(f"RST {_rst_vector(operands[0])}")
        else:
            key = self._search_key(mnemonic, operands)
            entry = self._unprefixed.get(key) or self._find_with_wildcard(mnemonic, operands)

        if entry is None:
            logger.debug(f"No opcode for {mnemonic} {', '.join(operands)}")
        return entry

    @staticmethod
    def _search_key(mnemonic: str, operands: Sequence[str]) -> str:
        normalized = ",".join(normalize_operand(op) for op in operands)
        return f"{mnemonic} {normalized}" if normalized else mnemonic

    def _lookup_cb(self, mnemonic: str, operands: list[str]) -> Optional[OpcodeEntry]:
        entry = self._cb_prefixed.get(self._search_key(mnemonic, operands))
        if entry:
            return entry

        if mnemonic in CB_BIT_INSTRUCTIONS and len(operands) == 2:
            register = normalize_operand(operands[1])
            # An explicit bit index resolves to its own opcode first; the
            # sweep covers symbolic bit names (BIT_FOO, etc.)
            bits = list(range(8))
            literal = _literal_bit(operands[0])
            if literal is not None:
                bits.insert(0, literal)
            for bit in bits:
                entry = self._cb_prefixed.get(f"{mnemonic} {bit},{register}")
                if entry:
                    return entry

        if len(operands) == 1:
            register = normalize_operand(operands[0])
            return self._cb_prefixed.get(f"{mnemonic} {register}")

        return None

    def _find_with_wildcard(self, mnemonic: str, operands: list[str]) -> Optional[OpcodeEntry]:
        for pattern in self._search_patterns(mnemonic, operands):
            entry = self._unprefixed.get(pattern)
            if entry:
                return entry
        return None

    @staticmethod
    def _search_patterns(mnemonic: str, operands: list[str]) -> list[str]:
        """Ordered wildcard keys; the order decides ambiguous operands."""
        if not operands:
            return [mnemonic]

        if len(operands) == 1:
            op = normalize_operand(operands[0])
            return [f"{mnemonic} {op}"] + [
                f"{mnemonic} {wildcard}" for wildcard in _wildcards_for(op)
            ]

        if len(operands) == 2:
            op1 = normalize_operand(operands[0])
            op2 = normalize_operand(operands[1])
            patterns = [f"{mnemonic} {op1},{op2}"]
            patterns.extend(
                f"{mnemonic} {op1},{wildcard}"
                for wildcard in _wildcards_for(op2)
                if wildcard != "[HL]"
            )
            patterns += [
                f"{mnemonic} [A8],{op2}",
                f"{mnemonic} [A16],{op2}",
                f"{mnemonic} [HL],D8",
            ]
            if op1 == "HL" and "SP" in op2:
                patterns.append(f"{mnemonic} HL,SP+R8")
            return patterns

        return []


# =============================================================================
# Construction
# =============================================================================

def build_opcode_table() -> OpcodeTable:
    """Build a fresh OpcodeTable from the module's instruction data."""
    return OpcodeTable(UNPREFIXED_OPCODES, CB_PREFIXED_OPCODES, UNPREFIXED_ALIASES)


@lru_cache(maxsize=1)
def default_opcode_table() -> OpcodeTable:
    """
    The shared read-only table used when a caller does not supply one.

    Safe to share: OpcodeTable has no mutating methods.
    """
    return build_opcode_table()


# Set of all valid mnemonics (for classification and validation)
MNEMONICS: frozenset[str] = frozenset(
    entry.mnemonic for entry in (*UNPREFIXED_OPCODES, *CB_PREFIXED_OPCODES)
)

# Control-flow instructions whose last operand names a routine/label
CALL_INSTRUCTIONS: frozenset[str] = frozenset({"CALL", "JP", "JR", "RST"})
