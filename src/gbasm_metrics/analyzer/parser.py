"""
RGBDS Line Parser
=================

This module tokenizes and classifies single lines of RGBDS assembly source.
It is deliberately line-oriented: each line is parsed on its own, without a
token stream or statement tree, because the metrics engine only ever needs
"what does this line cost".

Line Anatomy
------------
```asm
.loop:  ld   a, [hl+]    ; fetch next byte
^^^^^^  ^^   ^^^^^^^^^     ^^^^^^^^^^^^^^^
label   mnem operands      comment
```

1. The comment starts at the first ';' that is not inside a string.
2. A label is either `word:` / `word::` or a local label `.word[.word]`
   (colon optional).
3. The mnemonic is separated from the operand text by the first run of
   whitespace outside brackets, parentheses and strings.
4. Operands are split on commas outside brackets, parentheses and strings.

Classification
--------------
The mnemonic is classified in this order:

| Class              | Examples                        | Cost source        |
|--------------------|---------------------------------|--------------------|
| Data directive     | DB DW DL DS                     | counted bytes      |
| Other directive    | SECTION INCLUDE EQU MACRO ...   | none               |
| Macro call         | any name in the macro registry  | macro definition   |
| Predef-style call  | PREDEF PREDEF_JUMP FARCALL ...  | configuration      |
| Instruction        | everything else                 | opcode table       |

SET is both an RGBDS directive and the CB-prefixed SET b,r instruction. A
two-operand SET is the instruction; anything else is the directive.

Data Directive Sizes
--------------------
- DB: one byte per item; a quoted string counts its characters
- DW: two bytes per item
- DL: four bytes per item
- DS: the numeric value of the first item ($hex, 0xhex, %bin, &oct, decimal)
"""

from dataclasses import dataclass
from enum import Enum
from typing import Container, Optional
import re


# =============================================================================
# Directive and Keyword Sets
# =============================================================================

# Directives that reserve or emit bytes
DATA_DIRECTIVES: frozenset[str] = frozenset({"DB", "DW", "DL", "DS"})

# Directives that emit nothing the engine can count
SECTION_DIRECTIVES: frozenset[str] = frozenset({
    "SECTION", "INCLUDE", "INCBIN", "EQU", "SET", "EQUS", "MACRO", "ENDM",
    "IF", "ELSE", "ELIF", "ENDC", "REPT", "ENDR", "EXPORT", "GLOBAL",
    "PURGE", "OPT", "PUSHO", "POPO", "PUSHS", "POPS", "FAIL", "WARN",
    "ASSERT", "STATIC_ASSERT",
})


class PredefKind(Enum):
    """Cost class of a predef-style call."""
    PREDEF = "predef"
    PREDEF_JUMP = "predef_jump"


# Bank-switching call macros common in disassembly projects
PREDEF_KEYWORDS: dict[str, PredefKind] = {
    "PREDEF": PredefKind.PREDEF,
    "PREDEF_JUMP": PredefKind.PREDEF_JUMP,
    "FARCALL": PredefKind.PREDEF,
    "CALLFAR": PredefKind.PREDEF,
    "HOMECALL": PredefKind.PREDEF,
}

_LABEL = re.compile(r"^(\w+::?|\.[\w.]+:{0,2})")
_QUOTES = ('"', "'")
_OPENERS = "(["
_CLOSERS = ")]"


# =============================================================================
# Parsed Line
# =============================================================================

@dataclass(frozen=True)
class ParsedLine:
    """
    One tokenized and classified source line.

    Attributes:
        line_number: Line number as supplied by the caller
        raw: The original line text
        label: Label name without colons, if the line defines one
        instruction: Uppercased mnemonic or directive, None for blank,
            comment-only and label-only lines
        operands: Raw operand strings (trimmed, not normalized)
        comment: Text after the first unquoted ';', trimmed
        is_directive: True for data and section directives
        directive_bytes: Byte count of a data directive
        is_macro_call: True if the mnemonic names a registered macro
        macro_name: The macro name as written (uppercased)
        is_predef_call: True for PREDEF-style bank-switching calls
        predef_kind: Cost class of the predef-style call
    """
    line_number: int
    raw: str
    label: Optional[str] = None
    instruction: Optional[str] = None
    operands: tuple[str, ...] = ()
    comment: Optional[str] = None
    is_directive: bool = False
    directive_bytes: Optional[int] = None
    is_macro_call: bool = False
    macro_name: Optional[str] = None
    is_predef_call: bool = False
    predef_kind: Optional[PredefKind] = None

    @property
    def is_instruction(self) -> bool:
        """True for a plain CPU instruction (not a directive or call macro)."""
        return (
            self.instruction is not None
            and not self.is_directive
            and not self.is_macro_call
            and not self.is_predef_call
        )

    @property
    def has_code(self) -> bool:
        return self.label is not None or self.instruction is not None


# =============================================================================
# Tokenizing Helpers
# =============================================================================

def _comment_start(line: str) -> int:
    """Index of the first unquoted ';', or -1."""
    quote: Optional[str] = None
    for index, char in enumerate(line):
        if quote:
            if char == quote:
                quote = None
        elif char in _QUOTES:
            quote = char
        elif char == ";":
            return index
    return -1


def strip_comment(line: str) -> str:
    """Return the code portion of a line (everything before the comment)."""
    index = _comment_start(line)
    return line if index < 0 else line[:index]


def extract_comment(line: str) -> Optional[str]:
    """Return the trimmed comment text, or None if the line has no comment."""
    index = _comment_start(line)
    return None if index < 0 else line[index + 1:].strip()


def split_instruction(code: str) -> tuple[str, str]:
    """
    Split code into (mnemonic, operand_text) at the first top-level whitespace.

    Whitespace inside brackets, parentheses or strings does not split.
    Unbalanced brackets are tolerated; depth never goes below zero.

    Examples:
        >>> split_instruction("ld a, [hl]")
        ('ld', 'a, [hl]')
        >>> split_instruction("nop")
        ('nop', '')
    """
    code = code.strip()
    depth = 0
    quote: Optional[str] = None
    for index, char in enumerate(code):
        if quote:
            if char == quote:
                quote = None
        elif char in _QUOTES:
            quote = char
        elif char in _OPENERS:
            depth += 1
        elif char in _CLOSERS:
            depth = max(depth - 1, 0)
        elif char.isspace() and depth == 0:
            return code[:index], code[index:].strip()
    return code, ""


def split_operands(text: str) -> list[str]:
    """
    Split operand text on commas outside brackets, parentheses and strings.

    Empty pieces are dropped; each operand is trimmed.

    Examples:
        >>> split_operands('a, [hl+]')
        ['a', '[hl+]']
        >>> split_operands('"a,b", 1')
        ['"a,b"', '1']
    """
    operands = []
    current = []
    depth = 0
    quote: Optional[str] = None
    for char in text:
        if quote:
            if char == quote:
                quote = None
        elif char in _QUOTES:
            quote = char
        elif char in _OPENERS:
            depth += 1
        elif char in _CLOSERS:
            depth = max(depth - 1, 0)
        elif char == "," and depth == 0:
            operands.append("".join(current).strip())
            current = []
            continue
        current.append(char)
    operands.append("".join(current).strip())
    return [operand for operand in operands if operand]


# Prefix, base and digit class for numeric literals
_NUMERIC_PREFIXES: tuple[tuple[str, int, str], ...] = (
    ("$", 16, "0-9a-f"),
    ("0x", 16, "0-9a-f"),
    ("%", 2, "01"),
    ("&", 8, "0-7"),
)


def parse_numeric_value(text: str) -> int:
    """
    Parse a numeric literal by prefix sniffing.

    Leading digits are used and trailing text is ignored, so "10 + 2"
    yields 10. Anything without leading digits yields 0.
    """
    value = text.strip().lower()
    base, digits, body = 10, "0-9", value
    for prefix, prefix_base, prefix_digits in _NUMERIC_PREFIXES:
        if value.startswith(prefix):
            base, digits, body = prefix_base, prefix_digits, value[len(prefix):]
            break
    match = re.match(f"[{digits}]+", body)
    return int(match.group(), base) if match else 0


def _is_string_literal(item: str) -> bool:
    return len(item) >= 2 and item[0] == '"' and item[-1] == '"'


def calculate_directive_bytes(directive: str, operand_text: str) -> int:
    """
    Compute the number of bytes a data directive emits.

    Args:
        directive: DB, DW, DL or DS (any case)
        operand_text: Everything after the directive

    Returns:
        Byte count; 0 for an empty operand list or an unknown directive
    """
    items = split_operands(operand_text)
    if not items:
        return 0

    directive = directive.upper()
    if directive == "DB":
        return sum(len(item) - 2 if _is_string_literal(item) else 1 for item in items)
    if directive == "DW":
        return len(items) * 2
    if directive == "DL":
        return len(items) * 4
    if directive == "DS":
        return parse_numeric_value(items[0])
    return 0


# =============================================================================
# Line Parser
# =============================================================================

class LineParser:
    """
    Tokenizer/classifier for single RGBDS source lines.

    The parser consults a live macro registry (anything supporting
    `name in registry` with uppercased names) so that lines invoking a
    registered macro are classified as macro calls. The registry is held by
    reference: macros registered after construction are recognized too.

    Usage:
        parser = LineParser(macros)
        parsed = parser.parse_line("    jr nz, .loop ; spin", 12)
        parsed.instruction, parsed.operands   # ('JR', ('nz', '.loop'))
    """

    def __init__(self, macros: Optional[Container[str]] = None):
        self._macros = macros if macros is not None else frozenset()

    def parse_line(self, text: str, line_number: int) -> ParsedLine:
        """
        Tokenize and classify one line. Never raises for malformed input.

        Args:
            text: The raw line (without line terminator)
            line_number: Line number to record in the result

        Returns:
            ParsedLine; instruction is None for blank, comment-only and
            label-only lines
        """
        comment = extract_comment(text)
        code = strip_comment(text).strip()

        label = None
        match = _LABEL.match(code)
        if match:
            label = match.group(1).rstrip(":")
            code = code[match.end():].strip()

        if not code:
            return ParsedLine(line_number, text, label=label, comment=comment)

        mnemonic_text, operand_text = split_instruction(code)
        mnemonic = mnemonic_text.upper()
        operands = tuple(split_operands(operand_text))
        common = dict(
            line_number=line_number,
            raw=text,
            label=label,
            instruction=mnemonic,
            operands=operands,
            comment=comment,
        )

        if mnemonic in DATA_DIRECTIVES:
            return ParsedLine(
                **common,
                is_directive=True,
                directive_bytes=calculate_directive_bytes(mnemonic, operand_text),
            )

        if mnemonic in SECTION_DIRECTIVES and not self._is_set_instruction(mnemonic, operands):
            return ParsedLine(**common, is_directive=True)

        if mnemonic in self._macros:
            return ParsedLine(**common, is_macro_call=True, macro_name=mnemonic)

        predef_kind = PREDEF_KEYWORDS.get(mnemonic)
        if predef_kind is not None:
            return ParsedLine(**common, is_predef_call=True, predef_kind=predef_kind)

        return ParsedLine(**common)

    @staticmethod
    def _is_set_instruction(mnemonic: str, operands: tuple[str, ...]) -> bool:
        # SET b, r (CB-prefixed) versus the SET directive
        return mnemonic == "SET" and len(operands) == 2
