"""
Metrics Configuration
=====================

Options that influence how metrics are computed or displayed. A host
(editor plugin, CLI, script) builds a MetricsConfig from defaults, from its
own settings mapping, or from environment variables:

- Defaults (defined here)
- MetricsConfig.from_mapping({"assumeBranchTaken": False, ...})
- MetricsConfig.from_env() reading GBMETRICS_* variables

Only assume_branch_taken and the predef costs change computed values. The
show_* switches are carried for hosts that render annotations.

Predef Costs
------------
A predef-style call switches ROM banks, loads a target address and calls
or jumps. Its real cost depends on the project's implementation, so it is
configured instead of computed:

    ld a, BANK(Target)   2B  8c
    ld hl, Target        3B 12c
    call Predef          3B 24c    (jp for PREDEF_JUMP: 16c)
                         ------
                         8B 44c    (36c for PREDEF_JUMP)
"""

from dataclasses import dataclass, fields, replace as dataclass_replace
from typing import Any, Mapping, Optional
import logging
import os
import re

from gbasm_metrics.errors import ConfigError
from gbasm_metrics.analyzer.parser import PredefKind

logger = logging.getLogger(__name__)

_TRUE_STRINGS = frozenset({"true", "1", "yes", "on"})
_FALSE_STRINGS = frozenset({"false", "0", "no", "off"})

ENV_PREFIX = "GBMETRICS_"


def _snake_case(name: str) -> str:
    """"predefJumpCycles" -> "predef_jump_cycles"."""
    return re.sub(r"(?<!^)(?=[A-Z])", "_", name).lower()


@dataclass(frozen=True)
class MetricsConfig:
    """
    Metrics engine settings.

    Attributes:
        enabled: Master switch for hosts that render annotations
        show_byte_count: Render byte counts
        show_cycle_count: Render cycle counts
        show_cumulative: Render cumulative totals
        assume_branch_taken: Use the taken cycle value of conditional
            instructions and macros (default: True)
        predef_bytes: Bytes charged for a PREDEF-style call (default: 8)
        predef_cycles: Cycles charged for a PREDEF-style call (default: 44)
        predef_jump_bytes: Bytes charged for PREDEF_JUMP (default: 8)
        predef_jump_cycles: Cycles charged for PREDEF_JUMP (default: 36)
    """

    # ═══════════════════════════════════════════════════════════════════════════
    # DISPLAY
    # ═══════════════════════════════════════════════════════════════════════════

    enabled: bool = True
    show_byte_count: bool = True
    show_cycle_count: bool = True
    show_cumulative: bool = True

    # ═══════════════════════════════════════════════════════════════════════════
    # COMPUTATION
    # ═══════════════════════════════════════════════════════════════════════════

    assume_branch_taken: bool = True
    predef_bytes: int = 8
    predef_cycles: int = 44  # ld a,BANK + ld hl,addr + call
    predef_jump_bytes: int = 8
    predef_jump_cycles: int = 36  # ld a,BANK + ld hl,addr + jp

    # ═══════════════════════════════════════════════════════════════════════════
    # FACTORY METHODS
    # ═══════════════════════════════════════════════════════════════════════════

    @classmethod
    def from_mapping(cls, settings: Mapping[str, Any]) -> "MetricsConfig":
        """
        Create a MetricsConfig from a host settings mapping.

        Keys may be camelCase ("predefJumpCycles") or snake_case
        ("predef_jump_cycles"). Unknown keys are ignored. Booleans accept
        true/false/1/0/yes/no/on/off strings; integers accept numeric
        strings.

        Raises:
            ConfigError: If a recognized option has an unusable value
        """
        known = {f.name: f for f in fields(cls)}
        values: dict[str, Any] = {}

        for key, value in settings.items():
            name = _snake_case(key)
            if name not in known:
                logger.debug(f"Ignoring unknown metrics option {key!r}")
                continue
            if known[name].type in (bool, "bool"):
                values[name] = _coerce_bool(key, value)
            else:
                values[name] = _coerce_count(key, value)

        return cls(**values)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "MetricsConfig":
        """
        Create a MetricsConfig from GBMETRICS_* environment variables.

        Example: GBMETRICS_ASSUME_BRANCH_TAKEN=0 GBMETRICS_PREDEF_CYCLES=48

        Raises:
            ConfigError: If a variable has an unusable value
        """
        environ = os.environ if environ is None else environ
        settings = {
            key[len(ENV_PREFIX):].lower(): value
            for key, value in environ.items()
            if key.startswith(ENV_PREFIX)
        }
        return cls.from_mapping(settings)

    # ═══════════════════════════════════════════════════════════════════════════
    # HELPER METHODS
    # ═══════════════════════════════════════════════════════════════════════════

    def predef_cost(self, kind: PredefKind) -> tuple[int, int]:
        """Return (bytes, cycles) charged for a predef-style call."""
        if kind is PredefKind.PREDEF_JUMP:
            return self.predef_jump_bytes, self.predef_jump_cycles
        return self.predef_bytes, self.predef_cycles

    def replace(self, **changes: Any) -> "MetricsConfig":
        """Return a copy with the given fields changed."""
        return dataclass_replace(self, **changes)


def _coerce_bool(option: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        text = value.strip().lower()
        if text in _TRUE_STRINGS:
            return True
        if text in _FALSE_STRINGS:
            return False
    raise ConfigError(option, value, "a boolean")


def _coerce_count(option: str, value: Any) -> int:
    if isinstance(value, bool):
        raise ConfigError(option, value, "a non-negative integer")
    if isinstance(value, int):
        number = value
    elif isinstance(value, str) and value.strip().isdigit():
        number = int(value.strip())
    else:
        raise ConfigError(option, value, "a non-negative integer")
    if number < 0:
        raise ConfigError(option, value, "a non-negative integer")
    return number
