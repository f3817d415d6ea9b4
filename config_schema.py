"""
Cycle Kernel Configuration Schema - Validated, Immutable Kernel Settings

This module defines KernelConfig, the settings a cycle runs under: recovery
thresholds, history window, crisis spike ceiling, default run mode and the
ledger location.

Consumed by:
- cyclesim/cycle.py (runtime)
- cli.py (run / replay / validate-config)

Design Principles:
- Self-validating: a file that violates the JSON Schema never loads
- Immutable: frozen after load, no runtime mutation
- Auditable: config_hash() fingerprints the effective settings
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from jsonschema import Draft202012Validator

from receipts import dual_hash
from cyclesim.constants import BASE_RECOVERY_THRESHOLDS, CRISIS_MAX_SPIKES, DIGEST_WINDOW
from cyclesim.types_config import CycleMode


__all__ = [
    'KernelConfig',
    'load',
    'default',
    'validate',
]


# =============================================================================
# JSON Schema Definition (Draft 2020-12)
# =============================================================================

_MODE_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "dry_run": {"type": "boolean"},
        "replay": {"type": "boolean"},
        "replay_cycle_id": {"type": ["integer", "null"], "minimum": 1},
        "strict": {"type": "boolean"},
        "profile": {"type": "boolean"},
    },
    "additionalProperties": False,
}

_JSON_SCHEMA: Dict[str, Any] = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "title": "KernelConfig",
    "description": "Cycle simulation kernel configuration",
    "type": "object",
    "properties": {
        "recovery_thresholds": {
            "type": "object",
            "description": "Base overload thresholds before calendar adjustment",
            "required": ["light", "moderate", "heavy"],
            "properties": {
                "light": {"type": "integer", "minimum": 1},
                "moderate": {"type": "integer", "minimum": 1},
                "heavy": {"type": "integer", "minimum": 1},
            },
            "additionalProperties": False,
        },
        "digest_window": {
            "type": "integer",
            "description": "Digest records read for pattern detection",
            "minimum": 2,
            "maximum": 50,
            "default": DIGEST_WINDOW,
        },
        "max_crisis_spikes": {
            "type": "integer",
            "description": "Ceiling on crisis spikes per cycle (0 disables them)",
            "minimum": 0,
            "maximum": 10,
            "default": CRISIS_MAX_SPIKES,
        },
        "mode": _MODE_SCHEMA,
        "ledger_dir": {
            "type": ["string", "null"],
            "description": "Directory of the JSON ledger store",
        },
    },
    "additionalProperties": False,
}

# Compiled once at import
_VALIDATOR = Draft202012Validator(_JSON_SCHEMA)


# =============================================================================
# KernelConfig Dataclass
# =============================================================================

@dataclass(frozen=True)
class KernelConfig:
    """
    Cycle kernel configuration.

    Attributes:
        recovery_thresholds: base {light, moderate, heavy} overload thresholds
        digest_window: digest records used for pattern detection
        max_crisis_spikes: crisis spike ceiling per cycle (0 disables)
        mode: default run mode
        ledger_dir: JSON ledger directory, if any
    """
    recovery_thresholds: Dict[str, int] = field(
        default_factory=lambda: dict(BASE_RECOVERY_THRESHOLDS))
    digest_window: int = DIGEST_WINDOW
    max_crisis_spikes: int = CRISIS_MAX_SPIKES
    mode: CycleMode = field(default_factory=CycleMode)
    ledger_dir: Optional[str] = None

    def __post_init__(self) -> None:
        t = self.recovery_thresholds
        if not t["light"] <= t["moderate"] <= t["heavy"]:
            raise ValueError(
                f"recovery thresholds must satisfy light <= moderate <= heavy, got {t}")

    @property
    def schema(self) -> Dict[str, Any]:
        """JSON Schema dict for external validation."""
        return dict(_JSON_SCHEMA)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "recovery_thresholds": dict(self.recovery_thresholds),
            "digest_window": self.digest_window,
            "max_crisis_spikes": self.max_crisis_spikes,
            "mode": self.mode.to_dict(),
            "ledger_dir": self.ledger_dir,
        }

    def config_hash(self) -> str:
        """Dual hash of the sorted JSON form."""
        return dual_hash(json.dumps(self.to_dict(), sort_keys=True, separators=(',', ':')))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> KernelConfig:
        """
        Build from a dict, validating first.

        Raises:
            ValueError: listing every schema violation
        """
        errors = validate(data)
        if errors:
            raise ValueError("invalid kernel config:\n  " + "\n  ".join(errors))
        return cls(
            recovery_thresholds=dict(data.get("recovery_thresholds", BASE_RECOVERY_THRESHOLDS)),
            digest_window=int(data.get("digest_window", DIGEST_WINDOW)),
            max_crisis_spikes=int(data.get("max_crisis_spikes", CRISIS_MAX_SPIKES)),
            mode=CycleMode.from_dict(data.get("mode", {})),
            ledger_dir=data.get("ledger_dir"),
        )

    @classmethod
    def default(cls) -> KernelConfig:
        return cls()


# =============================================================================
# Module-level API
# =============================================================================

def validate(data: Any) -> List[str]:
    """Schema violations as readable strings; empty when valid."""
    if not isinstance(data, dict):
        return [f"config must be a mapping, got {type(data).__name__}"]
    errors = []
    for e in sorted(_VALIDATOR.iter_errors(data), key=lambda e: list(e.path)):
        where = ".".join(str(p) for p in e.path) or "<root>"
        errors.append(f"{where}: {e.message}")
    return errors


def load(path: str) -> KernelConfig:
    """
    Load config from a JSON or YAML file.

    Raises:
        FileNotFoundError: If path doesn't exist
        ValueError: If the file does not satisfy the schema
    """
    path_obj = Path(path)

    if not path_obj.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    content = path_obj.read_text()

    if path_obj.suffix in ('.yaml', '.yml'):
        data = yaml.safe_load(content)
    else:
        data = json.loads(content)

    return KernelConfig.from_dict(data if data is not None else {})


def default() -> KernelConfig:
    """Built-in defaults."""
    return KernelConfig.default()
