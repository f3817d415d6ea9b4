"""
cyclesim/types_config.py - CycleMode Dataclass and Mode Presets

Immutable run-mode configuration for one cycle.
"""

from dataclasses import dataclass, replace
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class CycleMode:
    """How a cycle runs (immutable)."""
    dry_run: bool = False
    replay: bool = False
    replay_cycle_id: Optional[int] = None
    strict: bool = False
    profile: bool = False

    def __post_init__(self) -> None:
        if self.replay and self.replay_cycle_id is None:
            raise ValueError("replay mode requires replay_cycle_id")
        if self.replay_cycle_id is not None and self.replay_cycle_id < 1:
            raise ValueError(f"replay_cycle_id must be >= 1, got {self.replay_cycle_id}")

    @property
    def writes_enabled(self) -> bool:
        """False in dry-run and replay: nothing reaches the ledger store."""
        return not (self.dry_run or self.replay)

    def with_replay(self, cycle_id: int) -> "CycleMode":
        return replace(self, replay=True, replay_cycle_id=int(cycle_id))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "dry_run": self.dry_run,
            "replay": self.replay,
            "replay_cycle_id": self.replay_cycle_id,
            "strict": self.strict,
            "profile": self.profile,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CycleMode":
        replay_id = data.get("replay_cycle_id")
        return cls(
            dry_run=bool(data.get("dry_run", False)),
            replay=bool(data.get("replay", False)),
            replay_cycle_id=int(replay_id) if replay_id is not None else None,
            strict=bool(data.get("strict", False)),
            profile=bool(data.get("profile", False)),
        )


# =============================================================================
# MODE PRESETS
# =============================================================================

MODE_LIVE = CycleMode()

MODE_DRY_RUN = CycleMode(dry_run=True)

MODE_STRICT = CycleMode(strict=True)

MODE_PROFILE = CycleMode(profile=True)


def replay_mode(cycle_id: int, strict: bool = False) -> CycleMode:
    """Mode that re-runs cycle_id against its stored seed without writing."""
    return CycleMode(replay=True, replay_cycle_id=int(cycle_id), strict=strict)
