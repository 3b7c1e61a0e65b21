"""Domain models for commands, execution and stock telemetry."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Dict, Mapping, Optional

if TYPE_CHECKING:
    from ..commands import CommandRejectedError


class CommandKind(str, Enum):
    SUGAR = "Sugar"
    WATER = "Water"
    COFFEE = "Coffee"
    ICED_TEA = "IcedTea"
    GREEN_TEA = "GreenTea"
    CUP = "Cup"
    UNKNOWN = "Unknown"
    NONE = "None"

    @property
    def is_dispensable(self) -> bool:
        return self in DISPENSABLE_KINDS


DISPENSABLE_KINDS = frozenset(
    {
        CommandKind.SUGAR,
        CommandKind.WATER,
        CommandKind.COFFEE,
        CommandKind.ICED_TEA,
        CommandKind.GREEN_TEA,
        CommandKind.CUP,
    }
)


@dataclass(frozen=True, slots=True)
class Command:
    """One parsed input line.

    ``kind`` is ``NONE`` only for blank lines and ``UNKNOWN`` only when the
    first non-space character matched no prefix. The duration is meaningful
    for dispensable kinds only; ``0.0`` means present but invalid.
    """

    kind: CommandKind
    requested_duration_seconds: float = 0.0
    raw_text: str = ""

    @property
    def is_empty(self) -> bool:
        return self.kind is CommandKind.NONE


@dataclass(frozen=True, slots=True)
class ValidationResult:
    valid: bool
    reason: Optional[str] = None
    error: Optional["CommandRejectedError"] = field(default=None, compare=False)

    @classmethod
    def accepted(cls) -> "ValidationResult":
        return cls(valid=True)

    @classmethod
    def rejected(cls, error: "CommandRejectedError") -> "ValidationResult":
        return cls(valid=False, reason=str(error), error=error)

    @property
    def code(self) -> Optional[str]:
        return self.error.code if self.error is not None else None


@dataclass(slots=True)
class ExecutionSlot:
    """Zero-or-one in-flight dispense operation.

    Only the execution state machine writes to a slot. ``kind`` and the
    timing fields are meaningless while ``active`` is false.
    """

    active: bool = False
    kind: CommandKind = CommandKind.NONE
    start_ms: int = 0
    duration_ms: int = 0
    agitator_engaged: bool = False

    def occupy(
        self,
        kind: CommandKind,
        *,
        start_ms: int,
        duration_ms: int,
    ) -> None:
        self.active = True
        self.kind = kind
        self.start_ms = start_ms
        self.duration_ms = duration_ms
        self.agitator_engaged = False

    def clear(self) -> None:
        self.active = False
        self.kind = CommandKind.NONE
        self.start_ms = 0
        self.duration_ms = 0
        self.agitator_engaged = False

    @property
    def deadline_ms(self) -> int:
        return self.start_ms + self.duration_ms

    def elapsed_ms(self, now_ms: int) -> int:
        return now_ms - self.start_ms

    def is_due(self, now_ms: int) -> bool:
        return self.active and now_ms >= self.deadline_ms


class StockLevel(str, Enum):
    HIGH = "High"
    LOW = "Low"

    @classmethod
    def from_available(cls, available: bool) -> "StockLevel":
        return cls.HIGH if available else cls.LOW


@dataclass(frozen=True, slots=True)
class StockSnapshot:
    """Fresh per-telemetry-tick sample of every stock sensor and the tank."""

    channels: Mapping[str, StockLevel]
    captured_at_ms: int = 0

    def as_dict(self) -> Dict[str, str]:
        return {key: level.value for key, level in self.channels.items()}


@dataclass(frozen=True, slots=True)
class CommandReply:
    ok: bool
    message: str

    @classmethod
    def success(cls, message: str) -> "CommandReply":
        return cls(ok=True, message=message)

    @classmethod
    def error(cls, message: str) -> "CommandReply":
        return cls(ok=False, message=message)

    def render(self) -> str:
        prefix = "SUCCESS" if self.ok else "ERROR"
        return f"{prefix}: {self.message}"
