"""Command types produced by the parser."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional


class Action(str, Enum):
    """What the owner asked for."""

    SCHEDULE = "schedule"   # Book an appointment
    CANCEL = "cancel"       # Cancel an existing appointment
    VIEW = "view"           # Show the agenda
    BLOCK = "block"         # Mark time as unavailable
    HELP = "help"           # List available commands

    # Fallback
    UNKNOWN = "unknown"


class Timeframe(str, Enum):
    """Agenda range requested by a view command."""

    DAY = "day"
    WEEK = "week"
    MONTH = "month"


@dataclass
class ParsedCommand:
    """Structured reading of one chat utterance."""

    action: Action
    confidence: float  # 0.0 - 1.0, fixed per pattern family
    raw_text: str = ""

    # Entities
    patient_name_raw: Optional[str] = None    # "Maria Da Silva"
    proposed_datetime: Optional[datetime] = None
    has_time: bool = False
    invalid_date: bool = False                # "32/15", "25h"
    block_end: Optional[datetime] = None
    timeframe: Optional[Timeframe] = None

    @property
    def is_unknown(self) -> bool:
        """Check if no pattern matched."""
        return self.action == Action.UNKNOWN

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "action": self.action.value,
            "confidence": self.confidence,
            "raw_text": self.raw_text,
            "patient_name_raw": self.patient_name_raw,
            "proposed_datetime": (
                self.proposed_datetime.isoformat() if self.proposed_datetime else None
            ),
            "has_time": self.has_time,
            "invalid_date": self.invalid_date,
            "block_end": self.block_end.isoformat() if self.block_end else None,
            "timeframe": self.timeframe.value if self.timeframe else None,
        }

    @classmethod
    def unknown(cls, raw_text: str) -> "ParsedCommand":
        """Command for an utterance no pattern recognized."""
        return cls(action=Action.UNKNOWN, confidence=0.0, raw_text=raw_text)
