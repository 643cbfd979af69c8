from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .timing import parse_time

# ok  - finished normally
# dns - did not start
# dnf - did not finish
# dsq - disqualified
# abs - absent
LANE_RESULT_STATUSES = ("ok", "dns", "dnf", "dsq", "abs")
STATUS_OK = "ok"


@dataclass
class LaneResult:
    """Published result of one lane. Only ``ok`` lanes carry a time."""

    status: str = STATUS_OK
    elapsed_ms: Optional[int] = None
    finish_position: Optional[int] = None
    notes: str = ""

    def to_payload(self) -> Dict[str, Any]:
        return {
            "finishPosition": self.finish_position,
            "elapsedMs": self.elapsed_ms,
            "status": self.status,
            "notes": self.notes,
        }


@dataclass
class Lane:
    """A crew or single sculler assigned to a lane.

    ``elapsed_time`` holds the operator's raw entry; it is only turned into a
    duration when positions are computed.
    """

    lane: int
    athlete: str = ""
    crew: List[str] = field(default_factory=list)
    club: str = ""
    elapsed_time: str = ""
    status: str = STATUS_OK
    notes: str = ""
    result: Optional[LaneResult] = None

    def __post_init__(self) -> None:
        self.status = (self.status or STATUS_OK).strip().lower() or STATUS_OK
        if self.status not in LANE_RESULT_STATUSES:
            raise ValueError(f"Unsupported lane result status '{self.status}' for lane {self.lane}")

    @property
    def elapsed_ms(self) -> Optional[int]:
        if self.status != STATUS_OK:
            return None
        return parse_time(self.elapsed_time)

    @property
    def is_timed(self) -> bool:
        return self.elapsed_ms is not None

    @property
    def competitor(self) -> str:
        if self.athlete:
            return self.athlete
        return " / ".join(self.crew)
