from __future__ import annotations

import logging
from dataclasses import dataclass, field
from html import escape
from typing import Any, Dict, Iterable, List, Mapping, Optional

from .lane import LANE_RESULT_STATUSES, STATUS_OK, Lane, LaneResult
from .points import points_for_position
from .race_code import BoatClassDescriptor, CategoryDescriptor, generate_race_code
from .timing import NOT_TIMED, format_delta, format_time

logger = logging.getLogger(__name__)

RACE_STATUSES = ("scheduled", "in_progress", "completed", "cancelled")
MAX_LANES = 8


@dataclass
class ResultRow:
    lane: int
    competitor: str
    club: str
    status: str
    finish_position: int | None
    elapsed_ms: int | None
    time_display: str
    gap_display: str
    points: int
    notes: str = ""


@dataclass
class ResultsSheet:
    race_code: str = ""
    rows: List[ResultRow] = field(default_factory=list)
    summary_text: str = ""
    html: str = ""

    @property
    def positions(self) -> Dict[int, int]:
        return {row.lane: row.finish_position for row in self.rows if row.finish_position is not None}

    @property
    def points(self) -> Dict[int, int]:
        return {row.lane: row.points for row in self.rows}


def compute_positions(lanes: Iterable[Lane]) -> Dict[int, int]:
    """Map lane number to finish position for every validly timed ``ok`` lane.

    Equal times are ordered by lane number, so repeated calls on the same
    lanes always agree.
    """

    candidates = []
    for lane in lanes:
        elapsed = lane.elapsed_ms
        if elapsed is None:
            logger.debug("Lane %s not ranked (status=%s)", lane.lane, lane.status)
            continue
        candidates.append((elapsed, lane.lane))
    candidates.sort()
    return {lane_number: index for index, (_, lane_number) in enumerate(candidates, start=1)}


def _parse_lane_number(raw: Any) -> int:
    value = 0
    if not isinstance(raw, bool):
        try:
            value = int(str(raw).strip())
        except ValueError:
            value = 0
    if not 1 <= value <= MAX_LANES:
        raise ValueError(f"Lane numbers must be between 1 and {MAX_LANES}")
    return value


def sanitise_results_update(lanes: Any) -> List[Dict[str, Any]]:
    """Validate an incoming results body and return normalised lane updates.

    Each item may carry its result fields either nested under ``result`` or
    flat. Only fields that are present are returned, so a partial update
    leaves the rest of a stored result untouched.
    """

    if not isinstance(lanes, list):
        raise ValueError("Results payload must be an array")

    updates: List[Dict[str, Any]] = []
    for item in lanes:
        if not item:
            continue
        if not isinstance(item, Mapping):
            raise ValueError("Each lane result must be an object")

        lane_number = _parse_lane_number(item.get("lane", item.get("laneNumber")))
        source = item.get("result") if isinstance(item.get("result"), Mapping) else item
        result: Dict[str, Any] = {}

        status = source.get("status")
        if status:
            if status not in LANE_RESULT_STATUSES:
                raise ValueError("Unsupported lane result status")
            result["status"] = status

        finish_position = source.get("finishPosition")
        if finish_position is not None:
            if isinstance(finish_position, bool) or not isinstance(finish_position, int) or finish_position < 1:
                raise ValueError("Finish position must be a positive integer")
            result["finishPosition"] = finish_position

        elapsed_ms = source.get("elapsedMs")
        if elapsed_ms is not None:
            if isinstance(elapsed_ms, bool) or not isinstance(elapsed_ms, (int, float)) or elapsed_ms < 0:
                raise ValueError("Elapsed time must be zero or greater")
            if isinstance(elapsed_ms, float) and not elapsed_ms.is_integer():
                raise ValueError("Elapsed time must be a whole number of milliseconds")
            result["elapsedMs"] = int(elapsed_ms)

        notes = source.get("notes")
        if notes:
            result["notes"] = str(notes).strip()

        updates.append({"lane": lane_number, "result": result})

    return updates


class Race:
    def __init__(
        self,
        lanes: Iterable[Lane] | None = None,
        order: int = 0,
        phase: str = "",
        distance_meters: int | None = None,
        status: str = "scheduled",
    ) -> None:
        self.order = order
        self.phase = phase
        self.distance_meters = distance_meters
        self.status = status
        self.lanes: List[Lane] = []
        for lane in lanes or []:
            self.add_lane(lane)

    def add_lane(self, lane: Lane) -> None:
        if isinstance(lane.lane, bool) or not 1 <= lane.lane <= MAX_LANES:
            raise ValueError(f"Lane numbers must be between 1 and {MAX_LANES}")
        if any(existing.lane == lane.lane for existing in self.lanes):
            raise ValueError(f"Lane {lane.lane} is already assigned in this race")
        if len(self.lanes) >= MAX_LANES:
            raise ValueError(f"A race cannot have more than {MAX_LANES} lanes")
        self.lanes.append(lane)

    def lane(self, number: int) -> Optional[Lane]:
        for lane in self.lanes:
            if lane.lane == number:
                return lane
        return None

    def start_list(self) -> List[Lane]:
        return sorted(self.lanes, key=lambda lane: lane.lane)

    def compute_positions(self) -> Dict[int, int]:
        return compute_positions(self.lanes)

    def score(
        self,
        category: CategoryDescriptor | None = None,
        boat_class: BoatClassDescriptor | None = None,
        point_table: Mapping[int, int] | None = None,
    ) -> ResultsSheet:
        race_code = generate_race_code(category, boat_class)
        if not self.lanes:
            return ResultsSheet(race_code=race_code)

        positions = self.compute_positions()
        winner_ms = next(
            (lane.elapsed_ms for lane in self.lanes if positions.get(lane.lane) == 1),
            None,
        )

        rows: List[ResultRow] = []
        for lane in self.lanes:
            position = positions.get(lane.lane)
            elapsed = lane.elapsed_ms
            if lane.status != STATUS_OK:
                time_display = lane.status.upper()
            elif elapsed is not None:
                time_display = format_time(elapsed)
            else:
                time_display = NOT_TIMED

            gap_display = ""
            if position is not None and position > 1 and winner_ms is not None:
                gap = format_delta(elapsed - winner_ms)
                gap_display = f"+{gap}" if gap else ""

            rows.append(
                ResultRow(
                    lane=lane.lane,
                    competitor=lane.competitor,
                    club=lane.club,
                    status=lane.status,
                    finish_position=position,
                    elapsed_ms=elapsed,
                    time_display=time_display,
                    gap_display=gap_display,
                    points=points_for_position(position, point_table),
                    notes=lane.notes,
                )
            )

        rows.sort(key=lambda row: (row.finish_position is None, row.finish_position or 0, row.lane))

        summary_lines = [f"{race_code}  Race {self.order} {self.phase}".rstrip(), "Pos  Lane  Club  Time        Pts"]
        for row in rows:
            summary_lines.append(
                f"{str(row.finish_position or '-').ljust(5)}{str(row.lane).ljust(6)}"
                f"{row.club[:5].ljust(6)}{(row.time_display + ' ' + row.gap_display).strip().ljust(12)}"
                f"{row.points}"
            )

        return ResultsSheet(
            race_code=race_code,
            rows=rows,
            summary_text="\n".join(summary_lines),
            html=self._build_html(race_code, rows),
        )

    def results_payload(self, mark_completed: bool = True) -> Dict[str, Any]:
        """Build the body committed with ``PUT .../races/{id}/results``."""

        positions = self.compute_positions()
        lanes = []
        for lane in self.lanes:
            result = LaneResult(
                status=lane.status,
                elapsed_ms=lane.elapsed_ms,
                finish_position=positions.get(lane.lane),
                notes=lane.notes.strip(),
            )
            lanes.append({"lane": lane.lane, "result": result.to_payload()})
        return {"lanes": lanes, "markCompleted": mark_completed}

    def apply_results(
        self,
        updates: List[Dict[str, Any]],
        status: str | None = None,
        mark_completed: bool = False,
    ) -> None:
        """Merge sanitised lane updates into the stored lane results."""

        for update in updates:
            lane = self.lane(update["lane"])
            if lane is None:
                raise ValueError(f"Lane {update['lane']} is not assigned in this race")
            current = lane.result or LaneResult()
            fields = update["result"]
            status = fields.get("status", current.status)
            elapsed_ms = fields.get("elapsedMs", current.elapsed_ms)
            finish_position = fields.get("finishPosition", current.finish_position)
            # Only timed ok lanes keep a time and a finish position.
            if status != STATUS_OK:
                elapsed_ms = None
            if elapsed_ms is None:
                finish_position = None
            lane.result = LaneResult(
                status=status,
                elapsed_ms=elapsed_ms,
                finish_position=finish_position,
                notes=fields.get("notes", current.notes),
            )

        if status and status in RACE_STATUSES:
            self.status = status
        elif mark_completed:
            self.status = "completed"

    @staticmethod
    def _build_html(race_code: str, rows: List[ResultRow]) -> str:
        def td(value) -> str:
            display = "" if value is None else escape(str(value))
            return f"<td>{display}</td>"

        table = [
            f"<table id='results' data-race-code='{escape(race_code)}'>",
            "<tr>" + "".join(f"<th>{header}</th>" for header in ["Rank", "Lane", "Club", "Name", "Time", "Points"]) + "</tr>",
        ]
        for row in rows:
            time_cell = escape(row.time_display)
            if row.gap_display:
                time_cell = f"{time_cell}<br>{escape(row.gap_display)}"
            table.append(
                "<tr>"
                + td(row.finish_position or "-")
                + td(row.lane)
                + td(row.club or "-")
                + td(row.competitor)
                + f"<td>{time_cell}</td>"
                + td(row.points)
                + "</tr>"
            )
        table.append("</table>")

        style = """<style>
            table {border-collapse: collapse;}
            th, td {
                font-size: 12px;
                border: 1px solid black;
                text-align: center;
                padding: 2px;
            }
            table#results tr:nth-child(odd) td{background-color: #f2f2f2;}
        </style>"""

        return "<html><head>" + style + "</head><body>" + f"<h2>{escape(race_code)}</h2>" + "".join(table) + "</body></html>"
