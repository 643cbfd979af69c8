from __future__ import annotations

import logging
from functools import lru_cache
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, ConfigDict, Field

from rowing_core import (
    CATEGORY_GENDERS,
    DEFAULT_POINT_TABLE,
    LANE_RESULT_STATUSES,
    RACE_STATUSES,
    WEIGHT_CLASSES,
    BoatClassDescriptor,
    CategoryDescriptor,
    DataStore,
    Lane,
    Race,
    ResultsSheet,
    auto_format_time,
    coerce_point_table,
    format_time,
    generate_race_code,
    parse_time,
    sanitise_results_update,
)

app = FastAPI(title="Rowing Federation Results API", version="1.0.0")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

logger = logging.getLogger(__name__)


class CategoryPayload(BaseModel):
    id: Optional[str] = None
    abbreviation: str = ""
    gender: str = "mixed"
    titles: Dict[str, str] = Field(default_factory=dict)

    def descriptor(self) -> CategoryDescriptor:
        return CategoryDescriptor.from_payload(self.model_dump())


class BoatClassPayload(BaseModel):
    id: Optional[str] = None
    code: str = "1X"
    weight_class: str = Field(default="open", alias="weightClass")
    names: Dict[str, str] = Field(default_factory=dict)
    discipline: str = "classic"
    crew_size: int = Field(default=1, alias="crewSize")

    model_config = ConfigDict(populate_by_name=True)

    def descriptor(self) -> BoatClassDescriptor:
        return BoatClassDescriptor.from_payload(self.model_dump(by_alias=True))


class PointTableEntry(BaseModel):
    position: int = Field(ge=1)
    points: int


class LaneEntryPayload(BaseModel):
    lane: int = Field(ge=1)
    status: str = "ok"
    elapsed_time: Optional[str] = Field(default=None, alias="elapsedTime")
    notes: Optional[str] = None
    athlete: str = ""
    crew: List[str] = Field(default_factory=list)
    club: str = ""

    model_config = ConfigDict(populate_by_name=True)


class RacePayload(BaseModel):
    order: int = 0
    phase: str = ""
    distance_meters: Optional[int] = Field(default=None, alias="distanceMeters", ge=0)
    lanes: List[LaneEntryPayload]
    category: Optional[CategoryPayload] = None
    category_id: Optional[str] = Field(default=None, alias="categoryId")
    boat_class: Optional[BoatClassPayload] = Field(default=None, alias="boatClass")
    boat_class_id: Optional[str] = Field(default=None, alias="boatClassId")
    competition_id: Optional[str] = Field(default=None, alias="competitionId")
    custom_point_table: List[PointTableEntry] = Field(default_factory=list, alias="customPointTable")

    model_config = ConfigDict(populate_by_name=True)


class PublishResultsRequest(RacePayload):
    mark_completed: bool = Field(default=True, alias="markCompleted")
    status: Optional[str] = None


class ResultRowModel(BaseModel):
    lane: int
    competitor: str
    club: str
    status: str
    finish_position: Optional[int] = Field(default=None, alias="finishPosition")
    elapsed_ms: Optional[int] = Field(default=None, alias="elapsedMs")
    time: str
    gap: str
    points: int
    notes: str = ""

    model_config = ConfigDict(populate_by_name=True)


class RacePreviewResponse(BaseModel):
    race_code: str = Field(alias="raceCode")
    positions: Dict[int, int]
    points: Dict[int, int]
    rows: List[ResultRowModel]
    summary: str
    html: str

    model_config = ConfigDict(populate_by_name=True)


class PublishResultsResponse(BaseModel):
    race_code: str = Field(alias="raceCode")
    lanes: List[Dict[str, Any]]
    mark_completed: bool = Field(alias="markCompleted")
    status: Optional[str] = None
    race: Dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(populate_by_name=True)


class TimeNormalizeRequest(BaseModel):
    raw: str = ""


class TimeNormalizeResponse(BaseModel):
    formatted: str
    elapsed_ms: Optional[int] = Field(default=None, alias="elapsedMs")
    display: str

    model_config = ConfigDict(populate_by_name=True)


class RaceCodeRequest(BaseModel):
    category: Optional[CategoryPayload] = None
    boat_class: Optional[BoatClassPayload] = Field(default=None, alias="boatClass")

    model_config = ConfigDict(populate_by_name=True)


class RaceCodeResponse(BaseModel):
    code: str


@lru_cache(maxsize=1)
def store() -> DataStore:
    return DataStore()


def _resolve_category(payload: RacePayload) -> Optional[CategoryDescriptor]:
    if payload.category is not None:
        return payload.category.descriptor()
    if payload.category_id:
        category = store().find_category(payload.category_id)
        if category is None:
            logger.warning("Category %s not found; race code uses defaults", payload.category_id)
        return category
    return None


def _resolve_boat_class(payload: RacePayload) -> Optional[BoatClassDescriptor]:
    if payload.boat_class is not None:
        return payload.boat_class.descriptor()
    if payload.boat_class_id:
        boat_class = store().find_boat_class(payload.boat_class_id)
        if boat_class is None:
            logger.warning("Boat class %s not found; race code uses defaults", payload.boat_class_id)
        return boat_class
    return None


def _resolve_point_table(payload: RacePayload) -> Dict[int, int]:
    if payload.custom_point_table:
        return coerce_point_table([entry.model_dump() for entry in payload.custom_point_table])
    if payload.competition_id:
        return store().fetch_point_table(payload.competition_id)
    return {}


def _build_race(payload: RacePayload) -> Race:
    try:
        return Race(
            lanes=[
                Lane(
                    lane=item.lane,
                    athlete=item.athlete.strip(),
                    crew=[member.strip() for member in item.crew if member.strip()],
                    club=item.club.strip(),
                    elapsed_time=item.elapsed_time or "",
                    status=item.status,
                    notes=(item.notes or "").strip(),
                )
                for item in payload.lanes
            ],
            order=payload.order,
            phase=payload.phase,
            distance_meters=payload.distance_meters,
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


def _preview_response(sheet: ResultsSheet) -> RacePreviewResponse:
    return RacePreviewResponse(
        raceCode=sheet.race_code,
        positions=sheet.positions,
        points=sheet.points,
        rows=[
            ResultRowModel(
                lane=row.lane,
                competitor=row.competitor,
                club=row.club,
                status=row.status,
                finishPosition=row.finish_position,
                elapsedMs=row.elapsed_ms,
                time=row.time_display,
                gap=row.gap_display,
                points=row.points,
                notes=row.notes,
            )
            for row in sheet.rows
        ],
        summary=sheet.summary_text,
        html=sheet.html,
    )


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/reference")
def reference() -> dict:
    return {
        "laneStatuses": list(LANE_RESULT_STATUSES),
        "raceStatuses": list(RACE_STATUSES),
        "categoryGenders": list(CATEGORY_GENDERS),
        "weightClasses": list(WEIGHT_CLASSES),
        "defaultPointTable": [
            {"position": position, "points": points}
            for position, points in sorted(DEFAULT_POINT_TABLE.items())
        ],
        "boatClasses": [boat_class.to_payload() for boat_class in store().load_boat_classes()],
    }


@app.post("/times/normalize", response_model=TimeNormalizeResponse)
def normalize_time(payload: TimeNormalizeRequest):
    formatted = auto_format_time(payload.raw) or ""
    elapsed = parse_time(formatted)
    display = format_time(elapsed) if elapsed is not None else "-"
    return TimeNormalizeResponse(formatted=formatted, elapsedMs=elapsed, display=display)


@app.post("/race-code", response_model=RaceCodeResponse)
def race_code(payload: RaceCodeRequest):
    category = payload.category.descriptor() if payload.category else None
    boat_class = payload.boat_class.descriptor() if payload.boat_class else None
    return RaceCodeResponse(code=generate_race_code(category, boat_class))


@app.post("/races/preview", response_model=RacePreviewResponse)
def preview_race(payload: RacePayload):
    race = _build_race(payload)
    sheet = race.score(
        category=_resolve_category(payload),
        boat_class=_resolve_boat_class(payload),
        point_table=_resolve_point_table(payload),
    )
    return _preview_response(sheet)


@app.put(
    "/competitions/{competition_id}/races/{race_id}/results",
    response_model=PublishResultsResponse,
)
def publish_results(competition_id: str, race_id: str, payload: PublishResultsRequest):
    race = _build_race(payload)
    body = race.results_payload(mark_completed=payload.mark_completed)

    try:
        updates = sanitise_results_update(body["lanes"])
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    if payload.status:
        if payload.status not in RACE_STATUSES:
            raise HTTPException(status_code=400, detail=f"Unknown race status '{payload.status}'")
        body["status"] = payload.status

    code = generate_race_code(_resolve_category(payload), _resolve_boat_class(payload))

    try:
        published = store().publish_results(competition_id, race_id, body)
    except RuntimeError as exc:
        logger.exception("Failed to publish results for race %s", race_id)
        raise HTTPException(status_code=502, detail=str(exc)) from exc

    race.apply_results(updates, status=payload.status, mark_completed=payload.mark_completed)

    return PublishResultsResponse(
        raceCode=code,
        lanes=body["lanes"],
        markCompleted=body["markCompleted"],
        status=race.status,
        race=published,
    )
