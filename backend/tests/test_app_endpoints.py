from typing import Any, Dict, List

import pytest
from fastapi import HTTPException

from app import main as main_module
from app.main import (
    PublishResultsRequest,
    RaceCodeRequest,
    RacePayload,
    TimeNormalizeRequest,
    normalize_time,
    preview_race,
    publish_results,
    race_code,
    reference,
)
from rowing_core import DataStore


class _RecordingStore(DataStore):
    def __init__(self, point_table: Dict[int, int] | None = None) -> None:
        super().__init__(api_url="", api_token="")
        self.point_table = point_table or {}
        self.published: List[Dict[str, Any]] = []

    def fetch_point_table(self, competition_id: str) -> Dict[int, int]:
        return dict(self.point_table)

    def publish_results(self, competition_id: str, race_id: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        self.published.append({"competitionId": competition_id, "raceId": race_id, "payload": payload})
        return {"_id": race_id, "status": "completed" if payload.get("markCompleted") else "in_progress"}


class _FailingStore(_RecordingStore):
    def publish_results(self, competition_id: str, race_id: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        raise RuntimeError("Failed to publish results for race r-1: upstream down")


@pytest.fixture
def recording_store(monkeypatch: pytest.MonkeyPatch) -> _RecordingStore:
    store = _RecordingStore(point_table={1: 100})
    monkeypatch.setattr(main_module, "store", lambda: store)
    return store


def _race_body(**extra: Any) -> Dict[str, Any]:
    body: Dict[str, Any] = {
        "order": 2,
        "phase": "Heat 1",
        "category": {"abbreviation": "J18", "gender": "men", "titles": {"en": "Junior 18 Men"}},
        "boatClass": {"code": "LM2x", "weightClass": "open"},
        "lanes": [
            {"lane": 3, "elapsedTime": "6:58.40", "athlete": "Crew C", "club": "RCA"},
            {"lane": 1, "elapsedTime": "6:58.40", "athlete": "Crew A", "club": "SNB"},
            {"lane": 2, "elapsedTime": "7:02.00", "status": "DSQ", "athlete": "Crew B", "club": "AVM"},
            {"lane": 4, "elapsedTime": "7:10.1", "athlete": "Crew D", "club": "AVM", "notes": " late start "},
        ],
    }
    body.update(extra)
    return body


def test_normalize_time() -> None:
    result = normalize_time(TimeNormalizeRequest(raw="22360"))
    assert result.formatted == "02:23.60"
    assert result.elapsed_ms == 143_600
    assert result.display == "2:23.60"

    untimed = normalize_time(TimeNormalizeRequest(raw="1:75.00"))
    assert untimed.elapsed_ms is None
    assert untimed.display == "-"


def test_race_code_endpoint() -> None:
    payload = RaceCodeRequest.model_validate(
        {"category": {"abbreviation": "SW", "gender": "women"}, "boatClass": {"code": "LW1X"}}
    )
    assert race_code(payload).code == "LW1X"
    assert race_code(RaceCodeRequest()).code == "Mix1X"


def test_reference_lists_statuses_and_boat_classes(recording_store: _RecordingStore) -> None:
    data = reference()
    assert data["laneStatuses"] == ["ok", "dns", "dnf", "dsq", "abs"]
    assert data["defaultPointTable"][0] == {"position": 1, "points": 20}
    assert data["raceStatuses"][-1] == "cancelled"
    assert "lightweight" in data["weightClasses"]
    assert data["categoryGenders"] == ["men", "women", "mixed"]
    assert any(boat["code"] == "LW1X" for boat in data["boatClasses"])


def test_preview_race(recording_store: _RecordingStore) -> None:
    response = preview_race(RacePayload.model_validate(_race_body()))

    assert response.race_code == "J18LM2x"
    assert response.positions == {1: 1, 3: 2, 4: 3}
    assert response.points == {1: 20, 3: 12, 4: 8, 2: 0}
    assert [row.lane for row in response.rows] == [1, 3, 4, 2]
    assert response.rows[2].gap == "+11.70"
    assert response.rows[3].time == "DSQ"


def test_preview_uses_competition_point_table(recording_store: _RecordingStore) -> None:
    response = preview_race(RacePayload.model_validate(_race_body(competitionId="comp-1")))
    assert response.points[1] == 100
    assert response.points[3] == 12


def test_preview_custom_table_in_request_wins(recording_store: _RecordingStore) -> None:
    body = _race_body(competitionId="comp-1", customPointTable=[{"position": 1, "points": 7}])
    response = preview_race(RacePayload.model_validate(body))
    assert response.points[1] == 7


def test_preview_resolves_reference_ids(recording_store: _RecordingStore) -> None:
    body = _race_body(boatClassId="LW1X", categoryId="unknown")
    body.pop("category")
    body.pop("boatClass")
    response = preview_race(RacePayload.model_validate(body))
    assert response.race_code == "LMix1X"


def test_preview_rejects_duplicate_lanes(recording_store: _RecordingStore) -> None:
    body = _race_body()
    body["lanes"].append({"lane": 1, "elapsedTime": "7:00.00"})
    with pytest.raises(HTTPException) as exc:
        preview_race(RacePayload.model_validate(body))
    assert exc.value.status_code == 400


def test_publish_results_sends_put_body(recording_store: _RecordingStore) -> None:
    payload = PublishResultsRequest.model_validate(_race_body())

    response = publish_results("comp-1", "race-7", payload)

    assert response.race_code == "J18LM2x"
    assert response.mark_completed is True
    assert response.race == {"_id": "race-7", "status": "completed"}

    sent = recording_store.published[0]
    assert sent["competitionId"] == "comp-1"
    assert sent["raceId"] == "race-7"
    lanes = {item["lane"]: item["result"] for item in sent["payload"]["lanes"]}
    assert lanes[1] == {"finishPosition": 1, "elapsedMs": 418_400, "status": "ok", "notes": ""}
    assert lanes[3]["finishPosition"] == 2
    assert lanes[2] == {"finishPosition": None, "elapsedMs": None, "status": "dsq", "notes": ""}
    assert lanes[4]["notes"] == "late start"
    assert response.status == "completed"


def test_publish_results_matches_preview(recording_store: _RecordingStore) -> None:
    preview = preview_race(RacePayload.model_validate(_race_body()))
    publish_results("comp-1", "race-7", PublishResultsRequest.model_validate(_race_body()))

    sent = recording_store.published[0]["payload"]["lanes"]
    published_positions = {
        item["lane"]: item["result"]["finishPosition"]
        for item in sent
        if item["result"]["finishPosition"] is not None
    }
    assert published_positions == preview.positions


def test_publish_results_rejects_unknown_statuses(recording_store: _RecordingStore) -> None:
    body = _race_body()
    body["lanes"][0]["status"] = "late"
    with pytest.raises(HTTPException) as exc:
        publish_results("comp-1", "race-7", PublishResultsRequest.model_validate(body))
    assert exc.value.status_code == 400

    with pytest.raises(HTTPException) as exc:
        publish_results("comp-1", "race-7", PublishResultsRequest.model_validate(_race_body(status="done")))
    assert exc.value.status_code == 400
    assert recording_store.published == []


def test_publish_results_with_explicit_status(recording_store: _RecordingStore) -> None:
    payload = PublishResultsRequest.model_validate(_race_body(status="in_progress", markCompleted=False))
    response = publish_results("comp-1", "race-7", payload)
    assert response.status == "in_progress"
    assert recording_store.published[0]["payload"]["markCompleted"] is False


def test_publish_results_upstream_failure(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(main_module, "store", lambda: _FailingStore())
    with pytest.raises(HTTPException) as exc:
        publish_results("comp-1", "r-1", PublishResultsRequest.model_validate(_race_body()))
    assert exc.value.status_code == 502
    assert "upstream down" in exc.value.detail


@pytest.mark.parametrize(
    "lanes",
    [
        [{"lane": 9, "elapsedTime": "7:00.00"}],
        [{"lane": 1, "elapsedTime": "7:00.00"}, {"lane": 2, "elapsedTime": "7:01.00", "status": "late"}],
    ],
)
def test_preview_and_publish_reject_the_same_lanes(recording_store: _RecordingStore, lanes) -> None:
    body = _race_body(lanes=lanes)

    with pytest.raises(HTTPException) as preview_exc:
        preview_race(RacePayload.model_validate(body))
    with pytest.raises(HTTPException) as publish_exc:
        publish_results("comp-1", "race-7", PublishResultsRequest.model_validate(body))

    assert preview_exc.value.status_code == publish_exc.value.status_code == 400
    assert recording_store.published == []
