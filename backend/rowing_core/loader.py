"""Reference data and results publishing against the federation API."""

from __future__ import annotations

import csv
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import httpx

from .points import coerce_point_table
from .race_code import BoatClassDescriptor, CategoryDescriptor


logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0


class DataStore:
    """Loads categories, boat classes and point tables; publishes race results.

    When ``FEDERATION_API_URL`` is not set, boat classes come from the bundled
    CSV and no categories or custom point tables are available.
    """

    def __init__(
        self,
        data_dir: Path | None = None,
        api_url: str | None = None,
        api_token: str | None = None,
        timeout: float | None = None,
    ) -> None:
        self.data_dir = data_dir or (Path(__file__).parent / "data")
        self.boat_classes_path = self.data_dir / "boat_classes.csv"
        self.api_url = (api_url if api_url is not None else os.getenv("FEDERATION_API_URL", "")).rstrip("/")
        self.api_token = api_token if api_token is not None else os.getenv("FEDERATION_API_TOKEN", "")
        if timeout is None:
            try:
                timeout = float(os.getenv("FEDERATION_API_TIMEOUT", DEFAULT_TIMEOUT))
            except ValueError:
                timeout = DEFAULT_TIMEOUT
        self.timeout = timeout
        self._boat_classes: List[BoatClassDescriptor] | None = None
        self._categories: List[CategoryDescriptor] | None = None

    @property
    def api_configured(self) -> bool:
        return bool(self.api_url)

    # ------------------------------------------------------------------
    # Reference data

    def load_boat_classes(self) -> List[BoatClassDescriptor]:
        if self._boat_classes is not None:
            return self._boat_classes

        boat_classes: List[BoatClassDescriptor] = []
        if self.api_configured:
            try:
                boat_classes = self._boat_classes_from_api()
            except RuntimeError as exc:
                logger.warning("Boat class lookup failed (%s); using bundled defaults", exc)
        if not boat_classes:
            boat_classes = self._boat_classes_from_file()

        self._boat_classes = boat_classes
        return self._boat_classes

    def load_categories(self) -> List[CategoryDescriptor]:
        if self._categories is not None:
            return self._categories

        categories: List[CategoryDescriptor] = []
        if self.api_configured:
            try:
                rows = self._get_json("/api/categories", params={"includeInactive": "true"})
            except RuntimeError as exc:
                logger.warning("Category lookup failed (%s)", exc)
                rows = []
            if isinstance(rows, list):
                categories = [CategoryDescriptor.from_payload(row) for row in rows if isinstance(row, dict)]
            else:
                logger.warning("Category lookup returned unexpected payload: %s", type(rows))

        self._categories = categories
        return self._categories

    def find_category(self, reference: str | None) -> Optional[CategoryDescriptor]:
        key = (reference or "").strip()
        if not key:
            return None
        for category in self.load_categories():
            if category.id == key or category.abbreviation.upper() == key.upper():
                return category
        return None

    def find_boat_class(self, reference: str | None) -> Optional[BoatClassDescriptor]:
        key = (reference or "").strip()
        if not key:
            return None
        for boat_class in self.load_boat_classes():
            if boat_class.id == key or boat_class.code.upper() == key.upper():
                return boat_class
        return None

    def fetch_point_table(self, competition_id: str) -> Dict[int, int]:
        """Return the competition's custom point table, or ``{}`` for the default."""

        if not (self.api_configured and competition_id):
            return {}
        try:
            payload = self._get_json(f"/api/rankings/competition/{competition_id}/available-systems")
        except RuntimeError as exc:
            logger.warning("Ranking system lookup for %s failed (%s); using default points", competition_id, exc)
            return {}

        systems = payload.get("availableSystems") if isinstance(payload, dict) else None
        if not isinstance(systems, list) or not systems or not isinstance(systems[0], dict):
            return {}
        return coerce_point_table(systems[0].get("customPointTable"))

    # ------------------------------------------------------------------
    # Results publishing

    def publish_results(self, competition_id: str, race_id: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Commit a race's results. Raises ``RuntimeError`` when the API rejects them."""

        if not self.api_configured:
            raise RuntimeError("Federation API is not configured")

        endpoint = self._endpoint(f"/api/competitions/{competition_id}/races/{race_id}/results")
        try:
            with httpx.Client(timeout=self.timeout) as client:
                response = client.put(endpoint, json=payload, headers=self._headers())
                response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            detail = self._extract_detail(exc.response) or str(exc)
            raise RuntimeError(f"Failed to publish results for race {race_id}: {detail}") from exc
        except httpx.HTTPError as exc:
            raise RuntimeError(f"Failed to publish results for race {race_id}: {exc}") from exc

        logger.info("Published results for race %s (%d lanes)", race_id, len(payload.get("lanes", [])))
        try:
            body = response.json()
        except ValueError:
            return {}
        return body if isinstance(body, dict) else {}

    # ------------------------------------------------------------------
    # Helpers

    def _boat_classes_from_api(self) -> List[BoatClassDescriptor]:
        rows = self._get_json("/api/boat-classes", params={"includeInactive": "true"})
        if not isinstance(rows, list):
            raise RuntimeError("Unexpected payload from boat classes endpoint")
        return [BoatClassDescriptor.from_payload(row) for row in rows if isinstance(row, dict)]

    def _boat_classes_from_file(self) -> List[BoatClassDescriptor]:
        if not self.boat_classes_path.exists():
            raise FileNotFoundError(f"Boat class file not found: {self.boat_classes_path}")

        boat_classes: List[BoatClassDescriptor] = []
        with self.boat_classes_path.open(newline="", encoding="utf-8") as fh:
            for row in csv.DictReader(fh):
                code = (row.get("code") or "").strip()
                if not code:
                    continue
                try:
                    crew_size = int(row.get("crew_size") or 1)
                except ValueError:
                    crew_size = 1
                names = {
                    lang: (row.get(f"name_{lang}") or "").strip()
                    for lang in ("en", "fr")
                    if (row.get(f"name_{lang}") or "").strip()
                }
                boat_classes.append(
                    BoatClassDescriptor(
                        code=code,
                        weight_class=(row.get("weight_class") or "open").strip(),
                        names=names,
                        discipline=(row.get("discipline") or "classic").strip(),
                        crew_size=crew_size,
                    )
                )
        return boat_classes

    def _get_json(self, path: str, params: Dict[str, Any] | None = None) -> Any:
        endpoint = self._endpoint(path)
        try:
            with httpx.Client(timeout=self.timeout) as client:
                response = client.get(endpoint, params=params or {}, headers=self._headers())
                response.raise_for_status()
                return response.json()
        except httpx.HTTPError as exc:
            raise RuntimeError(f"GET {path} failed: {exc}") from exc
        except ValueError as exc:
            raise RuntimeError(f"GET {path} returned invalid JSON") from exc

    def _endpoint(self, path: str) -> str:
        return f"{self.api_url}{path}"

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.api_token:
            headers["Authorization"] = f"Bearer {self.api_token}"
        return headers

    @staticmethod
    def _extract_detail(response: httpx.Response | None) -> str | None:
        if response is None:
            return None
        try:
            payload = response.json()
        except ValueError:
            text = (response.text or "").strip()
            return text or None

        if isinstance(payload, dict):
            for key in ("message", "detail", "error"):
                value = payload.get(key)
                if isinstance(value, str) and value.strip():
                    return value.strip()
        return None
