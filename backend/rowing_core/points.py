"""Competition points awarded per finish position."""

from __future__ import annotations

import logging
from types import MappingProxyType
from typing import Any, Dict, Iterable, Mapping

logger = logging.getLogger(__name__)

DEFAULT_POINT_TABLE: Mapping[int, int] = MappingProxyType(
    {1: 20, 2: 12, 3: 8, 4: 6, 5: 4, 6: 3, 7: 2, 8: 1}
)


def points_for_position(
    position: int | None,
    custom_table: Mapping[int, int] | None = None,
    default_table: Mapping[int, int] = DEFAULT_POINT_TABLE,
) -> int:
    """Return the points for ``position``.

    A competition's own table wins for the positions it lists; every other
    position is looked up in ``default_table``. Unknown positions score 0.
    """

    if position is None or position < 1:
        return 0
    if custom_table and position in custom_table:
        return int(custom_table[position])
    return int(default_table.get(position, 0))


def coerce_point_table(raw: Mapping[Any, Any] | Iterable[Any] | None) -> Dict[int, int]:
    """Normalise a point table from the ranking service.

    Accepts the ``customPointTable`` list shape (``[{"position": 1, "points": 20}]``)
    or a mapping whose keys may be strings after a JSON round trip. Malformed
    rows are skipped.
    """

    if not raw:
        return {}

    if isinstance(raw, Mapping):
        pairs: Iterable[tuple[Any, Any]] = raw.items()
    else:
        pairs = (
            (row.get("position"), row.get("points"))
            for row in raw
            if isinstance(row, Mapping)
        )

    table: Dict[int, int] = {}
    for position, points in pairs:
        try:
            position_value = int(position)
            points_value = int(points)
        except (TypeError, ValueError):
            logger.debug("Skipping malformed point table row (%r, %r)", position, points)
            continue
        if position_value < 1:
            continue
        table[position_value] = points_value
    return table


__all__ = ["DEFAULT_POINT_TABLE", "coerce_point_table", "points_for_position"]
