"""Race results and points engine used by the federation API."""

from .lane import LANE_RESULT_STATUSES, Lane, LaneResult
from .loader import DataStore
from .points import DEFAULT_POINT_TABLE, coerce_point_table, points_for_position
from .race import RACE_STATUSES, Race, ResultsSheet, compute_positions, sanitise_results_update
from .race_code import CATEGORY_GENDERS, WEIGHT_CLASSES, BoatClassDescriptor, CategoryDescriptor, generate_race_code
from .timing import auto_format_time, format_delta, format_time, parse_time

__all__ = [
    "BoatClassDescriptor",
    "CATEGORY_GENDERS",
    "CategoryDescriptor",
    "DEFAULT_POINT_TABLE",
    "DataStore",
    "LANE_RESULT_STATUSES",
    "Lane",
    "LaneResult",
    "RACE_STATUSES",
    "Race",
    "ResultsSheet",
    "WEIGHT_CLASSES",
    "auto_format_time",
    "coerce_point_table",
    "compute_positions",
    "format_delta",
    "format_time",
    "generate_race_code",
    "parse_time",
    "points_for_position",
    "sanitise_results_update",
]
