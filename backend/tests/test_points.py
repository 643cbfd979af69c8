import pytest

from rowing_core import DEFAULT_POINT_TABLE, coerce_point_table, points_for_position


@pytest.mark.parametrize(
    "position, expected",
    [(1, 20), (2, 12), (3, 8), (4, 6), (5, 4), (6, 3), (7, 2), (8, 1), (9, 0), (12, 0), (0, 0), (-1, 0), (None, 0)],
)
def test_default_point_table(position, expected: int) -> None:
    assert points_for_position(position) == expected


def test_custom_table_overrides_only_listed_positions() -> None:
    custom = {3: 50}
    assert points_for_position(3, custom) == 50
    assert points_for_position(1, custom) == 20
    assert points_for_position(9, custom) == 0
    assert DEFAULT_POINT_TABLE[3] == 8


def test_custom_table_extends_beyond_default() -> None:
    assert points_for_position(10, {10: 1}) == 1


def test_default_table_can_be_injected() -> None:
    assert points_for_position(2, default_table={1: 3, 2: 2, 3: 1}) == 2
    assert points_for_position(4, default_table={1: 3, 2: 2, 3: 1}) == 0


def test_default_table_is_read_only() -> None:
    with pytest.raises(TypeError):
        DEFAULT_POINT_TABLE[1] = 99  # type: ignore[index]


def test_coerce_point_table_from_ranking_service_rows() -> None:
    rows = [
        {"position": 1, "points": 30},
        {"position": "2", "points": "15"},
        {"position": None, "points": 5},
        {"position": 0, "points": 5},
        "garbage",
    ]
    assert coerce_point_table(rows) == {1: 30, 2: 15}


def test_coerce_point_table_from_mapping() -> None:
    assert coerce_point_table({"1": 25, 2: "18"}) == {1: 25, 2: 18}
    assert coerce_point_table(None) == {}
    assert coerce_point_table([]) == {}
