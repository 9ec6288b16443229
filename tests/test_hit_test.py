import math

from hexaboard.board.geometry import GridSpec, compute_layout, hex_corners
from hexaboard.board.hit_test import CellLocator, pick_cell, point_in_polygon


def test_every_center_picks_its_own_cell() -> None:
    layout = compute_layout(GridSpec(6, 5, 10.0))

    for center in layout.centers:
        assert pick_cell(layout.centers, (center.x, center.y), 10.0) == center.index


def test_points_outside_the_grid_pick_nothing() -> None:
    layout = compute_layout(GridSpec(3, 2, 10.0))

    assert pick_cell(layout.centers, (0.0, 0.0), 10.0) is None
    assert pick_cell(layout.centers, (-50.0, 20.0), 10.0) is None
    assert pick_cell(layout.centers, (layout.bounding_width + 5.0, 10.0), 10.0) is None


def test_gap_between_cells_in_a_row_picks_nothing() -> None:
    layout = compute_layout(GridSpec(3, 2, 10.0))
    w = 10.0 * math.sqrt(3.0)

    assert pick_cell(layout.centers, (2 * w, 12.0), 10.0) is None


def test_point_near_corner_inside_and_outside() -> None:
    layout = compute_layout(GridSpec(3, 2, 10.0))
    center = layout.centers[1]
    corner_x, corner_y = hex_corners(center.x, center.y, 10.0)[0]

    inside = (center.x + (corner_x - center.x) * 0.95, center.y + (corner_y - center.y) * 0.95)
    outside = (center.x + (corner_x - center.x) * 1.05, center.y + (corner_y - center.y) * 1.05)

    assert pick_cell(layout.centers, inside, 10.0) == 1
    assert pick_cell(layout.centers, outside, 10.0) is None


def test_point_in_polygon_square() -> None:
    square = [(0.0, 0.0), (4.0, 0.0), (4.0, 4.0), (0.0, 4.0)]

    assert point_in_polygon((2.0, 2.0), square)
    assert not point_in_polygon((5.0, 2.0), square)
    assert not point_in_polygon((2.0, -1.0), square)


def test_locator_agrees_with_exhaustive_picking() -> None:
    layout = compute_layout(GridSpec(7, 5, 12.0))
    locator = CellLocator(layout)

    step = 1.7
    y = -5.0
    while y < layout.bounding_height + 5.0:
        x = -5.0
        while x < layout.bounding_width + 5.0:
            assert locator.pick((x, y)) == pick_cell(layout.centers, (x, y), 12.0), (x, y)
            x += step
        y += step


def test_locator_limits_candidates_to_neighbourhood() -> None:
    layout = compute_layout(GridSpec(100, 80, 14.0))
    locator = CellLocator(layout)
    center = layout.centers[4321]

    candidates = locator.candidates((center.x, center.y))

    assert len(candidates) <= 9
    assert center in candidates
    assert locator.pick((center.x, center.y)) == 4321
