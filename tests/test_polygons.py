import numpy as np
import pytest

from visionkit.errors import InvalidPolygonError
from visionkit.geometry.polygons import (
    crop_polygon,
    expand_polygon,
    order_points,
    polygon_area,
    polygon_iou,
    polygon_to_box,
    validate_polygon,
)

SQUARE = [[10, 10], [30, 10], [30, 30], [10, 30]]


def test_validate_polygon_requires_three_points():
    with pytest.raises(InvalidPolygonError):
        validate_polygon([[0, 0], [1, 1]])

    with pytest.raises(InvalidPolygonError):
        validate_polygon([0, 0, 1])

    assert validate_polygon([0, 0, 4, 0, 4, 4]).shape == (3, 2)


def test_order_points_from_shuffled_quad():
    shuffled = [[30, 30], [10, 10], [10, 30], [30, 10]]

    ordered = order_points(shuffled)

    assert ordered.tolist() == SQUARE


def test_order_points_rejects_non_quads():
    with pytest.raises(InvalidPolygonError):
        order_points([[0, 0], [4, 0], [4, 4]])


def test_polygon_to_box_encloses_rotated_polygon():
    diamond = [[20, 0], [40, 20], [20, 40], [0, 20]]

    box = polygon_to_box(diamond)

    assert box.to_xyxy() == (0, 0, 40, 40)


def test_polygon_area_and_iou():
    other = [[20, 10], [40, 10], [40, 30], [20, 30]]

    assert polygon_area(SQUARE) == pytest.approx(400)
    # overlap 10x20=200, union 600
    assert polygon_iou(SQUARE, other) == pytest.approx(200 / 600)
    assert polygon_iou(SQUARE, SQUARE) == pytest.approx(1.0)


def test_self_intersecting_polygon_is_repaired():
    bowtie = [[0, 0], [10, 10], [10, 0], [0, 10]]

    assert polygon_area(bowtie) == pytest.approx(50)


def test_expand_polygon_grows_the_region():
    expanded = expand_polygon(SQUARE, ratio=1.5)

    # distance = 400 * 1.5 / 80 = 7.5 on every side
    box = polygon_to_box(expanded)
    assert box.top_left.x <= 3 and box.top_left.y <= 3
    assert box.bottom_right.x >= 37 and box.bottom_right.y >= 37
    assert polygon_area(expanded) > polygon_area(SQUARE)


def test_crop_polygon_returns_upright_region():
    image = np.zeros((50, 80, 3), dtype=np.uint8)
    image[10:30, 20:70] = 255

    crop = crop_polygon(image, [[20, 10], [70, 10], [70, 30], [20, 30]])

    assert crop.shape == (20, 50, 3)
    assert crop.mean() > 200


def test_crop_polygon_rotates_tall_regions():
    image = np.zeros((100, 100, 3), dtype=np.uint8)

    crop = crop_polygon(image, [[10, 10], [30, 10], [30, 70], [10, 70]])

    assert crop.shape[:2] == (20, 60)


def test_crop_polygon_rejects_degenerate_quads():
    image = np.zeros((10, 10, 3), dtype=np.uint8)

    with pytest.raises(InvalidPolygonError):
        crop_polygon(image, [[1, 1], [5, 1], [5, 1], [1, 1]])
