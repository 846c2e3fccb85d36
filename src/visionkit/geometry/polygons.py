"""
Polygons as emitted by text detection models: ordered ``(x, y)`` pixel points.
"""

import cv2
import numpy as np
import pyclipper
from shapely.geometry import Polygon
from shapely.validation import make_valid

from visionkit.errors import InvalidPolygonError
from visionkit.types import Box2D, Point2D


def validate_polygon(points) -> np.ndarray:
    try:
        polygon = np.asarray(points, dtype=np.float32).reshape(-1, 2)
    except ValueError as e:
        raise InvalidPolygonError(f"Polygon must be a sequence of (x, y) points: {e}")

    if len(polygon) < 3:
        raise InvalidPolygonError(
            f"Polygon needs at least 3 points, got {len(polygon)}",
            details={"num_points": len(polygon)},
        )
    if not np.all(np.isfinite(polygon)):
        raise InvalidPolygonError("Polygon coordinates must be finite")
    return polygon


def _shape(polygon: np.ndarray) -> Polygon:
    shape = Polygon(polygon)
    if not shape.is_valid:
        # self-intersecting outlines
        shape = make_valid(shape)
    return shape


def order_points(quad) -> np.ndarray:
    """
    Order a quadrilateral as top-left, top-right, bottom-right, bottom-left.
    """
    quad = validate_polygon(quad)
    if len(quad) != 4:
        raise InvalidPolygonError(f"Expected 4 points, got {len(quad)}")

    points = sorted(quad.tolist(), key=lambda p: p[0])
    left, right = points[:2], points[2:]
    top_left, bottom_left = sorted(left, key=lambda p: p[1])
    top_right, bottom_right = sorted(right, key=lambda p: p[1])
    return np.asarray([top_left, top_right, bottom_right, bottom_left], dtype=np.float32)


def polygon_to_box(polygon) -> Box2D:
    polygon = validate_polygon(polygon)
    left = int(np.floor(np.min(polygon[:, 0])))
    right = int(np.ceil(np.max(polygon[:, 0])))
    top = int(np.floor(np.min(polygon[:, 1])))
    bottom = int(np.ceil(np.max(polygon[:, 1])))

    return Box2D(
        top_left=Point2D(x=max(left, 0), y=max(top, 0)),
        bottom_right=Point2D(x=max(right, 0), y=max(bottom, 0)),
    )


def polygon_area(polygon) -> float:
    return float(_shape(validate_polygon(polygon)).area)


def polygon_iou(polygon_a, polygon_b) -> float:
    a = _shape(validate_polygon(polygon_a))
    b = _shape(validate_polygon(polygon_b))
    union = a.union(b).area
    if union <= 0:
        return 0.0
    return float(a.intersection(b).area / union)


def expand_polygon(polygon, ratio: float) -> np.ndarray:
    """
    Grow a polygon outward by ``area * ratio / perimeter`` pixels.

    This is the "unclip" step of Differentiable Binarization: the network
    predicts shrunk text kernels, and the offset restores the full region.
    """
    polygon = validate_polygon(polygon)
    shape = Polygon(polygon)
    if shape.length == 0:
        return polygon
    distance = shape.area * ratio / shape.length
    offset = pyclipper.PyclipperOffset()
    offset.AddPath(polygon.tolist(), pyclipper.JT_ROUND, pyclipper.ET_CLOSEDPOLYGON)
    expanded = offset.Execute(distance)
    if not expanded:
        return polygon
    return np.asarray(expanded[0], dtype=np.float32).reshape(-1, 2)


def crop_polygon(image: np.ndarray, polygon) -> np.ndarray:
    """
    Warp a quadrilateral region of ``image`` into an upright rectangle.

    Tall crops (height / width >= 1.5) are rotated by 90 degrees so that
    vertical text lines read horizontally.
    """
    polygon = order_points(polygon)
    crop_width = int(
        max(
            float(np.linalg.norm(polygon[0] - polygon[1])),
            float(np.linalg.norm(polygon[2] - polygon[3])),
        )
    )
    crop_height = int(
        max(
            float(np.linalg.norm(polygon[0] - polygon[3])),
            float(np.linalg.norm(polygon[1] - polygon[2])),
        )
    )
    if crop_width == 0 or crop_height == 0:
        raise InvalidPolygonError("Polygon is degenerate, cannot crop an empty region")

    pts_std = np.asarray(
        [
            [0, 0],
            [crop_width, 0],
            [crop_width, crop_height],
            [0, crop_height],
        ],
        dtype=np.float32,
    )
    M = cv2.getPerspectiveTransform(polygon, pts_std)
    crop = cv2.warpPerspective(
        image,
        M,
        (crop_width, crop_height),
        borderMode=cv2.BORDER_REPLICATE,
        flags=cv2.INTER_CUBIC,
    )
    dst_height, dst_width = crop.shape[0:2]
    if dst_height * 1.0 / dst_width >= 1.5:
        crop = np.rot90(crop)
    return crop
