"""
Local-to-global coordinate mapping.

Models often see only part of an image: a crop around a region of interest, a
resized or letterboxed copy, or one tile of a large frame. Their boxes come
back in that local space and need mapping onto the original (global) frame.

Coordinate notes:
- Global: pixel coordinates relative to the full original image
- Local: pixel coordinates relative to a region, a resized copy or a tile
- Both use a top-left origin and xyxy boxes
"""

import logging
from typing import Iterator, Sequence

import numpy as np

from visionkit.geometry.boxes import nms, validate_boxes
from visionkit.geometry.polygons import validate_polygon
from visionkit.types import Box2D

logger = logging.getLogger(__name__)


def local_to_global(boxes, offset: tuple[float, float]) -> np.ndarray:
    """
    Shift xyxy boxes found inside a region by the region's top-left corner.

    Example:
        >>> local_to_global([10, 20, 30, 40], offset=(100, 200)).tolist()
        [110.0, 220.0, 130.0, 240.0]
    """
    boxes = validate_boxes(boxes).copy()
    dx, dy = offset
    boxes[..., [0, 2]] += dx
    boxes[..., [1, 3]] += dy
    return boxes


def global_to_local(boxes, region: Box2D, clip: bool = True) -> tuple[np.ndarray, np.ndarray]:
    """
    Express global xyxy boxes relative to ``region``.

    Args:
        boxes: xyxy boxes in global coordinates
        region: region whose top-left corner becomes the local origin
        clip: clamp boxes to the region bounds

    Returns:
        Tuple of (local boxes, inside mask). When ``clip`` is set, boxes that
        do not overlap the region at all are zeroed and flagged False in the
        mask.
    """
    boxes = validate_boxes(boxes)
    batch = boxes.reshape(-1, 4).copy()
    x1, y1, x2, y2 = region.to_xyxy()

    inside = (batch[:, 2] > x1) & (batch[:, 0] < x2) & (batch[:, 3] > y1) & (batch[:, 1] < y2)

    if clip:
        batch[:, [0, 2]] = np.clip(batch[:, [0, 2]], x1, x2)
        batch[:, [1, 3]] = np.clip(batch[:, [1, 3]], y1, y2)

    batch[:, [0, 2]] -= x1
    batch[:, [1, 3]] -= y1

    if clip:
        batch[~inside] = 0.0

    return batch.reshape(boxes.shape), inside


def polygon_to_global(polygon, offset: tuple[float, float]) -> np.ndarray:
    polygon = validate_polygon(polygon).copy()
    polygon[:, 0] += offset[0]
    polygon[:, 1] += offset[1]
    return polygon


def scale_boxes(
    boxes,
    from_size: tuple[int, int],
    to_size: tuple[int, int],
) -> np.ndarray:
    """Rescale xyxy boxes between two image sizes given as (width, height)."""
    boxes = validate_boxes(boxes).copy()
    from_width, from_height = from_size
    to_width, to_height = to_size
    if from_width <= 0 or from_height <= 0:
        raise ValueError(f"Invalid source size {from_size}")

    boxes[..., [0, 2]] *= to_width / from_width
    boxes[..., [1, 3]] *= to_height / from_height
    return boxes


def undo_letterbox(
    boxes,
    ratio: float,
    pad: tuple[float, float],
    original_size: tuple[int, int],
) -> np.ndarray:
    """
    Map boxes predicted on a letterboxed input back to the original image.

    Args:
        boxes: xyxy boxes in letterboxed model-input coordinates
        ratio: scale factor applied to the original image before padding
        pad: (left, top) padding added around the resized image
        original_size: (width, height) of the original image

    Returns:
        xyxy boxes in original coordinates, clipped to the image.
    """
    if ratio <= 0:
        raise ValueError(f"Letterbox ratio must be positive, got {ratio}")

    boxes = validate_boxes(boxes).copy()
    pad_x, pad_y = pad
    boxes[..., [0, 2]] = (boxes[..., [0, 2]] - pad_x) / ratio
    boxes[..., [1, 3]] = (boxes[..., [1, 3]] - pad_y) / ratio

    width, height = original_size
    boxes[..., [0, 2]] = np.clip(boxes[..., [0, 2]], 0, width)
    boxes[..., [1, 3]] = np.clip(boxes[..., [1, 3]], 0, height)
    return boxes


def _tile_starts(length: int, tile_size: int, stride: int) -> list[int]:
    if length <= tile_size:
        return [0]
    starts = list(range(0, length - tile_size, stride))
    starts.append(length - tile_size)
    return starts


def iter_tiles(
    width: int,
    height: int,
    tile_size: int,
    overlap: int = 0,
) -> Iterator[Box2D]:
    """
    Yield overlapping tile regions covering a ``width`` x ``height`` frame.

    The last row and column are pushed inward so every tile keeps the full
    ``tile_size`` whenever the frame allows it.
    """
    if width <= 0 or height <= 0:
        raise ValueError(f"Frame size must be positive, got {width}x{height}")
    if tile_size <= 0:
        raise ValueError(f"Tile size must be positive, got {tile_size}")
    if overlap < 0 or overlap >= tile_size:
        raise ValueError(f"Overlap must be in [0, {tile_size}), got {overlap}")

    stride = tile_size - overlap
    for top in _tile_starts(height, tile_size, stride):
        for left in _tile_starts(width, tile_size, stride):
            yield Box2D.from_xyxy(
                left,
                top,
                min(left + tile_size, width),
                min(top + tile_size, height),
            )


def merge_tile_detections(
    per_tile_boxes: Sequence,
    per_tile_scores: Sequence,
    tiles: Sequence[Box2D],
    iou_threshold: float = 0.5,
) -> tuple[np.ndarray, np.ndarray]:
    """
    Map per-tile detections to global coordinates and drop duplicates.

    Objects in the overlap between tiles are usually detected twice; NMS keeps
    the higher-scoring copy.

    Returns:
        Tuple of (global xyxy boxes, scores), highest score first.
    """
    if not (len(per_tile_boxes) == len(per_tile_scores) == len(tiles)):
        raise ValueError("Expected one box set and one score set per tile")

    all_boxes = []
    all_scores = []
    for index, (boxes, scores, tile) in enumerate(zip(per_tile_boxes, per_tile_scores, tiles)):
        boxes = np.asarray(boxes, dtype=np.float64).reshape(-1, 4)
        scores = np.asarray(scores, dtype=np.float64).reshape(-1)
        if len(boxes) != len(scores):
            raise ValueError(
                f"Tile {index} has {len(boxes)} boxes but {len(scores)} scores"
            )
        if len(boxes) == 0:
            continue
        all_boxes.append(local_to_global(boxes, offset=(tile.top_left.x, tile.top_left.y)))
        all_scores.append(scores)

    if not all_boxes:
        return np.zeros((0, 4)), np.zeros((0,))

    boxes = np.concatenate(all_boxes)
    scores = np.concatenate(all_scores)
    keep = nms(boxes, scores, iou_threshold=iou_threshold)
    logger.debug("Merged %d tile detections into %d", len(boxes), len(keep))
    return boxes[keep], scores[keep]
