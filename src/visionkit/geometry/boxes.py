"""
Bounding box conventions and overlap metrics.

Three layouts are supported, all in pixel space with a top-left origin:

- ``xyxy``: min corner and max corner ``(x1, y1, x2, y2)``
- ``xywh``: top-left corner plus size ``(x, y, w, h)``
- ``cxcywh``: center plus size ``(cx, cy, w, h)``

Every function accepts a single box of shape ``(4,)`` or a batch of shape
``(N, 4)`` and returns the same rank. Widths are ``x2 - x1`` (continuous
coordinates, no ``+ 1``).
"""

from enum import Enum

import numpy as np

from visionkit.errors import InvalidBoxError


class BoxFormat(str, Enum):
    XYXY = "xyxy"
    XYWH = "xywh"
    CXCYWH = "cxcywh"


def _as_boxes(boxes) -> np.ndarray:
    try:
        array = np.asarray(boxes, dtype=np.float64)
    except (ValueError, TypeError) as e:
        raise InvalidBoxError(f"Boxes must be a numeric (4,) or (N, 4) array: {e}") from e
    if array.ndim not in (1, 2) or array.shape[-1] != 4:
        raise InvalidBoxError(
            f"Expected boxes of shape (4,) or (N, 4), got {array.shape}",
            details={"shape": list(array.shape)},
        )
    if not np.all(np.isfinite(array)):
        raise InvalidBoxError("Box coordinates must be finite")
    return array


def validate_boxes(boxes) -> np.ndarray:
    """
    Check that xyxy boxes are well formed and return them as a float array.

    Raises:
        InvalidBoxError: on a bad shape, non-finite values or inverted corners.
    """
    array = _as_boxes(boxes)
    batch = array.reshape(-1, 4)
    inverted = (batch[:, 2] < batch[:, 0]) | (batch[:, 3] < batch[:, 1])
    if np.any(inverted):
        index = int(np.argmax(inverted))
        raise InvalidBoxError(
            f"Box {index} has x2 < x1 or y2 < y1: {batch[index].tolist()}",
            details={"index": index},
        )
    return array


def xyxy_to_xywh(boxes) -> np.ndarray:
    boxes = _as_boxes(boxes)
    out = boxes.copy()
    out[..., 2] = boxes[..., 2] - boxes[..., 0]
    out[..., 3] = boxes[..., 3] - boxes[..., 1]
    return out


def xywh_to_xyxy(boxes) -> np.ndarray:
    boxes = _as_boxes(boxes)
    out = boxes.copy()
    out[..., 2] = boxes[..., 0] + boxes[..., 2]
    out[..., 3] = boxes[..., 1] + boxes[..., 3]
    return out


def xyxy_to_cxcywh(boxes) -> np.ndarray:
    boxes = _as_boxes(boxes)
    out = np.empty_like(boxes)
    out[..., 0] = (boxes[..., 0] + boxes[..., 2]) / 2.0
    out[..., 1] = (boxes[..., 1] + boxes[..., 3]) / 2.0
    out[..., 2] = boxes[..., 2] - boxes[..., 0]
    out[..., 3] = boxes[..., 3] - boxes[..., 1]
    return out


def cxcywh_to_xyxy(boxes) -> np.ndarray:
    boxes = _as_boxes(boxes)
    out = np.empty_like(boxes)
    half_w = boxes[..., 2] / 2.0
    half_h = boxes[..., 3] / 2.0
    out[..., 0] = boxes[..., 0] - half_w
    out[..., 1] = boxes[..., 1] - half_h
    out[..., 2] = boxes[..., 0] + half_w
    out[..., 3] = boxes[..., 1] + half_h
    return out


def xywh_to_cxcywh(boxes) -> np.ndarray:
    boxes = _as_boxes(boxes)
    out = boxes.copy()
    out[..., 0] = boxes[..., 0] + boxes[..., 2] / 2.0
    out[..., 1] = boxes[..., 1] + boxes[..., 3] / 2.0
    return out


def cxcywh_to_xywh(boxes) -> np.ndarray:
    boxes = _as_boxes(boxes)
    out = boxes.copy()
    out[..., 0] = boxes[..., 0] - boxes[..., 2] / 2.0
    out[..., 1] = boxes[..., 1] - boxes[..., 3] / 2.0
    return out


_CONVERTERS = {
    (BoxFormat.XYXY, BoxFormat.XYWH): xyxy_to_xywh,
    (BoxFormat.XYWH, BoxFormat.XYXY): xywh_to_xyxy,
    (BoxFormat.XYXY, BoxFormat.CXCYWH): xyxy_to_cxcywh,
    (BoxFormat.CXCYWH, BoxFormat.XYXY): cxcywh_to_xyxy,
    (BoxFormat.XYWH, BoxFormat.CXCYWH): xywh_to_cxcywh,
    (BoxFormat.CXCYWH, BoxFormat.XYWH): cxcywh_to_xywh,
}


def convert_boxes(boxes, src: BoxFormat | str, dst: BoxFormat | str) -> np.ndarray:
    """
    Convert boxes between the xyxy, xywh and cxcywh conventions.

    Args:
        boxes: array-like of shape (4,) or (N, 4)
        src: format of ``boxes``
        dst: format to convert to

    Returns:
        A new float64 array with the same shape as ``boxes``.
    """
    src = BoxFormat(src)
    dst = BoxFormat(dst)
    if src == dst:
        return _as_boxes(boxes).copy()
    return _CONVERTERS[(src, dst)](boxes)


def box_area(boxes) -> np.ndarray:
    boxes = _as_boxes(boxes)
    return (boxes[..., 2] - boxes[..., 0]) * (boxes[..., 3] - boxes[..., 1])


def box_iou_matrix(boxes_a, boxes_b) -> np.ndarray:
    """
    Pairwise intersection-over-union between two sets of xyxy boxes.

    Returns:
        Array of shape (N, M). Pairs whose union is empty score 0.
    """
    a = validate_boxes(boxes_a).reshape(-1, 4)
    b = validate_boxes(boxes_b).reshape(-1, 4)

    left = np.maximum(a[:, None, 0], b[None, :, 0])
    top = np.maximum(a[:, None, 1], b[None, :, 1])
    right = np.minimum(a[:, None, 2], b[None, :, 2])
    bottom = np.minimum(a[:, None, 3], b[None, :, 3])

    intersection = np.clip(right - left, 0, None) * np.clip(bottom - top, 0, None)
    union = box_area(a)[:, None] + box_area(b)[None, :] - intersection

    iou = np.zeros_like(intersection)
    np.divide(intersection, union, out=iou, where=union > 0)
    return iou


def box_iou(box_a, box_b) -> float:
    """IoU of two xyxy boxes."""
    return float(box_iou_matrix(box_a, box_b)[0, 0])


def clip_boxes(boxes, width: float, height: float) -> np.ndarray:
    boxes = _as_boxes(boxes).copy()
    boxes[..., [0, 2]] = np.clip(boxes[..., [0, 2]], 0, width)
    boxes[..., [1, 3]] = np.clip(boxes[..., [1, 3]], 0, height)
    return boxes


def to_pixel_boxes(boxes, width: int | None = None, height: int | None = None):
    """
    Snap boxes to non-negative integer pixels, optionally bounded by the frame.
    """
    boxes = np.round(_as_boxes(boxes))
    boxes = np.clip(boxes, 0, None)
    if width is not None:
        boxes[..., [0, 2]] = np.minimum(boxes[..., [0, 2]], width)
    if height is not None:
        boxes[..., [1, 3]] = np.minimum(boxes[..., [1, 3]], height)
    return boxes.astype(np.int64)


def nms(boxes, scores, iou_threshold: float = 0.5) -> np.ndarray:
    """
    Greedy non-maximum suppression over xyxy boxes.

    Returns:
        Indices of the kept boxes, highest score first. Ties keep input order.
    """
    boxes = validate_boxes(boxes).reshape(-1, 4)
    scores = np.asarray(scores, dtype=np.float64).reshape(-1)
    if len(scores) != len(boxes):
        raise ValueError(f"Got {len(boxes)} boxes but {len(scores)} scores")

    order = np.argsort(-scores, kind="stable")
    keep = []
    while order.size > 0:
        current = order[0]
        keep.append(int(current))
        if order.size == 1:
            break
        overlaps = box_iou_matrix(boxes[current], boxes[order[1:]])[0]
        order = order[1:][overlaps <= iou_threshold]

    return np.asarray(keep, dtype=np.int64)
