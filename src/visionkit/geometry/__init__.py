from visionkit.geometry.boxes import (
    BoxFormat,
    box_area,
    box_iou,
    box_iou_matrix,
    clip_boxes,
    convert_boxes,
    nms,
    to_pixel_boxes,
    validate_boxes,
)
from visionkit.geometry.mapping import (
    global_to_local,
    iter_tiles,
    local_to_global,
    merge_tile_detections,
    polygon_to_global,
    scale_boxes,
    undo_letterbox,
)
from visionkit.geometry.polygons import (
    crop_polygon,
    expand_polygon,
    order_points,
    polygon_area,
    polygon_iou,
    polygon_to_box,
    validate_polygon,
)

__all__ = [
    "BoxFormat",
    "box_area",
    "box_iou",
    "box_iou_matrix",
    "clip_boxes",
    "convert_boxes",
    "nms",
    "to_pixel_boxes",
    "validate_boxes",
    "global_to_local",
    "iter_tiles",
    "local_to_global",
    "merge_tile_detections",
    "polygon_to_global",
    "scale_boxes",
    "undo_letterbox",
    "crop_polygon",
    "expand_polygon",
    "order_points",
    "polygon_area",
    "polygon_iou",
    "polygon_to_box",
    "validate_polygon",
]
