import logging
import os
from functools import lru_cache
from typing import Sequence

import cv2
import numpy as np

from visionkit.detection.db_postprocess import DBPostProcess
from visionkit.geometry.polygons import crop_polygon, polygon_to_box
from visionkit.runtime.session import build_session_options, load_session
from visionkit.types import Detection

logger = logging.getLogger(__name__)

MEAN = np.asarray([0.485, 0.456, 0.406], dtype=np.float32)
STD = np.asarray([0.229, 0.224, 0.225], dtype=np.float32)


@lru_cache()
def _resize_dim(height: int, width: int, limit_side_len: int) -> tuple[int, int]:
    """
    Resize image to a size multiple of 32 which is required by the network
    """

    # limit the max side
    if max(height, width) > limit_side_len:
        if height > width:
            ratio = float(limit_side_len) / height
        else:
            ratio = float(limit_side_len) / width
    else:
        ratio = 1

    resize_height = int(height * ratio)
    resize_width = int(width * ratio)

    resize_height = max(int(round(resize_height / 32) * 32), 32)
    resize_width = max(int(round(resize_width / 32) * 32), 32)

    return resize_height, resize_width


class TextDetector:
    """
    DB text detector running on an ONNX Runtime session.

    Args:
        session: onnxruntime.InferenceSession (or anything exposing
            ``get_inputs()`` and ``run()``) whose single output is a
            (N, 1, H, W) text probability map.
        limit_side_len: the longest image side is scaled down to this length.
        thresh: probability above which a pixel counts as text.
        box_thresh: minimum mean probability inside a candidate region.
        max_candidates: maximum number of contours examined per image.
        unclip_ratio: how far shrunk text kernels are grown back.
        use_dilation: dilate the binary map before contour extraction.
        with_crops: attach a perspective-corrected crop to every detection.
    """

    def __init__(
        self,
        session,
        limit_side_len: int = 960,
        thresh: float = 0.3,
        box_thresh: float = 0.6,
        max_candidates: int = 1000,
        unclip_ratio: float = 1.5,
        use_dilation: bool = False,
        with_crops: bool = True,
    ):
        self.session = session
        self.input_name = session.get_inputs()[0].name
        self.limit_side_len = limit_side_len
        self.with_crops = with_crops

        self.postprocess = DBPostProcess(
            thresh=thresh,
            box_thresh=box_thresh,
            max_candidates=max_candidates,
            unclip_ratio=unclip_ratio,
            use_dilation=use_dilation,
        )

    @classmethod
    def from_model_path(
        cls,
        model_path: str | os.PathLike,
        providers: Sequence[str] | None = None,
        intra_op_threads: int | None = None,
        inter_op_threads: int | None = None,
        graph_optimization: str = "all",
        **kwargs,
    ) -> "TextDetector":
        options = build_session_options(
            intra_op_threads=intra_op_threads,
            inter_op_threads=inter_op_threads,
            graph_optimization=graph_optimization,
        )
        session = load_session(model_path, providers=providers, options=options)
        return cls(session, **kwargs)

    def preprocess(self, image: np.ndarray) -> np.ndarray:
        resize_height, resize_width = self._get_resize_dim(
            height=image.shape[0], width=image.shape[1]
        )

        image = cv2.resize(image, (resize_width, resize_height))
        image = image.astype(np.float32)
        image /= 255.0
        image -= MEAN
        image /= STD

        # HWC -> NCHW
        return np.ascontiguousarray(image.transpose(2, 0, 1)[np.newaxis])

    def _get_resize_dim(self, height: int, width: int):
        return _resize_dim(height, width, self.limit_side_len)

    def predict(self, image: np.ndarray) -> list[Detection]:
        """
        Detect text regions in a single image.

        Args:
            image: np.ndarray
                A RGB image with shape (H, W, 3).

        Returns:
            A list of Detection objects, polygons in input image pixels.
        """
        if image.ndim != 3 or image.shape[2] != 3:
            raise ValueError(f"Expected an (H, W, 3) image, got shape {image.shape}")

        tensor = self.preprocess(image)
        preds = self.session.run(None, {self.input_name: tensor})[0]
        regions = self.postprocess(
            np.asarray(preds), input_height=image.shape[0], input_width=image.shape[1]
        )[0]
        logger.debug("Found %d text regions", len(regions))

        return [
            Detection(
                box=polygon_to_box(polygon),
                polygon=polygon,
                score=score,
                crop=crop_polygon(image=image, polygon=polygon) if self.with_crops else None,
            )
            for polygon, score in regions
        ]
