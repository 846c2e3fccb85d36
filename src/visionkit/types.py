from dataclasses import dataclass

import numpy as np


def _to_pixel(value: float) -> int:
    return max(int(round(value)), 0)


@dataclass
class Point2D:
    x: int
    y: int


@dataclass
class Box2D:
    """
    Axis-aligned box in pixel space, stored as its min/max corners (xyxy).
    """

    top_left: Point2D
    bottom_right: Point2D

    @property
    def width(self) -> int:
        return self.bottom_right.x - self.top_left.x

    @property
    def height(self) -> int:
        return self.bottom_right.y - self.top_left.y

    @property
    def area(self) -> int:
        return self.width * self.height

    @property
    def center(self) -> tuple[float, float]:
        return (
            (self.top_left.x + self.bottom_right.x) / 2.0,
            (self.top_left.y + self.bottom_right.y) / 2.0,
        )

    def to_xyxy(self) -> tuple[int, int, int, int]:
        return (
            self.top_left.x,
            self.top_left.y,
            self.bottom_right.x,
            self.bottom_right.y,
        )

    def to_xywh(self) -> tuple[int, int, int, int]:
        return (self.top_left.x, self.top_left.y, self.width, self.height)

    def to_cxcywh(self) -> tuple[float, float, int, int]:
        cx, cy = self.center
        return (cx, cy, self.width, self.height)

    @classmethod
    def from_xyxy(cls, x1: float, y1: float, x2: float, y2: float) -> "Box2D":
        return cls(
            top_left=Point2D(x=_to_pixel(x1), y=_to_pixel(y1)),
            bottom_right=Point2D(x=_to_pixel(x2), y=_to_pixel(y2)),
        )

    @classmethod
    def from_xywh(cls, x: float, y: float, w: float, h: float) -> "Box2D":
        return cls.from_xyxy(x, y, x + w, y + h)

    @classmethod
    def from_cxcywh(cls, cx: float, cy: float, w: float, h: float) -> "Box2D":
        return cls.from_xyxy(cx - w / 2.0, cy - h / 2.0, cx + w / 2.0, cy + h / 2.0)

    def to_dict(self) -> dict:
        x1, y1, x2, y2 = self.to_xyxy()
        return {"x1": x1, "y1": y1, "x2": x2, "y2": y2}


@dataclass
class Detection:
    box: Box2D
    polygon: np.ndarray
    score: float
    crop: np.ndarray | None = None

    def to_dict(self) -> dict:
        return {
            "box": self.box.to_dict(),
            "polygon": [[int(round(x)), int(round(y))] for x, y in self.polygon],
            "score": round(float(self.score), 4),
        }
