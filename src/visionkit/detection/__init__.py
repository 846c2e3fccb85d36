from visionkit.detection.db_postprocess import DBPostProcess
from visionkit.detection.detector import TextDetector

__all__ = ["DBPostProcess", "TextDetector"]
