"""
Object and text detection adapters.

The smoothing core only needs `detect(frame) -> list[DetectedObject]`;
these classes provide that on top of Ultralytics YOLO and OpenCV.
"""

import logging

import cv2
import numpy as np

from vidcrop.core.exceptions import DetectorError
from vidcrop.core.smart_crop.models import BoundingBox, DetectedObject

logger = logging.getLogger(__name__)

# Lazy imports for optional dependencies
_yolo_class = None


def _get_yolo_class():
    """Lazy load the Ultralytics YOLO class."""
    global _yolo_class
    if _yolo_class is None:
        from ultralytics import YOLO

        _yolo_class = YOLO
    return _yolo_class


class ObjectDetector:
    """
    YOLO-based object detector.

    The model is loaded on first use so that importing this module does not
    require Ultralytics.
    """

    def __init__(
        self,
        model_path: str = "yolo11s.pt",
        device: str = "cpu",
        min_confidence: float = 0.25,
    ):
        self.model_path = model_path
        self.device = device
        self.min_confidence = min_confidence
        self._model = None

    def _get_model(self):
        if self._model is None:
            logger.info(f"Loading detection model: {self.model_path}")
            self._model = _get_yolo_class()(self.model_path)
        return self._model

    def detect(self, frame: np.ndarray) -> list[DetectedObject]:
        """
        Run detection on a single BGR frame.

        Raises:
            DetectorError: If inference fails.
        """
        try:
            results = self._get_model().predict(
                frame,
                device=self.device,
                conf=self.min_confidence,
                verbose=False,
            )
        except Exception as e:
            raise DetectorError(f"Object detection failed: {e}") from e

        detections = []
        for result in results:
            names = result.names
            boxes = result.boxes
            for xyxy, conf, cls in zip(
                boxes.xyxy.tolist(), boxes.conf.tolist(), boxes.cls.tolist()
            ):
                x1, y1, x2, y2 = xyxy
                detections.append(
                    DetectedObject(
                        name=names[int(cls)],
                        confidence=float(conf),
                        bbox=BoundingBox(
                            x=x1, y=y1, width=max(0.0, x2 - x1), height=max(0.0, y2 - y1)
                        ),
                    )
                )
        return detections


class TextRegionDetector:
    """
    Find text-like regions with morphological gradients.

    Used to classify frames as graphic content (slides, titles, scoreboards)
    that should be shown uncropped.
    """

    def __init__(
        self,
        analysis_width: int = 640,
        min_region_area: int = 150,
        min_aspect: float = 1.5,
    ):
        self.analysis_width = analysis_width
        self.min_region_area = min_region_area
        self.min_aspect = min_aspect

    def detect(self, frame: np.ndarray) -> list[DetectedObject]:
        """Return text regions in source frame coordinates."""
        height, width = frame.shape[:2]
        scale = min(1.0, self.analysis_width / width) if width else 1.0
        small = cv2.resize(frame, (int(width * scale), int(height * scale)))

        gray = cv2.cvtColor(small, cv2.COLOR_BGR2GRAY)
        kernel = cv2.getStructuringElement(cv2.MORPH_ELLIPSE, (3, 3))
        gradient = cv2.morphologyEx(gray, cv2.MORPH_GRADIENT, kernel)
        _, binary = cv2.threshold(gradient, 0, 255, cv2.THRESH_BINARY | cv2.THRESH_OTSU)

        line_kernel = cv2.getStructuringElement(cv2.MORPH_RECT, (9, 1))
        connected = cv2.morphologyEx(binary, cv2.MORPH_CLOSE, line_kernel)
        contours, _ = cv2.findContours(
            connected, cv2.RETR_EXTERNAL, cv2.CHAIN_APPROX_SIMPLE
        )

        regions = []
        for contour in contours:
            x, y, w, h = cv2.boundingRect(contour)
            if w * h < self.min_region_area or h == 0 or w / h < self.min_aspect:
                continue
            # Text lines are dense: most of the box should be filled
            fill = cv2.countNonZero(binary[y : y + h, x : x + w]) / float(w * h)
            if fill < 0.45:
                continue
            regions.append(
                DetectedObject(
                    name="text",
                    confidence=1.0,
                    bbox=BoundingBox(
                        x=x / scale, y=y / scale, width=w / scale, height=h / scale
                    ),
                )
            )
        return regions
