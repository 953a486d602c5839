import asyncio
import logging
import cv2
import numpy as np
from typing import List, Optional, Tuple

from .types import BoundingBox, RawDetection

logger = logging.getLogger(__name__)


def _clip_xyxy(x1: float, y1: float, x2: float, y2: float, W: int, H: int) -> Tuple[int, int, int, int]:
    x1 = int(max(0, min(W - 1, round(x1))))
    y1 = int(max(0, min(H - 1, round(y1))))
    x2 = int(max(0, min(W, round(x2))))
    y2 = int(max(0, min(H, round(y2))))
    return x1, y1, x2, y2


class FaceDetector:
    """
    Contract for the external face detector: image -> zero or more
    (bounding box, 128-d descriptor) detections. detect() may be slow.
    """

    @property
    def is_loaded(self) -> bool:
        raise NotImplementedError

    async def load(self) -> None:
        raise NotImplementedError

    async def detect(self, frame_bgr: np.ndarray) -> List[RawDetection]:
        raise NotImplementedError


class HaarOnnxDetector(FaceDetector):
    """
    Haar cascade (multi-face) -> padded face crop -> ONNX 128-d embedding.
    Model loading and inference run in a worker thread so the event loop
    keeps ticking.
    """

    def __init__(
        self,
        haar_xml: Optional[str] = None,
        model_path: Optional[str] = None,
        min_size: Tuple[int, int] = (70, 70),
        max_faces: int = 5,
        crop_margin: float = 0.15,
        cascade=None,
        embedder=None,
    ):
        self.haar_xml = haar_xml
        self.model_path = model_path
        self.min_size = tuple(map(int, min_size))
        self.max_faces = int(max_faces)
        self.crop_margin = float(crop_margin)
        self.face_cascade = cascade
        self.embedder = embedder

    @property
    def is_loaded(self) -> bool:
        return self.face_cascade is not None and self.embedder is not None

    def load_sync(self) -> None:
        if self.face_cascade is None:
            haar_xml = self.haar_xml
            if haar_xml is None:
                haar_xml = cv2.data.haarcascades + "haarcascade_frontalface_default.xml"
            cascade = cv2.CascadeClassifier(haar_xml)
            if cascade.empty():
                raise RuntimeError(f"Failed to load Haar cascade: {haar_xml}")
            self.face_cascade = cascade

        if self.embedder is None:
            from .embedder import FaceEmbedderONNX
            self.embedder = FaceEmbedderONNX(model_path=self.model_path)
        logger.info("[Detector] Face recognition models loaded successfully")

    async def load(self) -> None:
        if self.is_loaded:
            return
        await asyncio.to_thread(self.load_sync)

    def _haar_faces(self, gray: np.ndarray) -> np.ndarray:
        faces = self.face_cascade.detectMultiScale(
            gray,
            scaleFactor=1.1,
            minNeighbors=5,
            flags=cv2.CASCADE_SCALE_IMAGE,
            minSize=self.min_size,
        )
        if faces is None or len(faces) == 0:
            return np.zeros((0, 4), dtype=np.int32)

        return np.asarray(faces, dtype=np.int32).reshape(-1, 4)  # (x,y,w,h)

    def detect_sync(self, frame_bgr: np.ndarray) -> List[RawDetection]:
        if not self.is_loaded:
            raise RuntimeError("Models not loaded. Call load() first.")

        H, W = frame_bgr.shape[:2]
        gray = cv2.cvtColor(frame_bgr, cv2.COLOR_BGR2GRAY)

        faces = self._haar_faces(gray)
        if faces.shape[0] == 0:
            return []

        # sort by area desc, keep top max_faces
        areas = faces[:, 2] * faces[:, 3]
        order = np.argsort(areas)[::-1]
        faces = faces[order][: self.max_faces]

        out: List[RawDetection] = []
        for (x, y, w, h) in faces:
            mx, my = self.crop_margin * w, self.crop_margin * h
            x1, y1, x2, y2 = _clip_xyxy(x - mx, y - my, x + w + mx, y + h + my, W, H)
            crop = frame_bgr[y1:y2, x1:x2]
            if crop.size == 0:
                continue

            emb = self.embedder.embed(crop)
            out.append(
                RawDetection(
                    box=BoundingBox(x=float(x), y=float(y), width=float(w), height=float(h)),
                    descriptor=[float(v) for v in emb],
                )
            )
        return out

    async def detect(self, frame_bgr: np.ndarray) -> List[RawDetection]:
        return await asyncio.to_thread(self.detect_sync, frame_bgr)
