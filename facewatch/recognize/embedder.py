import logging
import cv2
import numpy as np
import onnxruntime as ort
from pathlib import Path
from typing import Optional, Tuple

from .types import DESCRIPTOR_DIM

logger = logging.getLogger(__name__)

DEFAULT_MODEL = Path(__file__).resolve().parent.parent.parent / "models" / "face_embedder_128.onnx"


class FaceEmbedderONNX:
    """
    128-d face embedder running an ONNX model (FaceNet / OpenFace style).
    Input: BGR face crop of any size; resized to `input_size`, converted to
    RGB, scaled with (x-127.5)/128 and laid out NCHW float32.
    Output: one 128-d vector, L2-normalized unless normalize=False.
    """
    def __init__(
        self,
        model_path: Optional[str] = None,
        input_size: Tuple[int, int] = (160, 160),
        normalize: bool = True,
        session=None,
    ):
        self.model_path = str(model_path or DEFAULT_MODEL)
        self.in_w, self.in_h = int(input_size[0]), int(input_size[1])
        self.normalize = bool(normalize)

        self.sess = session if session is not None else ort.InferenceSession(
            self.model_path, providers=["CPUExecutionProvider"]
        )
        inp, out = self.sess.get_inputs()[0], self.sess.get_outputs()[0]
        self.in_name, self.out_name = inp.name, out.name
        logger.debug("[Embedder] %s: %s %s -> %s %s", self.model_path, inp.name, inp.shape, out.name, out.shape)

    def to_tensor(self, face_bgr: np.ndarray) -> np.ndarray:
        h, w = face_bgr.shape[:2]
        if (w, h) != (self.in_w, self.in_h):
            face_bgr = cv2.resize(face_bgr, (self.in_w, self.in_h), interpolation=cv2.INTER_LINEAR)
        rgb = cv2.cvtColor(face_bgr, cv2.COLOR_BGR2RGB).astype(np.float32)
        return ((rgb - 127.5) / 128.0).transpose(2, 0, 1)[None, ...].astype(np.float32)

    def embed(self, face_bgr: np.ndarray) -> np.ndarray:
        y = self.sess.run([self.out_name], {self.in_name: self.to_tensor(face_bgr)})[0]
        emb = np.asarray(y, dtype=np.float32).reshape(-1)
        if emb.size != DESCRIPTOR_DIM:
            raise ValueError(f"embedder produced {emb.size}-d output, expected {DESCRIPTOR_DIM}")
        if not self.normalize:
            return emb
        return emb / float(np.linalg.norm(emb) + 1e-12)
