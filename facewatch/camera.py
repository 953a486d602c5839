import logging
from typing import Optional

import cv2
import numpy as np

logger = logging.getLogger(__name__)


class CameraSource:
     """
     Frame source over cv2.VideoCapture.
     read() returns None while the device has no frame to give, which the
     detection loop treats as "not ready".
     """

     def __init__(self, index: int = 0, fallback_index: Optional[int] = None):
          self.index = index
          self.cap = cv2.VideoCapture(index)
          if not self.cap.isOpened() and fallback_index is not None:
               logger.warning("[Camera] Index %d not available, trying %d", index, fallback_index)
               self.cap = cv2.VideoCapture(fallback_index)
               self.index = fallback_index
          if not self.cap.isOpened():
               raise RuntimeError("Camera not opened. Try changing index (0/1/2).")

     def read(self) -> Optional[np.ndarray]:
          ok, frame = self.cap.read()
          if not ok or frame is None:
               return None
          return frame

     def release(self) -> None:
          self.cap.release()
