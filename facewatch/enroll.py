# facewatch/enroll.py
"""
enroll.py
Enrollment tool:
camera -> Haar detection -> ONNX 128-d descriptor -> roster (knownFaces).
Every capture must contain exactly one face; the descriptors of all
captures are appended to the person's entry (re-enrolling a name adds
samples, it never replaces them).

Controls:
- SPACE: capture one sample (if exactly one face found)
- s: save enrollment (after enough samples)
- r: reset captured samples
- q: quit

Roster management without the camera:
python -m facewatch.enroll --list
python -m facewatch.enroll --remove Alice
python -m facewatch.enroll --export backups/
python -m facewatch.enroll --import backups/face-recognition-backup-2024-01-01.json
python -m facewatch.enroll --logs --status unknown --date week
python -m facewatch.enroll --clear-all
"""

from __future__ import annotations
import argparse
import logging
from dataclasses import dataclass
from typing import List, Optional

import cv2
import numpy as np

from .backup import clear_all_data, read_backup, write_backup
from .camera import CameraSource
from .config import MonitorConfig, load_settings
from .recognize.detector import HaarOnnxDetector
from .recognize.enrollment import EnrollmentService
from .recognize.errors import FaceWatchError, ValidationError
from .recognize.logger import DATE_FILTERS, STATUS_FILTERS, RecognitionLogger
from .recognize.matcher import FaceDBMatcher
from .recognize.store import DescriptorStore
from .storage import JsonFileStore

logger = logging.getLogger(__name__)


# -------------------------
# Config
# -------------------------

@dataclass
class EnrollConfig:
     samples_needed: int = 3
     window_main: str = "enroll"


# -------------------------
# UI helpers
# -------------------------

def draw_status(frame: np.ndarray, name: str, count: int, needed: int, msg: str = "") -> None:
     lines = [
          f"ENROLL: {name}",
          f"Captured: {count} / {needed}",
          "SPACE=capture | s=save | r=reset | q=quit",
     ]
     if msg:
          lines.insert(0, msg)

     # draw with black shadow for readability
     y = 30
     for line in lines:
          cv2.putText(frame, line, (10, y), cv2.FONT_HERSHEY_SIMPLEX, 0.62, (0, 0, 0), 4, cv2.LINE_AA)
          cv2.putText(frame, line, (10, y), cv2.FONT_HERSHEY_SIMPLEX, 0.62, (255, 255, 255), 2, cv2.LINE_AA)
          y += 26


# -------------------------
# Capture session
# -------------------------

def capture_session(
     name: str,
     service: EnrollmentService,
     detector: HaarOnnxDetector,
     source: CameraSource,
     cfg: EnrollConfig,
) -> bool:
     samples: List[List[float]] = []
     status_msg = ""
     saved = False

     cv2.namedWindow(cfg.window_main, cv2.WINDOW_NORMAL)
     try:
          while True:
               frame = source.read()
               if frame is None:
                    break

               vis = frame.copy()
               draw_status(vis, name, len(samples), cfg.samples_needed, status_msg)
               cv2.imshow(cfg.window_main, vis)
               key = cv2.waitKey(1) & 0xFF

               if key == ord("q"):
                    break

               if key == ord("r"):
                    samples.clear()
                    status_msg = "Samples reset."

               if key == ord(" "):  # SPACE
                    try:
                         detections = detector.detect_sync(frame)
                         samples.append(service.descriptor_from_capture(detections))
                         status_msg = f"Captured {len(samples)}/{cfg.samples_needed} images"
                    except ValidationError as e:
                         status_msg = str(e)

               if key == ord("s"):
                    if len(samples) < cfg.samples_needed:
                         status_msg = f"Not enough samples to save (have {len(samples)})."
                         continue
                    try:
                         person = service.enroll(name, samples)
                    except FaceWatchError as e:
                         status_msg = f"Failed to register face: {e}"
                         continue
                    print(f"Successfully registered {person.name} ({len(person.descriptors)} descriptors total)")
                    saved = True
                    break
     finally:
          cv2.destroyAllWindows()
     return saved


# -------------------------
# Main
# -------------------------

def build_service(cfg: MonitorConfig) -> EnrollmentService:
     kv = JsonFileStore(cfg.store_dir)
     service = EnrollmentService(DescriptorStore(kv), FaceDBMatcher(dist_thresh=cfg.dist_thresh))
     service.reload()
     return service


def main(argv: Optional[List[str]] = None):
     logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")

     parser = argparse.ArgumentParser(description="Enroll faces and manage the roster")
     group = parser.add_mutually_exclusive_group()
     group.add_argument("--list", action="store_true", help="list enrolled people")
     group.add_argument("--remove", metavar="NAME", help="remove a person by exact name")
     group.add_argument("--export", metavar="PATH", help="write a JSON backup (file or directory)")
     group.add_argument("--import", dest="import_path", metavar="FILE", help="replace the roster from a JSON backup")
     group.add_argument("--logs", action="store_true", help="show the recognition log (newest first)")
     group.add_argument("--clear-all", action="store_true", help="delete all faces, logs, history and alerts")
     parser.add_argument("--search", default="", help="with --logs: match name, status or location")
     parser.add_argument("--status", choices=STATUS_FILTERS, default="all", help="with --logs: filter by status")
     parser.add_argument("--date", choices=DATE_FILTERS, default="all", help="with --logs: filter by date")
     parser.add_argument("--yes", action="store_true", help="with --clear-all: do not ask for confirmation")
     args = parser.parse_args(argv)

     cfg = MonitorConfig()
     service = build_service(cfg)
     kv = service.store.kv

     if args.logs:
          rows = RecognitionLogger(kv).query(search=args.search, status=args.status, date_filter=args.date)
          for r in rows:
               print(f"{r['date']} {r['time']}\t{r['name']}\t{r['status']}\t{r['location']}\t{r['confidence']}%")
          print(f"{len(rows)} record(s)")
          return
     if args.clear_all:
          if not args.yes:
               answer = input("This will delete ALL registered faces and logs. Type 'yes' to continue: ")
               if answer.strip().lower() != "yes":
                    print("Cancelled.")
                    return
          clear_all_data(kv, service)
          print("All data has been cleared.")
          return

     if args.list:
          for p in service.list_all():
               print(f"{p.name}\t{p.role}\t{len(p.descriptors)} descriptor(s)\t{p.registered_at}")
          return
     if args.remove:
          removed = service.remove(args.remove)
          print(f"{args.remove} has been removed." if removed else f"{args.remove} was not enrolled.")
          return
     if args.export:
          path = write_backup(args.export, service, load_settings(kv))
          print(f"Exported backup to {path}")
          return
     if args.import_path:
          try:
               count = read_backup(args.import_path, service, kv)
          except ValidationError as e:
               print(e)
               return
          print(f"Data imported successfully! ({count} people)")
          return

     name = input("Enter person name to enroll (e.g., Alice): ").strip()
     if not name:
          print("No name provided. Exiting.")
          return

     detector = HaarOnnxDetector(
          haar_xml=cfg.haar_xml,
          model_path=str(cfg.embedder_model),
          min_size=(cfg.min_face_size, cfg.min_face_size),
     )
     detector.load_sync()
     source = CameraSource(cfg.camera_index)

     print("\nEnrollment started.")
     print("Tip: one person in frame, stable lighting, slightly different angles.")
     try:
          capture_session(name, service, detector, source, EnrollConfig())
     finally:
          source.release()


if __name__ == "__main__":
     main()
