"""
Live monitor: camera -> Haar + ONNX embedder -> roster matcher ->
dedup & alert engine -> console (+ MQTT when enabled).

Run:
python -m facewatch.monitor

Stop with Ctrl+C.
"""

from __future__ import annotations
import asyncio
import contextlib
import logging
from typing import List, Optional

from .camera import CameraSource
from .config import MonitorConfig, load_settings
from .mqtt_manager import MQTTManager
from .recognize.alerts import DedupAlertEngine
from .recognize.detector import HaarOnnxDetector
from .recognize.enrollment import EnrollmentService
from .recognize.loop import DetectionLoop
from .recognize.matcher import FaceDBMatcher
from .recognize.store import DescriptorStore
from .recognize.types import AlertEvent, RecognitionEvent
from .storage import JsonFileStore, KeyValueStore

logger = logging.getLogger(__name__)


class Monitor:
     """Wires the recognition pipeline together for one camera."""

     def __init__(self, cfg: MonitorConfig, source, detector, mqtt_manager: Optional[MQTTManager] = None, kv: Optional[KeyValueStore] = None):
          self.cfg = cfg
          self.kv = kv if kv is not None else JsonFileStore(cfg.store_dir)
          self.settings = load_settings(self.kv)

          self.matcher = FaceDBMatcher(dist_thresh=cfg.dist_thresh)
          self.enrollment = EnrollmentService(DescriptorStore(self.kv), self.matcher)
          self.enrollment.reload()

          self.engine = DedupAlertEngine(
               kv=self.kv,
               settings=self.settings,
               window_s=cfg.dedup_window_s,
               alert_cooldown_s=cfg.alert_cooldown_s,
               history_capacity=cfg.history_capacity,
               live_alert_capacity=cfg.live_alert_capacity,
               log_capacity=cfg.log_capacity,
               alert_log_capacity=cfg.alert_log_capacity,
               location=cfg.location,
          )
          self.engine.load_history()
          self.engine.subscribe(on_events=self._print_events, on_alert=self._print_alert)

          self.mqtt = mqtt_manager
          if self.mqtt is not None:
               self.engine.subscribe(on_events=self.mqtt.publish_recognitions, on_alert=self.mqtt.publish_alert)

          self.source = source
          self.loop = DetectionLoop(
               detector=detector,
               matcher=self.matcher,
               source=source,
               on_batch=self.engine.handle_batch,
               on_clear=self.engine.handle_clear,
               interval_s=cfg.tick_interval_s,
          )

     @staticmethod
     def _print_events(events: List[RecognitionEvent]) -> None:
          for e in events:
               status = "UNKNOWN" if e.is_unknown else "known"
               print(f"[recognize] {e.name} ({e.confidence}%) {status} @ {e.location}")

     @staticmethod
     def _print_alert(alert: AlertEvent) -> None:
          print(f"[ALERT] {alert.message}")

     async def _heartbeat(self) -> None:
          while True:
               await asyncio.sleep(self.cfg.heartbeat_interval_s)
               self.mqtt.publish_heartbeat()

     async def run(self, duration_s: Optional[float] = None) -> None:
          heartbeat = asyncio.create_task(self._heartbeat()) if self.mqtt is not None else None
          await self.loop.start()
          print(f"Monitoring ({len(self.matcher.names)} known faces). Ctrl+C to stop.")
          try:
               if duration_s is None:
                    while True:
                         await asyncio.sleep(5.0)
                         s = self.engine.stats()
                         print(
                              f"[stats] fps={self.loop.fps} today={s['total_today']} "
                              f"authorized={s['authorized']} unauthorized={s['unauthorized']} unique={s['unique']}"
                         )
               else:
                    await asyncio.sleep(duration_s)
          finally:
               await self.loop.stop()
               if heartbeat is not None:
                    heartbeat.cancel()
                    with contextlib.suppress(asyncio.CancelledError):
                         await heartbeat


def main():
     logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
     cfg = MonitorConfig()

     try:
          source = CameraSource(cfg.camera_index, fallback_index=1)
     except RuntimeError as e:
          print(f"[Error] {e}")
          return

     detector = HaarOnnxDetector(
          haar_xml=cfg.haar_xml,
          model_path=str(cfg.embedder_model),
          min_size=(cfg.min_face_size, cfg.min_face_size),
          max_faces=cfg.max_faces,
     )
     mqtt_manager = MQTTManager(cfg.mqtt_broker, cfg.mqtt_port, cfg.site_id) if cfg.mqtt_enabled else None
     monitor = Monitor(cfg, source, detector, mqtt_manager)

     try:
          asyncio.run(monitor.run())
     except KeyboardInterrupt:
          print("Stopped.")
     finally:
          source.release()
          if mqtt_manager is not None:
               mqtt_manager.stop()


if __name__ == "__main__":
     main()
