from __future__ import annotations
import logging
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Optional

from .recognize.errors import StorageError
from .storage import SETTINGS_KEY, KeyValueStore, read_json_or, write_json

logger = logging.getLogger(__name__)


# -------------------------
# Runtime config
# -------------------------

@dataclass
class MonitorConfig:
     store_dir: Path = Path("data/store")
     haar_xml: Optional[str] = None  # None -> OpenCV's bundled frontal face cascade
     embedder_model: Path = Path("models/face_embedder_128.onnx")
     camera_index: int = 0

     # matcher
     dist_thresh: float = 0.6

     # detection loop
     tick_interval_s: float = 0.1
     max_faces: int = 5
     min_face_size: int = 70

     # dedup & alerts
     dedup_window_s: float = 5.0
     alert_cooldown_s: float = 10.0
     history_capacity: int = 50
     log_capacity: int = 500
     live_alert_capacity: int = 10
     alert_log_capacity: int = 100
     location: str = "Main Entrance"

     # MQTT
     mqtt_enabled: bool = False
     mqtt_broker: str = "localhost"
     mqtt_port: int = 1883
     site_id: str = "default_site"
     heartbeat_interval_s: float = 5.0


# -------------------------
# Persisted settings
# -------------------------

@dataclass
class NotificationSettings:
     unauthorized: bool = True
     system_errors: bool = True
     daily_summary: bool = False


@dataclass
class DetectionSettings:
     confidence_threshold: int = 60  # percent, shown in the UI
     auto_save_logs: bool = True


@dataclass
class AppSettings:
     notifications: NotificationSettings = field(default_factory=NotificationSettings)
     detection: DetectionSettings = field(default_factory=DetectionSettings)

     def to_dict(self) -> dict:
          return asdict(self)

     @classmethod
     def from_dict(cls, data: Optional[dict]) -> "AppSettings":
          """Merge `data` over the defaults; unknown keys are ignored."""
          data = data if isinstance(data, dict) else {}
          notif = data.get("notifications") if isinstance(data.get("notifications"), dict) else {}
          det = data.get("detection") if isinstance(data.get("detection"), dict) else {}
          n_defaults = NotificationSettings()
          d_defaults = DetectionSettings()
          return cls(
               notifications=NotificationSettings(
                    unauthorized=bool(notif.get("unauthorized", n_defaults.unauthorized)),
                    system_errors=bool(notif.get("system_errors", n_defaults.system_errors)),
                    daily_summary=bool(notif.get("daily_summary", n_defaults.daily_summary)),
               ),
               detection=DetectionSettings(
                    confidence_threshold=int(det.get("confidence_threshold", d_defaults.confidence_threshold)),
                    auto_save_logs=bool(det.get("auto_save_logs", d_defaults.auto_save_logs)),
               ),
          )


def load_settings(kv: KeyValueStore) -> AppSettings:
     return AppSettings.from_dict(read_json_or(kv, SETTINGS_KEY, {}))


def save_settings(kv: KeyValueStore, settings: AppSettings) -> None:
     try:
          write_json(kv, SETTINGS_KEY, settings.to_dict())
     except StorageError as e:
          logger.error("[Settings] Error saving settings: %s", e)
          raise
