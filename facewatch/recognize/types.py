from __future__ import annotations
import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional, Sequence

DESCRIPTOR_DIM = 128
DEFAULT_ROLE = "Employee"


def utc_iso(ts: float) -> str:
    return datetime.fromtimestamp(ts, tz=timezone.utc).isoformat().replace("+00:00", "Z")


def parse_iso(value: str) -> float:
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    dt = datetime.fromisoformat(value)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.timestamp()


@dataclass
class Person:
    name: str
    descriptors: List[List[float]]
    role: str = DEFAULT_ROLE
    registered_at: str = ""

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "descriptors": [list(d) for d in self.descriptors],
            "role": self.role,
            "registeredAt": self.registered_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Person":
        name = data["name"]
        if not isinstance(name, str) or not name:
            raise ValueError("person name must be a non-empty string")
        descriptors = [[float(v) for v in d] for d in data["descriptors"]]
        if not descriptors:
            raise ValueError(f"person '{name}' has no descriptors")
        for d in descriptors:
            if len(d) != DESCRIPTOR_DIM:
                raise ValueError(f"person '{name}' has a {len(d)}-d descriptor")
        return cls(
            name=name,
            descriptors=descriptors,
            role=str(data.get("role", DEFAULT_ROLE)),
            registered_at=str(data.get("registeredAt", "")),
        )


@dataclass(frozen=True)
class BoundingBox:
    x: Optional[float]
    y: Optional[float]
    width: Optional[float]
    height: Optional[float]

    def is_valid(self) -> bool:
        fields = (self.x, self.y, self.width, self.height)
        if any(v is None for v in fields):
            return False
        if not all(math.isfinite(float(v)) for v in fields):
            return False
        return self.width > 0 and self.height > 0

    def to_dict(self) -> dict:
        return {"x": self.x, "y": self.y, "width": self.width, "height": self.height}


@dataclass
class RawDetection:
    box: Optional[BoundingBox]
    descriptor: Sequence[float]
    score: float = 1.0

    def is_valid(self) -> bool:
        """Box fully present with positive size, and a 128-d descriptor."""
        if self.box is None or not self.box.is_valid():
            return False
        return self.descriptor is not None and len(self.descriptor) == DESCRIPTOR_DIM


@dataclass(frozen=True)
class MatchResult:
    label: str
    distance: float
    confidence: int
    is_unknown: bool


@dataclass(frozen=True)
class Sighting:
    match: MatchResult
    box: BoundingBox
    timestamp: float


@dataclass(frozen=True)
class RecognitionEvent:
    id: str
    name: str
    confidence: int
    timestamp: float
    is_unknown: bool
    location: str

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "confidence": self.confidence,
            "timestamp": utc_iso(self.timestamp),
            "isUnknown": self.is_unknown,
            "location": self.location,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "RecognitionEvent":
        return cls(
            id=str(data["id"]),
            name=str(data["name"]),
            confidence=int(data["confidence"]),
            timestamp=parse_iso(data["timestamp"]),
            is_unknown=bool(data["isUnknown"]),
            location=str(data.get("location", "")),
        )


@dataclass(frozen=True)
class AlertEvent:
    id: str
    message: str
    timestamp: float
    severity: str = "high"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "message": self.message,
            "timestamp": utc_iso(self.timestamp),
            "severity": self.severity,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "AlertEvent":
        return cls(
            id=str(data["id"]),
            message=str(data["message"]),
            timestamp=parse_iso(data["timestamp"]),
            severity=str(data.get("severity", "high")),
        )
