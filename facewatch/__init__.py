"""
Face Recognition Security Monitor

This package implements the face recognition matching subsystem of a
camera-based security monitor:
- Roster persistence (enrolled people and their 128-d descriptors)
- Nearest-neighbour matching with a Euclidean distance threshold
- Enrollment with an immediate matcher refresh
- A fixed-rate asyncio detection loop with a single-flight guard
- Sighting dedup, bounded event history and throttled unknown-face alerts
"""

__version__ = "1.0.0"
