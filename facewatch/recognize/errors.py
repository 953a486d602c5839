class FaceWatchError(Exception):
    """Base class for recognition subsystem failures."""


class ValidationError(FaceWatchError):
    """Bad enrollment input: empty name, no descriptors, no-face or multi-face capture."""


class StorageError(FaceWatchError):
    """Persistence read/write failure or corrupt stored JSON."""


class DetectorError(FaceWatchError):
    """External face detector call failed."""
