class ScanError(Exception):
    """Base class for scanner failures."""


class CapabilityMissing(ScanError, RuntimeError):
    """The device has no camera or the detector libraries are unavailable."""


class PermissionDenied(ScanError):
    """The user refused camera access."""


class ScanCancelled(ScanError):
    """The session ended without a decoded barcode."""


class CaptureStartFailure(ScanError):
    """Starting the capture source raised; the source has been released."""
