"""
Enrollment - Error types.

Raised by the backend clients. The submission pipeline converts them into
results; nothing here is meant to reach the wizard shell as an exception.
"""


class EnrollmentError(Exception):
    """Base class for enrollment backend errors."""


class PincodeLookupError(EnrollmentError):
    """Pincode could not be resolved to a city/state."""

    def __init__(self, pincode: str, reason: str = "Invalid Pincode"):
        self.pincode = pincode
        self.reason = reason
        super().__init__(f"{reason}: {pincode}")


class StorageUploadError(EnrollmentError):
    """A file could not be written to storage."""


class RecordCreationError(EnrollmentError):
    """The enrollment record insert failed."""
