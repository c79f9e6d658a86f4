"""
Custom exception hierarchy for the recorder backup tool.

Acquisition failures carry a FailureReason so the CLI can report a single
pass/fail outcome; per-file errors are caught by the batch runner and
recorded instead of propagated.
"""


class RecorderBackupError(Exception):
    """Base exception for all recorder backup errors."""
    pass


class AcquisitionError(RecorderBackupError):
    """Raised when the device volume could not be acquired."""

    def __init__(self, reason, message: str = ""):
        self.reason = reason
        self.message = message or reason.value
        super().__init__(f"{reason.value}: {self.message}")


class ProbeError(RecorderBackupError):
    """Raised when media metadata cannot be read from a file."""
    pass


class TranscodeError(RecorderBackupError):
    """Raised when the transcoding engine cannot be started."""
    pass


class SettingsError(RecorderBackupError):
    """Raised when the settings file contains an invalid value."""
    pass
