from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional, List, Tuple

from . import config


class ModalKind(Enum):
    SUCCESS = "success"
    ERROR_GENERIC = "error"
    ERROR_ALREADY_CONNECTED = "already_connected"
    ERROR_AUTH_FAILED = "auth_failed"
    NONE = "none"


class FailureReason(Enum):
    EXECUTABLE_NOT_FOUND = "executable_not_found"
    WINDOW_NOT_FOUND = "window_not_found"
    CONTROL_NOT_FOUND = "control_not_found"
    TIMEOUT = "timeout"
    AUTH_FAILED = "auth_failed"
    ALREADY_CONNECTED = "already_connected"
    GENERIC = "generic"
    PROCESS_EXITED = "process_exited"
    NO_DRIVE_DETECTED = "no_drive_detected"


# Modal classification -> the failure it stands for
MODAL_FAILURES = {
    ModalKind.ERROR_AUTH_FAILED: FailureReason.AUTH_FAILED,
    ModalKind.ERROR_ALREADY_CONNECTED: FailureReason.ALREADY_CONNECTED,
    ModalKind.ERROR_GENERIC: FailureReason.GENERIC,
}


class AcquisitionState(Enum):
    IDLE = "idle"
    LAUNCHED = "launched"
    CONNECTING = "connecting"
    AUTHENTICATING = "authenticating"
    AUTH_RETRY = "auth_retry"
    AWAITING_STORAGE_CONTROL = "awaiting_storage_control"
    STORAGE_ACTIVATING = "storage_activating"
    AWAITING_NEW_VOLUME = "awaiting_new_volume"
    DONE = "done"
    FAILED = "failed"


@dataclass
class AcquisitionTimeouts:
    """Per-step time budgets (seconds) for driving the device application."""
    ui_timeout: float = config.UI_TIMEOUT
    drive_timeout: float = config.DRIVE_TIMEOUT
    modal_timeout: float = config.MODAL_TIMEOUT
    close_grace: float = config.CLOSE_GRACE
    poll_interval: float = config.UI_POLL_INTERVAL
    volume_poll_interval: float = config.VOLUME_POLL_INTERVAL


@dataclass(frozen=True)
class CodecProfile:
    """
    Encoder chosen once per batch run.
    decoder_flags is the same-vendor hardware decoder for the output codec family.
    """
    encoder: str
    encoder_flags: Tuple[str, ...]
    codec_family: str                 # hevc/h264
    vendor: Optional[str] = None      # nvidia/intel/amd, None for software
    decoder_flags: Tuple[str, ...] = ()

    @property
    def is_hardware(self) -> bool:
        return self.vendor is not None


@dataclass
class FileTask:
    """
    Represents one file discovered under the source root.
    """
    source: Path
    relative: Path
    kind: str                       # video/other
    size_bytes: int = 0

    # Video only
    duration: float = 0.0
    destination: Optional[Path] = None

    outcome: str = "pending"        # pending/success/failed/skipped/copied/copy_failed
    output_bytes: int = 0
    attempts: int = 0
    error: Optional[str] = None

    @property
    def is_video(self) -> bool:
        return self.kind == "video"


@dataclass
class BatchStatistics:
    success: int = 0
    errors: int = 0
    copied: int = 0
    copy_errors: int = 0
    deleted_originals: int = 0
    delete_errors: int = 0
    bytes_in: int = 0
    bytes_out: int = 0
    started_at: Optional[float] = None
    finished_at: Optional[float] = None
    interrupted: bool = False
    tasks: List[FileTask] = field(default_factory=list)

    @property
    def total(self) -> int:
        return self.success + self.errors

    @property
    def bytes_saved(self) -> int:
        return self.bytes_in - self.bytes_out

    @property
    def elapsed(self) -> float:
        if self.started_at is None:
            return 0.0
        end = self.finished_at if self.finished_at is not None else self.started_at
        return max(0.0, end - self.started_at)


@dataclass
class RetentionCandidate:
    path: Path
    mtime: float
    size_bytes: int


@dataclass
class SweepResult:
    deleted: int = 0
    pruned_dirs: int = 0
    candidates: int = 0
    delete_errors: int = 0
