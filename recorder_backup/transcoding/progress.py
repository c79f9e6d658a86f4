"""
Progress side-channel parsing and ETA estimation.

ffmpeg's -progress output is a stream of key=value lines; each block ends
with progress=continue|end. Only the latest value of each key matters.
"""
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional, Sequence

from .. import config


@dataclass
class ProgressSnapshot:
    out_time_seconds: float = 0.0
    speed: Optional[str] = None
    finished: bool = False


def read_progress(path: Path) -> ProgressSnapshot:
    """Parses the progress file; a missing or half-written file yields zeros."""
    snap = ProgressSnapshot()
    try:
        text = path.read_text(encoding="utf-8", errors="replace")
    except OSError:
        return snap

    for line in text.splitlines():
        key, sep, value = line.strip().partition("=")
        if not sep:
            continue
        value = value.strip()
        if key == "out_time_us" or key == "out_time_ms":
            # out_time_ms is actually microseconds too (long-standing ffmpeg quirk)
            try:
                snap.out_time_seconds = max(0.0, int(value) / 1_000_000)
            except ValueError:
                pass
        elif key == "out_time":
            seconds = _hhmmss_to_seconds(value)
            if seconds is not None:
                snap.out_time_seconds = seconds
        elif key == "speed":
            snap.speed = None if value == "N/A" else value
        elif key == "progress":
            snap.finished = value == "end"
    return snap


def durations_near_uniform(durations: Sequence[float]) -> bool:
    """
    True when per-file durations are close enough that counting files
    predicts the finish better than summing seconds: a spread of at most
    2 seconds, or at most 3% of the mean.
    """
    if not durations:
        return True
    spread = max(durations) - min(durations)
    mean = sum(durations) / len(durations)
    return spread <= config.UNIFORM_SPREAD_SECONDS or spread <= config.UNIFORM_SPREAD_RATIO * mean


class EtaEstimator:
    """
    Chooses one of two ETA models up front and keeps the displayed value
    counting down smoothly.

    Uniform durations:   remaining_files * elapsed / files_done (with fraction)
    Otherwise:           remaining_workload / (processed_seconds / elapsed)

    The model choice is made once for the whole batch, before the first
    file starts. The displayed ETA drops by one poll interval per update and
    is only replaced by a fresh estimate when a file completes.
    """

    def __init__(self,
                 durations: Sequence[float],
                 tick_seconds: float = config.PROGRESS_POLL_INTERVAL,
                 clock: Callable[[], float] = time.monotonic):
        self.durations = list(durations)
        self.uniform = durations_near_uniform(self.durations)
        self.total_files = len(self.durations)
        self.total_workload = sum(self.durations)
        self.tick_seconds = tick_seconds
        self.clock = clock

        self.started_at: Optional[float] = None
        self.files_done = 0
        self.seconds_done = 0.0
        self.displayed: Optional[float] = None

    @property
    def model(self) -> str:
        return "per-file" if self.uniform else "workload"

    def start(self) -> None:
        self.started_at = self.clock()

    def elapsed(self) -> float:
        if self.started_at is None:
            return 0.0
        return max(0.0, self.clock() - self.started_at)

    def fresh_estimate(self, current_seconds: float = 0.0, current_duration: float = 0.0) -> Optional[float]:
        elapsed = self.elapsed()
        if elapsed <= 0:
            return None

        if self.uniform:
            done = self.files_done + _fraction(current_seconds, current_duration)
            if done <= 0:
                return None
            return max(0.0, (self.total_files - done) * (elapsed / done))

        processed = self.seconds_done + min(current_seconds, current_duration)
        if processed <= 0:
            return None
        rate = processed / elapsed
        return max(0.0, self.total_workload - processed) / rate

    def update(self, current_seconds: float, current_duration: float) -> Optional[float]:
        """Called once per poll while a file is transcoding."""
        if self.displayed is None:
            self.displayed = self.fresh_estimate(current_seconds, current_duration)
        else:
            self.displayed = max(0.0, self.displayed - self.tick_seconds)
        return self.displayed

    def file_done(self, duration: float) -> Optional[float]:
        """Records a finished (or failed) file and resets the displayed ETA."""
        self.files_done += 1
        self.seconds_done += max(0.0, duration)
        self.displayed = self.fresh_estimate()
        return self.displayed

    def percent(self, current_seconds: float = 0.0, current_duration: float = 0.0) -> float:
        if self.uniform or self.total_workload <= 0:
            if self.total_files == 0:
                return 100.0
            done = self.files_done + _fraction(current_seconds, current_duration)
            return min(100.0, 100.0 * done / self.total_files)
        processed = self.seconds_done + min(current_seconds, current_duration)
        return min(100.0, 100.0 * processed / self.total_workload)


def format_eta(seconds: Optional[float]) -> str:
    if seconds is None:
        return "--:--:--"
    seconds = int(round(seconds))
    h, rem = divmod(seconds, 3600)
    m, s = divmod(rem, 60)
    return f"{h:d}:{m:02d}:{s:02d}"


def _fraction(current_seconds: float, current_duration: float) -> float:
    if current_duration <= 0:
        return 0.0
    return min(1.0, max(0.0, current_seconds / current_duration))


def _hhmmss_to_seconds(time_str: str) -> Optional[float]:
    try:
        parts = time_str.split(":")
        h, m, s = float(parts[0]), float(parts[1]), float(parts[2])
        return h * 3600 + m * 60 + s
    except (ValueError, IndexError):
        return None
