import logging
import subprocess
import tempfile
import time
from dataclasses import dataclass
from typing import Callable, List, Optional, Set

from .. import config
from ..exceptions import TranscodeError


@dataclass
class EngineResult:
    returncode: int
    stderr_tail: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class FfmpegEngine:
    """
    Wraps the ffmpeg binary: capability listing and supervised transcodes.

    A transcode is polled rather than waited on, so the caller can refresh
    progress from the side-channel file on every tick. stderr goes to a
    temporary file instead of a pipe so a chatty ffmpeg can never block.
    """

    def __init__(self,
                 ffmpeg: str = config.FFMPEG_BIN,
                 poll_interval: float = config.PROGRESS_POLL_INTERVAL,
                 sleep: Callable[[float], None] = time.sleep):
        self.ffmpeg = ffmpeg
        self.poll_interval = poll_interval
        self.sleep = sleep

    def list_encoders(self) -> Set[str]:
        return self._list_codecs("-encoders")

    def list_decoders(self) -> Set[str]:
        return self._list_codecs("-decoders")

    def run(self, cmd: List[str], on_poll: Optional[Callable[[], None]] = None) -> EngineResult:
        """
        Runs `cmd` to completion, calling `on_poll` about once per poll interval.

        Raises:
            TranscodeError: if the binary cannot be started.
        """
        logging.debug(f"Running: {' '.join(cmd)}")
        with tempfile.TemporaryFile() as stderr_file:
            try:
                proc = subprocess.Popen(cmd, stdin=subprocess.DEVNULL, stdout=subprocess.DEVNULL,
                                        stderr=stderr_file)
            except OSError as e:
                raise TranscodeError(f"Could not start {cmd[0]}: {e}") from e

            try:
                while proc.poll() is None:
                    if on_poll is not None:
                        on_poll()
                    self.sleep(self.poll_interval)
            finally:
                if proc.poll() is None:
                    proc.kill()
                    proc.wait()

            if on_poll is not None:
                on_poll()

            stderr_file.seek(0)
            tail = stderr_file.read()[-4000:].decode("utf-8", errors="replace").strip()

        return EngineResult(proc.returncode, tail)

    def _list_codecs(self, flag: str) -> Set[str]:
        """
        Parses `ffmpeg -hide_banner -encoders/-decoders`. Entries follow a
        '------' separator as '<6 capability flags> <name> <description>'.
        """
        try:
            out = subprocess.run([self.ffmpeg, "-hide_banner", flag],
                                 capture_output=True, text=True, timeout=30, check=False).stdout
        except (OSError, subprocess.TimeoutExpired) as e:
            logging.warning(f"Could not query ffmpeg {flag}: {e}")
            return set()

        names: Set[str] = set()
        in_table = False
        for line in out.splitlines():
            stripped = line.strip()
            if stripped.startswith("------"):
                in_table = True
                continue
            if not in_table or not stripped:
                continue
            parts = stripped.split()
            if len(parts) >= 2 and len(parts[0]) == 6:
                names.add(parts[1])
        return names
