import logging
import subprocess
import json
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Dict, Any

from .. import config
from ..exceptions import ProbeError

# Type hint 'Any' prevents Pylance from complaining about "None" having no attribute "parse"
MediaInfo: Any = None
try:
    from pymediainfo import MediaInfo
except ImportError:
    MediaInfo = None


@dataclass
class ProbeResult:
    duration: float               # seconds, 0.0 if unknown
    codec_name: Optional[str]     # raw name as reported by the tool

    @property
    def codec_family(self) -> Optional[str]:
        if not self.codec_name:
            return None
        return config.CODEC_FAMILIES.get(self.codec_name.strip().lower())


class MediaProbe:
    """
    Reads the duration and video codec of a file.

    Strategies:
      - pymediainfo (fast wrapper around libmediainfo) when installed.
      - ffprobe (always available next to ffmpeg) as the fallback.
    """

    def __init__(self, ffprobe: str = config.FFPROBE_BIN):
        self.ffprobe = ffprobe
        self._cache: Dict[Path, ProbeResult] = {}

    def probe(self, path: Path) -> ProbeResult:
        """
        Raises:
            ProbeError: if neither strategy could read the file.
        """
        if path in self._cache:
            return self._cache[path]

        result = None
        if MediaInfo is not None:
            try:
                result = self._probe_mediainfo(path)
            except Exception as e:
                logging.debug(f"MediaInfo failed for {path}: {e}")

        if result is None or not result.duration or not result.codec_name:
            try:
                fallback = self._probe_ffprobe(path)
                if result is None:
                    result = fallback
                else:
                    result = ProbeResult(result.duration or fallback.duration,
                                         result.codec_name or fallback.codec_name)
            except (OSError, subprocess.SubprocessError, ValueError) as e:
                if result is None:
                    raise ProbeError(f"Could not probe {path}: {e}") from e
                logging.debug(f"ffprobe failed for {path}: {e}")

        self._cache[path] = result
        return result

    def get_duration(self, path: Path) -> float:
        """Returns the duration in seconds, or 0.0 if it cannot be determined."""
        try:
            return self.probe(path).duration
        except ProbeError as e:
            logging.warning(f"{e}. ETA will be less accurate.")
            return 0.0

    def get_codec_family(self, path: Path) -> Optional[str]:
        try:
            return self.probe(path).codec_family
        except ProbeError as e:
            logging.warning(str(e))
            return None

    # --- Internal Extraction Helpers ---

    def _probe_mediainfo(self, path: Path) -> ProbeResult:
        mi = MediaInfo.parse(str(path))
        duration = 0.0
        codec = None
        for track in mi.tracks:
            if track.track_type == "General" and getattr(track, "duration", None):
                # MediaInfo duration is in milliseconds
                duration = float(track.duration) / 1000.0
            elif track.track_type == "Video" and codec is None:
                codec = getattr(track, "format", None)
        return ProbeResult(duration, codec)

    def _probe_ffprobe(self, path: Path) -> ProbeResult:
        cmd = [
            self.ffprobe,
            "-v", "error",
            "-select_streams", "v:0",
            "-show_entries", "format=duration:stream=codec_name",
            "-of", "json",
            str(path),
        ]
        out = subprocess.check_output(cmd, stderr=subprocess.DEVNULL, text=True, timeout=60)
        data = json.loads(out or "{}")

        duration = 0.0
        raw = data.get("format", {}).get("duration")
        if raw not in (None, "N/A"):
            duration = float(raw)

        streams = data.get("streams") or [{}]
        return ProbeResult(duration, streams[0].get("codec_name"))
