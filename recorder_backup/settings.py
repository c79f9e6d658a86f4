"""
User settings read from a plain key=value file, e.g.

    # recorder_backup.ini
    exe_path = C:\\Program Files\\Recorder\\Recorder.exe
    output_dir = D:\\Recordings
    delete_originals = yes
    retention_days = 60

The device password is deliberately not a setting.
"""
import logging
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Optional

from . import config
from .exceptions import SettingsError

TRUE_VALUES = {"1", "true", "yes", "on", "y"}
FALSE_VALUES = {"0", "false", "no", "off", "n"}
RETENTION_MODES = ("prompt", "auto", "off")


@dataclass
class Settings:
    exe_path: Optional[Path] = None
    output_dir: Path = config.DEFAULT_OUTPUT_DIR
    source_subfolder: str = config.SOURCE_SUBFOLDER
    delete_originals: bool = False
    retention_days: int = config.RETENTION_DAYS
    retention_mode: str = "prompt"
    ui_timeout: float = config.UI_TIMEOUT
    drive_timeout: float = config.DRIVE_TIMEOUT
    modal_timeout: float = config.MODAL_TIMEOUT
    max_auth_retries: int = config.MAX_AUTH_RETRIES
    sync_clock: bool = True
    ffmpeg_path: str = config.FFMPEG_BIN
    ffprobe_path: str = config.FFPROBE_BIN
    log_dir: Optional[Path] = None


# Field name -> converter. Optional[Path] fields share the Path converter.
_CONVERTERS = {
    "exe_path": Path,
    "output_dir": Path,
    "log_dir": Path,
    "source_subfolder": str,
    "retention_mode": str,
    "ffmpeg_path": str,
    "ffprobe_path": str,
    "delete_originals": "bool",
    "sync_clock": "bool",
    "retention_days": int,
    "max_auth_retries": int,
    "ui_timeout": float,
    "drive_timeout": float,
    "modal_timeout": float,
}


def parse_bool(value: str) -> bool:
    v = value.strip().lower()
    if v in TRUE_VALUES:
        return True
    if v in FALSE_VALUES:
        return False
    raise ValueError(f"not a boolean: {value!r}")


def load_settings(path: Optional[Path], base: Optional[Settings] = None) -> Settings:
    """
    Reads `path` on top of `base` (defaults if omitted). A missing file just
    returns the base settings.

    Raises:
        SettingsError: on a value that cannot be converted.
    """
    settings = base or Settings()
    if path is None or not path.exists():
        return settings

    known = {f.name for f in fields(Settings)}
    with path.open("r", encoding="utf-8-sig") as f:
        for lineno, line in enumerate(f, 1):
            line = line.strip()
            if not line or line.startswith(("#", ";", "[")):
                continue
            key, sep, value = line.partition("=")
            if not sep:
                logging.warning(f"{path}:{lineno}: ignoring line without '='")
                continue

            key = key.strip().lower()
            value = value.strip().strip('"')
            if key not in known:
                logging.warning(f"{path}:{lineno}: unknown setting '{key}'")
                continue

            try:
                setattr(settings, key, _convert(key, value))
            except ValueError as e:
                raise SettingsError(f"{path}:{lineno}: invalid value for {key}: {e}") from e

    if settings.retention_mode not in RETENTION_MODES:
        raise SettingsError(f"{path}: retention_mode must be one of {', '.join(RETENTION_MODES)}")
    return settings


def _convert(key: str, value: str):
    conv = _CONVERTERS[key]
    if conv == "bool":
        return parse_bool(value)
    if conv is Path:
        return Path(value).expanduser() if value else None
    return conv(value)
