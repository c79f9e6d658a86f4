"""
Builds ffmpeg command lines as plain lists so they can be logged, pasted
into a terminal, and checked in tests without running anything.

    ffmpeg -hide_banner -nostats -y
      [decoder flags]            <- must precede -i to apply to the input
      -i <input>
      <encoder flags>
      -vf <scale + pixel format>
      <aac + compressor>
      -map_metadata 0 -movflags +faststart
      -progress <side-channel file>
      <output>
"""
from pathlib import Path
from typing import Sequence, List

from .. import config
from ..models import CodecProfile


def build_transcode_command(ffmpeg: str,
                            input_file: Path,
                            output_file: Path,
                            profile: CodecProfile,
                            decoder_flags: Sequence[str],
                            progress_file: Path) -> List[str]:
    return [
        ffmpeg,
        "-hide_banner",
        "-nostats",
        "-y",
        *decoder_flags,
        "-i", str(input_file),
        *profile.encoder_flags,
        "-vf", config.VIDEO_FILTER,
        *config.AUDIO_FLAGS,
        "-map_metadata", "0",
        "-movflags", "+faststart",
        "-progress", str(progress_file),
        str(output_file),
    ]
