"""
Encoder and decoder selection.

The encoder is picked once per batch: HEVC before H.264 (compression),
hardware before software within each codec (throughput), and libx264 as
the encoder that is always there. Decoders are picked per input file from
the file's own codec, independent of what the output is encoded as.
"""
import logging
from typing import Iterable, List, Optional, Set

from .. import config
from ..models import CodecProfile
from .engine import FfmpegEngine


def select_decoder_for_input(codec_family: Optional[str], available_decoders: Iterable[str]) -> List[str]:
    """
    Returns ffmpeg flags forcing a hardware decoder for `codec_family`
    (NVIDIA before Intel), or [] for software decoding.
    """
    if not codec_family:
        return []
    available = set(available_decoders)
    for vendor in config.DECODER_VENDOR_ORDER:
        decoder = config.HW_DECODERS.get(vendor, {}).get(codec_family)
        if decoder and decoder in available:
            return ["-c:v", decoder]
    return []


class CodecSelector:
    def __init__(self, engine: FfmpegEngine):
        self.engine = engine
        self._encoders: Optional[Set[str]] = None
        self._decoders: Optional[Set[str]] = None
        self._profile: Optional[CodecProfile] = None

    @property
    def available_encoders(self) -> Set[str]:
        if self._encoders is None:
            self._encoders = self.engine.list_encoders()
        return self._encoders

    @property
    def available_decoders(self) -> Set[str]:
        if self._decoders is None:
            self._decoders = self.engine.list_decoders()
        return self._decoders

    def select_encoder(self) -> CodecProfile:
        if self._profile is not None:
            return self._profile

        encoders = self.available_encoders
        for name, vendor, family in config.ENCODER_PREFERENCE:
            # libx264 is the universal fallback, used even if the listing failed
            if name not in encoders and name != "libx264":
                continue

            decoder_flags: List[str] = []
            if vendor is not None:
                decoder = config.HW_DECODERS.get(vendor, {}).get(family)
                if decoder and decoder in self.available_decoders:
                    decoder_flags = ["-c:v", decoder]

            self._profile = CodecProfile(
                encoder=name,
                encoder_flags=tuple(["-c:v", name] + config.ENCODER_FLAGS[name]),
                codec_family=family,
                vendor=vendor,
                decoder_flags=tuple(decoder_flags),
            )
            logging.info(f"Selected encoder: {name}"
                         + (f" (hardware decoder {decoder_flags[1]})" if decoder_flags else ""))
            return self._profile

        raise AssertionError("ENCODER_PREFERENCE must end with libx264")

    def select_decoder_for_input(self, codec_family: Optional[str]) -> List[str]:
        return select_decoder_for_input(codec_family, self.available_decoders)
