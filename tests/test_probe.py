import json
import subprocess
from pathlib import Path
from types import SimpleNamespace

import pytest

from recorder_backup.exceptions import ProbeError
from recorder_backup.transcoding import probe as probe_module
from recorder_backup.transcoding.probe import MediaProbe, ProbeResult


def ffprobe_output(duration="12.480000", codec="h264"):
    return json.dumps({
        "programs": [],
        "streams": [{"codec_name": codec}],
        "format": {"duration": duration},
    })


def test_ffprobe_fallback(monkeypatch):
    monkeypatch.setattr(probe_module, "MediaInfo", None)
    calls = []

    def fake_check_output(cmd, **kwargs):
        calls.append(cmd)
        return ffprobe_output()

    monkeypatch.setattr(subprocess, "check_output", fake_check_output)

    mp = MediaProbe("ffprobe")
    assert mp.get_duration(Path("a.mp4")) == pytest.approx(12.48)
    assert mp.get_codec_family(Path("a.mp4")) == "h264"
    # Cached per path
    assert len(calls) == 1


def test_mediainfo_preferred(monkeypatch):
    tracks = [
        SimpleNamespace(track_type="General", duration=61500),
        SimpleNamespace(track_type="Video", format="HEVC"),
    ]
    monkeypatch.setattr(probe_module, "MediaInfo",
                        SimpleNamespace(parse=lambda path: SimpleNamespace(tracks=tracks)))

    def fail(*args, **kwargs):
        raise AssertionError("ffprobe should not run")

    monkeypatch.setattr(subprocess, "check_output", fail)

    result = MediaProbe().probe(Path("a.mov"))
    assert result.duration == pytest.approx(61.5)
    assert result.codec_family == "hevc"


def test_mediainfo_gaps_filled_from_ffprobe(monkeypatch):
    tracks = [SimpleNamespace(track_type="Video", format="AVC")]
    monkeypatch.setattr(probe_module, "MediaInfo",
                        SimpleNamespace(parse=lambda path: SimpleNamespace(tracks=tracks)))
    monkeypatch.setattr(subprocess, "check_output", lambda cmd, **kw: ffprobe_output("30.0", "h264"))

    result = MediaProbe().probe(Path("a.mp4"))
    assert result.duration == 30.0
    assert result.codec_name == "AVC"


def test_unreadable_file(monkeypatch):
    monkeypatch.setattr(probe_module, "MediaInfo", None)

    def broken(cmd, **kwargs):
        raise subprocess.CalledProcessError(1, cmd)

    monkeypatch.setattr(subprocess, "check_output", broken)

    mp = MediaProbe()
    with pytest.raises(ProbeError):
        mp.probe(Path("broken.mp4"))
    assert mp.get_duration(Path("broken.mp4")) == 0.0
    assert mp.get_codec_family(Path("broken.mp4")) is None


def test_unknown_duration_and_codec(monkeypatch):
    monkeypatch.setattr(probe_module, "MediaInfo", None)
    monkeypatch.setattr(subprocess, "check_output", lambda cmd, **kw: ffprobe_output("N/A", "prores"))

    result = MediaProbe().probe(Path("a.mov"))
    assert result.duration == 0.0
    assert result.codec_family is None


def test_codec_family_aliases():
    assert ProbeResult(1.0, "avc1").codec_family == "h264"
    assert ProbeResult(1.0, "HEVC").codec_family == "hevc"
    assert ProbeResult(1.0, None).codec_family is None
