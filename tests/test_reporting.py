import csv
from pathlib import Path

from recorder_backup.models import BatchStatistics, FileTask
from recorder_backup.reporting import ReportGenerator, format_duration, format_summary, human_bytes


def make_stats():
    video = FileTask(Path("/v/DCIM/a.mp4"), Path("a.mp4"), "video", size_bytes=10 * 1024 * 1024,
                     duration=12.0, destination=Path("/out/a.mp4"), outcome="success",
                     output_bytes=5 * 1024 * 1024, attempts=1)
    failed = FileTask(Path("/v/DCIM/b.mov"), Path("b.mov"), "video", size_bytes=100,
                      duration=3.0, destination=Path("/out/b.mp4"), outcome="failed",
                      attempts=2, error="ffmpeg exit 1")
    note = FileTask(Path("/v/DCIM/n.txt"), Path("n.txt"), "other", size_bytes=5,
                    destination=Path("/out/n.txt"), outcome="copied", output_bytes=5)
    return BatchStatistics(success=1, errors=1, copied=1,
                           bytes_in=10 * 1024 * 1024, bytes_out=5 * 1024 * 1024,
                           started_at=100.0, finished_at=3825.0,
                           tasks=[note, video, failed])


def test_human_bytes():
    assert human_bytes(512) == "512 B"
    assert human_bytes(5 * 1024 * 1024) == "5.0 MB"
    assert human_bytes(-2048) == "-2.0 KB"


def test_format_duration():
    assert format_duration(3725) == "1:02:05"
    assert format_duration(-5) == "0:00:00"


def test_summary():
    text = format_summary(make_stats())
    assert text.splitlines()[0] == "=== Transcode Summary ==="
    assert "Succeeded:        1" in text
    assert "Failed:           1" in text
    assert "Space saved:        5.0 MB (50.0%)" in text
    assert "Elapsed:            1:02:05" in text
    assert "INTERRUPTED" not in text


def test_summary_when_interrupted():
    stats = BatchStatistics(interrupted=True)
    text = format_summary(stats)
    assert "INTERRUPTED" in text
    assert "(0.0%)" in text


def test_csv_report(tmp_path):
    out = tmp_path / "reports" / "run.csv"
    assert ReportGenerator(make_stats()).write_csv(out) == 3

    with out.open(newline="", encoding="utf-8") as f:
        rows = list(csv.DictReader(f))

    assert [r["Status"] for r in rows] == ["copied", "success", "failed"]
    assert rows[0]["Duration (s)"] == ""
    assert rows[1]["Output Bytes"] == str(5 * 1024 * 1024)
    assert rows[2]["Attempts"] == "2"
    assert rows[2]["Notes"] == "ffmpeg exit 1"
