import csv
import logging
from pathlib import Path
from typing import List

from .models import BatchStatistics, FileTask


def human_bytes(size: float) -> str:
    sign = "-" if size < 0 else ""
    size = abs(size)
    for unit in ("B", "KB", "MB", "GB", "TB"):
        if size < 1024 or unit == "TB":
            return f"{sign}{size:.1f} {unit}" if unit != "B" else f"{sign}{int(size)} B"
        size /= 1024
    return f"{sign}{size:.1f} TB"


def format_duration(seconds: float) -> str:
    seconds = int(round(max(0.0, seconds)))
    h, rem = divmod(seconds, 3600)
    m, s = divmod(rem, 60)
    return f"{h:d}:{m:02d}:{s:02d}"


def format_summary(stats: BatchStatistics) -> str:
    """Multi-line end-of-run summary; printed even when the batch was interrupted."""
    saved_pct = (100.0 * stats.bytes_saved / stats.bytes_in) if stats.bytes_in else 0.0
    lines = [
        "=== Transcode Summary ===",
        f"Videos processed:   {stats.total}",
        f"  Succeeded:        {stats.success}",
        f"  Failed:           {stats.errors}",
        f"Files copied:       {stats.copied}",
        f"  Copy errors:      {stats.copy_errors}",
        f"Originals deleted:  {stats.deleted_originals}",
    ]
    if stats.delete_errors:
        lines.append(f"  Delete errors:    {stats.delete_errors}")
    lines += [
        f"Input size:         {human_bytes(stats.bytes_in)}",
        f"Output size:        {human_bytes(stats.bytes_out)}",
        f"Space saved:        {human_bytes(stats.bytes_saved)} ({saved_pct:.1f}%)",
        f"Elapsed:            {format_duration(stats.elapsed)}",
    ]
    if stats.interrupted:
        lines.append("Run was INTERRUPTED before all files were processed.")
    return "\n".join(lines)


class ReportGenerator:
    """Writes a per-file CSV of what happened to every file in the batch."""

    HEADERS = [
        "Source Path",
        "Kind",
        "Status",
        "Destination Path",
        "Input Bytes",
        "Output Bytes",
        "Duration (s)",
        "Attempts",
        "Notes",
    ]

    def __init__(self, stats: BatchStatistics):
        self.stats = stats

    def write_csv(self, output_csv: Path) -> int:
        output_csv.parent.mkdir(parents=True, exist_ok=True)
        rows = [self._row(t) for t in self.stats.tasks]
        with open(output_csv, "w", newline="", encoding="utf-8") as f:
            writer = csv.writer(f)
            writer.writerow(self.HEADERS)
            writer.writerows(rows)

        logging.info(f"Report written: {output_csv} ({len(rows)} files)")
        return len(rows)

    def _row(self, task: FileTask) -> List[str]:
        return [
            str(task.source),
            task.kind,
            task.outcome,
            str(task.destination) if task.destination else "",
            str(task.size_bytes),
            str(task.output_bytes),
            f"{task.duration:.1f}" if task.is_video else "",
            str(task.attempts) if task.is_video else "",
            task.error or "",
        ]
