import os
import shutil
import logging
import tempfile
import time
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Set

from tqdm import tqdm

from .. import config
from ..exceptions import TranscodeError
from ..models import BatchStatistics, CodecProfile, FileTask
from ..scanning.filesystem import SourceScanner
from .codecs import CodecSelector
from .command import build_transcode_command
from .engine import EngineResult, FfmpegEngine
from .probe import MediaProbe
from .progress import EtaEstimator, format_eta, read_progress


class TranscodeBatchRunner:
    """
    Transcodes every video under a source tree into a mirrored destination
    tree and copies everything else verbatim.

    One file failing never stops the batch: failures are recorded on the
    FileTask and counted in the returned BatchStatistics.
    """

    def __init__(self,
                 engine: FfmpegEngine,
                 probe: MediaProbe,
                 selector: Optional[CodecSelector] = None,
                 scanner: Optional[SourceScanner] = None,
                 show_progress: bool = True,
                 clock: Callable[[], float] = time.monotonic):
        self.engine = engine
        self.probe = probe
        self.selector = selector or CodecSelector(engine)
        self.scanner = scanner or SourceScanner()
        self.show_progress = show_progress
        self.clock = clock
        self._created_dirs: Set[Path] = set()

    def run_batch(self, source_root: Path, dest_root: Path, delete_originals: bool = False,
                  stats: Optional[BatchStatistics] = None) -> BatchStatistics:
        """
        Args:
            stats: Optional accumulator owned by the caller, so the summary
                can still be reported if the batch is interrupted.
        """
        stats = stats if stats is not None else BatchStatistics()
        stats.started_at = self.clock()
        self._created_dirs = set()

        try:
            if not source_root.is_dir():
                logging.info(f"No recordings folder at {source_root}, nothing to do.")
                return stats

            videos, others = self.scanner.partition(source_root)
            stats.tasks.extend(others)
            stats.tasks.extend(videos)

            for task in others:
                self._copy(task, dest_root, stats)

            if not videos:
                logging.info("No video files found.")
                return stats

            profile = self.selector.select_encoder()

            for task in videos:
                task.duration = self.probe.get_duration(task.source)
            self._assign_destinations(videos, dest_root)

            eta = EtaEstimator([t.duration for t in videos], tick_seconds=self.engine.poll_interval,
                               clock=self.clock)
            logging.info(f"Transcoding {len(videos)} files ({eta.total_workload:.0f}s of video, "
                         f"{eta.model} ETA model) with {profile.encoder}")
            eta.start()

            with tqdm(total=len(videos), desc="Transcoding", unit="file",
                      disable=not self.show_progress) as bar:
                for task in videos:
                    self._transcode(task, profile, eta, bar, delete_originals, stats)
                    remaining = eta.file_done(task.duration)
                    bar.n = eta.files_done
                    bar.set_postfix_str(f"{eta.percent():5.1f}% ETA {format_eta(remaining)}")
                    bar.refresh()

            return stats
        except KeyboardInterrupt:
            stats.interrupted = True
            raise
        finally:
            stats.finished_at = self.clock()

    # --- Non-video ---

    def _copy(self, task: FileTask, dest_root: Path, stats: BatchStatistics) -> None:
        dest = dest_root / task.relative
        task.destination = dest
        try:
            self._ensure_dir(dest.parent)
            shutil.copy2(str(task.source), str(dest))
            task.outcome = "copied"
            task.output_bytes = task.size_bytes
            stats.copied += 1
        except OSError as e:
            logging.error(f"Failed to copy {task.source} -> {dest}: {e}")
            task.outcome = "copy_failed"
            task.error = str(e)
            stats.copy_errors += 1

    # --- Video ---

    def _assign_destinations(self, videos: List[FileTask], dest_root: Path) -> None:
        """Forces the output container; "clip.mov" next to "clip.mp4" becomes "clip_mov.mp4"."""
        claimed: Set[str] = set()
        for task in videos:
            rel = task.relative.with_suffix(config.OUTPUT_EXT)
            if str(rel).lower() in claimed:
                rel = task.relative.with_name(f"{task.relative.stem}_{task.relative.suffix[1:].lower()}"
                                              f"{config.OUTPUT_EXT}")
            claimed.add(str(rel).lower())
            task.destination = dest_root / rel

    def _transcode(self,
                   task: FileTask,
                   profile: CodecProfile,
                   eta: EtaEstimator,
                   bar: tqdm,
                   delete_originals: bool,
                   stats: BatchStatistics) -> None:
        dest = task.destination
        try:
            self._ensure_dir(dest.parent)
        except OSError as e:
            self._record_failure(task, stats, f"Cannot create {dest.parent}: {e}")
            return

        family = self.probe.get_codec_family(task.source)
        decoder_flags = self.selector.select_decoder_for_input(family)

        result = self._attempt(task, profile, decoder_flags, eta, bar)
        if result.returncode != 0 and decoder_flags:
            # Hardware decoders reject some bitstreams that software decodes fine
            logging.warning(f"{task.relative}: hardware decode ({decoder_flags[-1]}) failed, "
                            f"retrying with software decode.")
            self._remove_partial(dest)
            result = self._attempt(task, profile, [], eta, bar)

        output_size = self._output_size(dest)
        if result.returncode != 0 or output_size == 0:
            detail = result.stderr_tail.splitlines()[-1] if result.stderr_tail else ""
            self._record_failure(task, stats, f"ffmpeg exit {result.returncode}" + (f": {detail}" if detail else ""))
            return

        task.outcome = "success"
        task.output_bytes = output_size
        stats.success += 1
        stats.bytes_in += task.size_bytes
        stats.bytes_out += output_size
        logging.info(f"Transcoded {task.relative} ({_mb(task.size_bytes)} -> {_mb(output_size)})")

        if delete_originals:
            try:
                task.source.unlink()
                stats.deleted_originals += 1
            except OSError as e:
                logging.error(f"Failed to delete original {task.source}: {e}")
                stats.delete_errors += 1

    def _attempt(self,
                 task: FileTask,
                 profile: CodecProfile,
                 decoder_flags: Sequence[str],
                 eta: EtaEstimator,
                 bar: tqdm) -> EngineResult:
        task.attempts += 1
        fd, progress_name = tempfile.mkstemp(prefix="recorder_backup_", suffix=".progress")
        os.close(fd)
        progress_file = Path(progress_name)

        def _poll():
            snap = read_progress(progress_file)
            remaining = eta.update(snap.out_time_seconds, task.duration)
            fraction = min(1.0, snap.out_time_seconds / task.duration) if task.duration > 0 else 0.0
            bar.n = eta.files_done + fraction
            bar.set_postfix_str(f"{eta.percent(snap.out_time_seconds, task.duration):5.1f}% "
                                f"ETA {format_eta(remaining)}")
            bar.refresh()

        try:
            cmd = build_transcode_command(self.engine.ffmpeg, task.source, task.destination,
                                          profile, decoder_flags, progress_file)
            return self.engine.run(cmd, on_poll=_poll)
        except TranscodeError as e:
            logging.error(str(e))
            return EngineResult(-1, str(e))
        finally:
            try:
                progress_file.unlink()
            except FileNotFoundError:
                pass

    def _record_failure(self, task: FileTask, stats: BatchStatistics, reason: str) -> None:
        logging.error(f"Failed to transcode {task.relative}: {reason}")
        task.outcome = "failed"
        task.error = reason
        stats.errors += 1
        if task.destination is not None:
            self._remove_partial(task.destination)

    def _remove_partial(self, path: Path) -> None:
        try:
            path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            logging.warning(f"Could not remove partial output {path}: {e}")

    def _output_size(self, path: Path) -> int:
        try:
            return path.stat().st_size
        except OSError:
            return 0

    def _ensure_dir(self, directory: Path) -> None:
        if directory in self._created_dirs:
            return
        directory.mkdir(parents=True, exist_ok=True)
        self._created_dirs.add(directory)


def _mb(size: int) -> str:
    return f"{size / (1024 * 1024):.1f} MB"
