import logging
from pathlib import Path
from typing import Callable, Optional, Union

from .settings import Settings
from .models import AcquisitionTimeouts, BatchStatistics, SweepResult
from .acquisition.machine import AcquisitionStateMachine
from .acquisition.uia_backend import UiaApplication
from .acquisition.volumes import VolumeWatcher
from .transcoding.engine import FfmpegEngine
from .transcoding.probe import MediaProbe
from .transcoding.runner import TranscodeBatchRunner
from .retention.sweeper import RetentionSweeper


class RecorderBackupApp:
    def __init__(self,
                 settings: Settings,
                 app_factory: Callable = UiaApplication,
                 watcher: Optional[VolumeWatcher] = None,
                 engine: Optional[FfmpegEngine] = None,
                 probe: Optional[MediaProbe] = None,
                 sweeper: Optional[RetentionSweeper] = None,
                 show_progress: bool = True):
        self.settings = settings
        self.watcher = watcher or VolumeWatcher()

        timeouts = AcquisitionTimeouts(
            ui_timeout=settings.ui_timeout,
            drive_timeout=settings.drive_timeout,
            modal_timeout=settings.modal_timeout,
        )
        self.machine = AcquisitionStateMachine(
            app_factory,
            self.watcher,
            timeouts=timeouts,
            max_auth_retries=settings.max_auth_retries,
            sync_clock=settings.sync_clock,
        )
        self.runner = TranscodeBatchRunner(
            engine or FfmpegEngine(settings.ffmpeg_path),
            probe or MediaProbe(settings.ffprobe_path),
            show_progress=show_progress,
        )
        self.sweeper = sweeper or RetentionSweeper()

    def acquire(self,
                password: Union[str, Callable[[], str]],
                force_reattach: bool = False,
                credential_prompt: Optional[Callable[[int], Optional[str]]] = None) -> str:
        """Phase 1: returns the device volume. Raises AcquisitionError."""
        logging.info("--- Phase 1: Acquiring device drive ---")
        volume = self.machine.acquire(
            self.settings.exe_path,
            password,
            force_reattach=force_reattach,
            credential_prompt=credential_prompt,
        )
        logging.info(f"Device drive: {volume}")
        return volume

    def transcode(self, volume: str, stats: Optional[BatchStatistics] = None) -> BatchStatistics:
        """Phase 2: transcodes the device's recordings into the output folder."""
        source_root = Path(volume) / self.settings.source_subfolder
        dest_root = self.settings.output_dir
        logging.info(f"--- Phase 2: Transcoding {source_root} -> {dest_root} ---")
        return self.runner.run_batch(
            source_root,
            dest_root,
            delete_originals=self.settings.delete_originals,
            stats=stats,
        )

    def cleanup(self) -> Optional[SweepResult]:
        """Phase 3: retention sweep over the output folder."""
        if self.settings.retention_mode == "off":
            logging.info("Retention cleanup disabled.")
            return None
        logging.info(f"--- Phase 3: Removing videos older than {self.settings.retention_days} days ---")
        return self.sweeper.sweep(
            self.settings.output_dir,
            self.settings.retention_days,
            mode=self.settings.retention_mode,
        )
