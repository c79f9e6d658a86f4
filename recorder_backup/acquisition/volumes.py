import os
import sys
import logging
import string
import subprocess
import time
from pathlib import Path
from typing import Callable, Iterable, Optional, Set

import psutil

from .. import config
from ..polling import wait_until


class VolumeWatcher:
    """
    Observes mounted filesystem volumes.

    Volumes are never cached: the device application and the OS mount and
    unmount asynchronously, so every call re-queries the system.
    """

    def __init__(self,
                 poll_interval: float = config.VOLUME_POLL_INTERVAL,
                 clock: Callable[[], float] = time.monotonic,
                 sleep: Callable[[float], None] = time.sleep):
        self.poll_interval = poll_interval
        self.clock = clock
        self.sleep = sleep

    def list_volumes(self) -> Set[str]:
        """
        Returns the set of currently mounted volume ids.
        Falls back to an OS query when psutil fails or reports nothing.
        """
        try:
            volumes = {p.mountpoint for p in psutil.disk_partitions(all=False) if p.mountpoint}
            if volumes:
                return volumes
            logging.debug("psutil reported no partitions, using OS fallback")
        except (OSError, RuntimeError) as e:
            logging.debug(f"psutil volume enumeration failed: {e}")

        return self._fallback_volumes()

    def find_marked_volume(self, markers: Iterable[str]) -> Optional[str]:
        """
        Returns the first mounted volume whose top-level entries include any
        of the marker folder names, or None.
        """
        wanted = {m.lower() for m in markers}
        if not wanted:
            return None

        for volume in sorted(self.list_volumes()):
            try:
                with os.scandir(volume) as it:
                    names = {e.name.lower() for e in it}
            except OSError as e:
                # Card readers and optical drives raise "not ready" here
                logging.debug(f"Skipping volume {volume}: {e}")
                continue

            if names & wanted:
                logging.info(f"Found marked volume: {volume}")
                return volume
        return None

    def wait_for_new_volume(self, before: Set[str], timeout: float) -> Optional[str]:
        """
        Polls until a volume absent from `before` appears, or `timeout` elapses.
        If several appear at once the lexicographically smallest is returned.
        """
        before = set(before)

        def _new_volume() -> Optional[str]:
            fresh = self.list_volumes() - before
            return min(fresh) if fresh else None

        volume = wait_until(_new_volume, timeout, self.poll_interval,
                            clock=self.clock, sleep=self.sleep)
        if volume:
            logging.info(f"New volume detected: {volume}")
        return volume

    # --- OS Fallbacks ---

    def _fallback_volumes(self) -> Set[str]:
        if sys.platform == "win32":
            return self._windows_drive_letters()
        return self._posix_mounts()

    def _windows_drive_letters(self) -> Set[str]:
        return {f"{letter}:\\" for letter in string.ascii_uppercase
                if os.path.exists(f"{letter}:\\")}

    def _posix_mounts(self) -> Set[str]:
        mounts: Set[str] = set()
        proc_mounts = Path("/proc/mounts")
        try:
            if proc_mounts.exists():
                lines = proc_mounts.read_text(encoding="utf-8", errors="replace").splitlines()
                for line in lines:
                    parts = line.split()
                    if len(parts) >= 2:
                        # /proc/mounts escapes spaces as \040
                        mounts.add(parts[1].replace("\\040", " "))
            else:
                out = subprocess.run(["mount"], capture_output=True, text=True, check=False).stdout
                for line in out.splitlines():
                    # "<device> on <mountpoint> (type ...)" / "... type ext4 (...)"
                    if " on " in line:
                        rest = line.split(" on ", 1)[1]
                        mounts.add(rest.split(" (", 1)[0].split(" type ", 1)[0])
        except OSError as e:
            logging.warning(f"Could not enumerate mounts: {e}")
        return mounts
