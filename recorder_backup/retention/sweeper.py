import os
import logging
import time
from pathlib import Path
from typing import Callable, List, Optional

from .. import config
from ..models import RetentionCandidate, SweepResult


def is_affirmative(answer: Optional[str]) -> bool:
    return (answer or "").strip().lower() in config.YES_TOKENS


class RetentionSweeper:
    """
    Deletes transcoded videos older than the retention window and prunes the
    directories left empty.

    Modes:
      - "prompt": list candidates and ask once before deleting anything.
      - "auto":   delete without asking.
    """

    def __init__(self,
                 confirm: Callable[[str], str] = input,
                 now: Callable[[], float] = time.time):
        self.confirm = confirm
        self.now = now

    def find_candidates(self, root: Path, retention_days: int) -> List[RetentionCandidate]:
        cutoff = self.now() - max(1, retention_days) * 86400
        candidates = []
        for dirpath, _dirnames, filenames in os.walk(root):
            for name in sorted(filenames):
                path = Path(dirpath) / name
                if path.suffix.lower() not in config.VIDEO_EXTS:
                    continue
                try:
                    st = path.stat()
                except OSError as e:
                    logging.warning(f"Cannot stat {path}: {e}")
                    continue
                if st.st_mtime < cutoff:
                    candidates.append(RetentionCandidate(path, st.st_mtime, st.st_size))
        return candidates

    def sweep(self, root: Path, retention_days: int = config.RETENTION_DAYS, mode: str = "prompt") -> SweepResult:
        result = SweepResult()
        retention_days = max(1, int(retention_days))
        if not root.is_dir():
            return result

        candidates = self.find_candidates(root, retention_days)
        result.candidates = len(candidates)
        if not candidates:
            return result

        if mode == "prompt":
            logging.info(f"{len(candidates)} files older than {retention_days} days:")
            for c in candidates:
                logging.info(f"  {c.path}")
            answer = self.confirm(f"Delete {len(candidates)} files older than {retention_days} days? [y/N] ")
            if not is_affirmative(answer):
                logging.info("Cleanup declined, nothing deleted.")
                return result
        elif mode != "auto":
            raise ValueError(f"Unknown retention mode: {mode}")

        for c in candidates:
            try:
                c.path.unlink()
                result.deleted += 1
                logging.debug(f"Deleted {c.path}")
            except OSError as e:
                logging.error(f"Failed to delete {c.path}: {e}")
                result.delete_errors += 1

        result.pruned_dirs = self.prune_empty_dirs(root)
        logging.info(f"Retention cleanup: deleted {result.deleted} files, removed {result.pruned_dirs} empty folders.")
        return result

    def prune_empty_dirs(self, root: Path) -> int:
        """Removes empty directories under `root`, deepest first. `root` itself stays."""
        removed = 0
        for dirpath, _dirnames, _filenames in os.walk(root, topdown=False):
            directory = Path(dirpath)
            if directory == root:
                continue
            try:
                if not any(directory.iterdir()):
                    directory.rmdir()
                    removed += 1
                    logging.info(f"Removed empty folder: {directory}")
            except OSError as e:
                logging.warning(f"Could not remove {directory}: {e}")
        return removed
