import os
import logging
from pathlib import Path
from typing import Iterator, List, Tuple

from .. import config
from ..models import FileTask


class SourceScanner:
    """Walks the device's recording folder and classifies what it finds."""

    def classify(self, path: Path) -> str:
        # AppleDouble "._" files carry a video extension but no video
        if path.name.startswith("._"):
            return 'other'
        return 'video' if path.suffix.lower() in config.VIDEO_EXTS else 'other'

    def partition(self, root: Path) -> Tuple[List[FileTask], List[FileTask]]:
        """
        Returns (videos, others) in stable traversal order. Files that vanish
        or cannot be stat'ed during the walk are logged and left out.
        """
        videos: List[FileTask] = []
        others: List[FileTask] = []

        for path in self.iter_files(root):
            try:
                size = path.stat().st_size
            except OSError as e:
                logging.error(f"Failed to scan {path}: {e}")
                continue

            task = FileTask(
                source=path,
                relative=path.relative_to(root),
                kind=self.classify(path),
                size_bytes=size,
            )
            (videos if task.is_video else others).append(task)

        logging.info(f"Found {len(videos)} video files and {len(others)} other files under {root}")
        return videos, others

    def iter_files(self, root: Path) -> Iterator[Path]:
        """Depth-first walker using os.scandir for speed."""
        stack = [root]
        while stack:
            current = stack.pop()

            try:
                with os.scandir(current) as it:
                    entries = list(it)
            except OSError:
                logging.warning(f"Permission denied: {current}")
                continue

            # Sort for stable traversal order
            entries.sort(key=lambda e: e.name.lower())

            dirs = []
            files = []
            for e in entries:
                if e.is_dir(follow_symlinks=False):
                    dirs.append(Path(e.path))
                elif e.is_file(follow_symlinks=False):
                    files.append(Path(e.path))

            # Push dirs to stack (reversed so we process A before Z)
            for d in reversed(dirs):
                stack.append(d)

            for f in files:
                yield f
