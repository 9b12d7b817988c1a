from __future__ import annotations

import fnmatch
import logging
import os
import shutil
import time
from dataclasses import dataclass, field
from pathlib import Path


log = logging.getLogger(__name__)

MB = 1024 * 1024


@dataclass(frozen=True)
class DiskSnapshot:
    mount: Path
    used_percent: int
    free_mb: int
    taken_at: float = field(default_factory=time.time)
    # False when the mount could not be statted and the numbers are placeholders.
    readable: bool = True


class DiskInspector:
    """
    Read-only view of disk and directory state.

    Every query fails soft: a missing or unreadable path reads as zero so that a
    directory vanishing mid-run never crashes a pressure decision. Use
    `snapshot()` when the caller needs to tell "zero" from "unknown".
    """

    def _disk_usage(self, mount: Path) -> tuple[int, int] | None:
        """(used, available) bytes, or None if the mount cannot be statted."""
        try:
            du = shutil.disk_usage(mount)
        except OSError as e:
            log.debug("Cannot stat mount %s: %s", mount, e)
            return None
        return du.used, du.free

    @staticmethod
    def _percent(used: int, free: int) -> int:
        # Same rounding as df(1): used / (used + available), rounded up.
        denom = used + free
        if denom <= 0:
            return 0
        return min(100, -(-used * 100 // denom))

    def usage(self, mount: str | Path) -> int:
        du = self._disk_usage(Path(mount))
        if du is None:
            return 0
        return self._percent(*du)

    def free_space(self, mount: str | Path) -> int:
        du = self._disk_usage(Path(mount))
        if du is None:
            return 0
        return int(du[1] // MB)

    def snapshot(self, mount: str | Path) -> DiskSnapshot:
        mount = Path(mount)
        du = self._disk_usage(mount)
        if du is None:
            return DiskSnapshot(mount=mount, used_percent=0, free_mb=0, readable=False)
        return DiskSnapshot(
            mount=mount,
            used_percent=self._percent(*du),
            free_mb=int(du[1] // MB),
        )

    def directory_size(self, path: str | Path) -> int:
        total = 0
        for dirpath, _dirnames, filenames in os.walk(path):
            for name in filenames:
                try:
                    total += os.lstat(os.path.join(dirpath, name)).st_size
                except OSError:
                    continue
        return total

    def file_count(self, path: str | Path, pattern: str = "*", recursive: bool = False) -> int:
        count = 0
        for dirpath, _dirnames, filenames in os.walk(path):
            for name in filenames:
                full = os.path.join(dirpath, name)
                if fnmatch.fnmatchcase(name, pattern) and os.path.isfile(full):
                    count += 1
            if not recursive:
                break
        return count


def format_bytes(n: int) -> str:
    if n >= 1024 ** 3:
        return f"{n / 1024 ** 3:.2f}GB"
    if n >= MB:
        return f"{n / MB:.2f}MB"
    if n >= 1024:
        return f"{n / 1024:.2f}KB"
    return f"{n}B"
