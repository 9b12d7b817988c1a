from __future__ import annotations

import fnmatch
import logging
import os
import stat
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Iterator

from lyrebird_storage.config import AppConfig


log = logging.getLogger(__name__)

DAY = 86400
HOUR = 3600

RECORDING_SUFFIXES = frozenset({".wav", ".mp3", ".flac", ".opus", ".ogg"})
TEMP_PREFIX = "lyrebird-"


class Category(str, Enum):
    RECORDING = "recording"
    LOG = "log"
    TEMP = "temp"
    BUFFER = "buffer"


@dataclass(frozen=True)
class FileInfo:
    path: Path
    mtime: float | None
    size: int

    @property
    def name(self) -> str:
        return self.path.name

    def age(self, now: float) -> float | None:
        if self.mtime is None:
            return None
        return now - self.mtime


Predicate = Callable[[FileInfo], bool]


def is_recording(info: FileInfo) -> bool:
    return info.path.suffix.lower() in RECORDING_SUFFIXES


def is_log(info: FileInfo) -> bool:
    # Live and rotated logs: app.log, app.log.1, app.log.2.gz
    return fnmatch.fnmatchcase(info.name, "*.log*")


def is_plain_log(info: FileInfo) -> bool:
    return info.name.endswith(".log")


def is_rotated_mediamtx_log(info: FileInfo) -> bool:
    return fnmatch.fnmatchcase(info.name, "mediamtx*.out.*")


def is_compressed(info: FileInfo) -> bool:
    return info.name.endswith(".gz")


def is_temp(info: FileInfo) -> bool:
    return info.name.startswith(TEMP_PREFIX)


def is_stale_tmp(info: FileInfo) -> bool:
    return info.name.endswith(".tmp")


def any_file(info: FileInfo) -> bool:
    return True


def older_than(max_age: float, now: float) -> Predicate:
    """
    A zero max_age makes every file eligible, including ones whose mtime
    could not be read. Otherwise an unknown age never qualifies.
    """
    def _pred(info: FileInfo) -> bool:
        if max_age <= 0:
            return True
        age = info.age(now)
        return age is not None and age > max_age

    return _pred


@dataclass(frozen=True)
class StorageTarget:
    category: Category
    root: Path
    matches: Predicate
    max_age: float
    recursive: bool = True
    label: str = ""

    def describe(self) -> str:
        return self.label or self.category.value


def build_targets(config: AppConfig) -> list[StorageTarget]:
    p, r = config.paths, config.retention
    return [
        StorageTarget(Category.RECORDING, p.recording_dir, is_recording, r.recording_days * DAY),
        StorageTarget(Category.LOG, p.log_dir, is_log, r.log_days * DAY),
        StorageTarget(
            Category.LOG,
            p.mediamtx_log_dir,
            is_rotated_mediamtx_log,
            r.log_days * DAY,
            label="mediamtx log",
        ),
        StorageTarget(Category.TEMP, p.temp_dir, is_temp, r.temp_hours * HOUR, recursive=False),
        StorageTarget(Category.BUFFER, p.buffer_dir, any_file, r.temp_hours * HOUR),
    ]


def stat_file(path: Path) -> FileInfo:
    try:
        st = os.lstat(path)
    except OSError as e:
        log.debug("Cannot stat %s: %s", path, e)
        return FileInfo(path=path, mtime=None, size=0)
    return FileInfo(path=path, mtime=st.st_mtime, size=st.st_size)


def scan(root: Path, recursive: bool = True) -> Iterator[FileInfo]:
    """
    Yield every regular file under root. A missing root yields nothing.
    Symlinks, FIFOs, sockets and device nodes are neither followed nor
    reported. An entry that cannot be statted is still yielded, with an
    unknown mtime.
    """
    if not root.is_dir():
        log.debug("Directory does not exist: %s", root)
        return

    def _onerror(e: OSError) -> None:
        log.debug("Cannot list %s: %s", e.filename, e)

    for dirpath, _dirnames, filenames in os.walk(root, onerror=_onerror):
        for name in sorted(filenames):
            path = Path(dirpath) / name
            try:
                st = os.lstat(path)
            except OSError as e:
                log.debug("Cannot stat %s: %s", path, e)
                yield FileInfo(path=path, mtime=None, size=0)
                continue
            if not stat.S_ISREG(st.st_mode):
                continue
            yield FileInfo(path=path, mtime=st.st_mtime, size=st.st_size)
        if not recursive:
            break


def scan_target(target: StorageTarget) -> Iterator[FileInfo]:
    for info in scan(target.root, target.recursive):
        if target.matches(info):
            yield info
