from __future__ import annotations

import logging
import os
import shutil
import tempfile
from pathlib import Path

from lyrebird_storage.actions import ActionKind, CleanupAction
from lyrebird_storage.config import AppConfig
from lyrebird_storage.disk import format_bytes
from lyrebird_storage.targets import (
    Category,
    FileInfo,
    is_plain_log,
    is_stale_tmp,
    older_than,
    scan,
    stat_file,
)


log = logging.getLogger(__name__)

# Leftovers of an interrupted compaction are only removed once this old.
STALE_TMP_SECONDS = 5 * 60
_CHUNK = 1024 * 1024


def compaction_candidates(config: AppConfig) -> list[FileInfo]:
    """The MediaMTX log plus every *.log directly inside the log dir."""
    files: list[FileInfo] = []
    if config.paths.mediamtx_log.is_file():
        files.append(stat_file(config.paths.mediamtx_log))
    files.extend(info for info in scan(config.paths.log_dir, recursive=False) if is_plain_log(info))
    return files


def plan_compaction(files: list[FileInfo], max_size: int, tail_bytes: int) -> list[CleanupAction]:
    actions: list[CleanupAction] = []
    for info in files:
        if info.size <= max_size:
            log.debug("Log within cap: %s (%s)", info.path, format_bytes(info.size))
            continue
        keep = min(tail_bytes, info.size)
        actions.append(
            CleanupAction(
                kind=ActionKind.TRUNCATE,
                path=info.path,
                category=Category.LOG,
                bytes_freed=info.size - keep,
                reason=f"log oversized ({format_bytes(info.size)} > {format_bytes(max_size)})",
                keep_bytes=keep,
            )
        )
    return actions


def plan_stale_tmp(config: AppConfig, now: float) -> list[CleanupAction]:
    stale = older_than(STALE_TMP_SECONDS, now)
    actions: list[CleanupAction] = []
    for root in dict.fromkeys((config.paths.mediamtx_log_dir, config.paths.log_dir)):
        for info in scan(root, recursive=False):
            if is_stale_tmp(info) and stale(info):
                actions.append(
                    CleanupAction(
                        kind=ActionKind.DELETE,
                        path=info.path,
                        category=Category.LOG,
                        bytes_freed=info.size,
                        reason="stale compaction temp file",
                    )
                )
    return actions


def plan_log_compaction(config: AppConfig, now: float) -> list[CleanupAction]:
    return plan_stale_tmp(config, now) + plan_compaction(
        compaction_candidates(config),
        max_size=config.limits.max_log_size,
        tail_bytes=config.limits.log_tail_bytes,
    )


def truncate_to_tail(path: Path, keep_bytes: int) -> int:
    """
    Replace path's contents with its final keep_bytes.

    The tail is written to a temporary sibling and renamed over the original,
    so a reader sees either the old file or the complete new one. On failure
    the temporary file is removed and the original is left as it was.
    Returns the number of bytes dropped.
    """
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as dst:
            with open(path, "rb") as src:
                size = os.fstat(src.fileno()).st_size
                remaining = min(keep_bytes, size)
                src.seek(size - remaining)
                while remaining > 0:
                    chunk = src.read(min(_CHUNK, remaining))
                    if not chunk:
                        break
                    dst.write(chunk)
                    remaining -= len(chunk)
            dst.flush()
            os.fsync(dst.fileno())
        shutil.copymode(path, tmp_name)
        os.replace(tmp_name, path)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except FileNotFoundError:
            pass
        raise
    return max(0, size - keep_bytes)
