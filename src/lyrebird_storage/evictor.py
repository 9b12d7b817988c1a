from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable

from lyrebird_storage.actions import ActionKind, CleanupAction
from lyrebird_storage.sweep import plan_empty_dirs
from lyrebird_storage.targets import (
    Category,
    FileInfo,
    StorageTarget,
    is_compressed,
    scan,
    scan_target,
)


log = logging.getLogger(__name__)


def _oldest_first(info: FileInfo) -> tuple[bool, float, str]:
    # Unknown mtimes sort after every known one.
    return (info.mtime is None, info.mtime or 0.0, str(info.path))


def plan_oldest_recordings(
    targets: Iterable[StorageTarget], max_delete: int
) -> list[CleanupAction]:
    recordings = [
        info
        for t in targets
        if t.category is Category.RECORDING
        for info in scan_target(t)
    ]
    recordings.sort(key=_oldest_first)
    chosen = recordings[: max(0, max_delete)]
    if len(recordings) > len(chosen):
        log.info(
            "Emergency: %d recording(s) eligible, removing the oldest %d",
            len(recordings),
            len(chosen),
        )
    return [
        CleanupAction(
            kind=ActionKind.DELETE,
            path=info.path,
            category=Category.RECORDING,
            bytes_freed=info.size,
            reason="emergency: oldest recording",
        )
        for info in chosen
    ]


def plan_compressed_logs(log_dirs: Iterable[Path]) -> list[CleanupAction]:
    actions: list[CleanupAction] = []
    seen: set[Path] = set()
    # Log dirs may nest (/var/log and /var/log/lyrebird).
    for root in dict.fromkeys(log_dirs):
        for info in scan(root):
            if is_compressed(info) and info.path not in seen:
                seen.add(info.path)
                actions.append(
                    CleanupAction(
                        kind=ActionKind.DELETE,
                        path=info.path,
                        category=Category.LOG,
                        bytes_freed=info.size,
                        reason="emergency: rotated log archive",
                    )
                )
    return actions


def plan_clear(target: StorageTarget) -> list[CleanupAction]:
    """Every managed file of target, whatever its age, plus emptied subdirectories."""
    actions = [
        CleanupAction(
            kind=ActionKind.DELETE,
            path=info.path,
            category=target.category,
            bytes_freed=info.size,
            reason=f"emergency: clear {target.describe()}",
        )
        for info in scan_target(target)
    ]
    if target.recursive:
        doomed = {a.path for a in actions}
        actions.extend(plan_empty_dirs(target.root, doomed, target.category))
    return actions


def plan_eviction(
    targets: Iterable[StorageTarget], max_delete: int, log_dirs: Iterable[Path]
) -> list[CleanupAction]:
    """
    Survival pass for an exhausted disk. Ignores retention windows: the oldest
    max_delete recordings go, as do all compressed logs and every temp and
    buffer file.
    """
    targets = list(targets)
    log.warning("Running emergency cleanup - disk space critical!")
    actions = plan_oldest_recordings(targets, max_delete)
    actions.extend(plan_compressed_logs(log_dirs))
    for target in targets:
        if target.category in (Category.TEMP, Category.BUFFER):
            actions.extend(plan_clear(target))
    return actions
