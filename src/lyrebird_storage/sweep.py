from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Collection, Iterable

from lyrebird_storage.actions import ActionKind, CleanupAction
from lyrebird_storage.disk import format_bytes
from lyrebird_storage.targets import Category, StorageTarget, older_than, scan_target


log = logging.getLogger(__name__)


def _describe_age(seconds: float) -> str:
    if seconds >= 86400:
        return f"{seconds / 86400:g} day(s)"
    return f"{seconds / 3600:g} hour(s)"


def plan_expired(target: StorageTarget, now: float) -> list[CleanupAction]:
    expired = older_than(target.max_age, now)
    limit = _describe_age(target.max_age)
    actions: list[CleanupAction] = []
    for info in scan_target(target):
        if not expired(info):
            log.debug("Keeping %s %s (within %s)", target.describe(), info.path, limit)
            continue
        actions.append(
            CleanupAction(
                kind=ActionKind.DELETE,
                path=info.path,
                category=target.category,
                bytes_freed=info.size,
                reason=f"{target.describe()} older than {limit} ({format_bytes(info.size)})",
            )
        )
    return actions


def plan_empty_dirs(
    root: Path, doomed: Collection[Path], category: Category
) -> list[CleanupAction]:
    """
    Directories under root that are empty, or will be once every path in
    doomed is gone. Deepest first; root itself is never listed.
    """
    if not root.is_dir():
        return []
    removable: set[Path] = set()
    actions: list[CleanupAction] = []
    for dirpath, dirnames, filenames in os.walk(root, topdown=False):
        here = Path(dirpath)
        if here == root:
            continue
        children = [here / n for n in filenames] + [here / n for n in dirnames]
        if all(c in doomed or c in removable for c in children):
            removable.add(here)
            actions.append(
                CleanupAction(
                    kind=ActionKind.RMDIR,
                    path=here,
                    category=category,
                    bytes_freed=0,
                    reason="empty directory",
                )
            )
    return actions


def plan_sweep(
    targets: Iterable[StorageTarget],
    now: float,
    categories: Collection[Category] | None = None,
    also_removed: Collection[Path] = (),
) -> list[CleanupAction]:
    """
    Delete actions for every managed file past its retention window.

    Only the given categories are swept (all when None). When recordings are
    swept, directories under the recording root left empty are appended,
    counting also_removed (files other components already plan to delete)
    as gone.
    """
    actions: list[CleanupAction] = []
    recording_roots: list[Path] = []
    for target in targets:
        if categories is not None and target.category not in categories:
            continue
        log.info(
            "Cleaning %s older than %s in %s",
            target.describe(),
            _describe_age(target.max_age),
            target.root,
        )
        actions.extend(plan_expired(target, now))
        if target.category is Category.RECORDING:
            recording_roots.append(target.root)

    doomed = {a.path for a in actions} | set(also_removed)
    for root in recording_roots:
        actions.extend(plan_empty_dirs(root, doomed, Category.RECORDING))
    return actions
