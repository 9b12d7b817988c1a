"""
Planned cleanup effects.

Components only ever produce `CleanupAction` values; `executor.apply_plan` is
the single place that touches the file system. A dry run walks the very same
plan, so the report always describes what a real run would have done.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Iterable, Iterator

from lyrebird_storage.disk import format_bytes
from lyrebird_storage.targets import Category


class ActionKind(str, Enum):
    DELETE = "delete"
    TRUNCATE = "truncate"
    RMDIR = "rmdir"


@dataclass(frozen=True)
class CleanupAction:
    kind: ActionKind
    path: Path
    category: Category
    bytes_freed: int
    reason: str
    dry_run: bool = False
    # TRUNCATE only: how many trailing bytes survive.
    keep_bytes: int = 0


class CleanupPlan:
    """
    Ordered actions for one invocation, at most one per path.

    A later DELETE of a path replaces an earlier TRUNCATE of it; any other
    repeat is dropped, so composing components never double-counts a file.
    """

    def __init__(self, actions: Iterable[CleanupAction] = ()) -> None:
        self._actions: list[CleanupAction] = []
        self._index: dict[Path, int] = {}
        self.extend(actions)

    def add(self, action: CleanupAction) -> bool:
        pos = self._index.get(action.path)
        if pos is None:
            self._index[action.path] = len(self._actions)
            self._actions.append(action)
            return True
        if action.kind is ActionKind.DELETE and self._actions[pos].kind is ActionKind.TRUNCATE:
            self._actions[pos] = action
            return True
        return False

    def extend(self, actions: Iterable[CleanupAction]) -> None:
        for action in actions:
            self.add(action)

    def __iter__(self) -> Iterator[CleanupAction]:
        return iter(list(self._actions))

    def __len__(self) -> int:
        return len(self._actions)

    def __bool__(self) -> bool:
        return bool(self._actions)

    @property
    def paths(self) -> set[Path]:
        return set(self._index)

    @property
    def deleted_paths(self) -> set[Path]:
        return {a.path for a in self._actions if a.kind is ActionKind.DELETE}

    @property
    def bytes_freed(self) -> int:
        return sum(a.bytes_freed for a in self._actions)


@dataclass
class CategoryTotals:
    files: int = 0
    bytes_freed: int = 0


@dataclass
class CleanupReport:
    dry_run: bool = False
    actions: list[CleanupAction] = field(default_factory=list)
    totals: dict[Category, CategoryTotals] = field(default_factory=dict)
    dirs_removed: int = 0
    skipped: int = 0
    failed: int = 0

    def record(self, action: CleanupAction) -> None:
        self.actions.append(action)
        if action.kind is ActionKind.RMDIR:
            self.dirs_removed += 1
            return
        t = self.totals.setdefault(action.category, CategoryTotals())
        t.files += 1
        t.bytes_freed += action.bytes_freed

    @property
    def bytes_freed(self) -> int:
        return sum(t.bytes_freed for t in self.totals.values())

    @property
    def files(self) -> int:
        return sum(t.files for t in self.totals.values())

    def for_category(self, category: Category) -> CategoryTotals:
        return self.totals.get(category, CategoryTotals())

    def summary(self) -> str:
        verb = "Would free" if self.dry_run else "Freed"
        parts = [
            f"{c.value}={t.files} file(s)/{format_bytes(t.bytes_freed)}"
            for c, t in sorted(self.totals.items(), key=lambda kv: kv[0].value)
        ]
        line = f"{verb} {format_bytes(self.bytes_freed)} across {self.files} file(s)"
        if parts:
            line += " [" + ", ".join(parts) + "]"
        if self.dirs_removed:
            line += f", {self.dirs_removed} empty dir(s)"
        if self.skipped or self.failed:
            line += f"; skipped={self.skipped} failed={self.failed}"
        return line
