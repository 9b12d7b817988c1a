"""Shared fixtures: a throwaway recording host laid out under tmp_path."""

from __future__ import annotations

import os
from dataclasses import replace
from pathlib import Path

import pytest

from lyrebird_storage.config import (
    AppConfig,
    DiskConfig,
    LimitsConfig,
    PathsConfig,
    validate_config,
)
from lyrebird_storage.disk import DiskInspector, DiskSnapshot

NOW = 1_700_000_000.0
DAY = 86400.0
HOUR = 3600.0


def make_file(path: Path, size: int = 16, age: float = 0.0, data: bytes | None = None) -> Path:
    """Create path with size bytes (or data) and an mtime of NOW - age seconds."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data if data is not None else b"x" * size)
    os.utime(path, (NOW - age, NOW - age))
    return path


class FakeInspector(DiskInspector):
    def __init__(
        self, used_percent: int = 0, free_mb: int = 100_000, readable: bool = True
    ) -> None:
        self.used_percent = used_percent
        self.free_mb = free_mb
        self.readable = readable
        self.calls: list[Path] = []

    def snapshot(self, mount):
        self.calls.append(Path(mount))
        return DiskSnapshot(
            mount=Path(mount),
            used_percent=self.used_percent,
            free_mb=self.free_mb,
            taken_at=NOW,
            readable=self.readable,
        )


@pytest.fixture
def host(tmp_path: Path) -> PathsConfig:
    paths = PathsConfig(
        recording_dir=tmp_path / "recordings",
        log_dir=tmp_path / "log" / "lyrebird",
        mediamtx_log=tmp_path / "log" / "mediamtx.out",
        temp_dir=tmp_path / "tmp",
        buffer_dir=tmp_path / "shm" / "lyrebird-buffer",
    )
    for d in (paths.recording_dir, paths.log_dir, paths.temp_dir, paths.buffer_dir):
        d.mkdir(parents=True)
    return paths


@pytest.fixture
def config(tmp_path: Path, host: PathsConfig) -> AppConfig:
    return validate_config(
        AppConfig(
            paths=host,
            limits=LimitsConfig(max_log_size=1000, log_tail_bytes=100, emergency_max_delete=3),
            disk=DiskConfig(
                monitor_mount=tmp_path,
                status_mounts=(tmp_path,),
                safe_buffer_parents=(tmp_path,),
            ),
        )
    )


@pytest.fixture
def dry_config(config: AppConfig) -> AppConfig:
    return replace(config, dry_run=True)
