from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from lyrebird_storage.config import AppConfig
from lyrebird_storage.disk import DiskInspector, DiskSnapshot, format_bytes
from lyrebird_storage.monitor import EscalationTier, classify_snapshot
from lyrebird_storage.targets import StorageTarget, build_targets, scan_target


@dataclass(frozen=True)
class MountStatus:
    snapshot: DiskSnapshot
    tier: EscalationTier


@dataclass(frozen=True)
class TargetStatus:
    label: str
    path: Path
    exists: bool
    size: int
    files: int
    managed_files: int


@dataclass(frozen=True)
class StorageStatus:
    mounts: list[MountStatus]
    targets: list[TargetStatus]
    mediamtx_log: Path
    mediamtx_log_size: int | None
    config: AppConfig


def _target_status(target: StorageTarget, inspector: DiskInspector) -> TargetStatus:
    exists = target.root.is_dir()
    return TargetStatus(
        label=target.describe(),
        path=target.root,
        exists=exists,
        size=inspector.directory_size(target.root) if exists else 0,
        files=inspector.file_count(target.root, recursive=target.recursive) if exists else 0,
        managed_files=sum(1 for _ in scan_target(target)) if exists else 0,
    )


def collect_status(config: AppConfig, inspector: DiskInspector | None = None) -> StorageStatus:
    """Read-only snapshot of mounts, watched directories and settings."""
    inspector = inspector or DiskInspector()
    mounts = []
    for mount in config.disk.status_mounts:
        if not mount.is_dir():
            continue
        snap = inspector.snapshot(mount)
        mounts.append(MountStatus(snapshot=snap, tier=classify_snapshot(snap, config.thresholds)))

    log_file = config.paths.mediamtx_log
    log_size = None
    if log_file.is_file():
        try:
            log_size = log_file.stat().st_size
        except OSError:
            log_size = None

    return StorageStatus(
        mounts=mounts,
        targets=[_target_status(t, inspector) for t in build_targets(config)],
        mediamtx_log=log_file,
        mediamtx_log_size=log_size,
        config=config,
    )


def render_status(status: StorageStatus) -> str:
    cfg = status.config
    lines = ["LyreBirdAudio Storage Status", "============================", "", "Disk Usage:"]
    for m in status.mounts:
        s = m.snapshot
        if not s.readable:
            lines.append(f"  {str(s.mount):<10} unreadable")
            continue
        lines.append(
            f"  {str(s.mount):<10} {s.used_percent:3d}% used, {s.free_mb}MB free [{m.tier.label}]"
        )
    lines.append("")

    lines.append("Watched directories:")
    for t in status.targets:
        if not t.exists:
            lines.append(f"  {t.label:<13} {t.path} (missing)")
            continue
        lines.append(
            f"  {t.label:<13} {t.path}: {format_bytes(t.size)}, "
            f"{t.files} file(s), {t.managed_files} managed"
        )
    if status.mediamtx_log_size is not None:
        size = format_bytes(status.mediamtx_log_size)
        lines.append(f"  {'mediamtx':<13} {status.mediamtx_log}: {size}")
    lines.append("")

    r, th, lim = cfg.retention, cfg.thresholds, cfg.limits
    lines += [
        "Configuration:",
        f"  Retention (recordings): {r.recording_days} days",
        f"  Retention (logs): {r.log_days} days",
        f"  Retention (temp/buffer): {r.temp_hours} hours",
        f"  Warning threshold: {th.warning_percent}%",
        f"  Critical threshold: {th.critical_percent}%",
        f"  Emergency threshold: {th.emergency_percent}%",
        f"  Minimum free space: {th.min_free_mb}MB",
        f"  Log size cap: {format_bytes(lim.max_log_size)} "
        f"(keeps last {format_bytes(lim.log_tail_bytes)})",
        f"  Emergency delete bound: {lim.emergency_max_delete} recording(s)",
        f"  Monitored mount: {cfg.disk.monitor_mount}",
        f"  Dry run: {'yes' if cfg.dry_run else 'no'}",
    ]
    return "\n".join(lines) + "\n"
