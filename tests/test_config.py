from __future__ import annotations

from dataclasses import replace
from pathlib import Path

import pytest

from lyrebird_storage.config import (
    AppConfig,
    ConfigError,
    DiskConfig,
    LimitsConfig,
    RetentionConfig,
    ThresholdConfig,
    load_config,
    validate_config,
)


def test_defaults_match_documented_values() -> None:
    cfg = load_config(env={})
    assert cfg.retention == RetentionConfig(recording_days=30, log_days=7, temp_hours=24)
    assert cfg.thresholds == ThresholdConfig(80, 90, 95, 500)
    assert cfg.limits.max_log_size == 104857600
    assert cfg.limits.log_tail_bytes == 10485760
    assert cfg.limits.emergency_max_delete == 100
    assert cfg.paths.recording_dir == Path("/var/lib/mediamtx-ffmpeg/recordings")
    assert cfg.paths.mediamtx_log_dir == Path("/var/log")
    assert cfg.dry_run is False


def test_environment_overrides_defaults(tmp_path: Path) -> None:
    cfg = load_config(
        env={
            "RECORDING_RETENTION_DAYS": "14",
            "DISK_WARNING_PERCENT": "70",
            "MIN_FREE_SPACE_MB": "1024",
            "LYREBIRD_RECORDING_DIR": str(tmp_path / "rec"),
            "DRY_RUN": "true",
        }
    )
    assert cfg.retention.recording_days == 14
    assert cfg.thresholds.warning_percent == 70
    assert cfg.thresholds.min_free_mb == 1024
    assert cfg.paths.recording_dir == tmp_path / "rec"
    assert cfg.dry_run is True


def test_toml_file_then_env_then_keyword(tmp_path: Path) -> None:
    path = tmp_path / "storage.toml"
    path.write_text(
        "[retention]\nlog_days = 3\nrecording_days = 10\n"
        "[thresholds]\nwarning_percent = 60\n"
        "[disk]\nstatus_mounts = [\"/\", \"/data\"]\n",
        encoding="utf-8",
    )
    cfg = load_config(path, env={"LOG_RETENTION_DAYS": "5"}, dry_run=True)
    assert cfg.retention.recording_days == 10
    assert cfg.retention.log_days == 5
    assert cfg.thresholds.warning_percent == 60
    assert cfg.disk.status_mounts == (Path("/"), Path("/data"))
    assert cfg.dry_run is True


def test_yaml_file(tmp_path: Path) -> None:
    pytest.importorskip("yaml")
    path = tmp_path / "storage.yaml"
    path.write_text("limits:\n  emergency_max_delete: 7\n", encoding="utf-8")
    assert load_config(path, env={}).limits.emergency_max_delete == 7


@pytest.mark.parametrize(
    "env",
    [
        {"DISK_WARNING_PERCENT": "90", "DISK_CRITICAL_PERCENT": "90"},
        {"DISK_CRITICAL_PERCENT": "96"},
        {"DISK_EMERGENCY_PERCENT": "101"},
        {"DISK_WARNING_PERCENT": "-1"},
        {"DISK_WARNING_PERCENT": "eighty"},
        {"RECORDING_RETENTION_DAYS": "0"},
        {"TEMP_RETENTION_HOURS": "-2"},
        {"MIN_FREE_SPACE_MB": "lots"},
        {"MAX_LOG_SIZE": "100", "LOG_TAIL_BYTES": "200"},
        {"LYREBIRD_BUFFER_DIR": "/var/lib/lyrebird"},
        {"DRY_RUN": "maybe"},
    ],
)
def test_invalid_settings_are_rejected(env: dict[str, str]) -> None:
    with pytest.raises(ConfigError):
        load_config(env=env)


def test_missing_and_unknown_files_are_config_errors(tmp_path: Path) -> None:
    with pytest.raises(ConfigError):
        load_config(tmp_path / "absent.toml", env={})
    other = tmp_path / "storage.ini"
    other.write_text("", encoding="utf-8")
    with pytest.raises(ConfigError):
        load_config(other, env={})


def test_validate_accepts_buffer_under_custom_parent(tmp_path: Path) -> None:
    cfg = AppConfig(disk=DiskConfig(safe_buffer_parents=(tmp_path,)))
    cfg = replace(cfg, paths=replace(cfg.paths, buffer_dir=tmp_path / "buf"))
    assert validate_config(cfg) is cfg


def test_tail_equal_to_cap_is_allowed() -> None:
    cfg = AppConfig(limits=LimitsConfig(max_log_size=100, log_tail_bytes=100))
    assert validate_config(cfg) is cfg


def test_empty_environment_values_fall_back(tmp_path: Path) -> None:
    path = tmp_path / "storage.toml"
    path.write_text("[retention]\nlog_days = 3\n", encoding="utf-8")
    cfg = load_config(
        path,
        env={
            "LYREBIRD_RECORDING_DIR": "",
            "LYREBIRD_LOG_DIR": "  ",
            "MEDIAMTX_LOG": "",
            "RECORDING_RETENTION_DAYS": "",
            "LOG_RETENTION_DAYS": "",
            "DRY_RUN": "",
        },
    )
    defaults = AppConfig()
    assert cfg.paths.recording_dir == defaults.paths.recording_dir
    assert cfg.paths.log_dir == defaults.paths.log_dir
    assert cfg.paths.mediamtx_log_dir == Path("/var/log")
    assert cfg.retention.recording_days == 30
    assert cfg.retention.log_days == 3
    assert cfg.dry_run is False


@pytest.mark.parametrize(
    "body",
    [
        '[paths]\nrecording_dir = ""\n',
        '[paths]\nlog_dir = "logs"\n',
        '[paths]\nbuffer_dir = "./buf"\n',
        '[disk]\nmonitor_mount = "."\n',
    ],
)
def test_empty_or_relative_paths_in_file_are_rejected(tmp_path: Path, body: str) -> None:
    path = tmp_path / "storage.toml"
    path.write_text(body, encoding="utf-8")
    with pytest.raises(ConfigError):
        load_config(path, env={})


def test_relative_path_from_environment_is_rejected() -> None:
    with pytest.raises(ConfigError):
        load_config(env={"LYREBIRD_RECORDING_DIR": "recordings"})
