from __future__ import annotations

import os
import time
from pathlib import Path

import pytest

from lyrebird_storage.config import ENV_OVERRIDES
from lyrebird_storage.main import EXIT_CONFIG, EXIT_OK, main

from conftest import DAY, make_file


@pytest.fixture
def config_file(tmp_path: Path, host, monkeypatch: pytest.MonkeyPatch) -> Path:
    for name in list(ENV_OVERRIDES) + ["DRY_RUN", "DEBUG"]:
        monkeypatch.delenv(name, raising=False)
    path = tmp_path / "storage.toml"
    path.write_text(
        f"""
[paths]
recording_dir = "{host.recording_dir}"
log_dir = "{host.log_dir}"
mediamtx_log = "{host.mediamtx_log}"
temp_dir = "{host.temp_dir}"
buffer_dir = "{host.buffer_dir}"

[limits]
max_log_size = 1000
log_tail_bytes = 100

[disk]
monitor_mount = "{tmp_path}"
status_mounts = ["{tmp_path}"]
safe_buffer_parents = ["{tmp_path}"]
""",
        encoding="utf-8",
    )
    return path


def _old_recording(host) -> Path:
    # main() runs on the real clock, so age the file relative to now.
    path = make_file(host.recording_dir / "old.wav", size=10)
    ts = time.time() - 40 * DAY
    os.utime(path, (ts, ts))
    return path


def test_cleanup_deletes_expired_recording(config_file: Path, host) -> None:
    old = _old_recording(host)
    assert main(["--config", str(config_file), "cleanup"]) == EXIT_OK
    assert not old.exists()


def test_dry_run_flag_keeps_files(config_file: Path, host) -> None:
    old = _old_recording(host)
    assert main(["-n", "-c", str(config_file), "cleanup"]) == EXIT_OK
    assert main(["--dry-run", "-c", str(config_file), "emergency"]) == EXIT_OK
    assert main(["--dry-run", "-c", str(config_file), "monitor"]) == EXIT_OK
    assert old.exists()


def test_invalid_thresholds_exit_before_touching_files(
    config_file: Path, host, monkeypatch: pytest.MonkeyPatch
) -> None:
    old = _old_recording(host)
    monkeypatch.setenv("DISK_WARNING_PERCENT", "95")
    assert main(["-c", str(config_file), "cleanup"]) == EXIT_CONFIG
    assert old.exists()


def test_non_numeric_override_is_a_config_error(config_file: Path, monkeypatch) -> None:
    monkeypatch.setenv("RECORDING_RETENTION_DAYS", "thirty")
    assert main(["-c", str(config_file), "monitor"]) == EXIT_CONFIG


def test_status_prints_report(config_file: Path, host, capsys: pytest.CaptureFixture[str]) -> None:
    make_file(host.recording_dir / "a.wav", size=2048)
    assert main(["-c", str(config_file), "status"]) == EXIT_OK
    out = capsys.readouterr().out
    assert "Disk Usage:" in out
    assert str(host.recording_dir) in out
    assert "Retention (recordings): 30 days" in out
    assert "Emergency threshold: 95%" in out


def test_unknown_command_is_rejected(capsys) -> None:
    with pytest.raises(SystemExit) as exc:
        main(["purge"])
    assert exc.value.code != 0
