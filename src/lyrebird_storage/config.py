from __future__ import annotations

import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Callable, Mapping


class ConfigError(ValueError):
    """Raised when settings are missing, malformed or inconsistent."""


@dataclass(frozen=True)
class PathsConfig:
    recording_dir: Path = Path("/var/lib/mediamtx-ffmpeg/recordings")
    log_dir: Path = Path("/var/log/lyrebird")
    mediamtx_log: Path = Path("/var/log/mediamtx.out")
    temp_dir: Path = Path("/tmp")
    buffer_dir: Path = Path("/dev/shm/lyrebird-buffer")

    @property
    def mediamtx_log_dir(self) -> Path:
        return self.mediamtx_log.parent


@dataclass(frozen=True)
class RetentionConfig:
    recording_days: int = 30
    log_days: int = 7
    temp_hours: int = 24


@dataclass(frozen=True)
class ThresholdConfig:
    warning_percent: int = 80
    critical_percent: int = 90
    emergency_percent: int = 95
    min_free_mb: int = 500


@dataclass(frozen=True)
class LimitsConfig:
    max_log_size: int = 100 * 1024 * 1024
    # Bytes kept from the end of an oversized log.
    log_tail_bytes: int = 10 * 1024 * 1024
    emergency_max_delete: int = 100


@dataclass(frozen=True)
class DiskConfig:
    monitor_mount: Path = Path("/")
    status_mounts: tuple[Path, ...] = (Path("/"), Path("/var"), Path("/tmp"))
    # The buffer dir is wiped wholesale in an emergency, so it must live here.
    safe_buffer_parents: tuple[Path, ...] = (
        Path("/dev/shm"),
        Path("/tmp"),
        Path("/var/tmp"),
        Path("/run"),
    )


@dataclass(frozen=True)
class AppConfig:
    paths: PathsConfig = PathsConfig()
    retention: RetentionConfig = RetentionConfig()
    thresholds: ThresholdConfig = ThresholdConfig()
    limits: LimitsConfig = LimitsConfig()
    disk: DiskConfig = DiskConfig()
    dry_run: bool = False
    debug: bool = False


# Environment variable -> (section, key). Names match the shell tooling that
# cron jobs on existing installs already export.
ENV_OVERRIDES: dict[str, tuple[str, str]] = {
    "LYREBIRD_RECORDING_DIR": ("paths", "recording_dir"),
    "LYREBIRD_LOG_DIR": ("paths", "log_dir"),
    "MEDIAMTX_LOG": ("paths", "mediamtx_log"),
    "LYREBIRD_TEMP_DIR": ("paths", "temp_dir"),
    "LYREBIRD_BUFFER_DIR": ("paths", "buffer_dir"),
    "RECORDING_RETENTION_DAYS": ("retention", "recording_days"),
    "LOG_RETENTION_DAYS": ("retention", "log_days"),
    "TEMP_RETENTION_HOURS": ("retention", "temp_hours"),
    "DISK_WARNING_PERCENT": ("thresholds", "warning_percent"),
    "DISK_CRITICAL_PERCENT": ("thresholds", "critical_percent"),
    "DISK_EMERGENCY_PERCENT": ("thresholds", "emergency_percent"),
    "MIN_FREE_SPACE_MB": ("thresholds", "min_free_mb"),
    "MAX_LOG_SIZE": ("limits", "max_log_size"),
    "LOG_TAIL_BYTES": ("limits", "log_tail_bytes"),
    "EMERGENCY_MAX_DELETE": ("limits", "emergency_max_delete"),
    "LYREBIRD_MONITOR_MOUNT": ("disk", "monitor_mount"),
}

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off", ""}


def _deep_get(d: dict[str, Any], path: list[str], default: Any) -> Any:
    cur: Any = d
    for p in path:
        if not isinstance(cur, dict) or p not in cur:
            return default
        cur = cur[p]
    return cur


def _to_int(value: Any, name: str) -> int:
    if isinstance(value, bool):
        raise ConfigError(f"{name} must be an integer, got {value!r}")
    try:
        return int(str(value).strip())
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {value!r}") from None


def _to_bool(value: Any, name: str) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    raise ConfigError(f"{name} must be a boolean, got {value!r}")


def _to_paths(value: Any, name: str) -> tuple[Path, ...]:
    if isinstance(value, str):
        items = [v for v in value.split(":") if v]
    elif isinstance(value, (list, tuple)):
        items = [str(v) for v in value]
    else:
        raise ConfigError(f"{name} must be a list of paths, got {value!r}")
    return tuple(Path(v) for v in items)


def _to_path(value: Any, name: str) -> Path:
    text = str(value).strip()
    if not text:
        raise ConfigError(f"{name} must not be empty")
    path = Path(text)
    if not path.is_absolute():
        # A relative root would resolve against whatever directory cron starts us in.
        raise ConfigError(f"{name} must be an absolute path, got {text!r}")
    return path


def _read_file(p: Path) -> dict[str, Any]:
    """
    Load raw settings from TOML or YAML (optional dependency).
    TOML is preferred because it uses stdlib (tomllib).
    """
    if not p.exists():
        raise ConfigError(f"Config file not found: {p}")

    ext = p.suffix.lower()
    if ext in (".toml",):
        import tomllib

        try:
            return tomllib.loads(p.read_bytes().decode("utf-8"))
        except tomllib.TOMLDecodeError as e:
            raise ConfigError(f"Invalid TOML in {p}: {e}") from e
    if ext in (".yaml", ".yml"):
        try:
            import yaml  # type: ignore
        except ImportError as e:  # pragma: no cover
            raise ConfigError(
                "YAML config requested but PyYAML is not installed. "
                "Install with: pip install -e '.[yaml]'"
            ) from e
        try:
            raw = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {p}: {e}") from e
        if not isinstance(raw, dict):
            raise ConfigError(f"Config file {p} must contain a mapping")
        return raw
    raise ConfigError(f"Unsupported config extension: {ext}")


def _section(raw: dict[str, Any], section: str, key: str, default: Any,
             convert: Callable[[Any, str], Any]) -> Any:
    value = _deep_get(raw, [section, key], None)
    if value is None:
        return default
    return convert(value, f"{section}.{key}")


def _from_raw(raw: dict[str, Any]) -> AppConfig:
    d = AppConfig()
    return AppConfig(
        paths=PathsConfig(
            recording_dir=_section(raw, "paths", "recording_dir", d.paths.recording_dir, _to_path),
            log_dir=_section(raw, "paths", "log_dir", d.paths.log_dir, _to_path),
            mediamtx_log=_section(raw, "paths", "mediamtx_log", d.paths.mediamtx_log, _to_path),
            temp_dir=_section(raw, "paths", "temp_dir", d.paths.temp_dir, _to_path),
            buffer_dir=_section(raw, "paths", "buffer_dir", d.paths.buffer_dir, _to_path),
        ),
        retention=RetentionConfig(
            recording_days=_section(
                raw, "retention", "recording_days", d.retention.recording_days, _to_int
            ),
            log_days=_section(raw, "retention", "log_days", d.retention.log_days, _to_int),
            temp_hours=_section(raw, "retention", "temp_hours", d.retention.temp_hours, _to_int),
        ),
        thresholds=ThresholdConfig(
            warning_percent=_section(
                raw, "thresholds", "warning_percent", d.thresholds.warning_percent, _to_int
            ),
            critical_percent=_section(
                raw, "thresholds", "critical_percent", d.thresholds.critical_percent, _to_int
            ),
            emergency_percent=_section(
                raw, "thresholds", "emergency_percent", d.thresholds.emergency_percent, _to_int
            ),
            min_free_mb=_section(
                raw, "thresholds", "min_free_mb", d.thresholds.min_free_mb, _to_int
            ),
        ),
        limits=LimitsConfig(
            max_log_size=_section(raw, "limits", "max_log_size", d.limits.max_log_size, _to_int),
            log_tail_bytes=_section(
                raw, "limits", "log_tail_bytes", d.limits.log_tail_bytes, _to_int
            ),
            emergency_max_delete=_section(
                raw, "limits", "emergency_max_delete", d.limits.emergency_max_delete, _to_int
            ),
        ),
        disk=DiskConfig(
            monitor_mount=_section(raw, "disk", "monitor_mount", d.disk.monitor_mount, _to_path),
            status_mounts=_section(raw, "disk", "status_mounts", d.disk.status_mounts, _to_paths),
            safe_buffer_parents=_section(
                raw, "disk", "safe_buffer_parents", d.disk.safe_buffer_parents, _to_paths
            ),
        ),
        dry_run=_to_bool(_deep_get(raw, ["dry_run"], False), "dry_run"),
        debug=_to_bool(_deep_get(raw, ["debug"], False), "debug"),
    )


def _merge_env(raw: dict[str, Any], env: Mapping[str, str]) -> dict[str, Any]:
    merged: dict[str, Any] = {
        k: dict(v) if isinstance(v, dict) else v for k, v in raw.items()
    }
    # Set-but-empty variables fall back to the file or default value.
    for name, (section, key) in ENV_OVERRIDES.items():
        if env.get(name, "").strip():
            merged.setdefault(section, {})
            if not isinstance(merged[section], dict):
                raise ConfigError(f"Config section [{section}] must be a table")
            merged[section][key] = env[name]
    for name, key in (("DRY_RUN", "dry_run"), ("DEBUG", "debug")):
        if env.get(name, "").strip():
            merged[key] = env[name]
    return merged


def _is_under(path: Path, parent: Path) -> bool:
    try:
        path.relative_to(parent)
    except ValueError:
        return False
    return True


def validate_config(config: AppConfig) -> AppConfig:
    """
    Reject settings that would let the monitor pick the wrong tier or let a
    sweep touch something it should not. Returns the config unchanged.
    """
    t = config.thresholds
    for name, value in (
        ("warning_percent", t.warning_percent),
        ("critical_percent", t.critical_percent),
        ("emergency_percent", t.emergency_percent),
    ):
        if not 0 <= value <= 100:
            raise ConfigError(f"thresholds.{name} must be within 0-100, got {value}")
    if not t.warning_percent < t.critical_percent < t.emergency_percent:
        raise ConfigError(
            "Thresholds must satisfy warning < critical < emergency "
            f"(got {t.warning_percent} / {t.critical_percent} / {t.emergency_percent})"
        )
    if t.min_free_mb < 0:
        raise ConfigError(f"thresholds.min_free_mb must be >= 0, got {t.min_free_mb}")

    r = config.retention
    for name, value in (
        ("recording_days", r.recording_days),
        ("log_days", r.log_days),
        ("temp_hours", r.temp_hours),
    ):
        if value <= 0:
            raise ConfigError(f"retention.{name} must be positive, got {value}")

    lim = config.limits
    if lim.max_log_size <= 0:
        raise ConfigError(f"limits.max_log_size must be positive, got {lim.max_log_size}")
    if lim.log_tail_bytes <= 0:
        raise ConfigError(f"limits.log_tail_bytes must be positive, got {lim.log_tail_bytes}")
    if lim.log_tail_bytes > lim.max_log_size:
        raise ConfigError(
            f"limits.log_tail_bytes ({lim.log_tail_bytes}) must not exceed "
            f"limits.max_log_size ({lim.max_log_size})"
        )
    if lim.emergency_max_delete < 0:
        raise ConfigError(
            f"limits.emergency_max_delete must be >= 0, got {lim.emergency_max_delete}"
        )

    buffer_dir = Path(os.path.abspath(config.paths.buffer_dir))
    parents = [Path(os.path.abspath(p)) for p in config.disk.safe_buffer_parents]
    if not any(buffer_dir != p and _is_under(buffer_dir, p) for p in parents):
        allowed = ", ".join(str(p) for p in config.disk.safe_buffer_parents)
        raise ConfigError(
            f"Buffer dir '{config.paths.buffer_dir}' is not under allowed directories ({allowed})"
        )
    return config


def load_config(
    path: str | Path | None = None,
    env: Mapping[str, str] | None = None,
    **overrides: Any,
) -> AppConfig:
    """
    Build the immutable configuration for one invocation.

    Precedence: defaults < config file < environment < keyword overrides
    (dry_run/debug from the command line). The result is validated before it
    is returned, so callers never see an inconsistent config.
    """
    raw = _read_file(Path(path)) if path is not None else {}
    raw = _merge_env(raw, os.environ if env is None else env)
    config = _from_raw(raw)
    if overrides:
        config = replace(config, **overrides)
    return validate_config(config)
