from __future__ import annotations

import logging
from enum import IntEnum

from lyrebird_storage.actions import CleanupPlan
from lyrebird_storage.compactor import plan_log_compaction
from lyrebird_storage.config import AppConfig, ThresholdConfig
from lyrebird_storage.disk import DiskSnapshot
from lyrebird_storage.evictor import plan_eviction
from lyrebird_storage.sweep import plan_sweep
from lyrebird_storage.targets import Category, build_targets


log = logging.getLogger(__name__)


class EscalationTier(IntEnum):
    NORMAL = 0
    WARNING = 1
    CRITICAL = 2
    EMERGENCY = 3

    @property
    def label(self) -> str:
        return "OK" if self is EscalationTier.NORMAL else self.name


CHEAP_CATEGORIES = frozenset({Category.TEMP, Category.BUFFER})


def classify(used_percent: int, free_mb: int, thresholds: ThresholdConfig) -> EscalationTier:
    """
    Pure tier selection. Boundaries are inclusive: usage equal to a threshold
    lands in that threshold's tier.
    """
    if used_percent >= thresholds.emergency_percent or free_mb < thresholds.min_free_mb:
        return EscalationTier.EMERGENCY
    if used_percent >= thresholds.critical_percent:
        return EscalationTier.CRITICAL
    if used_percent >= thresholds.warning_percent:
        return EscalationTier.WARNING
    return EscalationTier.NORMAL


def tier_reason(used_percent: int, free_mb: int, thresholds: ThresholdConfig) -> str:
    t = thresholds
    reasons = []
    if used_percent >= t.emergency_percent:
        reasons.append(f"usage {used_percent}% >= emergency {t.emergency_percent}%")
    if free_mb < t.min_free_mb:
        reasons.append(f"free {free_mb}MB < minimum {t.min_free_mb}MB")
    if reasons:
        return " and ".join(reasons)
    for name, limit in (("critical", t.critical_percent), ("warning", t.warning_percent)):
        if used_percent >= limit:
            return f"usage {used_percent}% >= {name} {limit}%"
    return f"usage {used_percent}% below warning {t.warning_percent}%"


def classify_snapshot(snapshot: DiskSnapshot, thresholds: ThresholdConfig) -> EscalationTier:
    """
    An unreadable mount is not treated as an idle one: it gets the WARNING
    response, which only touches temp/buffer files and oversized logs.
    """
    if not snapshot.readable:
        log.warning(
            "Cannot read disk usage for %s; assuming %s",
            snapshot.mount,
            EscalationTier.WARNING.name,
        )
        return EscalationTier.WARNING
    return classify(snapshot.used_percent, snapshot.free_mb, thresholds)


def plan_cleanup(config: AppConfig, now: float, plan: CleanupPlan | None = None) -> CleanupPlan:
    """Log compaction followed by a sweep of every category."""
    plan = plan if plan is not None else CleanupPlan()
    plan.extend(plan_log_compaction(config, now))
    plan.extend(plan_sweep(build_targets(config), now, also_removed=plan.deleted_paths))
    return plan


def plan_emergency(config: AppConfig, now: float) -> CleanupPlan:
    targets = build_targets(config)
    plan = CleanupPlan(
        plan_eviction(
            targets,
            max_delete=config.limits.emergency_max_delete,
            log_dirs=(config.paths.log_dir, config.paths.mediamtx_log_dir),
        )
    )
    return plan_cleanup(config, now, plan)


def plan_for_tier(tier: EscalationTier, config: AppConfig, now: float) -> CleanupPlan:
    if tier is EscalationTier.NORMAL:
        return CleanupPlan()
    if tier is EscalationTier.WARNING:
        plan = CleanupPlan(plan_log_compaction(config, now))
        plan.extend(plan_sweep(build_targets(config), now, categories=CHEAP_CATEGORIES))
        return plan
    if tier is EscalationTier.CRITICAL:
        return plan_cleanup(config, now)
    return plan_emergency(config, now)


def log_tier(tier: EscalationTier, snapshot: DiskSnapshot, thresholds: ThresholdConfig) -> None:
    if not snapshot.readable:
        return
    reason = tier_reason(snapshot.used_percent, snapshot.free_mb, thresholds)
    summary = f"Disk {snapshot.used_percent}% full, {snapshot.free_mb}MB free on {snapshot.mount}"
    if tier is EscalationTier.EMERGENCY:
        log.error("EMERGENCY: %s (%s)", summary, reason)
    elif tier is EscalationTier.NORMAL:
        log.debug("Disk usage OK: %s (%s)", summary, reason)
    else:
        log.warning("%s: %s (%s)", tier.name, summary, reason)
