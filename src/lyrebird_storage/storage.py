from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Callable

from lyrebird_storage.actions import CleanupPlan, CleanupReport
from lyrebird_storage.config import AppConfig
from lyrebird_storage.disk import DiskInspector
from lyrebird_storage.executor import apply_plan
from lyrebird_storage.monitor import (
    EscalationTier,
    classify_snapshot,
    log_tier,
    plan_cleanup,
    plan_emergency,
    plan_for_tier,
)


log = logging.getLogger(__name__)


@dataclass(frozen=True)
class StorageManager:
    """
    Entry points for one invocation. Each verb plans against a fresh view of
    the file system, then applies the plan (or only reports it on a dry run).
    """

    config: AppConfig
    inspector: DiskInspector = field(default_factory=DiskInspector)
    clock: Callable[[], float] = time.time

    @property
    def dry_run(self) -> bool:
        return self.config.dry_run

    def _run(self, plan: CleanupPlan, what: str) -> CleanupReport:
        report = apply_plan(plan, dry_run=self.dry_run)
        log.info("%s completed: %s", what, report.summary())
        return report

    def cleanup(self) -> CleanupReport:
        log.info("Starting storage cleanup")
        return self._run(plan_cleanup(self.config, self.clock()), "Cleanup")

    def emergency(self) -> CleanupReport:
        log.warning("Manual emergency cleanup requested")
        return self._run(plan_emergency(self.config, self.clock()), "Emergency cleanup")

    def check(self) -> EscalationTier:
        snapshot = self.inspector.snapshot(self.config.disk.monitor_mount)
        tier = classify_snapshot(snapshot, self.config.thresholds)
        log_tier(tier, snapshot, self.config.thresholds)
        return tier

    def monitor(self) -> tuple[EscalationTier, CleanupReport]:
        tier = self.check()
        plan = plan_for_tier(tier, self.config, self.clock())
        if tier is EscalationTier.NORMAL:
            return tier, CleanupReport(dry_run=self.dry_run)
        return tier, self._run(plan, f"{tier.name.capitalize()} response")
