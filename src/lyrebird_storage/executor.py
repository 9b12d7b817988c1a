from __future__ import annotations

import errno
import logging
from dataclasses import replace
from typing import Iterable

from lyrebird_storage.actions import ActionKind, CleanupAction, CleanupReport
from lyrebird_storage.compactor import truncate_to_tail


log = logging.getLogger(__name__)

_VERBS = {
    ActionKind.DELETE: "delete",
    ActionKind.TRUNCATE: "truncate",
    ActionKind.RMDIR: "remove",
}


def _apply_one(action: CleanupAction) -> None:
    if action.kind is ActionKind.DELETE:
        action.path.unlink()
    elif action.kind is ActionKind.TRUNCATE:
        truncate_to_tail(action.path, action.keep_bytes)
    elif action.kind is ActionKind.RMDIR:
        action.path.rmdir()
    else:  # pragma: no cover
        raise ValueError(f"Unknown action kind: {action.kind}")


def apply_plan(actions: Iterable[CleanupAction], dry_run: bool = False) -> CleanupReport:
    """
    Execute (or, in a dry run, only announce) each action in order.

    Every action is logged before it happens. A file that is already gone is
    skipped; any other per-file failure is logged and counted, and the rest
    of the batch still runs.

    Freed bytes are the sizes seen when the plan was built. A skipped or
    failed action adds nothing, so a real report can fall short of the dry
    run for the same plan when files vanish in between.
    """
    report = CleanupReport(dry_run=dry_run)
    for action in actions:
        action = replace(action, dry_run=dry_run)
        verb = _VERBS[action.kind]

        if dry_run:
            log.info(
                "[DRY RUN] Would %s %s: %s (%s)",
                verb,
                action.category.value,
                action.path,
                action.reason,
            )
            report.record(action)
            continue

        log.info("Going to %s %s: %s (%s)", verb, action.category.value, action.path, action.reason)
        try:
            _apply_one(action)
        except FileNotFoundError:
            log.debug("Already gone: %s", action.path)
            report.skipped += 1
            continue
        except OSError as e:
            if action.kind is ActionKind.RMDIR and e.errno in (errno.ENOTEMPTY, errno.EEXIST):
                log.debug("Directory no longer empty, keeping: %s", action.path)
                report.skipped += 1
                continue
            log.warning("Failed to %s %s: %s", verb, action.path, e)
            report.failed += 1
            continue
        report.record(action)
    return report
