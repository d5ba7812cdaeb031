"""
link_sweeper.py - Daily cleanup of post revisions that contain broken links.

The first run scans every revision ever created; once it has completed, each
run only scans revisions created during the previous calendar day (in the
configured timezone). A revision is deleted when one of its links answers
404 or 500, and its topic is queued for a search reindex.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, time, timedelta, tzinfo
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

import database
import link_health
from config import Config
from revision_content import revision_links

logger = logging.getLogger(__name__)

config = Config()

Window = Tuple[datetime, datetime]


class RevisionStatus(str, Enum):
    DELETED = "deleted"
    KEPT = "kept"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class RevisionOutcome:
    revision_id: int
    status: RevisionStatus
    broken_url: Optional[str] = None
    status_code: Optional[int] = None
    topic_id: Optional[int] = None
    reason: Optional[str] = None


@dataclass
class SweepSummary:
    first_run: bool
    window: Optional[Window]
    started_at: datetime
    finished_at: Optional[datetime] = None
    outcomes: List[RevisionOutcome] = field(default_factory=list)

    def _count(self, status: RevisionStatus) -> int:
        return sum(1 for outcome in self.outcomes if outcome.status == status)

    @property
    def checked(self) -> int:
        return len(self.outcomes)

    @property
    def deleted(self) -> int:
        return self._count(RevisionStatus.DELETED)

    @property
    def kept(self) -> int:
        return self._count(RevisionStatus.KEPT)

    @property
    def skipped(self) -> int:
        return self._count(RevisionStatus.SKIPPED)

    @property
    def failed(self) -> int:
        return self._count(RevisionStatus.FAILED)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "first_run": self.first_run,
            "window": self.window,
            "checked": self.checked,
            "deleted": self.deleted,
            "kept": self.kept,
            "skipped": self.skipped,
            "failed": self.failed,
        }


def previous_day_window(now: datetime, tz: tzinfo) -> Window:
    """
    Returns the inclusive bounds of the calendar day before ``now`` in ``tz``.
    """
    local_now = now.astimezone(tz) if now.tzinfo else now.replace(tzinfo=tz)
    yesterday = local_now.date() - timedelta(days=1)
    start = datetime.combine(yesterday, time.min, tzinfo=tz)
    end = datetime.combine(yesterday, time.max, tzinfo=tz)
    return start, end


def select_scope(store, now: datetime, tz: tzinfo) -> Tuple[bool, Optional[Window]]:
    """
    Decides what to scan: everything when no full sweep has completed yet,
    otherwise just the previous day.
    """
    if store.get_last_full_sweep() is None:
        return True, None
    return False, previous_day_window(now, tz)


def process_revision(
    revision: Dict[str, Any],
    store,
    checker: Callable[[str], int],
) -> RevisionOutcome:
    """Checks one revision's links and deletes it when one of them is broken."""
    revision_id = revision["id"]
    try:
        links = revision_links(revision.get("modifications"))
        if not links:
            return RevisionOutcome(revision_id, RevisionStatus.SKIPPED)

        logger.info("[CleanupBrokenLinks] Checking PostRevision ID: %s", revision_id)
        broken = link_health.find_first_broken_link(links, checker)
        if broken is None:
            return RevisionOutcome(revision_id, RevisionStatus.KEPT)

        broken_url, status_code = broken
        topic_id = store.get_revision_topic_id(revision_id)
        if topic_id is None:
            # Without a topic there is nothing to reindex, so the revision stays.
            return RevisionOutcome(
                revision_id,
                RevisionStatus.KEPT,
                broken_url=broken_url,
                status_code=status_code,
                reason="no owning topic",
            )

        logger.warning("[CleanupBrokenLinks] Deleting PostRevision ID: %s", revision_id)
        store.delete_revision(revision_id)
        store.enqueue_reindex(topic_id)
        return RevisionOutcome(
            revision_id,
            RevisionStatus.DELETED,
            broken_url=broken_url,
            status_code=status_code,
            topic_id=topic_id,
        )
    except Exception as exc:
        logger.error(
            "[CleanupBrokenLinks] Error processing PostRevision ID %s - %s",
            revision_id,
            exc,
        )
        return RevisionOutcome(revision_id, RevisionStatus.FAILED, reason=str(exc))


def sweep_revisions(
    store,
    batch_size: int,
    window: Optional[Window],
    checker: Callable[[str], int],
) -> List[RevisionOutcome]:
    """Walks the revisions in scope batch by batch, one revision at a time."""
    outcomes: List[RevisionOutcome] = []
    for batch in store.iter_revision_batches(batch_size, window):
        for revision in batch:
            outcomes.append(process_revision(revision, store, checker))
    return outcomes


def run_sweep(
    now: Optional[datetime] = None,
    store=None,
    checker: Optional[Callable[[str], int]] = None,
    *,
    batch_size: Optional[int] = None,
    tz: Optional[tzinfo] = None,
) -> SweepSummary:
    """
    Runs one sweep and returns its summary.

    Args:
        now: Reference time for the scan window; defaults to the current time.
        store: Persistence backend; defaults to the ``database`` module.
        checker: Link probe returning a status code; defaults to
            ``link_health.check_link_status``.
    """
    tz = tz or config.timezone
    now = now or datetime.now(tz)
    store = store or database
    checker = checker or link_health.check_link_status
    batch_size = batch_size or config.SWEEP_BATCH_SIZE

    logger.info("[CleanupBrokenLinks] Starting broken link check...")

    first_run, window = select_scope(store, now, tz)
    if first_run:
        logger.info("[CleanupBrokenLinks] First-time run - Checking all PostRevisions...")
    else:
        logger.info(
            "[CleanupBrokenLinks] Checking PostRevisions created between %s and %s",
            window[0].isoformat(),
            window[1].isoformat(),
        )

    summary = SweepSummary(first_run=first_run, window=window, started_at=now)
    summary.outcomes = sweep_revisions(store, batch_size, window, checker)
    summary.finished_at = datetime.now(tz)

    logger.info("[CleanupBrokenLinks] Finished checking broken links.")

    if first_run:
        store.mark_full_sweep_completed(summary.finished_at)

    return summary
