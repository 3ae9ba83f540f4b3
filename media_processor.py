"""
Retention processing
One policy-driven state machine shared by every source:

    evaluate each candidate -> skip / queue / keep queued / release
    removal pass            -> re-verify upstream, then delete once past the delay
"""
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass

from media_results import MediaResult, ProcessorOutcome
from removal_queue import QueueItem, utcnow
from retirarr_utils import format_size

logger = logging.getLogger(__name__)

QUEUED_SUFFIX = " - queued for deletion"


class CycleCancelled(Exception):
    """Raised when the caller asked the running cycle to stop."""


def is_excluded(title, exclusions):
    title = (title or '').strip().lower()
    return any(title == (name or '').strip().lower() for name in exclusions or [])


def format_seasons(seasons):
    return ",".join(f"{number:02d}" for number in seasons)


@dataclass
class Verdict:
    """Policy answer for an item that is not queued yet."""
    eligible: bool
    reason: str
    error: bool = False


# ============================================================
# Policies
# ============================================================

class RetentionPolicy(ABC):
    unreleased_reason = "not yet released"
    missing_file_reason = "no file on disk"

    @abstractmethod
    def evaluate(self, candidate, source) -> Verdict:
        pass

    def forthcoming(self, candidate, source):
        """Reason string when new content is on its way for a queued item."""
        return None


class SeriesPolicy(RetentionPolicy):
    """
    Eligible once every season with files on disk is watched and nothing else
    is announced for those seasons. Renewed shows between seasons still qualify.
    """
    unreleased_reason = "not yet aired"
    missing_file_reason = "no files on disk"

    def __init__(self, history, via=None):
        self.history = history
        self.via = via

    def evaluate(self, candidate, source) -> Verdict:
        if not self.history.has(candidate.external_id):
            return Verdict(False, "no watch history")

        try:
            progress = self.history.progress(candidate.external_id)
        except Exception as e:
            return Verdict(False, f"trakt error: {e}", error=True)

        try:
            season_files = source.season_file_counts(candidate)
        except Exception as e:
            return Verdict(False, f"{source.display_name} error: {e}", error=True)

        if not season_files:
            return Verdict(False, self.missing_file_reason)

        unwatched = progress.unwatched_seasons(season_files)
        if unwatched:
            return Verdict(False, progress.watching_reason(unwatched, season_files))

        ongoing = progress.forthcoming_reason(season_files)
        if ongoing:
            return Verdict(False, ongoing)

        if self.via:
            return Verdict(True, f"fully watched (via {self.via})")
        return Verdict(True, f"fully watched (S{format_seasons(sorted(season_files))})")

    def forthcoming(self, candidate, source):
        if not self.history.has(candidate.external_id):
            return None
        progress = self.history.progress(candidate.external_id)
        return progress.forthcoming_reason(source.season_file_counts(candidate))


class MoviePolicy(RetentionPolicy):

    def __init__(self, history, via=None):
        self.history = history
        self.via = via

    def evaluate(self, candidate, source) -> Verdict:
        if not self.history.has(candidate.external_id):
            return Verdict(False, "not watched")
        watched_at = self.history.watched_at(candidate.external_id)
        reason = f"watched {watched_at:%Y-%m-%d}" if watched_at else "watched"
        if self.via:
            reason += f" (via {self.via})"
        return Verdict(True, reason)


# ============================================================
# Processors
# ============================================================

class RetentionProcessor:
    def __init__(self, source, queue, policy, delay_days, exclusions=None,
                 dry_run=False, cancel_event=None, now=None):
        self.source = source
        self.queue = queue
        self.policy = policy
        self.delay_days = delay_days
        self.exclusions = exclusions or []
        self.dry_run = dry_run
        self.cancel_event = cancel_event
        self._now = now or utcnow
        # Fixed per run so evaluate and the removal pass agree on which items are due
        self.cycle_now = None

    @property
    def media_type(self):
        return self.source.media_type

    def check_cancelled(self):
        if self.cancel_event is not None and self.cancel_event.is_set():
            raise CycleCancelled()

    def run(self, candidates):
        """Evaluate every candidate, then run the removal pass."""
        outcome = ProcessorOutcome(self.media_type, scanned=len(candidates))
        self.cycle_now = self._now()
        try:
            for candidate in candidates:
                self.check_cancelled()
                result = self.evaluate(candidate)
                if result is not None:
                    outcome.results.append(result)
            self.process_removals(outcome.results)
        except CycleCancelled:
            outcome.cancelled = True
        return outcome

    def now(self):
        return self.cycle_now or self._now()

    def evaluate(self, candidate):
        """Decide one candidate. Returns None for queued items past their delay."""
        mt = self.media_type
        title, item_id = candidate.title, candidate.id
        size, year = candidate.size_on_disk, candidate.year

        if is_excluded(title, self.exclusions):
            if self.queue.is_queued(item_id):
                self.release(self.queue.get(item_id), "excluded")
            return MediaResult.skipped(mt, title, item_id, "in exclusion list", year=year, size_on_disk=size)

        queued = self.queue.get(item_id)
        if queued is not None:
            ongoing = self._forthcoming(candidate)
            if ongoing:
                self.release(queued, ongoing)
                return MediaResult.skipped(mt, title, item_id, ongoing, year=year, size_on_disk=size)

            if self.queue.is_ready_for_removal(item_id, self.delay_days, now=self.now()):
                return None

            days_in_queue = int(queued.days_in_queue(self.now()))
            days_until = max(0, self.delay_days - days_in_queue)
            return MediaResult.queued(mt, title, item_id, queued.reason + QUEUED_SUFFIX, days_until,
                                      year=year, size_on_disk=queued.size_on_disk or size)

        if not candidate.monitored:
            return MediaResult.skipped(mt, title, item_id, "not monitored", year=year, size_on_disk=size)

        if not candidate.has_file:
            reason = self.policy.unreleased_reason if candidate.unreleased else self.policy.missing_file_reason
            return MediaResult.skipped(mt, title, item_id, reason, year=year, size_on_disk=size)

        verdict = self.policy.evaluate(candidate, self.source)
        if verdict.error:
            return MediaResult.error(mt, title, item_id, verdict.reason, year=year, size_on_disk=size)
        if not verdict.eligible:
            return MediaResult.skipped(mt, title, item_id, verdict.reason, year=year, size_on_disk=size)

        added = self.queue.add(QueueItem(
            id=item_id,
            external_id=candidate.external_id or 0,
            title=title,
            marked_at=self.now(),
            reason=verdict.reason,
            size_on_disk=size,
            year=year,
            library_id=candidate.library_id,
        ))
        if added:
            logger.info(f"📋 Queued {title} for deletion in {self.delay_days} days ({verdict.reason})")
            self.unmonitor(item_id, title)
        return MediaResult.queued(mt, title, item_id, verdict.reason + QUEUED_SUFFIX, self.delay_days,
                                  year=year, size_on_disk=size)

    def _forthcoming(self, candidate):
        try:
            self.check_cancelled()
            return self.policy.forthcoming(candidate, self.source)
        except CycleCancelled:
            raise
        except Exception as e:
            logger.warning(f"⚠️ Could not re-check {candidate.title} for new episodes: {e}")
            return None

    def unmonitor(self, item_id, title):
        if self.dry_run:
            logger.warning(f"🔕 [DRY RUN] Would unmonitor: {title} (queued for deletion)")
            return
        try:
            if self.source.unmonitor(item_id):
                logger.info(f"🔕 Unmonitored: {title} (queued for deletion)")
                self.queue.mark_unmonitored(item_id)
        except Exception as e:
            logger.warning(f"⚠️ Failed to unmonitor {title}: {e}")

    def release(self, item, reason):
        """Take an item out of the queue without deleting it."""
        self.queue.remove(item.id)
        logger.info(f"↩️ Removed {item.title} from deletion queue ({reason})")
        if item.unmonitored and not self.dry_run:
            try:
                if self.source.monitor(item.id):
                    logger.info(f"🔔 Re-monitored: {item.title}")
            except Exception as e:
                logger.warning(f"⚠️ Failed to re-monitor {item.title}: {e}")

    def process_removals(self, results):
        mt = self.media_type
        ready = self.queue.get_ready_for_removal(self.delay_days, now=self.now())
        if not ready:
            return
        logger.info(f"🗑️ {len(ready)} {mt.value} items ready for removal")

        for item in ready:
            if is_excluded(item.title, self.exclusions):
                self.release(item, "excluded")
                continue

            self.check_cancelled()
            try:
                exists = self.source.exists(item.id)
            except Exception as e:
                logger.error(f"❌ Error checking {item.title}: {e}")
                results.append(MediaResult.error(mt, item.title, item.id, f"existence check failed: {e}",
                                                 year=item.year, size_on_disk=item.size_on_disk))
                continue

            if not exists:
                logger.info(f"ℹ️ {item.title} already removed, clearing from queue")
                self.queue.remove(item.id)
                continue

            size = format_size(item.size_on_disk)
            if self.dry_run:
                logger.warning(f"🗑️ [DRY RUN] Would delete: {item.title} ({size})")
                results.append(MediaResult.dry_run_remove(mt, item.title, item.id, year=item.year,
                                                          size_on_disk=item.size_on_disk))
                continue

            self.check_cancelled()
            try:
                self.source.delete(item.id)
            except Exception as e:
                logger.error(f"❌ Failed to delete {item.title}: {e}")
                results.append(MediaResult.error(mt, item.title, item.id, f"delete failed: {e}",
                                                 year=item.year, size_on_disk=item.size_on_disk))
                continue

            logger.info(f"✅ Deleted: {item.title} ({size} freed)")
            self.queue.remove(item.id)
            results.append(MediaResult.removed(mt, item.title, item.id, year=item.year,
                                                   size_on_disk=item.size_on_disk))


class OrphanProcessor(RetentionProcessor):
    """
    Catalog items whose cross-reference id isn't managed by the authoritative
    backend go through the same state machine, keyed by catalog id.
    """

    def __init__(self, source, queue, policy, delay_days, authoritative_ids, authority_name,
                 excluded_library_ids=None, **kwargs):
        super().__init__(source, queue, policy, delay_days, **kwargs)
        if authoritative_ids is None:
            raise ValueError("orphan detection needs the authoritative id set")
        self.authoritative_ids = authoritative_ids
        self.authority_name = authority_name
        self.excluded_library_ids = excluded_library_ids or set()

    def find_orphans(self, candidates):
        orphans = []
        for candidate in candidates:
            if not candidate.external_id:
                logger.warning(f"Skipping {self.source.display_name} item '{candidate.title}' "
                               f"(no {getattr(self.source, 'provider', 'provider')} ID)")
                continue
            if candidate.external_id in self.authoritative_ids:
                continue
            orphans.append(candidate)
        logger.info(f"📚 Found {len(orphans)} orphan {self.media_type.value} items "
                    f"(not in {self.authority_name})")
        return orphans

    def release_adopted(self):
        """
        Queued orphans that the backend now manages, or whose library has since
        been excluded, are no longer ours to delete.
        """
        for item in self.queue.get_all():
            if item.external_id and item.external_id in self.authoritative_ids:
                self.release(item, f"now managed by {self.authority_name}")
            elif item.library_id and item.library_id in self.excluded_library_ids:
                self.release(item, "library excluded")

    def run(self, candidates):
        self.release_adopted()
        return super().run(self.find_orphans(candidates))
