"""
Cleanup Service
Runs one reconciliation cycle across every configured library:

    Sonarr series -> Radarr movies -> Emby series orphans -> Emby movie orphans

The backend passes also produce the TVDB/TMDB id sets the Emby orphan passes
are checked against. Results are merged once at the end of the cycle.
"""
import time
import logging
from dataclasses import dataclass, field
from datetime import datetime
from threading import Lock

from integrations import SonarrSource, RadarrSource, EmbySeriesSource, EmbyMovieSource
from logging_config import cleanup_logger
from media_processor import (
    RetentionProcessor, OrphanProcessor, SeriesPolicy, MoviePolicy, CycleCancelled,
)
from media_results import MediaType, ProcessorOutcome, ProcessingResult, Action
from removal_queue import RemovalQueue
from retirarr_utils import format_size
from settings import load_settings
from watch_history import ShowHistory, MovieHistory
import notifications

logger = logging.getLogger(__name__)

MEDIA_ICONS = {
    MediaType.SERIES: '📺',
    MediaType.MOVIE: '🎬',
    MediaType.EMBY_SERIES: '📚',
    MediaType.EMBY_MOVIE: '📚',
}


@dataclass
class CycleContext:
    settings: object
    cancel_event: object = None
    outcomes: list = field(default_factory=list)
    history: dict = field(default_factory=dict)

    @property
    def cleanup(self):
        return self.settings.cleanup

    def check_cancelled(self):
        if self.cancel_event is not None and self.cancel_event.is_set():
            raise CycleCancelled()


class CleanupService:
    def __init__(self, sonarr=None, radarr=None, emby=None, trakt=None,
                 queues=None, settings_loader=load_settings, notifier=None, data_dir=None):
        self.sonarr = sonarr
        self.radarr = radarr
        self.emby = emby
        self.trakt = trakt
        self.settings_loader = settings_loader
        self.notifier = notifier or notifications.send_notification
        self.queues = queues or {
            media_type: RemovalQueue.for_media_type(media_type, data_dir) for media_type in MediaType
        }
        self._results_lock = Lock()
        self.last_results = None
        self.last_run = None

    def get_last_results(self):
        with self._results_lock:
            return self.last_results, self.last_run

    def get_queue_snapshot(self):
        return {
            media_type.value: [item.to_dict() for item in queue.get_all()]
            for media_type, queue in self.queues.items()
        }

    # ------------------------------------------------------------------
    # Cycle
    # ------------------------------------------------------------------

    def run_cycle(self, cancel_event=None):
        start = time.time()
        ctx = CycleContext(settings=self.settings_loader(), cancel_event=cancel_event)
        dry_run = ctx.cleanup.dry_run
        logger.info(f"🧹 Starting cleanup cycle{' (DRY RUN)' if dry_run else ''}")

        try:
            tvdb_ids = self._process_series(ctx)
            tmdb_ids = self._process_movies(ctx)
            self._process_emby_series(ctx, tvdb_ids)
            self._process_emby_movies(ctx, tmdb_ids)
        except CycleCancelled:
            logger.warning("🛑 Cleanup cycle cancelled, keeping partial results")

        result = ProcessingResult.from_outcomes(ctx.outcomes, dry_run=dry_run)
        with self._results_lock:
            self.last_results = result
            self.last_run = datetime.now()

        print_summary(result, time.time() - start)
        self.notifier('cleanup_results', result=result)
        return result

    def _run(self, ctx, processor, candidates):
        try:
            outcome = processor.run(candidates)
        except Exception as e:
            logger.exception(f"❌ {processor.media_type.value} processing failed: {e}")
            return
        ctx.outcomes.append(outcome)
        if outcome.cancelled:
            raise CycleCancelled()

    def _list(self, ctx, source):
        """Candidates from a source, or None when the listing failed."""
        ctx.check_cancelled()
        try:
            return source.list_candidates()
        except Exception as e:
            logger.error(f"❌ Failed to get {source.media_type.value} items from {source.display_name}: {e}")
            return None

    def _history(self, ctx, kind):
        """Watch history for 'shows' or 'movies', fetched at most once per cycle."""
        if kind in ctx.history:
            return ctx.history[kind]
        history = None
        if self.trakt is None:
            logger.warning("⚠️ Trakt not configured, no watch history available")
        else:
            ctx.check_cancelled()
            try:
                history = ShowHistory.fetch(self.trakt) if kind == 'shows' else MovieHistory.fetch(self.trakt)
            except Exception as e:
                logger.error(f"❌ Failed to get watched {kind}: {e}")
        ctx.history[kind] = history
        return history

    def _processor_kwargs(self, ctx):
        return {
            'exclusions': ctx.cleanup.exclusions,
            'dry_run': ctx.cleanup.dry_run,
            'cancel_event': ctx.cancel_event,
        }

    def _process_series(self, ctx):
        if self.sonarr is None:
            logger.debug("Sonarr not configured, skipping series cleanup")
            return None
        source = SonarrSource(self.sonarr)
        candidates = self._list(ctx, source)
        if candidates is None:
            return None
        tvdb_ids = source.authoritative_ids(candidates)

        history = self._history(ctx, 'shows')
        if history is None:
            ctx.outcomes.append(ProcessorOutcome(MediaType.SERIES, scanned=len(candidates)))
            return tvdb_ids

        processor = RetentionProcessor(
            source, self.queues[MediaType.SERIES], SeriesPolicy(history),
            ctx.cleanup.delay_days_for(MediaType.SERIES),
            **self._processor_kwargs(ctx),
        )
        self._run(ctx, processor, candidates)
        return tvdb_ids

    def _process_movies(self, ctx):
        if self.radarr is None:
            logger.debug("Radarr not configured, skipping movie cleanup")
            return None
        source = RadarrSource(self.radarr)
        candidates = self._list(ctx, source)
        if candidates is None:
            return None
        tmdb_ids = source.authoritative_ids(candidates)

        history = self._history(ctx, 'movies')
        if history is None:
            ctx.outcomes.append(ProcessorOutcome(MediaType.MOVIE, scanned=len(candidates)))
            return tmdb_ids

        processor = RetentionProcessor(
            source, self.queues[MediaType.MOVIE], MoviePolicy(history),
            ctx.cleanup.delay_days_for(MediaType.MOVIE),
            **self._processor_kwargs(ctx),
        )
        self._run(ctx, processor, candidates)
        return tmdb_ids

    def _process_orphans(self, ctx, source, policy_cls, history_kind, authoritative_ids, authority_name):
        media_type = source.media_type
        if authoritative_ids is None:
            logger.warning(f"⚠️ Skipping {media_type.value} orphan check - "
                           f"{authority_name} list unavailable this cycle")
            return
        candidates = self._list(ctx, source)
        if candidates is None:
            return

        history = self._history(ctx, history_kind)
        if history is None:
            orphans = [c for c in candidates if c.external_id and c.external_id not in authoritative_ids]
            ctx.outcomes.append(ProcessorOutcome(media_type, scanned=len(orphans)))
            return

        processor = OrphanProcessor(
            source, self.queues[media_type], policy_cls(history, via=source.display_name),
            ctx.cleanup.delay_days_for(media_type),
            authoritative_ids, authority_name,
            excluded_library_ids=source.excluded_library_ids,
            **self._processor_kwargs(ctx),
        )
        self._run(ctx, processor, candidates)

    def _process_emby_series(self, ctx, tvdb_ids):
        if self.emby is None:
            return
        source = EmbySeriesSource(self.emby, ctx.cleanup.excluded_libraries)
        self._process_orphans(ctx, source, SeriesPolicy, 'shows', tvdb_ids, 'Sonarr')

    def _process_emby_movies(self, ctx, tmdb_ids):
        if self.emby is None:
            return
        source = EmbyMovieSource(self.emby, ctx.cleanup.excluded_libraries)
        self._process_orphans(ctx, source, MoviePolicy, 'movies', tmdb_ids, 'Radarr')


# ============================================================
# Summary
# ============================================================

def _format_title(r):
    return f"{r.title} ({r.year})" if r.year else r.title


def print_summary(result, elapsed=None):
    log = cleanup_logger
    log.info("=" * 64)
    log.info(f"CLEANUP RESULTS{' (DRY RUN)' if result.dry_run else ''}")
    log.info("=" * 64)

    _print_section(log, "📺 SERIES", result, (MediaType.SERIES, MediaType.EMBY_SERIES))
    _print_section(log, "🎬 MOVIES", result, (MediaType.MOVIE, MediaType.EMBY_MOVIE))

    log.info("-" * 64)
    for media_type, stats in result.stats.items():
        log.info(f"{MEDIA_ICONS[media_type]} {media_type.value}: {stats.scanned} scanned, "
                 f"{stats.marked_for_queue} queued, {stats.removed} removed, {stats.skipped} skipped")
    if result.errors:
        log.error(f"❌ {result.errors} errors")
    if elapsed is not None:
        log.info(f"⏱️ Completed in {elapsed:.1f}s")


def _print_section(log, header, result, media_types):
    removed = (result.by_action(Action.REMOVED, media_types)
               + result.by_action(Action.DRY_RUN_REMOVE, media_types))
    queued = result.by_action(Action.QUEUED, media_types)
    skipped = result.by_action(Action.SKIPPED, media_types)
    errors = result.by_action(Action.ERROR, media_types)
    if not (removed or queued or skipped or errors):
        return

    log.info(f"── {header} ──")
    if removed:
        if result.dry_run:
            log.warning(f"  WOULD REMOVE ({len(removed)}):")
        else:
            log.info(f"  REMOVED ({len(removed)}):")
        for r in removed:
            log.info(f"   • {_format_title(r):<35} [{format_size(r.size_on_disk)}]  ← {r.reason}")
    if queued:
        log.info(f"  QUEUED ({len(queued)}):")
        for r in queued:
            when = f"in {r.days_until} days" if r.days_until > 0 else "ready"
            log.info(f"   • {_format_title(r):<35} [{format_size(r.size_on_disk)}]  ← {r.reason} ({when})")
    if skipped:
        log.info(f"  SKIPPED ({len(skipped)}):")
        for r in skipped:
            log.info(f"   • {_format_title(r):<35}  ← {r.reason}")
    if errors:
        log.error(f"  ERRORS ({len(errors)}):")
        for r in errors:
            log.error(f"   • {_format_title(r):<35}  ← {r.reason}")
