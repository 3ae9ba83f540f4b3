import threading
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock, patch

import pytest

from cleanup_service import CleanupService, print_summary
from media_results import Action, MediaType
from removal_queue import QueueItem
from settings import CleanupSettings, Settings


def _settings(**cleanup):
    cleanup.setdefault('dry_run', False)
    cleanup.setdefault('delay_days', 7)
    return Settings(cleanup=CleanupSettings(**cleanup), sonarr={}, radarr={}, emby={},
                    trakt={}, apprise={}, server={})


def _season(number, files):
    return {'seasonNumber': number, 'statistics': {'episodeFileCount': files}}


SEVERANCE = {
    'id': 1, 'title': 'Severance', 'tvdbId': 100, 'monitored': True, 'status': 'continuing',
    'statistics': {'episodeFileCount': 19, 'episodeCount': 19, 'sizeOnDisk': 40 * 1024 ** 3},
    'seasons': [_season(0, 0), _season(1, 9), _season(2, 10)],
}

ARRIVAL = {
    'id': 7, 'title': 'Arrival', 'tmdbId': 329865, 'year': 2016, 'monitored': True,
    'hasFile': True, 'status': 'released', 'sizeOnDisk': 8 * 1024 ** 3,
}


@pytest.fixture
def sonarr():
    client = MagicMock()
    client.get_all_series.return_value = [SEVERANCE]
    client.get_series.return_value = SEVERANCE
    return client


@pytest.fixture
def radarr():
    client = MagicMock()
    client.get_all_movies.return_value = [ARRIVAL]
    client.get_movie.return_value = ARRIVAL
    return client


@pytest.fixture
def trakt():
    client = MagicMock()
    client.get_watched_shows.return_value = [
        {'show': {'title': 'Severance', 'ids': {'trakt': 1, 'tvdb': 100}}},
        {'show': {'title': 'Orphan Black', 'ids': {'trakt': 9, 'tvdb': 999}}},
    ]
    progress = {
        1: {'seasons': [{'number': 1, 'aired': 9, 'completed': 9},
                        {'number': 2, 'aired': 10, 'completed': 10}], 'next_episode': None},
        9: {'seasons': [{'number': 1, 'aired': 10, 'completed': 10}], 'next_episode': None},
    }
    client.get_show_progress.side_effect = lambda trakt_id: progress[trakt_id]
    client.get_show_seasons.return_value = []
    client.get_watched_movies.return_value = [
        {'last_watched_at': '2025-12-24T20:00:00.000Z', 'movie': {'ids': {'tmdb': 329865}}},
        {'last_watched_at': '2025-11-01T20:00:00.000Z', 'movie': {'ids': {'tmdb': 555}}},
    ]
    return client


@pytest.fixture
def emby():
    client = MagicMock()
    client.get_libraries.return_value = [
        {'name': 'TV', 'id': 'lib-tv', 'collection_type': 'tvshows'},
        {'name': 'Films', 'id': 'lib-films', 'collection_type': 'movies'},
        {'name': 'Mixed', 'id': 'lib-mixed', 'collection_type': ''},
    ]
    items = {
        ('Series', 'lib-tv'): [
            {'Id': '5001', 'Name': 'Severance', 'ProviderIds': {'Tvdb': '100'}},
            {'Id': '5002', 'Name': 'Orphan Black', 'ProviderIds': {'Tvdb': '999'}},
        ],
        ('Movie', 'lib-films'): [
            {'Id': '6001', 'Name': 'Arrival', 'ProductionYear': 2016, 'ProviderIds': {'Tmdb': '329865'}},
            {'Id': '6002', 'Name': 'Old Movie', 'ProductionYear': 1999, 'ProviderIds': {'Tmdb': '555'}},
        ],
    }
    client.get_items.side_effect = lambda item_type, parent_id=None: items.get((item_type, parent_id), [])
    client.get_season_file_counts.return_value = {1: 10}
    client.get_item.side_effect = lambda item_id: {'Id': str(item_id)}
    return client


def _service(queues, settings=None, **clients):
    return CleanupService(queues=queues, settings_loader=lambda: settings or _settings(),
                          notifier=MagicMock(), **clients)


def _actions(result, media_type):
    return [(r.title, r.action) for r in result.results if r.type == media_type]


class TestFullCycle:
    def test_all_sources(self, queues, sonarr, radarr, trakt, emby):
        service = _service(queues, sonarr=sonarr, radarr=radarr, trakt=trakt, emby=emby)

        result = service.run_cycle()

        assert _actions(result, MediaType.SERIES) == [('Severance', Action.QUEUED)]
        assert _actions(result, MediaType.MOVIE) == [('Arrival', Action.QUEUED)]
        assert _actions(result, MediaType.EMBY_SERIES) == [('Orphan Black', Action.QUEUED)]
        assert _actions(result, MediaType.EMBY_MOVIE) == [('Old Movie', Action.QUEUED)]
        assert result.stats[MediaType.SERIES].scanned == 1
        assert result.stats[MediaType.EMBY_SERIES].scanned == 1
        sonarr.unmonitor_series.assert_called_once_with(1)
        radarr.unmonitor_movie.assert_called_once_with(7)
        emby.get_items.assert_any_call('Series', 'lib-tv')
        assert all(call.args[1] != 'lib-mixed' for call in emby.get_items.call_args_list)

    def test_watch_history_fetched_once_per_type(self, queues, sonarr, radarr, trakt, emby):
        _service(queues, sonarr=sonarr, radarr=radarr, trakt=trakt, emby=emby).run_cycle()

        trakt.get_watched_shows.assert_called_once()
        trakt.get_watched_movies.assert_called_once()

    def test_publishes_last_results_and_notifies(self, queues, sonarr, trakt):
        service = _service(queues, sonarr=sonarr, trakt=trakt)
        assert service.get_last_results() == (None, None)

        result = service.run_cycle()

        last, last_run = service.get_last_results()
        assert last is result
        assert isinstance(last_run, datetime)
        service.notifier.assert_called_once_with('cleanup_results', result=result)

    def test_queue_snapshot(self, queues, sonarr, trakt):
        service = _service(queues, sonarr=sonarr, trakt=trakt)
        service.run_cycle()

        snapshot = service.get_queue_snapshot()
        assert [i['title'] for i in snapshot['series']] == ['Severance']
        assert snapshot['emby_movie'] == []

    def test_excluded_library_items_never_appear(self, queues, sonarr, trakt, emby):
        settings = _settings(excluded_libraries=['tv'])
        service = _service(queues, settings, sonarr=sonarr, trakt=trakt, emby=emby)

        result = service.run_cycle()

        assert _actions(result, MediaType.EMBY_SERIES) == []

    def test_per_type_delay(self, queues, sonarr, trakt, emby):
        settings = _settings(delay_days={'series': 14, 'emby_series': 3})
        result = _service(queues, settings, sonarr=sonarr, trakt=trakt, emby=emby).run_cycle()

        days = {r.type: r.days_until for r in result.results}
        assert days[MediaType.SERIES] == 14
        assert days[MediaType.EMBY_SERIES] == 3


class TestFailSafes:
    def test_orphan_pass_skipped_when_sonarr_list_fails(self, queues, sonarr, trakt, emby):
        sonarr.get_all_series.side_effect = ConnectionError('sonarr down')

        result = _service(queues, sonarr=sonarr, trakt=trakt, emby=emby).run_cycle()

        assert _actions(result, MediaType.EMBY_SERIES) == []
        assert all(call.args[0] != 'Series' for call in emby.get_items.call_args_list)
        emby.delete_item.assert_not_called()

    def test_orphan_pass_skipped_without_backend(self, queues, trakt, emby):
        queues[MediaType.EMBY_MOVIE].add(QueueItem(
            id=6002, external_id=555, title='Old Movie',
            marked_at=datetime.now(timezone.utc) - timedelta(days=60)))

        result = _service(queues, trakt=trakt, emby=emby).run_cycle()

        assert result.results == []
        emby.delete_item.assert_not_called()
        assert queues[MediaType.EMBY_MOVIE].is_queued(6002)

    def test_no_watch_history_means_no_removals(self, queues, sonarr, trakt):
        queues[MediaType.SERIES].add(QueueItem(
            id=1, external_id=100, title='Severance',
            marked_at=datetime.now(timezone.utc) - timedelta(days=60)))
        trakt.get_watched_shows.side_effect = ConnectionError('trakt down')

        result = _service(queues, sonarr=sonarr, trakt=trakt).run_cycle()

        assert result.results == []
        assert result.stats[MediaType.SERIES].scanned == 1
        sonarr.delete_series.assert_not_called()

    def test_processor_crash_does_not_stop_cycle(self, queues, sonarr, radarr, trakt):
        with patch('cleanup_service.SeriesPolicy') as policy_cls:
            policy_cls.return_value.evaluate.side_effect = KeyError('boom')
            result = _service(queues, sonarr=sonarr, radarr=radarr, trakt=trakt).run_cycle()

        assert _actions(result, MediaType.SERIES) == []
        assert _actions(result, MediaType.MOVIE) == [('Arrival', Action.QUEUED)]

    def test_orphan_stats_counted_without_watch_history(self, queues, sonarr, trakt, emby):
        trakt.get_watched_shows.side_effect = ConnectionError('trakt down')

        result = _service(queues, sonarr=sonarr, trakt=trakt, emby=emby).run_cycle()

        assert result.results == []
        assert result.stats[MediaType.SERIES].scanned == 1
        assert result.stats[MediaType.EMBY_SERIES].scanned == 1

    def test_invalid_delay_still_publishes_result(self, queues, sonarr, trakt):
        service = _service(queues, _settings(delay_days=None), sonarr=sonarr, trakt=trakt)

        result = service.run_cycle()

        assert _actions(result, MediaType.SERIES) == [('Severance', Action.QUEUED)]
        assert result.results[0].days_until == 7
        service.notifier.assert_called_once_with('cleanup_results', result=result)

    def test_nothing_configured(self, queues):
        result = _service(queues).run_cycle()
        assert result.results == []
        assert result.errors == 0

    def test_cancelled_cycle_returns_partial_result(self, queues, sonarr, trakt):
        cancel = threading.Event()
        cancel.set()

        result = _service(queues, sonarr=sonarr, trakt=trakt).run_cycle(cancel_event=cancel)

        assert result.results == []
        sonarr.get_all_series.assert_not_called()


class TestRemoval:
    def test_ready_series_is_deleted(self, queues, sonarr, trakt):
        queues[MediaType.SERIES].add(QueueItem(
            id=1, external_id=100, title='Severance',
            marked_at=datetime.now(timezone.utc) - timedelta(days=8)))

        result = _service(queues, sonarr=sonarr, trakt=trakt).run_cycle()

        assert _actions(result, MediaType.SERIES) == [('Severance', Action.REMOVED)]
        sonarr.delete_series.assert_called_once_with(1, delete_files=True)
        assert not queues[MediaType.SERIES].is_queued(1)
        assert result.has_removals()

    def test_orphan_in_newly_excluded_library_is_kept(self, queues, sonarr, trakt, emby):
        queues[MediaType.EMBY_SERIES].add(QueueItem(
            id=5002, external_id=999, title='Orphan Black', library_id='lib-tv',
            marked_at=datetime.now(timezone.utc) - timedelta(days=30)))
        settings = _settings(excluded_libraries=['TV'])

        result = _service(queues, settings, sonarr=sonarr, trakt=trakt, emby=emby).run_cycle()

        assert _actions(result, MediaType.EMBY_SERIES) == []
        emby.delete_item.assert_not_called()
        assert not queues[MediaType.EMBY_SERIES].is_queued(5002)

    def test_removed_movie_keeps_year(self, queues, radarr, trakt):
        queues[MediaType.MOVIE].add(QueueItem(
            id=7, external_id=329865, title='Arrival', year=2016,
            marked_at=datetime.now(timezone.utc) - timedelta(days=8)))

        result = _service(queues, radarr=radarr, trakt=trakt).run_cycle()

        removed = result.by_action(Action.REMOVED)
        assert [(r.title, r.year) for r in removed] == [('Arrival', 2016)]

    def test_dry_run_does_not_delete(self, queues, sonarr, trakt):
        queues[MediaType.SERIES].add(QueueItem(
            id=1, external_id=100, title='Severance',
            marked_at=datetime.now(timezone.utc) - timedelta(days=8)))

        result = _service(queues, _settings(dry_run=True), sonarr=sonarr, trakt=trakt).run_cycle()

        assert _actions(result, MediaType.SERIES) == [('Severance', Action.DRY_RUN_REMOVE)]
        sonarr.delete_series.assert_not_called()
        assert result.dry_run


class TestSummary:
    def test_print_summary_logs_sections(self, queues, sonarr, trakt):
        result = _service(queues, sonarr=sonarr, trakt=trakt).run_cycle()

        with patch('cleanup_service.cleanup_logger') as log:
            print_summary(result, 1.5)

        lines = [call.args[0] for call in log.info.call_args_list]
        assert any('QUEUED (1)' in line for line in lines)
        assert any('Severance' in line and 'in 7 days' in line for line in lines)
        assert any('1 scanned, 1 queued' in line for line in lines)
