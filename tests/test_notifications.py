from unittest.mock import MagicMock, patch

import pytest

import notifications
from media_results import MediaResult, MediaType, ProcessorOutcome, ProcessingResult


@pytest.fixture(autouse=True)
def apprise_config():
    notifications.init_notifications(True, 'http://apprise:8000/', 'retirarr', 'media')
    yield
    notifications.init_notifications(False, '')


def _result(dry_run=False):
    return ProcessingResult.from_outcomes([
        ProcessorOutcome(MediaType.SERIES, scanned=3, results=[
            MediaResult.removed(MediaType.SERIES, 'Severance', 1, size_on_disk=2 * 1024 ** 3)
            if not dry_run else MediaResult.dry_run_remove(MediaType.SERIES, 'Severance', 1),
            MediaResult.queued(MediaType.SERIES, 'Andor', 2, 'fully watched (S01) - queued for deletion', 5),
            MediaResult.skipped(MediaType.SERIES, 'Slow Horses', 3, 'watching S04 (2/6 on disk)'),
        ]),
        ProcessorOutcome(MediaType.EMBY_MOVIE, scanned=1, results=[
            MediaResult.error(MediaType.EMBY_MOVIE, 'Heat', 9, 'delete failed: 500', year=1995),
        ]),
    ], dry_run=dry_run)


class TestBuildMessage:
    def test_sections(self):
        title, body, notify_type = notifications.build_cleanup_results_message(_result())

        assert title == '🧹 Cleanup Results'
        assert notify_type == 'success'
        assert '*📺 SERIES*' in body
        assert 'REMOVED (1):\n• Severance [2.0 GB] ← deleted' in body
        assert '• Andor ← fully watched (S01) - queued for deletion (in 5 days)' in body
        assert 'SKIPPED (1):\n• Slow Horses ← watching S04 (2/6 on disk)' in body
        assert '*🎬 MOVIES*' in body
        assert 'ERRORS (1):\n• Heat (1995) ← delete failed: 500' in body

    def test_dry_run(self):
        title, body, notify_type = notifications.build_cleanup_results_message(_result(dry_run=True))

        assert title == '🧹 Cleanup Results (DRY RUN)'
        assert body.startswith('⚠️ *DRY RUN MODE*')
        assert 'WOULD REMOVE (1):' in body
        assert notify_type == 'info'

    def test_empty_section_is_left_out(self):
        result = ProcessingResult.from_outcomes([ProcessorOutcome(MediaType.MOVIE, results=[
            MediaResult.skipped(MediaType.MOVIE, 'Arrival', 1, 'not watched', year=2016),
        ])])
        _, body, _ = notifications.build_cleanup_results_message(result)
        assert 'SERIES' not in body


class TestSendNotification:
    def test_posts_form_to_apprise(self):
        response = MagicMock(status_code=200)
        with patch('notifications.requests.post', return_value=response) as post:
            assert notifications.send_notification('cleanup_results', result=_result())

        url = post.call_args.args[0]
        data = post.call_args.kwargs['data']
        assert url == 'http://apprise:8000/notify/retirarr'
        assert data['tags'] == 'media'
        assert data['type'] == 'success'
        assert data['title'] == '🧹 Cleanup Results'

    def test_disabled(self):
        notifications.init_notifications(False, 'http://apprise:8000')
        with patch('notifications.requests.post') as post:
            assert not notifications.send_notification('cleanup_results', result=_result())
        post.assert_not_called()

    def test_empty_result_is_not_sent(self):
        with patch('notifications.requests.post') as post:
            assert not notifications.send_notification('cleanup_results',
                                                       result=ProcessingResult.from_outcomes([]))
        post.assert_not_called()

    def test_failure_is_swallowed(self):
        with patch('notifications.requests.post', side_effect=ConnectionError('refused')):
            assert not notifications.send_notification('cleanup_results', result=_result())

    def test_unknown_type(self):
        assert not notifications.send_notification('nope')
