__version__ = "1.0.0"
import os
import atexit

from flask import Flask, Blueprint, jsonify
from dotenv import load_dotenv

from logging_config import main_logger, setup_module_logging
from settings import load_settings
from sonarr_utils import SonarrAPI
from radarr_utils import RadarrAPI
from emby_utils import EmbyAPI
from trakt_utils import TraktAPI
from cleanup_service import CleanupService
from scheduler import CleanupScheduler
import notifications

app = Flask(__name__)

# Load environment variables
load_dotenv()

logger = main_logger
cleanup_service = None
cleanup_scheduler = None


def create_api_blueprint(service, scheduler):
    """JSON API for status and manual runs"""
    bp = Blueprint('retirarr_api', __name__, url_prefix='/api/v1')

    @bp.route('/health')
    def health():
        return jsonify({"status": "ok", "version": __version__})

    @bp.route('/cleanup/stats')
    def cleanup_stats():
        """Results of the last finished cycle."""
        try:
            result, last_run = service.get_last_results()
            if result is None:
                return jsonify({"status": "success", "last_run": None, "message": "No cleanup has run yet"})
            return jsonify({
                "status": "success",
                "last_run": last_run.isoformat(),
                "result": result.to_dict(),
            })
        except Exception as e:
            logger.error(f"Error reading cleanup stats: {str(e)}")
            return jsonify({"status": "error", "message": str(e)}), 500

    @bp.route('/cleanup/queue')
    def cleanup_queue():
        try:
            return jsonify({"status": "success", "queues": service.get_queue_snapshot()})
        except Exception as e:
            logger.error(f"Error reading cleanup queue: {str(e)}")
            return jsonify({"status": "error", "message": str(e)}), 500

    @bp.route('/cleanup/run', methods=['POST'])
    def run_cleanup():
        """Force cleanup manually."""
        try:
            logger.info("Manual cleanup requested via API")
            if not scheduler.force_cleanup():
                return jsonify({"status": "error", "message": "Cleanup already running"}), 409
            return jsonify({"status": "success", "message": "Cleanup started"}), 202
        except Exception as e:
            logger.error(f"Failed to start manual cleanup: {str(e)}")
            return jsonify({"status": "error", "message": str(e)}), 500

    @bp.route('/scheduler-status')
    def scheduler_status():
        try:
            return jsonify(scheduler.get_status())
        except Exception as e:
            return jsonify({"status": "error", "message": str(e)}), 500

    return bp


def build_clients(settings):
    """Clients for every configured service. Unconfigured services are None."""
    clients = {'sonarr': None, 'radarr': None, 'emby': None, 'trakt': None}

    if settings.is_configured('sonarr'):
        clients['sonarr'] = SonarrAPI(settings.sonarr['url'], settings.sonarr['api_key'])
    else:
        logger.info("⏭️ Sonarr not configured - series cleanup disabled")

    if settings.is_configured('radarr'):
        clients['radarr'] = RadarrAPI(settings.radarr['url'], settings.radarr['api_key'])
    else:
        logger.info("⏭️ Radarr not configured - movie cleanup disabled")

    if settings.is_configured('emby'):
        clients['emby'] = EmbyAPI(settings.emby['url'], settings.emby['api_key'])
    else:
        logger.info("⏭️ Emby not configured - orphan cleanup disabled")

    if settings.is_configured('trakt'):
        trakt = TraktAPI(settings.trakt['client_id'], settings.trakt['client_secret'])
        try:
            trakt.initialize()
            clients['trakt'] = trakt
        except Exception as e:
            logger.error(f"❌ Trakt authorization failed: {str(e)}")
    else:
        logger.warning("⚠️ Trakt not configured - nothing will be queued for deletion")

    return clients


def initialize_retirarr():
    """Initialize retirarr components."""
    global cleanup_service, cleanup_scheduler
    setup_module_logging()

    settings = load_settings()
    notifications.init_notifications(
        settings.apprise.get('enabled', False),
        settings.apprise.get('url', ''),
        settings.apprise.get('key', 'apprise'),
        settings.apprise.get('tag', 'all'),
    )

    clients = build_clients(settings)
    cleanup_service = CleanupService(**clients)
    cleanup_scheduler = CleanupScheduler(cleanup_service)
    app.register_blueprint(create_api_blueprint(cleanup_service, cleanup_scheduler))

    cleanup_scheduler.start_scheduler()
    atexit.register(cleanup_scheduler.stop)
    return settings


if __name__ == '__main__':
    settings = initialize_retirarr()
    port = int(os.getenv('PORT', settings.server.get('port', 5003)))
    logger.info(f"🚀 Retirarr v{__version__} starting on port {port}")
    app.run(host='0.0.0.0', port=port, debug=os.getenv('FLASK_DEBUG', 'false').lower() == 'true')
