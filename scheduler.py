import time
import threading
import logging
from datetime import datetime

from settings import load_settings

logger = logging.getLogger(__name__)

STARTUP_DELAY = 300
CHECK_INTERVAL = 600


class CleanupScheduler:
    def __init__(self, service, settings_loader=load_settings, startup_delay=STARTUP_DELAY,
                 check_interval=CHECK_INTERVAL):
        self.service = service
        self.settings_loader = settings_loader
        self.startup_delay = startup_delay
        self.check_interval = check_interval
        self.cleanup_thread = None
        self.running = False
        self.last_cleanup = 0
        self.last_error = None
        # Held for the whole cycle; scheduled and manual runs both need it
        self.run_lock = threading.Lock()
        self.cancel_event = threading.Event()
        self.update_interval_from_settings()

    def update_interval_from_settings(self):
        """Update cleanup interval from settings."""
        try:
            cleanup = self.settings_loader().cleanup
            self.cleanup_interval_hours = cleanup.interval_hours
            self.enabled = cleanup.enabled
            self.run_on_start = cleanup.run_on_start
        except Exception as e:
            logger.error(f"Error reading scheduler settings: {e}")
            self.cleanup_interval_hours = 6
            self.enabled = True
            self.run_on_start = False

    def start_scheduler(self):
        if self.running:
            return
        self.running = True
        self.cancel_event.clear()
        self.cleanup_thread = threading.Thread(target=self._scheduler_loop, daemon=True)
        self.cleanup_thread.start()
        logger.info(f"✓ Cleanup scheduler started - cleanup every {self.cleanup_interval_hours} hours")

    def stop(self):
        """Stop scheduling and ask a running cycle to wind down."""
        self.running = False
        self.cancel_event.set()

    def _scheduler_loop(self):
        if self.run_on_start:
            logger.info("⏰ Running cleanup on start...")
            self.run_cleanup()
            self.last_cleanup = time.time()
        elif self.cancel_event.wait(self.startup_delay):
            return

        while self.running:
            try:
                self.update_interval_from_settings()

                hours_since_last = (time.time() - self.last_cleanup) / 3600
                if self.enabled and hours_since_last >= self.cleanup_interval_hours:
                    logger.info("⏰ Starting scheduled cleanup...")
                    self.run_cleanup()
                    self.last_cleanup = time.time()
            except Exception as e:
                logger.error(f"Scheduler error: {str(e)}")

            if self.cancel_event.wait(self.check_interval):
                return

    def is_busy(self):
        return self.run_lock.locked()

    def run_cleanup(self):
        """Run one cycle now. Returns the result, or None if a cycle is already running."""
        if not self.run_lock.acquire(blocking=False):
            logger.warning("Cleanup already running, skipping this trigger")
            return None
        try:
            result = self.service.run_cycle(cancel_event=self.cancel_event)
            self.last_error = None
            return result
        except Exception as e:
            logger.exception(f"Cleanup failed: {str(e)}")
            self.last_error = str(e)
            return None
        finally:
            self.run_lock.release()

    def force_cleanup(self):
        """Start a cycle in the background. Returns False if one is already running."""
        if self.is_busy():
            return False
        cleanup_thread = threading.Thread(target=self._forced_run, daemon=True)
        cleanup_thread.start()
        return True

    def _forced_run(self):
        if self.run_cleanup() is not None:
            self.last_cleanup = time.time()

    def get_status(self):
        if not self.running:
            status = {"status": "stopped", "next_cleanup": None}
        else:
            if self.last_cleanup == 0:
                next_cleanup = "on start" if self.run_on_start else f"{self.startup_delay // 60} minutes after startup"
            else:
                next_time = self.last_cleanup + (self.cleanup_interval_hours * 3600)
                next_cleanup = datetime.fromtimestamp(next_time).strftime("%Y-%m-%d %H:%M:%S")
            status = {"status": "running", "next_cleanup": next_cleanup}

        status.update({
            "enabled": self.enabled,
            "busy": self.is_busy(),
            "interval_hours": self.cleanup_interval_hours,
            "last_cleanup": datetime.fromtimestamp(self.last_cleanup).strftime("%Y-%m-%d %H:%M:%S") if self.last_cleanup else "Never",
            "last_error": self.last_error,
        })
        return status
