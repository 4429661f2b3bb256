from agrimart.errors import AppError
import logging
import threading

logger = logging.getLogger(__name__)

OUTBOX_FLUSH_INTERVAL = 15
NOTIFICATION_POLL_INTERVAL = 30


class PeriodicTask:
    """Run ``func`` every ``interval`` seconds on a daemon thread.

    Errors raised by ``func`` are logged and the schedule carries on.
    """

    def __init__(self, interval, func, name=None):
        if interval <= 0:
            raise ValueError('interval must be positive')
        self.interval = interval
        self.func = func
        self.name = name or getattr(func, '__name__', 'periodic-task')
        self._stop = threading.Event()
        self._thread = None

    @property
    def running(self):
        return self._thread is not None and self._thread.is_alive()

    def run_once(self):
        try:
            return self.func()
        except Exception:
            logger.exception("Periodic task %s failed", self.name)
            return None

    def _loop(self):
        while not self._stop.wait(self.interval):
            self.run_once()

    def start(self):
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(
            target=self._loop, name=self.name, daemon=True)
        self._thread.start()

    def stop(self, timeout=None):
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
        self._thread = None


class NotificationPoller:
    """Fetch notifications and report the ones not seen before."""

    def __init__(self, api, on_new=None):
        self.api = api
        self.on_new = on_new
        self._seen_ids = set()

    def poll(self):
        try:
            items = self.api.get('/notifications') or []
        except AppError as e:
            logger.info("Notification poll failed: %s", e.message)
            return []

        fresh = [n for n in items if n.get('id') not in self._seen_ids]
        self._seen_ids.update(n.get('id') for n in fresh)
        if fresh and self.on_new:
            self.on_new(fresh)
        return fresh


def outbox_flusher(outbox, interval=OUTBOX_FLUSH_INTERVAL) -> PeriodicTask:
    return PeriodicTask(interval, outbox.flush, name='outbox-flush')


def notification_poller(poller, interval=NOTIFICATION_POLL_INTERVAL):
    return PeriodicTask(interval, poller.poll, name='notification-poll')
