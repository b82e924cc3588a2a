import logging
import threading
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class AlertPoller:
    """
    Background unread-alert counter.

    Polls ``/alerts/unread-count`` once on start and then every ``interval``
    seconds until stopped. A failed poll is logged and the loop carries on.
    """

    def __init__(self, session, interval: float = 60.0, on_update: Optional[Callable[[int], None]] = None):
        self.session = session
        self.interval = interval
        self.on_update = on_update
        self.unread_count: Optional[int] = None
        self.failures = 0
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def poll_once(self) -> Optional[int]:
        try:
            data = self.session.data("GET", "/alerts/unread-count")
        except Exception as e:
            self.failures += 1
            logger.warning(f"Alert poll failed: {e}")
            return None
        self.unread_count = int(data["count"])
        if self.on_update is not None:
            self.on_update(self.unread_count)
        return self.unread_count

    def _run(self):
        self.poll_once()
        while not self._stop.wait(self.interval):
            self.poll_once()

    def start(self):
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="alert-poller", daemon=True)
        self._thread.start()

    def stop(self, timeout: float = 5.0):
        self._stop.set()
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout)
        self._thread = None
