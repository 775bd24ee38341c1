"""Notification panel state, its change bus and the refresh poller."""
import logging
import threading
from typing import Callable, List, Optional

from client.api import ApiError, CareApiClient

logger = logging.getLogger(__name__)

POLL_INTERVAL_SECONDS = 30.0


class NotificationBus:
    """Typed publish/subscribe for unread-count changes."""

    def __init__(self):
        self._subscribers: List[Callable[[int], None]] = []
        self._lock = threading.Lock()

    def subscribe(self, callback: Callable[[int], None]) -> Callable[[], None]:
        with self._lock:
            self._subscribers.append(callback)

        def unsubscribe():
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)
        return unsubscribe

    def publish(self, unread_count: int):
        with self._lock:
            subscribers = self._subscribers[:]
        for callback in subscribers:
            callback(unread_count)


class NotificationPanel:
    def __init__(self, api: CareApiClient, bus: Optional[NotificationBus] = None):
        self.api = api
        self.bus = bus or NotificationBus()
        self.notifications: List[dict] = []
        self.unread_count = 0

    def refresh(self):
        body = self.api.notifications()
        self.notifications = body.get("notifications", [])
        self.unread_count = body.get("unreadCount", 0)
        self.bus.publish(self.unread_count)

    def mark_read(self, notification_id: int):
        """Flip locally first, then tell the server."""
        for notification in self.notifications:
            if notification["id"] == notification_id and notification.get("unread"):
                notification["unread"] = False
                self.unread_count = max(0, self.unread_count - 1)
                self.bus.publish(self.unread_count)
                break
        self.api.mark_notification_read(notification_id)

    def mark_all_read(self):
        self.api.mark_all_notifications_read()
        for notification in self.notifications:
            notification["unread"] = False
        self.unread_count = 0
        self.bus.publish(self.unread_count)


class Poller:
    """Call `func` every `interval` seconds on a background thread until stopped."""

    def __init__(self, func: Callable[[], None], interval: float = POLL_INTERVAL_SECONDS):
        self.func = func
        self.interval = interval
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def start(self):
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, daemon=True)
        self._thread.start()

    def stop(self, timeout: Optional[float] = None):
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    def _run(self):
        while not self._stop.wait(self.interval):
            try:
                self.func()
            except ApiError as e:
                logger.warning(f"Poll failed: {e.message}")
            except Exception as e:
                logger.exception(f"Error while polling: {e}")
