import logging
import threading
from collections import deque

NEW_JOB = 'newJob'
JOB_CANCELLED = 'jobCancelled'
JOB_STATUSES_UPDATED = 'jobStatusesUpdated'
APPLICATION_STATUS_CHANGED = 'applicationStatusChanged'


class Notifier:
    """
    In-process event hub. A real-time transport subscribes a callback and
    forwards each ``(event, payload)`` pair to connected clients.
    """

    def __init__(self, history_size=100):
        self._listeners = []
        self._lock = threading.Lock()
        self.history = deque(maxlen=history_size)

    def subscribe(self, callback):
        with self._lock:
            self._listeners.append(callback)
        return callback

    def unsubscribe(self, callback):
        with self._lock:
            if callback in self._listeners:
                self._listeners.remove(callback)

    def publish(self, event, payload):
        logging.info(f"Event {event}: {payload}")
        self.history.append((event, payload))
        with self._lock:
            listeners = list(self._listeners)
        for callback in listeners:
            try:
                callback(event, payload)
            except Exception as e:
                logging.error(f"Notification listener failed for {event}: {e}")
