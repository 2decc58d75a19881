import logging
import threading

logger = logging.getLogger(__name__)


class ScheduledTask:
    """A delayed callback that can be cancelled until the moment it runs."""

    def __init__(self, delay, callback, args=()):
        self.delay = delay
        self.callback = callback
        self.args = args
        self._cancelled = threading.Event()

    @property
    def cancelled(self):
        return self._cancelled.is_set()

    def cancel(self):
        self._cancelled.set()

    def run(self):
        if self.cancelled:
            return
        self.callback(self, *self.args)


class SocketIOScheduler:
    """
    Runs tasks as Flask-SocketIO background tasks so timers follow the
    server's async mode (threads, eventlet or gevent).

    The callback receives the task itself first, so the owner can check
    that the task that fired is still the one it is waiting for.
    """

    def __init__(self, socketio):
        self.socketio = socketio

    def call_later(self, delay, callback, *args):
        task = ScheduledTask(delay, callback, args)
        self.socketio.start_background_task(self._sleep_then_run, task)
        return task

    def _sleep_then_run(self, task):
        self.socketio.sleep(task.delay)
        try:
            task.run()
        except Exception:
            logger.exception(f"Scheduled task {task.callback.__name__} failed")
