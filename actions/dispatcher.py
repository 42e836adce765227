# Folder: qport-core/actions/dispatcher.py
#
# Fire-and-forget delivery to the best-effort sink.
#
# notify() only enqueues; one daemon worker drains the queue in FIFO
# order, so the sink sees events in the order they happened and the
# thread count stays at one per dispatcher. Whatever the sink raises
# is caught here and written to the `pipeline.errors` logger - the
# dedicated error channel. Nothing is retried, nothing propagates.
#
# When the queue is full the event is dropped (and logged) rather than
# blocking the caller.

import logging
import queue
import threading
import config

logger = logging.getLogger(__name__)
error_channel = logging.getLogger("pipeline.errors")


class NotificationDispatcher:

    def __init__(self, sink, max_pending: int = None):
        self.sink = sink
        self._queue = queue.Queue(maxsize=max_pending or config.SINK_QUEUE_MAX)
        self._idle = threading.Condition()
        self._in_flight = 0
        self._worker = threading.Thread(
            target=self._drain, name="pipeline-notify", daemon=True
        )
        self._worker.start()

    def notify(self, event_name: str, payload: dict = None) -> bool:
        return self._enqueue(
            f"notify:{event_name}", self.sink.notify, event_name, payload
        )

    def notify_error(self, error: BaseException, context: str) -> bool:
        return self._enqueue(
            f"notify_error:{context}", self.sink.notify_error, error, context
        )

    def flush(self, timeout: float = 5.0) -> bool:
        """
        Wait until every queued delivery has run. Used by tests and at
        shutdown. Returns False if work is still pending after the timeout.
        """
        with self._idle:
            return self._idle.wait_for(lambda: self._in_flight == 0, timeout)

    def _enqueue(self, label: str, fn, *args) -> bool:
        with self._idle:
            self._in_flight += 1
        try:
            self._queue.put_nowait((label, fn, args))
        except queue.Full:
            self._done()
            error_channel.error(f"Sink queue full, dropped {label}")
            return False
        return True

    def _drain(self):
        while True:
            label, fn, args = self._queue.get()
            try:
                fn(*args)
            except Exception as e:
                error_channel.error(f"Sink delivery failed ({label}): {e}")
            finally:
                self._done()

    def _done(self):
        with self._idle:
            self._in_flight -= 1
            if self._in_flight == 0:
                self._idle.notify_all()
