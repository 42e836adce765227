# Folder: qport-core/actions/sinks.py
#
# Best-effort notification targets.
#
# Every sink has the same two methods:
#   notify(event_name, payload)
#   notify_error(error, context)
#
# Sinks raise SinkError when delivery fails. They are never called
# directly by the pipeline - the NotificationDispatcher runs them in
# the background and logs whatever they raise.

import json
import logging
from typing import List
import requests
from agent.errors import SinkError
import config

logger = logging.getLogger(__name__)


class BaseSink:

    def notify(self, event_name: str, payload: dict = None):
        raise NotImplementedError

    def notify_error(self, error: BaseException, context: str):
        raise NotImplementedError


class LoggingSink(BaseSink):
    """Analytics events as log lines. Always available, never fails."""

    def __init__(self, logger_name: str = "pipeline.analytics"):
        self.log = logging.getLogger(logger_name)

    def notify(self, event_name: str, payload: dict = None):
        self.log.info(f"[ANALYTICS] {event_name} {json.dumps(payload or {}, default=str)}")

    def notify_error(self, error: BaseException, context: str):
        self.log.error(f"[ERROR_TRACKING] {context}: {error}")


class WebhookSink(BaseSink):
    """
    POSTs every event as JSON to a remote collector (remote sync).
    Short timeout - a slow collector just loses the event.
    """

    def __init__(self, url: str = None, timeout: float = None, session=None):
        self.url = url or config.SINK_WEBHOOK_URL
        self.timeout = timeout or config.SINK_WEBHOOK_TIMEOUT_SEC
        self.session = session or requests.Session()

    def notify(self, event_name: str, payload: dict = None):
        self._post({"event": event_name, "payload": payload or {}})

    def notify_error(self, error: BaseException, context: str):
        self._post({
            "event": "ERROR",
            "payload": {
                "context": context,
                "error_type": type(error).__name__,
                "message": str(error),
            },
        })

    def _post(self, body: dict):
        try:
            resp = self.session.post(
                self.url,
                data=json.dumps(body, default=str),
                headers={"Content-Type": "application/json"},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise SinkError(f"Webhook delivery to {self.url} failed: {e}") from e
        if not 200 <= resp.status_code < 300:
            raise SinkError(
                f"Webhook {self.url} answered {resp.status_code} for {body['event']}"
            )


class CompositeSink(BaseSink):
    """
    Fans out to several sinks. One failing sink does not stop the
    others; failures are collected and raised together at the end.
    """

    def __init__(self, sinks: List[BaseSink]):
        self.sinks = list(sinks)

    def notify(self, event_name: str, payload: dict = None):
        self._fan_out("notify", event_name, payload)

    def notify_error(self, error: BaseException, context: str):
        self._fan_out("notify_error", error, context)

    def _fan_out(self, method: str, *args):
        failures = []
        for sink in self.sinks:
            try:
                getattr(sink, method)(*args)
            except Exception as e:
                failures.append(f"{type(sink).__name__}: {e}")
        if failures:
            raise SinkError("; ".join(failures))
