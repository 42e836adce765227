# Folder: qport-core/actions/slack_notifier.py
#
# Slack sink for the incident pipeline.
# Uses Slack Block Kit for the high-signal events:
#   INCIDENT_SYNC       - new incident card (full incident payload)
#   STATUS_UPDATE       - one-line status change
# INCIDENT_PROCESSED is analytics only and skipped here.
# Everything else is posted as plain text.

import logging
from slack_sdk import WebClient
from slack_sdk.errors import SlackApiError
from actions.sinks import BaseSink
from agent.errors import SinkError
import config

logger = logging.getLogger(__name__)

SEVERITY_ICONS = {"CRITICAL": "🚨", "MAJOR": "⚠️", "MINOR": "ℹ️"}


class SlackSink(BaseSink):

    def __init__(self, client: WebClient = None, channel: str = None):
        self.client = client or WebClient(token=config.SLACK_BOT_TOKEN)
        self.channel = channel or config.SLACK_CHANNEL_ID

    def notify(self, event_name: str, payload: dict = None):
        payload = payload or {}
        if event_name == "INCIDENT_SYNC":
            self._post(
                text=f"New incident {payload.get('id')}: {payload.get('summary')}",
                blocks=incident_blocks(payload),
            )
        elif event_name == "STATUS_UPDATE":
            self._post(text=f"Incident `{payload.get('id')}` is now *{payload.get('status')}*")
        elif event_name == "INCIDENT_PROCESSED":
            logger.debug(f"Skipping {event_name} for {payload.get('id')}")
        else:
            self._post(text=f"{event_name} {payload}" if payload else event_name)

    def notify_error(self, error: BaseException, context: str):
        self._post(text=f"⚠️ Pipeline error in `{context}`: {str(error)[:200]}")

    def _post(self, text: str, blocks: list = None):
        try:
            self.client.chat_postMessage(
                channel=self.channel,
                text=text,
                blocks=blocks
            )
        except SlackApiError as e:
            raise SinkError(f"Slack error: {e}") from e


def incident_blocks(incident: dict) -> list:
    """Block Kit card for one classified (or fallback) incident."""
    severity = incident.get("severity", "MINOR")
    coords = incident.get("coords") or {}

    blocks = [
        {
            "type": "header",
            "text": {
                "type": "plain_text",
                "text": f"{SEVERITY_ICONS.get(severity, '')} {incident.get('type', 'OTHER')} · {incident.get('id')}"
            }
        },
        {
            "type": "section",
            "text": {"type": "mrkdwn", "text": incident.get("summary", "")}
        },
        {
            "type": "section",
            "fields": [
                {"type": "mrkdwn", "text": f"*Severity*\n{severity}"},
                {"type": "mrkdwn", "text": f"*Priority*\n{incident.get('priority_score')}/10"},
                {"type": "mrkdwn", "text": f"*Status*\n{incident.get('status')}"},
                {
                    "type": "mrkdwn",
                    "text": f"*Location*\n{coords.get('lat')}, {coords.get('lng')}"
                }
            ]
        }
    ]

    sources = incident.get("grounding_sources") or []
    if sources:
        links = "\n".join(f"• <{s['uri']}|{s['title']}>" for s in sources[:5])
        blocks.append({"type": "divider"})
        blocks.append({
            "type": "section",
            "text": {"type": "mrkdwn", "text": f"*Sources*\n{links}"}
        })

    return blocks
