# Root folder: qport-core/main_agent.py
#
# Starts everything:
# 1. Initializes storage (preferences DB + content cache)
# 2. Builds the sinks, classifier and orchestrator
# 3. Runs diagnostics once, then on a schedule
# 4. Seeds the initial reports
# 5. Serves the dashboard API

import logging
import os
import sys
import time
import threading
import schedule
import config

os.makedirs(config.LOG_DIR, exist_ok=True)

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(name)s] %(message)s",
    handlers=[
        logging.StreamHandler(sys.stdout),
        logging.FileHandler(os.path.join(config.LOG_DIR, "pipeline.log"))
    ]
)

logger = logging.getLogger(__name__)


def build_sink():
    """Log sink always; Slack and webhook when configured."""
    from actions.sinks import CompositeSink, LoggingSink, WebhookSink
    sinks = [LoggingSink()]
    if config.SLACK_BOT_TOKEN and config.SLACK_CHANNEL_ID:
        from actions.slack_notifier import SlackSink
        sinks.append(SlackSink())
    if config.SINK_WEBHOOK_URL:
        sinks.append(WebhookSink())
    logger.info(f"Sinks: {', '.join(type(s).__name__ for s in sinks)}")
    return sinks[0] if len(sinks) == 1 else CompositeSink(sinks)


def build_orchestrator():
    from storage.preferences_store import KeyValueStore
    from storage.content_cache import ContentCache
    from agent.backend import AnthropicBackend
    from agent.classifier import ClassificationClient
    from agent.orchestrator import PipelineOrchestrator

    cache = ContentCache(persistence=KeyValueStore())
    classifier = ClassificationClient(AnthropicBackend())
    return PipelineOrchestrator(
        classifier=classifier,
        cache=cache,
        sink=build_sink()
    )


def seed_initial_reports(orchestrator):
    """
    Submit the startup reports concurrently, staggered a little so
    they don't all hit the backend in the same instant.
    """
    def submit(text, delay):
        time.sleep(delay)
        try:
            incident = orchestrator.submit(text)
            logger.info(f"Seeded {incident.id}: {incident.summary}")
        except Exception as e:
            logger.error(f"Seeding failed for '{text[:40]}': {e}", exc_info=True)

    for i, text in enumerate(config.INITIAL_REPORTS):
        threading.Thread(
            target=submit,
            args=(text, i * config.SEED_STAGGER_SEC),
            daemon=True
        ).start()


def start_scheduler(orchestrator):
    def run_diagnostics():
        try:
            orchestrator.run_diagnostics()
        except Exception as e:
            logger.warning(f"Scheduled diagnostics failed: {e}")

    schedule.every(config.DIAGNOSTICS_INTERVAL_MIN).minutes.do(run_diagnostics)

    def run_scheduler():
        while True:
            schedule.run_pending()
            time.sleep(5)

    threading.Thread(target=run_scheduler, daemon=True).start()


def main():
    logger.info("=" * 60)
    logger.info("QPORT INCIDENT PIPELINE STARTING")
    logger.info("=" * 60)

    orchestrator = build_orchestrator()
    logger.info("✅ Pipeline initialized")

    # First diagnostics run in the background, then every N minutes
    threading.Thread(target=orchestrator.run_diagnostics, daemon=True).start()
    start_scheduler(orchestrator)
    logger.info(f"✅ Diagnostics scheduled every {config.DIAGNOSTICS_INTERVAL_MIN} min")

    if config.SEED_INITIAL_REPORTS:
        seed_initial_reports(orchestrator)

    from app.main import create_app
    app = create_app(orchestrator)

    logger.info(f"🟢 Dashboard API on http://127.0.0.1:{config.APP_PORT}")
    try:
        app.run(host="127.0.0.1", port=config.APP_PORT, debug=False, threaded=True)
    finally:
        orchestrator.flush_notifications(timeout=2.0)
        logger.info("Shut down.")


if __name__ == "__main__":
    main()
