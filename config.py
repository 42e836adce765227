# Root folder: qport-core/config.py
# Central config file - all settings live here
# Every other file imports from here instead of reading env directly

import os
from dotenv import load_dotenv

load_dotenv()

# API Keys
ANTHROPIC_API_KEY = os.getenv("ANTHROPIC_API_KEY")
SLACK_BOT_TOKEN = os.getenv("SLACK_BOT_TOKEN")
SLACK_CHANNEL_ID = os.getenv("SLACK_CHANNEL_ID")

# Inference backend
CLASSIFIER_MODEL = os.getenv("CLASSIFIER_MODEL", "claude-sonnet-4-5")
ANALYSIS_MODEL = os.getenv("ANALYSIS_MODEL", CLASSIFIER_MODEL)
CLASSIFIER_MAX_TOKENS = int(os.getenv("CLASSIFIER_MAX_TOKENS", 1024))
ANALYSIS_MAX_TOKENS = int(os.getenv("ANALYSIS_MAX_TOKENS", 1500))
WEB_SEARCH_MAX_USES = int(os.getenv("WEB_SEARCH_MAX_USES", 3))

# Best-effort sinks (empty = disabled)
SINK_WEBHOOK_URL = os.getenv("SINK_WEBHOOK_URL", "")
SINK_WEBHOOK_TIMEOUT_SEC = float(os.getenv("SINK_WEBHOOK_TIMEOUT_SEC", 2))
SINK_QUEUE_MAX = int(os.getenv("SINK_QUEUE_MAX", 1000))

# App settings
APP_PORT = int(os.getenv("APP_PORT", 5000))
SEED_INITIAL_REPORTS = os.getenv("SEED_INITIAL_REPORTS", "true").lower() == "true"
DIAGNOSTICS_INTERVAL_MIN = int(os.getenv("DIAGNOSTICS_INTERVAL_MIN", 5))

# Pipeline rules
MIN_REPORT_LENGTH = 5          # shorter reports are rejected before any call
MAX_RETRIES = 3                # 4 attempts total, indices 0..3
PRIORITY_MIN = 1
PRIORITY_MAX = 10
FALLBACK_PRIORITY = 5
FALLBACK_COORDS = (37.7749, -122.4194)   # San Francisco city center
SERVICE_LAT_BAND = (37.0, 38.0)          # plausible latitudes for the service region

# Startup seed reports, submitted concurrently on boot
INITIAL_REPORTS = [
    "Major structure fire at 3rd and Market St. Multiple units in transit.",
    "Public transit vehicle collision near Van Ness. Traffic blocked.",
    "Water main break in Mission District. Street damage reported.",
]
SEED_STAGGER_SEC = 1.5

# Data paths
PREFERENCES_DB_PATH = os.getenv("PREFERENCES_DB_PATH", "pipeline.db")
LOG_DIR = "logs"
