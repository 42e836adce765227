# Folder: qport-core/storage/content_cache.py
#
# Content-addressed cache: SHA-256 of the raw report text -> Incident.
#
# Resubmitting the same report never costs a second classification.
# The 64-char hex digest doubles as a cheap self-check: any other
# length means hashing is broken (diagnostics test exactly that).
#
# Entries never expire here. If a persistence hook is given, every
# store is written through and lookups fall back to it on a miss.

import hashlib
import logging
import threading
from typing import Optional, Dict
from pydantic import ValidationError
from ingestion.event_schema import Incident, UIPreferences

logger = logging.getLogger(__name__)

DIGEST_LENGTH = 64
CACHE_KEY_PREFIX = "incident_cache:"
PREFERENCES_KEY = "ui_preferences"


class ContentCache:

    def __init__(self, persistence=None):
        # persistence: anything with get(key) / set(key, value)
        self.persistence = persistence
        self._entries: Dict[str, Incident] = {}
        self._preferences: Optional[UIPreferences] = None
        self._lock = threading.Lock()

    @staticmethod
    def fingerprint(text: str) -> str:
        """Deterministic 64-char hex digest of the text as submitted."""
        return hashlib.sha256(text.encode("utf-8")).hexdigest()

    def lookup(self, digest: str) -> Optional[Incident]:
        with self._lock:
            hit = self._entries.get(digest)
        if hit is not None or self.persistence is None:
            return hit

        raw = self._persisted_get(CACHE_KEY_PREFIX + digest)
        if raw is None:
            return None
        try:
            incident = Incident.model_validate_json(raw)
        except ValidationError as e:
            logger.warning(f"Ignoring unreadable cache entry {digest[:12]}: {e}")
            return None

        with self._lock:
            # a concurrent store() for this digest wins over the disk copy
            return self._entries.setdefault(digest, incident)

    def store(self, digest: str, incident: Incident):
        """Unconditional upsert - last write wins."""
        with self._lock:
            self._entries[digest] = incident
        if self.persistence is not None:
            self._persisted_set(CACHE_KEY_PREFIX + digest, incident.model_dump_json())

    def __len__(self):
        with self._lock:
            return len(self._entries)

    def __contains__(self, digest: str):
        with self._lock:
            return digest in self._entries

    # ── Preferences: separate key/value surface, same hook ────────────────

    def get_preferences(self) -> UIPreferences:
        with self._lock:
            if self._preferences is not None:
                return self._preferences
        prefs = UIPreferences()
        raw = self._persisted_get(PREFERENCES_KEY) if self.persistence else None
        if raw:
            try:
                prefs = UIPreferences.model_validate_json(raw)
            except ValidationError as e:
                logger.warning(f"Stored preferences unreadable, using defaults: {e}")
        with self._lock:
            if self._preferences is None:
                self._preferences = prefs
            return self._preferences

    def save_preferences(self, prefs: UIPreferences):
        with self._lock:
            self._preferences = prefs
        if self.persistence is not None:
            self._persisted_set(PREFERENCES_KEY, prefs.model_dump_json())

    # ── Persistence hook wrappers ──────────────────────────────────────────
    # Durability is the hook's concern: a failing hook is logged and
    # the in-memory cache keeps working.

    def _persisted_get(self, key: str) -> Optional[str]:
        try:
            return self.persistence.get(key)
        except Exception as e:
            logger.error(f"Persistence read failed for {key}: {e}")
            return None

    def _persisted_set(self, key: str, value: str):
        try:
            self.persistence.set(key, value)
        except Exception as e:
            logger.error(f"Persistence write failed for {key}: {e}")
