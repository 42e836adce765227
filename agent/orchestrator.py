# Folder: qport-core/agent/orchestrator.py
#
# The coordinator between raw reports and the dashboard ledger.
#
# Flow per report:
# received → fingerprinted → cache hit  ─────────────────────────→ merged
#                          → cache miss → classifying → classified
#                                       → cached → merged → sink notified
#
# Every report ends in `merged`. A failed classification still merges,
# as an ERROR incident.
#
# Locking: one lock guards metrics, ledger and diagnostics. It is held
# only for in-memory updates and snapshots - never while classifying
# and never while talking to the sink - so readers computing stats or
# health always see a whole merge or none of it.

import logging
import math
import threading
import time
from typing import List, Optional
from ingestion.event_schema import (
    ApiStatus, DashboardStats, DiagnosticRecord, DiagnosticStatus,
    Incident, IncidentStatus, Severity, SystemHealth, UIPreferences,
)
from storage.content_cache import ContentCache
from storage.incident_ledger import IncidentLedger
from agent.classifier import ClassificationClient, validate_report_text
from agent.diagnostics import DiagnosticsRunner, all_passing
from agent.errors import BackendError
from actions.dispatcher import NotificationDispatcher
from actions.sinks import LoggingSink

logger = logging.getLogger(__name__)

CORE_DIAGNOSTIC_ID = "core"
CORE_DIAGNOSTIC_NAME = "Core Inference API"
FALLBACK_ERROR_CONTEXT = "CLASSIFICATION_FALLBACK"


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def percent(part: int, whole: int) -> int:
    return 0 if whole == 0 else round_half_up(100 * part / whole)


class PipelineOrchestrator:
    """
    Accepts raw reports, deduplicates them through the content cache,
    classifies misses and keeps the ordered incident ledger, the
    request/cache metrics and the latest diagnostics.

    The sink is injected; if none is given, events go to the log.
    """

    def __init__(self, classifier: ClassificationClient,
                 cache: ContentCache = None,
                 sink=None,
                 diagnostics: DiagnosticsRunner = None):
        self.classifier = classifier
        self.cache = ContentCache() if cache is None else cache
        self.diagnostics_runner = diagnostics or DiagnosticsRunner(
            fingerprint=self.cache.fingerprint
        )
        self.dispatcher = NotificationDispatcher(sink or LoggingSink())

        self._lock = threading.Lock()
        self._ledger = IncidentLedger()
        self._total_requests = 0
        self._cache_hits = 0
        self._diagnostics: List[DiagnosticRecord] = []

    # ── Ingestion ─────────────────────────────────────────────────────────

    def submit(self, text: str) -> Incident:
        """
        Main entry point. Returns the merged incident - classified,
        cached, or an ERROR fallback. Raises ReportValidationError only
        for empty/too-short text, before anything is touched.
        """
        validate_report_text(text)

        with self._lock:
            self._total_requests += 1

        digest = self.cache.fingerprint(text)
        cached = self.cache.lookup(digest)

        if cached is not None:
            with self._lock:
                self._cache_hits += 1
                merged = self._ledger.bring_to_front(cached)
            logger.info(f"Cache hit {digest[:12]} → {merged.id}")
            return merged

        prefs = self.cache.get_preferences()
        incident = self.classifier.classify(text, use_grounding=prefs.search_grounding)

        # cached whatever the outcome, so a replay never re-hits a failing backend
        self.cache.store(digest, incident)
        with self._lock:
            self._ledger.prepend(incident)
            ledger_size = len(self._ledger)

        self.dispatcher.notify("INCIDENT_SYNC", incident.model_dump(mode="json"))
        self.dispatcher.notify("INCIDENT_PROCESSED", {
            "id": incident.id,
            "type": incident.type.value,
            "severity": incident.severity.value,
            "status": incident.status.value,
        })
        if incident.status == IncidentStatus.ERROR:
            logger.error(f"Merged fallback incident {incident.id} for {digest[:12]}")
            self.dispatcher.notify_error(
                BackendError(f"Classification failed, merged fallback {incident.id}"),
                FALLBACK_ERROR_CONTEXT,
            )
        else:
            logger.info(f"Merged {incident.id} ({ledger_size} in ledger)")
        return incident

    # ── Mutations ─────────────────────────────────────────────────────────

    def update_status(self, incident_id: str,
                      new_status: IncidentStatus) -> Optional[Incident]:
        """
        Replace the status of one incident, keeping its position.
        Unknown ids are a no-op and return None. Transitions are not
        restricted (SOLVED → ACTIVE reopens an incident).
        """
        new_status = IncidentStatus(new_status)
        with self._lock:
            current = self._ledger.get(incident_id)
            if current is None:
                updated = None
            else:
                updated = current.model_copy(update={"status": new_status})
                self._ledger.replace(updated)

        if updated is None:
            logger.info(f"Status update ignored, unknown incident {incident_id}")
        else:
            logger.info(f"{incident_id}: {current.status.value} → {new_status.value}")
        self.dispatcher.notify("STATUS_UPDATE", {
            "id": incident_id,
            "status": new_status.value,
        })
        return updated

    def attach_tactical_analysis(self, incident_id: str,
                                 analysis: str) -> Optional[Incident]:
        with self._lock:
            current = self._ledger.get(incident_id)
            if current is None:
                return None
            updated = current.model_copy(update={"tactical_analysis": analysis})
            self._ledger.replace(updated)
        self.dispatcher.notify("TACTICAL_ANALYSIS_GENERATED", {"incidentId": incident_id})
        return updated

    def request_tactical_analysis(self, incident_id: str) -> Optional[Incident]:
        """Ask the backend for a response plan and attach it. None if id unknown."""
        incident = self.get_incident(incident_id)
        if incident is None:
            return None
        analysis = self.classifier.generate_tactical_analysis(incident)
        return self.attach_tactical_analysis(incident_id, analysis)

    # ── Reads ─────────────────────────────────────────────────────────────

    def incidents(self) -> List[Incident]:
        """Most recent first."""
        with self._lock:
            return self._ledger.snapshot()

    def get_incident(self, incident_id: str) -> Optional[Incident]:
        with self._lock:
            return self._ledger.get(incident_id)

    def metrics(self) -> dict:
        with self._lock:
            return {
                "total_requests": self._total_requests,
                "cache_hits": self._cache_hits,
            }

    def stats(self) -> DashboardStats:
        with self._lock:
            incidents = self._ledger.snapshot()
        open_incidents = [i for i in incidents if i.status != IncidentStatus.SOLVED]
        return DashboardStats(
            total=len(open_incidents),
            critical=sum(1 for i in open_incidents if i.severity == Severity.CRITICAL),
            dispatched=sum(1 for i in open_incidents if i.status == IncidentStatus.DISPATCHED),
            solved=len(incidents) - len(open_incidents),
        )

    def health(self) -> SystemHealth:
        with self._lock:
            incidents = self._ledger.snapshot()
            diagnostics = list(self._diagnostics)
            total, hits = self._total_requests, self._cache_hits

        core = next((d for d in diagnostics if d.id == CORE_DIAGNOSTIC_ID), None)
        if core is not None and core.status == DiagnosticStatus.FAIL:
            api_status = ApiStatus.DOWN
        elif any(i.status == IncidentStatus.ERROR for i in incidents):
            api_status = ApiStatus.DEGRADED
        else:
            api_status = ApiStatus.HEALTHY

        passing = sum(1 for d in diagnostics if d.status == DiagnosticStatus.PASS)
        return SystemHealth(
            api_status=api_status,
            cache_hit_rate=percent(hits, total),
            active_tests_passing=percent(passing, len(diagnostics)),
            diagnostics=diagnostics,
        )

    def last_diagnostics(self) -> List[DiagnosticRecord]:
        with self._lock:
            return list(self._diagnostics)

    # ── Diagnostics ───────────────────────────────────────────────────────

    def run_diagnostics(self) -> List[DiagnosticRecord]:
        """
        Fresh diagnostics run: connectivity probe + the self-check battery.
        Replaces the previous records wholesale. Safe to call from the
        scheduler while reports are being submitted.
        """
        self.dispatcher.notify("DIAGNOSTICS_STARTED")
        with self._lock:
            self._diagnostics = [
                DiagnosticRecord(id=CORE_DIAGNOSTIC_ID, name=CORE_DIAGNOSTIC_NAME,
                                 status=DiagnosticStatus.PENDING),
                DiagnosticRecord(id="suite", name="Integration Test Suite",
                                 status=DiagnosticStatus.PENDING),
            ]

        start = time.perf_counter()
        api_ok = self.classifier.check_health()
        core = DiagnosticRecord(
            id=CORE_DIAGNOSTIC_ID,
            name=CORE_DIAGNOSTIC_NAME,
            status=DiagnosticStatus.PASS if api_ok else DiagnosticStatus.FAIL,
            duration_ms=round((time.perf_counter() - start) * 1000),
            message=None if api_ok else "Inference backend unreachable",
        )
        suite = self.diagnostics_runner.run_suite()

        records = [core] + suite
        with self._lock:
            self._diagnostics = records

        self.dispatcher.notify("DIAGNOSTICS_COMPLETED", {
            "success": all_passing(suite),
            "api_reachable": api_ok,
        })
        return records

    # ── Preferences ───────────────────────────────────────────────────────

    def get_preferences(self) -> UIPreferences:
        return self.cache.get_preferences()

    def update_preferences(self, prefs: UIPreferences) -> UIPreferences:
        self.cache.save_preferences(prefs)
        self.dispatcher.notify("PREFERENCES_UPDATED", prefs.model_dump())
        return prefs

    def flush_notifications(self, timeout: float = 5.0) -> bool:
        return self.dispatcher.flush(timeout)
