# Folder: qport-core/agent/diagnostics.py
#
# Fixed battery of self-checks run by the orchestrator.
# Each check is timed on its own and can only fail itself:
# an exception becomes a FAIL record with the message, and the
# next check still runs.

import logging
import time
from typing import Callable, List, Tuple
from ingestion.event_schema import (
    Coords, DiagnosticRecord, DiagnosticStatus, Incident,
    IncidentStatus, IncidentType, Severity,
)
from storage.content_cache import DIGEST_LENGTH, ContentCache
import config

logger = logging.getLogger(__name__)


class DiagnosticCheckFailed(AssertionError):
    pass


class DiagnosticsRunner:

    def __init__(self, fingerprint: Callable[[str], str] = ContentCache.fingerprint,
                 reference_coords: Tuple[float, float] = None,
                 lat_band: Tuple[float, float] = None):
        self.fingerprint = fingerprint
        self.reference_coords = reference_coords or config.FALLBACK_COORDS
        self.lat_band = lat_band or config.SERVICE_LAT_BAND

    def checks(self) -> List[Tuple[str, Callable[[], None]]]:
        return [
            ("Model Data Integrity", self.check_data_integrity),
            ("Geospatial Bounds Logic", self.check_geospatial_bounds),
            ("Cache Hashing Integrity", self.check_cache_hashing),
            ("State Immutability", self.check_state_immutability),
        ]

    def run_suite(self) -> List[DiagnosticRecord]:
        records = []
        for index, (name, check) in enumerate(self.checks()):
            start = time.perf_counter()
            try:
                check()
                status, message = DiagnosticStatus.PASS, None
            except Exception as e:
                status, message = DiagnosticStatus.FAIL, str(e) or type(e).__name__
                logger.warning(f"Diagnostic '{name}' failed: {message}")
            records.append(DiagnosticRecord(
                id=f"suite_{index}",
                name=name,
                status=status,
                duration_ms=round((time.perf_counter() - start) * 1000),
                message=message,
            ))

        passed = sum(1 for r in records if r.status == DiagnosticStatus.PASS)
        logger.info(f"Diagnostics suite: {passed}/{len(records)} passing")
        return records

    # ── The checks ────────────────────────────────────────────────────────

    def check_data_integrity(self):
        probe = _probe_incident()
        if not probe.id or not probe.timestamp:
            raise DiagnosticCheckFailed("Missing required fields")
        if not config.PRIORITY_MIN <= probe.priority_score <= config.PRIORITY_MAX:
            raise DiagnosticCheckFailed("Priority score out of bounds")

    def check_geospatial_bounds(self):
        lat, _ = self.reference_coords
        low, high = self.lat_band
        if not low < lat < high:
            raise DiagnosticCheckFailed(
                f"Geospatial validation failure: lat {lat} outside ({low}, {high})"
            )

    def check_cache_hashing(self):
        digest = self.fingerprint("test_payload")
        if len(digest) != DIGEST_LENGTH:
            raise DiagnosticCheckFailed(
                f"SHA-256 hash failure: expected {DIGEST_LENGTH} chars, got {len(digest)}"
            )

    def check_state_immutability(self):
        original = _probe_incident()
        updated = original.model_copy(update={"status": IncidentStatus.SOLVED})
        if original.status != IncidentStatus.ACTIVE or original.status == updated.status:
            raise DiagnosticCheckFailed("Mutation detected in state update logic")


def all_passing(records: List[DiagnosticRecord]) -> bool:
    return all(r.status == DiagnosticStatus.PASS for r in records)


def _probe_incident() -> Incident:
    # Not issued through ingestion.identifiers - never enters the ledger
    return Incident(
        id="TEST",
        summary="T",
        type=IncidentType.FIRE,
        severity=Severity.CRITICAL,
        priority_score=10,
        coords=Coords(lat=0, lng=0),
        status=IncidentStatus.ACTIVE,
    )
