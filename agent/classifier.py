# Folder: qport-core/agent/classifier.py
#
# Turns one raw report into one Incident.
#
# Flow per attempt:
# build request → backend.generate → parse JSON → validate schema
#              → defaults + clamping → Incident (ACTIVE)
#
# Failure policy:
#   429 or no status code  → retry, 2^n s + [0, 1000) ms jitter, max 3 retries
#   any other status code  → no retry
#   retries exhausted      → fallback Incident (ERROR)
#
# classify() only raises for input that should never have reached it.

import logging
import math
import random
import time
from typing import Callable
from pydantic import ValidationError
from ingestion.event_schema import (
    ClassificationPayload, Coords, GroundingSource, Incident,
    IncidentStatus, IncidentType, Severity,
)
from ingestion.identifiers import new_error_id, new_incident_id
from agent.backend import InferenceRequest, InferenceResponse
from agent.errors import ReportValidationError, as_backend_error, is_retryable
from agent.response_parser import parse_model_response
import config

logger = logging.getLogger(__name__)

SYSTEM_INSTRUCTION = """You are the QPort dispatch core. Your mission is to parse emergency dispatch reports with complete precision.
Extract: summary (1 sentence), type (FIRE, MEDICAL, POLICE, TRAFFIC, UTILITY, OTHER), severity (CRITICAL, MAJOR, MINOR), priority_score (1-10), coords (San Francisco based).
If the input is hazardous or nonsensical, say so in the summary and use type OTHER.
When using search tools, focus on verifying real-time city conditions or location details."""

RESPONSE_SCHEMA = {
    "type": "object",
    "properties": {
        "summary": {"type": "string"},
        "type": {"type": "string", "enum": [t.value for t in IncidentType]},
        "severity": {"type": "string", "enum": [s.value for s in Severity]},
        "priority_score": {"type": "number"},
        "coords": {
            "type": "object",
            "properties": {
                "lat": {"type": "number"},
                "lng": {"type": "number"}
            },
            "required": ["lat", "lng"]
        }
    },
    "required": ["summary", "type", "severity", "priority_score", "coords"]
}

DEFAULT_SUMMARY = "Summary unavailable."
DEFAULT_SOURCE_TITLE = "Source"
FALLBACK_SUMMARY = "System fault in AI parsing logic."
ANALYSIS_UNAVAILABLE = "Tactical analysis unavailable due to network or model constraints."


def validate_report_text(text) -> str:
    """Reject empty/whitespace-only or too-short reports."""
    if not isinstance(text, str) or not text.strip():
        raise ReportValidationError("Report text is empty.")
    if len(text) < config.MIN_REPORT_LENGTH:
        raise ReportValidationError(
            f"Report text must be at least {config.MIN_REPORT_LENGTH} characters."
        )
    return text


def clamp_priority(raw) -> int:
    """Missing/zero/NaN → default, then clamp into [1, 10] and round."""
    score = raw if raw and not math.isnan(raw) else config.FALLBACK_PRIORITY
    # clamp first: round() cannot take ±inf
    score = min(config.PRIORITY_MAX, max(config.PRIORITY_MIN, score))
    return int(round(score))


def backoff_delay(retry_index: int, rng: Callable[[], float] = random.random) -> float:
    """Seconds to wait before retry n (0-indexed): 2^n plus up to 1s jitter."""
    return (2 ** retry_index) + rng()


def build_fallback_incident() -> Incident:
    """Deterministic placeholder when classification cannot succeed."""
    lat, lng = config.FALLBACK_COORDS
    return Incident(
        id=new_error_id(),
        summary=FALLBACK_SUMMARY,
        type=IncidentType.OTHER,
        severity=Severity.MAJOR,
        priority_score=config.FALLBACK_PRIORITY,
        coords=Coords(lat=lat, lng=lng),
        status=IncidentStatus.ERROR,
    )


class ClassificationClient:

    def __init__(self, backend, max_retries: int = None,
                 sleep: Callable[[float], None] = time.sleep,
                 jitter: Callable[[], float] = random.random):
        self.backend = backend
        self.max_retries = config.MAX_RETRIES if max_retries is None else max_retries
        # injectable so tests don't actually wait
        self._sleep = sleep
        self._jitter = jitter

    def classify(self, text: str, use_grounding: bool = True,
                 attempt: int = 0) -> Incident:
        """
        Classify one report. Always returns an Incident:
        ACTIVE on success, the ERROR fallback otherwise.
        """
        validate_report_text(text)
        request = InferenceRequest(
            system_instruction=SYSTEM_INSTRUCTION,
            contents=text,
            response_schema=RESPONSE_SCHEMA,
            use_grounding=use_grounding,
        )

        for current in range(attempt, self.max_retries + 1):
            start = time.perf_counter()
            try:
                response = self.backend.generate(request)
                incident = self._to_incident(response, start)
                logger.info(
                    f"Classified {incident.id} | {incident.type.value}/"
                    f"{incident.severity.value} p{incident.priority_score} | "
                    f"{incident.processing_latency}ms | attempt {current}"
                )
                return incident
            except Exception as e:
                error = as_backend_error(e)
                if current < self.max_retries and is_retryable(error):
                    delay = backoff_delay(current, self._jitter)
                    logger.warning(
                        f"Classification attempt {current} failed "
                        f"(status={error.status_code}): {e} | "
                        f"retrying in {delay:.2f}s"
                    )
                    self._sleep(delay)
                    continue

                reason = "retries exhausted" if is_retryable(error) else "non-retryable"
                logger.error(
                    f"Classification failed ({reason}, status={error.status_code}) "
                    f"after attempt {current}: {e}"
                )
                break

        return build_fallback_incident()

    def _to_incident(self, response: InferenceResponse, start: float) -> Incident:
        data = parse_model_response(response.text, "classify")
        # ValidationError propagates: no status code → retryable
        payload = ClassificationPayload.model_validate(data)

        sources = [
            GroundingSource(title=c.title or DEFAULT_SOURCE_TITLE, uri=c.uri)
            for c in response.citations
        ]
        return Incident(
            id=new_incident_id(),
            summary=payload.summary or DEFAULT_SUMMARY,
            type=_enum_or_default(IncidentType, payload.type, IncidentType.OTHER),
            severity=_enum_or_default(Severity, payload.severity, Severity.MINOR),
            priority_score=clamp_priority(payload.priority_score),
            coords=payload.coords,
            status=IncidentStatus.ACTIVE,
            processing_latency=round((time.perf_counter() - start) * 1000),
            grounding_sources=sources,
        )

    def check_health(self) -> bool:
        """Probe the backend. Never raises."""
        try:
            self.backend.ping()
            return True
        except Exception as e:
            logger.warning(f"Inference backend health probe failed: {e}")
            return False

    def generate_tactical_analysis(self, incident: Incident) -> str:
        """Short bullet-point response plan. Falls back to a fixed notice."""
        prompt = (
            "Provide a tactical response plan for this incident. Focus on safety, "
            "efficiency, and resource allocation. Keep it brief (bullet points). "
            f"Incident: {incident.model_dump_json(exclude={'tactical_analysis'})}"
        )
        try:
            text = self.backend.complete(prompt)
        except Exception as e:
            logger.error(f"Tactical analysis failed for {incident.id}: {e}")
            return ANALYSIS_UNAVAILABLE
        return text or "Analysis unavailable."


def _enum_or_default(enum_cls, raw, default):
    if not raw:
        return default
    try:
        return enum_cls(str(raw).strip().upper())
    except ValueError:
        logger.debug(f"Unknown {enum_cls.__name__} '{raw}', using {default.value}")
        return default
