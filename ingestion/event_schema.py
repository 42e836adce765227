# Folder: qport-core/ingestion/event_schema.py
#
# These are the core data models used EVERYWHERE in the project.
# Every other file imports from here.
#
# Incidents are frozen: a status change or an attached analysis
# produces a new copy, the original is never touched.

from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, List


class IncidentType(str, Enum):
    FIRE = "FIRE"
    MEDICAL = "MEDICAL"
    POLICE = "POLICE"
    TRAFFIC = "TRAFFIC"
    UTILITY = "UTILITY"
    OTHER = "OTHER"


class Severity(str, Enum):
    CRITICAL = "CRITICAL"
    MAJOR = "MAJOR"
    MINOR = "MINOR"


class IncidentStatus(str, Enum):
    ACTIVE = "ACTIVE"
    DISPATCHED = "DISPATCHED"
    SOLVED = "SOLVED"
    ERROR = "ERROR"


class DiagnosticStatus(str, Enum):
    PENDING = "PENDING"
    PASS = "PASS"
    FAIL = "FAIL"


class ApiStatus(str, Enum):
    HEALTHY = "HEALTHY"
    DEGRADED = "DEGRADED"
    DOWN = "DOWN"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Coords(BaseModel):
    model_config = ConfigDict(frozen=True)

    lat: float
    lng: float


class GroundingSource(BaseModel):
    """One web citation attached to a grounded classification."""
    model_config = ConfigDict(frozen=True)

    title: str
    uri: str


class Incident(BaseModel):
    """
    The canonical unit of the ledger.

    Created by the orchestrator only (cache hit or classification).
    id and timestamp never change; status and tactical_analysis
    change through model_copy().
    """
    model_config = ConfigDict(frozen=True)

    id: str                          # INC-XXXXXX or ERR-<base36 ms>
    timestamp: datetime = Field(default_factory=utc_now)
    summary: str
    type: IncidentType
    severity: Severity
    priority_score: int = Field(ge=1, le=10)
    coords: Coords
    status: IncidentStatus = IncidentStatus.ACTIVE

    # Only set when the backend actually classified the report
    processing_latency: Optional[int] = None
    grounding_sources: List[GroundingSource] = Field(default_factory=list)

    # Attached later, out-of-band
    tactical_analysis: Optional[str] = None


class ClassificationPayload(BaseModel):
    """
    The structured JSON the model returns.
    Everything except coords is optional here - the classifier
    fills defaults. Missing coords is a schema failure.
    """
    summary: Optional[str] = None
    type: Optional[str] = None
    severity: Optional[str] = None
    priority_score: Optional[float] = None
    coords: Coords


class DiagnosticRecord(BaseModel):
    id: str
    name: str
    status: DiagnosticStatus
    duration_ms: int = 0
    message: Optional[str] = None


class DashboardStats(BaseModel):
    total: int          # non-SOLVED incidents
    critical: int       # non-SOLVED and CRITICAL
    dispatched: int     # non-SOLVED and DISPATCHED
    solved: int


class SystemHealth(BaseModel):
    api_status: ApiStatus
    cache_hit_rate: int
    active_tests_passing: int
    last_sync: datetime = Field(default_factory=utc_now)
    diagnostics: List[DiagnosticRecord] = Field(default_factory=list)


class UIPreferences(BaseModel):
    """Small operator configuration record persisted next to the cache."""
    search_grounding: bool = True
    audio_alerts: bool = False
