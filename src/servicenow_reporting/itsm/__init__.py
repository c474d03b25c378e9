"""ITSM (ServiceNow) incident rules and client."""

from .incident_rules import IncidentCategory, IncidentDecision, RunOutcome, RunStatus, decide
from .servicenow_client import IncidentResult, ServiceNowClient, build_incident_payload, select_auth

__all__ = [
    "IncidentCategory",
    "IncidentDecision",
    "IncidentResult",
    "RunOutcome",
    "RunStatus",
    "ServiceNowClient",
    "build_incident_payload",
    "decide",
    "select_auth",
]
