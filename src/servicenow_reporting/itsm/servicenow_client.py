#!/usr/bin/env python3

"""
ServiceNow Incident API Client
Puppet 실행 리포트로부터 ServiceNow 인시던트를 생성하는 REST API 클라이언트

Builds the incident payload, picks exactly one authentication mode and
performs a single POST per run. There is no retry adapter: a failed
attempt surfaces once as RequestError or TransportError.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import requests

from servicenow_reporting.config.constants import SERVICENOW_API
from servicenow_reporting.config.settings import Settings
from servicenow_reporting.core.error_handler import RequestError, TransportError
from servicenow_reporting.itsm.incident_rules import IncidentDecision
from servicenow_reporting.utils.unified_logger import get_logger

logger = get_logger(__name__)

# Settings attribute -> incident field name
INCIDENT_FIELD_MAP = (
    ("caller", "caller_id"),
    ("category", "category"),
    ("contact_type", "contact_type"),
    ("state", "state"),
    ("impact", "impact"),
    ("urgency", "urgency"),
    ("assignment_group", "assignment_group"),
    ("assigned_to", "assigned_to"),
    ("pe_console_url", "pe_console_url"),
    ("instance", "instance"),
)

REQUEST_HEADERS = {
    "Content-Type": "application/json",
    "Accept": "application/json",
    "User-Agent": SERVICENOW_API["USER_AGENT"],
}


@dataclass(frozen=True)
class AuthMode:
    """Exactly one authentication mode for the outbound request"""

    kind: str  # 'oauth' or 'basic'
    user: str = ""
    password: str = field(default="", repr=False)
    token: str = field(default="", repr=False)

    @property
    def is_oauth(self) -> bool:
        return self.kind == "oauth"

    def request_options(self) -> Dict[str, Any]:
        """requests keyword arguments carrying the credentials"""
        if self.is_oauth:
            return {"headers": {"Authorization": f"Bearer {self.token}"}}
        return {"auth": (self.user, self.password)}


def select_auth(settings: Settings) -> AuthMode:
    """OAuth token when present, otherwise basic credentials"""
    if settings.oauth_token:
        return AuthMode(kind="oauth", token=settings.oauth_token)
    return AuthMode(kind="basic", user=settings.user, password=settings.password)


UNKNOWN_VALUE = "unknown"


def _report_value(report: Any, name: str) -> Optional[str]:
    value = getattr(report, name, None)
    if value is None or value == "":
        return None
    if hasattr(value, "isoformat"):
        return value.isoformat()
    return str(value)


def build_short_description(decision: IncidentDecision, report: Any) -> str:
    """Puppet run report <time> (status: <wording>) for node <host> (job <id>)"""
    short_description = (
        f"Puppet run report {_report_value(report, 'time') or UNKNOWN_VALUE} "
        f"(status: {decision.category.wording}) for node {_report_value(report, 'host') or UNKNOWN_VALUE}"
    )
    job_id = _report_value(report, "job_id")
    if job_id:
        short_description += f" (job {job_id})"
    return short_description


def build_description(decision: IncidentDecision, settings: Settings, report: Any) -> str:
    host = _report_value(report, "host") or UNKNOWN_VALUE
    lines = [
        f"Node: {host}",
        f"Status: {decision.category.wording}",
        f"Report time: {_report_value(report, 'time') or UNKNOWN_VALUE}",
    ]
    job_id = _report_value(report, "job_id")
    if job_id:
        lines.append(f"Job ID: {job_id}")
    lines.append(f"Reports: {settings.pe_console_url.rstrip('/')}/#/enforcement/node/{host}/reports")
    return "\n".join(lines)


def build_incident_payload(decision: IncidentDecision, settings: Settings, report: Any) -> Dict[str, str]:
    """
    인시던트 페이로드 구성

    Args:
        decision: A decision with should_create set
        settings: Loaded settings (ticket fields are copied verbatim)
        report: Run report supplying host, time and job_id

    Returns:
        Flat mapping of incident field -> string value
    """
    if not decision.should_create or decision.category is None:
        raise ValueError("Incident payload requested for a run that does not create an incident")

    payload = {
        "short_description": build_short_description(decision, report),
        "description": build_description(decision, settings, report),
    }

    for attribute, incident_field in INCIDENT_FIELD_MAP:
        value = getattr(settings, attribute)
        if value:
            payload[incident_field] = value

    return payload


@dataclass(frozen=True)
class IncidentResult:
    """Created incident as reported by ServiceNow"""

    status_code: int
    sys_id: Optional[str] = None
    number: Optional[str] = None
    url: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status_code": self.status_code,
            "sys_id": self.sys_id,
            "number": self.number,
            "url": self.url,
        }


class ServiceNowClient:
    """
    ServiceNow incident client

    Features:
    - OAuth bearer 또는 Basic 인증 (동시 사용 불가)
    - 실행당 단일 POST 요청 (재시도 없음)
    - 200 이외의 응답은 RequestError
    """

    def __init__(self, settings: Settings, session: requests.Session = None):
        """
        Args:
            settings: Loaded settings
            session: Optional session; one created here is closed by close()
        """
        self.settings = settings
        self._owns_session = session is None
        self.session = session or requests.Session()

    @property
    def incident_url(self) -> str:
        return f"{self.settings.pe_console_url.rstrip('/')}/{SERVICENOW_API['INCIDENT_ENDPOINT']}"

    @property
    def timeout(self):
        return (self.settings.http_open_timeout, self.settings.http_read_timeout)

    def do_request(self, payload: Dict[str, str], auth: AuthMode) -> requests.Response:
        """Perform the single POST; network failures become TransportError"""
        options = auth.request_options()
        # Headers go on the request; an injected session is left as the caller configured it
        headers = dict(REQUEST_HEADERS)
        headers.update(options.pop("headers", {}))
        logger.log_api_request("POST", self.incident_url, data=payload, headers=headers)

        try:
            return self.session.post(
                self.incident_url,
                json=payload,
                timeout=self.timeout,
                headers=headers,
                verify=not self.settings.skip_certificate_validation,
                **options,
            )
        except requests.exceptions.RequestException as e:
            raise TransportError(f"ServiceNow request to {self.incident_url} failed: {e}") from e

    def submit(self, payload: Dict[str, str], auth: AuthMode) -> IncidentResult:
        """
        인시던트 생성 요청 전송

        Returns:
            IncidentResult on HTTP 200

        Raises:
            RequestError: any other status code ("status: <code>" in the message)
            TransportError: connection, DNS or timeout failure
        """
        response = self.do_request(payload, auth)
        status_code = response.status_code
        logger.log_api_response(status_code)

        if status_code not in SERVICENOW_API["SUCCESS_STATUS_CODES"]:
            raise RequestError(
                f"Failed to create incident (status: {status_code}): {response.text[:200]}",
                status_code=status_code,
            )

        return self._parse_result(response)

    def _parse_result(self, response: requests.Response) -> IncidentResult:
        try:
            body = response.json()
        except ValueError:
            body = {}

        result = body.get("result") if isinstance(body, dict) else None
        if not isinstance(result, dict):
            result = body if isinstance(body, dict) else {}

        sys_id = result.get("sys_id")
        number = result.get("number")
        url = f"https://{self.settings.instance}/incident.do?sys_id={sys_id}" if sys_id else None

        logger.info(f"Incident created: {number or sys_id or 'unknown id'}")
        return IncidentResult(status_code=response.status_code, sys_id=sys_id, number=number, url=url)

    def create_incident(self, decision: IncidentDecision, report: Any) -> IncidentResult:
        """Build the payload for this run and submit it"""
        payload = build_incident_payload(decision, self.settings, report)
        return self.submit(payload, select_auth(self.settings))

    def close(self):
        """세션 정리"""
        if self._owns_session and self.session:
            self.session.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
