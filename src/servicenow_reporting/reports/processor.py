#!/usr/bin/env python3

"""
ServiceNow report processor
Puppet 실행 완료 후 호출되어 인시던트 생성 여부를 판단하고 ServiceNow에 전송

Settings -> incident rules -> payload -> single POST. Every failure is
handed to the error reporter once; the enclosing run is never aborted.
"""

from typing import Any, Union

import requests

from servicenow_reporting.config.settings import load_settings
from servicenow_reporting.core.error_handler import ApplicationError, ErrorReporter, LoggingErrorReporter
from servicenow_reporting.core.secret_resolver import SecretResolver
from servicenow_reporting.itsm.incident_rules import RunOutcome, decide
from servicenow_reporting.itsm.servicenow_client import IncidentResult, ServiceNowClient
from servicenow_reporting.utils.unified_logger import get_logger

logger = get_logger(__name__)


class ServiceNowReportProcessor:
    """One processor per host; process() is called once per run report"""

    def __init__(
        self,
        settings_path: str = None,
        error_reporter: ErrorReporter = None,
        eyaml_config_path: str = None,
        session: requests.Session = None,
    ):
        """
        Args:
            settings_path: servicenow_reporting.yaml location (default resolved per call)
            error_reporter: Error channel; logs through the project logger by default
            eyaml_config_path: hiera-eyaml config location
            session: HTTP session to use instead of a fresh one per run
        """
        self.settings_path = settings_path
        self.error_reporter = error_reporter or LoggingErrorReporter(logger)
        self.eyaml_config_path = eyaml_config_path
        self.session = session

    def process(self, report: Any) -> Union[bool, IncidentResult]:
        """
        Evaluate a run report and open an incident if it is configured to

        Args:
            report: Object exposing status, host, time, job_id,
                corrective_change and noop_pending

        Returns:
            IncidentResult when an incident was created, False otherwise
        """
        try:
            return self._process(report)
        except ApplicationError as e:
            self.error_reporter.report(e)
            return False

    def _process(self, report: Any) -> Union[bool, IncidentResult]:
        # Settings and the resolver are rebuilt for every run
        settings = load_settings(self.settings_path, SecretResolver(self.eyaml_config_path))

        outcome = RunOutcome.from_report(report)
        decision = decide(outcome, settings.incident_creation_conditions)

        if not decision.should_create:
            logger.debug(
                f"No incident for {getattr(report, 'host', None)}: status={outcome.status}, "
                f"conditions={list(settings.incident_creation_conditions)}"
            )
            return False

        logger.info(f"Creating {decision.category.value} incident for {getattr(report, 'host', None)}")
        with ServiceNowClient(settings, session=self.session) as client:
            return client.create_incident(decision, report)


def process_report(
    report: Any, settings_path: str = None, error_reporter: ErrorReporter = None
) -> Union[bool, IncidentResult]:
    """편의 함수: 단일 리포트 처리"""
    return ServiceNowReportProcessor(settings_path, error_reporter).process(report)
