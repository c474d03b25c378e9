"""Run report contract and the report processor."""

from .processor import ServiceNowReportProcessor, process_report
from .run_report import RunReport

__all__ = ["RunReport", "ServiceNowReportProcessor", "process_report"]
