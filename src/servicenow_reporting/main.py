#!/usr/bin/env python3

"""
ServiceNow report processor - command line entry point
Puppet 실행 리포트 파일을 읽어 한 번 처리
"""

import argparse
import sys

from servicenow_reporting.core.error_handler import ApplicationError, LoggingErrorReporter
from servicenow_reporting.reports.processor import ServiceNowReportProcessor
from servicenow_reporting.reports.run_report import RunReport
from servicenow_reporting.utils.unified_logger import get_logger, set_log_level

logger = get_logger("servicenow_reporting.main")


def parse_args(argv=None):
    """명령줄 인수 파싱"""
    parser = argparse.ArgumentParser(
        prog="servicenow-report",
        description="Open a ServiceNow incident for a Puppet run report",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Environment Variables:
  SERVICENOW_REPORTING_CONFIG   Settings file (default: /etc/puppetlabs/puppet/servicenow_reporting.yaml)
  EYAML_CONFIG                  hiera-eyaml config (default: /etc/eyaml/config.yaml)
  SERVICENOW_REPORTING_LOG_DIR  Also write logs to this directory
  LOG_LEVEL                     Logging level (DEBUG, INFO, WARNING, ERROR)

Examples:
  servicenow-report --report /opt/puppetlabs/puppet/cache/state/last_run_report.yaml
        """,
    )
    parser.add_argument("--report", required=True, metavar="FILE", help="Run report YAML file")
    parser.add_argument("--settings", metavar="FILE", help="Override settings file path")
    parser.add_argument("--eyaml-config", metavar="FILE", help="Override hiera-eyaml config path")
    parser.add_argument(
        "--log-level",
        help="로그 레벨",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=None,
    )
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    if args.log_level:
        set_log_level(args.log_level)

    reporter = LoggingErrorReporter(logger)

    try:
        report = RunReport.from_yaml_file(args.report)
    except ApplicationError as e:
        reporter.report(e)
        return 1

    processor = ServiceNowReportProcessor(
        settings_path=args.settings,
        error_reporter=reporter,
        eyaml_config_path=args.eyaml_config,
    )
    result = processor.process(report)

    if reporter.has_errors:
        return 1

    if result:
        logger.info(f"Incident {result.number or result.sys_id or ''} created for {report.host}")
    else:
        logger.info(f"No incident created for {report.host} (status: {report.status})")
    return 0


if __name__ == "__main__":
    sys.exit(main())
