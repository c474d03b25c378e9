"""
Constants and configuration values for the ServiceNow report processor.
This file centralizes hardcoded values to improve maintainability.
"""

import os

from dotenv import load_dotenv

# .env 파일 로드 (이미 설정된 환경변수는 덮어쓰지 않음)
load_dotenv()


def parse_timeout(env_var, default_value):
    """Parse timeout value, handling 's' suffix and returning integer seconds"""
    value = os.getenv(env_var, default_value)
    if isinstance(value, str) and value.endswith("s"):
        return int(value[:-1])
    return int(value)


# Default file locations, each overridable through the environment variable below
PATHS = {
    "SETTINGS_FILE": "/etc/puppetlabs/puppet/servicenow_reporting.yaml",
    "EYAML_CONFIG": "/etc/eyaml/config.yaml",
}

ENV_VARS = {
    "SETTINGS_FILE": "SERVICENOW_REPORTING_CONFIG",
    "EYAML_CONFIG": "EYAML_CONFIG",
    "LOG_DIR": "SERVICENOW_REPORTING_LOG_DIR",
}


def get_path(name):
    """Resolve a file location, environment first"""
    return os.getenv(ENV_VARS[name], PATHS.get(name))


# hiera-eyaml default key discovery (used when EYAML_CONFIG does not exist)
EYAML_DEFAULT_KEYS = {
    "pkcs7_private_key": os.path.join(".", "keys", "private_key.pkcs7.pem"),
    "pkcs7_public_key": os.path.join(".", "keys", "public_key.pkcs7.pem"),
}

# ServiceNow Table API
SERVICENOW_API = {
    "INCIDENT_ENDPOINT": "api/now/table/incident",
    "SUCCESS_STATUS_CODES": (200,),
    "USER_AGENT": "servicenow-reporting/1.0",
}

# Timeout Configuration (in seconds)
TIMEOUTS = {
    "HTTP_OPEN": parse_timeout("HTTP_OPEN_TIMEOUT", "60"),
    "HTTP_READ": parse_timeout("HTTP_READ_TIMEOUT", "60"),
}

# Trigger names accepted in incident_creation_conditions
INCIDENT_CONDITIONS = (
    "corrective_changes",
    "intentional_changes",
    "failed_changes",
    "pending_changes",
    "no_changes",
    "none",
)

# File Size Limits (in bytes)
FILE_LIMITS = {
    "LOG_MAX_SIZE": int(os.getenv("LOG_MAX_SIZE", str(10 * 1024 * 1024))),  # 10MB
    "LOG_BACKUP_COUNT": int(os.getenv("LOG_BACKUP_COUNT", "3")),
}
