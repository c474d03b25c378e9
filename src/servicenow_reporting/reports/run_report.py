#!/usr/bin/env python3
"""
Puppet run report
The host-supplied report fields the processor reads
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional

import yaml

from servicenow_reporting.core.error_handler import ConfigError


class PuppetReportLoader(yaml.SafeLoader):
    """SafeLoader that reads Ruby-tagged nodes (!ruby/object:..., !ruby/sym) as plain data"""


def _construct_ruby_tagged(loader, tag_suffix, node):
    if isinstance(node, yaml.MappingNode):
        return loader.construct_mapping(node, deep=True)
    if isinstance(node, yaml.SequenceNode):
        return loader.construct_sequence(node, deep=True)
    return loader.construct_scalar(node)


PuppetReportLoader.add_multi_constructor("!ruby/", _construct_ruby_tagged)


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() == "true"
    return value is True


@dataclass
class RunReport:
    """Read accessors the processor needs from a Puppet run report"""

    host: str
    status: Optional[str] = None
    time: Optional[Any] = None
    job_id: Optional[str] = None
    corrective_change: bool = False
    noop_pending: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RunReport":
        if not isinstance(data, dict):
            raise ConfigError("Run report must be a mapping")
        if not data.get("host"):
            raise ConfigError("Run report has no host")

        job_id = data.get("job_id")
        return cls(
            host=str(data["host"]),
            status=data.get("status"),
            time=data.get("time"),
            job_id=str(job_id) if job_id not in (None, "") else None,
            corrective_change=_as_bool(data.get("corrective_change", False)),
            noop_pending=_as_bool(data.get("noop_pending", False)),
        )

    @classmethod
    def from_yaml_file(cls, path: str) -> "RunReport":
        """Load a report such as Puppet's last_run_report.yaml"""
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.load(f, Loader=PuppetReportLoader)
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"Failed to load run report {path}: {e}") from e

        return cls.from_dict(data)
