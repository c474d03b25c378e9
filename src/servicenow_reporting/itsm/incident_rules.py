#!/usr/bin/env python3
"""
Incident creation rules
Puppet 실행 결과(status, corrective_change, noop_pending)를 인시던트 생성 여부로 매핑
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Iterable, Optional, Tuple


class RunStatus(Enum):
    """Puppet run report status"""

    CHANGED = "changed"
    FAILED = "failed"
    UNCHANGED = "unchanged"


class IncidentCategory(Enum):
    """Why an incident is opened; selects the short description wording"""

    CHANGED = "changed"
    CORRECTIVE = "corrective"
    INTENTIONAL = "intentional"
    PENDING = "pending"
    FAILED = "failed"
    NO_CHANGES = "no_changes"
    UNCHANGED = "unchanged"

    @property
    def wording(self) -> str:
        return CATEGORY_WORDING[self]


CATEGORY_WORDING = {
    IncidentCategory.CHANGED: "changed",
    IncidentCategory.CORRECTIVE: "changed",
    IncidentCategory.INTENTIONAL: "changed",
    IncidentCategory.PENDING: "pending changes",
    IncidentCategory.FAILED: "failed",
    IncidentCategory.NO_CHANGES: "unchanged",
    IncidentCategory.UNCHANGED: "unchanged",
}


def _flag(value: Any) -> bool:
    # Only real booleans (or their YAML spelling) count; unset accessors read as false
    if isinstance(value, str):
        return value.strip().lower() == "true"
    return value is True


@dataclass(frozen=True)
class RunOutcome:
    """Status fields of a run report; the flags only matter for changed runs"""

    status: Optional[RunStatus]
    corrective_change: bool = False
    noop_pending: bool = False

    @property
    def is_changed(self) -> bool:
        return self.status == RunStatus.CHANGED

    @classmethod
    def from_report(cls, report: Any) -> "RunOutcome":
        """Read status accessors off a run report (missing accessors read as unset)"""
        raw_status = getattr(report, "status", None)
        try:
            status = RunStatus(str(raw_status).strip().lower()) if raw_status is not None else None
        except ValueError:
            status = None

        return cls(
            status=status,
            corrective_change=_flag(getattr(report, "corrective_change", False)),
            noop_pending=_flag(getattr(report, "noop_pending", False)),
        )


@dataclass(frozen=True)
class IncidentDecision:
    """Result of evaluating the incident rules against one run"""

    should_create: bool
    category: Optional[IncidentCategory] = None
    trigger: Optional[str] = None

    @classmethod
    def skip(cls, trigger: str = None) -> "IncidentDecision":
        return cls(should_create=False, trigger=trigger)


@dataclass(frozen=True)
class IncidentRule:
    """A trigger name, the outcome it matches, and the category it yields"""

    trigger: str
    category: Optional[IncidentCategory]
    predicate: Callable[[RunOutcome], bool]
    description: str = ""

    def matches(self, outcome: RunOutcome, conditions: Iterable[str]) -> bool:
        return self.trigger in conditions and self.predicate(outcome)


# Evaluated top to bottom, first match wins.
# "none" has no category: matching it means "never create".
INCIDENT_RULES: Tuple[IncidentRule, ...] = (
    IncidentRule(
        trigger="none",
        category=None,
        predicate=lambda outcome: True,
        description="Kill switch, overrides every other trigger",
    ),
    IncidentRule(
        trigger="failed_changes",
        category=IncidentCategory.FAILED,
        predicate=lambda outcome: outcome.status == RunStatus.FAILED,
        description="Run failed",
    ),
    IncidentRule(
        trigger="pending_changes",
        category=IncidentCategory.PENDING,
        predicate=lambda outcome: outcome.is_changed and outcome.noop_pending,
        description="Noop run found changes it would have made",
    ),
    IncidentRule(
        trigger="corrective_changes",
        category=IncidentCategory.CORRECTIVE,
        predicate=lambda outcome: outcome.is_changed and outcome.corrective_change,
        description="Drift corrected by the agent",
    ),
    IncidentRule(
        trigger="intentional_changes",
        category=IncidentCategory.INTENTIONAL,
        predicate=lambda outcome: outcome.is_changed and not outcome.corrective_change,
        description="Operator-intended change applied",
    ),
    IncidentRule(
        trigger="no_changes",
        category=IncidentCategory.UNCHANGED,
        predicate=lambda outcome: outcome.status == RunStatus.UNCHANGED,
        description="Run made no changes",
    ),
)


def decide(
    outcome: RunOutcome,
    conditions: Iterable[str],
    rules: Tuple[IncidentRule, ...] = INCIDENT_RULES,
) -> IncidentDecision:
    """
    Decide whether a run warrants an incident

    Args:
        outcome: Status fields of the run
        conditions: Configured trigger names (incident_creation_conditions)
        rules: Ordered rule list

    Returns:
        IncidentDecision for the first matching rule, or a skip
    """
    conditions = frozenset(conditions or ())

    for rule in rules:
        if rule.matches(outcome, conditions):
            if rule.category is None:
                return IncidentDecision.skip(rule.trigger)
            return IncidentDecision(should_create=True, category=rule.category, trigger=rule.trigger)

    return IncidentDecision.skip()
