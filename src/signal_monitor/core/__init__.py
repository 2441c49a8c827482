"""Core domain layer."""

from signal_monitor.core.entities import (
    Classification,
    CoverageAssessment,
    CoverageLevel,
    HealthStatus,
    IntegrationHealth,
    IntegrationSource,
    SignalCategory,
    TaskRecord,
    UnifiedSignal,
)
from signal_monitor.core.errors import ConfigurationError, SourceAPIError, is_auth_failure
from signal_monitor.core.interfaces import BriefGenerator, SourceAdapter
from signal_monitor.core.rules import Rule, first_match

__all__ = [
    "Classification",
    "CoverageAssessment",
    "CoverageLevel",
    "HealthStatus",
    "IntegrationHealth",
    "IntegrationSource",
    "SignalCategory",
    "TaskRecord",
    "UnifiedSignal",
    "ConfigurationError",
    "SourceAPIError",
    "is_auth_failure",
    "BriefGenerator",
    "SourceAdapter",
    "Rule",
    "first_match",
]
