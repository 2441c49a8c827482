"""Core interfaces for adapters."""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional

from signal_monitor.core.entities import (
    CoverageAssessment,
    IntegrationHealth,
    IntegrationSource,
    UnifiedSignal,
)


class SourceAdapter(ABC):
    """Interface for one external tool.

    Implementations must never raise from either method: failures are
    reported as an `error` health record or an empty signal list.
    """
    
    source: IntegrationSource
    
    @abstractmethod
    async def check_health(self) -> IntegrationHealth:
        """Verify credentials with a minimal read call."""
        pass
    
    @abstractmethod
    async def fetch_signals(self, since: Optional[datetime] = None) -> list[UnifiedSignal]:
        """Fetch, classify and filter items, newest first."""
        pass


class BriefGenerator(ABC):
    """Interface for rendering a brief from the merged feed."""
    
    @abstractmethod
    def generate(
        self,
        signals: list[UnifiedSignal],
        coverage: Optional[CoverageAssessment] = None,
        health: Optional[list[IntegrationHealth]] = None,
    ) -> str:
        """Render signals, coverage and health as a document."""
        pass
