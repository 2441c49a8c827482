"""Markdown brief generator."""

from datetime import datetime, timezone
from typing import Optional

from signal_monitor.core import (
    BriefGenerator,
    CoverageAssessment,
    IntegrationHealth,
    SignalCategory,
    UnifiedSignal,
)

# Most pressing first
CATEGORY_SECTIONS = [
    (SignalCategory.BLOCKER, "🚧 Blockers"),
    (SignalCategory.ESCALATION, "🚨 Escalations"),
    (SignalCategory.DECISION, "⚖️ Decisions Needed"),
    (SignalCategory.DEADLINE, "⏰ Deadlines"),
    (SignalCategory.QUESTION, "❓ Questions"),
    (SignalCategory.MENTION, "👋 Mentions"),
    (SignalCategory.COMMITMENT, "🤝 Commitments"),
    (SignalCategory.UPDATE, "📰 Updates"),
]


class MarkdownBriefGenerator(BriefGenerator):
    """Generate a markdown brief from the merged signal feed."""

    def __init__(self, now: Optional[datetime] = None) -> None:
        self.now = now

    def generate(
        self,
        signals: list[UnifiedSignal],
        coverage: Optional[CoverageAssessment] = None,
        health: Optional[list[IntegrationHealth]] = None,
    ) -> str:
        """Generate markdown brief."""
        generated_at = self.now or datetime.now(timezone.utc)

        lines = [
            f"# 📋 Brief for {generated_at.strftime('%d.%m.%Y %H:%M')} UTC",
            "",
            f"Signals found: {len(signals)}",
            "",
        ]

        if coverage is not None:
            lines.extend(self._format_coverage(coverage))

        if health:
            lines.extend(self._format_health(health))

        if not signals:
            lines.append("Nothing needs your attention right now.")
            return "\n".join(lines)

        for category, heading in CATEGORY_SECTIONS:
            # Input order is preserved inside each section
            section = [s for s in signals if s.category == category]
            if not section:
                continue
            lines.extend([f"## {heading}", ""])
            for signal in section:
                lines.extend(self._format_signal(signal))

        return "\n".join(lines)

    def _format_signal(self, signal: UnifiedSignal) -> list[str]:
        """Format single signal."""
        lines = [
            f"### [{signal.title}]({signal.url})",
            "",
            f"**Confidence:** {signal.confidence:.0%}",
            "",
        ]

        if signal.snippet and signal.snippet != signal.title:
            lines.extend([f"> {signal.snippet}", ""])

        meta_parts = [signal.source.value]
        if signal.channel:
            meta_parts.append(signal.channel)
        person = signal.sender or signal.owner
        if person:
            meta_parts.append(person)
        meta_parts.append(signal.timestamp.strftime("%d.%m.%Y %H:%M"))
        if signal.deadline:
            meta_parts.append(f"due {signal.deadline.strftime('%d.%m.%Y')}")

        lines.append(f"*{' | '.join(meta_parts)}*")
        lines.append("")
        lines.append("---")
        lines.append("")

        return lines

    def _format_coverage(self, coverage: CoverageAssessment) -> list[str]:
        lines = [
            "## 📡 Coverage",
            "",
            f"**{coverage.overall.value.title()}** ({coverage.percentage}%): {coverage.message}",
            "",
        ]
        if coverage.missing_tools:
            missing = ", ".join(s.value for s in coverage.missing_tools)
            lines.extend([f"Connect next: {missing}", ""])
        return lines

    def _format_health(self, health: list[IntegrationHealth]) -> list[str]:
        lines = ["## 🩺 Integrations", ""]
        for record in health:
            line = f"- {record.source.value}: {record.status.value}"
            if record.workspace_name:
                line += f" ({record.workspace_name})"
            if record.action_prompt:
                line += f" - {record.action_prompt}"
            lines.append(line)
        lines.append("")
        return lines
