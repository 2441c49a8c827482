"""Brief generators."""

from signal_monitor.adapters.digest.markdown_generator import MarkdownBriefGenerator

__all__ = ["MarkdownBriefGenerator"]
