"""Source adapters for fetching signals."""

from signal_monitor.adapters.sources.asana_source import AsanaSource
from signal_monitor.adapters.sources.clickup_source import ClickUpSource
from signal_monitor.adapters.sources.jira_source import JiraSource
from signal_monitor.adapters.sources.linear_source import LinearSource
from signal_monitor.adapters.sources.simulator import SimulatedSource
from signal_monitor.adapters.sources.slack_source import SlackSource
from signal_monitor.adapters.sources.teams_source import TeamsSource
from signal_monitor.adapters.sources.whatsapp_source import WebhookInbox, WhatsAppSource

__all__ = [
    "AsanaSource",
    "ClickUpSource",
    "JiraSource",
    "LinearSource",
    "SimulatedSource",
    "SlackSource",
    "TeamsSource",
    "WebhookInbox",
    "WhatsAppSource",
]
