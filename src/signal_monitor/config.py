"""Configuration management."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional

import yaml

from signal_monitor.adapters.sources.simulator import is_simulation_mode


@dataclass
class CredentialsConfig:
    """Source credentials (from environment only)."""
    slack_bot_token: Optional[str] = None
    teams_access_token: Optional[str] = None
    asana_access_token: Optional[str] = None
    linear_api_key: Optional[str] = None
    clickup_api_token: Optional[str] = None
    jira_base_url: Optional[str] = None
    jira_email: Optional[str] = None
    jira_api_token: Optional[str] = None
    whatsapp_access_token: Optional[str] = None
    whatsapp_phone_number_id: Optional[str] = None


@dataclass
class HttpConfig:
    """Origin API client settings."""
    timeout: float = 30.0


@dataclass
class FetchConfig:
    """Fetch window and fan-out settings."""
    chat_window_hours: int = 24
    max_sub_units: int = 10
    messages_per_channel: int = 25
    min_chat_confidence: float = 0.5
    webhook_retention_hours: int = 168


@dataclass
class SimulationConfig:
    """Synthetic adapters for running without live credentials."""
    enabled: bool = False
    signal_count: int = 15
    seed: Optional[int] = None
    sources: list[str] = field(default_factory=lambda: ["slack", "asana"])


@dataclass
class Settings:
    """Application settings."""

    credentials: CredentialsConfig = field(default_factory=CredentialsConfig)
    http: HttpConfig = field(default_factory=HttpConfig)
    fetch: FetchConfig = field(default_factory=FetchConfig)
    simulation: SimulationConfig = field(default_factory=SimulationConfig)

    @property
    def slack_bot_token(self) -> Optional[str]:
        return self.credentials.slack_bot_token

    @property
    def teams_access_token(self) -> Optional[str]:
        return self.credentials.teams_access_token

    @property
    def asana_access_token(self) -> Optional[str]:
        return self.credentials.asana_access_token

    @property
    def linear_api_key(self) -> Optional[str]:
        return self.credentials.linear_api_key

    @property
    def clickup_api_token(self) -> Optional[str]:
        return self.credentials.clickup_api_token

    @property
    def jira_base_url(self) -> Optional[str]:
        return self.credentials.jira_base_url

    @property
    def jira_email(self) -> Optional[str]:
        return self.credentials.jira_email

    @property
    def jira_api_token(self) -> Optional[str]:
        return self.credentials.jira_api_token

    @property
    def whatsapp_access_token(self) -> Optional[str]:
        return self.credentials.whatsapp_access_token

    @property
    def whatsapp_phone_number_id(self) -> Optional[str]:
        return self.credentials.whatsapp_phone_number_id

    @property
    def http_timeout(self) -> float:
        return self.http.timeout


def load_config(config_path: Path = Path("config.yaml")) -> dict:
    """Load configuration from YAML file."""
    if not config_path.exists():
        return {}

    with open(config_path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def _env(environ: Mapping[str, str], name: str) -> Optional[str]:
    value = environ.get(name, "").strip()
    return value or None


def get_settings(
    config_path: Path = Path("config.yaml"),
    environ: Optional[Mapping[str, str]] = None,
) -> Settings:
    """Get application settings from YAML config and environment."""
    config = load_config(config_path)
    environ = os.environ if environ is None else environ

    # Credentials come from the environment only
    settings = Settings(
        credentials=CredentialsConfig(
            slack_bot_token=_env(environ, "SLACK_BOT_TOKEN"),
            teams_access_token=_env(environ, "TEAMS_ACCESS_TOKEN"),
            asana_access_token=_env(environ, "ASANA_ACCESS_TOKEN"),
            linear_api_key=_env(environ, "LINEAR_API_KEY"),
            clickup_api_token=_env(environ, "CLICKUP_API_TOKEN"),
            jira_base_url=_env(environ, "JIRA_BASE_URL"),
            jira_email=_env(environ, "JIRA_EMAIL"),
            jira_api_token=_env(environ, "JIRA_API_TOKEN"),
            whatsapp_access_token=_env(environ, "WHATSAPP_ACCESS_TOKEN"),
            whatsapp_phone_number_id=_env(environ, "WHATSAPP_PHONE_NUMBER_ID"),
        ),
    )

    if "http" in config:
        for key, value in config["http"].items():
            setattr(settings.http, key, value)

    if "fetch" in config:
        for key, value in config["fetch"].items():
            setattr(settings.fetch, key, value)

    if "simulation" in config:
        for key, value in config["simulation"].items():
            setattr(settings.simulation, key, value)

    if is_simulation_mode(environ):
        settings.simulation.enabled = True

    return settings
