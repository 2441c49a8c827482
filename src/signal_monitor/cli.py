"""CLI entry point for signal monitor."""

import asyncio
import json
import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional

import typer

from signal_monitor.adapters.digest import MarkdownBriefGenerator
from signal_monitor.config import Settings, get_settings
from signal_monitor.core import ConfigurationError, HealthStatus
from signal_monitor.use_cases import IntegrationManager

STATUS_EMOJI = {
    HealthStatus.HEALTHY: "✓",
    HealthStatus.DEGRADED: "⚠️ ",
    HealthStatus.ERROR: "✗",
    HealthStatus.NOT_CONFIGURED: "•",
}


def main(
    hours: Optional[int] = typer.Option(None, "--hours", help="Only include signals from the last N hours"),
    simulate: bool = typer.Option(False, "--simulate", help="Use simulated integrations"),
    output: Optional[Path] = typer.Option(None, "--output", help="Write a markdown brief to this path"),
    as_json: bool = typer.Option(False, "--json", help="Print the feed and coverage as JSON"),
    debug: bool = typer.Option(False, "--debug", help="Verbose logging"),
) -> None:
    """Collect signals from connected tools and print a ranked feed."""
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    asyncio.run(async_run(hours, simulate, output, as_json))


def app() -> None:
    """CLI entry point."""
    typer.run(main)


def print_credentials(settings: Settings) -> None:
    print("\n🔑 Credentials:")
    slots = [
        ("SLACK_BOT_TOKEN", settings.slack_bot_token),
        ("TEAMS_ACCESS_TOKEN", settings.teams_access_token),
        ("ASANA_ACCESS_TOKEN", settings.asana_access_token),
        ("LINEAR_API_KEY", settings.linear_api_key),
        ("CLICKUP_API_TOKEN", settings.clickup_api_token),
        ("JIRA_BASE_URL", settings.jira_base_url),
        ("JIRA_EMAIL", settings.jira_email),
        ("JIRA_API_TOKEN", settings.jira_api_token),
        ("WHATSAPP_ACCESS_TOKEN", settings.whatsapp_access_token),
        ("WHATSAPP_PHONE_NUMBER_ID", settings.whatsapp_phone_number_id),
    ]
    for name, value in slots:
        if value:
            print(f"  ✓ {name}")
        else:
            print(f"  ✗ {name} - not set")


async def async_run(
    hours: Optional[int],
    simulate: bool,
    output: Optional[Path],
    as_json: bool,
) -> None:
    """Async implementation of run command."""
    settings = get_settings()
    if simulate:
        settings.simulation.enabled = True

    try:
        manager = IntegrationManager.from_settings(settings)
    except ConfigurationError as e:
        print(f"❌ Configuration error: {e}")
        raise typer.Exit(code=1)

    since = datetime.now(timezone.utc) - timedelta(hours=hours) if hours else None

    if as_json:
        signals = await manager.fetch_all_signals(since)
        payload = {
            "signals": [s.to_dict() for s in signals],
            "coverage": manager.assess_coverage().to_dict(),
        }
        print(json.dumps(payload, indent=2, ensure_ascii=False))
        return

    # Header
    print("\n" + "=" * 70)
    print("📋 SIGNAL MONITOR")
    print("=" * 70)

    if settings.simulation.enabled:
        print("\n🧪 Simulation mode: no live APIs are called")
    else:
        print_credentials(settings)

    if not manager.has_any_integration():
        coverage = manager.assess_coverage()
        print(f"\n🔌 {coverage.message}")
        return

    print("\n📡 Sources:")
    for source in manager.connected_sources():
        adapter = manager.get_adapter(source)
        emoji = getattr(adapter, "emoji", "•")
        name = getattr(adapter, "name", adapter.__class__.__name__)
        print(f"  {emoji} {name}")

    print("\n" + "=" * 70)
    print("🩺 HEALTH")
    print("=" * 70)

    health = await manager.get_health()
    for source, record in health.items():
        line = f"  {STATUS_EMOJI[record.status]} {source.value}: {record.status.value}"
        if record.workspace_name:
            line += f" ({record.workspace_name})"
        print(line)
        if record.last_sync_error:
            print(f"     └─ {record.last_sync_error}")
        if record.action_prompt:
            print(f"     └─ {record.action_prompt}")

    coverage = manager.assess_coverage()
    print(f"\n📊 Coverage: {coverage.overall.value} ({coverage.percentage}%)")
    print(f"  └─ {coverage.message}")
    if coverage.missing_tools:
        print(f"  └─ Connect next: {', '.join(s.value for s in coverage.missing_tools)}")

    print("\n" + "=" * 70)
    print("📥 SIGNALS")
    print("=" * 70)

    signals = await manager.fetch_all_signals(since)
    if not signals:
        print("\n✓ Nothing needs your attention right now")
    for signal in signals:
        print(f"\n  [{signal.confidence:.0%}] {signal.category.value.upper()} · {signal.title}")
        meta = [signal.source.value]
        if signal.channel:
            meta.append(signal.channel)
        if signal.sender or signal.owner:
            meta.append(signal.sender or signal.owner)
        meta.append(signal.timestamp.strftime("%d.%m.%Y %H:%M"))
        print(f"  └─ {' | '.join(meta)}")
        print(f"  └─ {signal.url}")

    print(f"\n✓ Total: {len(signals)} signals")

    if output is not None:
        brief = MarkdownBriefGenerator().generate(signals, coverage, list(health.values()))
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(brief, encoding="utf-8")
        print(f"\n📄 Brief saved: {output}")

    print()


if __name__ == "__main__":
    app()
