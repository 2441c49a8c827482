"""Tests for the integration simulator."""

from datetime import datetime, timedelta, timezone

import pytest

from signal_monitor.adapters.sources.simulator import (
    SimulatedSource,
    generate_simulated_health,
    generate_simulated_signals,
    is_simulation_mode,
)
from signal_monitor.core import HealthStatus, IntegrationSource, SignalCategory

NOW = datetime(2024, 5, 15, 12, 0, tzinfo=timezone.utc)


def test_generates_requested_count_sorted():
    signals = generate_simulated_signals(IntegrationSource.ASANA, 20, seed=1, now=NOW)

    assert len(signals) == 20
    timestamps = [s.timestamp for s in signals]
    assert timestamps == sorted(timestamps, reverse=True)
    assert all(NOW - timedelta(hours=48) <= t <= NOW for t in timestamps)


def test_signals_are_well_formed():
    signals = generate_simulated_signals(IntegrationSource.SLACK, 50, seed=2, now=NOW)

    for signal in signals:
        assert signal.source == IntegrationSource.SLACK
        assert signal.category in SignalCategory
        assert 0.0 <= signal.confidence <= 1.0
        assert signal.url.startswith("https://slack.example.com/message/sim-slack-")
        assert signal.metadata["simulated"] is True
        if signal.category == SignalCategory.DEADLINE:
            assert signal.deadline is not None and signal.deadline >= NOW
        else:
            assert signal.deadline is None


def test_same_seed_same_output():
    first = generate_simulated_signals(IntegrationSource.SLACK, 10, seed=7, now=NOW)
    second = generate_simulated_signals(IntegrationSource.SLACK, 10, seed=7, now=NOW)

    assert [s.to_dict() for s in first] == [s.to_dict() for s in second]


def test_simulated_health():
    healthy = generate_simulated_health(IntegrationSource.SLACK, now=NOW)
    broken = generate_simulated_health(IntegrationSource.ASANA, HealthStatus.ERROR, "token expired", now=NOW)
    degraded = generate_simulated_health(IntegrationSource.SLACK, HealthStatus.DEGRADED, now=NOW)

    assert healthy.connected
    assert 10 <= healthy.signal_count < 60
    assert not broken.connected
    assert broken.signal_count == 0
    assert broken.last_sync_error == "token expired"
    assert degraded.connected
    assert degraded.missing_scopes


@pytest.mark.parametrize("environ, expected", [
    ({"INTEGRATION_MODE": "simulated"}, True),
    ({"INTEGRATION_MODE": "SIMULATED"}, True),
    ({"INTEGRATION_MODE": "live"}, False),
    ({}, False),
])
def test_is_simulation_mode(environ, expected):
    assert is_simulation_mode(environ) is expected


@pytest.mark.asyncio
async def test_simulated_source():
    source = SimulatedSource(IntegrationSource.LINEAR, count=5, seed=3)

    health = await source.check_health()
    signals = await source.fetch_signals()

    assert health.source == IntegrationSource.LINEAR
    assert health.status == HealthStatus.HEALTHY
    assert len(signals) == 5
    assert all(s.source == IntegrationSource.LINEAR for s in signals)


@pytest.mark.asyncio
async def test_simulated_source_respects_since():
    source = SimulatedSource(IntegrationSource.SLACK, count=30, seed=4)
    since = datetime.now(timezone.utc) - timedelta(hours=12)

    signals = await source.fetch_signals(since=since)

    assert all(s.timestamp >= since for s in signals)


@pytest.mark.asyncio
async def test_simulated_outage():
    source = SimulatedSource(IntegrationSource.ASANA, status=HealthStatus.ERROR, error="boom")

    health = await source.check_health()

    assert health.status == HealthStatus.ERROR
    assert await source.fetch_signals() == []


def test_ids_come_from_seed_and_index():
    signals = generate_simulated_signals(IntegrationSource.LINEAR, 3, seed=9, now=NOW)

    assert sorted(s.id for s in signals) == ["sim-linear-9-0", "sim-linear-9-1", "sim-linear-9-2"]
    assert all(s.source_id == s.id for s in signals)


@pytest.mark.asyncio
async def test_simulated_source_ids_stable_across_fetches():
    source = SimulatedSource(IntegrationSource.SLACK, count=8)

    first = await source.fetch_signals()
    second = await source.fetch_signals()

    assert [s.id for s in first] == [s.id for s in second]
    assert [s.title for s in first] == [s.title for s in second]
