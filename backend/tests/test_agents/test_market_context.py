"""Market Context agent: volatility → sentiment mapping and provider fallback."""

from datetime import datetime, timezone

import pytest

from penny.agents.market_context import (
    CONFIDENCE,
    FALLBACK_CONFIDENCE,
    MarketContextAgent,
    StaticVolatilityProvider,
)
from penny.agents.types import Sentiment, VolatilityLevel

NOW = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


@pytest.mark.parametrize(
    "level, sentiment",
    [
        ("high", Sentiment.cautious),
        ("moderate", Sentiment.neutral),
        ("low", Sentiment.optimistic),
    ],
)
def test_volatility_maps_to_sentiment(level, sentiment):
    agent = MarketContextAgent(volatility_provider=StaticVolatilityProvider(level))
    output = agent.analyze(now=NOW)
    assert output.sentiment == sentiment
    assert output.volatility == VolatilityLevel(level)
    assert output.confidence == CONFIDENCE


def test_narratives_cover_four_indicators():
    output = MarketContextAgent().analyze(now=NOW)
    names = [i.name for i in output.indicators]
    assert names == ["Stock Markets", "Bond Yields", "Inflation", "Savings Rates"]
    assert output.educational_note
    assert output.assumptions
    assert output.what_would_change


def test_failing_provider_falls_back_to_moderate():
    def broken():
        raise ConnectionError("market feed down")

    output = MarketContextAgent(volatility_provider=broken).analyze(now=NOW)
    assert output.volatility == VolatilityLevel.moderate
    assert output.sentiment == Sentiment.neutral
    assert output.confidence == FALLBACK_CONFIDENCE
    assert 0.85 <= output.confidence <= 0.9


def test_unknown_level_falls_back():
    output = MarketContextAgent(volatility_provider=lambda: "extreme").analyze(now=NOW)
    assert output.volatility == VolatilityLevel.moderate


def test_insight():
    agent = MarketContextAgent(volatility_provider=StaticVolatilityProvider("high"))
    insight = agent.insight(agent.analyze(now=NOW))
    assert insight.agent_type == "market-context"
    assert "liquidity" in insight.message
    assert insight.timestamp == NOW
