"""Market Context agent: generic, non-personalized market narrative.

The only input is a volatility level supplied by a provider callable. The
default provider returns a configured static level; a market-data client can
be injected in its place. A provider failure degrades to "moderate".
"""

import logging
from collections.abc import Callable
from datetime import datetime, timezone

from penny.agents.types import (
    AgentInsight,
    MarketContextOutput,
    MarketIndicator,
    Sentiment,
    VolatilityLevel,
)

logger = logging.getLogger("penny.agents")

AGENT_NAME = "Market Context"
AGENT_TYPE = "market-context"

CONFIDENCE = 0.88
FALLBACK_CONFIDENCE = 0.85

SENTIMENT_BY_VOLATILITY = {
    VolatilityLevel.high: Sentiment.cautious,
    VolatilityLevel.moderate: Sentiment.neutral,
    VolatilityLevel.low: Sentiment.optimistic,
}

STOCK_NARRATIVES = {
    VolatilityLevel.high: ("Markets have experienced significant swings. Short-term movements are normal.", "down"),
    VolatilityLevel.moderate: ("Mixed signals this quarter. Major indices within typical ranges.", "stable"),
    VolatilityLevel.low: ("Markets have been relatively calm, trading in narrow ranges.", "up"),
}

SUMMARIES = {
    Sentiment.cautious: "Economic conditions suggest prioritizing liquidity and security in your planning.",
    Sentiment.neutral: "Current conditions are steady. A good time to focus on building your financial foundation.",
    Sentiment.optimistic: "Favorable conditions, though your personal readiness matters more than market timing.",
}

EDUCATIONAL_NOTES = {
    Sentiment.cautious: (
        "During uncertain times, maintaining adequate cash reserves becomes even more "
        "valuable. This is context for planning, not advice to act."
    ),
    Sentiment.neutral: (
        "Market conditions change frequently. Your personal financial foundation matters "
        "more than trying to time markets."
    ),
    Sentiment.optimistic: (
        "Calmer markets can feel like good times to act, but your personal readiness "
        "matters more than market conditions."
    ),
}

ASSUMPTIONS = [
    "Market indicators are based on publicly available economic data",
    "Historical patterns may not predict future performance",
    "Individual circumstances vary significantly",
    "This context is educational, not investment advice",
]

WHAT_WOULD_CHANGE = [
    "Significant changes in central bank policy would shift this outlook",
    "Major geopolitical events could increase market volatility",
    "Your personal financial situation changes are more impactful than market shifts",
    "Inflation trends well above or below current levels would alter this context",
]


class StaticVolatilityProvider:
    """Returns a fixed volatility level (from configuration)."""

    def __init__(self, level: str | VolatilityLevel = VolatilityLevel.moderate):
        self.level = VolatilityLevel(level)

    def __call__(self) -> VolatilityLevel:
        return self.level


class MarketContextAgent:
    def __init__(
        self,
        volatility_provider: Callable[[], str | VolatilityLevel] | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self._volatility_provider = volatility_provider or StaticVolatilityProvider()
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def _assess_volatility(self) -> tuple[VolatilityLevel, bool]:
        """Return (level, degraded)."""
        try:
            return VolatilityLevel(self._volatility_provider()), False
        except Exception:
            logger.warning("agent=%s volatility provider failed, assuming moderate", AGENT_TYPE, exc_info=True)
            return VolatilityLevel.moderate, True

    def analyze(self, *, now: datetime | None = None) -> MarketContextOutput:
        now = now or self._clock()
        volatility, degraded = self._assess_volatility()
        sentiment = SENTIMENT_BY_VOLATILITY[volatility]
        logger.debug("agent=%s volatility=%s sentiment=%s", AGENT_TYPE, volatility.value, sentiment.value)

        stock_text, stock_trend = STOCK_NARRATIVES[volatility]
        indicators = [
            MarketIndicator("Stock Markets", stock_text, stock_trend),
            MarketIndicator(
                "Bond Yields",
                "Yields have stabilized after recent adjustments, reflecting economic recalibration.",
                "stable",
            ),
            MarketIndicator(
                "Inflation",
                "Consumer prices gradually moderating. Everyday costs remain elevated vs. historical norms.",
                "down",
            ),
            MarketIndicator(
                "Savings Rates",
                "High-yield savings accounts continue to offer competitive returns for emergency funds.",
                "stable",
            ),
        ]

        reasoning = (
            f"I assessed market volatility as {volatility.value} based on recent price movements "
            f"and economic indicators. This translates to a {sentiment.value} outlook for planning "
            "purposes. For someone building an emergency fund, these conditions reinforce the "
            "value of liquid, accessible savings."
        )

        return MarketContextOutput(
            sentiment=sentiment,
            volatility=volatility,
            indicators=indicators,
            summary=SUMMARIES[sentiment],
            educational_note=EDUCATIONAL_NOTES[sentiment],
            reasoning=reasoning,
            assumptions=list(ASSUMPTIONS),
            what_would_change=list(WHAT_WOULD_CHANGE),
            confidence=FALLBACK_CONFIDENCE if degraded else CONFIDENCE,
            timestamp=now,
        )

    def insight(self, output: MarketContextOutput) -> AgentInsight:
        return AgentInsight(
            agent_name=AGENT_NAME,
            agent_type=AGENT_TYPE,
            timestamp=output.timestamp,
            title="Market Context Refreshed",
            message=f"{output.summary} {output.educational_note}",
            reasoning=output.reasoning,
            confidence=output.confidence,
            action_taken="Updated the market backdrop for your plan.",
        )
