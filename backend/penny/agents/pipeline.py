"""Agent pipeline: Reality → Market Context → Scenario → Adaptation.

Runs synchronously in a fixed order and returns one insight per agent.
Each agent call is isolated: an exception yields a degraded insight for that
agent only, and a failed reality step hands downstream agents a zero-valued
snapshot. Given the same inputs and the same `now`, the result is identical.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone

from penny.agents import adaptation, financial_reality, market_context, scenario_learning
from penny.agents.adaptation import AdaptationAgent
from penny.agents.financial_reality import FinancialRealityAgent
from penny.agents.market_context import MarketContextAgent
from penny.agents.scenario_learning import ScenarioLearningAgent
from penny.agents.types import (
    AgentInsight,
    FinancialInputs,
    FinancialSnapshot,
    MarketContextOutput,
    Scenario,
    WeeklyAction,
)

logger = logging.getLogger("penny.agents")


@dataclass(frozen=True)
class PipelineResult:
    snapshot: FinancialSnapshot
    market_context: MarketContextOutput | None
    scenarios: list[Scenario]
    weekly_actions: list[WeeklyAction]
    insights: list[AgentInsight]
    generated_at: datetime
    failed_agents: list[str] = field(default_factory=list)


def degraded_insight(agent_name: str, agent_type: str, now: datetime, error: Exception) -> AgentInsight:
    return AgentInsight(
        agent_name=agent_name,
        agent_type=agent_type,
        timestamp=now,
        title="Analysis Unavailable",
        message="This analysis could not be completed right now. It will refresh on your next update.",
        reasoning=f"{agent_name} failed with {type(error).__name__}; other agents were unaffected.",
        confidence=0.0,
        degraded=True,
    )


class AgentPipeline:
    def __init__(
        self,
        *,
        reality: FinancialRealityAgent | None = None,
        market: MarketContextAgent | None = None,
        scenario: ScenarioLearningAgent | None = None,
        adaptation_agent: AdaptationAgent | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self.reality = reality or FinancialRealityAgent(clock=self._clock)
        self.market = market or MarketContextAgent(clock=self._clock)
        self.scenario = scenario or ScenarioLearningAgent(clock=self._clock)
        self.adaptation = adaptation_agent or AdaptationAgent(clock=self._clock)

    def run(self, inputs: FinancialInputs, *, now: datetime | None = None) -> PipelineResult:
        now = now or self._clock()
        insights: list[AgentInsight] = []
        failed: list[str] = []

        def guarded(agent_name: str, agent_type: str, step: Callable):
            try:
                output, insight = step()
            except Exception as exc:
                logger.exception("agent=%s pipeline step failed", agent_type)
                failed.append(agent_type)
                insights.append(degraded_insight(agent_name, agent_type, now, exc))
                return None
            insights.append(insight)
            return output

        def reality_step():
            output = self.reality.analyze(inputs, now=now)
            return output, self.reality.insight(output)

        def market_step():
            output = self.market.analyze(now=now)
            return output, self.market.insight(output)

        reality_output = guarded(financial_reality.AGENT_NAME, financial_reality.AGENT_TYPE, reality_step)
        snapshot = reality_output.snapshot if reality_output else FinancialSnapshot.empty(now)

        def scenario_step():
            scenarios = self.scenario.generate(inputs, snapshot)
            return scenarios, self.scenario.insight(inputs, scenarios, now=now)

        def adaptation_step():
            actions = self.adaptation.generate(inputs, snapshot)
            return actions, self.adaptation.insight(inputs, actions, now=now)

        market_output = guarded(market_context.AGENT_NAME, market_context.AGENT_TYPE, market_step)
        scenarios = guarded(scenario_learning.AGENT_NAME, scenario_learning.AGENT_TYPE, scenario_step)
        actions = guarded(adaptation.AGENT_NAME, adaptation.AGENT_TYPE, adaptation_step)

        logger.info(
            "pipeline completed health_score=%d scenarios=%d actions=%d failed=%s",
            snapshot.health_score,
            len(scenarios or []),
            len(actions or []),
            ",".join(failed) or "-",
        )

        return PipelineResult(
            snapshot=snapshot,
            market_context=market_output,
            scenarios=scenarios or [],
            weekly_actions=actions or [],
            insights=insights,
            generated_at=now,
            failed_agents=failed,
        )
