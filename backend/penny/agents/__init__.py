"""Analysis agents: pure functions from financial inputs to snapshot, context,
scenarios and weekly actions. No I/O, no database access.
"""

from penny.agents.adaptation import AdaptationAgent  # noqa: F401
from penny.agents.financial_reality import FinancialRealityAgent  # noqa: F401
from penny.agents.market_context import MarketContextAgent, StaticVolatilityProvider  # noqa: F401
from penny.agents.pipeline import AgentPipeline, PipelineResult  # noqa: F401
from penny.agents.scenario_learning import ScenarioLearningAgent  # noqa: F401
