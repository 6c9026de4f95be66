# Import all models so Base.metadata is populated for create_all.
from penny.models.user import User  # noqa: F401
from penny.models.financial_profile import FinancialProfile  # noqa: F401
from penny.models.portfolio import Holding, PortfolioGoals  # noqa: F401
from penny.models.analysis import AnalysisSnapshot  # noqa: F401
from penny.models.intervention import Intervention  # noqa: F401
from penny.models.agent_state import AgentState  # noqa: F401
from penny.models.telemetry import AgentEvent  # noqa: F401
