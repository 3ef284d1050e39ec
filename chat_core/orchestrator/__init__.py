"""轮次编排：把分类、定位、能力分发与持久化串成一轮对话。"""

from chat_core.orchestrator.engine import TurnOrchestrator, TurnOutcome
from chat_core.orchestrator.title_trigger import TitleTrigger

__all__ = ["TitleTrigger", "TurnOrchestrator", "TurnOutcome"]
