"""Chat Core 顶层包。

该包提供多能力聊天助手的核心实现：
意图分类、定位解析、能力客户端路由、流式回复组装、
轮次编排、对话记录生命周期管理与会话持久化。
"""

from chat_core.domain.models import Intent
from chat_core.orchestrator import TurnOrchestrator, TurnOutcome

__all__ = ["Intent", "TurnOrchestrator", "TurnOutcome"]
