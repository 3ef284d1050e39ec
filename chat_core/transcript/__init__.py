"""对话记录状态机与流式组装。"""

from chat_core.transcript.state import Transcript
from chat_core.transcript.streaming import StreamingAssembler
from chat_core.transcript.turn import TurnPhase, TurnStateMachine

__all__ = ["Transcript", "StreamingAssembler", "TurnPhase", "TurnStateMachine"]
