"""轮次级状态机。

    Idle -> Submitting -> Classifying -> (GeoResolving) -> Dispatching
         -> (Streaming | Awaiting) -> Settling -> Idle

任何阶段失败都直接跳到 Settling；Idle 一定会被重新进入。
同一时间只允许一个轮次在途：begin() 用非阻塞锁做守卫，
轮次进行中再提交会被直接拒绝（不排队，也不取消当前轮次）。
"""

import threading
from enum import Enum
from typing import Dict, FrozenSet, List, Optional
from uuid import uuid4


class TurnPhase(str, Enum):
    IDLE = "idle"
    SUBMITTING = "submitting"
    CLASSIFYING = "classifying"
    GEO_RESOLVING = "geo_resolving"
    DISPATCHING = "dispatching"
    STREAMING = "streaming"
    AWAITING = "awaiting"
    SETTLING = "settling"


_TRANSITIONS: Dict[TurnPhase, FrozenSet[TurnPhase]] = {
    TurnPhase.IDLE: frozenset({TurnPhase.SUBMITTING}),
    TurnPhase.SUBMITTING: frozenset({TurnPhase.CLASSIFYING}),
    TurnPhase.CLASSIFYING: frozenset({TurnPhase.GEO_RESOLVING, TurnPhase.DISPATCHING}),
    TurnPhase.GEO_RESOLVING: frozenset({TurnPhase.DISPATCHING}),
    TurnPhase.DISPATCHING: frozenset({TurnPhase.STREAMING, TurnPhase.AWAITING}),
    TurnPhase.STREAMING: frozenset({TurnPhase.SETTLING}),
    TurnPhase.AWAITING: frozenset({TurnPhase.SETTLING}),
    TurnPhase.SETTLING: frozenset({TurnPhase.IDLE}),
}


class TurnStateMachine:
    """记录当前轮次阶段，并充当“单轮在途”守卫。"""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self.phase = TurnPhase.IDLE
        self.turn_id: Optional[str] = None
        self.history: List[TurnPhase] = []

    @property
    def active(self) -> bool:
        return self._guard.locked()

    def begin(self) -> Optional[str]:
        """尝试开始新轮次；已有轮次在途时返回 None。"""

        if not self._guard.acquire(blocking=False):
            return None
        self.turn_id = f"t-{uuid4().hex}"
        self.history = []
        self.advance(TurnPhase.SUBMITTING)
        return self.turn_id

    def advance(self, phase: TurnPhase) -> None:
        """推进到下一阶段；进入 Settling 在任何阶段都合法。"""

        if phase is not TurnPhase.SETTLING and phase not in _TRANSITIONS[self.phase]:
            raise RuntimeError(f"illegal turn transition {self.phase.value} -> {phase.value}")
        self.phase = phase
        self.history.append(phase)

    def end(self) -> None:
        """回到 Idle 并释放守卫；由调用方在 finally 中保证执行。"""

        if self.phase is not TurnPhase.SETTLING:
            self.advance(TurnPhase.SETTLING)
        self.advance(TurnPhase.IDLE)
        self.turn_id = None
        self._guard.release()
