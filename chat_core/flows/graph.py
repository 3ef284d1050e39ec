"""LangGraph construction for one conversational turn.

    classify ──(needs location, no explicit place)──▶ locate ──(coordinates)──▶ dispatch ──▶ END
        │                                               │
        └──────────────(otherwise)──────────────▶ dispatch      └──(denied / timeout)──▶ END

Node bodies live on the orchestrator (they touch the transcript and the
turn state machine); this module only wires them together.
"""

from __future__ import annotations

from typing import Protocol

from langgraph.graph import END, StateGraph
from langgraph.graph.state import CompiledStateGraph

from chat_core.flows.state import TurnGraphState
from chat_core.intents.classifier import needs_location


class TurnSteps(Protocol):
    def classify_node(self, state: TurnGraphState) -> TurnGraphState:
        ...

    def locate_node(self, state: TurnGraphState) -> TurnGraphState:
        ...

    def dispatch_node(self, state: TurnGraphState) -> TurnGraphState:
        ...


def after_classify(state: TurnGraphState) -> str:
    intent = state.get("intent")
    if intent is not None and needs_location(intent) and not state.get("place"):
        return "locate"
    return "dispatch"


def after_locate(state: TurnGraphState) -> str:
    # locate 失败时已把提示结果写入 result，直接结束，不发起能力调用
    if state.get("result") is not None:
        return "end"
    return "dispatch"


def build_turn_graph(steps: TurnSteps) -> CompiledStateGraph:
    graph = StateGraph(TurnGraphState)
    graph.add_node("classify", steps.classify_node)
    graph.add_node("locate", steps.locate_node)
    graph.add_node("dispatch", steps.dispatch_node)
    graph.set_entry_point("classify")
    graph.add_conditional_edges("classify", after_classify, {"locate": "locate", "dispatch": "dispatch"})
    graph.add_conditional_edges("locate", after_locate, {"dispatch": "dispatch", "end": END})
    graph.add_edge("dispatch", END)
    return graph.compile()
