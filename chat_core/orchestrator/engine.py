"""对话轮次编排引擎。

一次 submit() 就是一轮完整的：

    提交 -> 乐观展示用户消息 -> 写入存储（失败即中止，不调用能力）
         -> 分类 -> （按需）定位 -> 分发能力 -> 直接渲染或流式组装
         -> 结算：清理 ephemeral、追加终态助手消息、写入存储、按需触发标题生成

所有依赖（存储网关、能力路由、定位解析、标题触发器）都通过构造函数注入，
测试中可以整体替换为 fake。
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from chat_core.capabilities.router import CapabilityRouter
from chat_core.config.settings import settings
from chat_core.domain.conversation import ConversationStore
from chat_core.domain.exceptions import BusinessError, GeolocationError, GeolocationTimeout
from chat_core.domain.models import (
    CapabilityRequest,
    CapabilityResult,
    ErrorResult,
    Intent,
    Message,
    Prose,
)
from chat_core.flows.graph import build_turn_graph
from chat_core.flows.state import TurnGraphState
from chat_core.geo.resolver import GeolocationResolver
from chat_core.infrastructure.logging.logger import logger
from chat_core.intents.classifier import classify_with_reason, detect_place
from chat_core.orchestrator.title_trigger import TitleTrigger
from chat_core.transcript.state import Transcript
from chat_core.transcript.streaming import StreamingAssembler
from chat_core.transcript.turn import TurnPhase, TurnStateMachine


LOCATION_PERMISSION_GUIDANCE = (
    "I need your location to answer that. Please allow location access for this app, "
    "or ask again with a specific place, for example \"air quality in Boston\"."
)
LOCATION_TIMEOUT_GUIDANCE = (
    "I couldn't get your location in time. Please make sure location access is enabled, "
    "or ask again with a specific place, for example \"coffee shops in Seattle\"."
)
USER_MESSAGE_NOT_SAVED = "Your message couldn't be saved, so it wasn't sent. Please try again."

LOCATING_STATUS = "Getting your location…"

# 分发阶段的进度播报；PLAIN_CHAT 的这一条同时充当 typing 提示
DISPATCH_STATUS: Dict[Intent, str] = {
    Intent.PLAIN_CHAT: "Thinking…",
    Intent.WEB_SEARCH: "Searching the web…",
    Intent.LOCAL_BUSINESS: "Looking for places nearby…",
    Intent.FACT_CHECK: "Checking the facts…",
    Intent.AIR_QUALITY: "Checking air quality…",
    Intent.DIRECTIONS: "Finding directions…",
    Intent.TIMEZONE: "Looking up the local time…",
}


def _store_error_code(error: Exception) -> str:
    if isinstance(error, BusinessError):
        return error.code
    return "STORE_ERROR"


@dataclass
class TurnOutcome:
    """一轮结束后的摘要，供上层（API/UI）使用。"""

    turn_id: str
    intent: Optional[Intent]
    result: CapabilityResult
    user_message: Message
    assistant_message: Message
    phases: List[TurnPhase] = field(default_factory=list)


class TurnOrchestrator:
    def __init__(
        self,
        store: ConversationStore,
        router: CapabilityRouter,
        geolocation: Optional[GeolocationResolver] = None,
        title_trigger: Optional[TitleTrigger] = None,
        owner_id: Optional[str] = None,
        streaming: Optional[bool] = None,
        transcript: Optional[Transcript] = None,
        conversation_id: Optional[str] = None,
    ):
        self._store = store
        self._router = router
        self._geolocation = geolocation
        self._title_trigger = title_trigger
        self._owner_id = owner_id or settings.owner_id
        self._streaming = settings.chat_streaming if streaming is None else streaming
        self._transcript = transcript or Transcript()
        self._conversation_id = conversation_id
        self._turn = TurnStateMachine()
        self._graph = build_turn_graph(self)

    # ---- 状态 ----

    @property
    def transcript(self) -> Transcript:
        return self._transcript

    @property
    def conversation_id(self) -> Optional[str]:
        return self._conversation_id

    @property
    def busy(self) -> bool:
        return self._turn.active

    @property
    def phase(self) -> TurnPhase:
        return self._turn.phase

    # ---- 会话 ----

    def open_conversation(self, conversation_id: str) -> bool:
        """从存储加载一个已有会话，替换内存记录；轮次进行中返回 False。"""

        if self.busy:
            return False
        records = self._store.list_messages(conversation_id)
        messages = [
            Message(
                id=rec.id,
                role=rec.role,
                content=rec.content,
                created_at=rec.created_at,
                lifecycle="committed",
                content_type=rec.meta.get("content_type", "text"),
                meta={"record_id": rec.id},
            )
            for rec in records
        ]
        self._transcript.replace_all(messages)
        self._conversation_id = conversation_id
        return True

    def new_conversation(self) -> bool:
        """开始新会话；会话记录会在第一轮提交时再创建。"""

        if self.busy:
            return False
        self._conversation_id = None
        self._transcript.clear()
        return True

    # ---- 轮次 ----

    def submit(
        self,
        text: str,
        attachment: Optional[Dict[str, Any]] = None,
        tool_context: Optional[str] = None,
    ) -> Optional[TurnOutcome]:
        """执行一轮对话。

        Returns:
            TurnOutcome；空输入或已有轮次在途时返回 None（不做任何修改）。
        """

        if not text or not text.strip():
            return None
        turn_id = self._turn.begin()
        if turn_id is None:
            logger.warning("turn.rejected_busy", extra={"extra": {"active_turn": self._turn.turn_id}})
            return None

        start_time = time.time()
        log_ctx: Dict[str, Any] = {"turn_id": turn_id, "conversation_id": self._conversation_id}
        try:
            outcome = self._run_turn(turn_id, text, attachment, tool_context, log_ctx)
        finally:
            # 任何退出路径都要清理 ephemeral 并回到 Idle
            self._transcript.remove_ephemeral(turn_id)
            self._turn.end()

        self._log(
            logging.INFO,
            "Completed turn",
            log_ctx,
            intent=outcome.intent.value if outcome.intent else None,
            result=type(outcome.result).__name__,
            elapsed_seconds=round(time.time() - start_time, 2),
        )
        return outcome

    def _run_turn(
        self,
        turn_id: str,
        text: str,
        attachment: Optional[Dict[str, Any]],
        tool_context: Optional[str],
        log_ctx: Dict[str, Any],
    ) -> TurnOutcome:
        history = self._transcript.durable_history()
        user_msg = self._transcript.add_pending("user", text, turn_id)

        # 1. 先持久化用户消息，成功后才允许分发能力
        try:
            self._ensure_conversation(log_ctx)
            record = self._store.insert_message(
                self._conversation_id,
                "user",
                text,
                self._owner_id,
                meta={"content_type": "text"},
            )
        except Exception as e:
            # 网关抛出的任何异常都按写入失败处理，轮次照常结算
            code = _store_error_code(e)
            self._log(logging.ERROR, "Failed to store user message", log_ctx, code=code, error=str(e))
            self._transcript.fail(user_msg.id)
            result = ErrorResult(message=USER_MESSAGE_NOT_SAVED, code=code)
            return self._settle(turn_id, text, None, result, user_msg, log_ctx)
        self._transcript.commit(user_msg.id, record.id)
        self._log(logging.INFO, "Stored user message", log_ctx, message_id=record.id)

        # 2. 分类 -> 定位 -> 分发
        intent: Optional[Intent] = None
        try:
            self._turn.advance(TurnPhase.CLASSIFYING)
            state: TurnGraphState = {
                "turn_id": turn_id,
                "text": text,
                "history": history,
                "attachment": attachment,
                "tool_context": tool_context,
                "intent": None,
                "place": None,
                "coordinates": None,
                "result": None,
            }
            final = self._graph.invoke(state)
            intent = final.get("intent")
            result = final.get("result") or ErrorResult(message="No response was produced.", code="NO_RESULT")
        except Exception as e:
            self._log(logging.ERROR, "Turn pipeline failed", log_ctx, error=str(e))
            result = ErrorResult(message=f"Sorry, I encountered an error: {e}", code="TURN_FAILED")
        return self._settle(turn_id, text, intent, result, user_msg, log_ctx)

    # ---- 图节点 ----

    def classify_node(self, state: TurnGraphState) -> TurnGraphState:
        match = classify_with_reason(state["text"])
        state["intent"] = match.intent
        state["place"] = detect_place(state["text"])
        logger.info(
            "turn.classified",
            extra={"extra": {
                "turn_id": state["turn_id"],
                "intent": match.intent.value,
                "pattern": match.pattern,
                "place": state["place"],
            }},
        )
        return state

    def locate_node(self, state: TurnGraphState) -> TurnGraphState:
        self._turn.advance(TurnPhase.GEO_RESOLVING)
        turn_id = state["turn_id"]
        self._transcript.add_ephemeral(LOCATING_STATUS, turn_id)
        if self._geolocation is None:
            state["result"] = ErrorResult(message=LOCATION_PERMISSION_GUIDANCE, code="GEOLOCATION_DENIED")
            return state
        try:
            coordinate = self._geolocation.resolve()
        except GeolocationError as e:
            logger.info("turn.geolocation_failed", extra={"extra": {"turn_id": turn_id, "code": e.code}})
            guidance = LOCATION_TIMEOUT_GUIDANCE if isinstance(e, GeolocationTimeout) else LOCATION_PERMISSION_GUIDANCE
            state["result"] = ErrorResult(message=guidance, code=e.code)
            return state
        if coordinate.place_name:
            self._transcript.add_ephemeral(f"Using your location near {coordinate.place_name}…", turn_id)
        state["coordinates"] = coordinate
        return state

    def dispatch_node(self, state: TurnGraphState) -> TurnGraphState:
        self._turn.advance(TurnPhase.DISPATCHING)
        intent = state["intent"]
        turn_id = state["turn_id"]
        request = CapabilityRequest(
            intent=intent,
            text=state["text"],
            coordinates=state.get("coordinates"),
            place=state.get("place"),
            attachment=state.get("attachment"),
            tool_context=state.get("tool_context"),
            history=list(state.get("history") or []),
        )
        stream = self._streaming and self._router.supports_streaming(intent)
        self._transcript.add_ephemeral(DISPATCH_STATUS.get(intent, "Working…"), turn_id)
        self._turn.advance(TurnPhase.STREAMING if stream else TurnPhase.AWAITING)
        assembler = StreamingAssembler(self._transcript, turn_id) if stream else None
        state["result"] = self._router.dispatch(request, assembler)
        return state

    # ---- 结算 ----

    def _settle(
        self,
        turn_id: str,
        text: str,
        intent: Optional[Intent],
        result: CapabilityResult,
        user_msg: Message,
        log_ctx: Dict[str, Any],
    ) -> TurnOutcome:
        self._turn.advance(TurnPhase.SETTLING)
        # 终态助手消息追加之前必须清掉本轮所有 ephemeral
        self._transcript.remove_ephemeral(turn_id)

        streamed_id = getattr(result, "streamed_message_id", None)
        count_before = len(self._transcript) - (1 if streamed_id else 0)

        if isinstance(result, ErrorResult):
            if streamed_id:
                assistant_msg = self._transcript.get(streamed_id)
            else:
                assistant_msg = self._transcript.add_error(result.message, turn_id)
            self._log(logging.WARNING, "Turn ended with error", log_ctx, code=result.code)
        else:
            if isinstance(result, Prose) and streamed_id:
                assistant_msg = self._transcript.get(streamed_id)
                content = result.to_content()
                if assistant_msg.content != content:
                    self._transcript.update_content(streamed_id, content)
            else:
                assistant_msg = self._transcript.add_pending(
                    "assistant", result.to_content(), turn_id, result.content_type
                )
            if self._persist_assistant(assistant_msg, intent, log_ctx) and count_before <= 1:
                self._fire_title(text, assistant_msg, log_ctx)

        return TurnOutcome(
            turn_id=turn_id,
            intent=intent,
            result=result,
            user_message=user_msg,
            assistant_message=assistant_msg,
            phases=list(self._turn.history),
        )

    def _persist_assistant(self, message: Message, intent: Optional[Intent], log_ctx: Dict[str, Any]) -> bool:
        try:
            record = self._store.insert_message(
                self._conversation_id,
                "assistant",
                message.content,
                self._owner_id,
                meta={
                    "content_type": message.content_type,
                    "intent": intent.value if intent else None,
                },
            )
        except Exception as e:
            self._log(
                logging.ERROR, "Failed to store assistant message", log_ctx, code=_store_error_code(e), error=str(e)
            )
            self._transcript.fail(message.id)
            return False
        self._transcript.commit(message.id, record.id)
        self._log(logging.INFO, "Stored assistant message", log_ctx, message_id=record.id)
        return True

    def _fire_title(self, text: str, assistant_msg: Message, log_ctx: Dict[str, Any]) -> None:
        if self._title_trigger is None or self._conversation_id is None:
            return
        self._title_trigger.fire(self._conversation_id, text, assistant_msg.content)
        self._log(logging.INFO, "Title generation triggered", log_ctx)

    def _ensure_conversation(self, log_ctx: Dict[str, Any]) -> None:
        """惰性创建会话：每个会话生命周期内最多调用一次 create_conversation。"""

        if self._conversation_id is not None:
            return
        conv = self._store.create_conversation(self._owner_id, title=None)
        self._conversation_id = conv.id
        log_ctx["conversation_id"] = conv.id
        self._log(logging.INFO, "Created new conversation", log_ctx)

    @staticmethod
    def _log(level: int, message: str, log_ctx: Dict[str, Any], **fields: Any) -> None:
        payload = dict(log_ctx)
        payload.update(fields)
        logger.log(level, message, extra={"extra": payload})
