"""对外 API 服务模块。

提供简化的函数接口供上层应用（桌面/移动 UI、命令行演示）调用。
"""

from typing import Any, Dict, List, Optional

from chat_core.capabilities import TitleClient, create_router
from chat_core.config.settings import settings
from chat_core.domain.conversation import ConversationStore
from chat_core.domain.models import Message
from chat_core.geo.resolver import create_default_resolver
from chat_core.infrastructure.logging.logger import logger
from chat_core.infrastructure.storage.json_store import JsonConversationStore
from chat_core.orchestrator import TitleTrigger, TurnOrchestrator


_store: Optional[ConversationStore] = None
_orchestrator: Optional[TurnOrchestrator] = None


def get_default_orchestrator() -> TurnOrchestrator:
    """获取默认的轮次编排器实例（单例）。"""
    global _store, _orchestrator
    if _store is None:
        _store = JsonConversationStore(root=settings.storage_root)
    if _orchestrator is None:
        _orchestrator = TurnOrchestrator(
            store=_store,
            router=create_router(settings),
            geolocation=create_default_resolver(settings),
            title_trigger=TitleTrigger(TitleClient(settings), store=_store),
            owner_id=settings.owner_id,
            streaming=settings.chat_streaming,
        )
    return _orchestrator


def reset_default_orchestrator() -> None:
    """丢弃单例（切换配置或测试时使用）。"""
    global _store, _orchestrator
    _store = None
    _orchestrator = None


def _message_dict(m: Message) -> Dict[str, Any]:
    return {
        "id": m.id,
        "role": m.role,
        "content": m.content,
        "content_type": m.content_type,
        "lifecycle": m.lifecycle,
        "streaming": m.streaming,
        "created_at": m.created_at.isoformat(),
    }


def submit_message(
    text: str,
    attachment: Optional[Dict[str, Any]] = None,
    tool_context: Optional[str] = None,
) -> Optional[Dict[str, Any]]:
    """提交一轮对话。

    Args:
        text: 用户输入
        attachment: 可选附件（原样转发给普通对话能力）
        tool_context: 可选的工具上下文标记

    Returns:
        包含会话ID、意图、用户消息与助手消息的字典；
        空输入或已有轮次在途时返回 None
    """
    orchestrator = get_default_orchestrator()
    try:
        outcome = orchestrator.submit(text, attachment=attachment, tool_context=tool_context)
    except Exception as e:
        logger.error(f"Turn failed: {e}", extra={"extra": {
            "conversation_id": orchestrator.conversation_id,
            "error": str(e),
        }})
        raise
    if outcome is None:
        return None
    return {
        "conversation_id": orchestrator.conversation_id,
        "turn_id": outcome.turn_id,
        "intent": outcome.intent.value if outcome.intent else None,
        "user_message": _message_dict(outcome.user_message),
        "assistant_message": _message_dict(outcome.assistant_message),
    }


def get_transcript() -> List[Dict[str, Any]]:
    """当前内存对话记录（含 ephemeral 与 error 消息）。"""
    return [_message_dict(m) for m in get_default_orchestrator().transcript.messages]


def open_conversation(conversation_id: str) -> bool:
    """切换到已有会话；轮次进行中返回 False。"""
    return get_default_orchestrator().open_conversation(conversation_id)


def list_conversations() -> List[Dict[str, Any]]:
    """列出当前用户的所有会话。

    Returns:
        会话列表，每项包含 id, title, created_at, updated_at
    """
    get_default_orchestrator()
    convs = _store.list_conversations(owner_id=settings.owner_id)
    return [
        {
            "id": c.id,
            "title": c.title or "",
            "created_at": c.created_at.isoformat(),
            "updated_at": c.updated_at.isoformat(),
            "meta": c.meta,
        }
        for c in convs
    ]


def get_conversation_messages(conversation_id: str) -> List[Dict[str, Any]]:
    """获取会话在存储中的所有消息。"""
    get_default_orchestrator()
    msgs = _store.list_messages(conversation_id)
    return [
        {
            "id": m.id,
            "role": m.role,
            "content": m.content,
            "created_at": m.created_at.isoformat(),
            "meta": m.meta,
        }
        for m in msgs
    ]
