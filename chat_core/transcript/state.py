"""内存对话记录（Transcript）与消息生命周期管理。

消息生命周期：

    ephemeral  --(轮次结束前按身份移除)-->  (消失)
    pending    --(写入存储成功)-->          committed
    pending    --(失败，终态展示)-->        error

ephemeral 消息只用于进度播报（如 "Getting your location…"），
清理时按生命周期标记 + 轮次 id 精确匹配，不做字符串前缀之类的启发式判断。

只有当前活动轮次会修改 Transcript，因此这里不加锁。
"""

from datetime import datetime, timedelta, timezone
from typing import Callable, Iterable, List, Optional, Tuple
from uuid import uuid4

from chat_core.domain.models import ContentType, Lifecycle, Message, Role

Listener = Callable[["Transcript"], None]


class Transcript:
    """有序的消息列表；按 created_at 单调递增追加。"""

    def __init__(self, clock: Optional[Callable[[], datetime]] = None):
        self._messages: List[Message] = []
        self._listeners: List[Listener] = []
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._last_ts: Optional[datetime] = None

    # ---- 读取 ----

    @property
    def messages(self) -> Tuple[Message, ...]:
        return tuple(self._messages)

    def __len__(self) -> int:
        return len(self._messages)

    def get(self, message_id: str) -> Message:
        for m in self._messages:
            if m.id == message_id:
                return m
        raise KeyError(message_id)

    def ephemeral_messages(self, turn_id: Optional[str] = None) -> List[Message]:
        return [m for m in self._messages if self._is_ephemeral_of(m, turn_id)]

    def durable_history(self) -> List[Tuple[str, str]]:
        """已提交的文本消息 (role, content)，用作普通对话的上下文。"""

        return [
            (m.role, m.content)
            for m in self._messages
            if m.lifecycle == "committed" and m.content_type == "text"
        ]

    # ---- 订阅 ----

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """注册变更回调，返回取消订阅函数。"""

        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    # ---- 追加 ----

    def add_pending(
        self,
        role: Role,
        content: str,
        turn_id: Optional[str] = None,
        content_type: ContentType = "text",
    ) -> Message:
        return self._append(role, content, "pending", turn_id, content_type)

    def add_ephemeral(self, content: str, turn_id: str) -> Message:
        return self._append("assistant", content, "ephemeral", turn_id, "text")

    def add_error(self, content: str, turn_id: Optional[str] = None, role: Role = "assistant") -> Message:
        return self._append(role, content, "error", turn_id, "error")

    def begin_streaming(self, turn_id: Optional[str] = None) -> Message:
        message = self._new_message("assistant", "", "pending", turn_id, "text")
        message.streaming = True
        self._messages.append(message)
        self._notify()
        return message

    # ---- 更新 ----

    def update_content(self, message_id: str, content: str) -> None:
        self.get(message_id).content = content
        self._notify()

    def finish_streaming(self, message_id: str) -> None:
        self.get(message_id).streaming = False
        self._notify()

    def commit(self, message_id: str, record_id: Optional[str] = None) -> Message:
        message = self.get(message_id)
        if message.lifecycle != "pending":
            raise ValueError(f"cannot commit message in lifecycle {message.lifecycle!r}")
        message.lifecycle = "committed"
        if record_id:
            message.meta["record_id"] = record_id
        self._notify()
        return message

    def fail(self, message_id: str, content: Optional[str] = None) -> Message:
        message = self.get(message_id)
        message.lifecycle = "error"
        message.streaming = False
        if content is not None:
            message.content = content
        self._notify()
        return message

    # ---- 删除 ----

    def remove_ephemeral(self, turn_id: Optional[str] = None) -> int:
        """移除 ephemeral 消息；指定 turn_id 时只移除该轮次创建的。"""

        before = len(self._messages)
        self._messages = [m for m in self._messages if not self._is_ephemeral_of(m, turn_id)]
        removed = before - len(self._messages)
        if removed:
            self._notify()
        return removed

    def replace_all(self, messages: Iterable[Message]) -> None:
        """用存储中的记录整体替换（切换会话 / 重新加载时使用）。"""

        self._messages = sorted(messages, key=lambda m: m.created_at)
        self._last_ts = self._messages[-1].created_at if self._messages else None
        self._notify()

    def clear(self) -> None:
        self.replace_all([])

    # ---- 内部 ----

    @staticmethod
    def _is_ephemeral_of(message: Message, turn_id: Optional[str]) -> bool:
        if message.lifecycle != "ephemeral":
            return False
        return turn_id is None or message.turn_id == turn_id

    def _append(
        self,
        role: Role,
        content: str,
        lifecycle: Lifecycle,
        turn_id: Optional[str],
        content_type: ContentType,
    ) -> Message:
        message = self._new_message(role, content, lifecycle, turn_id, content_type)
        self._messages.append(message)
        self._notify()
        return message

    def _new_message(
        self,
        role: Role,
        content: str,
        lifecycle: Lifecycle,
        turn_id: Optional[str],
        content_type: ContentType,
    ) -> Message:
        return Message(
            id=f"lm-{uuid4().hex}",
            role=role,
            content=content,
            created_at=self._next_timestamp(),
            lifecycle=lifecycle,
            turn_id=turn_id,
            content_type=content_type,
        )

    def _next_timestamp(self) -> datetime:
        now = self._clock()
        if self._last_ts is not None and now <= self._last_ts:
            now = self._last_ts + timedelta(microseconds=1)
        self._last_ts = now
        return now

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self)
