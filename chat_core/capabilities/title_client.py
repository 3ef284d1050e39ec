"""会话标题生成端点适配器（尽力而为，调用方负责吞掉异常）。"""

from typing import Optional

from chat_core.capabilities.http import post_json
from chat_core.capabilities.registry import TITLE_ENDPOINT
from chat_core.config.settings import settings


class TitleClient:
    name = "title"

    def __init__(self, cfg=settings):
        self._settings = cfg

    def generate_title(
        self,
        conversation_id: str,
        user_message: Optional[str] = None,
        assistant_message: Optional[str] = None,
    ) -> Optional[str]:
        payload = {"conversationId": conversation_id}
        if user_message:
            payload["userMessage"] = user_message
        if assistant_message:
            payload["assistantMessage"] = assistant_message
        data = post_json(self._settings, TITLE_ENDPOINT, payload)
        title = data.get("title")
        if isinstance(title, str) and title.strip():
            return title.strip()
        return None
