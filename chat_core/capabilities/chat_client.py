"""普通对话能力适配器。

本模块负责：

1. 接收统一的 CapabilityRequest（当前消息 + 已提交历史 + 可选附件/工具上下文）。
2. 将其转换为 /api/chat 的请求体。
3. 非流式：解析 {"content": ...} 为 Prose。
4. 流式：把响应当作增量文本通道逐块产出。服务端既可能返回裸文本流，
   也可能返回 `data: {...}` 形式的 SSE 行，两种都在这里归一化为纯文本块。
"""

import json
from typing import Any, Dict, Iterable, List, Optional

import httpx

from chat_core.capabilities.http import build_headers, build_url, post_json, raise_for_status, timeout_of
from chat_core.capabilities.registry import CHAT_ENDPOINT
from chat_core.config.settings import settings
from chat_core.domain.exceptions import CapabilityError, NetworkError
from chat_core.domain.models import CapabilityRequest, Prose


class ChatClient:
    """普通对话客户端实现。"""

    name = "chat"

    def __init__(self, cfg=settings):
        self._settings = cfg

    # ---- 非流式 ----

    def invoke(self, req: CapabilityRequest) -> Prose:
        data = post_json(self._settings, CHAT_ENDPOINT, self._build_payload(req, stream=False))
        content = data.get("content")
        if content is None:
            content = data.get("message") or data.get("text")
        if not isinstance(content, str):
            raise CapabilityError(code="INVALID_RESPONSE", message="chat response has no content")
        return Prose(text=content)

    # ---- 流式 ----

    def stream(self, req: CapabilityRequest) -> Iterable[str]:
        payload = self._build_payload(req, stream=True)
        try:
            with httpx.Client(timeout=timeout_of(self._settings), trust_env=False) as client:
                with client.stream(
                    "POST",
                    build_url(self._settings, CHAT_ENDPOINT),
                    json=payload,
                    headers=build_headers(self._settings),
                ) as resp:
                    if resp.status_code >= 400:
                        resp.read()
                    raise_for_status(resp, CHAT_ENDPOINT)
                    content_type = resp.headers.get("content-type", "")
                    if "text/event-stream" in content_type:
                        for line in resp.iter_lines():
                            text = self._parse_sse_line(line)
                            if text:
                                yield text
                    else:
                        for text in resp.iter_text():
                            if text:
                                yield text
        except httpx.RequestError as e:
            raise NetworkError(code="NETWORK_ERROR", message=str(e), endpoint=CHAT_ENDPOINT.name)

    # ---- 辅助方法 ----

    def _build_payload(self, req: CapabilityRequest, stream: bool) -> Dict[str, Any]:
        limit = getattr(self._settings, "max_history_messages", 20)
        history = req.history[-limit:] if limit else list(req.history)
        messages: List[Dict[str, str]] = [{"role": role, "content": content} for role, content in history]
        messages.append({"role": "user", "content": req.text})
        payload: Dict[str, Any] = {"messages": messages, "stream": stream}
        if req.attachment:
            payload["attachment"] = req.attachment
        if req.tool_context:
            payload["tool"] = req.tool_context
        return payload

    @staticmethod
    def _parse_sse_line(line: str) -> Optional[str]:
        """解析单行 SSE，返回其中的文本增量。

        兼容三种数据形态：纯文本、{"content": ...}、OpenAI 风格的
        {"choices": [{"delta": {"content": ...}}]}。
        """

        if not line or line.startswith(":") or line.startswith(("event:", "id:", "retry:")):
            return None
        raw = line
        if raw.startswith("data:"):
            raw = raw[5:]
            # SSE 只去掉冒号后的一个空格，其余空白属于正文
            if raw.startswith(" "):
                raw = raw[1:]
        data_str = raw.strip()
        if not data_str or data_str == "[DONE]":
            return None
        try:
            chunk = json.loads(data_str)
        except json.JSONDecodeError:
            return raw
        if isinstance(chunk, str):
            return chunk
        if not isinstance(chunk, (dict, list)):
            # 数字 / 布尔 / null 之类的标量按原文输出
            return raw
        if not isinstance(chunk, dict):
            return None
        if chunk.get("error"):
            raise CapabilityError(code="CAPABILITY_ERROR", message=str(chunk["error"]), endpoint=CHAT_ENDPOINT.name)
        if isinstance(chunk.get("content"), str):
            return chunk["content"]
        choices = chunk.get("choices") or []
        if choices:
            delta = choices[0].get("delta") or {}
            return delta.get("content") or None
        return None
