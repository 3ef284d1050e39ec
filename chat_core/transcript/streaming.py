"""流式组装器：消费增量文本通道，持续更新同一条助手消息。

- 第一个非空块到达时才创建助手消息，并清掉 "typing" 之类的 ephemeral 提示。
- 之后每个块到达时，消息内容替换为“至今所有块的拼接”（只追加，不做 diff）。
- 通道关闭即结束；不支持取消。
"""

from typing import Iterable, List, Optional

from chat_core.transcript.state import Transcript


class StreamingAssembler:
    def __init__(self, transcript: Transcript, turn_id: Optional[str] = None):
        self._transcript = transcript
        self._turn_id = turn_id
        self._pieces: List[str] = []
        self.message_id: Optional[str] = None

    @property
    def started(self) -> bool:
        return self.message_id is not None

    @property
    def text(self) -> str:
        return "".join(self._pieces)

    def consume(self, chunks: Iterable[str]) -> str:
        """读完整个通道并返回完整文本；通道异常原样向上抛出。"""

        for chunk in chunks:
            if not chunk:
                continue
            if self.message_id is None:
                if self._turn_id is not None:
                    self._transcript.remove_ephemeral(self._turn_id)
                self.message_id = self._transcript.begin_streaming(self._turn_id).id
            self._pieces.append(chunk)
            self._transcript.update_content(self.message_id, self.text)
        if self.message_id is not None:
            self._transcript.finish_streaming(self.message_id)
        return self.text

    def fail(self, reason: str) -> Optional[str]:
        """通道中途出错：把已收到的部分连同错误说明定格为 error 消息。"""

        if self.message_id is None:
            return None
        partial = self.text
        content = f"{partial}\n\n{reason}" if partial else reason
        self._transcript.fail(self.message_id, content=content)
        return self.message_id
