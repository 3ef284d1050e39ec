"""会话标题生成触发器。

在会话第一条助手回复完成后触发一次；后台执行、失败吞掉、不重试，
也不阻塞轮次结束。生成的标题通过存储网关写回会话。
"""

from concurrent.futures import Executor, Future, ThreadPoolExecutor
from typing import Optional, Protocol, Set

from chat_core.domain.conversation import ConversationStore
from chat_core.infrastructure.logging.logger import logger


class TitleGenerator(Protocol):
    def generate_title(
        self,
        conversation_id: str,
        user_message: Optional[str] = None,
        assistant_message: Optional[str] = None,
    ) -> Optional[str]:
        ...


class TitleTrigger:
    def __init__(
        self,
        generator: TitleGenerator,
        store: Optional[ConversationStore] = None,
        executor: Optional[Executor] = None,
    ):
        self._generator = generator
        self._store = store
        self._executor = executor
        self._fired: Set[str] = set()

    def fire(
        self,
        conversation_id: str,
        user_message: Optional[str] = None,
        assistant_message: Optional[str] = None,
    ) -> Optional[Future]:
        """提交一次后台标题生成；同一会话只会提交一次。"""

        if conversation_id in self._fired:
            return None
        self._fired.add(conversation_id)
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="title")
        try:
            return self._executor.submit(self._generate, conversation_id, user_message, assistant_message)
        except RuntimeError as e:
            # executor 已关闭（进程退出中），放弃本次生成
            logger.info("title.skipped", extra={"extra": {"conversation_id": conversation_id, "error": str(e)}})
            return None

    def shutdown(self, wait: bool = True) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=wait)

    def _generate(
        self,
        conversation_id: str,
        user_message: Optional[str],
        assistant_message: Optional[str],
    ) -> Optional[str]:
        try:
            title = self._generator.generate_title(conversation_id, user_message, assistant_message)
            if title and self._store is not None:
                self._store.update_conversation_title(conversation_id, title)
            logger.info("title.generated", extra={"extra": {"conversation_id": conversation_id, "title": title}})
            return title
        except Exception as e:
            # 标题生成失败对用户不可见，也不重试
            logger.info("title.failed", extra={"extra": {"conversation_id": conversation_id, "error": str(e)}})
            return None
