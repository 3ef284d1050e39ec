import json
import os
import shutil
import threading
from dataclasses import asdict
from datetime import datetime, timezone, timedelta
from pathlib import Path
from typing import Dict, Any, List, Optional
from uuid import uuid4

from chat_core.config.settings import settings
from chat_core.domain.conversation import ConversationStore, Conversation, MessageRecord
from chat_core.domain.exceptions import PersistenceError
from chat_core.domain.models import Role
from chat_core.infrastructure.logging.logger import logger


def _iso(dt: datetime) -> str:
    return dt.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def _parse_iso(value: str) -> datetime:
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))


class JsonConversationStore(ConversationStore):
    """基于本地 JSON 文件的持久化网关。

    目录结构：<root>/conversations/<cid>/meta.json + messages.jsonl。

    meta.json 的读-改-写由实例级锁串行化（标题触发器在后台线程写标题）。
    每个会话最后一条消息的时间戳缓存在内存中，假定同一目录只有一个 store 实例在写。
    """

    def __init__(self, root: str | Path | None = None):
        self._root = Path(root or settings.storage_root).resolve()
        self._conv_root = self._root / "conversations"
        self._conv_root.mkdir(parents=True, exist_ok=True)
        self._lock = threading.RLock()
        self._last_ts: Dict[str, datetime] = {}

    def create_conversation(self, owner_id: str, title: Optional[str] = None) -> Conversation:
        cid = f"c-{uuid4().hex}"
        cdir = self._conv_root / cid
        try:
            cdir.mkdir(parents=True, exist_ok=False)
        except OSError as e:
            raise PersistenceError(code="STORE_WRITE_ERROR", message=str(e))
        now = datetime.now(timezone.utc)
        conv = Conversation(id=cid, owner_id=owner_id, title=title, created_at=now, updated_at=now, meta={})
        self._write_meta(cdir, conv)
        return conv

    def get_conversation(self, conversation_id: str) -> Conversation:
        meta_path = self._conv_root / conversation_id / "meta.json"
        if not meta_path.exists():
            raise PersistenceError(code="CONVERSATION_NOT_FOUND", message=conversation_id, http_status=404)
        try:
            data = json.loads(meta_path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise PersistenceError(code="STORE_READ_ERROR", message=str(e))
        return self._to_conversation(data)

    def list_conversations(self, owner_id: Optional[str] = None) -> List[Conversation]:
        items: List[Conversation] = []
        for cdir in self._conv_root.glob("*/"):
            meta_path = cdir / "meta.json"
            if not meta_path.exists():
                continue
            try:
                conv = self._to_conversation(json.loads(meta_path.read_text(encoding="utf-8")))
            except (OSError, KeyError, ValueError):
                continue
            if owner_id is None or conv.owner_id == owner_id:
                items.append(conv)
        items.sort(key=lambda c: c.updated_at, reverse=True)
        return items

    def insert_message(
        self,
        conversation_id: str,
        role: Role,
        content: str,
        owner_id: str,
        meta: Optional[Dict[str, Any]] = None,
    ) -> MessageRecord:
        cdir = self._conv_root / conversation_id
        msgs_path = cdir / "messages.jsonl"
        with self._lock:
            self.get_conversation(conversation_id)
            now = datetime.now(timezone.utc)
            # 同一会话内 created_at 单调递增
            last = self._last_created_at(conversation_id, msgs_path)
            if last is not None and now <= last:
                now = last + timedelta(microseconds=1)
            record = MessageRecord(
                id=f"m-{uuid4().hex}",
                conversation_id=conversation_id,
                owner_id=owner_id,
                role=role,
                content=content,
                created_at=now,
                meta=dict(meta or {}),
            )
            try:
                payload = asdict(record)
                payload["created_at"] = _iso(record.created_at)
                line = json.dumps(payload, ensure_ascii=False)
                with msgs_path.open("a", encoding="utf-8") as f:
                    f.write(line + "\n")
            except (OSError, TypeError, ValueError) as e:
                raise PersistenceError(code="STORE_WRITE_ERROR", message=str(e))
            self._last_ts[conversation_id] = now
            self._touch(conversation_id, now)
        return record

    def list_messages(self, conversation_id: str) -> List[MessageRecord]:
        msgs_path = self._conv_root / conversation_id / "messages.jsonl"
        items: List[MessageRecord] = []
        for data in self._read_lines(msgs_path):
            try:
                items.append(self._to_message(data))
            except (KeyError, TypeError, ValueError):
                continue
        items.sort(key=lambda m: m.created_at)
        return items

    def update_conversation_title(self, conversation_id: str, title: str) -> None:
        """更新会话标题（仅供标题生成触发器与显式重命名使用）。"""
        with self._lock:
            conv = self.get_conversation(conversation_id)
            conv.title = title
            conv.updated_at = datetime.now(timezone.utc)
            self._write_meta(self._conv_root / conversation_id, conv)

    def delete_conversation(self, conversation_id: str) -> None:
        cdir = self._conv_root / conversation_id
        with self._lock:
            if not cdir.exists():
                raise PersistenceError(code="CONVERSATION_NOT_FOUND", message=conversation_id, http_status=404)
            try:
                shutil.rmtree(cdir)
            except OSError as e:
                raise PersistenceError(code="STORE_DELETE_ERROR", message=str(e))
            self._last_ts.pop(conversation_id, None)

    def _touch(self, conversation_id: str, updated_at: datetime) -> None:
        """消息追加成功后刷新 updated_at。

        重新读取最新的 meta 再写回，避免覆盖并发写入的标题；
        失败只记日志，消息本身已经落盘。
        """
        try:
            conv = self.get_conversation(conversation_id)
            if conv.updated_at < updated_at:
                conv.updated_at = updated_at
            self._write_meta(self._conv_root / conversation_id, conv)
        except PersistenceError as e:
            logger.warning(
                "store.meta_update_failed",
                extra={"extra": {"conversation_id": conversation_id, "code": e.code, "error": e.message}},
            )

    def _last_created_at(self, conversation_id: str, msgs_path: Path) -> Optional[datetime]:
        if conversation_id in self._last_ts:
            return self._last_ts[conversation_id]
        last = None
        for data in self._read_lines(msgs_path):
            try:
                ts = _parse_iso(data["created_at"])
            except (KeyError, TypeError, ValueError):
                continue
            if last is None or ts > last:
                last = ts
        if last is not None:
            self._last_ts[conversation_id] = last
        return last

    @staticmethod
    def _read_lines(msgs_path: Path) -> List[Dict[str, Any]]:
        """逐行解析 messages.jsonl；损坏或非 UTF-8 的行直接跳过。"""
        if not msgs_path.exists():
            return []
        try:
            raw = msgs_path.read_bytes()
        except OSError as e:
            raise PersistenceError(code="STORE_READ_ERROR", message=str(e))
        rows: List[Dict[str, Any]] = []
        for line in raw.splitlines():
            try:
                data = json.loads(line)
            except ValueError:
                continue
            if isinstance(data, dict):
                rows.append(data)
        return rows

    def _write_meta(self, cdir: Path, conv: Conversation) -> None:
        meta_path = cdir / "meta.json"
        tmp_path = cdir / f"meta.{uuid4().hex}.json.tmp"
        obj = {
            "id": conv.id,
            "owner_id": conv.owner_id,
            "title": conv.title,
            "created_at": _iso(conv.created_at),
            "updated_at": _iso(conv.updated_at),
            "meta": conv.meta,
        }
        try:
            tmp_path.write_text(json.dumps(obj, ensure_ascii=False), encoding="utf-8")
            os.replace(tmp_path, meta_path)
        except OSError as e:
            raise PersistenceError(code="STORE_WRITE_ERROR", message=str(e))

    @staticmethod
    def _to_conversation(data: Dict[str, Any]) -> Conversation:
        return Conversation(
            id=data["id"],
            owner_id=data.get("owner_id") or "",
            title=data.get("title"),
            created_at=_parse_iso(data["created_at"]),
            updated_at=_parse_iso(data["updated_at"]),
            meta=data.get("meta") or {},
        )

    @staticmethod
    def _to_message(data: Dict[str, Any]) -> MessageRecord:
        return MessageRecord(
            id=data["id"],
            conversation_id=data["conversation_id"],
            owner_id=data.get("owner_id") or "",
            role=data["role"],
            content=data.get("content") or "",
            created_at=_parse_iso(data["created_at"]),
            meta=data.get("meta") or {},
        )
