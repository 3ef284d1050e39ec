import tempfile
from pathlib import Path

import pytest

from chat_core.domain.exceptions import PersistenceError
from chat_core.infrastructure.storage.json_store import JsonConversationStore


def test_json_store_create_and_messages():
    with tempfile.TemporaryDirectory() as d:
        root = Path(d) / ".storage"
        store = JsonConversationStore(root=root)
        conv = store.create_conversation("local-user")
        assert conv.title is None
        m1 = store.insert_message(conv.id, "user", "pizza near me", "local-user")
        m2 = store.insert_message(conv.id, "assistant", '{"type": "entities"}', "local-user", meta={"content_type": "entities"})
        msgs = store.list_messages(conv.id)
        assert [m.id for m in msgs] == [m1.id, m2.id]
        assert msgs[0].created_at < msgs[1].created_at
        assert msgs[1].meta["content_type"] == "entities"
        assert store.get_conversation(conv.id).updated_at == m2.created_at


def test_json_store_title_and_listing():
    with tempfile.TemporaryDirectory() as d:
        store = JsonConversationStore(root=Path(d))
        first = store.create_conversation("alice")
        second = store.create_conversation("alice")
        store.create_conversation("bob")
        store.insert_message(first.id, "user", "hello", "alice")
        store.update_conversation_title(second.id, "Trip planning")
        convs = store.list_conversations(owner_id="alice")
        assert [c.id for c in convs] == [second.id, first.id]
        assert convs[0].title == "Trip planning"
        assert len(store.list_conversations()) == 3


def test_json_store_missing_conversation():
    with tempfile.TemporaryDirectory() as d:
        store = JsonConversationStore(root=Path(d))
        with pytest.raises(PersistenceError) as ei:
            store.insert_message("c-missing", "user", "hi", "alice")
        assert ei.value.code == "CONVERSATION_NOT_FOUND"
        assert store.list_messages("c-missing") == []


def test_json_store_delete_conversation():
    with tempfile.TemporaryDirectory() as d:
        root = Path(d) / ".storage"
        store = JsonConversationStore(root=root)
        conv = store.create_conversation("alice", title="temp")
        conv_dir = root / "conversations" / conv.id
        assert conv_dir.exists()
        store.delete_conversation(conv.id)
        assert not conv_dir.exists()
        assert conv.id not in {c.id for c in store.list_conversations()}


def test_json_store_skips_undecodable_lines():
    with tempfile.TemporaryDirectory() as d:
        root = Path(d)
        store = JsonConversationStore(root=root)
        conv = store.create_conversation("alice")
        first = store.insert_message(conv.id, "user", "hello", "alice")
        msgs_path = root / "conversations" / conv.id / "messages.jsonl"
        with msgs_path.open("ab") as f:
            f.write(b"\xff\xfe garbage\n")
            f.write(b"{not json\n")
        # 新实例没有时间戳缓存，必须重新扫描文件
        fresh = JsonConversationStore(root=root)
        second = fresh.insert_message(conv.id, "assistant", "hi", "alice")
        assert second.created_at > first.created_at
        assert [m.id for m in fresh.list_messages(conv.id)] == [first.id, second.id]


def test_json_store_keeps_title_written_during_insert():
    with tempfile.TemporaryDirectory() as d:
        store = JsonConversationStore(root=Path(d))
        conv = store.create_conversation("alice")
        original_touch = store._touch

        def touch_after_title(conversation_id, updated_at):
            # 模拟标题触发器在追加与刷新 meta 之间写入标题
            store.update_conversation_title(conversation_id, "Generated title")
            original_touch(conversation_id, updated_at)

        store._touch = touch_after_title
        record = store.insert_message(conv.id, "user", "hello", "alice")
        saved = store.get_conversation(conv.id)
        assert saved.title == "Generated title"
        assert saved.updated_at >= record.created_at


def test_json_store_meta_failure_keeps_appended_message(monkeypatch):
    with tempfile.TemporaryDirectory() as d:
        store = JsonConversationStore(root=Path(d))
        conv = store.create_conversation("alice")

        def broken_write_meta(cdir, conv):
            raise PersistenceError(code="STORE_WRITE_ERROR", message="disk full")

        monkeypatch.setattr(store, "_write_meta", broken_write_meta)
        first = store.insert_message(conv.id, "user", "hello", "alice")
        second = store.insert_message(conv.id, "assistant", "hi", "alice")
        assert [m.id for m in store.list_messages(conv.id)] == [first.id, second.id]
        assert second.created_at > first.created_at
