import tempfile
from pathlib import Path

import pytest

from chat_core.api import service
from chat_core.capabilities.router import CapabilityRouter
from chat_core.domain.models import Intent, Prose
from chat_core.infrastructure.storage.json_store import JsonConversationStore
from chat_core.orchestrator import TurnOrchestrator


class ChatStub:
    name = "chat"

    def invoke(self, req):
        return Prose(text=f"echo: {req.text}")


@pytest.fixture
def wired_service():
    with tempfile.TemporaryDirectory() as d:
        store = JsonConversationStore(root=Path(d))
        service._store = store
        service._orchestrator = TurnOrchestrator(
            store=store,
            router=CapabilityRouter({Intent.PLAIN_CHAT: ChatStub()}),
            owner_id=service.settings.owner_id,
            streaming=False,
        )
        try:
            yield store
        finally:
            service.reset_default_orchestrator()


def test_submit_message_returns_dicts(wired_service):
    res = service.submit_message("hello")
    assert res["intent"] == "plain_chat"
    assert res["user_message"]["lifecycle"] == "committed"
    assert res["assistant_message"]["content"] == "echo: hello"
    assert res["conversation_id"].startswith("c-")

    transcript = service.get_transcript()
    assert [m["role"] for m in transcript] == ["user", "assistant"]

    stored = service.get_conversation_messages(res["conversation_id"])
    assert [m["content"] for m in stored] == ["hello", "echo: hello"]

    convs = service.list_conversations()
    assert [c["id"] for c in convs] == [res["conversation_id"]]
    assert convs[0]["title"] == ""


def test_submit_blank_returns_none(wired_service):
    assert service.submit_message("  ") is None


def test_open_conversation(wired_service):
    res = service.submit_message("hello")
    service.get_default_orchestrator().new_conversation()
    assert service.get_transcript() == []
    assert service.open_conversation(res["conversation_id"])
    assert len(service.get_transcript()) == 2
