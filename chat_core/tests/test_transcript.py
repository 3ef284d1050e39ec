from datetime import datetime, timezone

import pytest

from chat_core.domain.models import Message
from chat_core.transcript.state import Transcript
from chat_core.transcript.streaming import StreamingAssembler
from chat_core.transcript.turn import TurnPhase, TurnStateMachine


def _frozen_clock():
    ts = datetime(2024, 1, 1, tzinfo=timezone.utc)
    return lambda: ts


def test_created_at_strictly_increasing_with_frozen_clock():
    t = Transcript(clock=_frozen_clock())
    a = t.add_pending("user", "a")
    b = t.add_ephemeral("Thinking…", "t-1")
    c = t.add_error("boom", "t-1")
    assert a.created_at < b.created_at < c.created_at


def test_remove_ephemeral_by_turn_identity():
    t = Transcript()
    t.add_pending("user", "Getting your location…", "t-1")
    t.add_ephemeral("Getting your location…", "t-1")
    t.add_ephemeral("Thinking…", "t-2")
    assert t.remove_ephemeral("t-1") == 1
    # 同样文本但不是 ephemeral 的消息保留
    assert [m.lifecycle for m in t.messages] == ["pending", "ephemeral"]
    assert t.remove_ephemeral() == 1
    assert t.ephemeral_messages() == []


def test_commit_and_fail():
    t = Transcript()
    m = t.add_pending("user", "hi")
    t.commit(m.id, "m-1")
    assert m.lifecycle == "committed"
    assert m.meta["record_id"] == "m-1"
    with pytest.raises(ValueError):
        t.commit(m.id)
    n = t.add_pending("assistant", "x")
    t.fail(n.id, "not saved")
    assert n.lifecycle == "error"
    assert n.content == "not saved"


def test_durable_history_only_committed_text():
    t = Transcript()
    u = t.add_pending("user", "hello")
    t.commit(u.id)
    t.add_ephemeral("Thinking…", "t-1")
    t.add_error("failed", "t-1")
    r = t.add_pending("assistant", '{"type": "record"}', content_type="record")
    t.commit(r.id)
    t.add_pending("user", "not yet saved")
    assert t.durable_history() == [("user", "hello")]


def test_subscribe_and_unsubscribe():
    t = Transcript()
    seen = []
    unsubscribe = t.subscribe(lambda tr: seen.append(len(tr)))
    t.add_pending("user", "a")
    unsubscribe()
    t.add_pending("user", "b")
    assert seen == [1]


def test_replace_all_sorts_and_keeps_order_monotonic():
    t = Transcript()
    old = datetime(2020, 1, 1, tzinfo=timezone.utc)
    newer = datetime(2020, 1, 2, tzinfo=timezone.utc)
    t.replace_all([
        Message(id="b", role="assistant", content="B", created_at=newer, lifecycle="committed"),
        Message(id="a", role="user", content="A", created_at=old, lifecycle="committed"),
    ])
    assert [m.id for m in t.messages] == ["a", "b"]
    appended = t.add_pending("user", "C")
    assert appended.created_at > newer


def test_streaming_assembler_cumulative_content():
    t = Transcript()
    t.add_ephemeral("Thinking…", "t-1")
    snapshots = []
    t.subscribe(lambda tr: snapshots.append([m.content for m in tr.messages if m.streaming]))
    asm = StreamingAssembler(t, "t-1")
    text = asm.consume(["Hel", "", "lo ", "world"])
    assert text == "Hello world"
    msg = t.get(asm.message_id)
    assert msg.content == "Hello world"
    assert msg.streaming is False
    assert msg.lifecycle == "pending"
    assert t.ephemeral_messages("t-1") == []
    assert ["Hel"] in snapshots and ["Hello "] in snapshots


def test_streaming_assembler_fail_without_start():
    t = Transcript()
    asm = StreamingAssembler(t)
    assert asm.fail("boom") is None
    assert len(t) == 0


def test_turn_state_machine_happy_path():
    sm = TurnStateMachine()
    turn_id = sm.begin()
    assert turn_id and sm.active
    assert sm.begin() is None
    sm.advance(TurnPhase.CLASSIFYING)
    sm.advance(TurnPhase.DISPATCHING)
    sm.advance(TurnPhase.AWAITING)
    sm.end()
    assert sm.phase is TurnPhase.IDLE
    assert not sm.active
    assert sm.history == [
        TurnPhase.SUBMITTING,
        TurnPhase.CLASSIFYING,
        TurnPhase.DISPATCHING,
        TurnPhase.AWAITING,
        TurnPhase.SETTLING,
        TurnPhase.IDLE,
    ]


def test_turn_state_machine_rejects_illegal_transition():
    sm = TurnStateMachine()
    sm.begin()
    with pytest.raises(RuntimeError):
        sm.advance(TurnPhase.STREAMING)
    # 任何阶段都可以直接进入 Settling
    sm.advance(TurnPhase.SETTLING)
    sm.end()
    assert sm.phase is TurnPhase.IDLE
