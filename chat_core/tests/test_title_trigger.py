from concurrent.futures import Future

from chat_core.orchestrator.title_trigger import TitleTrigger


class InlineExecutor:
    """同步执行提交的任务，便于断言。"""

    def submit(self, fn, *args, **kwargs):
        fut = Future()
        fut.set_result(fn(*args, **kwargs))
        return fut

    def shutdown(self, wait=True):
        pass


class FakeGenerator:
    def __init__(self, title="Pizza nearby", error=None):
        self.title = title
        self.error = error
        self.calls = []

    def generate_title(self, conversation_id, user_message=None, assistant_message=None):
        self.calls.append((conversation_id, user_message, assistant_message))
        if self.error:
            raise self.error
        return self.title


class FakeStore:
    def __init__(self):
        self.titles = {}

    def update_conversation_title(self, conversation_id, title):
        self.titles[conversation_id] = title


def test_fires_once_per_conversation():
    gen = FakeGenerator()
    store = FakeStore()
    trigger = TitleTrigger(gen, store, executor=InlineExecutor())
    fut = trigger.fire("c-1", "pizza near me", "Here are some places")
    assert fut.result() == "Pizza nearby"
    assert trigger.fire("c-1", "again", "again") is None
    assert gen.calls == [("c-1", "pizza near me", "Here are some places")]
    assert store.titles == {"c-1": "Pizza nearby"}


def test_failures_are_swallowed():
    gen = FakeGenerator(error=RuntimeError("title service down"))
    store = FakeStore()
    trigger = TitleTrigger(gen, store, executor=InlineExecutor())
    fut = trigger.fire("c-2", "hi", "hello")
    assert fut.result() is None
    assert store.titles == {}
    # 失败后也不会重试
    assert trigger.fire("c-2", "hi", "hello") is None
    assert len(gen.calls) == 1


def test_default_executor_runs_in_background():
    gen = FakeGenerator(title="Background title")
    trigger = TitleTrigger(gen)
    fut = trigger.fire("c-3", "hi", "hello")
    assert fut.result(timeout=5) == "Background title"
    trigger.shutdown()
