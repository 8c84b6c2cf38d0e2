"""
Tests for the token-bounded memory window and the memory-backed generator.
"""
import random
import threading

import pytest

from conftest import chat_body, make_llm, word_count
from polyllm.core.exceptions import EmptyResponse
from polyllm.core.memory import LLMWithMemory, MemoryWindow
from polyllm.schemas.prompt import Message
from polyllm.utils.logging import DebugManager


def user(text):
    return Message(role="user", content=text)


def assistant(text):
    return Message(role="assistant", content=text)


class TestMemoryWindow:

    def test_fifo_eviction_preserves_order(self):
        window = MemoryWindow(3, tokenizer=word_count)
        for i in range(1, 6):
            window.append(user(f"m{i}"))

        assert [m.content for m in window.build_context()] == ["m3", "m4", "m5"]
        assert window.total_tokens == 3

    def test_budget_never_exceeded(self):
        rng = random.Random(7)
        window = MemoryWindow(20, tokenizer=word_count)
        for i in range(200):
            words = " ".join(f"w{i}" for _ in range(rng.randint(1, 8)))
            window.append(user(words) if i % 2 else assistant(words))
            context = window.build_context()
            assert sum(word_count(m.content) for m in context) <= 20
            assert window.total_tokens <= 20

    def test_survivors_are_a_suffix_of_appends(self):
        rng = random.Random(11)
        window = MemoryWindow(15, tokenizer=word_count)
        appended = []
        for i in range(50):
            message = user(" ".join(["x"] * rng.randint(1, 6)) + f" #{i}")
            appended.append(message)
            window.append(message)
            retained = window.build_context()
            assert retained == appended[len(appended) - len(retained):]

    def test_system_message_is_pinned(self):
        window = MemoryWindow(5, tokenizer=word_count)
        window.append(Message(role="system", content="be brief"))
        for i in range(10):
            window.append(user(f"question {i}"))

        context = window.build_context()
        assert context[0] == Message(role="system", content="be brief")
        assert [m.content for m in context[1:]] == ["question 9"]
        assert window.total_tokens <= 5

    def test_new_system_message_replaces_pinned(self):
        window = MemoryWindow(50, tokenizer=word_count)
        window.append(Message(role="system", content="first"))
        window.append(user("hello"))
        window.append(Message(role="system", content="second"))

        context = window.build_context()
        assert [m.content for m in context] == ["second", "hello"]
        assert sum(1 for m in context if m.role == "system") == 1

    def test_oversized_system_message_is_kept_with_warning(self, recording_logger):
        window = MemoryWindow(3, tokenizer=word_count, debug=DebugManager(recording_logger))
        window.append(user("early"))
        window.append(Message(role="system", content="one two three four five"))

        context = window.build_context()
        assert [m.role for m in context] == ["system"]
        assert any("System message exceeds memory budget" in m for m in recording_logger.messages("warning"))

        window.append(user("late"))
        assert [m.role for m in window.build_context()] == ["system"]

    def test_clear(self):
        window = MemoryWindow(10, tokenizer=word_count)
        window.append(Message(role="system", content="sys"))
        window.append(user("hi"))
        window.clear()

        assert window.build_context() == []
        assert window.total_tokens == 0
        assert len(window) == 0

    def test_invalid_budget(self):
        with pytest.raises(ValueError):
            MemoryWindow(0, tokenizer=word_count)

    def test_concurrent_appends_keep_invariant(self):
        window = MemoryWindow(30, tokenizer=word_count)

        def writer(prefix):
            for i in range(200):
                window.append(user(f"{prefix} {i} extra words"))

        threads = [threading.Thread(target=writer, args=(f"t{n}",)) for n in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert window.total_tokens <= 30
        assert sum(word_count(m.content) for m in window.build_context()) == window.total_tokens


class TestLLMWithMemory:

    @pytest.mark.asyncio
    async def test_generate_carries_conversation(self):
        base, transport = make_llm([chat_body("Paris"), chat_body("About 2 million")])
        llm = LLMWithMemory(base, 1000, tokenizer=word_count, system_prompt="You are a geography tutor")

        assert await llm.generate("Capital of France?") == "Paris"
        assert await llm.generate("Population?") == "About 2 million"

        second = transport.bodies()[1]["messages"]
        assert second == [
            {"role": "system", "content": "You are a geography tutor"},
            {"role": "user", "content": "Capital of France?"},
            {"role": "assistant", "content": "Paris"},
            {"role": "user", "content": "Population?"},
        ]
        assert [m.role for m in llm.get_memory()] == ["system", "user", "assistant", "user", "assistant"]

    @pytest.mark.asyncio
    async def test_failed_generate_appends_only_user_message(self):
        base, _ = make_llm([{"choices": []}], max_retries=1)
        llm = LLMWithMemory(base, 1000, tokenizer=word_count)

        with pytest.raises(EmptyResponse):
            await llm.generate("Hello?")

        assert llm.get_memory() == [Message(role="user", content="Hello?")]

    @pytest.mark.asyncio
    async def test_memory_bounded_across_turns(self):
        base, transport = make_llm([chat_body("a b c")])
        llm = LLMWithMemory(base, 8, tokenizer=word_count)

        for i in range(6):
            await llm.generate(f"question {i}")

        assert llm.memory.total_tokens <= 8
        last_request = transport.bodies()[-1]["messages"]
        assert last_request[-1] == {"role": "user", "content": "question 5"}

    @pytest.mark.asyncio
    async def test_oversized_message_is_still_sent(self, recording_logger):
        base, transport = make_llm([chat_body("ok")], debug=DebugManager(recording_logger))
        llm = LLMWithMemory(base, 3, tokenizer=word_count)

        await llm.generate("this message is far too long for the budget")

        assert transport.bodies()[0]["messages"][-1]["content"] == "this message is far too long for the budget"
        assert any("not retained" in m for m in recording_logger.messages("warning"))
        assert llm.memory.total_tokens <= 3
        assert llm.get_memory() == []

    @pytest.mark.asyncio
    async def test_reply_to_dropped_turn_is_not_kept(self):
        base, transport = make_llm([chat_body("fine"), chat_body("short answer")])
        llm = LLMWithMemory(base, 4, tokenizer=word_count, system_prompt="Be brief")

        await llm.generate("hi")
        await llm.generate("this question is much too long to keep")

        assert [m.role for m in llm.get_memory()] == ["system"]
        assert transport.bodies()[1]["messages"] == [
            {"role": "system", "content": "Be brief"},
            {"role": "user", "content": "this question is much too long to keep"},
        ]

    @pytest.mark.asyncio
    async def test_clear_memory(self):
        base, transport = make_llm([chat_body("one"), chat_body("two")])
        llm = LLMWithMemory(base, 1000, tokenizer=word_count)

        await llm.generate("first")
        llm.clear_memory()
        await llm.generate("second")

        assert transport.bodies()[1]["messages"] == [{"role": "user", "content": "second"}]

    def test_forwards_to_base(self):
        base, _ = make_llm([chat_body("ok")])
        llm = LLMWithMemory(base, 100, tokenizer=word_count)

        llm.set_option("temperature", 0.1)

        assert base.options.temperature == 0.1
        assert llm.options.temperature == 0.1
        assert llm.provider_name == "openai"
        assert llm.model == "test-model"
        assert llm.supports_memory and not base.supports_memory
