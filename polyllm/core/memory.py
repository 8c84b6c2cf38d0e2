"""
Token-bounded conversation memory and the memory-backed generator.
"""
import asyncio
import threading
from typing import Any, List, Optional, Union

from polyllm.core.llm import LLM, Generator, OptionsLike
from polyllm.schemas.prompt import GenerateOptions, Message, Prompt
from polyllm.utils.logging import DebugManager
from polyllm.utils.tokens import TokenCounter, Tokenizer


class MemoryWindow:
    """
    Ordered conversation history kept under a token budget.

    The oldest messages are evicted first and survivors keep their order. A
    leading system message is pinned: it is never evicted, even when it alone
    exceeds the budget (a warning is logged instead).
    """

    def __init__(self, max_tokens: int, tokenizer: Optional[Tokenizer] = None, debug: Optional[DebugManager] = None):
        if max_tokens <= 0:
            raise ValueError("max_tokens must be positive")
        self.max_tokens = max_tokens
        self.tokenizer: Tokenizer = tokenizer or TokenCounter()
        self.debug = debug or DebugManager()
        self._system: Optional[Message] = None
        self._system_tokens = 0
        self._messages: List[Message] = []
        self._tokens: List[int] = []
        self._lock = threading.Lock()

    @property
    def total_tokens(self) -> int:
        with self._lock:
            return self._system_tokens + sum(self._tokens)

    @property
    def pinned(self) -> Optional[Message]:
        return self._system

    def __len__(self) -> int:
        with self._lock:
            return len(self._messages) + (1 if self._system else 0)

    def append(self, message: Message) -> None:
        """Add a message, then evict from the oldest end until within budget."""
        tokens = self.tokenizer(message.content)
        with self._lock:
            if message.role == "system":
                # At most one leading system message; a new one replaces it
                self._system = message
                self._system_tokens = tokens
            else:
                self._messages.append(message)
                self._tokens.append(tokens)
            self._evict()

    def _evict(self) -> None:
        total = self._system_tokens + sum(self._tokens)
        evicted = 0
        while total > self.max_tokens and self._messages:
            self._messages.pop(0)
            total -= self._tokens.pop(0)
            evicted += 1
        if evicted:
            self.debug.debug("Evicted messages from memory", evicted=evicted, retained=len(self._messages), tokens=total)
        if total > self.max_tokens:
            self.debug.warning(
                "System message exceeds memory budget",
                system_tokens=self._system_tokens,
                max_tokens=self.max_tokens,
            )

    def build_context(self) -> List[Message]:
        """Retained history, oldest first, pinned system message leading."""
        with self._lock:
            context = [self._system] if self._system else []
            context.extend(self._messages)
            return context

    def clear(self) -> None:
        with self._lock:
            self._system = None
            self._system_tokens = 0
            self._messages.clear()
            self._tokens.clear()


class LLMWithMemory(Generator):
    """
    Generator decorator that keeps a bounded conversation.

    Forwards every call to the wrapped :class:`LLM` unchanged except
    ``generate``, ``clear_memory`` and ``get_memory``.
    """

    def __init__(
        self,
        base: LLM,
        max_tokens: int,
        *,
        tokenizer: Optional[Tokenizer] = None,
        system_prompt: Optional[str] = None,
    ):
        self.base = base
        self.debug = base.debug
        self.memory = MemoryWindow(max_tokens, tokenizer or TokenCounter(base.model), self.debug)
        if system_prompt:
            self.memory.append(Message(role="system", content=system_prompt))

    @property
    def provider_name(self) -> str:
        return self.base.provider_name

    @property
    def model(self) -> str:
        return self.base.model

    @property
    def options(self) -> GenerateOptions:
        return self.base.options

    @property
    def supports_memory(self) -> bool:
        return True

    def set_option(self, key: str, value: Any) -> None:
        self.base.set_option(key, value)

    def set_endpoint(self, endpoint: str) -> None:
        self.base.set_endpoint(endpoint)

    async def close(self) -> None:
        await self.base.close()

    async def generate(
        self,
        prompt: Union[str, Prompt],
        *,
        options: OptionsLike = None,
        json_mode: Optional[bool] = None,
        validate: bool = False,
        timeout: Optional[float] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> str:
        """
        Generate a reply using the retained conversation as context.

        The user message is recorded before the call; the assistant reply is
        recorded only when the call succeeds and the user message was retained.
        """
        if isinstance(prompt, str):
            prompt = Prompt(input=prompt)
        if validate:
            prompt.validate_strict()
        if json_mode is None:
            json_mode = prompt.expects_json

        if prompt.system_prompt:
            self.memory.append(Message(role="system", content=prompt.system_prompt))
        user_message = Message(role="user", content=prompt.render())
        self.memory.append(user_message)

        context = self.memory.build_context()
        retained = any(m is user_message for m in context)
        if not retained:
            self.debug.warning(
                "Message exceeds memory budget and was not retained",
                max_tokens=self.memory.max_tokens,
            )
            pinned = self.memory.pinned
            context = ([pinned] if pinned else []) + [user_message]

        reply = await self.base.generate_messages(
            context, options=options, json_mode=json_mode, timeout=timeout, cancel_event=cancel_event
        )
        # Replies are only kept next to their user turn
        if retained:
            self.memory.append(Message(role="assistant", content=reply))
        return reply

    def clear_memory(self) -> None:
        self.memory.clear()
        self.debug.debug("Memory cleared")

    def get_memory(self) -> List[Message]:
        return self.memory.build_context()

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(base={self.base!r}, max_tokens={self.memory.max_tokens})"
