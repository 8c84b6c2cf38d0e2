"""
Token counting helpers.
"""
from typing import Callable, Optional

import tiktoken

from polyllm.utils.logging import get_logger

logger = get_logger(__name__)

Tokenizer = Callable[[str], int]


def estimate_tokens(text: str) -> int:
    """Rough estimation: ~4 characters per token."""
    if not text:
        return 0
    return max(1, len(text) // 4)


class TokenCounter:
    """Counts tokens with tiktoken, resolving the encoding once per model."""

    def __init__(self, model: Optional[str] = None):
        self.model = model
        self._encoding = None
        self._fallback = False

    def _get_encoding(self):
        if self._encoding is None and not self._fallback:
            try:
                try:
                    self._encoding = tiktoken.encoding_for_model(self.model or "gpt-4o")
                except KeyError:
                    # Default to GPT-4/3.5 encoding if model unknown
                    self._encoding = tiktoken.get_encoding("cl100k_base")
            except Exception as e:
                # Encodings are downloaded on first use; offline hosts estimate instead
                logger.warning(f"Failed to load tiktoken encoding, falling back to estimation: {e}")
                self._fallback = True
        return self._encoding

    def count(self, text: str) -> int:
        encoding = self._get_encoding()
        if encoding is None:
            return estimate_tokens(text)
        return len(encoding.encode(text))

    __call__ = count
