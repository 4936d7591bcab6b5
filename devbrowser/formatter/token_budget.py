"""Token budget: count tokens and truncate snapshot text to fit within a limit."""

from __future__ import annotations

from functools import cached_property

import tiktoken

_ENCODING = "cl100k_base"


class TokenBudget:
    """Counts tokens in a string and truncates text to fit within a budget."""

    def __init__(self, encoding: str = _ENCODING) -> None:
        self._encoding = encoding

    @cached_property
    def _enc(self) -> tiktoken.Encoding:
        # loaded on first use; the BPE file may need downloading
        return tiktoken.get_encoding(self._encoding)

    def count(self, text: str) -> int:
        return len(self._enc.encode(text))

    def truncate(self, text: str, max_tokens: int) -> tuple[str, bool]:
        """
        Truncate text to fit within max_tokens, cutting at a line boundary so
        no node line (and no ref) is emitted half-written.
        Returns (truncated_text, was_truncated).
        """
        tokens = self._enc.encode(text)
        if len(tokens) <= max_tokens:
            return text, False

        truncated = self._enc.decode(tokens[:max_tokens])
        if "\n" in truncated:
            truncated = truncated.rsplit("\n", 1)[0]
        else:
            truncated = ""

        return truncated + "\n[... truncated to fit token budget ...]", True

    def fits(self, text: str, max_tokens: int) -> bool:
        return self.count(text) <= max_tokens
