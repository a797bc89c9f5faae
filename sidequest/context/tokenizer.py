"""
Token counting for context estimates.

The default counter is a character heuristic (~4 chars per token for English
prose). The estimate is cheap and deterministic and is not expected to match
a vendor's own count.

TiktokenCounter (cl100k_base) is available for callers that want a
closer-to-vendor text count, e.g. when calibrating the heuristic.
"""

from typing import Protocol, runtime_checkable

import tiktoken

CHARS_PER_TOKEN = 4
ELLIPSIS = "..."


@runtime_checkable
class TokenCounter(Protocol):
    """Anything that can size text in tokens and clip it to a budget."""

    def count(self, text: str) -> int:
        ...

    def truncate_to_budget(self, text: str, max_tokens: int) -> str:
        ...


class HeuristicCounter:
    """round(len(text) / chars_per_token)."""

    def __init__(self, chars_per_token: int = CHARS_PER_TOKEN):
        self.chars_per_token = chars_per_token

    def count(self, text: str) -> int:
        return round(len(text) / self.chars_per_token) if text else 0

    def truncate_to_budget(self, text: str, max_tokens: int) -> str:
        """
        Clip text to the budget, marking the cut with an ellipsis.

        Backs up to the last word boundary unless that would drop more than
        a fifth of what fits.
        """
        limit = max_tokens * self.chars_per_token
        if len(text) <= limit:
            return text
        if limit <= len(ELLIPSIS):
            return text[:max(0, limit)]

        head = text[:limit - len(ELLIPSIS)]
        cut = head.rfind(" ")
        if cut > len(head) * 0.8:
            head = head[:cut]
        return head.rstrip() + ELLIPSIS


class TiktokenCounter:
    """Counts with a tiktoken encoding (cl100k_base unless told otherwise)."""

    def __init__(self, encoding_name: str = "cl100k_base"):
        self.encoding = tiktoken.get_encoding(encoding_name)

    def count(self, text: str) -> int:
        return len(self.encoding.encode(text)) if text else 0

    def truncate_to_budget(self, text: str, max_tokens: int) -> str:
        tokens = self.encoding.encode(text)
        if len(tokens) <= max_tokens:
            return text
        return self.encoding.decode(tokens[:max(0, max_tokens)])


DEFAULT_COUNTER = HeuristicCounter()


def get_default_counter() -> TokenCounter:
    """The counter used for every estimate unless one is passed in."""
    return DEFAULT_COUNTER


def count_tokens(text: str) -> int:
    """Estimate tokens in text as round(len(text) / 4)."""
    return DEFAULT_COUNTER.count(text)


def truncate_to_budget(text: str, max_tokens: int) -> str:
    """Clip text to max_tokens with the default counter."""
    return DEFAULT_COUNTER.truncate_to_budget(text, max_tokens)
