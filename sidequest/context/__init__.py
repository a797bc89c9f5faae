"""Context composition and token estimation for AI calls."""

from .composer import (
    ContextSection,
    HistoryPolicy,
    SectionContent,
    assemble,
    build_context_prompt,
    build_verification_context_hint,
    compose_sections,
)
from .estimator import (
    ContextTokenBreakdown,
    estimate_context_tokens,
    get_context_token_breakdown,
)
from .tokenizer import (
    HeuristicCounter,
    TiktokenCounter,
    TokenCounter,
    count_tokens,
    truncate_to_budget,
)

__all__ = [
    "ContextSection",
    "HistoryPolicy",
    "SectionContent",
    "assemble",
    "build_context_prompt",
    "build_verification_context_hint",
    "compose_sections",
    "ContextTokenBreakdown",
    "estimate_context_tokens",
    "get_context_token_breakdown",
    "HeuristicCounter",
    "TiktokenCounter",
    "TokenCounter",
    "count_tokens",
    "truncate_to_budget",
]
