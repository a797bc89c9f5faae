"""
Token cost estimation for the composed context.

Estimates how much of the model's context window a generation call will
use, without calling the model. Costs are split into buckets so the UI can
show where the budget goes:

- base_text: campaign, history, patterns and personality sections
- images: a fixed cost per quest reference image sent alongside the text
- journey: a fixed cost for the analytics summary plus a per-point increment
- research: location intelligence text
- reasoning: verifier reasoning traces and campaign design reasoning

Text buckets use the character heuristic from the tokenizer. The numbers are
an approximation and are only ever checked against their own arithmetic.
"""

from dataclasses import asdict, dataclass

from ..config import Config, DEFAULT_CONFIG
from ..state.schema import Campaign, JourneyStats, SessionContext
from .composer import ContextSection, HistoryPolicy, assemble, compose_sections
from .tokenizer import TokenCounter, get_default_counter

# Journey analytics: summary (500) + movement patterns (300) + coverage (200)
JOURNEY_BASE_TOKENS = 1000
JOURNEY_POINT_TOKENS = 30        # Per GPS point listed
JOURNEY_COMPLETION_TOKENS = 40   # Per quest completion in the timeline

BUCKETED_SECTIONS = (
    ContextSection.JOURNEY,
    ContextSection.RESEARCH,
    ContextSection.REASONING,
)


@dataclass
class ContextTokenBreakdown:
    """Estimated tokens per category."""
    total: int = 0
    base_text: int = 0
    images: int = 0
    journey: int = 0
    research: int = 0
    reasoning: int = 0

    def to_dict(self) -> dict[str, int]:
        return asdict(self)


def journey_tokens(journey: JourneyStats | None, sample_points: int) -> int:
    """Fixed cost for the journey section plus its listed points and timeline."""
    if journey is None or not journey.path_points:
        return 0
    listed = min(len(journey.path_points), max(0, sample_points))
    return (
        JOURNEY_BASE_TOKENS
        + listed * JOURNEY_POINT_TOKENS
        + len(journey.quest_completion_times) * JOURNEY_COMPLETION_TOKENS
    )


def get_context_token_breakdown(
    context: SessionContext,
    campaign: Campaign | None = None,
    journey: JourneyStats | None = None,
    config: Config | None = None,
    counter: TokenCounter | None = None,
) -> ContextTokenBreakdown:
    """
    Break the estimated context cost down by category.

    Only what the composer would actually render is counted, so the
    estimate follows the same history bounds as the prompt itself.
    """
    config = {**DEFAULT_CONFIG, **(config or {})}
    counter = counter or get_default_counter()
    policy = HistoryPolicy.from_config(config)

    sections = compose_sections(context, campaign, journey, policy)
    if not sections:
        return ContextTokenBreakdown()

    by_section = {s.section: s for s in sections}

    def section_tokens(section: ContextSection) -> int:
        content = by_section.get(section)
        return counter.count(content.render()) if content else 0

    base_text = counter.count(
        assemble([s for s in sections if s.section not in BUCKETED_SECTIONS])
    )

    _, _, full_history = policy.split(context.quest_history)
    image_count = sum(1 for q in full_history if q.quest_image_url)

    breakdown = ContextTokenBreakdown(
        base_text=base_text,
        images=image_count * config["image_tokens"],
        journey=(
            journey_tokens(journey, policy.sample_points)
            if ContextSection.JOURNEY in by_section
            else 0
        ),
        research=section_tokens(ContextSection.RESEARCH),
        reasoning=section_tokens(ContextSection.REASONING),
    )
    breakdown.total = (
        breakdown.base_text
        + breakdown.images
        + breakdown.journey
        + breakdown.research
        + breakdown.reasoning
    )
    return breakdown


def estimate_context_tokens(
    context: SessionContext,
    campaign: Campaign | None = None,
    journey: JourneyStats | None = None,
    config: Config | None = None,
    counter: TokenCounter | None = None,
) -> int:
    """Estimate total tokens for the composed context."""
    return get_context_token_breakdown(context, campaign, journey, config, counter).total
