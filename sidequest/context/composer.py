"""
Context composer for SideQuest.

Renders a SessionContext (plus optional campaign and journey snapshots) into
the text sent to the AI on every quest-generation or verification call.

Sections (ordered):
1. Campaign identity and configuration (optional)
2. Quest history digest
3. Player patterns
4. Journey analytics (optional)
5. Location intelligence for completed quests (optional)
6. Reasoning traces (optional)
7. Personality context

History is bounded by a HistoryPolicy: the newest quests are rendered in
full, older ones as one line each, and anything beyond that collapses into a
single count line.
"""

from collections import Counter
from dataclasses import dataclass
from enum import Enum

from ..config import Config, DEFAULT_CONFIG
from ..state.recorder import failed_feedback, rank_issues
from ..state.schema import Campaign, JourneyStats, QuestAttempt, SessionContext
from .tokenizer import truncate_to_budget

FEEDBACK_TOKEN_BUDGET = 60   # Per rendered feedback line
HINT_FEEDBACK_LINES = 2


class ContextSection(str, Enum):
    """Sections of the composed context, in order."""
    CAMPAIGN = "campaign"
    HISTORY = "history"
    PATTERNS = "patterns"
    JOURNEY = "journey"
    RESEARCH = "research"
    REASONING = "reasoning"
    PERSONALITY = "personality"


SECTION_HEADERS: dict[ContextSection, str] = {
    ContextSection.CAMPAIGN: "Campaign",
    ContextSection.HISTORY: "Quest History",
    ContextSection.PATTERNS: "Player Patterns",
    ContextSection.JOURNEY: "Journey Analytics",
    ContextSection.RESEARCH: "Location Intelligence",
    ContextSection.REASONING: "Reasoning Traces",
    ContextSection.PERSONALITY: "Personality Context",
}


@dataclass
class SectionContent:
    """Rendered content for a single section."""
    section: ContextSection
    content: str

    def render(self) -> str:
        return f"## {SECTION_HEADERS[self.section]}\n\n{self.content}"


@dataclass
class HistoryPolicy:
    """How much history and journey detail the composer renders."""
    full_limit: int = 10        # Newest quests rendered in full
    summary_limit: int = 40     # Older quests rendered as one line each
    sample_points: int = 20     # GPS points listed in the journey section

    @classmethod
    def from_config(cls, config: Config | None = None) -> "HistoryPolicy":
        merged = {**DEFAULT_CONFIG, **(config or {})}
        return cls(
            full_limit=merged["history_full_limit"],
            summary_limit=merged["history_summary_limit"],
            sample_points=merged["journey_sample_points"],
        )

    def split(
        self, history: list[QuestAttempt]
    ) -> tuple[int, list[QuestAttempt], list[QuestAttempt]]:
        """Return (collapsed_count, summarized, full) in chronological order."""
        full_start = max(0, len(history) - self.full_limit)
        summary_start = max(0, full_start - self.summary_limit)
        return summary_start, history[summary_start:full_start], history[full_start:]


def _pct(value: float) -> str:
    return f"{value * 100:.0f}%"


def _outcome(attempt: QuestAttempt) -> str:
    return "✓ Completed" if attempt.final_success else "✗ Failed"


def _clip(line: str) -> str:
    return truncate_to_budget(line, FEEDBACK_TOKEN_BUDGET)


# -----------------------------------------------------------------------------
# Section renderers
# -----------------------------------------------------------------------------

def _render_campaign(campaign: Campaign) -> str:
    lines = [
        f"Location: {campaign.location}",
        f"Campaign type: {campaign.type} ({len(campaign.quests)} quests)",
    ]

    current = campaign.current_quest
    if current:
        lines.append(
            f"Current quest: {campaign.current_quest_index + 1} of "
            f"{len(campaign.quests)} (\"{current.title}\")"
        )

    if campaign.quests:
        mix = Counter(q.difficulty.value for q in campaign.quests)
        parts = [f"{mix[level]} {level}" for level in ("easy", "medium", "hard") if mix[level]]
        lines.append(f"Difficulty mix: {', '.join(parts)}")

    if campaign.distance_range:
        lines.append(f"Distance range: {campaign.distance_range.value}")
    if campaign.total_distance is not None:
        lines.append(f"Planned distance: {campaign.total_distance:.1f} km")
    if campaign.estimated_total_time is not None:
        lines.append(f"Estimated walking time: {campaign.estimated_total_time} min")

    return "\n".join(lines)


def _render_full_attempt(attempt: QuestAttempt) -> str:
    lines = [
        f"Quest: \"{attempt.quest_title}\" ({attempt.quest_type.value})",
        f"- Status: {_outcome(attempt)} in {attempt.attempts} attempt(s)",
        f"- Time spent: {attempt.time_spent}s",
    ]
    if attempt.distance_from_target is not None:
        lines.append(f"- GPS distance from target: {attempt.distance_from_target:.0f}m")
    if attempt.quest_image_url:
        lines.append("- Quest reference image included (sent alongside this context)")
        if attempt.image_description:
            lines.append(f"- Image: {_clip(attempt.image_description)}")
    if attempt.verification_feedback:
        rounds = len(attempt.verification_feedback)
        lines.append(
            f"- Latest feedback ({rounds} verification round(s)): "
            f"\"{_clip(attempt.verification_feedback[-1])}\""
        )
    return "\n".join(lines)


def _render_summary_attempt(attempt: QuestAttempt) -> str:
    mark = "✓" if attempt.final_success else "✗"
    return (
        f"- \"{attempt.quest_title}\" ({attempt.quest_type.value}): "
        f"{mark} in {attempt.attempts} attempt(s)"
    )


def _render_history(history: list[QuestAttempt], policy: HistoryPolicy) -> str:
    collapsed, summarized, full = policy.split(history)
    blocks = []

    if collapsed:
        completed = sum(1 for q in history[:collapsed] if q.final_success)
        blocks.append(
            f"({collapsed} earlier quests not shown: {completed} completed, "
            f"{collapsed - completed} failed)"
        )

    if summarized:
        blocks.append("Earlier quests:\n" + "\n".join(_render_summary_attempt(q) for q in summarized))

    blocks.extend(_render_full_attempt(q) for q in full)
    return "\n\n".join(blocks)


def _render_patterns(context: SessionContext) -> str:
    p = context.patterns
    lines = [
        f"- Session: {context.session_id} (started {context.created_at:%Y-%m-%d %H:%M})",
        f"- Total quests attempted: {len(context.quest_history)}",
        f"- Success rate: {_pct(p.success_rate)}",
        f"- Average attempts per quest: {p.average_attempts:.1f}",
        f"- Average AI confidence: {p.average_confidence}%",
    ]
    if p.strongest_media_type:
        lines.append(f"- Strongest media type: {p.strongest_media_type.value}")
    if p.weakest_media_type:
        lines.append(f"- Needs practice with: {p.weakest_media_type.value}")
    if p.common_issues:
        lines.append(f"- Common challenges: {', '.join(p.common_issues)}")
    if p.common_failure_reasons:
        lines.append(f"- Frequent failure reasons: {', '.join(p.common_failure_reasons)}")
    return "\n".join(lines)


def movement_style(speed_mps: float) -> str:
    if speed_mps < 0.5:
        return "Stationary/minimal movement"
    elif speed_mps < 1.5:
        return "Slow walking pace"
    elif speed_mps < 2.5:
        return "Normal walking pace"
    else:
        return "Brisk walking/running"


def _render_journey(journey: JourneyStats, policy: HistoryPolicy) -> str:
    points = journey.path_points
    lines = [
        f"- Total distance traveled: {journey.total_distance_traveled:.2f} km",
        f"- Journey duration: {journey.duration_minutes} minutes",
        f"- GPS path points captured: {len(points)}",
        f"- Quests completed during journey: {len(journey.quest_completion_times)}",
    ]

    recent = points[-policy.sample_points:] if policy.sample_points > 0 else []
    if recent:
        lines.append(f"\nRecent GPS path (last {len(recent)} points):")
        for point in recent:
            lines.append(
                f"- [{point.timestamp:%H:%M:%S}] Quest {point.quest_index + 1}: "
                f"{point.coordinates.lat:.5f}, {point.coordinates.lng:.5f} "
                f"(accuracy: ±{point.accuracy:.0f}m)"
            )

    if len(points) >= 2:
        elapsed = (points[-1].timestamp - points[0].timestamp).total_seconds()
        speed = journey.total_distance_traveled * 1000 / elapsed if elapsed > 0 else 0.0
        lines.append("\nMovement patterns:")
        lines.append(f"- Average movement speed: {speed:.2f} m/s ({speed * 3.6:.1f} km/h)")
        lines.append(f"- Movement style: {movement_style(speed)}")

    if journey.quest_completion_times:
        lines.append("\nQuest completion timeline:")
        previous = journey.start_time
        for i, completed in enumerate(journey.quest_completion_times):
            into = round((completed - journey.start_time).total_seconds() / 60)
            took = round((completed - previous).total_seconds() / 60)
            since = "from journey start" if i == 0 else "from previous"
            lines.append(
                f"- Quest {i + 1}: completed at {completed:%H:%M:%S} "
                f"({into} min into journey, {took} min {since})"
            )
            previous = completed

    if len(points) >= 2:
        lats = [p.coordinates.lat for p in points]
        lngs = [p.coordinates.lng for p in points]
        lat_range = max(lats) - min(lats)
        lng_range = max(lngs) - min(lngs)
        avg_accuracy = sum(p.accuracy for p in points) / len(points)

        lines.append("\nGeographic coverage:")
        lines.append(f"- Latitude range: {lat_range:.5f}° ({lat_range * 111:.2f} km)")
        lines.append(f"- Longitude range: {lng_range:.5f}° ({lng_range * 111:.2f} km)")
        lines.append(f"- Average GPS accuracy: ±{avg_accuracy:.0f}m")
        if lat_range < 0.01 and lng_range < 0.01:
            lines.append("- Exploration pattern: Localized (stayed in small area)")
        elif lat_range < 0.05 and lng_range < 0.05:
            lines.append("- Exploration pattern: Neighborhood exploration")
        else:
            lines.append("- Exploration pattern: Wide-ranging journey")

    return "\n".join(lines)


def completed_places(context: SessionContext, campaign: Campaign) -> set[str]:
    """Place names of campaign quests the player has completed."""
    places = set()
    for attempt in context.quest_history:
        if not attempt.final_success:
            continue
        quest = campaign.get_quest(attempt.quest_id)
        if quest and quest.place_name:
            places.add(quest.place_name)
    return places


def _render_research(context: SessionContext, campaign: Campaign) -> str:
    places = completed_places(context, campaign)
    blocks = []

    for research in campaign.location_research:
        if research.place_name not in places:
            continue
        parts = [f"=== {research.place_name} ==="]
        for title, text in (
            ("HISTORICAL SIGNIFICANCE", research.historical_significance),
            ("ARCHITECTURAL DETAILS", research.architectural_details),
            ("CULTURAL CONTEXT", research.cultural_context),
            ("MEDIA CAPTURE TIPS", research.media_tips),
        ):
            if text:
                parts.append(f"{title}:\n{text}")
        blocks.append("\n\n".join(parts))

    return "\n\n".join(blocks)


def _render_reasoning(
    full_history: list[QuestAttempt], campaign: Campaign | None
) -> str:
    blocks = []

    for attempt in full_history:
        if not attempt.thinking_steps:
            continue
        lines = [f"Verifier reasoning for \"{attempt.quest_title}\":"]
        for step in attempt.thinking_steps:
            verdict = "Passed" if step.passed else "Failed"
            lines.append(f"  - {step.criterion}: {verdict} ({step.confidence}%)")
        blocks.append("\n".join(lines))

    reasoning = campaign.generation_reasoning if campaign else None
    if reasoning:
        lines = ["Campaign design reasoning:"]
        if reasoning.difficulty_progression:
            lines.append(f"Difficulty progression: {reasoning.difficulty_progression}")
        for title, reasons in (
            ("Location selection", reasoning.location_selection),
            ("Media type choices", reasoning.media_type_choices),
            ("Criteria design", reasoning.criteria_design),
        ):
            if reasons:
                lines.append(f"{title}:")
                lines.extend(f"  Quest {i + 1}: {reason}" for i, reason in enumerate(reasons))
        if len(lines) > 1:
            blocks.append("\n".join(lines))

    return "\n\n".join(blocks)


def _render_personality(context: SessionContext) -> str:
    sig = context.thought_signature
    lines = [
        f"- Voice: {sig.narrative_voice}",
        f"- Encouragement level: {sig.encouragement_level.value}",
        f"- Reference style: {sig.reference_style.value}",
    ]
    if sig.player_nickname:
        lines.append(f"- Player nickname: \"{sig.player_nickname}\"")
    if sig.running_jokes:
        lines.append(f"- Running jokes: {'; '.join(sig.running_jokes)}")
    lines.append("")
    lines.append(
        "Reference past quests naturally when they provide useful learning context."
    )
    return "\n".join(lines)


# -----------------------------------------------------------------------------
# Public API
# -----------------------------------------------------------------------------

def compose_sections(
    context: SessionContext,
    campaign: Campaign | None = None,
    journey: JourneyStats | None = None,
    policy: HistoryPolicy | None = None,
) -> list[SectionContent]:
    """
    Render every applicable section, in order.

    Returns an empty list while the history is empty. Optional inputs that
    are missing (or have nothing to say) simply omit their section.
    """
    if not context.quest_history:
        return []

    policy = policy or HistoryPolicy()
    _, _, full_history = policy.split(context.quest_history)

    candidates = [
        (ContextSection.CAMPAIGN, _render_campaign(campaign) if campaign else ""),
        (ContextSection.HISTORY, _render_history(context.quest_history, policy)),
        (ContextSection.PATTERNS, _render_patterns(context)),
        (
            ContextSection.JOURNEY,
            _render_journey(journey, policy) if journey and journey.path_points else "",
        ),
        (ContextSection.RESEARCH, _render_research(context, campaign) if campaign else ""),
        (ContextSection.REASONING, _render_reasoning(full_history, campaign)),
        (ContextSection.PERSONALITY, _render_personality(context)),
    ]
    return [SectionContent(section, text) for section, text in candidates if text]


def assemble(sections: list[SectionContent]) -> str:
    """Join rendered sections into the final prompt text."""
    if not sections:
        return ""
    body = "\n\n---\n\n".join(s.render() for s in sections)
    return f"CAMPAIGN MEMORY (context from earlier in this campaign):\n\n{body}\n"


def build_context_prompt(
    context: SessionContext,
    campaign: Campaign | None = None,
    journey: JourneyStats | None = None,
    policy: HistoryPolicy | None = None,
) -> str:
    """Build the full context prompt for generation calls."""
    return assemble(compose_sections(context, campaign, journey, policy))


def build_verification_context_hint(
    context: SessionContext,
    campaign: Campaign | None = None,
    quest_id: str | None = None,
) -> str:
    """
    Build a short hint for verification calls.

    Restricted to what helps judge the current attempt consistently across
    appeal rounds: the player's record, recent feedback and failure reasons
    for the same quest, and how close the player's GPS was to the target.
    """
    if not context.quest_history:
        return ""

    p = context.patterns
    sig = context.thought_signature
    lines = [
        f"PLAYER CONTEXT: {len(context.quest_history)} quests attempted "
        f"({_pct(p.success_rate)} success rate). "
        f"Encouragement level: {sig.encouragement_level.value}."
    ]
    if p.common_issues:
        lines.append(f"Common issues: {', '.join(p.common_issues)}.")
    if sig.player_nickname:
        lines.append(f"Call them \"{sig.player_nickname}\" if appropriate.")

    if quest_id is None and campaign and campaign.current_quest:
        quest_id = campaign.current_quest.id
    current = context.get_attempt(quest_id) if quest_id else None

    if current:
        line = f"THIS QUEST: {current.attempts} attempt(s) so far."
        recent = failed_feedback(current)[-HINT_FEEDBACK_LINES:]
        if recent:
            quoted = "; ".join(f"\"{_clip(fb)}\"" for fb in recent)
            line += f" Recent feedback: {quoted}."
        reasons = rank_issues(failed_feedback(current))
        if reasons:
            line += f" Recurring problems: {', '.join(reasons)}."
        lines.append(line)

        if current.distance_from_target is not None:
            lines.append(
                f"GPS: player was {current.distance_from_target:.0f}m from the "
                f"target on the last check."
            )

    return "\n".join(lines)
