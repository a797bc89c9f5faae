"""
Quest attempt recording.

Pure functions: every update takes a SessionContext and returns a new one.
Derived state (patterns, thought signature) is recomputed from the full
quest history on each call, never patched incrementally, so it can always be
checked against a fresh recompute.
"""

from collections import Counter
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable

from .schema import (
    EncouragementLevel,
    QuestAttempt,
    QuestType,
    ReferenceStyle,
    SessionContext,
    ThoughtSignature,
    UserPatterns,
)


# Issue category -> keywords that signal it (matched case-insensitively)
ISSUE_KEYWORDS: dict[str, tuple[str, ...]] = {
    "lighting": ("light", "bright", "dark"),
    "framing": ("frame", "angle", "composition"),
    "wrong subject": ("subject", "object", "target"),
    "distance": ("distance", "close", "far"),
    "motion capture": ("motion", "movement", "activity"),
    "audio clarity": ("sound", "audio", "noise"),
}

MAX_RANKED_ISSUES = 3
MAX_RUNNING_JOKES = 3


@dataclass
class AttemptCounter:
    """Live attempt number and timing baseline for one quest."""
    count: int = 0
    started_at: datetime | None = None

    def start(self, now: datetime) -> None:
        self.count += 1
        self.started_at = now

    def elapsed_seconds(self, now: datetime) -> int:
        if self.started_at is None:
            return 0
        return max(0, round((now - self.started_at).total_seconds()))


# -----------------------------------------------------------------------------
# Pattern analysis
# -----------------------------------------------------------------------------

def _issue_categories(text: str) -> set[str]:
    lowered = text.lower()
    return {
        issue for issue, keywords in ISSUE_KEYWORDS.items()
        if any(keyword in lowered for keyword in keywords)
    }


def rank_issues(texts: Iterable[str], min_count: int = 1) -> list[str]:
    """
    Frequency-rank the issue categories mentioned across texts.

    Each text counts at most once per category. Ties break alphabetically so
    the ranking does not depend on history order.
    """
    counts: Counter[str] = Counter()
    for text in texts:
        counts.update(_issue_categories(text))

    ranked = sorted(
        (item for item in counts.items() if item[1] >= min_count),
        key=lambda item: (-item[1], item[0]),
    )
    return [issue for issue, _ in ranked[:MAX_RANKED_ISSUES]]


def failed_feedback(attempt: QuestAttempt) -> list[str]:
    """
    Feedback lines from verification calls that did not pass.

    A successful quest's last feedback line is the passing verdict; every
    other line belongs to a failed call.
    """
    if attempt.final_success:
        return attempt.verification_feedback[:-1]
    return list(attempt.verification_feedback)


def _media_type_performance(
    history: list[QuestAttempt],
) -> tuple[QuestType | None, QuestType | None]:
    """Return (strongest, weakest) media type by success rate."""
    totals = {t: [0, 0] for t in QuestType}  # type -> [successes, total]
    for attempt in history:
        totals[attempt.quest_type][1] += 1
        if attempt.final_success:
            totals[attempt.quest_type][0] += 1

    rates = [(t, s / n) for t, (s, n) in totals.items() if n > 0]
    if not rates:
        return None, None

    rates.sort(key=lambda r: -r[1])
    strongest = rates[0][0] if rates[0][1] > 0 else None
    weakest = rates[-1][0] if len(rates) > 1 and rates[-1][1] < 1 else None
    return strongest, weakest


def compute_patterns(history: list[QuestAttempt]) -> UserPatterns:
    """Derive behavior patterns from quest history."""
    if not history:
        return UserPatterns()

    quest_count = len(history)
    total_attempts = sum(q.attempts for q in history)
    successful = sum(1 for q in history if q.final_success)
    strongest, weakest = _media_type_performance(history)

    failed_criteria = [
        step.criterion
        for q in history
        for step in (q.thinking_steps or [])
        if not step.passed
    ]
    confidences = [
        step.confidence
        for q in history
        for step in (q.thinking_steps or [])
    ]

    return UserPatterns(
        total_attempts=total_attempts,
        success_rate=successful / quest_count,
        average_attempts=total_attempts / quest_count,
        strongest_media_type=strongest,
        weakest_media_type=weakest,
        common_issues=rank_issues(failed_criteria, min_count=2),
        common_failure_reasons=rank_issues(
            line for q in history for line in failed_feedback(q)
        ),
        average_confidence=round(sum(confidences) / len(confidences)) if confidences else 0,
    )


def derive_thought_signature(
    patterns: UserPatterns,
    history: list[QuestAttempt],
) -> ThoughtSignature:
    """Pick the AI persona that fits the player's record so far."""
    if not history:
        return ThoughtSignature()

    if patterns.success_rate >= 0.8:
        level = EncouragementLevel.LOW
        voice = "Confident companion who respects your skills"
    elif patterns.success_rate >= 0.5:
        level = EncouragementLevel.MEDIUM
        voice = "Friendly and encouraging guide with a sense of adventure"
    else:
        level = EncouragementLevel.HIGH
        voice = "Supportive mentor who celebrates small wins"

    jokes = []
    if "lighting" in patterns.common_issues:
        jokes.append("your ongoing battle with lighting")
    if (
        patterns.strongest_media_type == QuestType.PHOTO
        and patterns.weakest_media_type == QuestType.VIDEO
    ):
        jokes.append("being a photo pro but video-shy")
    if patterns.strongest_media_type == QuestType.AUDIO:
        jokes.append("having golden ears for audio quests")
    if patterns.average_attempts > 2:
        jokes.append("your persistence and determination")

    nickname = None
    if len(history) >= 5 and patterns.success_rate >= 0.8:
        nickname = "Explorer"
    elif patterns.total_attempts >= 10 and patterns.success_rate < 0.5:
        nickname = "Determined One"

    return ThoughtSignature(
        narrative_voice=voice,
        encouragement_level=level,
        reference_style=ReferenceStyle.DETAILED if len(history) >= 3 else ReferenceStyle.BRIEF,
        running_jokes=jokes[:MAX_RUNNING_JOKES],
        player_nickname=nickname,
    )


# -----------------------------------------------------------------------------
# Recording
# -----------------------------------------------------------------------------

def merge_attempt(existing: QuestAttempt | None, incoming: QuestAttempt) -> QuestAttempt:
    """
    Fold a new verification round into the quest's record.

    Feedback is appended and time accumulated; attempts and final_success
    come from the incoming round. Optional details fall back to what was
    already known when the new round omits them.
    """
    if existing is None:
        return incoming

    return incoming.model_copy(update={
        "verification_feedback": [
            *existing.verification_feedback,
            *incoming.verification_feedback,
        ],
        "time_spent": existing.time_spent + incoming.time_spent,
        "thinking_steps": (
            incoming.thinking_steps
            if incoming.thinking_steps is not None
            else existing.thinking_steps
        ),
        "distance_from_target": (
            incoming.distance_from_target
            if incoming.distance_from_target is not None
            else existing.distance_from_target
        ),
        "quest_image_url": incoming.quest_image_url or existing.quest_image_url,
        "image_description": incoming.image_description or existing.image_description,
    })


def record_attempt(
    context: SessionContext,
    attempt: QuestAttempt,
    now: datetime | None = None,
) -> SessionContext:
    """Return a new context with the attempt merged and derived state recomputed."""
    history = list(context.quest_history)

    for i, existing in enumerate(history):
        if existing.quest_id == attempt.quest_id:
            history[i] = merge_attempt(existing, attempt)
            break
    else:
        history.append(attempt)

    patterns = compute_patterns(history)

    return context.model_copy(update={
        "quest_history": history,
        "patterns": patterns,
        "thought_signature": derive_thought_signature(patterns, history),
        "updated_at": now or datetime.now(),
    })
