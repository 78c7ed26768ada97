"""Scoring policies applied to a single answer event.

Every policy exposes the same `score(context) -> ScoringResult` method and
is otherwise independent: policies hold only their configuration, never
per-session state, so one instance can serve concurrent requests. Named
instances live in `registry`, which is populated at import time.

Anomalies never raise here. An unknown policy name falls back to the
standard policy, an unresolvable option scores as "no answer", and a
zero denominator reports a 0 percentage.
"""

import logging
import threading
from dataclasses import dataclass, field, replace
from typing import Dict, List, Optional, Protocol, Sequence, Tuple

from .utils import feedback
from .utils.feedback import DEFAULT_LOCALE

logger = logging.getLogger("quizapp.scoring")

MIN_DIFFICULTY = 1
MAX_DIFFICULTY = 5
MIN_CONFIDENCE = 1
MAX_CONFIDENCE = 5
DEFAULT_CONFIDENCE = 3
DEFAULT_POLICY = "standard"


@dataclass(frozen=True)
class QuestionOption:
    """One selectable option of a question."""
    id: str
    is_correct: bool = False
    partial_credit_percentage: float = 0.0


@dataclass(frozen=True)
class QuizQuestion:
    """A question as seen by the scoring core.

    `points` is the full-credit baseline every policy derives bonuses and
    penalties from.
    """
    id: str
    points: float
    difficulty_level: int = 3
    options: Tuple[QuestionOption, ...] = ()


@dataclass(frozen=True)
class SubmittedAnswer:
    """A submission event. `is_correct` is derived from the chosen option."""
    question_id: str
    selected_option_id: Optional[str]
    is_correct: bool
    confidence_level: Optional[int] = None
    time_spent: Optional[float] = None


@dataclass(frozen=True)
class PerformanceMetrics:
    """Read-only snapshot of a user's recent performance."""
    recent_accuracy: float = 0.0
    average_response_time: float = 0.0
    consecutive_correct: int = 0
    consecutive_incorrect: int = 0
    current_streak: int = 0


@dataclass(frozen=True)
class ScoringContext:
    question: QuizQuestion
    answer: SubmittedAnswer
    performance: Optional[PerformanceMetrics] = None
    locale: str = DEFAULT_LOCALE


@dataclass
class ScoringResult:
    points_earned: float
    points_possible: float
    percentage: float
    feedback: str
    applied_modifiers: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "points_earned": self.points_earned,
            "points_possible": self.points_possible,
            "percentage": self.percentage,
            "feedback": self.feedback,
            "applied_modifiers": list(self.applied_modifiers),
        }


class ScoringPolicy(Protocol):
    """Interface shared by every scoring policy."""
    name: str

    def score(self, context: ScoringContext) -> ScoringResult:
        ...


def clamp_difficulty(level) -> int:
    """Clamp a difficulty level into [1, 5]; unparseable values become 1."""
    try:
        value = int(level)
    except (TypeError, ValueError):
        return MIN_DIFFICULTY
    return max(MIN_DIFFICULTY, min(MAX_DIFFICULTY, value))


def effective_confidence(answer: SubmittedAnswer) -> int:
    """Confidence for `answer`, defaulting to medium and clamped to [1, 5]."""
    if answer.confidence_level is None:
        return DEFAULT_CONFIDENCE
    return max(MIN_CONFIDENCE, min(MAX_CONFIDENCE, int(answer.confidence_level)))


def safe_percentage(earned: float, possible: float) -> float:
    if not possible:
        return 0.0
    return earned / possible * 100


def selected_option(question: QuizQuestion, answer: SubmittedAnswer) -> Optional[QuestionOption]:
    """Return the option matching the answer's selection, if any."""
    for opt in question.options:
        if opt.id == answer.selected_option_id:
            return opt
    return None


class StandardScoring:
    """Full points for a correct answer, nothing otherwise."""
    name = "standard"

    def score(self, context: ScoringContext) -> ScoringResult:
        question, answer = context.question, context.answer
        earned = question.points if answer.is_correct else 0
        return ScoringResult(
            points_earned=earned,
            points_possible=question.points,
            percentage=safe_percentage(earned, question.points),
            feedback=feedback.outcome(answer.is_correct, earned, context.locale),
            applied_modifiers=["standard"],
        )


class NegativePenaltyScoring:
    """Deducts a share of the points for incorrect answers to discourage guessing.

    The reported percentage for an incorrect answer is the negated penalty
    share itself rather than earned/possible, so the penalty shows up as a
    distinct signed quantity.
    """
    name = "negative_penalty"

    def __init__(self, penalty_percentage: float = 25):
        self.penalty_percentage = penalty_percentage

    def score(self, context: ScoringContext) -> ScoringResult:
        question, answer = context.question, context.answer
        if answer.is_correct:
            earned = question.points
            percentage = 100.0
        else:
            earned = -(question.points * self.penalty_percentage / 100)
            percentage = -self.penalty_percentage
        return ScoringResult(
            points_earned=earned,
            points_possible=question.points,
            percentage=percentage,
            feedback=feedback.outcome(answer.is_correct, earned, context.locale),
            applied_modifiers=["negative_penalty", f"{self.penalty_percentage:g}%"],
        )


class PartialCreditScoring:
    """Awards the selected option's partial credit share for plausible distractors."""
    name = "partial_credit"

    def score(self, context: ScoringContext) -> ScoringResult:
        question, answer = context.question, context.answer
        option = selected_option(question, answer)
        if option is None:
            return ScoringResult(
                points_earned=0,
                points_possible=question.points,
                percentage=0.0,
                feedback=feedback.message("no_answer", context.locale),
                applied_modifiers=[],
            )

        if option.is_correct:
            earned = question.points
            percentage = 100.0
        elif option.partial_credit_percentage > 0:
            percentage = option.partial_credit_percentage
            earned = question.points * percentage / 100
        else:
            earned = 0
            percentage = 0.0

        if 0 < percentage < 100:
            text = feedback.message("partial", context.locale, pct=percentage)
        else:
            text = feedback.outcome(option.is_correct, earned, context.locale)
        return ScoringResult(
            points_earned=earned,
            points_possible=question.points,
            percentage=percentage,
            feedback=text,
            applied_modifiers=["partial_credit", f"{percentage:g}%"],
        )


class ConfidenceBasedScoring:
    """Rewards calibrated confidence.

    High-confidence answers double both the reward and the penalty, while a
    wrong answer given with low confidence only costs half the base penalty.
    `points_possible` is scaled only for a correct high-confidence answer.
    """
    name = "confidence_based"

    def __init__(self, high_threshold: int = 4, high_multiplier: float = 2.0, base_penalty_percentage: float = 25):
        self.high_threshold = high_threshold
        self.high_multiplier = high_multiplier
        self.base_penalty_percentage = base_penalty_percentage

    def score(self, context: ScoringContext) -> ScoringResult:
        question, answer = context.question, context.answer
        high = effective_confidence(answer) >= self.high_threshold
        modifiers = ["confidence_based"]
        possible = question.points

        if answer.is_correct:
            earned = question.points
            if high:
                earned *= self.high_multiplier
                possible = question.points * self.high_multiplier
                modifiers.append(f"high_confidence_bonus_{self.high_multiplier:g}x")
        else:
            base_penalty = -(question.points * self.base_penalty_percentage / 100)
            if high:
                earned = base_penalty * self.high_multiplier
                modifiers.append(f"high_confidence_penalty_{self.high_multiplier:g}x")
            else:
                earned = base_penalty * 0.5
                modifiers.append("low_confidence_reduced_penalty_0.5x")

        percentage = min(100.0, max(-100.0, safe_percentage(earned, question.points)))
        suffix = feedback.message("high_confidence" if high else "low_confidence", context.locale)
        return ScoringResult(
            points_earned=earned,
            points_possible=possible,
            percentage=percentage,
            feedback=feedback.outcome(answer.is_correct, earned, context.locale) + suffix,
            applied_modifiers=modifiers,
        )


class ThresholdScoring:
    """Zeroes any result whose percentage falls below a pass mark.

    Wraps another policy (standard by default) and leaves passing results
    untouched apart from the trace tag.
    """
    name = "threshold"

    def __init__(self, minimum_percentage: float = 40, wrapped: Optional[ScoringPolicy] = None):
        self.minimum_percentage = minimum_percentage
        self.wrapped = wrapped or StandardScoring()

    def score(self, context: ScoringContext) -> ScoringResult:
        inner = self.wrapped.score(context)
        if inner.percentage < self.minimum_percentage:
            return replace(
                inner,
                points_earned=0,
                percentage=0.0,
                feedback=inner.feedback + feedback.message("below_threshold", context.locale),
                applied_modifiers=inner.applied_modifiers + [f"threshold_{self.minimum_percentage:g}%"],
            )
        return replace(inner, applied_modifiers=inner.applied_modifiers + ["threshold_passed"])


class TimeBasedScoring:
    """Speed bonus for fast correct answers; slow answers are never penalised.

    The bonus is full up to `fast_seconds`, then shrinks linearly to zero at
    `slow_seconds`. A missing time counts as slow. The denominator always
    includes the maximum bonus.
    """
    name = "time_based"

    def __init__(self, fast_seconds: float = 10, slow_seconds: float = 60, max_bonus_fraction: float = 0.5):
        self.fast_seconds = fast_seconds
        self.slow_seconds = slow_seconds
        self.max_bonus_fraction = max_bonus_fraction

    def score(self, context: ScoringContext) -> ScoringResult:
        question, answer = context.question, context.answer
        time_spent = self.slow_seconds if answer.time_spent is None else max(0.0, answer.time_spent)
        earned = question.points if answer.is_correct else 0
        bonus = 0.0
        modifiers = ["time_based"]

        if answer.is_correct and time_spent <= self.fast_seconds:
            bonus = question.points * self.max_bonus_fraction
            modifiers.append(f"speed_bonus_{self.max_bonus_fraction * 100:g}%")
        elif answer.is_correct and time_spent < self.slow_seconds:
            ratio = 1 - (time_spent - self.fast_seconds) / (self.slow_seconds - self.fast_seconds)
            bonus = question.points * self.max_bonus_fraction * ratio
            modifiers.append(f"speed_bonus_{safe_percentage(bonus, question.points):.0f}%")
        earned += bonus

        cap = 100 + self.max_bonus_fraction * 100
        text = feedback.outcome(answer.is_correct, earned, context.locale)
        if bonus > 0:
            text += feedback.message("fast_bonus", context.locale, bonus=bonus)
        return ScoringResult(
            points_earned=earned,
            points_possible=question.points * (1 + self.max_bonus_fraction),
            percentage=min(cap, safe_percentage(earned, question.points)),
            feedback=text,
            applied_modifiers=modifiers,
        )


class AdaptiveDifficultyScoring:
    """Scales points by difficulty and eases off for users who are excelling.

    The multipliers change absolute points only; the percentage stays binary.
    """
    name = "adaptive_difficulty"

    def score(self, context: ScoringContext) -> ScoringResult:
        question, answer = context.question, context.answer
        level = clamp_difficulty(question.difficulty_level)
        difficulty_multiplier = 1 + (level - 1) * 0.25
        performance_multiplier = 1.0
        if context.performance is not None:
            if context.performance.recent_accuracy < 60:
                performance_multiplier = 1.2
            elif context.performance.recent_accuracy > 90:
                performance_multiplier = 0.9

        adjusted = question.points * difficulty_multiplier
        earned = adjusted * performance_multiplier if answer.is_correct else 0

        text = feedback.outcome(answer.is_correct, earned, context.locale)
        if level >= 4:
            text += feedback.message("hard_question", context.locale)
        elif level <= 2:
            text += feedback.message("easy_question", context.locale)
        return ScoringResult(
            points_earned=earned,
            points_possible=adjusted,
            percentage=100.0 if answer.is_correct else 0.0,
            feedback=text,
            applied_modifiers=[
                "adaptive_difficulty",
                f"difficulty_{difficulty_multiplier:.2f}x",
                f"performance_{performance_multiplier:.2f}x",
            ],
        )


class ComboStreakScoring:
    """Multiplies points by the streak of correct answers preceding this one."""
    name = "combo_streak"

    def __init__(self, bonus_per_correct: float = 0.1, max_multiplier: float = 2.0):
        self.bonus_per_correct = bonus_per_correct
        self.max_multiplier = max_multiplier

    def score(self, context: ScoringContext) -> ScoringResult:
        question, answer = context.question, context.answer
        streak = context.performance.consecutive_correct if context.performance else 0
        multiplier = min(self.max_multiplier, 1 + streak * self.bonus_per_correct)
        modifiers = ["combo_streak"]
        earned = 0
        if answer.is_correct:
            earned = question.points * multiplier
            if streak > 0:
                modifiers += [f"streak_{streak}", f"multiplier_{multiplier:.2f}x"]

        text = feedback.outcome(answer.is_correct, earned, context.locale)
        if answer.is_correct and streak >= 3:
            text += feedback.message("combo", context.locale, combo=streak + 1, multiplier=multiplier)
        elif not answer.is_correct and streak > 0:
            text += feedback.message("combo_broken", context.locale)
        return ScoringResult(
            points_earned=earned,
            points_possible=question.points * multiplier,
            percentage=100.0 if answer.is_correct else 0.0,
            feedback=text,
            applied_modifiers=modifiers,
        )


class CompositeScoring:
    """Layers independent policies by summing their results."""
    name = "composite"

    def __init__(self, policies: Sequence[ScoringPolicy]):
        self.policies = list(policies)

    def score(self, context: ScoringContext) -> ScoringResult:
        results = [p.score(context) for p in self.policies]
        earned = sum(r.points_earned for r in results)
        possible = sum(r.points_possible for r in results)
        modifiers: List[str] = []
        for r in results:
            modifiers.extend(r.applied_modifiers)
        return ScoringResult(
            points_earned=earned,
            points_possible=possible,
            percentage=safe_percentage(earned, possible),
            feedback=" | ".join(r.feedback for r in results),
            applied_modifiers=modifiers,
        )


class PolicyRegistry:
    """Name -> policy lookup with a non-raising fallback.

    Lookups are lock-free reads of the current mapping; registration swaps
    in a new mapping under a lock.
    """

    def __init__(self, default: str = DEFAULT_POLICY):
        self.default = default
        self._policies: Dict[str, ScoringPolicy] = {}
        self._lock = threading.Lock()

    def register(self, name: str, policy: ScoringPolicy) -> None:
        with self._lock:
            updated = dict(self._policies)
            updated[name] = policy
            self._policies = updated

    def get(self, name: Optional[str]) -> ScoringPolicy:
        """Return the policy registered as `name`, or the default one."""
        policies = self._policies
        policy = policies.get(name) if name else None
        if policy is None:
            logger.warning("scoring policy %r not found, falling back to %r", name, self.default)
            return policies[self.default]
        return policy

    def names(self) -> List[str]:
        return list(self._policies)

    def __contains__(self, name) -> bool:
        return name in self._policies


def build_default_registry() -> PolicyRegistry:
    reg = PolicyRegistry()
    reg.register("standard", StandardScoring())
    reg.register("negative_penalty", NegativePenaltyScoring(25))
    reg.register("partial_credit", PartialCreditScoring())
    reg.register("confidence_based", ConfidenceBasedScoring())
    reg.register("threshold", ThresholdScoring(40))
    reg.register("time_based", TimeBasedScoring())
    reg.register("adaptive_difficulty", AdaptiveDifficultyScoring())
    reg.register("combo_streak", ComboStreakScoring())
    return reg


registry = build_default_registry()


def is_known_policy(key: Optional[str], reg: Optional[PolicyRegistry] = None) -> bool:
    """True when every `+`-separated part of `key` is registered."""
    reg = reg or registry
    if not key:
        return False
    return all(part.strip() in reg for part in key.split("+"))


def resolve_policy(key: Optional[str], reg: Optional[PolicyRegistry] = None) -> ScoringPolicy:
    """Resolve a policy key, composing `a+b` keys from their registered parts.

    Unknown parts resolve to the default policy, like `PolicyRegistry.get`.
    """
    reg = reg or registry
    if not key or "+" not in key:
        return reg.get(key)
    parts = [part.strip() for part in key.split("+") if part.strip()]
    return CompositeScoring([reg.get(part) for part in parts])
