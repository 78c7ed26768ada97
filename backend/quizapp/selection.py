"""Adaptive question selection.

Picks the next batch of questions for a session from a candidate pool,
moving the target difficulty one step up or down depending on the
user's recent performance and then sampling from a +/-1 band around it.
"""

import random
from typing import List, Optional, Sequence, Set

from .scoring import MAX_DIFFICULTY, MIN_DIFFICULTY, PerformanceMetrics, QuizQuestion, clamp_difficulty

PROMOTE_ACCURACY = 80
DEMOTE_ACCURACY = 50
STREAK_TO_ADJUST = 3
BAND_WIDTH = 1


def target_difficulty(current_difficulty: int, metrics: Optional[PerformanceMetrics]) -> int:
    """Return the difficulty the next batch should be drawn around."""
    current = clamp_difficulty(current_difficulty)
    if metrics is None:
        return current
    target = current
    # Both checks run independently; their accuracy bands do not overlap today.
    if metrics.recent_accuracy > PROMOTE_ACCURACY and metrics.consecutive_correct >= STREAK_TO_ADJUST:
        target = min(MAX_DIFFICULTY, current + 1)
    if metrics.recent_accuracy < DEMOTE_ACCURACY and metrics.consecutive_incorrect >= STREAK_TO_ADJUST:
        target = max(MIN_DIFFICULTY, current - 1)
    return target


def difficulty_band(target: int) -> Set[int]:
    """Difficulty levels eligible around `target` (inclusive)."""
    return set(range(target - BAND_WIDTH, target + BAND_WIDTH + 1))


def select_next(
    pool: Sequence[QuizQuestion],
    count: int,
    metrics: Optional[PerformanceMetrics],
    current_difficulty: int,
    rng: Optional[random.Random] = None,
) -> List[QuizQuestion]:
    """Sample up to `count` questions from the band around the target difficulty.

    A short (or empty) list is a valid result when the band is sparse; the
    caller decides whether to widen the search. Pass a seeded `rng` for
    reproducible selections.
    """
    if count <= 0 or not pool:
        return []
    band = difficulty_band(target_difficulty(current_difficulty, metrics))
    eligible = [q for q in pool if clamp_difficulty(q.difficulty_level) in band]
    rng = rng or random.Random()
    return rng.sample(eligible, min(count, len(eligible)))
