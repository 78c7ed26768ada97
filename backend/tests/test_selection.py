import random

from quizapp.scoring import PerformanceMetrics, QuizQuestion
from quizapp.selection import difficulty_band, select_next, target_difficulty

# two questions at each level 1..5
POOL = [QuizQuestion(id=f"q{level}{i}", points=1, difficulty_level=level) for level in range(1, 6) for i in range(2)]


def test_target_difficulty_moves_up_for_strong_streak():
    metrics = PerformanceMetrics(recent_accuracy=85, consecutive_correct=3)
    assert target_difficulty(3, metrics) == 4
    assert target_difficulty(5, metrics) == 5


def test_target_difficulty_moves_down_for_weak_streak():
    metrics = PerformanceMetrics(recent_accuracy=40, consecutive_incorrect=3)
    assert target_difficulty(3, metrics) == 2
    assert target_difficulty(1, metrics) == 1


def test_target_difficulty_unchanged():
    assert target_difficulty(3, PerformanceMetrics(recent_accuracy=50)) == 3
    assert target_difficulty(3, PerformanceMetrics(recent_accuracy=95, consecutive_correct=2)) == 3
    assert target_difficulty(3, None) == 3


def test_target_difficulty_clamps_input():
    assert target_difficulty(9, None) == 5
    assert target_difficulty(0, None) == 1


def test_difficulty_band():
    assert difficulty_band(3) == {2, 3, 4}


def test_select_from_band_only():
    metrics = PerformanceMetrics(recent_accuracy=50)
    result = select_next(POOL, 4, metrics, 3, rng=random.Random(1))
    assert len(result) == 4
    assert all(q.difficulty_level in {2, 3, 4} for q in result)
    assert len({q.id for q in result}) == 4


def test_scarce_band_returns_short_list():
    metrics = PerformanceMetrics(recent_accuracy=50)
    result = select_next(POOL, 50, metrics, 3, rng=random.Random(1))
    assert sorted(q.id for q in result) == ["q20", "q21", "q30", "q31", "q40", "q41"]


def test_edge_band_after_promotion():
    metrics = PerformanceMetrics(recent_accuracy=90, consecutive_correct=5)
    result = select_next(POOL, 10, metrics, 4)
    assert {q.difficulty_level for q in result} == {4, 5}


def test_empty_pool_and_non_positive_count():
    assert select_next([], 5, None, 3) == []
    assert select_next(POOL, 0, None, 3) == []
    assert select_next(POOL, -2, None, 3) == []


def test_seeded_selection_is_reproducible():
    first = select_next(POOL, 3, None, 3, rng=random.Random(42))
    second = select_next(POOL, 3, None, 3, rng=random.Random(42))
    assert first == second
